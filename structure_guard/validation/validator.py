"""
Output validator - check generated JSON against its schema after generation.

The grammar enforces structure while tokens are generated, but some schema
keywords cannot be expressed character by character:
    1. Numeric ranges (minimum, maximum, multipleOf, ...)
    2. String formats (date-time, email, ...)
    3. oneOf exclusivity and uniqueItems

These are checked here with jsonschema once the output is complete. Every
error records whether its keyword is one the grammar already enforces, so a
caller can tell "the model picked an out-of-range number" apart from "the
output bypassed the grammar".

Usage:
    ```python
    from structure_guard.validation import validate

    schema = {"type": "object", "properties": {"age": {"type": "integer", "minimum": 0}}}

    result = validate('{"age": -3}', schema)
    if not result.is_valid:
        for error in result.errors:
            print(f"{error.path}: {error.message}")
    ```
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from jsonschema.validators import validator_for

logger = logging.getLogger(__name__)

# Keywords the compiled grammar guarantees during generation
GRAMMAR_ENFORCED_KEYWORDS = frozenset({
    "type", "properties", "required", "additionalProperties", "items",
    "minItems", "maxItems", "enum", "const", "minLength", "maxLength",
    "pattern", "anyOf", "$ref",
})


@dataclass
class ValidationError:
    """
    A single schema violation.

    Attributes:
        path: JSON path to the error location (e.g., ".user.age")
        message: Human-readable error message
        schema_path: Path in schema that failed
        validator: Keyword that failed (e.g., "type", "minimum")
        expected: Keyword value from the schema
        actual: Value found in the output
        enforced_by_grammar: Whether the grammar should have prevented this
    """
    path: str
    message: str
    schema_path: str
    validator: str
    expected: Any
    actual: Any
    enforced_by_grammar: bool = False


@dataclass
class ValidationResult:
    """
    Result of validating generated output.

    Attributes:
        is_valid: Whether the output satisfies the schema
        errors: Violations (empty if valid)
        raw_output: Output text
        parsed_output: Parsed value (None if parsing or validation failed)
    """
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    raw_output: str = ""
    parsed_output: Optional[Any] = None


def validate(output: str, schema: Dict[str, Any]) -> ValidationResult:
    """
    Parse output text as JSON and validate it against a schema.

    Args:
        output: Generated JSON text
        schema: JSON Schema dictionary

    Returns:
        ValidationResult: Validation result with errors if any

    Example:
        ```python
        schema = {
            "type": "object",
            "properties": {"name": {"type": "string"}},
            "required": ["name"]
        }

        assert validate('{"name": "Alice"}', schema).is_valid
        assert not validate('{"age": 25}', schema).is_valid
        ```
    """
    try:
        parsed = json.loads(output)
    except json.JSONDecodeError as e:
        return ValidationResult(
            is_valid=False,
            errors=[
                ValidationError(
                    path="root",
                    message=f"Invalid JSON: {e.msg}",
                    schema_path="",
                    validator="json",
                    expected="valid JSON",
                    actual=f"parse error at position {e.pos}",
                    enforced_by_grammar=True,
                )
            ],
            raw_output=output,
        )

    return validate_value(parsed, schema, raw_output=output)


def validate_value(value: Any, schema: Dict[str, Any], raw_output: str = "") -> ValidationResult:
    """
    Validate an already parsed value against a schema.

    The validator class is picked from the schema's "$schema" (latest draft
    when absent).
    """
    validator_class = validator_for(schema)
    validator = validator_class(schema)

    errors = [_convert_jsonschema_error(error, value) for error in validator.iter_errors(value)]
    if errors:
        logger.debug(f"Output failed validation with {len(errors)} error(s)")

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        raw_output=raw_output,
        parsed_output=value if not errors else None,
    )


def _convert_jsonschema_error(error: Any, data: Any) -> ValidationError:
    """Convert a jsonschema error to a ValidationError."""
    path = "." + ".".join(str(p) for p in error.path) if error.path else "root"

    actual = data
    for key in error.path:
        if isinstance(actual, dict):
            actual = actual.get(key, "MISSING")
        elif isinstance(actual, list):
            try:
                actual = actual[int(key)]
            except (IndexError, ValueError):
                actual = "INVALID_INDEX"
        else:
            actual = "UNKNOWN"

    schema_path = "." + ".".join(str(p) for p in error.schema_path) if error.schema_path else "root"
    expected = error.schema.get(error.validator, "see schema") if isinstance(error.schema, dict) else error.schema

    return ValidationError(
        path=path,
        message=error.message,
        schema_path=schema_path,
        validator=str(error.validator),
        expected=expected,
        actual=actual,
        enforced_by_grammar=error.validator in GRAMMAR_ENFORCED_KEYWORDS,
    )


def format_validation_errors(errors: List[ValidationError]) -> str:
    """
    Format validation errors as a human-readable string.

    Example:
        ```python
        print(format_validation_errors(result.errors))
        # Validation failed with 1 error(s):
        #   1. At .age: -3 is less than the minimum of 0
        #      Expected: 0
        #      Got: -3
        ```
    """
    if not errors:
        return "No validation errors"

    lines = [f"Validation failed with {len(errors)} error(s):"]
    for i, error in enumerate(errors, 1):
        lines.append(f"\n  {i}. At {error.path}: {error.message}")
        lines.append(f"     Expected: {error.expected}")
        lines.append(f"     Got: {error.actual}")
        if error.enforced_by_grammar:
            lines.append("     (the grammar should have prevented this)")

    return "\n".join(lines)


def quick_validate(output: str, schema: Dict[str, Any]) -> bool:
    """True if output parses and satisfies the schema."""
    return validate(output, schema).is_valid
