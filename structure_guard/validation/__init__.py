"""
Post-generation validation.

The grammar guarantees structure; this module checks the schema keywords the
grammar cannot enforce token by token (numeric ranges, formats, oneOf
exclusivity) once generation is finished.

Example:
    ```python
    from structure_guard.validation import validate

    result = validate('{"age": -3}', schema)
    if not result.is_valid:
        print(format_validation_errors(result.errors))
    ```
"""

from structure_guard.validation.validator import (
    GRAMMAR_ENFORCED_KEYWORDS,
    ValidationError,
    ValidationResult,
    format_validation_errors,
    quick_validate,
    validate,
    validate_value,
)

__all__ = [
    "validate",
    "validate_value",
    "quick_validate",
    "ValidationResult",
    "ValidationError",
    "format_validation_errors",
    "GRAMMAR_ENFORCED_KEYWORDS",
]
