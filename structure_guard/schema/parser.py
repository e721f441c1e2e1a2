"""
JSON Schema parser - compiles JSON Schema dicts into grammar state machines.

This module is the main entry point for turning a declared structure into the
grammar the engine walks. It handles:
    - A practical JSON Schema subset (types, properties, required, items,
      enum/const, string length and pattern, array length, unions)
    - Local references into "$defs" / "definitions", including recursive ones
    - Pydantic models (converted to JSON Schema first)
    - Lists of structures (a union of the alternatives)

Numeric ranges and string formats cannot be expressed character by character;
they are left to post-generation validation.

Usage:
    ```python
    from structure_guard.schema import parse_schema

    schema = {
        "type": "object",
        "properties": {
            "name": {"type": "string", "minLength": 3},
            "age": {"type": "integer", "minimum": 0}
        },
        "required": ["name"]
    }

    state_machine = parse_schema(schema)
    steppers = state_machine.get_steppers()
    ```
"""

import logging
from typing import Any, Dict, Optional, Sequence, Union

from structure_guard.core.state_machine import StateGraph, StateMachine
from structure_guard.core.stepper import Stepper
from structure_guard.errors import GrammarConfigurationError
from structure_guard.schema.pydantic_adapter import is_pydantic_model, pydantic_to_schema
from structure_guard.types.base.any import AnyStateMachine
from structure_guard.types.json import (
    ArrayStateMachine,
    BooleanStateMachine,
    EnumStateMachine,
    IntegerStateMachine,
    JsonStateMachine,
    JsonValueStepper,
    NullStateMachine,
    NumberStateMachine,
    ObjectStateMachine,
    StringStateMachine,
)

logger = logging.getLogger(__name__)

VALID_TYPES = ["object", "array", "string", "integer", "number", "boolean", "null"]
UNSUPPORTED_KEYWORDS = ["not", "if", "then", "else", "patternProperties", "dependentSchemas"]


class SchemaContext:
    """
    Compilation state shared by one root schema.

    Attributes:
        root: The root schema (reference targets are looked up here)
        references: Reference machines by "$ref" string
    """

    def __init__(self, root: Dict[str, Any]):
        self.root = root
        self.references: Dict[str, "SchemaReferenceStateMachine"] = {}

    def resolve(self, ref: str) -> Dict[str, Any]:
        """
        Look up a local reference such as "#/$defs/Node".

        Raises:
            GrammarConfigurationError: If the reference is not local or
                does not point at a schema
        """
        if ref == "#":
            return self.root
        if not ref.startswith("#/"):
            raise GrammarConfigurationError(f"Only local references are supported, got {ref!r}")

        target: Any = self.root
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(target, dict) or part not in target:
                raise GrammarConfigurationError(f"Unresolvable reference {ref!r}")
            target = target[part]

        if not isinstance(target, dict):
            raise GrammarConfigurationError(f"Reference {ref!r} does not point at a schema")
        return target

    def reference(self, ref: str) -> "SchemaReferenceStateMachine":
        if ref not in self.references:
            # Fail early on dangling references
            self.resolve(ref)
            self.references[ref] = SchemaReferenceStateMachine(ref, self)
        return self.references[ref]


class SchemaReferenceStateMachine(StateMachine):
    """
    Stand-in for a "$ref" target, compiled on first use.

    Every reference to the same target shares one instance, so recursive
    schemas compile to a finite, cyclic graph.
    """

    def __init__(self, ref: str, context: SchemaContext):
        super().__init__()
        self.ref = ref
        self.context = context

    def _build_state_graph(self) -> StateGraph:
        target = _parse_schema_dict(self.context.resolve(self.ref), self.context)
        return {0: [(target, "$")]}

    def get_new_stepper(self, state=None) -> Stepper:
        return JsonValueStepper(self, state)

    def __repr__(self) -> str:
        return f"SchemaReferenceStateMachine({self.ref!r})"


def parse_schema(schema: Union[Dict[str, Any], type]) -> StateMachine:
    """
    Compile a JSON Schema or pydantic model into a state machine.

    Args:
        schema: JSON Schema dict or pydantic model class

    Returns:
        StateMachine: Root of the grammar graph

    Raises:
        GrammarConfigurationError: If the schema is invalid or unsupported

    Example:
        ```python
        # JSON Schema
        state_machine = parse_schema({"type": "string", "minLength": 3})

        # Pydantic model
        class User(BaseModel):
            name: str
            age: int

        state_machine = parse_schema(User)
        ```
    """
    if is_pydantic_model(schema):
        schema = pydantic_to_schema(schema)

    if not isinstance(schema, dict):
        raise GrammarConfigurationError(
            f"Schema must be a dict or pydantic model, got {type(schema).__name__}"
        )

    validate_schema(schema)
    state_machine = _parse_schema_dict(schema, SchemaContext(schema))
    logger.info(f"Compiled schema to {state_machine!r}")
    return state_machine


def build_state_machine(structure: Any) -> StateMachine:
    """
    Turn any supported structure into a state machine.

    Accepts a StateMachine (returned as is), a JSON Schema dict, a pydantic
    model class, or a list/tuple of these (compiled to a union).
    """
    if isinstance(structure, StateMachine):
        return structure

    if isinstance(structure, (list, tuple)):
        if not structure:
            raise GrammarConfigurationError("Cannot build a grammar from an empty list")
        return AnyStateMachine([build_state_machine(member) for member in structure])

    return parse_schema(structure)


def _parse_schema_dict(schema: Dict[str, Any], context: SchemaContext) -> StateMachine:
    """
    Internal method to compile a JSON Schema dictionary.

    Args:
        schema: JSON Schema dictionary
        context: Compilation context of the root schema

    Returns:
        StateMachine: Compiled machine
    """
    if "$ref" in schema:
        return context.reference(schema["$ref"])

    if "allOf" in schema:
        # Single-member allOf is how generators attach metadata to a $ref
        return _parse_schema_dict(schema["allOf"][0], context)

    if "anyOf" in schema:
        return _parse_union(schema["anyOf"], context)
    if "oneOf" in schema:
        # oneOf is treated like anyOf; exclusivity is checked post-generation
        return _parse_union(schema["oneOf"], context)

    if "const" in schema:
        return EnumStateMachine([schema["const"]])
    if "enum" in schema:
        return EnumStateMachine(schema["enum"])

    schema_type = schema.get("type")

    if schema_type is None:
        if "properties" in schema:
            schema_type = "object"
        elif "items" in schema:
            schema_type = "array"
        else:
            return JsonStateMachine()

    # Handle list of types (e.g., ["string", "null"])
    if isinstance(schema_type, list):
        return _parse_union(
            [{**{k: v for k, v in schema.items() if k != "type"}, "type": t} for t in schema_type],
            context,
        )

    if schema_type == "object":
        return _parse_object(schema, context)
    elif schema_type == "array":
        return _parse_array(schema, context)
    elif schema_type == "string":
        return _parse_string(schema)
    elif schema_type == "integer":
        return IntegerStateMachine()
    elif schema_type == "number":
        return NumberStateMachine()
    elif schema_type == "boolean":
        return BooleanStateMachine()
    elif schema_type == "null":
        return NullStateMachine()
    else:
        raise GrammarConfigurationError(f"Unsupported schema type: {schema_type}")


def _parse_object(schema: Dict[str, Any], context: SchemaContext) -> ObjectStateMachine:
    properties = {
        name: _parse_schema_dict(property_schema, context)
        for name, property_schema in schema.get("properties", {}).items()
    }

    additional = schema.get("additionalProperties", False)
    if isinstance(additional, dict):
        additional = _parse_schema_dict(additional, context)

    if not properties and "properties" not in schema and "additionalProperties" not in schema:
        # A bare {"type": "object"} means any object
        return ObjectStateMachine()

    return ObjectStateMachine(
        properties=properties,
        required=schema.get("required", []),
        additional_properties=additional,
    )


def _parse_array(schema: Dict[str, Any], context: SchemaContext) -> ArrayStateMachine:
    items_schema = schema.get("items")
    items = _parse_schema_dict(items_schema, context) if isinstance(items_schema, dict) else None

    max_items = schema.get("maxItems")
    return ArrayStateMachine(
        item_state_machine=items,
        min_items=schema.get("minItems", 0),
        max_items=-1 if max_items is None else max_items,
    )


def _parse_string(schema: Dict[str, Any]) -> StringStateMachine:
    return StringStateMachine(
        min_length=schema.get("minLength"),
        max_length=schema.get("maxLength"),
        pattern=schema.get("pattern"),
    )


def _parse_union(schemas: Sequence[Dict[str, Any]], context: SchemaContext) -> StateMachine:
    options = [_parse_schema_dict(s, context) for s in schemas]
    if len(options) == 1:
        return options[0]
    return AnyStateMachine(options)


def validate_schema(schema: Dict[str, Any], path: str = "#") -> None:
    """
    Validate that a schema is well-formed and supported.

    Args:
        schema: JSON Schema dictionary
        path: Location of `schema` inside the root (for error messages)

    Raises:
        GrammarConfigurationError: If the schema is invalid or uses
            unsupported features

    Example:
        ```python
        schema = {"type": "unknown"}
        validate_schema(schema)  # Raises GrammarConfigurationError
        ```
    """
    if not isinstance(schema, dict):
        raise GrammarConfigurationError(f"{path}: schema must be an object, got {schema!r}")

    for keyword in UNSUPPORTED_KEYWORDS:
        if keyword in schema:
            raise GrammarConfigurationError(f"{path}: keyword '{keyword}' is not supported")

    if "allOf" in schema and len(schema["allOf"]) != 1:
        raise GrammarConfigurationError(f"{path}: allOf is only supported with a single schema")

    if "$ref" in schema and not str(schema["$ref"]).startswith("#"):
        raise GrammarConfigurationError(
            f"{path}: only local references are supported, got {schema['$ref']!r}"
        )

    schema_type = schema.get("type")
    if schema_type is not None:
        if isinstance(schema_type, str):
            if schema_type not in VALID_TYPES:
                raise GrammarConfigurationError(f"{path}: invalid type: {schema_type}")
        elif isinstance(schema_type, list):
            for t in schema_type:
                if t not in VALID_TYPES:
                    raise GrammarConfigurationError(f"{path}: invalid type in type array: {t}")
        else:
            raise GrammarConfigurationError(
                f"{path}: type must be string or array, got: {type(schema_type).__name__}"
            )

    if "enum" in schema and (not isinstance(schema["enum"], list) or not schema["enum"]):
        raise GrammarConfigurationError(f"{path}: enum must be a non-empty list")

    _validate_bounds(schema, "minLength", "maxLength", path)
    _validate_bounds(schema, "minItems", "maxItems", path)

    # Validate nested schemas
    for name, property_schema in schema.get("properties", {}).items():
        validate_schema(property_schema, f"{path}/properties/{name}")

    if isinstance(schema.get("items"), dict):
        validate_schema(schema["items"], f"{path}/items")

    if isinstance(schema.get("additionalProperties"), dict):
        validate_schema(schema["additionalProperties"], f"{path}/additionalProperties")

    for keyword in ("anyOf", "oneOf", "allOf"):
        for index, sub_schema in enumerate(schema.get(keyword, [])):
            validate_schema(sub_schema, f"{path}/{keyword}/{index}")

    for keyword in ("$defs", "definitions"):
        for name, sub_schema in schema.get(keyword, {}).items():
            validate_schema(sub_schema, f"{path}/{keyword}/{name}")


def _validate_bounds(schema: Dict[str, Any], low_key: str, high_key: str, path: str) -> None:
    low: Optional[Any] = schema.get(low_key)
    high: Optional[Any] = schema.get(high_key)

    for key, value in ((low_key, low), (high_key, high)):
        if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < 0):
            raise GrammarConfigurationError(f"{path}: {key} must be a non-negative integer")

    if low is not None and high is not None and high < low:
        raise GrammarConfigurationError(f"{path}: {high_key} ({high}) is less than {low_key} ({low})")

