"""
Schema compilation module.

Turns JSON Schema dicts and pydantic models into grammar state machines.

Components:
    - parser: JSON Schema -> StateMachine compiler, schema validation
    - pydantic_adapter: Convert pydantic models to JSON Schema

Example:
    ```python
    from structure_guard.schema import parse_schema
    from pydantic import BaseModel

    class User(BaseModel):
        name: str
        age: int

    # Compile a pydantic model
    state_machine = parse_schema(User)

    # Or a JSON Schema dict
    schema = {"type": "object", "properties": {"name": {"type": "string"}}}
    state_machine = parse_schema(schema)
    ```
"""

from structure_guard.schema.parser import (
    SchemaContext,
    SchemaReferenceStateMachine,
    build_state_machine,
    parse_schema,
    validate_schema,
)
from structure_guard.schema.pydantic_adapter import is_pydantic_model, pydantic_to_schema

__all__ = [
    "parse_schema",
    "build_state_machine",
    "validate_schema",
    "SchemaContext",
    "SchemaReferenceStateMachine",
    "pydantic_to_schema",
    "is_pydantic_model",
]
