#!/usr/bin/env python3
"""
Demo: Person record with nested fields.

This demonstrates generating a person profile with:
- Required fields: name, age
- Nested object: address with city (required)
- Array: hobbies (at most 5)
- Keywords the grammar leaves to validation: minimum, maximum

The same structure is given twice, once as a JSON Schema dict and once as a
pydantic model, and a third run lets the model talk before a fenced answer.
"""

import json
import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from structure_guard import StructuredGenerator

SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 2, "maxLength": 50},
        "age": {"type": "integer", "minimum": 0, "maximum": 150},
        "address": {
            "type": "object",
            "properties": {
                "street": {"type": "string"},
                "city": {"type": "string"},
            },
            "required": ["city"],
        },
        "hobbies": {"type": "array", "items": {"type": "string"}, "maxItems": 5},
    },
    "required": ["name", "age"],
}


class Address(BaseModel):
    street: Optional[str] = None
    city: str


class Person(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    age: int = Field(ge=0, le=150)
    address: Optional[Address] = None
    hobbies: List[str] = Field(default_factory=list, max_length=5)


def show(result) -> None:
    print(f"Valid: {'✓' if result.is_valid else '✗'} {result.is_valid}")
    print(f"Latency: {result.latency_ms:.0f}ms")
    print(f"Tokens: {result.tokens_generated}")
    print("\nOutput:")
    print(result.output)

    if result.is_valid:
        value = result.value
        if isinstance(value, BaseModel):
            value = value.model_dump()
        print("\nValue:")
        print(json.dumps(value, indent=2))
    else:
        print("\nValidation Errors:")
        for error in result.validation_errors:
            print(f"  - {error.path}: {error.message}")


def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    print("=" * 60)
    print("structure-guard Demo: Person Record with Nested Fields")
    print("=" * 60)

    print("\nSchema:")
    print(json.dumps(SCHEMA, indent=2))

    print("\n" + "=" * 60)
    print("Initializing Generator...")
    print("=" * 60)

    generator = StructuredGenerator(
        model="TinyLlama/TinyLlama-1.1B-Chat-v1.0",
        backend="transformers",
        device=None,  # Auto-detect
        multi_token_sampling=True,
    )
    print("✓ Generator initialized")

    runs = [
        ("JSON Schema", "Generate a person named Alice, age 28, living in NYC with hobbies reading and hiking\n",
         dict(structure=SCHEMA)),
        ("pydantic model", "Create a user profile for Bob Smith, 35 years old, residing in San Francisco\n",
         dict(structure=Person)),
        ("fenced answer", "Describe Charlie, age 42, then give the record as a ```json block.\n",
         dict(structure=SCHEMA, delimiters=("```json\n", "\n```"), min_buffer_length=0)),
    ]

    for i, (label, prompt, options) in enumerate(runs, 1):
        print("\n" + "=" * 60)
        print(f"Run {i}/{len(runs)}: {label}")
        print("=" * 60)
        print(f"Prompt: {prompt}")

        result = generator.generate(prompt=prompt, max_tokens=200, **options)
        show(result)

    print("\n" + "=" * 60)
    print("Demo Complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
