"""
Pydantic adapter - turn pydantic models into JSON Schema dicts.

Only pydantic v2 is supported (`model_json_schema`).
"""

import inspect
import logging
from typing import Any, Dict

from pydantic import BaseModel

logger = logging.getLogger(__name__)


def is_pydantic_model(obj: Any) -> bool:
    """Check if an object is a pydantic model class."""
    return inspect.isclass(obj) and issubclass(obj, BaseModel)


def pydantic_to_schema(model: Any) -> Dict[str, Any]:
    """
    Convert a pydantic model class to a JSON Schema dict.

    Args:
        model: pydantic BaseModel subclass

    Returns:
        Dict: JSON Schema (nested models land under "$defs")

    Raises:
        TypeError: If `model` is not a pydantic model class

    Example:
        ```python
        class User(BaseModel):
            name: str
            age: int

        schema = pydantic_to_schema(User)
        # {"type": "object", "properties": {...}, "required": ["name", "age"], ...}
        ```
    """
    if not is_pydantic_model(model):
        raise TypeError(f"Expected a pydantic model class, got {model!r}")

    schema = model.model_json_schema()
    logger.debug(f"Converted pydantic model {model.__name__} to JSON Schema")
    return schema
