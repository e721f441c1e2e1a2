"""
JSON literal machines: booleans, null and enumerations.

Enumerations match the JSON encoding of each allowed value, so a string enum
member "red" is matched as '"red"' and a numeric member 3 as '3'.
"""

import json
from typing import Any, Optional, Sequence

from structure_guard.core.stepper import Stepper
from structure_guard.errors import GrammarConfigurationError
from structure_guard.types.base.any import AnyStateMachine
from structure_guard.types.base.phrase import PhraseStateMachine, PhraseStepper
from structure_guard.types.json.stepper import JsonValueStepper


class BooleanStateMachine(AnyStateMachine):
    def __init__(self, is_optional: bool = False, identifier: Optional[str] = None):
        super().__init__(
            [PhraseStateMachine("true"), PhraseStateMachine("false")],
            is_optional=is_optional,
            identifier=identifier,
        )

    def get_new_stepper(self, state=None) -> Stepper:
        return JsonValueStepper(self, state)

    def __repr__(self) -> str:
        return "BooleanStateMachine()"


class NullStateMachine(PhraseStateMachine):
    def __init__(self, is_optional: bool = False, identifier: Optional[str] = None):
        super().__init__("null", is_optional=is_optional, identifier=identifier)

    def get_new_stepper(self, state=None) -> "NullStepper":
        return NullStepper(self, state)

    def __repr__(self) -> str:
        return "NullStateMachine()"


class NullStepper(PhraseStepper):
    def get_current_value(self) -> Any:
        if self.has_reached_accept_state():
            return None
        return self.get_raw_value()


class EnumStateMachine(AnyStateMachine):
    """
    Match one of a fixed set of JSON values.

    Attributes:
        values: Allowed Python values
    """

    def __init__(
        self,
        values: Sequence[Any],
        is_optional: bool = False,
        identifier: Optional[str] = None,
    ):
        if not values:
            raise GrammarConfigurationError("Enum must list at least one value")

        self.values = list(values)
        try:
            phrases = [PhraseStateMachine(json.dumps(value)) for value in self.values]
        except TypeError as e:
            raise GrammarConfigurationError(f"Enum values must be JSON serializable: {e}") from e

        super().__init__(phrases, is_optional=is_optional, identifier=identifier)

    def get_new_stepper(self, state=None) -> Stepper:
        return JsonValueStepper(self, state)

    def __repr__(self) -> str:
        return f"EnumStateMachine({self.values!r})"
