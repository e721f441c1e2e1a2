"""
JSON number machines.

Integer:  -? (0 | [1-9][0-9]*)
Number:   Integer (. [0-9]+)? ([eE] [+-]? [0-9]+)?
"""

from typing import Optional

from structure_guard.core.stepper import Stepper
from structure_guard.types.base.any import AnyStateMachine
from structure_guard.types.base.chain import ChainStateMachine
from structure_guard.types.base.character import CharacterStateMachine
from structure_guard.types.base.phrase import PhraseStateMachine
from structure_guard.types.json.stepper import JsonValueStepper

DIGITS = "0123456789"


class IntegerStateMachine(ChainStateMachine):
    def __init__(self, is_optional: bool = False, identifier: Optional[str] = None):
        magnitude = AnyStateMachine([
            PhraseStateMachine("0"),
            ChainStateMachine([
                CharacterStateMachine("123456789", char_min=1, char_limit=1),
                CharacterStateMachine(DIGITS, char_min=0),
            ]),
        ])
        super().__init__(
            [PhraseStateMachine("-", is_optional=True), magnitude],
            is_optional=is_optional,
            identifier=identifier,
        )

    def get_new_stepper(self, state=None) -> Stepper:
        return JsonValueStepper(self, state)

    def __repr__(self) -> str:
        return "IntegerStateMachine()"


class NumberStateMachine(ChainStateMachine):
    def __init__(self, is_optional: bool = False, identifier: Optional[str] = None):
        fraction = ChainStateMachine(
            [PhraseStateMachine("."), CharacterStateMachine(DIGITS, char_min=1)],
            is_optional=True,
        )
        exponent = ChainStateMachine(
            [
                CharacterStateMachine("eE", char_min=1, char_limit=1),
                CharacterStateMachine("+-", char_min=0, char_limit=1),
                CharacterStateMachine(DIGITS, char_min=1),
            ],
            is_optional=True,
        )
        super().__init__(
            [IntegerStateMachine(), fraction, exponent],
            is_optional=is_optional,
            identifier=identifier,
        )

    def get_new_stepper(self, state=None) -> Stepper:
        return JsonValueStepper(self, state)

    def __repr__(self) -> str:
        return "NumberStateMachine()"
