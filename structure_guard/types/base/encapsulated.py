"""
Encapsulated machine - a member wrapped in literal delimiters.

The common case is a fenced code block:

    ```json
    {"name": "Sam"}
    ```
"""

from typing import Any, Optional, Tuple

from structure_guard.core.state_machine import StateMachine
from structure_guard.core.stepper import Stepper
from structure_guard.errors import GrammarConfigurationError
from structure_guard.types.base.phrase import PhraseStateMachine

DEFAULT_DELIMITERS = ("```json\n", "\n```")


class EncapsulatedStateMachine(StateMachine):
    """
    Match an open delimiter, the member, then a close delimiter.

    Attributes:
        state_machine: The wrapped member
        delimiters: (open, close) literals
    """

    def __init__(
        self,
        state_machine: StateMachine,
        delimiters: Optional[Tuple[str, str]] = None,
        is_optional: bool = False,
        identifier: Optional[str] = None,
    ):
        delimiters = tuple(delimiters) if delimiters is not None else DEFAULT_DELIMITERS
        if len(delimiters) != 2 or not all(delimiters):
            raise GrammarConfigurationError(
                f"Delimiters must be two non-empty strings, got {delimiters!r}"
            )

        self.state_machine = state_machine
        self.delimiters = delimiters
        super().__init__(
            {
                0: [(PhraseStateMachine(delimiters[0]), 1)],
                1: [(state_machine, 2)],
                2: [(PhraseStateMachine(delimiters[1]), "$")],
            },
            is_optional=is_optional,
            identifier=identifier,
        )

    def get_new_stepper(self, state=None) -> "EncapsulatedStepper":
        return EncapsulatedStepper(self, state)

    def __repr__(self) -> str:
        return f"EncapsulatedStateMachine({self.state_machine!r}, {self.delimiters!r})"


class EncapsulatedStepper(Stepper):
    """Reports the wrapped member's value, without the delimiters."""

    state_machine: EncapsulatedStateMachine

    def get_inner_stepper(self) -> Optional[Stepper]:
        entries = list(self.history)
        if self.sub_stepper is not None:
            entries.append(self.sub_stepper)
        for entry in entries:
            if entry.state_machine is self.state_machine.state_machine:
                return entry
        return None

    def get_current_value(self) -> Any:
        inner = self.get_inner_stepper()
        if inner is None:
            return None
        return inner.get_current_value()
