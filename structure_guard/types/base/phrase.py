"""
Phrase machine - matches one exact string.

A phrase can be matched across several tokens ("tr" + "ue") and a single
token can finish a phrase and spill into whatever follows ('"}' after a
closing quote is two symbols).
"""

import logging
from typing import List, Optional

from structure_guard.core.state_machine import StateMachine
from structure_guard.core.stepper import Stepper
from structure_guard.errors import GrammarConfigurationError

logger = logging.getLogger(__name__)


class PhraseStateMachine(StateMachine):
    """
    Match a literal character sequence.

    Attributes:
        phrase: The exact text to match
    """

    def __init__(
        self,
        phrase: str,
        is_optional: bool = False,
        is_case_sensitive: bool = True,
        identifier: Optional[str] = None,
    ):
        if not phrase:
            raise GrammarConfigurationError("Phrase must be a non-empty string")

        super().__init__(
            is_optional=is_optional,
            is_case_sensitive=is_case_sensitive,
            identifier=identifier,
        )
        self.phrase = phrase

    def get_new_stepper(self, state=None) -> "PhraseStepper":
        return PhraseStepper(self, state)

    def __repr__(self) -> str:
        return f"PhraseStateMachine({self.phrase!r})"


class PhraseStepper(Stepper):
    state_machine: PhraseStateMachine

    def _remaining_phrase(self) -> str:
        return self.state_machine.phrase[self.consumed_character_count:]

    def _matches(self, expected: str, actual: str) -> bool:
        if self.state_machine.is_case_sensitive:
            return expected == actual
        return expected.lower() == actual.lower()

    def consume(self, token: str) -> List[Stepper]:
        remaining_phrase = self._remaining_phrase()

        match_length = 0
        for expected, actual in zip(remaining_phrase, token):
            if not self._matches(expected, actual):
                break
            match_length += 1

        if match_length == 0:
            return []

        # The token diverged from the phrase before either ran out
        if match_length < len(token) and match_length < len(remaining_phrase):
            return []

        new_value = self.get_raw_value() + token[:match_length]
        return [self.step(new_value, token[match_length:])]

    def should_start_step(self, token: str) -> bool:
        remaining_phrase = self._remaining_phrase()
        if not token or not remaining_phrase:
            return False
        return self._matches(remaining_phrase[0], token[0])

    def has_reached_accept_state(self) -> bool:
        return self.consumed_character_count == len(self.state_machine.phrase)

    def can_accept_more_input(self) -> bool:
        return self.consumed_character_count < len(self.state_machine.phrase)

    def accepts_any_token(self) -> bool:
        return False

    def get_valid_continuations(self) -> List[str]:
        remaining_phrase = self._remaining_phrase()
        return [remaining_phrase] if remaining_phrase else []

    def get_invalid_continuations(self) -> List[str]:
        return []
