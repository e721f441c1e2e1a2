"""
Regex machine - matches a regular expression character by character.

The pattern is compiled to a character-level FSM with interegular. The
stepper keeps the FSM state and walks it one character at a time, exactly the
way a token is walked through any other leaf machine.

Important:
    interegular FSMs use an Alphabet that maps characters to symbol indices.
    A transition is looked up as char -> symbol -> next state.

Usage:
    ```python
    from structure_guard.types.base import RegexStateMachine

    date = RegexStateMachine(r"\\d{4}-\\d{2}-\\d{2}")
    ```
"""

import logging
from typing import Iterable, List, Optional, Set, Tuple

from interegular import parse_pattern
from interegular.fsm import anything_else

from structure_guard.core.state_machine import StateMachine
from structure_guard.core.stepper import Stepper
from structure_guard.errors import GrammarConfigurationError

logger = logging.getLogger(__name__)


class RegexStateMachine(StateMachine):
    """
    Match the whole of a regular expression.

    Anchors (^ and $) are stripped; the pattern always has to match the full
    value.

    A pattern that matches the empty string makes the machine optional.

    Attributes:
        pattern: The regular expression
        fsm: interegular FSM compiled from the pattern
        blacklist_charset: Characters refused even where the pattern allows them
    """

    def __init__(
        self,
        pattern: str,
        blacklist_charset: Iterable[str] = "",
        is_optional: bool = False,
        identifier: Optional[str] = None,
    ):
        super().__init__(is_optional=is_optional, identifier=identifier)
        self.pattern = pattern
        self.blacklist_charset = set(blacklist_charset)

        stripped = pattern
        if stripped.startswith("^"):
            stripped = stripped[1:]
        if stripped.endswith("$") and not stripped.endswith("\\$"):
            stripped = stripped[:-1]

        try:
            self.fsm = parse_pattern(stripped).to_fsm()
        except Exception as e:
            raise GrammarConfigurationError(f"Cannot compile pattern {pattern!r}: {e}") from e

        if self.fsm.initial in self.fsm.finals:
            self.is_optional = True

        logger.debug(f"Compiled pattern {pattern!r} to FSM with {len(self.fsm.states)} states")

    def get_next_state(self, state: int, char: str) -> Optional[int]:
        if char in self.blacklist_charset:
            return None
        try:
            symbol = self.fsm.alphabet[char]
        except (KeyError, TypeError):
            return None
        if symbol is None:
            return None
        return self.fsm.map.get(state, {}).get(symbol)

    def is_final(self, state: int) -> bool:
        return state in self.fsm.finals

    def get_valid_chars(self, state: int) -> Tuple[Set[str], bool]:
        """
        Characters with a transition out of a state.

        Returns:
            (explicit characters, whether any other character is allowed too)
        """
        transitions = self.fsm.map.get(state, {})
        chars = set()
        allows_other = False
        for char, symbol in self.fsm.alphabet.items():
            if symbol not in transitions:
                continue
            if char is anything_else:
                allows_other = True
            elif char not in self.blacklist_charset:
                chars.add(char)
        return chars, allows_other

    def get_invalid_chars(self, state: int) -> Set[str]:
        """Explicit characters with no transition out of a state, plus the blacklist."""
        transitions = self.fsm.map.get(state, {})
        invalid = set(self.blacklist_charset)
        for char, symbol in self.fsm.alphabet.items():
            if char is not anything_else and symbol not in transitions:
                invalid.add(char)
        return invalid

    def get_new_stepper(self, state=None) -> "RegexStepper":
        return RegexStepper(self, state)

    def __repr__(self) -> str:
        return f"RegexStateMachine({self.pattern!r})"


class RegexStepper(Stepper):
    state_machine: RegexStateMachine

    def __init__(self, state_machine: RegexStateMachine, current_state=None):
        super().__init__(state_machine, current_state)
        self.fsm_state = state_machine.fsm.initial

    def consume(self, token: str) -> List[Stepper]:
        state_machine = self.state_machine
        fsm_state = self.fsm_state
        # (characters consumed, fsm state) at every final state passed on the way
        splits = []
        consumed = 0
        for char in token:
            next_state = state_machine.get_next_state(fsm_state, char)
            if next_state is None:
                break
            fsm_state = next_state
            consumed += 1
            if state_machine.is_final(fsm_state):
                splits.append((consumed, fsm_state))

        if consumed == 0:
            return []

        value = self.get_raw_value()
        stepper = self.step(value + token[:consumed], token[consumed:])
        stepper.fsm_state = fsm_state
        steppers = [stepper]

        for length, split_state in reversed(splits):
            if length == consumed:
                continue
            split = self.step(value + token[:length], token[length:])
            split.fsm_state = split_state
            steppers.append(split)
        return steppers

    def should_start_step(self, token: str) -> bool:
        return bool(token) and self.state_machine.get_next_state(self.fsm_state, token[0]) is not None

    def has_reached_accept_state(self) -> bool:
        return self.state_machine.is_final(self.fsm_state)

    def can_accept_more_input(self) -> bool:
        return bool(self.state_machine.fsm.map.get(self.fsm_state))

    def accepts_any_token(self) -> bool:
        _, allows_other = self.state_machine.get_valid_chars(self.fsm_state)
        return allows_other

    def get_valid_continuations(self) -> List[str]:
        chars, _ = self.state_machine.get_valid_chars(self.fsm_state)
        return sorted(chars)

    def get_invalid_continuations(self) -> List[str]:
        if not self.accepts_any_token():
            return []
        return sorted(self.state_machine.get_invalid_chars(self.fsm_state))

    def _equality_key(self) -> Tuple:
        return super()._equality_key() + (self.fsm_state,)
