"""
Character machine - matches a run of characters from a character class.

Used for digits, whitespace, string contents and anything else that is "some
characters of this kind" rather than a fixed phrase.

Charsets:
    whitelist: Allowed characters (empty means any character not blacklisted)
    graylist: Allowed characters that end the match when they follow other
        characters inside the same token
    blacklist: Forbidden characters
"""

import logging
from typing import Iterable, List, Optional

from structure_guard.core.state_machine import StateMachine
from structure_guard.core.stepper import Stepper
from structure_guard.errors import GrammarConfigurationError

logger = logging.getLogger(__name__)


class CharacterStateMachine(StateMachine):
    """
    Match between `char_min` and `char_limit` characters of a class.

    Attributes:
        whitelist_charset: Allowed characters
        graylist_charset: Allowed characters that stop a multi-character match
        blacklist_charset: Forbidden characters
        char_min: Minimum number of characters (0 makes the machine optional)
        char_limit: Maximum number of characters (0 or less means unlimited)
    """

    def __init__(
        self,
        whitelist_charset: Iterable[str] = "",
        graylist_charset: Iterable[str] = "",
        blacklist_charset: Iterable[str] = "",
        char_min: Optional[int] = None,
        char_limit: Optional[int] = None,
        is_optional: bool = False,
        is_case_sensitive: bool = True,
        identifier: Optional[str] = None,
    ):
        char_min = 1 if char_min is None else char_min
        char_limit = 0 if char_limit is None else char_limit

        if char_min < 0:
            raise GrammarConfigurationError(f"char_min must be >= 0, got {char_min}")
        if 0 < char_limit < char_min:
            raise GrammarConfigurationError(
                f"char_limit ({char_limit}) must be >= char_min ({char_min})"
            )

        super().__init__(
            is_optional=is_optional or char_min == 0,
            is_case_sensitive=is_case_sensitive,
            identifier=identifier,
        )

        normalize = (lambda chars: set(chars)) if is_case_sensitive else (
            lambda chars: {char.lower() for char in chars}
        )
        self.whitelist_charset = normalize(whitelist_charset)
        self.graylist_charset = normalize(graylist_charset)
        self.blacklist_charset = normalize(blacklist_charset)
        self.char_min = char_min
        self.char_limit = char_limit

    def _normalize(self, char: str) -> str:
        return char if self.is_case_sensitive else char.lower()

    def accepts_character(self, char: str) -> bool:
        char = self._normalize(char)
        if char in self.blacklist_charset:
            return False
        if self.whitelist_charset or self.graylist_charset:
            return char in self.whitelist_charset or char in self.graylist_charset
        return True

    def is_graylisted(self, char: str) -> bool:
        return self._normalize(char) in self.graylist_charset

    def get_new_stepper(self, state=None) -> "CharacterStepper":
        return CharacterStepper(self, state)

    def __repr__(self) -> str:
        if self.identifier:
            return f"CharacterStateMachine({self.identifier!r})"
        charset = "".join(sorted(self.whitelist_charset | self.graylist_charset))
        if len(charset) > 12:
            charset = charset[:12] + "..."
        return f"CharacterStateMachine({charset!r})"


class CharacterStepper(Stepper):
    state_machine: CharacterStateMachine

    def _room_left(self) -> Optional[int]:
        limit = self.state_machine.char_limit
        if limit <= 0:
            return None
        return limit - self.consumed_character_count

    def consume(self, token: str) -> List[Stepper]:
        state_machine = self.state_machine
        room_left = self._room_left()

        consumed = 0
        for char in token:
            if room_left is not None and consumed >= room_left:
                break
            if not state_machine.accepts_character(char):
                break
            if consumed > 0 and state_machine.is_graylisted(char):
                break
            consumed += 1

        if consumed == 0:
            return []

        value = self.get_raw_value()
        steppers = [self.step(value + token[:consumed], token[consumed:])]
        for length in range(consumed - 1, 0, -1):
            if self.consumed_character_count + length < state_machine.char_min:
                break
            steppers.append(self.step(value + token[:length], token[length:]))
        return steppers

    def should_start_step(self, token: str) -> bool:
        if not token or not self.can_accept_more_input():
            return False
        return self.state_machine.accepts_character(token[0])

    def has_reached_accept_state(self) -> bool:
        return self.consumed_character_count >= self.state_machine.char_min

    def can_accept_more_input(self) -> bool:
        room_left = self._room_left()
        return room_left is None or room_left > 0

    def accepts_any_token(self) -> bool:
        state_machine = self.state_machine
        if state_machine.whitelist_charset or state_machine.graylist_charset:
            return False
        return self.can_accept_more_input()

    def get_valid_continuations(self) -> List[str]:
        if not self.can_accept_more_input():
            return []
        state_machine = self.state_machine
        allowed = (state_machine.whitelist_charset | state_machine.graylist_charset)
        allowed -= state_machine.blacklist_charset
        if not state_machine.is_case_sensitive:
            allowed |= {char.upper() for char in allowed}
        return sorted(allowed)

    def get_invalid_continuations(self) -> List[str]:
        return sorted(self.state_machine.blacklist_charset)
