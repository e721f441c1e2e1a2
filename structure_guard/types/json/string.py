"""
JSON string machine.

Graph:
    0 -'"'-> 1
    1 -content-> 2       (a run of any characters except '"', '\\' and controls)
    1 -escape-> 1        (\\" \\\\ \\/ \\b \\f \\n \\r \\t or \\uXXXX)
    2 -escape-> 1
    1, 2 -'"'-> $

A content run is always followed by an escape or the closing quote, never by
another content run, so every string body has exactly one reading.

Length bounds are enforced while walking states 1 and 2: the content machine
is swapped for one capped at the remaining length, and the closing quote only
appears once the minimum is met. A pattern replaces the body with a regex
machine that refuses quotes, backslashes and control characters, so patterned
strings carry no escapes.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from structure_guard.core.state_machine import Edge, StateMachine
from structure_guard.core.stepper import Stepper
from structure_guard.errors import GrammarConfigurationError
from structure_guard.types.base.any import AnyStateMachine
from structure_guard.types.base.chain import ChainStateMachine
from structure_guard.types.base.character import CharacterStateMachine
from structure_guard.types.base.phrase import PhraseStateMachine
from structure_guard.types.base.regex import RegexStateMachine
from structure_guard.types.json.stepper import JsonValueStepper

logger = logging.getLogger(__name__)

CONTENT_BLACKLIST = '"\\' + "".join(chr(code) for code in range(32))
HEX_DIGITS = "0123456789abcdefABCDEF"


def escape_state_machine() -> StateMachine:
    return ChainStateMachine([
        PhraseStateMachine("\\"),
        AnyStateMachine([
            CharacterStateMachine('"\\/bfnrt', char_min=1, char_limit=1),
            ChainStateMachine([
                PhraseStateMachine("u"),
                CharacterStateMachine(HEX_DIGITS, char_min=4, char_limit=4),
            ]),
        ]),
    ])


class StringStateMachine(StateMachine):
    """
    Match a JSON string literal.

    Attributes:
        min_length: Minimum decoded length (None for no bound)
        max_length: Maximum decoded length (None for no bound)
        pattern: Regular expression the contents must match
    """

    def __init__(
        self,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        pattern: Optional[str] = None,
        is_optional: bool = False,
        identifier: Optional[str] = None,
    ):
        if min_length is not None and min_length < 0:
            raise GrammarConfigurationError(f"minLength must be >= 0, got {min_length}")
        if max_length is not None and min_length is not None and max_length < min_length:
            raise GrammarConfigurationError(
                f"maxLength ({max_length}) must be >= minLength ({min_length})"
            )

        self.min_length = min_length
        self.max_length = max_length
        self.pattern = pattern

        self._open_quote = PhraseStateMachine('"')
        self._close_quote = PhraseStateMachine('"')
        self._escape = escape_state_machine()
        self._contents: Dict[Optional[int], CharacterStateMachine] = {}

        if pattern is not None:
            state_graph = {
                0: [(self._open_quote, 1)],
                1: [(RegexStateMachine(pattern, blacklist_charset=CONTENT_BLACKLIST), 2)],
                2: [(self._close_quote, "$")],
            }
        else:
            state_graph = {
                0: [(self._open_quote, 1)],
                1: [
                    (self._content(None), 2),
                    (self._escape, 1),
                    (self._close_quote, "$"),
                ],
                2: [
                    (self._escape, 1),
                    (self._close_quote, "$"),
                ],
            }

        super().__init__(state_graph, is_optional=is_optional, identifier=identifier)

    def _content(self, limit: Optional[int]) -> CharacterStateMachine:
        if limit not in self._contents:
            self._contents[limit] = CharacterStateMachine(
                blacklist_charset=CONTENT_BLACKLIST,
                char_min=1,
                char_limit=limit,
            )
        return self._contents[limit]

    def content_length(self, stepper: Stepper) -> int:
        """Decoded length of the completed content, escapes counting as one."""
        length = 0
        for entry in stepper.history:
            if entry.state_machine is self._open_quote:
                continue
            if entry.state_machine is self._escape:
                length += 1
            else:
                length += entry.consumed_character_count
        return length

    def get_stepper_edges(self, stepper: Stepper) -> List[Edge]:
        edges = super().get_stepper_edges(stepper)
        if self.pattern is not None or stepper.current_state not in (1, 2):
            return edges
        if self.min_length is None and self.max_length is None:
            return edges

        length = self.content_length(stepper)
        edges = []
        if self.max_length is None or length < self.max_length:
            if stepper.current_state == 1:
                limit = None if self.max_length is None else self.max_length - length
                edges.append((self._content(limit), 2))
            edges.append((self._escape, 1))
        if self.min_length is None or length >= self.min_length:
            edges.append((self._close_quote, "$"))
        return edges

    def get_new_stepper(self, state=None) -> "StringStepper":
        return StringStepper(self, state)

    def __repr__(self) -> str:
        return "StringStateMachine()"


class StringStepper(JsonValueStepper):
    def get_current_value(self) -> Any:
        raw = self.get_raw_value()
        if self.has_reached_accept_state():
            return json.loads(raw)
        return raw[1:]
