"""Optional JSON whitespace between tokens."""

from typing import Optional

from structure_guard.types.base.character import CharacterStateMachine

WHITESPACE_CHARS = " \t\n\r"


class WhitespaceStateMachine(CharacterStateMachine):
    """Up to `max_whitespace` spaces, tabs or newlines (zero allowed)."""

    def __init__(self, min_whitespace: int = 0, max_whitespace: int = 20, identifier: Optional[str] = None):
        super().__init__(
            whitelist_charset=WHITESPACE_CHARS,
            char_min=min_whitespace,
            char_limit=max_whitespace,
            identifier=identifier,
        )

    def __repr__(self) -> str:
        return "WhitespaceStateMachine()"
