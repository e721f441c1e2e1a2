"""
Stepper - a cursor tracking one candidate path through a state machine.

The state machine is the static grammar; a stepper is the moving part. It
records where in the graph the path currently is, which nested machine it is
inside of (the sub-stepper), and which nested matches it already completed
(the history). Several steppers over the same grammar run side by side when a
token leaves more than one interpretation open.

Stepper Lifecycle:
    1. Created by `StateMachine.get_steppers()`
    2. Cloned whenever the grammar branches (the graph itself is shared)
    3. Replaced by its successors after each consumed token
    4. Discarded when a token produces no successors

Usage:
    ```python
    steppers = state_machine.get_steppers()

    next_steppers = []
    for stepper in steppers:
        next_steppers.extend(stepper.consume('{"na'))

    if any(stepper.has_reached_accept_state() for stepper in next_steppers):
        print("Complete!")
    ```
"""

import copy
import logging
from typing import TYPE_CHECKING, Any, Iterator, List, Optional, Tuple

if TYPE_CHECKING:
    from structure_guard.core.state_machine import StateId, StateMachine

logger = logging.getLogger(__name__)


class Stepper:
    """
    Cursor over a state machine.

    Attributes:
        state_machine: Machine being walked (referenced, never owned)
        current_state: State the cursor is in
        target_state: State to move to once the sub-stepper completes
        sub_stepper: Stepper for the nested machine currently being matched
        history: Completed sub-steppers, in order
        consumed_character_count: Characters consumed along this path
        remaining_input: Unconsumed suffix of the last token, if any
        token_ids: Token ids consumed by this path (top-level steppers only)
    """

    def __init__(self, state_machine: "StateMachine", current_state: Optional["StateId"] = None):
        self.state_machine = state_machine
        self.current_state = state_machine.start_state if current_state is None else current_state
        self.target_state: Optional["StateId"] = None
        self.sub_stepper: Optional["Stepper"] = None
        self.history: List["Stepper"] = []
        self.consumed_character_count = 0
        self.remaining_input: Optional[str] = None
        self._raw_value: Optional[str] = None
        self.token_ids: List[int] = []

    # ------------------------------------------------------------------
    # Copying
    # ------------------------------------------------------------------

    def clone(self) -> "Stepper":
        """Independent copy of this cursor. The grammar graph is shared."""
        clone = self._copy_cursor()
        if self.sub_stepper is not None:
            clone.sub_stepper = self.sub_stepper.clone()
        return clone

    def _copy_cursor(self) -> "Stepper":
        clone = copy.copy(self)
        clone.history = list(self.history)
        clone.token_ids = list(self.token_ids)
        clone.sub_stepper = None
        return clone

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def consume(self, token: str) -> List["Stepper"]:
        """
        Consume as much of a token as this path allows.

        Args:
            token: Token string

        Returns:
            Successor steppers. Each consumed a non-empty prefix of the token;
            leftovers are stored in `remaining_input`.
        """
        return self.state_machine.advance_stepper(self, token)

    def start_step(self, sub_stepper: "Stepper", target_state: Optional["StateId"]) -> "Stepper":
        """Copy of this stepper with `sub_stepper` active on the edge to `target_state`."""
        stepper = self._copy_cursor()

        consumed = self.consumed_character_count
        if self.sub_stepper is not None:
            consumed -= self.sub_stepper.consumed_character_count

        stepper.sub_stepper = sub_stepper
        stepper.target_state = target_state
        stepper.consumed_character_count = consumed + sub_stepper.consumed_character_count
        return stepper

    def complete_step(self) -> List["Stepper"]:
        """
        Fold the active sub-stepper into history and move to the target state.

        Returns a list so machines can expand a completion into several
        successors.
        """
        stepper = self._copy_cursor()
        if self.sub_stepper is not None:
            stepper.add_to_history(self.sub_stepper)
        if self.target_state is not None:
            stepper.current_state = self.target_state
        stepper.target_state = None
        return [stepper]

    def add_to_history(self, stepper: "Stepper") -> None:
        if stepper.consumed_character_count > 0:
            self.history.append(stepper)

    def step(self, new_value: str, remaining_input: Optional[str] = None) -> "Stepper":
        """Leaf helper: copy with a new raw value and leftover input."""
        stepper = self.clone()
        stepper._raw_value = new_value
        stepper.consumed_character_count = len(new_value)
        stepper.remaining_input = remaining_input or None
        return stepper

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_started(self) -> bool:
        return self.consumed_character_count > 0

    def can_finish_at(self, state: "StateId") -> bool:
        return self.state_machine.can_finish(state)

    def has_reached_accept_state(self) -> bool:
        """
        Check if the path matched a complete instance of its machine.

        With no active sub-stepper (or one that consumed nothing) the current
        state must be able to finish. Otherwise the sub-stepper must itself
        accept and the edge's target state must be able to finish.
        """
        sub_stepper = self.sub_stepper
        if sub_stepper is None or not sub_stepper.has_started():
            return self.can_finish_at(self.current_state)

        return sub_stepper.has_reached_accept_state() and self.can_finish_at(self.target_state)

    def can_accept_more_input(self) -> bool:
        sub_stepper = self.sub_stepper
        if sub_stepper is not None and sub_stepper.can_accept_more_input():
            return True

        if sub_stepper is not None and sub_stepper.has_started():
            if not sub_stepper.has_reached_accept_state():
                return False
            return any(
                self.state_machine.get_stepper_edges(completed)
                for completed in self.complete_step()
            )

        return bool(self.state_machine.get_stepper_edges(self))

    def should_start_step(self, token: str) -> bool:
        """Cheap check of whether this stepper could consume the start of a token."""
        if self.sub_stepper is not None:
            return self.sub_stepper.should_start_step(token)
        return True

    def accepts_any_token(self) -> bool:
        """True when the path is in free text and any token could be consumed."""
        if self.sub_stepper is None:
            return any(branch.accepts_any_token() for branch in self._branches())

        if self.sub_stepper.accepts_any_token():
            return True

        return any(stepper.accepts_any_token() for stepper in self._next_steppers())

    def get_valid_continuations(self) -> List[str]:
        """
        Strings that can legally come next on this path.

        Each continuation is the rest of the next grammar symbol (for example
        the unmatched tail of a phrase), not the whole remaining output.
        """
        if self.sub_stepper is None:
            return [
                continuation
                for branch in self._branches()
                for continuation in branch.get_valid_continuations()
            ]

        continuations = list(self.sub_stepper.get_valid_continuations())
        for stepper in self._next_steppers():
            continuations.extend(stepper.get_valid_continuations())
        return continuations

    def get_invalid_continuations(self) -> List[str]:
        """
        Characters ruled out by the free-text parts of this path.

        Only free-text leaves report anything. A character listed here may
        still be legal through another symbol (the closing quote of a string
        body), so callers check candidates against the steppers.
        """
        if self.sub_stepper is None:
            steppers = self._branches()
        else:
            steppers = [self.sub_stepper] + self._next_steppers()

        invalid = set()
        for stepper in steppers:
            invalid.update(stepper.get_invalid_continuations())
        return sorted(invalid)

    def _branches(self) -> List["Stepper"]:
        return self.state_machine.branch_stepper(self)

    def _next_steppers(self) -> List["Stepper"]:
        """Steppers past the active edge, when the sub-stepper may stop here."""
        sub_stepper = self.sub_stepper
        if sub_stepper is None or not sub_stepper.has_started():
            return []
        if not sub_stepper.has_reached_accept_state():
            return []
        return [
            branch
            for completed in self.complete_step()
            for branch in completed._branches()
        ]

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def get_raw_value(self) -> str:
        """Concatenated text matched along this path."""
        if self._raw_value is not None:
            return self._raw_value

        parts = [entry.get_raw_value() for entry in self.history]
        if self.sub_stepper is not None:
            parts.append(self.sub_stepper.get_raw_value())
        return "".join(parts)

    def get_current_value(self) -> Any:
        return self.get_raw_value()

    def get_identifier(self) -> Optional[str]:
        return self.state_machine.identifier

    def iter_segments(self) -> Iterator[Tuple[str, "Stepper"]]:
        """
        Yield (identifier, stepper) for each labelled match on this path.

        Labelled entries are reported whole; unlabelled entries are searched
        for labelled descendants.
        """
        entries = list(self.history)
        if self.sub_stepper is not None and self.sub_stepper.has_started():
            entries.append(self.sub_stepper)

        for entry in entries:
            identifier = entry.get_identifier()
            if identifier:
                yield identifier, entry
            else:
                yield from entry.iter_segments()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def _equality_key(self) -> Tuple:
        return (
            id(self.state_machine),
            self.current_state,
            self.target_state,
            self.consumed_character_count,
            self.remaining_input,
            self._raw_value,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Stepper):
            return NotImplemented
        return (
            type(self) is type(other)
            and self._equality_key() == other._equality_key()
            and self.sub_stepper == other.sub_stepper
            and self.history == other.history
        )

    def __hash__(self) -> int:
        return hash(self._equality_key())

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.state_machine!r}, "
            f"state={self.current_state!r}, value={self.get_raw_value()!r})"
        )
