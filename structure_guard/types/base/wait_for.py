"""
Wait-for machine - free text until a wrapped machine starts.

Models like to talk before they answer. This machine lets any text through
until the wrapped machine has matched its first symbol (the opening fence of
a code block, the brace of an object), and from then on enforces it.

A partial start ("`" in "use `x` here") does not end the free text: the
buffering stepper keeps such starts as pending paths next to the free-text
reading, and drops them when the input rules them out.

Usage:
    ```python
    fenced_json = EncapsulatedStateMachine(JsonStateMachine())
    machine = WaitForStateMachine(fenced_json)

    # "Here is the result:\n" passes freely, "```json\n{..." is enforced
    ```
"""

import logging
from typing import List, Optional, Tuple

from structure_guard.core.state_machine import StateMachine
from structure_guard.core.stepper import Stepper

logger = logging.getLogger(__name__)


def has_matched_first_symbol(stepper: Stepper) -> bool:
    """True once the leftmost leaf on a path has matched completely."""
    if stepper.history:
        return True
    sub_stepper = stepper.sub_stepper
    if sub_stepper is None:
        return stepper.has_started() and stepper.has_reached_accept_state()
    return has_matched_first_symbol(sub_stepper)


class WaitForStateMachine(StateMachine):
    """
    Buffer free text, then hand control to `state_machine`.

    Attributes:
        state_machine: Machine to wait for
        min_buffer_length: Free text required before the machine may start
            (-1 for none)
        max_buffer_length: Cap on free text (-1 for none)
    """

    def __init__(
        self,
        state_machine: StateMachine,
        min_buffer_length: int = -1,
        max_buffer_length: int = -1,
        is_optional: bool = False,
        identifier: Optional[str] = None,
    ):
        self.state_machine = state_machine
        self.min_buffer_length = min_buffer_length
        self.max_buffer_length = max_buffer_length
        super().__init__(
            {0: [(state_machine, "$")]},
            is_optional=is_optional,
            identifier=identifier,
        )

    def get_new_stepper(self, state=None) -> "WaitForStepper":
        return WaitForStepper(self, state)

    def __repr__(self) -> str:
        return f"WaitForStateMachine({self.state_machine!r})"


class WaitForStepper(Stepper):
    """
    Either buffering free text (no sub-stepper yet) or walking the wrapped
    machine.

    Attributes:
        buffer: Free text matched so far
        pending: Started paths that have not matched their first symbol yet
            (buffering steppers only)
    """

    state_machine: WaitForStateMachine

    def __init__(self, state_machine: WaitForStateMachine, current_state=None):
        super().__init__(state_machine, current_state)
        self.buffer = ""
        self.pending: List["WaitForStepper"] = []

    def is_buffering(self) -> bool:
        return self.sub_stepper is None and not self.history

    def is_committed(self) -> bool:
        if self.history:
            return True
        return self.sub_stepper is not None and has_matched_first_symbol(self.sub_stepper)

    def _with_buffer(self, buffer: str) -> "WaitForStepper":
        stepper = self._copy_cursor()
        stepper.current_state = self.state_machine.start_state
        stepper.target_state = None
        stepper.buffer = buffer
        stepper.pending = []
        stepper.consumed_character_count = len(buffer)
        return stepper

    def _buffer_fits(self, length: int) -> bool:
        max_buffer_length = self.state_machine.max_buffer_length
        return max_buffer_length < 0 or length <= max_buffer_length

    def consume(self, token: str) -> List[Stepper]:
        if not self.is_buffering():
            return self.state_machine.advance_stepper(self, token)

        started: List[Stepper] = []
        for stepper in self.pending:
            started.extend(self.state_machine.advance_stepper(stepper, token))

        min_buffer_length = self.state_machine.min_buffer_length
        for index in range(len(token)):
            buffer = self.buffer + token[:index]
            if len(buffer) < min_buffer_length:
                continue
            if not self._buffer_fits(len(buffer)):
                break
            started.extend(self.state_machine.advance_stepper(self._with_buffer(buffer), token[index:]))

        committed = [stepper for stepper in started if stepper.is_committed()]
        if committed:
            logger.debug(f"Wrapped machine matched its first symbol ({len(committed)} paths)")
            return committed

        # Paths that finished on a partial token only make sense once committed
        pending = [stepper for stepper in started if not stepper.remaining_input]

        buffer = self.buffer + token
        if not self._buffer_fits(len(buffer)):
            return pending

        buffering = self._with_buffer(buffer)
        buffering.pending = pending
        return [buffering]

    def should_start_step(self, token: str) -> bool:
        if not self.is_buffering():
            return super().should_start_step(token)
        return True

    def accepts_any_token(self) -> bool:
        if not self.is_buffering():
            return super().accepts_any_token()
        return self._buffer_fits(len(self.buffer) + 1)

    def can_accept_more_input(self) -> bool:
        if not self.is_buffering():
            return super().can_accept_more_input()
        return True

    def get_invalid_continuations(self) -> List[str]:
        if not self.is_buffering():
            return super().get_invalid_continuations()
        return []

    def get_raw_value(self) -> str:
        return self.buffer + super().get_raw_value()

    def get_current_value(self):
        if self.sub_stepper is not None:
            return self.sub_stepper.get_current_value()
        for entry in self.history:
            return entry.get_current_value()
        return None

    def _equality_key(self) -> Tuple:
        return super()._equality_key() + (self.buffer,)

    def __eq__(self, other: object) -> bool:
        result = super().__eq__(other)
        if result is not True:
            return result
        return self.pending == other.pending

    __hash__ = Stepper.__hash__
