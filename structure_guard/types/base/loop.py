"""
Loop machine - repeats a member, optionally with a separator in between.

Graph:
    without separator:  0 -member-> 1,  1 -member-> 1
    with separator:     0 -member-> 1,  1 -separator-> 2,  2 -member-> 1

State 1 is the only end state; the stepper counts completed repetitions and
closes state 1 once `max_loop_count` is reached.
"""

import logging
from typing import List, Optional, Tuple

from structure_guard.core.state_machine import Edge, StateMachine
from structure_guard.core.stepper import Stepper
from structure_guard.errors import GrammarConfigurationError

logger = logging.getLogger(__name__)


class LoopStateMachine(StateMachine):
    """
    Match a member between `min_loop_count` and `max_loop_count` times.

    Attributes:
        state_machine: The repeated member
        separator_state_machine: Matched between repetitions, if given
        min_loop_count: Minimum repetitions (0 makes the loop optional)
        max_loop_count: Maximum repetitions (-1 means unbounded)
    """

    def __init__(
        self,
        state_machine: StateMachine,
        min_loop_count: int = 1,
        max_loop_count: int = -1,
        separator_state_machine: Optional[StateMachine] = None,
        is_optional: bool = False,
        identifier: Optional[str] = None,
    ):
        if min_loop_count < 0:
            raise GrammarConfigurationError(f"min_loop_count must be >= 0, got {min_loop_count}")
        if max_loop_count != -1 and max_loop_count < max(min_loop_count, 1):
            raise GrammarConfigurationError(
                f"max_loop_count ({max_loop_count}) must be -1 or >= "
                f"max(min_loop_count, 1)"
            )

        self.state_machine = state_machine
        self.separator_state_machine = separator_state_machine
        self.min_loop_count = min_loop_count
        self.max_loop_count = max_loop_count

        if separator_state_machine is not None:
            state_graph = {
                0: [(state_machine, 1)],
                1: [(separator_state_machine, 2)],
                2: [(state_machine, 1)],
            }
        else:
            state_graph = {
                0: [(state_machine, 1)],
                1: [(state_machine, 1)],
            }

        super().__init__(
            state_graph,
            end_states=[1],
            is_optional=is_optional or min_loop_count == 0,
            identifier=identifier,
        )

    def get_stepper_edges(self, stepper: Stepper) -> List[Edge]:
        if (
            stepper.current_state == 1
            and self.max_loop_count != -1
            and stepper.loop_count >= self.max_loop_count
        ):
            return []
        return super().get_stepper_edges(stepper)

    def get_new_stepper(self, state=None) -> "LoopStepper":
        return LoopStepper(self, state)

    def __repr__(self) -> str:
        if self.identifier:
            return f"LoopStateMachine({self.identifier!r})"
        return f"LoopStateMachine({self.state_machine!r})"


class LoopStepper(Stepper):
    """Stepper that counts completed repetitions."""

    state_machine: LoopStateMachine

    def __init__(self, state_machine: LoopStateMachine, current_state=None):
        super().__init__(state_machine, current_state)
        self.loop_count = 0

    def complete_step(self) -> List[Stepper]:
        completed = super().complete_step()
        for stepper in completed:
            # Only member edges lead into state 1
            if stepper.current_state == 1 and self.sub_stepper is not None:
                stepper.loop_count += 1
        return completed

    def has_reached_accept_state(self) -> bool:
        min_loop_count = self.state_machine.min_loop_count
        sub_stepper = self.sub_stepper

        if sub_stepper is not None and sub_stepper.has_started():
            if self.target_state != 1:
                return False
            return (
                sub_stepper.has_reached_accept_state()
                and self.loop_count + 1 >= min_loop_count
            )

        return self.current_state == 1 and self.loop_count >= min_loop_count

    def _equality_key(self) -> Tuple:
        return super()._equality_key() + (self.loop_count,)
