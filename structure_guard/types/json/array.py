"""
JSON array machine.

Graph:
    0 -'['-> 1 -ws-> 2
    2 -']'-> $   |   2 -item-> 3
    3 -ws-> 4
    4 -','-> 5   |   4 -']'-> $
    5 -ws-> 6 -item-> 3

Item bounds are enforced by filtering the edges out of states 2 and 4 on the
number of items already matched.
"""

from typing import List, Optional

from structure_guard.core.state_machine import Edge, StateGraph, StateMachine
from structure_guard.core.stepper import Stepper
from structure_guard.errors import GrammarConfigurationError
from structure_guard.types.base.phrase import PhraseStateMachine
from structure_guard.types.json.stepper import JsonValueStepper
from structure_guard.types.json.whitespace import WhitespaceStateMachine


class ArrayStateMachine(StateMachine):
    """
    Attributes:
        item_state_machine: Machine for each item (any JSON value if None)
        min_items: Minimum number of items
        max_items: Maximum number of items (-1 for no bound)
    """

    def __init__(
        self,
        item_state_machine: Optional[StateMachine] = None,
        min_items: int = 0,
        max_items: int = -1,
        is_optional: bool = False,
        identifier: Optional[str] = None,
    ):
        if min_items < 0:
            raise GrammarConfigurationError(f"minItems must be >= 0, got {min_items}")
        if max_items != -1 and max_items < min_items:
            raise GrammarConfigurationError(
                f"maxItems ({max_items}) must be >= minItems ({min_items})"
            )

        super().__init__(is_optional=is_optional, identifier=identifier)
        self._item = item_state_machine
        self.min_items = min_items
        self.max_items = max_items
        self._comma = PhraseStateMachine(",")
        self._close = PhraseStateMachine("]")

    @property
    def item_state_machine(self) -> StateMachine:
        if self._item is None:
            from structure_guard.types.json.value import JsonStateMachine

            self._item = JsonStateMachine()
        return self._item

    def _build_state_graph(self) -> StateGraph:
        item = self.item_state_machine
        return {
            0: [(PhraseStateMachine("["), 1)],
            1: [(WhitespaceStateMachine(), 2)],
            2: [(self._close, "$"), (item, 3)],
            3: [(WhitespaceStateMachine(), 4)],
            4: [(self._comma, 5), (self._close, "$")],
            5: [(WhitespaceStateMachine(), 6)],
            6: [(item, 3)],
        }

    def item_count(self, stepper: Stepper) -> int:
        item = self.item_state_machine
        return sum(1 for entry in stepper.history if entry.state_machine is item)

    def get_stepper_edges(self, stepper: Stepper) -> List[Edge]:
        edges = super().get_stepper_edges(stepper)
        if stepper.current_state not in (2, 4):
            return edges
        if self.min_items == 0 and self.max_items == -1:
            return edges

        count = self.item_count(stepper)
        has_room = self.max_items == -1 or count < self.max_items
        filtered = []
        for state_machine, target_state in edges:
            if state_machine is self._close:
                if count < self.min_items:
                    continue
            elif not has_room:
                continue
            filtered.append((state_machine, target_state))
        return filtered

    def get_new_stepper(self, state=None) -> Stepper:
        return JsonValueStepper(self, state)

    def __repr__(self) -> str:
        return "ArrayStateMachine()"
