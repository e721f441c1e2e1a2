"""Any JSON value: object, array, string, number, boolean or null."""

from typing import Optional

from structure_guard.core.state_machine import StateGraph, StateMachine
from structure_guard.core.stepper import Stepper
from structure_guard.types.json.stepper import JsonValueStepper


class JsonStateMachine(StateMachine):
    """
    Match a single JSON value.

    The graph is built on first use since objects and arrays contain JSON
    values themselves.
    """

    def __init__(self, is_optional: bool = False, identifier: Optional[str] = None):
        super().__init__(is_optional=is_optional, identifier=identifier)

    def _build_state_graph(self) -> StateGraph:
        from structure_guard.types.json.array import ArrayStateMachine
        from structure_guard.types.json.literals import BooleanStateMachine, NullStateMachine
        from structure_guard.types.json.number import NumberStateMachine
        from structure_guard.types.json.object import ObjectStateMachine
        from structure_guard.types.json.string import StringStateMachine

        members = [
            ObjectStateMachine(),
            ArrayStateMachine(),
            StringStateMachine(),
            NumberStateMachine(),
            BooleanStateMachine(),
            NullStateMachine(),
        ]
        return {0: [(member, "$") for member in members]}

    def get_new_stepper(self, state=None) -> Stepper:
        return JsonValueStepper(self, state)

    def __repr__(self) -> str:
        return "JsonStateMachine()"
