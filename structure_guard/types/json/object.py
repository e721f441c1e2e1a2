"""
JSON object machine.

Graph:
    0 -'{'-> 1 -ws-> 2
    2 -member-> 3   |   2 -'}'-> $
    3 -ws-> 4
    4 -','-> 5      |   4 -'}'-> $
    5 -ws-> 6 -member-> 3

Without declared properties every member is a generic "string": value pair.
With declared properties each property gets its own pair machine; edges are
filtered on the keys already present so a property appears at most once, the
object only closes once every required key is present, and a comma is only
offered while something can still follow it.
"""

import logging
from typing import Dict, List, Optional, Sequence, Set, Union

from structure_guard.core.state_machine import Edge, StateGraph, StateMachine
from structure_guard.core.stepper import Stepper
from structure_guard.errors import GrammarConfigurationError
from structure_guard.types.base.phrase import PhraseStateMachine
from structure_guard.types.json.key_value import KeyValueStateMachine, KeyValueStepper
from structure_guard.types.json.stepper import JsonValueStepper
from structure_guard.types.json.whitespace import WhitespaceStateMachine

logger = logging.getLogger(__name__)


class ObjectStateMachine(StateMachine):
    """
    Attributes:
        properties: Declared property machines by name (None for any keys)
        required: Names that must be present before the object closes
        additional_properties: Whether undeclared keys are allowed, or the
            machine their values must match
    """

    def __init__(
        self,
        properties: Optional[Dict[str, StateMachine]] = None,
        required: Optional[Sequence[str]] = None,
        additional_properties: Union[bool, StateMachine, None] = None,
        is_optional: bool = False,
        identifier: Optional[str] = None,
    ):
        super().__init__(is_optional=is_optional, identifier=identifier)

        self.properties = dict(properties) if properties is not None else None
        self.required = list(required or [])
        if additional_properties is None:
            additional_properties = self.properties is None
        self.additional_properties = additional_properties

        if self.properties is not None and additional_properties is False:
            unknown = [name for name in self.required if name not in self.properties]
            if unknown:
                raise GrammarConfigurationError(
                    f"Required properties {unknown} are not declared and "
                    f"additional properties are not allowed"
                )

        self._open = PhraseStateMachine("{")
        self._close = PhraseStateMachine("}")
        self._comma = PhraseStateMachine(",")
        self._property_machines: List[KeyValueStateMachine] = []
        self._additional: Optional[KeyValueStateMachine] = None

    def _build_state_graph(self) -> StateGraph:
        self._property_machines = [
            KeyValueStateMachine(value_state_machine=value, property_name=name)
            for name, value in (self.properties or {}).items()
        ]

        if isinstance(self.additional_properties, StateMachine):
            self._additional = KeyValueStateMachine(value_state_machine=self.additional_properties)
        elif self.additional_properties:
            self._additional = KeyValueStateMachine()

        members = list(self._property_machines)
        if self._additional is not None:
            members.append(self._additional)

        return {
            0: [(self._open, 1)],
            1: [(WhitespaceStateMachine(), 2)],
            2: [(member, 3) for member in members] + [(self._close, "$")],
            3: [(WhitespaceStateMachine(), 4)],
            4: [(self._comma, 5), (self._close, "$")],
            5: [(WhitespaceStateMachine(), 6)],
            6: [(member, 3) for member in members],
        }

    def get_property_names(self, stepper: Stepper) -> Set[str]:
        """Keys already matched along a stepper's path."""
        names = set()
        for entry in stepper.history:
            if isinstance(entry, KeyValueStepper):
                key = entry.get_key()
                if key is not None:
                    names.add(key)
        return names

    def get_stepper_edges(self, stepper: Stepper) -> List[Edge]:
        edges = super().get_stepper_edges(stepper)
        if stepper.current_state not in (2, 4, 6) or self.properties is None:
            return edges

        present = self.get_property_names(stepper)
        missing_required = [name for name in self.required if name not in present]
        remaining = [kv for kv in self._property_machines if kv.property_name not in present]

        filtered = []
        for state_machine, target_state in edges:
            if state_machine is self._close:
                if missing_required:
                    continue
            elif state_machine is self._comma:
                if not remaining and self._additional is None:
                    continue
            elif state_machine is not self._additional and state_machine not in remaining:
                continue
            filtered.append((state_machine, target_state))
        return filtered

    def get_new_stepper(self, state=None) -> Stepper:
        return JsonValueStepper(self, state)

    def __repr__(self) -> str:
        if self.properties is not None:
            return f"ObjectStateMachine({sorted(self.properties)!r})"
        return "ObjectStateMachine()"
