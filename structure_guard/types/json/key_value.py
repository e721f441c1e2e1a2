"""
Key-value pair machine: "key" : value

Used for object members. Schema-driven objects give every declared property
its own pair machine with a fixed key phrase.
"""

import json
from typing import Any, Optional, Tuple

from structure_guard.core.state_machine import StateMachine
from structure_guard.core.stepper import Stepper
from structure_guard.types.base.chain import ChainStateMachine
from structure_guard.types.base.phrase import PhraseStateMachine
from structure_guard.types.json.string import StringStateMachine
from structure_guard.types.json.whitespace import WhitespaceStateMachine


class KeyValueStateMachine(ChainStateMachine):
    """
    Attributes:
        key_state_machine: Machine for the quoted key
        value_state_machine: Machine for the value
        property_name: Fixed key, for schema properties
    """

    def __init__(
        self,
        key_state_machine: Optional[StateMachine] = None,
        value_state_machine: Optional[StateMachine] = None,
        property_name: Optional[str] = None,
        is_optional: bool = False,
        identifier: Optional[str] = None,
    ):
        if key_state_machine is None:
            if property_name is not None:
                key_state_machine = PhraseStateMachine(json.dumps(property_name))
            else:
                key_state_machine = StringStateMachine()
        if value_state_machine is None:
            from structure_guard.types.json.value import JsonStateMachine

            value_state_machine = JsonStateMachine()

        self.key_state_machine = key_state_machine
        self.value_state_machine = value_state_machine
        self.property_name = property_name

        super().__init__(
            [
                key_state_machine,
                WhitespaceStateMachine(),
                PhraseStateMachine(":"),
                WhitespaceStateMachine(),
                value_state_machine,
            ],
            is_optional=is_optional,
            identifier=identifier,
        )

    def get_new_stepper(self, state=None) -> "KeyValueStepper":
        return KeyValueStepper(self, state)

    def __repr__(self) -> str:
        if self.property_name is not None:
            return f"KeyValueStateMachine({self.property_name!r})"
        return "KeyValueStateMachine()"


class KeyValueStepper(Stepper):
    state_machine: KeyValueStateMachine

    def _entries(self):
        entries = list(self.history)
        if self.sub_stepper is not None and self.sub_stepper.has_started():
            entries.append(self.sub_stepper)
        return entries

    def get_key(self) -> Optional[str]:
        if self.state_machine.property_name is not None:
            return self.state_machine.property_name
        for entry in self._entries():
            if entry.state_machine is self.state_machine.key_state_machine:
                try:
                    return json.loads(entry.get_raw_value())
                except ValueError:
                    return entry.get_raw_value()
        return None

    def get_current_value(self) -> Tuple[Optional[str], Any]:
        value = None
        for entry in self._entries():
            if entry.state_machine is self.state_machine.value_state_machine:
                value = entry.get_current_value()
        return self.get_key(), value
