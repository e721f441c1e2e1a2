"""
JSON value machines.

Every machine here reports `get_current_value()` as the parsed Python value
once it has matched.
"""

from structure_guard.types.json.array import ArrayStateMachine
from structure_guard.types.json.key_value import KeyValueStateMachine, KeyValueStepper
from structure_guard.types.json.literals import BooleanStateMachine, EnumStateMachine, NullStateMachine
from structure_guard.types.json.number import IntegerStateMachine, NumberStateMachine
from structure_guard.types.json.object import ObjectStateMachine
from structure_guard.types.json.stepper import JsonValueStepper
from structure_guard.types.json.string import StringStateMachine
from structure_guard.types.json.value import JsonStateMachine
from structure_guard.types.json.whitespace import WhitespaceStateMachine

__all__ = [
    'JsonStateMachine',
    'JsonValueStepper',
    'ObjectStateMachine',
    'ArrayStateMachine',
    'KeyValueStateMachine',
    'KeyValueStepper',
    'StringStateMachine',
    'NumberStateMachine',
    'IntegerStateMachine',
    'BooleanStateMachine',
    'NullStateMachine',
    'EnumStateMachine',
    'WhitespaceStateMachine',
]
