"""
Core grammar runtime.

Contains the grammar graph (StateMachine), the cursor that walks it (Stepper),
and the vocabulary trie used for masking and token healing.
"""

from structure_guard.core.stepper import Stepper
from structure_guard.core.state_machine import Edge, StateGraph, StateId, StateMachine
from structure_guard.core.trie import TokenTrie, Vocabulary

__all__ = [
    'StateMachine',
    'Stepper',
    'StateId',
    'StateGraph',
    'Edge',
    'TokenTrie',
    'Vocabulary',
]
