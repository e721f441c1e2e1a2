"""
Grammar primitives.

Every structure is built from these machines:

    PhraseStateMachine        exact text
    CharacterStateMachine     run of characters from a class
    ChainStateMachine         members in order
    AnyStateMachine           one member out of several
    LoopStateMachine          repeated member, optional separator
    EncapsulatedStateMachine  member between literal delimiters
    WaitForStateMachine       free text until a member starts
    RegexStateMachine         regular expression
"""

from structure_guard.types.base.any import AnyStateMachine
from structure_guard.types.base.chain import ChainStateMachine
from structure_guard.types.base.character import CharacterStateMachine, CharacterStepper
from structure_guard.types.base.encapsulated import (
    DEFAULT_DELIMITERS,
    EncapsulatedStateMachine,
    EncapsulatedStepper,
)
from structure_guard.types.base.loop import LoopStateMachine, LoopStepper
from structure_guard.types.base.phrase import PhraseStateMachine, PhraseStepper
from structure_guard.types.base.regex import RegexStateMachine, RegexStepper
from structure_guard.types.base.wait_for import WaitForStateMachine, WaitForStepper

__all__ = [
    'PhraseStateMachine',
    'PhraseStepper',
    'CharacterStateMachine',
    'CharacterStepper',
    'ChainStateMachine',
    'AnyStateMachine',
    'LoopStateMachine',
    'LoopStepper',
    'EncapsulatedStateMachine',
    'EncapsulatedStepper',
    'DEFAULT_DELIMITERS',
    'WaitForStateMachine',
    'WaitForStepper',
    'RegexStateMachine',
    'RegexStepper',
]
