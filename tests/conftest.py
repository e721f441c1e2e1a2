"""
Shared fixtures: a deterministic in-memory tokenizer and engine helpers.
"""

import random
import string
from typing import Dict, Iterator, List, Sequence

import pytest

from structure_guard import StructuringEngine
from structure_guard.core import StateMachine, Stepper

MULTI_CHAR_TOKENS = [
    '{"', '":', ' "', '",', 'name', 'age', 'Sam', ' 7', 'true', 'false', 'null',
    'ab', 'abc', 'hello', ' world', 'here', ' is', ' the', ' result',
    '```', '```json', '\n```', 'json',
]


class FakeTokenizer:
    """
    HuggingFace-shaped tokenizer over a fixed list of token strings.

    Id 0 is the end-of-sequence token; every printable ASCII character is a
    token of its own, followed by MULTI_CHAR_TOKENS.
    """

    eos_token = "</s>"
    eos_token_id = 0

    def __init__(self, tokens: Sequence[str] = ()):
        self._vocab: Dict[str, int] = {self.eos_token: self.eos_token_id}
        for token in list(string.printable) + list(tokens):
            if token not in self._vocab:
                self._vocab[token] = len(self._vocab)
        self._strings = {token_id: token for token, token_id in self._vocab.items()}
        self.all_special_ids = [self.eos_token_id]

    def get_vocab(self) -> Dict[str, int]:
        return dict(self._vocab)

    def token_id(self, token: str) -> int:
        return self._vocab[token]

    def decode(self, token_ids: Sequence[int], skip_special_tokens: bool = False) -> str:
        return "".join(
            self._strings[int(token_id)]
            for token_id in token_ids
            if int(token_id) != self.eos_token_id
        )

    def encode(self, text: str, add_special_tokens: bool = False) -> List[int]:
        """Greedy longest-match tokenization."""
        token_ids = []
        position = 0
        while position < len(text):
            for end in range(len(text), position, -1):
                token_id = self._vocab.get(text[position:end])
                if token_id is not None:
                    token_ids.append(token_id)
                    position = end
                    break
            else:
                raise ValueError(f"Cannot tokenize {text[position:]!r}")
        return token_ids

    def __len__(self) -> int:
        return len(self._vocab)


def advance_text(state_machine: StateMachine, tokens: Sequence[str]) -> List[Stepper]:
    """Feed token strings through a machine, returning the surviving steppers."""
    steppers = state_machine.get_steppers()
    for token in tokens:
        steppers = [stepper for stepper, _, _ in StateMachine.advance_all(steppers, token)]
    return steppers


def accepts(state_machine: StateMachine, text: str) -> bool:
    """True if the machine accepts `text` fed one character at a time."""
    steppers = advance_text(state_machine, list(text))
    return any(stepper.has_reached_accept_state() for stepper in steppers)


def tokenizations(text: str) -> Iterator[List[str]]:
    """Every way of cutting `text` into non-empty pieces."""
    for cuts in range(2 ** (len(text) - 1)):
        pieces = []
        start = 0
        for index in range(1, len(text)):
            if cuts & (1 << (index - 1)):
                pieces.append(text[start:index])
                start = index
        pieces.append(text[start:])
        yield pieces


def random_tokenizations(text: str, count: int, seed: int = 0) -> Iterator[List[str]]:
    """`count` random cuttings of `text`, reproducible by seed."""
    rng = random.Random(seed)
    for _ in range(count):
        pieces = []
        start = 0
        for index in range(1, len(text)):
            if rng.random() < 0.4:
                pieces.append(text[start:index])
                start = index
        pieces.append(text[start:])
        yield pieces


def feed(engine: StructuringEngine, tokenizer: FakeTokenizer, tokens: Sequence[str]) -> None:
    """Consume token strings one by one, failing the test on a rejection."""
    for token in tokens:
        assert engine.consume(tokenizer.token_id(token)), f"token {token!r} was rejected"


@pytest.fixture
def tokenizer() -> FakeTokenizer:
    return FakeTokenizer(MULTI_CHAR_TOKENS)


@pytest.fixture
def make_engine(tokenizer):
    """Factory for engines over the shared tokenizer."""
    def _make(structure=None, **kwargs) -> StructuringEngine:
        engine = StructuringEngine(tokenizer, **kwargs)
        if structure is not None:
            engine.configure(structure)
        return engine
    return _make


@pytest.fixture
def person_schema() -> dict:
    return {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "age": {"type": "integer"},
        },
        "required": ["name"],
    }
