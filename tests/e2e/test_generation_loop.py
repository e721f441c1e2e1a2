"""
End-to-end tests of the decoding loop with a scripted model.

The scripted backend prefers one fixed continuation: at every position the
next token of its script gets a high logit and everything else a flat one.
The grammar decides what actually comes out.
"""

from typing import Any, Dict, List, Sequence

import pytest
import torch
from pydantic import BaseModel

from structure_guard import StructuredGenerator, StructuringEngine
from structure_guard.backends import Backend

from tests.conftest import FakeTokenizer, MULTI_CHAR_TOKENS

pytestmark = pytest.mark.e2e

PROMPT = "Person:"


class Person(BaseModel):
    name: str
    age: int = 0


class ScriptedBackend(Backend):
    """Backend whose logits follow a script and fall back to EOS."""

    device = "cpu"

    def __init__(self, script: str):
        self.tokenizer = FakeTokenizer(MULTI_CHAR_TOKENS)
        self.script = self.tokenizer.encode(script)
        self.prompt_length = 0
        self.forward_calls = 0

    def get_tokenizer(self) -> Any:
        return self.tokenizer

    def encode(self, text: str) -> List[int]:
        token_ids = self.tokenizer.encode(text)
        self.prompt_length = len(token_ids)
        return token_ids

    def forward(self, token_ids: Sequence[int]) -> torch.Tensor:
        self.forward_calls += 1
        position = len(token_ids) - self.prompt_length
        logits = torch.zeros(len(self.tokenizer))
        if position < len(self.script):
            logits[self.script[position]] = 10.0
        else:
            logits[self.tokenizer.eos_token_id] = 10.0
        return logits

    def get_model_info(self) -> Dict[str, Any]:
        return {"model_id": "scripted", "device": self.device, "backend": "scripted"}


class TestBackendLoop:
    """Test Backend.generate driving an engine."""

    def test_stops_when_structure_is_complete(self, person_schema):
        """Test the loop ends once nothing more can follow."""
        backend = ScriptedBackend('{"name": "Sam", "age": 7}')
        engine = StructuringEngine(backend.get_tokenizer())
        engine.configure(person_schema)

        token_ids = backend.generate(PROMPT, engine)

        assert token_ids == backend.script
        assert backend.forward_calls == len(backend.script)
        assert engine.get_structured_output() == {"name": "Sam", "age": 7}

    def test_stops_on_control_token(self):
        """Test an open-ended value ends with EOS once accepting."""
        backend = ScriptedBackend("42")
        engine = StructuringEngine(backend.get_tokenizer())
        engine.configure({"type": "integer"})

        token_ids = backend.generate(PROMPT, engine)

        assert backend.tokenizer.decode(token_ids) == "42"
        assert engine.tokenizer.eos_token_id not in token_ids
        assert engine.get_structured_output() == 42

    def test_max_tokens(self, person_schema):
        """Test generation is cut off at max_tokens."""
        backend = ScriptedBackend('{"name": "Sam", "age": 7}')
        engine = StructuringEngine(backend.get_tokenizer())
        engine.configure(person_schema)

        token_ids = backend.generate(PROMPT, engine, max_tokens=3)

        assert len(token_ids) == 3
        assert not engine.has_reached_accept_state


class TestStructuredGenerator:
    """Test the high-level generator over a scripted backend."""

    def test_valid_generation(self, person_schema):
        """Test a script that already fits the schema."""
        generator = StructuredGenerator(backend=ScriptedBackend('{"name": "Sam", "age": 7}'))

        result = generator.generate(PROMPT, person_schema)

        assert result.is_valid
        assert result.output == '{"name": "Sam", "age": 7}'
        assert result.value == {"name": "Sam", "age": 7}
        assert result.tokens_generated == 11
        assert result.validation_errors == []

    def test_grammar_overrides_the_model(self, person_schema):
        """Test a string where an integer belongs is steered to an integer."""
        generator = StructuredGenerator(backend=ScriptedBackend('{"name": "Sam", "age": "7"}'))

        result = generator.generate(PROMPT, person_schema)

        assert result.is_valid
        assert result.value == {"name": "Sam", "age": 0}

    def test_pydantic_structure(self):
        """Test the value is validated into the model."""
        generator = StructuredGenerator(backend=ScriptedBackend('{"name": "Sam", "age": 7}'))

        result = generator.generate(PROMPT, Person)

        assert result.is_valid
        assert result.value == Person(name="Sam", age=7)

    def test_fenced_structure_after_free_text(self, person_schema):
        """Test a preamble followed by a fenced object."""
        script = 'here is the result\n```json\n{"name": "Sam"}\n```'
        generator = StructuredGenerator(backend=ScriptedBackend(script))

        result = generator.generate(
            PROMPT,
            person_schema,
            delimiters=("```json\n", "\n```"),
            min_buffer_length=0,
        )

        assert result.is_valid
        assert result.output == script
        assert result.value == {"name": "Sam"}

    def test_incomplete_generation(self, person_schema):
        """Test a truncated generation is reported invalid."""
        generator = StructuredGenerator(backend=ScriptedBackend('{"name": "Sam", "age": 7}'))

        result = generator.generate(PROMPT, person_schema, max_tokens=4)

        assert not result.is_valid
        assert result.tokens_generated == 4
        assert result.validation_errors == []

    def test_seeded_sampling(self, person_schema):
        """Test sampling with a seed still yields a schema-valid value."""
        generator = StructuredGenerator(backend=ScriptedBackend('{"name": "Sam", "age": 7}'))

        result = generator.generate(PROMPT, person_schema, temperature=0.5, seed=0)

        assert result.is_valid

    def test_requires_model_or_backend(self):
        """Test a generator needs something to run."""
        with pytest.raises(ValueError):
            StructuredGenerator()
