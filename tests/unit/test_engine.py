"""
Unit tests for the structuring engine.
"""

import pytest
import torch
from pydantic import BaseModel

from structure_guard import StructuringEngine
from structure_guard.decoding import greedy_sampler
from structure_guard.errors import GrammarConfigurationError, OutputParseError
from structure_guard.schema import build_state_machine
from structure_guard.types.base import ChainStateMachine, PhraseStateMachine
from structure_guard.types.json import BooleanStateMachine

from tests.conftest import advance_text, feed, random_tokenizations

PERSON_TOKENS = ['{"', 'name', '":', ' "', 'Sam', '",', ' "', 'age', '":', ' 7', '}']


class Person(BaseModel):
    name: str
    age: int = 0


def fresh_scores(tokenizer):
    return torch.zeros(len(tokenizer))


class TestConfiguration:
    """Test configure and reset."""

    def test_configure_none(self, make_engine):
        """Test a missing structure is a configuration error."""
        with pytest.raises(GrammarConfigurationError):
            make_engine().configure(None)

    def test_configure_invalid_schema(self, make_engine):
        """Test a malformed schema fails at configure time."""
        with pytest.raises(GrammarConfigurationError):
            make_engine({"type": "unknown"})

    def test_unconfigured_engine_does_not_mask(self, make_engine, tokenizer):
        """Test scores pass through before configure."""
        scores = fresh_scores(tokenizer)
        assert torch.isfinite(make_engine().process_logits(None, scores)).all()

    def test_reset(self, make_engine, tokenizer, person_schema):
        """Test soft and hard resets."""
        engine = make_engine(person_schema)
        feed(engine, tokenizer, PERSON_TOKENS)
        assert engine.has_reached_accept_state

        engine.reset()
        assert not engine.has_reached_accept_state
        assert engine.get_legal_token_ids() == {tokenizer.token_id("{"), tokenizer.token_id('{"')}

        engine.reset(hard=True)
        assert engine.state_machine is None
        assert engine.steppers == []

    def test_stats(self, make_engine, tokenizer):
        """Test the statistics snapshot."""
        stats = make_engine(PhraseStateMachine("ab")).get_stats()

        assert stats['active_steppers'] == 1
        assert stats['is_accepting'] is False
        assert stats['vocab_size'] == len(tokenizer) - 1


class TestJsonObject:
    """Test an object schema end to end at the token level."""

    def test_complete_object(self, make_engine, tokenizer, person_schema):
        """Test multi-character tokens produce the declared object."""
        engine = make_engine(person_schema)
        assert engine.get_legal_token_ids() == {tokenizer.token_id("{"), tokenizer.token_id('{"')}

        feed(engine, tokenizer, PERSON_TOKENS)

        assert engine.has_reached_accept_state
        assert engine.get_output_text() == '{"name": "Sam", "age": 7}'
        assert engine.get_structured_output() == {"name": "Sam", "age": 7}

    def test_character_tokens(self, make_engine, tokenizer, person_schema):
        """Test the same object fed one character at a time."""
        engine = make_engine(person_schema)
        feed(engine, tokenizer, list('{"name": "Sam", "age": 7}'))

        assert engine.get_structured_output() == {"name": "Sam", "age": 7}

    def test_pydantic_output(self, make_engine, tokenizer):
        """Test the value validated into a model."""
        engine = make_engine(Person)
        feed(engine, tokenizer, PERSON_TOKENS)

        person = engine.get_structured_output(Person)
        assert person == Person(name="Sam", age=7)

    def test_illegal_token_is_masked_and_rejected(self, make_engine, tokenizer, person_schema):
        """Test closing before a pending key is impossible after a comma."""
        engine = make_engine(person_schema)
        feed(engine, tokenizer, PERSON_TOKENS[:6])

        legal = engine.get_legal_token_ids()
        assert tokenizer.token_id("}") not in legal
        assert tokenizer.token_id(" ") in legal
        assert tokenizer.token_id('"') in legal
        assert tokenizer.token_id("a") not in legal

        scores = engine.process_logits(None, fresh_scores(tokenizer))
        assert scores[tokenizer.token_id("}")] == float('-inf')
        assert scores[tokenizer.eos_token_id] == float('-inf')
        assert scores[tokenizer.token_id('"')] == 0.0

        before = list(engine.steppers)
        assert engine.consume(tokenizer.token_id("}")) == []
        assert engine.steppers == before

        feed(engine, tokenizer, PERSON_TOKENS[6:])
        assert engine.get_structured_output() == {"name": "Sam", "age": 7}

    def test_any_tokenization_gives_the_same_object(self, person_schema):
        """Test the object is read the same wherever token boundaries fall."""
        state_machine = build_state_machine(person_schema)
        text = '{"name": "Sam", "age": 7}'

        for tokens in [[text], list(text)] + list(random_tokenizations(text, 50, seed=7)):
            steppers = advance_text(state_machine, tokens)
            values = [
                stepper.get_current_value()
                for stepper in steppers
                if stepper.has_reached_accept_state()
            ]
            assert values, tokens
            assert values[0] == {"name": "Sam", "age": 7}, tokens

    def test_batched_scores(self, make_engine, tokenizer, person_schema):
        """Test masking a (1, vocab) score tensor."""
        engine = make_engine(person_schema)
        scores = engine.process_logits(None, torch.zeros(1, len(tokenizer)))

        assert scores.shape == (1, len(tokenizer))
        assert torch.isfinite(scores[0]).sum().item() == 2


class TestFreeTextMasking:
    """Test masking while a string body accepts almost anything."""

    def test_control_characters_are_masked_in_strings(self, make_engine, tokenizer, person_schema):
        """Test tokens starting with a character no path takes are masked."""
        engine = make_engine(person_schema)
        feed(engine, tokenizer, ['{"', 'name', '":', ' "', 'S'])
        assert engine.get_legal_token_ids() is None

        scores = engine.process_logits(None, fresh_scores(tokenizer))
        for token in ("\n", "\n```", "\t"):
            assert scores[tokenizer.token_id(token)] == float('-inf'), token
        assert scores[tokenizer.eos_token_id] == float('-inf')
        for token in ("a", '"', '",', "\\", " world"):
            assert scores[tokenizer.token_id(token)] == 0.0, token

        assert engine.consume(tokenizer.token_id("\n")) == []
        feed(engine, tokenizer, ['a', 'm', '",', ' "', 'age', '":', ' 7', '}'])
        assert engine.get_structured_output() == {"name": "Sam", "age": 7}

    def test_blocked_ids_empty_in_preamble(self, make_engine, tokenizer, person_schema):
        """Test nothing but control tokens is blocked before a fence."""
        engine = make_engine()
        engine.configure(person_schema, delimiters=("```json\n", "\n```"), min_buffer_length=0)
        feed(engine, tokenizer, ["here", " is"])

        assert engine.get_blocked_token_ids() == set()


class TestFencedOutput:
    """Test free text followed by a fenced structure."""

    def test_preamble_then_structure(self, make_engine, tokenizer, person_schema):
        """Test the preamble is unmasked and the fence commits to the schema."""
        engine = make_engine()
        engine.configure(person_schema, delimiters=("```json\n", "\n```"), min_buffer_length=0)

        feed(engine, tokenizer, ["here", " is", " the", " result", "\n"])
        assert engine.get_legal_token_ids() is None

        scores = engine.process_logits(None, fresh_scores(tokenizer))
        assert scores[tokenizer.eos_token_id] == float('-inf')
        assert torch.isfinite(scores).sum().item() == len(tokenizer) - 1

        feed(engine, tokenizer, ["```json", "\n"])
        assert engine.get_legal_token_ids() == {tokenizer.token_id("{"), tokenizer.token_id('{"')}

        feed(engine, tokenizer, PERSON_TOKENS + ["\n```"])
        assert engine.has_reached_accept_state
        assert engine.get_structured_output() == {"name": "Sam", "age": 7}


class TestHealing:
    """Test token healing in the engine."""

    def test_overshooting_token_is_healed(self, make_engine, tokenizer):
        """Test the emitted id is the consumed prefix."""
        engine = make_engine(PhraseStateMachine("ab"))

        assert engine.consume(tokenizer.token_id("abc")) == [tokenizer.token_id("ab")]
        assert engine.has_reached_accept_state
        assert engine.get_output_text() == "ab"

    def test_healing_disabled(self, make_engine, tokenizer):
        """Test overshooting tokens are rejected without healing."""
        engine = make_engine(PhraseStateMachine("ab"), token_healing=False)
        assert engine.consume(tokenizer.token_id("abc")) == []

    def test_split_equals_whole(self, make_engine, tokenizer):
        """Test a phrase fed in pieces ends where the whole token ends."""
        split = make_engine(PhraseStateMachine("hello world"))
        feed(split, tokenizer, ["hello", " world"])

        whole = make_engine(PhraseStateMachine("hello world"))
        feed(whole, tokenizer, list("hello world"))

        assert split.steppers == whole.steppers


class TestSampling:
    """Test sampling with resampling and fallback."""

    def test_resamples_rejected_draw(self, make_engine, tokenizer):
        """Test a draw that fails is masked and drawn again."""
        engine = make_engine(PhraseStateMachine("ab"))
        draws = iter([tokenizer.token_id("b"), tokenizer.token_id("a")])

        emitted = engine.sample(fresh_scores(tokenizer), lambda scores: next(draws))
        assert emitted == [tokenizer.token_id("a")]

    def test_fallback_to_best_legal_token(self, make_engine, tokenizer):
        """Test the best legal token is forced when every draw fails."""
        engine = make_engine(PhraseStateMachine("ab"))
        scores = fresh_scores(tokenizer)
        scores[tokenizer.token_id("ab")] = 5.0
        scores = engine.process_logits(None, scores)

        emitted = engine.sample(scores, lambda _: tokenizer.token_id("z"))

        assert emitted == [tokenizer.token_id("ab")]
        assert engine.has_reached_accept_state

    def test_control_token_after_accept(self, make_engine, tokenizer):
        """Test EOS is only legal once the structure is complete."""
        engine = make_engine(BooleanStateMachine())
        scores = engine.process_logits(None, fresh_scores(tokenizer))
        assert scores[tokenizer.eos_token_id] == float('-inf')

        feed(engine, tokenizer, ["true"])
        assert engine.has_reached_accept_state
        assert engine.get_legal_token_ids() == set()

        scores = fresh_scores(tokenizer)
        scores[tokenizer.eos_token_id] = 1.0
        scores = engine.process_logits(None, scores)
        assert engine.sample(scores, greedy_sampler) == [tokenizer.eos_token_id]

    def test_control_token_is_not_consumed(self, make_engine, tokenizer):
        """Test consuming EOS is a rejection."""
        engine = make_engine(PhraseStateMachine("ab"))
        assert engine.consume(tokenizer.eos_token_id) == []

    def test_multi_token_sampling(self, make_engine, tokenizer):
        """Test a forced continuation is emitted in the same step."""
        engine = make_engine(PhraseStateMachine("hello world"), multi_token_sampling=True)

        emitted = engine.consume(tokenizer.token_id("h"))

        assert len(emitted) > 1
        assert tokenizer.decode(emitted) == "hello world"
        assert engine.has_reached_accept_state


class TestOutput:
    """Test output reconstruction."""

    def test_best_stepper_prefers_longest_accepting(self, make_engine):
        """Test ties go to the first stepper."""
        engine = make_engine(PhraseStateMachine("ab"))
        [short] = advance_text(PhraseStateMachine("ab"), ["ab"])
        [long] = advance_text(PhraseStateMachine("abc"), ["abc"])
        [unfinished] = advance_text(PhraseStateMachine("abcdef"), ["abcd"])
        [twin] = advance_text(PhraseStateMachine("ab"), ["ab"])

        engine.steppers = [short, long, unfinished]
        assert engine.get_best_stepper() is long

        engine.steppers = [short, twin]
        assert engine.get_best_stepper() is short

        engine.steppers = [unfinished, short]
        assert engine.get_best_stepper() is short

    def test_output_parse_error(self, make_engine, tokenizer):
        """Test type coercion failures."""
        engine = make_engine(PhraseStateMachine("abc"))
        feed(engine, tokenizer, ["abc"])

        with pytest.raises(OutputParseError) as excinfo:
            engine.get_structured_output(int, raise_on_error=True)
        assert excinfo.value.raw_output == "abc"

        assert engine.get_structured_output(int) == "abc"

    def test_stateful_output(self, make_engine, tokenizer):
        """Test labelled parts are reported in order."""
        engine = make_engine(ChainStateMachine([
            PhraseStateMachine("a", identifier="left"),
            PhraseStateMachine("-"),
            PhraseStateMachine("b", identifier="right"),
        ]))
        feed(engine, tokenizer, ["a", "-", "b"])

        assert list(engine.get_stateful_structured_output()) == [("left", "a"), ("right", "b")]

    def test_stateful_output_types(self, make_engine, tokenizer):
        """Test per-identifier coercion of a labelled root."""
        engine = make_engine(PhraseStateMachine("42", identifier="answer"))
        feed(engine, tokenizer, ["4", "2"])

        assert list(engine.get_stateful_structured_output({"answer": int})) == [("answer", 42)]

    def test_no_steppers(self, make_engine):
        """Test output of an unconfigured engine."""
        engine = make_engine()

        assert engine.get_structured_output() is None
        assert engine.get_output_text() == ""
        assert list(engine.get_stateful_structured_output()) == []
