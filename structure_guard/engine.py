"""
Structuring Engine - keeps a language model inside a grammar, token by token.

The engine owns the set of active steppers for one generation and runs the
per-token loop around a model's forward pass:

    1. process_logits: mask every token no active stepper can accept
    2. sample: draw from the masked distribution with the caller's sampler,
       resampling if the draw cannot actually be consumed
    3. consume: advance every stepper with the token (healing partial
       matches), replacing the active set with the successors
    4. repeat until a stepper accepts and the model stops

Several steppers stay active whenever the text so far has more than one
interpretation; nothing is resolved until the input rules alternatives out.

Usage:
    ```python
    from structure_guard import StructuringEngine
    from structure_guard.decoding import greedy_sampler

    engine = StructuringEngine(tokenizer)
    engine.configure({
        "type": "object",
        "properties": {"name": {"type": "string"}},
        "required": ["name"]
    })

    while not engine.has_reached_accept_state:
        logits = model_forward(...)
        logits = engine.process_logits(input_ids, logits)
        token_ids = engine.sample(logits, greedy_sampler)
        ...

    person = engine.get_structured_output()
    ```
"""

import json
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple

import torch
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from torch import Tensor

from structure_guard.core.state_machine import StateMachine
from structure_guard.core.stepper import Stepper
from structure_guard.core.trie import Vocabulary
from structure_guard.decoding.cache import get_vocabulary
from structure_guard.errors import GrammarConfigurationError, OutputParseError
from structure_guard.schema.parser import build_state_machine
from structure_guard.schema.pydantic_adapter import is_pydantic_model
from structure_guard.types.base.encapsulated import EncapsulatedStateMachine
from structure_guard.types.base.wait_for import WaitForStateMachine

logger = logging.getLogger(__name__)

Sampler = Callable[[Tensor], Any]

MAX_FORCED_CONTINUATIONS = 64


class StructuringEngine:
    """
    Grammar-constrained decoding for one generation at a time.

    Attributes:
        tokenizer: Tokenizer used to decode the final output
        vocabulary: Token strings and trie (shared across engines)
        state_machine: Configured grammar (None until configure())
        steppers: Active steppers
        control_tokens: Token ids (EOS) that end generation
        multi_token_sampling: Emit forced continuations in the same step
        max_resample_attempts: Draws before falling back to the best legal token
        token_healing: Whether partially consumed tokens may be healed
    """

    def __init__(
        self,
        tokenizer: Any,
        multi_token_sampling: bool = False,
        max_resample_attempts: int = 5,
        token_healing: bool = True,
        control_tokens: Optional[Sequence[int]] = None,
        vocabulary: Optional[Vocabulary] = None,
    ):
        self.tokenizer = tokenizer
        self.vocabulary = vocabulary if vocabulary is not None else get_vocabulary(tokenizer)
        self.multi_token_sampling = multi_token_sampling
        self.max_resample_attempts = max_resample_attempts
        self.token_healing = token_healing

        if control_tokens is None:
            control_tokens = self._get_control_tokens(tokenizer)
        self.control_tokens: List[int] = list(control_tokens)

        self.state_machine: Optional[StateMachine] = None
        self.steppers: List[Stepper] = []

        logger.debug(
            f"StructuringEngine initialized (vocab={len(self.vocabulary)}, "
            f"control_tokens={self.control_tokens})"
        )

    @staticmethod
    def _get_control_tokens(tokenizer: Any) -> List[int]:
        eos_token_id = getattr(tokenizer, "eos_token_id", None)
        if eos_token_id is None:
            return []
        if isinstance(eos_token_id, (list, tuple)):
            return [int(token_id) for token_id in eos_token_id]
        return [int(eos_token_id)]

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(
        self,
        structure: Any,
        delimiters: Optional[Tuple[str, str]] = None,
        min_buffer_length: int = -1,
    ) -> None:
        """
        Set the grammar for the next generation.

        Args:
            structure: StateMachine, JSON Schema dict, pydantic model class,
                or a list of these (any one of them)
            delimiters: Wrap the structure in (open, close) literals
            min_buffer_length: When >= 0, allow at least this much free text
                before the structure starts

        Raises:
            GrammarConfigurationError: If the structure is malformed
        """
        if structure is None:
            raise GrammarConfigurationError("No structure given")

        state_machine = build_state_machine(structure)
        if delimiters is not None:
            state_machine = EncapsulatedStateMachine(state_machine, delimiters)
        if min_buffer_length >= 0:
            state_machine = WaitForStateMachine(state_machine, min_buffer_length=min_buffer_length)

        self.state_machine = state_machine
        self.steppers = state_machine.get_steppers()
        logger.info(f"Engine configured with {state_machine!r} ({len(self.steppers)} steppers)")

    def reset(self, hard: bool = False) -> None:
        """
        Start over.

        Args:
            hard: Also forget the configured grammar
        """
        if hard:
            self.state_machine = None
            self.steppers = []
        elif self.state_machine is not None:
            self.steppers = self.state_machine.get_steppers()
        logger.debug(f"Engine reset (hard={hard})")

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def has_reached_accept_state(self) -> bool:
        return any(stepper.has_reached_accept_state() for stepper in self.steppers)

    def can_accept_more_input(self) -> bool:
        return any(stepper.can_accept_more_input() for stepper in self.steppers)

    def get_legal_token_ids(self) -> Optional[Set[int]]:
        """
        Token ids the active steppers could consume next.

        Returns:
            Set of token ids, or None when some stepper accepts free text
            (nothing can be masked)
        """
        legal: Set[int] = set()
        for stepper in self.steppers:
            if stepper.accepts_any_token():
                return None
            for continuation in stepper.get_valid_continuations():
                legal |= self.vocabulary.candidate_token_ids(continuation)
        return legal

    def get_blocked_token_ids(self) -> Set[int]:
        """
        Token ids ruled out while some stepper accepts free text.

        Free text leaves most of the vocabulary open, but a character no
        stepper can take next (a raw control character inside a JSON string)
        rules out every token starting with it.
        """
        candidates = set()
        for stepper in self.steppers:
            candidates.update(stepper.get_invalid_continuations())

        blocked_chars = {
            char for char in candidates
            if not StateMachine.advance_all(self.steppers, char)
        }
        return self.vocabulary.token_ids_starting_with(blocked_chars)

    def _control_tokens_allowed(self, legal: Optional[Set[int]]) -> bool:
        return self.has_reached_accept_state or legal == set()

    # ------------------------------------------------------------------
    # Masking and sampling
    # ------------------------------------------------------------------

    def process_logits(self, input_ids: Any, scores: Tensor) -> Tensor:
        """
        Mask every token the grammar cannot accept next.

        Args:
            input_ids: Token ids so far (unused; the engine tracks its own state)
            scores: Logits of shape (vocab_size,) or (batch_size, vocab_size)

        Returns:
            Tensor: `scores` with illegal positions set to -inf (in place)
        """
        if self.state_machine is None or not self.steppers:
            return scores

        vocab_size = scores.shape[-1]
        legal = self.get_legal_token_ids()
        control_allowed = self._control_tokens_allowed(legal)

        if legal is None:
            blocked = self.get_blocked_token_ids()
            if not control_allowed:
                blocked.update(self.control_tokens)
            blocked = {token_id for token_id in blocked if 0 <= token_id < vocab_size}

            mask = self._create_mask(blocked, vocab_size, scores.device, masked=True)
            scores[..., mask] = float('-inf')
            logger.debug(f"Free text: {len(blocked)}/{vocab_size} tokens blocked")
            return scores

        allowed = {token_id for token_id in legal if 0 <= token_id < vocab_size}
        if control_allowed:
            allowed.update(token_id for token_id in self.control_tokens if token_id < vocab_size)

        mask = self._create_mask(allowed, vocab_size, scores.device)
        scores[..., mask] = float('-inf')

        logger.debug(f"Masked logits: {len(allowed)}/{vocab_size} tokens allowed")
        return scores

    @staticmethod
    def _create_mask(
        token_ids: Set[int],
        vocab_size: int,
        device: torch.device,
        masked: bool = False,
    ) -> Tensor:
        """
        Boolean mask where True means the token is masked.

        By default `token_ids` are the allowed tokens; with `masked=True` they
        are the masked ones.
        """
        mask = torch.full((vocab_size,), not masked, dtype=torch.bool, device=device)
        if token_ids:
            indices = torch.tensor(sorted(token_ids), device=device, dtype=torch.long)
            mask[indices] = masked
        return mask

    def sample(self, logprobs: Tensor, sampler: Sampler) -> List[int]:
        """
        Sample a token the grammar can actually consume.

        Masking is provisional: a token that fits a continuation by prefix
        may still fail once consumed. Such draws are masked and resampled up
        to `max_resample_attempts` times, after which the highest-scoring
        token that advances is taken.

        Args:
            logprobs: Masked scores, shape (vocab_size,) or (1, vocab_size)
            sampler: Callable returning a token id from scores

        Returns:
            Emitted token ids (a single id, a healed id, or a forced
            multi-token continuation). A control token id ends generation.
        """
        if self.state_machine is None:
            return [self._to_token_id(sampler(logprobs))]

        scores = logprobs.clone()
        for attempt in range(self.max_resample_attempts):
            token_id = self._to_token_id(sampler(scores))
            emitted = self._try_token(token_id)
            if emitted:
                return emitted

            logger.debug(f"Token {token_id} rejected on attempt {attempt + 1}, resampling")
            scores[..., token_id] = float('-inf')
            if torch.isinf(scores).all():
                break

        return self._fallback(logprobs)

    def _try_token(self, token_id: int) -> List[int]:
        if token_id in self.control_tokens:
            if self._control_tokens_allowed(self.get_legal_token_ids()):
                return [token_id]
            return []
        return self.consume(token_id)

    def _fallback(self, logprobs: Tensor) -> List[int]:
        flat = logprobs.reshape(-1)
        for token_id in torch.argsort(flat, descending=True).tolist():
            if flat[token_id].item() == float('-inf'):
                break
            emitted = self._try_token(token_id)
            if emitted:
                logger.warning(f"Resampling exhausted, forced token {token_id}")
                return emitted

        logger.warning("No token can advance the grammar, ending generation")
        return self.control_tokens[:1]

    @staticmethod
    def _to_token_id(sampled: Any) -> int:
        if isinstance(sampled, Tensor):
            return int(sampled.reshape(-1)[0].item())
        return int(sampled)

    # ------------------------------------------------------------------
    # Advancing
    # ------------------------------------------------------------------

    def advance_all(self, steppers: Sequence[Stepper], token: str) -> List[Tuple[Stepper, str, bool]]:
        """Advance steppers with a token string, healing partial matches."""
        return StateMachine.advance_all(
            steppers,
            token,
            vocabulary=self.vocabulary,
            token_healing=self.token_healing,
        )

    def consume(self, token_id: int) -> List[int]:
        """
        Advance the active steppers with a token.

        The active set is only replaced when the token produced successors;
        a rejected token leaves the engine exactly as it was.

        Args:
            token_id: Sampled token id

        Returns:
            Emitted token ids (empty if the token was rejected)
        """
        emitted = self._advance_token(token_id)
        if emitted and self.multi_token_sampling:
            emitted.extend(self._emit_forced_continuations())
        return emitted

    def _advance_token(self, token_id: int) -> List[int]:
        token = self.vocabulary.token_string(token_id)
        if not token:
            return []

        results = self.advance_all(self.steppers, token)
        if not results:
            logger.debug(f"Token {token_id} ({token!r}) advances no stepper")
            return []

        whole = [result for result in results if not result[2]]
        if whole:
            chosen = whole
            emitted_id = token_id
        else:
            healed_text = results[0][1]
            chosen = [result for result in results if result[1] == healed_text]
            emitted_id = self.vocabulary.token_ids(healed_text)[0]
            logger.debug(f"Healed token {token!r} to {healed_text!r} ({emitted_id})")

        steppers = []
        for stepper, _, _ in chosen:
            stepper.token_ids.append(emitted_id)
            steppers.append(stepper)
        self.steppers = steppers

        logger.debug(f"Consumed {token!r}: {len(self.steppers)} active steppers")
        return [emitted_id]

    def _emit_forced_continuations(self) -> List[int]:
        """Consume continuations that every active stepper agrees on."""
        emitted: List[int] = []

        for _ in range(MAX_FORCED_CONTINUATIONS):
            if any(
                stepper.has_reached_accept_state() or stepper.accepts_any_token()
                for stepper in self.steppers
            ):
                break

            continuations = {
                continuation
                for stepper in self.steppers
                for continuation in stepper.get_valid_continuations()
            }
            if len(continuations) != 1:
                break

            continuation = continuations.pop()
            token_ids = self.vocabulary.tokenize(continuation)
            if not token_ids:
                break

            snapshot = self.steppers
            pieces: List[int] = []
            for token_id in token_ids:
                advanced = self._advance_token(token_id)
                if not advanced:
                    self.steppers = snapshot
                    pieces = []
                    break
                pieces.extend(advanced)

            if not pieces:
                break
            logger.debug(f"Forced continuation {continuation!r} as {pieces}")
            emitted.extend(pieces)

        return emitted

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def get_best_stepper(self) -> Optional[Stepper]:
        """
        The stepper whose output counts.

        Among accepting steppers the one that consumed the most characters
        wins; ties go to the first one. Without an accepting stepper the
        longest active stepper is used.
        """
        accepting = [stepper for stepper in self.steppers if stepper.has_reached_accept_state()]
        candidates = accepting or self.steppers
        if not candidates:
            return None
        return max(candidates, key=lambda stepper: stepper.consumed_character_count)

    def get_output_text(self) -> str:
        """Decoded text of the winning stepper's tokens."""
        stepper = self.get_best_stepper()
        if stepper is None or not stepper.token_ids:
            return ""
        return self.tokenizer.decode(stepper.token_ids)

    def get_structured_output(self, output_type: Any = None, raise_on_error: bool = False) -> Any:
        """
        Reconstruct the generated value.

        The decoded text is parsed as JSON when possible (otherwise the
        grammar's own reading of it is used) and then validated into
        `output_type`.

        Args:
            output_type: pydantic model or any type pydantic can validate
            raise_on_error: Raise OutputParseError instead of returning the
                unvalidated value

        Returns:
            Validated value, or the parsed/raw value when validation fails

        Raises:
            OutputParseError: If validation fails and raise_on_error is set
        """
        stepper = self.get_best_stepper()
        if stepper is None:
            return None

        text = self.get_output_text()
        try:
            value = json.loads(text)
        except ValueError:
            value = stepper.get_current_value()

        return self._coerce(value, text, output_type, raise_on_error)

    def get_stateful_structured_output(
        self,
        output_type: Any = None,
        raise_on_error: bool = False,
    ) -> Iterator[Tuple[str, Any]]:
        """
        Yield (identifier, value) for every labelled part of the output.

        Args:
            output_type: Type applied to every value, or a dict mapping
                identifiers to types
            raise_on_error: Raise OutputParseError on validation failures
        """
        stepper = self.get_best_stepper()
        if stepper is None:
            return

        if stepper.get_identifier():
            segments = [(stepper.get_identifier(), stepper)]
        else:
            segments = list(stepper.iter_segments())

        for identifier, segment in segments:
            segment_type = output_type
            if isinstance(output_type, dict):
                segment_type = output_type.get(identifier)
            value = segment.get_current_value()
            yield identifier, self._coerce(value, segment.get_raw_value(), segment_type, raise_on_error)

    @staticmethod
    def _coerce(value: Any, text: str, output_type: Any, raise_on_error: bool) -> Any:
        if output_type is None:
            return value

        try:
            if is_pydantic_model(output_type):
                return output_type.model_validate(value)
            return TypeAdapter(output_type).validate_python(value)
        except (PydanticValidationError, ValueError, TypeError) as e:
            if raise_on_error:
                raise OutputParseError(
                    f"Output does not match {output_type!r}: {e}",
                    raw_output=text,
                    value=value,
                ) from e
            logger.warning(f"Output does not match {output_type!r}, returning raw value")
            return value

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the current generation.

        Returns:
            Dict with stepper counts and acceptance
        """
        return {
            'active_steppers': len(self.steppers),
            'is_accepting': self.has_reached_accept_state,
            'vocab_size': len(self.vocabulary),
        }

    def __repr__(self) -> str:
        return (
            f"StructuringEngine(state_machine={self.state_machine!r}, "
            f"steppers={len(self.steppers)})"
        )
