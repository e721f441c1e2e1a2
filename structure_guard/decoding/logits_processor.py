"""
Logits Processor - plug the engine into HuggingFace `generate()`.

HuggingFace samples tokens itself, so the processor sees each sampled token
only on the next call. On every call it feeds the newly generated ids to the
engine and then masks the scores for the next position.

Flow:
    1. Model generates logits for all tokens
    2. LogitsProcessor is called with (input_ids, logits)
    3. New ids since the last call are consumed by the engine
    4. The engine masks tokens no active stepper can accept
    5. HuggingFace samples from the masked logits

Note:
    `generate()` cannot resample, so a provisionally legal token that fails
    once consumed is logged and skipped. `Backend.generate` drives the engine
    directly and does not have this limitation.

Usage:
    ```python
    from transformers import AutoModelForCausalLM, AutoTokenizer, LogitsProcessorList
    from structure_guard import StructuringEngine
    from structure_guard.decoding import StructuringLogitsProcessor

    model = AutoModelForCausalLM.from_pretrained("gpt2")
    tokenizer = AutoTokenizer.from_pretrained("gpt2")

    engine = StructuringEngine(tokenizer)
    engine.configure(schema)

    processor = StructuringLogitsProcessor(engine, prompt_length=input_ids.shape[1])
    output = model.generate(
        input_ids,
        logits_processor=LogitsProcessorList([processor]),
        max_new_tokens=100
    )
    ```
"""

import logging
from typing import Any, Dict

from torch import Tensor

logger = logging.getLogger(__name__)


class StructuringLogitsProcessor:
    """
    LogitsProcessor that keeps generation inside the engine's grammar.

    This implements the HuggingFace LogitsProcessor interface:
        __call__(input_ids: Tensor, scores: Tensor) -> Tensor

    Attributes:
        engine: Configured StructuringEngine
        prompt_length: Number of prompt tokens to skip
        rejected_tokens: Count of sampled tokens the grammar refused
    """

    def __init__(self, engine: Any, prompt_length: int = 0):
        self.engine = engine
        self.prompt_length = prompt_length
        self.last_processed_length = prompt_length
        self.rejected_tokens = 0

        logger.debug(f"StructuringLogitsProcessor initialized (prompt_length={prompt_length})")

    def __call__(self, input_ids: Tensor, scores: Tensor) -> Tensor:
        """
        Consume new tokens, then mask the next position.

        Args:
            input_ids: Tensor of shape (1, seq_len) with prompt and generated tokens
            scores: Tensor of shape (1, vocab_size) with logits

        Returns:
            Tensor: Scores with illegal tokens masked to -inf

        Raises:
            ValueError: If called with more than one sequence
        """
        if input_ids.shape[0] != 1:
            raise ValueError(
                "StructuringLogitsProcessor tracks a single sequence; "
                "use one engine per sequence"
            )

        self._consume_new_tokens(input_ids[0])
        return self.engine.process_logits(input_ids, scores)

    def _consume_new_tokens(self, sequence: Tensor) -> None:
        """
        Feed ids generated since the last call to the engine.

        Example:
            Prompt length: 7 tokens
            Call 1: input_ids=[1,2,3,4,5,6,7] (prompt only) → nothing consumed
            Call 2: input_ids=[1,2,3,4,5,6,7,15] → consume [15]
            Call 3: input_ids=[1,2,3,4,5,6,7,15,20] → consume [20]
        """
        current_length = len(sequence)
        if current_length <= self.last_processed_length:
            return

        start_idx = max(self.last_processed_length, self.prompt_length)
        for token_id in sequence[start_idx:current_length].tolist():
            if token_id in self.engine.control_tokens:
                continue
            if not self.engine.consume(token_id):
                self.rejected_tokens += 1
                logger.warning(f"Generated token {token_id} does not fit the grammar")

        self.last_processed_length = current_length

    def reset(self, prompt_length: int = 0) -> None:
        """
        Reset processor and engine for a new generation.

        Example:
            ```python
            output1 = model.generate(..., logits_processor=[processor])

            processor.reset(prompt_length=next_input_ids.shape[1])
            output2 = model.generate(..., logits_processor=[processor])
            ```
        """
        self.engine.reset()
        self.prompt_length = prompt_length
        self.last_processed_length = prompt_length
        self.rejected_tokens = 0
        logger.debug("StructuringLogitsProcessor reset")

    def get_stats(self) -> Dict[str, Any]:
        """Engine statistics plus the processor's rejected-token count."""
        return {**self.engine.get_stats(), 'rejected_tokens': self.rejected_tokens}

    def __repr__(self) -> str:
        return f"StructuringLogitsProcessor(engine={self.engine!r})"
