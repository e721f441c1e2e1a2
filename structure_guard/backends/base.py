"""
Backend abstraction - run a model's forward pass under the engine.

A backend only has to produce next-token logits for a sequence of token ids.
The generation loop itself is shared and lives here, so every backend gets the
engine's resampling, token healing and multi-token emission for free:

    1. forward(): logits for the next position
    2. engine.process_logits(): mask what the grammar cannot accept
    3. engine.sample(): draw a token the grammar can actually consume
    4. stop on a control token, or once the grammar is complete

Backend Protocol:
    - get_tokenizer(): Tokenizer the engine's vocabulary is built from
    - encode(): Prompt text to token ids
    - forward(): Next-token logits, shape (vocab_size,)
    - get_model_info(): Model metadata

Usage:
    ```python
    from structure_guard import StructuringEngine
    from structure_guard.backends import BackendFactory

    backend = BackendFactory.create("gpt2", device="cpu")
    engine = StructuringEngine(backend.get_tokenizer())
    engine.configure(schema)

    token_ids = backend.generate("Generate a user profile:", engine, max_tokens=100)
    print(engine.get_output_text())
    ```
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence

from torch import Tensor

from structure_guard.decoding.sampling import greedy_sampler

logger = logging.getLogger(__name__)


class Backend(ABC):
    """
    Abstract base class for model backends.

    Subclasses provide the tokenizer and the forward pass; `generate` runs the
    constrained decoding loop on top of them.
    """

    @abstractmethod
    def get_tokenizer(self) -> Any:
        """
        Get the tokenizer instance.

        Returns:
            Tokenizer exposing `get_vocab()`, `decode()` and `eos_token_id`
        """

    @abstractmethod
    def encode(self, text: str) -> List[int]:
        """Tokenize a prompt (special tokens included)."""

    @abstractmethod
    def forward(self, token_ids: Sequence[int]) -> Tensor:
        """
        Next-token logits for a full sequence.

        Args:
            token_ids: Prompt ids followed by every generated id so far

        Returns:
            Tensor: Logits of shape (vocab_size,)
        """

    @abstractmethod
    def get_model_info(self) -> Dict[str, Any]:
        """
        Get model metadata and information.

        Returns:
            Dict with at least `model_id`, `device` and `backend`
        """

    def reset(self) -> None:
        """Forget any per-sequence state (KV cache) before a new generation."""

    def generate(
        self,
        prompt: str,
        engine: Any,
        max_tokens: int = 200,
        sampler: Optional[Callable[[Tensor], Any]] = None,
    ) -> List[int]:
        """
        Generate token ids under a configured engine.

        Args:
            prompt: Input prompt
            engine: Configured StructuringEngine
            max_tokens: Maximum number of generated tokens
            sampler: Callable picking a token id from logits (greedy if None)

        Returns:
            List[int]: Generated token ids, control tokens excluded

        Example:
            ```python
            engine.configure({"type": "integer"})
            token_ids = backend.generate("A number:", engine, max_tokens=8)
            value = engine.get_structured_output()
            ```
        """
        if sampler is None:
            sampler = greedy_sampler

        self.reset()
        prompt_ids = list(self.encode(prompt))
        generated: List[int] = []

        while len(generated) < max_tokens:
            sequence = prompt_ids + generated
            logits = self.forward(sequence)
            logits = engine.process_logits(sequence, logits)
            token_ids = engine.sample(logits, sampler)

            if not token_ids:
                logger.debug("Sampler produced no token, stopping")
                break

            stop = False
            for token_id in token_ids:
                if token_id in engine.control_tokens:
                    stop = True
                    break
                generated.append(token_id)

            if stop:
                logger.debug(f"Control token after {len(generated)} tokens")
                break
            if engine.has_reached_accept_state and not engine.can_accept_more_input():
                logger.debug(f"Grammar complete after {len(generated)} tokens")
                break
        else:
            logger.warning(f"Reached max_tokens={max_tokens} before the grammar completed")

        return generated

    def __repr__(self) -> str:
        info = self.get_model_info()
        return (
            f"{self.__class__.__name__}("
            f"model={info.get('model_id', 'unknown')}, "
            f"device={info.get('device', 'unknown')})"
        )


class BackendFactory:
    """
    Factory for creating backend instances.

    Usage:
        ```python
        from structure_guard.backends import BackendFactory

        backend = BackendFactory.create("gpt2", device="mps")
        ```
    """

    @staticmethod
    def create(
        model_id: str,
        backend_type: str = "transformers",
        device: Optional[str] = None,
        **kwargs
    ) -> Backend:
        """
        Create a backend for a model.

        Args:
            model_id: Model identifier or path
            backend_type: Backend type (only "transformers" is built in)
            device: Device to use (None for auto-detect)
            **kwargs: Backend-specific options

        Returns:
            Backend: Initialized backend instance

        Raises:
            ValueError: If the backend type is unsupported
        """
        if backend_type == "transformers":
            from structure_guard.backends.transformers_backend import TransformersBackend
            return TransformersBackend(model_id, device=device, **kwargs)

        raise ValueError(f"Unsupported backend type: {backend_type}")

    @staticmethod
    def list_available_backends() -> List[str]:
        return ["transformers"]
