"""
High-level generation: model + engine + validation in one call.

This is the class most users touch. It ties the components together:
    1. Load a model backend
    2. Configure a StructuringEngine with the requested structure
    3. Run the constrained decoding loop
    4. Reconstruct the structured value
    5. Validate it against the schema (keywords the grammar cannot enforce)

Usage:
    ```python
    from structure_guard import StructuredGenerator

    generator = StructuredGenerator(model="gpt2", device="cpu")

    result = generator.generate(
        prompt="Generate a user profile",
        structure={"type": "object", "properties": {"name": {"type": "string"}}},
    )

    print(result.output)
    print(result.value)
    ```
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import torch

from structure_guard.backends.base import Backend, BackendFactory
from structure_guard.decoding.sampling import greedy_sampler, make_sampler
from structure_guard.engine import StructuringEngine
from structure_guard.schema.pydantic_adapter import is_pydantic_model, pydantic_to_schema
from structure_guard.validation.validator import ValidationError, validate_value

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """
    Result of a generation.

    Attributes:
        output: Generated text
        value: Structured value (validated into output_type when given)
        is_valid: Whether the grammar accepted and the schema validated
        segments: (identifier, value) for every labelled part of the output
        latency_ms: Generation time in milliseconds
        tokens_generated: Number of tokens generated
        validation_errors: Schema violations (if invalid)
    """
    output: str
    value: Any
    is_valid: bool
    segments: List[Tuple[str, Any]] = field(default_factory=list)
    latency_ms: float = 0.0
    tokens_generated: int = 0
    validation_errors: List[ValidationError] = field(default_factory=list)


class StructuredGenerator:
    """
    Generate structured output from a language model.

    One engine is kept per generator and reconfigured for every call; the
    vocabulary trie is built once per tokenizer.

    Attributes:
        backend: Loaded backend
        engine: StructuringEngine over the backend's tokenizer
    """

    def __init__(
        self,
        model: Optional[str] = None,
        backend: Union[str, Backend] = "transformers",
        device: Optional[str] = None,
        multi_token_sampling: bool = False,
        max_resample_attempts: int = 5,
        token_healing: bool = True,
        **kwargs
    ):
        """
        Initialize the generator.

        Args:
            model: Model identifier (ignored when `backend` is an instance)
            backend: Backend type name or an already built Backend
            device: Device to use (None for auto-detect)
            multi_token_sampling: Emit forced continuations in the same step
            max_resample_attempts: Draws before the engine forces a token
            token_healing: Allow healing of partially consumed tokens
            **kwargs: Additional backend options

        Raises:
            ValueError: If neither a model nor a backend instance is given

        Example:
            ```python
            gen = StructuredGenerator("gpt2", device="mps", multi_token_sampling=True)
            ```
        """
        if isinstance(backend, Backend):
            self.backend = backend
        else:
            if model is None:
                raise ValueError("A model identifier is required when no backend instance is given")
            self.backend = BackendFactory.create(model, backend_type=backend, device=device, **kwargs)

        self.engine = StructuringEngine(
            self.backend.get_tokenizer(),
            multi_token_sampling=multi_token_sampling,
            max_resample_attempts=max_resample_attempts,
            token_healing=token_healing,
        )

        logger.info(f"StructuredGenerator ready: {self.backend!r}")

    def generate(
        self,
        prompt: str,
        structure: Any,
        output_type: Any = None,
        max_tokens: int = 200,
        temperature: float = 0.0,
        top_p: float = 1.0,
        top_k: int = 0,
        delimiters: Optional[Tuple[str, str]] = None,
        min_buffer_length: int = -1,
        raise_on_error: bool = False,
        seed: Optional[int] = None,
    ) -> GenerationResult:
        """
        Generate output that follows a structure.

        Args:
            prompt: Input prompt
            structure: JSON Schema dict, pydantic model, StateMachine, or a list of these
            output_type: Type to validate the value into (defaults to the
                pydantic model when `structure` is one)
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0 means greedy)
            top_p: Nucleus sampling parameter
            top_k: Top-k sampling parameter (0 disables)
            delimiters: Wrap the structure in (open, close) literals
            min_buffer_length: When >= 0, allow free text before the structure
            raise_on_error: Raise OutputParseError if the value does not fit output_type
            seed: Seed for reproducible sampling

        Returns:
            GenerationResult: Result with output and metadata

        Raises:
            GrammarConfigurationError: If the structure is malformed
            OutputParseError: On a type mismatch with raise_on_error set

        Example:
            ```python
            result = generator.generate("Create a user", User, temperature=0.7, seed=1)
            if result.is_valid:
                print(result.value.name)
            ```
        """
        start_time = time.time()

        if output_type is None and is_pydantic_model(structure):
            output_type = structure

        self.engine.configure(structure, delimiters=delimiters, min_buffer_length=min_buffer_length)
        sampler = self._make_sampler(temperature, top_p, top_k, seed)

        token_ids = self.backend.generate(prompt, self.engine, max_tokens=max_tokens, sampler=sampler)

        output = self.engine.get_output_text()
        accepted = self.engine.has_reached_accept_state
        if not accepted:
            logger.warning("Generation stopped before the structure was complete")

        value = self.engine.get_structured_output(output_type, raise_on_error=raise_on_error)
        segments = list(self.engine.get_stateful_structured_output())

        validation_errors: List[ValidationError] = []
        schema = self._json_schema(structure)
        if accepted and schema is not None:
            raw_value = self.engine.get_structured_output()
            validation_errors = validate_value(raw_value, schema, raw_output=output).errors
            if validation_errors:
                logger.warning(f"Output failed schema validation with {len(validation_errors)} error(s)")

        latency_ms = (time.time() - start_time) * 1000
        logger.info(f"Generated {len(token_ids)} tokens in {latency_ms:.0f}ms (accepted={accepted})")

        return GenerationResult(
            output=output,
            value=value,
            is_valid=accepted and not validation_errors,
            segments=segments,
            latency_ms=latency_ms,
            tokens_generated=len(token_ids),
            validation_errors=validation_errors,
        )

    def _make_sampler(self, temperature: float, top_p: float, top_k: int, seed: Optional[int]):
        if temperature == 0.0:
            return greedy_sampler

        generator = None
        if seed is not None:
            device = getattr(self.backend, "device", "cpu")
            generator = torch.Generator(device=device).manual_seed(seed)
        return make_sampler(temperature=temperature, top_k=top_k, top_p=top_p, generator=generator)

    @staticmethod
    def _json_schema(structure: Any) -> Optional[Dict[str, Any]]:
        if isinstance(structure, dict):
            return structure
        if is_pydantic_model(structure):
            return pydantic_to_schema(structure)
        return None

    def get_info(self) -> Dict[str, Any]:
        """Get generator information."""
        return {**self.backend.get_model_info(), **self.engine.get_stats()}

    def __repr__(self) -> str:
        return f"StructuredGenerator(backend={self.backend!r})"
