"""
HuggingFace Transformers backend.

Runs a causal LM one forward pass per generated token and keeps the model's
KV cache between passes, so each step only feeds the tokens added since the
previous call.

Features:
    - Auto model loading with device selection (mps, cuda, cpu)
    - Half precision on GPU, float32 on CPU
    - Incremental forward passes with past_key_values

Usage:
    ```python
    from structure_guard.backends import TransformersBackend

    backend = TransformersBackend("gpt2", device="cpu")
    logits = backend.forward(backend.encode("Hello"))
    ```
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import torch
from torch import Tensor
from transformers import AutoModelForCausalLM, AutoTokenizer

from structure_guard.backends.base import Backend

logger = logging.getLogger(__name__)


def get_optimal_device() -> str:
    """
    Pick the best available device.

    Priority: MPS (Apple Silicon), then CUDA, then CPU.
    """
    if torch.backends.mps.is_available():
        return "mps"
    if torch.cuda.is_available():
        return "cuda"
    return "cpu"


class TransformersBackend(Backend):
    """
    Backend for HuggingFace transformers models.

    Attributes:
        model_id: HuggingFace model identifier
        device: Device to run on (mps, cuda, cpu)
        model: Loaded AutoModelForCausalLM instance
        tokenizer: Loaded AutoTokenizer instance
        torch_dtype: Data type for model (float16 or float32)
    """

    def __init__(
        self,
        model_id: str,
        device: Optional[str] = None,
        torch_dtype: Optional[torch.dtype] = None,
        **kwargs
    ):
        """
        Initialize Transformers backend.

        Args:
            model_id: HuggingFace model identifier (e.g., "gpt2")
            device: Device to use ("mps", "cuda", "cpu", or None for auto)
            torch_dtype: PyTorch data type (None for auto: float16 on GPU, float32 on CPU)
            **kwargs: Additional arguments for model loading
        """
        self.model_id = model_id
        self.device = device or get_optimal_device()
        if torch_dtype is None:
            torch_dtype = torch.float16 if self.device in ("mps", "cuda") else torch.float32
        self.torch_dtype = torch_dtype

        logger.info(
            f"Initializing TransformersBackend: model={model_id}, "
            f"device={self.device}, dtype={self.torch_dtype}"
        )

        self.model = self._load_model(**kwargs)
        self.tokenizer = AutoTokenizer.from_pretrained(model_id)

        self._past_key_values: Any = None
        self._cached_ids: List[int] = []

    def _load_model(self, **kwargs) -> Any:
        load_kwargs = {
            'torch_dtype': self.torch_dtype,
            'low_cpu_mem_usage': True,
        }
        load_kwargs.update(kwargs)

        try:
            model = AutoModelForCausalLM.from_pretrained(self.model_id, **load_kwargs)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load model: {e}")
            raise

        model = model.to(torch.device(self.device))
        model.eval()
        logger.info(f"Model loaded on {self.device}")
        return model

    def get_tokenizer(self) -> Any:
        return self.tokenizer

    def encode(self, text: str) -> List[int]:
        return self.tokenizer.encode(text, add_special_tokens=True)

    def reset(self) -> None:
        self._past_key_values = None
        self._cached_ids = []

    @torch.inference_mode()
    def forward(self, token_ids: Sequence[int]) -> Tensor:
        """
        Next-token logits, reusing the KV cache when the sequence extends it.

        Args:
            token_ids: Full sequence (prompt and generated ids)

        Returns:
            Tensor: float32 logits of shape (vocab_size,)
        """
        token_ids = list(token_ids)
        cached = len(self._cached_ids)

        if self._past_key_values is not None and token_ids[:cached] == self._cached_ids and len(token_ids) > cached:
            new_ids = token_ids[cached:]
            past_key_values = self._past_key_values
        else:
            new_ids = token_ids
            past_key_values = None

        input_ids = torch.tensor([new_ids], dtype=torch.long, device=self.device)
        outputs = self.model(input_ids=input_ids, past_key_values=past_key_values, use_cache=True)

        self._past_key_values = outputs.past_key_values
        self._cached_ids = token_ids
        return outputs.logits[0, -1, :].float()

    def get_model_info(self) -> Dict[str, Any]:
        """
        Get model metadata.

        Returns:
            Dict with model information
        """
        info = {
            'model_id': self.model_id,
            'device': self.device,
            'dtype': str(self.torch_dtype),
            'backend': 'transformers',
            'vocab_size': len(self.tokenizer),
        }

        config = getattr(self.model, 'config', None)
        if config is not None:
            if hasattr(config, 'max_position_embeddings'):
                info['context_length'] = config.max_position_embeddings
            if hasattr(config, 'num_hidden_layers'):
                info['num_layers'] = config.num_hidden_layers

        return info

    def __repr__(self) -> str:
        return (
            f"TransformersBackend(model={self.model_id}, "
            f"device={self.device}, dtype={self.torch_dtype})"
        )
