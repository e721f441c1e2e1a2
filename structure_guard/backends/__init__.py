"""
Model backends.

A backend supplies a tokenizer and a forward pass; `Backend.generate` runs the
constrained decoding loop over them.

Components:
    - base: Backend ABC with the generation loop, BackendFactory
    - transformers_backend: HuggingFace transformers causal LMs (cpu/cuda/mps)

Example:
    ```python
    from structure_guard.backends import TransformersBackend

    backend = TransformersBackend("gpt2", device="cpu")
    token_ids = backend.generate("Generate a user profile", engine, max_tokens=100)
    ```
"""

from structure_guard.backends.base import Backend, BackendFactory
from structure_guard.backends.transformers_backend import TransformersBackend, get_optimal_device

__all__ = [
    "Backend",
    "BackendFactory",
    "TransformersBackend",
    "get_optimal_device",
]
