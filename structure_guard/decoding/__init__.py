"""
Decoding helpers around the engine.

Components:
    - cache: Process-wide vocabulary registry
    - logits_processor: HuggingFace LogitsProcessor adapter
    - sampling: Greedy and temperature/top-k/top-p samplers

Example:
    ```python
    from structure_guard.decoding import get_vocabulary, make_sampler

    vocabulary = get_vocabulary(tokenizer)
    sampler = make_sampler(temperature=0.7)
    ```
"""

from structure_guard.decoding.cache import (
    VocabularyCache,
    compute_cache_key,
    get_vocabulary,
    get_vocabulary_cache,
)
from structure_guard.decoding.logits_processor import StructuringLogitsProcessor
from structure_guard.decoding.sampling import greedy_sampler, make_sampler

__all__ = [
    "VocabularyCache",
    "compute_cache_key",
    "get_vocabulary",
    "get_vocabulary_cache",
    "StructuringLogitsProcessor",
    "greedy_sampler",
    "make_sampler",
]
