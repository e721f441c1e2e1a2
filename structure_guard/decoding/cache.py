"""
Vocabulary cache - build each tokenizer's vocabulary trie once per process.

Decoding every token id of a 50k-150k vocabulary and inserting it into the
trie takes a few seconds. Every engine over the same tokenizer needs the same
read-only vocabulary, so it is built once and shared.

Cache Keys:
    - Hash of the tokenizer's {token string: id} vocabulary
    - Same vocabulary = cache hit, whatever object it came from

Usage:
    ```python
    from structure_guard.decoding import get_vocabulary

    # First call builds the trie (slow)
    vocabulary = get_vocabulary(tokenizer)

    # Later calls return the same object (fast)
    vocabulary = get_vocabulary(tokenizer)
    ```
"""

import hashlib
import json
import logging
import threading
import time
from typing import Any, Dict, Optional

from structure_guard.core.trie import Vocabulary

logger = logging.getLogger(__name__)


class VocabularyCache:
    """
    Process-wide registry of built vocabularies.

    Lookups are lock-free; the lock is only taken while building, so two
    engines asking for the same new tokenizer build it once.
    """

    def __init__(self):
        self._vocabularies: Dict[str, Vocabulary] = {}
        self._lock = threading.Lock()
        self.metadata = {'hits': 0, 'misses': 0}

        logger.debug("VocabularyCache initialized")

    def get(self, tokenizer: Any) -> Vocabulary:
        """
        Return the vocabulary for a tokenizer, building it if needed.

        Args:
            tokenizer: HuggingFace-style tokenizer (`get_vocab`, `decode`)

        Returns:
            Vocabulary shared by every caller with the same vocabulary
        """
        cache_key = compute_cache_key(tokenizer)

        vocabulary = self._vocabularies.get(cache_key)
        if vocabulary is not None:
            self.metadata['hits'] += 1
            return vocabulary

        with self._lock:
            vocabulary = self._vocabularies.get(cache_key)
            if vocabulary is not None:
                self.metadata['hits'] += 1
                return vocabulary

            self.metadata['misses'] += 1
            start = time.time()
            vocabulary = Vocabulary.from_tokenizer(tokenizer)
            logger.info(
                f"Built vocabulary {cache_key[:8]}... "
                f"({len(vocabulary)} tokens in {time.time() - start:.2f}s)"
            )

            self._vocabularies[cache_key] = vocabulary
            return vocabulary

    def clear(self) -> None:
        """Forget every vocabulary."""
        with self._lock:
            self._vocabularies.clear()
        logger.debug("VocabularyCache cleared")

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dict with hit/miss counters and the number of vocabularies held
        """
        return {**self.metadata, 'vocabularies': len(self._vocabularies)}

    def __len__(self) -> int:
        return len(self._vocabularies)


def compute_cache_key(tokenizer: Any) -> str:
    """
    Compute a cache key from a tokenizer's vocabulary.

    Args:
        tokenizer: Tokenizer exposing `get_vocab()`

    Returns:
        str: SHA256 hash of the sorted vocabulary
    """
    vocab = tokenizer.get_vocab()
    vocab_str = json.dumps(sorted(vocab.items(), key=lambda item: item[1]), ensure_ascii=False)
    return hashlib.sha256(vocab_str.encode()).hexdigest()


# Global cache instance
_vocabulary_cache: Optional[VocabularyCache] = None
_vocabulary_cache_lock = threading.Lock()


def get_vocabulary_cache() -> VocabularyCache:
    """Get the process-wide vocabulary cache (creates it on first use)."""
    global _vocabulary_cache
    if _vocabulary_cache is None:
        with _vocabulary_cache_lock:
            if _vocabulary_cache is None:
                _vocabulary_cache = VocabularyCache()
    return _vocabulary_cache


def get_vocabulary(tokenizer: Any) -> Vocabulary:
    """Get the shared vocabulary for a tokenizer."""
    return get_vocabulary_cache().get(tokenizer)
