"""
Vocabulary Trie - token strings indexed by character for healing and masking.

Token boundaries rarely line up with grammar symbols. Given a valid
continuation such as `"name"`, the vocabulary may hold `"`, `"n`, `"name`,
`"name":` and so on. Masking needs every token that is a prefix of the
continuation or extends it, and healing needs to know whether a partially
consumed token is itself a token. Both are trie walks.

Layout:
    Nodes live in flat lists and are addressed by integer ids, so the trie
    is a handful of lists instead of a tree of objects:

    _children[node] -> {char: child node id}
    _values[node]   -> token ids whose string ends at this node (or None)

Usage:
    ```python
    from structure_guard.core import Vocabulary

    vocabulary = Vocabulary.from_tokenizer(tokenizer)

    # Tokens that fit a continuation
    legal = vocabulary.candidate_token_ids('"name"')

    # Is this partial token a real token?
    if '"na' in vocabulary:
        token_id = vocabulary.token_ids('"na')[0]
    ```
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class TokenTrie:
    """Character trie mapping token strings to token ids."""

    __slots__ = ("_children", "_values", "_size")

    def __init__(self):
        self._children: List[Dict[str, int]] = [dict()]
        self._values: List[Optional[List[int]]] = [None]
        self._size = 0

    def insert(self, token: str, token_id: int) -> None:
        node = 0
        for char in token:
            child = self._children[node].get(char)
            if child is None:
                child = len(self._children)
                self._children[node][char] = child
                self._children.append(dict())
                self._values.append(None)
            node = child

        if self._values[node] is None:
            self._values[node] = []
            self._size += 1
        if token_id not in self._values[node]:
            self._values[node].append(token_id)

    def _find(self, text: str) -> Optional[int]:
        node = 0
        for char in text:
            node = self._children[node].get(char)
            if node is None:
                return None
        return node

    def get(self, token: str) -> Optional[List[int]]:
        node = self._find(token)
        if node is None or self._values[node] is None:
            return None
        return list(self._values[node])

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and self.get(token) is not None

    def __len__(self) -> int:
        return self._size

    def prefixes_of(self, text: str) -> List[Tuple[str, List[int]]]:
        """Every token string that is a prefix of `text`, shortest first."""
        matches = []
        node = 0
        for index, char in enumerate(text):
            node = self._children[node].get(char)
            if node is None:
                break
            if self._values[node] is not None:
                matches.append((text[: index + 1], list(self._values[node])))
        return matches

    def with_prefix(self, prefix: str) -> List[Tuple[str, List[int]]]:
        """Every token string starting with `prefix` (including `prefix` itself)."""
        start = self._find(prefix)
        if start is None:
            return []
        return list(self._walk(start, prefix))

    def longest_prefix(self, text: str) -> Optional[Tuple[str, List[int]]]:
        matches = self.prefixes_of(text)
        return matches[-1] if matches else None

    def _walk(self, node: int, prefix: str) -> Iterator[Tuple[str, List[int]]]:
        stack = [(node, prefix)]
        while stack:
            node, text = stack.pop()
            if self._values[node] is not None:
                yield text, list(self._values[node])
            for char, child in self._children[node].items():
                stack.append((child, text + char))

    def items(self) -> Iterator[Tuple[str, List[int]]]:
        return self._walk(0, "")


class Vocabulary:
    """
    Read-only view of a tokenizer's vocabulary.

    Holds the decoded string of every token id and a trie from strings back
    to ids. Several ids may decode to the same string.

    Attributes:
        trie: TokenTrie over all token strings
    """

    def __init__(self, token_strings: Mapping[int, str]):
        self.trie = TokenTrie()
        self._strings: Dict[int, str] = {}
        self._by_first_char: Dict[str, Set[int]] = {}

        for token_id, text in token_strings.items():
            if not text:
                continue
            self._strings[int(token_id)] = text
            self.trie.insert(text, int(token_id))
            self._by_first_char.setdefault(text[0], set()).add(int(token_id))

        logger.debug(
            f"Vocabulary built: {len(self._strings)} token ids, "
            f"{len(self.trie)} distinct strings"
        )

    @classmethod
    def from_tokenizer(cls, tokenizer: Any) -> "Vocabulary":
        """
        Build a vocabulary from a HuggingFace-style tokenizer.

        Token ids come from `get_vocab()`; each id is decoded on its own so the
        stored string is the text the token actually produces. Special tokens
        (EOS, BOS, PAD, ...) are left out; the engine handles them as control
        tokens.
        """
        special_ids = set(getattr(tokenizer, "all_special_ids", None) or [])
        for attribute in ("eos_token_id", "bos_token_id", "pad_token_id", "unk_token_id"):
            token_id = getattr(tokenizer, attribute, None)
            if token_id is not None:
                special_ids.add(token_id)

        token_strings = {}
        for token_id in sorted(set(tokenizer.get_vocab().values())):
            if token_id in special_ids:
                continue
            token_strings[token_id] = tokenizer.decode([token_id])

        return cls(token_strings)

    @classmethod
    def from_strings(cls, token_strings: Mapping[str, int]) -> "Vocabulary":
        """Build a vocabulary from a {string: token_id} mapping."""
        return cls({token_id: text for text, token_id in token_strings.items()})

    def token_ids(self, text: str) -> List[int]:
        return self.trie.get(text) or []

    def token_string(self, token_id: int) -> Optional[str]:
        return self._strings.get(int(token_id))

    def __contains__(self, text: object) -> bool:
        return text in self.trie

    def __len__(self) -> int:
        return len(self._strings)

    def candidate_token_ids(self, continuation: str) -> Set[int]:
        """
        Token ids that fit a continuation.

        A token fits when its string is a prefix of the continuation or the
        continuation is a prefix of it.
        """
        if not continuation:
            return set()

        candidates: Set[int] = set()
        for _, token_ids in self.trie.prefixes_of(continuation):
            candidates.update(token_ids)
        for _, token_ids in self.trie.with_prefix(continuation):
            candidates.update(token_ids)
        return candidates

    def token_ids_starting_with(self, chars: Iterable[str]) -> Set[int]:
        """Token ids whose string starts with any of `chars`."""
        token_ids: Set[int] = set()
        for char in chars:
            token_ids |= self._by_first_char.get(char, set())
        return token_ids

    def tokenize(self, text: str) -> Optional[List[int]]:
        """
        Split text into tokens by greedy longest match.

        Returns None when some part of the text is not covered by any token.
        """
        token_ids = []
        position = 0
        while position < len(text):
            match = self.trie.longest_prefix(text[position:])
            if match is None:
                return None
            matched, ids = match
            token_ids.append(ids[0])
            position += len(matched)
        return token_ids
