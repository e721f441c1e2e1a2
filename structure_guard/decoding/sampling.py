"""
Samplers - pick a token id from (masked) logits.

The engine takes any callable `sampler(logits) -> token id`, so these are
just the common ones. Masked positions hold -inf and get zero probability.

Usage:
    ```python
    from structure_guard.decoding import greedy_sampler, make_sampler

    token_ids = engine.sample(logits, greedy_sampler)

    sampler = make_sampler(temperature=0.7, top_p=0.9)
    token_ids = engine.sample(logits, sampler)
    ```
"""

from typing import Callable, Optional

import torch
import torch.nn.functional as F
from torch import Tensor


@torch.inference_mode()
def greedy_sampler(logits: Tensor) -> int:
    """Highest-scoring token."""
    return int(torch.argmax(logits.reshape(-1)).item())


def make_sampler(
    temperature: float = 1.0,
    top_k: int = 0,
    top_p: float = 1.0,
    generator: Optional[torch.Generator] = None,
) -> Callable[[Tensor], int]:
    """
    Build a temperature / top-k / top-p sampler.

    Args:
        temperature: Softmax temperature (0 means greedy)
        top_k: Keep only the k best tokens (0 disables)
        top_p: Keep the smallest set of tokens whose probability reaches top_p
        generator: torch.Generator for reproducible draws

    Returns:
        Callable mapping logits to a token id
    """
    if temperature < 0.0:
        raise ValueError(f"temperature must be non-negative, got {temperature}")
    if not 0.0 < top_p <= 1.0:
        raise ValueError(f"top_p must be in (0, 1], got {top_p}")

    @torch.inference_mode()
    def sample(logits: Tensor) -> int:
        logits = logits.reshape(-1).float()
        if temperature == 0.0 or not torch.isfinite(logits).any():
            return int(torch.argmax(logits).item())

        logits = logits / temperature
        if top_k > 0:
            k = min(top_k, logits.size(-1))
            kth_best = torch.topk(logits, k).values[-1]
            logits = logits.masked_fill(logits < kth_best, float('-inf'))

        if top_p < 1.0:
            sorted_logits, sorted_indices = torch.sort(logits, descending=True)
            cumulative = torch.cumsum(F.softmax(sorted_logits, dim=-1), dim=-1)
            # Drop tokens once the probability before them already reaches top_p
            drop = cumulative - F.softmax(sorted_logits, dim=-1) >= top_p
            logits = logits.clone()
            logits[sorted_indices[drop]] = float('-inf')

        probs = F.softmax(logits, dim=-1)
        return int(torch.multinomial(probs, num_samples=1, generator=generator).item())

    return sample
