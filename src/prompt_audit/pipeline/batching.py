"""Split prompts into provider-sized batches."""

from collections.abc import Sequence
import logging
import math

from prompt_audit.constants import CHARS_PER_TOKEN
from prompt_audit.core.types import Batch

log = logging.getLogger(__name__)


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per ``CHARS_PER_TOKEN`` characters, rounded up."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def plan_batches(
    prompts: Sequence[str],
    token_budget: int,
    *,
    max_prompts_per_batch: int | None = None,
) -> tuple[Batch, ...]:
    """Greedily pack prompts, in order, into batches within ``token_budget``.

    A prompt larger than the budget on its own gets a batch of its own
    rather than being split or dropped. The batches partition the input:
    concatenating them reproduces ``prompts`` exactly.

    Raises:
        ValueError: If ``token_budget`` or ``max_prompts_per_batch`` is < 1.
    """
    if token_budget < 1:
        raise ValueError(f"token_budget: must be >= 1, got {token_budget}")
    if max_prompts_per_batch is not None and max_prompts_per_batch < 1:
        raise ValueError(
            f"max_prompts_per_batch: must be >= 1, got {max_prompts_per_batch}"
        )

    groups: list[tuple[list[str], int]] = []
    current: list[str] = []
    current_tokens = 0
    for prompt in prompts:
        tokens = estimate_tokens(prompt)
        over_budget = current_tokens + tokens > token_budget
        over_count = (
            max_prompts_per_batch is not None and len(current) >= max_prompts_per_batch
        )
        if current and (over_budget or over_count):
            groups.append((current, current_tokens))
            current, current_tokens = [], 0
        if tokens > token_budget:
            log.debug(
                "Prompt of ~%d tokens exceeds budget %d; sending it alone",
                tokens,
                token_budget,
            )
        current.append(prompt)
        current_tokens += tokens
    if current:
        groups.append((current, current_tokens))

    total = len(groups)
    return tuple(
        Batch(prompts=tuple(group), index=i, total=total, estimated_tokens=tokens)
        for i, (group, tokens) in enumerate(groups)
    )
