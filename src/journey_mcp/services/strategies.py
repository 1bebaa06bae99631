"""Ordered fallback chains.

A chain is a list of named strategies tried in turn; the first one that
returns a usable (non-empty) value wins. Exceptions from a strategy are
logged and treated like an empty result.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Strategy(Generic[T]):
    """A named async step producing a value, or None/empty when it has nothing."""

    name: str
    run: Callable[[], Awaitable[T | None]]


def _is_usable(value) -> bool:
    if value is None:
        return False
    if isinstance(value, list | tuple | dict | str):
        return len(value) > 0
    return True


async def first_success(
    strategies: Sequence[Strategy[T]], *, label: str = "lookup"
) -> tuple[str, T] | None:
    """Run strategies in order and return (name, value) of the first usable result.

    Args:
        strategies: Steps to try, highest priority first
        label: Short description of what is being looked up, for logs

    Returns:
        (strategy name, value), or None when every strategy came up empty
    """
    for strategy in strategies:
        try:
            value = await strategy.run()
        except Exception as e:
            logger.warning(f"{label}: strategy '{strategy.name}' failed: {e}")
            continue

        if _is_usable(value):
            logger.debug(f"{label}: resolved by '{strategy.name}'")
            return strategy.name, value

        logger.debug(f"{label}: strategy '{strategy.name}' found nothing")
    return None
