"""Bounded worker pool for per-plugin units."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence

from pez.engine.outcome import PluginOutcome
from pez.errors import BatchError

logger = logging.getLogger(__name__)

Unit = tuple[str, Callable[[], PluginOutcome]]


async def run_batch(units: Sequence[Unit], jobs: int) -> list[PluginOutcome]:
    """Run every unit, at most ``jobs`` at a time.

    Each unit body is blocking (git, file copies) and runs in a worker
    thread. A failing unit never cancels its siblings: its exception is
    turned into a ``FAILED`` outcome once every unit has finished.

    Returns:
        One outcome per unit, in input order
    """
    semaphore = asyncio.Semaphore(max(1, jobs))

    async def _run(label: str, body: Callable[[], PluginOutcome]) -> PluginOutcome:
        async with semaphore:
            return await asyncio.to_thread(body)

    results = await asyncio.gather(*(_run(label, body) for label, body in units), return_exceptions=True)

    outcomes: list[PluginOutcome] = []
    for (label, _), result in zip(units, results):
        if isinstance(result, Exception):
            logger.error("%s: %s", label, result)
            outcomes.append(PluginOutcome.failed(label, result))
        elif isinstance(result, BaseException):
            raise result
        else:
            outcomes.append(result)
    return outcomes


def raise_for_failures(outcomes: list[PluginOutcome]) -> list[PluginOutcome]:
    """Raise :class:`BatchError` if any outcome failed, else return them."""
    if any(not o.ok for o in outcomes):
        raise BatchError(outcomes)
    return outcomes
