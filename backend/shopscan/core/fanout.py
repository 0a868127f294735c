"""
Concurrent fan-out to unreliable upstreams.

gather_settled() is the join primitive: every task gets its own timeout,
one failing task never cancels its siblings, and the caller receives one
Settled outcome per task and decides how to fold failures.
"""

import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from shopscan.core.errors import PreconditionViolation, ProductNotFoundError, SourceError
from shopscan.core.merger import merge_records
from shopscan.core.sources import SourceAdapter
from shopscan.schemas.products import CanonicalProduct, SourceRecord

logger = logging.getLogger(__name__)


@dataclass
class Settled:
    key: str
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def _run_one(
    key: str,
    factory: Callable[[], Awaitable[Any]],
    timeout: Optional[float],
    arrivals: List[str],
) -> Settled:
    try:
        value = await asyncio.wait_for(factory(), timeout=timeout)
        return Settled(key=key, value=value)
    except asyncio.TimeoutError:
        return Settled(key=key, error=SourceError(key, f"timed out after {timeout}s"))
    except Exception as e:
        return Settled(key=key, error=e)
    finally:
        arrivals.append(key)


async def gather_settled(
    factories: Dict[str, Callable[[], Awaitable[Any]]],
    per_task_timeout: Optional[float] = None,
    overall_deadline: Optional[float] = None,
) -> List[Settled]:
    """
    Run every factory concurrently and return outcomes in arrival order.
    Tasks still running at overall_deadline are cancelled and reported last
    as failures.
    """
    if not factories:
        return []

    arrivals: List[str] = []
    tasks = {
        key: asyncio.create_task(_run_one(key, factory, per_task_timeout, arrivals))
        for key, factory in factories.items()
    }

    done, pending = await asyncio.wait(tasks.values(), timeout=overall_deadline)
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    outcomes: List[Settled] = []
    for key in arrivals:
        task = tasks[key]
        if task in done:
            outcomes.append(task.result())
    for key, task in tasks.items():
        if task not in done:
            outcomes.append(Settled(key=key, error=SourceError(key, f"overall deadline of {overall_deadline}s exceeded")))
    return outcomes


def _default_priority(adapters: Sequence[SourceAdapter]) -> List[str]:
    return [a.source_tag for a in sorted(adapters, key=lambda a: (a.priority, a.source_tag))]


async def resolve_product(
    identifier: str,
    adapters: Sequence[SourceAdapter],
    source_priority: Optional[Sequence[str]] = None,
    per_source_timeout: float = 5.0,
    overall_deadline: Optional[float] = 8.0,
) -> CanonicalProduct:
    """
    Query every enabled adapter at once and merge whatever came back.

    Raises:
        ProductNotFoundError: no source produced a non-empty record
        PreconditionViolation: two adapters share a source_tag
    """
    enabled = [a for a in adapters if a.enabled]
    tags = [a.source_tag for a in enabled]
    if len(set(tags)) != len(tags):
        raise PreconditionViolation(f"Duplicate source tags: {tags}")

    if source_priority is None:
        source_priority = _default_priority(enabled)

    outcomes = await gather_settled(
        {a.source_tag: partial(a.query, identifier, per_source_timeout) for a in enabled},
        per_task_timeout=per_source_timeout,
        overall_deadline=overall_deadline,
    )

    records: List[SourceRecord] = []
    for outcome in outcomes:
        if not outcome.ok:
            logger.warning("Source %s failed for %s: %s", outcome.key, identifier, outcome.error)
            continue
        record = outcome.value
        if record is None or record.is_empty():
            logger.debug("Source %s has no entry for %s", outcome.key, identifier)
            continue
        records.append(record)

    if not records:
        raise ProductNotFoundError(identifier)

    logger.info("Resolved %s from %d/%d sources", identifier, len(records), len(enabled))
    return merge_records(records, source_priority)
