"""Windowed batch execution over case numbers."""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from .analyzers import IssueAnalyzer
from .cache import ResultStore
from .config import ANALYSIS_CONCURRENCY, IMPORT_CONCURRENCY
from .exceptions import ConfigurationError
from .models import BatchEntry, BatchRun, Case, CaseAnalysis, FailedCase


logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def run_windowed(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    window_size: int,
) -> list[R]:
    """Run worker over items in fixed windows; window N finishes before N+1 starts.

    Results come back in input order. An exception from a worker propagates
    once its window has settled.
    """
    if window_size < 1:
        raise ValueError("window_size must be at least 1")
    items = list(items)
    results: list[R] = []
    for start in range(0, len(items), window_size):
        window = items[start:start + window_size]
        results.extend(await asyncio.gather(*[worker(item) for item in window]))
    return results


async def run_batch(
    case_numbers: list[str],
    worker: Callable[[str], Awaitable[Any]],
    *,
    existing: Callable[[str], Any] | None = None,
    concurrency_limit: int = ANALYSIS_CONCURRENCY,
    force: bool = False,
) -> BatchRun:
    """Partition case numbers into succeeded, failed and skipped.

    A case is skipped without calling the worker when `existing` returns a
    persisted result for it and `force` is off. Any other error from the
    worker marks that case failed; the batch carries on.
    """
    run = BatchRun(concurrency_limit=concurrency_limit)
    total = len(case_numbers)
    started = time.monotonic()

    async def process(indexed: tuple[int, str]) -> None:
        position, case_number = indexed
        try:
            if existing is not None and not force:
                persisted = existing(case_number)
                if persisted is not None:
                    logger.info("Skipping %s - result already exists", case_number)
                    run.skipped.append(BatchEntry(case_number=case_number, result=persisted))
                    return

            logger.info("[%d/%d] Processing case: %s", position, total, case_number)
            result = await worker(case_number)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error("Failed: %s - %s", case_number, e)
            run.failed.append(FailedCase(case_number=case_number, error=str(e)))
            return
        logger.info("Completed: %s", case_number)
        run.succeeded.append(BatchEntry(case_number=case_number, result=result))

    await run_windowed(enumerate(case_numbers, 1), process, concurrency_limit)
    run.duration_seconds = time.monotonic() - started
    return run


async def analyze_batch(
    case_numbers: list[str],
    fetch_case: Callable[[str], Awaitable[Case]],
    analyzer: IssueAnalyzer,
    store: ResultStore,
    *,
    concurrency_limit: int = ANALYSIS_CONCURRENCY,
    force: bool = False,
) -> BatchRun:
    """Fetch, persist and analyze each case, saving analysis_<case>.json."""

    async def analyze(case_number: str) -> CaseAnalysis:
        case = await fetch_case(case_number)
        store.save_case(case)
        analysis = await analyzer.analyze(case)
        store.save_analysis(analysis)
        return analysis

    return await run_batch(
        case_numbers,
        analyze,
        existing=store.load_analysis,
        concurrency_limit=concurrency_limit,
        force=force,
    )


async def import_batch(
    case_numbers: list[str],
    fetch_case: Callable[[str], Awaitable[Case]],
    store: ResultStore,
    *,
    concurrency_limit: int = IMPORT_CONCURRENCY,
    force: bool = False,
) -> BatchRun:
    """Fetch each case from the source of record into case_<case>.json."""

    async def fetch(case_number: str) -> Case:
        case = await fetch_case(case_number)
        store.save_case(case)
        return case

    return await run_batch(
        case_numbers,
        fetch,
        existing=store.load_case,
        concurrency_limit=concurrency_limit,
        force=force,
    )
