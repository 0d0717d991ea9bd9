from __future__ import annotations

import asyncio
import inspect
from typing import Awaitable, TypeVar

import structlog

from mealgen.core.engine.engine import ProgressEngine

log = structlog.get_logger()

T = TypeVar("T")


async def run_with_progress(engine: ProgressEngine, work: Awaitable[T]) -> T:
    """
    Run the real generation call alongside the simulated progress.

    - the engine is (re)started before awaiting `work`
    - if `work` raises or is cancelled, the engine is cancelled (no resolution)
      and the error propagates
    - on success the result is returned and the engine keeps playing its
      stages to their own completion
    - if the engine refuses to start, `work` is closed unawaited and the error propagates
    """
    try:
        engine.start()
    except Exception:
        if inspect.iscoroutine(work):
            work.close()
        raise

    try:
        result = await work
    except asyncio.CancelledError:
        engine.cancel()
        log.info("generation.work_cancelled")
        raise
    except Exception as exc:
        engine.cancel()
        log.warning("generation.work_failed", error_type=type(exc).__name__, error_message=str(exc))
        raise

    log.info("generation.work_finished", engine_status=engine.status)
    return result
