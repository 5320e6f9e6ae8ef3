# netbridge/utils/async_helpers.py
"""Background work the API starts but never awaits."""

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


def _report_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        logger.info(f"[Background] {task.get_name()} cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"[Background] {task.get_name()} failed: {exc!r}", exc_info=exc)


def run_in_background(coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
    """
    Schedule `coro` on the running loop without awaiting it.

    Nothing observes the result, so a failure would otherwise only show up
    as "Task exception was never retrieved" at garbage collection. The done
    callback retrieves it and logs it under `name` instead.
    """
    task = asyncio.create_task(coro, name=name)
    task.add_done_callback(_report_failure)
    return task
