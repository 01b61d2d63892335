"""
Async helpers for the research pipeline.

- create_task_with_error_handling: fire-and-forget tasks whose failures are logged
- run_with_timeout: bounded await
- gather_settled: wait for every task and report each outcome, failures included
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Coroutine, Optional

logger = logging.getLogger(__name__)


@dataclass
class Outcome:
    """Settled result of one task: either a value or the error it raised."""
    name: str
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        logger.debug(f"Task '{task.get_name()}' was cancelled")
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Exception in task '{task.get_name()}': {error}", exc_info=error)


def create_task_with_error_handling(
    coro: Coroutine[Any, Any, Any],
    task_name: str = "background_task",
) -> asyncio.Task:
    """
    Schedule a coroutine without awaiting it.

    A bare asyncio.create_task() drops exceptions nobody retrieves; this
    attaches a callback that logs them.
    """
    task = asyncio.create_task(coro, name=task_name)
    task.add_done_callback(_log_task_failure)
    return task


async def run_with_timeout(
    coro: Coroutine[Any, Any, Any],
    timeout: Optional[float],
    task_name: str = "timed_task",
) -> Any:
    """
    Await a coroutine for at most `timeout` seconds (None waits indefinitely).

    Raises:
        asyncio.TimeoutError: If the deadline passes; the coroutine is cancelled
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Task '{task_name}' timed out after {timeout}s")
        raise


async def gather_settled(
    coros: dict[str, Coroutine[Any, Any, Any]],
    timeout: Optional[float] = None,
) -> list[Outcome]:
    """
    Run coroutines concurrently and wait for every one of them.

    No task's failure cancels the others. Each task may be bounded by
    `timeout`; a timed-out task settles with an asyncio.TimeoutError.

    Args:
        coros: Mapping of task name to coroutine
        timeout: Optional per-task timeout in seconds

    Returns:
        One Outcome per task, in the mapping's order
    """
    names = list(coros.keys())
    tasks = [run_with_timeout(coro, timeout, task_name=name) for name, coro in coros.items()]
    results = await asyncio.gather(*tasks, return_exceptions=True)

    outcomes = []
    for name, result in zip(names, results):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            logger.warning(f"Task '{name}' failed: {result!r}")
            outcomes.append(Outcome(name=name, error=result))
        else:
            outcomes.append(Outcome(name=name, value=result))

    return outcomes
