"""
Deadline supervisor.

Races an audit task against a timer. The first to settle decides the outcome:
- task first: the timer is dropped, cleanup runs, then the result (or the
  task's failure) is returned.
- timer first: the task is abandoned (cancelled, not awaited), cleanup runs
  under its own grace bound, and AuditTimeout is raised. Cleanup runs once
  more when the abandoned task finally settles, so a resource acquired late
  is still released.
"""
import asyncio
from typing import Awaitable, Callable, Optional, Set, TypeVar

from app.platform.exceptions import AuditError, AuditTaskError, AuditTimeout
from app.platform.logger import get_logger

logger = get_logger("deadline")

T = TypeVar("T")

Cleanup = Callable[[], Awaitable[None]]

# In-flight late cleanup tasks only, kept referenced until they finish; no audit
# state lives here and each entry removes itself when done
_pending_cleanups: Set["asyncio.Task[None]"] = set()


async def _run_cleanup(cleanup: Cleanup, grace_ms: Optional[int] = None) -> None:
    try:
        if grace_ms is None:
            await cleanup()
        else:
            await asyncio.wait_for(cleanup(), grace_ms / 1000)
    except asyncio.TimeoutError:
        logger.warning(f"Cleanup exceeded its {grace_ms}ms grace period")
    except Exception as e:
        logger.warning(f"Cleanup failed: {e}")


def _cleanup_when_settled(task: "asyncio.Future[T]", cleanup: Cleanup, grace_ms: int) -> None:
    def _on_done(settled: "asyncio.Future[T]") -> None:
        if not settled.cancelled() and settled.exception() is not None:
            logger.info(f"Abandoned audit task ended with: {settled.exception()}")
        late = asyncio.ensure_future(_run_cleanup(cleanup, grace_ms))
        _pending_cleanups.add(late)
        late.add_done_callback(_pending_cleanups.discard)

    task.add_done_callback(_on_done)


async def run_with_deadline(
    task: Callable[[], Awaitable[T]],
    deadline_ms: int,
    cleanup: Cleanup,
    grace_ms: int = 1000,
) -> T:
    """
    Run `task()` with a hard wall-clock bound of `deadline_ms`.

    `cleanup` must be idempotent; it is called at most twice.
    Returns within `deadline_ms + grace_ms` whatever the task does.

    Raises:
        AuditTimeout: the timer won the race
        AuditTaskError: the task failed (AuditError subclasses propagate as-is)
    """
    running = asyncio.ensure_future(task())

    try:
        done, _ = await asyncio.wait({running}, timeout=deadline_ms / 1000)
    except asyncio.CancelledError:
        # Caller went away; treat like abandonment
        running.cancel()
        _cleanup_when_settled(running, cleanup, grace_ms)
        raise

    if running in done:
        failed = running.cancelled() or running.exception() is not None
        # Success releases unbounded before returning; a failed task gets the grace bound
        await _run_cleanup(cleanup, grace_ms if failed else None)
        try:
            return running.result()
        except AuditError:
            raise
        except Exception as e:
            raise AuditTaskError(str(e) or e.__class__.__name__) from e

    logger.warning(f"Deadline of {deadline_ms}ms reached, abandoning audit task")
    running.cancel()
    _cleanup_when_settled(running, cleanup, grace_ms)
    await _run_cleanup(cleanup, grace_ms)
    raise AuditTimeout(deadline_ms)
