"""
Retry Queue - Priority scheduler with exponential backoff for fix attempts

Each fix attempt is wrapped in a RetryTask. Tasks run on the asyncio event
loop, highest priority first, at most `concurrency` at a time. A task whose
execute() returns False (or raises) waits out a jittered, growing delay and
is retried until max_attempts is reached.

State machine:
    pending -> in-progress -> succeeded | waiting | failed
    waiting -> pending                (backoff timer)
    pending | waiting -> cancelled    (cancel)
    failed | cancelled -> pending     (manual retry, resets attempts/delay)

All mutation happens on the loop thread, so no locks.
"""

import asyncio
import itertools
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from livepreview.core.config import settings
from livepreview.core.exceptions import QueueError
from livepreview.core.logging_config import logger
from livepreview.services.ghost_fix.classifier import ClassifiedError, ErrorKind


class RetryStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = (RetryStatus.SUCCEEDED, RetryStatus.FAILED, RetryStatus.CANCELLED)

# Higher number = attempted first
ERROR_TYPE_PRIORITY: Dict[ErrorKind, int] = {
    ErrorKind.IMPORT_MISSING: 90,
    ErrorKind.SYNTAX: 85,
    ErrorKind.TYPE_ERROR: 75,
    ErrorKind.REACT_HOOK_VIOLATION: 70,
    ErrorKind.RUNTIME: 60,
    ErrorKind.STYLE: 40,
    ErrorKind.UNKNOWN: 20,
}
DEFAULT_PRIORITY = 20

# Ghost-fix preset (seconds)
GHOST_FIX_QUEUE_PRESET: Dict[str, Any] = {
    "base_delay": 1.5,
    "max_delay": 20.0,
    "backoff_multiplier": 2.0,
    "max_attempts": 3,
    "concurrency": 1,
    "jitter": 0.15,
}

SUCCESS_RESULT = "Fix applied successfully"
NOT_RESOLVED_RESULT = "Fix did not resolve the error"

ExecuteFn = Callable[[], Awaitable[bool]]

_task_counter = itertools.count(1)


def generate_task_id() -> str:
    return f"ghost-fix-{int(time.time() * 1000)}-{next(_task_counter)}"


@dataclass(eq=False)
class RetryTask:
    """A fix attempt tracked by the queue"""
    id: str
    error: ClassifiedError
    execute: ExecuteFn
    max_attempts: int
    current_delay: float
    priority: int
    status: RetryStatus = RetryStatus.PENDING
    attempts: int = 0
    created_at: float = field(default_factory=time.monotonic)
    # Enqueue order, breaks created_at ties
    sequence: int = 0

    last_attempt_at: Optional[float] = None
    next_retry_at: Optional[float] = None
    # Delay actually used for the most recent backoff
    last_delay: Optional[float] = None
    last_result: Optional[str] = None
    last_exception: Optional[BaseException] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class RetryQueue:
    """
    Priority retry queue with jittered exponential backoff.

    Usage:
        queue = create_ghost_fix_queue()
        queue.on_queue_drained = lambda: print("done")
        task = queue.enqueue(classified_error, attempt_fix)
        await queue.wait_until_idle()

    Times are seconds. Defaults come from settings (RETRY_*).
    """

    def __init__(
        self,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        backoff_multiplier: Optional[float] = None,
        max_attempts: Optional[int] = None,
        concurrency: Optional[int] = None,
        jitter: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ):
        self.base_delay = settings.RETRY_BASE_DELAY if base_delay is None else base_delay
        self.max_delay = settings.RETRY_MAX_DELAY if max_delay is None else max_delay
        self.backoff_multiplier = (
            settings.RETRY_BACKOFF_MULTIPLIER if backoff_multiplier is None else backoff_multiplier
        )
        self.max_attempts = settings.RETRY_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.concurrency = settings.RETRY_CONCURRENCY if concurrency is None else concurrency
        self.jitter = settings.RETRY_JITTER if jitter is None else jitter

        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if not 0 <= self.jitter <= 1:
            raise ValueError("jitter must be between 0 and 1")

        self._rng = rng or random.Random()
        self._tasks: Dict[str, RetryTask] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._running: Dict[str, "asyncio.Task[None]"] = {}
        self._idle_waiters: List["asyncio.Future[None]"] = []
        self._sequence = itertools.count(1)
        self._active = 0
        self._processing = False
        self._had_work = False

        # Observers
        self.on_status_change: Optional[Callable[[RetryTask], None]] = None
        self.on_queue_drained: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def enqueue(
        self,
        error: ClassifiedError,
        execute: ExecuteFn,
        max_attempts: Optional[int] = None,
        priority: Optional[int] = None,
    ) -> RetryTask:
        """Add a fix task and start it right away if there's capacity"""
        self._require_loop("enqueue")

        task = RetryTask(
            id=generate_task_id(),
            error=error,
            execute=execute,
            max_attempts=self.max_attempts if max_attempts is None else max_attempts,
            current_delay=self.base_delay,
            priority=(
                priority if priority is not None
                else ERROR_TYPE_PRIORITY.get(error.type, DEFAULT_PRIORITY)
            ),
            sequence=next(self._sequence),
        )
        self._tasks[task.id] = task
        self._had_work = True
        logger.debug(f"[RetryQueue] Enqueued {task.id} ({error.type.value}, priority={task.priority})")

        self._notify(task)
        self._process()
        return task

    def cancel(self, task_id: str) -> bool:
        """Cancel a pending or waiting task. In-progress tasks can't be cancelled."""
        task = self._tasks.get(task_id)
        if task is None or task.status not in (RetryStatus.PENDING, RetryStatus.WAITING):
            return False

        task.status = RetryStatus.CANCELLED
        self._clear_timer(task_id)
        self._notify(task)
        self._check_drained()
        return True

    def cancel_all(self) -> int:
        """Cancel every pending/waiting task; returns how many were cancelled"""
        cancelled = 0
        for task in list(self._tasks.values()):
            if task.status in (RetryStatus.PENDING, RetryStatus.WAITING):
                task.status = RetryStatus.CANCELLED
                cancelled += 1
                self._notify(task)
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

        if cancelled:
            logger.info(f"[RetryQueue] Cancelled {cancelled} task(s)")
        self._check_drained()
        return cancelled

    def retry(self, task_id: str) -> bool:
        """Manually re-run a failed or cancelled task from scratch"""
        task = self._tasks.get(task_id)
        if task is None or task.status not in (RetryStatus.FAILED, RetryStatus.CANCELLED):
            return False

        self._require_loop("retry")
        task.status = RetryStatus.PENDING
        task.attempts = 0
        task.current_delay = self.base_delay
        task.next_retry_at = None
        self._had_work = True

        self._notify(task)
        self._process()
        return True

    def get_task(self, task_id: str) -> Optional[RetryTask]:
        return self._tasks.get(task_id)

    def get_tasks(self, status: Optional[RetryStatus] = None) -> List[RetryTask]:
        tasks = list(self._tasks.values())
        if status is not None:
            return [t for t in tasks if t.status == status]
        return tasks

    def get_stats(self) -> Dict[str, int]:
        stats = {"total": len(self._tasks)}
        for status in RetryStatus:
            stats[status.name.lower()] = 0
        for task in self._tasks.values():
            stats[task.status.name.lower()] += 1
        return stats

    def is_idle(self) -> bool:
        """No task running, pending or waiting"""
        return self._active == 0 and not any(
            t.status in (RetryStatus.PENDING, RetryStatus.WAITING) for t in self._tasks.values()
        )

    def prune(self) -> int:
        """Drop succeeded/failed/cancelled tasks; returns how many were removed"""
        finished = [task_id for task_id, task in self._tasks.items() if task.is_terminal]
        for task_id in finished:
            del self._tasks[task_id]
        return len(finished)

    async def wait_until_idle(self, timeout: Optional[float] = None) -> None:
        """Wait until nothing is running, pending or waiting"""
        if self.is_idle():
            return
        waiter = asyncio.get_running_loop().create_future()
        self._idle_waiters.append(waiter)
        if timeout is None:
            await waiter
        else:
            await asyncio.wait_for(waiter, timeout)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    @staticmethod
    def _require_loop(operation: str) -> asyncio.AbstractEventLoop:
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            raise QueueError(f"{operation}() must be called from a running event loop") from None

    def _next_pending(self) -> Optional[RetryTask]:
        pending = [t for t in self._tasks.values() if t.status == RetryStatus.PENDING]
        if not pending:
            return None
        # Highest priority, then oldest, then first enqueued
        return min(pending, key=lambda t: (-t.priority, t.created_at, t.sequence))

    def _process(self) -> None:
        if self._processing:
            return
        self._processing = True
        try:
            while self._active < self.concurrency:
                task = self._next_pending()
                if task is None:
                    break
                self._start(task)
        finally:
            self._processing = False
        self._check_drained()

    def _start(self, task: RetryTask) -> None:
        task.status = RetryStatus.IN_PROGRESS
        task.attempts += 1
        task.last_attempt_at = time.monotonic()
        self._active += 1
        self._notify(task)

        loop = asyncio.get_running_loop()
        self._running[task.id] = loop.create_task(self._run(task))

    async def _run(self, task: RetryTask) -> None:
        cancelled = False
        try:
            try:
                ok = await task.execute()
            except asyncio.CancelledError:
                cancelled = True
                task.status = RetryStatus.CANCELLED
                task.last_result = "Fix cancelled while running"
                self._notify(task)
                raise
            except Exception as e:
                self._handle_failure(task, f"Fix raised {type(e).__name__}: {e}", e)
            else:
                if ok:
                    task.status = RetryStatus.SUCCEEDED
                    task.last_result = SUCCESS_RESULT
                    task.last_exception = None
                    logger.log_fix_event(
                        task.error.type.value, f"succeeded after {task.attempts} attempt(s)",
                        task.error.file,
                    )
                    self._notify(task)
                else:
                    self._handle_failure(task, NOT_RESOLVED_RESULT)
        finally:
            self._active -= 1
            self._running.pop(task.id, None)
            if cancelled:
                # Still unwinding the cancellation; start the next task on the next tick
                asyncio.get_running_loop().call_soon(self._process)
            else:
                self._process()

    def _handle_failure(self, task: RetryTask, reason: str, exc: Optional[BaseException] = None) -> None:
        task.last_result = reason
        task.last_exception = exc

        if task.attempts >= task.max_attempts:
            task.status = RetryStatus.FAILED
            logger.log_fix_event(
                task.error.type.value, f"gave up after {task.attempts} attempt(s): {reason}",
                task.error.file,
            )
            self._notify(task)
            return

        spread = self.jitter * task.current_delay
        delay = task.current_delay + self._rng.uniform(-spread, spread)
        delay = max(0.0, min(delay, self.max_delay))

        task.status = RetryStatus.WAITING
        task.last_delay = delay
        task.next_retry_at = time.monotonic() + delay
        task.current_delay = min(task.current_delay * self.backoff_multiplier, self.max_delay)
        logger.debug(
            f"[RetryQueue] {task.id} attempt {task.attempts}/{task.max_attempts} failed, "
            f"retrying in {delay:.2f}s"
        )
        self._notify(task)

        loop = asyncio.get_running_loop()
        self._timers[task.id] = loop.call_later(delay, self._on_timer, task.id)

    def _on_timer(self, task_id: str) -> None:
        self._timers.pop(task_id, None)
        task = self._tasks.get(task_id)
        if task is not None and task.status == RetryStatus.WAITING:
            task.status = RetryStatus.PENDING
            self._notify(task)
            self._process()

    def _clear_timer(self, task_id: str) -> None:
        handle = self._timers.pop(task_id, None)
        if handle is not None:
            handle.cancel()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def _notify(self, task: RetryTask) -> None:
        if self.on_status_change is None:
            return
        try:
            self.on_status_change(task)
        except Exception as e:
            logger.log_error_with_context(e, context="RetryQueue.on_status_change", task_id=task.id)

    def _check_drained(self) -> None:
        if not self.is_idle():
            return

        waiters, self._idle_waiters = self._idle_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

        if not self._had_work:
            return
        self._had_work = False
        logger.debug(f"[RetryQueue] Drained: {self.get_stats()}")
        if self.on_queue_drained is None:
            return
        try:
            self.on_queue_drained()
        except Exception as e:
            logger.log_error_with_context(e, context="RetryQueue.on_queue_drained")


def create_ghost_fix_queue(**overrides: Any) -> RetryQueue:
    """Retry queue pre-configured for the ghost-fix loop"""
    options = dict(GHOST_FIX_QUEUE_PRESET)
    options.update(overrides)
    return RetryQueue(**options)
