"""
Ghost Fix - Automatic repair loop for preview build errors

Flow per round:
1. bundle() the working copy
2. classify the build errors (NO AI, regex)
3. keep the auto-fixable ones and dispatch a fix strategy for each
4. enqueue one retry task per fix:
   - deterministic fixes patch the file directly
   - directive fixes ask the repair collaborator for new file text
   each attempt re-bundles and succeeds once the error is gone
5. wait for the queue to drain, re-bundle, repeat while making progress

The caller's files are never mutated; the report carries the repaired copy.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from livepreview.core.config import settings
from livepreview.core.logging_config import generate_build_id, logger, set_build_id
from livepreview.services.bundler import bundle
from livepreview.services.bundler.models import BundleResult
from livepreview.services.bundler.paths import strip_prefix
from livepreview.services.ghost_fix.classifier import (
    ClassifiedError,
    ErrorClassifier,
    ErrorKind,
    classify,
    classify_many,
    error_classifier,
    is_auto_fixable,
    label,
)
from livepreview.services.ghost_fix.repair import FixAttempt, FixRequest, RepairClient
from livepreview.services.ghost_fix.retry_queue import (
    ERROR_TYPE_PRIORITY,
    RetryQueue,
    RetryStatus,
    RetryTask,
    create_ghost_fix_queue,
)
from livepreview.services.ghost_fix.strategies import FixResult, apply_strategy


@dataclass
class GhostFixReport:
    """Complete outcome of a ghost-fix run"""
    success: bool
    files: Dict[str, str]
    result: BundleResult
    rounds: int = 0

    classified: List[ClassifiedError] = field(default_factory=list)
    fixes: List[FixResult] = field(default_factory=list)
    tasks: List[RetryTask] = field(default_factory=list)

    total_time_ms: int = 0

    @property
    def fixed_files(self) -> List[str]:
        """Targets of the tasks that succeeded"""
        seen: List[str] = []
        for task in self.tasks:
            target = task.error.file
            if task.status == RetryStatus.SUCCEEDED and target and target not in seen:
                seen.append(target)
        return seen


def _existing_key(path: str, files: Mapping[str, str]) -> Optional[str]:
    if path in files:
        return path
    wanted = strip_prefix(path)
    match = None
    for key in files:
        if strip_prefix(key) == wanted:
            match = key  # last one wins, as in bundling
    return match


def find_target_file(error: ClassifiedError, files: Mapping[str, str]) -> Optional[str]:
    """Key in `files` the error points at (matched on normalized paths)"""
    if not error.file:
        return None
    return _existing_key(error.file, files)


def apply_reply_files(working: Dict[str, str], replies: Mapping[str, str]) -> List[str]:
    """
    Write every file of a repair reply into the working copy.

    A reply path that names an existing file (after prefix normalization)
    overwrites that key; anything else is added as a new file. Returns the
    keys written.
    """
    written: List[str] = []
    for path, content in replies.items():
        key = _existing_key(path, working) or path
        working[key] = content
        written.append(key)
    return written


class GhostFixEngine:
    """
    Drives bundle -> classify -> dispatch -> schedule -> re-bundle.

    Usage:
        engine = GhostFixEngine(repair_client=ClaudeRepairClient())
        report = await engine.run(files)

        if report.success:
            print(f"Fixed: {report.fixed_files}")
    """

    def __init__(
        self,
        repair_client: Optional[RepairClient] = None,
        queue: Optional[RetryQueue] = None,
        max_rounds: Optional[int] = None,
        min_confidence: Optional[float] = None,
    ):
        """
        Args:
            repair_client: AI collaborator for directive fixes. Defaults to the
                Claude adapter when ANTHROPIC_API_KEY is set; without one only
                deterministic fixes are attempted.
            queue: Retry queue to schedule attempts on (ghost-fix preset by default)
            max_rounds: Re-bundle rounds before giving up
            min_confidence: Auto-fix threshold override
        """
        if repair_client is None and settings.ANTHROPIC_API_KEY:
            from livepreview.utils.claude_client import ClaudeRepairClient
            repair_client = ClaudeRepairClient()

        self.repair_client = repair_client
        self.queue = queue or create_ghost_fix_queue()
        self.max_rounds = settings.GHOST_FIX_MAX_ROUNDS if max_rounds is None else max_rounds
        self.min_confidence = min_confidence

    async def run(self, files: Mapping[str, str]) -> GhostFixReport:
        start = time.time()
        set_build_id(generate_build_id())

        working: Dict[str, str] = dict(files)
        result = await bundle(working)
        report = GhostFixReport(success=result.success, files=working, result=result)

        while not result.success and report.rounds < self.max_rounds:
            report.rounds += 1
            classified = [
                c for c in classify_many(result.error_texts())
                if is_auto_fixable(c, self.min_confidence)
            ]
            report.classified.extend(classified)
            if not classified:
                logger.info("[GhostFix] No auto-fixable errors, stopping")
                break

            round_tasks = self._schedule(classified, working, report)
            if not round_tasks:
                logger.info("[GhostFix] Nothing could be scheduled, stopping")
                break

            await self.queue.wait_until_idle()
            result = await bundle(working)

            succeeded = sum(1 for t in round_tasks if t.status == RetryStatus.SUCCEEDED)
            logger.info(
                f"[GhostFix] Round {report.rounds}: {succeeded}/{len(round_tasks)} fix(es) succeeded, "
                f"build {'ok' if result.success else 'still failing'}"
            )
            if not succeeded:
                break

        report.result = result
        report.success = result.success
        report.total_time_ms = int((time.time() - start) * 1000)
        logger.log_build_event(
            "ghost-fix", report.success,
            entry_point=result.entry_point,
            error_count=len(result.errors),
            rounds=report.rounds,
        )
        return report

    def _schedule(
        self,
        classified: List[ClassifiedError],
        working: Dict[str, str],
        report: GhostFixReport,
    ) -> List[RetryTask]:
        tasks: List[RetryTask] = []
        for error in classified:
            target = find_target_file(error, working)
            if target is None:
                logger.debug(f"[GhostFix] No target file for: {error.message}")
                continue

            fix = apply_strategy(error, working[target])
            report.fixes.append(fix)
            if not fix.success:
                continue
            if fix.fixed_code is None and self.repair_client is None:
                logger.info(f"[GhostFix] Skipping AI fix (no repair client): {fix.description}")
                continue

            logger.log_fix_event(error.type.value, f"scheduled: {fix.description}", target)
            task = self.queue.enqueue(error, self._make_execute(error, target, working))
            tasks.append(task)
            report.tasks.append(task)
        return tasks

    def _make_execute(self, error: ClassifiedError, target: str, working: Dict[str, str]):
        attempts: List[FixAttempt] = []

        def record_failure() -> None:
            attempts.append(FixAttempt(error=error.message, attempt_number=len(attempts) + 1))

        async def execute() -> bool:
            # Re-dispatch against the current content: earlier tasks may have changed it
            current = working.get(target, "")
            fix = apply_strategy(error, current)
            if not fix.success:
                return False

            if fix.fixed_code is not None:
                replies: Optional[Dict[str, str]] = {target: fix.fixed_code}
            else:
                request = FixRequest(
                    ai_prompt=fix.ai_prompt or "",
                    target_file=target,
                    current_content=current,
                    error=error,
                    previous_attempts=list(attempts),
                    files=dict(working),
                )
                try:
                    replies = await self.repair_client.repair(request)
                except Exception:
                    record_failure()
                    raise

            replies = {path: content for path, content in (replies or {}).items() if content}
            if not replies:
                record_failure()
                return False

            written = apply_reply_files(working, replies)
            if target not in written:
                logger.info(f"[GhostFix] Reply left {target} unchanged, wrote {written}")
            check = await bundle(working)
            resolved = check.success or not any(error.message in text for text in check.error_texts())
            if not resolved:
                record_failure()
            return resolved

        return execute


__all__ = [
    "GhostFixEngine",
    "GhostFixReport",
    "find_target_file",
    "apply_reply_files",
    "FixAttempt",
    "FixRequest",
    "RepairClient",
    "ClassifiedError",
    "ErrorClassifier",
    "ErrorKind",
    "classify",
    "classify_many",
    "is_auto_fixable",
    "label",
    "error_classifier",
    "FixResult",
    "apply_strategy",
    "RetryQueue",
    "RetryStatus",
    "RetryTask",
    "ERROR_TYPE_PRIORITY",
    "create_ghost_fix_queue",
]
