"""
Custom Exceptions for livepreview
=================================

Use these instead of generic Exception to:
1. Make errors more specific and debuggable
2. Let the bundler translate backend failures into BundleResult errors
3. Keep the ghost-fix loop's failure reasons observable

Usage:
    from livepreview.core.exceptions import BuildFailure

    raise BuildFailure([BundleError(text="Unexpected token }")])

The bundler never lets these escape its boundary; they are converted into
BundleError entries. The retry queue records them on the task.
"""

from typing import Optional, Any, Dict, List


class LivePreviewError(Exception):
    """Base exception for all livepreview errors"""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Bundler Errors
# ============================================

class BackendInitError(LivePreviewError):
    """Compilation backend could not be initialized"""

    def __init__(self, message: str = "Compilation backend failed to initialize"):
        super().__init__(message, code="BACKEND_INIT_FAILED")


class BuildFailure(LivePreviewError):
    """
    Compilation failed with one or more structured messages.

    `errors` is a list of objects with `text` and an optional `location`
    (file, line, column), the same shape the bundler reports.
    """

    def __init__(self, errors: List[Any]):
        self.errors = list(errors)
        first = self.errors[0].text if self.errors else "Build failed"
        super().__init__(
            first if len(self.errors) <= 1 else f"{first} (+{len(self.errors) - 1} more)",
            code="BUILD_FAILED",
            details={"error_count": len(self.errors)}
        )


class ModuleLoadError(LivePreviewError):
    """A resolved virtual module had no content"""

    def __init__(self, path: str):
        super().__init__(
            f"File not found: {path}",
            code="MODULE_NOT_FOUND",
            details={"path": path}
        )


# ============================================
# Ghost Fix Errors
# ============================================

class RepairError(LivePreviewError):
    """The AI repair collaborator failed or returned nothing usable"""

    def __init__(self, message: str, target_file: Optional[str] = None):
        super().__init__(
            message,
            code="REPAIR_FAILED",
            details={"target_file": target_file} if target_file else {}
        )


class QueueError(LivePreviewError):
    """Retry queue misuse (e.g. enqueue outside a running event loop)"""

    def __init__(self, message: str):
        super().__init__(message, code="QUEUE_ERROR")
