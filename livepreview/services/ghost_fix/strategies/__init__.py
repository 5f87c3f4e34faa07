"""Fix strategies for the ghost-fix loop"""

from typing import Callable, Dict

from livepreview.services.ghost_fix.classifier import ClassifiedError, ErrorKind
from livepreview.services.ghost_fix.strategies.deterministic import (
    FixResult,
    add_import,
    fix_missing_import,
)
from livepreview.services.ghost_fix.strategies.directives import (
    fix_hook_violation,
    fix_runtime,
    fix_style,
    fix_syntax,
    fix_type_error,
    fix_unknown,
    location_hint,
)


Strategy = Callable[[ClassifiedError, str], FixResult]

STRATEGY_MAP: Dict[ErrorKind, Strategy] = {
    ErrorKind.IMPORT_MISSING: fix_missing_import,
    ErrorKind.TYPE_ERROR: fix_type_error,
    ErrorKind.RUNTIME: fix_runtime,
    ErrorKind.SYNTAX: fix_syntax,
    ErrorKind.REACT_HOOK_VIOLATION: fix_hook_violation,
    ErrorKind.STYLE: fix_style,
    ErrorKind.UNKNOWN: fix_unknown,
}


def apply_strategy(error: ClassifiedError, source_code: str) -> FixResult:
    """Apply the fix strategy registered for the error's type"""
    return STRATEGY_MAP[error.type](error, source_code)


__all__ = [
    "FixResult",
    "Strategy",
    "STRATEGY_MAP",
    "apply_strategy",
    "add_import",
    "location_hint",
    "fix_missing_import",
    "fix_type_error",
    "fix_runtime",
    "fix_syntax",
    "fix_hook_violation",
    "fix_style",
    "fix_unknown",
]
