"""
Error Classifier - Fast rule-based error classification

NO AI - Pure regex patterns
Turns raw build/runtime error text into a typed diagnosis with location,
suggestion and confidence, for fix strategy selection.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Pattern, Tuple

from livepreview.core.config import settings
from livepreview.core.logging_config import logger


class ErrorKind(Enum):
    """Error categories for fix strategy selection"""
    SYNTAX = "syntax"                              # Parse errors, unbalanced brackets
    RUNTIME = "runtime"                            # RangeError, ReferenceError, ...
    TYPE_ERROR = "type-error"                      # TypeError, TS type mismatches
    IMPORT_MISSING = "import-missing"              # Unresolved modules / identifiers
    STYLE = "style"                                # CSS / Tailwind
    REACT_HOOK_VIOLATION = "react-hook-violation"  # Rules of hooks
    UNKNOWN = "unknown"                            # Needs AI analysis


@dataclass(frozen=True)
class ClassifiedError:
    """Classified error with metadata"""
    type: ErrorKind
    message: str
    original_error: str
    suggestion: str
    confidence: float  # 0-1

    # Extracted location
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None

    # Up to five lines of the raw text when it was multi-line
    context: Optional[str] = None


SuggestionFn = Callable[["re.Match[str]", str], str]


@dataclass(frozen=True)
class ErrorPattern:
    type: ErrorKind
    patterns: Tuple[Pattern[str], ...]
    suggestion: SuggestionFn
    confidence: float


def _group(match: "re.Match[str]", index: int) -> str:
    """Group text, or "" when the pattern has no such group / it didn't match"""
    if index > (match.re.groups or 0):
        return ""
    return match.group(index) or ""


def _compile(*patterns: str) -> Tuple[Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# =========================================================================
# Suggestion builders
# =========================================================================

def _import_suggestion(match, raw: str) -> str:
    return (
        f'Add or fix the import for "{_group(match, 1)}". '
        f"Check if the module is installed or if the path is correct."
    )


def _hook_suggestion(match, raw: str) -> str:
    hook = _group(match, 1)
    if hook:
        return (
            f'Move the "{hook}" hook call to the top level of the component. '
            f"Hooks cannot be called conditionally, inside loops, or in nested functions."
        )
    return (
        "Fix the hook ordering issue. Ensure all hooks are called unconditionally "
        "at the top level of the component, in the same order every render."
    )


def _type_suggestion(match, raw: str) -> str:
    if re.search(r"Cannot read propert", raw):
        return "Add a null/undefined check before accessing the property. Use optional chaining (?.) or a guard clause."
    if re.search(r"is not a function", raw):
        return f'"{_group(match, 1)}" is not a function. Check if it\'s imported correctly and is actually callable.'
    if re.search(r"is not defined", raw):
        return f'"{_group(match, 1)}" is not defined. Add the missing import or declaration.'
    if re.search(r"is not assignable to type", raw):
        return (
            f'Type mismatch: "{_group(match, 1)}" cannot be assigned to "{_group(match, 2)}". '
            f"Fix the type or add a type assertion."
        )
    if re.search(r"Property .+ does not exist", raw):
        return (
            f'Property "{_group(match, 1)}" does not exist on type "{_group(match, 2)}". '
            f"Check for typos or extend the type definition."
        )
    return f"Fix the type error: {match.group(0)}"


def _syntax_suggestion(match, raw: str) -> str:
    if re.search(r"Unexpected token", raw):
        return (
            f'Fix the syntax error near unexpected token "{_group(match, 1)}". '
            f"Check for missing brackets, parentheses, or operators."
        )
    if re.search(r"Unterminated string", raw):
        return "Close the unterminated string literal. Check for missing quotes."
    if re.search(r"Unexpected end of input", raw):
        return "The code ends unexpectedly. Check for missing closing brackets, braces, or parentheses."
    return f"Fix the syntax error: {match.group(0)}"


def _runtime_suggestion(match, raw: str) -> str:
    if re.search(r"Maximum call stack", raw):
        return (
            "Infinite recursion detected. Check for recursive calls without a proper "
            "base case, or circular useEffect dependencies."
        )
    if re.search(r"ReferenceError", raw):
        return f"Reference error: {_group(match, 1)}. Ensure the variable or function is declared and in scope."
    return f"Fix the runtime error: {match.group(0)}"


def _style_suggestion(match, raw: str) -> str:
    return (
        f'Fix the CSS/style issue with "{_group(match, 1)}". '
        f"Check for typos in the property name or value."
    )


# =========================================================================
# Pattern table - ordered, first match wins
# =========================================================================

ERROR_PATTERNS: Tuple[ErrorPattern, ...] = (
    ErrorPattern(
        type=ErrorKind.IMPORT_MISSING,
        patterns=_compile(
            r"Cannot find module ['\"]([^'\"]+)['\"]",
            r"Module not found.*['\"]([^'\"]+)['\"]",
            r"Failed to resolve import ['\"]([^'\"]+)['\"]",
            r"Could not resolve ['\"]([^'\"]+)['\"]",
            r"is not exported from ['\"]([^'\"]+)['\"]",
            r"does not provide an export named ['\"]([^'\"]+)['\"]",
        ),
        suggestion=_import_suggestion,
        confidence=0.95,
    ),
    ErrorPattern(
        type=ErrorKind.REACT_HOOK_VIOLATION,
        patterns=_compile(
            r"React Hook \"(\w+)\" is called conditionally",
            r"React Hook \"(\w+)\" is called in a function that is neither a React function "
            r"component nor a custom React Hook",
            r"Rendered more hooks than during the previous render",
            r"Rendered fewer hooks than expected",
            r"Invalid hook call",
            r"Hooks can only be called inside.*the body of a function component",
        ),
        suggestion=_hook_suggestion,
        confidence=0.98,
    ),
    ErrorPattern(
        type=ErrorKind.TYPE_ERROR,
        patterns=_compile(
            r"TypeError:\s*(.+)",
            r"Cannot read propert(?:y|ies) of (undefined|null)",
            r"(\w+) is not a function",
            r"(\w+) is not defined",
            r"Cannot assign to '(\w+)' because it is a read-only property",
            r"Type '([^']+)' is not assignable to type '([^']+)'",
            r"Property '(\w+)' does not exist on type '([^']+)'",
            r"Argument of type '([^']+)' is not assignable",
        ),
        suggestion=_type_suggestion,
        confidence=0.9,
    ),
    ErrorPattern(
        type=ErrorKind.SYNTAX,
        patterns=_compile(
            r"SyntaxError:\s*(.+)",
            r"Unexpected token\s*['\"]?(\S+)['\"]?",
            r"Unterminated string literal",
            r"Missing semicolon",
            r"Unexpected end of input",
            r"Expected\s+['\"]?(\S+)['\"]?\s+but\s+(?:found|got)\s+['\"]?(\S+)['\"]?",
            r"Parse error",
            r"Unexpected keyword '(\w+)'",
        ),
        suggestion=_syntax_suggestion,
        confidence=0.95,
    ),
    ErrorPattern(
        type=ErrorKind.RUNTIME,
        patterns=_compile(
            r"RangeError:\s*(.+)",
            r"Maximum call stack size exceeded",
            r"ReferenceError:\s*(.+)",
            r"URIError:\s*(.+)",
            r"InternalError:\s*(.+)",
            r"EvalError:\s*(.+)",
            r"Uncaught\s+(?:Error|Exception):\s*(.+)",
        ),
        suggestion=_runtime_suggestion,
        confidence=0.85,
    ),
    ErrorPattern(
        type=ErrorKind.STYLE,
        patterns=_compile(
            r"Unknown CSS property ['\"]([^'\"]+)['\"]",
            r"Invalid CSS value.*['\"]([^'\"]+)['\"]",
            r"CSSStyleDeclaration.*['\"]([^'\"]+)['\"]",
            r"Tailwind.*class.*['\"]([^'\"]+)['\"].*not found",
        ),
        suggestion=_style_suggestion,
        confidence=0.8,
    ),
)

UNKNOWN_CONFIDENCE = 0.3

AUTO_FIXABLE_TYPES = frozenset({
    ErrorKind.IMPORT_MISSING,
    ErrorKind.TYPE_ERROR,
    ErrorKind.SYNTAX,
    ErrorKind.REACT_HOOK_VIOLATION,
})

ERROR_LABELS = {
    ErrorKind.SYNTAX: "Syntax Error",
    ErrorKind.RUNTIME: "Runtime Error",
    ErrorKind.TYPE_ERROR: "Type Error",
    ErrorKind.IMPORT_MISSING: "Missing Import",
    ErrorKind.STYLE: "Style Error",
    ErrorKind.REACT_HOOK_VIOLATION: "React Hook Violation",
    ErrorKind.UNKNOWN: "Unknown Error",
}

# "at Component (App.tsx:14:5)" or "App.tsx:14:5"
_LOCATION = re.compile(r"(?:at\s+\w+\s+\()?([^\s()]+\.(?:tsx?|jsx?|css|mjs)):(\d+)(?::(\d+))?\)?")


class ErrorClassifier:
    """
    Fast rule-based error classifier.

    Patterns are ordered by specificity - first match wins.
    Classification never raises: unrecognized text lands in UNKNOWN.
    """

    def __init__(self, patterns: Tuple[ErrorPattern, ...] = ERROR_PATTERNS):
        self.patterns = patterns

    @staticmethod
    def extract_location(raw: str) -> Tuple[Optional[str], Optional[int], Optional[int]]:
        """(file, line, column) from the first location fragment in the text"""
        match = _LOCATION.search(raw)
        if not match:
            return None, None, None
        column = int(match.group(3)) if match.group(3) else None
        return match.group(1), int(match.group(2)), column

    @staticmethod
    def extract_context(raw: str) -> Optional[str]:
        lines = raw.split("\n")
        if len(lines) <= 1:
            return None
        return "\n".join(lines[:5])

    def classify(self, raw_error: str) -> ClassifiedError:
        trimmed = raw_error.strip()
        file, line, column = self.extract_location(trimmed)
        context = self.extract_context(trimmed)

        for entry in self.patterns:
            for regex in entry.patterns:
                match = regex.search(trimmed)
                if match:
                    return ClassifiedError(
                        type=entry.type,
                        message=match.group(0),
                        original_error=trimmed,
                        suggestion=entry.suggestion(match, trimmed),
                        confidence=entry.confidence,
                        file=file,
                        line=line,
                        column=column,
                        context=context,
                    )

        first_line = trimmed.split("\n")[0]
        logger.debug(f"[ErrorClassifier] Unrecognized error: {first_line[:100]}")
        return ClassifiedError(
            type=ErrorKind.UNKNOWN,
            message=first_line[:200],
            original_error=trimmed,
            suggestion=f'Analyze and fix the error: "{first_line[:100]}"',
            confidence=UNKNOWN_CONFIDENCE,
            file=file,
            line=line,
            column=column,
            context=context,
        )

    def classify_many(self, raw_errors: Iterable[str]) -> List[ClassifiedError]:
        """Deduplicate by (type, message), highest confidence first (stable)"""
        seen = set()
        results: List[ClassifiedError] = []
        for raw in raw_errors:
            classified = self.classify(raw)
            key = (classified.type, classified.message)
            if key in seen:
                continue
            seen.add(key)
            results.append(classified)
        return sorted(results, key=lambda c: c.confidence, reverse=True)

    @staticmethod
    def is_auto_fixable(classified: ClassifiedError, min_confidence: Optional[float] = None) -> bool:
        threshold = settings.GHOST_FIX_MIN_CONFIDENCE if min_confidence is None else min_confidence
        return classified.type in AUTO_FIXABLE_TYPES and classified.confidence >= threshold

    @staticmethod
    def label(kind: ErrorKind) -> str:
        return ERROR_LABELS[kind]


# Singleton instance
error_classifier = ErrorClassifier()


def classify(raw_error: str) -> ClassifiedError:
    return error_classifier.classify(raw_error)


def classify_many(raw_errors: Iterable[str]) -> List[ClassifiedError]:
    return error_classifier.classify_many(raw_errors)


def is_auto_fixable(classified: ClassifiedError, min_confidence: Optional[float] = None) -> bool:
    return ErrorClassifier.is_auto_fixable(classified, min_confidence)


def label(kind: ErrorKind) -> str:
    return ErrorClassifier.label(kind)
