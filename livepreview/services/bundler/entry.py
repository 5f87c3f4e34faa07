"""
File filtering and entry point detection

Filtering is key-based only. Content is looked at in exactly one place:
looks_like_valid_code(), a cheap first-character heuristic.
"""

import re
from typing import Dict, Mapping, Optional

from livepreview.core.config import settings
from livepreview.services.bundler.models import EntryInfo
from livepreview.services.bundler.paths import strip_prefix


# Files that typically contain mounting logic (createRoot/render) - used directly
BOOTSTRAP_FILES = (
    "main.tsx", "main.jsx", "main.ts", "main.js",
    "index.tsx", "index.jsx", "index.ts", "index.js",
)

# Root component files - need a synthetic wrapper to mount
COMPONENT_FILES = ("App.tsx", "App.jsx", "app.tsx", "app.jsx")

MOUNT_MARKERS = ("createRoot", "render", "ReactDOM")

# Extensions the backend can actually bundle
BUNDLEABLE_EXT = (".tsx", ".ts", ".jsx", ".js", ".css", ".json")

# Config/build files that are never bundled
SKIP_PATTERNS = (
    "vite.config", "tsconfig", "postcss.config", "tailwind.config",
    "next.config", "jest.config", "babel.config", "eslint",
    "package.json", "package-lock.json",
)

# Shell-command artifacts leaking out of the action parser
RESERVED_MARKER = "CDATA"

# import/export/const/..., comments, strings, template literals or JSX
_VALID_FIRST_CHAR = re.compile(r"[a-zA-Z\"'`/<]")


def looks_like_valid_code(content: str) -> bool:
    """
    Does the content plausibly start like JS/TS source?

    Only the first non-whitespace character is inspected. This accepts
    plenty of garbage that happens to start with a letter (false positives
    are fine: the compiler reports those) and rejects files that start with
    '!', '{', a digit or similar, which are almost always truncated or
    corrupt generations. Empty and whitespace-only content is rejected.
    """
    trimmed = content.lstrip()
    if not trimmed:
        return False
    return bool(_VALID_FIRST_CHAR.match(trimmed[0]))


def should_include_file(key: str) -> bool:
    """Key-based filter: is this path a bundling candidate at all?"""
    if "." not in key:
        return False

    if RESERVED_MARKER in key:
        return False

    if key.endswith((".html", ".htm")):
        return False

    lower = key.lower()
    if any(pattern in lower for pattern in SKIP_PATTERNS):
        return False

    return key.endswith(BUNDLEABLE_EXT)


def normalize_file_map(files: Mapping[str, str]) -> Dict[str, str]:
    """Filter and strip prefixes. Later keys win on collision."""
    result: Dict[str, str] = {}
    for key, value in files.items():
        if not should_include_file(key):
            continue
        result[strip_prefix(key)] = value
    return result


def _has_mount_call(content: str) -> bool:
    return any(marker in content for marker in MOUNT_MARKERS)


def detect_entry_point(files: Mapping[str, str]) -> Optional[EntryInfo]:
    """Pick the entry point from a normalized file map"""
    # 1. Bootstrap files mount the app themselves
    for candidate in BOOTSTRAP_FILES:
        content = files.get(candidate)
        if content is not None and looks_like_valid_code(content) and _has_mount_call(content):
            return EntryInfo(file=candidate, is_self_mounting=True)

    # 2. Root component files need the synthetic wrapper
    for candidate in COMPONENT_FILES:
        content = files.get(candidate)
        if content is not None and looks_like_valid_code(content):
            return EntryInfo(file=candidate, is_self_mounting=False)

    # 3. Fallback: first .tsx, then first .jsx, with valid-looking content
    for ext in (".tsx", ".jsx"):
        for key, content in files.items():
            if (
                key.endswith(ext)
                and "config" not in key
                and key != settings.PREVIEW_ENTRY_KEY
                and looks_like_valid_code(content)
            ):
                return EntryInfo(file=key, is_self_mounting=False)

    return None
