"""
Path utilities for the virtual filesystem

Pure functions, no disk access. All source map keys are relative,
'/'-separated logical paths such as "components/Button.tsx".
"""

from typing import Mapping, Optional


# Stripped in this order, once each per pass
_PREFIXES = ("./", "/", "@/", "src/")

# Extension fallback order for resolve_in_map ("" = exact match)
EXTENSIONS = ("", ".tsx", ".ts", ".jsx", ".js", ".json")

# Asset extensions that can't be bundled as code; the first eight are images
ASSET_EXTENSIONS = (
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".avif", ".ico",
    ".mp4", ".webm", ".ogg", ".mp3", ".wav",
    ".woff", ".woff2", ".ttf", ".eot",
    ".pdf",
)
IMAGE_EXTENSIONS = ASSET_EXTENSIONS[:8]


def _strip_once(path: str) -> str:
    for prefix in _PREFIXES:
        if path.startswith(prefix):
            path = path[len(prefix):]
    return path


def strip_prefix(path: str) -> str:
    """
    Strip './', '/', '@/' and 'src/' so every key is relative
    (e.g. "src/App.tsx" -> "App.tsx").

    Repeats until nothing changes, so strip_prefix is idempotent even for
    inputs like "./src/./App.tsx".
    """
    while True:
        stripped = _strip_once(path)
        if stripped == path:
            return stripped
        path = stripped


def join_paths(base: str, relative: str) -> str:
    """Join a directory with a relative path, handling '..' without underflow"""
    parts = [p for p in base.split("/") if p] if base else []
    for seg in relative.split("/"):
        if seg == "..":
            if parts:
                parts.pop()
        elif seg not in (".", ""):
            parts.append(seg)
    return "/".join(parts)


def dir_of(file_path: str) -> str:
    """Directory part of a file path ("" for top-level files)"""
    idx = file_path.rfind("/")
    return file_path[:idx] if idx >= 0 else ""


def resolve_in_map(name: str, files: Mapping[str, str]) -> Optional[str]:
    """Find a key in the map, trying extension and /index fallbacks"""
    for ext in EXTENSIONS:
        key = name + ext
        if key in files:
            return key
    for ext in EXTENSIONS:
        if not ext:
            continue
        key = f"{name}/index{ext}"
        if key in files:
            return key
    return None


def get_loader(path: str) -> str:
    if path.endswith(".tsx"):
        return "tsx"
    if path.endswith(".ts"):
        return "ts"
    if path.endswith(".jsx"):
        return "jsx"
    if path.endswith(".css"):
        return "css"
    if path.endswith(".json"):
        return "json"
    return "js"


def is_bare_specifier(path: str) -> bool:
    """True for npm-style specifiers ("react", "@scope/pkg/sub")"""
    if path.startswith((".", "/", "@/")):
        return False
    if path.startswith("@") and "/" in path:
        return True
    return ":" not in path


def is_asset(path: str) -> bool:
    return path.lower().endswith(ASSET_EXTENSIONS)
