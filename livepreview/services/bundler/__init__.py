"""
Bundler - Turns an in-memory file map into a runnable preview bundle

Pipeline:
1. Filter + normalize keys (entry.normalize_file_map)
2. Detect the entry point, wrapping root components in a synthetic entry
3. Drop files whose content can't be code (CSS/JSON exempt)
4. Build through the shared compilation backend with the virtual FS plugin
5. Append stylesheets the build didn't pull in

bundle() never raises: every failure comes back as BundleResult errors.
"""

import time
from typing import Dict, Mapping

from livepreview.core.config import settings
from livepreview.core.exceptions import BackendInitError, BuildFailure
from livepreview.core.logging_config import logger
from livepreview.services.bundler.backend import (
    CompilerBackend,
    ResolverPlugin,
    ensure_initialized,
    get_backend,
    is_initialized,
    set_backend,
)
from livepreview.services.bundler.entry import (
    detect_entry_point,
    looks_like_valid_code,
    normalize_file_map,
    should_include_file,
)
from livepreview.services.bundler.models import (
    BuildOutput,
    BundleError,
    BundleResult,
    EntryInfo,
    SourceLocation,
    SourceMap,
)
from livepreview.services.bundler.paths import join_paths, resolve_in_map, strip_prefix
from livepreview.services.bundler.plugin import VirtualFSPlugin
from livepreview.services.bundler.wrapper import render_wrapper


# Leading chars of a stylesheet used to tell whether the build already has it
CSS_PROBE_LENGTH = 50


def _to_bundle_error(message) -> BundleError:
    """Coerce a backend message (BundleError or look-alike) into a BundleError"""
    if isinstance(message, BundleError):
        return message
    location = getattr(message, "location", None)
    if location is not None and not isinstance(location, SourceLocation):
        location = SourceLocation(
            file=getattr(location, "file", ""),
            line=getattr(location, "line", 0),
            column=getattr(location, "column", 0),
        )
    return BundleError(text=str(getattr(message, "text", message)), location=location)


def _split_output(output: BuildOutput):
    js_code = ""
    css_code = ""
    for out in output.output_files:
        if out.path.endswith(".css"):
            css_code += out.text
        else:
            js_code += out.text
    return js_code, css_code


async def bundle(files: Mapping[str, str]) -> BundleResult:
    """
    Bundle a logical-path -> source map for the preview surface.

    The caller's mapping is never mutated.
    """
    if not files:
        return BundleResult.failure([BundleError(text="No files to bundle")])

    normalized = normalize_file_map(files)
    if not normalized:
        return BundleResult.failure([BundleError(text="No bundleable code files found")])

    entry = detect_entry_point(normalized)
    if entry is None:
        available = ", ".join(normalized)
        logger.warning(f"[Bundler] No entry point among: {available}")
        return BundleResult.failure(
            [BundleError(text=f"No entry point found. Available files: {available}")]
        )

    start = time.time()
    externals = []
    try:
        backend = await ensure_initialized()

        # Garbage content (e.g. a file starting with "!") would fail the whole
        # build as soon as anything imports it
        build_files: Dict[str, str] = {
            key: content
            for key, content in normalized.items()
            if key.endswith((".css", ".json")) or looks_like_valid_code(content)
        }

        if entry.is_self_mounting:
            entry_point = entry.file
        else:
            entry_point = settings.PREVIEW_ENTRY_KEY
            build_files[entry_point] = render_wrapper(entry.file)

        plugin = VirtualFSPlugin(build_files)
        externals = plugin.externals
        output = await backend.build(entry_point, plugin)

    except BuildFailure as e:
        errors = [_to_bundle_error(m) for m in e.errors] or [BundleError(text=e.message)]
        logger.log_build_event("compile", False, entry_point=entry.file, error_count=len(errors))
        return BundleResult.failure(errors, entry_point=entry.file, externals=externals)

    except BackendInitError as e:
        return BundleResult.failure(
            [BundleError(text=e.message)], entry_point=entry.file, externals=externals
        )

    except Exception as e:
        logger.log_error_with_context(e, context="bundle")
        return BundleResult.failure(
            [BundleError(text=str(e) or type(e).__name__)],
            entry_point=entry.file,
            externals=externals,
        )

    js_code, css_code = _split_output(output)

    # Inject standalone CSS that wasn't imported
    for key, content in normalized.items():
        if key.endswith(".css") and content and content.strip()[:CSS_PROBE_LENGTH] not in css_code:
            css_code += "\n" + content

    duration_ms = (time.time() - start) * 1000
    logger.log_build_event("compile", True, entry_point=entry.file, duration_ms=round(duration_ms, 2))
    logger.log_performance("bundle", duration_ms)

    return BundleResult(
        success=True,
        code=js_code,
        css=css_code,
        externals=tuple(externals),
        errors=(),
        warnings=tuple(output.warnings),
        entry_point=entry.file,
    )


__all__ = [
    "bundle",
    "detect_entry_point",
    "looks_like_valid_code",
    "should_include_file",
    "normalize_file_map",
    "strip_prefix",
    "join_paths",
    "resolve_in_map",
    "render_wrapper",
    "ensure_initialized",
    "get_backend",
    "set_backend",
    "is_initialized",
    "CompilerBackend",
    "ResolverPlugin",
    "VirtualFSPlugin",
    "BundleResult",
    "BundleError",
    "BuildOutput",
    "EntryInfo",
    "SourceLocation",
    "SourceMap",
]
