"""
Preview surface helpers

Turn a successful BundleResult into the document the preview iframe loads.
"""

from livepreview.services.preview.import_map import (
    ImportMap,
    esm_url,
    generate_import_map,
)
from livepreview.services.preview.preview_html import (
    PREVIEW_CONSOLE_CHANNEL,
    PREVIEW_READY_CHANNEL,
    build_preview_html,
    escape_for_script_tag,
)
from livepreview.services.bundler.models import BundleResult


def render_bundle(result: BundleResult) -> str:
    """Preview document for a successful bundle"""
    if not result.success:
        raise ValueError("Cannot render a failed bundle")
    return build_preview_html(result.code, result.css, generate_import_map(result.externals))


__all__ = [
    "ImportMap",
    "esm_url",
    "generate_import_map",
    "build_preview_html",
    "escape_for_script_tag",
    "render_bundle",
    "PREVIEW_CONSOLE_CHANNEL",
    "PREVIEW_READY_CHANNEL",
]
