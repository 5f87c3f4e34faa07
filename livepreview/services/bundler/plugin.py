"""
Virtual filesystem resolver plugin

Handed to the compilation backend for one build. Resolves import
specifiers against the in-memory file map and serves module contents.
Nothing here touches the disk or the network.
"""

from typing import Dict, List
from urllib.parse import quote

from livepreview.core.exceptions import ModuleLoadError
from livepreview.services.bundler.models import LoadResult, Resolution
from livepreview.services.bundler.paths import (
    IMAGE_EXTENSIONS,
    dir_of,
    get_loader,
    is_asset,
    is_bare_specifier,
    join_paths,
    resolve_in_map,
    strip_prefix,
)


TRANSPARENT_PNG = (
    "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPj"
    "/HwADBwIAMCbHYQAAAABJRU5ErkJggg=="
)

SVG_PLACEHOLDER = (
    "data:image/svg+xml,%3Csvg xmlns='http://www.w3.org/2000/svg' width='200' height='200'%3E"
    "%3Crect width='200' height='200' fill='%23374151'/%3E"
    "%3Ctext x='50%25' y='50%25' dominant-baseline='middle' text-anchor='middle' "
    "fill='%239CA3AF' font-size='14'%3E{label}%3C/text%3E%3C/svg%3E"
)


def asset_placeholder(path: str) -> str:
    """Data URI standing in for a binary asset the file map can't hold"""
    lower = path.lower()
    if lower.endswith(".svg"):
        label = path.rsplit("/", 1)[-1] or "image"
        # encodeURIComponent-compatible
        return SVG_PLACEHOLDER.format(label=quote(label, safe="-_.!~*'()"))
    if lower.endswith(IMAGE_EXTENSIONS):
        return TRANSPARENT_PNG
    return ""


class VirtualFSPlugin:
    """Resolver plugin over a frozen copy of the file map"""

    def __init__(self, files: Dict[str, str]):
        self.files = dict(files)
        # bare specifiers seen during the build, in first-seen order
        self.externals: List[str] = []

    def _record_external(self, spec: str) -> None:
        if spec not in self.externals:
            self.externals.append(spec)

    def on_resolve(self, path: str, importer: str, resolve_dir: str) -> Resolution:
        # 1. Direct lookup (entry point and bare file names)
        direct = resolve_in_map(strip_prefix(path), self.files)
        if direct:
            return Resolution(path=direct)

        # 2. Relative import against the importer's directory
        if path.startswith(("./", "../")):
            resolved = resolve_in_map(join_paths(resolve_dir, path), self.files)
            if resolved:
                return Resolution(path=resolved)

        # 3. Binary asset -> placeholder module
        if is_asset(path):
            return Resolution(path=path, namespace="asset")

        # 4. Bare npm specifier -> external, kept verbatim for the import map
        if is_bare_specifier(path):
            self._record_external(path)
            return Resolution(path=path, external=True)

        # 5. Anything else (URLs, unresolvable relatives) is left to the browser
        return Resolution(path=path, external=True)

    def on_load(self, path: str, namespace: str) -> LoadResult:
        if namespace == "asset":
            placeholder = asset_placeholder(path)
            return LoadResult(contents=f'export default "{placeholder}";', loader="js")

        content = self.files.get(path)
        if content is None:
            raise ModuleLoadError(path)
        return LoadResult(contents=content, loader=get_loader(path), resolve_dir=dir_of(path))
