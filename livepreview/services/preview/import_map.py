"""
Import map for the preview document

React and react-dom are always pinned. Every other external resolves via
the CDN with react/react-dom marked external so the page ends up with a
single React instance (duplicates break hooks).
"""

from typing import Dict, Iterable, Optional

from livepreview.core.config import settings


REACT_PACKAGES = ("react", "react-dom")
EXTERNAL_PEERS = ",".join(REACT_PACKAGES)

ImportMap = Dict[str, Dict[str, str]]


def _cdn_base(cdn_base: Optional[str]) -> str:
    return (cdn_base or settings.PREVIEW_CDN_BASE).rstrip("/")


def esm_url(pkg: str, react_version: Optional[str] = None, cdn_base: Optional[str] = None) -> str:
    """CDN URL for a package specifier"""
    base = _cdn_base(cdn_base)
    if pkg in REACT_PACKAGES:
        return f"{base}/{pkg}@{react_version or settings.PREVIEW_REACT_VERSION}"
    return f"{base}/{pkg}?external={EXTERNAL_PEERS}"


def generate_import_map(
    externals: Iterable[str],
    react_version: Optional[str] = None,
    cdn_base: Optional[str] = None,
) -> ImportMap:
    """Build {"imports": {...}} for the bundle's external specifiers"""
    base = _cdn_base(cdn_base)
    version = react_version or settings.PREVIEW_REACT_VERSION

    imports: Dict[str, str] = {}
    for pkg in REACT_PACKAGES:
        imports[pkg] = f"{base}/{pkg}@{version}"
        imports[f"{pkg}/"] = f"{base}/{pkg}@{version}/"

    for pkg in externals:
        if pkg in REACT_PACKAGES:
            continue

        if pkg not in imports:
            imports[pkg] = esm_url(pkg, version, base)

        # Subpath imports like "lucide-react/dist/esm/icons/check"
        subpath_key = f"{pkg}/"
        if subpath_key not in imports:
            imports[subpath_key] = f"{base}/{pkg}/?external={EXTERNAL_PEERS}&path=/"

    return {"imports": imports}
