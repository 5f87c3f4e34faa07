"""
Known identifier -> module tables

Used by the deterministic import fix: when "X is not defined" names one of
these, the import can be added without asking the AI.

Format:
    IDENTIFIER -> module specifier
"""

from typing import Dict, Optional


REACT_IMPORTS: Dict[str, str] = {
    # React
    "useState": "react",
    "useEffect": "react",
    "useRef": "react",
    "useMemo": "react",
    "useCallback": "react",
    "useContext": "react",
    "useReducer": "react",
    "useLayoutEffect": "react",
    "Fragment": "react",
    "Suspense": "react",
    "lazy": "react",
    "createContext": "react",
    "forwardRef": "react",
    "memo": "react",
    # Helpers
    "clsx": "clsx",
    "cn": "@/lib/utils",
    # framer-motion
    "motion": "framer-motion",
    "AnimatePresence": "framer-motion",
    # Next.js
    "Link": "next/link",
    "Image": "next/image",
    "useRouter": "next/navigation",
    "usePathname": "next/navigation",
    "useSearchParams": "next/navigation",
}

ICON_IMPORTS: Dict[str, str] = {
    name: "lucide-react"
    for name in (
        "ChevronDown", "ChevronUp", "ChevronLeft", "ChevronRight",
        "X", "Check", "Plus", "Minus", "Search", "Settings", "Loader2",
        "AlertCircle", "AlertTriangle", "Info", "ArrowRight", "ArrowLeft",
        "ExternalLink", "Copy", "Trash2", "Edit", "Eye", "EyeOff",
    )
}

# Imported as `import X from "..."` rather than `import { X } from "..."`
DEFAULT_EXPORT_NAMES = frozenset({"motion", "Image", "Link"})


def known_module_for(name: str) -> Optional[str]:
    """Module that exports `name`, if it's a well-known identifier"""
    return REACT_IMPORTS.get(name) or ICON_IMPORTS.get(name)


def is_default_export(name: str) -> bool:
    return name in DEFAULT_EXPORT_NAMES


__all__ = [
    "REACT_IMPORTS",
    "ICON_IMPORTS",
    "DEFAULT_EXPORT_NAMES",
    "known_module_for",
    "is_default_export",
]
