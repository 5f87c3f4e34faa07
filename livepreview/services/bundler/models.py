"""
Bundler data model

SourceMap is a plain Dict[str, str] (logical path -> source text).
Everything the bundler hands back is frozen once returned.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


SourceMap = Dict[str, str]


@dataclass(frozen=True)
class SourceLocation:
    """Position of a build message inside a virtual file"""
    file: str
    line: int
    column: int


@dataclass(frozen=True)
class BundleError:
    """A single build error, with location when the backend knows it"""
    text: str
    location: Optional[SourceLocation] = None

    def format(self) -> str:
        """Render as '<text> (<file>:<line>:<column>)' for the classifier"""
        if not self.location:
            return self.text
        loc = self.location
        return f"{self.text} ({loc.file}:{loc.line}:{loc.column})"


@dataclass(frozen=True)
class EntryInfo:
    """Entry point of a build"""
    file: str
    # True: file already mounts the app. False: wrap with a synthetic entry.
    is_self_mounting: bool


@dataclass(frozen=True)
class BundleResult:
    """Outcome of bundle(); never raised, always returned"""
    success: bool
    code: str = ""
    css: str = ""
    externals: Tuple[str, ...] = ()
    errors: Tuple[BundleError, ...] = ()
    warnings: Tuple[str, ...] = ()
    entry_point: str = ""

    @classmethod
    def failure(
        cls,
        errors: List[BundleError],
        entry_point: str = "",
        externals: Optional[List[str]] = None,
    ) -> "BundleResult":
        return cls(
            success=False,
            externals=tuple(externals or ()),
            errors=tuple(errors),
            entry_point=entry_point,
        )

    def error_texts(self) -> List[str]:
        """Errors formatted for classification"""
        return [e.format() for e in self.errors]


# ---------------------------------------------------------------------------
# Backend plugin contract (shapes exchanged between bundler and backend)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Resolution:
    """Result of resolving an import specifier"""
    path: str
    namespace: str = "virtual"  # virtual | asset
    external: bool = False


@dataclass(frozen=True)
class LoadResult:
    """Contents of a loaded module"""
    contents: str
    loader: str  # tsx | ts | jsx | js | css | json
    resolve_dir: str = ""


@dataclass
class OutputFile:
    """One file emitted by the backend"""
    path: str
    text: str


@dataclass
class BuildOutput:
    """Everything a successful backend build produced"""
    output_files: List[OutputFile] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
