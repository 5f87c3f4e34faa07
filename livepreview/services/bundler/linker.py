"""
VirtualLinker - Default compilation backend

Walks the module graph through the bundler's resolver plugin and links
every virtual module into one ES-module script:

    import * as __lp_ext_0 from "react";        <- externals, hoisted
    const __lp_modules = {}; ...                <- tiny module registry
    __lp_modules["App.tsx"] = function (exports) { ... };
    __lp_require("__entry__.tsx");

Imports/exports are rewritten with regexes (no AST). Type annotations and
JSX are left in place: the preview document runs the script through an
in-browser TS/JSX transform. CSS modules are routed to the style output.

Every module is checked before linking (see checks.py) and all errors of
one build are collected, then raised together as BuildFailure.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from livepreview.core.exceptions import BackendInitError, BuildFailure, LivePreviewError
from livepreview.core.logging_config import logger
from livepreview.services.bundler.checks import (
    check_structure,
    find_undefined_components,
    position_of,
)
from livepreview.services.bundler.models import (
    BuildOutput,
    BundleError,
    LoadResult,
    OutputFile,
    Resolution,
    SourceLocation,
)
from livepreview.services.bundler.paths import is_bare_specifier


JSX_LOADERS = ("tsx", "jsx")

OUTPUT_DIR = "/out"

RUNTIME_PRELUDE = '''const __lp_modules = {};
const __lp_cache = {};
function __lp_require(id) {
  if (id in __lp_cache) return __lp_cache[id];
  const factory = __lp_modules[id];
  if (!factory) throw new Error("Module not linked: " + id);
  const exports = {};
  __lp_cache[id] = exports;
  factory(exports);
  return exports;
}
function __lp_export(exports, getters) {
  for (const name in getters) {
    Object.defineProperty(exports, name, { enumerable: true, configurable: true, get: getters[name] });
  }
}
function __lp_default(mod) {
  return mod && "default" in mod ? mod.default : mod;
}
function __lp_star(exports, mod) {
  for (const name in mod) {
    if (name !== "default" && !(name in exports)) {
      Object.defineProperty(exports, name, { enumerable: true, get: () => mod[name] });
    }
  }
}
'''

_Q = r"(?P<q>[\"'])(?P<spec>[^\"'\n]+)(?P=q)"

# Applied in this order; a later match overlapping an earlier edit is skipped
IMPORT_FROM = re.compile(
    r"\bimport\s+(?P<type>type\s+)?(?P<clause>[\w$*{}\s,]+?)\s*\bfrom\s*" + _Q + r"[ \t]*;?"
)
SIDE_EFFECT_IMPORT = re.compile(r"\bimport\s*" + _Q + r"[ \t]*;?")
DYNAMIC_IMPORT = re.compile(r"\bimport\s*\(\s*" + _Q + r"\s*\)")
EXPORT_FROM = re.compile(
    r"\bexport\s+(?P<type>type\s+)?(?P<clause>\*(?:\s*as\s+[\w$]+)?|\{[^}]*\})\s*from\s*"
    + _Q + r"[ \t]*;?"
)
EXPORT_LIST = re.compile(r"\bexport\s+(?P<type>type\s+)?\{(?P<names>[^}]*)\}[ \t]*;?")
EXPORT_DEFAULT_DECL = re.compile(
    r"\bexport\s+default\s+(?P<decl>(?:async\s+)?function\s*\*?\s*|class\s+)(?P<name>[\w$]+)?"
)
EXPORT_DEFAULT = re.compile(r"\bexport\s+default\s+")
EXPORT_TYPE_DECL = re.compile(r"\bexport\s+(?=declare\s|interface\s|type\s+[\w$]+)")
EXPORT_DESTRUCTURE = re.compile(
    r"\bexport\s+(?P<decl>const|let|var)\s+(?P<pattern>\{[^}]*\}|\[[^\]]*\])"
)
EXPORT_DECL = re.compile(
    r"\bexport\s+(?P<decl>async\s+function\s*\*?\s*|function\s*\*?\s*|(?:abstract\s+)?class\s+"
    r"|const\s+enum\s+|const\s+|let\s+|var\s+|enum\s+)(?P<name>[\w$]+)"
)

_SPECIFIER = re.compile(r"^(?P<name>[\w$]+)(?:\s+as\s+(?P<alias>[\w$]+))?$")
_NAMESPACE = re.compile(r"^\*\s*as\s+(?P<name>[\w$]+)$")


def parse_specifiers(body: str) -> List[Tuple[str, str]]:
    """'a, b as c, type T' -> [(a, a), (b, c)] (type-only entries dropped)"""
    result = []
    for item in body.split(","):
        item = item.strip()
        if not item or item.startswith("type "):
            continue
        match = _SPECIFIER.match(item)
        if match:
            result.append((match.group("name"), match.group("alias") or match.group("name")))
    return result


def parse_import_clause(clause: str) -> Tuple[Optional[str], Optional[str], List[Tuple[str, str]]]:
    """Split an import clause into (default, namespace, named)"""
    default = namespace = None
    named: List[Tuple[str, str]] = []

    brace = re.search(r"\{([^}]*)\}", clause)
    if brace:
        named = parse_specifiers(brace.group(1))
        clause = clause[:brace.start()] + clause[brace.end():]

    for part in (p.strip() for p in clause.split(",")):
        if not part:
            continue
        ns = _NAMESPACE.match(part)
        if ns:
            namespace = ns.group("name")
        else:
            default = part
    return default, namespace, named


def _pattern_names(pattern: str) -> List[str]:
    """Local names bound by a simple destructuring pattern"""
    names = []
    for item in pattern.strip("{}[] \n").split(","):
        item = item.strip().lstrip(".")
        if not item:
            continue
        local = item.split(":")[-1].split("=")[0].strip()
        if re.match(r"^[\w$]+$", local):
            names.append(local)
    return names


@dataclass
class _Module:
    """One linked module in the registry"""
    id: str
    path: str
    namespace: str
    body: str = ""
    bindings: List[str] = field(default_factory=list)
    getters: List[Tuple[str, str]] = field(default_factory=list)
    stars: List[str] = field(default_factory=list)

    def render(self) -> str:
        lines = [f"__lp_modules[{json.dumps(self.id)}] = function (exports) {{"]
        if self.getters:
            pairs = ", ".join(f"{json.dumps(name)}: () => {expr}" for name, expr in self.getters)
            lines.append(f"__lp_export(exports, {{ {pairs} }});")
        for source in self.stars:
            lines.append(f"__lp_star(exports, {source});")
        lines.extend(self.bindings)
        if self.body:
            lines.append(self.body)
        lines.append("};")
        return "\n".join(lines)


def module_id(resolution: Resolution) -> str:
    if resolution.namespace == "virtual":
        return resolution.path
    return f"{resolution.namespace}:{resolution.path}"


class _LinkJob:
    """State of a single build; discarded afterwards"""

    def __init__(self, plugin):
        self.plugin = plugin
        self.modules: Dict[str, _Module] = {}
        self.pending: List[_Module] = []
        self.ext_aliases: Dict[str, str] = {}
        self.styles: List[str] = []
        self.errors: List[BundleError] = []
        self.warnings: List[str] = []
        self._warned = set()

    # -- bookkeeping --------------------------------------------------------

    def error(self, text: str, file: str = "", line: int = 0, column: int = 0) -> None:
        location = SourceLocation(file=file, line=line, column=column) if file else None
        self.errors.append(BundleError(text=text, location=location))

    def add_module(self, resolution: Resolution) -> str:
        mid = module_id(resolution)
        if mid not in self.modules:
            mod = _Module(id=mid, path=resolution.path, namespace=resolution.namespace)
            self.modules[mid] = mod
            self.pending.append(mod)
        return mid

    def external_alias(self, spec: str) -> str:
        if spec not in self.ext_aliases:
            self.ext_aliases[spec] = f"__lp_ext_{len(self.ext_aliases)}"
        return self.ext_aliases[spec]

    def resolve(self, spec: str, mod: _Module, resolve_dir: str) -> Resolution:
        resolution = self.plugin.on_resolve(spec, mod.path, resolve_dir)
        if resolution.external and not is_bare_specifier(spec) and spec not in self._warned:
            self._warned.add(spec)
            self.warnings.append(
                f'"{spec}" imported by {mod.path} is not in the file map and was left external'
            )
        return resolution

    # -- graph walk ---------------------------------------------------------

    def run(self, entry_point: str) -> str:
        entry = self.plugin.on_resolve(entry_point, "", "")
        if entry.external:
            self.error(f'Could not resolve entry point "{entry_point}"')
            return ""
        entry_id = self.add_module(entry)

        while self.pending:
            mod = self.pending.pop(0)
            self.load(mod)
        return entry_id

    def load(self, mod: _Module) -> None:
        try:
            loaded = self.plugin.on_load(mod.path, mod.namespace)
        except LivePreviewError as e:
            self.error(e.message)
            return

        if loaded.loader == "css":
            self.styles.append(f"/* {mod.path} */\n{loaded.contents}")
        elif loaded.loader == "json":
            self.link_json(mod, loaded.contents)
        else:
            self.link_script(mod, loaded)

    def link_json(self, mod: _Module, contents: str) -> None:
        try:
            json.loads(contents)
        except json.JSONDecodeError as e:
            self.error(f"Invalid JSON: {e.msg}", mod.path, e.lineno, e.colno)
            return
        mod.body = f"exports.default = {contents.strip()};"

    def link_script(self, mod: _Module, loaded: LoadResult) -> None:
        source = loaded.contents
        issue, masked = check_structure(source, jsx=loaded.loader in JSX_LOADERS)
        if issue:
            self.error(issue.text, mod.path, issue.line, issue.column)
            return

        if loaded.loader in JSX_LOADERS:
            for name, index in find_undefined_components(masked):
                line, column = position_of(source, index)
                self.error(f"ReferenceError: {name} is not defined", mod.path, line, column)

        rewriter = _Rewriter(self, mod, source, masked, loaded.resolve_dir)
        mod.body = rewriter.rewrite()

    # -- output -------------------------------------------------------------

    def render(self, entry_id: str) -> str:
        hoisted = [
            f"import * as {alias} from {json.dumps(spec)};"
            for spec, alias in self.ext_aliases.items()
        ]
        parts = hoisted + [RUNTIME_PRELUDE]
        parts.extend(mod.render() for mod in self.modules.values())
        parts.append(f"__lp_require({json.dumps(entry_id)});\n")
        return "\n".join(parts)


class _Rewriter:
    """Rewrites one module's import/export statements"""

    def __init__(self, job: _LinkJob, mod: _Module, source: str, masked: str, resolve_dir: str):
        self.job = job
        self.mod = mod
        self.source = source
        self.masked = masked
        self.resolve_dir = resolve_dir
        self.edits: List[Tuple[int, int, str]] = []

    def _claim(self, match: "re.Match[str]", replacement: str) -> bool:
        start, end = match.span()
        # keyword blanked out -> inside a comment or string
        if self.masked[start] != self.source[start]:
            return False
        if any(s < end and start < e for s, e, _ in self.edits):
            return False
        self.edits.append((start, end, replacement))
        return True

    def _free(self, match: "re.Match[str]") -> bool:
        start, end = match.span()
        if self.masked[start] != self.source[start]:
            return False
        return not any(s < end and start < e for s, e, _ in self.edits)

    def _location(self, match: "re.Match[str]") -> Tuple[int, int]:
        return position_of(self.source, match.start())

    def _source_expr(self, spec: str) -> str:
        """Expression evaluating to the namespace object of `spec`"""
        resolution = self.job.resolve(spec, self.mod, self.resolve_dir)
        if resolution.external:
            return self.job.external_alias(spec)
        return f"__lp_require({json.dumps(self.job.add_module(resolution))})"

    def rewrite(self) -> str:
        self._imports()
        self._exports()
        out = self.source
        for start, end, replacement in sorted(self.edits, reverse=True):
            out = out[:start] + replacement + out[end:]
        return out

    def _imports(self) -> None:
        for m in IMPORT_FROM.finditer(self.source):
            if not self._free(m):
                continue
            if m.group("type"):
                self._claim(m, "")
                continue
            source = self._source_expr(m.group("spec"))
            self._claim(m, "")
            default, namespace, named = parse_import_clause(m.group("clause"))
            if default:
                if source.startswith("__lp_ext_"):
                    self.mod.bindings.append(f"const {default} = __lp_default({source});")
                else:
                    self.mod.bindings.append(f"const {default} = {source}.default;")
            if namespace:
                self.mod.bindings.append(f"const {namespace} = {source};")
            if named:
                pairs = ", ".join(n if n == local else f"{n}: {local}" for n, local in named)
                self.mod.bindings.append(f"const {{ {pairs} }} = {source};")

        for m in SIDE_EFFECT_IMPORT.finditer(self.source):
            if not self._free(m):
                continue
            source = self._source_expr(m.group("spec"))
            self._claim(m, "")
            if not source.startswith("__lp_ext_"):
                self.mod.bindings.append(f"{source};")

        for m in DYNAMIC_IMPORT.finditer(self.source):
            if not self._free(m):
                continue
            resolution = self.job.resolve(m.group("spec"), self.mod, self.resolve_dir)
            if resolution.external:
                continue
            mid = json.dumps(self.job.add_module(resolution))
            self._claim(m, f"Promise.resolve().then(() => __lp_require({mid}))")

    def _exports(self) -> None:
        getters = self.mod.getters

        for m in EXPORT_FROM.finditer(self.source):
            if not self._free(m):
                continue
            if m.group("type"):
                self._claim(m, "")
                continue
            source = self._source_expr(m.group("spec"))
            self._claim(m, "")
            clause = m.group("clause")
            if clause.startswith("{"):
                for name, alias in parse_specifiers(clause[1:-1]):
                    getters.append((alias, f"{source}.{name}"))
            else:
                ns = re.search(r"as\s+([\w$]+)", clause)
                if ns:
                    getters.append((ns.group(1), source))
                else:
                    self.mod.stars.append(source)

        for m in EXPORT_LIST.finditer(self.source):
            if not self._free(m):
                continue
            self._claim(m, "")
            if m.group("type"):
                continue
            for local, exported in parse_specifiers(m.group("names")):
                getters.append((exported, local))

        for m in EXPORT_DEFAULT_DECL.finditer(self.source):
            name = m.group("name")
            decl = m.group("decl")
            if name and name not in ("extends", "implements"):
                if self._claim(m, f"{decl}{name}"):
                    getters.append(("default", name))
            else:
                self._claim(m, f"exports.default = {decl}{name or ''}")

        for m in EXPORT_DEFAULT.finditer(self.source):
            self._claim(m, "exports.default = ")

        for m in EXPORT_TYPE_DECL.finditer(self.source):
            self._claim(m, "")

        for m in EXPORT_DESTRUCTURE.finditer(self.source):
            if self._claim(m, f"{m.group('decl')} {m.group('pattern')}"):
                getters.extend((n, n) for n in _pattern_names(m.group("pattern")))

        for m in EXPORT_DECL.finditer(self.source):
            name = m.group("name")
            if self._claim(m, f"{m.group('decl')}{name}"):
                getters.append((name, name))


class VirtualLinker:
    """
    Pure-Python compilation backend.

    Heuristic by nature: it rejects what it can see is broken (unbalanced
    braces, unterminated strings, undefined components, invalid JSON,
    missing files) and otherwise trusts the source. Anything subtler
    surfaces at runtime through the preview-error channel.
    """

    name = "virtual-linker"

    def __init__(self):
        self._initialized = False

    async def initialize(self) -> None:
        if self._initialized:
            raise RuntimeError(f"{self.name} is already initialized")
        self._initialized = True
        logger.debug("[VirtualLinker] Ready")

    async def build(self, entry_point: str, plugin) -> BuildOutput:
        if not self._initialized:
            raise BackendInitError(f"{self.name} used before initialize()")

        job = _LinkJob(plugin)
        entry_id = job.run(entry_point)

        if job.errors:
            logger.debug(f"[VirtualLinker] {len(job.errors)} error(s) linking {entry_point}")
            raise BuildFailure(job.errors)

        stem = entry_point.rsplit("/", 1)[-1].rsplit(".", 1)[0]
        output = BuildOutput(warnings=job.warnings)
        output.output_files.append(OutputFile(path=f"{OUTPUT_DIR}/{stem}.js", text=job.render(entry_id)))
        if job.styles:
            output.output_files.append(
                OutputFile(path=f"{OUTPUT_DIR}/{stem}.css", text="\n".join(job.styles))
            )

        logger.debug(
            f"[VirtualLinker] Linked {len(job.modules)} module(s), "
            f"{len(job.ext_aliases)} external(s)"
        )
        return output
