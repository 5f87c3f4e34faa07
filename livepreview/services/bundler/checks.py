"""
Heuristic source checks run by the virtual linker

These are NOT a parser. They catch the breakage AI generations actually
produce (truncated files, stray braces, unclosed strings, components that
were used but never written) and accept some false positives/negatives:

- regex literals are recognised only after an operator/punctuation, and
  never as the "/>" that closes a self-closing JSX tag
- JSX text is not distinguished from code, so in .jsx/.tsx files only
  curly braces are balance-checked (parens in text like ":)" are common)
- an apostrophe in JSX text is treated as plain text unless the same line
  closes it
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class SourceIssue:
    text: str
    line: int
    column: int


_PAIRS = {"(": ")", "[": "]", "{": "}", "${": "}"}
_BRACE_ONLY = {"{", "}"}

# Previous significant char after which "/" starts a regex literal
_REGEX_PRECEDERS = set("(,=:[!&|?{};+-*%<>~^")
# In JSX "</" closes a tag and ">/" is text
_JSX_REGEX_PRECEDERS = _REGEX_PRECEDERS - {"<", ">"}

_JSX_TAG = re.compile(r"<(?P<name>[A-Z][\w$]*)(?=[\s/>.])")

# Words after which "<" opens an expression (JSX), not a type argument list
_EXPRESSION_KEYWORDS = {
    "return", "yield", "await", "case", "default", "else", "do",
    "in", "of", "typeof", "void", "throw",
}


def position_of(source: str, index: int) -> Tuple[int, int]:
    """1-based (line, column) for a character index"""
    line = source.count("\n", 0, index) + 1
    last_nl = source.rfind("\n", 0, index)
    return line, index - last_nl


class _Scanner:
    """Single pass over the source tracking comments, strings and brackets"""

    def __init__(self, source: str, jsx: bool):
        self.src = source
        self.jsx = jsx
        self.masked = list(source)
        self.issue: Optional[SourceIssue] = None

    def _mask(self, start: int, end: int) -> None:
        for k in range(start, min(end, len(self.src))):
            if self.src[k] != "\n":
                self.masked[k] = " "

    def _fail(self, text: str, index: int) -> None:
        line, column = position_of(self.src, index)
        self.issue = SourceIssue(text=text, line=line, column=column)

    def _closing_quote(self, start: int, quote: str) -> Optional[int]:
        """Index of the closing quote on the same line, or None"""
        k = start + 1
        while k < len(self.src):
            c = self.src[k]
            if c == "\\":
                k += 2
                continue
            if c == quote:
                return k
            if c == "\n":
                return None
            k += 1
        return None

    def _closing_slash(self, start: int) -> Optional[int]:
        """End of a regex literal starting at `start`, or None"""
        k = start + 1
        in_class = False
        while k < len(self.src):
            c = self.src[k]
            if c == "\\":
                k += 2
                continue
            if c == "\n":
                return None
            if c == "[":
                in_class = True
            elif c == "]":
                in_class = False
            elif c == "/" and not in_class:
                return k if k > start + 1 else None
            k += 1
        return None

    def run(self) -> None:
        src = self.src
        n = len(src)
        stack: List[Tuple[str, int]] = []
        template_starts: List[int] = []
        in_template = False
        preceders = _JSX_REGEX_PRECEDERS if self.jsx else _REGEX_PRECEDERS
        prev = ""
        i = 0

        while i < n:
            if in_template:
                ch = src[i]
                if ch == "\\":
                    self._mask(i, i + 2)
                    i += 2
                    continue
                if ch == "`":
                    in_template = False
                    template_starts.pop()
                    prev = "`"
                    i += 1
                    continue
                if ch == "$" and i + 1 < n and src[i + 1] == "{":
                    stack.append(("${", i))
                    in_template = False
                    prev = "{"
                    i += 2
                    continue
                self._mask(i, i + 1)
                i += 1
                continue

            ch = src[i]
            nxt = src[i + 1] if i + 1 < n else ""

            if ch == "/" and nxt == "/":
                end = src.find("\n", i)
                end = n if end == -1 else end
                self._mask(i, end)
                i = end
                continue

            if ch == "/" and nxt == "*":
                end = src.find("*/", i + 2)
                if end == -1:
                    self._fail("Unexpected end of input (unterminated comment)", i)
                    return
                self._mask(i, end + 2)
                i = end + 2
                continue

            if ch in ("'", '"'):
                end = self._closing_quote(i, ch)
                if end is None:
                    if not self.jsx:
                        self._fail("Unterminated string literal", i)
                        return
                    prev = ch
                    i += 1
                    continue
                self._mask(i + 1, end)
                prev = ch
                i = end + 1
                continue

            if ch == "`":
                template_starts.append(i)
                in_template = True
                i += 1
                continue

            if ch == "/" and (prev == "" or prev in preceders) and not (self.jsx and nxt == ">"):
                end = self._closing_slash(i)
                if end is not None:
                    self._mask(i + 1, end)
                    prev = "/"
                    i = end + 1
                    continue

            tracked = not self.jsx or ch in _BRACE_ONLY
            if ch in "([{" and tracked:
                stack.append((ch, i))
            elif ch in ")]}" and tracked:
                if not stack or _PAIRS[stack[-1][0]] != ch:
                    self._fail(f"Unexpected token {ch}", i)
                    return
                opener, _ = stack.pop()
                if opener == "${":
                    in_template = True
                    i += 1
                    continue

            if not ch.isspace():
                prev = ch
            i += 1

        if in_template and template_starts:
            self._fail("Unterminated string literal", template_starts[-1])
        elif stack:
            opener, _ = stack[-1]
            self._fail(f'Unexpected end of input, expected "{_PAIRS[opener]}"', n)


def check_structure(source: str, jsx: bool = False) -> Tuple[Optional[SourceIssue], str]:
    """
    Check bracket/string/comment structure.

    Returns (first issue or None, masked source). The masked source has the
    contents of strings, comments and regex literals blanked out with
    newlines preserved, so positions still line up.
    """
    scanner = _Scanner(source, jsx)
    scanner.run()
    return scanner.issue, "".join(scanner.masked)


def _is_referenced(name: str, masked: str) -> bool:
    """Does `name` appear anywhere other than as a JSX tag name?"""
    pattern = rf"(?<![\w$.<])(?<!</){re.escape(name)}(?![\w$])"
    return re.search(pattern, masked) is not None


def _is_type_argument(masked: str, index: int) -> bool:
    """Is the '<' at `index` a generic (useState<Foo>) rather than JSX?"""
    k = index - 1
    while k >= 0 and masked[k].isspace():
        k -= 1
    if k < 0:
        return False
    if masked[k] in ").]":
        return True
    if not (masked[k].isalnum() or masked[k] in "_$"):
        return False
    end = k + 1
    while k >= 0 and (masked[k].isalnum() or masked[k] in "_$"):
        k -= 1
    return masked[k + 1:end] not in _EXPRESSION_KEYWORDS


def find_undefined_components(masked: str) -> List[Tuple[str, int]]:
    """
    Capitalized JSX tags whose name never appears outside a tag.

    Returns (name, index) for the first use of each such name. A tag
    preceded by an identifier, ')' or ']' is a TypeScript generic, not JSX,
    unless that identifier is a keyword such as `return`.
    """
    seen = set()
    missing: List[Tuple[str, int]] = []
    for match in _JSX_TAG.finditer(masked):
        if _is_type_argument(masked, match.start()):
            continue
        name = match.group("name")
        if name in seen:
            continue
        seen.add(name)
        if not _is_referenced(name, masked):
            missing.append((name, match.start()))
    return missing
