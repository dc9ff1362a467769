"""Macro invocation scanner for decomp C sources.

Finds calls like ``OBJECT(...)`` or ``SPECIAL_OBJECT_WITH_YAW(...)`` in
hand-written C text and reports each one with its arguments and exact span,
so that the span can later be replaced without touching the bytes around it.

Whitespace and ``/* ... */`` comments may appear between any two tokens.
Arguments may contain one level of balanced parentheses, e.g.
``BPARAM1(3) | BPARAM2(1)``.  Anything that does not fit a grammar is skipped.
"""

import bisect
import logging
import re
from dataclasses import dataclass
from typing import Iterator, Optional

log = logging.getLogger(__name__)

# Block comment without backtracking ambiguity: "*" only when not closing
_COMMENT = r"/\*(?:[^*]|\*(?!/))*\*/"
# Whitespace and comments between tokens
_WS = rf"(?:\s|{_COMMENT})*"
# One argument character; braces and semicolons never appear inside these macros,
# which keeps a stray "(" from swallowing the rest of the file
_PLAIN = r"(?:[^()/;{}]|/(?!\*))"
_FLAT_ARGS = rf"(?:{_COMMENT}|{_PLAIN})*"
_NESTED_ARGS = rf"(?:{_COMMENT}|{_PLAIN}|\({_FLAT_ARGS}\))*"
# Optional separator, then the rest of the line break and the next line's indent
_TAIL = rf"(?:{_WS}[,;])?[ \t]*(?:\r?\n[ \t]*)?"

_COMMENT_RE = re.compile(_COMMENT, re.DOTALL)


class InvocationGrammar:
    """Describes one macro family: identifier names and argument count."""

    def __init__(self, names, min_args: int, max_args: Optional[int] = None,
                 nested: bool = True):
        if isinstance(names, str):
            names = (names,)
        self.names = tuple(names)
        self.min_args = min_args
        self.max_args = min_args if max_args is None else max_args
        self.nested = nested
        alternation = "|".join(
            re.escape(n) for n in sorted(self.names, key=len, reverse=True))
        args = _NESTED_ARGS if nested else _FLAT_ARGS
        self.pattern = re.compile(
            rf"(?<![\w])(?P<name>{alternation})(?![\w]){_WS}\((?P<args>{args})\)(?P<tail>{_TAIL})",
            re.DOTALL)

    @property
    def specificity(self) -> tuple:
        """Sort key: longer identifiers and more arguments win."""
        return (max(len(n) for n in self.names), self.max_args)

    def accepts(self, arg_count: int) -> bool:
        return self.min_args <= arg_count <= self.max_args

    def __repr__(self):
        return f"InvocationGrammar({'|'.join(self.names)}, {self.min_args}..{self.max_args})"


@dataclass(frozen=True)
class MacroMatch:
    """One macro invocation found in a text."""
    name: str           # identifier variant actually used, e.g. "OBJECT_WITH_ACTS"
    args: tuple         # comment-stripped, trimmed argument strings
    raw_args: tuple     # the same arguments exactly as written, comments and spacing kept
    offset: int         # start of the identifier
    length: int         # whole span including separator and trailing line break
    call_length: int    # identifier through the closing parenthesis

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def call_end(self) -> int:
        return self.offset + self.call_length


# ── Grammars (compiled once) ──────────────────────────────────────────

OBJECT_GRAMMARS = (
    InvocationGrammar("OBJECT_WITH_ACTS", 10),
    InvocationGrammar("OBJECT", 9),
)
MARIO_POS_GRAMMAR = InvocationGrammar("MARIO_POS", 5)
MACRO_GRAMMARS = (
    InvocationGrammar("MACRO_OBJECT_WITH_BHV_PARAM", 6),
    InvocationGrammar("MACRO_OBJECT", 5),
)
SPECIAL_GRAMMARS = (
    InvocationGrammar("SPECIAL_OBJECT_WITH_YAW_AND_PARAM", 6),
    InvocationGrammar("SPECIAL_OBJECT_WITH_YAW", 5),
    InvocationGrammar("SPECIAL_OBJECT", 4),
)
AREA_GRAMMAR = InvocationGrammar("AREA", 1, 2, nested=False)
END_AREA_GRAMMAR = InvocationGrammar("END_AREA", 0, nested=False)
JUMP_LINK_GRAMMAR = InvocationGrammar("JUMP_LINK", 1, nested=False)
MACRO_OBJECTS_GRAMMAR = InvocationGrammar("MACRO_OBJECTS", 1, nested=False)
MACRO_OBJECT_END_GRAMMAR = InvocationGrammar("MACRO_OBJECT_END", 0, nested=False)
LOAD_MODEL_GRAMMAR = InvocationGrammar("LOAD_MODEL_FROM_GEO", 2, nested=False)
COL_SPECIAL_INIT_GRAMMAR = InvocationGrammar("COL_SPECIAL_INIT", 1, nested=False)
COL_END_GRAMMAR = InvocationGrammar("COL_END", 0, nested=False)

# const LevelScript name[] = { ... };
SCRIPT_BLOCK_RE = re.compile(
    rf"const{_WS}LevelScript{_WS}(?P<name>[A-Za-z_]\w*){_WS}\[{_WS}\]{_WS}={_WS}\{{(?P<body>.*?)\}}{_WS};",
    re.DOTALL)


# ── Text helpers ──────────────────────────────────────────────────────

def strip_comments(text: str) -> str:
    """Remove /* ... */ block comments."""
    return _COMMENT_RE.sub(" ", text)


_INT_RE = re.compile(r"^([+-]?)\s*(0[xX][0-9a-fA-F]+|\d+)[uUlL]*$")


def parse_int(text: str, default: int = 0) -> int:
    """Parse a decimal or 0x-prefixed hex literal; anything else gives *default*."""
    m = _INT_RE.match(text.strip()) if text else None
    if not m:
        return default
    sign, digits = m.groups()
    value = int(digits, 16) if digits[:2].lower() == "0x" else int(digits, 10)
    return -value if sign == "-" else value


def is_int_literal(text: str) -> bool:
    return bool(text) and _INT_RE.match(text.strip()) is not None


def split_arguments(text: str) -> list:
    """Split an argument list at top-level commas.

    Commas inside parentheses or comments do not split.  Each argument is
    returned comment-stripped and trimmed; an empty list yields [].
    """
    return [clean_argument(a) for a in split_raw_arguments(text)]


def clean_argument(raw: str) -> str:
    return " ".join(strip_comments(raw).split())


def split_raw_arguments(text: str) -> list:
    """Like split_arguments(), but each piece keeps its comments and spacing.

    Joining a non-empty result with "," gives back *text* unchanged.
    """
    if not strip_comments(text).strip():
        return []
    args = []
    depth = 0
    current = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "/" and text.startswith("/*", i):
            close = text.find("*/", i + 2)
            close = n if close == -1 else close + 2
            current.append(text[i:close])
            i = close
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == "," and depth == 0:
            args.append("".join(current))
            current = []
            i += 1
            continue
        current.append(ch)
        i += 1
    args.append("".join(current))
    return args


def _to_match(grammar: InvocationGrammar, m) -> Optional[MacroMatch]:
    raw_args = split_raw_arguments(m.group("args"))
    if not grammar.accepts(len(raw_args)):
        log.debug("Skipping %s at %d: %d arguments", m.group("name"), m.start(), len(raw_args))
        return None
    return MacroMatch(
        name=m.group("name"),
        args=tuple(clean_argument(a) for a in raw_args),
        raw_args=tuple(raw_args),
        offset=m.start(),
        length=m.end() - m.start(),
        call_length=m.end("args") + 1 - m.start(),
    )


# ── Scanning ──────────────────────────────────────────────────────────

def scan(text: str, grammar: InvocationGrammar, start: int = 0,
         end: Optional[int] = None) -> Iterator[MacroMatch]:
    """Yield matches of one grammar, left to right, within [start, end)."""
    if end is None:
        end = len(text)
    for m in grammar.pattern.finditer(text, start, end):
        match = _to_match(grammar, m)
        if match is not None:
            yield match


def scan_all(text: str, grammars, start: int = 0,
             end: Optional[int] = None) -> list:
    """Scan several grammars and return non-overlapping matches by offset.

    More specific grammars are applied first; a match from a less specific
    grammar that overlaps an accepted one is dropped.
    """
    if isinstance(grammars, InvocationGrammar):
        grammars = (grammars,)
    starts = []
    accepted = []
    for grammar in sorted(grammars, key=lambda g: g.specificity, reverse=True):
        for match in scan(text, grammar, start, end):
            i = bisect.bisect_right(starts, match.offset)
            if i > 0 and accepted[i - 1].end > match.offset:
                log.debug("Dropping overlapping %s at %d", match.name, match.offset)
                continue
            if i < len(accepted) and accepted[i].offset < match.end:
                log.debug("Dropping overlapping %s at %d", match.name, match.offset)
                continue
            starts.insert(i, match.offset)
            accepted.insert(i, match)
    return accepted


def match_at(text: str, offset: int, grammars) -> Optional[MacroMatch]:
    """Return the invocation starting exactly at *offset*, if any grammar fits."""
    if isinstance(grammars, InvocationGrammar):
        grammars = (grammars,)
    for grammar in sorted(grammars, key=lambda g: g.specificity, reverse=True):
        m = grammar.pattern.match(text, offset)
        if m:
            match = _to_match(grammar, m)
            if match is not None:
                return match
    return None


def find_script_blocks(text: str) -> dict:
    """Map script block names to (body_start, body_end) offsets."""
    blocks = {}
    for m in SCRIPT_BLOCK_RE.finditer(text):
        blocks.setdefault(m.group("name"), (m.start("body"), m.end("body")))
    return blocks
