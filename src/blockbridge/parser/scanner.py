"""
Source Scanner

Character-level helpers shared by every dialect parser. There is no token
stream: parsers walk the raw text with a cursor and use these helpers to
find where constructs begin and end.

The one rule every helper follows: delimiters inside string literals, char
literals and comments do not count.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple


OPENERS = "([{"
CLOSERS = ")]}"


@dataclass(frozen=True)
class Span:
    """Region enclosed by a pair of delimiters.

    start is the first character after the opening delimiter,
    end is the index of the matching closing delimiter.
    """
    start: int
    end: int

    @property
    def after(self) -> int:
        """Index just past the closing delimiter."""
        return self.end + 1

    def text_of(self, text: str) -> str:
        return text[self.start:self.end]


def is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch == '_'


def _char_literal_end(text: str, pos: int) -> Optional[int]:
    """End of a char literal starting at pos, or None if the quote opens a lifetime."""
    n = len(text)
    if pos + 1 >= n:
        return None
    if text[pos + 1] == '\\':
        # '\n', '\'', '\u{1F600}'
        close = text.find("'", pos + 3, pos + 14)
        return close + 1 if close != -1 else None
    if pos + 2 < n and text[pos + 2] == "'" and text[pos + 1] != "'":
        return pos + 3
    return None


def skip_literal(text: str, pos: int) -> int:
    """
    If a string, char literal or comment starts at pos, return the index just
    past it; otherwise return pos unchanged.

    An unterminated literal or block comment runs to the end of the text.
    """
    n = len(text)
    ch = text[pos]
    if ch == '"':
        i = pos + 1
        while i < n:
            c = text[i]
            if c == '\\':
                i += 2
                continue
            if c == '"':
                return i + 1
            i += 1
        return n
    if ch == "'":
        end = _char_literal_end(text, pos)
        return end if end is not None else pos
    if ch == '/' and pos + 1 < n:
        nxt = text[pos + 1]
        if nxt == '/':
            newline = text.find('\n', pos)
            return n if newline == -1 else newline + 1
        if nxt == '*':
            close = text.find('*/', pos + 2)
            return n if close == -1 else close + 2
    return pos


def find_balanced(text: str, start: int, open_ch: str = '{', close_ch: str = '}',
                  end: Optional[int] = None) -> Optional[Span]:
    """
    Find the region enclosed by the first open_ch at or after start.

    Scans forward keeping a depth counter; delimiters inside literals and
    comments are ignored. Returns None when the text (or the window ending
    at end) runs out before the depth returns to zero.
    """
    limit = len(text) if end is None else min(end, len(text))
    depth = 0
    body_start = -1
    i = start
    while i < limit:
        skipped = skip_literal(text, i)
        if skipped != i:
            i = skipped
            continue
        ch = text[i]
        if ch == open_ch:
            if depth == 0:
                body_start = i + 1
            depth += 1
        elif ch == close_ch and depth > 0:
            depth -= 1
            if depth == 0:
                return Span(body_start, i)
        i += 1
    return None


def find_top_level(text: str, targets: str, start: int = 0, end: Optional[int] = None) -> int:
    """
    Index of the first character in targets found at nesting depth zero.

    Nesting counts (), [] and {}. Returns -1 if no target is found before
    end, or if a closing delimiter at depth zero ends the enclosing scope
    first.
    """
    limit = len(text) if end is None else min(end, len(text))
    depth = 0
    i = start
    while i < limit:
        skipped = skip_literal(text, i)
        if skipped != i:
            i = skipped
            continue
        ch = text[i]
        if depth == 0 and ch in targets:
            return i
        if ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            if depth == 0:
                return -1
            depth -= 1
        i += 1
    return -1


def split_top_level(text: str, separator: str = ',', start: int = 0,
                    end: Optional[int] = None) -> List[str]:
    """Split text[start:end] on separator occurrences at depth zero. Empty parts are dropped."""
    limit = len(text) if end is None else min(end, len(text))
    parts = []
    pos = start
    while pos < limit:
        idx = find_top_level(text, separator, pos, limit)
        if idx == -1:
            parts.append(text[pos:limit])
            break
        parts.append(text[pos:idx])
        pos = idx + 1
    return [p.strip() for p in parts if p.strip()]


def split_type_list(text: str, separator: str = ',') -> List[str]:
    """
    Split a list of fields or types on separator occurrences at depth zero,
    counting `<...>` as nesting as well as brackets:

        "m: HashMap<String, u32>, f: fn(u8) -> u8" -> ["m: HashMap<String, u32>", "f: fn(u8) -> u8"]

    The `>` of `->` and `=>` does not close a generic list. Empty parts are dropped.
    """
    parts = []
    depth = 0
    piece_start = 0
    i = 0
    n = len(text)
    while i < n:
        skipped = skip_literal(text, i)
        if skipped != i:
            i = skipped
            continue
        ch = text[i]
        if ch in OPENERS or ch == '<':
            depth += 1
        elif ch in CLOSERS or (ch == '>' and (i == 0 or text[i - 1] not in '-=')):
            depth = max(depth - 1, 0)
        elif ch == separator and depth == 0:
            parts.append(text[piece_start:i])
            piece_start = i + 1
        i += 1
    parts.append(text[piece_start:])
    return [p.strip() for p in parts if p.strip()]


def skip_trivia(text: str, pos: int, end: Optional[int] = None) -> int:
    """Skip whitespace and comments starting at pos."""
    limit = len(text) if end is None else min(end, len(text))
    while pos < limit:
        if text[pos].isspace():
            pos += 1
        elif text.startswith('//', pos) or text.startswith('/*', pos):
            pos = min(skip_literal(text, pos), limit)
        else:
            break
    return pos


def match_keyword(text: str, pos: int, keyword: str, end: Optional[int] = None) -> bool:
    """True if keyword starts at pos as a whole word."""
    limit = len(text) if end is None else min(end, len(text))
    stop = pos + len(keyword)
    if stop > limit or not text.startswith(keyword, pos):
        return False
    if pos > 0 and is_ident_char(text[pos - 1]):
        return False
    return stop == limit or not is_ident_char(text[stop])


def find_assignment(text: str) -> int:
    """
    Index of the first top-level `=` that is an assignment, not part of
    ==, !=, <=, >=, => or a compound operator. Returns -1 if there is none.
    """
    pos = 0
    while True:
        idx = find_top_level(text, '=', pos)
        if idx == -1:
            return -1
        prev = text[idx - 1] if idx > 0 else ''
        nxt = text[idx + 1] if idx + 1 < len(text) else ''
        if nxt in ('=', '>') or (prev and prev in '=!<>+-*/%&|^'):
            pos = idx + 2 if nxt in ('=', '>') else idx + 1
            continue
        return idx


def line_col(text: str, pos: int) -> Tuple[int, int]:
    """1-based line and column of a character offset."""
    pos = max(0, min(pos, len(text)))
    line = text.count('\n', 0, pos) + 1
    column = pos - (text.rfind('\n', 0, pos) + 1) + 1
    return line, column


def collapse_ws(text: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    return ' '.join(text.split())


def excerpt(text: str, limit: int) -> str:
    """First limit characters of text, with an ellipsis marker when cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + '...'


def strip_comments(text: str) -> str:
    """Remove // and /* */ comments, leaving string and char literals intact."""
    out = []
    i = 0
    n = len(text)
    while i < n:
        skipped = skip_literal(text, i)
        if skipped == i:
            out.append(text[i])
            i += 1
            continue
        if text[i] in '"\'':
            out.append(text[i:skipped])
        else:
            out.append(' ')
        i = skipped
    return ''.join(out)
