"""Character classification and operator tries for the lexer.

Every character is described by a small bit set so the lexer can answer
"is this an identifier character?", "is this blank?" and so on with a
single table lookup. Code points at or above 128 default to identifier
characters unless listed in ``_EXTENDED``.

Bits:
    WORD: identifier character
    OPERATOR: may start an operator (``!``, ``<``, ``=``, ``>``)
    BLANK: any whitespace, consumed by ``skip_blank``
    QUOTE: string delimiter
    INLINE_BLANK: whitespace that is not a line break
    NUMBER: decimal digit
    SIGN: ``+`` or ``-`` prefix of a number
    BOUNDARY: non-blank punctuation that still ends an identifier
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

WORD = 1
OPERATOR = 2
BLANK = 4
QUOTE = 8
INLINE_BLANK = 16
NUMBER = 32
SIGN = 64
BOUNDARY = 128


def _build_ascii_table() -> tuple[int, ...]:
    table = [0] * 128
    for ch in "\t\r ":
        table[ord(ch)] = BLANK | INLINE_BLANK
    for ch in "\n\v\f":
        table[ord(ch)] = BLANK
    for ch in "!<=>":
        table[ord(ch)] = OPERATOR
    for ch in "\"'":
        table[ord(ch)] = QUOTE
    for code in range(ord("0"), ord("9") + 1):
        table[code] = WORD | NUMBER
    for code in range(ord("a"), ord("z") + 1):
        table[code] = WORD
        table[code - 32] = WORD
    table[ord("_")] = WORD
    table[ord("?")] = WORD
    table[ord("+")] = SIGN
    table[ord("-")] = WORD | SIGN
    return tuple(table)


_ASCII = _build_ascii_table()

# Unicode spaces and typographic quotes that must not be read as identifiers
_EXTENDED: dict[int, int] = {
    code: BLANK
    for code in (160, 5760, 6158, *range(8192, 8203), 8232, 8233, 8239, 8287, 12288)
}
_EXTENDED[8220] = BOUNDARY
_EXTENDED[8221] = BOUNDARY


def char_type(ch: str) -> int:
    """Return the classification bits for a single character ("" is 0)."""
    if not ch:
        return 0
    code = ord(ch)
    if code < 128:
        return _ASCII[code]
    return _EXTENDED.get(code, 0)


def is_word(ch: str) -> bool:
    """True if ``ch`` can appear inside an identifier."""
    if not ch:
        return False
    code = ord(ch)
    if code >= 128:
        return code not in _EXTENDED
    return bool(_ASCII[code] & WORD)


@dataclass(slots=True)
class TrieNode:
    """One character step of a compiled operator/literal trie."""

    children: dict[str, TrieNode] = field(default_factory=dict)
    end: bool = False
    need_boundary: bool = False
    data: Any = None


def create_trie(entries: dict[str, Any]) -> TrieNode:
    """Compile ``entries`` (keyword -> payload) into a trie.

    A keyword ending in an identifier character (``contains``, ``and``)
    is flagged so a match is rejected when another identifier character
    follows it. Symbolic operators (``==``, ``<``) match regardless.
    """
    root = TrieNode()
    for name, data in entries.items():
        node = root
        for ch in name:
            node = node.children.setdefault(ch, TrieNode())
        node.end = True
        node.data = data
        node.need_boundary = is_word(name[-1])
    return root
