"""
LC-3 Core - Raw Image Loader

Parses pre-encoded machine code typed as text, bypassing the assembler.

Input is either all binary (only 0/1 digits) or all hexadecimal (any
other hex digit present). Whitespace is ignored, so words may be spaced,
split across lines or run together; ';' starts a comment. The first
word is the origin, the rest are loaded from there. Symbol table is
always empty.

  3000 1a2b CAFE        -> orig x3000, code [x1A2B, xCAFE]
  0011 0000 0000 0000   -> orig x3000, code []
"""

import re

from .program import ParseResult, Program

_INVALID_CHAR_RE = re.compile(r'[^\s0-9A-Fa-f]')
_WHITESPACE_RE = re.compile(r'\s')
_NON_BINARY_RE = re.compile(r'[^01]')

HEX_CHARS_PER_WORD = 4
BINARY_CHARS_PER_WORD = 16


def _strip_comments(text: str) -> str:
    # keep empty lines so line numbers in diagnostics stay right
    return '\n'.join(line.split(';', 1)[0] for line in (text or '').split('\n'))


def parse_raw(text: str) -> ParseResult:
    """Parse raw hex/binary text into a ParseResult."""
    contents = _strip_comments(text)

    for line_index, line in enumerate(contents.split('\n')):
        match = _INVALID_CHAR_RE.search(line)
        if match:
            bad = match.group(0)
            return ParseResult.failure(
                f"Line {line_index + 1}: invalid character "
                f"{bad!r} (code point {ord(bad)}); raw data may only contain "
                f"0 and 1 (binary) or the digits 0-9 and letters A-F "
                f"(hexadecimal), and comments must start with a semicolon")

    data = _WHITESPACE_RE.sub('', contents)
    is_hex = bool(_NON_BINARY_RE.search(data))
    chars_per_word = HEX_CHARS_PER_WORD if is_hex else BINARY_CHARS_PER_WORD

    if len(data) % chars_per_word != 0:
        kind = "hexadecimal" if is_hex else "binary"
        noun = "character" if len(data) == 1 else "characters"
        return ParseResult.failure(
            f"invalid data length: found {len(data)} {noun}, but {kind} "
            f"data must be a multiple of {chars_per_word} characters long")

    if not data:
        return ParseResult.failure(
            "raw data is empty; it needs at least an origin address")

    base = 16 if is_hex else 2
    words = [int(data[i:i + chars_per_word], base)
             for i in range(0, len(data), chars_per_word)]
    return ParseResult.ok(Program(orig=words[0], machine_code=words[1:]))
