"""
LC-3 Core - Numeric Utilities

Word-level helpers shared by the decoder, the execution engine and the
assembler. Python integers are unbounded, so every value that models a
machine word passes through to_uint16() / to_int16() before it is stored.

Literal syntax understood by parse_number():
  123     decimal
  x1F     hexadecimal ('x' or 'X' prefix, never '0x')
  -123    negative decimal
  -x1F    negative hexadecimal
"""

import re
from typing import Optional

from .constants import WORD_BITS, WORD_MASK, PSR_N, PSR_Z, PSR_P, PSR_CC_MASK

_HEX_DIGITS = re.compile(r'[0-9a-f]+')
_DEC_DIGITS = re.compile(r'[0-9]+')

SIGN_BIT = 1 << (WORD_BITS - 1)


def parse_number(text: str) -> Optional[int]:
    """Convert a decimal or x-prefixed hex string to an int.

    Returns None when the text is not a well-formed number (the
    equivalent of NaN): empty input, a bare sign, '0x' prefixes, double
    negation, stray characters.
    """
    text = text.lower()
    negative = text.startswith('-')
    if negative:
        text = text[1:]

    if text.startswith('x'):
        digits = text[1:]
        if not _HEX_DIGITS.fullmatch(digits):
            return None
        value = int(digits, 16)
    else:
        if not _DEC_DIGITS.fullmatch(text):
            return None
        value = int(text, 10)

    return -value if negative else value


def to_int16(n: int) -> int:
    """Wrap any integer to the signed 16-bit range [-32768, 32767]."""
    n &= WORD_MASK
    if n & SIGN_BIT:
        return n - (1 << WORD_BITS)
    return n


def to_uint16(n: int) -> int:
    """Wrap any integer to the unsigned 16-bit range [0, 65535]."""
    return n & WORD_MASK


def sign_extend16(n: int, bits: int) -> int:
    """Interpret the low *bits* of n as a signed field; return it as an int.

    >>> sign_extend16(0b10000, 5)
    -16
    >>> sign_extend16(0b01111, 5)
    15
    """
    mask = (1 << bits) - 1
    n &= mask
    if n & (1 << (bits - 1)):
        n -= 1 << bits
    return to_int16(n)


def to_hex_string(n: int, pad_length: int = 4, prefix: str = 'x') -> str:
    """Format n as upper-case hex, zero-padded to at least pad_length digits."""
    return prefix + f'{n:X}'.rjust(pad_length, '0')


def get_condition_code(psr: int) -> Optional[int]:
    """Return -1 / 0 / 1 for N / Z / P, or None if the PSR flags are malformed.

    Exactly one of the three condition bits must be set; an externally
    injected PSR with none or several set is reported as None.
    """
    flags = psr & PSR_CC_MASK
    if flags == PSR_N:
        return -1
    if flags == PSR_Z:
        return 0
    if flags == PSR_P:
        return 1
    return None


def format_condition_code(psr: int) -> str:
    """Render the PSR condition flags as 'N', 'Z', 'P' or 'Invalid'."""
    return {-1: 'N', 0: 'Z', 1: 'P'}.get(get_condition_code(psr), 'Invalid')


def condition_flags_for(value: int) -> int:
    """PSR condition bits (N, Z or P) describing a 16-bit result."""
    signed = to_int16(value)
    if signed < 0:
        return PSR_N
    if signed == 0:
        return PSR_Z
    return PSR_P
