"""
LC-3 Core - Instruction Decoder

Turns one 16-bit word into an Instruction descriptor. The decoder is
total: every one of the 65,536 possible words decodes to something, and
encodings that break the architecture's "must be zero" rules are flagged
with strict_valid=False instead of being rejected.

Opcode map (bits 15-12):
  0000 BR      0100 JSR/JSRR  1000 RTI     1100 JMP/RET
  0001 ADD     0101 AND       1001 NOT     1101 (reserved)
  0010 LD      0110 LDR       1010 LDI     1110 LEA
  0011 ST      0111 STR       1011 STI     1111 TRAP

Addressing modes:
  NONE         operands are registers / immediates only
  PC_OFFSET    effective address = incremented PC + offset
  BASE_OFFSET  effective address = R[base_r] + offset
  TRAP         trap_vector names a word in the trap vector table
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional

from ..numeric import sign_extend16, to_uint16


class Opcode(IntEnum):
    BR   = 0b0000
    ADD  = 0b0001
    LD   = 0b0010
    ST   = 0b0011
    JSR  = 0b0100
    AND  = 0b0101
    LDR  = 0b0110
    STR  = 0b0111
    RTI  = 0b1000
    NOT  = 0b1001
    LDI  = 0b1010
    STI  = 0b1011
    JMP  = 0b1100
    RSRV = 0b1101
    LEA  = 0b1110
    TRAP = 0b1111


class Opname(Enum):
    ADD = 'ADD'
    AND = 'AND'
    BR = 'BR'
    JMP = 'JMP'
    JSR = 'JSR'
    JSRR = 'JSRR'
    LD = 'LD'
    LDI = 'LDI'
    LDR = 'LDR'
    LEA = 'LEA'
    NOT = 'NOT'
    RET = 'RET'
    RTI = 'RTI'
    ST = 'ST'
    STI = 'STI'
    STR = 'STR'
    TRAP = 'TRAP'
    RSRV = 'RSRV'


class Mode(Enum):
    NONE = 'none'
    PC_OFFSET = 'pcOffset'
    BASE_OFFSET = 'baseOffset'
    TRAP = 'trap'


REGISTER = 'register'
IMMEDIATE = 'immediate'


@dataclass(frozen=True)
class Instruction:
    """Decoded form of one machine word.

    Only the fields meaningful for `mode` / `opname` are populated; the
    rest stay None.
    """
    raw: int
    opcode: Opcode
    opname: Opname
    mode: Mode
    strict_valid: bool = True
    dr: Optional[int] = None
    sr: Optional[int] = None
    sr1: Optional[int] = None
    sr2: Optional[int] = None
    base_r: Optional[int] = None
    offset: Optional[int] = None
    immediate_field: Optional[int] = None
    arithmetic_mode: Optional[str] = None
    trap_vector: Optional[int] = None
    n: Optional[bool] = None
    z: Optional[bool] = None
    p: Optional[bool] = None

    @property
    def nzp(self) -> int:
        """Branch condition as PSR-style bits (N=4, Z=2, P=1)."""
        return (bool(self.n) << 2) | (bool(self.z) << 1) | bool(self.p)


# ──────────────────────────────────────────────
# Field extraction
# ──────────────────────────────────────────────

def _bits(word: int, hi: int, lo: int) -> int:
    """Extract bits hi..lo (inclusive) as an unsigned field."""
    return (word >> lo) & ((1 << (hi - lo + 1)) - 1)


def _decode_arithmetic(word: int, opcode: Opcode) -> Instruction:
    opname = Opname.ADD if opcode == Opcode.ADD else Opname.AND
    common = dict(raw=word, opcode=opcode, opname=opname, mode=Mode.NONE,
                  dr=_bits(word, 11, 9), sr1=_bits(word, 8, 6))
    if _bits(word, 5, 5) == 0:
        # bits 4-3 must be zero in register mode
        return Instruction(**common, arithmetic_mode=REGISTER,
                           sr2=_bits(word, 2, 0),
                           strict_valid=_bits(word, 4, 3) == 0)
    return Instruction(**common, arithmetic_mode=IMMEDIATE,
                       immediate_field=sign_extend16(word, 5))


def _decode_br(word: int, opcode: Opcode) -> Instruction:
    return Instruction(raw=word, opcode=opcode, opname=Opname.BR,
                       mode=Mode.PC_OFFSET,
                       offset=sign_extend16(word, 9),
                       n=bool(_bits(word, 11, 11)),
                       z=bool(_bits(word, 10, 10)),
                       p=bool(_bits(word, 9, 9)))


def _decode_jmp(word: int, opcode: Opcode) -> Instruction:
    base_r = _bits(word, 8, 6)
    return Instruction(raw=word, opcode=opcode,
                       opname=Opname.RET if base_r == 7 else Opname.JMP,
                       mode=Mode.BASE_OFFSET, base_r=base_r, offset=0,
                       strict_valid=(_bits(word, 11, 9) == 0
                                     and _bits(word, 5, 0) == 0))


def _decode_jsr(word: int, opcode: Opcode) -> Instruction:
    if _bits(word, 11, 11):
        return Instruction(raw=word, opcode=opcode, opname=Opname.JSR,
                           mode=Mode.PC_OFFSET,
                           offset=sign_extend16(word, 11))
    return Instruction(raw=word, opcode=opcode, opname=Opname.JSRR,
                       mode=Mode.BASE_OFFSET, base_r=_bits(word, 8, 6),
                       offset=0,
                       strict_valid=(_bits(word, 10, 9) == 0
                                     and _bits(word, 5, 0) == 0))


def _decode_pc_load(word: int, opcode: Opcode) -> Instruction:
    return Instruction(raw=word, opcode=opcode, opname=Opname[opcode.name],
                       mode=Mode.PC_OFFSET, dr=_bits(word, 11, 9),
                       offset=sign_extend16(word, 9))


def _decode_pc_store(word: int, opcode: Opcode) -> Instruction:
    return Instruction(raw=word, opcode=opcode, opname=Opname[opcode.name],
                       mode=Mode.PC_OFFSET, sr=_bits(word, 11, 9),
                       offset=sign_extend16(word, 9))


def _decode_ldr(word: int, opcode: Opcode) -> Instruction:
    return Instruction(raw=word, opcode=opcode, opname=Opname.LDR,
                       mode=Mode.BASE_OFFSET, dr=_bits(word, 11, 9),
                       base_r=_bits(word, 8, 6),
                       offset=sign_extend16(word, 6))


def _decode_str(word: int, opcode: Opcode) -> Instruction:
    return Instruction(raw=word, opcode=opcode, opname=Opname.STR,
                       mode=Mode.BASE_OFFSET, sr=_bits(word, 11, 9),
                       base_r=_bits(word, 8, 6),
                       offset=sign_extend16(word, 6))


def _decode_not(word: int, opcode: Opcode) -> Instruction:
    return Instruction(raw=word, opcode=opcode, opname=Opname.NOT,
                       mode=Mode.NONE, dr=_bits(word, 11, 9),
                       sr=_bits(word, 8, 6),
                       strict_valid=_bits(word, 5, 0) == 0b111111)


def _decode_trap(word: int, opcode: Opcode) -> Instruction:
    return Instruction(raw=word, opcode=opcode, opname=Opname.TRAP,
                       mode=Mode.TRAP, trap_vector=_bits(word, 7, 0),
                       strict_valid=_bits(word, 11, 8) == 0)


def _decode_rti(word: int, opcode: Opcode) -> Instruction:
    return Instruction(raw=word, opcode=opcode, opname=Opname.RTI,
                       mode=Mode.NONE,
                       strict_valid=_bits(word, 11, 0) == 0)


def _decode_reserved(word: int, opcode: Opcode) -> Instruction:
    return Instruction(raw=word, opcode=opcode, opname=Opname.RSRV,
                       mode=Mode.NONE, strict_valid=False)


# Every one of the 16 opcodes has an entry; decode() never falls through.
_FORMATS = {
    Opcode.BR:   _decode_br,
    Opcode.ADD:  _decode_arithmetic,
    Opcode.LD:   _decode_pc_load,
    Opcode.ST:   _decode_pc_store,
    Opcode.JSR:  _decode_jsr,
    Opcode.AND:  _decode_arithmetic,
    Opcode.LDR:  _decode_ldr,
    Opcode.STR:  _decode_str,
    Opcode.RTI:  _decode_rti,
    Opcode.NOT:  _decode_not,
    Opcode.LDI:  _decode_pc_load,
    Opcode.STI:  _decode_pc_store,
    Opcode.JMP:  _decode_jmp,
    Opcode.RSRV: _decode_reserved,
    Opcode.LEA:  _decode_pc_load,
    Opcode.TRAP: _decode_trap,
}


def decode(word: int) -> Instruction:
    """Decode a 16-bit word. Values outside 0..0xFFFF are wrapped first."""
    word = to_uint16(word)
    opcode = Opcode(word >> 12)
    return _FORMATS[opcode](word, opcode)
