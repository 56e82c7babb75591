"""
LC-3 Core - CPU Register Set + Condition Code Management

Register model:
  R0-R7  general purpose, 16-bit
  PC     program counter, 16-bit
  IR     instruction register (last fetched word)
  PSR    processor status register
         bit 15:    privilege (1 = user)
         bits 10-8: priority (unused here)
         bit 2: N   bit 1: Z   bit 0: P
"""

from typing import List, Optional

from ..constants import (
    NUM_REGISTERS, INITIAL_PC, INITIAL_PSR, PSR_CC_MASK, WORD_MASK,
)
from ..numeric import (
    condition_flags_for, format_condition_code, get_condition_code,
)


class Registers:
    """LC-3 register file. Every stored value is kept in 0..0xFFFF."""

    __slots__ = ('_r', '_pc', '_ir', '_psr')

    def __init__(self):
        self._r: List[int] = [0] * NUM_REGISTERS
        self._pc: int = INITIAL_PC
        self._ir: int = 0
        self._psr: int = INITIAL_PSR

    # --- General purpose registers ---

    def get(self, n: int) -> int:
        _check_index(n)
        return self._r[n]

    def set(self, n: int, value: int):
        _check_index(n)
        self._r[n] = value & WORD_MASK

    # --- Special registers ---

    @property
    def pc(self) -> int:
        return self._pc

    @pc.setter
    def pc(self, value: int):
        self._pc = value & WORD_MASK

    @property
    def ir(self) -> int:
        return self._ir

    @ir.setter
    def ir(self, value: int):
        self._ir = value & WORD_MASK

    @property
    def psr(self) -> int:
        return self._psr

    @psr.setter
    def psr(self, value: int):
        self._psr = value & WORD_MASK

    # --- Condition codes ---

    def set_cc(self, result: int):
        """Set exactly one of N/Z/P from a result word; other PSR bits kept."""
        self._psr = (self._psr & ~PSR_CC_MASK & WORD_MASK) | condition_flags_for(result)

    @property
    def condition_code(self) -> Optional[int]:
        return get_condition_code(self._psr)

    # --- Copy / display ---

    def copy(self) -> 'Registers':
        other = Registers()
        other._r = list(self._r)
        other._pc = self._pc
        other._ir = self._ir
        other._psr = self._psr
        return other

    def as_dict(self) -> dict:
        regs = {f"r{n}": v for n, v in enumerate(self._r)}
        regs.update(pc=self._pc, ir=self._ir, psr=self._psr)
        return regs

    def display(self) -> str:
        """One-line register dump for traces and the CLI."""
        gprs = ' '.join(f"R{n}={v:04X}" for n, v in enumerate(self._r))
        return (f"{gprs} PC={self._pc:04X} IR={self._ir:04X} "
                f"PSR={self._psr:04X} [{format_condition_code(self._psr)}]")

    def reset(self):
        """Reset to power-on state."""
        self._r = [0] * NUM_REGISTERS
        self._pc = INITIAL_PC
        self._ir = 0
        self._psr = INITIAL_PSR

    def __eq__(self, other):
        if not isinstance(other, Registers):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self):
        return f"Registers({self.display()})"


def _check_index(n: int):
    if not 0 <= n < NUM_REGISTERS:
        raise IndexError(
            f"Numeric register index out of bounds: expected between 0 and "
            f"{NUM_REGISTERS - 1} inclusive, but got {n}")
