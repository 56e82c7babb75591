"""
LC-3 Core - Display Device (DSR / DDR)

Register map:
  xFE04  DSR   display status, bit 15 = ready to accept a character
  xFE06  DDR   display data, low 8 bits are printed when written

Write of DDR clears the DSR ready bit and appends the low byte to the
console's stdout. The ready bit is not re-set here: there is no emulated
device latency, so whoever drives the machine sets DSR ready again when
it wants more output.
"""

import logging

from ..constants import DSR, DDR, READY_BIT, WORD_MASK

logger = logging.getLogger(__name__)


class Display:
    """Display register pair feeding a console stdout buffer."""

    def __init__(self, console):
        self.console = console
        self._mem = None

    def register(self, memory):
        """Wire DSR / DDR into the memory I/O system."""
        self._mem = memory
        memory.register_io_handler(DSR, self._read_reg, self._write_dsr)
        memory.register_io_handler(DDR, self._read_reg, self._write_ddr)

    def _read_reg(self, addr: int) -> int:
        return self._mem.peek(addr)

    def _write_dsr(self, addr: int, value: int):
        pass

    def _write_ddr(self, addr: int, value: int):
        self._mem.poke(DSR, self._mem.peek(DSR) & ~READY_BIT & WORD_MASK)
        char = chr(value & 0xFF)
        self.console.stdout.append(char)
        logger.debug("DDR -> %r", char)
