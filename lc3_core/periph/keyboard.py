"""
LC-3 Core - Keyboard Device (KBSR / KBDR)

Register map:
  xFE00  KBSR  keyboard status, bit 15 = a character is waiting
  xFE02  KBDR  keyboard data, low 8 bits = last character delivered

The register values live in the machine's memory cells so that they are
part of the snapshot copied on every step. Pending characters come from
the machine console's stdin queue.

Read of KBDR:
  1. clear the KBSR ready bit
  2. if stdin has characters, pop the next one into KBDR
  3. set the ready bit again if stdin still has characters
  4. return KBDR

Reading KBSR, or writing either register, only stores/returns the cell.
Nothing here sets the ready bit on its own; the embedder decides when
the keyboard is "ready" (see lc3kit's run loop).
"""

import logging

from ..constants import KBSR, KBDR, READY_BIT, WORD_MASK

logger = logging.getLogger(__name__)


class Keyboard:
    """Keyboard register pair backed by a console stdin queue."""

    def __init__(self, console):
        self.console = console
        self._mem = None

    def register(self, memory):
        """Wire KBSR / KBDR into the memory I/O system."""
        self._mem = memory
        memory.register_io_handler(KBSR, self._read_kbsr, self._write_reg)
        memory.register_io_handler(KBDR, self._read_kbdr, self._write_reg)

    # --- KBSR ---

    def _read_kbsr(self, addr: int) -> int:
        return self._mem.peek(KBSR)

    # --- KBDR ---

    def _read_kbdr(self, addr: int) -> int:
        status = self._mem.peek(KBSR) & ~READY_BIT & WORD_MASK
        stdin = self.console.stdin
        if stdin:
            char = stdin.popleft()
            self._mem.poke(KBDR, ord(char) & 0xFF)
            logger.debug("KBDR <- %r, %d pending", char, len(stdin))
        if stdin:
            status |= READY_BIT
        self._mem.poke(KBSR, status)
        return self._mem.peek(KBDR)

    # Memory.write has already stored the value
    def _write_reg(self, addr: int, value: int):
        pass
