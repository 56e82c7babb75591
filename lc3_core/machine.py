"""
LC-3 Core - Machine State

A Machine is the whole simulated computer at one point in time:
  memory            64K words (mem/memory.py)
  registers         R0-R7, PC, IR, PSR (cpu/regs.py)
  symbol_table      label -> address, merged in by every program load
  console           stdin queue / stdout buffer seen by the devices
  subroutine_depth  JSR/JSRR nesting counter, decremented by RET

Power-on state: PC = x3000, PSR = x8002 (Z), memory zero-filled, empty
symbol table and console.

The execution engine either mutates a Machine in place (Emulator.step)
or works on a copy (emu.step); copy() is a full, independent snapshot.
"""

import logging
from collections import deque
from typing import Dict, Iterable

from .cpu.regs import Registers
from .mem.memory import Memory

logger = logging.getLogger(__name__)


class Console:
    """Character buffers behind the keyboard and display devices."""

    def __init__(self, stdin: Iterable[str] = ""):
        self.stdin: deque = deque(stdin)
        self.stdout: list = []

    def push_input(self, text: str):
        """Queue characters for the keyboard."""
        self.stdin.extend(text)

    @property
    def output(self) -> str:
        return ''.join(self.stdout)

    @property
    def pending_input(self) -> str:
        return ''.join(self.stdin)

    def copy(self) -> 'Console':
        other = Console(self.stdin)
        other.stdout = list(self.stdout)
        return other


class Machine:
    """One LC-3 machine snapshot."""

    def __init__(self):
        self.memory = Memory()
        self.registers = Registers()
        self.symbol_table: Dict[str, int] = {}
        self.console = Console()
        self.subroutine_depth = 0

    def load_program(self, program):
        """Write a Program into memory and merge its symbols.

        Words land at orig, orig+1, ... wrapping past xFFFF. Later
        symbols overwrite earlier ones of the same name. The PC moves to
        the origin only if the program has machine code.
        """
        self.memory.load(program.orig, program.machine_code)
        self.symbol_table.update(program.symbol_table)
        if program.machine_code:
            self.registers.pc = program.orig
        logger.info("Loaded %d words at x%04X (%d symbols)",
                    len(program.machine_code), program.orig,
                    len(program.symbol_table))

    def copy(self) -> 'Machine':
        other = Machine.__new__(Machine)
        other.memory = self.memory.copy()
        other.registers = self.registers.copy()
        other.symbol_table = dict(self.symbol_table)
        other.console = self.console.copy()
        other.subroutine_depth = self.subroutine_depth
        return other

    def __repr__(self):
        return (f"Machine({self.registers.display()}, "
                f"depth={self.subroutine_depth})")
