"""
LC-3 Core - Execution Engine

Integrates:
  - Register file (cpu/regs.py)
  - Memory with device routing (mem/memory.py)
  - Instruction decoder (cpu/decoder.py)
  - Devices: keyboard, display (periph/)

Execution model, one call to step():
  1. Fetch the word at PC (raw peek, no device side effects) into IR
  2. Decode it
  3. PC <- PC + 1; control transfers overwrite it afterwards
  4. Dispatch on opname; loads/stores go through Memory.read/write so
     device registers see every access (LDI/STI pointers included)
  5. Report whether any device register was touched

Decoding never fails and execution never raises for any fetched word.
Words with strict_valid=False run on their decoded fields as-is; RTI and
the reserved opcode do nothing.

There is no run loop here. Stepping repeatedly, pacing around device
access and deciding when to stop belong to the caller.
"""

import logging
from typing import List, Tuple

from .constants import PSR_CC_MASK
from .cpu.decoder import Instruction, Opname, IMMEDIATE, decode
from .machine import Machine
from .numeric import to_hex_string
from .periph.display import Display
from .periph.keyboard import Keyboard

logger = logging.getLogger(__name__)

# RET and JSR/JSRR link through R7
LINK_REGISTER = 7


class Emulator:
    """Steps one Machine in place.

    Usage:
        machine = Machine()
        machine.load_program(assemble(source).unwrap())
        emu = Emulator(machine)
        while not done:
            touched = emu.step()
    """

    def __init__(self, machine: Machine, trace: bool = False):
        self.machine = machine
        self.regs = machine.registers
        self.mem = machine.memory

        self.keyboard = Keyboard(machine.console)
        self.display = Display(machine.console)
        self.keyboard.register(self.mem)
        self.display.register(self.mem)

        self._trace = trace
        self.trace_output: List[str] = []

        self._dispatch = self._build_dispatch()

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self) -> bool:
        """Execute one instruction. Returns True if a device register was touched."""
        regs = self.regs
        self.mem.io_touched = False

        pc = regs.pc
        word = self.mem.peek(pc)
        regs.ir = word
        instr = decode(word)
        regs.pc = pc + 1

        if not instr.strict_valid:
            logger.warning("Executing malformed word %s (%s) at %s",
                           to_hex_string(word), instr.opname.value,
                           to_hex_string(pc))

        self._dispatch[instr.opname](instr)

        if logger.isEnabledFor(logging.DEBUG) or self._trace:
            line = f"x{pc:04X}: {word:04X} {instr.opname.value:5s} {regs.display()}"
            logger.debug(line)
            if self._trace:
                self.trace_output.append(line)

        return self.mem.io_touched

    def _build_dispatch(self) -> dict:
        return {
            Opname.ADD:  self._op_add,
            Opname.AND:  self._op_and,
            Opname.BR:   self._op_br,
            Opname.JMP:  self._op_jmp,
            Opname.RET:  self._op_ret,
            Opname.JSR:  self._op_jsr,
            Opname.JSRR: self._op_jsrr,
            Opname.LD:   self._op_ld,
            Opname.LDI:  self._op_ldi,
            Opname.LDR:  self._op_ldr,
            Opname.LEA:  self._op_lea,
            Opname.NOT:  self._op_not,
            Opname.ST:   self._op_st,
            Opname.STI:  self._op_sti,
            Opname.STR:  self._op_str,
            Opname.TRAP: self._op_trap,
            Opname.RTI:  self._op_nop,
            Opname.RSRV: self._op_nop,
        }

    # ══════════════════════════════════════════════
    # Helpers
    # ══════════════════════════════════════════════

    def _write_result(self, dr: int, value: int):
        """Write a destination register and set N/Z/P from it."""
        self.regs.set(dr, value)
        self.regs.set_cc(value)

    def _pc_relative(self, instr: Instruction) -> int:
        return (self.regs.pc + instr.offset) & 0xFFFF

    def _base_relative(self, instr: Instruction) -> int:
        return (self.regs.get(instr.base_r) + instr.offset) & 0xFFFF

    def _operand2(self, instr: Instruction) -> int:
        if instr.arithmetic_mode == IMMEDIATE:
            return instr.immediate_field & 0xFFFF
        return self.regs.get(instr.sr2)

    # ══════════════════════════════════════════════
    # Operate instructions
    # ══════════════════════════════════════════════

    def _op_add(self, instr: Instruction):
        self._write_result(instr.dr,
                           self.regs.get(instr.sr1) + self._operand2(instr))

    def _op_and(self, instr: Instruction):
        self._write_result(instr.dr,
                           self.regs.get(instr.sr1) & self._operand2(instr))

    def _op_not(self, instr: Instruction):
        self._write_result(instr.dr, ~self.regs.get(instr.sr))

    # ══════════════════════════════════════════════
    # Control transfer
    # ══════════════════════════════════════════════

    def _op_br(self, instr: Instruction):
        # nzp = 000 never branches; a malformed PSR matches bit by bit
        if instr.nzp & self.regs.psr & PSR_CC_MASK:
            self.regs.pc = self._pc_relative(instr)

    def _op_jmp(self, instr: Instruction):
        self.regs.pc = self.regs.get(instr.base_r)

    def _op_ret(self, instr: Instruction):
        self.regs.pc = self.regs.get(LINK_REGISTER)
        self.machine.subroutine_depth -= 1

    def _op_jsr(self, instr: Instruction):
        target = self._pc_relative(instr)
        self.regs.set(LINK_REGISTER, self.regs.pc)
        self.regs.pc = target
        self.machine.subroutine_depth += 1

    def _op_jsrr(self, instr: Instruction):
        # target read before R7 is overwritten (JSRR R7)
        target = self.regs.get(instr.base_r)
        self.regs.set(LINK_REGISTER, self.regs.pc)
        self.regs.pc = target
        self.machine.subroutine_depth += 1

    def _op_trap(self, instr: Instruction):
        self.regs.set(LINK_REGISTER, self.regs.pc)
        self.regs.pc = self.mem.read(instr.trap_vector)

    def _op_nop(self, instr: Instruction):
        pass

    # ══════════════════════════════════════════════
    # Loads and stores
    # ══════════════════════════════════════════════

    def _op_ld(self, instr: Instruction):
        self._write_result(instr.dr, self.mem.read(self._pc_relative(instr)))

    def _op_ldi(self, instr: Instruction):
        pointer = self.mem.read(self._pc_relative(instr))
        self._write_result(instr.dr, self.mem.read(pointer))

    def _op_ldr(self, instr: Instruction):
        self._write_result(instr.dr, self.mem.read(self._base_relative(instr)))

    def _op_lea(self, instr: Instruction):
        self._write_result(instr.dr, self._pc_relative(instr))

    def _op_st(self, instr: Instruction):
        self.mem.write(self._pc_relative(instr), self.regs.get(instr.sr))

    def _op_sti(self, instr: Instruction):
        pointer = self.mem.read(self._pc_relative(instr))
        self.mem.write(pointer, self.regs.get(instr.sr))

    def _op_str(self, instr: Instruction):
        self.mem.write(self._base_relative(instr), self.regs.get(instr.sr))


def step(machine: Machine) -> Tuple[Machine, bool]:
    """Step a copy of machine; return (new machine, device touched)."""
    new_machine = machine.copy()
    touched = Emulator(new_machine).step()
    return new_machine, touched
