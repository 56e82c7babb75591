"""
LC-3 Core - Architecture Constants

Fixed values for the LC-3 machine model. Everything here is dictated by
the architecture (or by the simulator's power-on state) and is not meant
to be tuned at runtime.

Memory map:
  x0000-x00FF  Trap vector table
  x0100-x01FF  Interrupt vector table (unused by this simulator)
  x0200-xFDFF  General memory (user programs conventionally at x3000)
  xFE00-xFFFF  Device registers
      xFE00  KBSR  keyboard status (bit 15 = ready)
      xFE02  KBDR  keyboard data   (low 8 bits = character)
      xFE04  DSR   display status  (bit 15 = ready)
      xFE06  DDR   display data    (low 8 bits = character)
"""

# ──────────────────────────────────────────────
# Memory geometry
# ──────────────────────────────────────────────

MEMORY_SIZE = 0x10000          # addressable words
WORD_BITS = 16
WORD_MASK = (1 << WORD_BITS) - 1

# ──────────────────────────────────────────────
# Device registers
# ──────────────────────────────────────────────

KBSR = 0xFE00
KBDR = 0xFE02
DSR = 0xFE04
DDR = 0xFE06

READY_BIT = 0x8000             # bit 15 of KBSR / DSR

# ──────────────────────────────────────────────
# Processor status register
# ──────────────────────────────────────────────

PSR_N = 0b100
PSR_Z = 0b010
PSR_P = 0b001
PSR_CC_MASK = PSR_N | PSR_Z | PSR_P

# ──────────────────────────────────────────────
# Power-on state
# ──────────────────────────────────────────────

INITIAL_PC = 0x3000
INITIAL_PSR = 0x8000 | PSR_Z   # user mode, Z set

NUM_REGISTERS = 8

# ──────────────────────────────────────────────
# Trap service routines (assembler shorthands)
# ──────────────────────────────────────────────

TRAP_GETC = 0x20
TRAP_OUT = 0x21
TRAP_PUTS = 0x22
TRAP_IN = 0x23
TRAP_PUTSP = 0x24
TRAP_HALT = 0x25

TRAP_SHORTHANDS = {
    'GETC':  TRAP_GETC,
    'OUT':   TRAP_OUT,
    'PUTS':  TRAP_PUTS,
    'IN':    TRAP_IN,
    'PUTSP': TRAP_PUTSP,
    'HALT':  TRAP_HALT,
}
