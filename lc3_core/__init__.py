# LC-3 Core - Simulator and assembler for the LC-3 educational computer
#
# Pipeline:
#   source text --assemble()--> ParseResult --unwrap()--> Program
#   raw hex/bin --parse_raw()-> ParseResult --unwrap()--> Program
#   Machine().load_program(program)
#   Emulator(machine).step()     in place, returns "device touched"
#   step(machine)                copy-then-step, returns (machine, touched)

from .assembler import assemble
from .cpu.decoder import Instruction, Mode, Opcode, Opname, decode
from .disasm import disassemble, disassemble_word, to_source
from .emu import Emulator, step
from .machine import Console, Machine
from .program import AssemblyError, Err, Lc3Error, Ok, ParseResult, Program
from .raw import parse_raw

__version__ = "0.1.0"

__all__ = [
    'assemble', 'parse_raw',
    'decode', 'Instruction', 'Mode', 'Opcode', 'Opname',
    'disassemble', 'disassemble_word', 'to_source',
    'Emulator', 'step',
    'Console', 'Machine',
    'AssemblyError', 'Err', 'Lc3Error', 'Ok', 'ParseResult', 'Program',
]
