"""
LC-3 Core - Disassembler

Renders machine words back into assembly text using the same decoder
the execution engine runs on, so what is shown is what executes.

  disassemble_word(word, address, symbols)  one word -> text
  disassemble(program)                      (address, word, text) per word
  to_source(program)                        a complete .ORIG ... .END listing

PC-relative operands become label names when a symbol table is given and
a label sits exactly on the target; otherwise they are '#offset'. Words
the assembler would never produce (reserved opcode, nonzero must-be-zero
bits, BR with no condition) come out as '.FILL xNNNN ; ...' so that any
listing from to_source() assembles back to the identical image.
"""

from typing import Dict, Iterator, List, Optional, Tuple

from .assembler import COMMANDS, is_valid_label_name
from .constants import TRAP_SHORTHANDS, WORD_MASK
from .cpu.decoder import IMMEDIATE, Instruction, Opname, decode

TRAP_NAMES = {vector: name for name, vector in TRAP_SHORTHANDS.items()}


def _labels_by_address(symbol_table: Optional[Dict[str, int]]) -> Dict[int, str]:
    # first name alphabetically wins when several share an address
    labels: Dict[int, str] = {}
    for name, addr in sorted((symbol_table or {}).items()):
        labels.setdefault(addr & WORD_MASK, name)
    return labels


def _fill(word: int, note: str) -> str:
    return f".FILL x{word:04X} ; {note}"


def _target(instr: Instruction, address: Optional[int], labels: Dict[int, str]) -> str:
    if address is not None:
        label = labels.get((address + 1 + instr.offset) & WORD_MASK)
        if label is not None:
            return label
    return f"#{instr.offset}"


def _render(instr: Instruction, address: Optional[int], labels: Dict[int, str]) -> str:
    op = instr.opname
    name = op.value

    if op in (Opname.ADD, Opname.AND):
        if instr.arithmetic_mode == IMMEDIATE:
            last = f"#{instr.immediate_field}"
        else:
            last = f"R{instr.sr2}"
        return f"{name} R{instr.dr}, R{instr.sr1}, {last}"
    if op == Opname.NOT:
        return f"NOT R{instr.dr}, R{instr.sr}"
    if op == Opname.BR:
        flags = ('n' if instr.n else '') + ('z' if instr.z else '') + ('p' if instr.p else '')
        return f"BR{flags} {_target(instr, address, labels)}"
    if op in (Opname.JMP, Opname.JSRR):
        return f"{name} R{instr.base_r}"
    if op in (Opname.RET, Opname.RTI):
        return name
    if op == Opname.JSR:
        return f"JSR {_target(instr, address, labels)}"
    if op in (Opname.LD, Opname.LDI, Opname.LEA):
        return f"{name} R{instr.dr}, {_target(instr, address, labels)}"
    if op in (Opname.ST, Opname.STI):
        return f"{name} R{instr.sr}, {_target(instr, address, labels)}"
    if op == Opname.LDR:
        return f"LDR R{instr.dr}, R{instr.base_r}, #{instr.offset}"
    if op == Opname.STR:
        return f"STR R{instr.sr}, R{instr.base_r}, #{instr.offset}"
    if op == Opname.TRAP:
        return TRAP_NAMES.get(instr.trap_vector, f"TRAP x{instr.trap_vector:02X}")
    raise ValueError(f"no rendering for {name}")


def disassemble_word(word: int, address: Optional[int] = None,
                     symbol_table: Optional[Dict[str, int]] = None) -> str:
    """Render one word as assembly text."""
    instr = decode(word)
    if instr.opname == Opname.RSRV:
        return _fill(instr.raw, "reserved opcode")
    if not instr.strict_valid:
        return _fill(instr.raw, f"malformed {instr.opname.value}")
    if instr.opname == Opname.BR and instr.nzp == 0:
        return _fill(instr.raw, "BR with no condition (never taken)")
    return _render(instr, address, _labels_by_address(symbol_table))


def disassemble(program) -> Iterator[Tuple[int, int, str]]:
    """Yield (address, word, text) for every word of a Program."""
    labels = _labels_by_address(program.symbol_table)
    table = {name: addr for addr, name in labels.items()}
    for i, word in enumerate(program.machine_code):
        address = (program.orig + i) & WORD_MASK
        yield address, word, disassemble_word(word, address, table)


def to_source(program) -> str:
    """Assembly listing of a Program that assembles back to the same words.

    Only labels that land inside the image and can be written as a line
    label are used.
    """
    end = program.orig + len(program.machine_code)
    usable = {name: addr for name, addr in program.symbol_table.items()
              if program.orig <= addr < end
              and is_valid_label_name(name)
              and name.upper() not in COMMANDS}
    labels = _labels_by_address(usable)
    table = {name: addr for addr, name in labels.items()}

    width = max((len(name) for name in table), default=0) + 1
    out: List[str] = [f"{'':{width}}.ORIG x{program.orig:04X}"]
    for i, word in enumerate(program.machine_code):
        address = program.orig + i
        label = labels.get(address, '')
        out.append(f"{label:{width}}{disassemble_word(word, address, table)}")
    out.append(f"{'':{width}}.END")
    return '\n'.join(out) + '\n'
