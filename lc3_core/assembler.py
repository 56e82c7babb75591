"""
LC-3 Two-Pass Assembler

Assembles LC-3 assembly text into a Program (origin, machine words,
symbol table).

Stages:
  tokenize               text -> list of token lines (never fails)
  find_orig              locate the .ORIG line -> (orig, begin)
  build_symbol_table     pass 1: bind labels to addresses, size the image
  generate_machine_code  pass 2: encode every instruction and directive

Every stage after tokenize returns Ok(value) or Err("Line N: message");
assemble() stops at the first Err and wraps the outcome in a ParseResult.
Nothing in here raises for bad source text.

Source surface:
  directives   .ORIG .END .FILL .BLKW .STRINGZ
  literals     #12  #-12  x1F  X1F  x-1F  -x1F
  strings      "text" with the escapes \\0 \\n \\r \\" \\\\
  comments     ; to end of line
  labels       leading [A-Za-z0-9_]+ token that is neither a command
               nor a numeric literal

Mnemonics and directives are matched case-insensitively; labels are
case-sensitive.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .constants import MEMORY_SIZE, TRAP_SHORTHANDS
from .cpu.decoder import Opcode
from .numeric import parse_number, to_hex_string, to_uint16
from .program import Err, Ok, ParseResult, Program, Result, line_error

__all__ = [
    'tokenize', 'parse_register', 'parse_literal', 'parse_string',
    'find_orig', 'is_valid_label_name', 'determine_required_memory',
    'build_symbol_table', 'parse_offset', 'encode_instruction',
    'encode_directive', 'generate_machine_code', 'assemble',
]

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# Command tables
# ──────────────────────────────────────────────

BRANCH_MNEMONICS = ('BR', 'BRN', 'BRZ', 'BRP', 'BRNZ', 'BRNP', 'BRZP', 'BRNZP')

INSTRUCTION_MNEMONICS = (
    'ADD', 'AND', 'NOT',
    *BRANCH_MNEMONICS,
    'JMP', 'RET',
    'JSR', 'JSRR',
    'LD', 'LDI', 'LDR',
    'LEA',
    'RTI',
    'ST', 'STI', 'STR',
    'TRAP',
)

DIRECTIVES = ('.FILL', '.BLKW', '.STRINGZ')

# Anything that can start a line without a label in front of it
COMMANDS = frozenset(INSTRUCTION_MNEMONICS) | frozenset(TRAP_SHORTHANDS) | frozenset(DIRECTIVES)

STRING_ESCAPES = {
    '0': '\0',
    'n': '\n',
    'r': '\r',
    '"': '"',
    '\\': '\\',
}

_REGISTER_RE = re.compile(r'[Rr]([0-7])')
_LABEL_CHARS_RE = re.compile(r'[A-Za-z0-9_]+')
_LINE_BREAK_RE = re.compile(r'\r?\n')


# ══════════════════════════════════════════════
# Tokenizer
# ══════════════════════════════════════════════

def tokenize(text: str) -> List[List[str]]:
    """Split source text into lines of tokens.

    Tokens are separated by whitespace and commas; ';' starts a comment.
    A double-quoted string is one token, kept with its quotes and escapes
    exactly as written (parse_string decodes it), so it may contain
    commas, spaces and semicolons. A quote left open at end of line is
    not a string at all: that stretch is re-split as plain tokens.

        '.ORIG x3000'           -> [['.ORIG', 'x3000']]
        'ADD R1, R2,R3 ; sum'   -> [['ADD', 'R1', 'R2', 'R3']]
        '.STRINGZ "a, b"'       -> [['.STRINGZ', '"a, b"']]
        '; note\\nRET'           -> [[], ['RET']]
    """
    return [_tokenize_line(line) for line in _LINE_BREAK_RE.split(text)]


_IDLE, _TOKEN, _STRING = range(3)


def _tokenize_line(line: str, strings: bool = True) -> List[str]:
    tokens: List[str] = []
    current = ""
    state = _IDLE

    i = 0
    while i < len(line):
        here = line[i]
        separator = here.isspace() or here == ','

        if state == _IDLE:
            if separator:
                i += 1
                continue
            state = _STRING if (strings and here == '"') else _TOKEN

        if state == _TOKEN:
            if here == ';':
                break
            if separator:
                tokens.append(current)
                current = ""
                state = _IDLE
            else:
                current += here
        else:
            current += here
            if here == '\\' and i + 1 < len(line):
                i += 1
                current += line[i]
            elif here == '"' and len(current) > 1:
                tokens.append(current)
                current = ""
                state = _IDLE
        i += 1

    if current:
        if state == _TOKEN:
            tokens.append(current)
        else:
            # unterminated quote
            tokens.extend(_tokenize_line(current, strings=False))
    return tokens


# ══════════════════════════════════════════════
# Operand parsing
# ══════════════════════════════════════════════

def parse_register(text: str) -> Optional[int]:
    """'R0'..'R7' (either case) -> 0..7, else None."""
    match = _REGISTER_RE.fullmatch(text)
    return int(match.group(1)) if match else None


def parse_literal(text: str) -> Optional[int]:
    """Parse an assembler numeric literal, or return None.

    '#' introduces decimal, 'x'/'X' hexadecimal; one minus sign is
    allowed after '#', after the 'x', or before the 'x'. The digits
    themselves are read by numeric.parse_number.
    """
    negate = text.startswith('-')
    if negate:
        text = text[1:]
        if text[:1] not in ('x', 'X'):
            return None

    prefix, body = text[:1], text[1:]
    if prefix not in ('#', 'x', 'X'):
        return None
    if body.startswith('-'):
        if negate:
            return None
        negate, body = True, body[1:]

    if prefix == '#':
        # decimal only; parse_number would also take 'x'
        if body[:1] in ('x', 'X'):
            return None
        value = parse_number(body)
    else:
        value = parse_number('x' + body)

    # no double negatives
    if value is None or value < 0:
        return None
    return -value if negate else value


def parse_string(text: str) -> Result:
    """Decode a quoted string token as written in the source.

    Returns Ok(decoded text) or Err(message). The token must start and
    end with an unescaped double quote and use only the escapes
    \\0 \\n \\r \\" \\\\.
    """
    def error(message):
        return Err(f"while parsing the string {text}: {message}")

    if len(text) < 2:
        return error("a string needs at least the two quotation marks")
    if not (text.startswith('"') and text.endswith('"')):
        return error('the string must start and end with double quotation '
                     'marks (e.g. "I\'m a string")')

    chars = []
    i = 1
    end = len(text) - 1
    while i < end:
        here = text[i]
        if here == '"':
            return error(f"at index {i}: unescaped double quote found "
                         f"before the end of the string")
        if here == '\\':
            escape = text[i + 1]
            if i + 1 == end:
                return error("unterminated string literal; the closing "
                             "quote is backslash-escaped")
            if escape not in STRING_ESCAPES:
                return error(f"at index {i}: unsupported escape "
                             f"character '{escape}'")
            chars.append(STRING_ESCAPES[escape])
            i += 2
        else:
            chars.append(here)
            i += 1

    return Ok(''.join(chars))


def is_valid_label_name(label: str) -> bool:
    """True if label could name a symbol.

    Only [A-Za-z0-9_]; anything that reads as a numeric literal is
    refused, and so is a bare 'x'/'X' since it looks like half of one.
    Clashes with existing labels are not checked here.
    """
    if not _LABEL_CHARS_RE.fullmatch(label):
        return False
    if label in ('x', 'X'):
        return False
    return parse_literal(label) is None


# ══════════════════════════════════════════════
# Origin
# ══════════════════════════════════════════════

def find_orig(lines: List[List[str]]) -> Result:
    """Find the .ORIG directive on the first non-empty line.

    Returns Ok((orig, begin)), begin being the index of the line after
    .ORIG, or Err naming the line.
    """
    index = next((i for i, line in enumerate(lines) if line), None)
    if index is None:
        return line_error(1, "the program is empty; it needs at least an "
                             ".ORIG directive and an .END directive")

    line = lines[index]
    line_num = index + 1

    if not any(token.upper() == '.ORIG' for token in line):
        return line_error(line_num, "the first non-empty, non-comment line "
                                    "must hold an .ORIG directive")
    if line[0].upper() != '.ORIG':
        return line_error(line_num, ".ORIG directive cannot have a label")

    operands = len(line) - 1
    if operands != 1:
        return line_error(line_num, f"the .ORIG directive expects exactly one "
                                    f"operand, but found {operands}")

    operand = line[1]
    orig = parse_literal(operand)
    if orig is None:
        return line_error(line_num, f"while parsing the .ORIG operand: "
                                    f"invalid numeric literal '{operand}'")
    if orig != to_uint16(orig):
        return line_error(line_num, f".ORIG operand ({operand}) is out of "
                                    f"range; it must be between x0000 and "
                                    f"xFFFF, inclusive")

    return Ok((orig, index + 1))


# ══════════════════════════════════════════════
# Program walk (shared by both passes)
# ══════════════════════════════════════════════

@dataclass
class _SourceLine:
    line_num: int
    label: Optional[str]
    body: List[str]


def _program_lines(lines: List[List[str]], begin: int) -> Result:
    """Split the lines after .ORIG into (label, body) up to .END.

    Returns Ok((source_lines, seen_end)). Anything after .END, labels
    included, is ignored.
    """
    program: List[_SourceLine] = []
    for index in range(begin, len(lines)):
        line = lines[index]
        line_num = index + 1
        if not line:
            continue

        first = line[0]
        if first.upper() == '.END':
            return Ok((program, True))

        if first.upper() in COMMANDS:
            program.append(_SourceLine(line_num, None, line))
            continue

        if first.startswith('.'):
            return line_error(line_num, f"unrecognized directive {first}")
        if not is_valid_label_name(first):
            return line_error(line_num, f"this line looks like a label, but "
                                        f"'{first}' is not a valid label name; "
                                        f"either an instruction is misspelled "
                                        f"or the label name is invalid")

        body = line[1:]
        if body and body[0].upper() == '.END':
            program.append(_SourceLine(line_num, first, []))
            return Ok((program, True))
        program.append(_SourceLine(line_num, first, body))

    return Ok((program, False))


def _missing_end(lines: List[List[str]]) -> Err:
    return line_error(max(len(lines), 1), "no .END directive found")


# ══════════════════════════════════════════════
# Pass 1: symbol table
# ══════════════════════════════════════════════

def determine_required_memory(command: str, operand=None) -> Result:
    """Words a command occupies.

    operand is the literal value for .FILL/.BLKW, the decoded text for
    .STRINGZ, and ignored for instructions.
    """
    command = command.upper()
    if command == '.FILL':
        return Ok(1)
    if command == '.BLKW':
        if operand < 0:
            return Err(f"a .BLKW needs a non-negative length, "
                       f"but found {operand}")
        return Ok(operand)
    if command == '.STRINGZ':
        return Ok(len(operand) + 1)
    return Ok(1)


def _directive_operand(command: str, operands: List[str]) -> Result:
    """Pass-1 view of a directive operand (what its size depends on)."""
    if command not in DIRECTIVES:
        return Err(f"unrecognized directive {command}")
    if len(operands) != 1:
        return Err(f"expected {command} directive to have exactly one "
                   f"operand, but found {len(operands)}")

    operand = operands[0]
    if command == '.BLKW':
        value = parse_literal(operand)
        if value is None:
            return Err(f"invalid numeric literal '{operand}' in .BLKW")
        return Ok(value)
    if command == '.STRINGZ':
        return parse_string(operand)
    # .FILL may name a label; it is resolved in pass 2
    return Ok(None)


def _past_memory_limit(address: int) -> str:
    return (f"currently at address {to_hex_string(address)}, which is past "
            f"the memory limit of {to_hex_string(MEMORY_SIZE)}")


def build_symbol_table(lines: List[List[str]], orig: int, begin: int) -> Result:
    """Pass 1. Returns Ok((symbol_table, program_length)) or Err."""
    walked = _program_lines(lines, begin)
    if isinstance(walked, Err):
        return walked
    program, seen_end = walked.value

    symbols: Dict[str, int] = {}
    address = orig

    for line in program:
        if line.label is not None:
            # a label must name a real memory cell
            if address + 1 > MEMORY_SIZE:
                return line_error(line.line_num, _past_memory_limit(address + 1))
            existing = symbols.get(line.label)
            if existing is not None and existing != address:
                return line_error(line.line_num,
                                  f"label name {line.label} already exists; "
                                  f"it points to {to_hex_string(existing)}")
            symbols[line.label] = address

        if not line.body:
            continue

        command = line.body[0].upper()
        if command.startswith('.'):
            operand = _directive_operand(command, line.body[1:])
            if isinstance(operand, Err):
                return line_error(line.line_num, operand.message)
            size = determine_required_memory(command, operand.value)
            if isinstance(size, Err):
                return line_error(line.line_num, size.message)
            size = size.value
        else:
            size = 1

        address += size
        if address > MEMORY_SIZE:
            return line_error(line.line_num, _past_memory_limit(address))

    if not seen_end:
        return _missing_end(lines)

    logger.debug("Pass 1: %d symbols, %d words from %s",
                 len(symbols), address - orig, to_hex_string(orig))
    return Ok((symbols, address - orig))


# ══════════════════════════════════════════════
# Pass 2: encoding
# ══════════════════════════════════════════════

def _signed_range(bits: int) -> Tuple[int, int]:
    return -(1 << (bits - 1)), (1 << (bits - 1)) - 1


def parse_offset(pc: int, operand: str, symbols: Dict[str, int], bits: int) -> Result:
    """Resolve a literal or label to a signed PC-relative offset.

    pc is the address after the instruction. A literal is the offset
    itself; a label yields label_address - pc. Returns Ok(offset) or
    Err when it does not fit in `bits` or names no known label.
    """
    low, high = _signed_range(bits)

    offset = parse_literal(operand)
    if offset is None:
        if operand not in symbols:
            return Err(f"the offset '{operand}' is not a valid numeric "
                       f"literal, and there is no label by that name in the "
                       f"symbol table; is a label name misspelled?")
        offset = symbols[operand] - pc

    if not low <= offset <= high:
        return Err(f"offset {offset} is out of range; it must fit into "
                   f"{bits} bits, so it should be between {low} and {high}, "
                   f"inclusive")
    return Ok(offset)


def _field(value: int, bits: int) -> int:
    return to_uint16(value) & ((1 << bits) - 1)


def _registers(*texts: str) -> Result:
    numbers = []
    for text in texts:
        number = parse_register(text)
        if number is None:
            return Err(f"invalid register specification: '{text}'")
        numbers.append(number)
    return Ok(numbers)


def _offset_field(mnemonic: str, pc: int, operand: str,
                  symbols: Dict[str, int], bits: int) -> Result:
    offset = parse_offset(pc, operand, symbols, bits)
    if isinstance(offset, Err):
        return Err(f"while parsing the offset for a {mnemonic}: {offset.message}")
    return Ok(_field(offset.value, bits))


# --- Per-format encoders: (mnemonic, operands, pc, symbols) -> Result ---
# operand counts are checked before these run

def _encode_arithmetic(mnemonic, operands, pc, symbols):
    regs = _registers(*operands[:2])
    if isinstance(regs, Err):
        return regs
    dr, sr1 = regs.value
    opcode = Opcode.ADD if mnemonic.upper() == 'ADD' else Opcode.AND

    last = operands[2]
    immediate = parse_literal(last)
    if immediate is not None:
        low, high = _signed_range(5)
        if not low <= immediate <= high:
            return Err(f"immediate field is out of range: expected value to "
                       f"fit in 5 bits (i.e., to be between {low} and {high}, "
                       f"inclusive), but found {immediate}")
        operand2 = 0b100000 | _field(immediate, 5)
    else:
        sr2 = _registers(last)
        if isinstance(sr2, Err):
            return sr2
        operand2 = sr2.value[0]
    return Ok(opcode << 12 | dr << 9 | sr1 << 6 | operand2)


def _encode_not(mnemonic, operands, pc, symbols):
    regs = _registers(*operands)
    if isinstance(regs, Err):
        return regs
    dr, sr = regs.value
    return Ok(Opcode.NOT << 12 | dr << 9 | sr << 6 | 0b111111)


def _encode_branch(mnemonic, operands, pc, symbols):
    flags = mnemonic.upper()[2:] or 'NZP'
    nzp = ('N' in flags) << 2 | ('Z' in flags) << 1 | ('P' in flags)
    offset = _offset_field(mnemonic, pc, operands[0], symbols, 9)
    if isinstance(offset, Err):
        return offset
    return Ok(Opcode.BR << 12 | nzp << 9 | offset.value)


def _encode_jmp(mnemonic, operands, pc, symbols):
    base = _registers(operands[0])
    if isinstance(base, Err):
        return base
    return Ok(Opcode.JMP << 12 | base.value[0] << 6)


def _encode_ret(mnemonic, operands, pc, symbols):
    return Ok(Opcode.JMP << 12 | 7 << 6)


def _encode_jsr(mnemonic, operands, pc, symbols):
    offset = _offset_field(mnemonic, pc, operands[0], symbols, 11)
    if isinstance(offset, Err):
        return offset
    return Ok(Opcode.JSR << 12 | 1 << 11 | offset.value)


def _encode_jsrr(mnemonic, operands, pc, symbols):
    base = _registers(operands[0])
    if isinstance(base, Err):
        return base
    return Ok(Opcode.JSR << 12 | base.value[0] << 6)


def _encode_pc_relative(mnemonic, operands, pc, symbols):
    # DR for loads / LEA, SR for stores
    reg = _registers(operands[0])
    if isinstance(reg, Err):
        return reg
    offset = _offset_field(mnemonic, pc, operands[1], symbols, 9)
    if isinstance(offset, Err):
        return offset
    opcode = Opcode[mnemonic.upper()]
    return Ok(opcode << 12 | reg.value[0] << 9 | offset.value)


def _encode_base_relative(mnemonic, operands, pc, symbols):
    regs = _registers(*operands[:2])
    if isinstance(regs, Err):
        return regs
    reg, base = regs.value
    offset = _offset_field(mnemonic, pc, operands[2], symbols, 6)
    if isinstance(offset, Err):
        return offset
    opcode = Opcode[mnemonic.upper()]
    return Ok(opcode << 12 | reg << 9 | base << 6 | offset.value)


def _encode_rti(mnemonic, operands, pc, symbols):
    return Ok(Opcode.RTI << 12)


def _encode_trap(mnemonic, operands, pc, symbols):
    operand = operands[0]
    vector = parse_literal(operand)
    if vector is None:
        return Err(f"while parsing the trap vector: invalid numeric "
                   f"literal '{operand}'")
    if not 0 <= vector <= 0xFF:
        return Err(f"trap vector out of range: expected value to be an "
                   f"unsigned byte (i.e., between 0 and 255, inclusive), "
                   f"but found {vector}")
    return Ok(Opcode.TRAP << 12 | vector)


# mnemonic -> (operand count, encoder)
_INSTRUCTIONS = {
    'ADD':  (3, _encode_arithmetic),
    'AND':  (3, _encode_arithmetic),
    'NOT':  (2, _encode_not),
    **{name: (1, _encode_branch) for name in BRANCH_MNEMONICS},
    'JMP':  (1, _encode_jmp),
    'RET':  (0, _encode_ret),
    'JSR':  (1, _encode_jsr),
    'JSRR': (1, _encode_jsrr),
    'LD':   (2, _encode_pc_relative),
    'LDI':  (2, _encode_pc_relative),
    'LEA':  (2, _encode_pc_relative),
    'ST':   (2, _encode_pc_relative),
    'STI':  (2, _encode_pc_relative),
    'LDR':  (3, _encode_base_relative),
    'STR':  (3, _encode_base_relative),
    'RTI':  (0, _encode_rti),
    'TRAP': (1, _encode_trap),
}


def encode_instruction(tokens: List[str], pc: int, symbols: Dict[str, int]) -> Result:
    """Encode one instruction line (label already removed).

    pc is the address after the instruction. Returns Ok([word]) or Err.
    """
    mnemonic = tokens[0]
    upname = mnemonic.upper()
    operands = tokens[1:]

    if upname in TRAP_SHORTHANDS:
        expected, encoder = 0, None
    elif upname in _INSTRUCTIONS:
        expected, encoder = _INSTRUCTIONS[upname]
    else:
        return Err(f'unrecognized instruction "{mnemonic}"')

    if len(operands) != expected:
        noun = "operand" if expected == 1 else "operands"
        return Err(f"expected {mnemonic} instruction to have exactly "
                   f"{expected} {noun}, but found {len(operands)}")

    if encoder is None:
        return Ok([Opcode.TRAP << 12 | TRAP_SHORTHANDS[upname]])

    word = encoder(mnemonic, operands, pc, symbols)
    if isinstance(word, Err):
        return word
    return Ok([int(word.value)])


def encode_directive(tokens: List[str],
                     symbol_table: Optional[Dict[str, int]] = None) -> Result:
    """Encode one directive line (label already removed) into words.

    .FILL wraps its value to 16 bits and may name a label when a symbol
    table is given; .BLKW reserves zero words; .STRINGZ emits one word
    per character plus a terminating zero.
    """
    directive = tokens[0]
    command = directive.upper()
    operands = tokens[1:]

    if command not in DIRECTIVES:
        return Err(f"unrecognized directive {directive}")
    if len(operands) != 1:
        return Err(f"expected {command} directive to have exactly one "
                   f"operand, but found {len(operands)}")
    operand = operands[0]

    if command == '.FILL':
        value = parse_literal(operand)
        if value is None:
            if symbol_table is None or operand not in symbol_table:
                return Err(f"the .FILL operand '{operand}' is neither a valid "
                           f"numeric literal nor a known label")
            value = symbol_table[operand]
        return Ok([to_uint16(value)])

    if command == '.BLKW':
        count = parse_literal(operand)
        if count is None:
            return Err(f"invalid numeric literal '{operand}' in .BLKW")
        size = determine_required_memory(command, count)
        if isinstance(size, Err):
            return size
        return Ok([0] * size.value)

    text = parse_string(operand)
    if isinstance(text, Err):
        return text
    return Ok([ord(char) & 0xFFFF for char in text.value] + [0])


def generate_machine_code(lines: List[List[str]], symbols: Dict[str, int],
                          orig: int, begin: int) -> Result:
    """Pass 2. Returns Ok(list of words) or Err."""
    walked = _program_lines(lines, begin)
    if isinstance(walked, Err):
        return walked
    program, seen_end = walked.value

    machine_code: List[int] = []
    address = orig

    for line in program:
        if not line.body:
            continue
        if line.body[0].startswith('.'):
            words = encode_directive(line.body, symbols)
        else:
            words = encode_instruction(line.body, address + 1, symbols)
        if isinstance(words, Err):
            return line_error(line.line_num, words.message)
        machine_code.extend(words.value)
        address += len(words.value)

    if not seen_end:
        return _missing_end(lines)

    logger.debug("Pass 2: %d words", len(machine_code))
    return Ok(machine_code)


# ══════════════════════════════════════════════
# Entry point
# ══════════════════════════════════════════════

def assemble(text: str) -> ParseResult:
    """Assemble LC-3 source text into a ParseResult.

    Usage:
        result = assemble(source)
        if result.success:
            machine.load_program(result.program)
        else:
            print(result.message)    # "Line 7: ..."
    """
    lines = tokenize(text)

    origin = find_orig(lines)
    if isinstance(origin, Err):
        return ParseResult.failure(origin.message)
    orig, begin = origin.value

    table = build_symbol_table(lines, orig, begin)
    if isinstance(table, Err):
        return ParseResult.failure(table.message)
    symbols, _length = table.value

    code = generate_machine_code(lines, symbols, orig, begin)
    if isinstance(code, Err):
        return ParseResult.failure(code.message)

    logger.debug("Assembled %d words at %s", len(code.value), to_hex_string(orig))
    return ParseResult.ok(Program(orig=orig, machine_code=code.value,
                                  symbol_table=symbols))
