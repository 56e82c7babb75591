#!/usr/bin/env python3
"""
lc3kit — LC-3 Toolkit
=====================

One CLI for the simulator and assembler:
    lc3kit asm     — Assemble LC-3 source to a hex / binary / object image
    lc3kit raw     — Check a raw hex or binary image
    lc3kit disasm  — Disassemble an image (or assembled source)
    lc3kit run     — Load a program and step it until HALT

Usage:
    python lc3kit.py <command> [options]
    python lc3kit.py --help
    python lc3kit.py <command> --help

Examples:
    python lc3kit.py asm multiply.asm -o multiply.hex --symbols
    python lc3kit.py asm multiply.asm -o multiply.obj --format obj
    python lc3kit.py raw multiply.hex
    python lc3kit.py disasm multiply.hex
    python lc3kit.py disasm multiply.asm --asm --source
    python lc3kit.py run hello.asm --asm
    python lc3kit.py run echo.asm --asm --input "abc" --max-steps 5000

No trap service routines are loaded, so GETC, OUT, PUTS and IN jump
through an empty vector table. Programs do console I/O by polling
KBSR/KBDR and DSR/DDR themselves (LDI on the status register, then
LDI/STI on the data register). HALT (TRAP x25) ends a run.
"""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from lc3_core import __version__
from lc3_core.assembler import assemble
from lc3_core.constants import DSR, KBSR, READY_BIT, TRAP_HALT
from lc3_core.cpu.decoder import Opname, decode
from lc3_core.disasm import disassemble, to_source
from lc3_core.emu import Emulator
from lc3_core.log_setup import setup_logging
from lc3_core.machine import Machine
from lc3_core.program import AssemblyError, Program
from lc3_core.raw import parse_raw

log = logging.getLogger("lc3_core.lc3kit")

DEFAULT_MAX_STEPS = 100_000
IMAGE_FORMATS = ("hex", "bin", "obj")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="lc3kit",
        description="LC-3 Toolkit — assemble, load, disassemble and run LC-3 programs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""commands:
  asm        Assemble LC-3 source to an image
  raw        Validate and summarize a raw hex/binary image
  disasm     Disassemble an image or assembled source
  run        Run a program until HALT or the step budget runs out
""",
    )
    parser.add_argument("--version", action="version", version=f"lc3kit {__version__}")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Console log level (default: WARNING)")
    parser.add_argument("--log-file", default=None,
                        help="Also write a DEBUG log to this file")
    sub = parser.add_subparsers(dest="command", metavar="command")

    # ── asm ──────────────────────────────────────────────────────────────
    p_asm = sub.add_parser("asm", help="Assemble LC-3 source to an image")
    p_asm.add_argument("input", help="Input .asm file")
    p_asm.add_argument("-o", "--output", help="Output image file (default: print hex to stdout)")
    p_asm.add_argument("--format", choices=IMAGE_FORMATS, default="hex",
                       help="Image format: hex/bin text (origin first) or big-endian obj")
    p_asm.add_argument("--symbols", action="store_true", help="Print the symbol table")

    # ── raw ──────────────────────────────────────────────────────────────
    p_raw = sub.add_parser("raw", help="Validate a raw hex/binary image")
    p_raw.add_argument("input", help="Input raw image (.hex, .bin text, or .obj)")

    # ── disasm ───────────────────────────────────────────────────────────
    p_dis = sub.add_parser("disasm", help="Disassemble an image")
    p_dis.add_argument("input", help="Input raw image, or source with --asm")
    p_dis.add_argument("--asm", action="store_true", help="Input is assembly source")
    p_dis.add_argument("--source", action="store_true",
                       help="Print a re-assemblable .ORIG/.END listing instead of a table")

    # ── run ──────────────────────────────────────────────────────────────
    p_run = sub.add_parser("run", help="Run a program until HALT")
    p_run.add_argument("input", help="Input raw image, or source with --asm")
    p_run.add_argument("--asm", action="store_true", help="Input is assembly source")
    p_run.add_argument("--max-steps", type=int, default=DEFAULT_MAX_STEPS,
                       help=f"Step budget (default: {DEFAULT_MAX_STEPS})")
    p_run.add_argument("--input", dest="stdin", default="",
                       help="Characters queued for the keyboard")
    p_run.add_argument("--trace", action="store_true", help="Print every executed instruction")

    # ── Parse and dispatch ───────────────────────────────────────────────
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(0)

    setup_logging(console_level=getattr(logging, args.log_level),
                  log_file=args.log_file)

    handler = COMMANDS[args.command]
    try:
        return handler(args)
    except AssemblyError as e:
        print(f"Assembly error: {e}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


# ═════════════════════════════════════════════════════════════════════════════
# HELPERS
# ═════════════════════════════════════════════════════════════════════════════

def load_program(path, is_source=False) -> Program:
    """Read a Program from assembly source, an .obj file, or a raw text image.

    Raises AssemblyError carrying the diagnostic on bad input.
    """
    path = Path(path)
    if is_source:
        return assemble(path.read_text(encoding="utf-8")).unwrap()
    if path.suffix.lower() == ".obj":
        return program_from_obj(path.read_bytes())
    return parse_raw(path.read_text(encoding="utf-8")).unwrap()


def program_from_obj(data: bytes) -> Program:
    """Big-endian 16-bit words, origin first."""
    if len(data) < 2 or len(data) % 2:
        raise AssemblyError(f"object image must hold a whole number of words "
                            f"(at least the origin), got {len(data)} bytes")
    words = [int.from_bytes(data[i:i + 2], "big") for i in range(0, len(data), 2)]
    return Program(orig=words[0], machine_code=words[1:])


def format_image(program: Program, fmt: str):
    """Serialize a Program; text for hex/bin, bytes for obj."""
    words = [program.orig] + list(program.machine_code)
    if fmt == "obj":
        return b"".join(w.to_bytes(2, "big") for w in words)
    if fmt == "bin":
        return "".join(f"{w:016b}\n" for w in words)
    return "".join(f"{w:04X}\n" for w in words)


def print_symbols(program: Program, console: Console):
    table = Table(title="Symbol table")
    table.add_column("Address", style="cyan")
    table.add_column("Label")
    for line in program.symbol_lines():
        addr, name = line.split(None, 1)
        table.add_row(addr, name)
    console.print(table)


def run_machine(machine: Machine, max_steps: int, trace: bool = False):
    """Step until a HALT trap has executed or max_steps is spent.

    Plays the part of the devices' outside world: the display is made
    ready before every step and the keyboard whenever input is pending.
    Returns (emulator, steps, halted).
    """
    emu = Emulator(machine, trace=trace)
    mem = machine.memory
    steps = 0
    while steps < max_steps:
        mem.poke(DSR, mem.peek(DSR) | READY_BIT)
        if machine.console.stdin:
            mem.poke(KBSR, mem.peek(KBSR) | READY_BIT)

        instr = decode(mem.peek(machine.registers.pc))
        emu.step()
        steps += 1
        if instr.opname == Opname.TRAP and instr.trap_vector == TRAP_HALT:
            log.info("HALT after %d steps", steps)
            return emu, steps, True

    log.info("Step budget of %d exhausted", max_steps)
    return emu, steps, False


# ═════════════════════════════════════════════════════════════════════════════
# COMMAND IMPLEMENTATIONS
# ═════════════════════════════════════════════════════════════════════════════

# ── asm ──────────────────────────────────────────────────────────────────
def cmd_asm(args):
    with open(args.input, "r", encoding="utf-8") as f:
        source = f.read()

    program = assemble(source).unwrap()
    image = format_image(program, args.format)

    if args.output:
        mode = "wb" if isinstance(image, bytes) else "w"
        with open(args.output, mode) as f:
            f.write(image)
        print(f"Assembled {len(program)} words at x{program.orig:04X} -> {args.output}")
    elif isinstance(image, bytes):
        print(image.hex())
    else:
        print(image, end="")

    if args.symbols:
        print_symbols(program, Console())
    log.info("Assembled %s", args.input)
    return 0


# ── raw ──────────────────────────────────────────────────────────────────
def cmd_raw(args):
    program = load_program(args.input)
    end = program.orig + len(program)
    print(f"Origin:  x{program.orig:04X}")
    print(f"Words:   {len(program)}")
    if program.machine_code:
        print(f"Range:   x{program.orig:04X}-x{(end - 1) & 0xFFFF:04X}")
    return 0


# ── disasm ───────────────────────────────────────────────────────────────
def cmd_disasm(args):
    program = load_program(args.input, is_source=args.asm)
    if args.source:
        print(to_source(program), end="")
        return 0

    labels = {addr: name for name, addr in sorted(program.symbol_table.items(), reverse=True)}
    for address, word, text in disassemble(program):
        print(f"x{address:04X}  {word:04X}  {labels.get(address, ''):12s}{text}")
    return 0


# ── run ──────────────────────────────────────────────────────────────────
def cmd_run(args):
    program = load_program(args.input, is_source=args.asm)

    machine = Machine()
    machine.console.push_input(args.stdin)
    machine.load_program(program)

    emu, steps, halted = run_machine(machine, args.max_steps, trace=args.trace)

    if args.trace:
        for line in emu.trace_output:
            print(line)

    output = machine.console.output
    if output:
        print(output, end="" if output.endswith("\n") else "\n")
    status = "halted" if halted else "step budget exhausted"
    print(f"[{status} after {steps} steps]")
    print(machine.registers.display())
    return 0


COMMANDS = {
    "asm": cmd_asm,
    "raw": cmd_raw,
    "disasm": cmd_disasm,
    "run": cmd_run,
}


if __name__ == "__main__":
    sys.exit(main())
