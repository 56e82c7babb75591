"""
LC-3 Core - 64K Word Memory with Device Register Routing

Memory is a flat list of 65,536 16-bit words. Reads and writes issued by
executing instructions go through read() / write(), which route device
register addresses (xFE00 region) to handler callbacks registered by the
peripheral models. Loaders and inspection tools use peek() / poke(),
which never trigger device side effects.

Every handler invocation sets io_touched; the execution engine clears it
at the start of a step and reports it back to the caller.
"""

from typing import Callable, Dict, Iterable, List, Optional

from ..constants import MEMORY_SIZE, WORD_MASK


class Memory:
    """Word-addressed LC-3 memory with I/O handler interception."""

    def __init__(self, words: Optional[Iterable[int]] = None):
        if words is None:
            self._mem: List[int] = [0] * MEMORY_SIZE
        else:
            self._mem = [w & WORD_MASK for w in words]
            if len(self._mem) != MEMORY_SIZE:
                raise ValueError(
                    f"memory image must have {MEMORY_SIZE} words, "
                    f"got {len(self._mem)}")

        # addr -> read_fn(addr) -> int / write_fn(addr, value) -> None
        self._io_read_handlers: Dict[int, Callable] = {}
        self._io_write_handlers: Dict[int, Callable] = {}

        self.io_touched = False

    # --- Raw access (no side effects) ---

    def peek(self, addr: int) -> int:
        return self._mem[addr & WORD_MASK]

    def poke(self, addr: int, value: int):
        self._mem[addr & WORD_MASK] = value & WORD_MASK

    # --- Instruction-level access ---

    def read(self, addr: int) -> int:
        """Read a word, routing device registers to their handler."""
        addr &= WORD_MASK
        handler = self._io_read_handlers.get(addr)
        if handler is not None:
            self.io_touched = True
            return handler(addr) & WORD_MASK
        return self._mem[addr]

    def write(self, addr: int, value: int):
        """Write a word, routing device registers to their handler.

        The raw cell is always updated so the register stays inspectable.
        """
        addr &= WORD_MASK
        value &= WORD_MASK
        self._mem[addr] = value
        handler = self._io_write_handlers.get(addr)
        if handler is not None:
            self.io_touched = True
            handler(addr, value)

    # --- I/O handler registration ---

    def register_io_handler(self, addr: int,
                            read_fn: Optional[Callable] = None,
                            write_fn: Optional[Callable] = None):
        """Register read/write handlers for a device register address.

        Args:
            addr: device register address
            read_fn: Callable(addr) -> int
            write_fn: Callable(addr, value) -> None
        """
        if read_fn:
            self._io_read_handlers[addr & WORD_MASK] = read_fn
        if write_fn:
            self._io_write_handlers[addr & WORD_MASK] = write_fn

    # --- Bulk operations ---

    def load(self, orig: int, words: Iterable[int]):
        """Copy words into memory starting at orig, wrapping past xFFFF."""
        for i, word in enumerate(words):
            self._mem[(orig + i) & WORD_MASK] = word & WORD_MASK

    def copy(self) -> 'Memory':
        """Copy the contents. Handlers are bound to a machine, so not copied."""
        other = Memory.__new__(Memory)
        other._mem = list(self._mem)
        other._io_read_handlers = {}
        other._io_write_handlers = {}
        other.io_touched = False
        return other

    def slice(self, start: int, end: int) -> List[int]:
        return self._mem[start:end]

    def __len__(self) -> int:
        return len(self._mem)

    def __getitem__(self, addr: int) -> int:
        return self._mem[addr]

    def __eq__(self, other):
        if not isinstance(other, Memory):
            return NotImplemented
        return self._mem == other._mem

    # --- Hex dump ---

    def hexdump(self, start: int, length: int = 64) -> str:
        """Eight words per row: address, hex words, printable low bytes."""
        lines = []
        for offset in range(0, length, 8):
            addr = (start + offset) & WORD_MASK
            row = [self._mem[(addr + i) & WORD_MASK] for i in range(8)]
            hex_words = ' '.join(f'{w:04X}' for w in row)
            text = ''.join(chr(w) if 0x20 <= w < 0x7F else '.' for w in row)
            lines.append(f'x{addr:04X}  {hex_words}  {text}')
        return '\n'.join(lines)
