"""
Machine state tests: power-on state, program loading, snapshots, the
register file and raw/handler-routed memory access.
"""
import pytest

from lc3_core.constants import DDR, DSR, KBDR, KBSR, MEMORY_SIZE
from lc3_core.cpu.regs import Registers
from lc3_core.machine import Console, Machine
from lc3_core.mem.memory import Memory
from lc3_core.program import Program


class TestPowerOn:
    def test_initial_state(self):
        m = Machine()
        assert m.registers.pc == 0x3000
        assert m.registers.psr == 0x8002
        assert m.registers.condition_code == 0
        assert all(m.registers.get(n) == 0 for n in range(8))
        assert len(m.memory) == MEMORY_SIZE
        assert m.memory.peek(0x3000) == 0
        assert m.symbol_table == {}
        assert m.console.pending_input == ""
        assert m.console.output == ""
        assert m.subroutine_depth == 0


class TestLoadProgram:
    def test_writes_code_and_moves_pc(self):
        m = Machine()
        m.load_program(Program(0x4000, [0x1111, 0x2222], {"A": 0x4001}))
        assert m.memory.peek(0x4000) == 0x1111
        assert m.memory.peek(0x4001) == 0x2222
        assert m.registers.pc == 0x4000
        assert m.symbol_table == {"A": 0x4001}

    def test_symbols_merge_later_wins(self):
        m = Machine()
        m.load_program(Program(0x3000, [1], {"A": 0x3000, "B": 0x3000}))
        m.load_program(Program(0x5000, [2], {"A": 0x5000, "C": 0x3000}))
        assert m.symbol_table == {"A": 0x5000, "B": 0x3000, "C": 0x3000}

    def test_empty_program_keeps_pc(self):
        m = Machine()
        m.registers.pc = 0x1234
        m.load_program(Program(0x4000, [], {"X1": 0x4000}))
        assert m.registers.pc == 0x1234
        assert m.symbol_table == {"X1": 0x4000}

    def test_wraps_past_top_of_memory(self):
        m = Machine()
        m.load_program(Program(0xFFFF, [0xAAAA, 0xBBBB]))
        assert m.memory.peek(0xFFFF) == 0xAAAA
        assert m.memory.peek(0x0000) == 0xBBBB

    def test_loading_does_not_touch_devices(self):
        m = Machine()
        m.console.push_input("q")
        m.load_program(Program(KBSR, [0x8000, 0, ord("x")]))
        assert m.console.pending_input == "q"
        assert m.memory.peek(KBSR) == 0x8000
        assert m.memory.peek(KBDR) == ord("x")
        assert m.memory.io_touched is False


class TestCopy:
    def test_snapshot_is_independent(self):
        m = Machine()
        m.console.push_input("ab")
        m.symbol_table["L"] = 0x3000
        c = m.copy()
        c.memory.poke(0x3000, 0xFFFF)
        c.registers.set(0, 5)
        c.console.stdin.popleft()
        c.console.stdout.append("z")
        c.symbol_table["M"] = 1
        c.subroutine_depth = 3
        assert m.memory.peek(0x3000) == 0
        assert m.registers.get(0) == 0
        assert m.console.pending_input == "ab"
        assert m.console.output == ""
        assert m.symbol_table == {"L": 0x3000}
        assert m.subroutine_depth == 0


class TestRegisters:
    def test_values_masked(self):
        r = Registers()
        r.set(1, -1)
        r.pc = 0x12345
        assert r.get(1) == 0xFFFF
        assert r.pc == 0x2345

    @pytest.mark.parametrize("index", [-1, 8, 100])
    def test_bad_index(self, index):
        r = Registers()
        with pytest.raises(IndexError):
            r.get(index)
        with pytest.raises(IndexError):
            r.set(index, 0)

    def test_set_cc(self):
        r = Registers()
        r.psr = 0x8007
        r.set_cc(0xFFFF)
        assert r.psr == 0x8004
        r.set_cc(0)
        assert r.psr == 0x8002
        r.set_cc(1)
        assert r.psr == 0x8001

    def test_display(self):
        r = Registers()
        r.set(3, 0xABCD)
        text = r.display()
        assert "R3=ABCD" in text
        assert "PC=3000" in text
        assert "[Z]" in text

    def test_reset_and_equality(self):
        r = Registers()
        r.set(0, 9)
        r.reset()
        assert r == Registers()


class TestMemory:
    def test_peek_poke_are_raw(self):
        mem = Memory()
        seen = []
        mem.register_io_handler(KBDR, lambda a: seen.append(a) or 0x41)
        mem.poke(KBDR, 0x42)
        assert mem.peek(KBDR) == 0x42
        assert seen == []
        assert mem.io_touched is False

    def test_read_routes_to_handler(self):
        mem = Memory()
        mem.register_io_handler(KBDR, lambda a: 0x141)
        assert mem.read(KBDR) == 0x141
        assert mem.io_touched is True

    def test_write_stores_and_calls_handler(self):
        mem = Memory()
        written = []
        mem.register_io_handler(DDR, None, lambda a, v: written.append((a, v)))
        mem.write(DDR, 0x10041)
        assert written == [(DDR, 0x0041)]
        assert mem.peek(DDR) == 0x0041
        assert mem.io_touched is True

    def test_plain_addresses_do_not_touch(self):
        mem = Memory()
        mem.write(0x3000, 7)
        assert mem.read(0x3000) == 7
        assert mem.io_touched is False

    def test_copy_drops_handlers(self):
        mem = Memory()
        mem.register_io_handler(DSR, lambda a: 0xFFFF)
        mem.poke(DSR, 0x8000)
        other = mem.copy()
        assert other.read(DSR) == 0x8000
        assert other == mem

    def test_wrong_image_size(self):
        with pytest.raises(ValueError):
            Memory([0] * 10)

    def test_hexdump(self):
        mem = Memory()
        mem.load(0x3000, [ord(c) for c in "Hi"])
        first = mem.hexdump(0x3000, 8).splitlines()[0]
        assert first.startswith("x3000  0048 0069")
        assert first.endswith("Hi......")


class TestConsole:
    def test_push_and_output(self):
        c = Console()
        c.push_input("ab")
        c.push_input("c")
        assert c.pending_input == "abc"
        c.stdout.extend("xy")
        assert c.output == "xy"
