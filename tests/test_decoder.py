"""
Instruction decoder tests.

Words are hand-encoded from the LC-3 ISA tables; see the opcode map in
lc3_core/cpu/decoder.py.
"""
import pytest

from lc3_core.cpu.decoder import (
    IMMEDIATE, REGISTER, Mode, Opcode, Opname, decode,
)


class TestTotality:
    def test_every_word_decodes(self):
        """All 65,536 words decode, keep their raw value and opcode."""
        for word in range(0x10000):
            instr = decode(word)
            assert instr.raw == word
            assert instr.opcode == word >> 12

    def test_out_of_range_input_wraps(self):
        assert decode(0x11234).raw == 0x1234
        assert decode(-1).raw == 0xFFFF


class TestOperate:
    def test_add_register(self):
        """ADD R1, R2, R3 = 0001 001 010 0 00 011"""
        instr = decode(0x1283)
        assert instr.opname == Opname.ADD
        assert instr.mode == Mode.NONE
        assert instr.arithmetic_mode == REGISTER
        assert (instr.dr, instr.sr1, instr.sr2) == (1, 2, 3)
        assert instr.strict_valid

    def test_add_register_reserved_bits(self):
        """Bits 4-3 set in register mode: decodes, but not strictly valid."""
        instr = decode(0x1283 | 0b11000)
        assert instr.opname == Opname.ADD
        assert instr.sr2 == 3
        assert not instr.strict_valid

    def test_add_immediate_negative(self):
        """ADD R2, R2, #-1 = 0x14BF"""
        instr = decode(0x14BF)
        assert instr.arithmetic_mode == IMMEDIATE
        assert instr.immediate_field == -1
        assert instr.sr2 is None
        assert instr.strict_valid

    def test_and_immediate(self):
        """AND R3, R3, #0 = 0x56E0"""
        instr = decode(0x56E0)
        assert instr.opname == Opname.AND
        assert (instr.dr, instr.sr1, instr.immediate_field) == (3, 3, 0)

    def test_not(self):
        instr = decode(0x94BF)
        assert instr.opname == Opname.NOT
        assert (instr.dr, instr.sr) == (2, 2)
        assert instr.strict_valid

    def test_not_low_bits_must_be_ones(self):
        assert not decode(0x94BE).strict_valid


class TestControl:
    def test_branch_flags_and_offset(self):
        """BRnzp #-5 = 0000 111 111111011"""
        instr = decode(0x0FFB)
        assert instr.opname == Opname.BR
        assert instr.mode == Mode.PC_OFFSET
        assert (instr.n, instr.z, instr.p) == (True, True, True)
        assert instr.nzp == 0b111
        assert instr.offset == -5

    def test_branch_never(self):
        instr = decode(0x0000)
        assert instr.opname == Opname.BR
        assert instr.nzp == 0
        assert instr.strict_valid

    def test_jmp_and_ret(self):
        jmp = decode(0xC080)     # JMP R2
        assert jmp.opname == Opname.JMP
        assert jmp.base_r == 2
        ret = decode(0xC1C0)     # JMP R7
        assert ret.opname == Opname.RET
        assert ret.mode == Mode.BASE_OFFSET
        assert ret.strict_valid

    def test_jmp_reserved_bits(self):
        assert not decode(0xC081).strict_valid
        assert not decode(0xC280).strict_valid

    def test_jsr(self):
        instr = decode(0x4800 | 0x7FF)    # JSR #-1
        assert instr.opname == Opname.JSR
        assert instr.mode == Mode.PC_OFFSET
        assert instr.offset == -1

    def test_jsrr(self):
        instr = decode(0x4140)           # JSRR R5
        assert instr.opname == Opname.JSRR
        assert instr.base_r == 5
        assert instr.strict_valid
        assert not decode(0x4141).strict_valid
        assert not decode(0x4340).strict_valid

    def test_trap(self):
        instr = decode(0xF025)
        assert instr.opname == Opname.TRAP
        assert instr.mode == Mode.TRAP
        assert instr.trap_vector == 0x25
        assert instr.strict_valid
        assert not decode(0xF125).strict_valid

    def test_rti(self):
        assert decode(0x8000).opname == Opname.RTI
        assert decode(0x8000).strict_valid
        assert not decode(0x8001).strict_valid

    def test_reserved_opcode(self):
        for word in (0xD000, 0xDFFF, 0xD123):
            instr = decode(word)
            assert instr.opcode == Opcode.RSRV
            assert instr.opname == Opname.RSRV
            assert not instr.strict_valid


class TestLoadStore:
    @pytest.mark.parametrize("word, opname", [
        (0x2201, Opname.LD),
        (0xA201, Opname.LDI),
        (0xE201, Opname.LEA),
    ])
    def test_pc_relative_loads(self, word, opname):
        instr = decode(word)
        assert instr.opname == opname
        assert instr.mode == Mode.PC_OFFSET
        assert instr.dr == 1
        assert instr.offset == 1

    @pytest.mark.parametrize("word, opname", [
        (0x320D, Opname.ST),
        (0xB20D, Opname.STI),
    ])
    def test_pc_relative_stores(self, word, opname):
        instr = decode(word)
        assert instr.opname == opname
        assert instr.sr == 1
        assert instr.offset == 13

    def test_ldr_negative_offset(self):
        """LDR R1, R2, #-32 = 0110 001 010 100000"""
        instr = decode(0x62A0)
        assert instr.opname == Opname.LDR
        assert instr.mode == Mode.BASE_OFFSET
        assert (instr.dr, instr.base_r, instr.offset) == (1, 2, -32)

    def test_str(self):
        """STR R3, R4, #31 = 0111 011 100 011111"""
        instr = decode(0x771F)
        assert instr.opname == Opname.STR
        assert (instr.sr, instr.base_r, instr.offset) == (3, 4, 31)
