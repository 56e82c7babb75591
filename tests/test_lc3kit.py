"""
lc3kit command-line tests. Each test writes its input files to tmp_path
and calls main() with an explicit argv.
"""
import pytest

import lc3kit
from conftest import SAMPLE_MACHINE_CODE

HELLO = """\
        .ORIG x3000
        LEA R0, Msg
Next    LDR R1, R0, #0
        BRz Stop
Poll    LDI R2, DsrPtr
        BRzp Poll
        STI R1, DdrPtr
        ADD R0, R0, #1
        BRnzp Next
Stop    HALT
DsrPtr  .FILL xFE04
DdrPtr  .FILL xFE06
Msg     .STRINGZ "Hi!"
        .END
"""

ECHO3 = """\
        .ORIG x3000
        AND R3, R3, #0
        ADD R3, R3, #3
Wait    LDI R0, KbsrPtr
        BRzp Wait
        LDI R0, KbdrPtr
        STI R0, DdrPtr
        ADD R3, R3, #-1
        BRp Wait
        HALT
KbsrPtr .FILL xFE00
KbdrPtr .FILL xFE02
DdrPtr  .FILL xFE06
        .END
"""


@pytest.fixture
def write(tmp_path):
    def _write(name, text):
        path = tmp_path / name
        path.write_text(text)
        return str(path)
    return _write


class TestAsm:
    def test_hex_image(self, write, sample_source, tmp_path):
        src = write("mul.asm", sample_source)
        out = tmp_path / "mul.hex"
        assert lc3kit.main(["asm", src, "-o", str(out)]) == 0
        lines = out.read_text().split()
        assert lines[0] == "3000"
        assert [int(w, 16) for w in lines[1:]] == SAMPLE_MACHINE_CODE

    def test_bin_image_loads_back(self, write, sample_source, tmp_path, capsys):
        src = write("mul.asm", sample_source)
        out = tmp_path / "mul.bin"
        lc3kit.main(["asm", src, "-o", str(out), "--format", "bin"])
        assert out.read_text().splitlines()[0] == "0011000000000000"
        capsys.readouterr()
        lc3kit.main(["raw", str(out)])
        text = capsys.readouterr().out
        assert "x3000" in text
        assert "16" in text

    def test_obj_image(self, write, sample_source, tmp_path):
        src = write("mul.asm", sample_source)
        out = tmp_path / "mul.obj"
        lc3kit.main(["asm", src, "-o", str(out), "--format", "obj"])
        data = out.read_bytes()
        assert data[:4] == bytes([0x30, 0x00, 0x56, 0xE0])
        assert len(data) == 2 * (1 + len(SAMPLE_MACHINE_CODE))

    def test_stdout_and_symbols(self, write, sample_source, capsys):
        src = write("mul.asm", sample_source)
        lc3kit.main(["asm", src, "--symbols"])
        out = capsys.readouterr().out
        assert out.startswith("3000\n56E0\n")
        assert "StashR1" in out
        assert "x300F" in out

    def test_error_exits_nonzero(self, write, capsys):
        src = write("bad.asm", ".ORIG x3000\nADD R1, R1, #99\n.END\n")
        with pytest.raises(SystemExit) as info:
            lc3kit.main(["asm", src])
        assert info.value.code == 1
        err = capsys.readouterr().err
        assert "Line 2:" in err
        assert "range" in err

    def test_missing_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as info:
            lc3kit.main(["asm", str(tmp_path / "nope.asm")])
        assert info.value.code == 1
        assert "Error" in capsys.readouterr().err


class TestRaw:
    def test_bad_raw(self, write, capsys):
        path = write("bad.hex", "3000 12G4\n")
        with pytest.raises(SystemExit):
            lc3kit.main(["raw", path])
        assert "character" in capsys.readouterr().err


class TestDisasm:
    def test_table(self, write, capsys):
        path = write("mul.hex", "3000\n" + "\n".join(f"{w:04X}" for w in SAMPLE_MACHINE_CODE))
        lc3kit.main(["disasm", path])
        out = capsys.readouterr().out.splitlines()
        assert len(out) == len(SAMPLE_MACHINE_CODE)
        assert out[0].startswith("x3000  56E0")
        assert out[0].endswith("AND R3, R3, #0")
        assert "HALT" in out[14]

    def test_source_listing(self, write, sample_source, capsys):
        src = write("mul.asm", sample_source)
        lc3kit.main(["disasm", src, "--asm", "--source"])
        listing = capsys.readouterr().out
        assert "BRnzp Loop" in listing
        assert listing.strip().endswith(".END")


class TestRun:
    def test_hello(self, write, capsys):
        src = write("hello.asm", HELLO)
        assert lc3kit.main(["run", src, "--asm"]) == 0
        out = capsys.readouterr().out
        assert "Hi!" in out
        assert "[halted after" in out

    def test_keyboard_input(self, write, capsys):
        src = write("echo.asm", ECHO3)
        lc3kit.main(["run", src, "--asm", "--input", "abcd"])
        out = capsys.readouterr().out
        assert out.splitlines()[0] == "abc"
        assert "[halted after" in out

    def test_step_budget(self, write, capsys):
        src = write("spin.asm", ".ORIG x3000\nSpin BRnzp Spin\n.END\n")
        lc3kit.main(["run", src, "--asm", "--max-steps", "10"])
        out = capsys.readouterr().out
        assert "[step budget exhausted after 10 steps]" in out
        assert "PC=3000" in out

    def test_trap_routines_are_not_installed(self, write, capsys):
        """OUT jumps through the empty vector table and prints nothing"""
        src = write("out.asm", ".ORIG x3000\nLD R0, Char\nOUT\nHALT\n"
                               "Char .FILL x41\n.END\n")
        lc3kit.main(["run", src, "--asm", "--max-steps", "50"])
        out = capsys.readouterr().out
        assert out.splitlines()[0] == "[step budget exhausted after 50 steps]"

    def test_trace(self, write, capsys):
        src = write("halt.asm", ".ORIG x3000\nAND R0, R0, #0\nHALT\n.END\n")
        lc3kit.main(["run", src, "--asm", "--trace"])
        out = capsys.readouterr().out
        assert "x3000: 5020 AND" in out
        assert "x3001: F025 TRAP" in out

    def test_run_obj_image(self, write, tmp_path, capsys):
        src = write("hello.asm", HELLO)
        obj = tmp_path / "hello.obj"
        lc3kit.main(["asm", src, "-o", str(obj), "--format", "obj"])
        capsys.readouterr()
        lc3kit.main(["run", str(obj)])
        assert "Hi!" in capsys.readouterr().out


class TestHelpers:
    def test_program_from_obj_rejects_odd_length(self):
        with pytest.raises(lc3kit.AssemblyError):
            lc3kit.program_from_obj(b"\x30")

    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as info:
            lc3kit.main([])
        assert info.value.code == 0
        assert "lc3kit" in capsys.readouterr().out
