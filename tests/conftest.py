"""
Shared fixtures: the multiply-by-repeated-addition sample program and
its known-good assembly.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

SAMPLE_SOURCE = """\
        .ORIG x3000
        AND R3, R3, #0
        ST R1, StashR1
        ADD R2, R2, #0
        BRzp Loop
NegateR2
        NOT R2, R2
        ADD R2, R2, #1
        NOT R1, R1
        ADD R1, R1, #1
Loop    ADD R2, R2, #0
        BRz Done
        ADD R3, R3, R1
        ADD R2, R2, #-1
        BRnzp Loop
Done    LD R1, StashR1
        HALT
StashR1 .FILL x0000
        .END
"""

SAMPLE_MACHINE_CODE = [
    0x56E0, 0x320D, 0x14A0, 0x0604, 0x94BF, 0x14A1, 0x927F, 0x1261,
    0x14A0, 0x0403, 0x16C1, 0x14BF, 0x0FFB, 0x2201, 0xF025, 0x0000,
]

SAMPLE_SYMBOLS = {
    "NegateR2": 0x3004,
    "Loop": 0x3008,
    "Done": 0x300D,
    "StashR1": 0x300F,
}


@pytest.fixture
def sample_source():
    return SAMPLE_SOURCE


@pytest.fixture
def sample_program():
    from lc3_core.program import Program
    return Program(orig=0x3000, machine_code=list(SAMPLE_MACHINE_CODE),
                   symbol_table=dict(SAMPLE_SYMBOLS))
