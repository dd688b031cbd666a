"""
Tests de las tablas de decodificación.

Valida longitudes y costes en M-Cycles de los 256 opcodes contra la tabla
documentada de la SM83, ejecuta cada instrucción que no salta para comprobar
cuánto avanza PC y qué flags respeta, y que los huecos del set de
instrucciones sean fatales.
"""

import pytest

from monoboy.cpu.opcodes import CB_TABLE, PRIMARY_TABLE, UNDEFINED_OPCODES, Op
from monoboy.cpu.registers import FLAG_C, FLAG_N, FLAG_Z
from monoboy.errors import UnimplementedOpcode

from tests.helpers_cpu import make_cpu


# Longitud en bytes por opcode (0 = no definido). Fila = nibble alto.
LENGTHS = (
    1, 3, 1, 1, 1, 1, 2, 1, 3, 1, 1, 1, 1, 1, 2, 1,  # 0x
    2, 3, 1, 1, 1, 1, 2, 1, 2, 1, 1, 1, 1, 1, 2, 1,  # 1x
    2, 3, 1, 1, 1, 1, 2, 1, 2, 1, 1, 1, 1, 1, 2, 1,  # 2x
    2, 3, 1, 1, 1, 1, 2, 1, 2, 1, 1, 1, 1, 1, 2, 1,  # 3x
    1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1,  # 4x
    1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1,  # 5x
    1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1,  # 6x
    1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1,  # 7x
    1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1,  # 8x
    1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1,  # 9x
    1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1,  # Ax
    1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1,  # Bx
    1, 1, 3, 3, 3, 1, 2, 1, 1, 1, 3, 2, 3, 3, 2, 1,  # Cx
    1, 1, 3, 0, 3, 1, 2, 1, 1, 1, 3, 0, 3, 0, 2, 1,  # Dx
    2, 1, 1, 0, 0, 1, 2, 1, 2, 1, 3, 0, 0, 0, 2, 1,  # Ex
    2, 1, 1, 1, 0, 1, 2, 1, 2, 1, 3, 1, 0, 0, 2, 1,  # Fx
)

# M-Cycles por opcode (con el salto tomado en los condicionales)
CYCLES = (
    1, 3, 2, 2, 1, 1, 2, 1, 5, 2, 2, 2, 1, 1, 2, 1,  # 0x
    1, 3, 2, 2, 1, 1, 2, 1, 3, 2, 2, 2, 1, 1, 2, 1,  # 1x
    3, 3, 2, 2, 1, 1, 2, 1, 3, 2, 2, 2, 1, 1, 2, 1,  # 2x
    3, 3, 2, 2, 3, 3, 3, 1, 3, 2, 2, 2, 1, 1, 2, 1,  # 3x
    1, 1, 1, 1, 1, 1, 2, 1, 1, 1, 1, 1, 1, 1, 2, 1,  # 4x
    1, 1, 1, 1, 1, 1, 2, 1, 1, 1, 1, 1, 1, 1, 2, 1,  # 5x
    1, 1, 1, 1, 1, 1, 2, 1, 1, 1, 1, 1, 1, 1, 2, 1,  # 6x
    2, 2, 2, 2, 2, 2, 1, 2, 1, 1, 1, 1, 1, 1, 2, 1,  # 7x
    1, 1, 1, 1, 1, 1, 2, 1, 1, 1, 1, 1, 1, 1, 2, 1,  # 8x
    1, 1, 1, 1, 1, 1, 2, 1, 1, 1, 1, 1, 1, 1, 2, 1,  # 9x
    1, 1, 1, 1, 1, 1, 2, 1, 1, 1, 1, 1, 1, 1, 2, 1,  # Ax
    1, 1, 1, 1, 1, 1, 2, 1, 1, 1, 1, 1, 1, 1, 2, 1,  # Bx
    5, 3, 4, 4, 6, 4, 2, 4, 5, 4, 4, 2, 6, 6, 2, 4,  # Cx
    5, 3, 4, 0, 6, 4, 2, 4, 5, 4, 4, 0, 6, 0, 2, 4,  # Dx
    3, 3, 2, 0, 0, 4, 2, 4, 4, 1, 4, 0, 0, 0, 2, 4,  # Ex
    3, 3, 2, 1, 0, 4, 2, 4, 3, 2, 4, 1, 0, 0, 2, 4,  # Fx
)

# Coste de los condicionales cuando la condición no se cumple
CYCLES_NOT_TAKEN = {
    0x20: 2, 0x28: 2, 0x30: 2, 0x38: 2,  # JR cc
    0xC0: 2, 0xC8: 2, 0xD0: 2, 0xD8: 2,  # RET cc
    0xC2: 3, 0xCA: 3, 0xD2: 3, 0xDA: 3,  # JP cc
    0xC4: 3, 0xCC: 3, 0xD4: 3, 0xDC: 3,  # CALL cc
}

# Saltos, llamadas, retornos, RST y el prefijo CB: PC no avanza por longitud
CONTROL_FLOW = frozenset(
    {0x18, 0x20, 0x28, 0x30, 0x38, 0xC3, 0xC9, 0xCB, 0xCD, 0xD9, 0xE9}
    | set(CYCLES_NOT_TAKEN)
    | {0xC7 + 8 * n for n in range(8)}
)

SEQUENTIAL_OPCODES = [
    op for op in range(256) if LENGTHS[op] and op not in CONTROL_FLOW
]

ALL_FLAGS = 0xF0


def _preserved_flags(opcode: int) -> int:
    """Flags que la instrucción no toca según la tabla documentada."""
    if 0x80 <= opcode <= 0xBF or opcode & 0xC7 == 0xC6:
        return 0  # ALU A,r / ALU A,d8
    if opcode in (0x07, 0x0F, 0x17, 0x1F, 0xE8, 0xF8, 0xF1):
        return 0  # RLCA.. RRA, ADD SP,e8, LD HL,SP+e8, POP AF
    if opcode & 0xC6 == 0x04:
        return FLAG_C  # INC r / DEC r
    if opcode & 0xCF == 0x09:
        return FLAG_Z  # ADD HL,rr
    if opcode == 0x27:
        return FLAG_N  # DAA
    if opcode == 0x2F:
        return FLAG_Z | FLAG_C  # CPL
    if opcode in (0x37, 0x3F):
        return FLAG_Z  # SCF / CCF
    return ALL_FLAGS


def _execute(opcode: int, initial_f: int = 0):
    """Ejecuta ``opcode`` desde WRAM con operandos que apuntan a 0xD000."""
    operands = [0x00, 0xD0][: LENGTHS[opcode] - 1]
    cpu, mmu = make_cpu([opcode, *operands])
    cpu.registers.set_hl(0xD000)
    cpu.registers.f = initial_f
    cycles = cpu.step(mmu)
    return cpu, cycles


@pytest.mark.parametrize("opcode", range(256))
def test_primary_entry_matches_documented_table(opcode: int) -> None:
    instruction = PRIMARY_TABLE[opcode]
    if LENGTHS[opcode] == 0:
        assert instruction is None
        return
    assert instruction is not None
    assert instruction.opcode == opcode
    expected = (
        LENGTHS[opcode],
        CYCLES[opcode],
        CYCLES_NOT_TAKEN.get(opcode, CYCLES[opcode]),
    )
    assert (instruction.length, instruction.cycles, instruction.cycles_not_taken) == expected, (
        f"{instruction.mnemonic}: timing incorrecto"
    )


@pytest.mark.parametrize("opcode", SEQUENTIAL_OPCODES)
def test_pc_advances_by_instruction_length(opcode: int) -> None:
    cpu, cycles = _execute(opcode)
    assert cpu.registers.pc == 0xC000 + LENGTHS[opcode], PRIMARY_TABLE[opcode].mnemonic
    assert cycles == CYCLES[opcode]


@pytest.mark.parametrize("initial_f", [0xF0, 0x00])
@pytest.mark.parametrize("opcode", SEQUENTIAL_OPCODES)
def test_untouched_flags_survive(opcode: int, initial_f: int) -> None:
    preserved = _preserved_flags(opcode)
    cpu, _ = _execute(opcode, initial_f)
    assert cpu.registers.f & preserved == initial_f & preserved, (
        f"{PRIMARY_TABLE[opcode].mnemonic}: F=0x{cpu.registers.f:02X}"
    )


def test_primary_table_has_245_defined_opcodes() -> None:
    defined = [op for op in range(256) if PRIMARY_TABLE[op] is not None]
    assert len(defined) == 245
    assert all(PRIMARY_TABLE[op] is None for op in UNDEFINED_OPCODES)


def test_cb_table_timings() -> None:
    assert len(CB_TABLE) == 256
    assert CB_TABLE[0x00].mnemonic == "RLC B"
    assert CB_TABLE[0x37].mnemonic == "SWAP A"
    for instruction in CB_TABLE:
        uses_hl = instruction.opcode & 0x07 == 6
        if not uses_hl:
            expected = 2
        elif instruction.op is Op.CB_BIT:
            expected = 3
        else:
            expected = 4
        assert instruction.length == 2
        assert instruction.cycles == expected, f"{instruction.mnemonic}: {instruction.cycles}"


def test_tables_are_immutable() -> None:
    assert isinstance(PRIMARY_TABLE, tuple)
    assert isinstance(CB_TABLE, tuple)


@pytest.mark.parametrize("opcode", sorted(UNDEFINED_OPCODES))
def test_undefined_opcode_raises_with_pc_and_byte(opcode: int) -> None:
    cpu, mmu = make_cpu([opcode])
    with pytest.raises(UnimplementedOpcode) as excinfo:
        cpu.step(mmu)
    assert excinfo.value.pc == 0xC000
    assert excinfo.value.opcode == opcode
    assert cpu.registers.pc == 0xC000, "PC debe quedarse en el opcode no definido"
    assert isinstance(excinfo.value, NotImplementedError)
