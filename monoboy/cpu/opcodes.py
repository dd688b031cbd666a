"""
Tablas de decodificación de la CPU SM83

Cada opcode se describe con un ``Instruction`` inmutable: mnemónico, longitud
en bytes, coste en M-Cycles (y coste alternativo si es un salto condicional
no tomado), la operación (``Op``) y sus operandos.

Hay dos tablas de 256 entradas que se construyen una sola vez al importar el
módulo y nunca se modifican:
- PRIMARY_TABLE: opcodes de un byte. Los 11 huecos del set de instrucciones
  (D3, DB, DD, E3, E4, EB, EC, ED, F4, FC, FD) son ``None``.
- CB_TABLE: instrucciones extendidas tras el prefijo 0xCB. Su longitud y su
  coste ya incluyen el byte de prefijo.

Codificación de operandos (la misma que usa el propio opcode):
- Registro de 8 bits: 0=B 1=C 2=D 3=E 4=H 5=L 6=(HL) 7=A
- Par de 16 bits: 0=BC 1=DE 2=HL 3=SP (en PUSH/POP, 3=AF)
- Condición: 0=NZ 1=Z 2=NC 3=C

Fuente: Pan Docs - CPU Instruction Set, gbdev.io opcode table
"""

from __future__ import annotations

from enum import Enum, auto
from typing import NamedTuple


class Op(Enum):
    NOP = auto()
    STOP = auto()
    HALT = auto()
    PREFIX_CB = auto()
    DI = auto()
    EI = auto()
    # Cargas
    LD_R_R = auto()
    LD_R_D8 = auto()
    LD_RR_D16 = auto()
    LD_IND_A = auto()
    LD_A_IND = auto()
    LD_A16_A = auto()
    LD_A_A16 = auto()
    LDH_A8_A = auto()
    LDH_A_A8 = auto()
    LDH_C_A = auto()
    LDH_A_C = auto()
    LD_A16_SP = auto()
    LD_SP_HL = auto()
    LD_HL_SP_E8 = auto()
    PUSH = auto()
    POP = auto()
    # Aritmética
    ALU = auto()
    ALU_D8 = auto()
    INC_R = auto()
    DEC_R = auto()
    INC_RR = auto()
    DEC_RR = auto()
    ADD_HL_RR = auto()
    ADD_SP_E8 = auto()
    DAA = auto()
    CPL = auto()
    SCF = auto()
    CCF = auto()
    ROTATE_A = auto()
    # Control de flujo
    JR = auto()
    JR_CC = auto()
    JP = auto()
    JP_CC = auto()
    JP_HL = auto()
    CALL = auto()
    CALL_CC = auto()
    RET = auto()
    RET_CC = auto()
    RETI = auto()
    RST = auto()
    # Prefijo CB
    CB_SHIFT = auto()
    CB_BIT = auto()
    CB_RES = auto()
    CB_SET = auto()


class Instruction(NamedTuple):
    opcode: int
    mnemonic: str
    length: int
    cycles: int
    cycles_not_taken: int
    op: Op
    args: tuple[int, ...] = ()


R8_NAMES = ("B", "C", "D", "E", "H", "L", "(HL)", "A")
R16_NAMES = ("BC", "DE", "HL", "SP")
R16_STACK_NAMES = ("BC", "DE", "HL", "AF")
CONDITION_NAMES = ("NZ", "Z", "NC", "C")
ALU_NAMES = ("ADD A,", "ADC A,", "SUB ", "SBC A,", "AND ", "XOR ", "OR ", "CP ")
SHIFT_NAMES = ("RLC", "RRC", "RL", "RR", "SLA", "SRA", "SWAP", "SRL")
ROTATE_A_NAMES = ("RLCA", "RRCA", "RLA", "RRA")
IND_NAMES = ("(BC)", "(DE)", "(HL+)", "(HL-)")

# Código de registro que apunta a memoria vía HL
R8_HL_INDIRECT = 6

UNDEFINED_OPCODES = frozenset(
    (0xD3, 0xDB, 0xDD, 0xE3, 0xE4, 0xEB, 0xEC, 0xED, 0xF4, 0xFC, 0xFD)
)


def _instr(opcode: int, mnemonic: str, length: int, cycles: int, op: Op,
           args: tuple[int, ...] = (), not_taken: int | None = None) -> Instruction:
    return Instruction(
        opcode, mnemonic, length, cycles,
        cycles if not_taken is None else not_taken, op, args,
    )


def _build_primary_table() -> tuple[Instruction | None, ...]:
    table: list[Instruction | None] = [None] * 256

    # Bloque 0x00-0x3F: organizado por columnas (bits 0-3)
    for rr in range(4):
        base = rr << 4
        table[base | 0x01] = _instr(base | 0x01, f"LD {R16_NAMES[rr]},d16", 3, 3, Op.LD_RR_D16, (rr,))
        table[base | 0x02] = _instr(base | 0x02, f"LD {IND_NAMES[rr]},A", 1, 2, Op.LD_IND_A, (rr,))
        table[base | 0x03] = _instr(base | 0x03, f"INC {R16_NAMES[rr]}", 1, 2, Op.INC_RR, (rr,))
        table[base | 0x09] = _instr(base | 0x09, f"ADD HL,{R16_NAMES[rr]}", 1, 2, Op.ADD_HL_RR, (rr,))
        table[base | 0x0A] = _instr(base | 0x0A, f"LD A,{IND_NAMES[rr]}", 1, 2, Op.LD_A_IND, (rr,))
        table[base | 0x0B] = _instr(base | 0x0B, f"DEC {R16_NAMES[rr]}", 1, 2, Op.DEC_RR, (rr,))

    for r in range(8):
        op_inc = (r << 3) | 0x04
        op_dec = (r << 3) | 0x05
        op_ld = (r << 3) | 0x06
        mem = r == R8_HL_INDIRECT
        table[op_inc] = _instr(op_inc, f"INC {R8_NAMES[r]}", 1, 3 if mem else 1, Op.INC_R, (r,))
        table[op_dec] = _instr(op_dec, f"DEC {R8_NAMES[r]}", 1, 3 if mem else 1, Op.DEC_R, (r,))
        table[op_ld] = _instr(op_ld, f"LD {R8_NAMES[r]},d8", 2, 3 if mem else 2, Op.LD_R_D8, (r,))

    for kind in range(4):
        opcode = (kind << 3) | 0x07
        table[opcode] = _instr(opcode, ROTATE_A_NAMES[kind], 1, 1, Op.ROTATE_A, (kind,))

    table[0x00] = _instr(0x00, "NOP", 1, 1, Op.NOP)
    table[0x08] = _instr(0x08, "LD (a16),SP", 3, 5, Op.LD_A16_SP)
    table[0x10] = _instr(0x10, "STOP", 2, 1, Op.STOP)
    table[0x18] = _instr(0x18, "JR e8", 2, 3, Op.JR)
    for cc in range(4):
        opcode = 0x20 | (cc << 3)
        table[opcode] = _instr(opcode, f"JR {CONDITION_NAMES[cc]},e8", 2, 3, Op.JR_CC, (cc,), not_taken=2)
    table[0x27] = _instr(0x27, "DAA", 1, 1, Op.DAA)
    table[0x2F] = _instr(0x2F, "CPL", 1, 1, Op.CPL)
    table[0x37] = _instr(0x37, "SCF", 1, 1, Op.SCF)
    table[0x3F] = _instr(0x3F, "CCF", 1, 1, Op.CCF)

    # Bloque 0x40-0x7F: LD r,r' (0x76 es HALT)
    for dst in range(8):
        for src in range(8):
            opcode = 0x40 | (dst << 3) | src
            if opcode == 0x76:
                table[opcode] = _instr(opcode, "HALT", 1, 1, Op.HALT)
                continue
            mem = R8_HL_INDIRECT in (dst, src)
            table[opcode] = _instr(
                opcode, f"LD {R8_NAMES[dst]},{R8_NAMES[src]}", 1, 2 if mem else 1,
                Op.LD_R_R, (dst, src),
            )

    # Bloque 0x80-0xBF: ALU A,r
    for kind in range(8):
        for src in range(8):
            opcode = 0x80 | (kind << 3) | src
            table[opcode] = _instr(
                opcode, f"{ALU_NAMES[kind]}{R8_NAMES[src]}", 1,
                2 if src == R8_HL_INDIRECT else 1, Op.ALU, (kind, src),
            )

    # Bloque 0xC0-0xFF
    for cc in range(4):
        name = CONDITION_NAMES[cc]
        table[0xC0 | (cc << 3)] = _instr(0xC0 | (cc << 3), f"RET {name}", 1, 5, Op.RET_CC, (cc,), not_taken=2)
        table[0xC2 | (cc << 3)] = _instr(0xC2 | (cc << 3), f"JP {name},a16", 3, 4, Op.JP_CC, (cc,), not_taken=3)
        table[0xC4 | (cc << 3)] = _instr(0xC4 | (cc << 3), f"CALL {name},a16", 3, 6, Op.CALL_CC, (cc,), not_taken=3)
    for qq in range(4):
        table[0xC1 | (qq << 4)] = _instr(0xC1 | (qq << 4), f"POP {R16_STACK_NAMES[qq]}", 1, 3, Op.POP, (qq,))
        table[0xC5 | (qq << 4)] = _instr(0xC5 | (qq << 4), f"PUSH {R16_STACK_NAMES[qq]}", 1, 4, Op.PUSH, (qq,))
    for kind in range(8):
        opcode = 0xC6 | (kind << 3)
        table[opcode] = _instr(opcode, f"{ALU_NAMES[kind]}d8", 2, 2, Op.ALU_D8, (kind,))
        rst = 0xC7 | (kind << 3)
        table[rst] = _instr(rst, f"RST {kind << 3:02X}H", 1, 4, Op.RST, (kind << 3,))

    table[0xC3] = _instr(0xC3, "JP a16", 3, 4, Op.JP)
    table[0xC9] = _instr(0xC9, "RET", 1, 4, Op.RET)
    table[0xCB] = _instr(0xCB, "PREFIX CB", 2, 2, Op.PREFIX_CB)
    table[0xCD] = _instr(0xCD, "CALL a16", 3, 6, Op.CALL)
    table[0xD9] = _instr(0xD9, "RETI", 1, 4, Op.RETI)
    table[0xE0] = _instr(0xE0, "LDH (a8),A", 2, 3, Op.LDH_A8_A)
    table[0xE2] = _instr(0xE2, "LD (C),A", 1, 2, Op.LDH_C_A)
    table[0xE8] = _instr(0xE8, "ADD SP,e8", 2, 4, Op.ADD_SP_E8)
    table[0xE9] = _instr(0xE9, "JP HL", 1, 1, Op.JP_HL)
    table[0xEA] = _instr(0xEA, "LD (a16),A", 3, 4, Op.LD_A16_A)
    table[0xF0] = _instr(0xF0, "LDH A,(a8)", 2, 3, Op.LDH_A_A8)
    table[0xF2] = _instr(0xF2, "LD A,(C)", 1, 2, Op.LDH_A_C)
    table[0xF3] = _instr(0xF3, "DI", 1, 1, Op.DI)
    table[0xF8] = _instr(0xF8, "LD HL,SP+e8", 2, 3, Op.LD_HL_SP_E8)
    table[0xF9] = _instr(0xF9, "LD SP,HL", 1, 2, Op.LD_SP_HL)
    table[0xFA] = _instr(0xFA, "LD A,(a16)", 3, 4, Op.LD_A_A16)
    table[0xFB] = _instr(0xFB, "EI", 1, 1, Op.EI)

    return tuple(table)


def _build_cb_table() -> tuple[Instruction, ...]:
    table: list[Instruction] = []
    for opcode in range(256):
        group = opcode >> 6
        y = (opcode >> 3) & 0x07
        r = opcode & 0x07
        mem = r == R8_HL_INDIRECT
        if group == 0:
            table.append(_instr(opcode, f"{SHIFT_NAMES[y]} {R8_NAMES[r]}", 2, 4 if mem else 2, Op.CB_SHIFT, (y, r)))
        elif group == 1:
            # BIT sólo lee (HL): un acceso a memoria menos que RES/SET
            table.append(_instr(opcode, f"BIT {y},{R8_NAMES[r]}", 2, 3 if mem else 2, Op.CB_BIT, (y, r)))
        elif group == 2:
            table.append(_instr(opcode, f"RES {y},{R8_NAMES[r]}", 2, 4 if mem else 2, Op.CB_RES, (y, r)))
        else:
            table.append(_instr(opcode, f"SET {y},{R8_NAMES[r]}", 2, 4 if mem else 2, Op.CB_SET, (y, r)))
    return tuple(table)


PRIMARY_TABLE: tuple[Instruction | None, ...] = _build_primary_table()
CB_TABLE: tuple[Instruction, ...] = _build_cb_table()
