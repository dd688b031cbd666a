"""
CPU SM83 - Núcleo de ejecución

Ciclo de cada ``step``:
1. Si IME está activo y hay una interrupción habilitada pendiente, se atiende
   (5 M-Cycles): se limpia su bit en IF, se desactiva IME, se apila PC y se
   salta al vector. El opcode pendiente no se ejecuta.
2. Si la CPU está en HALT y no hay nada pendiente, consume 1 M-Cycle. Una
   interrupción pendiente (IE & IF) la despierta aunque IME esté desactivado.
3. Fetch del opcode en PC, decodificación con ``PRIMARY_TABLE`` (o
   ``CB_TABLE`` tras el prefijo 0xCB) y ejecución.

El coste de cada instrucción viene de su descriptor en la tabla. Los saltos,
llamadas y retornos condicionales devuelven False cuando la condición no se
cumple y entonces se usa ``cycles_not_taken``.

HALT bug: si HALT se ejecuta con IME desactivado y ya hay una interrupción
pendiente, la CPU no se detiene y el siguiente fetch no incrementa PC, de modo
que el primer byte de la instrucción siguiente se ejecuta dos veces.

La CPU no guarda referencia al bus: ``step`` recibe la MMU.

Fuente: Pan Docs - CPU Instruction Set, Interrupts, halt
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from ..errors import UnimplementedOpcode
from .opcodes import CB_TABLE, PRIMARY_TABLE, Instruction, Op
from .registers import FLAG_C, FLAG_H, FLAG_N, FLAG_Z, Registers

if TYPE_CHECKING:
    from ..io.interrupts import Interrupt
    from ..memory.mmu import MMU

logger = logging.getLogger(__name__)

INTERRUPT_DISPATCH_CYCLES = 5
HALTED_CYCLES = 1

# Atributo de Registers para cada código de registro de 8 bits (6 = (HL))
_R8_ATTRS = ("b", "c", "d", "e", "h", "l", None, "a")

# Kinds de ALU (bits 3-5 del opcode)
ALU_ADD, ALU_ADC, ALU_SUB, ALU_SBC, ALU_AND, ALU_XOR, ALU_OR, ALU_CP = range(8)

# Kinds de rotación/desplazamiento del prefijo CB
SHIFT_RLC, SHIFT_RRC, SHIFT_RL, SHIFT_RR, SHIFT_SLA, SHIFT_SRA, SHIFT_SWAP, SHIFT_SRL = range(8)


def _signed(value: int) -> int:
    return value - 256 if value > 127 else value


class CPU:
    """
    CPU de la Game Boy.

    Atributos públicos:
        registers: Banco de registros
        halted: True mientras la CPU está en HALT/STOP
        cycles: M-Cycles totales ejecutados
    """

    def __init__(self) -> None:
        self.registers = Registers()
        self.halted: bool = False
        self.cycles: int = 0
        self._halt_bug: bool = False

        self._handlers: dict[Op, Callable[..., bool | None]] = {
            Op.NOP: self._op_nop,
            Op.STOP: self._op_stop,
            Op.HALT: self._op_halt,
            Op.DI: self._op_di,
            Op.EI: self._op_ei,
            Op.LD_R_R: self._op_ld_r_r,
            Op.LD_R_D8: self._op_ld_r_d8,
            Op.LD_RR_D16: self._op_ld_rr_d16,
            Op.LD_IND_A: self._op_ld_ind_a,
            Op.LD_A_IND: self._op_ld_a_ind,
            Op.LD_A16_A: self._op_ld_a16_a,
            Op.LD_A_A16: self._op_ld_a_a16,
            Op.LDH_A8_A: self._op_ldh_a8_a,
            Op.LDH_A_A8: self._op_ldh_a_a8,
            Op.LDH_C_A: self._op_ldh_c_a,
            Op.LDH_A_C: self._op_ldh_a_c,
            Op.LD_A16_SP: self._op_ld_a16_sp,
            Op.LD_SP_HL: self._op_ld_sp_hl,
            Op.LD_HL_SP_E8: self._op_ld_hl_sp_e8,
            Op.PUSH: self._op_push,
            Op.POP: self._op_pop,
            Op.ALU: self._op_alu,
            Op.ALU_D8: self._op_alu_d8,
            Op.INC_R: self._op_inc_r,
            Op.DEC_R: self._op_dec_r,
            Op.INC_RR: self._op_inc_rr,
            Op.DEC_RR: self._op_dec_rr,
            Op.ADD_HL_RR: self._op_add_hl_rr,
            Op.ADD_SP_E8: self._op_add_sp_e8,
            Op.DAA: self._op_daa,
            Op.CPL: self._op_cpl,
            Op.SCF: self._op_scf,
            Op.CCF: self._op_ccf,
            Op.ROTATE_A: self._op_rotate_a,
            Op.JR: self._op_jr,
            Op.JR_CC: self._op_jr_cc,
            Op.JP: self._op_jp,
            Op.JP_CC: self._op_jp_cc,
            Op.JP_HL: self._op_jp_hl,
            Op.CALL: self._op_call,
            Op.CALL_CC: self._op_call_cc,
            Op.RET: self._op_ret,
            Op.RET_CC: self._op_ret_cc,
            Op.RETI: self._op_reti,
            Op.RST: self._op_rst,
            Op.CB_SHIFT: self._op_cb_shift,
            Op.CB_BIT: self._op_cb_bit,
            Op.CB_RES: self._op_cb_res,
            Op.CB_SET: self._op_cb_set,
        }

    # ========== Ciclo principal ==========

    def step(self, mmu: MMU) -> int:
        """
        Ejecuta una instrucción (o atiende una interrupción).

        Args:
            mmu: Bus de memoria

        Returns:
            M-Cycles consumidos

        Raises:
            UnimplementedOpcode: Si el byte en PC no es una instrucción válida
        """
        interrupts = mmu.interrupts

        source = interrupts.pending_interrupt() if interrupts.ime else None
        if source is not None:
            cycles = self._service_interrupt(mmu, source)
            self.cycles += cycles
            return cycles

        if self.halted:
            if not interrupts.has_pending():
                self.cycles += HALTED_CYCLES
                return HALTED_CYCLES
            # Despertar sin IME: la ejecución continúa tras HALT
            self.halted = False

        regs = self.registers
        pc = regs.pc
        opcode = mmu.read_byte(pc)
        instruction = PRIMARY_TABLE[opcode]
        if instruction is None:
            # PC se queda en el opcode culpable
            logger.error(f"Opcode 0x{opcode:02X} no definido en PC=0x{pc:04X}")
            raise UnimplementedOpcode(pc, opcode)

        if self._halt_bug:
            self._halt_bug = False
        else:
            regs.pc = (pc + 1) & 0xFFFF

        # EI surte efecto tras la instrucción que le sigue
        enable_after = interrupts.ime_pending

        if instruction.op is Op.PREFIX_CB:
            cb_instruction = CB_TABLE[self._fetch_byte(mmu)]
            self._handlers[cb_instruction.op](mmu, *cb_instruction.args)
            cycles = cb_instruction.cycles
        else:
            taken = self._handlers[instruction.op](mmu, *instruction.args)
            cycles = instruction.cycles_not_taken if taken is False else instruction.cycles

        if enable_after:
            interrupts.commit_pending_enable()

        self.cycles += cycles
        return cycles

    def _service_interrupt(self, mmu: MMU, source: Interrupt) -> int:
        interrupts = mmu.interrupts
        interrupts.acknowledge(source)
        interrupts.disable_master()
        self.halted = False
        self._push_word(mmu, self.registers.pc)
        self.registers.pc = source.vector
        logger.debug(f"Interrupción {source.name} atendida -> 0x{source.vector:04X}")
        return INTERRUPT_DISPATCH_CYCLES

    def decode_at(self, mmu: MMU, address: int) -> Instruction | None:
        """
        Decodifica la instrucción en ``address`` sin efectos secundarios.

        Returns:
            El descriptor (de CB_TABLE si lleva prefijo) o None si el opcode
            no está definido
        """
        instruction = PRIMARY_TABLE[mmu.peek(address)]
        if instruction is not None and instruction.op is Op.PREFIX_CB:
            return CB_TABLE[mmu.peek((address + 1) & 0xFFFF)]
        return instruction

    # ========== Acceso a operandos ==========

    def _fetch_byte(self, mmu: MMU) -> int:
        regs = self.registers
        value = mmu.read_byte(regs.pc)
        regs.pc = (regs.pc + 1) & 0xFFFF
        return value

    def _fetch_word(self, mmu: MMU) -> int:
        low = self._fetch_byte(mmu)
        high = self._fetch_byte(mmu)
        return (high << 8) | low

    def _read_r8(self, mmu: MMU, code: int) -> int:
        attr = _R8_ATTRS[code]
        if attr is None:
            return mmu.read_byte(self.registers.get_hl())
        return getattr(self.registers, attr)

    def _write_r8(self, mmu: MMU, code: int, value: int) -> None:
        attr = _R8_ATTRS[code]
        if attr is None:
            mmu.write_byte(self.registers.get_hl(), value)
        else:
            setattr(self.registers, attr, value & 0xFF)

    def _read_r16(self, code: int) -> int:
        regs = self.registers
        if code == 0:
            return regs.get_bc()
        if code == 1:
            return regs.get_de()
        if code == 2:
            return regs.get_hl()
        return regs.sp

    def _write_r16(self, code: int, value: int) -> None:
        regs = self.registers
        value &= 0xFFFF
        if code == 0:
            regs.set_bc(value)
        elif code == 1:
            regs.set_de(value)
        elif code == 2:
            regs.set_hl(value)
        else:
            regs.sp = value

    def _condition(self, code: int) -> bool:
        f = self.registers.f
        if code == 0:
            return not f & FLAG_Z
        if code == 1:
            return bool(f & FLAG_Z)
        if code == 2:
            return not f & FLAG_C
        return bool(f & FLAG_C)

    def _push_word(self, mmu: MMU, value: int) -> None:
        regs = self.registers
        regs.sp = (regs.sp - 1) & 0xFFFF
        mmu.write_byte(regs.sp, (value >> 8) & 0xFF)
        regs.sp = (regs.sp - 1) & 0xFFFF
        mmu.write_byte(regs.sp, value & 0xFF)

    def _pop_word(self, mmu: MMU) -> int:
        regs = self.registers
        low = mmu.read_byte(regs.sp)
        regs.sp = (regs.sp + 1) & 0xFFFF
        high = mmu.read_byte(regs.sp)
        regs.sp = (regs.sp + 1) & 0xFFFF
        return (high << 8) | low

    def _indirect_address(self, mode: int) -> int:
        """(BC), (DE), (HL+) o (HL-). Aplica el post-incremento/decremento de HL."""
        regs = self.registers
        if mode == 0:
            return regs.get_bc()
        if mode == 1:
            return regs.get_de()
        hl = regs.get_hl()
        regs.set_hl((hl + 1) & 0xFFFF if mode == 2 else (hl - 1) & 0xFFFF)
        return hl

    # ========== Control ==========

    def _op_nop(self, mmu: MMU) -> None:
        pass

    def _op_stop(self, mmu: MMU) -> None:
        """STOP: consume el byte de relleno, resetea DIV y se detiene como HALT."""
        self._fetch_byte(mmu)
        mmu.timer.write_div(0)
        self.halted = True
        logger.debug("STOP ejecutado")

    def _op_halt(self, mmu: MMU) -> None:
        interrupts = mmu.interrupts
        if not interrupts.ime and interrupts.has_pending():
            self._halt_bug = True
            logger.debug("HALT bug: el próximo fetch no incrementa PC")
        else:
            self.halted = True

    def _op_di(self, mmu: MMU) -> None:
        mmu.interrupts.disable_master()

    def _op_ei(self, mmu: MMU) -> None:
        mmu.interrupts.schedule_enable()

    # ========== Cargas ==========

    def _op_ld_r_r(self, mmu: MMU, dst: int, src: int) -> None:
        self._write_r8(mmu, dst, self._read_r8(mmu, src))

    def _op_ld_r_d8(self, mmu: MMU, dst: int) -> None:
        self._write_r8(mmu, dst, self._fetch_byte(mmu))

    def _op_ld_rr_d16(self, mmu: MMU, rr: int) -> None:
        self._write_r16(rr, self._fetch_word(mmu))

    def _op_ld_ind_a(self, mmu: MMU, mode: int) -> None:
        mmu.write_byte(self._indirect_address(mode), self.registers.a)

    def _op_ld_a_ind(self, mmu: MMU, mode: int) -> None:
        self.registers.a = mmu.read_byte(self._indirect_address(mode))

    def _op_ld_a16_a(self, mmu: MMU) -> None:
        mmu.write_byte(self._fetch_word(mmu), self.registers.a)

    def _op_ld_a_a16(self, mmu: MMU) -> None:
        self.registers.a = mmu.read_byte(self._fetch_word(mmu))

    def _op_ldh_a8_a(self, mmu: MMU) -> None:
        mmu.write_byte(0xFF00 | self._fetch_byte(mmu), self.registers.a)

    def _op_ldh_a_a8(self, mmu: MMU) -> None:
        self.registers.a = mmu.read_byte(0xFF00 | self._fetch_byte(mmu))

    def _op_ldh_c_a(self, mmu: MMU) -> None:
        mmu.write_byte(0xFF00 | self.registers.c, self.registers.a)

    def _op_ldh_a_c(self, mmu: MMU) -> None:
        self.registers.a = mmu.read_byte(0xFF00 | self.registers.c)

    def _op_ld_a16_sp(self, mmu: MMU) -> None:
        mmu.write_word(self._fetch_word(mmu), self.registers.sp)

    def _op_ld_sp_hl(self, mmu: MMU) -> None:
        self.registers.sp = self.registers.get_hl()

    def _sp_plus_e8(self, mmu: MMU) -> int:
        """SP + e8 con los flags de ADD SP,e8 / LD HL,SP+e8 (H y C del byte bajo)."""
        regs = self.registers
        offset = self._fetch_byte(mmu)
        sp = regs.sp
        regs.assign_flags(
            z=False,
            n=False,
            h=(sp & 0x0F) + (offset & 0x0F) > 0x0F,
            c=(sp & 0xFF) + offset > 0xFF,
        )
        return (sp + _signed(offset)) & 0xFFFF

    def _op_ld_hl_sp_e8(self, mmu: MMU) -> None:
        self.registers.set_hl(self._sp_plus_e8(mmu))

    def _op_add_sp_e8(self, mmu: MMU) -> None:
        self.registers.sp = self._sp_plus_e8(mmu)

    def _op_push(self, mmu: MMU, qq: int) -> None:
        value = self.registers.get_af() if qq == 3 else self._read_r16(qq)
        self._push_word(mmu, value)

    def _op_pop(self, mmu: MMU, qq: int) -> None:
        value = self._pop_word(mmu)
        if qq == 3:
            self.registers.set_af(value)
        else:
            self._write_r16(qq, value)

    # ========== Aritmética de 8 bits ==========

    def _alu(self, kind: int, value: int) -> None:
        regs = self.registers
        a = regs.a
        carry = 1 if regs.f & FLAG_C else 0

        if kind == ALU_ADD or kind == ALU_ADC:
            extra = carry if kind == ALU_ADC else 0
            result = a + value + extra
            regs.a = result & 0xFF
            regs.assign_flags(
                z=regs.a == 0,
                n=False,
                h=(a & 0x0F) + (value & 0x0F) + extra > 0x0F,
                c=result > 0xFF,
            )
        elif kind in (ALU_SUB, ALU_SBC, ALU_CP):
            extra = carry if kind == ALU_SBC else 0
            result = a - value - extra
            regs.assign_flags(
                z=(result & 0xFF) == 0,
                n=True,
                h=(a & 0x0F) - (value & 0x0F) - extra < 0,
                c=result < 0,
            )
            if kind != ALU_CP:
                regs.a = result & 0xFF
        elif kind == ALU_AND:
            regs.a = a & value
            regs.assign_flags(z=regs.a == 0, n=False, h=True, c=False)
        elif kind == ALU_XOR:
            regs.a = a ^ value
            regs.assign_flags(z=regs.a == 0, n=False, h=False, c=False)
        else:
            regs.a = a | value
            regs.assign_flags(z=regs.a == 0, n=False, h=False, c=False)

    def _op_alu(self, mmu: MMU, kind: int, src: int) -> None:
        self._alu(kind, self._read_r8(mmu, src))

    def _op_alu_d8(self, mmu: MMU, kind: int) -> None:
        self._alu(kind, self._fetch_byte(mmu))

    def _op_inc_r(self, mmu: MMU, code: int) -> None:
        value = self._read_r8(mmu, code)
        result = (value + 1) & 0xFF
        self._write_r8(mmu, code, result)
        # C no se modifica
        self.registers.assign_flags(z=result == 0, n=False, h=(value & 0x0F) == 0x0F)

    def _op_dec_r(self, mmu: MMU, code: int) -> None:
        value = self._read_r8(mmu, code)
        result = (value - 1) & 0xFF
        self._write_r8(mmu, code, result)
        self.registers.assign_flags(z=result == 0, n=True, h=(value & 0x0F) == 0)

    def _op_daa(self, mmu: MMU) -> None:
        """Ajuste decimal de A tras una suma/resta BCD."""
        regs = self.registers
        a = regs.a
        carry = regs.check_flag(FLAG_C)
        adjust = 0
        if not regs.check_flag(FLAG_N):
            if regs.check_flag(FLAG_H) or (a & 0x0F) > 0x09:
                adjust |= 0x06
            if carry or a > 0x99:
                adjust |= 0x60
                carry = True
            a += adjust
        else:
            if regs.check_flag(FLAG_H):
                adjust |= 0x06
            if carry:
                adjust |= 0x60
            a -= adjust
        regs.a = a & 0xFF
        regs.assign_flags(z=regs.a == 0, h=False, c=carry)

    def _op_cpl(self, mmu: MMU) -> None:
        self.registers.a ^= 0xFF
        self.registers.assign_flags(n=True, h=True)

    def _op_scf(self, mmu: MMU) -> None:
        self.registers.assign_flags(n=False, h=False, c=True)

    def _op_ccf(self, mmu: MMU) -> None:
        self.registers.assign_flags(n=False, h=False, c=not self.registers.check_flag(FLAG_C))

    # ========== Aritmética de 16 bits ==========

    def _op_inc_rr(self, mmu: MMU, rr: int) -> None:
        self._write_r16(rr, self._read_r16(rr) + 1)

    def _op_dec_rr(self, mmu: MMU, rr: int) -> None:
        self._write_r16(rr, self._read_r16(rr) - 1)

    def _op_add_hl_rr(self, mmu: MMU, rr: int) -> None:
        regs = self.registers
        hl = regs.get_hl()
        value = self._read_r16(rr)
        result = hl + value
        regs.set_hl(result & 0xFFFF)
        # Z no se modifica; H es el acarreo del bit 11
        regs.assign_flags(
            n=False,
            h=(hl & 0x0FFF) + (value & 0x0FFF) > 0x0FFF,
            c=result > 0xFFFF,
        )

    # ========== Rotaciones y desplazamientos ==========

    def _shift(self, kind: int, value: int) -> tuple[int, bool]:
        old_carry = 1 if self.registers.f & FLAG_C else 0
        if kind == SHIFT_RLC:
            carry = value >> 7
            result = ((value << 1) | carry) & 0xFF
        elif kind == SHIFT_RRC:
            carry = value & 1
            result = (value >> 1) | (carry << 7)
        elif kind == SHIFT_RL:
            carry = value >> 7
            result = ((value << 1) | old_carry) & 0xFF
        elif kind == SHIFT_RR:
            carry = value & 1
            result = (value >> 1) | (old_carry << 7)
        elif kind == SHIFT_SLA:
            carry = value >> 7
            result = (value << 1) & 0xFF
        elif kind == SHIFT_SRA:
            carry = value & 1
            result = (value >> 1) | (value & 0x80)
        elif kind == SHIFT_SWAP:
            carry = 0
            result = ((value & 0x0F) << 4) | (value >> 4)
        else:
            carry = value & 1
            result = value >> 1
        return result, bool(carry)

    def _op_rotate_a(self, mmu: MMU, kind: int) -> None:
        """RLCA/RRCA/RLA/RRA: como sus versiones CB pero Z siempre a 0."""
        result, carry = self._shift(kind, self.registers.a)
        self.registers.a = result
        self.registers.assign_flags(z=False, n=False, h=False, c=carry)

    def _op_cb_shift(self, mmu: MMU, kind: int, code: int) -> None:
        result, carry = self._shift(kind, self._read_r8(mmu, code))
        self._write_r8(mmu, code, result)
        self.registers.assign_flags(z=result == 0, n=False, h=False, c=carry)

    def _op_cb_bit(self, mmu: MMU, bit: int, code: int) -> None:
        value = self._read_r8(mmu, code)
        self.registers.assign_flags(z=not (value >> bit) & 1, n=False, h=True)

    def _op_cb_res(self, mmu: MMU, bit: int, code: int) -> None:
        self._write_r8(mmu, code, self._read_r8(mmu, code) & ~(1 << bit))

    def _op_cb_set(self, mmu: MMU, bit: int, code: int) -> None:
        self._write_r8(mmu, code, self._read_r8(mmu, code) | (1 << bit))

    # ========== Saltos, llamadas y retornos ==========

    def _op_jr(self, mmu: MMU) -> None:
        offset = _signed(self._fetch_byte(mmu))
        self.registers.pc = (self.registers.pc + offset) & 0xFFFF

    def _op_jr_cc(self, mmu: MMU, cc: int) -> bool:
        offset = _signed(self._fetch_byte(mmu))
        if not self._condition(cc):
            return False
        self.registers.pc = (self.registers.pc + offset) & 0xFFFF
        return True

    def _op_jp(self, mmu: MMU) -> None:
        self.registers.pc = self._fetch_word(mmu)

    def _op_jp_cc(self, mmu: MMU, cc: int) -> bool:
        target = self._fetch_word(mmu)
        if not self._condition(cc):
            return False
        self.registers.pc = target
        return True

    def _op_jp_hl(self, mmu: MMU) -> None:
        self.registers.pc = self.registers.get_hl()

    def _op_call(self, mmu: MMU) -> None:
        target = self._fetch_word(mmu)
        self._push_word(mmu, self.registers.pc)
        self.registers.pc = target

    def _op_call_cc(self, mmu: MMU, cc: int) -> bool:
        target = self._fetch_word(mmu)
        if not self._condition(cc):
            return False
        self._push_word(mmu, self.registers.pc)
        self.registers.pc = target
        return True

    def _op_ret(self, mmu: MMU) -> None:
        self.registers.pc = self._pop_word(mmu)

    def _op_ret_cc(self, mmu: MMU, cc: int) -> bool:
        if not self._condition(cc):
            return False
        self.registers.pc = self._pop_word(mmu)
        return True

    def _op_reti(self, mmu: MMU) -> None:
        self.registers.pc = self._pop_word(mmu)
        mmu.interrupts.enable_master()

    def _op_rst(self, mmu: MMU, vector: int) -> None:
        self._push_word(mmu, self.registers.pc)
        self.registers.pc = vector
