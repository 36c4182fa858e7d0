"""Tests for fault detection on the checked execution path."""

import jax.numpy as jnp
import pytest
from chix8 import (
    Fault, diagnose, checked_step, run_cycles, load_program,
    PROGRAM_START, MEMORY_SIZE,
)
from chix8.faults import raise_for_fault
from chix8.errors import OutOfBoundsError, UnimplementedOpcodeError


def with_program(state, program):
    return load_program(state, bytes(program))


class TestDiagnose:
    """Test fault classification."""

    @pytest.mark.parametrize("program", [
        [0x00, 0x00], [0x00, 0xE0], [0x13, 0x00], [0x23, 0x00], [0x50, 0x10],
        [0x81, 0x2E], [0x90, 0x10], [0xC0, 0xFF], [0xD0, 0x15], [0xE0, 0x9E],
        [0xE0, 0xA1], [0xF0, 0x07], [0xF0, 0x0A], [0xF0, 0x29], [0xF0, 0x33],
        [0xF0, 0x65],
    ])
    def test_supported_opcodes(self, fresh_state, program):
        fault, _ = diagnose(with_program(fresh_state, program))
        assert int(fault) == Fault.NONE

    @pytest.mark.parametrize("program", [
        [0x01, 0x23], [0x00, 0xE1], [0x51, 0x21], [0x81, 0x28], [0x81, 0x2F],
        [0x91, 0x2F], [0xE0, 0x9F], [0xF0, 0x00], [0xF0, 0x75], [0xFF, 0xFF],
    ])
    def test_unimplemented_opcodes(self, fresh_state, program):
        fault, instruction = diagnose(with_program(fresh_state, program))
        assert int(fault) == Fault.UNIMPLEMENTED_OPCODE
        assert instruction == (program[0] << 8) | program[1]

    def test_fetch_past_end_of_memory(self, fresh_state):
        state = fresh_state.replace(pc=jnp.uint16(MEMORY_SIZE - 1))
        fault, _ = diagnose(state)
        assert int(fault) == Fault.OUT_OF_BOUNDS

    def test_fetch_last_word_in_memory(self, fresh_state):
        state = fresh_state.replace(pc=jnp.uint16(MEMORY_SIZE - 2))
        fault, _ = diagnose(state)
        assert int(fault) == Fault.NONE

    def test_return_with_empty_stack(self, fresh_state):
        fault, _ = diagnose(with_program(fresh_state, [0x00, 0xEE]))
        assert int(fault) == Fault.OUT_OF_BOUNDS

    def test_call_with_full_stack(self, fresh_state):
        state = with_program(fresh_state, [0x22, 0x00])  # Call self
        for _ in range(16):
            state, fault, _, _ = checked_step(state)
            assert int(fault) == Fault.NONE
        assert state.stack.pointer == 16

        state_after, fault, pc, _ = checked_step(state)
        assert int(fault) == Fault.OUT_OF_BOUNDS
        assert pc == PROGRAM_START
        assert state_after.stack.pointer == 16

    def test_draw_past_end_of_memory(self, fresh_state):
        state = with_program(fresh_state, [0xD0, 0x12]).replace(I=jnp.uint16(MEMORY_SIZE - 1))
        fault, _ = diagnose(state)
        assert int(fault) == Fault.OUT_OF_BOUNDS

    def test_draw_zero_rows_anywhere(self, fresh_state):
        state = with_program(fresh_state, [0xD0, 0x10]).replace(I=jnp.uint16(0xFFFF))
        fault, _ = diagnose(state)
        assert int(fault) == Fault.NONE

    def test_key_index_out_of_range(self, fresh_state):
        state = with_program(fresh_state, [0xE3, 0x9E])
        state = state.replace(V=state.V.at[3].set(16))
        fault, _ = diagnose(state)
        assert int(fault) == Fault.OUT_OF_BOUNDS

    def test_bcd_past_end_of_memory(self, fresh_state):
        state = with_program(fresh_state, [0xF0, 0x33]).replace(I=jnp.uint16(MEMORY_SIZE - 2))
        fault, _ = diagnose(state)
        assert int(fault) == Fault.OUT_OF_BOUNDS

    @pytest.mark.parametrize("low_byte", [0x55, 0x65])
    def test_register_transfer_bounds(self, fresh_state, low_byte):
        state = with_program(fresh_state, [0xF3, low_byte])

        fault, _ = diagnose(state.replace(I=jnp.uint16(MEMORY_SIZE - 4)))
        assert int(fault) == Fault.NONE

        fault, _ = diagnose(state.replace(I=jnp.uint16(MEMORY_SIZE - 3)))
        assert int(fault) == Fault.OUT_OF_BOUNDS


class TestCheckedStep:
    """Test that faulting cycles leave the state alone."""

    def test_fault_keeps_state(self, fresh_state):
        state = with_program(fresh_state, [0xFF, 0xFF])
        new_state, fault, pc, instruction = checked_step(state)

        assert int(fault) == Fault.UNIMPLEMENTED_OPCODE
        assert pc == PROGRAM_START
        assert instruction == 0xFFFF
        assert new_state.pc == state.pc

    def test_clean_cycle_runs(self, fresh_state):
        state = with_program(fresh_state, [0x6A, 0x42])
        new_state, fault, _, _ = checked_step(state)

        assert int(fault) == Fault.NONE
        assert new_state.V[0xA] == 0x42
        assert new_state.pc == PROGRAM_START + 2


class TestRunCycles:
    """Test multi-cycle scans."""

    def test_run_counts_cycles(self, fresh_state):
        # V0 += 1; jump back
        state = with_program(fresh_state, [0x70, 0x01, 0x12, 0x00])
        state, fault, _, _ = run_cycles(state, 10)

        assert int(fault) == Fault.NONE
        assert state.V[0] == 5
        assert state.pc == PROGRAM_START

    def test_run_stops_at_fault(self, fresh_state):
        state = with_program(fresh_state, [0x60, 0x07, 0x61, 0x08, 0x00, 0xEE, 0x62, 0x09])
        state, fault, pc, instruction = run_cycles(state, 10)

        assert int(fault) == Fault.OUT_OF_BOUNDS
        assert pc == PROGRAM_START + 4
        assert instruction == 0x00EE
        assert state.pc == PROGRAM_START + 4
        assert state.V[0] == 7
        assert state.V[1] == 8
        assert state.V[2] == 0


class TestRaiseForFault:
    """Test fault to exception mapping."""

    def test_no_fault(self):
        raise_for_fault(Fault.NONE, PROGRAM_START, 0)

    def test_unimplemented(self):
        with pytest.raises(UnimplementedOpcodeError) as error_info:
            raise_for_fault(Fault.UNIMPLEMENTED_OPCODE, 0x204, 0xFFFF)
        assert error_info.value.pc == 0x204
        assert error_info.value.instruction == 0xFFFF
        assert "0xFFFF" in str(error_info.value)

    def test_fetch_out_of_bounds(self):
        with pytest.raises(OutOfBoundsError) as error_info:
            raise_for_fault(Fault.OUT_OF_BOUNDS, MEMORY_SIZE - 1, 0)
        assert error_info.value.instruction is None

    def test_out_of_bounds_is_index_error(self):
        with pytest.raises(IndexError):
            raise_for_fault(Fault.OUT_OF_BOUNDS, PROGRAM_START, 0x00EE)
