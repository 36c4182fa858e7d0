"""Main CHIP-8 emulator execution engine."""

import jax
import jax.lax
import jax.numpy as jnp
import numpy as np

from chix8.state import EmulatorState
from chix8.decode import decode
from chix8.constants import PROGRAM_START, MAX_PROGRAM_SIZE, NUM_KEYS
from chix8.errors import OutOfBoundsError
from chix8.instructions.system import execute_system_instruction
from chix8.instructions.control_flow import (
    execute_jump, execute_call, execute_skip_if_equal_immediate,
    execute_skip_if_not_equal_immediate, execute_skip_if_equal_register,
    execute_skip_if_not_equal_register, execute_jump_with_offset, execute_skip_if_key
)
from chix8.instructions.alu import execute_alu_operation
from chix8.instructions.memory import execute_set, execute_add, execute_set_index, execute_random
from chix8.instructions.display import execute_display
from chix8.instructions.misc import execute_misc_instruction


def execute(state: EmulatorState, instruction) -> EmulatorState:
    """Execute single CHIP-8 instruction."""
    decoded_instruction = decode(instruction)

    return jax.lax.switch(
        decoded_instruction.opcode,
        [
            execute_system_instruction,
            execute_jump,
            execute_call,
            execute_skip_if_equal_immediate,
            execute_skip_if_not_equal_immediate,
            execute_skip_if_equal_register,
            execute_set,
            execute_add,
            execute_alu_operation,
            execute_skip_if_not_equal_register,
            execute_set_index,
            execute_jump_with_offset,
            execute_random,
            execute_display,
            execute_skip_if_key,
            execute_misc_instruction,
        ],
        state, decoded_instruction
    )


def _pack_u16(high: jnp.uint8, low: jnp.uint8) -> jnp.uint16:
    """Pack two bytes into uint16."""
    return (high.astype(jnp.uint16) << 8) | low.astype(jnp.uint16)


def fetch(state: EmulatorState) -> tuple[EmulatorState, jnp.uint16]:
    """Fetch next instruction from memory."""
    instruction = _pack_u16(state.memory[state.pc], state.memory[state.pc + 1])
    return state.replace(pc=state.pc + 2), instruction


def step(state: EmulatorState) -> EmulatorState:
    """Run one fetch-decode-execute cycle without any bounds checking."""
    state, instruction = fetch(state)
    return execute(state, instruction)


def tick_timers(state: EmulatorState) -> EmulatorState:
    """Decrement delay and sound timers by one, stopping at zero."""
    return state.replace(
        delay_timer=jnp.where(state.delay_timer > 0, state.delay_timer - 1, state.delay_timer),
        sound_timer=jnp.where(state.sound_timer > 0, state.sound_timer - 1, state.sound_timer),
    )


def sound_stopped(before: EmulatorState, after: EmulatorState) -> jnp.ndarray:
    """True when the sound timer just ran out, i.e. the tone should stop."""
    return (before.sound_timer == 1) & (after.sound_timer == 0)


def program_bytes(program) -> np.ndarray:
    """Convert a program to a flat ``uint8`` array.

    Bytes-like objects are taken byte for byte. Anything else (lists, numpy or
    JAX integer arrays, iterators) is read as a sequence of integer values,
    each of which must fit in a byte.

    Raises:
        ValueError: if the program is not one-dimensional or holds a value outside 0..255.
    """
    if isinstance(program, (bytes, bytearray, memoryview)):
        return np.frombuffer(program, dtype=np.uint8)
    if not hasattr(program, "__len__"):
        program = list(program)
    values = np.asarray(program)
    if values.size == 0:
        return np.zeros(0, dtype=np.uint8)
    if values.ndim != 1 or not np.issubdtype(values.dtype, np.integer):
        raise ValueError(
            f"Program must be a flat sequence of byte values, got {values.dtype} of shape {values.shape}"
        )
    if values.min() < 0 or values.max() > 0xFF:
        raise ValueError(f"Program byte values must be in 0..255, got {values.min()}..{values.max()}")
    return values.astype(np.uint8)


def load_program(state: EmulatorState, program) -> EmulatorState:
    """Load program bytes into CHIP-8 memory starting at 0x200.

    Raises:
        OutOfBoundsError: if the program does not fit between 0x200 and the end of memory.
        ValueError: if the program holds something other than byte values.
    """
    program_array = program_bytes(program)
    if len(program_array) > MAX_PROGRAM_SIZE:
        raise OutOfBoundsError(
            f"Program of {len(program_array)} bytes exceeds the {MAX_PROGRAM_SIZE} bytes available "
            f"from 0x{PROGRAM_START:03X}"
        )
    if len(program_array) == 0:
        return state
    new_memory = state.memory.at[PROGRAM_START:PROGRAM_START + len(program_array)].set(program_array)
    return state.replace(memory=new_memory)


def press_key(state: EmulatorState, key_index: int, pressed: bool) -> EmulatorState:
    """Set the pressed state of one of the 16 logical keys.

    Raises:
        OutOfBoundsError: if ``key_index`` is not in 0..15.
    """
    if not 0 <= key_index < NUM_KEYS:
        raise OutOfBoundsError(f"Key index {key_index} outside 0..{NUM_KEYS - 1}")
    return state.replace(keypad=state.keypad.at[key_index].set(bool(pressed)))


def display_buffer(state: EmulatorState) -> jnp.ndarray:
    """Flattened display, indexed by ``x + SCREEN_WIDTH * y``."""
    return state.display.reshape(-1)
