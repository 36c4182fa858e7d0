"""Fault detection for checked execution.

The instruction handlers in :mod:`chix8.instructions` are pure and never fail;
out-of-range reads are clamped by JAX and unknown opcodes are no-ops. The
checked path inspects the state *before* a cycle and refuses to run it when the
cycle would leave the architecture's limits, returning a :class:`Fault` code
that the host turns into an exception.
"""

import enum
from functools import partial

import jax
import jax.lax
import jax.numpy as jnp

from chix8.state import EmulatorState
from chix8.decode import DecodedInstruction, decode
from chix8.constants import MEMORY_SIZE, STACK_SIZE, NUM_KEYS
from chix8.emulator import fetch, step
from chix8.errors import OutOfBoundsError, UnimplementedOpcodeError
from chix8.instructions.alu import VALID_ALU_OPERATIONS
from chix8.instructions.misc import MISC_OPERATIONS
from chix8.logging import scan_with_progress


class Fault(enum.IntEnum):
    """Outcome of checking a cycle before it runs."""

    NONE = 0
    OUT_OF_BOUNDS = 1
    UNIMPLEMENTED_OPCODE = 2


_ALWAYS = jnp.array(True)


def is_implemented(instruction: DecodedInstruction) -> jnp.ndarray:
    """Whether the instruction belongs to the supported opcode set."""
    raw, n, nn = instruction.raw, instruction.n, instruction.nn
    family_checks = jnp.stack([
        (raw == 0x0000) | (raw == 0x00E0) | (raw == 0x00EE),
        _ALWAYS,  # 1NNN
        _ALWAYS,  # 2NNN
        _ALWAYS,  # 3XNN
        _ALWAYS,  # 4XNN
        n == 0,   # 5XY0
        _ALWAYS,  # 6XNN
        _ALWAYS,  # 7XNN
        jnp.isin(n, jnp.array(VALID_ALU_OPERATIONS)),
        n == 0,   # 9XY0
        _ALWAYS,  # ANNN
        _ALWAYS,  # BNNN
        _ALWAYS,  # CXNN
        _ALWAYS,  # DXYN
        (nn == 0x9E) | (nn == 0xA1),
        jnp.isin(nn, jnp.array(MISC_OPERATIONS)),
    ])
    return family_checks[instruction.opcode]


def accesses_out_of_bounds(state: EmulatorState, instruction: DecodedInstruction) -> jnp.ndarray:
    """Whether executing the instruction would touch stack, memory or keys out of range."""
    index = jnp.astype(state.I, jnp.int32)
    pointer = jnp.astype(state.stack.pointer, jnp.int32)
    opcode, x, n, nn = instruction.opcode, instruction.x, instruction.n, instruction.nn
    is_misc = opcode == 0xF

    violations = jnp.stack([
        (instruction.raw == 0x00EE) & (pointer <= 0),
        (opcode == 0x2) & (pointer >= STACK_SIZE),
        (opcode == 0xD) & (n > 0) & (index + n > MEMORY_SIZE),
        (opcode == 0xE) & (state.V[x] >= NUM_KEYS),
        is_misc & (nn == 0x33) & (index + 3 > MEMORY_SIZE),
        is_misc & ((nn == 0x55) | (nn == 0x65)) & (index + x + 1 > MEMORY_SIZE),
    ])
    return jnp.any(violations)


def diagnose(state: EmulatorState) -> tuple[jnp.ndarray, jnp.ndarray]:
    """Classify the next cycle.

    Returns:
        Tuple of the :class:`Fault` code (int32 scalar) and the instruction
        word at the program counter (meaningless when the fetch itself is out
        of bounds).
    """
    fetchable = jnp.astype(state.pc, jnp.int32) + 1 < MEMORY_SIZE
    _, instruction = fetch(state)
    decoded = decode(instruction)

    fault = jnp.where(
        ~fetchable,
        Fault.OUT_OF_BOUNDS.value,
        jnp.where(
            ~is_implemented(decoded),
            Fault.UNIMPLEMENTED_OPCODE.value,
            jnp.where(accesses_out_of_bounds(state, decoded), Fault.OUT_OF_BOUNDS.value, Fault.NONE.value),
        ),
    )
    return jnp.astype(fault, jnp.int32), instruction


@jax.jit
def checked_step(state: EmulatorState):
    """Run one cycle only if it is fault free.

    Returns:
        Tuple of (state, fault, pc, instruction). On a fault the state is the
        input state, untouched.
    """
    fault, instruction = diagnose(state)
    new_state = jax.lax.cond(fault == Fault.NONE.value, step, lambda s: s, state)
    return new_state, fault, state.pc, instruction


@partial(jax.jit, static_argnums=(1, 2))
def run_cycles(state: EmulatorState, n: int, progress: bool = False):
    """Run up to ``n`` checked cycles, freezing at the first fault.

    Returns:
        Tuple of (state, fault, pc, instruction) describing the last cycle
        attempted.
    """
    def cycle(carry, _):
        fault = carry[1]
        carry = jax.lax.cond(
            fault == Fault.NONE.value,
            lambda c: checked_step(c[0]),
            lambda c: c,
            carry
        )
        return carry, None

    if progress:
        cycle = scan_with_progress(n, desc=f"Running ({n:,} cycles)")(cycle)

    init = (state, jnp.asarray(Fault.NONE.value, dtype=jnp.int32), state.pc, jnp.zeros((), dtype=jnp.uint16))
    final, _ = jax.lax.scan(cycle, init, jnp.arange(n))
    return final


def raise_for_fault(fault, pc, instruction) -> None:
    """Raise the exception matching a fault code returned by the checked path."""
    fault = Fault(int(fault))
    if fault is Fault.NONE:
        return

    pc = int(pc)
    if fault is Fault.UNIMPLEMENTED_OPCODE:
        instruction = int(instruction)
        raise UnimplementedOpcodeError(
            f"Unimplemented opcode 0x{instruction:04X} at 0x{pc:03X}", pc=pc, instruction=instruction
        )

    if pc + 1 >= MEMORY_SIZE:
        raise OutOfBoundsError(f"Instruction fetch at 0x{pc:04X} runs past end of memory", pc=pc)

    instruction = int(instruction)
    raise OutOfBoundsError(
        f"Opcode 0x{instruction:04X} at 0x{pc:03X} accesses stack, memory or keys out of bounds",
        pc=pc, instruction=instruction
    )
