"""CHIP-8 ALU operations (8xxx).

Each operation takes ``(vx, vy)`` and returns ``(result, flag)``. Only the
arithmetic and shift operations publish their flag into VF; the flag is
written after the result, so ``8FY4`` and friends leave the flag in VF.
"""

import jax
import jax.lax
import jax.numpy as jnp
from chix8.state import EmulatorState
from chix8.decode import DecodedInstruction
from chix8.constants import FLAG_REGISTER

_NO_FLAG = jnp.zeros((), dtype=jnp.uint8)


def alu_set(vx, vy):
    """8XY0 - Set: VX = VY."""
    return vy, _NO_FLAG


def alu_or(vx, vy):
    """8XY1 - Binary OR: VX |= VY."""
    return vx | vy, _NO_FLAG


def alu_and(vx, vy):
    """8XY2 - Binary AND: VX &= VY."""
    return vx & vy, _NO_FLAG


def alu_xor(vx, vy):
    """8XY3 - Logical XOR: VX ^= VY."""
    return vx ^ vy, _NO_FLAG


def alu_add(vx, vy):
    """8XY4 - Add: VX += VY, VF = carry."""
    result = vx + vy
    return result, jnp.astype(result < vx, jnp.uint8)


def alu_sub_xy(vx, vy):
    """8XY5 - Subtract: VX -= VY, VF = NOT borrow."""
    return vx - vy, jnp.astype(vx >= vy, jnp.uint8)


def alu_shift_right(vx, vy):
    """8XY6 - Shift right: VX >>= 1, VF = shifted-out LSB."""
    return vx >> 1, vx & 1


def alu_sub_yx(vx, vy):
    """8XY7 - Subtract: VX = VY - VX, VF = NOT borrow."""
    return vy - vx, jnp.astype(vy >= vx, jnp.uint8)


def alu_shift_left(vx, vy):
    """8XYE - Shift left: VX <<= 1, VF = shifted-out MSB."""
    return vx << 1, vx >> 7


def alu_undefined(vx, vy):
    """Undefined ALU operation."""
    return vx, _NO_FLAG


ALU_OPERATIONS = [
    alu_set, alu_or, alu_and, alu_xor, alu_add, alu_sub_xy, alu_shift_right, alu_sub_yx,
    alu_undefined, alu_undefined, alu_undefined, alu_undefined, alu_undefined, alu_undefined,
    alu_shift_left, alu_undefined,
]

# Low nibbles that exist at all, and the subset that writes VF
VALID_ALU_OPERATIONS = (0x0, 0x1, 0x2, 0x3, 0x4, 0x5, 0x6, 0x7, 0xE)
FLAG_ALU_OPERATIONS = (0x4, 0x5, 0x6, 0x7, 0xE)


def execute_alu_operation(state: EmulatorState, instruction: DecodedInstruction) -> EmulatorState:
    """8XYN - ALU operations dispatcher."""
    vx = state.V[instruction.x]
    vy = state.V[instruction.y]

    result, flag = jax.lax.switch(instruction.n, ALU_OPERATIONS, vx, vy)

    writes_result = jnp.isin(instruction.n, jnp.array(VALID_ALU_OPERATIONS))
    writes_flag = jnp.isin(instruction.n, jnp.array(FLAG_ALU_OPERATIONS))

    new_V = jnp.where(writes_result, state.V.at[instruction.x].set(result), state.V)
    new_V = jnp.where(writes_flag, new_V.at[FLAG_REGISTER].set(flag), new_V)
    return state.replace(V=new_V)
