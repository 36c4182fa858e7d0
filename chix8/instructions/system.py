"""CHIP-8 system instructions (0x0xxx)."""

import jax
import jax.lax
import jax.numpy as jnp
from chix8.state import EmulatorState
from chix8.decode import DecodedInstruction
from chix8.stack import pop


def no_op(state: EmulatorState, instruction: DecodedInstruction) -> EmulatorState:
    """No operation."""
    return state


def execute_clear_screen(state: EmulatorState, instruction: DecodedInstruction) -> EmulatorState:
    """00E0 - Clear display."""
    return state.replace(display=jnp.zeros_like(state.display))


def execute_return(state: EmulatorState, instruction: DecodedInstruction) -> EmulatorState:
    """00EE - Return from subroutine."""
    stack, address = pop(state.stack)
    return state.replace(stack=stack, pc=address)


def execute_system_instruction(state: EmulatorState, instruction: DecodedInstruction) -> EmulatorState:
    """Dispatch system instructions.

    Only 0000, 00E0 and 00EE are defined; every other 0NNN word is left
    untouched here and reported as unimplemented by the fault guard.
    """
    return jax.lax.cond(
        instruction.raw == 0x00E0,
        execute_clear_screen,
        lambda state, instruction: jax.lax.cond(
            instruction.raw == 0x00EE,
            execute_return,
            no_op,
            state, instruction
        ),
        state, instruction
    )
