"""CHIP-8 display operations."""

import jax.numpy as jnp
from chix8.state import EmulatorState
from chix8.decode import DecodedInstruction
from chix8.constants import SCREEN_WIDTH, SCREEN_HEIGHT, SPRITE_WIDTH, MAX_SPRITE_HEIGHT, FLAG_REGISTER

# Pre-computed sprite-local offsets, one row per possible sprite line
sprite_rows = jnp.arange(MAX_SPRITE_HEIGHT)
sprite_cols = jnp.arange(SPRITE_WIDTH)


def execute_display(state: EmulatorState, instruction: DecodedInstruction) -> EmulatorState:
    """DXYN - Draw sprite at (VX, VY) with height N.

    Every sprite pixel lands at ``((VX + col) % 64, (VY + row) % 32)``, so a
    sprite crossing an edge reappears on the opposite side instead of being
    clipped. VF is set when any lit pixel is switched off.
    """
    sprite_bytes = state.memory[state.I + sprite_rows]
    bits = (sprite_bytes[:, None] >> (7 - sprite_cols)[None, :]) & 1
    in_sprite = (sprite_rows < instruction.n)[:, None]
    pixels = jnp.astype(bits, jnp.bool_) & in_sprite

    xs = (state.V[instruction.x] + sprite_cols) % SCREEN_WIDTH
    ys = (state.V[instruction.y] + sprite_rows) % SCREEN_HEIGHT
    sprite = jnp.zeros_like(state.display).at[ys[:, None], xs[None, :]].set(pixels)

    collision = jnp.any(state.display & sprite)
    return state.replace(
        display=state.display ^ sprite,
        V=state.V.at[FLAG_REGISTER].set(jnp.astype(collision, jnp.uint8))
    )
