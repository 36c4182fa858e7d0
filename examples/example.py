"""Draw a random hex digit on a batch of machines with vmap, then one with Machine."""

import time

import jax
import jax.numpy as jnp

from chix8 import Machine, create_state, load_program, step, SCREEN_WIDTH, SCREEN_HEIGHT

PROGRAM = bytes([
    0xC0, 0x0F,  # V0 = random & 0xF
    0xF0, 0x29,  # I = glyph for V0
    0x61, 0x08,  # V1 = 8
    0x62, 0x04,  # V2 = 4
    0xD1, 0x25,  # draw 5 rows at (V1, V2)
    0x12, 0x0A,  # spin
])


def render_ascii(display) -> str:
    rows = display.reshape(SCREEN_HEIGHT, SCREEN_WIDTH)[:12, :24]
    return "\n".join("".join("#" if pixel else "." for pixel in row) for row in rows)


if __name__ == "__main__":
    @jax.jit
    def rollout(rng):
        state = load_program(create_state(rng), PROGRAM)
        state, _ = jax.lax.scan(lambda s, _: (step(s), None), state, length=16)
        return state

    keys = jax.random.split(jax.random.PRNGKey(0), 4)

    start = time.time()
    states = jax.block_until_ready(jax.vmap(rollout)(keys))
    print("Batched rollout time (s):", time.time() - start)

    for index in range(len(keys)):
        print(f"Machine {index}: digit {int(states.V[index, 0]):X}")
        print(render_ascii(states.display[index]))

    machine = Machine(seed=7, log_level="DEBUG")
    machine.load(PROGRAM)
    machine.run(16)
    print(render_ascii(jnp.asarray(machine.get_display())))
