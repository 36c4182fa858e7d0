"""Host-facing CHIP-8 machine.

:class:`Machine` owns one :class:`~chix8.state.EmulatorState` and exposes the
mutable interface a host loop drives: load a program, call :meth:`Machine.tick`
at the instruction rate and :meth:`Machine.tick_timers` at 60 Hz, feed key
presses in and read the display buffer out. Every transition goes through the
pure, jitted functions of :mod:`chix8.emulator` and :mod:`chix8.faults`.

A machine is not thread safe; hosts sharing one across threads must serialise
all calls.
"""

from typing import Optional

import jax
import numpy as np

from chix8.state import EmulatorState, create_state
from chix8.emulator import program_bytes, load_program, press_key, tick_timers, sound_stopped, display_buffer
from chix8.faults import checked_step, run_cycles, raise_for_fault
from chix8.errors import MachineFault
from chix8.logging import ConsoleLogger

_tick_timers = jax.jit(tick_timers)


class Machine:
    """CHIP-8 virtual machine with a fetch-decode-execute cycle and timers."""

    def __init__(
        self,
        rng: Optional[jax.random.PRNGKey] = None,
        seed: int = 0,
        logger: Optional[ConsoleLogger] = None,
        log_level: str = "WARNING",
    ):
        """Create a machine in its power-on state.

        Args:
            rng: PRNG key feeding the CXNN random instruction. Takes precedence over ``seed``
            seed: Seed used to build the PRNG key when ``rng`` is not given
            logger: Logger to report loads, resets and faults to
            log_level: Level for the default logger when ``logger`` is not given
        """
        self._initial_rng = rng if rng is not None else jax.random.PRNGKey(seed)
        self.logger = logger or ConsoleLogger(name="chix8", log_level=log_level)
        self._state = create_state(self._initial_rng)

    @property
    def state(self) -> EmulatorState:
        """Current immutable state snapshot."""
        return self._state

    @property
    def sound_active(self) -> bool:
        """Whether the sound timer is running, i.e. a tone should be audible."""
        return bool(self._state.sound_timer > 0)

    def reset(self):
        """Discard all state, including any loaded program, and power on again."""
        self._state = create_state(self._initial_rng)
        self.logger.debug("Machine reset")

    def load(self, program):
        """Copy program bytes into memory at 0x200.

        Raises:
            OutOfBoundsError: if the program does not fit in memory.
            ValueError: if the program holds something other than byte values.
        """
        try:
            data = program_bytes(program)
            state = load_program(self._state, data)
        except (MachineFault, ValueError) as error:
            self.logger.error(str(error))
            raise
        self._state = state
        self.logger.debug(f"Loaded {len(data)} byte program")

    def tick(self):
        """Execute one instruction.

        Raises:
            OutOfBoundsError: if the cycle would leave memory, stack or key limits.
            UnimplementedOpcodeError: if the fetched word is not a supported opcode.
        """
        state, fault, pc, instruction = checked_step(self._state)
        self._check(fault, pc, instruction)
        self._state = state

    def run(self, cycles: int, progress: bool = False):
        """Execute ``cycles`` instructions in one jitted scan.

        On a fault the machine keeps the state reached just before the
        faulting instruction and the matching exception is raised.
        """
        if cycles <= 0:
            return
        state, fault, pc, instruction = run_cycles(self._state, cycles, progress)
        self._state = state
        self._check(fault, pc, instruction)

    def tick_timers(self) -> bool:
        """Decrement delay and sound timers once.

        Returns:
            True if the sound timer just reached zero and the host should stop the tone.
        """
        before = self._state
        self._state = _tick_timers(before)
        stopped = bool(sound_stopped(before, self._state))
        if stopped:
            self.logger.debug("Sound timer expired")
        return stopped

    def get_display(self) -> np.ndarray:
        """Read-only 64x32 display buffer, flattened row-major (index ``x + 64 * y``)."""
        buffer = np.asarray(display_buffer(self._state))
        buffer.setflags(write=False)
        return buffer

    def key_press(self, key_index: int, pressed: bool):
        """Set key ``key_index`` (0..15) to pressed or released.

        Raises:
            OutOfBoundsError: if ``key_index`` is not a valid key.
        """
        try:
            self._state = press_key(self._state, key_index, pressed)
        except MachineFault as error:
            self.logger.error(str(error))
            raise

    def _check(self, fault, pc, instruction):
        try:
            raise_for_fault(fault, pc, instruction)
        except MachineFault as error:
            self.logger.error(str(error))
            raise
