"""CHIP-8 virtual machine core package."""

from chix8.state import EmulatorState, StackState, create_state
from chix8.emulator import (
    execute, fetch, step, tick_timers, sound_stopped, load_program, press_key, display_buffer
)
from chix8.decode import DecodedInstruction, decode
from chix8.faults import Fault, diagnose, checked_step, run_cycles
from chix8.errors import Chip8Error, MachineFault, OutOfBoundsError, UnimplementedOpcodeError
from chix8.machine import Machine
from chix8.constants import *

__all__ = [
    "EmulatorState",
    "StackState",
    "create_state",
    "fetch",
    "execute",
    "step",
    "tick_timers",
    "sound_stopped",
    "load_program",
    "press_key",
    "display_buffer",
    "DecodedInstruction",
    "decode",
    "Fault",
    "diagnose",
    "checked_step",
    "run_cycles",
    "Chip8Error",
    "MachineFault",
    "OutOfBoundsError",
    "UnimplementedOpcodeError",
    "Machine",
    "MEMORY_SIZE",
    "PROGRAM_START",
    "FONT_START",
    "SCREEN_WIDTH",
    "SCREEN_HEIGHT",
]
