"""Exceptions raised by the CHIP-8 machine."""

from typing import Optional


class Chip8Error(Exception):
    """Base class for all chix8 errors."""


class MachineFault(Chip8Error):
    """A fatal condition that stops the machine.

    Attributes:
        pc: Address of the faulting instruction, if the fault came from a cycle
        instruction: The faulting instruction word, if one could be fetched
    """

    def __init__(self, message: str, pc: Optional[int] = None, instruction: Optional[int] = None):
        super().__init__(message)
        self.pc = pc
        self.instruction = instruction


class OutOfBoundsError(MachineFault, IndexError):
    """Memory, stack or key access outside the fixed architecture limits."""


class UnimplementedOpcodeError(MachineFault):
    """Instruction word outside the supported opcode set."""
