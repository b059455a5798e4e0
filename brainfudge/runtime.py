from __future__ import annotations

import sys
from typing import BinaryIO, Optional, Sequence, TextIO

from .lexer import JumpTable, Token


class ExecutionError(RuntimeError):
    """Base class for errors raised while executing a single instruction."""


class EndOfInstructions(ExecutionError):
    def __init__(self) -> None:
        super().__init__("No instruction left to execute")


class PointerUnderflow(ExecutionError):
    def __init__(self, position: int) -> None:
        super().__init__(f"Memory pointer moved below cell 0 at instruction {position}")
        self.position = position


class UndefinedJumpTarget(ExecutionError):
    def __init__(self, position: int) -> None:
        super().__init__(f"Jump table has no target for instruction {position}")
        self.position = position


class InputError(ExecutionError):
    def __init__(self, position: int, cause: BaseException) -> None:
        super().__init__(f"Failed to read input at instruction {position}: {cause}")
        self.position = position
        self.cause = cause


class State:
    """Mutable tape machine: tape, memory pointer and instruction pointer.

    The machine never loops on its own. Callers drive it by checking
    :meth:`can_execute` and then calling :meth:`execute_current_instruction`
    once per step, which leaves room for step limits, breakpoints and
    inspection between instructions.
    """

    def __init__(
        self,
        input_stream: Optional[BinaryIO] = None,
        output_stream: Optional[TextIO] = None,
    ) -> None:
        self.memory = bytearray(1)
        self.memory_pointer = 0
        self.instruction_pointer = 0
        # None means the process's stdin/stdout, looked up when first used.
        self.input_stream = input_stream
        self.output_stream = output_stream

    def can_execute(self, tokens: Sequence[Token]) -> bool:
        return self.instruction_pointer < len(tokens)

    def execute_current_instruction(self, tokens: Sequence[Token], jump_table: JumpTable) -> None:
        if not self.can_execute(tokens):
            raise EndOfInstructions()

        token = tokens[self.instruction_pointer]
        if token is Token.INCREMENT:
            self._execute_increment()
        elif token is Token.DECREMENT:
            self._execute_decrement()
        elif token is Token.POINTER_INCREMENT:
            self._execute_pointer_increment()
        elif token is Token.POINTER_DECREMENT:
            self._execute_pointer_decrement()
        elif token is Token.LOOP_START:
            self._execute_loop_start(jump_table)
        elif token is Token.LOOP_END:
            self._execute_loop_end(jump_table)
        elif token is Token.INPUT:
            self._execute_input()
        elif token is Token.OUTPUT:
            self._execute_output()

    @property
    def current_cell(self) -> int:
        return self.memory[self.memory_pointer]

    def _execute_increment(self) -> None:
        self.memory[self.memory_pointer] = (self.current_cell + 1) % 256
        self.instruction_pointer += 1

    def _execute_decrement(self) -> None:
        self.memory[self.memory_pointer] = (self.current_cell - 1) % 256
        self.instruction_pointer += 1

    def _execute_pointer_increment(self) -> None:
        self.memory_pointer += 1
        if self.memory_pointer == len(self.memory):
            self.memory.append(0)
        self.instruction_pointer += 1

    def _execute_pointer_decrement(self) -> None:
        if self.memory_pointer == 0:
            raise PointerUnderflow(self.instruction_pointer)
        self.memory_pointer -= 1
        self.instruction_pointer += 1

    def _execute_loop_start(self, jump_table: JumpTable) -> None:
        if self.current_cell != 0:
            self.instruction_pointer += 1
            return
        target = jump_table.resolve(self.instruction_pointer)
        if target is None:
            raise UndefinedJumpTarget(self.instruction_pointer)
        # Land one past the matching ']'.
        self.instruction_pointer = target + 1

    def _execute_loop_end(self, jump_table: JumpTable) -> None:
        target = jump_table.resolve(self.instruction_pointer)
        if target is None:
            raise UndefinedJumpTarget(self.instruction_pointer)
        self.instruction_pointer = target

    def _execute_input(self) -> None:
        try:
            stream = self.input_stream if self.input_stream is not None else sys.stdin.buffer
            data = stream.read(1)
        except (OSError, ValueError) as exc:
            raise InputError(self.instruction_pointer, exc) from exc
        if not data:
            cause = EOFError("input stream exhausted")
            raise InputError(self.instruction_pointer, cause) from cause
        self.memory[self.memory_pointer] = data[0]
        self.instruction_pointer += 1

    def _execute_output(self) -> None:
        stream = self.output_stream if self.output_stream is not None else sys.stdout
        stream.write(chr(self.current_cell))
        self.instruction_pointer += 1


__all__ = [
    "EndOfInstructions",
    "ExecutionError",
    "InputError",
    "PointerUnderflow",
    "State",
    "UndefinedJumpTarget",
]
