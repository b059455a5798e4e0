from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Iterator, List, Optional, TextIO

from .lexer import Program, Token
from .runtime import State

logger = logging.getLogger(__name__)


class StepLimitExceeded(RuntimeError):
    """Raised when Brainfuck execution exceeds the configured step budget."""


@dataclass(frozen=True)
class Snapshot:
    """Copy of the visible machine state after ``step`` executed instructions."""

    step: int
    pc: int
    command: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: str
    code_length: int


class Runner:
    """Counts the steps taken on a :class:`State` and enforces ``max_steps``.

    Every driver in the package advances the machine through :meth:`advance`,
    so the step budget is checked in one place.
    """

    def __init__(self, program: Program, state: State, max_steps: Optional[int] = None) -> None:
        self.program = program
        self.state = state
        self.max_steps = max_steps
        self.steps = 0

    @property
    def finished(self) -> bool:
        return not self.state.can_execute(self.program.tokens)

    def advance(self) -> Token:
        """Execute the current instruction and return it."""
        if self.max_steps is not None and self.steps >= self.max_steps:
            logger.info(
                "Step limit of %d reached at instruction %d",
                self.max_steps,
                self.state.instruction_pointer,
            )
            raise StepLimitExceeded("Brainfuck program exceeded allowed step count")
        token = self.program.tokens[self.state.instruction_pointer]
        self.state.execute_current_instruction(self.program.tokens, self.program.jump_table)
        self.steps += 1
        return token

    def run(self) -> None:
        while not self.finished:
            self.advance()


def execute(
    program: Program,
    *,
    input_stream: Optional[BinaryIO] = None,
    output_stream: Optional[TextIO] = None,
    max_steps: Optional[int] = None,
) -> State:
    """Run ``program`` to completion on a fresh :class:`State` and return it.

    Engine errors propagate unchanged.
    """
    runner = Runner(program, State(input_stream=input_stream, output_stream=output_stream), max_steps)
    logger.debug("Executing program of %d instructions", len(program))
    runner.run()
    logger.debug("Program finished after %d steps", runner.steps)
    return runner.state


def take_snapshot(runner: Runner, command: Optional[str], output: str, tape_window: int = 10) -> Snapshot:
    state = runner.state
    start = max(0, state.memory_pointer - tape_window)
    return Snapshot(
        step=runner.steps,
        pc=state.instruction_pointer,
        command=command,
        pointer=state.memory_pointer,
        tape_start=start,
        tape=list(state.memory[start : state.memory_pointer + tape_window + 1]),
        output=output,
        code_length=len(runner.program),
    )


class BrainfuckInterpreter:
    """Runs source text against in-memory input and collects the output."""

    def __init__(self) -> None:
        self.output_buffer = io.StringIO()
        self.runner: Optional[Runner] = None

    @property
    def state(self) -> Optional[State]:
        return self.runner.state if self.runner is not None else None

    def load(
        self,
        code: str,
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
    ) -> Runner:
        program = Program.compile(code)
        self.output_buffer = io.StringIO()
        state = State(input_stream=io.BytesIO(bytes(input_data or [])), output_stream=self.output_buffer)
        self.runner = Runner(program, state, max_steps)
        return self.runner

    def run(
        self,
        code: str,
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
    ) -> str:
        self.load(code, input_data, max_steps).run()
        return self.output_buffer.getvalue()

    def step(
        self,
        code: str,
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
        tape_window: int = 10,
    ) -> Iterator[Snapshot]:
        """Yield a snapshot after each instruction, then a final one with ``command=None``."""
        runner = self.load(code, input_data, max_steps)
        while not runner.finished:
            token = runner.advance()
            yield take_snapshot(runner, token.value, self.output_buffer.getvalue(), tape_window)
        yield take_snapshot(runner, None, self.output_buffer.getvalue(), tape_window)


__all__ = [
    "BrainfuckInterpreter",
    "Runner",
    "Snapshot",
    "StepLimitExceeded",
    "execute",
    "take_snapshot",
]
