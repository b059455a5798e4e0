"""Interactive step debugger built on the engine's single-step API."""

from __future__ import annotations

import argparse
import io
import logging
import shlex
import sys
import threading
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Set

from .cli import read_source
from .interpreter import Runner, Snapshot, StepLimitExceeded, take_snapshot
from .lexer import JumpTableError, Program
from .runtime import ExecutionError, State

logger = logging.getLogger(__name__)


class DebugSession:
    """One program under the debugger.

    ``lock`` serialises everything that reads or moves the machine, so a
    session can be shared between request threads.
    """

    def __init__(
        self,
        source: str,
        input_data: bytes = b"",
        *,
        tape_window: int = 10,
        max_steps: Optional[int] = None,
        history_limit: int = 200,
    ) -> None:
        self.program = Program.compile(source)
        self.input_data = bytes(input_data)
        self.tape_window = tape_window
        self.max_steps = max_steps
        self.breakpoints: Set[int] = set()
        self.history: Deque[Snapshot] = deque(maxlen=history_limit)
        self.lock = threading.RLock()
        self.restart()

    @property
    def code(self) -> str:
        return self.program.code

    @property
    def state(self) -> State:
        return self.runner.state

    @property
    def finished(self) -> bool:
        return self.error is not None or self.runner.finished

    def restart(self) -> None:
        with self.lock:
            self._output = io.StringIO()
            state = State(input_stream=io.BytesIO(self.input_data), output_stream=self._output)
            self.runner = Runner(self.program, state, self.max_steps)
            self.error: Optional[Exception] = None
            self.hit_breakpoint: Optional[int] = None
            self.history.clear()
            self._record(None)

    def current(self) -> Snapshot:
        return self.history[-1]

    def _record(self, command: Optional[str]) -> Snapshot:
        snapshot = take_snapshot(self.runner, command, self._output.getvalue(), self.tape_window)
        self.history.append(snapshot)
        return snapshot

    def advance(self, count: Optional[int] = 1, *, use_breakpoints: bool = True) -> List[Snapshot]:
        """Execute up to ``count`` instructions (all of them when ``None``).

        Stops early when the program ends or the pointer lands on a breakpoint.
        Engine errors and ``StepLimitExceeded`` end the session and propagate.
        """
        taken: List[Snapshot] = []
        with self.lock:
            self.hit_breakpoint = None
            while (count is None or len(taken) < count) and not self.finished:
                try:
                    token = self.runner.advance()
                except (StepLimitExceeded, ExecutionError) as exc:
                    self.error = exc
                    logger.debug("Session stopped at pc=%d: %s", self.state.instruction_pointer, exc)
                    raise
                taken.append(self._record(token.value))
                pc = self.state.instruction_pointer
                if use_breakpoints and pc in self.breakpoints and not self.runner.finished:
                    self.hit_breakpoint = pc
                    break
        return taken

    def add_breakpoint(self, pc: int) -> None:
        with self.lock:
            self.breakpoints.add(pc)

    def remove_breakpoint(self, pc: int) -> bool:
        with self.lock:
            if pc not in self.breakpoints:
                return False
            self.breakpoints.discard(pc)
            return True

    def clear_breakpoints(self) -> None:
        with self.lock:
            self.breakpoints.clear()


def _mark_code(code: str, pc: int, radius: int = 16) -> str:
    if not code:
        return "(empty)"
    before = code[max(0, pc - radius) : pc]
    if pc >= len(code):
        return before + "(end)"
    return f"{before}({code[pc]}){code[pc + 1 : pc + radius + 1]}"


def render(snapshot: Snapshot, code: str) -> str:
    ran = repr(snapshot.command) if snapshot.command is not None else "-"
    cells = []
    for offset, value in enumerate(snapshot.tape):
        index = snapshot.tape_start + offset
        cells.append(f">{value:3d}" if index == snapshot.pointer else f" {value:3d}")
    lines = [
        f"#{snapshot.step} pc {snapshot.pc}/{snapshot.code_length} ran {ran} ptr {snapshot.pointer}",
        f"tape @{snapshot.tape_start}:" + "".join(cells),
        f"code {_mark_code(code, snapshot.pc)}",
    ]
    if snapshot.output:
        lines.append(f"out  {snapshot.output!r}")
    return "\n".join(lines)


_HELP = """\
step [N]       execute N instructions (default 1)
continue [N]   run until a breakpoint, the end, or N instructions
show           print the current state
history [N]    print the last N recorded states (default 5)
break PC       stop when the instruction pointer reaches PC
delete [PC]    remove one breakpoint, or all of them
breakpoints    list breakpoints
restart        start the program again
quit           leave the debugger"""


def _advance(session: DebugSession, count: Optional[int]) -> None:
    try:
        taken = session.advance(count)
    except (StepLimitExceeded, ExecutionError) as exc:
        print(f"stopped: {exc}")
        return
    if taken:
        print(render(taken[-1], session.code))
    if session.hit_breakpoint is not None:
        print(f"breakpoint at pc {session.hit_breakpoint}")
    elif session.finished and session.error is None:
        print("program finished")


def _delete(session: DebugSession, args: List[str]) -> None:
    if not args:
        session.clear_breakpoints()
        print("all breakpoints deleted")
    elif session.remove_breakpoint(int(args[0])):
        print(f"deleted breakpoint at pc {args[0]}")
    else:
        print(f"no breakpoint at pc {args[0]}")


def _break(session: DebugSession, args: List[str]) -> None:
    session.add_breakpoint(int(args[0]))
    print(f"breakpoint set at pc {args[0]}")


def _restart(session: DebugSession, args: List[str]) -> None:
    session.restart()
    print(render(session.current(), session.code))


_COMMANDS: Dict[str, Callable[[DebugSession, List[str]], None]] = {
    "step": lambda session, args: _advance(session, int(args[0]) if args else 1),
    "continue": lambda session, args: _advance(session, int(args[0]) if args else None),
    "show": lambda session, args: print(render(session.current(), session.code)),
    "history": lambda session, args: print(
        "\n\n".join(render(s, session.code) for s in list(session.history)[-(int(args[0]) if args else 5) :])
    ),
    "break": _break,
    "delete": _delete,
    "breakpoints": lambda session, args: print(
        " ".join(map(str, sorted(session.breakpoints))) or "no breakpoints"
    ),
    "restart": _restart,
    "help": lambda session, args: print(_HELP),
}
_ALIASES = {"s": "step", "c": "continue", "b": "break", "d": "delete", "q": "quit", "exit": "quit"}


def run_repl(session: DebugSession, read: Callable[[str], str] = input) -> None:
    print(render(session.current(), session.code))
    while True:
        try:
            words = shlex.split(read("(bfdb) "))
        except EOFError:
            print()
            return
        if not words:
            continue
        name = _ALIASES.get(words[0], words[0])
        if name == "quit":
            return
        handler = _COMMANDS.get(name)
        if handler is None:
            print(f"unknown command {words[0]!r}; try 'help'")
            continue
        try:
            handler(session, words[1:])
        except (ValueError, IndexError):
            print(f"bad arguments for {name!r}; try 'help'")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Step through a Brainfuck program")
    parser.add_argument("source", help="Path to the Brainfuck source file")
    parser.add_argument("--input", default="", help="Text supplied to the program as input")
    parser.add_argument("--max-steps", type=int, default=5_000_000, help="Step limit (default: 5,000,000)")
    parser.add_argument("--tape-window", type=int, default=10, help="Cells shown on each side of the pointer")
    parser.add_argument("--history-limit", type=int, default=200, help="Snapshots kept in history")
    args = parser.parse_args(argv)

    try:
        session = DebugSession(
            read_source(args.source),
            args.input.encode("utf-8"),
            tape_window=args.tape_window,
            max_steps=args.max_steps,
            history_limit=args.history_limit,
        )
    except OSError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except JumpTableError as exc:
        print(f"Invalid program: {exc}", file=sys.stderr)
        return 1

    run_repl(session)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
