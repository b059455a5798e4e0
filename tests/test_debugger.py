import threading
import unittest
from contextlib import redirect_stdout
import io

from brainfudge import BrainfuckInterpreter, DebugSession, Snapshot
from brainfudge.debugger import _mark_code, render, run_repl
from brainfudge.interpreter import StepLimitExceeded
from brainfudge.lexer import JumpTableError
from brainfudge.runtime import PointerUnderflow


class SnapshotStreamTests(unittest.TestCase):
    def test_step_yields_one_snapshot_per_instruction_then_final(self) -> None:
        states = list(BrainfuckInterpreter().step("+++.", tape_window=2))
        self.assertEqual([s.command for s in states], ["+", "+", "+", ".", None])
        self.assertEqual(states[-1].output, "\x03")
        self.assertEqual(states[-1].pc, 4)


class DebugSessionTests(unittest.TestCase):
    def test_initial_snapshot(self) -> None:
        session = DebugSession("+++.")
        first = session.current()
        self.assertIsNone(first.command)
        self.assertEqual((first.step, first.pc, first.code_length), (0, 0, 4))
        self.assertFalse(session.finished)

    def test_code_is_stripped_of_comments(self) -> None:
        self.assertEqual(DebugSession("add two: ++ print: .").code, "++.")

    def test_malformed_program_rejected_on_creation(self) -> None:
        with self.assertRaises(JumpTableError):
            DebugSession("[[]")

    def test_advance_drives_the_engine_state(self) -> None:
        session = DebugSession("++>+")
        taken = session.advance(3)
        self.assertEqual([s.step for s in taken], [1, 2, 3])
        self.assertEqual(session.state.memory, bytearray([2, 0]))
        self.assertEqual(session.state.memory_pointer, 1)
        self.assertEqual(session.current(), taken[-1])

    def test_advance_zero_does_nothing(self) -> None:
        session = DebugSession("++")
        first = session.current()
        self.assertEqual(session.advance(0), [])
        self.assertIs(session.current(), first)

    def test_finishes_after_last_instruction(self) -> None:
        session = DebugSession("+.")
        session.advance(10)
        self.assertTrue(session.finished)
        self.assertEqual(session.current().output, "\x01")
        self.assertEqual(session.advance(1), [])

    def test_breakpoint_stops_before_instruction(self) -> None:
        session = DebugSession("+++.")
        session.add_breakpoint(2)
        taken = session.advance(None)
        self.assertEqual(session.hit_breakpoint, 2)
        self.assertEqual(taken[-1].pc, 2)
        self.assertEqual(session.state.memory[0], 2)
        session.advance(None)
        self.assertTrue(session.finished)

    def test_loop_breakpoint_hits_every_iteration(self) -> None:
        session = DebugSession("+++[-]")
        session.add_breakpoint(4)
        hits = []
        while not session.finished:
            session.advance(None)
            if session.hit_breakpoint is not None:
                hits.append(session.state.memory[0])
        self.assertEqual(hits, [3, 2, 1])

    def test_breakpoints_can_be_ignored(self) -> None:
        session = DebugSession("+++.")
        session.add_breakpoint(2)
        session.advance(None, use_breakpoints=False)
        self.assertTrue(session.finished)
        self.assertIsNone(session.hit_breakpoint)

    def test_breakpoint_management(self) -> None:
        session = DebugSession("+++.")
        session.add_breakpoint(3)
        session.add_breakpoint(1)
        self.assertEqual(sorted(session.breakpoints), [1, 3])
        self.assertTrue(session.remove_breakpoint(1))
        self.assertFalse(session.remove_breakpoint(99))
        session.clear_breakpoints()
        self.assertEqual(session.breakpoints, set())

    def test_step_limit_ends_session(self) -> None:
        session = DebugSession("+[]", max_steps=2)
        with self.assertRaises(StepLimitExceeded):
            session.advance(None)
        self.assertTrue(session.finished)
        self.assertIsInstance(session.error, StepLimitExceeded)

    def test_engine_error_leaves_state_for_inspection(self) -> None:
        session = DebugSession("+<")
        session.advance(1)
        with self.assertRaises(PointerUnderflow):
            session.advance(1)
        self.assertTrue(session.finished)
        self.assertIsInstance(session.error, PointerUnderflow)
        self.assertEqual(session.state.instruction_pointer, 1)
        self.assertEqual(session.advance(1), [])

    def test_restart_replays_input(self) -> None:
        session = DebugSession(",.", b"x")
        session.advance(None)
        self.assertEqual(session.current().output, "x")
        session.restart()
        self.assertFalse(session.finished)
        self.assertEqual(session.current().step, 0)
        session.advance(None)
        self.assertEqual(session.current().output, "x")

    def test_history_is_bounded(self) -> None:
        session = DebugSession("+++++.", history_limit=3)
        session.advance(5)
        self.assertEqual(len(session.history), 3)
        self.assertEqual(session.history[0].step, 3)

    def test_concurrent_callers_take_turns(self) -> None:
        session = DebugSession("+" * 300, history_limit=20)
        errors = []

        def worker() -> None:
            try:
                session.advance(50)
            except Exception as exc:  # collected for the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(session.runner.steps, 200)
        self.assertEqual(session.state.memory[0], 200)
        self.assertEqual([s.step for s in session.history], list(range(181, 201)))


class RenderTests(unittest.TestCase):
    def test_mark_code(self) -> None:
        self.assertEqual(_mark_code("+-.", 1), "+(-).")
        self.assertEqual(_mark_code("+", 5), "+(end)")
        self.assertEqual(_mark_code("", 0), "(empty)")

    def test_render_sections(self) -> None:
        snapshot = Snapshot(
            step=3, pc=1, command="+", pointer=1, tape_start=0, tape=[1, 2, 3], output="A", code_length=3
        )
        text = render(snapshot, "++.")
        self.assertIn("#3 pc 1/3 ran '+' ptr 1", text)
        self.assertIn("tape @0:   1>  2   3", text)
        self.assertIn("code +(+).", text)
        self.assertIn("out  'A'", text)


class ReplTests(unittest.TestCase):
    def _run(self, session: DebugSession, commands: list) -> str:
        feed = iter(commands)

        def read(prompt: str) -> str:
            try:
                return next(feed)
            except StopIteration:
                raise EOFError from None

        buffer = io.StringIO()
        with redirect_stdout(buffer):
            run_repl(session, read=read)
        return buffer.getvalue()

    def test_breakpoints_and_stepping(self) -> None:
        session = DebugSession("+++.")
        output = self._run(session, ["break 2", "continue", "breakpoints", "step", "quit"])
        self.assertIn("breakpoint set at pc 2", output)
        self.assertIn("breakpoint at pc 2", output)
        self.assertIn("\n2\n", output)
        self.assertEqual(session.state.instruction_pointer, 3)

    def test_run_to_end_and_restart(self) -> None:
        session = DebugSession("+.")
        output = self._run(session, ["c", "restart"])
        self.assertIn("program finished", output)
        self.assertEqual(session.current().step, 0)

    def test_reports_engine_errors_and_bad_input(self) -> None:
        session = DebugSession("<")
        output = self._run(session, ["step", "break", "frobnicate"])
        self.assertIn("stopped: Memory pointer moved below cell 0", output)
        self.assertIn("bad arguments for 'break'", output)
        self.assertIn("unknown command 'frobnicate'", output)


if __name__ == "__main__":
    unittest.main()
