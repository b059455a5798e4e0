from __future__ import annotations

import io
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from brainfudge.debugger import DebugSession
from brainfudge.interpreter import Runner, StepLimitExceeded
from brainfudge.lexer import Program
from brainfudge.runtime import ExecutionError, State

logger = logging.getLogger(__name__)


class UnknownSession(KeyError):
    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Unknown session id: {self.session_id}"


def estimate_total_steps(program: Program, input_data: bytes, cap: int) -> Tuple[int, bool]:
    """Dry-run ``program`` and return (steps taken, whether ``cap`` cut it short)."""
    runner = Runner(program, State(io.BytesIO(input_data), io.StringIO()), max_steps=cap)
    try:
        runner.run()
    except StepLimitExceeded:
        return cap, True
    except ExecutionError:
        pass
    return runner.steps, False


@dataclass
class HostedSession:
    session_id: str
    debugger: DebugSession
    total_steps: int
    total_steps_capped: bool


class SessionStore:
    def __init__(self, dry_run_cap: int = 10_000) -> None:
        self.dry_run_cap = dry_run_cap
        self._sessions: Dict[str, HostedSession] = {}
        self._lock = threading.Lock()

    def open(
        self,
        source: str,
        input_data: bytes = b"",
        *,
        tape_window: int = 10,
        max_steps: Optional[int] = None,
        history_limit: int = 200,
    ) -> HostedSession:
        debugger = DebugSession(
            source,
            input_data,
            tape_window=tape_window,
            max_steps=max_steps,
            history_limit=history_limit,
        )
        total, capped = estimate_total_steps(debugger.program, input_data, self.dry_run_cap)
        hosted = HostedSession(uuid.uuid4().hex, debugger, total, capped)
        with self._lock:
            self._sessions[hosted.session_id] = hosted
        logger.info("Opened session %s (%d instructions)", hosted.session_id, len(debugger.program))
        return hosted

    def get(self, session_id: str) -> HostedSession:
        with self._lock:
            hosted = self._sessions.get(session_id)
        if hosted is None:
            raise UnknownSession(session_id)
        return hosted

    def close(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                raise UnknownSession(session_id)
        logger.info("Closed session %s", session_id)


__all__ = ["HostedSession", "SessionStore", "UnknownSession", "estimate_total_steps"]
