from __future__ import annotations

from typing import Iterable, List, Optional

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from brainfudge.interpreter import Snapshot, StepLimitExceeded
from brainfudge.lexer import JumpTableError
from brainfudge.runtime import ExecutionError

from .session import HostedSession, SessionStore, UnknownSession


class SessionCreate(BaseModel):
    code: str = ""
    input: str = ""
    tape_window: int = Field(default=10, ge=0)
    max_steps: Optional[int] = Field(default=None, ge=1)
    history_limit: int = Field(default=200, ge=1)


class SnapshotModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    step: int
    pc: int
    command: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: str
    code_length: int


class SessionView(BaseModel):
    session_id: str
    code: str
    state: SnapshotModel
    states: List[SnapshotModel] = []
    history: List[SnapshotModel]
    history_size: int
    finished: bool
    error: Optional[str]
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    total_steps: int
    total_steps_capped: bool


class StepRequest(BaseModel):
    count: int = Field(default=1, ge=1)


class RunRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)
    ignore_breakpoints: bool = False


class BreakpointRequest(BaseModel):
    pc: int = Field(ge=0)


def _view(hosted: HostedSession, states: Iterable[Snapshot] = ()) -> SessionView:
    debugger = hosted.debugger
    with debugger.lock:
        history = [SnapshotModel.model_validate(s) for s in debugger.history]
        return SessionView(
            session_id=hosted.session_id,
            code=debugger.code,
            state=history[-1],
            states=[SnapshotModel.model_validate(s) for s in states],
            history=history,
            history_size=len(history),
            finished=debugger.finished,
            error=str(debugger.error) if debugger.error is not None else None,
            breakpoints=sorted(debugger.breakpoints),
            hit_breakpoint=debugger.hit_breakpoint,
            total_steps=hosted.total_steps,
            total_steps_capped=hosted.total_steps_capped,
        )


def create_app(store: Optional[SessionStore] = None) -> FastAPI:
    sessions = store if store is not None else SessionStore()
    app = FastAPI(title="brainfudge session API", version="0.1.0")

    def _reply(code: int):
        def handler(request: Request, exc: Exception) -> JSONResponse:
            return JSONResponse(status_code=code, content={"detail": str(exc)})

        return handler

    app.add_exception_handler(UnknownSession, _reply(status.HTTP_404_NOT_FOUND))
    app.add_exception_handler(JumpTableError, _reply(status.HTTP_400_BAD_REQUEST))
    app.add_exception_handler(ExecutionError, _reply(status.HTTP_409_CONFLICT))
    app.add_exception_handler(StepLimitExceeded, _reply(status.HTTP_409_CONFLICT))

    @app.post("/api/session", response_model=SessionView, status_code=status.HTTP_201_CREATED)
    def open_session(payload: SessionCreate) -> SessionView:
        hosted = sessions.open(
            payload.code,
            payload.input.encode("utf-8"),
            tape_window=payload.tape_window,
            max_steps=payload.max_steps,
            history_limit=payload.history_limit,
        )
        return _view(hosted)

    @app.get("/api/session/{session_id}", response_model=SessionView)
    def show_session(session_id: str) -> SessionView:
        return _view(sessions.get(session_id))

    @app.post("/api/session/{session_id}/reset", response_model=SessionView)
    def reset_session(session_id: str) -> SessionView:
        hosted = sessions.get(session_id)
        with hosted.debugger.lock:
            hosted.debugger.clear_breakpoints()
            hosted.debugger.restart()
            return _view(hosted)

    @app.post("/api/session/{session_id}/step", response_model=SessionView)
    def step_session(session_id: str, payload: StepRequest) -> SessionView:
        hosted = sessions.get(session_id)
        with hosted.debugger.lock:
            return _view(hosted, hosted.debugger.advance(payload.count))

    @app.post("/api/session/{session_id}/run", response_model=SessionView)
    def run_session(session_id: str, payload: RunRequest) -> SessionView:
        hosted = sessions.get(session_id)
        with hosted.debugger.lock:
            taken = hosted.debugger.advance(payload.limit, use_breakpoints=not payload.ignore_breakpoints)
            return _view(hosted, taken)

    @app.post("/api/session/{session_id}/breakpoints", response_model=SessionView)
    def add_breakpoint(session_id: str, payload: BreakpointRequest) -> SessionView:
        hosted = sessions.get(session_id)
        hosted.debugger.add_breakpoint(payload.pc)
        return _view(hosted)

    @app.delete("/api/session/{session_id}/breakpoints/{pc}", response_model=SessionView)
    def remove_breakpoint(session_id: str, pc: int) -> SessionView:
        hosted = sessions.get(session_id)
        if not hosted.debugger.remove_breakpoint(pc):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No breakpoint at pc={pc}")
        return _view(hosted)

    @app.delete("/api/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def close_session(session_id: str) -> Response:
        sessions.close(session_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app"]
