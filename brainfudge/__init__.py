import logging

from .debugger import DebugSession
from .interpreter import BrainfuckInterpreter, Runner, Snapshot, StepLimitExceeded, execute
from .lexer import JumpTable, JumpTableError, NoMatchingLoopEnd, Program, Token, TooManyLoopStarts, tokenize
from .runtime import (
    EndOfInstructions,
    ExecutionError,
    InputError,
    PointerUnderflow,
    State,
    UndefinedJumpTarget,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BrainfuckInterpreter",
    "DebugSession",
    "EndOfInstructions",
    "ExecutionError",
    "InputError",
    "JumpTable",
    "JumpTableError",
    "NoMatchingLoopEnd",
    "PointerUnderflow",
    "Program",
    "Runner",
    "Snapshot",
    "State",
    "StepLimitExceeded",
    "Token",
    "TooManyLoopStarts",
    "UndefinedJumpTarget",
    "execute",
    "tokenize",
]
