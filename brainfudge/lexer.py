from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class Token(str, Enum):
    INCREMENT = "+"
    DECREMENT = "-"
    POINTER_INCREMENT = ">"
    POINTER_DECREMENT = "<"
    LOOP_START = "["
    LOOP_END = "]"
    INPUT = ","
    OUTPUT = "."

    @classmethod
    def parse(cls, character: str) -> Optional["Token"]:
        """Return the token for ``character`` or ``None`` for comment characters."""
        return _CHARACTER_TOKENS.get(character)


_CHARACTER_TOKENS: Dict[str, Token] = {token.value: token for token in Token}


def tokenize(source: Iterable[str]) -> Tuple[Token, ...]:
    tokens = (Token.parse(character) for character in source)
    return tuple(token for token in tokens if token is not None)


class JumpTableError(ValueError):
    """Raised when a token sequence has unbalanced loop brackets."""


class NoMatchingLoopEnd(JumpTableError):
    def __init__(self, position: int) -> None:
        super().__init__(f"Unmatched ']' at position {position}")
        self.position = position


class TooManyLoopStarts(JumpTableError):
    def __init__(self, count: int) -> None:
        super().__init__(f"{count} unmatched '[' remaining at end of program")
        self.count = count


class JumpTable:
    """Read-only mapping between the positions of matched loop brackets.

    Each matched pair contributes two entries, start -> end and end -> start,
    so ``resolve(resolve(p)) == p`` holds for every known position.
    """

    def __init__(self, jumps: Dict[int, int]) -> None:
        self._jumps = dict(jumps)

    @classmethod
    def from_tokens(cls, tokens: Sequence[Token]) -> "JumpTable":
        jumps: Dict[int, int] = {}
        stack: List[int] = []
        for position, token in enumerate(tokens):
            if token is Token.LOOP_START:
                stack.append(position)
            elif token is Token.LOOP_END:
                if not stack:
                    raise NoMatchingLoopEnd(position)
                start = stack.pop()
                jumps[start] = position
                jumps[position] = start
        if stack:
            raise TooManyLoopStarts(len(stack))
        logger.debug("Built jump table with %d loop pairs", len(jumps) // 2)
        return cls(jumps)

    def resolve(self, position: int) -> Optional[int]:
        return self._jumps.get(position)

    def __contains__(self, position: object) -> bool:
        return position in self._jumps

    def __len__(self) -> int:
        return len(self._jumps)

    def __repr__(self) -> str:
        pairs = sorted((start, end) for start, end in self._jumps.items() if start < end)
        return f"JumpTable({pairs!r})"


@dataclass(frozen=True)
class Program:
    """A token sequence paired with the jump table built from it."""

    tokens: Tuple[Token, ...]
    jump_table: JumpTable

    @classmethod
    def compile(cls, source: Iterable[str]) -> "Program":
        tokens = tokenize(source)
        return cls(tokens=tokens, jump_table=JumpTable.from_tokens(tokens))

    @property
    def code(self) -> str:
        return "".join(token.value for token in self.tokens)

    def __len__(self) -> int:
        return len(self.tokens)


__all__ = [
    "JumpTable",
    "JumpTableError",
    "NoMatchingLoopEnd",
    "Program",
    "Token",
    "TooManyLoopStarts",
    "tokenize",
]
