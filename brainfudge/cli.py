from __future__ import annotations

import argparse
import io
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .interpreter import StepLimitExceeded, execute
from .lexer import JumpTableError, Program
from .runtime import ExecutionError

logger = logging.getLogger(__name__)


def read_source(path: str) -> str:
    """Load program text.

    Only the eight ASCII instruction characters matter, so bytes that are not
    valid UTF-8 are replaced rather than rejected.
    """
    source_path = Path(path)
    if not source_path.is_file():
        raise FileNotFoundError(f"Source file not found: {path}")
    return source_path.read_text(encoding="utf-8", errors="replace")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="brainfudge", description="Run a Brainfuck program")
    parser.add_argument("source", help="Path to the Brainfuck source file")
    parser.add_argument(
        "--input",
        default=None,
        help="Text fed to ',' instead of standard input",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Abort after this many executed instructions",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug information to stderr")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        program = Program.compile(read_source(args.source))
    except OSError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except JumpTableError as exc:
        print(f"Invalid program: {exc}", file=sys.stderr)
        return 1
    logger.debug("Loaded %s (%d instructions)", args.source, len(program))

    input_stream = io.BytesIO(args.input.encode("utf-8")) if args.input is not None else None
    try:
        execute(program, input_stream=input_stream, output_stream=sys.stdout, max_steps=args.max_steps)
    except (ExecutionError, StepLimitExceeded) as exc:
        sys.stdout.flush()
        print(f"Execution stopped: {exc}", file=sys.stderr)
        return 1
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
