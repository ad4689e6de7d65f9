"""Parsing of ``OPCODE|arg1|arg2|...`` command packets."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Sequence, Tuple

_WHITESPACE = " \t\r\n"


class Opcode(Enum):
    LOOK = auto()     # pan(deg), tilt(deg)
    GESTURE = auto()  # type
    MOVE = auto()     # motor name, angle(deg), [move time]
    POSE = auto()     # pose name
    HIT = auto()      # target
    START = auto()
    QUIT = auto()
    UNKNOWN = auto()


_MIN_ARGS = {
    Opcode.LOOK: 2,
    Opcode.GESTURE: 1,
    Opcode.MOVE: 2,
    Opcode.POSE: 1,
    Opcode.HIT: 1,
    Opcode.START: 0,
    Opcode.QUIT: 0,
}


class CommandError(ValueError):
    """Raised when a command packet cannot be parsed."""


@dataclass(frozen=True)
class ParsedCommand:
    opcode: Opcode
    args: Tuple[str, ...] = ()


def to_opcode(token: str) -> Opcode:
    """Map a token to its opcode, ignoring case; ``Q`` means QUIT."""
    upper = token.upper()
    if upper == "Q":
        return Opcode.QUIT
    try:
        opcode = Opcode[upper]
    except KeyError:
        return Opcode.UNKNOWN
    return opcode


def validate_args(opcode: Opcode, args: Sequence[str]) -> bool:
    """Check that ``args`` holds at least the arguments ``opcode`` needs."""
    minimum = _MIN_ARGS.get(opcode)
    return minimum is not None and len(args) >= minimum


def _split(text: str, delimiter: str) -> List[str]:
    parts = text.split(delimiter)
    if parts and parts[-1] == "":
        parts.pop()
    return [p.strip(_WHITESPACE) for p in parts]


class CommandParser:
    """Turn raw command text into a :class:`ParsedCommand`."""

    def parse(self, cmd: str) -> ParsedCommand:
        cleaned = cmd.strip(_WHITESPACE)
        if not cleaned:
            raise CommandError("empty command")

        tokens = _split(cleaned, "|")
        if not tokens:
            raise CommandError(f"no tokens found: {cleaned}")

        opcode = to_opcode(tokens[0])
        if opcode is Opcode.UNKNOWN:
            raise CommandError(f"unknown opcode: {tokens[0]}")

        args = tuple(tokens[1:])
        if not validate_args(opcode, args):
            raise CommandError(f"invalid args for opcode: {tokens[0]}")

        return ParsedCommand(opcode, args)