"""Decoding of UCI engine output into typed events.

Everything here is pure: a line of text goes in, at most one event comes out.
No I/O and no state, so the reader thread can call :func:`parse_line` freely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional


@dataclass
class AnalysisInfo:
    """One ``info`` message. Every field is optional; an empty instance is a placeholder."""

    depth: Optional[int] = None
    seldepth: Optional[int] = None
    score_cp: Optional[int] = None
    score_mate: Optional[int] = None
    nodes: Optional[int] = None
    nps: Optional[int] = None
    time_ms: Optional[int] = None
    multipv: Optional[int] = None
    pv: List[str] = field(default_factory=list)
    hashfull: Optional[int] = None

    @property
    def rank(self) -> int:
        if self.multipv is None:
            return 1
        return max(1, self.multipv)

    @property
    def is_placeholder(self) -> bool:
        return self == AnalysisInfo()


class EngineEvent:
    """Base class for everything the reader can put on the event queue."""


@dataclass(frozen=True)
class Ready(EngineEvent):
    pass


@dataclass(frozen=True)
class Info(EngineEvent):
    info: AnalysisInfo


@dataclass(frozen=True)
class BestMove(EngineEvent):
    move: str
    ponder: Optional[str] = None


@dataclass(frozen=True)
class EngineError(EngineEvent):
    text: str


@dataclass(frozen=True)
class Id(EngineEvent):
    name: Optional[str] = None
    author: Optional[str] = None


@dataclass(frozen=True)
class OptionAdvertised(EngineEvent):
    name: str


# Keywords that may appear inside an ``info`` line. A ``pv`` runs until the
# next one of these or the end of the line.
INFO_KEYWORDS = frozenset(
    {
        "depth",
        "seldepth",
        "time",
        "nodes",
        "pv",
        "multipv",
        "score",
        "currmove",
        "currmovenumber",
        "hashfull",
        "nps",
        "tbhits",
        "sbhits",
        "cpuload",
        "string",
        "refutation",
        "currline",
    }
)

_INT_FIELDS = {
    "depth": "depth",
    "seldepth": "seldepth",
    "nodes": "nodes",
    "nps": "nps",
    "time": "time_ms",
    "multipv": "multipv",
    "hashfull": "hashfull",
}

_SCORE_BOUNDS = ("lowerbound", "upperbound")


def _to_int(token: str) -> Optional[int]:
    try:
        return int(token)
    except ValueError:
        return None


def parse_info(tokens: List[str]) -> AnalysisInfo:
    """Decode the attribute tokens that follow ``info``.

    Unknown or malformed attributes are skipped; the rest of the line is still
    decoded.
    """
    info = AnalysisInfo()
    index = 0
    count = len(tokens)
    while index < count:
        keyword = tokens[index]
        index += 1

        if keyword in _INT_FIELDS:
            if index < count:
                value = _to_int(tokens[index])
                if value is not None:
                    setattr(info, _INT_FIELDS[keyword], value)
                    index += 1
            continue

        if keyword == "score":
            if index + 1 < count:
                kind, value = tokens[index], _to_int(tokens[index + 1])
                if kind in ("cp", "mate") and value is not None:
                    if kind == "cp":
                        info.score_cp, info.score_mate = value, None
                    else:
                        info.score_cp, info.score_mate = None, value
                    index += 2
                    while index < count and tokens[index] in _SCORE_BOUNDS:
                        index += 1
            continue

        if keyword == "pv":
            moves: List[str] = []
            while index < count and tokens[index] not in INFO_KEYWORDS:
                moves.append(tokens[index])
                index += 1
            info.pv = moves
            continue

        if keyword == "string":
            break

        # Unrecognised keyword or the value of one we don't keep: skip it.

    return info


def _parse_id(rest: List[str]) -> Optional[EngineEvent]:
    if len(rest) < 2:
        return None
    value = " ".join(rest[1:])
    if rest[0] == "name":
        return Id(name=value)
    if rest[0] == "author":
        return Id(author=value)
    return None


def _parse_bestmove(rest: List[str]) -> Optional[EngineEvent]:
    if not rest:
        return None
    ponder = None
    if len(rest) >= 3 and rest[1] == "ponder":
        ponder = rest[2]
    return BestMove(move=rest[0], ponder=ponder)


def _parse_option(rest: List[str]) -> Optional[EngineEvent]:
    if not rest or rest[0] != "name":
        return None
    name_tokens: List[str] = []
    for token in rest[1:]:
        if token == "type":
            break
        name_tokens.append(token)
    if not name_tokens:
        return None
    return OptionAdvertised(" ".join(name_tokens))


_HANDLERS: Dict[str, Callable[[List[str]], Optional[EngineEvent]]] = {
    "id": _parse_id,
    "uciok": lambda _: Ready(),
    "readyok": lambda _: Ready(),
    "info": lambda rest: Info(parse_info(rest)),
    "bestmove": _parse_bestmove,
    "option": _parse_option,
}


def parse_line(line: str) -> Optional[EngineEvent]:
    """Translate one line of engine output into an event, or ``None``."""
    tokens = line.split()
    if not tokens:
        return None
    handler = _HANDLERS.get(tokens[0])
    if handler is None:
        return None
    return handler(tokens[1:])
