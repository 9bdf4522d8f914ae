"""Aggregation of MultiPV ``info`` messages into a ranked snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import chess

from uci_protocol import AnalysisInfo


@dataclass(frozen=True)
class AggregateStats:
    nodes: Optional[int] = None
    nps: Optional[int] = None
    hashfull: Optional[int] = None


@dataclass
class AnalysisState:
    """Best-known line per MultiPV rank plus the latest search statistics.

    Lines are only replaced by messages that carry a principal variation.
    Statistics come from every message, with or without a PV.
    """

    target_depth: int = 20
    lines: List[AnalysisInfo] = field(default_factory=list)
    is_running: bool = False
    is_paused: bool = False
    nodes: Optional[int] = None
    nps: Optional[int] = None
    hashfull: Optional[int] = None

    def update(self, info: AnalysisInfo) -> None:
        if info.nodes is not None:
            self.nodes = info.nodes
        if info.nps is not None:
            self.nps = info.nps
        if info.hashfull is not None:
            self.hashfull = info.hashfull

        if not info.pv:
            return
        line_idx = info.rank - 1
        while len(self.lines) <= line_idx:
            self.lines.append(AnalysisInfo())
        self.lines[line_idx] = info

    def clear(self) -> None:
        self.lines.clear()
        self.nodes = None
        self.nps = None
        self.hashfull = None

    def top_line(self) -> Optional[AnalysisInfo]:
        if not self.lines:
            return None
        return self.lines[0]

    def ranked_lines(self, count: int) -> List[AnalysisInfo]:
        count = max(count, 0)
        ranked = list(self.lines[:count])
        while len(ranked) < count:
            ranked.append(AnalysisInfo())
        return ranked

    def stats(self) -> AggregateStats:
        return AggregateStats(nodes=self.nodes, nps=self.nps, hashfull=self.hashfull)

    def current_depth(self) -> Optional[int]:
        top = self.top_line()
        return top.depth if top is not None else None


def format_score(cp: Optional[int], mate: Optional[int]) -> str:
    if mate is not None:
        if mate > 0:
            return f"M{mate}"
        return f"-M{-mate}"
    if cp is not None:
        score = cp / 100.0
        if score >= 0:
            return f"+{score:.2f}"
        return f"{score:.2f}"
    return "---"


def format_nodes(nodes: int) -> str:
    if nodes >= 1_000_000_000:
        return f"{nodes / 1_000_000_000:.1f}B"
    if nodes >= 1_000_000:
        return f"{nodes / 1_000_000:.1f}M"
    if nodes >= 1_000:
        return f"{nodes / 1_000:.1f}K"
    return str(nodes)


def pv_to_san(board: chess.Board, moves: Iterable[str]) -> List[str]:
    """Convert engine move tokens to SAN, stopping at the first one that doesn't apply."""
    replay = board.copy(stack=False)
    san_moves: List[str] = []
    for token in moves:
        try:
            move = replay.parse_uci(token)
        except ValueError:
            break
        san_moves.append(replay.san(move))
        replay.push(move)
    return san_moves


def describe_line(index: int, info: AnalysisInfo, board: Optional[chess.Board] = None) -> str:
    """One console row for a ranked line, e.g. ``1. +0.34 d18  e4 e5 Nf3``."""
    if info.is_placeholder:
        return f"{index + 1}. ..."
    score = format_score(info.score_cp, info.score_mate)
    depth = f"d{info.depth}" if info.depth is not None else "d-"
    moves = pv_to_san(board, info.pv) if board is not None else []
    if len(moves) < len(info.pv):
        moves.extend(info.pv[len(moves):])
    return f"{index + 1}. {score:>7} {depth:<4} {' '.join(moves)}"
