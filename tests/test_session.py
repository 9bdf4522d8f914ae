from collections import deque
from typing import Optional

import chess
import pytest

from chess_logic import Game
from config import EngineConfig
from session import AnalysisSession
from uci_protocol import BestMove, Ready, parse_line


class EngineStub:
    """Records commands the way :class:`engine_comm.UciEngine` would send them."""

    def __init__(self) -> None:
        self.commands = []
        self.analyzing = False
        self.events = deque()

    def set_option(self, name, value) -> None:
        self.commands.append(f"setoption name {name} value {value}")

    def set_position(self, fen: Optional[str] = None, moves=()) -> None:
        command = f"position fen {fen}" if fen else "position startpos"
        if moves:
            command += " moves " + " ".join(moves)
        self.commands.append(command)

    def new_game(self) -> None:
        self.commands.append("ucinewgame")

    def go_depth(self, depth: int) -> None:
        self.analyzing = True
        self.commands.append(f"go depth {depth}")

    def go_infinite(self) -> None:
        self.analyzing = True
        self.commands.append("go infinite")

    def stop(self) -> None:
        if self.analyzing:
            self.commands.append("stop")
            self.analyzing = False

    def try_recv(self):
        if not self.events:
            return None
        event = self.events.popleft()
        if isinstance(event, BestMove):
            self.analyzing = False
        return event

    def queue_lines(self, *lines: str) -> None:
        for line in lines:
            self.events.append(parse_line(line))


def make_session(engine=None, **config):
    engine = engine if engine is not None else EngineStub()
    session = AnalysisSession(engine, Game(), EngineConfig(**config))
    return session, engine


def test_start_analysis_pushes_position_and_depth() -> None:
    session, engine = make_session(depth=12)
    session.start_analysis()
    assert engine.commands == [f"position fen {chess.STARTING_FEN}", "go depth 12"]
    assert session.analysis.is_running is True
    assert session.analysis.is_paused is False


def test_restart_stops_running_search_and_clears_lines() -> None:
    session, engine = make_session(depth=8)
    session.start_analysis()
    engine.queue_lines("info depth 3 multipv 1 score cp 20 nodes 300 pv e2e4")
    session.process_engine_events()
    assert session.analysis.lines

    session.start_analysis()
    assert engine.commands[-3:] == ["stop", f"position fen {chess.STARTING_FEN}", "go depth 8"]
    assert session.analysis.lines == []
    assert session.analysis.nodes is None


def test_without_engine_everything_is_a_no_op() -> None:
    session = AnalysisSession(None, Game())
    session.start_analysis()
    session.toggle_pause()
    session.configure_engine()
    assert session.has_engine is False
    assert session.analysis.is_running is False
    assert session.process_engine_events() == 0
    session.play_move("e4")
    assert session.game.uci_moves() == ["e2e4"]


def test_toggle_pause_stops_then_restarts() -> None:
    session, engine = make_session(depth=5)
    session.start_analysis()
    session.toggle_pause()
    assert engine.commands[-1] == "stop"
    assert session.analysis.is_paused is True
    assert session.analysis.is_running is False

    session.toggle_pause()
    assert engine.commands[-1] == "go depth 5"
    assert session.analysis.is_paused is False
    assert session.analysis.is_running is True


def test_process_engine_events_feeds_aggregator_and_ends_on_bestmove() -> None:
    session, engine = make_session(depth=2)
    session.start_analysis()
    engine.events.append(Ready())
    engine.queue_lines(
        "info depth 1 nodes 20 nps 2000",
        "info depth 1 multipv 2 score cp -10 pv d2d4",
        "info depth 2 multipv 1 score cp 15 pv e2e4 e7e5",
        "bestmove e2e4 ponder e7e5",
    )
    assert session.process_engine_events() == 5
    assert session.analysis.is_running is False
    assert engine.analyzing is False
    assert [line.pv for line in session.analysis.lines] == [["e2e4", "e7e5"], ["d2d4"]]
    assert session.analysis.nodes == 20
    assert session.process_engine_events() == 0


def test_stop_analysis_is_idempotent() -> None:
    session, engine = make_session()
    session.start_analysis()
    session.stop_analysis()
    session.stop_analysis()
    assert engine.commands.count("stop") == 1
    assert session.analysis.is_running is False


def test_configure_engine_sends_options_from_config() -> None:
    session, engine = make_session(multipv=2, threads=8, hash=512, contempt=-10)
    session.configure_engine()
    assert engine.commands == [
        "setoption name MultiPV value 2",
        "setoption name Threads value 8",
        "setoption name Hash value 512",
        "setoption name Contempt value -10",
    ]


def test_set_depth_and_multipv_restart_analysis() -> None:
    session, engine = make_session()
    session.set_depth(7)
    assert engine.commands[-1] == "go depth 7"
    assert session.analysis.target_depth == 7

    session.set_multipv(4)
    assert "setoption name MultiPV value 4" in engine.commands
    assert engine.commands[-1] == "go depth 7"
    assert session.config.multipv == 4

    with pytest.raises(ValueError):
        session.set_depth(0)
    with pytest.raises(ValueError):
        session.set_multipv(11)


def test_position_changes_restart_analysis() -> None:
    session, engine = make_session(depth=3)
    session.play_move("e4")
    after_e4 = session.game.fen()
    assert engine.commands[-2:] == [f"position fen {after_e4}", "go depth 3"]

    assert session.go_back() is True
    assert engine.commands[-2] == f"position fen {chess.STARTING_FEN}"
    assert session.go_back() is False

    assert session.go_forward() is True
    assert engine.commands[-2] == f"position fen {after_e4}"

    session.go_to_start()
    assert engine.commands[-2] == f"position fen {chess.STARTING_FEN}"
    session.go_to_end()
    assert engine.commands[-2] == f"position fen {after_e4}"


def test_load_fen_and_new_game() -> None:
    session, engine = make_session(depth=3)
    fen = "8/8/8/4k3/8/8/4P3/4K3 w - - 0 1"
    session.load_fen(fen)
    assert engine.commands[-2] == f"position fen {fen}"

    session.new_game()
    assert "ucinewgame" in engine.commands
    assert engine.commands[-2] == f"position fen {chess.STARTING_FEN}"


def test_play_analysis_line_plays_first_pv_move() -> None:
    session, engine = make_session(depth=4)
    session.start_analysis()
    engine.queue_lines(
        "info depth 4 multipv 1 score cp 30 pv e2e4 e7e5",
        "info depth 4 multipv 2 score cp 20 pv d2d4 d7d5",
    )
    session.process_engine_events()

    assert session.play_analysis_line(1) == "d2d4"
    assert session.game.uci_moves() == ["d2d4"]
    assert engine.commands[-1] == "go depth 4"
    assert session.analysis.lines == []


def test_play_analysis_line_rejects_missing_or_illegal_lines() -> None:
    session, engine = make_session()
    session.start_analysis()
    with pytest.raises(ValueError, match="No analysis line 1"):
        session.play_analysis_line(0)

    engine.queue_lines("info multipv 2 pv e2e5")
    session.process_engine_events()
    with pytest.raises(ValueError, match="No moves in line 1"):
        session.play_analysis_line(0)
    with pytest.raises(ValueError, match="Invalid move from engine"):
        session.play_analysis_line(1)
    assert session.game.uci_moves() == []


def test_infinite_session_uses_go_infinite() -> None:
    engine = EngineStub()
    session = AnalysisSession(engine, Game(), EngineConfig(), infinite=True)
    session.start_analysis()
    assert engine.commands[-1] == "go infinite"
