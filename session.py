"""Analysis session orchestration: when to (re)start, stop or pause a search."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from analysis import AnalysisState
from chess_logic import Game
from config import EngineConfig, validate_depth, validate_multipv
from uci_protocol import BestMove, Info

if TYPE_CHECKING:
    from engine_comm import UciEngine


class AnalysisSession:
    """Coordinates one engine, the aggregated analysis and the game record.

    Every action that changes the position or the search settings restarts
    the analysis. The aggregator has no idea which position its lines belong
    to, so a caller that changes ``game`` directly must call
    :meth:`start_analysis` itself.
    """

    def __init__(
        self,
        engine: Optional["UciEngine"],
        game: Game,
        engine_config: Optional[EngineConfig] = None,
        *,
        infinite: bool = False,
    ) -> None:
        self.engine = engine
        self.game = game
        self.config = engine_config or EngineConfig()
        self.infinite = infinite
        self.analysis = AnalysisState(target_depth=self.config.depth)

    @property
    def has_engine(self) -> bool:
        return self.engine is not None

    def configure_engine(self) -> None:
        if self.engine is None:
            return
        self.engine.set_option("MultiPV", self.config.multipv)
        self.engine.set_option("Threads", self.config.threads)
        self.engine.set_option("Hash", self.config.hash)
        self.engine.set_option("Contempt", self.config.contempt)

    def start_analysis(self) -> None:
        if self.engine is None:
            return
        self.engine.stop()
        self.analysis.clear()
        self.analysis.is_running = True
        self.analysis.is_paused = False
        self.engine.set_position(self.game.fen())
        if self.infinite:
            self.engine.go_infinite()
        else:
            self.engine.go_depth(self.analysis.target_depth)

    def stop_analysis(self) -> None:
        if self.engine is None:
            return
        self.engine.stop()
        self.analysis.is_running = False

    def toggle_pause(self) -> None:
        if self.analysis.is_paused:
            self.start_analysis()
        else:
            self.stop_analysis()
            self.analysis.is_paused = True

    def process_engine_events(self) -> int:
        """Drain whatever the engine has produced so far. Never blocks."""
        if self.engine is None:
            return 0
        processed = 0
        while True:
            event = self.engine.try_recv()
            if event is None:
                break
            processed += 1
            if isinstance(event, Info):
                self.analysis.update(event.info)
            elif isinstance(event, BestMove):
                self.analysis.is_running = False
        return processed

    # Host actions. Each one restarts the analysis when it changes something.

    def set_depth(self, depth: int) -> None:
        self.config.depth = validate_depth(depth)
        self.analysis.target_depth = depth
        self.start_analysis()

    def set_multipv(self, multipv: int) -> None:
        self.config.multipv = validate_multipv(multipv)
        if self.engine is not None:
            self.engine.set_option("MultiPV", multipv)
        self.start_analysis()

    def play_move(self, san: str) -> None:
        self.game.make_move_san(san)
        self.start_analysis()

    def play_analysis_line(self, line_idx: int) -> str:
        """Play the first move of ranked line ``line_idx`` and return it in UCI."""
        if line_idx < 0 or line_idx >= len(self.analysis.lines):
            raise ValueError(f"No analysis line {line_idx + 1}")
        info = self.analysis.lines[line_idx]
        if not info.pv:
            raise ValueError(f"No moves in line {line_idx + 1}")
        move = self.game.legal_move_from_uci(info.pv[0])
        if move is None:
            raise ValueError(f"Invalid move from engine: {info.pv[0]}")
        self.game.make_move(move)
        self.start_analysis()
        return move.uci()

    def go_back(self) -> bool:
        moved = self.game.go_back()
        if moved:
            self.start_analysis()
        return moved

    def go_forward(self) -> bool:
        moved = self.game.go_forward()
        if moved:
            self.start_analysis()
        return moved

    def go_to_start(self) -> None:
        self.game.go_to_start()
        self.start_analysis()

    def go_to_end(self) -> None:
        self.game.go_to_end()
        self.start_analysis()

    def load_fen(self, fen: str) -> None:
        self.game.load_fen(fen)
        self.start_analysis()

    def load_pgn(self, text: str) -> None:
        self.game.load_pgn(text)
        self.start_analysis()

    def new_game(self) -> None:
        self.game.reset()
        if self.engine is not None:
            self.engine.stop()
            self.engine.new_game()
        self.start_analysis()
