# MAIN
import argparse
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple

import chess

from analysis import AnalysisState, describe_line, format_nodes
from chess_logic import Game
from config import Config, validate_depth, validate_multipv
from engine_comm import EngineCommError, EngineIOError, HandshakeTimeout, LaunchError, UciEngine
from session import AnalysisSession
from utils import ReportingLevel, debug_text, info_text, report, warning_text

DEFAULT_POLL_INTERVAL_MS = 50


def parse_args(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="Analyse a chess position with a UCI engine and print the best lines"
    )
    parser.add_argument(
        "-fen", help="Set the initial board state to the given FEN string"
    )
    parser.add_argument("--pgn", help="Load the game from a PGN file")
    parser.add_argument(
        "--moves",
        default="",
        help="Space separated UCI moves to play from the initial position",
    )
    parser.add_argument("--depth", type=int, help="Search depth for analysis")
    parser.add_argument(
        "--multipv", type=int, help="Number of best lines to show (MultiPV)"
    )
    parser.add_argument("--engine", help="Path to the UCI engine binary")
    parser.add_argument(
        "--infinite",
        action="store_true",
        help="Search without a depth limit until interrupted",
    )
    parser.add_argument(
        "--history",
        action="store_true",
        help="Print the moves leading to the analysed position",
    )
    parser.add_argument("-dev", action="store_true", help="Echo all engine traffic")
    parser.add_argument("--quiet", action="store_true", help="Only print the final lines")
    parser.add_argument(
        "--config", help="Read settings from this file instead of the default location"
    )
    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Write the effective engine settings back to the config file",
    )
    parser.add_argument(
        "--poll-interval",
        type=int,
        default=DEFAULT_POLL_INTERVAL_MS,
        help="Milliseconds between engine event polls",
    )
    return parser.parse_args(argv)


def resolve_reporting_level(args) -> ReportingLevel:
    if args.quiet:
        return ReportingLevel.QUIET
    if args.dev:
        return ReportingLevel.VERBOSE
    return ReportingLevel.BASIC


def apply_overrides(config: Config, args) -> Config:
    if args.depth is not None:
        config.engine.depth = validate_depth(args.depth)
    if args.multipv is not None:
        config.engine.multipv = validate_multipv(args.multipv)
    if args.engine:
        config.engine.path = args.engine
    return config


def build_game(args) -> Game:
    game = Game()
    if args.pgn:
        game.load_pgn(Path(args.pgn).read_text(encoding="utf-8"))
    elif args.fen:
        game.load_fen(args.fen)
    for token in args.moves.split():
        game.make_move_uci(token)
    return game


def attach_engine(
    path: Optional[str],
    reporting_level: ReportingLevel,
) -> Optional[UciEngine]:
    """Start the engine, or return ``None`` so the host runs without analysis."""
    if not path:
        report(warning_text("No engine found; running without analysis"), reporting_level)
        return None
    try:
        return UciEngine(path, reporting_level=reporting_level)
    except LaunchError as exc:
        report(warning_text(f"Failed to start engine: {exc}"), reporting_level)
    except HandshakeTimeout as exc:
        report(warning_text(f"Engine did not complete the handshake: {exc}"), reporting_level)
    except EngineIOError as exc:
        report(warning_text(f"Engine closed its input during startup: {exc}"), reporting_level)
    return None


def render_snapshot(analysis: AnalysisState, board: chess.Board, multipv: int) -> str:
    top = analysis.top_line()
    depth = top.depth if top is not None and top.depth is not None else 0
    rows = [f"Depth {depth}/{analysis.target_depth}"]
    for index, info in enumerate(analysis.ranked_lines(multipv)):
        rows.append(describe_line(index, info, board))
    stats = analysis.stats()
    stat_parts = []
    if stats.nodes is not None:
        stat_parts.append(f"nodes {format_nodes(stats.nodes)}")
    if stats.nps is not None:
        stat_parts.append(f"nps {format_nodes(stats.nps)}")
    if stats.hashfull is not None:
        stat_parts.append(f"hash {stats.hashfull / 10:.1f}%")
    if stat_parts:
        rows.append("  ".join(stat_parts))
    return "\n".join(rows)


def snapshot_key(analysis: AnalysisState) -> Tuple:
    top = analysis.top_line()
    return (
        top.depth if top is not None else None,
        tuple(tuple(info.pv) for info in analysis.lines),
        tuple((info.score_cp, info.score_mate) for info in analysis.lines),
    )


def run_analysis(
    session: AnalysisSession,
    *,
    poll_interval: float,
    reporting_level: ReportingLevel,
) -> None:
    engine = session.engine
    if engine is None:
        return

    session.start_analysis()
    last_key = None
    try:
        while session.analysis.is_running:
            if session.process_engine_events():
                key = snapshot_key(session.analysis)
                if key != last_key:
                    last_key = key
                    report(
                        render_snapshot(session.analysis, session.game.board, session.config.multipv),
                        reporting_level,
                    )
            elif not engine.is_alive():
                report(warning_text("Engine exited during analysis"), reporting_level)
                break
            time.sleep(poll_interval)
    except KeyboardInterrupt:
        session.stop_analysis()
        report(info_text("Analysis interrupted by user"), reporting_level)
        session.process_engine_events()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    reporting_level = resolve_reporting_level(args)

    config = Config.load(args.config, reporting_level=reporting_level)
    try:
        apply_overrides(config, args)
        game = build_game(args)
    except (OSError, ValueError) as exc:
        print(warning_text(str(exc)), file=sys.stderr)
        return 2

    if args.history:
        print(f"Moves: {game.history_san() or '(none)'}")
        report(debug_text(f"UCI: {game.history_uci()}"), reporting_level, ReportingLevel.VERBOSE)

    if args.save_config:
        saved = config.save(args.config)
        report(info_text(f"Settings written -> {saved}"), reporting_level)

    engine = attach_engine(config.engine_path(), reporting_level)
    session = AnalysisSession(engine, game, config.engine, infinite=args.infinite)

    if engine is None:
        report(info_text(f"Position: {game.fen()} ({game.outcome_text()})"), reporting_level)
        return 1

    try:
        name = engine.name or "Engine"
        author = f" by {engine.author}" if engine.author else ""
        report(info_text(f"{name}{author} -> {engine.path}"), reporting_level)
        report(debug_text(f"Options advertised: {len(engine.options)}"), reporting_level, ReportingLevel.VERBOSE)
        session.configure_engine()
        run_analysis(
            session,
            poll_interval=max(1, args.poll_interval) / 1000.0,
            reporting_level=reporting_level,
        )
    except EngineCommError as exc:
        print(warning_text(f"Engine stopped responding: {exc}"), file=sys.stderr)
        return 1
    finally:
        engine.quit()

    if reporting_level == ReportingLevel.QUIET:
        print(render_snapshot(session.analysis, game.board, config.engine.multipv))
    return 0


if __name__ == "__main__":
    sys.exit(main())
