import io
from typing import List, Optional

import chess
import chess.pgn


def is_valid_move(board: chess.Board, move: chess.Move) -> bool:
    return move in board.legal_moves

def get_game_result(board: chess.Board) -> str:
    if board.is_checkmate():
        return "Checkmate"
    elif board.is_stalemate():
        return "Stalemate"
    elif board.is_insufficient_material():
        return "Insufficient Material"
    elif board.is_seventyfive_moves():
        return "75-move rule"
    elif board.is_fivefold_repetition():
        return "Fivefold Repetition"
    elif board.is_variant_draw():
        return "Variant-specific Draw"
    else:
        return "Game in progress"


def export_move_history_uci(board: chess.Board) -> str:
    """Exports the move history of a chess game in Universal Chess Interface (UCI) format."""
    moves_uci = [move.uci() for move in board.move_stack]
    return ' '.join(moves_uci)


def export_move_history_san(board: chess.Board) -> str:
    moves_san = []
    temp_board = chess.Board(board.root().fen())
    for move in board.move_stack:
        moves_san.append(temp_board.san(move))
        temp_board.push(move)
    return ' '.join(moves_san)


class Game:
    """Game record with a cursor, so history can be browsed without losing moves.

    ``board`` is always the position at the cursor. Moves played while the
    cursor is behind the end replace the moves after it.
    """

    def __init__(self, fen: Optional[str] = None) -> None:
        self._start_fen = fen or chess.STARTING_FEN
        self._moves: List[chess.Move] = []
        self._index = 0
        self.board = chess.Board(self._start_fen)

    @property
    def start_fen(self) -> str:
        return self._start_fen

    @property
    def moves(self) -> List[chess.Move]:
        return list(self._moves)

    @property
    def current_index(self) -> int:
        return self._index

    def fen(self) -> str:
        return self.board.fen()

    def uci_moves(self) -> List[str]:
        """Moves from the starting position up to the cursor."""
        return [move.uci() for move in self._moves[: self._index]]

    def is_at_start(self) -> bool:
        return self._index == 0

    def is_at_end(self) -> bool:
        return self._index == len(self._moves)

    def _rebuild(self) -> None:
        board = chess.Board(self._start_fen)
        for move in self._moves[: self._index]:
            board.push(move)
        self.board = board

    def make_move(self, move: chess.Move) -> None:
        if not is_valid_move(self.board, move):
            raise ValueError(f"Illegal move: {move.uci()}")
        del self._moves[self._index:]
        self._moves.append(move)
        self._index += 1
        self.board.push(move)

    def make_move_san(self, san: str) -> chess.Move:
        move = self.board.parse_san(san)
        self.make_move(move)
        return move

    def legal_move_from_uci(self, uci: str) -> Optional[chess.Move]:
        try:
            move = chess.Move.from_uci(uci)
        except ValueError:
            return None
        if not is_valid_move(self.board, move):
            return None
        return move

    def make_move_uci(self, uci: str) -> chess.Move:
        move = self.legal_move_from_uci(uci)
        if move is None:
            raise ValueError(f"Illegal move in current position: {uci}")
        self.make_move(move)
        return move

    def go_back(self) -> bool:
        if self._index == 0:
            return False
        self._index -= 1
        self.board.pop()
        return True

    def go_forward(self) -> bool:
        if self._index >= len(self._moves):
            return False
        self.board.push(self._moves[self._index])
        self._index += 1
        return True

    def go_to_start(self) -> None:
        self._index = 0
        self._rebuild()

    def go_to_end(self) -> None:
        self._index = len(self._moves)
        self._rebuild()

    def last_move(self) -> Optional[chess.Move]:
        if self._index == 0:
            return None
        return self._moves[self._index - 1]

    def reset(self, fen: Optional[str] = None) -> None:
        self._start_fen = fen or chess.STARTING_FEN
        self._moves = []
        self._index = 0
        self.board = chess.Board(self._start_fen)

    def load_fen(self, fen: str) -> None:
        fen = fen.strip()
        chess.Board(fen)  # raises ValueError on a malformed FEN
        self.reset(fen)

    def load_pgn(self, text: str) -> None:
        game = chess.pgn.read_game(io.StringIO(text))
        if game is None:
            raise ValueError("No game found in PGN")
        if game.errors:
            raise ValueError(f"Invalid PGN: {game.errors[0]}")
        board = game.board()
        self.reset(board.fen())
        for move in game.mainline_moves():
            self.make_move(move)

    def history_uci(self) -> str:
        return export_move_history_uci(self.board)

    def history_san(self) -> str:
        """Moves up to the cursor in SAN, replayed from the starting position."""
        return export_move_history_san(self.board)

    def outcome_text(self) -> str:
        return get_game_result(self.board)
