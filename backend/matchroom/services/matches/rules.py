"""Chess rules adapter over python-chess.

The session only ever sees an opaque ``chess.Board`` plus plain dict move
records; legality, SAN and end-of-game detection all come from python-chess.
"""

from typing import Iterable, Optional, Tuple

import chess

from . import WHITE, BLACK

ONGOING = 'ongoing'
CHECKMATE = 'checkmate'
STALEMATE = 'stalemate'
REPETITION = 'repetition'
INSUFFICIENT_MATERIAL = 'insufficient_material'
FIFTY_MOVES = 'fifty_moves'

PROMOTIONS = {'q', 'r', 'b', 'n'}


class InvalidPosition(ValueError):
    """Stored position cannot be loaded."""


class ChessRules:

    def initial_position(self) -> chess.Board:
        return chess.Board()

    def load_position(self, fen, moves: Optional[Iterable[str]] = None) -> chess.Board:
        """Rebuild a board from its stored FEN and UCI history.

        Replaying the history keeps repetition detection intact; when the
        replay does not land on the stored FEN the FEN alone wins.
        """
        if not isinstance(fen, str) or not fen.strip():
            raise InvalidPosition(f"missing FEN: {fen!r}")
        try:
            board = chess.Board(fen)
        except ValueError as exc:
            raise InvalidPosition(str(exc)) from exc
        if not board.is_valid():
            raise InvalidPosition(f"illegal position: {fen}")

        if moves:
            replay = chess.Board()
            try:
                for uci in moves:
                    move = chess.Move.from_uci(uci)
                    if not replay.is_legal(move):
                        break
                    replay.push(move)
                else:
                    if replay.fen() == board.fen():
                        return replay
            except ValueError:
                pass
        return board

    def side_to_move(self, board: chess.Board) -> str:
        return WHITE if board.turn == chess.WHITE else BLACK

    def serialize(self, board: chess.Board) -> str:
        return board.fen()

    def move_list(self, board: chess.Board) -> list:
        return [m.uci() for m in board.move_stack]

    def apply_move(self, board: chess.Board, move) -> Optional[Tuple[chess.Board, dict]]:
        """Return ``(new_board, record)`` or None when the move is illegal."""
        if not isinstance(move, dict):
            return None
        from_sq = move.get('from')
        to_sq = move.get('to')
        promotion = move.get('promotion')
        if not isinstance(from_sq, str) or not isinstance(to_sq, str):
            return None
        uci = (from_sq + to_sq).lower()
        if promotion:
            p = str(promotion).lower()
            if p not in PROMOTIONS:
                return None
            uci += p
        try:
            parsed = chess.Move.from_uci(uci)
        except ValueError:
            return None
        if not board.is_legal(parsed):
            return None

        piece = board.piece_at(parsed.from_square)
        captured = board.piece_at(parsed.to_square)
        if captured is None and board.is_en_passant(parsed):
            captured = chess.Piece(chess.PAWN, not board.turn)
        record = {
            'from': chess.square_name(parsed.from_square),
            'to': chess.square_name(parsed.to_square),
            'color': self.side_to_move(board),
            'piece': piece.symbol().lower(),
            'san': board.san(parsed),
            'uci': parsed.uci(),
        }
        if captured is not None:
            record['captured'] = captured.symbol().lower()
        if parsed.promotion:
            record['promotion'] = chess.piece_symbol(parsed.promotion)

        new_board = board.copy()
        new_board.push(parsed)
        record['fen'] = new_board.fen()
        return new_board, record

    def terminal_status(self, board: chess.Board) -> str:
        if board.is_checkmate():
            return CHECKMATE
        if board.is_stalemate():
            return STALEMATE
        if board.is_insufficient_material():
            return INSUFFICIENT_MATERIAL
        if board.is_repetition(3):
            return REPETITION
        if board.can_claim_fifty_moves():
            return FIFTY_MOVES
        return ONGOING
