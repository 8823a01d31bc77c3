"""Match domain services: clock, rules, session state machine and routing.

Transport (Socket.IO) and storage (SQLAlchemy) are reached only through the
router and the store, so the session state machine stays free of Flask.
"""

WHITE = 'w'
BLACK = 'b'
SIDES = (WHITE, BLACK)


def other_side(side: str) -> str:
    return BLACK if side == WHITE else WHITE
