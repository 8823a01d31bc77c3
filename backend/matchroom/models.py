from matchroom import db
from datetime import datetime, timezone
import json


def utc_now():
    return datetime.now(timezone.utc)


def _load_json(raw, default):
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return default


class MatchRecord(db.Model):
    """Durable projection of a match. Rows are archived, never deleted."""
    __tablename__ = 'match_record'
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    fen = db.Column(db.Text, nullable=True)
    moves = db.Column(db.Text, nullable=True)  # JSON-encoded list of UCI moves
    last_move = db.Column(db.Text, nullable=True)  # JSON-encoded move record
    players = db.Column(db.Text, nullable=True)  # JSON-encoded list of socket ids
    status = db.Column(db.String(32), default='waiting', nullable=False)  # waiting, ongoing, finished
    reason = db.Column(db.String(64), nullable=True)
    winner = db.Column(db.String(8), nullable=True)
    white_time = db.Column(db.Float, nullable=True)
    black_time = db.Column(db.Float, nullable=True)
    increment = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now)
    ended_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_open(self):
        return self.status in ('waiting', 'ongoing')

    @property
    def move_list(self):
        return _load_json(self.moves, [])

    @property
    def player_list(self):
        return _load_json(self.players, [])

    @property
    def timers(self):
        return {'white': self.white_time, 'black': self.black_time}

    def apply_fields(self, fields):
        """Copy a session delta onto the row, encoding the JSON columns."""
        for key, value in fields.items():
            if key in ('moves', 'players', 'last_move'):
                setattr(self, key, json.dumps(value) if value is not None else None)
            elif key == 'timers':
                self.white_time = value.get('white')
                self.black_time = value.get('black')
            elif key in ('fen', 'status', 'reason', 'winner', 'increment', 'ended_at'):
                setattr(self, key, value)
            else:
                raise KeyError(f"unknown match field: {key}")
        self.updated_at = utc_now()

    def to_dict(self):
        return {
            'match_id': self.match_id,
            'fen': self.fen,
            'moves': self.move_list,
            'last_move': _load_json(self.last_move, None),
            'players_count': len(self.player_list),
            'status': self.status,
            'reason': self.reason,
            'winner': self.winner,
            'timers': self.timers,
            'increment': self.increment,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'ended_at': self.ended_at.isoformat() if self.ended_at else None,
        }
