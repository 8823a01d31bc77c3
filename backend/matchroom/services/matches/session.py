"""Match session state machine.

A session never emits or persists anything itself: every operation returns
a ``Transition`` describing the notices to send, the fields to persist and
what to do with the clock and the registry entry. The router applies it,
restoring the session from a ``checkpoint`` if persistence fails.
"""

import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

from . import SIDES, other_side
from . import rules as chess_rules
from .clock import Clock

# Terminal reasons
CHECKMATE = 'checkmate'
TIMEOUT = 'timeout'
RESIGNATION = 'resignation'
DRAW_AGREEMENT = 'draw_agreement'
DRAW_RULE = 'draw_rule'
OPPONENT_DISCONNECTED = 'opponent_disconnected'
ABANDONED = 'abandoned'

DECISIVE_REASONS = {CHECKMATE, TIMEOUT, RESIGNATION, OPPONENT_DISCONNECTED}
DRAWN_REASONS = {DRAW_AGREEMENT, DRAW_RULE, ABANDONED}
TERMINAL_REASONS = DECISIVE_REASONS | DRAWN_REASONS

DRAW_RULE_STATUSES = {
    chess_rules.STALEMATE,
    chess_rules.REPETITION,
    chess_rules.INSUFFICIENT_MATERIAL,
    chess_rules.FIFTY_MOVES,
}


@dataclass(frozen=True)
class Waiting:
    name = 'waiting'


@dataclass(frozen=True)
class Ongoing:
    name = 'ongoing'


@dataclass(frozen=True)
class Terminal:
    reason: str
    winner: Optional[str] = None
    detail: Optional[str] = None
    name = 'finished'


WAITING = Waiting()
ONGOING = Ongoing()


@dataclass(frozen=True)
class Notice:
    """One outbound message. ``to`` is a sid, or None for the whole room."""
    event: str
    payload: dict
    to: Optional[str] = None
    skip: Optional[str] = None

    @classmethod
    def direct(cls, sid, event, payload=None):
        return cls(event, payload or {}, to=sid)

    @classmethod
    def room(cls, event, payload=None, skip=None):
        return cls(event, payload or {}, skip=skip)


@dataclass(frozen=True)
class Transition:
    notices: Tuple[Notice, ...] = ()
    delta: Optional[dict] = None
    finished: bool = False
    enter_room: Optional[str] = None
    start_clock: bool = False
    stop_clock: bool = False
    evict: bool = False


NOOP = Transition()


def _reply(*notices: Notice) -> Transition:
    return Transition(notices=tuple(notices))


class MatchSession:
    def __init__(self, match_id: str, rules: chess_rules.ChessRules, clock: Clock,
                 position=None, participants: Optional[List[str]] = None,
                 status=WAITING, logger: Optional[logging.Logger] = None,
                 chat_max_length: int = 500):
        self.match_id = match_id
        self.rules = rules
        self.clock = clock
        self.position = position if position is not None else rules.initial_position()
        self.participants: List[str] = list(participants or [])[:2]
        self.status = status
        self.pending_draw_offer: Optional[str] = None
        self.logger = logger or logging.getLogger(__name__)
        self.chat_max_length = chat_max_length
        self.lock = threading.RLock()

    def __repr__(self):
        return f"<MatchSession {self.match_id} {self.status.name} players={len(self.participants)}>"

    @property
    def room(self) -> str:
        return f"match:{self.match_id}"

    @property
    def is_terminal(self) -> bool:
        return isinstance(self.status, Terminal)

    @property
    def is_ongoing(self) -> bool:
        return isinstance(self.status, Ongoing)

    @property
    def turn(self) -> str:
        return self.rules.side_to_move(self.position)

    def side_of(self, sid: str) -> Optional[str]:
        try:
            return SIDES[self.participants.index(sid)]
        except ValueError:
            return None

    def sid_of(self, side: str) -> Optional[str]:
        idx = SIDES.index(side)
        return self.participants[idx] if idx < len(self.participants) else None

    def snapshot(self) -> dict:
        """Persistable view of the whole session."""
        status = self.status
        return {
            'fen': self.rules.serialize(self.position),
            'moves': self.rules.move_list(self.position),
            'players': list(self.participants),
            'status': status.name,
            'reason': status.reason if isinstance(status, Terminal) else None,
            'winner': status.winner if isinstance(status, Terminal) else None,
            'timers': self.clock.timers(),
        }

    def checkpoint(self) -> dict:
        """In-memory state a transition may change, for ``restore``."""
        return {
            'position': self.position.copy(),
            'participants': list(self.participants),
            'status': self.status,
            'pending_draw_offer': self.pending_draw_offer,
            'remaining': dict(self.clock.remaining),
        }

    def restore(self, state: dict) -> None:
        """Undo a transition whose persistence failed."""
        self.position = state['position']
        self.participants = list(state['participants'])
        self.status = state['status']
        self.pending_draw_offer = state['pending_draw_offer']
        self.clock.remaining = dict(state['remaining'])

    def _joined_payload(self, side: str) -> dict:
        return {
            'match_id': self.match_id,
            'side': side,
            'players_count': len(self.participants),
            'timers': self.clock.timers(),
            'fen': self.rules.serialize(self.position),
            'status': self.status.name,
        }

    def _game_over_payload(self) -> dict:
        return {
            'match_id': self.match_id,
            'winner': self.status.winner,
            'reason': self.status.reason,
            'detail': self.status.detail,
        }

    # ---- transitions ----

    def join(self, sid: str) -> Transition:
        if self.is_terminal:
            return _reply(Notice.direct(sid, 'match_unavailable', self._game_over_payload()))

        side = self.side_of(sid)
        if side is not None:
            self.logger.info(f"[join-resync] match={self.match_id} sid={sid} side={side}")
            notices = [Notice.direct(sid, 'room_joined', self._joined_payload(side))]
            if len(self.participants) == 2:
                notices.append(Notice.direct(sid, 'game_start', {'fen': self.rules.serialize(self.position)}))
            return Transition(
                notices=tuple(notices),
                enter_room=sid,
                start_clock=self.is_ongoing and not self.clock.running,
            )

        if len(self.participants) >= 2:
            self.logger.info(f"[room-full] match={self.match_id} sid={sid}")
            return _reply(Notice.direct(sid, 'room_full', {'match_id': self.match_id}))

        self.participants.append(sid)
        side = self.side_of(sid)
        self.logger.info(f"[join] match={self.match_id} sid={sid} side={side}")
        if len(self.participants) == 2:
            self.status = ONGOING
        notices = [Notice.direct(sid, 'room_joined', self._joined_payload(side))]
        if self.is_ongoing:
            notices.append(Notice.room('game_start', {'fen': self.rules.serialize(self.position)}))
        return Transition(
            notices=tuple(notices),
            delta=self.snapshot(),
            enter_room=sid,
            start_clock=self.is_ongoing,
        )

    def move(self, sid: str, move) -> Transition:
        side = self.side_of(sid)
        if not self.is_ongoing or side is None or side != self.turn:
            self.logger.warning(
                f"[turn-drop] match={self.match_id} sid={sid} side={side} turn={self.turn} status={self.status.name}"
            )
            return NOOP

        result = self.rules.apply_move(self.position, move)
        if result is None:
            self.logger.warning(f"[illegal-move] match={self.match_id} side={side} move={move!r}")
            return _reply(Notice.direct(sid, 'invalid_move', {'match_id': self.match_id, 'move': move}))

        self.position, record = result
        self.clock.apply_increment(side)
        self.logger.info(f"[move] match={self.match_id} side={side} san={record['san']}")
        notices = [
            Notice.room('move_made', record),
            Notice.room('timer_update', self.clock.timers()),
        ]

        outcome = self.rules.terminal_status(self.position)
        if outcome == chess_rules.CHECKMATE:
            return self._terminate(CHECKMATE, side, notices, last_move=record)
        if outcome in DRAW_RULE_STATUSES:
            return self._terminate(DRAW_RULE, None, notices, detail=outcome, last_move=record)

        delta = self.snapshot()
        delta['last_move'] = record
        return Transition(notices=tuple(notices), delta=delta)

    def resign(self, sid: str, side: Optional[str] = None) -> Transition:
        own = self.side_of(sid)
        if not self.is_ongoing or own is None:
            return NOOP
        if side is not None and side != own:
            self.logger.warning(f"[resign-reject] match={self.match_id} sid={sid} claimed={side} own={own}")
            return NOOP
        self.logger.info(f"[resign] match={self.match_id} side={own}")
        notices = [Notice.room('opponent_resigned', {'side': own}, skip=sid)]
        return self._terminate(RESIGNATION, other_side(own), notices)

    def offer_draw(self, sid: str) -> Transition:
        side = self.side_of(sid)
        if not self.is_ongoing or side is None or self.pending_draw_offer is not None:
            return NOOP
        opponent = self.sid_of(other_side(side))
        if opponent is None:
            return NOOP
        self.pending_draw_offer = side
        self.logger.info(f"[draw-offer] match={self.match_id} side={side}")
        return _reply(Notice.direct(opponent, 'draw_offer', {'side': side}))

    def _answerable_offer(self, sid: str) -> Optional[str]:
        side = self.side_of(sid)
        if not self.is_ongoing or side is None:
            return None
        if self.pending_draw_offer is None or self.pending_draw_offer == side:
            return None
        return self.pending_draw_offer

    def accept_draw(self, sid: str) -> Transition:
        if self._answerable_offer(sid) is None:
            return NOOP
        self.logger.info(f"[draw-accept] match={self.match_id}")
        return self._terminate(DRAW_AGREEMENT, None, [Notice.room('draw_accepted')])

    def reject_draw(self, sid: str) -> Transition:
        offerer = self._answerable_offer(sid)
        if offerer is None:
            return NOOP
        self.pending_draw_offer = None
        self.logger.info(f"[draw-reject] match={self.match_id}")
        return _reply(Notice.direct(self.sid_of(offerer), 'draw_rejected'))

    def chat(self, sid: str, text) -> Transition:
        side = self.side_of(sid)
        if side is None or self.is_terminal or not isinstance(text, str):
            return NOOP
        text = text.strip()[:self.chat_max_length]
        if not text:
            return NOOP
        return _reply(Notice.room('chat_message', {'side': side, 'text': text}))

    def report_end(self, sid: str, winner, reason, record_open: bool = True) -> Transition:
        """Client-side detection of an end (e.g. its own clock hit zero)."""
        if self.is_terminal or not record_open or self.side_of(sid) is None:
            return NOOP
        if reason not in TERMINAL_REASONS:
            self.logger.warning(f"[report-reject] match={self.match_id} reason={reason!r}")
            return NOOP
        if winner == 'draw':
            winner = None
        if (reason in DECISIVE_REASONS) != (winner in SIDES):
            self.logger.warning(f"[report-reject] match={self.match_id} reason={reason} winner={winner!r}")
            return NOOP
        self.logger.info(f"[report-end] match={self.match_id} reason={reason} winner={winner}")
        return self._terminate(reason, winner, [])

    def disconnect(self, sid: str, record_open: bool = True) -> Transition:
        side = self.side_of(sid)
        if side is None:
            return NOOP
        self.participants.remove(sid)
        self.logger.info(f"[disconnect] match={self.match_id} side={side} remaining={len(self.participants)}")
        if self.is_terminal:
            return Transition(evict=True)

        if not self.participants:
            return self._terminate(ABANDONED, None, [], persist=record_open)
        remaining = other_side(side)
        notices = [Notice.direct(self.participants[0], 'opponent_disconnected', {'side': side})]
        return self._terminate(OPPONENT_DISCONNECTED, remaining, notices, persist=record_open)

    def tick(self, generation: Optional[int] = None) -> Transition:
        if not self.is_ongoing or not self.clock.is_current(generation):
            return NOOP
        self.clock.tick(self.turn)
        notices = [Notice.room('timer_update', self.clock.timers())]
        flagged = self.clock.flagged()
        if flagged is None:
            return Transition(notices=tuple(notices))
        self.logger.info(f"[timeout] match={self.match_id} flagged={flagged}")
        return self._terminate(TIMEOUT, other_side(flagged), notices)

    def _terminate(self, reason: str, winner: Optional[str], notices: List[Notice],
                   detail: Optional[str] = None, persist: bool = True,
                   last_move: Optional[dict] = None) -> Transition:
        # First terminating event wins.
        if self.is_terminal:
            return NOOP
        self.status = Terminal(reason, winner, detail)
        self.pending_draw_offer = None
        notices = list(notices)
        if self.participants:
            notices.append(Notice.room('game_over', self._game_over_payload()))
        delta = None
        if persist:
            delta = self.snapshot()
            if last_move is not None:
                delta['last_move'] = last_move
        return Transition(notices=tuple(notices), delta=delta, finished=persist,
                          stop_clock=True, evict=True)
