"""Live match sessions keyed by match id."""

import threading
from typing import Dict, List, Optional

from . import WHITE, BLACK
from .clock import Clock
from .rules import ChessRules, InvalidPosition
from .session import MatchSession, Terminal, WAITING, ONGOING
from .store import MatchStore


class SessionRegistry:
    """Owns every live MatchSession, keyed by match id.

    Sessions missing from memory are hydrated from the store on first use.
    Finished matches are never installed: they hydrate to a terminal session
    that is handed back once and then dropped.
    """

    def __init__(self, store: MatchStore, rules: ChessRules, config, logger):
        self.store = store
        self.rules = rules
        self.logger = logger
        self.initial_time = config.get('GAME_TIME_SECONDS', 480)
        self.increment = config.get('INCREMENT_SECONDS', 3)
        self.tick_interval = config.get('TICK_INTERVAL_SEC', 1)
        self.chat_max_length = config.get('CHAT_MAX_LENGTH', 500)
        self._sessions: Dict[str, MatchSession] = {}
        self._creation_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def __contains__(self, match_id):
        return match_id in self._sessions

    def __len__(self):
        return len(self._sessions)

    def get(self, match_id: str) -> Optional[MatchSession]:
        return self._sessions.get(match_id)

    def sessions_of(self, sid: str) -> List[MatchSession]:
        with self._lock:
            sessions = list(self._sessions.values())
        return [s for s in sessions if sid in s.participants]

    def resolve(self, match_id: str, create: bool = True) -> Optional[MatchSession]:
        with self._lock:
            session = self._sessions.get(match_id)
            if session is not None:
                return session
            creation_lock = self._creation_locks.setdefault(match_id, threading.Lock())

        with creation_lock:
            session = self._sessions.get(match_id)
            if session is not None:
                return session
            record = self.store.get(match_id)
            if record is not None:
                session = self._hydrate(record)
            elif create:
                session = self._new_session(match_id)
                fields = session.snapshot()
                fields['increment'] = self.increment
                self.store.create(match_id, fields)
                self.logger.info(f"[match-created] match={match_id}")
            else:
                session = None

            with self._lock:
                if session is None or session.is_terminal:
                    self._creation_locks.pop(match_id, None)
                else:
                    self._sessions[match_id] = session
            return session

    def evict(self, match_id: str, session: Optional[MatchSession] = None) -> bool:
        with self._lock:
            current = self._sessions.get(match_id)
            if current is None or (session is not None and current is not session):
                return False
            del self._sessions[match_id]
            self._creation_locks.pop(match_id, None)
        session = current
        session.clock.stop()
        self.logger.info(f"[evict] match={match_id}")
        return True

    def _new_clock(self, remaining=None) -> Clock:
        return Clock(self.initial_time, self.increment, self.tick_interval, remaining=remaining)

    def _new_session(self, match_id: str, **kwargs) -> MatchSession:
        kwargs.setdefault('clock', self._new_clock())
        return MatchSession(
            match_id, self.rules,
            logger=self.logger,
            chat_max_length=self.chat_max_length,
            **kwargs
        )

    def _hydrate(self, record) -> MatchSession:
        match_id = record.match_id
        try:
            position = self.rules.load_position(record.fen, record.move_list)
        except InvalidPosition as exc:
            self.logger.error(f"[hydrate-heal] match={match_id} invalid stored position {record.fen!r}: {exc}")
            position = self.rules.initial_position()
            self.store.update(match_id, {
                'fen': self.rules.serialize(position),
                'moves': self.rules.move_list(position),
            })

        timers = record.timers
        clock = self._new_clock(remaining={WHITE: timers.get('white'), BLACK: timers.get('black')})
        if record.increment is not None:
            clock.increment = record.increment

        players = record.player_list
        if record.status == 'finished':
            status = Terminal(record.reason, record.winner)
        elif record.status == 'ongoing' and len(players) == 2:
            status = ONGOING
        else:
            status = WAITING

        self.logger.info(f"[hydrate] match={match_id} status={status.name} players={len(players)}")
        return self._new_session(match_id, clock=clock, position=position,
                                 participants=players, status=status)
