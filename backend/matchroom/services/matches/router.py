"""Routes participant actions and clock ticks through match sessions."""

from functools import partial
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from .registry import SessionRegistry
from .session import MatchSession, Notice, Transition
from .store import MatchStore


class EventRouter:
    """Feeds participant actions and clock ticks into match sessions.

    Each action runs under its session's lock from decision to broadcast:
    the transition is computed first, then persisted, then sent. If the write
    fails the session is restored to its state before the action and nothing
    is sent.
    """

    def __init__(self, app, registry: SessionRegistry, store: MatchStore, transport):
        self.app = app
        self.registry = registry
        self.store = store
        self.transport = transport
        self.logger = app.logger
        self._actions = {
            'join': self.join,
            'move': self.move,
            'resign': self.resign,
            'offer_draw': self.offer_draw,
            'accept_draw': self.accept_draw,
            'reject_draw': self.reject_draw,
            'chat': self.chat,
            'report_end': self.report_end,
        }

    def dispatch(self, action: str, match_id: str, sid: str, payload: Optional[dict] = None) -> bool:
        """Run one action. Returns False if it failed on storage."""
        handler = self._actions.get(action)
        if handler is None:
            raise ValueError(f"unknown action: {action}")
        try:
            handler(match_id, sid, payload or {})
        except SQLAlchemyError:
            self.logger.exception(f"[storage-error] action={action} match={match_id} sid={sid}")
            return False
        return True

    # ---- actions ----

    def join(self, match_id, sid, payload=None):
        session = self.registry.resolve(match_id)
        self._run(session, session.join, sid)

    def move(self, match_id, sid, payload):
        session = self._live(match_id, sid, notify=True)
        if session is None:
            return
        self._run(session, session.move, sid, payload.get('move'))

    def resign(self, match_id, sid, payload):
        session = self._live(match_id, sid)
        if session is None:
            return
        self._run(session, session.resign, sid, payload.get('side'))

    def offer_draw(self, match_id, sid, payload=None):
        session = self._live(match_id, sid)
        if session is None:
            return
        self._run(session, session.offer_draw, sid)

    def accept_draw(self, match_id, sid, payload=None):
        session = self._live(match_id, sid)
        if session is None:
            return
        self._run(session, session.accept_draw, sid)

    def reject_draw(self, match_id, sid, payload=None):
        session = self._live(match_id, sid)
        if session is None:
            return
        self._run(session, session.reject_draw, sid)

    def chat(self, match_id, sid, payload):
        session = self._live(match_id, sid)
        if session is None:
            return
        self._run(session, session.chat, sid, payload.get('text'))

    def report_end(self, match_id, sid, payload):
        session = self._live(match_id, sid)
        if session is None:
            return
        with session.lock:
            record_open = self.store.is_open(match_id)
            # The store call may have yielded; decide against current state.
            self._run(session, session.report_end, sid, payload.get('winner'), payload.get('reason'),
                      record_open=record_open)

    def disconnect(self, sid: str) -> None:
        for session in self.registry.sessions_of(sid):
            try:
                with session.lock:
                    record_open = self.store.is_open(session.match_id)
                    self._run(session, session.disconnect, sid, record_open=record_open)
            except SQLAlchemyError:
                self.logger.exception(f"[storage-error] action=disconnect match={session.match_id} sid={sid}")

    def tick(self, match_id: str) -> None:
        """Deliver one clock tick to a live match."""
        session = self.registry.get(match_id)
        if session is not None:
            self._on_tick(session, None)

    # ---- internals ----

    def _live(self, match_id, sid, notify=False) -> Optional[MatchSession]:
        session = self.registry.resolve(match_id, create=False)
        if session is None or session.is_terminal:
            self.logger.info(f"[unavailable] match={match_id} sid={sid}")
            if notify:
                self.transport.send(sid, 'match_unavailable', {'match_id': match_id})
            return None
        return session

    def _on_tick(self, session: MatchSession, generation):
        with self.app.app_context():
            try:
                self._run(session, session.tick, generation)
            except SQLAlchemyError:
                self.logger.exception(f"[storage-error] action=tick match={session.match_id}")

    def _clock_spawns(self) -> bool:
        cfg = self.app.config
        return not cfg.get('TESTING') or bool(cfg.get('ENABLE_CLOCK_IN_TESTS'))

    def _start_clock(self, session: MatchSession) -> None:
        if self._clock_spawns():
            started = session.clock.start(partial(self._on_tick, session), self.transport.spawn, self.transport.sleep)
        else:
            started = session.clock.start()
        if started:
            self.logger.info(f"[clock-start] match={session.match_id} timers={session.clock.timers()}")

    def _send(self, session: MatchSession, notice: Notice) -> None:
        if notice.to is not None:
            self.transport.send(notice.to, notice.event, notice.payload)
        else:
            self.transport.broadcast(session.room, notice.event, notice.payload, skip_sid=notice.skip)

    def _run(self, session: MatchSession, operation, *args, **kwargs) -> None:
        with session.lock:
            saved = session.checkpoint()
            transition = operation(*args, **kwargs)
            self._apply(session, transition, saved)

    def _apply(self, session: MatchSession, transition: Transition, saved: dict) -> None:
        try:
            if transition.delta is not None:
                if transition.finished:
                    self.store.finish(session.match_id, transition.delta)
                else:
                    self.store.update(session.match_id, transition.delta)
        except SQLAlchemyError:
            session.restore(saved)
            self.logger.warning(f"[rollback] match={session.match_id} status={session.status.name}")
            raise
        if transition.stop_clock:
            session.clock.stop()
        if transition.enter_room:
            self.transport.enter_room(transition.enter_room, session.room)
        for notice in transition.notices:
            self._send(session, notice)
        if transition.start_clock:
            self._start_clock(session)
        if transition.evict:
            self.registry.evict(session.match_id, session)
