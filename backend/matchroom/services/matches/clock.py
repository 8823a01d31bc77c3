"""Server-side chess clock for one match."""

from typing import Callable, Dict, Optional

from . import WHITE, BLACK, SIDES


class Clock:
    """Server-authoritative dual countdown with a per-move increment.

    The clock never touches the transport or storage. ``start`` only spawns
    a loop that calls ``on_tick(generation)`` every interval; the owning
    session decides what a tick means. ``stop`` bumps the generation so a
    loop that is already sleeping exits without producing another tick.
    """

    def __init__(self, initial: float, increment: float, tick_interval: float = 1,
                 remaining: Optional[Dict[str, float]] = None):
        self.initial = initial
        self.increment = increment
        self.tick_interval = tick_interval
        self.remaining = {WHITE: initial, BLACK: initial}
        if remaining:
            for side in SIDES:
                if remaining.get(side) is not None:
                    self.remaining[side] = remaining[side]
        self._running = False
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: Optional[int]) -> bool:
        if not self._running:
            return False
        return generation is None or generation == self._generation

    def start(self, on_tick: Optional[Callable[[int], None]] = None,
              spawn: Optional[Callable] = None,
              sleep: Optional[Callable[[float], None]] = None) -> bool:
        """Begin ticking. Returns False if the clock was already running."""
        if self._running:
            return False
        self._running = True
        self._generation += 1
        if spawn is not None and on_tick is not None and sleep is not None:
            spawn(self._loop, self._generation, on_tick, sleep)
        return True

    def _loop(self, generation: int, on_tick: Callable[[int], None], sleep: Callable[[float], None]) -> None:
        while True:
            sleep(self.tick_interval)
            if not self.is_current(generation):
                return
            on_tick(generation)

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._generation += 1

    def tick(self, side: str) -> bool:
        """Charge one interval to ``side``. No-op once stopped."""
        if not self._running:
            return False
        self.remaining[side] -= self.tick_interval
        return True

    def apply_increment(self, side: str) -> None:
        self.remaining[side] += self.increment

    def flagged(self) -> Optional[str]:
        """Side whose time has run out, if any."""
        for side in SIDES:
            if self.remaining[side] <= 0:
                return side
        return None

    def timers(self) -> Dict[str, float]:
        return {'white': self.remaining[WHITE], 'black': self.remaining[BLACK]}
