from __future__ import annotations


class ExponentialBackoff:
    """Capped exponential delay for retrying a failing poll.

    Delays run ``initial, initial * factor, ...`` up to ``maximum`` and start
    over after :meth:`reset`.
    """

    def __init__(
        self,
        *,
        initial: float = 1.0,
        factor: float = 2.0,
        maximum: float = 30.0,
    ) -> None:
        if initial <= 0:
            raise ValueError("initial delay must be positive")
        if factor < 1:
            raise ValueError("factor must be >= 1")
        if maximum < initial:
            raise ValueError("maximum delay must be >= initial delay")
        self._initial = initial
        self._factor = factor
        self._maximum = maximum
        self._failures = 0

    @property
    def failures(self) -> int:
        return self._failures

    def next_delay(self) -> float:
        delay = self._initial * self._factor ** min(self._failures, 64)
        self._failures += 1
        return min(delay, self._maximum)

    def reset(self) -> None:
        self._failures = 0
