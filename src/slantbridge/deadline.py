"""Caller-facing request deadlines.

A :class:`Deadline` travels from the inbound request (e.g. the REST
layer's request timeout) down to every outbound call, which clips its own
timeout to whatever time is left.
"""

from __future__ import annotations

import time


class DeadlineExceeded(Exception):
    """The caller's deadline expired before the call could be issued."""


class Deadline:
    """A monotonic point in time after which outbound calls are abandoned."""

    def __init__(self, expires_at: float) -> None:
        self.expires_at = expires_at

    @classmethod
    def after(cls, seconds: float) -> Deadline:
        return cls(time.monotonic() + seconds)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    def clip(self, timeout: float) -> float:
        """Return *timeout* reduced to the remaining time.

        Raises:
            DeadlineExceeded: If no time is left.
        """
        left = self.remaining()
        if left <= 0.0:
            raise DeadlineExceeded("request deadline exceeded")
        return min(timeout, left)

    def __repr__(self) -> str:
        return f"<Deadline remaining={self.remaining():.3f}s>"


def clip_timeout(timeout: float, deadline: Deadline | None) -> float:
    if deadline is None:
        return timeout
    return deadline.clip(timeout)
