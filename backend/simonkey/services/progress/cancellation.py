"""
Cooperative Cancellation

A CancellationToken is passed down every fan-out of the progress services.
Services check it between stages; once cancelled, the computation stops with
ComputationCancelled instead of finishing and returning a stale result.

ComputationCancelled is never converted into a default result: the public
entry points re-raise it ahead of their catch-all handlers.

Usage:
    token = CancellationToken()
    task = asyncio.create_task(points.calculate_notebook_points(nb, user, token))
    ...
    token.cancel()  # the caller navigated away
"""

from typing import Optional


class ComputationCancelled(Exception):
    """Raised when a computation's cancellation token has been cancelled."""


class CancellationToken:
    """Flag shared between a caller and the computation it started."""

    def __init__(self) -> None:
        self._cancelled = False
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: Optional[str] = None) -> None:
        """Request cancellation. Idempotent."""
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ComputationCancelled(self.reason or "computation cancelled")


def raise_if_cancelled(token: Optional[CancellationToken]) -> None:
    """Raise ComputationCancelled if token is set and cancelled."""
    if token is not None:
        token.raise_if_cancelled()
