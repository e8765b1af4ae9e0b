"""
Bounded-time calls for providers with unpredictable latency.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Tuple, TypeVar

T = TypeVar("T")


def call_with_timeout(func: Callable[..., T], timeout: float, *args: Any) -> Tuple[bool, Any]:
    """Run ``func`` in a daemon thread and wait at most ``timeout`` seconds.

    Returns ``(True, result)`` on completion, ``(False, exc)`` when the call
    raised, and ``(False, None)`` on timeout. A timed-out worker is abandoned.
    """
    outcome: dict = {}

    def runner() -> None:
        try:
            outcome["result"] = func(*args)
        except Exception as exc:  # providers must never propagate
            outcome["error"] = exc

    worker = threading.Thread(target=runner, name=f"bounded-{getattr(func, '__name__', 'call')}", daemon=True)
    worker.start()
    worker.join(timeout if timeout > 0 else None)
    if worker.is_alive():
        return False, None
    if "error" in outcome:
        return False, outcome["error"]
    return True, outcome.get("result")
