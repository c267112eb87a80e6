"""Bounded waits on external calls.

Adapters set their own network timeouts, but a misbehaving client library
can still hang. ``call_with_timeout`` runs the call on a small shared pool
and stops waiting after ``timeout`` seconds; the abandoned call finishes in
the background and its result is discarded.
"""

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout


class ExternalCallTimeout(Exception):
    """An external call did not return within its time budget."""


_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="external-call")


def call_with_timeout(fn, timeout: float, *args, **kwargs):
    future = _executor.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout as exc:
        future.cancel()
        raise ExternalCallTimeout(f"{getattr(fn, '__name__', 'call')} timed out after {timeout}s") from exc
