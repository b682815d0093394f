"""
Timeout-bound execution of blocking upstream calls.

Embedding, generation and Supabase calls are blocking. Each one runs on a
shared worker pool so the caller can stop waiting after its time budget;
a timeout surfaces as UpstreamError instead of hanging the request.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Callable, TypeVar

from app.core.exceptions import AppBaseError, UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Thread pool for upstream calls (embedding, LLM, storage)
_call_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="upstream_call")


def run_with_timeout(service: str, fn: Callable[..., T], timeout: float | None, *args, **kwargs) -> T:
    """Run `fn(*args, **kwargs)` and wait at most `timeout` seconds.

    Args:
        service: Name used in error messages and logs ("embedding", "generation", ...).
        fn: Blocking callable.
        timeout: Seconds to wait; None waits indefinitely.

    Raises:
        UpstreamError: On timeout or any non-application exception from `fn`.
    """
    future = _call_executor.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeoutError:
        future.cancel()
        logger.warning(f"⏱️ {service} call exceeded {timeout}s budget")
        raise UpstreamError(service, f"timed out after {timeout}s")
    except AppBaseError:
        raise
    except Exception as e:
        logger.error(f"❌ {service} call failed: {e}")
        raise UpstreamError(service, str(e)) from e
