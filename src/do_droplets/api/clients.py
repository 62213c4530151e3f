from __future__ import annotations

import threading
from typing import Any, Dict, Optional, Tuple

from ..auth.providers import AuthContext, AuthError

try:
    import pydo  # type: ignore
except Exception:  # pragma: no cover - surfaced in CLI validate-auth
    pydo = None  # type: ignore

DEFAULT_API_ENDPOINT = "https://api.digitalocean.com"
DEFAULT_TIMEOUT = 120

_CLIENT_CACHE: Dict[Tuple[str, str, Optional[int], int], Any] = {}
_CLIENT_CACHE_LOCK = threading.Lock()


def _require_pydo() -> None:
    if pydo is None:
        raise AuthError("pydo SDK not installed. Install dependencies and try again: pip install .")


def make_client(
    ctx: AuthContext,
    *,
    endpoint: str = DEFAULT_API_ENDPOINT,
    retry_total: Optional[int] = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> Any:
    """
    Construct a pydo.Client for the resolved token.
    retry_total overrides the transport's default retry policy; retries stay
    entirely inside the SDK pipeline.
    """
    _require_pydo()
    kwargs: Dict[str, Any] = {"timeout": timeout}
    if endpoint and endpoint != DEFAULT_API_ENDPOINT:
        kwargs["endpoint"] = endpoint
    if retry_total is not None:
        from azure.core.pipeline.policies import RetryPolicy  # type: ignore

        kwargs["retry_policy"] = RetryPolicy(retry_total=retry_total)
    return pydo.Client(token=ctx.token, **kwargs)  # type: ignore[attr-defined]


def get_client(
    ctx: AuthContext,
    *,
    endpoint: str = DEFAULT_API_ENDPOINT,
    retry_total: Optional[int] = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> Any:
    """
    Return a cached client per (token, endpoint, retry_total, timeout).
    The SDK client is safe to share between threads.
    """
    key = (ctx.token, endpoint, retry_total, timeout)
    with _CLIENT_CACHE_LOCK:
        client = _CLIENT_CACHE.get(key)
        if client is None:
            client = make_client(ctx, endpoint=endpoint, retry_total=retry_total, timeout=timeout)
            _CLIENT_CACHE[key] = client
        return client


def clear_client_cache() -> None:
    with _CLIENT_CACHE_LOCK:
        _CLIENT_CACHE.clear()
