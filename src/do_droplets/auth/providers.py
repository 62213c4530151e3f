from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

TOKEN_ENV_VARS = ("DIGITALOCEAN_ACCESS_TOKEN", "DIGITALOCEAN_TOKEN")
AUTH_METHODS = {"auto", "token", "env", "doctl"}


@dataclass(frozen=True)
class AuthContext:
    """
    Resolved credentials for building the provider client.
    method records where the token came from (token|env|doctl).
    """

    method: str
    token: str
    source: Optional[str] = None

    def __repr__(self) -> str:
        return f"AuthContext(method={self.method!r}, source={self.source!r}, token=<redacted>)"


class AuthError(RuntimeError):
    pass


def doctl_config_path() -> Path:
    """
    Location of the doctl config file, honoring XDG_CONFIG_HOME.
    """
    base = os.getenv("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "doctl" / "config.yaml"


def _token_from_env() -> Optional[AuthContext]:
    for name in TOKEN_ENV_VARS:
        raw = (os.getenv(name) or "").strip()
        if raw:
            return AuthContext(method="env", token=raw, source=name)
    return None


def _token_from_doctl(path: Path, context: Optional[str]) -> Optional[AuthContext]:
    if not path.exists():
        return None
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise AuthError(f"Failed to read doctl config {path}: {e}") from e
    if not isinstance(data, dict):
        raise AuthError(f"doctl config {path} must be a mapping")

    token: Optional[str] = None
    if context and context != "default":
        contexts = data.get("auth-contexts") or {}
        token = contexts.get(context) if isinstance(contexts, dict) else None
        if not token:
            raise AuthError(f"doctl auth context not found: {context}")
    else:
        token = data.get("access-token")
    if not token:
        return None
    return AuthContext(method="doctl", token=str(token).strip(), source=str(path))


def resolve_auth(
    method: str = "auto",
    token: Optional[str] = None,
    *,
    context: Optional[str] = None,
    doctl_config: Optional[Path] = None,
) -> AuthContext:
    """
    Resolve the API token according to the requested method.
    - auto: explicit token -> env (DIGITALOCEAN_ACCESS_TOKEN, DIGITALOCEAN_TOKEN) -> doctl config
    - token: explicit token only
    - env: environment variables only
    - doctl: doctl config file only (optionally a named auth context)
    """
    method = (method or "auto").lower()
    if method not in AUTH_METHODS:
        raise AuthError(f"Unsupported auth method: {method}")
    path = doctl_config or doctl_config_path()

    if method in ("auto", "token") and token and token.strip():
        return AuthContext(method="token", token=token.strip(), source="explicit")
    if method == "token":
        raise AuthError("Auth method 'token' requires a token (--token or config file)")

    if method in ("auto", "env"):
        ctx = _token_from_env()
        if ctx is not None:
            return ctx
        if method == "env":
            raise AuthError(f"None of {', '.join(TOKEN_ENV_VARS)} is set")

    ctx = _token_from_doctl(path, context)
    if ctx is not None:
        return ctx
    if method == "doctl":
        raise AuthError(f"No access-token found in doctl config {path}")
    raise AuthError(
        "No DigitalOcean API token found. Tried explicit token, "
        f"{', '.join(TOKEN_ENV_VARS)}, then doctl config ({path})."
    )
