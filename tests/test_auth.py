from __future__ import annotations

import pytest

from do_droplets.auth import providers as auth_providers
from do_droplets.auth.providers import AuthError, doctl_config_path, resolve_auth


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path) -> None:
    for name in auth_providers.TOKEN_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


def _write_doctl(tmp_path, text: str):
    path = tmp_path / "xdg" / "doctl" / "config.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_explicit_token_wins(monkeypatch) -> None:
    monkeypatch.setenv("DIGITALOCEAN_ACCESS_TOKEN", "from-env")
    ctx = resolve_auth("auto", " dop_v1_secret ")
    assert ctx.method == "token"
    assert ctx.token == "dop_v1_secret"
    assert "dop_v1_secret" not in repr(ctx)


def test_env_token_order(monkeypatch) -> None:
    monkeypatch.setenv("DIGITALOCEAN_TOKEN", "second")
    assert resolve_auth().source == "DIGITALOCEAN_TOKEN"
    monkeypatch.setenv("DIGITALOCEAN_ACCESS_TOKEN", "first")
    ctx = resolve_auth()
    assert (ctx.method, ctx.token, ctx.source) == ("env", "first", "DIGITALOCEAN_ACCESS_TOKEN")


def test_doctl_config_fallback(tmp_path) -> None:
    path = _write_doctl(tmp_path, "access-token: dop_v1_abc\n")
    assert doctl_config_path() == path

    ctx = resolve_auth()
    assert (ctx.method, ctx.token, ctx.source) == ("doctl", "dop_v1_abc", str(path))


def test_doctl_named_context(tmp_path) -> None:
    _write_doctl(tmp_path, "access-token: default-token\nauth-contexts:\n  work: work-token\n")

    assert resolve_auth("doctl", context="work").token == "work-token"
    assert resolve_auth("doctl", context="default").token == "default-token"
    with pytest.raises(AuthError, match="context"):
        resolve_auth("doctl", context="missing")


def test_doctl_config_must_be_mapping(tmp_path) -> None:
    _write_doctl(tmp_path, "- just\n- a list\n")
    with pytest.raises(AuthError):
        resolve_auth()


def test_nothing_found_raises() -> None:
    with pytest.raises(AuthError, match="No DigitalOcean API token"):
        resolve_auth()


def test_method_restrictions(monkeypatch) -> None:
    with pytest.raises(AuthError):
        resolve_auth("token")
    with pytest.raises(AuthError):
        resolve_auth("env")
    with pytest.raises(AuthError):
        resolve_auth("doctl")
    with pytest.raises(AuthError, match="Unsupported"):
        resolve_auth("oauth")

    monkeypatch.setenv("DIGITALOCEAN_ACCESS_TOKEN", "from-env")
    assert resolve_auth("env", "ignored").token == "from-env"
