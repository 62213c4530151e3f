from __future__ import annotations

from pathlib import Path

import pytest

from do_droplets.config import DEFAULT_OUTPUT, DEFAULT_WORKERS, RunConfig, dump_config, load_run_config
from do_droplets.util.pagination import DEFAULT_MAX_PAGES, DEFAULT_PER_PAGE

ENV_VARS = (
    "DO_DROPLETS_AUTH",
    "DO_DROPLETS_PER_PAGE",
    "DO_DROPLETS_MAX_PAGES",
    "DO_DROPLETS_POLL_INTERVAL",
    "DO_DROPLETS_WAIT_TIMEOUT",
    "DO_DROPLETS_MAX_POLL_FAILURES",
    "DO_DROPLETS_OUTPUT",
    "DO_DROPLETS_JSON_LOGS",
    "DO_DROPLETS_LOG_LEVEL",
    "DO_DROPLETS_WORKERS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_for_list() -> None:
    command, cfg = load_run_config(argv=["list"])
    assert command == "list"
    assert isinstance(cfg, RunConfig)
    assert cfg.per_page == DEFAULT_PER_PAGE
    assert cfg.max_pages == DEFAULT_MAX_PAGES
    assert cfg.workers == DEFAULT_WORKERS
    assert cfg.output == DEFAULT_OUTPUT
    assert cfg.auth == "auto"
    assert cfg.token is None
    assert cfg.create_request is None


def test_env_overrides_defaults(monkeypatch) -> None:
    monkeypatch.setenv("DO_DROPLETS_PER_PAGE", "50")
    monkeypatch.setenv("DO_DROPLETS_JSON_LOGS", "yes")
    _, cfg = load_run_config(argv=["list"])
    assert cfg.per_page == 50
    assert cfg.json_logs is True


def test_cli_overrides_env(monkeypatch) -> None:
    monkeypatch.setenv("DO_DROPLETS_PER_PAGE", "50")
    _, cfg = load_run_config(argv=["list", "--per-page", "25"])
    assert cfg.per_page == 25


def test_config_file_used_when_env_and_cli_missing(tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("max_pages: 12\noutput: json\npoll_interval: 2.5\n", encoding="utf-8")

    _, cfg = load_run_config(argv=["list", "--config", str(cfg_path)])
    assert cfg.max_pages == 12
    assert cfg.output == "json"
    assert cfg.poll_interval == 2.5


def test_json_config_file(tmp_path) -> None:
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text('{"workers": 8, "json_logs": true}', encoding="utf-8")

    _, cfg = load_run_config(argv=["list", "--config", str(cfg_path)])
    assert cfg.workers == 8
    assert cfg.json_logs is True


def test_env_overrides_config_file(monkeypatch, tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("output: json\n", encoding="utf-8")
    monkeypatch.setenv("DO_DROPLETS_OUTPUT", "table")

    _, cfg = load_run_config(argv=["list", "--config", str(cfg_path)])
    assert cfg.output == "table"


def test_cli_can_disable_config_boolean(tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("json_logs: true\n", encoding="utf-8")

    _, cfg = load_run_config(argv=["list", "--config", str(cfg_path), "--no-json-logs"])
    assert cfg.json_logs is False


def test_unknown_config_keys_warn(tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("colour: blue\nper_page: 10\n", encoding="utf-8")

    with pytest.warns(UserWarning, match="colour"):
        _, cfg = load_run_config(argv=["list", "--config", str(cfg_path)])
    assert cfg.per_page == 10


def test_config_file_type_errors(tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("per_page: lots\n", encoding="utf-8")

    with pytest.raises(ValueError, match="per_page"):
        load_run_config(argv=["list", "--config", str(cfg_path)])


def test_missing_config_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_run_config(argv=["list", "--config", str(tmp_path / "nope.yaml")])


@pytest.mark.parametrize(
    "argv",
    [
        ["list", "--per-page", "0"],
        ["list", "--per-page", "201"],
        ["list", "--max-pages", "0"],
        ["list", "--workers", "0"],
        ["create", "web", "--region", "nyc3", "--size", "s", "--image", "i", "--wait-timeout", "0"],
    ],
)
def test_invalid_values_rejected(argv) -> None:
    with pytest.raises(ValueError):
        load_run_config(argv=argv)


def test_get_collects_ids() -> None:
    command, cfg = load_run_config(argv=["get", "1", "2", "3"])
    assert command == "get"
    assert cfg.ids == [1, 2, 3]


def test_sub_listing_takes_one_id() -> None:
    command, cfg = load_run_config(argv=["kernels", "42"])
    assert command == "kernels"
    assert cfg.ids == [42]


def test_create_single_request(tmp_path) -> None:
    user_data = tmp_path / "cloud-init.yaml"
    user_data.write_text("#cloud-config\n", encoding="utf-8")

    _, cfg = load_run_config(
        argv=[
            "create",
            "web-1",
            "--region",
            "nyc3",
            "--size",
            "s-1vcpu-1gb",
            "--image",
            "ubuntu-22-04-x64",
            "--ssh-keys",
            "123,ab:cd",
            "--tag-names",
            "web, prod",
            "--user-data-file",
            str(user_data),
            "--enable-monitoring",
            "--wait",
            "--poll-interval",
            "1",
        ]
    )
    assert cfg.wait is True
    assert cfg.poll_interval == 1.0
    assert cfg.create_request == {
        "name": "web-1",
        "region": "nyc3",
        "size": "s-1vcpu-1gb",
        "image": "ubuntu-22-04-x64",
        "backups": False,
        "ipv6": False,
        "monitoring": True,
        "ssh_keys": [123, "ab:cd"],
        "tags": ["web", "prod"],
        "user_data": "#cloud-config\n",
    }


def test_max_poll_failures_flag_overrides_env(monkeypatch) -> None:
    monkeypatch.setenv("DO_DROPLETS_MAX_POLL_FAILURES", "7")
    _, cfg = load_run_config(argv=["create", "web-1", "--region", "nyc3", "--size", "s", "--image", "img"])
    assert cfg.max_poll_failures == 7

    _, cfg = load_run_config(
        argv=["create", "web-1", "--region", "nyc3", "--size", "s", "--image", "img", "--max-poll-failures", "0"]
    )
    assert cfg.max_poll_failures == 0


def test_create_multiple_request_uses_names() -> None:
    _, cfg = load_run_config(argv=["create", "a", "b", "--region", "nyc3", "--size", "s", "--image", "12345"])
    assert cfg.create_request is not None
    assert cfg.create_request["names"] == ["a", "b"]
    assert cfg.create_request["image"] == 12345
    assert "name" not in cfg.create_request


def test_dump_config_hides_token() -> None:
    _, cfg = load_run_config(argv=["list", "--token", "dop_v1_secret"])
    dumped = dump_config(cfg)
    assert dumped["token_set"] is True
    assert "dop_v1_secret" not in str(dumped)
    assert "dop_v1_secret" not in repr(cfg)


def test_log_file_path(tmp_path) -> None:
    _, cfg = load_run_config(argv=["list", "--log-file", str(tmp_path / "run.log")])
    assert cfg.log_file == Path(tmp_path / "run.log")
