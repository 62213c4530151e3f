from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from do_droplets.api.models import Droplet
from do_droplets.logging import JsonFormatter, LogConfig, PlainFormatter, add_log_file, setup_logging
from do_droplets.util.serialization import REDACTED_VALUE, sanitize_for_json, stable_json_dumps


def test_sanitize_for_json_redacts_sensitive_fields() -> None:
    payload = {
        "name": "web-1",
        "user_data": "#cloud-config\npassword: hunter2",
        "nested": {"api_token": "dop_v1_x", "safe": 1},
    }

    sanitized = sanitize_for_json(payload)

    assert sanitized["user_data"] == REDACTED_VALUE
    assert sanitized["nested"]["api_token"] == REDACTED_VALUE
    assert sanitized["nested"]["safe"] == 1
    assert sanitized["name"] == "web-1"


def test_sanitize_for_json_handles_datetime_bytes_and_models() -> None:
    ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    sanitized = sanitize_for_json({"when": ts, "blob": b"bytes", "droplet": Droplet({"id": 1, "name": "a"})})

    assert sanitized["when"] == "2024-01-01T00:00:00+00:00"
    assert sanitized["blob"] == "bytes"
    assert sanitized["droplet"] == {"id": 1, "name": "a"}


def test_stable_json_dumps_sorts_keys() -> None:
    text = stable_json_dumps([Droplet({"name": "a", "id": 1})], indent=None)
    assert text == '[{"id": 1, "name": "a"}]'


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="unit",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="hello",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_skips_non_serializable_extras() -> None:
    payload = json.loads(JsonFormatter().format(_record(good={"a": 1, "b": [1, 2]}, bad={"obj": object()})))

    assert payload["message"] == "hello"
    assert payload["good"] == {"a": 1, "b": [1, 2]}
    assert "bad" not in payload


def test_plain_formatter_renders_operation_and_page() -> None:
    line = PlainFormatter().format(_record(operation="create", droplet_id=7))
    assert line.endswith("INFO unit: [create:7] hello")

    line = PlainFormatter().format(_record(page=2, items=20))
    assert line.endswith("hello (page=2, items=20)")


def test_add_log_file_writes(tmp_path) -> None:
    if getattr(setup_logging, "_configured", False):
        setattr(setup_logging, "_configured", False)
    setup_logging(LogConfig(level="INFO", json_logs=False))

    log_path = tmp_path / "debug.log"
    add_log_file(log_path)
    add_log_file(log_path)

    logger = logging.getLogger("unit.test")
    logger.info("file log test")

    root = logging.getLogger()
    file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1
    for handler in file_handlers:
        handler.flush()
        root.removeHandler(handler)
        handler.close()
    assert "file log test" in log_path.read_text(encoding="utf-8")
