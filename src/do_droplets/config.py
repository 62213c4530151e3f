from __future__ import annotations

import argparse
import json
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .api.actions import DEFAULT_MAX_POLL_FAILURES, DEFAULT_MAX_WAIT, DEFAULT_POLL_INTERVAL
from .api.clients import DEFAULT_API_ENDPOINT
from .auth.providers import AUTH_METHODS
from .util.pagination import DEFAULT_MAX_PAGES, DEFAULT_PER_PAGE

# --------
# Defaults
# --------
DEFAULT_WORKERS = 4
DEFAULT_OUTPUT = "table"
OUTPUT_FORMATS = {"table", "json"}
MAX_PER_PAGE = 200
ALLOWED_CONFIG_KEYS = {
    "token",
    "auth",
    "context",
    "api_endpoint",
    "per_page",
    "max_pages",
    "poll_interval",
    "wait_timeout",
    "max_poll_failures",
    "retry_total",
    "workers",
    "output",
    "log_level",
    "json_logs",
    "log_file",
}
BOOL_CONFIG_KEYS = {"json_logs"}
INT_CONFIG_KEYS = {"per_page", "max_pages", "max_poll_failures", "retry_total", "workers"}
FLOAT_CONFIG_KEYS = {"poll_interval", "wait_timeout"}
STR_CONFIG_KEYS = {"token", "auth", "context", "api_endpoint", "output", "log_level", "log_file"}


@dataclass(frozen=True)
class RunConfig:
    # Auth
    auth: str = "auto"  # auto|token|env|doctl
    token: Optional[str] = field(default=None, repr=False)
    context: Optional[str] = None
    api_endpoint: str = DEFAULT_API_ENDPOINT
    retry_total: Optional[int] = None

    # Pagination
    per_page: int = DEFAULT_PER_PAGE
    max_pages: int = DEFAULT_MAX_PAGES

    # Wait until active
    poll_interval: float = DEFAULT_POLL_INTERVAL
    wait_timeout: float = DEFAULT_MAX_WAIT
    max_poll_failures: int = DEFAULT_MAX_POLL_FAILURES

    # Output / logging
    workers: int = DEFAULT_WORKERS
    output: str = DEFAULT_OUTPUT
    log_level: str = "WARNING"
    json_logs: bool = False
    log_file: Optional[Path] = None

    # Command arguments
    ids: List[int] = field(default_factory=list)
    tag_name: Optional[str] = None
    create_request: Optional[Dict[str, Any]] = None
    wait: bool = False


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"Config field '{key}' must be a boolean")


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return int(value)
        except ValueError:
            pass
    raise ValueError(f"Config field '{key}' must be an integer")


def _coerce_float(key: str, value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            pass
    raise ValueError(f"Config field '{key}' must be a number")


def _normalize(data: Dict[str, Any], *, source: str) -> Dict[str, Any]:
    """
    Coerce raw values (from a config file or the environment) to their field types.
    """
    unknown = sorted(set(data.keys()) - ALLOWED_CONFIG_KEYS)
    if unknown:
        warnings.warn(f"Unknown {source} keys ignored: {', '.join(unknown)}")
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in ALLOWED_CONFIG_KEYS or value is None:
            continue
        if key in BOOL_CONFIG_KEYS:
            normalized[key] = _coerce_bool(key, value)
        elif key in INT_CONFIG_KEYS:
            normalized[key] = _coerce_int(key, value)
        elif key in FLOAT_CONFIG_KEYS:
            normalized[key] = _coerce_float(key, value)
        elif key in STR_CONFIG_KEYS:
            if not isinstance(value, str):
                raise ValueError(f"Config field '{key}' must be a string")
            normalized[key] = value
    return normalized


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _validate(merged: Dict[str, Any]) -> None:
    auth = str(merged["auth"]).lower()
    if auth not in AUTH_METHODS:
        raise ValueError(f"Config field 'auth' must be one of: {', '.join(sorted(AUTH_METHODS))}")
    merged["auth"] = auth
    output = str(merged["output"]).lower()
    if output not in OUTPUT_FORMATS:
        raise ValueError(f"Config field 'output' must be one of: {', '.join(sorted(OUTPUT_FORMATS))}")
    merged["output"] = output
    if not 1 <= merged["per_page"] <= MAX_PER_PAGE:
        raise ValueError(f"Config field 'per_page' must be between 1 and {MAX_PER_PAGE}")
    if merged["max_pages"] < 1:
        raise ValueError("Config field 'max_pages' must be >= 1")
    if merged["workers"] < 1:
        raise ValueError("Config field 'workers' must be >= 1")
    if merged["poll_interval"] < 0:
        raise ValueError("Config field 'poll_interval' must be >= 0")
    if merged["wait_timeout"] <= 0:
        raise ValueError("Config field 'wait_timeout' must be > 0")
    if merged["max_poll_failures"] < 0:
        raise ValueError("Config field 'max_poll_failures' must be >= 0")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="do-droplets", description="DigitalOcean droplets CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
        p.add_argument("--token", default=None, help="API token (default: DIGITALOCEAN_ACCESS_TOKEN or doctl config)")
        p.add_argument("--auth", default=None, choices=sorted(AUTH_METHODS), help="Token source (default: auto)")
        p.add_argument("--context", default=None, help="doctl auth context name")
        p.add_argument("--api-endpoint", default=None, help=f"API endpoint (default {DEFAULT_API_ENDPOINT})")
        p.add_argument("--retry-total", type=int, default=None, help="Transport retry budget per request")
        p.add_argument("--per-page", type=int, default=None, help=f"Page size for listings (default {DEFAULT_PER_PAGE})")
        p.add_argument(
            "--max-pages", type=int, default=None, help=f"Abort listings after this many pages (default {DEFAULT_MAX_PAGES})"
        )
        p.add_argument("--output", "-o", default=None, choices=sorted(OUTPUT_FORMATS), help="Output format")
        p.add_argument("--workers", type=int, default=None, help=f"Parallel requests for multi-id commands (default {DEFAULT_WORKERS})")
        p.add_argument(
            "--json-logs",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Enable JSON logs",
        )
        p.add_argument("--log-level", default=None, help="Log level (WARNING, INFO, DEBUG, ...)")
        p.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")

    p_list = subparsers.add_parser("list", help="List droplets")
    add_common(p_list)
    p_list.add_argument("--tag-name", default=None, help="Only droplets with this tag")

    p_get = subparsers.add_parser("get", help="Show one or more droplets")
    add_common(p_get)
    p_get.add_argument("ids", type=int, nargs="+", help="Droplet ID(s)")

    p_create = subparsers.add_parser("create", help="Create one or more droplets")
    add_common(p_create)
    p_create.add_argument("names", nargs="+", help="Droplet name(s); more than one creates them in a single request")
    p_create.add_argument("--region", required=True, help="Region slug, e.g. nyc3")
    p_create.add_argument("--size", required=True, help="Size slug, e.g. s-1vcpu-1gb")
    p_create.add_argument("--image", required=True, help="Image slug or ID")
    p_create.add_argument("--ssh-keys", default=None, help="Comma-separated SSH key IDs or fingerprints")
    p_create.add_argument("--tag-names", default=None, help="Comma-separated tags")
    p_create.add_argument("--user-data-file", type=Path, default=None, help="Cloud-init user data file")
    p_create.add_argument("--vpc-uuid", default=None, help="VPC to place the droplet in")
    p_create.add_argument("--enable-backups", action="store_true", default=False)
    p_create.add_argument("--enable-ipv6", action="store_true", default=False)
    p_create.add_argument("--enable-monitoring", action="store_true", default=False)
    p_create.add_argument("--wait", action="store_true", default=False, help="Wait until the droplet is active")
    p_create.add_argument("--poll-interval", type=float, default=None, help="Seconds between action polls")
    p_create.add_argument("--wait-timeout", type=float, default=None, help="Give up waiting after this many seconds")
    p_create.add_argument(
        "--max-poll-failures",
        type=int,
        default=None,
        help=f"Consecutive failed action polls tolerated while waiting (default {DEFAULT_MAX_POLL_FAILURES})",
    )

    p_delete = subparsers.add_parser("delete", help="Delete one or more droplets")
    add_common(p_delete)
    p_delete.add_argument("ids", type=int, nargs="+", help="Droplet ID(s)")

    for name, help_text in (
        ("kernels", "List kernels available to a droplet"),
        ("snapshots", "List snapshots of a droplet"),
        ("backups", "List backups of a droplet"),
        ("actions", "List actions of a droplet"),
        ("neighbors", "List droplets on the same physical host"),
    ):
        p = subparsers.add_parser(name, help=help_text)
        add_common(p)
        p.add_argument("ids", type=int, nargs=1, help="Droplet ID")

    p_val = subparsers.add_parser("validate-auth", help="Check that a token resolves and the API accepts it")
    add_common(p_val)
    return parser


def _split_csv(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _create_request(ns: argparse.Namespace) -> Dict[str, Any]:
    request: Dict[str, Any] = {
        "region": ns.region,
        "size": ns.size,
        "image": int(ns.image) if str(ns.image).isdigit() else ns.image,
        "backups": bool(ns.enable_backups),
        "ipv6": bool(ns.enable_ipv6),
        "monitoring": bool(ns.enable_monitoring),
    }
    if len(ns.names) == 1:
        request["name"] = ns.names[0]
    else:
        request["names"] = list(ns.names)
    ssh_keys = _split_csv(ns.ssh_keys)
    if ssh_keys:
        request["ssh_keys"] = [int(k) if k.isdigit() else k for k in ssh_keys]
    tags = _split_csv(ns.tag_names)
    if tags:
        request["tags"] = tags
    if ns.user_data_file:
        request["user_data"] = Path(ns.user_data_file).read_text(encoding="utf-8")
    if ns.vpc_uuid:
        request["vpc_uuid"] = ns.vpc_uuid
    return request


def load_run_config(
    args: Optional[argparse.Namespace] = None,
    argv: Optional[list[str]] = None,
) -> Tuple[str, RunConfig]:
    """
    Build RunConfig by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.

    Returns:
      (command, RunConfig) where command is the selected subcommand.
    """
    ns = args if args is not None else build_parser().parse_args(argv)
    command = ns.command

    base: Dict[str, Any] = {
        "auth": "auto",
        "token": None,
        "context": None,
        "api_endpoint": DEFAULT_API_ENDPOINT,
        "retry_total": None,
        "per_page": DEFAULT_PER_PAGE,
        "max_pages": DEFAULT_MAX_PAGES,
        "poll_interval": DEFAULT_POLL_INTERVAL,
        "wait_timeout": DEFAULT_MAX_WAIT,
        "max_poll_failures": DEFAULT_MAX_POLL_FAILURES,
        "workers": DEFAULT_WORKERS,
        "output": DEFAULT_OUTPUT,
        "log_level": "WARNING",
        "json_logs": False,
        "log_file": None,
    }

    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize(_parse_config_file(Path(ns.config)), source="config")

    env_cfg = _normalize(
        _compact_dict(
            {
                "auth": _env_str("DO_DROPLETS_AUTH"),
                "context": _env_str("DO_DROPLETS_CONTEXT"),
                "api_endpoint": _env_str("DO_DROPLETS_API_ENDPOINT"),
                "retry_total": _env_str("DO_DROPLETS_RETRY_TOTAL"),
                "per_page": _env_str("DO_DROPLETS_PER_PAGE"),
                "max_pages": _env_str("DO_DROPLETS_MAX_PAGES"),
                "poll_interval": _env_str("DO_DROPLETS_POLL_INTERVAL"),
                "wait_timeout": _env_str("DO_DROPLETS_WAIT_TIMEOUT"),
                "max_poll_failures": _env_str("DO_DROPLETS_MAX_POLL_FAILURES"),
                "workers": _env_str("DO_DROPLETS_WORKERS"),
                "output": _env_str("DO_DROPLETS_OUTPUT"),
                "log_level": _env_str("DO_DROPLETS_LOG_LEVEL"),
                "json_logs": _env_str("DO_DROPLETS_JSON_LOGS"),
                "log_file": _env_str("DO_DROPLETS_LOG_FILE"),
            }
        ),
        source="environment",
    )

    cli_cfg: Dict[str, Any] = _compact_dict(
        {
            "token": getattr(ns, "token", None),
            "auth": getattr(ns, "auth", None),
            "context": getattr(ns, "context", None),
            "api_endpoint": getattr(ns, "api_endpoint", None),
            "retry_total": getattr(ns, "retry_total", None),
            "per_page": getattr(ns, "per_page", None),
            "max_pages": getattr(ns, "max_pages", None),
            "poll_interval": getattr(ns, "poll_interval", None),
            "wait_timeout": getattr(ns, "wait_timeout", None),
            "max_poll_failures": getattr(ns, "max_poll_failures", None),
            "workers": getattr(ns, "workers", None),
            "output": getattr(ns, "output", None),
            "log_level": getattr(ns, "log_level", None),
            "json_logs": getattr(ns, "json_logs", None),
            "log_file": getattr(ns, "log_file", None),
        }
    )

    merged = {**base, **file_cfg, **env_cfg, **cli_cfg}
    _validate(merged)

    create_request = _create_request(ns) if command == "create" else None
    log_file = merged.get("log_file")

    cfg = RunConfig(
        auth=merged["auth"],
        token=merged.get("token") or None,
        context=merged.get("context") or None,
        api_endpoint=str(merged["api_endpoint"]),
        retry_total=merged.get("retry_total"),
        per_page=int(merged["per_page"]),
        max_pages=int(merged["max_pages"]),
        poll_interval=float(merged["poll_interval"]),
        wait_timeout=float(merged["wait_timeout"]),
        max_poll_failures=int(merged["max_poll_failures"]),
        workers=int(merged["workers"]),
        output=merged["output"],
        log_level=str(merged["log_level"]).upper(),
        json_logs=bool(merged["json_logs"]),
        log_file=Path(log_file) if log_file else None,
        ids=list(getattr(ns, "ids", None) or []),
        tag_name=getattr(ns, "tag_name", None),
        create_request=create_request,
        wait=bool(getattr(ns, "wait", False)),
    )
    return command, cfg


def dump_config(cfg: RunConfig) -> Dict[str, Any]:
    """
    Effective settings for debug logging; the token is never included.
    """
    return {
        "auth": cfg.auth,
        "token_set": bool(cfg.token),
        "context": cfg.context,
        "api_endpoint": cfg.api_endpoint,
        "retry_total": cfg.retry_total,
        "per_page": cfg.per_page,
        "max_pages": cfg.max_pages,
        "poll_interval": cfg.poll_interval,
        "wait_timeout": cfg.wait_timeout,
        "max_poll_failures": cfg.max_poll_failures,
        "workers": cfg.workers,
        "output": cfg.output,
        "log_level": cfg.log_level,
        "json_logs": cfg.json_logs,
        "log_file": str(cfg.log_file) if cfg.log_file else None,
    }
