from __future__ import annotations

import sys
from typing import Any, Dict, List, Optional, Sequence

from .api.actions import WaitConfig
from .api.clients import get_client
from .api.droplets import DropletsAPI
from .auth.providers import AuthContext, AuthError, resolve_auth
from .config import RunConfig, dump_config, load_run_config
from .logging import LogConfig, add_log_file, get_logger, setup_logging
from .util.concurrency import parallel_for_each, parallel_map_ordered
from .util.errors import AuthResolutionError, ConfigError, as_exit_code, map_api_error
from .util.rich_output import ACTION_COLUMNS, DROPLET_COLUMNS, IMAGE_COLUMNS, KERNEL_COLUMNS, Column, render_table
from .util.serialization import stable_json_dumps

LOG = get_logger(__name__)

LISTING_TITLES = {
    "kernels": "Kernels",
    "snapshots": "Snapshots",
    "backups": "Backups",
    "actions": "Actions",
    "neighbors": "Neighbors",
}
LISTING_COLUMNS: Dict[str, Sequence[Column]] = {
    "kernels": KERNEL_COLUMNS,
    "snapshots": IMAGE_COLUMNS,
    "backups": IMAGE_COLUMNS,
    "actions": ACTION_COLUMNS,
    "neighbors": DROPLET_COLUMNS,
}


def _resolve_auth(cfg: RunConfig) -> AuthContext:
    try:
        return resolve_auth(cfg.auth, cfg.token, context=cfg.context)
    except AuthError as e:
        raise AuthResolutionError(str(e)) from e


def _client(cfg: RunConfig, ctx: Optional[AuthContext] = None) -> Any:
    ctx = ctx or _resolve_auth(cfg)
    try:
        return get_client(ctx, endpoint=cfg.api_endpoint, retry_total=cfg.retry_total)
    except AuthError as e:
        raise AuthResolutionError(str(e)) from e


def build_service(cfg: RunConfig) -> DropletsAPI:
    return DropletsAPI(
        _client(cfg),
        per_page=cfg.per_page,
        max_pages=cfg.max_pages,
        wait_config=WaitConfig(
            poll_interval=cfg.poll_interval,
            max_wait=cfg.wait_timeout,
            max_poll_failures=cfg.max_poll_failures,
        ),
    )


def _emit(
    cfg: RunConfig,
    items: Sequence[Any],
    *,
    title: Optional[str] = None,
    columns: Optional[Sequence[Column]] = None,
) -> None:
    if cfg.output == "json":
        print(stable_json_dumps(list(items)))
        return
    render_table(items, title=title, columns=columns)


def cmd_list(cfg: RunConfig, service: DropletsAPI) -> int:
    droplets = service.list(tag_name=cfg.tag_name)
    _emit(cfg, droplets, title="Droplets")
    return 0


def cmd_get(cfg: RunConfig, service: DropletsAPI) -> int:
    droplets = parallel_map_ordered(service.get, cfg.ids, max_workers=cfg.workers)
    _emit(cfg, droplets)
    return 0


def cmd_create(cfg: RunConfig, service: DropletsAPI) -> int:
    request = dict(cfg.create_request or {})
    if not request:
        raise ConfigError("create requires a request")
    if "names" in request:
        if cfg.wait:
            LOG.warning("--wait is ignored when creating several droplets at once")
        droplets = service.create_multiple(request)
    else:
        droplets = [service.create(request, wait=cfg.wait)]
    _emit(cfg, droplets)
    return 0


def cmd_delete(cfg: RunConfig, service: DropletsAPI) -> int:
    parallel_for_each(service.delete, cfg.ids, max_workers=cfg.workers)
    if cfg.output == "json":
        print(stable_json_dumps({"deleted": list(cfg.ids)}))
    return 0


def cmd_listing(command: str, cfg: RunConfig, service: DropletsAPI) -> int:
    droplet_id = cfg.ids[0]
    items = getattr(service, command)(droplet_id)
    _emit(
        cfg,
        items,
        title=f"{LISTING_TITLES[command]} of droplet {droplet_id}",
        columns=LISTING_COLUMNS[command],
    )
    return 0


def cmd_validate_auth(cfg: RunConfig) -> int:
    ctx = _resolve_auth(cfg)
    client = _client(cfg, ctx)
    try:
        account = (client.account.get() or {}).get("account") or {}
    except Exception as e:
        mapped = map_api_error(e, "Provider error while validating token")
        if mapped:
            raise mapped from e
        raise
    LOG.info("Authentication validated", extra={"method": ctx.method, "source": ctx.source})
    # No secrets on stdout
    print(f"OK: token from {ctx.method} accepted; account status: {account.get('status', 'unknown')}")
    return 0


def run(command: str, cfg: RunConfig) -> int:
    if command == "validate-auth":
        return cmd_validate_auth(cfg)
    service = build_service(cfg)
    if command == "list":
        return cmd_list(cfg, service)
    if command == "get":
        return cmd_get(cfg, service)
    if command == "create":
        return cmd_create(cfg, service)
    if command == "delete":
        return cmd_delete(cfg, service)
    if command in LISTING_TITLES:
        return cmd_listing(command, cfg, service)
    raise ConfigError(f"Unknown command: {command}")


def main(argv: Optional[List[str]] = None) -> None:
    try:
        command, cfg = load_run_config(argv=argv)
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))
        if cfg.log_file:
            add_log_file(cfg.log_file)
        LOG.debug("Effective configuration", extra={"config": dump_config(cfg)})
        sys.exit(run(command, cfg))
    except SystemExit:
        raise
    except BrokenPipeError:
        # Piping into `head` closes stdout early.
        sys.exit(0)
    except Exception as e:
        setup_logging(LogConfig())
        LOG.error("Execution failed: %s", e, extra={"error_type": type(e).__name__})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()
