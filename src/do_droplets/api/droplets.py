from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, TypeVar, runtime_checkable
from urllib.parse import urlparse

from ..logging import get_logger
from ..util.errors import ItemConversionError, map_api_error
from ..util.pagination import DEFAULT_MAX_PAGES, DEFAULT_PER_PAGE, Page, PageRequest, collect, response_page
from .actions import ActionWaiter, WaitConfig
from .models import (
    Action,
    Actions,
    Droplet,
    Droplets,
    Image,
    Images,
    Kernel,
    Kernels,
    convert_all,
)

LOG = get_logger(__name__)

W = TypeVar("W")

WaiterFactory = Callable[[int], ActionWaiter]


@runtime_checkable
class DropletsService(Protocol):
    """
    Droplet operations exposed to callers. List operations return fully
    materialized collections or raise; they never return a truncated list.
    """

    def list(self, tag_name: Optional[str] = None) -> Droplets:
        ...

    def get(self, droplet_id: int) -> Droplet:
        ...

    def create(self, request: Mapping[str, Any], wait: bool = False) -> Droplet:
        ...

    def create_multiple(self, request: Mapping[str, Any]) -> Droplets:
        ...

    def delete(self, droplet_id: int) -> None:
        ...

    def kernels(self, droplet_id: int) -> Kernels:
        ...

    def snapshots(self, droplet_id: int) -> Images:
        ...

    def backups(self, droplet_id: int) -> Images:
        ...

    def actions(self, droplet_id: int) -> Actions:
        ...

    def neighbors(self, droplet_id: int) -> Droplets:
        ...


def _call(context: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    try:
        return func(*args, **kwargs)
    except Exception as e:
        mapped = map_api_error(e, context)
        if mapped:
            raise mapped from e
        raise


def find_action_link(response: Mapping[str, Any], rel: str) -> Optional[Dict[str, Any]]:
    """
    Return the first links.actions entry with the given rel, e.g.
    {"id": 36805096, "rel": "create", "href": "https://api.digitalocean.com/v2/actions/36805096"}.
    """
    links = response.get("links") or {}
    for link in links.get("actions") or []:
        if link.get("rel") == rel:
            return dict(link)
    return None


def action_id_of(link: Mapping[str, Any]) -> int:
    """
    Action id of a links.actions entry; falls back to the last path segment of href.
    """
    candidates = [link.get("id")]
    href = link.get("href")
    if href:
        candidates.append(urlparse(str(href)).path.rstrip("/").rsplit("/", 1)[-1])
    for candidate in candidates:
        if candidate is None or isinstance(candidate, bool):
            continue
        try:
            return int(candidate)
        except (TypeError, ValueError):
            continue
    raise ItemConversionError(f"Action link has no usable id: {dict(link)!r}")


class DropletsAPI:
    """
    DropletsService backed by a pydo.Client.
    """

    def __init__(
        self,
        client: Any,
        *,
        per_page: int = DEFAULT_PER_PAGE,
        max_pages: int = DEFAULT_MAX_PAGES,
        wait_config: Optional[WaitConfig] = None,
        waiter_factory: Optional[WaiterFactory] = None,
    ) -> None:
        self._client = client
        self._per_page = per_page
        self._max_pages = max_pages
        self._wait_config = wait_config or WaitConfig()
        self._waiter_factory = waiter_factory or (
            lambda action_id: ActionWaiter(self._client, action_id, self._wait_config)
        )

    def _list(
        self,
        context: str,
        key: str,
        endpoint: Callable[..., Any],
        convert: Callable[[Any], W],
        *args: Any,
        **kwargs: Any,
    ) -> List[W]:
        def fetch(request: PageRequest) -> Page[Any]:
            resp = _call(context, endpoint, *args, per_page=request.per_page, page=request.page, **kwargs)
            return response_page(resp or {}, key, request)

        items = collect(fetch, per_page=self._per_page, max_pages=self._max_pages)
        LOG.debug("%s: %d items", context, len(items))
        return convert_all(items, convert)

    def list(self, tag_name: Optional[str] = None) -> Droplets:
        kwargs: Dict[str, Any] = {}
        if tag_name:
            kwargs["tag_name"] = tag_name
        return self._list("Provider error while listing droplets", "droplets", self._client.droplets.list, Droplet.from_api, **kwargs)

    def get(self, droplet_id: int) -> Droplet:
        resp = _call(f"Provider error while fetching droplet {droplet_id}", self._client.droplets.get, droplet_id)
        return Droplet.from_api((resp or {}).get("droplet"))

    def create(self, request: Mapping[str, Any], wait: bool = False) -> Droplet:
        resp = _call("Provider error while creating droplet", self._client.droplets.create, body=dict(request)) or {}
        droplet = Droplet.from_api(resp.get("droplet"))
        LOG.info("Droplet created", extra={"operation": "create", "droplet_id": droplet.id})
        if not wait:
            return droplet

        link = find_action_link(resp, "create")
        if link is None:
            LOG.warning(
                "No create action returned; cannot wait for droplet to become active",
                extra={"operation": "create", "droplet_id": droplet.id},
            )
            return droplet

        waiter = self._waiter_factory(action_id_of(link))
        waiter.run()
        LOG.info(
            "Droplet active after %d polls",
            waiter.polls,
            extra={"operation": "create", "droplet_id": droplet.id},
        )
        return self.get(droplet.id)

    def create_multiple(self, request: Mapping[str, Any]) -> Droplets:
        body = dict(request)
        names = body.get("names")
        if not isinstance(names, Sequence) or isinstance(names, str) or not names:
            raise ValueError("create_multiple requires a non-empty 'names' list")
        resp = _call("Provider error while creating droplets", self._client.droplets.create, body=body) or {}
        return convert_all(resp.get("droplets") or [], Droplet.from_api)

    def delete(self, droplet_id: int) -> None:
        _call(f"Provider error while deleting droplet {droplet_id}", self._client.droplets.destroy, droplet_id)
        LOG.info("Droplet deleted", extra={"operation": "delete", "droplet_id": droplet_id})

    def kernels(self, droplet_id: int) -> Kernels:
        return self._list(
            f"Provider error while listing kernels of droplet {droplet_id}",
            "kernels",
            self._client.droplets.list_kernels,
            Kernel.from_api,
            droplet_id,
        )

    def snapshots(self, droplet_id: int) -> Images:
        return self._list(
            f"Provider error while listing snapshots of droplet {droplet_id}",
            "snapshots",
            self._client.droplets.list_snapshots,
            Image.from_api,
            droplet_id,
        )

    def backups(self, droplet_id: int) -> Images:
        return self._list(
            f"Provider error while listing backups of droplet {droplet_id}",
            "backups",
            self._client.droplets.list_backups,
            Image.from_api,
            droplet_id,
        )

    def actions(self, droplet_id: int) -> Actions:
        return self._list(
            f"Provider error while listing actions of droplet {droplet_id}",
            "actions",
            self._client.droplet_actions.list,
            Action.from_api,
            droplet_id,
        )

    def neighbors(self, droplet_id: int) -> Droplets:
        resp = _call(
            f"Provider error while listing neighbors of droplet {droplet_id}",
            self._client.droplets.list_neighbors,
            droplet_id,
        )
        return convert_all((resp or {}).get("droplets") or [], Droplet.from_api)
