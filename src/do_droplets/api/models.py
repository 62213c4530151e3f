from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from ..util.errors import ItemConversionError

W = TypeVar("W")


class InterfaceType(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


DropletIPTable = Dict[InterfaceType, str]


def _require_mapping(kind: str, item: Any) -> Dict[str, Any]:
    if not isinstance(item, Mapping):
        raise ItemConversionError(f"Expected a {kind} object, got {type(item).__name__}")
    if "id" not in item:
        raise ItemConversionError(f"{kind} object has no 'id' field")
    return dict(item)


@dataclass(frozen=True)
class Droplet:
    """A provider droplet payload with accessor helpers."""

    raw: Dict[str, Any]

    @classmethod
    def from_api(cls, item: Any) -> Droplet:
        return cls(_require_mapping("droplet", item))

    @property
    def id(self) -> int:
        return int(self.raw["id"])

    @property
    def name(self) -> str:
        return str(self.raw.get("name") or "")

    @property
    def status(self) -> str:
        return str(self.raw.get("status") or "")

    @property
    def region_slug(self) -> Optional[str]:
        return (self.raw.get("region") or {}).get("slug")

    @property
    def image_label(self) -> str:
        image = self.raw.get("image") or {}
        distribution = image.get("distribution") or ""
        name = image.get("name") or ""
        return f"{distribution} {name}".strip()

    @property
    def tags(self) -> List[str]:
        return list(self.raw.get("tags") or [])

    def ips(self) -> DropletIPTable:
        """
        Map interface type to its IPv4 address. Only public and private
        interfaces are reported; the last address of a given type wins.
        """
        table: DropletIPTable = {}
        networks = self.raw.get("networks") or {}
        for iface in networks.get("v4") or []:
            kind = iface.get("type")
            if kind == InterfaceType.PUBLIC.value:
                table[InterfaceType.PUBLIC] = iface.get("ip_address")
            elif kind == InterfaceType.PRIVATE.value:
                table[InterfaceType.PRIVATE] = iface.get("ip_address")
        return table

    def public_ipv4(self) -> Optional[str]:
        return self.ips().get(InterfaceType.PUBLIC)

    def private_ipv4(self) -> Optional[str]:
        return self.ips().get(InterfaceType.PRIVATE)


@dataclass(frozen=True)
class Kernel:
    raw: Dict[str, Any]

    @classmethod
    def from_api(cls, item: Any) -> Kernel:
        return cls(_require_mapping("kernel", item))

    @property
    def id(self) -> int:
        return int(self.raw["id"])

    @property
    def name(self) -> str:
        return str(self.raw.get("name") or "")

    @property
    def version(self) -> str:
        return str(self.raw.get("version") or "")


@dataclass(frozen=True)
class Image:
    """Snapshot or backup image."""

    raw: Dict[str, Any]

    @classmethod
    def from_api(cls, item: Any) -> Image:
        return cls(_require_mapping("image", item))

    @property
    def id(self) -> int:
        return int(self.raw["id"])

    @property
    def name(self) -> str:
        return str(self.raw.get("name") or "")

    @property
    def type(self) -> str:
        return str(self.raw.get("type") or "")

    @property
    def regions(self) -> List[str]:
        return list(self.raw.get("regions") or [])


@dataclass(frozen=True)
class Action:
    raw: Dict[str, Any]

    @classmethod
    def from_api(cls, item: Any) -> Action:
        return cls(_require_mapping("action", item))

    @property
    def id(self) -> int:
        return int(self.raw["id"])

    @property
    def status(self) -> str:
        return str(self.raw.get("status") or "")

    @property
    def type(self) -> str:
        return str(self.raw.get("type") or "")

    @property
    def resource_id(self) -> Optional[int]:
        rid = self.raw.get("resource_id")
        return int(rid) if rid is not None else None


Droplets = List[Droplet]
Kernels = List[Kernel]
Images = List[Image]
Actions = List[Action]


def convert_all(items: Sequence[Any], convert: Callable[[Any], W]) -> List[W]:
    """
    Convert every raw page item with the resource's converter, keeping order.
    """
    return [convert(item) for item in items]
