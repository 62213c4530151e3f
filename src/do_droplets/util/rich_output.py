from __future__ import annotations

from typing import Any, Callable, Optional, Sequence, Tuple

from rich.console import Console
from rich.table import Table

from ..api.models import Action, Droplet, Image, Kernel

Column = Tuple[str, Callable[[Any], Any]]


def _gb(value: Any) -> str:
    return f"{value} GB" if value not in (None, "") else ""


DROPLET_COLUMNS: Sequence[Column] = (
    ("ID", lambda d: d.id),
    ("Name", lambda d: d.name),
    ("Public IPv4", lambda d: d.public_ipv4() or ""),
    ("Private IPv4", lambda d: d.private_ipv4() or ""),
    ("Memory", lambda d: d.raw.get("memory", "")),
    ("VCPUs", lambda d: d.raw.get("vcpus", "")),
    ("Disk", lambda d: _gb(d.raw.get("disk"))),
    ("Region", lambda d: d.region_slug or ""),
    ("Image", lambda d: d.image_label),
    ("Status", lambda d: d.status),
    ("Tags", lambda d: ",".join(d.tags)),
)
KERNEL_COLUMNS: Sequence[Column] = (
    ("ID", lambda k: k.id),
    ("Name", lambda k: k.name),
    ("Version", lambda k: k.version),
)
IMAGE_COLUMNS: Sequence[Column] = (
    ("ID", lambda i: i.id),
    ("Name", lambda i: i.name),
    ("Type", lambda i: i.type),
    ("Regions", lambda i: ",".join(i.regions)),
    ("Min Disk", lambda i: _gb(i.raw.get("min_disk_size"))),
)
ACTION_COLUMNS: Sequence[Column] = (
    ("ID", lambda a: a.id),
    ("Status", lambda a: a.status),
    ("Type", lambda a: a.type),
    ("Started At", lambda a: a.raw.get("started_at") or ""),
    ("Completed At", lambda a: a.raw.get("completed_at") or ""),
    ("Resource ID", lambda a: a.resource_id if a.resource_id is not None else ""),
)


def columns_for(items: Sequence[Any]) -> Sequence[Column]:
    if not items:
        return DROPLET_COLUMNS
    first = items[0]
    if isinstance(first, Droplet):
        return DROPLET_COLUMNS
    if isinstance(first, Kernel):
        return KERNEL_COLUMNS
    if isinstance(first, Image):
        return IMAGE_COLUMNS
    if isinstance(first, Action):
        return ACTION_COLUMNS
    raise TypeError(f"No table layout for {type(first).__name__}")


def build_table(items: Sequence[Any], *, title: Optional[str] = None, columns: Optional[Sequence[Column]] = None) -> Table:
    cols = columns or columns_for(items)
    table = Table(title=title, show_header=True, header_style="bold")
    for header, _ in cols:
        table.add_column(header, style="cyan" if header == "ID" else None)
    for item in items:
        table.add_row(*[str(getter(item)) for _, getter in cols])
    return table


def render_table(
    items: Sequence[Any],
    *,
    title: Optional[str] = None,
    columns: Optional[Sequence[Column]] = None,
    console: Optional[Console] = None,
) -> None:
    (console or Console()).print(build_table(items, title=title, columns=columns))
