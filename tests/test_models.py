from __future__ import annotations

import pytest

from do_droplets.api.models import Action, Droplet, Image, InterfaceType, Kernel, convert_all
from do_droplets.util.errors import ItemConversionError


def _droplet_payload() -> dict:
    return {
        "id": 3164444,
        "name": "example.com",
        "memory": 1024,
        "vcpus": 1,
        "disk": 25,
        "status": "active",
        "region": {"slug": "nyc3", "name": "New York 3"},
        "image": {"id": 6918990, "name": "14.04 x64", "distribution": "Ubuntu"},
        "tags": ["web", "env:prod"],
        "networks": {
            "v4": [
                {"ip_address": "10.128.192.124", "netmask": "255.255.0.0", "type": "private"},
                {"ip_address": "192.241.165.154", "netmask": "255.255.255.0", "type": "public"},
                {"ip_address": "10.0.0.5", "netmask": "255.255.0.0", "type": "anchor"},
            ],
            "v6": [],
        },
    }


def test_droplet_ips_maps_public_and_private_interfaces() -> None:
    droplet = Droplet.from_api(_droplet_payload())

    assert droplet.ips() == {
        InterfaceType.PUBLIC: "192.241.165.154",
        InterfaceType.PRIVATE: "10.128.192.124",
    }
    assert droplet.public_ipv4() == "192.241.165.154"
    assert droplet.private_ipv4() == "10.128.192.124"


def test_droplet_ips_empty_without_networks() -> None:
    droplet = Droplet.from_api({"id": 1})
    assert droplet.ips() == {}
    assert droplet.public_ipv4() is None


def test_droplet_accessors() -> None:
    droplet = Droplet.from_api(_droplet_payload())

    assert droplet.id == 3164444
    assert droplet.name == "example.com"
    assert droplet.status == "active"
    assert droplet.region_slug == "nyc3"
    assert droplet.image_label == "Ubuntu 14.04 x64"
    assert droplet.tags == ["web", "env:prod"]


def test_from_api_copies_payload() -> None:
    payload = {"id": 5, "name": "a"}
    kernel = Kernel.from_api(payload)
    payload["name"] = "b"
    assert kernel.name == "a"


@pytest.mark.parametrize("cls", [Droplet, Kernel, Image, Action])
def test_from_api_rejects_non_objects(cls) -> None:
    with pytest.raises(ItemConversionError):
        cls.from_api(["not", "a", "mapping"])
    with pytest.raises(ItemConversionError):
        cls.from_api(None)
    with pytest.raises(ItemConversionError):
        cls.from_api({"name": "no id"})


def test_image_and_action_accessors() -> None:
    image = Image.from_api({"id": 7, "name": "nightly", "type": "backup", "regions": ["nyc3", "sfo2"]})
    action = Action.from_api({"id": 9, "status": "in-progress", "type": "create", "resource_id": 3164444})

    assert (image.type, image.regions) == ("backup", ["nyc3", "sfo2"])
    assert (action.status, action.type, action.resource_id) == ("in-progress", "create", 3164444)


def test_convert_all_preserves_order() -> None:
    kernels = convert_all([{"id": 3}, {"id": 1}, {"id": 2}], Kernel.from_api)
    assert [k.id for k in kernels] == [3, 1, 2]
