from __future__ import annotations

from .actions import ActionWaiter, WaitConfig, WaitState
from .droplets import DropletsAPI, DropletsService
from .models import Action, Droplet, Image, InterfaceType, Kernel

__all__ = [
    "Action",
    "ActionWaiter",
    "Droplet",
    "DropletsAPI",
    "DropletsService",
    "Image",
    "InterfaceType",
    "Kernel",
    "WaitConfig",
    "WaitState",
]
