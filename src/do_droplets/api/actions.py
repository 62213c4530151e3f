from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from ..logging import get_logger
from ..util.errors import ActionFailedError, WaitTimeoutError, map_api_error
from .models import Action

LOG = get_logger(__name__)

ACTION_IN_PROGRESS = "in-progress"
ACTION_COMPLETED = "completed"
ACTION_ERRORED = "errored"

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_MAX_WAIT = 600.0
DEFAULT_MAX_POLL_FAILURES = 3


class WaitState(str, Enum):
    PENDING = "pending"
    POLLING = "polling"
    ACTIVE = "active"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = frozenset({WaitState.ACTIVE, WaitState.FAILED, WaitState.TIMED_OUT})


@dataclass(frozen=True)
class WaitConfig:
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_wait: float = DEFAULT_MAX_WAIT
    # Consecutive failed polls tolerated before giving up.
    max_poll_failures: int = DEFAULT_MAX_POLL_FAILURES

    def __post_init__(self) -> None:
        if self.poll_interval < 0:
            raise ValueError("poll_interval must be >= 0")
        if self.max_wait <= 0:
            raise ValueError("max_wait must be > 0")
        if self.max_poll_failures < 0:
            raise ValueError("max_poll_failures must be >= 0")


class ActionWaiter:
    """
    Polls one provider action until it settles.

    pending -> polling -> active | failed | timed_out

    "completed" means active, "in-progress" keeps polling, anything else
    (including "errored") fails. A waiter runs once; build a new one per action.
    """

    def __init__(
        self,
        client: Any,
        action_id: int,
        config: Optional[WaitConfig] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self.action_id = action_id
        self._config = config or WaitConfig()
        self._sleep = sleep
        self._clock = clock
        self.state = WaitState.PENDING
        self.polls = 0
        self.last_action: Optional[Action] = None

    def _transition(self, state: WaitState) -> None:
        LOG.debug(
            "Action wait %s -> %s",
            self.state.value,
            state.value,
            extra={"operation": "wait", "action_id": self.action_id},
        )
        self.state = state

    def _poll(self) -> Action:
        self.polls += 1
        resp = self._client.actions.get(self.action_id)
        return Action.from_api((resp or {}).get("action"))

    def run(self) -> Action:
        if self.state is not WaitState.PENDING:
            raise RuntimeError(f"ActionWaiter for action {self.action_id} already ran (state={self.state.value})")

        cfg = self._config
        deadline = self._clock() + cfg.max_wait
        failures = 0
        self._transition(WaitState.POLLING)
        while True:
            try:
                action = self._poll()
            except Exception as e:
                mapped = map_api_error(e, f"Provider error while polling action {self.action_id}")
                if mapped is None:
                    self._transition(WaitState.FAILED)
                    raise
                failures += 1
                if failures > cfg.max_poll_failures:
                    self._transition(WaitState.FAILED)
                    raise mapped from e
                LOG.warning(
                    "Polling action failed (%d/%d): %s",
                    failures,
                    cfg.max_poll_failures,
                    e,
                    extra={"operation": "wait", "action_id": self.action_id},
                )
            else:
                failures = 0
                self.last_action = action
                if action.status == ACTION_COMPLETED:
                    self._transition(WaitState.ACTIVE)
                    return action
                if action.status != ACTION_IN_PROGRESS:
                    self._transition(WaitState.FAILED)
                    raise ActionFailedError(f"Action {self.action_id} ended with status '{action.status}'")

            remaining = deadline - self._clock()
            if remaining <= 0:
                self._transition(WaitState.TIMED_OUT)
                raise WaitTimeoutError(f"Action {self.action_id} did not complete within {cfg.max_wait:g}s")
            self._sleep(min(cfg.poll_interval, remaining))
