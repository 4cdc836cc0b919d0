"""
Optimistic mutations against a persisted view state.

A command is applied to memory and to the local cache immediately, the
server call runs in the background, and a rejected or failed call undoes
that command's own change in the current state, so mutations applied
meanwhile survive the rollback. Every command ends with exactly one user
notification.
"""

import asyncio
import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

from shared.errors import OpnameError
from shared.logging import get_logger
from .api_client import OpnameApiClient
from .local_cache import LocalCache
from .notifications import Notifier


class MutationState(str, Enum):
    APPLIED = "applied"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


class OptimisticCommand:
    """One user mutation: a local state transform plus its server call."""

    name = "mutation"
    success_message = "Saved"
    failure_message = "Sync failed"
    # Other persisted namespaces made stale by this mutation.
    invalidates: Tuple[str, ...] = ()

    def apply(self, state: Any) -> Any:
        raise NotImplementedError

    def compensate(self, state: Any, snapshot: Any) -> Any:
        """Undo this command in `state`; `snapshot` is the state it was applied to.

        The fallback restores the whole snapshot, which also discards anything
        applied after this command. List commands override it.
        """
        return snapshot

    async def send(self, api: OpnameApiClient) -> dict:
        raise NotImplementedError


@dataclass
class PendingMutation:
    command: OptimisticCommand
    snapshot: Any
    state: MutationState = MutationState.APPLIED
    error: Optional[str] = None
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    async def settled(self) -> MutationState:
        if self.task is not None:
            await asyncio.shield(self.task)
        return self.state


class OptimisticStore:
    """In-memory view state mirrored to one local cache key."""

    def __init__(
        self,
        key: str,
        cache: LocalCache,
        api: OpnameApiClient,
        notifier: Notifier,
        initial: Any = None,
    ):
        self.key = key
        self.cache = cache
        self.api = api
        self.notifier = notifier
        self.state = initial
        self.logger = get_logger("client.optimistic")

    def replace(self, data: Any) -> None:
        self.state = data
        self.cache.set(self.key, data)

    def execute(self, command: OptimisticCommand) -> PendingMutation:
        """Apply `command` now and reconcile with the server in the background."""
        snapshot = copy.deepcopy(self.state)
        pending = PendingMutation(command=command, snapshot=snapshot)

        self.replace(command.apply(copy.deepcopy(self.state)))
        for prefix in command.invalidates:
            self.cache.clear(prefix)
        self.notifier.success(command.success_message)

        pending.task = asyncio.ensure_future(self._reconcile(pending))
        return pending

    async def _reconcile(self, pending: PendingMutation) -> None:
        command = pending.command
        try:
            result = await command.send(self.api)
        except OpnameError as exc:
            self._roll_back(pending, exc.message)
            return
        except Exception as exc:
            self.logger.error("Optimistic sync crashed", command=command.name, error=str(exc), exc_info=True)
            self._roll_back(pending, str(exc) or command.failure_message)
            return

        if result.get("success") is True:
            pending.state = MutationState.CONFIRMED
            self.logger.debug("Mutation confirmed", command=command.name, key=self.key)
        else:
            self._roll_back(pending, result.get("message") or command.failure_message)

    def _roll_back(self, pending: PendingMutation, message: str) -> None:
        command = pending.command
        self.replace(command.compensate(self.state, copy.deepcopy(pending.snapshot)))
        pending.state = MutationState.ROLLED_BACK
        pending.error = message
        self.logger.warning("Mutation rolled back", command=command.name, key=self.key, reason=message)
        self.notifier.error(f"{command.failure_message}: {message}")
