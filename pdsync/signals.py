"""Peer presence and notification."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol, runtime_checkable

from .models import DiffBroadcast, PerspectiveDiff

logger = logging.getLogger(__name__)

BroadcastHandler = Callable[[DiffBroadcast], object]


@runtime_checkable
class Notifier(Protocol):
    """How a peer learns who is online and tells them about commits.

    ``send`` delivers a broadcast to other peers. ``emit`` hands diffs
    the local peer pulled in to whoever embeds it.
    """

    def active_agents(self) -> list[str]: ...
    def send(self, agents: list[str], broadcast: DiffBroadcast) -> None: ...
    def emit(self, diff: PerspectiveDiff) -> None: ...


class NullNotifier:
    """A notifier for a peer that is alone."""

    def active_agents(self) -> list[str]:
        return []

    def send(self, agents: list[str], broadcast: DiffBroadcast) -> None:
        pass

    def emit(self, diff: PerspectiveDiff) -> None:
        pass


class LocalNetwork:
    """Synchronous in-process broadcast between peers.

    Each peer joins with a handler, usually its sync's
    ``handle_broadcast``, and gets a ``LocalNotifier`` to pass to it.
    Emitted diffs are collected per agent in ``emitted``.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, BroadcastHandler] = {}
        self.emitted: dict[str, list[PerspectiveDiff]] = {}
        self._lock = threading.Lock()

    def join(
        self, agent: str, handler: BroadcastHandler | None = None
    ) -> "LocalNotifier":
        with self._lock:
            if handler is not None:
                self._handlers[agent] = handler
            self.emitted.setdefault(agent, [])
        return LocalNotifier(self, agent)

    def attach(self, agent: str, handler: BroadcastHandler) -> None:
        """Set or replace the handler of a peer that already joined."""
        with self._lock:
            self._handlers[agent] = handler

    def leave(self, agent: str) -> None:
        with self._lock:
            self._handlers.pop(agent, None)

    def agents(self) -> list[str]:
        with self._lock:
            return list(self._handlers)

    def deliver(self, agent: str, broadcast: DiffBroadcast) -> None:
        with self._lock:
            handler = self._handlers.get(agent)
        if handler is None:
            logger.debug("dropping broadcast for offline agent %s", agent)
            return
        handler(broadcast)

    def record(self, agent: str, diff: PerspectiveDiff) -> None:
        with self._lock:
            self.emitted.setdefault(agent, []).append(diff)


class LocalNotifier:
    """One agent's handle on a ``LocalNetwork``."""

    def __init__(self, network: LocalNetwork, agent: str) -> None:
        self.network = network
        self.agent = agent

    def active_agents(self) -> list[str]:
        return [a for a in self.network.agents() if a != self.agent]

    def send(self, agents: list[str], broadcast: DiffBroadcast) -> None:
        for agent in agents:
            self.network.deliver(agent, broadcast)

    def emit(self, diff: PerspectiveDiff) -> None:
        self.network.record(self.agent, diff)
