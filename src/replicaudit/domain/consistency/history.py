"""Collect replica histories and pick the replicas that agree with the reference."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from replicaudit.domain.errors import InsufficientReplicasError, TransportError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from replicaudit.domain.types import DeploymentEvent, EntityId, ServerAddress, Timestamp

    from .state import CheckContext

log = getLogger(__name__)

MIN_SYNCHRONIZED_REPLICAS = 2


@dataclass(frozen=True, slots=True)
class HistoryDivergence:
    """First point where a replica's history departs from the reference."""

    server: ServerAddress
    reason: str
    index: int | None = None
    found: DeploymentEvent | None = None
    expected: DeploymentEvent | None = None

    def describe(self) -> str:
        if self.index is None:
            return f"History of {self.server} differs from the reference: {self.reason}"
        return (
            f"History of {self.server} differs from the reference at index {self.index}: "
            f"found {self.found}, expected {self.expected}"
        )


@dataclass(frozen=True, slots=True)
class HistoryCollection:
    events: tuple[DeploymentEvent, ...]
    synchronized: tuple[ServerAddress, ...]
    divergences: tuple[HistoryDivergence, ...] = ()
    unreachable: tuple[ServerAddress, ...] = ()

    @property
    def reference(self) -> ServerAddress:
        return self.synchronized[0]


def filter_history(
    events: Iterable[DeploymentEvent],
    ignored_entity_ids: frozenset[EntityId],
) -> list[DeploymentEvent]:
    return [event for event in events if event.entity_id not in ignored_entity_ids]


def find_history_divergence(
    reference: Sequence[DeploymentEvent],
    candidate: Sequence[DeploymentEvent],
    *,
    server: ServerAddress,
) -> HistoryDivergence | None:
    """Return ``None`` when both histories list the same deployments in the same order."""

    if len(reference) != len(candidate):
        return HistoryDivergence(
            server=server,
            reason=f"history has {len(candidate)} events, reference has {len(reference)}",
        )
    for index, (expected, found) in enumerate(zip(reference, candidate, strict=True)):
        if not found.same_deployment(expected):
            return HistoryDivergence(
                server=server,
                reason="event mismatch",
                index=index,
                found=found,
                expected=expected,
            )
    return None


@dataclass(slots=True)
class HistoryCollector:
    """Fetch every replica's history up to ``to`` and keep those matching the first one."""

    context: CheckContext
    ignored_entity_ids: frozenset[EntityId] = frozenset()

    async def __call__(
        self,
        servers: Sequence[ServerAddress],
        *,
        to: Timestamp,
    ) -> HistoryCollection:
        histories: dict[ServerAddress, list[DeploymentEvent]] = {}
        unreachable: list[ServerAddress] = []

        async def fetch(server: ServerAddress) -> None:
            self.context.sink.log(f"Getting history for {server}")
            try:
                events = await self.context.transport.fetch_history(server, to=to)
            except TransportError as exc:
                unreachable.append(server)
                log.warning("Could not download history from %s: %s", server, exc)
                self.context.sink.failed(f"Failed to download history from {server}: {exc}")
                return
            histories[server] = filter_history(events, self.ignored_entity_ids)

        await self.context.runner.run("Fetching histories", servers, fetch)

        ordered = [server for server in servers if server in histories]
        if not ordered:
            raise InsufficientReplicasError("Could not download history from any replica")

        reference_events = histories[ordered[0]]
        self.context.sink.log(f"Total length of history {len(reference_events)}")

        synchronized: list[ServerAddress] = []
        divergences: list[HistoryDivergence] = []
        for server in ordered:
            divergence = find_history_divergence(
                reference_events, histories[server], server=server
            )
            if divergence is None:
                synchronized.append(server)
                continue
            divergences.append(divergence)
            self._report_divergence(divergence)

        if not divergences and not unreachable:
            log.info("All servers reported the same history")
        else:
            out_of_sync = [item.server for item in divergences] + unreachable
            log.warning(
                "The following servers don't have the same history as the base: %s",
                out_of_sync,
            )

        if len(synchronized) < MIN_SYNCHRONIZED_REPLICAS:
            raise InsufficientReplicasError(
                "Need 2 or more servers with the same history to continue checks",
                servers=tuple(synchronized),
            )

        return HistoryCollection(
            events=tuple(reference_events),
            synchronized=tuple(synchronized),
            divergences=tuple(divergences),
            unreachable=tuple(unreachable),
        )

    def _report_divergence(self, divergence: HistoryDivergence) -> None:
        if divergence.index is not None:
            log.warning("FOUND %s", divergence.found)
            log.warning("EXPECTED %s", divergence.expected)
        self.context.sink.failed(divergence.describe())
