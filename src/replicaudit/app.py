"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from replicaudit.adapters.files import (
    FileResultSink,
    read_history,
    server_file_name,
    write_history,
)
from replicaudit.adapters.registry import discover_replicas_async
from replicaudit.adapters.replica import HttpReplicaTransport
from replicaudit.config import (
    DEFAULT_EXCLUDED_SERVER_NAMES,
    DEFAULT_EXPORT_SKEW,
    AuditConfig,
    get_output_config,
    get_registry_config,
    normalize_server_address,
)
from replicaudit.config.storage import MISSING_HISTORY_PREFIX
from replicaudit.domain.consistency import BoundedTaskRunner, ConsistencyEngine
from replicaudit.domain.consistency.history import MIN_SYNCHRONIZED_REPLICAS
from replicaudit.domain.errors import (
    EntityMismatchAbort,
    InsufficientReplicasError,
    TransportError,
)
from replicaudit.domain.history_comparison import compare_histories

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import timedelta

    from replicaudit.domain.consistency import ConsistencyReport
    from replicaudit.domain.ports import ReplicaTransport, ResultSink
    from replicaudit.domain.types import DeploymentEvent, ServerAddress, Timestamp

log = getLogger(__name__)

type Discoverer = Callable[[], Sequence[ServerAddress]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def cutoff_timestamp(now: datetime, skew: timedelta) -> Timestamp:
    """Epoch milliseconds of ``now - skew``."""

    return int((now - skew).timestamp() * 1000)


def discover_replicas() -> list[ServerAddress]:
    """Replica addresses listed by the registry at ``REPLICAUDIT_REGISTRY_URL``."""

    return asyncio.run(discover_replicas_async(get_registry_config()))


def resolve_server_addresses(
    servers: Sequence[str] | None,
    *,
    discover: Discoverer = discover_replicas,
) -> list[ServerAddress]:
    """Normalize explicit addresses, or discover them when none are given."""

    candidates = list(servers) if servers else list(discover())
    addresses: dict[ServerAddress, None] = {}
    for candidate in candidates:
        addresses[normalize_server_address(candidate)] = None
    return list(addresses)


def run_consistency_check(
    servers: Sequence[str] | None = None,
    *,
    audit: AuditConfig | None = None,
    output_dir: str | Path | None = None,
    transport: ReplicaTransport | None = None,
    sink: ResultSink | None = None,
    discover: Discoverer = discover_replicas,
    now_provider: Callable[[], datetime] = _utcnow,
) -> ConsistencyReport:
    """Audit the given replicas (or the registered ones) and write the result artifacts."""

    effective_audit = audit or AuditConfig()
    addresses = resolve_server_addresses(servers, discover=discover)
    if len(addresses) < MIN_SYNCHRONIZED_REPLICAS:
        raise InsufficientReplicasError("You must set 2 or more server addresses")

    effective_sink = sink or FileResultSink(get_output_config(output_dir))
    effective_sink.clear()
    effective_sink.log("Starting synchronization check")

    to = cutoff_timestamp(now_provider(), effective_audit.history_skew)
    log.info(
        "Starting consistency check: servers=%s, to=%s, concurrency=%s, fail_fast=%s",
        len(addresses),
        to,
        effective_audit.concurrency,
        effective_audit.fail_fast,
    )

    try:
        report = asyncio.run(
            _run_engine(addresses, to, effective_audit, transport, effective_sink)
        )
    except EntityMismatchAbort as exc:
        if exc.report is not None:
            write_report(effective_sink, exc.report)
        raise

    write_report(effective_sink, report)
    log.info("Finished consistency check: failures=%s", sum(report.counts().values()))
    return report


async def _run_engine(
    addresses: Sequence[ServerAddress],
    to: Timestamp,
    audit: AuditConfig,
    transport: ReplicaTransport | None,
    sink: ResultSink,
) -> ConsistencyReport:
    if transport is not None:
        return await _build_engine(transport, sink, audit).run(addresses, to=to)
    async with HttpReplicaTransport(audit=audit) as http_transport:
        return await _build_engine(http_transport, sink, audit).run(addresses, to=to)


def _build_engine(
    transport: ReplicaTransport,
    sink: ResultSink,
    audit: AuditConfig,
) -> ConsistencyEngine:
    return ConsistencyEngine(
        transport=transport,
        sink=sink,
        chunk_size=audit.chunk_size,
        concurrency=audit.concurrency,
        content_sample_percentage=audit.content_sample_percentage,
        ignored_entity_ids=audit.ignored_entity_ids,
        fail_fast=audit.fail_fast,
        show_progress=audit.show_progress,
    )


def write_report(sink: ResultSink, report: ConsistencyReport) -> None:
    for line in report.summary_lines():
        sink.log(line)
    sink.results(report.format_results())


def download_histories(
    servers: Sequence[str] | None = None,
    *,
    output_dir: str | Path,
    audit: AuditConfig | None = None,
    transport: ReplicaTransport | None = None,
    discover: Discoverer = discover_replicas,
    now_provider: Callable[[], datetime] = _utcnow,
    skew: timedelta = DEFAULT_EXPORT_SKEW,
) -> dict[ServerAddress, Path]:
    """Store every replica's history as JSON lines in ``output_dir/<hostname>``."""

    effective_audit = audit or AuditConfig()
    addresses = resolve_server_addresses(servers, discover=discover)
    target = Path(output_dir)
    target.mkdir(parents=True, exist_ok=True)
    to = cutoff_timestamp(now_provider(), skew)

    histories = asyncio.run(_fetch_histories(addresses, to, effective_audit, transport))

    written: dict[ServerAddress, Path] = {}
    for server, events in histories.items():
        path = target / server_file_name(server)
        count = write_history(path, events)
        log.info("Finished writing history for %s: %s events", server, count)
        written[server] = path
    return written


async def _fetch_histories(
    addresses: Sequence[ServerAddress],
    to: Timestamp,
    audit: AuditConfig,
    transport: ReplicaTransport | None,
) -> dict[ServerAddress, list[DeploymentEvent]]:
    runner = BoundedTaskRunner(concurrency=audit.concurrency, show_progress=audit.show_progress)

    async def fetch_all(active: ReplicaTransport) -> dict[ServerAddress, list[DeploymentEvent]]:
        histories: dict[ServerAddress, list[DeploymentEvent]] = {}

        async def fetch(server: ServerAddress) -> None:
            log.info("Getting history for %s", server)
            try:
                histories[server] = await active.fetch_history(server, to=to)
            except TransportError as exc:
                log.error("Could not download history from %s: %s", server, exc)

        await runner.run("Downloading histories", addresses, fetch)
        return {server: histories[server] for server in addresses if server in histories}

    if transport is not None:
        return await fetch_all(transport)
    async with HttpReplicaTransport(audit=audit) as http_transport:
        return await fetch_all(http_transport)


def compare_history_files(
    input_dir: str | Path,
    output_dir: str | Path,
    *,
    excluded_server_names: frozenset[str] = DEFAULT_EXCLUDED_SERVER_NAMES,
) -> dict[str, int]:
    """Write ``missing-<name>`` for every history file in ``input_dir``.

    Returns the number of missing events per history file.
    """

    source = Path(input_dir)
    target = Path(output_dir)
    target.mkdir(parents=True, exist_ok=True)

    histories = {
        path.name: read_history(path) for path in sorted(source.iterdir()) if path.is_file()
    }
    log.info("Comparing %s stored histories from %s", len(histories), source)

    missing = compare_histories(histories, excluded_server_names=excluded_server_names)
    for name, events in missing.items():
        write_history(target / f"{MISSING_HISTORY_PREFIX}{name}", events)
        log.info("Comparing %s: %s events missing", name, len(events))
    return {name: len(events) for name, events in missing.items()}
