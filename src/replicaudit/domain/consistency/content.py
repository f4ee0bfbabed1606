"""Content availability and byte-level integrity checks."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from replicaudit.domain.errors import TransportError

from .chunking import split_into_chunks

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from replicaudit.domain.types import EntityRef, FileHash, ReferencedContent, ServerAddress

    from .state import CheckContext, OverwrittenEntities

log = getLogger(__name__)


@dataclass(slots=True)
class ContentExistenceResult:
    failed_content: set[FileHash] = field(default_factory=set)
    available_everywhere: list[FileHash] = field(default_factory=list)
    exempt: int = 0


def is_exempt_from_availability(
    file_hash: FileHash,
    refs: Sequence[EntityRef],
    overwritten: OverwrittenEntities,
) -> bool:
    """Content of overwritten entities may be garbage collected by replicas.

    Entity documents themselves are never exempt, and a hash stays required as long
    as one entity referencing it is still active.
    """

    if any(ref.entity_id == file_hash for ref in refs):
        return False
    return bool(refs) and all(ref.entity_id in overwritten for ref in refs)


def required_hashes(
    referenced_content: Mapping[FileHash, Sequence[EntityRef]],
    overwritten: OverwrittenEntities,
) -> list[FileHash]:
    return [
        file_hash
        for file_hash, refs in referenced_content.items()
        if not is_exempt_from_availability(file_hash, refs, overwritten)
    ]


def choose_sample[T](items: Sequence[T], percentage: int, rng: random.Random) -> list[T]:
    """Pick ``percentage`` percent of ``items`` (rounded up), without replacement."""

    if percentage <= 0 or not items:
        return []
    size = min(len(items), math.ceil(len(items) * percentage / 100))
    return rng.sample(list(items), size)


@dataclass(slots=True)
class ContentExistenceChecker:
    """Ask every replica whether each required content hash is available."""

    context: CheckContext

    async def __call__(
        self,
        referenced_content: ReferencedContent,
        servers: Sequence[ServerAddress],
    ) -> ContentExistenceResult:
        sink = self.context.sink
        result = ContentExistenceResult()
        hashes = required_hashes(referenced_content, self.context.overwritten)
        result.exempt = len(referenced_content) - len(hashes)
        missing_on: dict[FileHash, list[ServerAddress]] = {}

        async def check_batch(batch: list[FileHash]) -> None:
            for server in servers:
                try:
                    availability = await self.context.transport.fetch_content_availability(
                        server, batch
                    )
                except TransportError as exc:
                    result.failed_content.update(batch)
                    sink.failed(
                        f"Failed to check availability of content with hashes {batch} "
                        f"on {server}: {exc}"
                    )
                    continue
                for file_hash in batch:
                    if not availability.get(file_hash, False):
                        missing_on.setdefault(file_hash, []).append(server)

        batches = split_into_chunks(hashes, self.context.chunk_size)
        await self.context.runner.run("Checking content existence", batches, check_batch)

        sink.log(f"Checked available hashes. {result.exempt} were not present due to overwrite")

        for file_hash in sorted(missing_on):
            result.failed_content.add(file_hash)
            sink.failed(
                f"The following hash was not available, when it should have {file_hash}. "
                f"Missing on {sorted(missing_on[file_hash])}"
            )

        result.available_everywhere = [
            file_hash for file_hash in hashes if file_hash not in result.failed_content
        ]
        return result


@dataclass(slots=True)
class ContentIntegrityChecker:
    """Download a sample of content from every replica and compare the bytes."""

    context: CheckContext
    sample_percentage: int = 0
    rng: random.Random = field(default_factory=random.Random)

    async def __call__(
        self,
        hashes: Sequence[FileHash],
        servers: Sequence[ServerAddress],
    ) -> set[FileHash]:
        failed: set[FileHash] = set()
        sample = choose_sample(sorted(hashes), self.sample_percentage, self.rng)
        if not sample:
            return failed

        reference_server = servers[0]
        transport = self.context.transport
        sink = self.context.sink

        async def check_file(file_hash: FileHash) -> None:
            try:
                reference = await transport.fetch_content(reference_server, file_hash)
            except TransportError:
                failed.add(file_hash)
                sink.failed(
                    f"Failed to fetch content with hash {file_hash} from server {reference_server}"
                )
                return
            for server in servers[1:]:
                try:
                    content = await transport.fetch_content(server, file_hash)
                except TransportError:
                    failed.add(file_hash)
                    sink.failed(
                        f"Failed to fetch content with hash {file_hash} from server {server}"
                    )
                    continue
                if content != reference:
                    failed.add(file_hash)
                    sink.failed(
                        f"Found a mismatch. Content from file {file_hash} is different in "
                        f"{reference_server} and {server}"
                    )

        await self.context.runner.run("Checking content values", sample, check_file)
        log.info("Compared %s content files: %s failed", len(sample), len(failed))
        return failed
