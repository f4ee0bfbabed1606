"""Bounded concurrent execution of async units of work."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from tqdm import tqdm

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from .state import CancellationToken

log = getLogger(__name__)

PROGRESS_LABEL_WIDTH = 22


@dataclass(slots=True)
class BoundedTaskRunner:
    """Run at most ``concurrency`` units at once, with a progress bar per phase.

    Submission of the next unit waits for a free slot, so a cancelled token stops the
    run from starting new work while in-flight units finish normally. Results are
    returned in submission order for the units that were started.
    """

    concurrency: int = 15
    show_progress: bool = True
    cancellation: CancellationToken | None = None

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("Concurrency must be at least 1")

    async def run[T, R](
        self,
        description: str,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
    ) -> list[R]:
        semaphore = asyncio.Semaphore(self.concurrency)
        results: dict[int, R] = {}

        with tqdm(
            total=len(items),
            desc=description.ljust(PROGRESS_LABEL_WIDTH),
            disable=not self.show_progress,
            leave=False,
        ) as progress:

            async def run_one(index: int, item: T) -> None:
                try:
                    results[index] = await worker(item)
                finally:
                    semaphore.release()
                    progress.update(1)

            async with asyncio.TaskGroup() as group:
                for index, item in enumerate(items):
                    await semaphore.acquire()
                    if self.cancellation is not None and self.cancellation.cancelled:
                        semaphore.release()
                        log.warning(
                            "%s: stopped after %s of %s units (%s)",
                            description,
                            index,
                            len(items),
                            self.cancellation.reason,
                        )
                        break
                    group.create_task(run_one(index, item))

        return [results[index] for index in sorted(results)]
