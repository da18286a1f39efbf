"""Batched, capped-concurrency execution of deploy actions.

Modules are split into consecutive batches of ``concurrency`` members. All
members of a batch are launched together and the batch completes only when
every member has settled; one failure never cancels its siblings. Batches run
strictly in order with a pacing delay between them (not after the last) to
respect upstream rate limits.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from shipyard.deploy.failures import categorize_error
from shipyard.lib.logging_config import get_logger
from shipyard.models.deployment import (
    DEFAULT_PACING_SECONDS,
    MAX_CONCURRENCY,
    MIN_CONCURRENCY,
    DeployOutcome,
    Module,
)

logger = get_logger(__name__)

T = TypeVar("T")

DeployAction = Callable[[Module], Awaitable[DeployOutcome]]
Sleep = Callable[[float], Awaitable[None]]


def partition_batches(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into consecutive batches of at most ``size`` elements."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def validate_concurrency(concurrency: int) -> int:
    """Return concurrency if it is within the supported range.

    Raises:
        ValueError: If concurrency is outside [1, 3]
    """
    if not MIN_CONCURRENCY <= concurrency <= MAX_CONCURRENCY:
        raise ValueError(
            f"Concurrency must be between {MIN_CONCURRENCY} and {MAX_CONCURRENCY}"
        )
    return concurrency


class BatchExecutor:
    """Drive a deploy action over modules in paced batches."""

    def __init__(
        self,
        concurrency: int,
        environment: str,
        pacing_seconds: float = DEFAULT_PACING_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the executor.

        Args:
            concurrency: Batch size, 1 to 3
            environment: Stage recorded on outcomes synthesized for crashes
            pacing_seconds: Delay inserted between batches
            sleep: Awaitable sleep used for pacing (injectable for tests)
        """
        self.concurrency = validate_concurrency(concurrency)
        self.environment = environment
        self.pacing_seconds = pacing_seconds
        self._sleep = sleep

    async def _settle(
        self, module: Module, deploy_action: DeployAction
    ) -> DeployOutcome:
        started = time.monotonic()
        try:
            return await deploy_action(module)
        except Exception as e:
            logger.exception(f"Deploy action for {module.name} raised")
            message = str(e) or type(e).__name__
            return DeployOutcome(
                module_name=module.name,
                success=False,
                duration_ms=int((time.monotonic() - started) * 1000),
                environment=self.environment,
                error_message=message,
                failure_category=categorize_error(message),
                output_excerpt=message[:1000],
            )

    async def run(
        self, modules: Sequence[Module], deploy_action: DeployAction
    ) -> list[DeployOutcome]:
        """Deploy modules batch by batch.

        Args:
            modules: Modules to deploy, in order
            deploy_action: Coroutine function deploying one module

        Returns:
            One outcome per module, in input order
        """
        batches = partition_batches(modules, self.concurrency)
        outcomes: list[DeployOutcome] = []
        position = 0

        for number, batch in enumerate(batches, start=1):
            logger.info(
                f"Batch {number}/{len(batches)}: deploying "
                f"{', '.join(m.name for m in batch)}"
            )
            tasks = []
            for module in batch:
                position += 1
                logger.debug(f"[{position}/{len(modules)}] Starting {module.name}")
                tasks.append(asyncio.ensure_future(self._settle(module, deploy_action)))

            outcomes.extend(await asyncio.gather(*tasks))

            if number < len(batches):
                logger.info(
                    f"Batch complete. Waiting {self.pacing_seconds:g} seconds "
                    "before next batch"
                )
                await self._sleep(self.pacing_seconds)

        return outcomes
