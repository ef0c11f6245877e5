"""
app/services/cleanup.py — Periodic sweeps of in-memory state
Store TTL sweep (hourly) and rate-limiter sweep (every 5 minutes) run as
asyncio tasks owned by a PeriodicSweeper, started in the app lifespan
and cancelled on shutdown. A failing sweep is logged and retried on the
next tick; it never kills the loop.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from app.core import logging as app_logging


@dataclass
class SweepJob:
    name: str
    interval_seconds: float
    sweep: Callable[[], int]
    size: Callable[[], int]


def run_sweep(job: SweepJob) -> int:
    """Run one sweep and log the outcome. Returns entries removed."""
    removed = job.sweep()
    app_logging.log_sweep(job.name, removed=removed, remaining=job.size())
    return removed


async def _sweep_loop(job: SweepJob) -> None:
    while True:
        await asyncio.sleep(job.interval_seconds)
        try:
            run_sweep(job)
        except Exception as exc:
            app_logging.log_error(job.name, "sweep", exc)


class PeriodicSweeper:
    """Owns one background task per SweepJob."""

    def __init__(self, jobs: list[SweepJob]) -> None:
        self.jobs = jobs
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(_sweep_loop(job), name=f"sweep:{job.name}")
            for job in self.jobs
        ]
        for job in self.jobs:
            logger.info(f"Sweep '{job.name}' scheduled every {job.interval_seconds:g}s.")

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    def run_all(self) -> dict[str, int]:
        """Sweep everything immediately."""
        return {job.name: run_sweep(job) for job in self.jobs}
