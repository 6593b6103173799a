"""Polling helpers for asynchronous pipeline tests."""

import asyncio
import json
import os
import time
from pathlib import Path

from voice_clone.trainer.jobs import JobStore, TrainingJob


async def wait_for_job(pipeline, job_id, predicate, timeout=20.0) -> TrainingJob:
    """Poll the pipeline until predicate(job) holds."""
    deadline = time.monotonic() + timeout
    while True:
        job = pipeline.get(job_id)
        if predicate(job):
            return job
        if time.monotonic() > deadline:
            raise AssertionError(f"Timed out waiting for job {job_id}; last state: {job.status.value}")
        await asyncio.sleep(0.05)


async def wait_until_terminal(pipeline, job_id, timeout=20.0) -> TrainingJob:
    return await wait_for_job(pipeline, job_id, lambda job: job.is_terminal, timeout)


def set_behavior(root: Path, **behavior):
    """Configure the fake toolkit, e.g. set_behavior(root, train="hang")."""
    (root / "fake_toolkit.json").write_text(json.dumps(behavior))


class RecordingJobStore(JobStore):
    """JobStore that keeps every snapshot written by the driver."""

    def __init__(self):
        super().__init__()
        self.updates = []

    def update(self, job_id, status=None, reason=None, **changes):
        snapshot = super().update(job_id, status=status, reason=reason, **changes)
        self.updates.append(snapshot)
        return snapshot

    def trace(self, job_id):
        return [job for job in self.updates if job.id == job_id]


def process_alive(pid: int) -> bool:
    """True while pid exists and is not a zombie waiting to be reaped."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    try:
        with open(f"/proc/{pid}/stat") as f:
            state = f.read().rsplit(")", 1)[1].split()[0]
    except FileNotFoundError:
        # Gone between the two checks, or no procfs to tell zombies apart
        return not os.path.isdir("/proc")
    except IndexError:
        return True
    return state != "Z"


async def wait_process_gone(pid: int, timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while process_alive(pid):
        if time.monotonic() > deadline:
            return False
        await asyncio.sleep(0.05)
    return True
