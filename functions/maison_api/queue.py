"""
Work queue for analysis jobs.

Each job kind has its own list, so a backlog of plan analyses can be watched
apart from quote analyses. Workers pop from every list in `DISPATCH_ORDER`;
the job record itself stays in the database and is claimed there.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from maison_api.db import AnalysisJobRecord, JobKind

logger = logging.getLogger(__name__)

# Plan analyses feed the budget screen the user is waiting on.
DISPATCH_ORDER = (JobKind.PLAN, JobKind.QUOTES)


class JobQueue(Protocol):
    def enqueue(self, job: AnalysisJobRecord) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        """Return the next job id, or None when every list is empty."""
        ...


@dataclass
class InMemoryJobQueue:
    lists: dict[JobKind, list[str]] = field(
        default_factory=lambda: {kind: [] for kind in DISPATCH_ORDER}
    )

    def enqueue(self, job: AnalysisJobRecord) -> None:
        self.lists[job.kind].append(job.job_id)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        for kind in DISPATCH_ORDER:
            if self.lists[kind]:
                return self.lists[kind].pop(0)
        return None

    def pending(self) -> int:
        return sum(len(ids) for ids in self.lists.values())


@dataclass
class RedisJobQueue:
    """One Redis list per job kind; BLPOP serves them in dispatch order."""

    url: str
    key_prefix: str = "maison:jobs"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def key_for(self, kind: JobKind) -> str:
        return f"{self.key_prefix}:{kind.value}"

    def enqueue(self, job: AnalysisJobRecord) -> None:
        self.client.rpush(self.key_for(job.kind), job.job_id)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        keys = [self.key_for(kind) for kind in DISPATCH_ORDER]
        try:
            if block:
                popped = self.client.blpop(keys, timeout=timeout or 0)
                job_id = popped[1] if popped else None
            else:
                job_id = None
                for key in keys:
                    job_id = self.client.lpop(key)
                    if job_id is not None:
                        break
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect and report empty.
            logger.warning("Redis connection lost, reconnecting")
            self.client = redis.Redis.from_url(self.url)
            return None
        if job_id is None:
            return None
        return job_id.decode("utf-8")
