"""
Pending deletion request store for the Project Review Queue.

Holds the reviewer's current working set of pending deletion requests.
Loading fans out one backend fetch per subject domain concurrently; a
domain that fails contributes nothing and is logged, never raised.

Requests settled locally (approved or rejected) stay excluded from later
loads, so a reload racing a slow backend cannot bring them back. A settled
id is forgotten once a successful fetch of the domain it came from no
longer lists it.
"""

import asyncio
import logging
from collections.abc import Iterable

from prq.backend.base import ReviewBackend
from prq.models import DeletionRequest
from prq.services.reconciliation import dedupe_requests

logger = logging.getLogger(__name__)


class RequestStore:
    """Current set of pending deletion requests for one review session."""

    def __init__(self, backend: ReviewBackend):
        self.backend = backend
        self._requests: list[DeletionRequest] = []
        # request_id -> subject domain it was loaded from
        self._origins: dict[str, str] = {}
        # request_id -> origin domain (None when it was never loaded here)
        self._settled: dict[str, str | None] = {}

    @property
    def requests(self) -> list[DeletionRequest]:
        """Snapshot of the stored requests."""
        return list(self._requests)

    @property
    def settled_ids(self) -> set[str]:
        """Ids settled locally that later loads still filter out."""
        return set(self._settled)

    def __len__(self) -> int:
        return len(self._requests)

    def __contains__(self, request_id: object) -> bool:
        return any(r.request_id == request_id for r in self._requests)

    async def load(self, subject_domains: Iterable[str]) -> list[DeletionRequest]:
        """
        Fetch pending requests for every subject domain and replace the store.

        Args:
            subject_domains: Domains to fetch; blanks and repeats are skipped

        Returns:
            Pending project/stage/task requests, unique by request_id
        """
        domains = list(dict.fromkeys(d for d in subject_domains if d and d.strip()))

        results = await asyncio.gather(
            *(self.backend.get_deletion_requests(domain) for domain in domains),
            return_exceptions=True,
        )

        fetched: dict[str, list[DeletionRequest]] = {}
        for domain, result in zip(domains, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning(f"Error loading deletion requests for {domain!r}: {result}")
                continue
            fetched[domain] = list(result)

        origins: dict[str, str] = {}
        collected: list[DeletionRequest] = []
        for domain, requests in fetched.items():
            for request in requests:
                origins.setdefault(request.request_id, domain)
                collected.append(request)

        pending = dedupe_requests(
            r for r in collected if r.is_reviewable and r.request_id not in self._settled
        )
        self._release_settled(fetched, complete=len(fetched) == len(domains))
        logger.info(
            f"Loaded {len(pending)} pending deletion requests across {len(domains)} subject domains"
        )

        self._requests = pending
        self._origins = {r.request_id: origins[r.request_id] for r in pending}
        return list(pending)

    def remove(self, request_id: str) -> bool:
        """Drop a settled request immediately. Returns whether it was present."""
        self._settled[request_id] = self._origins.get(request_id)
        before = len(self._requests)
        self._requests = [r for r in self._requests if r.request_id != request_id]
        return len(self._requests) != before

    def without(self, request_id: str) -> list[DeletionRequest]:
        """The stored requests minus ``request_id``, leaving the store as is."""
        return [r for r in self._requests if r.request_id != request_id]

    def _release_settled(
        self, fetched: dict[str, list[DeletionRequest]], complete: bool
    ) -> None:
        """Forget settled ids the backend has stopped returning."""
        seen = {domain: {r.request_id for r in requests} for domain, requests in fetched.items()}
        for request_id, origin in list(self._settled.items()):
            if origin is None:
                returned = not complete or any(request_id in ids for ids in seen.values())
            elif origin in seen:
                returned = request_id in seen[origin]
            else:
                returned = True
            if not returned:
                del self._settled[request_id]
                logger.debug(f"Deletion request {request_id} settled on the backend")
