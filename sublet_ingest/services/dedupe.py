from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Literal

from opentelemetry import trace

if TYPE_CHECKING:
    from sublet_ingest.services.repository import ListingRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

GroupKey = Literal["sourceUrl", "contentHash"]

DEFAULT_DELETE_BATCH_SIZE = 400


@dataclass(slots=True)
class DedupeRecordSnapshot:
    record_id: str
    source_url: str | None
    content_hash: str | None
    needs_review: bool
    lat: float | None
    lng: float | None


@dataclass(slots=True)
class DedupGroup:
    key_kind: GroupKey
    key: str
    members: list[DedupeRecordSnapshot]

    @property
    def survivor(self) -> DedupeRecordSnapshot:
        return choose_survivor(self.members)

    @property
    def delete_ids(self) -> list[str]:
        keep_id = self.survivor.record_id
        return [member.record_id for member in self.members if member.record_id != keep_id]


@dataclass(slots=True)
class DedupPlan:
    total_docs: int
    groups: list[DedupGroup] = field(default_factory=list)

    @property
    def docs_to_delete(self) -> int:
        return sum(len(group.delete_ids) for group in self.groups)


@dataclass(slots=True)
class DedupApplyResult:
    total_docs: int
    duplicate_groups: int
    deleted: int


def score_record(snapshot: DedupeRecordSnapshot) -> int:
    score = 0
    if not snapshot.needs_review:
        score += 2
    if snapshot.lat is not None and snapshot.lat != 0:
        score += 2
    if snapshot.content_hash:
        score += 1
    if snapshot.source_url:
        score += 1
    return score


def choose_survivor(members: list[DedupeRecordSnapshot]) -> DedupeRecordSnapshot:
    """Highest score wins; on a tie the earliest member is kept."""
    best = members[0]
    best_score = score_record(best)
    for member in members[1:]:
        member_score = score_record(member)
        if member_score > best_score:
            best, best_score = member, member_score
    return best


def find_duplicate_groups(snapshots: list[DedupeRecordSnapshot]) -> list[DedupGroup]:
    by_url: dict[str, list[DedupeRecordSnapshot]] = {}
    by_hash: dict[str, list[DedupeRecordSnapshot]] = {}
    for snapshot in snapshots:
        url = (snapshot.source_url or "").strip()
        if url:
            by_url.setdefault(url, []).append(snapshot)
        elif snapshot.content_hash:
            by_hash.setdefault(snapshot.content_hash, []).append(snapshot)

    groups = [DedupGroup("sourceUrl", url, members) for url, members in by_url.items() if len(members) > 1]
    groups.extend(DedupGroup("contentHash", key, members) for key, members in by_hash.items() if len(members) > 1)
    return groups


class DuplicateResolver:
    def __init__(self, repository: ListingRepository, *, delete_batch_size: int = DEFAULT_DELETE_BATCH_SIZE) -> None:
        self._repository = repository
        self._delete_batch_size = max(1, delete_batch_size)

    async def dry_run(self) -> DedupPlan:
        with tracer.start_as_current_span("dedup.plan") as span:
            snapshots = await self._repository.list_dedupe_snapshots()
            plan = DedupPlan(total_docs=len(snapshots), groups=find_duplicate_groups(snapshots))
            span.set_attribute("dedup.total_docs", plan.total_docs)
            span.set_attribute("dedup.groups", len(plan.groups))
            return plan

    async def apply(self) -> DedupApplyResult:
        plan = await self.dry_run()
        delete_ids = [record_id for group in plan.groups for record_id in group.delete_ids]
        deleted = 0
        if delete_ids:
            with tracer.start_as_current_span("dedup.apply") as span:
                deleted = await self._repository.delete_listings(delete_ids, batch_size=self._delete_batch_size)
                span.set_attribute("dedup.deleted", deleted)
        logger.info("dedup deleted %s duplicate listings from %s total", deleted, plan.total_docs)
        return DedupApplyResult(total_docs=plan.total_docs, duplicate_groups=len(plan.groups), deleted=deleted)
