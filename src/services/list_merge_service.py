"""
Merging one list's bookmarks into another.

A merge copies the source list's current members into a manual destination
list. It is additive and idempotent: the source is never touched, bookmarks
already in the destination are counted as duplicates, and re-running a merge
only fills whatever gap is left.

Each source bookmark is decided independently (duplicate, added, or failed)
by a bounded pool of tasks. Every add is its own atomic write, so a failure
on one bookmark is counted and logged without affecting the others or
aborting the merge. Task outcomes flow back through ``asyncio.as_completed``
into a single aggregation loop, so there are no shared counters.
"""
import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Literal
from uuid import UUID

from core.config import get_settings
from schemas.bookmark_list import MergeListResponse
from services.exceptions import (
    AlreadyMemberError,
    MergeCancelledError,
    MergeListNotFoundError,
    SameListMergeError,
    SmartListMergeTargetError,
)
from services.list_membership import MembershipStore

logger = logging.getLogger(__name__)

ItemStatus = Literal["added", "duplicate", "failed"]


@dataclass(frozen=True)
class ItemOutcome:
    """Decision reached for one source bookmark."""

    bookmark_id: UUID
    status: ItemStatus
    error: str | None = None


def aggregate_outcomes(total_items: int, outcomes: Counter[ItemStatus]) -> MergeListResponse:
    """Build the merge result from per-status counts."""
    return MergeListResponse(
        total_items=total_items,
        added_count=outcomes["added"],
        duplicate_count=outcomes["duplicate"],
        failed_count=outcomes["failed"],
    )


async def _merge_one(
    store: MembershipStore,
    target_id: UUID,
    bookmark_id: UUID,
    target_members: frozenset[UUID],
    semaphore: asyncio.Semaphore,
) -> ItemOutcome:
    if bookmark_id in target_members:
        return ItemOutcome(bookmark_id, "duplicate")
    async with semaphore:
        try:
            await store.add_member(target_id, bookmark_id)
        except AlreadyMemberError:
            # Added by someone else since the target snapshot was taken
            return ItemOutcome(bookmark_id, "duplicate")
        except Exception as e:
            logger.warning(
                "Failed to add bookmark %s to list %s during merge: %s",
                bookmark_id,
                target_id,
                e,
            )
            return ItemOutcome(bookmark_id, "failed", error=str(e))
    return ItemOutcome(bookmark_id, "added")


def _log_failures(source_id: UUID, target_id: UUID, failures: list[ItemOutcome]) -> None:
    if not failures:
        return
    logger.warning(
        "Merge of list %s into %s failed for %d bookmarks: %s",
        source_id,
        target_id,
        len(failures),
        ", ".join(f"{outcome.bookmark_id} ({outcome.error})" for outcome in failures),
    )


async def _cancel_all(tasks: list[asyncio.Task[ItemOutcome]]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


async def merge_lists(
    store: MembershipStore,
    source_id: UUID,
    target_id: UUID,
    *,
    concurrency: int | None = None,
    timeout: float | None = None,
) -> MergeListResponse:
    """
    Add every member of the source list to the target list.

    Args:
        store: Membership storage (the database in production).
        source_id: List whose members are copied. Manual lists contribute their
            stored members; smart lists a snapshot of their query's matches.
        target_id: Manual list receiving the members.
        concurrency: Maximum concurrent writes. Defaults to MERGE_CONCURRENCY.
        timeout: Seconds allowed for the whole merge. Defaults to
            MERGE_TIMEOUT_SECONDS.

    Returns:
        Counts of considered, added, duplicate and failed bookmarks. Item
        failures do not make the call fail.

    Raises:
        SameListMergeError: If source and target are the same list.
        MergeListNotFoundError: If either list does not exist.
        SmartListMergeTargetError: If the target is a smart list.
        MergeCancelledError: If the timeout expires; carries the partial counts.
            Additions made before the deadline are kept.
    """
    settings = get_settings()
    concurrency = concurrency or settings.merge_concurrency
    timeout = settings.merge_timeout_seconds if timeout is None else timeout

    if source_id == target_id:
        raise SameListMergeError(source_id)

    source = await store.get_list(source_id)
    if source is None:
        raise MergeListNotFoundError(source_id)
    target = await store.get_list(target_id)
    if target is None:
        raise MergeListNotFoundError(target_id)
    if target.is_smart:
        raise SmartListMergeTargetError(target_id)

    source_members = await store.get_member_ids(source)
    total_items = len(source_members)
    if total_items == 0:
        logger.info("Merge of list %s into %s: source is empty", source_id, target_id)
        return MergeListResponse()

    target_members = frozenset(await store.get_member_ids(target))
    semaphore = asyncio.Semaphore(concurrency)
    tasks = [
        asyncio.create_task(_merge_one(store, target_id, bookmark_id, target_members, semaphore))
        for bookmark_id in source_members
    ]

    outcomes: Counter[ItemStatus] = Counter()
    failures: list[ItemOutcome] = []
    try:
        async with asyncio.timeout(timeout):
            for next_done in asyncio.as_completed(tasks):
                outcome = await next_done
                outcomes[outcome.status] += 1
                if outcome.status == "failed":
                    failures.append(outcome)
    except TimeoutError:
        await _cancel_all(tasks)
        partial = aggregate_outcomes(total_items, outcomes)
        logger.warning(
            "Merge of list %s into %s timed out after %.1fs: %s",
            source_id,
            target_id,
            timeout,
            partial.model_dump(),
        )
        _log_failures(source_id, target_id, failures)
        raise MergeCancelledError(partial) from None
    except asyncio.CancelledError:
        await _cancel_all(tasks)
        raise

    result = aggregate_outcomes(total_items, outcomes)
    _log_failures(source_id, target_id, failures)
    if result.processed != result.total_items:
        logger.warning(
            "Merge of list %s into %s accounted for %d of %d bookmarks",
            source_id,
            target_id,
            result.processed,
            result.total_items,
        )
    logger.info("Merged list %s into %s: %s", source_id, target_id, result.model_dump())
    return result
