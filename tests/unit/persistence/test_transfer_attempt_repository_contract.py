# -*- coding: utf-8 -*-
"""Behaviour shared by every ITransferAttemptRepository implementation.

The ``repo`` fixture runs each test against the in-memory and the SQL repository.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from token_transfers.exceptions import (
    InvalidTransitionError,
    TransferConflictError,
    TransferNotFoundError,
    TransferValidationError,
)
from token_transfers.models.query import Page, SortColumn, TransferFilter, TransferSort
from token_transfers.models.transfer_attempt import (
    TransferAttempt,
    TransferAttemptPatch,
    TransferErrorType,
    TransferStatus,
)
from token_transfers.persistence.repositories.interfaces import (
    ITransferAttemptRepository,
    SaveOptions,
)


# -----------------------------------------------------------------------------
# Create and read
# -----------------------------------------------------------------------------


async def test_create_first_attempt_is_one_with_version_one(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
) -> None:
    created = await repo.create_attempt(transfer_factory())

    assert created.attempt == 1
    assert created.version == 1
    assert created.updated_at is not None
    assert created.status == TransferStatus.REQUESTED


async def test_create_ignores_number_on_draft(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
) -> None:
    created = await repo.create_attempt(transfer_factory(attempt=7))
    assert created.attempt == 1


async def test_create_numbers_follow_highest_existing(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
) -> None:
    for _ in range(3):
        await repo.create_attempt(transfer_factory())

    fourth = await repo.create_attempt(transfer_factory())

    assert fourth.attempt == 4


async def test_create_numbers_are_per_product(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
) -> None:
    await repo.create_attempt(transfer_factory(product_id="P1"))
    await repo.create_attempt(transfer_factory(product_id="P1"))
    other = await repo.create_attempt(transfer_factory(product_id="P2"))

    assert other.attempt == 1


async def test_concurrent_creates_get_distinct_consecutive_numbers(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    product_id: str,
) -> None:
    created = await asyncio.gather(*(repo.create_attempt(transfer_factory()) for _ in range(10)))

    assert sorted(t.attempt for t in created) == list(range(1, 11))
    assert len(await repo.list_by_product_id(product_id)) == 10


async def test_create_rejects_draft_not_in_requested(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
) -> None:
    with pytest.raises(TransferValidationError) as exc_info:
        await repo.create_attempt(transfer_factory().mark_error("timeout"))
    assert exc_info.value.field == "status"


async def test_deleted_numbers_are_not_reused(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    product_id: str,
) -> None:
    await repo.create_attempt(transfer_factory())
    await repo.create_attempt(transfer_factory())
    await repo.delete(product_id, 2)

    third = await repo.create_attempt(transfer_factory())

    assert third.attempt == 3
    assert [t.attempt for t in await repo.list_by_product_id(product_id)] == [1, 3]


async def test_get_latest_returns_highest_attempt(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    product_id: str,
) -> None:
    await repo.create_attempt(transfer_factory())
    second = await repo.create_attempt(transfer_factory())

    latest = await repo.get_latest_by_product_id(f"  {product_id} ")

    assert latest == second


async def test_reads_return_none_or_empty_for_unknown(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    product_id: str,
) -> None:
    await repo.create_attempt(transfer_factory())

    assert await repo.get_latest_by_product_id("unknown") is None
    assert await repo.get_by_product_id_and_attempt(product_id, 2) is None
    assert await repo.get_by_product_id_and_attempt("unknown", 1) is None
    assert await repo.list_by_product_id("unknown") == []


async def test_roundtrip_keeps_every_field(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    now_utc: datetime,
) -> None:
    created = await repo.create_attempt(transfer_factory(order_id="O-1", owner_id="avatar-1"))
    failed = await repo.save(created.mark_error("insufficient_balance", message="0 SOL"))

    loaded = await repo.get_by_product_id_and_attempt(created.product_id, created.attempt)

    assert loaded == failed
    assert loaded is not None
    assert loaded.requested_at == now_utc
    assert loaded.requested_at.utcoffset() == timedelta(0)
    assert loaded.error_type == TransferErrorType.INSUFFICIENT_BALANCE
    assert loaded.error_message == "0 SOL"
    assert loaded.order_id == "O-1"


async def test_list_by_product_id_orders_by_attempt_ascending(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    product_id: str,
    now_utc: datetime,
) -> None:
    for minutes in (30, 10, 20):
        await repo.create_attempt(transfer_factory(requested_at=now_utc + timedelta(minutes=minutes)))

    history = await repo.list_by_product_id(product_id)

    assert [t.attempt for t in history] == [1, 2, 3]


# -----------------------------------------------------------------------------
# Save and patch
# -----------------------------------------------------------------------------


async def test_save_bumps_version_and_updated_at(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    now_utc: datetime,
) -> None:
    created = await repo.create_attempt(transfer_factory())

    saved = await repo.save(created.mark_fulfilled(now_utc + timedelta(minutes=1), tx_signature="sig"))

    assert saved.version == 2
    assert saved.status == TransferStatus.FULFILLED
    assert saved.tx_signature == "sig"
    assert saved.updated_at is not None and created.updated_at is not None
    assert saved.updated_at > created.updated_at


async def test_save_with_stale_expected_version_conflicts(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    now_utc: datetime,
) -> None:
    created = await repo.create_attempt(transfer_factory())
    await repo.save(created.mark_fulfilled(now_utc), SaveOptions(expected_version=1))

    with pytest.raises(TransferConflictError) as exc_info:
        await repo.save(created.mark_error("timeout"), SaveOptions(expected_version=1))

    assert exc_info.value.expected_version == 1
    assert exc_info.value.actual_version == 2
    stored = await repo.get_by_product_id_and_attempt(created.product_id, created.attempt)
    assert stored is not None and stored.status == TransferStatus.FULFILLED


async def test_save_missing_attempt_raises_not_found(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
) -> None:
    with pytest.raises(TransferNotFoundError):
        await repo.save(transfer_factory(attempt=9))


async def test_save_refuses_error_back_to_requested(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
) -> None:
    created = await repo.create_attempt(transfer_factory())
    failed = await repo.save(created.mark_error("network_error"))

    with pytest.raises(InvalidTransitionError, match="create a new attempt"):
        await repo.save(failed.transition(TransferStatus.REQUESTED))
    with pytest.raises(InvalidTransitionError):
        await repo.patch(failed.product_id, failed.attempt, TransferAttemptPatch(status="requested"))

    stored = await repo.get_by_product_id_and_attempt(failed.product_id, failed.attempt)
    assert stored == failed


async def test_save_refuses_move_out_of_fulfilled(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    now_utc: datetime,
) -> None:
    created = await repo.create_attempt(transfer_factory())
    await repo.save(created.mark_fulfilled(now_utc))
    overwrite = transfer_factory(attempt=created.attempt, status="error", error_type="timeout")

    with pytest.raises(InvalidTransitionError) as exc_info:
        await repo.save(overwrite)
    assert exc_info.value.from_status == TransferStatus.FULFILLED


async def test_save_refuses_changing_requested_at(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
) -> None:
    created = await repo.create_attempt(transfer_factory())

    with pytest.raises(TransferValidationError) as exc_info:
        await repo.save(replace(created, requested_at=created.requested_at - timedelta(hours=1)))
    assert exc_info.value.field == "requested_at"


async def test_patch_applies_status_and_side_fields_together(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    now_utc: datetime,
) -> None:
    created = await repo.create_attempt(transfer_factory())
    at = now_utc + timedelta(minutes=2)

    patched = await repo.patch(
        created.product_id,
        created.attempt,
        TransferAttemptPatch(status="fulfilled", transferred_at=at, tx_signature="sig-9"),
    )

    assert patched.status == TransferStatus.FULFILLED
    assert patched.transferred_at == at
    assert patched.tx_signature == "sig-9"
    assert patched.version == 2


async def test_patch_empty_returns_current_without_write(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
) -> None:
    created = await repo.create_attempt(transfer_factory())

    patched = await repo.patch(created.product_id, created.attempt, TransferAttemptPatch())

    assert patched == created


async def test_patch_missing_attempt_raises_not_found(repo: ITransferAttemptRepository) -> None:
    with pytest.raises(TransferNotFoundError):
        await repo.patch("P404", 1, TransferAttemptPatch(status="error", error_type="timeout"))


async def test_patch_with_stale_expected_version_conflicts(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
) -> None:
    created = await repo.create_attempt(transfer_factory())
    await repo.patch(created.product_id, created.attempt, TransferAttemptPatch(tx_signature="a"))

    with pytest.raises(TransferConflictError):
        await repo.patch(
            created.product_id,
            created.attempt,
            TransferAttemptPatch(status="error", error_type="timeout"),
            SaveOptions(expected_version=1),
        )


# -----------------------------------------------------------------------------
# Delete and reset
# -----------------------------------------------------------------------------


async def test_delete_missing_attempt_raises_not_found(repo: ITransferAttemptRepository) -> None:
    with pytest.raises(TransferNotFoundError):
        await repo.delete("P404", 1)


async def test_reset_clears_attempts_and_counters(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
) -> None:
    await repo.create_attempt(transfer_factory())
    await repo.create_attempt(transfer_factory(product_id="P2"))

    await repo.reset()

    assert await repo.count() == 0
    again = await repo.create_attempt(transfer_factory())
    assert again.attempt == 1


# -----------------------------------------------------------------------------
# Listing
# -----------------------------------------------------------------------------


async def _seed_timeline(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    now_utc: datetime,
) -> None:
    """P1#1 (t0, error), P2#1 (t0+1m, fulfilled at t0+5m), P1#2 (t0+2m), P3#1 (t0+3m, fulfilled at t0+4m)."""
    p1_first = await repo.create_attempt(transfer_factory(product_id="P1", requested_at=now_utc))
    await repo.save(p1_first.mark_error("timeout"))
    p2 = await repo.create_attempt(transfer_factory(product_id="P2", requested_at=now_utc + timedelta(minutes=1)))
    await repo.save(p2.mark_fulfilled(now_utc + timedelta(minutes=5)))
    await repo.create_attempt(transfer_factory(product_id="P1", requested_at=now_utc + timedelta(minutes=2)))
    p3 = await repo.create_attempt(transfer_factory(product_id="P3", requested_at=now_utc + timedelta(minutes=3)))
    await repo.save(p3.mark_fulfilled(now_utc + timedelta(minutes=4)))


async def test_list_defaults_to_newest_first_with_default_page_size(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    now_utc: datetime,
) -> None:
    await _seed_timeline(repo, transfer_factory, now_utc)

    first = await repo.list()
    second = await repo.list(page=Page(number=2))

    assert [t.key for t in first.items] == [("P3", 1), ("P1", 2)]
    assert [t.key for t in second.items] == [("P2", 1), ("P1", 1)]
    assert first.total_count == 4
    assert first.total_pages == 2
    assert first.per_page == 2
    assert second.page == 2


async def test_list_clamps_page_size_and_handles_out_of_range_page(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    now_utc: datetime,
) -> None:
    await _seed_timeline(repo, transfer_factory, now_utc)

    everything = await repo.list(page=Page(number=0, per_page=1000))
    beyond = await repo.list(page=Page(number=9))

    assert everything.per_page == 5
    assert everything.page == 1
    assert len(everything.items) == 4
    assert beyond.items == []
    assert beyond.total_count == 4


async def test_list_sorts_by_transferred_at_with_missing_values_last(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    now_utc: datetime,
) -> None:
    await _seed_timeline(repo, transfer_factory, now_utc)

    result = await repo.list(
        sort=TransferSort(column=SortColumn.TRANSFERRED_AT, descending=False),
        page=Page(per_page=5),
    )

    assert [t.key for t in result.items] == [("P3", 1), ("P2", 1), ("P1", 1), ("P1", 2)]


async def test_list_breaks_ties_on_product_and_attempt(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
) -> None:
    await repo.create_attempt(transfer_factory(product_id="P1"))
    await repo.create_attempt(transfer_factory(product_id="P2"))
    await repo.create_attempt(transfer_factory(product_id="P1"))

    newest = await repo.list(page=Page(per_page=5))
    oldest = await repo.list(sort=TransferSort(descending=False), page=Page(per_page=5))

    assert [t.key for t in newest.items] == [("P2", 1), ("P1", 2), ("P1", 1)]
    assert [t.key for t in oldest.items] == [("P1", 1), ("P1", 2), ("P2", 1)]


async def test_list_sorts_by_status(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    now_utc: datetime,
) -> None:
    await _seed_timeline(repo, transfer_factory, now_utc)

    result = await repo.list(sort=TransferSort(column=SortColumn.STATUS, descending=False), page=Page(per_page=5))

    assert [t.status for t in result.items] == [
        TransferStatus.ERROR,
        TransferStatus.FULFILLED,
        TransferStatus.FULFILLED,
        TransferStatus.REQUESTED,
    ]
    assert [t.key for t in result.items][1:3] == [("P2", 1), ("P3", 1)]


async def test_list_and_count_apply_filters(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    now_utc: datetime,
) -> None:
    await _seed_timeline(repo, transfer_factory, now_utc)

    fulfilled = TransferFilter(statuses=(TransferStatus.FULFILLED,))
    failed = TransferFilter(has_error=True)
    window = TransferFilter(requested_from=now_utc + timedelta(minutes=1), requested_to=now_utc + timedelta(minutes=3))
    late = TransferFilter(transferred_from=now_utc + timedelta(minutes=5))

    assert await repo.count() == 4
    assert await repo.count(fulfilled) == 2
    assert await repo.count(TransferFilter(product_id="P1")) == 2
    assert [t.key for t in (await repo.list(failed)).items] == [("P1", 1)]
    assert [t.key for t in (await repo.list(window)).items] == [("P1", 2), ("P2", 1)]
    assert [t.key for t in (await repo.list(late)).items] == [("P2", 1)]
    page = await repo.list(TransferFilter(error_types=(TransferErrorType.NETWORK_ERROR,)))
    assert page.items == []
    assert page.total_count == 0
    assert page.total_pages == 0


async def test_filters_accept_plain_string_statuses_and_error_types(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    now_utc: datetime,
) -> None:
    await _seed_timeline(repo, transfer_factory, now_utc)

    assert await repo.count(TransferFilter(statuses=("requested",))) == 1
    assert await repo.count(TransferFilter(statuses=("fulfilled", "error"))) == 3
    assert await repo.count(TransferFilter(error_types=("timeout",))) == 1
    listed = await repo.list(TransferFilter(statuses=("error",)))
    assert [t.key for t in listed.items] == [("P1", 1)]


async def test_patch_empty_with_stale_expected_version_conflicts(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
) -> None:
    created = await repo.create_attempt(transfer_factory())

    with pytest.raises(TransferConflictError) as exc_info:
        await repo.patch(
            created.product_id,
            created.attempt,
            TransferAttemptPatch(),
            SaveOptions(expected_version=99),
        )

    assert exc_info.value.expected_version == 99
    assert exc_info.value.actual_version == 1


async def test_attempt_built_with_padded_ids_is_found_by_trimmed_id(
    repo: ITransferAttemptRepository,
    transfer_factory: Callable[..., TransferAttempt],
    now_utc: datetime,
) -> None:
    template = transfer_factory()
    padded = TransferAttempt(
        product_id=" P7 ",
        attempt=0,
        mint_address=f" {template.mint_address}",
        from_address=template.from_address,
        to_address=f"{template.to_address}\n",
        requested_at=now_utc,
    )

    created = await repo.create_attempt(padded)
    latest = await repo.get_latest_by_product_id("P7")

    assert latest == created
    assert latest is not None and latest.product_id == "P7"
    assert await repo.count(TransferFilter(to_address=template.to_address)) == 1
