"""Tests for backup-code generation and exactly-once redemption."""

from __future__ import annotations

import asyncio
import re

import pytest

from authapp.core.backup_codes import (
    BackupCodeManager,
    generate_batch,
    normalize_backup_code,
)
from authapp.core.errors import BackupCodeNotFound, InvalidConfiguration
from authapp.services.store import CredentialStore


def test_batch_of_ten_is_pairwise_distinct():
    batch = generate_batch("owner-1")
    assert len(batch) == 10
    assert len({c.code for c in batch}) == 10
    assert all(re.fullmatch(r"[0-9A-F]{8}", c.code) for c in batch)
    assert all(not c.consumed and c.owner_id == "owner-1" for c in batch)
    assert len({c.batch_id for c in batch}) == 1


def test_batch_rerolls_collisions(monkeypatch):
    rolls = iter(["AAAAAAAA", "AAAAAAAA", "BBBBBBBB", "AAAAAAAA", "CCCCCCCC"])
    monkeypatch.setattr("authapp.core.backup_codes.new_code", lambda: next(rolls))
    batch = generate_batch("owner-1", count=3)
    assert [c.code for c in batch] == ["AAAAAAAA", "BBBBBBBB", "CCCCCCCC"]


@pytest.mark.parametrize("count", [0, -1, True])
def test_batch_rejects_bad_count(count):
    with pytest.raises(InvalidConfiguration):
        generate_batch("owner-1", count=count)


def test_normalize_backup_code():
    assert normalize_backup_code(" abcd-1234 ") == "ABCD1234"


@pytest.mark.parametrize("submitted", ["", "ABCD123", "ABCD12345", "GHIJKLMN", None])
def test_malformed_codes_fail_uniformly(submitted):
    with pytest.raises(BackupCodeNotFound):
        normalize_backup_code(submitted)


async def test_redeem_exactly_once(store):
    batch = generate_batch("owner-1")
    await store.replace_backup_codes("owner-1", batch)
    manager = BackupCodeManager(store)

    await manager.redeem("owner-1", batch[0].code.lower())
    with pytest.raises(BackupCodeNotFound) as first:
        await manager.redeem("owner-1", batch[0].code)
    with pytest.raises(BackupCodeNotFound) as unknown:
        await manager.redeem("owner-1", "00000000" if batch[0].code != "00000000" else "11111111")
    # missing and consumed look the same to the caller
    assert first.value.detail == unknown.value.detail

    # the rest of the batch is untouched
    await manager.redeem("owner-1", batch[1].code)
    assert await store.count_remaining_backup_codes("owner-1") == 8


async def test_redeem_is_scoped_to_owner(store):
    batch = generate_batch("owner-1")
    await store.replace_backup_codes("owner-1", batch)
    with pytest.raises(BackupCodeNotFound):
        await BackupCodeManager(store).redeem("owner-2", batch[0].code)
    assert await store.count_remaining_backup_codes("owner-1") == 10


async def test_concurrent_redemption_has_one_winner(session_factory, box, store):
    batch = generate_batch("owner-1")
    await store.replace_backup_codes("owner-1", batch)

    async def attempt():
        async with session_factory() as db:
            await BackupCodeManager(CredentialStore(db, box)).redeem("owner-1", batch[0].code)

    results = await asyncio.gather(*(attempt() for _ in range(5)), return_exceptions=True)
    winners = [r for r in results if r is None]
    losers = [r for r in results if isinstance(r, BackupCodeNotFound)]
    assert len(winners) == 1
    assert len(losers) == 4


async def test_reenrollment_invalidates_previous_batch(store):
    old = generate_batch("owner-1")
    await store.replace_backup_codes("owner-1", old)
    new = generate_batch("owner-1")
    await store.replace_backup_codes("owner-1", new)

    manager = BackupCodeManager(store)
    with pytest.raises(BackupCodeNotFound):
        await manager.redeem("owner-1", old[0].code)
    await manager.redeem("owner-1", new[0].code)
    assert await store.count_remaining_backup_codes("owner-1") == 9
