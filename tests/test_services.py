"""End-to-end tests of the two-factor service functions over the store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from authapp.core.enrollment import BindingKind, BindingStatus
from authapp.core.errors import (
    BackupCodeNotFound,
    BindingNotFound,
    EnrollmentNotConfirmed,
    InvalidConfiguration,
    InvalidSecretFormat,
)
from authapp.core.otp import current_code
from authapp.models.credential_binding import CredentialBindingRow
from authapp.services import two_factor as svc

from conftest import RFC_SECRET

NOW = datetime(2026, 10, 19, 12, 0, 10, tzinfo=timezone.utc)


async def _enabled(store, owner_id="owner-1"):
    enrollment = await svc.setup_two_factor(store, owner_id, "alice@example.com", "AuthApp")
    code = current_code(enrollment.binding.secret, NOW)
    assert await svc.confirm_two_factor(store, owner_id, code, now=NOW)
    return enrollment


async def test_setup_persists_pending_binding(store):
    enrollment = await svc.setup_two_factor(store, "owner-1", "alice@example.com", "AuthApp")
    binding = await store.load_account_binding("owner-1")
    assert binding.status is BindingStatus.pending
    assert binding.secret == enrollment.binding.secret
    assert await store.count_remaining_backup_codes("owner-1") == 10


async def test_verify_requires_confirmation(store):
    enrollment = await svc.setup_two_factor(store, "owner-1", "alice@example.com", "AuthApp")
    code = current_code(enrollment.binding.secret, NOW)
    with pytest.raises(EnrollmentNotConfirmed):
        await svc.verify_second_factor(store, "owner-1", code, now=NOW)


async def test_confirm_without_setup(store):
    with pytest.raises(BindingNotFound):
        await svc.confirm_two_factor(store, "owner-1", "123456", now=NOW)


async def test_verify_second_factor_and_replay(store):
    enrollment = await _enabled(store)
    secret = enrollment.binding.secret

    # the confirmation code was not recorded as a login: first use passes
    code = current_code(secret, NOW)
    assert await svc.verify_second_factor(store, "owner-1", code, now=NOW)
    assert not await svc.verify_second_factor(store, "owner-1", code, now=NOW)

    later = NOW + timedelta(seconds=30)
    assert await svc.verify_second_factor(store, "owner-1", current_code(secret, later), now=later)


async def test_setup_again_resets_to_pending_and_new_batch(store):
    first = await _enabled(store)
    second = await svc.setup_two_factor(store, "owner-1", "alice@example.com", "AuthApp")
    assert second.binding.secret != first.binding.secret
    assert (await store.load_account_binding("owner-1")).status is BindingStatus.pending
    with pytest.raises(BackupCodeNotFound):
        await svc.redeem_backup_code(store, "owner-1", first.backup_codes[0].code)
    await svc.redeem_backup_code(store, "owner-1", second.backup_codes[0].code)


async def test_setup_with_new_label_replaces_account_binding(store):
    await _enabled(store)
    await svc.setup_two_factor(store, "owner-1", "alice@new.example", "AuthApp")
    bindings = await store.list_bindings("owner-1")
    assert [b.label for b in bindings] == ["alice@new.example"]


async def test_regenerate_backup_codes(store):
    enrollment = await _enabled(store)
    later = NOW + timedelta(seconds=30)
    otp = current_code(enrollment.binding.secret, later)
    codes = await svc.regenerate_backup_codes(store, "owner-1", otp, count=5, now=later)
    assert len(codes) == 5
    assert await store.count_remaining_backup_codes("owner-1") == 5
    with pytest.raises(BackupCodeNotFound):
        await svc.redeem_backup_code(store, "owner-1", enrollment.backup_codes[0].code)


async def test_disable_two_factor(store):
    enrollment = await _enabled(store)
    later = NOW + timedelta(seconds=30)
    otp = current_code(enrollment.binding.secret, later)
    assert await svc.disable_two_factor(store, "owner-1", otp, now=later)
    assert await store.load_account_binding("owner-1") is None
    assert await store.count_remaining_backup_codes("owner-1") == 0
    # already disabled
    assert await svc.disable_two_factor(store, "owner-1", otp, now=later)


async def test_abandon_stale_enrollments(store):
    enrollment = await svc.setup_two_factor(store, "owner-1", "alice@example.com", "AuthApp")
    in_an_hour = datetime.now(timezone.utc) + timedelta(hours=1)
    assert await svc.abandon_stale_enrollments(store, 15, now=in_an_hour) == 1
    code = current_code(enrollment.binding.secret, NOW)
    with pytest.raises(EnrollmentNotConfirmed):
        await svc.confirm_two_factor(store, "owner-1", code, now=NOW)
    with pytest.raises(InvalidConfiguration):
        await svc.abandon_stale_enrollments(store, 0)


async def test_service_entries(store):
    sc = await svc.add_service_entry(store, "owner-1", "GitHub", "gezd gnbv gy3t qojq gezd gnbv gy3t qojq", now=NOW)
    assert sc.code == current_code(RFC_SECRET, NOW)
    assert sc.seconds_remaining == 20

    await svc.add_service_entry(store, "owner-1", "GitLab", "JBSWY3DPEHPK3PXP", now=NOW)
    listed = await svc.list_service_codes(store, "owner-1", now=NOW)
    assert [s.binding.label for s in listed] == ["GitHub", "GitLab"]
    # no per-row offsets: every code is the real code at NOW
    assert [s.code for s in listed] == [current_code(s.binding.secret, NOW) for s in listed]

    refreshed = await svc.service_code(store, "owner-1", "GitHub", now=NOW)
    assert refreshed.code == sc.code

    await svc.remove_service_entry(store, "owner-1", "GitHub")
    with pytest.raises(BindingNotFound):
        await svc.service_code(store, "owner-1", "GitHub", now=NOW)


async def test_service_entry_rejects_bad_secret_and_duplicates(store):
    with pytest.raises(InvalidSecretFormat):
        await svc.add_service_entry(store, "owner-1", "GitHub", "not-base32!!")
    await svc.add_service_entry(store, "owner-1", "GitHub", RFC_SECRET)
    with pytest.raises(InvalidConfiguration):
        await svc.add_service_entry(store, "owner-1", "GitHub", RFC_SECRET)


async def test_account_binding_is_not_a_service_entry(store):
    await svc.setup_two_factor(store, "owner-1", "alice@example.com", "AuthApp")
    with pytest.raises(BindingNotFound):
        await svc.service_code(store, "owner-1", "alice@example.com")


async def test_setup_does_not_take_over_service_entry(store):
    await svc.add_service_entry(store, "owner-1", "alice", RFC_SECRET, now=NOW)
    with pytest.raises(InvalidConfiguration):
        await svc.setup_two_factor(store, "owner-1", "alice", "AuthApp")
    services = await store.list_bindings("owner-1", kind=BindingKind.service)
    assert [b.label for b in services] == ["alice"]
    assert services[0].secret == RFC_SECRET
    assert await store.load_account_binding("owner-1") is None


async def test_reenrollment_survives_stale_sweep(store):
    await _enabled(store)
    await store.db.execute(
        update(CredentialBindingRow).values(created_at=datetime.now(timezone.utc) - timedelta(days=30))
    )
    await store.db.commit()

    enrollment = await svc.setup_two_factor(store, "owner-1", "alice@example.com", "AuthApp")
    in_a_minute = datetime.now(timezone.utc) + timedelta(minutes=1)
    assert await svc.abandon_stale_enrollments(store, 15, now=in_a_minute) == 0
    code = current_code(enrollment.binding.secret, NOW)
    assert await svc.confirm_two_factor(store, "owner-1", code, now=NOW)
