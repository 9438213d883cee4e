"""Chat identity → access resolution."""
import pytest

from conftest import CASHIER_CHAT, INACTIVE_CHAT, REGIONAL_HEAD_CHAT, STORE_HEAD_CHAT, UNKNOWN_CHAT, failing_sessions
from strukbot.core.exceptions import PersistenceFailure, StorageReadFailure
from strukbot.core.permissions import can_edit_transactions, can_view_regional_report
from strukbot.services.access_service import AccessResolver


def test_unknown_and_inactive_users_have_no_access(session_factory, directory):
    resolver = AccessResolver(session_factory)

    assert resolver.resolve(UNKNOWN_CHAT).has_access is False
    assert resolver.resolve(INACTIVE_CHAT).has_access is False


def test_regional_head_gets_active_stores_of_region(session_factory, directory):
    access = AccessResolver(session_factory).resolve(REGIONAL_HEAD_CHAT)

    assert access.is_regional_head
    assert [s.name for s in access.accessible_stores] == ["Toko Kemang", "Toko Senayan"]
    assert can_edit_transactions(access)
    assert can_view_regional_report(access)


def test_store_head_gets_granted_stores(session_factory, directory):
    access = AccessResolver(session_factory).resolve(STORE_HEAD_CHAT)

    assert access.is_store_head
    assert access.find_store(directory.senayan_id).name == "Toko Senayan"
    assert access.find_store(directory.dago_id) is None
    assert can_edit_transactions(access)
    assert not can_view_regional_report(access)


def test_cashier_cannot_edit(session_factory, directory):
    access = AccessResolver(session_factory).resolve(CASHIER_CHAT)

    assert access.has_access
    assert access.active_store_id == directory.kemang_id
    assert access.accessible_stores == []
    assert not can_edit_transactions(access)


def test_set_active_store_and_names(session_factory, directory):
    resolver = AccessResolver(session_factory)

    resolver.set_active_store(directory.store_head_id, directory.senayan_id)

    assert resolver.resolve(STORE_HEAD_CHAT).active_store_id == directory.senayan_id
    assert resolver.store_name(directory.senayan_id) == "Toko Senayan"
    assert resolver.region_name(directory.jakarta_id) == "Regional Jakarta"
    assert resolver.store_name(None) is None


def test_storage_errors_on_reads_are_read_failures(session_factory, directory):
    resolver = AccessResolver(failing_sessions(session_factory, "query"))

    with pytest.raises(StorageReadFailure):
        resolver.resolve(CASHIER_CHAT)
    with pytest.raises(StorageReadFailure):
        resolver.store_name(directory.kemang_id)
    with pytest.raises(StorageReadFailure):
        resolver.region_name(directory.jakarta_id)


def test_failed_store_switch_is_a_persistence_failure(session_factory, directory):
    resolver = AccessResolver(failing_sessions(session_factory))

    with pytest.raises(PersistenceFailure):
        resolver.set_active_store(directory.store_head_id, directory.senayan_id)

    assert AccessResolver(session_factory).resolve(STORE_HEAD_CHAT).active_store_id != directory.senayan_id
