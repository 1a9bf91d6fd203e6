import pytest

from navigator.objects import CacheStatus, ObjectKind
from navigator.schema_cache import SchemaCache
from navigator.tree_state import TreeState

EMPTY = {"success": True, "tables": [], "message": ""}


@pytest.fixture
def cache(registry, launcher):
    return SchemaCache(registry, launcher)


def test_toggle_connection_twice_restores_state(cache, conn):
    tree = TreeState(cache)
    assert not tree.is_connection_expanded(conn.id)
    tree.toggle_connection(conn.id)
    assert tree.is_connection_expanded(conn.id)
    tree.toggle_connection(conn.id)
    assert not tree.is_connection_expanded(conn.id)


def test_first_expand_fetches_once(cache, launcher, conn):
    tree = TreeState(cache)
    tree.toggle_connection(conn.id)
    assert len(launcher.calls) == 1
    # collapse/expand while still loading must not issue a second fetch
    tree.toggle_connection(conn.id)
    tree.toggle_connection(conn.id)
    assert len(launcher.calls) == 1


def test_loaded_entry_is_not_refetched(cache, launcher, conn):
    tree = TreeState(cache)
    tree.toggle_connection(conn.id)
    launcher.succeed(EMPTY)
    tree.toggle_connection(conn.id)
    tree.toggle_connection(conn.id)
    assert len(launcher.calls) == 1
    assert cache.get(conn.id).status is CacheStatus.LOADED


def test_collapse_keeps_cache(cache, launcher, conn):
    tree = TreeState(cache)
    tree.toggle_connection(conn.id)
    launcher.succeed(EMPTY)
    tree.toggle_connection(conn.id)
    assert cache.get(conn.id).status is CacheStatus.LOADED


def test_retry_after_error_on_reexpand(cache, launcher, conn):
    tree = TreeState(cache)
    tree.toggle_connection(conn.id)
    launcher.fail("refused")
    assert cache.get(conn.id).status is CacheStatus.ERROR
    tree.toggle_connection(conn.id)
    assert len(launcher.calls) == 1
    tree.toggle_connection(conn.id)
    assert len(launcher.calls) == 2


def test_toggle_group_is_independent_of_cache(cache, launcher, conn):
    tree = TreeState(cache)
    tree.toggle_group(conn.id, "view")
    assert tree.is_group_expanded(conn.id, ObjectKind.VIEW)
    assert not tree.is_group_expanded(conn.id, "index")
    assert launcher.calls == []
    tree.toggle_group(conn.id, ObjectKind.VIEW)
    assert not tree.is_group_expanded(conn.id, "view")


def test_toggle_group_rejects_unknown_kind(cache, conn):
    with pytest.raises(ValueError):
        TreeState(cache).toggle_group(conn.id, "sequence")


def test_forget_connection(cache, conn):
    tree = TreeState(cache)
    tree.toggle_connection(conn.id)
    tree.toggle_group(conn.id, "index")
    tree.toggle_group("other", "index")
    tree.forget_connection(conn.id)
    assert not tree.is_connection_expanded(conn.id)
    assert not tree.is_group_expanded(conn.id, "index")
    assert tree.is_group_expanded("other", "index")


def test_expanding_unknown_connection_does_not_fetch(cache, launcher):
    tree = TreeState(cache)
    tree.toggle_connection("gone")
    assert tree.is_connection_expanded("gone")
    assert launcher.calls == []
