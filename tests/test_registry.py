import json

import pytest

from nutella.core.models import AppEntry
from nutella.core.runlist import RunRegistry
from nutella.utils.diagnostics import StorageError


def test_add_new_run_creates_app_entry(registry):
    assert registry.add("app_a", "run_1", "/tmp/app_a") is True

    assert registry.runs_for_app("app_a") == ["run_1"]
    assert registry.path_for_app("app_a") == "/tmp/app_a"
    assert registry.all_apps() == ["app_a"]


def test_add_without_run_id_uses_default(registry):
    assert registry.add("app_a", None, "/tmp/app_a") is True

    assert registry.runs_for_app("app_a") == ["default"]


def test_add_duplicate_run_returns_false(registry):
    registry.add("app_a", "run_1", "/tmp/app_a")

    assert registry.add("app_a", "run_1", "/tmp/app_a") is False
    assert registry.runs_for_app("app_a") == ["run_1"]


def test_add_appends_runs_in_order_and_keeps_first_path(registry):
    registry.add("app_a", "run_1", "/tmp/app_a")
    registry.add("app_a", "run_2", "/somewhere/else")

    assert registry.runs_for_app("app_a") == ["run_1", "run_2"]
    assert registry.path_for_app("app_a") == "/tmp/app_a"


def test_unknown_app_queries_do_not_fail(registry):
    assert registry.runs_for_app("nope") == []
    assert registry.path_for_app("nope") is None
    assert registry.contains("nope", "default") is False


def test_delete_unknown_app_or_run_returns_false(registry):
    assert registry.delete("nope", "default") is False

    registry.add("app_a", "run_1", "/tmp/app_a")
    assert registry.delete("app_a", "run_2") is False
    assert registry.runs_for_app("app_a") == ["run_1"]


def test_delete_last_run_removes_app(registry):
    registry.add("app_a", "run_1", "/tmp/app_a")
    registry.add("app_a", "run_2", "/tmp/app_a")

    assert registry.delete("app_a", "run_1") is True
    assert registry.all_apps() == ["app_a"]

    assert registry.delete("app_a", "run_2") is True
    assert "app_a" not in registry.all_apps()
    assert registry.empty() is True


def test_contains_and_membership(registry):
    registry.add("app_a", "run_1", "/tmp/app_a")

    assert registry.contains("app_a", "run_1") is True
    assert ("app_a", "run_1") in registry
    assert ("app_a", "run_2") not in registry


def test_all_runs_snapshot_and_document_schema(registry, store):
    registry.add("app_a", None, "/tmp/app_a")
    registry.add("app_b", "r", "/tmp/app_b")

    assert registry.all_runs() == {
        "app_a": AppEntry(path="/tmp/app_a", runs=["default"]),
        "app_b": AppEntry(path="/tmp/app_b", runs=["r"]),
    }
    assert json.loads(store.path.read_text()) == {
        "app_a": {"path": "/tmp/app_a", "runs": ["default"]},
        "app_b": {"path": "/tmp/app_b", "runs": ["r"]},
    }


def test_registry_shares_state_through_the_document(registry, store):
    registry.add("app_a", "run_1", "/tmp/app_a")

    other = RunRegistry(store)
    assert other.runs_for_app("app_a") == ["run_1"]


def test_remove_file_resets_registry(registry, store):
    registry.add("app_a", "run_1", "/tmp/app_a")

    assert registry.remove_file() is True
    assert store.exists() is False
    assert registry.empty() is True


def test_reconcile_without_reconciler_is_noop(registry):
    registry.add("app_a", "run_1", "/tmp/app_a")

    assert registry.reconcile() == []
    assert registry.runs_for_app("app_a") == ["run_1"]


def test_invalid_entries_raise_storage_error(registry, store):
    store.save({"app_a": {"runs": ["x"]}})

    with pytest.raises(StorageError, match="Invalid run list"):
        registry.all_apps()


def test_entries_without_runs_raise_storage_error(registry, store):
    store.save({"app_a": {"path": "/tmp/app_a", "runs": []}})

    with pytest.raises(StorageError, match="Invalid run list"):
        registry.runs_for_app("app_a")


def test_end_to_end_add_then_delete_default_run(registry):
    assert registry.add("appA", None, "/tmp/appA") is True
    assert registry.runs_for_app("appA") == ["default"]
    assert registry.delete("appA", "default") is True
    assert "appA" not in registry.all_apps()
