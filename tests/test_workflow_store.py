"""Tests for workflow persistence."""

import threading

import pytest

from automation.core.exceptions import StorageError
from automation.models.core import WorkflowUpdate


class TestWorkflowStore:
    """Test cases for WorkflowStore."""

    def test_create_and_load(self, store, make_definition):
        created = store.create(make_definition(
            conditions=[{"field": "score", "operator": "less_than", "value": 0}],
        ))

        assert created.id is not None
        assert created.execution_count == 0
        assert created.last_executed is None
        assert created.is_active is True

        loaded = store.load(created.id)
        assert loaded == created
        assert loaded.actions[0].type == "record"
        assert loaded.actions[0].parameters == {"message": "hello {{user.name}}"}
        assert loaded.conditions[0].operator == "less_than"

    def test_load_missing(self, store):
        assert store.load(9999) is None

    def test_list_by_workspace(self, store, make_definition):
        first = store.create(make_definition(name="one", workspace_id=1))
        store.create(make_definition(name="other", workspace_id=2))
        second = store.create(make_definition(name="two", workspace_id=1))

        listed = store.list_by_workspace(1)
        assert [w.id for w in listed] == [first.id, second.id]
        assert store.list_by_workspace(3) == []

    def test_update_replaces_lists_wholesale(self, store, make_definition):
        created = store.create(make_definition(
            actions=[{"type": "record", "n": 1}, {"type": "record", "n": 2}],
        ))

        updated = store.update(created.id, WorkflowUpdate(
            actions=[{"type": "record", "n": 3}],
            is_active=False,
        ))

        assert [a.parameters for a in updated.actions] == [{"n": 3}]
        assert updated.is_active is False
        assert updated.name == created.name
        assert updated.conditions == created.conditions

    def test_update_missing(self, store):
        assert store.update(9999, WorkflowUpdate(name="x")) is None

    def test_delete(self, store, make_definition):
        created = store.create(make_definition())
        assert store.delete(created.id) is True
        assert store.load(created.id) is None
        assert store.delete(created.id) is False

    def test_increment_execution(self, store, make_definition):
        created = store.create(make_definition())

        assert store.increment_execution(created.id) == 1
        assert store.increment_execution(created.id) == 2

        loaded = store.load(created.id)
        assert loaded.execution_count == 2
        assert loaded.last_executed is not None

    def test_increment_missing_workflow(self, store):
        with pytest.raises(StorageError):
            store.increment_execution(9999)
        assert 9999 not in store._counter_locks

    def test_delete_releases_counter_lock(self, store, make_definition):
        created = store.create(make_definition())
        store.increment_execution(created.id)
        assert created.id in store._counter_locks

        store.delete(created.id)

        assert created.id not in store._counter_locks

    def test_concurrent_increments_are_not_lost(self, store, make_definition):
        created = store.create(make_definition())
        threads = [threading.Thread(target=store.increment_execution, args=(created.id,)) for _ in range(20)]

        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.load(created.id).execution_count == 20

    def test_loaded_snapshot_is_detached(self, store, make_definition):
        created = store.create(make_definition())
        snapshot = store.load(created.id)

        store.update(created.id, WorkflowUpdate(actions=[]))

        assert len(snapshot.actions) == 1
