"""
Unit tests for flow export/import and the SQLite flow store.
"""

import json
import os

import pytest

from block_coding_core.exceptions import FlowFormatError
from block_coding_core.flow_storage import FlowStore, export_flow, import_flow, resolve_setting
from block_coding_core.models import Flow


@pytest.fixture
def store(tmp_path):
    return FlowStore(db_path=str(tmp_path / "flows.db"))


@pytest.fixture
def flow():
    flow = Flow(name="Greeting")
    var = flow.add_block("variable")
    var.params.update({"name": "x", "value": "5", "type": "Number"})
    log = flow.add_block("console.log")
    log.params["message"] = "done"
    flow.connect(var.id, log.id)
    return flow


class TestExportImport:
    """Test cases for the JSON document format."""

    def test_export_is_pretty_json(self, flow):
        text = export_flow(flow)

        assert text.startswith("{\n  ")
        data = json.loads(text)
        assert data["name"] == "Greeting"
        assert data["edges"][0]["sourceHandle"] == "output"

    def test_import_restores_flow(self, flow):
        restored = import_flow(export_flow(flow))

        assert restored == flow
        assert restored.validate() == []

    @pytest.mark.parametrize("text", [
        "not json",
        "[]",
        '{"name": "no id", "blocks": [], "edges": []}',
        '{"id": "f", "blocks": {}, "edges": []}',
        '{"id": "f", "blocks": [{"id": "a"}], "edges": []}',
        '{"id": "f", "blocks": [], "edges": [{"source": "a"}]}',
    ])
    def test_import_rejects_malformed(self, text):
        with pytest.raises(FlowFormatError, match="Invalid flow format"):
            import_flow(text)


class TestFlowStore:
    """Test cases for FlowStore."""

    def test_save_and_load(self, store, flow):
        store.save(flow)

        loaded = store.load(flow.id)

        assert loaded == flow
        assert loaded.created_at is not None
        assert loaded.updated_at is not None

    def test_save_stamps_timestamps(self, store, flow):
        store.save(flow)

        assert flow.created_at.endswith("Z")
        assert flow.updated_at >= flow.created_at

    def test_resave_keeps_created_at(self, store, flow):
        store.save(flow)
        created = flow.created_at
        flow.name = "Renamed"

        store.save(flow)

        loaded = store.load(flow.id)
        assert loaded.name == "Renamed"
        assert loaded.created_at == created
        assert len(store.list()) == 1

    def test_load_missing(self, store):
        assert store.load("flow-missing") is None

    def test_list_newest_first(self, store):
        first = store.save(Flow(name="first"))
        second = store.save(Flow(name="second"))

        assert [f.id for f in store.list()] == [second.id, first.id]

    def test_delete(self, store, flow):
        store.save(flow)

        assert store.delete(flow.id) is True
        assert store.load(flow.id) is None
        assert store.delete(flow.id) is False

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "flows.db"

        FlowStore(db_path=str(path)).save(Flow())

        assert path.exists()

    def test_db_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "env.db"
        monkeypatch.setenv("BLOCKFLOW_DB_PATH", str(path))

        assert FlowStore().db_path == str(path)

    def test_default_db_path_is_under_working_directory(self, tmp_path, monkeypatch):
        monkeypatch.delenv("BLOCKFLOW_DB_PATH", raising=False)
        monkeypatch.chdir(tmp_path)

        store = FlowStore()
        store.save(Flow())

        assert os.path.realpath(store.db_path) == os.path.realpath(tmp_path / "data" / "flows.db")
        assert (tmp_path / "data" / "flows.db").exists()


class TestSettings:
    """Test cases for the settings table and resolve_setting()."""

    def test_set_get_delete(self, store):
        record = store.set_setting("Exec_Timeout", "5")

        assert record["key"] == "exec_timeout"
        assert store.get_setting("exec_timeout") == "5"
        assert store.delete_setting("EXEC_TIMEOUT") is True
        assert store.get_setting("exec_timeout") is None

    def test_resolve_default(self, monkeypatch):
        monkeypatch.delenv("BLOCKFLOW_EXEC_TIMEOUT", raising=False)
        assert resolve_setting("exec_timeout", "BLOCKFLOW_EXEC_TIMEOUT", "30") == "30"

    def test_resolve_env_over_default(self, monkeypatch):
        monkeypatch.setenv("BLOCKFLOW_EXEC_TIMEOUT", "12")
        assert resolve_setting("exec_timeout", "BLOCKFLOW_EXEC_TIMEOUT", "30") == "12"

    def test_resolve_store_over_env(self, store, monkeypatch):
        monkeypatch.setenv("BLOCKFLOW_EXEC_TIMEOUT", "12")
        store.set_setting("exec_timeout", "3")

        assert resolve_setting("exec_timeout", "BLOCKFLOW_EXEC_TIMEOUT", "30", store) == "3"
