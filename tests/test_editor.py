"""
Unit tests for the FlowEditor editing session.
"""

import pytest

from block_coding_core.editor import Feedback, FlowEditor
from block_coding_core.execution_engine import ExecutionResult
from block_coding_core.flow_storage import FlowStore, export_flow
from block_coding_core.models import Edge, Flow


class FakeExecutor:
    """Records the code it is asked to run and returns a canned result."""

    def __init__(self, result):
        self.result = result
        self.executed = []

    def execute(self, code):
        self.executed.append(code)
        return self.result


@pytest.fixture
def store(tmp_path):
    return FlowStore(db_path=str(tmp_path / "flows.db"))


@pytest.fixture
def editor(store):
    return FlowEditor(store=store)


class TestFeedback:
    """Test cases for Feedback."""

    def test_variants(self):
        assert Feedback("Saved", "ok").ok is True
        assert Feedback("Failed", "no", "destructive").ok is False

    def test_to_dict(self):
        assert Feedback("t", "d").to_dict() == {"title": "t", "description": "d", "variant": "default"}


class TestEditing:
    """Test cases for block and edge edits."""

    def test_starts_with_header_only_code(self, editor):
        assert editor.generated_code.startswith("// JavaScript code generated by Block Coding App\n")
        assert "// Blocks: 0, Connections: 0" in editor.generated_code

    def test_code_follows_every_change(self, editor):
        seen = []
        editor.on_code_changed = seen.append

        block = editor.add_block("console.log")
        editor.update_block_params(block.id, "message", "hi")

        assert len(seen) == 2
        assert seen[-1] == editor.generated_code
        assert 'console.log("hi");' in editor.generated_code

    def test_move_does_not_regenerate(self, editor):
        block = editor.add_block("return")
        seen = []
        editor.on_code_changed = seen.append

        assert editor.move_block(block.id, (50, 60)) is True
        assert seen == []
        assert block.position == (50.0, 60.0)

    def test_update_missing_block(self, editor):
        assert editor.update_block_params("block-missing", "message", "hi") is False

    def test_connect(self, editor):
        a = editor.add_block("console.log")
        b = editor.add_block("console.log")

        edge, feedback = editor.connect(a.id, b.id)

        assert edge is not None
        assert feedback.title == "Blocks connected"
        assert "// Blocks: 2, Connections: 1" in editor.generated_code

    def test_duplicate_connection_feedback(self, editor):
        a = editor.add_block("console.log")
        b = editor.add_block("console.log")
        editor.connect(a.id, b.id)

        edge, feedback = editor.connect(a.id, b.id)

        assert edge is None
        assert feedback.title == "Connection exists"
        assert feedback.description == "These blocks are already connected."
        assert feedback.variant == "destructive"
        assert len(editor.flow.edges) == 1

    def test_circular_connection_feedback(self, editor):
        a = editor.add_block("console.log")
        b = editor.add_block("console.log")
        editor.connect(a.id, b.id)
        seen = []
        editor.on_code_changed = seen.append

        edge, feedback = editor.add_edge(Edge(source=b.id, target=a.id))

        assert edge is None
        assert feedback.title == "Invalid connection"
        assert feedback.description == "This connection would create a circular reference."
        assert seen == []

    def test_connection_to_missing_block(self, editor):
        a = editor.add_block("console.log")

        edge, feedback = editor.connect(a.id, "block-missing")

        assert edge is None
        assert feedback.ok is False

    def test_remove_edge(self, editor):
        a = editor.add_block("console.log")
        b = editor.add_block("console.log")
        edge, _ = editor.connect(a.id, b.id)

        assert editor.remove_edge(edge.id) is True
        assert editor.remove_edge(edge.id) is False

    def test_remove_block_reports_connections(self, editor):
        a = editor.add_block("console.log")
        b = editor.add_block("console.log")
        c = editor.add_block("console.log")
        editor.connect(a.id, b.id)
        editor.connect(b.id, c.id)

        feedback = editor.remove_block(b.id)

        assert feedback.title == "Block removed"
        assert feedback.description == "Block removed with 2 connection(s)."
        assert editor.flow.edges == []

    def test_remove_missing_block(self, editor):
        feedback = editor.remove_block("block-missing")

        assert feedback.title == "Block not found"
        assert feedback.ok is False

    def test_new_flow_and_clear(self, editor):
        editor.add_block("return")
        old_id = editor.flow.id

        assert editor.clear_canvas().title == "Canvas cleared"
        assert editor.flow.blocks == []
        assert editor.flow.id == old_id

        assert editor.new_flow("Second").title == "New flow created"
        assert editor.flow.id != old_id
        assert "// Flow: Second" in editor.generated_code

    def test_rename(self, editor):
        editor.rename("Renamed")
        assert "// Flow: Renamed" in editor.generated_code

    def test_validation_warnings(self, editor):
        block = editor.add_block("variable")
        editor.update_block_params(block.id, "type", "Integer")

        warnings = editor.validation_warnings()

        assert len(warnings) == 1
        assert "Integer" in warnings[0]


class TestPersistence:
    """Test cases for saving, loading and importing flows."""

    def test_save_and_load(self, editor):
        editor.rename("Saved flow")
        editor.add_block("return")
        flow_id = editor.flow.id

        feedback = editor.save_flow()
        assert feedback.title == "Flow saved"
        assert feedback.description == 'Your flow "Saved flow" has been saved.'

        editor.new_flow()
        assert editor.load_flow(flow_id).title == "Flow loaded"
        assert editor.flow.id == flow_id
        assert len(editor.flow.blocks) == 1

    def test_load_missing(self, editor):
        feedback = editor.load_flow("flow-missing")

        assert feedback.title == "Flow not found"
        assert feedback.ok is False

    def test_list_and_delete(self, editor):
        editor.save_flow()
        flow_id = editor.flow.id

        assert [f.id for f in editor.list_flows()] == [flow_id]
        assert editor.delete_flow(flow_id) is True
        assert editor.list_flows() == []

    def test_import(self, editor):
        source = Flow(name="Imported")
        source.add_block("return")

        feedback = editor.import_flow(export_flow(source))

        assert feedback.title == "Flow imported"
        assert editor.flow == source
        assert "// Flow: Imported" in editor.generated_code

    def test_import_failure_keeps_flow(self, editor):
        before = editor.flow

        feedback = editor.import_flow("{broken")

        assert feedback.title == "Import failed"
        assert editor.flow is before

    def test_export(self, editor):
        editor.add_block("return")
        assert '"type": "return"' in editor.export_flow()

    def test_store_created_on_demand(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BLOCKFLOW_DB_PATH", str(tmp_path / "lazy.db"))
        editor = FlowEditor()

        editor.save_flow()

        assert editor.store is not None
        assert (tmp_path / "lazy.db").exists()


class TestRunning:
    """Test cases for run_code()."""

    def test_run_success(self, store):
        executor = FakeExecutor(ExecutionResult(success=True, output="hi\n"))
        editor = FlowEditor(store=store, executor=executor)
        block = editor.add_block("console.log")
        editor.update_block_params(block.id, "message", "hi")

        result, feedback = editor.run_code()

        assert result.success is True
        assert feedback.title == "Code executed"
        assert feedback.description == "The code was executed successfully."
        assert executor.executed == [editor.generated_code]

    def test_run_failure(self, store):
        executor = FakeExecutor(ExecutionResult(success=False, error="ReferenceError: x"))
        editor = FlowEditor(store=store, executor=executor)

        result, feedback = editor.run_code()

        assert result.success is False
        assert feedback.title == "Execution error"
        assert feedback.description == "ReferenceError: x"
        assert feedback.variant == "destructive"
