"""
FlowEditor: the editing session behind the block coding workspace.

The editor owns the current Flow, applies every user edit to it, turns
structural rejections into user-facing feedback, and keeps the generated
JavaScript in step with the flow: the code is regenerated after each change
and announced through the ``on_code_changed`` callback.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from .exceptions import (
    BlockNotFoundError,
    CircularConnectionError,
    DuplicateConnectionError,
    FlowFormatError,
)
from .execution_engine import ExecutionResult, JavaScriptExecutor
from .flow_storage import FlowStore, export_flow, import_flow
from .js_generator import JavaScriptGenerator
from .models import Block, Edge, Flow


@dataclass
class Feedback:
    """A short message describing the outcome of a user action."""
    title: str
    description: str
    variant: str = "default"  # "default" | "destructive"

    @property
    def ok(self) -> bool:
        return self.variant != "destructive"

    def to_dict(self) -> dict:
        return {'title': self.title, 'description': self.description, 'variant': self.variant}


class FlowEditor:
    """Manages the flow being edited and the code generated from it."""

    def __init__(self, flow: Optional[Flow] = None,
                 store: Optional[FlowStore] = None,
                 executor: Optional[JavaScriptExecutor] = None,
                 generator: Optional[JavaScriptGenerator] = None):
        self.logger = logging.getLogger(__name__)
        self.flow = flow or Flow()
        self.store = store
        self.executor = executor
        self.generator = generator or JavaScriptGenerator()

        # Event callbacks
        self.on_code_changed: Optional[Callable[[str], None]] = None

        self.generated_code = ""
        self._regenerate()

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def add_block(self, block_type: str, position: Optional[Tuple[float, float]] = None) -> Block:
        block = self.flow.add_block(block_type, position)
        self._regenerate()
        return block

    def update_block_params(self, block_id: str, key: str, value: Any) -> bool:
        """Set a block parameter. Returns False if the block does not exist."""
        if self.flow.get_block(block_id) is None:
            return False
        self.flow.update_block_params(block_id, key, value)
        self._regenerate()
        return True

    def move_block(self, block_id: str, position: Tuple[float, float]) -> bool:
        # Position has no effect on the generated code.
        return self.flow.move_block(block_id, position)

    def remove_block(self, block_id: str) -> Feedback:
        if self.flow.get_block(block_id) is None:
            return Feedback("Block not found", f"No block with id {block_id}.", "destructive")

        removed = self.flow.remove_block(block_id)
        self._regenerate()
        return Feedback("Block removed", f"Block removed with {removed} connection(s).")

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def connect(self, source_id: str, target_id: str) -> Tuple[Optional[Edge], Feedback]:
        return self.add_edge(Edge(source=source_id, target=target_id))

    def add_edge(self, edge: Edge) -> Tuple[Optional[Edge], Feedback]:
        """Try to add an edge. The flow is left untouched when it is rejected."""
        try:
            self.flow.add_edge(edge)
        except DuplicateConnectionError:
            return None, Feedback("Connection exists", "These blocks are already connected.", "destructive")
        except CircularConnectionError:
            return None, Feedback(
                "Invalid connection",
                "This connection would create a circular reference.",
                "destructive",
            )
        except BlockNotFoundError as e:
            return None, Feedback("Invalid connection", str(e), "destructive")

        self._regenerate()
        return edge, Feedback("Blocks connected", f"Connected {edge.source} to {edge.target}.")

    def remove_edge(self, edge_id: str) -> bool:
        removed = self.flow.remove_edge(edge_id)
        if removed is None:
            return False
        self._regenerate()
        return True

    # ------------------------------------------------------------------
    # Whole-flow actions
    # ------------------------------------------------------------------

    def new_flow(self, name: str = "My Flow") -> Feedback:
        self.flow = Flow(name=name)
        self._regenerate()
        return Feedback("New flow created", "Started a new empty flow.")

    def clear_canvas(self) -> Feedback:
        self.flow.clear()
        self._regenerate()
        return Feedback("Canvas cleared", "All blocks and connections have been removed.")

    def rename(self, name: str) -> None:
        self.flow.name = name
        self._regenerate()

    def validation_warnings(self) -> List[str]:
        """Parameter and structure problems worth showing to the user."""
        warnings = [str(error) for error in self.flow.validate()]
        for block in self.flow.blocks:
            warnings.extend(str(error) for error in block.validate())
        return warnings

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_flow(self) -> Feedback:
        self._require_store().save(self.flow)
        return Feedback("Flow saved", f'Your flow "{self.flow.name}" has been saved.')

    def load_flow(self, flow_id: str) -> Feedback:
        flow = self._require_store().load(flow_id)
        if flow is None:
            return Feedback("Flow not found", f"No saved flow with id {flow_id}.", "destructive")
        self.flow = flow
        self._regenerate()
        return Feedback("Flow loaded", f'Flow "{flow.name}" has been loaded.')

    def list_flows(self) -> List[Flow]:
        return self._require_store().list()

    def delete_flow(self, flow_id: str) -> bool:
        return self._require_store().delete(flow_id)

    def export_flow(self) -> str:
        return export_flow(self.flow)

    def import_flow(self, text: str) -> Feedback:
        try:
            flow = import_flow(text)
        except FlowFormatError as e:
            self.logger.warning(f"Rejected flow import: {e}")
            return Feedback("Import failed", str(e), "destructive")

        self.flow = flow
        self._regenerate()
        return Feedback("Flow imported", f'Flow "{flow.name}" has been imported.')

    def _require_store(self) -> FlowStore:
        if self.store is None:
            self.store = FlowStore()
        return self.store

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def run_code(self) -> Tuple[ExecutionResult, Feedback]:
        """Run the current generated code and describe the outcome."""
        if self.executor is None:
            self.executor = JavaScriptExecutor(store=self.store)

        result = self.executor.execute(self.generated_code)
        if result.success:
            return result, Feedback("Code executed", result.message)
        return result, Feedback("Execution error", result.message, "destructive")

    # ------------------------------------------------------------------
    # Code generation
    # ------------------------------------------------------------------

    def _regenerate(self) -> None:
        self.generated_code = self.generator.generate(self.flow)
        if self.on_code_changed:
            self.on_code_changed(self.generated_code)
