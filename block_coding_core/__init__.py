"""
Block Coding Core - compiles visually assembled block flows into JavaScript.

This package provides the block/edge program graph, the code generator that
turns it into JavaScript source, and the collaborators around it: the block
type registry, flow storage, a Node.js executor and the editing session.
"""

__version__ = "0.1.0"
__author__ = "Block Coding Team"

from .models import Block, BlockConnections, Edge, Flow
from .exceptions import (
    FlowError,
    ConnectionRejectedError,
    DuplicateConnectionError,
    CircularConnectionError,
    BlockNotFoundError,
    FlowFormatError,
    ValidationError,
)
from .block_types import (
    BlockParam, BlockConfig, BLOCK_CATEGORIES, BLOCK_TYPES, CONTROL_FLOW_TYPES,
    get_block_config, default_params,
)
from .js_generator import JavaScriptGenerator, generate_javascript_code
from .flow_storage import FlowStore, export_flow, import_flow
from .execution_engine import ExecutionResult, JavaScriptExecutor
from .editor import Feedback, FlowEditor

__all__ = [
    "Block",
    "BlockConnections",
    "Edge",
    "Flow",
    "FlowError",
    "ConnectionRejectedError",
    "DuplicateConnectionError",
    "CircularConnectionError",
    "BlockNotFoundError",
    "FlowFormatError",
    "ValidationError",
    "BlockParam",
    "BlockConfig",
    "BLOCK_CATEGORIES",
    "BLOCK_TYPES",
    "CONTROL_FLOW_TYPES",
    "get_block_config",
    "default_params",
    "JavaScriptGenerator",
    "generate_javascript_code",
    "FlowStore",
    "export_flow",
    "import_flow",
    "ExecutionResult",
    "JavaScriptExecutor",
    "Feedback",
    "FlowEditor",
]
