"""
Core data models for the Block Coding Core.

This module defines the program graph a user assembles in the block editor:
blocks (typed nodes carrying parameter values), edges (directed
output -> input links) and the flow that owns both.  The flow is the only
place edges are added or removed, so it is also where the structural
invariants live: no duplicate connections, no cycles, and a per-block
connection cache that always mirrors the edge list.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Any, Set, Tuple, Optional
import logging
import numbers
import uuid

from .block_types import get_block_config, get_param_definition, is_known_block_type
from .exceptions import (
    BlockNotFoundError,
    CircularConnectionError,
    DuplicateConnectionError,
    FlowError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_POSITION: Tuple[float, float] = (100.0, 100.0)
SOURCE_HANDLE = "output"
TARGET_HANDLE = "input"


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


@dataclass
class BlockConnections:
    """Ids of the blocks wired into and out of a block."""
    inputs: List[str] = field(default_factory=list)
    outputs: List[str] = field(default_factory=list)


@dataclass
class Block:
    """A node in the program graph."""
    id: str = field(default_factory=lambda: _new_id("block"))
    type: str = "console.log"
    position: Tuple[float, float] = DEFAULT_POSITION
    params: Dict[str, Any] = field(default_factory=dict)
    connections: BlockConnections = field(default_factory=BlockConnections)

    def get_param(self, name: str) -> Any:
        """Return a parameter value, storing the schema default on first access."""
        if name not in self.params:
            definition = get_param_definition(self.type, name)
            if definition is None:
                return None
            self.params[name] = definition.default_value
        return self.params[name]

    def validate(self) -> List[ValidationError]:
        """Check stored parameter values against the block's schema."""
        errors = []

        if not is_known_block_type(self.type):
            errors.append(ValidationError(f"Unknown block type: {self.type}", {'block_id': self.id}))
            return errors

        config = get_block_config(self.type)
        for name, value in self.params.items():
            definition = config.get_param(name)
            if definition is None:
                errors.append(ValidationError(
                    f"Block {self.id} has unexpected parameter '{name}'",
                    {'block_id': self.id, 'param': name},
                ))
                continue

            if definition.type == 'select' and value not in definition.option_values():
                errors.append(ValidationError(
                    f"Parameter '{name}' must be one of {definition.option_values()}, got {value!r}",
                    {'block_id': self.id, 'param': name},
                ))
            elif definition.type == 'number' and not _is_numeric(value):
                errors.append(ValidationError(
                    f"Parameter '{name}' must be numeric, got {value!r}",
                    {'block_id': self.id, 'param': name},
                ))
            elif definition.type == 'boolean' and not isinstance(value, bool):
                errors.append(ValidationError(
                    f"Parameter '{name}' must be a boolean, got {value!r}",
                    {'block_id': self.id, 'param': name},
                ))

        return errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'position': {'x': self.position[0], 'y': self.position[1]},
            'params': dict(self.params),
            'connections': {
                'inputs': list(self.connections.inputs),
                'outputs': list(self.connections.outputs),
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Block':
        position = data.get('position') or {}
        if isinstance(position, dict):
            position = (position.get('x', DEFAULT_POSITION[0]), position.get('y', DEFAULT_POSITION[1]))
        connections = data.get('connections') or {}
        return cls(
            id=data['id'],
            type=data['type'],
            position=(float(position[0]), float(position[1])),
            params=dict(data.get('params') or {}),
            connections=BlockConnections(
                inputs=list(connections.get('inputs', [])),
                outputs=list(connections.get('outputs', [])),
            ),
        )


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, numbers.Number):
        return True
    try:
        float(value)
    except (TypeError, ValueError):
        return False
    return True


def _reaches_cycle(graph: Dict[str, List[str]], start: str, visited: Set[str]) -> bool:
    """Depth-first search from ``start`` for a back edge.

    Uses an explicit stack so long chains do not hit the recursion limit.
    ``visited`` is shared between calls; ``rec_stack`` holds the current path.
    """
    visited.add(start)
    rec_stack = {start}
    stack = [(start, iter(graph.get(start, [])))]

    while stack:
        node_id, neighbours = stack[-1]
        for neighbour in neighbours:
            if neighbour in rec_stack:
                return True
            if neighbour not in visited:
                visited.add(neighbour)
                rec_stack.add(neighbour)
                stack.append((neighbour, iter(graph.get(neighbour, []))))
                break
        else:
            stack.pop()
            rec_stack.discard(node_id)

    return False


@dataclass
class Edge:
    """A directed connection from one block's output to another's input."""
    source: str = ""
    target: str = ""
    id: str = field(default_factory=lambda: _new_id("edge"))
    source_handle: str = SOURCE_HANDLE
    target_handle: str = TARGET_HANDLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'source': self.source,
            'sourceHandle': self.source_handle,
            'target': self.target,
            'targetHandle': self.target_handle,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Edge':
        return cls(
            id=data.get('id') or _new_id("edge"),
            source=data['source'],
            target=data['target'],
            source_handle=data.get('sourceHandle', SOURCE_HANDLE),
            target_handle=data.get('targetHandle', TARGET_HANDLE),
        )


@dataclass
class Flow:
    """A complete block program: its blocks and the edges between them."""
    id: str = field(default_factory=lambda: _new_id("flow"))
    name: str = "My Flow"
    blocks: List[Block] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    # ------------------------------------------------------------------
    # Lookups and derived adjacency views
    # ------------------------------------------------------------------

    def get_block(self, block_id: str) -> Optional[Block]:
        """Get a block by id."""
        for block in self.blocks:
            if block.id == block_id:
                return block
        return None

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    def find_edge(self, source: str, target: str) -> Optional[Edge]:
        """Get the edge between an ordered source/target pair, if any."""
        for edge in self.edges:
            if edge.source == source and edge.target == target:
                return edge
        return None

    def outgoing_edges(self, block_id: str) -> List[Edge]:
        return [edge for edge in self.edges if edge.source == block_id]

    def incoming_edges(self, block_id: str) -> List[Edge]:
        return [edge for edge in self.edges if edge.target == block_id]

    def adjacency(self) -> Dict[str, List[str]]:
        """Map every block id to the ids its outgoing edges point at."""
        graph: Dict[str, List[str]] = {block.id: [] for block in self.blocks}
        for edge in self.edges:
            graph.setdefault(edge.source, []).append(edge.target)
        return graph

    # ------------------------------------------------------------------
    # Block mutation
    # ------------------------------------------------------------------

    def add_block(self, block_type: str, position: Optional[Tuple[float, float]] = None) -> Block:
        """Create a block of the given type and append it to the flow."""
        block = Block(type=block_type, position=position or DEFAULT_POSITION)
        self.blocks.append(block)
        logger.debug(f"Added {block_type} block {block.id} to flow {self.id}")
        return block

    def update_block_params(self, block_id: str, key: str, value: Any) -> None:
        """Merge a parameter value into a block. Unknown block ids are ignored."""
        block = self.get_block(block_id)
        if block is None:
            return
        block.params[key] = value

    def update_block(self, block_id: str,
                     position: Optional[Tuple[float, float]] = None,
                     params: Optional[Dict[str, Any]] = None) -> None:
        """Apply a partial update to a block's position and/or params."""
        block = self.get_block(block_id)
        if block is None:
            return
        if position is not None:
            block.position = (float(position[0]), float(position[1]))
        if params is not None:
            block.params.update(params)

    def move_block(self, block_id: str, position: Tuple[float, float]) -> bool:
        block = self.get_block(block_id)
        if block is None:
            return False
        block.position = (float(position[0]), float(position[1]))
        return True

    def remove_block(self, block_id: str) -> int:
        """Remove a block and every edge touching it.

        Returns the number of edges that were removed with the block.
        """
        block = self.get_block(block_id)
        if block is None:
            return 0

        connected = [e for e in self.edges if e.source == block_id or e.target == block_id]
        self.edges = [e for e in self.edges if e.source != block_id and e.target != block_id]
        self.blocks = [b for b in self.blocks if b.id != block_id]

        for other in self.blocks:
            other.connections.inputs = [i for i in other.connections.inputs if i != block_id]
            other.connections.outputs = [o for o in other.connections.outputs if o != block_id]

        logger.debug(f"Removed block {block_id} with {len(connected)} connection(s)")
        return len(connected)

    def clear(self) -> None:
        """Remove every block and edge."""
        self.blocks = []
        self.edges = []

    # ------------------------------------------------------------------
    # Edge mutation
    # ------------------------------------------------------------------

    def connect(self, source_id: str, target_id: str) -> Edge:
        """Connect one block's output to another block's input."""
        return self.add_edge(Edge(source=source_id, target=target_id))

    def add_edge(self, edge: Edge) -> Edge:
        """Add an edge, rejecting duplicates and cycles.

        Raises:
            BlockNotFoundError: an endpoint is not part of this flow.
            DuplicateConnectionError: source and target are already connected.
            CircularConnectionError: the edge would close a directed cycle.
        """
        source = self.get_block(edge.source)
        target = self.get_block(edge.target)
        if source is None:
            raise BlockNotFoundError(f"Edge source {edge.source} is not in the flow", edge.source)
        if target is None:
            raise BlockNotFoundError(f"Edge target {edge.target} is not in the flow", edge.target)

        if self.find_edge(edge.source, edge.target) is not None:
            logger.warning(f"Rejected duplicate connection {edge.source} -> {edge.target}")
            raise DuplicateConnectionError(
                "These blocks are already connected.", edge,
                {'source': edge.source, 'target': edge.target},
            )

        if self.would_create_cycle(edge):
            logger.warning(f"Rejected circular connection {edge.source} -> {edge.target}")
            raise CircularConnectionError(
                "This connection would create a circular reference.", edge,
                {'source': edge.source, 'target': edge.target},
            )

        self.edges.append(edge)
        source.connections.outputs.append(edge.target)
        target.connections.inputs.append(edge.source)
        logger.debug(f"Connected {edge.source} -> {edge.target} ({edge.id})")
        return edge

    def remove_edge(self, edge_id: str) -> Optional[Edge]:
        """Remove an edge by id. Returns the removed edge, or None if absent."""
        edge = self.get_edge(edge_id)
        if edge is None:
            return None

        self.edges = [e for e in self.edges if e.id != edge_id]

        source = self.get_block(edge.source)
        if source is not None:
            source.connections.outputs = [o for o in source.connections.outputs if o != edge.target]
        target = self.get_block(edge.target)
        if target is not None:
            target.connections.inputs = [i for i in target.connections.inputs if i != edge.source]

        logger.debug(f"Disconnected {edge.source} -> {edge.target} ({edge.id})")
        return edge

    def would_create_cycle(self, edge: Edge) -> bool:
        """Check whether adding an edge would create a cycle reachable from its source."""
        graph: Dict[str, List[str]] = {}
        for existing in self.edges + [edge]:
            graph.setdefault(existing.source, []).append(existing.target)

        return _reaches_cycle(graph, edge.source, set())

    def rebuild_connections(self) -> None:
        """Recompute every block's connection cache from the edge list."""
        by_id = {block.id: block for block in self.blocks}
        for block in self.blocks:
            block.connections = BlockConnections()
        for edge in self.edges:
            if edge.source in by_id:
                by_id[edge.source].connections.outputs.append(edge.target)
            if edge.target in by_id:
                by_id[edge.target].connections.inputs.append(edge.source)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> List[FlowError]:
        """Validate the flow structure and return any errors."""
        errors: List[FlowError] = []
        block_ids = set()

        for block in self.blocks:
            if block.id in block_ids:
                errors.append(ValidationError(f"Duplicate block id: {block.id}"))
            block_ids.add(block.id)

        pairs = set()
        for edge in self.edges:
            if edge.source not in block_ids:
                errors.append(ValidationError(f"Edge {edge.id} references missing source block: {edge.source}"))
            if edge.target not in block_ids:
                errors.append(ValidationError(f"Edge {edge.id} references missing target block: {edge.target}"))
            if (edge.source, edge.target) in pairs:
                errors.append(ValidationError(f"Duplicate connection {edge.source} -> {edge.target}"))
            pairs.add((edge.source, edge.target))

        if self._has_cycles():
            errors.append(ValidationError("Flow contains circular connections"))

        for block in self.blocks:
            expected_outputs = sorted(e.target for e in self.edges if e.source == block.id)
            expected_inputs = sorted(e.source for e in self.edges if e.target == block.id)
            if sorted(block.connections.outputs) != expected_outputs or \
                    sorted(block.connections.inputs) != expected_inputs:
                errors.append(ValidationError(f"Connection cache of block {block.id} is out of date"))

        return errors

    def _has_cycles(self) -> bool:
        """Check if the flow has circular connections using DFS."""
        graph = self.adjacency()
        visited: Set[str] = set()

        for node_id in graph:
            if node_id not in visited:
                if _reaches_cycle(graph, node_id, visited):
                    return True
        return False

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'name': self.name,
            'blocks': [block.to_dict() for block in self.blocks],
            'edges': [edge.to_dict() for edge in self.edges],
        }
        if self.created_at is not None:
            data['createdAt'] = self.created_at
        if self.updated_at is not None:
            data['updatedAt'] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Flow':
        raw_blocks = data.get('blocks', [])
        flow = cls(
            id=data['id'],
            name=data.get('name', "My Flow"),
            blocks=[Block.from_dict(b) for b in raw_blocks],
            edges=[Edge.from_dict(e) for e in data.get('edges', [])],
            created_at=data.get('createdAt'),
            updated_at=data.get('updatedAt'),
        )
        if any('connections' not in b for b in raw_blocks):
            flow.rebuild_connections()
        return flow
