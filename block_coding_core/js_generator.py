"""
JavaScript Code Generator for block flows.

This module turns a Flow into JavaScript source.  Blocks with no incoming
edge are entry points.  Control-flow blocks (if-else, loops, function
definitions) treat their outgoing edges as their body; every other block
emits one statement and then continues with its outgoing edges in the same
scope.  Blocks that are never reached from an entry point are still
emitted, flagged as disconnected.

Generation never fails: unknown block types become comments and missing
parameters are rendered as ``undefined``.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set, Tuple

from .block_types import CONTROL_FLOW_TYPES
from .js_ast import Blank, BlockStatement, Comment, Node, Program, Statement
from .models import Block, Edge, Flow


@dataclass
class _GenerationContext:
    """Lookup tables and run-wide bookkeeping for one generation pass."""
    blocks: Dict[str, Block]
    outgoing: Dict[str, List[Edge]]
    emitted: Set[str] = field(default_factory=set)

    @classmethod
    def for_flow(cls, flow: Flow) -> '_GenerationContext':
        blocks = {block.id: block for block in flow.blocks}
        outgoing: Dict[str, List[Edge]] = {}
        for edge in flow.edges:
            outgoing.setdefault(edge.source, []).append(edge)
        return cls(blocks=blocks, outgoing=outgoing)

    def targets(self, block_id: str) -> List[Block]:
        """Blocks reached through a block's outgoing edges, in edge order."""
        return [
            self.blocks[edge.target]
            for edge in self.outgoing.get(block_id, [])
            if edge.target in self.blocks
        ]


def _js(value: Any) -> str:
    """Render a raw parameter value the way a JavaScript template literal would."""
    if value is None:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _json(value: Any) -> str:
    """Render a value the way JSON.stringify would."""
    if value is None:
        return "undefined"
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return json.dumps(_js(value), ensure_ascii=False)


def _type_of(block: Block) -> str:
    return block.type if isinstance(block.type, str) else _js(block.type)


def _param(block: Block, name: str) -> Any:
    params = block.params if isinstance(block.params, dict) else {}
    return params.get(name)


class JavaScriptGenerator:
    """Generates JavaScript code from a block flow."""

    def __init__(self, indent_size: int = 2):
        self.indent_size = indent_size
        self.logger = logging.getLogger(__name__)

        self._statements: Dict[str, Callable[[Block], str]] = {
            'console.log': self._console_log,
            'variable': self._variable,
            'return': self._return,
            'function-call': self._function_call,
            'math-operation': self._binary_operation,
            'comparison': self._binary_operation,
            'logical-operator': self._logical_operation,
        }
        self._structures: Dict[str, Callable[[Block], Tuple[str, str]]] = {
            'if-else': self._if_else,
            'for-loop': self._for_loop,
            'while-loop': self._while_loop,
            'forEach': self._for_each,
            'function-def': self._function_def,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate(self, flow: Flow, now: Optional[datetime] = None) -> str:
        """Generate the JavaScript source for a flow."""
        return self.build_program(flow, now).render(self.indent_size)

    def build_program(self, flow: Flow, now: Optional[datetime] = None) -> Program:
        """Build the statement tree for a flow without rendering it."""
        ctx = _GenerationContext.for_flow(flow)
        body: List[Node] = []

        entry_points = self.find_entry_points(flow)
        if not entry_points and flow.blocks:
            self.logger.warning(
                f"Flow {flow.id} has no entry point; starting from block {flow.blocks[0].id}"
            )
            entry_points = [flow.blocks[0]]

        visited: Set[str] = set()
        for entry in entry_points:
            body.extend(self._emit_block(entry, ctx, visited))

        disconnected = 0
        for block in flow.blocks:
            if block.id in ctx.emitted:
                continue
            disconnected += 1
            body.append(Blank())
            body.append(Comment(f"Disconnected block: {_type_of(block)}"))
            # Chains leaving a disconnected block stop at blocks already written.
            body.extend(self._emit_block(block, ctx, set(ctx.emitted)))

        self.logger.debug(
            f"Generated code for flow {flow.id}: {len(flow.blocks)} blocks, "
            f"{len(flow.edges)} edges, {len(entry_points)} entry points, "
            f"{disconnected} disconnected"
        )
        return Program(header=self._header(flow, now), body=body)

    @staticmethod
    def find_entry_points(flow: Flow) -> List[Block]:
        """Blocks with no incoming edge, in flow order."""
        targeted = {edge.target for edge in flow.edges}
        return [block for block in flow.blocks if block.id not in targeted]

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _emit_block(self, block: Block, ctx: _GenerationContext, visited: Set[str]) -> List[Node]:
        """Emit a block and, for sequential blocks, the chain that follows it.

        ``visited`` is mutated in place: it is shared by every block of the
        same sequential chain.  The chain is walked depth-first on an
        explicit stack, so only control-flow nesting adds to the call depth.
        """
        nodes: List[Node] = []
        pending = [block]

        while pending:
            current = pending.pop()
            if current.id in visited:
                continue
            visited.add(current.id)
            ctx.emitted.add(current.id)

            block_type = _type_of(current)
            if block_type in CONTROL_FLOW_TYPES:
                nodes.append(self._emit_structure(current, block_type, ctx, frozenset(visited)))
                continue

            nodes.append(self._emit_statement(current, block_type))
            pending.extend(reversed(ctx.targets(current.id)))

        return nodes

    def _emit_structure(self, block: Block, block_type: str, ctx: _GenerationContext,
                        visited: FrozenSet[str]) -> BlockStatement:
        header, closer = self._structures[block_type](block)
        body: List[Node] = []
        for child in ctx.targets(block.id):
            body.extend(self._emit_branch_child(child, ctx, visited))
        return BlockStatement(header, body, closer, block_id=block.id)

    def _emit_branch_child(self, child: Block, ctx: _GenerationContext,
                           visited: FrozenSet[str]) -> List[Node]:
        """Emit one body child of a control-flow block on its own copy of the path."""
        return self._emit_block(child, ctx, set(visited))

    def _emit_statement(self, block: Block, block_type: str) -> Node:
        emitter = self._statements.get(block_type)
        if emitter is None:
            return Comment(f"Unknown block type: {block_type}", block_id=block.id)
        return Statement(emitter(block), block_id=block.id)

    # ------------------------------------------------------------------
    # Statement blocks
    # ------------------------------------------------------------------

    def _console_log(self, block: Block) -> str:
        return f"console.log({_json(_param(block, 'message'))});"

    def _variable(self, block: Block) -> str:
        var_type = _param(block, 'type') or 'Number'
        value = _js(_param(block, 'value'))
        if var_type == 'String':
            value = json.dumps(value, ensure_ascii=False)
        return f"let {_js(_param(block, 'name'))} = {value};"

    def _return(self, block: Block) -> str:
        return f"return {_js(_param(block, 'value'))};"

    def _function_call(self, block: Block) -> str:
        call = f"{_js(_param(block, 'name'))}({_js(_param(block, 'args'))})"
        return self._bind_result(block, call)

    def _binary_operation(self, block: Block) -> str:
        expression = (
            f"{_js(_param(block, 'leftOperand'))} "
            f"{_js(_param(block, 'operator'))} "
            f"{_js(_param(block, 'rightOperand'))}"
        )
        return self._bind_result(block, expression)

    def _logical_operation(self, block: Block) -> str:
        operator = _param(block, 'operator')
        if operator == '!':
            expression = f"!{_js(_param(block, 'rightOperand'))}"
        else:
            expression = (
                f"{_js(_param(block, 'leftOperand'))} "
                f"{_js(operator)} "
                f"{_js(_param(block, 'rightOperand'))}"
            )
        return self._bind_result(block, expression)

    @staticmethod
    def _bind_result(block: Block, expression: str) -> str:
        result_var = _param(block, 'resultVar')
        if result_var:
            return f"let {_js(result_var)} = {expression};"
        return f"{expression};"

    # ------------------------------------------------------------------
    # Control-flow blocks: (header, closer)
    # ------------------------------------------------------------------

    def _if_else(self, block: Block) -> Tuple[str, str]:
        return f"if ({_js(_param(block, 'condition'))}) {{", "}"

    def _for_loop(self, block: Block) -> Tuple[str, str]:
        init_var = _js(_param(block, 'initVar'))
        header = (
            f"for (let {init_var} = {_js(_param(block, 'initVal'))}; "
            f"{init_var} {_js(_param(block, 'condOp'))} {_js(_param(block, 'condVal'))}; "
            f"{_js(_param(block, 'iteration'))}) {{"
        )
        return header, "}"

    def _while_loop(self, block: Block) -> Tuple[str, str]:
        return f"while ({_js(_param(block, 'condition'))}) {{", "}"

    def _for_each(self, block: Block) -> Tuple[str, str]:
        return (
            f"{_js(_param(block, 'array'))}.forEach(({_js(_param(block, 'itemName'))}) => {{",
            "});",
        )

    def _function_def(self, block: Block) -> Tuple[str, str]:
        return f"function {_js(_param(block, 'name'))}({_js(_param(block, 'params'))}) {{", "}"

    # ------------------------------------------------------------------
    # Header
    # ------------------------------------------------------------------

    def _header(self, flow: Flow, now: Optional[datetime]) -> List[Comment]:
        return [
            Comment("JavaScript code generated by Block Coding App"),
            Comment(f"Flow: {flow.name}"),
            Comment(f"Generated: {_iso_timestamp(now)}"),
            Comment(f"Blocks: {len(flow.blocks)}, Connections: {len(flow.edges)}"),
        ]


def _iso_timestamp(now: Optional[datetime] = None) -> str:
    """Format a timestamp like JavaScript's Date.toISOString()."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime('%Y-%m-%dT%H:%M:%S.') + f"{now.microsecond // 1000:03d}Z"


def generate_javascript_code(flow: Flow, now: Optional[datetime] = None) -> str:
    """Generate JavaScript code from a Flow."""
    generator = JavaScriptGenerator()
    return generator.generate(flow, now)
