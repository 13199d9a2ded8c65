"""
A small statement tree for generated JavaScript.

The generator builds these nodes instead of concatenating strings so that
nesting is explicit and indentation is applied in exactly one place.
Nodes carry the id of the block that produced them, which lets callers
inspect the structure of the output without parsing text.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple, Union


@dataclass
class Statement:
    """A single line of code, e.g. ``let x = 5;``."""
    text: str
    block_id: Optional[str] = None


@dataclass
class Comment:
    """A ``//`` line comment."""
    text: str
    block_id: Optional[str] = None


@dataclass
class Blank:
    """An empty line."""
    block_id: Optional[str] = None


@dataclass
class BlockStatement:
    """A header line, an indented body and a closing line."""
    header: str
    body: List['Node'] = field(default_factory=list)
    closer: str = "}"
    block_id: Optional[str] = None


Node = Union[Statement, Comment, Blank, BlockStatement]


class JSWriter:
    """Renders statement nodes into indented source lines."""

    def __init__(self, indent_size: int = 2):
        self.indent_size = indent_size
        self.indent_level = 0
        self._lines: List[str] = []

    def write(self, nodes: List[Node]) -> 'JSWriter':
        for node in nodes:
            self._write_node(node)
        return self

    def _write_node(self, node: Node) -> None:
        if isinstance(node, Statement):
            self._writeln(node.text)
        elif isinstance(node, Comment):
            self._writeln(f"// {node.text}")
        elif isinstance(node, Blank):
            self._lines.append("")
        elif isinstance(node, BlockStatement):
            self._writeln(node.header)
            self.indent_level += 1
            self.write(node.body)
            self.indent_level -= 1
            self._writeln(node.closer)

    def _writeln(self, line: str) -> None:
        self._lines.append(" " * (self.indent_level * self.indent_size) + line)

    def lines(self) -> List[str]:
        return self._lines


@dataclass
class Program:
    """A complete generated file: a comment header followed by statements."""
    header: List[Comment] = field(default_factory=list)
    body: List[Node] = field(default_factory=list)

    def render(self, indent_size: int = 2) -> str:
        header_lines = JSWriter(indent_size).write(list(self.header)).lines()
        body_lines = JSWriter(indent_size).write(self.body).lines()

        text = ""
        if header_lines:
            text += "\n".join(header_lines) + "\n\n"
        if body_lines:
            text += "\n".join(body_lines) + "\n"
        return text

    def walk(self) -> Iterator[Tuple[Node, int]]:
        """Yield every body node with its nesting depth, in output order."""
        return walk(self.body)

    def block_ids(self) -> List[str]:
        """Ids of the blocks whose code appears in the body, in output order."""
        return [
            node.block_id for node, _ in self.walk()
            if not isinstance(node, Blank) and node.block_id is not None
        ]


def walk(nodes: List[Node], depth: int = 0) -> Iterator[Tuple[Node, int]]:
    for node in nodes:
        yield node, depth
        if isinstance(node, BlockStatement):
            yield from walk(node.body, depth + 1)
