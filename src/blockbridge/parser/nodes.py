"""
Block Tree Nodes

The parsed form of a source file: a tree of nodes, each one editable as a
single block in the visual editor.

A node has:
- fields:     name -> literal string value
- values:     slot name -> a single child node
- statements: slot name -> ordered list of child nodes

Sibling order inside a statement slot is the only ordering information;
the serializer turns it into a linked chain when writing XML.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional

from blockbridge.parser.vocabulary import NodeCategory, category_of, dialect_of, get_spec


@dataclass
class Node:
    """Base class for block tree nodes."""
    type: str
    id: str
    fields: Dict[str, str] = field(default_factory=dict)
    values: Dict[str, 'Node'] = field(default_factory=dict)
    statements: Dict[str, List['Node']] = field(default_factory=dict)
    category: NodeCategory = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if self.category is None:
            self.category = NodeCategory.OPAQUE

    def __repr__(self):
        name = self.fields.get('NAME') or self.fields.get('PATH') or ''
        return f"{type(self).__name__}({self.type}{' ' + name if name else ''}, {self.id})"

    @property
    def dialect(self) -> Optional[str]:
        return dialect_of(self.type)

    @property
    def kind(self) -> str:
        spec = get_spec(self.type)
        return spec.kind if spec else self.type

    def value(self, name: str) -> Optional['Node']:
        """Child attached to a value slot, or None."""
        return self.values.get(name)

    def body(self, name: str) -> List['Node']:
        """Children of a statement slot (empty list if the slot is empty)."""
        return self.statements.get(name, [])

    def text(self, slot: str) -> Optional[str]:
        """Literal text carried by the child in a value slot.

        Text children hold their source fragment in a single field, so this
        returns that field's value.
        """
        child = self.values.get(slot)
        if child is None or not child.fields:
            return None
        return next(iter(child.fields.values()))

    def walk(self) -> Iterator['Node']:
        """Yield this node and every descendant, depth first.

        Value slots are visited before statement slots, each in slot order.
        """
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            children = list(node.values.values())
            for stmts in node.statements.values():
                children.extend(stmts)
            stack.extend(reversed(children))

    def to_dict(self, include_ids: bool = True) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        data: Dict[str, Any] = {'type': self.type}
        if include_ids:
            data['id'] = self.id
        if self.fields:
            data['fields'] = dict(self.fields)
        if self.values:
            data['values'] = {
                name: child.to_dict(include_ids) for name, child in self.values.items()
            }
        if self.statements:
            data['statements'] = {
                name: [child.to_dict(include_ids) for child in children]
                for name, children in self.statements.items()
            }
        return data

    def structure(self) -> Dict[str, Any]:
        """Id-free dictionary, for comparing trees across parse sessions."""
        return self.to_dict(include_ids=False)


@dataclass(repr=False)
class DeclarationNode(Node):
    """Top-level item: function, struct, impl, use, binding."""

    def __post_init__(self):
        self.category = NodeCategory.DECLARATION


@dataclass(repr=False)
class StatementNode(Node):
    """Statement inside a body."""

    def __post_init__(self):
        self.category = NodeCategory.STATEMENT


@dataclass(repr=False)
class ExpressionNode(Node):
    """Expression text attached to a value slot."""

    def __post_init__(self):
        self.category = NodeCategory.EXPRESSION


@dataclass(repr=False)
class LiteralNode(Node):
    """Verbatim signature fragment (parameter list, return type)."""

    def __post_init__(self):
        self.category = NodeCategory.LITERAL


@dataclass(repr=False)
class OpaqueNode(Node):
    """Content that could not be decomposed further."""

    def __post_init__(self):
        self.category = NodeCategory.OPAQUE


NODE_CLASSES = {
    NodeCategory.DECLARATION: DeclarationNode,
    NodeCategory.STATEMENT: StatementNode,
    NodeCategory.EXPRESSION: ExpressionNode,
    NodeCategory.LITERAL: LiteralNode,
    NodeCategory.OPAQUE: OpaqueNode,
}


def build_node(
    block_type: str,
    node_id: str,
    fields: Optional[Mapping[str, str]] = None,
    values: Optional[Mapping[str, Optional[Node]]] = None,
    statements: Optional[Mapping[str, Optional[List[Node]]]] = None,
) -> Node:
    """
    Construct a node of the class matching its type's category.

    Empty value slots (None) and empty statement slots are dropped, so a
    node only carries the slots that actually hold children.
    """
    cls = NODE_CLASSES[category_of(block_type)]
    return cls(
        type=block_type,
        id=node_id,
        fields={k: str(v) for k, v in (fields or {}).items()},
        values={k: v for k, v in (values or {}).items() if v is not None},
        statements={k: list(v) for k, v in (statements or {}).items() if v},
    )


def walk_all(nodes: List[Node]) -> Iterator[Node]:
    """Depth-first walk over a sequence of trees."""
    for node in nodes:
        yield from node.walk()
