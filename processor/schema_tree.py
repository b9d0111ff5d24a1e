"""Tree representation of JSON-LD structures and empty-value pruning."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class ScalarNode:
    """Leaf value: string, number, bool or None."""
    value: Any = None


@dataclass
class ObjectNode:
    """Mapping of keys to child nodes, in insertion order."""
    fields: Dict[str, 'SchemaNode'] = field(default_factory=dict)


@dataclass
class ListNode:
    """Ordered sequence of child nodes."""
    items: List['SchemaNode'] = field(default_factory=list)


SchemaNode = Union[ScalarNode, ObjectNode, ListNode]


def from_python(value: Any) -> SchemaNode:
    """
    Convert plain dicts, lists and scalars into a node tree.

    Args:
        value: JSON-compatible Python value

    Returns:
        Equivalent SchemaNode
    """
    if isinstance(value, dict):
        return ObjectNode({key: from_python(child) for key, child in value.items()})
    if isinstance(value, (list, tuple)):
        return ListNode([from_python(child) for child in value])
    return ScalarNode(value)


def to_python(node: SchemaNode) -> Any:
    """Convert a node tree back into plain dicts, lists and scalars."""
    if isinstance(node, ObjectNode):
        return {key: to_python(child) for key, child in node.fields.items()}
    if isinstance(node, ListNode):
        return [to_python(child) for child in node.items]
    return node.value


def prune(node: SchemaNode) -> Optional[SchemaNode]:
    """
    Remove null, empty-string and empty-container values, depth first.

    Children are pruned before their parent is checked, so a container
    emptied by pruning is itself removed.

    Args:
        node: Root of the tree to prune

    Returns:
        Pruned tree, or None if nothing is left
    """
    if isinstance(node, ObjectNode):
        fields = {}
        for key, child in node.fields.items():
            pruned = prune(child)
            if pruned is not None:
                fields[key] = pruned
        return ObjectNode(fields) if fields else None

    if isinstance(node, ListNode):
        items = [pruned for pruned in map(prune, node.items) if pruned is not None]
        return ListNode(items) if items else None

    if node.value is None or node.value == '':
        return None
    return node


def prune_empty(value: Any) -> Any:
    """
    Prune a plain Python structure.

    Returns:
        Pruned structure, or None if nothing is left
    """
    pruned = prune(from_python(value))
    return to_python(pruned) if pruned is not None else None
