"""Tree-wide invariant checks.

Constructors only check local shape. Cross-tree invariants are enforced once,
right before a tree is fitted or flattened.
"""

from .errors import StructuralError
from .nodes import Node, walk


def validate_tree(root: Node) -> None:
    """Validate nesting invariants of a finished tree.

    - A message must not contain another message at any depth.
    - Tool-call, tool-result and reasoning nodes have no children.

    Raises:
        StructuralError: naming the offending node's path and id
    """
    _validate(root, "root", inside_message=False)


def _validate(node: Node, path: str, inside_message: bool) -> None:
    if node.is_message and inside_message:
        raise StructuralError("Message nested inside another message", path, node.id)

    if node.is_leaf and node.children:
        raise StructuralError(
            f"{node.kind_name} node must not have children", path, node.id
        )

    nested = inside_message or node.is_message
    for index, child in enumerate(node.children):
        if isinstance(child, Node):
            _validate(child, f"{path}.children[{index}]", nested)


def find_duplicate_ids(root: Node) -> list[str]:
    """Return ids used by more than one node, in first-seen order."""
    seen: set[str] = set()
    duplicates: list[str] = []

    for _, node in walk(root):
        if node.id is None:
            continue
        if node.id in seen:
            if node.id not in duplicates:
                duplicates.append(node.id)
        else:
            seen.add(node.id)

    return duplicates


def assert_unique_ids(root: Node) -> None:
    """Raise StructuralError if any id is used more than once."""
    duplicates = find_duplicate_ids(root)
    if duplicates:
        raise StructuralError(
            f"Node ids must be unique. Duplicate ids: {', '.join(duplicates)}"
        )
