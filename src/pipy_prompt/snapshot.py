"""Deterministic snapshots of a prompt tree for diffing and tracing.

A snapshot flattens a (usually fitted) tree into nodes with a stable identity
(explicit id, otherwise positional path), per-node token counts and a hash of
the whole thing. Fitting and flattening never look at snapshots.
"""

import hashlib
import json
from typing import Literal

from pydantic import BaseModel, Field

from .layout import safe_stringify
from .nodes import MessageKind, Node, ReasoningKind, ToolCallKind, ToolResultKind
from .tokens import Projection, Tokenizer, approximate_tokenizer, markdown_projection


class SnapshotNode(BaseModel):
    """One node (or text child) of a snapshot."""

    node_type: Literal["element", "text"]
    path: list[int] = Field(default_factory=list)
    id: str | None = None
    kind: str | None = None
    priority: int | None = None
    role: str | None = None
    text: str | None = None
    tool_call_id: str | None = None
    tool_name: str | None = None
    content: str | None = None
    tokens: int = 0

    @property
    def key(self) -> str:
        """Identity used when diffing: explicit id, else positional path."""
        if self.id:
            return f"id:{self.id}"
        return "path:" + ".".join(str(i) for i in self.path)


class Snapshot(BaseModel):
    """Flattened nodes, their summed tokens, and a SHA-256 hash."""

    nodes: list[SnapshotNode] = Field(default_factory=list)
    total_tokens: int = 0
    hash: str = ""


class SnapshotChange(BaseModel):
    path: list[int]
    before: SnapshotNode
    after: SnapshotNode


class SnapshotDiff(BaseModel):
    """Difference between two snapshots."""

    added: list[SnapshotNode] = Field(default_factory=list)
    removed: list[SnapshotNode] = Field(default_factory=list)
    changed: list[SnapshotChange] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)


def create_snapshot(
    root: Node,
    tokenizer: Tokenizer = approximate_tokenizer,
    projection: Projection = markdown_projection,
) -> Snapshot:
    """Snapshot a tree.

    Example:
        before = create_snapshot(prompt)
        after = create_snapshot(await fit(prompt, 1000))
        diff_snapshots(before, after).removed
    """
    nodes: list[SnapshotNode] = []
    _collect(root, [], tokenizer, projection, nodes)

    return Snapshot(
        nodes=nodes,
        total_tokens=sum(node.tokens for node in nodes),
        hash=_hash_nodes(nodes),
    )


def _collect(
    node: Node,
    path: list[int],
    tokenizer: Tokenizer,
    projection: Projection,
    out: list[SnapshotNode],
) -> None:
    entry = SnapshotNode(
        node_type="element",
        path=path,
        id=node.id,
        kind=node.kind_name,
        priority=node.priority,
        tokens=tokenizer(projection(node)),
    )

    kind = node.kind
    if isinstance(kind, MessageKind):
        entry.role = kind.role
    elif isinstance(kind, ReasoningKind):
        entry.text = kind.text
    elif isinstance(kind, ToolCallKind):
        entry.tool_call_id = kind.tool_call_id
        entry.tool_name = kind.tool_name
        entry.content = safe_stringify(kind.input)
    elif isinstance(kind, ToolResultKind):
        entry.tool_call_id = kind.tool_call_id
        entry.tool_name = kind.tool_name
        entry.content = safe_stringify(kind.output)

    out.append(entry)

    for index, child in enumerate(node.children):
        child_path = [*path, index]
        if isinstance(child, str):
            out.append(
                SnapshotNode(
                    node_type="text",
                    path=child_path,
                    content=child,
                    tokens=tokenizer(child),
                )
            )
        else:
            _collect(child, child_path, tokenizer, projection, out)


def _canonical(node: SnapshotNode) -> str:
    return json.dumps(node.model_dump(exclude_none=True), sort_keys=True, ensure_ascii=False)


def _hash_nodes(nodes: list[SnapshotNode]) -> str:
    serialized = "[" + ",".join(_canonical(node) for node in nodes) + "]"
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def diff_snapshots(before: Snapshot, after: Snapshot) -> SnapshotDiff:
    """Compare two snapshots by node identity."""
    before_map = {node.key: node for node in before.nodes}
    after_map = {node.key: node for node in after.nodes}

    diff = SnapshotDiff()
    for key, node in after_map.items():
        previous = before_map.get(key)
        if previous is None:
            diff.added.append(node)
        elif _canonical(previous) != _canonical(node):
            diff.changed.append(SnapshotChange(path=node.path, before=previous, after=node))

    diff.removed.extend(node for key, node in before_map.items() if key not in after_map)
    return diff
