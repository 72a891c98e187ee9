"""
Reply-thread assembly.

Comments are stored flat with an optional ``parent_id``. Readers want a
forest of threads, so every read rebuilds it from rows ordered by
creation time. The same assembler rebuilds the navigation link tree.

Nothing here recurses on the Python call stack: threads can be
arbitrarily deep (a reply chain of tens of thousands of comments is a
valid input) and both assembly and serialization walk explicit stacks.
"""

import json
from dataclasses import dataclass, field
from operator import attrgetter
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

T = TypeVar("T")


@dataclass(eq=False)
class TreeNode(Generic[T]):
    """One item plus its children, in input order."""

    id: str
    parent_id: Optional[str]
    item: T
    replies: list["TreeNode[T]"] = field(default_factory=list, repr=False)


def assemble_forest(
    items: Iterable[T],
    id_of: Callable[[T], str] = attrgetter("id"),
    parent_of: Callable[[T], Optional[str]] = attrgetter("parent_id"),
) -> list[TreeNode[T]]:
    """Build the reply forest for items sorted by creation time.

    Every input item appears exactly once in the result. Items whose
    parent is absent from the input are promoted to the top level, as are
    self-references. If stored parent links ever form a cycle, the
    earliest item of the cycle becomes a top-level node. Siblings keep
    their input order.
    """
    nodes: list[TreeNode[T]] = []
    position: dict[str, int] = {}
    for item in items:
        node = TreeNode(id=id_of(item), parent_id=parent_of(item), item=item)
        position.setdefault(node.id, len(nodes))
        nodes.append(node)

    parent_index: list[Optional[int]] = []
    for index, node in enumerate(nodes):
        target = position.get(node.parent_id) if node.parent_id is not None else None
        parent_index.append(None if target == index else target)

    _break_cycles(parent_index)

    roots: list[TreeNode[T]] = []
    for index, node in enumerate(nodes):
        target = parent_index[index]
        if target is None:
            roots.append(node)
        else:
            nodes[target].replies.append(node)
    return roots


def _break_cycles(parent_index: list[Optional[int]]) -> None:
    """Detach the earliest member of every parent cycle, in place."""
    unvisited, in_path, done = 0, 1, 2
    state = [unvisited] * len(parent_index)
    for start in range(len(parent_index)):
        path = []
        current = start
        while current is not None and state[current] == unvisited:
            state[current] = in_path
            path.append(current)
            current = parent_index[current]
        if current is not None and state[current] == in_path:
            cycle = path[path.index(current):]
            parent_index[min(cycle)] = None
        for index in path:
            state[index] = done


def forest_to_dicts(
    roots: list[TreeNode[T]],
    render: Callable[[T], dict],
    replies_key: str = "replies",
) -> list[dict]:
    """Convert a forest to nested dicts, each carrying a ``replies`` list."""
    result: list[dict] = []
    stack: list[tuple[TreeNode[T], list[dict]]] = [(root, result) for root in reversed(roots)]
    while stack:
        node, sink = stack.pop()
        data = dict(render(node.item))
        data[replies_key] = []
        sink.append(data)
        for child in reversed(node.replies):
            stack.append((child, data[replies_key]))
    return result


def forest_to_json(
    roots: list[TreeNode[T]],
    render: Callable[[T], dict],
    replies_key: str = "replies",
) -> str:
    """Encode a forest as a JSON array without recursing per level.

    ``json.dumps`` recurses once per nesting level and gives up around a
    thousand levels, so the nesting is written by hand and only the flat
    fields of each node go through the json module.
    """
    parts: list[str] = ["["]
    stack: list[Any] = []

    def push(children: list[TreeNode[T]], closing: str) -> None:
        stack.append(closing)
        for index in range(len(children) - 1, -1, -1):
            stack.append(children[index])
            if index:
                stack.append(",")

    push(roots, "]")
    replies_field = json.dumps(replies_key) + ":["
    while stack:
        token = stack.pop()
        if isinstance(token, str):
            parts.append(token)
            continue
        fields = json.dumps(render(token.item), default=str)
        parts.append(fields[:-1])
        if fields != "{}":
            parts.append(",")
        parts.append(replies_field)
        push(token.replies, "]}")
    return "".join(parts)
