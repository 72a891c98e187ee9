"""
Unit tests for reply-thread assembly.

Covers:
- Root and reply placement in input order
- Orphaned replies and self-references
- Parent cycles
- Very deep reply chains (assembly and JSON encoding)
"""

import json
from dataclasses import dataclass
from typing import Optional

from core.domain.comment_tree import (
    assemble_forest,
    forest_to_dicts,
    forest_to_json,
)


@dataclass
class Row:
    id: str
    parent_id: Optional[str] = None
    body: str = ""


def render(row: Row) -> dict:
    return {"id": row.id, "body": row.body}


def ids(nodes) -> list[str]:
    return [n.id for n in nodes]


def all_ids(roots) -> list[str]:
    found, stack = [], list(roots)
    while stack:
        node = stack.pop()
        found.append(node.id)
        stack.extend(node.replies)
    return found


class TestAssembleForest:
    def test_empty_input(self):
        assert assemble_forest([]) == []

    def test_roots_and_replies_keep_input_order(self):
        rows = [
            Row("a"),
            Row("b"),
            Row("a1", "a"),
            Row("b1", "b"),
            Row("a2", "a"),
            Row("a1x", "a1"),
        ]
        forest = assemble_forest(rows)

        assert ids(forest) == ["a", "b"]
        assert ids(forest[0].replies) == ["a1", "a2"]
        assert ids(forest[0].replies[0].replies) == ["a1x"]
        assert ids(forest[1].replies) == ["b1"]

    def test_reply_listed_before_its_parent_is_still_attached(self):
        forest = assemble_forest([Row("child", "parent"), Row("parent")])

        assert ids(forest) == ["parent"]
        assert ids(forest[0].replies) == ["child"]

    def test_orphan_is_promoted_to_top_level(self):
        rows = [Row("a"), Row("orphan", "deleted-parent"), Row("a1", "a")]
        forest = assemble_forest(rows)

        assert ids(forest) == ["a", "orphan"]
        assert forest[1].replies == []

    def test_replies_of_an_orphan_stay_under_it(self):
        rows = [Row("orphan", "gone"), Row("reply", "orphan")]
        forest = assemble_forest(rows)

        assert ids(forest) == ["orphan"]
        assert ids(forest[0].replies) == ["reply"]

    def test_self_reference_is_a_root(self):
        forest = assemble_forest([Row("loop", "loop")])
        assert ids(forest) == ["loop"]

    def test_two_node_cycle_breaks_at_earliest(self):
        forest = assemble_forest([Row("x", "y"), Row("y", "x")])

        assert ids(forest) == ["x"]
        assert ids(forest[0].replies) == ["y"]

    def test_cycle_with_tail_keeps_every_node(self):
        rows = [Row("p", "r"), Row("q", "p"), Row("r", "q"), Row("tail", "q"), Row("root")]
        forest = assemble_forest(rows)

        assert ids(forest) == ["p", "root"]
        assert sorted(all_ids(forest)) == ["p", "q", "r", "root", "tail"]
        assert ids(forest[0].replies) == ["q"]
        assert ids(forest[0].replies[0].replies) == ["r", "tail"]

    def test_every_item_appears_exactly_once(self):
        rows = [Row(str(i), str(i // 3) if i else None) for i in range(50)]
        forest = assemble_forest(rows)

        seen = []
        stack = list(forest)
        while stack:
            node = stack.pop()
            seen.append(node.id)
            stack.extend(node.replies)
        assert sorted(seen) == sorted(r.id for r in rows)

    def test_custom_accessors(self):
        items = [{"key": "1", "up": None}, {"key": "2", "up": "1"}]
        forest = assemble_forest(items, id_of=lambda d: d["key"], parent_of=lambda d: d["up"])

        assert ids(forest) == ["1"]
        assert forest[0].replies[0].item is items[1]


class TestSerialization:
    def test_forest_to_dicts_nests_replies(self):
        forest = assemble_forest([Row("a", body="first"), Row("b", "a", body="second")])

        assert forest_to_dicts(forest, render) == [
            {"id": "a", "body": "first", "replies": [{"id": "b", "body": "second", "replies": []}]}
        ]

    def test_forest_to_dicts_custom_key(self):
        forest = assemble_forest([Row("a"), Row("b", "a")])
        data = forest_to_dicts(forest, render, replies_key="sublinks")

        assert data[0]["sublinks"][0]["id"] == "b"
        assert data[0]["sublinks"][0]["sublinks"] == []

    def test_forest_to_json_matches_json_module_for_shallow_trees(self):
        rows = [Row("a", body='quote " and \\'), Row("b", "a"), Row("c"), Row("d", "b")]
        forest = assemble_forest(rows)

        encoded = forest_to_json(forest, render)

        assert json.loads(encoded) == forest_to_dicts(forest, render)

    def test_forest_to_json_empty(self):
        assert forest_to_json([], render) == "[]"

    def test_forest_to_json_with_empty_render(self):
        forest = assemble_forest([Row("a"), Row("b", "a")])
        encoded = forest_to_json(forest, lambda row: {})

        assert json.loads(encoded) == [{"replies": [{"replies": []}]}]


class TestDeepChains:
    DEPTH = 10_000

    def chain(self):
        rows = [Row("0")]
        rows.extend(Row(str(i), str(i - 1)) for i in range(1, self.DEPTH))
        return rows

    def test_assembles_deep_chain_without_recursion(self):
        forest = assemble_forest(self.chain())

        assert ids(forest) == ["0"]
        depth = 0
        node = forest[0]
        while node.replies:
            assert len(node.replies) == 1
            node = node.replies[0]
            depth += 1
        assert depth == self.DEPTH - 1
        assert node.id == str(self.DEPTH - 1)

    def test_deep_chain_dicts(self):
        data = forest_to_dicts(assemble_forest(self.chain()), render)

        node = data[0]
        for _ in range(1, self.DEPTH):
            node = node["replies"][0]
        assert node["id"] == str(self.DEPTH - 1)
        assert node["replies"] == []

    def test_deep_chain_json_is_well_formed(self):
        encoded = forest_to_json(assemble_forest(self.chain()), render)

        assert encoded.startswith('[{"id": "0", "body": "","replies":[')
        assert encoded.endswith("]}" * self.DEPTH + "]")
        assert encoded.count('"replies":[') == self.DEPTH
        assert encoded.count("[") == encoded.count("]")
