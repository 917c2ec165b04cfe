"""
Root-to-haplogroup path resolution.
"""

from __future__ import annotations

from typing import NamedTuple

from haplopath.tree import Node, Tree


class PathStep(NamedTuple):
    """A node on a resolved path with its distance from the root."""

    node: Node
    depth: int

    @property
    def name(self) -> str:
        return self.node.name


def resolve_path(tree: Tree, target_name: str) -> list[PathStep]:
    """
    Find the path from a root to ``target_name``.

    Searches depth-first over roots and children in declared order; the first
    match wins.

    Args:
        tree: Haplogroup tree
        target_name: Haplogroup to find

    Returns:
        Steps from root to target (inclusive), or an empty list when the
        haplogroup is not in the tree
    """
    # Each entry carries the path that leads to it
    stack: list[list[PathStep]] = [
        [PathStep(root, 0)] for root in reversed(tree.roots)
    ]
    while stack:
        path = stack.pop()
        current = path[-1]
        if current.node.name == target_name:
            return path
        for child in reversed(tree.get_children(current.node.name)):
            stack.append(path + [PathStep(child, current.depth + 1)])
    return []
