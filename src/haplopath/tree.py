"""
Haplogroup tree data structures.

The tree is stored as an arena of nodes keyed by haplogroup name. Children
are held as ordered name tuples and the parent as a plain lookup key, so the
structure has no object cycles and can be shared read-only between
concurrent classifications.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(frozen=True)
class Locus:
    """
    A haplogroup-defining marker resolved to a single reference build.

    Attributes:
        name: Marker name (e.g., "M269")
        position: 1-based position in the build the tree was built for
        ref: Ancestral allele
        alt: Derived allele
        contig: Contig name in that build (e.g., "chrY")
    """

    name: str
    position: int
    ref: str
    alt: str
    contig: str = ""


@dataclass(frozen=True)
class Node:
    """
    A node in a haplogroup tree.

    Attributes:
        name: Haplogroup name (e.g., "R-L21")
        loci: Defining markers, in source order
        parent_name: Name of parent node (None for roots)
        children_names: Names of child nodes, in source order
        depth: Distance from its root (0 for roots)
    """

    name: str
    loci: tuple[Locus, ...] = ()
    parent_name: str | None = None
    children_names: tuple[str, ...] = ()
    depth: int = 0

    def __hash__(self) -> int:
        return hash(self.name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self.name == other.name


@dataclass
class NodeRecord:
    """
    Mutable node description used while assembling a tree.

    Parsers produce records; ``Tree.from_records`` validates them and freezes
    the result into ``Node`` objects.
    """

    name: str
    parent_name: str | None = None
    loci: list[Locus] = field(default_factory=list)
    children_names: list[str] = field(default_factory=list)


class Tree:
    """
    Immutable haplogroup tree with one or more roots.

    Provides lookup by haplogroup name and traversal in declared child order.
    """

    def __init__(self, nodes: dict[str, Node], roots: tuple[str, ...]) -> None:
        self._nodes: Mapping[str, Node] = MappingProxyType(nodes)
        self._roots = roots

    @classmethod
    def from_records(cls, records: Iterable[NodeRecord]) -> Tree:
        """
        Build a tree from node records.

        Roots are records without a parent, in the order they appear. Child
        order is taken from each record's ``children_names``; a child that
        names a parent which does not list it is appended to that parent.

        Raises:
            ValueError: On duplicate names, unknown children or parents,
                cycles, or when no root exists
        """
        by_name: dict[str, NodeRecord] = {}
        for record in records:
            if record.name in by_name:
                raise ValueError(f"Duplicate haplogroup name: {record.name}")
            by_name[record.name] = record

        if not by_name:
            raise ValueError("Empty tree data")

        children: dict[str, list[str]] = {}
        for record in by_name.values():
            for child_name in record.children_names:
                if child_name not in by_name:
                    raise ValueError(
                        f"Unknown child {child_name!r} of {record.name!r}"
                    )
            children[record.name] = list(record.children_names)

        for record in by_name.values():
            parent = record.parent_name
            if parent is None:
                continue
            if parent not in by_name:
                raise ValueError(f"Unknown parent {parent!r} of {record.name!r}")
            if record.name not in children[parent]:
                children[parent].append(record.name)

        parents: dict[str, str] = {}
        for parent, child_names in children.items():
            for child_name in child_names:
                if child_name in parents and parents[child_name] != parent:
                    raise ValueError(
                        f"Haplogroup {child_name!r} has more than one parent"
                    )
                parents[child_name] = parent

        roots = tuple(name for name in by_name if name not in parents)
        if not roots:
            raise ValueError("Tree has no root node")

        nodes: dict[str, Node] = {}
        stack: list[tuple[str, int]] = [(name, 0) for name in reversed(roots)]
        while stack:
            name, depth = stack.pop()
            if name in nodes:
                raise ValueError(f"Cycle detected at {name!r}")
            record = by_name[name]
            nodes[name] = Node(
                name=name,
                loci=tuple(record.loci),
                parent_name=parents.get(name),
                children_names=tuple(children[name]),
                depth=depth,
            )
            for child_name in reversed(children[name]):
                stack.append((child_name, depth + 1))

        if len(nodes) != len(by_name):
            unreachable = sorted(set(by_name) - set(nodes))
            raise ValueError(f"Cycle detected among: {unreachable[:5]}")

        return cls(nodes, roots)

    @classmethod
    def from_dict(cls, data: dict) -> Tree:
        """
        Build tree from a nested dictionary (for testing or in-memory use).

        Format:
        {
            "name": "A",
            "loci": [{"name": "M91", "position": 1000, "ref": "C", "alt": "T"}],
            "children": [{...}, {...}]
        }

        A list of such dictionaries builds a multi-root tree.
        """
        roots = data if isinstance(data, list) else [data]
        if not roots or not all(roots):
            raise ValueError("Empty tree data")

        records: list[NodeRecord] = []
        stack: list[tuple[dict, str | None]] = [(r, None) for r in reversed(roots)]
        while stack:
            item, parent_name = stack.pop()
            record = NodeRecord(
                name=item["name"],
                parent_name=parent_name,
                loci=[Locus(**locus) for locus in item.get("loci", [])],
                children_names=[c["name"] for c in item.get("children", [])],
            )
            records.append(record)
            for child in reversed(item.get("children", [])):
                stack.append((child, record.name))

        return cls.from_records(records)

    @property
    def roots(self) -> list[Node]:
        """Return root nodes in declared order."""
        return [self._nodes[name] for name in self._roots]

    @property
    def nodes(self) -> Mapping[str, Node]:
        """Return read-only mapping of all nodes keyed by name."""
        return self._nodes

    def get(self, name: str) -> Node:
        """
        Get node by haplogroup name.

        Raises:
            KeyError: If haplogroup not found
        """
        return self._nodes[name]

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get_parent(self, name: str) -> Node | None:
        """Get parent node, or None for a root."""
        node = self.get(name)
        if node.parent_name is None:
            return None
        return self._nodes[node.parent_name]

    def get_children(self, name: str) -> list[Node]:
        """Get child nodes in declared order."""
        node = self.get(name)
        return [self._nodes[child_name] for child_name in node.children_names]

    def path_to_root(self, name: str) -> list[str]:
        """
        Get path from node to its root, following parent references.

        Returns:
            List of haplogroup names from node to root (inclusive)

        Raises:
            KeyError: If haplogroup not found
        """
        path: list[str] = []
        node: Node | None = self.get(name)
        while node is not None:
            path.append(node.name)
            node = self._nodes[node.parent_name] if node.parent_name else None
        return path

    def is_ancestor(self, ancestor: str, name: str) -> bool:
        """Return True if ``ancestor`` lies on the root path of ``name`` (inclusive)."""
        return ancestor in self.path_to_root(name)

    def iter_depth_first(self, start: str | None = None) -> Iterator[Node]:
        """
        Iterate in depth-first pre-order.

        Args:
            start: Starting node name (defaults to every root, in order)
        """
        if start is None:
            stack = [self._nodes[name] for name in reversed(self._roots)]
        else:
            stack = [self.get(start)]

        while stack:
            node = stack.pop()
            yield node
            # Add children in reverse order so leftmost is processed first
            for child_name in reversed(node.children_names):
                stack.append(self._nodes[child_name])

    def iter_breadth_first(self, start: str | None = None) -> Iterator[Node]:
        """
        Iterate in breadth-first order.

        Args:
            start: Starting node name (defaults to every root, in order)
        """
        if start is None:
            queue: deque[Node] = deque(self.roots)
        else:
            queue = deque([self.get(start)])

        while queue:
            node = queue.popleft()
            yield node
            for child_name in node.children_names:
                queue.append(self._nodes[child_name])

    def all_loci(self) -> list[Locus]:
        """Return distinct loci across the whole tree, in traversal order."""
        seen: set[Locus] = set()
        loci: list[Locus] = []
        for node in self.iter_depth_first():
            for locus in node.loci:
                if locus not in seen:
                    seen.add(locus)
                    loci.append(locus)
        return loci

    def structure(self) -> list[tuple[str, str | None, tuple[Locus, ...]]]:
        """Return a comparable (name, parent, loci) listing in traversal order."""
        return [(n.name, n.parent_name, n.loci) for n in self.iter_depth_first()]
