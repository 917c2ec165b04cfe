"""
Haplogroup tree sources and their payload parsers.

A ``TreeSource`` describes where a tree is published, how its payload is
parsed, and which reference build its coordinates are native to. Parsers turn
a raw payload into ``SourceNode`` records carrying native ``Marker`` objects;
build reconciliation happens later, in the tree provider.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from haplopath.markers import GRCH37, GRCH38, RCRS, T2T, Coordinate, Marker, normalize_build

logger = logging.getLogger(__name__)


class TreeType(str, Enum):
    """Kind of haplogroup tree."""

    YDNA = "ydna"
    MTDNA = "mtdna"


@dataclass
class SourceNode:
    """A tree node as published by a source, before reconciliation."""

    name: str
    parent_name: str | None = None
    markers: list[Marker] = field(default_factory=list)
    children_names: list[str] = field(default_factory=list)


Parser = Callable[[bytes | str, "TreeSource"], list[SourceNode]]


@dataclass(frozen=True)
class TreeSource:
    """
    Configuration for one published haplogroup tree.

    Attributes:
        source_id: Identifier used on the command line
        url: Download location of the raw payload
        cache_key: Key for both cache tiers; change it for a new tree release
        tree_type: Y-DNA or MT-DNA
        native_build: Build the payload's primary coordinates refer to
        supported_builds: Builds the payload carries coordinates for
        contig: Contig name of the tree's markers in the native build
        parser: Function turning the raw payload into source nodes
    """

    source_id: str
    url: str
    cache_key: str
    tree_type: TreeType
    native_build: str
    supported_builds: tuple[str, ...]
    contig: str
    parser: Parser

    def parse(self, data: bytes | str) -> list[SourceNode]:
        return self.parser(data, self)


def _load_json(data: bytes | str) -> object:
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    return json.loads(data)


def _require_object(value: object, what: str) -> dict:
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be an object, got {type(value).__name__}")
    return value


def parse_ftdna(data: bytes | str, source: TreeSource) -> list[SourceNode]:
    """
    Parse an FTDNA haplotree payload.

    Format:
    {
        "allNodes": {
            "<id>": {
                "haplogroupId": 1, "parentId": 0, "name": "A", "isRoot": true,
                "variants": [{"variant": "M91", "position": 1000,
                              "ancestral": "C", "derived": "T"}],
                "children": [2, 3]
            }
        }
    }

    Variant positions are in the source's native build. Variants without a
    position are skipped.

    Raises:
        ValueError: If the payload is not valid JSON, lacks ``allNodes``, or
            has a node or variant that is not an object
    """
    payload = _load_json(data)
    if not isinstance(payload, dict) or not isinstance(payload.get("allNodes"), dict):
        raise ValueError("FTDNA payload must be an object with an 'allNodes' map")

    raw_nodes: dict[str, dict] = {}
    for key, node in payload["allNodes"].items():
        node = _require_object(node, f"FTDNA node {key!r}")
        node_id = str(node.get("haplogroupId", key))
        if node_id in raw_nodes:
            raise ValueError(f"Duplicate haplogroup id: {node_id}")
        raw_nodes[node_id] = node

    id_to_name = {node_id: node["name"] for node_id, node in raw_nodes.items()}

    nodes: list[SourceNode] = []
    for node_id, node in raw_nodes.items():
        markers = []
        for variant in node.get("variants") or []:
            variant = _require_object(variant, f"Variant of {node['name']!r}")
            position = variant.get("position")
            if position is None:
                continue
            coordinate = Coordinate(
                position=int(position),
                ref=variant.get("ancestral", ""),
                alt=variant.get("derived", ""),
                contig=source.contig,
            )
            markers.append(
                Marker(
                    name=variant.get("variant", ""),
                    coordinates={source.native_build: coordinate},
                )
            )

        parent_name = None
        if not node.get("isRoot", False):
            parent_name = id_to_name.get(str(node.get("parentId")))

        children = [
            id_to_name[str(child)]
            for child in node.get("children") or []
            if str(child) in id_to_name
        ]
        nodes.append(
            SourceNode(
                name=node["name"],
                parent_name=parent_name,
                markers=markers,
                children_names=children,
            )
        )

    return nodes


def parse_decodingus(data: bytes | str, source: TreeSource) -> list[SourceNode]:
    """
    Parse a DecodingUs tree payload.

    Format (a list of nodes, children follow list order):
    [
        {
            "name": "R-CTS4466", "parentName": "R-M269",
            "variants": [{
                "name": "CTS4466", "variantType": "SNP",
                "coordinates": {
                    "CM000686.1": {"start": 100, "stop": 101, "anc": "A", "der": "G"},
                    "CM000686.2": {"start": 200, "stop": 201, "anc": "A", "der": "G"}
                }
            }]
        }
    ]

    Coordinate keys are contig accessions, mapped to build names. Nodes
    whose parent is missing from the payload are attached to the first root.

    Raises:
        ValueError: If the payload is not valid JSON or not a node list, has
            a node, variant or coordinate that is not an object, or repeats a
            haplogroup name
    """
    payload = _load_json(data)
    if not isinstance(payload, list):
        raise ValueError("DecodingUs payload must be a list of nodes")

    if not payload:
        raise ValueError("DecodingUs payload contains no nodes")

    payload = [_require_object(item, "DecodingUs node") for item in payload]
    names = {item["name"] for item in payload}
    # Without an explicit root the first listed node becomes one
    first_root = next(
        (item["name"] for item in payload if not item.get("parentName")),
        payload[0]["name"],
    )

    nodes: dict[str, SourceNode] = {}
    for item in payload:
        markers = []
        for variant in item.get("variants") or []:
            variant = _require_object(variant, f"Variant of {item['name']!r}")
            coordinates = {}
            raw_coordinates = _require_object(
                variant.get("coordinates") or {}, f"Coordinates of {variant.get('name')!r}"
            )
            for accession, coord in raw_coordinates.items():
                coord = _require_object(coord, f"Coordinate {accession!r}")
                build = normalize_build(accession)
                coordinates[build] = Coordinate(
                    position=int(coord["start"]),
                    ref=coord.get("anc", ""),
                    alt=coord.get("der", ""),
                    contig="Y" if build == GRCH37 else source.contig,
                )
            markers.append(
                Marker(
                    name=variant.get("name", ""),
                    coordinates=coordinates,
                    variant_type=variant.get("variantType", "SNP"),
                )
            )

        parent_name = item.get("parentName") or None
        if item["name"] == first_root:
            parent_name = None
        elif parent_name is not None and parent_name not in names:
            logger.warning(
                "Parent %s of %s not in payload; attaching to %s",
                parent_name,
                item["name"],
                first_root,
            )
            parent_name = first_root

        if item["name"] in nodes:
            raise ValueError(f"Duplicate haplogroup name: {item['name']}")
        nodes[item["name"]] = SourceNode(
            name=item["name"], parent_name=parent_name, markers=markers
        )

    for node in nodes.values():
        if node.parent_name is not None:
            nodes[node.parent_name].children_names.append(node.name)

    return list(nodes.values())


FTDNA_YTREE = TreeSource(
    source_id="ftdna-y",
    url="https://www.familytreedna.com/public/y-dna-haplotree/get",
    cache_key="ftdna-ytree",
    tree_type=TreeType.YDNA,
    native_build=GRCH38,
    supported_builds=(GRCH38,),
    contig="chrY",
    parser=parse_ftdna,
)

FTDNA_MTTREE = TreeSource(
    source_id="ftdna-mt",
    url="https://www.familytreedna.com/public/mt-dna-haplotree/get",
    cache_key="ftdna-mttree",
    tree_type=TreeType.MTDNA,
    native_build=RCRS,
    supported_builds=(RCRS,),
    contig="chrM",
    parser=parse_ftdna,
)

DECODINGUS_YTREE = TreeSource(
    source_id="decodingus-y",
    url="https://decoding-us.com/api/v1/y-tree",
    cache_key="decodingus-ytree",
    tree_type=TreeType.YDNA,
    native_build=GRCH38,
    supported_builds=(GRCH38, GRCH37, T2T),
    contig="chrY",
    parser=parse_decodingus,
)

SOURCES: dict[str, TreeSource] = {
    s.source_id: s for s in (FTDNA_YTREE, FTDNA_MTTREE, DECODINGUS_YTREE)
}


def get_source(source_id: str) -> TreeSource:
    """
    Look up a built-in tree source.

    Raises:
        KeyError: If the source id is unknown
    """
    try:
        return SOURCES[source_id]
    except KeyError:
        raise KeyError(
            f"Unknown tree source {source_id!r}. Available: {sorted(SOURCES)}"
        ) from None
