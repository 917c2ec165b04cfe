"""
Tests for tree source payload parsers.
"""

from __future__ import annotations

import pytest

from haplopath.markers import GRCH37, GRCH38, RCRS, T2T
from haplopath.sources import (
    DECODINGUS_YTREE,
    FTDNA_MTTREE,
    FTDNA_YTREE,
    TreeType,
    get_source,
)


class TestFtdnaParser:
    def test_structure(self, ftdna_payload: bytes) -> None:
        nodes = {n.name: n for n in FTDNA_YTREE.parse(ftdna_payload)}

        assert set(nodes) == {"A", "A1", "A1a", "A2"}
        assert nodes["A"].parent_name is None
        assert nodes["A"].children_names == ["A1", "A2"]
        assert nodes["A1a"].parent_name == "A1"

    def test_markers_carry_native_build(self, ftdna_payload: bytes) -> None:
        nodes = {n.name: n for n in FTDNA_YTREE.parse(ftdna_payload)}

        markers = nodes["A1"].markers
        assert [m.name for m in markers] == ["M1"]  # unplaced variant skipped
        coord = markers[0].get_coordinate(GRCH38)
        assert coord is not None
        assert (coord.position, coord.ref, coord.alt, coord.contig) == (1000, "C", "T", "chrY")

    def test_mt_tree_uses_rcrs(self, ftdna_payload: bytes) -> None:
        nodes = {n.name: n for n in FTDNA_MTTREE.parse(ftdna_payload)}
        assert nodes["A1"].markers[0].get_coordinate(RCRS) is not None

    def test_invalid_json(self) -> None:
        with pytest.raises(ValueError):
            FTDNA_YTREE.parse(b"<html>maintenance</html>")

    def test_missing_all_nodes(self) -> None:
        with pytest.raises(ValueError, match="allNodes"):
            FTDNA_YTREE.parse(b'{"nodes": []}')

    def test_node_must_be_object(self) -> None:
        with pytest.raises(ValueError, match="must be an object"):
            FTDNA_YTREE.parse(b'{"allNodes": {"1": []}}')

    def test_duplicate_id(self) -> None:
        payload = (
            b'{"allNodes": {"a": {"haplogroupId": 1, "name": "A", "isRoot": true},'
            b' "b": {"haplogroupId": 1, "name": "B", "isRoot": true}}}'
        )
        with pytest.raises(ValueError, match="Duplicate haplogroup id"):
            FTDNA_YTREE.parse(payload)

    def test_accepts_text(self, ftdna_payload: bytes) -> None:
        assert len(FTDNA_YTREE.parse(ftdna_payload.decode())) == 4


class TestDecodingUsParser:
    def test_maps_accessions_to_builds(self, decodingus_payload: bytes) -> None:
        nodes = {n.name: n for n in DECODINGUS_YTREE.parse(decodingus_payload)}

        m269 = nodes["R-M269"].markers[0]
        assert set(m269.coordinates) == {GRCH37, GRCH38, T2T}
        assert m269.get_coordinate(GRCH37).contig == "Y"
        assert m269.get_coordinate(GRCH38).contig == "chrY"
        assert m269.get_coordinate(GRCH38).position == 20577481

    def test_children_follow_list_order(self, decodingus_payload: bytes) -> None:
        nodes = {n.name: n for n in DECODINGUS_YTREE.parse(decodingus_payload)}
        assert nodes["R"].children_names == ["R-M269"]
        assert nodes["R-M269"].children_names == ["R-CTS4466", "R-L21"]

    def test_orphan_attaches_to_root(self) -> None:
        payload = (
            b'[{"name": "R", "variants": []},'
            b' {"name": "R-X", "parentName": "MISSING", "variants": []}]'
        )
        nodes = {n.name: n for n in DECODINGUS_YTREE.parse(payload)}
        assert nodes["R-X"].parent_name == "R"

    def test_single_node_without_root(self) -> None:
        payload = b'[{"name": "R-CTS4466", "parentName": "R-M269", "variants": []}]'
        nodes = DECODINGUS_YTREE.parse(payload)
        assert nodes[0].parent_name is None

    def test_not_a_list(self) -> None:
        with pytest.raises(ValueError):
            DECODINGUS_YTREE.parse(b'{"name": "R"}')

    def test_variant_must_be_object(self) -> None:
        with pytest.raises(ValueError, match="must be an object"):
            DECODINGUS_YTREE.parse(b'[{"name": "R", "variants": ["M269"]}]')

    def test_duplicate_name(self) -> None:
        payload = b'[{"name": "R"}, {"name": "R1", "parentName": "R"}, {"name": "R1", "parentName": "R"}]'
        with pytest.raises(ValueError, match="Duplicate haplogroup name: R1"):
            DECODINGUS_YTREE.parse(payload)


class TestRegistry:
    def test_get_source(self) -> None:
        source = get_source("ftdna-mt")
        assert source.tree_type == TreeType.MTDNA
        assert source.cache_key == "ftdna-mttree"

    def test_unknown_source(self) -> None:
        with pytest.raises(KeyError, match="Unknown tree source"):
            get_source("yfull")
