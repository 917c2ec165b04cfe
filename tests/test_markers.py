"""
Tests for marker coordinates and build reconciliation.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from haplopath.markers import (
    GRCH37,
    GRCH38,
    T2T,
    BuildReconciler,
    ChainLifter,
    Coordinate,
    CoordinateReconciliationGap,
    Marker,
    ReconciliationStats,
    normalize_build,
)


@pytest.fixture
def multi_build_marker() -> Marker:
    return Marker(
        name="CTS4466",
        coordinates={
            GRCH37: Coordinate(100, "A", "G", "Y"),
            GRCH38: Coordinate(200, "A", "G", "chrY"),
        },
    )


class TestNormalizeBuild:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("hg38", GRCH38),
            ("GRCh38", GRCH38),
            ("CM000686.2", GRCH38),
            ("hg19", GRCH37),
            ("CM000686.1", GRCH37),
            ("chm13", T2T),
            ("CP086569.2", T2T),
        ],
    )
    def test_aliases(self, name: str, expected: str) -> None:
        assert normalize_build(name) == expected

    def test_unknown_passes_through(self) -> None:
        assert normalize_build("CanFam3") == "CanFam3"


class TestBuildReconciler:
    def test_uses_target_build_coordinate(self, multi_build_marker: Marker) -> None:
        reconciler = BuildReconciler()
        locus = reconciler.to_locus(multi_build_marker, GRCH38, "GRCh37")
        assert locus.position == 100
        assert locus.contig == "Y"

    def test_pass_through_for_native_build(self, multi_build_marker: Marker) -> None:
        locus = BuildReconciler().to_locus(multi_build_marker, GRCH38, "hg38")
        assert locus.position == 200
        assert (locus.ref, locus.alt) == ("A", "G")

    def test_missing_build_raises_gap(self, multi_build_marker: Marker) -> None:
        with pytest.raises(CoordinateReconciliationGap) as exc_info:
            BuildReconciler().to_locus(multi_build_marker, GRCH38, T2T)
        assert exc_info.value.marker == "CTS4466"

    def test_reconcile_drops_unmapped_markers(self, multi_build_marker: Marker) -> None:
        native_only = Marker("L21", {GRCH38: Coordinate(2655180, "C", "G", "chrY")})
        stats = ReconciliationStats()

        loci = BuildReconciler().reconcile(
            [multi_build_marker, native_only], GRCH38, GRCH37, stats
        )

        assert [locus.name for locus in loci] == ["CTS4466"]
        assert stats.kept == 1
        assert stats.dropped == 1

    def test_reconcile_skips_indels(self) -> None:
        indel = Marker("INS", {GRCH38: Coordinate(250, "A", "AGT")}, variant_type="INDEL")
        stats = ReconciliationStats()
        assert BuildReconciler().reconcile([indel], GRCH38, GRCH38, stats) == []
        assert stats.skipped_indels == 1

    def test_lifts_native_coordinate_when_chain_available(self) -> None:
        marker = Marker("L21", {GRCH38: Coordinate(2655180, "C", "G", "chrY")})
        lifter = MagicMock(spec=ChainLifter)
        lifter.lift.return_value = Coordinate(2887405, "C", "G", "chrY")

        stats = ReconciliationStats()
        loci = BuildReconciler(lifter).reconcile([marker], GRCH38, T2T, stats)

        lifter.lift.assert_called_once_with(marker.coordinates[GRCH38], GRCH38, T2T)
        assert loci[0].position == 2887405
        assert stats.lifted == 1


class TestChainLifter:
    def test_no_chain_dir(self) -> None:
        lifter = ChainLifter(None)
        assert not lifter.supports(GRCH38, T2T)
        assert lifter.lift(Coordinate(10, "A", "G", "chrY"), GRCH38, T2T) is None

    def test_missing_chain_file(self, tmp_path: Path) -> None:
        assert ChainLifter(tmp_path).chain_path(GRCH38, T2T) is None

    def test_lift_converts_to_one_based(self, tmp_path: Path) -> None:
        (tmp_path / "grch38-chm13v2.chain").write_text("")
        fake = MagicMock()
        fake.convert_coordinate.return_value = [("chrY", 2887404, "+", 1000)]

        with patch("pyliftover.LiftOver", return_value=fake) as lift_cls:
            lifter = ChainLifter(tmp_path)
            lifted = lifter.lift(Coordinate(2655180, "C", "G", "chrY"), GRCH38, T2T)

        lift_cls.assert_called_once_with(str(tmp_path / "grch38-chm13v2.chain"))
        fake.convert_coordinate.assert_called_once_with("chrY", 2655179)
        assert lifted == Coordinate(2887405, "C", "G", "chrY")

    def test_lift_complements_minus_strand(self, tmp_path: Path) -> None:
        (tmp_path / "grch38-chm13v2.chain").write_text("")
        fake = MagicMock()
        fake.convert_coordinate.return_value = [("chrY", 99, "-", 1000)]

        with patch("pyliftover.LiftOver", return_value=fake):
            lifted = ChainLifter(tmp_path).lift(Coordinate(10, "C", "T", "chrY"), GRCH38, T2T)

        assert lifted is not None
        assert (lifted.ref, lifted.alt) == ("G", "A")

    def test_unmapped_position(self, tmp_path: Path) -> None:
        (tmp_path / "grch38-chm13v2.chain").write_text("")
        fake = MagicMock()
        fake.convert_coordinate.return_value = []

        with patch("pyliftover.LiftOver", return_value=fake):
            assert ChainLifter(tmp_path).lift(Coordinate(10, "C", "T"), GRCH38, T2T) is None
