"""
Haplogroup-defining markers and reference build reconciliation.

Tree sources describe markers with coordinates in one or more reference
builds. Before a tree is used for classification every marker is resolved to
a single ``Locus`` in the requested build: a coordinate the source already
carries for that build is used as-is, otherwise the native coordinate is
lifted with a UCSC chain file when one is available, otherwise the marker is
dropped from that tree instance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from haplopath.tree import Locus

if TYPE_CHECKING:
    from pyliftover import LiftOver

logger = logging.getLogger(__name__)

GRCH37 = "GRCh37"
GRCH38 = "GRCh38"
T2T = "T2T-CHM13v2.0"
RCRS = "rCRS"

# Accessions and common aliases for the builds trees are published against
BUILD_ALIASES: dict[str, str] = {
    "grch37": GRCH37,
    "hg19": GRCH37,
    "b37": GRCH37,
    "cm000686.1": GRCH37,
    "nc_000024.9": GRCH37,
    "grch38": GRCH38,
    "hg38": GRCH38,
    "cm000686.2": GRCH38,
    "nc_000024.10": GRCH38,
    "t2t": T2T,
    "chm13": T2T,
    "chm13v2": T2T,
    "t2t-chm13v2.0": T2T,
    "nc_060948.1": T2T,
    "cp086569.2": T2T,
    "rcrs": RCRS,
    "nc_012920.1": RCRS,
}

# Chain files understood by ChainLifter, keyed by (from build, to build)
CHAIN_FILES: dict[tuple[str, str], str] = {
    (GRCH38, T2T): "grch38-chm13v2.chain",
    (GRCH37, T2T): "hg19-chm13v2.chain",
    (T2T, GRCH38): "chm13v2-grch38.chain",
    (GRCH38, GRCH37): "hg38ToHg19.over.chain.gz",
    (GRCH37, GRCH38): "hg19ToHg38.over.chain.gz",
}

VALID_ALLELES = frozenset("ACGT")


class CoordinateReconciliationGap(Exception):
    """A marker has no coordinate in the requested build."""

    def __init__(self, marker: str, build: str) -> None:
        super().__init__(f"Marker {marker} has no coordinate in {build}")
        self.marker = marker
        self.build = build


def normalize_build(build: str) -> str:
    """
    Map a build name or contig accession to its canonical build name.

    Unknown names are returned unchanged.
    """
    return BUILD_ALIASES.get(build.strip().lower(), build.strip())


def contig_for(build: str, tree_contig: str) -> str:
    """Return the contig naming used by ``build`` ("Y" for GRCh37, else "chrY")."""
    if tree_contig in ("chrM", "MT", "M"):
        return "chrM"
    return "Y" if build == GRCH37 else "chrY"


@dataclass(frozen=True)
class Coordinate:
    """A marker coordinate in one reference build."""

    position: int
    ref: str
    alt: str
    contig: str = ""


@dataclass
class Marker:
    """
    A defining marker as published by a tree source.

    Attributes:
        name: Marker name
        coordinates: Coordinate per canonical build name
        variant_type: "SNP" or "INDEL"
    """

    name: str
    coordinates: dict[str, Coordinate] = field(default_factory=dict)
    variant_type: str = "SNP"

    def get_coordinate(self, build: str) -> Coordinate | None:
        """Get coordinate for the specified build (any alias accepted)."""
        return self.coordinates.get(normalize_build(build))

    @property
    def is_snp(self) -> bool:
        if self.variant_type.upper() != "SNP":
            return False
        return all(
            c.ref.upper() in VALID_ALLELES and c.alt.upper() in VALID_ALLELES
            for c in self.coordinates.values()
        )


class ChainLifter:
    """
    Lift native marker coordinates to another build with UCSC chain files.

    Chain files are looked up by name in ``chain_dir`` (see ``CHAIN_FILES``)
    and loaded lazily with pyliftover the first time a build pair is needed.
    """

    def __init__(self, chain_dir: Path | str | None = None) -> None:
        self.chain_dir = Path(chain_dir) if chain_dir is not None else None
        self._lifters: dict[tuple[str, str], LiftOver | None] = {}

    def chain_path(self, from_build: str, to_build: str) -> Path | None:
        """Return the chain file path for a build pair if it exists on disk."""
        if self.chain_dir is None:
            return None
        filename = CHAIN_FILES.get((from_build, to_build))
        if filename is None:
            return None
        path = self.chain_dir / filename
        return path if path.exists() else None

    def supports(self, from_build: str, to_build: str) -> bool:
        return self._get_lifter(from_build, to_build) is not None

    def _get_lifter(self, from_build: str, to_build: str) -> LiftOver | None:
        key = (from_build, to_build)
        if key not in self._lifters:
            path = self.chain_path(from_build, to_build)
            if path is None:
                self._lifters[key] = None
            else:
                from pyliftover import LiftOver

                logger.info("Loading chain file %s", path)
                self._lifters[key] = LiftOver(str(path))
        return self._lifters[key]

    def lift(
        self, coordinate: Coordinate, from_build: str, to_build: str
    ) -> Coordinate | None:
        """
        Lift a coordinate between builds.

        Returns:
            Lifted coordinate, or None when no chain is available or the
            position does not map
        """
        lifter = self._get_lifter(from_build, to_build)
        if lifter is None:
            return None

        # pyliftover uses UCSC chromosome names and 0-based coordinates
        chrom = "chrM" if coordinate.contig in ("chrM", "MT", "M") else "chrY"
        result = lifter.convert_coordinate(chrom, coordinate.position - 1)
        if not result:
            return None

        # Result is list of (chrom, pos, strand, score) tuples; take the best
        _, new_pos, strand, _ = result[0]
        ref, alt = coordinate.ref, coordinate.alt
        if strand == "-":
            ref, alt = _complement(ref), _complement(alt)
        return Coordinate(
            position=new_pos + 1,
            ref=ref,
            alt=alt,
            contig=contig_for(to_build, coordinate.contig),
        )


_COMPLEMENT = str.maketrans("ACGTacgt", "TGCAtgca")


def _complement(allele: str) -> str:
    return allele.translate(_COMPLEMENT)


@dataclass
class ReconciliationStats:
    """Counts collected while reconciling a tree to a build."""

    kept: int = 0
    lifted: int = 0
    dropped: int = 0
    skipped_indels: int = 0


class BuildReconciler:
    """
    Resolve native markers to loci in a target build.

    Args:
        lifter: Optional chain lifter used when a marker lacks a coordinate
            for the target build
    """

    def __init__(self, lifter: ChainLifter | None = None) -> None:
        self.lifter = lifter

    def to_locus(self, marker: Marker, source_build: str, target_build: str) -> Locus:
        """
        Resolve one marker.

        Raises:
            CoordinateReconciliationGap: If the marker cannot be placed in
                ``target_build``
        """
        source_build = normalize_build(source_build)
        target_build = normalize_build(target_build)

        coord = marker.get_coordinate(target_build)
        if coord is None and self.lifter is not None and source_build != target_build:
            native = marker.get_coordinate(source_build)
            if native is not None:
                coord = self.lifter.lift(native, source_build, target_build)
        if coord is None:
            raise CoordinateReconciliationGap(marker.name, target_build)

        return Locus(
            name=marker.name,
            position=coord.position,
            ref=coord.ref,
            alt=coord.alt,
            contig=coord.contig,
        )

    def reconcile(
        self,
        markers: list[Marker],
        source_build: str,
        target_build: str,
        stats: ReconciliationStats | None = None,
    ) -> list[Locus]:
        """
        Resolve a node's markers, dropping those that cannot be placed.

        Args:
            markers: Native markers in source order
            source_build: Native build of the tree source
            target_build: Requested build
            stats: Optional counters updated in place

        Returns:
            Loci in source order, without dropped markers
        """
        stats = stats if stats is not None else ReconciliationStats()
        target = normalize_build(target_build)
        loci: list[Locus] = []
        for marker in markers:
            if not marker.is_snp:
                stats.skipped_indels += 1
                continue
            try:
                locus = self.to_locus(marker, source_build, target_build)
            except CoordinateReconciliationGap as e:
                logger.debug("Dropping marker: %s", e)
                stats.dropped += 1
                continue
            if target in marker.coordinates:
                stats.kept += 1
            else:
                stats.lifted += 1
            loci.append(locus)
        return loci
