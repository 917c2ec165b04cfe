"""
VCF parsing into observed call maps.

Reads haploid (Y-chromosome or mitochondrial) genotypes from single-sample or
multi-sample VCFs and returns the called allele per position.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import pysam

from haplopath.sources import TreeType

# Possible contig names per tree type
CONTIGS: dict[TreeType, frozenset[str]] = {
    TreeType.YDNA: frozenset({"Y", "chrY", "y", "chry", "24"}),
    TreeType.MTDNA: frozenset({"MT", "chrM", "M", "chrMT", "mt", "25"}),
}


@dataclass
class Variant:
    """
    A variant call from a VCF file.

    Attributes:
        chrom: Contig as named in the VCF
        position: 1-based genomic position
        ref: Reference allele
        alt: Alternative allele(s)
        genotype: Called allele index (0=ref, 1=first alt, None=missing)
    """

    chrom: str
    position: int
    ref: str
    alt: tuple[str, ...]
    genotype: int | None = None

    @property
    def called_allele(self) -> str | None:
        """Return the called allele based on genotype."""
        if self.genotype is None:
            return None
        if self.genotype == 0:
            return self.ref
        if 0 < self.genotype <= len(self.alt):
            return self.alt[self.genotype - 1]
        return None


class VCFReader:
    """
    Reader for haploid variants of one contig family.

    Records are streamed, so plain (unindexed) VCFs are accepted.
    """

    def __init__(
        self,
        path: Path | str,
        sample: str | None = None,
        tree_type: TreeType = TreeType.YDNA,
    ):
        self.path = Path(path)
        self.contigs = CONTIGS[tree_type]
        self._vcf: pysam.VariantFile | None = None
        self._sample: str | None = sample

    def __enter__(self) -> VCFReader:
        self._vcf = pysam.VariantFile(str(self.path))
        self._resolve_sample()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._vcf:
            self._vcf.close()

    def _resolve_sample(self) -> None:
        if self._vcf is None:
            raise RuntimeError("VCF not opened")

        samples = list(self._vcf.header.samples)
        if not samples:
            raise ValueError("No samples found in VCF")

        if self._sample is None:
            self._sample = samples[0]
        elif self._sample not in samples:
            raise ValueError(f"Sample '{self._sample}' not found. Available: {samples}")

    @property
    def sample(self) -> str:
        """Return the sample name being read."""
        if self._sample is None:
            raise RuntimeError("Sample not resolved (call __enter__ first)")
        return self._sample

    def iter_variants(self) -> Iterator[Variant]:
        """Yield variants on the reader's contigs."""
        if self._vcf is None:
            raise RuntimeError("VCF not opened")

        for record in self._vcf:
            if record.chrom not in self.contigs:
                continue
            gt = record.samples[self.sample].get("GT")
            # Haploid call: take the first allele
            genotype = gt[0] if gt is not None and gt[0] is not None else None
            yield Variant(
                chrom=record.chrom,
                position=record.pos,
                ref=record.ref,
                alt=tuple(str(a) for a in record.alts) if record.alts else (),
                genotype=genotype,
            )


def read_calls(
    path: Path | str,
    sample: str | None = None,
    tree_type: TreeType = TreeType.YDNA,
) -> dict[int, str]:
    """
    Read the observed call map from a VCF.

    Args:
        path: Path to VCF file (plain or bgzipped)
        sample: Sample name (first sample if None)
        tree_type: Which contigs to read

    Returns:
        Called allele per position; positions without a call are omitted
    """
    calls: dict[int, str] = {}
    with VCFReader(path, sample, tree_type) as reader:
        for variant in reader.iter_variants():
            allele = variant.called_allele
            if allele is not None:
                calls[variant.position] = allele
    return calls


def read_sample_name(path: Path | str, sample: str | None = None) -> str:
    """Return the sample that ``read_calls`` would use."""
    with VCFReader(path, sample) as reader:
        return reader.sample
