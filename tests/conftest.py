"""
Pytest configuration and fixtures for haplopath tests.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from haplopath.tree import Tree


@pytest.fixture
def example_tree_dict() -> dict:
    """
    Return the minimal three-level tree.

    Structure:
        A
        └── A1      (1000 C>T)
            └── A1a (2000 A>G)
    """
    return {
        "name": "A",
        "children": [
            {
                "name": "A1",
                "loci": [{"name": "M1", "position": 1000, "ref": "C", "alt": "T"}],
                "children": [
                    {
                        "name": "A1a",
                        "loci": [
                            {"name": "M2", "position": 2000, "ref": "A", "alt": "G"}
                        ],
                    }
                ],
            }
        ],
    }


@pytest.fixture
def example_tree(example_tree_dict: dict) -> Tree:
    return Tree.from_dict(example_tree_dict)


@pytest.fixture
def sample_tree_dict() -> dict:
    """
    Return a branching Y tree for testing.

    Structure:
        ROOT
        ├── A00        (100 A>G)
        └── BT         (200 C>T, 210 G>A)
            ├── CT     (300 C>T)
            │   ├── R  (400 A>G, 410 T>C)
            │   │   └── R1b  (500 G>A)
            │   └── J  (600 T>A)
            └── B      (700 G>C)
    """

    def locus(name: str, position: int, ref: str, alt: str) -> dict:
        return {"name": name, "position": position, "ref": ref, "alt": alt, "contig": "chrY"}

    return {
        "name": "ROOT",
        "children": [
            {"name": "A00", "loci": [locus("AF6", 100, "A", "G")]},
            {
                "name": "BT",
                "loci": [locus("M42", 200, "C", "T"), locus("M94", 210, "G", "A")],
                "children": [
                    {
                        "name": "CT",
                        "loci": [locus("M168", 300, "C", "T")],
                        "children": [
                            {
                                "name": "R",
                                "loci": [locus("M207", 400, "A", "G"), locus("M306", 410, "T", "C")],
                                "children": [
                                    {"name": "R1b", "loci": [locus("M269", 500, "G", "A")]}
                                ],
                            },
                            {"name": "J", "loci": [locus("M304", 600, "T", "A")]},
                        ],
                    },
                    {"name": "B", "loci": [locus("M60", 700, "G", "C")]},
                ],
            },
        ],
    }


@pytest.fixture
def sample_tree(sample_tree_dict: dict) -> Tree:
    return Tree.from_dict(sample_tree_dict)


@pytest.fixture
def r1b_calls() -> dict[int, str]:
    """Calls for a sample on the R1b lineage (A00 and J ancestral, B unobserved)."""
    return {100: "A", 200: "T", 210: "A", 300: "T", 400: "G", 410: "C", 500: "A", 600: "T"}


@pytest.fixture
def ftdna_payload() -> bytes:
    """FTDNA-style payload: root A (id 1) -> A1 (id 2) -> A1a (id 3), plus A2 (id 4)."""
    data = {
        "allNodes": {
            "1": {
                "haplogroupId": 1, "parentId": 0, "name": "A", "isRoot": True,
                "variants": [], "children": [2, 4],
            },
            "2": {
                "haplogroupId": 2, "parentId": 1, "name": "A1", "isRoot": False,
                "variants": [
                    {"variant": "M1", "position": 1000, "ancestral": "C", "derived": "T"},
                    {"variant": "M1-unplaced", "position": None, "ancestral": "C", "derived": "T"},
                ],
                "children": [3],
            },
            "3": {
                "haplogroupId": 3, "parentId": 2, "name": "A1a", "isRoot": False,
                "variants": [{"variant": "M2", "position": 2000, "ancestral": "A", "derived": "G"}],
                "children": [],
            },
            "4": {
                "haplogroupId": 4, "parentId": 1, "name": "A2", "isRoot": False,
                "variants": [{"variant": "M3", "position": 3000, "ancestral": "G", "derived": "A"}],
                "children": [],
            },
        }
    }
    return json.dumps(data).encode()


@pytest.fixture
def decodingus_payload() -> bytes:
    """DecodingUs-style payload; CTS4466 lacks a T2T coordinate, L21 lacks GRCh37."""
    data = [
        {"name": "R", "parentName": None, "variants": [], "lastUpdated": "2024-01-01", "isBackbone": True},
        {
            "name": "R-M269",
            "parentName": "R",
            "variants": [
                {
                    "name": "M269",
                    "variantType": "SNP",
                    "coordinates": {
                        "CM000686.1": {"start": 22739367, "stop": 22739367, "anc": "T", "der": "C"},
                        "CM000686.2": {"start": 20577481, "stop": 20577481, "anc": "T", "der": "C"},
                        "CP086569.2": {"start": 22159843, "stop": 22159843, "anc": "T", "der": "C"},
                    },
                }
            ],
            "lastUpdated": "2024-01-01",
            "isBackbone": True,
        },
        {
            "name": "R-CTS4466",
            "parentName": "R-M269",
            "variants": [
                {
                    "name": "CTS4466",
                    "variantType": "SNP",
                    "coordinates": {
                        "CM000686.1": {"start": 100, "stop": 101, "anc": "A", "der": "G"},
                        "CM000686.2": {"start": 200, "stop": 201, "anc": "A", "der": "G"},
                    },
                },
                {
                    "name": "CTS4466-INS",
                    "variantType": "INDEL",
                    "coordinates": {
                        "CM000686.2": {"start": 250, "stop": 252, "anc": "A", "der": "AGT"},
                    },
                },
            ],
            "lastUpdated": "2024-01-01",
            "isBackbone": False,
        },
        {
            "name": "R-L21",
            "parentName": "R-M269",
            "variants": [
                {
                    "name": "L21",
                    "variantType": "SNP",
                    "coordinates": {
                        "CM000686.2": {"start": 2655180, "stop": 2655180, "anc": "C", "der": "G"},
                    },
                }
            ],
            "lastUpdated": "2024-01-01",
            "isBackbone": False,
        },
    ]
    return json.dumps(data).encode()


@pytest.fixture
def sample_vcf(tmp_path: Path) -> Path:
    """Create a haploid Y VCF for a sample on the A1 lineage."""
    vcf_content = """##fileformat=VCFv4.2
##contig=<ID=chrY,length=57227415>
##contig=<ID=chrM,length=16569>
##FORMAT=<ID=GT,Number=1,Type=String,Description="Genotype">
##FORMAT=<ID=DP,Number=1,Type=Integer,Description="Read Depth">
#CHROM	POS	ID	REF	ALT	QUAL	FILTER	INFO	FORMAT	SAMPLE1	SAMPLE2
chrY	1000	.	C	T	100	PASS	.	GT:DP	1:30	0:25
chrY	2000	.	A	G	100	PASS	.	GT:DP	.:0	1:20
chrY	3000	.	G	A	100	PASS	.	GT:DP	0:28	0:22
chrM	73	.	A	G	100	PASS	.	GT:DP	1:500	1:400
"""
    vcf_path = tmp_path / "sample.vcf"
    vcf_path.write_text(vcf_content)
    return vcf_path
