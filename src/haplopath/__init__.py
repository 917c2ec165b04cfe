"""
haplopath: Haplogroup classification against published phylogenetic trees.

Loads Y-DNA and mtDNA haplogroup trees through memory and disk caches,
reconciles marker coordinates to the requested reference build, scores
observed calls against every node, and resolves root-to-haplogroup paths.
"""

__version__ = "0.1.0"

from haplopath.paths import PathStep, resolve_path
from haplopath.provider import FetchFailure, LoadResult, ParseFailure, TreeProvider
from haplopath.scoring import HaplogroupResult, classify
from haplopath.tree import Locus, Node, Tree

__all__ = [
    "Tree",
    "Node",
    "Locus",
    "TreeProvider",
    "LoadResult",
    "FetchFailure",
    "ParseFailure",
    "classify",
    "HaplogroupResult",
    "resolve_path",
    "PathStep",
    "__version__",
]
