"""
Haplogroup scoring.

Every node of the tree is scored against the observed calls in a single
depth-first pass. Counts accumulate down each lineage, so a node's result
reflects all markers from its root to itself.

Scoring:
- Each branch scores (2 * match_rate - 1) * callable, where
  callable = derived + ancestral and match_rate = derived / callable.
  This equals derived - ancestral: a 50-marker branch with 48 derived scores
  +46, a 2-marker branch with 2 derived scores +2.
- No-calls and calls matching neither allele are neutral.
- A node's score is the sum of branch scores from its root.
- Ranking is score descending, then depth descending, then name ascending.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum

from haplopath.tree import Locus, Tree


class CallState(str, Enum):
    """Observed state of a marker."""

    DERIVED = "Derived"
    ANCESTRAL = "Ancestral"
    UNKNOWN = "Unknown"
    NO_CALL = "No Call"


def call_state(locus: Locus, calls: dict[int, str]) -> CallState:
    """
    Classify the observed call at a locus.

    Comparison is case-insensitive; trees and VCFs mix case.
    """
    called = calls.get(locus.position)
    if called is None or called in ("", "-"):
        return CallState.NO_CALL
    if called.upper() == locus.alt.upper():
        return CallState.DERIVED
    if called.upper() == locus.ref.upper():
        return CallState.ANCESTRAL
    return CallState.UNKNOWN


@dataclass(frozen=True)
class HaplogroupResult:
    """
    Score for one candidate haplogroup.

    Count fields are cumulative over the path from the root, except
    ``total_snps`` which is the node's own marker count.

    Attributes:
        name: Haplogroup name
        score: Cumulative evidence score (higher is better)
        matching_snps: Markers observed in the derived state
        ancestral_matches: Markers observed in the ancestral state
        no_calls: Markers without an observed call
        mismatching_snps: Markers whose call matches neither allele
        total_snps: Markers defining this node
        cumulative_snps: Markers along the root path, inclusive
        depth: Distance from the root
    """

    name: str
    score: float
    matching_snps: int
    ancestral_matches: int
    no_calls: int
    mismatching_snps: int
    total_snps: int
    cumulative_snps: int
    depth: int

    @property
    def callable_snps(self) -> int:
        return self.matching_snps + self.ancestral_matches

    def to_dict(self) -> dict:
        return asdict(self)


def rank_key(result: HaplogroupResult) -> tuple[float, int, str]:
    """Sort key: score desc, depth desc, name asc."""
    return (-result.score, -result.depth, result.name)


def branch_score(derived: int, ancestral: int) -> float:
    """Score one branch from its own derived and ancestral counts."""
    callable_count = derived + ancestral
    if callable_count == 0:
        return 0.0
    match_rate = derived / callable_count
    return (2.0 * match_rate - 1.0) * callable_count


class HaplogroupScorer:
    """
    Score all nodes of a tree against observed calls.

    The scorer holds no state; one instance can serve concurrent requests.
    """

    def score(self, tree: Tree, calls: dict[int, str]) -> list[HaplogroupResult]:
        """
        Score every node of ``tree``.

        Args:
            tree: Haplogroup tree (reconciled to the build of ``calls``)
            calls: Observed allele per position

        Returns:
            One result per node, best first
        """
        results: list[HaplogroupResult] = []

        # (node name, parent result) in pre-order; roots start from zero
        stack: list[tuple[str, HaplogroupResult | None]] = [
            (root.name, None) for root in reversed(tree.roots)
        ]
        while stack:
            name, parent = stack.pop()
            node = tree.get(name)

            derived = ancestral = no_calls = mismatching = 0
            for locus in node.loci:
                state = call_state(locus, calls)
                if state is CallState.DERIVED:
                    derived += 1
                elif state is CallState.ANCESTRAL:
                    ancestral += 1
                elif state is CallState.NO_CALL:
                    no_calls += 1
                else:
                    mismatching += 1

            result = HaplogroupResult(
                name=node.name,
                score=(parent.score if parent else 0.0) + branch_score(derived, ancestral),
                matching_snps=(parent.matching_snps if parent else 0) + derived,
                ancestral_matches=(parent.ancestral_matches if parent else 0) + ancestral,
                no_calls=(parent.no_calls if parent else 0) + no_calls,
                mismatching_snps=(parent.mismatching_snps if parent else 0) + mismatching,
                total_snps=len(node.loci),
                cumulative_snps=(parent.cumulative_snps if parent else 0) + len(node.loci),
                depth=(parent.depth + 1) if parent else 0,
            )
            results.append(result)

            for child_name in reversed(node.children_names):
                stack.append((child_name, result))

        results.sort(key=rank_key)
        return results


def classify(tree: Tree, calls: dict[int, str]) -> list[HaplogroupResult]:
    """
    Convenience function for haplogroup classification.

    Returns:
        All candidate results, best first
    """
    return HaplogroupScorer().score(tree, calls)


def calculate_confidence(
    top: HaplogroupResult,
    results: list[HaplogroupResult],
    tree: Tree,
    max_cap: float = 1.0,
) -> float:
    """
    Confidence for a haplogroup assignment.

    Confidence is the match quality (derived / callable along the path)
    reduced by an ambiguity penalty when the best non-ancestor competitor
    scores within 20% of the top result. Missing coverage is not penalised.

    Args:
        top: The top-scoring result
        results: All results, best first
        tree: Tree the results were scored on
        max_cap: Upper bound (e.g., 0.85 for chip data, 1.0 for WGS)

    Returns:
        Confidence between 0.0 and max_cap
    """
    callable_count = top.callable_snps
    match_quality = top.matching_snps / callable_count if callable_count else 0.0

    penalty = _ambiguity_penalty(top, results, tree)
    confidence = match_quality * (1.0 - penalty)
    return min(max_cap, max(0.0, confidence))


def _ambiguity_penalty(
    top: HaplogroupResult, results: list[HaplogroupResult], tree: Tree
) -> float:
    if len(results) <= 1 or top.score <= 0:
        return 0.0

    lineage = set(tree.path_to_root(top.name))
    competitor = next(
        (r for r in results if r.name != top.name and r.name not in lineage), None
    )
    if competitor is None or competitor.score <= 0:
        return 0.0

    score_diff = (top.score - competitor.score) / top.score
    if score_diff < 0.2:
        # Up to 10% penalty when scores are nearly identical
        return (0.2 - score_diff) * 0.5
    return 0.0
