"""
Haplogroup report rendering.

Produces a Yleaf-style plain-text report and a JSON-ready dictionary from
ranked classification results.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from haplopath.paths import resolve_path
from haplopath.scoring import HaplogroupResult, calculate_confidence, call_state
from haplopath.sources import TreeType
from haplopath.tree import Tree

RULE_WIDTH = 80
NO_HAPLOGROUP = "No haplogroup could be determined."


def has_prediction(results: list[HaplogroupResult]) -> bool:
    """Return True if the head result carries any derived marker."""
    return bool(results) and results[0].matching_snps > 0


def _section(lines: list[str], title: str) -> None:
    lines.append("-" * RULE_WIDTH)
    lines.append(title)
    lines.append("-" * RULE_WIDTH)


def render_report(
    results: list[HaplogroupResult],
    tree: Tree,
    calls: dict[int, str],
    tree_type: TreeType = TreeType.YDNA,
    sample_name: str | None = None,
    top_n: int = 10,
    generated: datetime | None = None,
) -> str:
    """
    Render a text report.

    Args:
        results: Ranked results from ``classify``
        tree: Tree the results were scored on
        calls: Observed call map
        tree_type: Y-DNA or MT-DNA, for the title
        sample_name: Optional sample name
        top_n: Number of candidates to list
        generated: Timestamp to print (defaults to now)

    Returns:
        Report text
    """
    timestamp = (generated or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    dna_type = "Y-DNA" if tree_type == TreeType.YDNA else "MT-DNA"
    by_name = {r.name: r for r in results}
    top = results[0] if has_prediction(results) else None

    lines: list[str] = []
    lines.append("=" * RULE_WIDTH)
    lines.append(f"  {dna_type} Haplogroup Analysis Report")
    lines.append("=" * RULE_WIDTH)
    lines.append("")
    lines.append(f"Generated: {timestamp}")
    if sample_name:
        lines.append(f"Sample: {sample_name}")
    lines.append("")

    _section(lines, "HAPLOGROUP PREDICTION")
    if top is not None:
        confidence = calculate_confidence(top, results, tree)
        lines.append(f"  Predicted Haplogroup: {top.name}")
        lines.append(f"  Score: {top.score:.1f}")
        lines.append(f"  Confidence: {confidence:.3f}")
        lines.append(f"  Derived SNPs: {top.matching_snps}")
        lines.append(f"  Ancestral SNPs: {top.ancestral_matches}")
        lines.append(f"  No Calls: {top.no_calls}")
        lines.append(f"  Tree Depth: {top.depth}")
    else:
        lines.append(f"  {NO_HAPLOGROUP}")
    lines.append("")

    _section(lines, f"TOP {top_n} CANDIDATES")
    lines.append(
        f"{'Rank':>5}  {'Haplogroup':<25}  {'Score':>8}  {'Derived':>8}  "
        f"{'Ancestral':>10}  {'Depth':>6}"
    )
    lines.append("-" * RULE_WIDTH)
    for rank, r in enumerate(results[:top_n], start=1):
        lines.append(
            f"{rank:>5}  {r.name:<25}  {r.score:>8.1f}  {r.matching_snps:>8}  "
            f"{r.ancestral_matches:>10}  {r.depth:>6}"
        )
    lines.append("")

    path = resolve_path(tree, top.name) if top is not None else []
    if path:
        _section(lines, "HAPLOGROUP PATH")
        for step in path:
            result = by_name.get(step.name)
            info = ""
            if result is not None:
                parent = by_name.get(step.node.parent_name or "")
                gained = result.matching_snps - (parent.matching_snps if parent else 0)
                info = f" [+{gained} derived]"
            lines.append(f"{'  ' * step.depth}{step.name}{info}")
        lines.append("")

        _section(lines, "SNP DETAILS (along predicted path)")
        lines.append(
            f"{'Position':>12}  {'SNP Name':<20}  {'Ancestral':>10}  {'Derived':>10}  "
            f"{'Called':>10}  {'State':>10}"
        )
        lines.append("-" * RULE_WIDTH)
        path_loci = [locus for step in path for locus in step.node.loci]
        for locus in sorted(path_loci, key=lambda l: (l.position, l.name)):
            called = calls.get(locus.position, "-")
            state = call_state(locus, calls).value
            lines.append(
                f"{locus.position:>12}  {locus.name:<20}  {locus.ref:>10}  "
                f"{locus.alt:>10}  {called:>10}  {state:>10}"
            )
        lines.append("")

    _section(lines, "SUMMARY STATISTICS")
    all_loci = tree.all_loci()
    tree_positions = {locus.position for locus in all_loci}
    lines.append(f"  Total SNPs in tree: {len(all_loci)}")
    lines.append(f"  SNPs with calls: {len(tree_positions & set(calls))}")
    lines.append(f"  Haplogroups evaluated: {len(results)}")
    if path:
        lines.append(f"  SNPs on predicted path: {sum(len(s.node.loci) for s in path)}")
    lines.append("")
    lines.append("=" * RULE_WIDTH)

    return "\n".join(lines) + "\n"


def write_report(
    output_dir: Path | str,
    results: list[HaplogroupResult],
    tree: Tree,
    calls: dict[int, str],
    tree_type: TreeType = TreeType.YDNA,
    sample_name: str | None = None,
    top_n: int = 10,
) -> Path:
    """
    Write the text report to ``<output_dir>/<ydna|mtdna>_haplogroup_report.txt``.

    Returns:
        Path of the written report
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    report_path = output_dir / f"{tree_type.value}_haplogroup_report.txt"
    report_path.write_text(
        render_report(results, tree, calls, tree_type, sample_name, top_n)
    )
    return report_path


def results_to_dict(
    results: list[HaplogroupResult],
    tree: Tree,
    sample_name: str | None = None,
    build: str = "",
    source_id: str = "",
    top_n: int = 10,
) -> dict:
    """Convert ranked results to a dictionary for JSON output."""
    top = results[0] if has_prediction(results) else None
    return {
        "sample": sample_name,
        "source": source_id,
        "reference": build,
        "haplogroup": top.name if top else None,
        "confidence": calculate_confidence(top, results, tree) if top else 0.0,
        "path": [step.name for step in resolve_path(tree, top.name)] if top else [],
        "candidates": [r.to_dict() for r in results[:top_n]],
        "candidates_evaluated": len(results),
    }
