"""
Command-line interface for haplopath.

Provides pipeline-friendly CLI with proper exit codes and output formats.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
import requests

from haplopath import __version__
from haplopath.cache import DiskCache, TreeCache
from haplopath.config import Settings, get_settings
from haplopath.markers import CHAIN_FILES, BuildReconciler, ChainLifter
from haplopath.provider import HttpFetcher, TreeLoadError, TreeProvider
from haplopath.report import has_prediction, render_report, results_to_dict, write_report
from haplopath.scoring import classify as classify_calls
from haplopath.sources import SOURCES, get_source
from haplopath.vcf import read_calls, read_sample_name

# UCSC and T2T consortium chain file locations
CHAIN_URLS: dict[str, str] = {
    "grch38-chm13v2.chain": "https://s3-us-west-2.amazonaws.com/human-pangenomics/T2T/CHM13/assemblies/chain/v1_nflo/grch38-chm13v2.chain",
    "hg19-chm13v2.chain": "https://s3-us-west-2.amazonaws.com/human-pangenomics/T2T/CHM13/assemblies/chain/v1_nflo/hg19-chm13v2.chain",
    "chm13v2-grch38.chain": "https://s3-us-west-2.amazonaws.com/human-pangenomics/T2T/CHM13/assemblies/chain/v1_nflo/chm13v2-grch38.chain",
    "hg38ToHg19.over.chain.gz": "https://hgdownload.soe.ucsc.edu/goldenPath/hg38/liftOver/hg38ToHg19.over.chain.gz",
    "hg19ToHg38.over.chain.gz": "https://hgdownload.soe.ucsc.edu/goldenPath/hg19/liftOver/hg19ToHg38.over.chain.gz",
}


def _build_provider(settings: Settings) -> TreeProvider:
    return TreeProvider(
        memory_cache=TreeCache(),
        disk_cache=DiskCache(settings.tree_cache_dir),
        fetcher=HttpFetcher(timeout=settings.fetch_timeout),
        reconciler=BuildReconciler(ChainLifter(settings.chain_dir)),
    )


@click.group()
@click.version_option(version=__version__, prog_name="haplopath")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """
    haplopath: Haplogroup classification against published phylogenetic trees.

    Downloads and caches Y-DNA and mtDNA haplogroup trees, scores observed
    variant calls against every tree node, and reports the best-supported
    haplogroup with its path from the root.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = get_settings()


@main.command()
@click.argument("vcf", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--source",
    "-s",
    "source_id",
    type=click.Choice(sorted(SOURCES)),
    default=None,
    help="Tree source [default: from settings, ftdna-y]",
)
@click.option(
    "--reference",
    "-r",
    type=str,
    default=None,
    help="Reference build of the VCF, e.g. GRCh38, GRCh37, T2T [default: GRCh38]",
)
@click.option(
    "--sample",
    type=str,
    default=None,
    help="Sample name for multi-sample VCF [default: first sample]",
)
@click.option(
    "--top",
    type=int,
    default=10,
    help="Number of candidates to report [default: 10]",
)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Write the text report to this directory [default: stdout]",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format [default: text]",
)
@click.pass_obj
def classify(
    settings: Settings,
    vcf: Path,
    source_id: str | None,
    reference: str | None,
    sample: str | None,
    top: int,
    output_dir: Path | None,
    output_format: str,
) -> None:
    """
    Classify the haplogroup of a sample from a VCF.

    VCF positions must be in the reference build given with --reference.
    """
    try:
        source = get_source(source_id or settings.default_source)
    except KeyError as e:
        click.echo(f"Error: Invalid input: {e}", err=True)
        sys.exit(11)

    try:
        build = reference or settings.default_build

        click.echo(f"Loading {source.source_id} tree for {build}...", err=True)
        provider = _build_provider(settings)
        tree = provider.load_tree(source, build).unwrap()

        click.echo(f"Reading calls from {vcf}...", err=True)
        sample_name = read_sample_name(vcf, sample)
        calls = read_calls(vcf, sample_name, source.tree_type)

        click.echo(f"Scoring {len(tree)} haplogroups...", err=True)
        results = classify_calls(tree, calls)

        if output_format == "json":
            payload = results_to_dict(
                results, tree, sample_name, build, source.source_id, top
            )
            text = json.dumps(payload, indent=2) + "\n"
        else:
            text = render_report(
                results, tree, calls, source.tree_type, sample_name, top
            )

        if output_dir is not None and output_format == "text":
            report_path = write_report(
                output_dir, results, tree, calls, source.tree_type, sample_name, top
            )
            click.echo(f"Report written to {report_path}", err=True)
        elif output_dir is not None:
            output_dir.mkdir(parents=True, exist_ok=True)
            report_path = output_dir / f"{source.tree_type.value}_haplogroup.json"
            report_path.write_text(text)
            click.echo(f"Result written to {report_path}", err=True)
        else:
            click.echo(text, nl=False)

        # Exit with appropriate code
        if not has_prediction(results):
            sys.exit(1)  # Classification failed
        sys.exit(0)

    except FileNotFoundError as e:
        click.echo(f"Error: File not found: {e}", err=True)
        sys.exit(10)
    except ValueError as e:
        click.echo(f"Error: Invalid input: {e}", err=True)
        sys.exit(11)
    except TreeLoadError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(12)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(99)


@main.command()
@click.option(
    "--source",
    "-s",
    "source_id",
    type=click.Choice(sorted(SOURCES)),
    required=True,
    help="Tree source to download",
)
@click.option(
    "--reference",
    "-r",
    type=str,
    default=None,
    help="Build to verify the tree against [default: source's native build]",
)
@click.pass_obj
def fetch(settings: Settings, source_id: str, reference: str | None) -> None:
    """
    Download a tree into the disk cache and check that it parses.
    """
    source = get_source(source_id)
    provider = _build_provider(settings)
    result = provider.load_tree(source, reference or source.native_build)
    if not result.ok:
        click.echo(f"Error: {result.error}", err=True)
        sys.exit(12)

    tree = result.unwrap()
    click.echo(
        f"{source.source_id}: {len(tree)} haplogroups, "
        f"{len(tree.all_loci())} markers (from {result.tier})",
        err=True,
    )
    click.echo(f"Cached at {provider.disk_cache.path_for(source.cache_key)}", err=True)


@main.command()
def sources() -> None:
    """List built-in tree sources."""
    for source in SOURCES.values():
        click.echo(
            f"{source.source_id}\t{source.tree_type.value}\t{source.native_build}\t"
            f"{','.join(source.supported_builds)}\t{source.url}"
        )


@main.group()
def cache() -> None:
    """Inspect or clear the tree cache."""


@cache.command("path")
@click.pass_obj
def cache_path(settings: Settings) -> None:
    """Print the tree cache directory."""
    click.echo(str(settings.tree_cache_dir))


@cache.command("clear")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def cache_clear(settings: Settings, yes: bool) -> None:
    """Delete all cached tree payloads."""
    if not yes:
        click.confirm(f"Delete {settings.tree_cache_dir}?", abort=True)
    DiskCache(settings.tree_cache_dir).clear()
    click.echo("Tree cache cleared.", err=True)


def _download_file(url: str, output_path: Path, label: str, timeout: float) -> None:
    """Download a file with progress indication."""
    click.echo(f"Downloading {label}...", err=True)

    response = requests.get(url, stream=True, timeout=timeout)
    response.raise_for_status()

    total_size = response.headers.get("content-length")
    total_bytes = int(total_size) if total_size else None

    tmp_path = output_path.with_suffix(output_path.suffix + ".part")
    with open(tmp_path, "wb") as f:
        downloaded = 0
        for chunk in response.iter_content(chunk_size=8192):
            if chunk:
                f.write(chunk)
                downloaded += len(chunk)
                if total_bytes:
                    pct = (downloaded / total_bytes) * 100
                    click.echo(
                        f"\r  {pct:.1f}% ({downloaded}/{total_bytes} bytes)",
                        nl=False,
                        err=True,
                    )
    tmp_path.replace(output_path)

    click.echo(f"\n  Saved to {output_path}", err=True)


@main.command("download-chains")
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Output directory for chain files [default: <cache_dir>/liftover]",
)
@click.option("--force", "-f", is_flag=True, help="Force re-download even if files exist")
@click.pass_obj
def download_chains(settings: Settings, output_dir: Path | None, force: bool) -> None:
    """
    Download liftover chain files used to place markers in other builds.
    """
    output_dir = output_dir or settings.chain_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    for filename in CHAIN_FILES.values():
        output_path = output_dir / filename
        if output_path.exists() and not force:
            click.echo(f"Skipping {filename} (exists)", err=True)
            continue
        try:
            _download_file(CHAIN_URLS[filename], output_path, filename, settings.fetch_timeout)
        except requests.RequestException as e:
            click.echo(f"Error downloading {filename}: {e}", err=True)
            sys.exit(1)

    click.echo("Download complete!", err=True)


if __name__ == "__main__":
    main()
