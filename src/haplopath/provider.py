"""
Haplogroup tree loading.

``TreeProvider.load_tree`` serves a tree for a (source, build) pair from the
first tier that has it:

1. memory cache of parsed, reconciled trees
2. disk cache of raw payloads (parsed and reconciled on load)
3. a single download from the source URL, persisted to the disk cache

Failures are returned in the ``LoadResult`` rather than raised, and never
leave a partial entry in either cache tier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Protocol

import requests

from haplopath.cache import DiskCache, TreeCache
from haplopath.markers import BuildReconciler, ReconciliationStats, normalize_build
from haplopath.sources import TreeSource
from haplopath.tree import NodeRecord, Tree

logger = logging.getLogger(__name__)

CacheTier = Literal["memory", "disk", "network"]


class TreeLoadError(Exception):
    """Base class for tree loading failures."""


class FetchFailure(TreeLoadError):
    """The tree payload could not be downloaded."""

    def __init__(self, url: str, cause: BaseException | str) -> None:
        super().__init__(f"Failed to download tree from {url}: {cause}")
        self.url = url
        self.cause = cause


class ParseFailure(TreeLoadError):
    """The tree payload could not be interpreted as a haplogroup tree."""

    def __init__(self, source_id: str, message: str) -> None:
        super().__init__(f"Failed to parse tree {source_id}: {message}")
        self.source_id = source_id
        self.message = message


@dataclass
class LoadResult:
    """
    Outcome of ``TreeProvider.load_tree``.

    Exactly one of ``tree`` and ``error`` is set.

    Attributes:
        tree: Loaded tree on success
        error: FetchFailure or ParseFailure on failure
        tier: Cache tier that served the payload, when successful
    """

    tree: Tree | None = None
    error: TreeLoadError | None = None
    tier: CacheTier | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.tree is not None

    def unwrap(self) -> Tree:
        """Return the tree or raise the load error."""
        if self.error is not None:
            raise self.error
        if self.tree is None:
            raise TreeLoadError("No tree loaded")
        return self.tree


class Fetcher(Protocol):
    def fetch(self, url: str) -> bytes: ...


class HttpFetcher:
    """
    Download payloads with a single HTTP GET.

    There is no retry: any request error is raised as ``FetchFailure``.
    """

    def __init__(self, timeout: float = 300.0, session: requests.Session | None = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, url: str) -> bytes:
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FetchFailure(url, e) from e
        return response.content


class TreeProvider:
    """
    Load reconciled haplogroup trees through the memory, disk and network tiers.

    Concurrent calls for the same key may each take the expensive path; the
    last one to finish populates the caches.

    Args:
        memory_cache: Parsed-tree cache, shared for the life of the process
        disk_cache: Raw payload cache
        fetcher: Network collaborator (defaults to ``HttpFetcher``)
        reconciler: Build reconciler (defaults to one without chain files)
    """

    def __init__(
        self,
        memory_cache: TreeCache,
        disk_cache: DiskCache,
        fetcher: Fetcher | None = None,
        reconciler: BuildReconciler | None = None,
    ) -> None:
        self.memory_cache = memory_cache
        self.disk_cache = disk_cache
        self.fetcher = fetcher or HttpFetcher()
        self.reconciler = reconciler or BuildReconciler()

    def load_tree(self, source: TreeSource, target_build: str) -> LoadResult:
        """
        Load ``source`` with coordinates in ``target_build``.

        Args:
            source: Tree source configuration
            target_build: Requested reference build (any alias)

        Returns:
            LoadResult with the tree, or with a FetchFailure/ParseFailure
        """
        build = normalize_build(target_build)

        tree = self.memory_cache.get(source.cache_key, build)
        if tree is not None:
            logger.debug("Found %s/%s in memory cache", source.cache_key, build)
            return LoadResult(tree=tree, tier="memory")

        tier: CacheTier = "disk"
        try:
            data = self.disk_cache.get(source.cache_key)
        except OSError as e:
            logger.warning("Cannot read disk cache for %s: %s", source.cache_key, e)
            data = None
        if data is None:
            tier = "network"
            logger.info("Downloading %s from %s", source.cache_key, source.url)
            try:
                data = self.fetcher.fetch(source.url)
            except FetchFailure as e:
                logger.error("%s", e)
                return LoadResult(error=e)
            logger.info("Download complete (%d bytes). Caching tree.", len(data))
            try:
                self.disk_cache.put(source.cache_key, data)
            except OSError as e:
                logger.warning("Cannot write disk cache for %s: %s", source.cache_key, e)
        else:
            logger.info("Found %s in disk cache", source.cache_key)

        try:
            tree = self.build_tree(source, data, build)
        except ParseFailure as e:
            logger.error("%s", e)
            return LoadResult(error=e)

        self.memory_cache.put(source.cache_key, build, tree)
        return LoadResult(tree=tree, tier=tier)

    def build_tree(self, source: TreeSource, data: bytes, target_build: str) -> Tree:
        """
        Parse a raw payload and reconcile it to ``target_build``.

        Raises:
            ParseFailure: If the payload is malformed or structurally invalid
        """
        build = normalize_build(target_build)
        if build not in source.supported_builds:
            logger.warning(
                "%s publishes coordinates for %s; markers for %s need a chain file",
                source.source_id,
                ", ".join(source.supported_builds),
                build,
            )

        try:
            source_nodes = source.parse(data)
        except (ValueError, KeyError, TypeError, UnicodeDecodeError) as e:
            raise ParseFailure(source.source_id, str(e)) from e

        stats = ReconciliationStats()
        records = [
            NodeRecord(
                name=node.name,
                parent_name=node.parent_name,
                loci=self.reconciler.reconcile(
                    node.markers, source.native_build, build, stats
                ),
                children_names=list(node.children_names),
            )
            for node in source_nodes
        ]

        try:
            tree = Tree.from_records(records)
        except ValueError as e:
            raise ParseFailure(source.source_id, str(e)) from e

        logger.info(
            "Built %s tree for %s: %d nodes, %d markers kept, %d lifted, %d dropped",
            source.source_id,
            build,
            len(tree),
            stats.kept,
            stats.lifted,
            stats.dropped,
        )
        return tree
