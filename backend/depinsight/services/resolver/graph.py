"""
Dependency graph resolution.

Rebuilds the set of packages `npm install <name>@<version>` would place on
disk, flattened by package name: the first version resolved for a name is
used for every other occurrence of that name, wherever it appears in the
tree. Traversal is breadth-first in fixed-size batches so at most
`batch_size` registry fetches are in flight at once.

Packages that cannot be fetched, whose range matches no published version,
or that do not install on the target platform are dropped together with
their subtree. The result is best-effort, never an error.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Protocol, Set, Tuple

from depinsight.core.config import settings
from depinsight.core.metrics import (
    resolution_duration_seconds,
    resolution_packages_resolved,
    resolution_skipped_total,
)
from depinsight.models.analysis import DependencyDepth, ResolvedPackage, SkippedPackage
from depinsight.models.registry import Packument

from .platform import TargetPlatform, matches_platform
from .versions import resolve_dist_tag, resolve_version

logger = logging.getLogger(__name__)


class PackageMetadataProvider(Protocol):
    async def fetch_packument(self, name: str) -> Optional[Packument]: ...


@dataclass(frozen=True)
class WorkItem:
    """A dependency edge waiting to be resolved."""

    name: str
    range: str
    optional: bool = False
    parent_path: Tuple[str, ...] = ()
    is_root: bool = False
    from_root: bool = False


class SkipReason:
    NOT_FOUND = "not_found"
    FETCH_ERROR = "fetch_error"
    UNRESOLVABLE = "unresolvable"
    PLATFORM = "platform"


@dataclass
class _ResolutionRun:
    """Mutable state of one resolve() call."""

    track_depth: bool
    resolved: Dict[str, ResolvedPackage]
    seen: Set[str]
    queue: Deque[WorkItem]
    skipped: List[SkippedPackage]

    def claim(self, name: str) -> bool:
        """Atomically mark a name as taken; False if another item already has it."""
        if name in self.seen:
            return False
        self.seen.add(name)
        return True


class DependencyGraphResolver:
    def __init__(
        self,
        registry: PackageMetadataProvider,
        batch_size: Optional[int] = None,
        target: Optional[TargetPlatform] = None,
    ):
        self.registry = registry
        self.batch_size = max(1, batch_size or settings.GRAPH_BATCH_SIZE)
        self.target = target or TargetPlatform.from_settings()

    async def resolve(
        self, root_name: str, root_range: str, track_depth: bool = False
    ) -> Dict[str, ResolvedPackage]:
        """
        Resolve the full dependency graph of root_name@root_range.

        Returns a map of package name to ResolvedPackage in discovery order.
        With track_depth, every entry also carries its depth and the first
        path by which it was reached.
        """
        resolved, _ = await self.resolve_with_diagnostics(root_name, root_range, track_depth)
        return resolved

    async def resolve_with_diagnostics(
        self, root_name: str, root_range: str, track_depth: bool = False
    ) -> Tuple[Dict[str, ResolvedPackage], List[SkippedPackage]]:
        """Like resolve(), also returning the dependency edges that were dropped."""
        run = _ResolutionRun(
            track_depth=track_depth,
            resolved={},
            seen=set(),
            queue=deque([WorkItem(name=root_name, range=root_range, is_root=True)]),
            skipped=[],
        )
        start_time = time.time()

        while run.queue:
            batch = [run.queue.popleft() for _ in range(min(self.batch_size, len(run.queue)))]
            await asyncio.gather(*(self._process(run, item) for item in batch))

        resolution_duration_seconds.observe(time.time() - start_time)
        resolution_packages_resolved.observe(len(run.resolved))
        logger.debug(
            f"Resolved {len(run.resolved)} packages for {root_name}@{root_range} "
            f"({len(run.skipped)} skipped)"
        )
        return run.resolved, run.skipped

    async def _process(self, run: _ResolutionRun, item: WorkItem) -> None:
        # Claim before the first await so two items for the same name in one
        # batch can never both be fetched.
        if not run.claim(item.name):
            return

        try:
            packument = await self.registry.fetch_packument(item.name)
        except Exception as e:
            logger.warning(f"Metadata fetch failed for {item.name}: {type(e).__name__}: {e}")
            self._skip(run, item, SkipReason.FETCH_ERROR)
            return
        if packument is None:
            self._skip(run, item, SkipReason.NOT_FOUND)
            return

        declaration = resolve_dist_tag(item.range, packument.dist_tags)
        version = resolve_version(declaration, packument.versions.keys())
        if version is None:
            self._skip(run, item, SkipReason.UNRESOLVABLE)
            return

        manifest = packument.versions.get(version)
        if manifest is None:
            self._skip(run, item, SkipReason.NOT_FOUND)
            return

        if not matches_platform(manifest, self.target):
            self._skip(run, item, SkipReason.PLATFORM)
            return

        path = item.parent_path + (f"{item.name}@{version}",)
        entry = ResolvedPackage(
            name=item.name,
            version=version,
            size=manifest.unpacked_size,
            optional=item.optional,
            deprecated=manifest.deprecated,
        )
        if run.track_depth:
            entry.depth = self._depth(item)
            entry.path = list(path)

        # First writer wins
        run.resolved.setdefault(item.name, entry)

        self._enqueue(run, item, path, manifest.dependencies, optional=False)
        self._enqueue(run, item, path, manifest.optional_dependencies, optional=True)

    def _enqueue(
        self,
        run: _ResolutionRun,
        parent: WorkItem,
        path: Tuple[str, ...],
        dependencies: Dict[str, str],
        optional: bool,
    ) -> None:
        for dep_name, dep_range in dependencies.items():
            if dep_name in run.seen:
                continue
            run.queue.append(
                WorkItem(
                    name=dep_name,
                    range=dep_range,
                    optional=optional,
                    parent_path=path,
                    from_root=parent.is_root,
                )
            )

    @staticmethod
    def _depth(item: WorkItem) -> DependencyDepth:
        if item.is_root:
            return DependencyDepth.ROOT
        if item.from_root:
            return DependencyDepth.DIRECT
        return DependencyDepth.TRANSITIVE

    def _skip(self, run: _ResolutionRun, item: WorkItem, reason: str) -> None:
        run.skipped.append(SkippedPackage(name=item.name, range=item.range, reason=reason))
        resolution_skipped_total.labels(reason=reason).inc()
        logger.debug(f"Skipping {item.name}@{item.range}: {reason}")
