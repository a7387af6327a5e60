import logging
from typing import Optional

from depinsight.core.cache import BaseCache, CacheKeys, CacheTTL
from depinsight.models.analysis import DependencySize, InstallSizeResult
from depinsight.services.resolver import DependencyGraphResolver

logger = logging.getLogger(__name__)


class InstallSizeCalculator:
    """
    Total install size of a package and everything it pulls in.

    Sizes are the registry's unpacked sizes for the versions the resolver
    picks on the target platform, so the total approximates a typical
    install rather than any specific machine.
    """

    def __init__(self, resolver: DependencyGraphResolver, cache: Optional[BaseCache] = None):
        self.resolver = resolver
        self.cache = cache

    async def calculate(self, name: str, version: str) -> InstallSizeResult:
        if self.cache is None:
            return await self._calculate(name, version)

        async def fetch():
            result = await self._calculate(name, version)
            return result.to_json()

        data = await self.cache.get_or_fetch(
            CacheKeys.install_size(name, version), fetch, CacheTTL.INSTALL_SIZE
        )
        return InstallSizeResult.model_validate(data)

    async def _calculate(self, name: str, version: str) -> InstallSizeResult:
        resolved = await self.resolver.resolve(name, version)

        # The seed always claims its own name first, so a hit here is the root
        root = resolved.get(name)
        self_size = root.size if root else 0

        dependencies = [
            DependencySize(
                name=pkg.name,
                version=pkg.version,
                size=pkg.size,
                optional=True if pkg.optional else None,
            )
            for pkg_name, pkg in resolved.items()
            if pkg_name != name
        ]
        # sorted() is stable, ties keep discovery order
        dependencies = sorted(dependencies, key=lambda d: d.size, reverse=True)

        total_size = self_size + sum(d.size for d in dependencies)

        if root is None:
            logger.info(f"Root package {name}@{version} did not resolve, reporting self size 0")

        return InstallSizeResult(
            package=name,
            version=version,
            self_size=self_size,
            total_size=total_size,
            dependency_count=len(dependencies),
            dependencies=dependencies,
        )
