"""
Vulnerability and deprecation analysis for a whole dependency tree.

Querying OSV once per package does not scale to trees with hundreds of
packages, so the scan runs in two phases:

1. One /v1/querybatch request for every resolved package. It only says
   which packages have vulnerabilities.
2. One /v1/query request per flagged package, with bounded concurrency,
   for the full records (summary, severity, aliases).

Deprecations come straight from the registry manifests and need no query.
"""

import logging
import re
from typing import List, Optional

from depinsight.core.cache import BaseCache, CacheKeys, CacheTTL
from depinsight.core.concurrency import map_with_concurrency
from depinsight.core.config import settings
from depinsight.core.constants import (
    CVSS_CRITICAL_THRESHOLD,
    CVSS_HIGH_THRESHOLD,
    CVSS_MODERATE_THRESHOLD,
    DATABASE_SEVERITY_MAP,
    DEPTH_ORDER,
    GITHUB_ADVISORY_URL,
    NVD_DETAIL_URL,
    OSV_NO_SUMMARY,
    OSV_VULNERABILITY_URL,
    SEVERITY_ORDER,
)
from depinsight.core.metrics import (
    analysis_failed_queries_total,
    analysis_vulnerable_packages_total,
)
from depinsight.models.analysis import (
    DependencyDepth,
    DeprecatedPackageInfo,
    PackageVulnerabilityInfo,
    ResolvedPackage,
    SeverityCounts,
    SeverityLevel,
    VulnerabilitySummary,
    VulnerabilityTreeResult,
)
from depinsight.models.osv import OsvVulnerability
from depinsight.services.osv import OsvClient, OsvQueryError
from depinsight.services.resolver import DependencyGraphResolver

logger = logging.getLogger(__name__)

# Trailing score of a CVSS vector ("CVSS:3.1/.../9.8") or a bare number ("7.5")
CVSS_SCORE_PATTERN = re.compile(r"(?:^|[/:])(\d+(?:\.\d+)?)$")


def get_severity_level(vuln: OsvVulnerability) -> SeverityLevel:
    """
    Derive a severity level for an OSV record.

    The database-provided severity wins. Otherwise the numeric score of the
    first severity entry is mapped onto CVSS thresholds.
    """
    db_severity = vuln.database_severity
    if db_severity:
        mapped = DATABASE_SEVERITY_MAP.get(db_severity.lower())
        if mapped:
            return SeverityLevel(mapped)

    if vuln.severity and vuln.severity[0].score:
        match = CVSS_SCORE_PATTERN.search(vuln.severity[0].score)
        if match:
            score = float(match.group(1))
            if score >= CVSS_CRITICAL_THRESHOLD:
                return SeverityLevel.CRITICAL
            if score >= CVSS_HIGH_THRESHOLD:
                return SeverityLevel.HIGH
            if score >= CVSS_MODERATE_THRESHOLD:
                return SeverityLevel.MODERATE
            if score > 0:
                return SeverityLevel.LOW

    return SeverityLevel.UNKNOWN


def get_vulnerability_url(vuln: OsvVulnerability) -> str:
    if vuln.id.startswith("GHSA-"):
        return f"{GITHUB_ADVISORY_URL}/{vuln.id}"
    cve = next((alias for alias in vuln.aliases if alias.startswith("CVE-")), None)
    if cve:
        return f"{NVD_DETAIL_URL}/{cve}"
    return f"{OSV_VULNERABILITY_URL}/{vuln.id}"


def _depth_rank(depth: DependencyDepth) -> int:
    return DEPTH_ORDER[depth.value]


def _vulnerable_package_sort_key(pkg: PackageVulnerabilityInfo):
    return (
        _depth_rank(pkg.depth),
        -pkg.counts.critical,
        -pkg.counts.high,
        -pkg.counts.moderate,
        -pkg.counts.total,
    )


class VulnerabilityScanner:
    def __init__(
        self,
        resolver: DependencyGraphResolver,
        osv_client: OsvClient,
        cache: Optional[BaseCache] = None,
        detail_concurrency: Optional[int] = None,
    ):
        self.resolver = resolver
        self.osv_client = osv_client
        self.cache = cache
        self.detail_concurrency = detail_concurrency or settings.OSV_DETAIL_CONCURRENCY

    async def analyze(self, name: str, version: str) -> VulnerabilityTreeResult:
        """
        Scan the dependency tree of name@version.

        Never raises for OSV failures: a failed batch query marks every
        package as failed, a failed detail query marks just that package.
        """
        if self.cache is None:
            return await self._analyze(name, version)

        async def fetch():
            result = await self._analyze(name, version)
            return result.to_json()

        data = await self.cache.get_or_fetch(
            CacheKeys.dependency_analysis(name, version),
            fetch,
            ttl_seconds=CacheTTL.DEPENDENCY_ANALYSIS,
            stale_ttl_seconds=CacheTTL.DEPENDENCY_ANALYSIS_STALE,
        )
        return VulnerabilityTreeResult.model_validate(data)

    async def _analyze(self, name: str, version: str) -> VulnerabilityTreeResult:
        resolved = await self.resolver.resolve(name, version, track_depth=True)
        packages = list(resolved.values())

        deprecated_packages = self._collect_deprecated(packages)

        vulnerable_indices = await self._query_batch(packages)
        vulnerable_packages: List[PackageVulnerabilityInfo] = []

        if vulnerable_indices is None:
            failed_queries = len(packages)
            analysis_failed_queries_total.labels(phase="batch").inc(len(packages))
            logger.error(
                f"OSV batch query failed for {name}@{version} ({len(packages)} packages)"
            )
        else:
            failed_queries = 0
            if vulnerable_indices:

                async def query(index: int, _position: int) -> Optional[PackageVulnerabilityInfo]:
                    return await self._query_detail(packages[index])

                details = await map_with_concurrency(
                    vulnerable_indices, query, self.detail_concurrency
                )
                for info in details:
                    if info is None:
                        failed_queries += 1
                    else:
                        vulnerable_packages.append(info)
                if failed_queries:
                    analysis_failed_queries_total.labels(phase="detail").inc(failed_queries)

        vulnerable_packages.sort(key=_vulnerable_package_sort_key)
        analysis_vulnerable_packages_total.inc(len(vulnerable_packages))

        total_counts = SeverityCounts()
        for pkg in vulnerable_packages:
            total_counts.merge(pkg.counts)

        logger.info(
            f"Analyzed {name}@{version}: {len(packages)} packages, "
            f"{len(vulnerable_packages)} vulnerable, {len(deprecated_packages)} deprecated, "
            f"{failed_queries} failed queries"
        )

        return VulnerabilityTreeResult(
            package=name,
            version=version,
            vulnerable_packages=vulnerable_packages,
            deprecated_packages=deprecated_packages,
            total_packages=len(packages),
            failed_queries=failed_queries,
            total_counts=total_counts,
        )

    async def _query_batch(self, packages: List[ResolvedPackage]) -> Optional[List[int]]:
        """Indices of packages OSV reports as vulnerable, or None if the batch failed."""
        if not packages:
            return []

        try:
            results = await self.osv_client.query_batch(
                [(pkg.name, pkg.version) for pkg in packages]
            )
        except OsvQueryError as e:
            logger.warning(f"OSV batch query failed: {e}")
            return None
        except Exception as e:
            logger.warning(f"OSV batch query failed: {type(e).__name__}: {e}")
            return None

        indices = []
        for i, result in enumerate(results):
            if result.vulns:
                indices.append(i)
            if result.next_page_token:
                logger.warning(
                    f"OSV batch result for {packages[i].key} has a pagination token, "
                    f"some vulnerabilities may be missing"
                )
        return indices

    async def _query_detail(self, pkg: ResolvedPackage) -> Optional[PackageVulnerabilityInfo]:
        try:
            response = await self.osv_client.query_detail(pkg.name, pkg.version)
        except OsvQueryError as e:
            logger.warning(f"OSV detail query failed for {pkg.key}: {e}")
            return None
        except Exception as e:
            logger.warning(
                f"OSV detail query failed for {pkg.key}: {type(e).__name__}: {e}"
            )
            return None

        if not response.vulns:
            return None

        rated = [(get_severity_level(vuln), vuln) for vuln in response.vulns]
        rated.sort(key=lambda pair: SEVERITY_ORDER[pair[0].value])

        counts = SeverityCounts()
        vulnerabilities = []
        for severity, vuln in rated:
            counts.add(severity)
            vulnerabilities.append(
                VulnerabilitySummary(
                    id=vuln.id,
                    summary=vuln.summary or OSV_NO_SUMMARY,
                    severity=severity,
                    aliases=vuln.aliases,
                    url=get_vulnerability_url(vuln),
                )
            )

        return PackageVulnerabilityInfo(
            name=pkg.name,
            version=pkg.version,
            depth=pkg.depth or DependencyDepth.TRANSITIVE,
            path=pkg.path,
            vulnerabilities=vulnerabilities,
            counts=counts,
        )

    @staticmethod
    def _collect_deprecated(packages: List[ResolvedPackage]) -> List[DeprecatedPackageInfo]:
        deprecated = [
            DeprecatedPackageInfo(
                name=pkg.name,
                version=pkg.version,
                depth=pkg.depth or DependencyDepth.TRANSITIVE,
                path=pkg.path,
                message=pkg.deprecated,
            )
            for pkg in packages
            if pkg.deprecated
        ]
        return sorted(deprecated, key=lambda info: _depth_rank(info.depth))
