from depinsight.models.analysis import (
    DependencyDepth,
    DependencySize,
    DeprecatedPackageInfo,
    InstallSizeResult,
    PackageVulnerabilityInfo,
    ResolvedPackage,
    SeverityCounts,
    SeverityLevel,
    SkippedPackage,
    VulnerabilitySummary,
    VulnerabilityTreeResult,
)
from depinsight.models.osv import (
    OsvBatchResponse,
    OsvQueryResponse,
    OsvSeverity,
    OsvVulnerability,
)
from depinsight.models.registry import Dist, Packument, PackumentVersion

__all__ = [
    "DependencyDepth",
    "DependencySize",
    "DeprecatedPackageInfo",
    "Dist",
    "InstallSizeResult",
    "OsvBatchResponse",
    "OsvQueryResponse",
    "OsvSeverity",
    "OsvVulnerability",
    "PackageVulnerabilityInfo",
    "Packument",
    "PackumentVersion",
    "ResolvedPackage",
    "SeverityCounts",
    "SeverityLevel",
    "SkippedPackage",
    "VulnerabilitySummary",
    "VulnerabilityTreeResult",
]
