from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DependencyDepth(str, Enum):
    ROOT = "root"
    DIRECT = "direct"
    TRANSITIVE = "transitive"


class SeverityLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"
    UNKNOWN = "unknown"


class ResolvedPackage(BaseModel):
    """One package version that survived resolution."""

    name: str
    version: str
    size: int = Field(0, ge=0, description="Unpacked size in bytes, 0 if unknown")
    optional: bool = Field(False, description="Reached through an optional dependency edge")
    depth: Optional[DependencyDepth] = Field(None, description="Set when depth tracking is on")
    path: List[str] = Field(default_factory=list, description="name@version from the root")
    deprecated: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.name}@{self.version}"


class SkippedPackage(BaseModel):
    """A dependency edge that did not produce a resolved package."""

    name: str
    range: str
    reason: str


# =============================================================================
# Install size
# =============================================================================


class DependencySize(BaseModel):
    name: str
    version: str
    size: int
    optional: Optional[bool] = Field(None, description="Only present (true) for optional deps")


class InstallSizeResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    package: str
    version: str
    self_size: int = Field(..., alias="selfSize")
    total_size: int = Field(..., alias="totalSize")
    dependency_count: int = Field(..., alias="dependencyCount")
    dependencies: List[DependencySize] = Field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# Vulnerabilities
# =============================================================================


class SeverityCounts(BaseModel):
    total: int = 0
    critical: int = 0
    high: int = 0
    moderate: int = 0
    low: int = 0

    def add(self, severity: SeverityLevel) -> None:
        self.total += 1
        if severity == SeverityLevel.CRITICAL:
            self.critical += 1
        elif severity == SeverityLevel.HIGH:
            self.high += 1
        elif severity == SeverityLevel.MODERATE:
            self.moderate += 1
        elif severity == SeverityLevel.LOW:
            self.low += 1

    def merge(self, other: "SeverityCounts") -> None:
        self.total += other.total
        self.critical += other.critical
        self.high += other.high
        self.moderate += other.moderate
        self.low += other.low


class VulnerabilitySummary(BaseModel):
    id: str
    summary: str
    severity: SeverityLevel
    aliases: List[str] = Field(default_factory=list)
    url: str


class PackageVulnerabilityInfo(BaseModel):
    name: str
    version: str
    depth: DependencyDepth
    path: List[str] = Field(default_factory=list)
    vulnerabilities: List[VulnerabilitySummary] = Field(default_factory=list)
    counts: SeverityCounts = Field(default_factory=SeverityCounts)


class DeprecatedPackageInfo(BaseModel):
    name: str
    version: str
    depth: DependencyDepth
    path: List[str] = Field(default_factory=list)
    message: str


class VulnerabilityTreeResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    package: str
    version: str
    vulnerable_packages: List[PackageVulnerabilityInfo] = Field(
        default_factory=list, alias="vulnerablePackages"
    )
    deprecated_packages: List[DeprecatedPackageInfo] = Field(
        default_factory=list, alias="deprecatedPackages"
    )
    total_packages: int = Field(0, alias="totalPackages")
    failed_queries: int = Field(0, alias="failedQueries")
    total_counts: SeverityCounts = Field(default_factory=SeverityCounts, alias="totalCounts")

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
