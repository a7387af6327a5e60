"""
Shared Constants

Centralized constants used across the resolver and analyzers.
"""

from typing import Dict

# Sort rank for vulnerability severities (lower value = more severe)
SEVERITY_ORDER: Dict[str, int] = {
    "critical": 0,
    "high": 1,
    "moderate": 2,
    "low": 3,
    "unknown": 4,
}

# Sort rank for dependency depth (root first)
DEPTH_ORDER: Dict[str, int] = {
    "root": 0,
    "direct": 1,
    "transitive": 2,
}

# Database-provided severity strings mapped onto our levels
DATABASE_SEVERITY_MAP: Dict[str, str] = {
    "critical": "critical",
    "high": "high",
    "moderate": "moderate",
    "medium": "moderate",
    "low": "low",
}

# CVSS score thresholds
CVSS_CRITICAL_THRESHOLD: float = 9.0
CVSS_HIGH_THRESHOLD: float = 7.0
CVSS_MODERATE_THRESHOLD: float = 4.0

# OSV
OSV_ECOSYSTEM = "npm"
OSV_NO_SUMMARY = "No description available"

# Advisory links
GITHUB_ADVISORY_URL = "https://github.com/advisories"
NVD_DETAIL_URL = "https://nvd.nist.gov/vuln/detail"
OSV_VULNERABILITY_URL = "https://osv.dev/vulnerability"

# Specifier prefixes that do not point at the registry
NON_REGISTRY_PREFIXES = ("http://", "https://", "git://", "git+", "file:")
NPM_ALIAS_PREFIX = "npm:"
