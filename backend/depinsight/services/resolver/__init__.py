from .graph import DependencyGraphResolver, PackageMetadataProvider, SkipReason, WorkItem
from .platform import TargetPlatform, matches_platform
from .versions import is_registry_specifier, resolve_dist_tag, resolve_version

__all__ = [
    "DependencyGraphResolver",
    "PackageMetadataProvider",
    "SkipReason",
    "TargetPlatform",
    "WorkItem",
    "is_registry_specifier",
    "matches_platform",
    "resolve_dist_tag",
    "resolve_version",
]
