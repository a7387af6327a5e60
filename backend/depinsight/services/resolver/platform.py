from dataclasses import dataclass
from typing import List

from depinsight.core.config import settings
from depinsight.models.registry import PackumentVersion


@dataclass(frozen=True)
class TargetPlatform:
    """The single platform dependencies are resolved for."""

    os: str
    cpu: str
    libc: str

    @classmethod
    def from_settings(cls) -> "TargetPlatform":
        return cls(os=settings.TARGET_OS, cpu=settings.TARGET_CPU, libc=settings.TARGET_LIBC)


def _dimension_matches(constraints: List[str], target: str) -> bool:
    # No list means no constraint
    if not constraints:
        return True
    for value in constraints:
        if value.startswith("!"):
            if value[1:] != target:
                return True
        elif value == target:
            return True
    return False


def matches_platform(version: PackumentVersion, target: TargetPlatform) -> bool:
    """
    Whether a version is installable on the target platform.

    Within one of os/cpu/libc any matching entry (or any negated entry that
    does not name the target) is enough; all three dimensions must pass.
    """
    return (
        _dimension_matches(version.os, target.os)
        and _dimension_matches(version.cpu, target.cpu)
        and _dimension_matches(version.libc, target.libc)
    )
