"""Reusable registry fakes and packument factory functions."""

from typing import Dict, Iterable, List, Optional

from depinsight.models.registry import Packument


def make_version(
    name,
    version,
    size=None,
    dependencies=None,
    optional_dependencies=None,
    os=None,
    cpu=None,
    libc=None,
    deprecated=None,
    **kwargs,
):
    """Create a raw version manifest dict as the registry returns it."""
    manifest = {"name": name, "version": version, "dist": {}}
    if size is not None:
        manifest["dist"]["unpackedSize"] = size
    if dependencies:
        manifest["dependencies"] = dependencies
    if optional_dependencies:
        manifest["optionalDependencies"] = optional_dependencies
    if os is not None:
        manifest["os"] = os
    if cpu is not None:
        manifest["cpu"] = cpu
    if libc is not None:
        manifest["libc"] = libc
    if deprecated is not None:
        manifest["deprecated"] = deprecated
    manifest.update(kwargs)
    return manifest


def make_packument(name, versions: Dict[str, dict], latest=None, dist_tags=None) -> Packument:
    """Create a validated Packument; latest defaults to the last version given."""
    tags = dict(dist_tags or {})
    if latest is not None:
        tags["latest"] = latest
    elif versions and "latest" not in tags:
        tags["latest"] = list(versions)[-1]
    return Packument.model_validate({"name": name, "dist-tags": tags, "versions": versions})


class FakeRegistry:
    """
    In-memory package metadata provider.

    Unknown names return None like a registry 404; names listed in `failing`
    raise to simulate a broken transport.
    """

    def __init__(self, packuments: Iterable[Packument] = (), failing: Optional[List[str]] = None):
        self.packuments = {p.name: p for p in packuments}
        self.failing = set(failing or [])
        self.calls: List[str] = []

    async def fetch_packument(self, name: str) -> Optional[Packument]:
        self.calls.append(name)
        if name in self.failing:
            raise ConnectionError(f"registry unavailable for {name}")
        return self.packuments.get(name)

    async def get_latest_version(self, name: str) -> Optional[str]:
        packument = await self.fetch_packument(name)
        return packument.latest_version if packument else None
