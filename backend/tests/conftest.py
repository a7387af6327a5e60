"""
Shared test fixtures and configuration.

Environment variables are set BEFORE any depinsight imports so the settings
singleton never points at a real Redis or at the public registries.
"""

import os
import sys

# Ensure the backend package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Override settings before any code imports the settings singleton
os.environ["CACHE_ENABLED"] = "false"
os.environ["REDIS_URL"] = "redis://localhost:6399/15"
os.environ["NPM_REGISTRY_URL"] = "https://registry.test"
os.environ["OSV_API_URL"] = "https://osv.test/v1"
os.environ["TARGET_OS"] = "linux"
os.environ["TARGET_CPU"] = "x64"
os.environ["TARGET_LIBC"] = "glibc"

import pytest  # noqa: E402

from tests.mocks.registry import FakeRegistry, make_packument, make_version  # noqa: E402


@pytest.fixture
def end_to_end_registry():
    """
    root@1.0.0 depends on dep-a@^1.0.0 (500 bytes) and optionally on
    dep-b@^2.0.0 (300 bytes, darwin only).
    """
    return FakeRegistry(
        [
            make_packument(
                "root",
                {
                    "1.0.0": make_version(
                        "root",
                        "1.0.0",
                        size=1000,
                        dependencies={"dep-a": "^1.0.0"},
                        optional_dependencies={"dep-b": "^2.0.0"},
                    )
                },
            ),
            make_packument(
                "dep-a",
                {
                    "0.9.0": make_version("dep-a", "0.9.0", size=400),
                    "1.0.0": make_version("dep-a", "1.0.0", size=500),
                },
            ),
            make_packument(
                "dep-b",
                {"2.0.0": make_version("dep-b", "2.0.0", size=300, os=["darwin"])},
            ),
        ]
    )


@pytest.fixture
def sample_packument_json():
    """Trimmed registry response for a real-world shaped document."""
    return {
        "_id": "left-pad",
        "name": "left-pad",
        "dist-tags": {"latest": "1.3.0", "next": "2.0.0-beta.1"},
        "time": {"1.3.0": "2018-04-09T02:43:48.789Z"},
        "versions": {
            "1.3.0": {
                "name": "left-pad",
                "version": "1.3.0",
                "dependencies": {},
                "dist": {
                    "tarball": "https://registry.npmjs.org/left-pad/-/left-pad-1.3.0.tgz",
                    "unpackedSize": 11345,
                },
                "deprecated": "use String.prototype.padStart()",
            },
            "2.0.0-beta.1": {
                "name": "left-pad",
                "version": "2.0.0-beta.1",
                "dist": {"unpackedSize": 9000},
            },
        },
    }
