"""Tests for ordering tables and severity mappings."""

from depinsight.core.constants import (
    DATABASE_SEVERITY_MAP,
    DEPTH_ORDER,
    NON_REGISTRY_PREFIXES,
    SEVERITY_ORDER,
)
from depinsight.models.analysis import DependencyDepth, SeverityLevel


class TestSeverityOrder:
    def test_critical_first_unknown_last(self):
        ranked = sorted(SEVERITY_ORDER, key=SEVERITY_ORDER.get)
        assert ranked == ["critical", "high", "moderate", "low", "unknown"]

    def test_covers_every_severity_level(self):
        assert set(SEVERITY_ORDER) == {level.value for level in SeverityLevel}


class TestDepthOrder:
    def test_root_direct_transitive(self):
        assert DEPTH_ORDER["root"] < DEPTH_ORDER["direct"] < DEPTH_ORDER["transitive"]

    def test_covers_every_depth(self):
        assert set(DEPTH_ORDER) == {depth.value for depth in DependencyDepth}


class TestDatabaseSeverityMap:
    def test_medium_is_moderate(self):
        assert DATABASE_SEVERITY_MAP["medium"] == "moderate"

    def test_targets_are_known_levels(self):
        levels = {level.value for level in SeverityLevel}
        assert set(DATABASE_SEVERITY_MAP.values()) <= levels

    def test_never_maps_to_unknown(self):
        assert "unknown" not in DATABASE_SEVERITY_MAP.values()


def test_non_registry_prefixes():
    assert "git+" in NON_REGISTRY_PREFIXES
    assert "file:" in NON_REGISTRY_PREFIXES
