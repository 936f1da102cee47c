"""Unit tests for upgradecheck.selector: same-major version selection."""

import random

import pytest

from upgradecheck.errors import InvalidVersion, NoMatchingMajorVersion
from upgradecheck.models import Coordinate, Version, VersionSet
from upgradecheck.selector import same_major_versions, select_latest_same_major

LOG4J = Coordinate("org.apache.logging.log4j", "log4j-core")


def _vs(*versions: str) -> VersionSet:
    return VersionSet.from_iterable(LOG4J, versions)


# ── select_latest_same_major ─────────────────────────────────────────────────


class TestSelectLatestSameMajor:
    def test_picks_highest_on_major_line(self):
        selected = select_latest_same_major(_vs("2.17.0", "2.17.1", "2.20.0", "3.0.0"), "2.17.0")
        assert selected.text == "2.20.0"

    def test_minor_jump(self):
        selected = select_latest_same_major(_vs("1.5.0", "1.6.2", "2.0.0"), "1.5.0")
        assert selected.text == "1.6.2"

    def test_malformed_candidates_ignored(self):
        selected = select_latest_same_major(_vs("2.x", "2.18.0"), "2.0.0")
        assert selected.text == "2.18.0"

    def test_numeric_segment_comparison(self):
        selected = select_latest_same_major(_vs("2.9.9", "2.10.0", "2.1.0"), "2.0.0")
        assert selected.text == "2.10.0"

    def test_reference_may_be_latest(self):
        selected = select_latest_same_major(_vs("2.17.0", "1.9.0", "3.0.0"), "2.17.0")
        assert selected.text == "2.17.0"

    def test_reference_not_published(self):
        selected = select_latest_same_major(_vs("4.1.0", "4.2.0"), "4.0.7")
        assert selected.text == "4.2.0"

    def test_accepts_version_instance(self):
        selected = select_latest_same_major(_vs("2.17.0", "2.20.0"), Version.parse("2.1"))
        assert selected.text == "2.20.0"

    def test_registry_order_irrelevant(self):
        versions = ["2.17.0", "2.17.1", "2.20.0", "2.3.1", "3.0.0", "1.2.17"]
        rng = random.Random(7)
        for _ in range(20):
            rng.shuffle(versions)
            assert select_latest_same_major(_vs(*versions), "2.17.0").text == "2.20.0"

    def test_deterministic(self):
        vs = _vs("2.17.0", "2.17.1", "2.20.0", "3.0.0")
        results = {select_latest_same_major(vs, "2.17.0").text for _ in range(10)}
        assert results == {"2.20.0"}

    def test_never_crosses_major(self):
        vs = _vs("1.0.0", "1.9.9", "2.0.0", "2.5.1", "3.0.0", "3.1.4", "10.0.0")
        for ref in ("1.0.0", "2.0.0", "3.0.0", "10.0.0"):
            ref_major = Version.parse(ref).major
            assert select_latest_same_major(vs, ref).major == ref_major

    def test_no_matching_major(self):
        with pytest.raises(NoMatchingMajorVersion, match="major version 4"):
            select_latest_same_major(_vs("2.17.0", "3.0.0"), "4.0.0")

    def test_only_malformed_on_major(self):
        with pytest.raises(NoMatchingMajorVersion):
            select_latest_same_major(_vs("2.x", "2", "3.0.0"), "2.0.0")

    def test_empty_set(self):
        with pytest.raises(NoMatchingMajorVersion):
            select_latest_same_major(_vs(), "1.0.0")

    def test_invalid_reference(self):
        with pytest.raises(InvalidVersion):
            select_latest_same_major(_vs("2.17.0"), "two")

    def test_prerelease_selected_by_default(self):
        selected = select_latest_same_major(_vs("2.20.0", "2.21.0-rc1"), "2.17.0")
        assert selected.text == "2.21.0-rc1"

    def test_release_beats_its_own_prerelease(self):
        selected = select_latest_same_major(_vs("3.0.0-rc1", "3.0.0", "3.0.0-beta2"), "3.0.0")
        assert selected.text == "3.0.0"

    def test_stable_only(self):
        selected = select_latest_same_major(_vs("2.20.0", "2.21.0-rc1"), "2.17.0", include_prereleases=False)
        assert selected.text == "2.20.0"

    def test_stable_only_with_only_prereleases(self):
        with pytest.raises(NoMatchingMajorVersion):
            select_latest_same_major(_vs("3.0.0-rc1"), "3.0.0", include_prereleases=False)

    def test_netty_style_final_versions(self):
        netty = Coordinate("io.netty", "netty-handler")
        vs = VersionSet.from_iterable(netty, ["4.1.94.Final", "4.1.100.Final", "5.0.0.Alpha2"])
        assert select_latest_same_major(vs, "4.1.94.Final").text == "4.1.100.Final"
        assert select_latest_same_major(vs, "5.0.0.Alpha1").text == "5.0.0.Alpha2"

    def test_final_suffix_is_not_prerelease(self):
        vs = _vs("5.4.2.Final", "5.4.3.Final", "5.5.0.CR1")
        assert select_latest_same_major(vs, "5.4.2.Final", include_prereleases=False).text == "5.4.3.Final"

    def test_ordinal_tie_returns_last_listed(self):
        assert select_latest_same_major(_vs("2.0", "2.0.0"), "2.0").text == "2.0.0"
        assert select_latest_same_major(_vs("2.0.0", "2.0"), "2.0").text == "2.0"


# ── same_major_versions ──────────────────────────────────────────────────────


class TestSameMajorVersions:
    def test_sorted_and_filtered(self):
        vs = _vs("2.20.0", "3.0.0", "2.17.0", "2.x", "2.17.1")
        assert [v.text for v in same_major_versions(vs, 2)] == ["2.17.0", "2.17.1", "2.20.0"]

    def test_none(self):
        assert same_major_versions(_vs("3.0.0"), 2) == []
