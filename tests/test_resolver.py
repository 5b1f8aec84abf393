"""Tests for upgrade selection and the dependency closure walk."""

import pytest

from common.http_client import RegistryRequestError
from mirror.models import PackageIdentity
from mirror.resolver import ClosureResolver, ResolutionContext, select_latest
from versioning.frameworks import allowed_frameworks
from versioning.nuget_version import NuGetVersion


def _versions(*raw):
    return [NuGetVersion.parse(v) for v in raw]


class TestSelectLatest:
    """Test the eligible-version rule."""

    def test_stable_only(self):
        """Test that prereleases are ignored by default."""
        assert select_latest(_versions("1.0.0", "2.0.0-beta", "1.5.0"), False) == NuGetVersion.parse("1.5.0")

    def test_prerelease_allowed(self):
        """Test that a newer prerelease wins when allowed."""
        assert select_latest(_versions("1.0.0", "2.0.0-beta", "1.5.0"), True) == NuGetVersion.parse("2.0.0-beta")

    def test_release_beats_its_prerelease(self):
        """Test 2.0.0 over 2.0.0-rc.1."""
        assert select_latest(_versions("2.0.0-rc.1", "2.0.0"), True) == NuGetVersion.parse("2.0.0")

    def test_only_prereleases(self):
        """Test a package that never shipped stable."""
        assert select_latest(_versions("0.1.0-alpha"), False) is None
        assert select_latest(_versions("0.1.0-alpha"), True) == NuGetVersion.parse("0.1.0-alpha")

    def test_empty(self):
        """Test no versions."""
        assert select_latest([], True) is None


class TestLatestEligible:
    """Test upgrade detection for one installed package."""

    def test_upgrade_found(self, fake_registry):
        """Test a newer stable version."""
        registry = fake_registry({"A": {"1.0.0": [], "2.0.0": []}})
        result = ClosureResolver(registry).latest_eligible(PackageIdentity("A", "1.0.0"), False)
        assert result == PackageIdentity("A", "2.0.0")

    def test_up_to_date(self, fake_registry):
        """Test that the installed latest yields nothing."""
        registry = fake_registry({"A": {"1.0.0": [], "2.0.0": []}})
        assert ClosureResolver(registry).latest_eligible(PackageIdentity("A", "2.0.0"), False) is None

    def test_never_downgrades(self, fake_registry):
        """Test an installed prerelease newer than the latest stable."""
        registry = fake_registry({"A": {"1.0.0": [], "2.0.0-beta": []}})
        resolver = ClosureResolver(registry)
        assert resolver.latest_eligible(PackageIdentity("A", "2.0.0-beta"), False) is None
        assert resolver.latest_eligible(PackageIdentity("A", "2.0.0-beta"), True) is None

    def test_unknown_package(self, fake_registry):
        """Test a package missing from the registry."""
        assert ClosureResolver(fake_registry()).latest_eligible(PackageIdentity("Gone", "1.0.0"), True) is None

    def test_prerelease_flag(self, fake_registry):
        """Test that include_prerelease selects a newer prerelease."""
        registry = fake_registry({"A": {"1.0.0": [], "1.1.0-preview.1": []}})
        resolver = ClosureResolver(registry)
        assert resolver.latest_eligible(PackageIdentity("A", "1.0.0"), False) is None
        assert resolver.latest_eligible(PackageIdentity("A", "1.0.0"), True) == PackageIdentity("A", "1.1.0-preview.1")


class TestFindUpgrades:
    """Test upgrade detection across the inventory."""

    def test_collects_upgrades(self, fake_registry):
        """Test multiple installed packages."""
        registry = fake_registry({"A": {"1.0.0": [], "2.0.0": []}, "B": {"1.0.0": []}})
        installed = [PackageIdentity("A", "1.0.0"), PackageIdentity("B", "1.0.0")]
        assert ClosureResolver(registry, workers=4).find_upgrades(installed, False) == [PackageIdentity("A", "2.0.0")]

    def test_failure_recorded_and_others_continue(self, fake_registry):
        """Test fault isolation during the upgrade check."""
        registry = fake_registry(
            {"A": {"1.0.0": [], "2.0.0": []}, "B": {"1.0.0": [], "3.0.0": []}},
            failing=[("versions", "A")],
        )
        context = ResolutionContext()
        installed = [PackageIdentity("A", "1.0.0"), PackageIdentity("B", "1.0.0")]

        upgrades = ClosureResolver(registry).find_upgrades(installed, False, context)

        assert upgrades == [PackageIdentity("B", "3.0.0")]
        assert [(f.package.id, f.stage) for f in context.faults] == [("A", "upgrade")]

    def test_fail_fast_raises(self, fake_registry):
        """Test that fail_fast aborts on the first error."""
        registry = fake_registry({"A": {"1.0.0": []}}, failing=[("versions", "A")])
        with pytest.raises(RegistryRequestError):
            ClosureResolver(registry, fail_fast=True).find_upgrades([PackageIdentity("A", "1.0.0")], False)


class TestResolve:
    """Test the transitive closure walk."""

    def test_transitive_closure(self, fake_registry):
        """Test X@1.0 -> Y [1.0, 2.0) -> Y@2.0 -> Z 1.0."""
        registry = fake_registry({
            "X": {"1.0.0": [("netstandard2.0", [("Y", "[1.0, 2.0)")])]},
            "Y": {"2.0.0": [("agnostic", [("Z", "1.0")])]},
            "Z": {"1.0.0": []},
        })
        download_set = ClosureResolver(registry).resolve([PackageIdentity("X", "1.0.0")])
        assert set(download_set) == {
            PackageIdentity("X", "1.0.0"),
            PackageIdentity("Y", "2.0.0"),
            PackageIdentity("Z", "1.0.0"),
        }

    def test_cycle_terminates_and_visits_once(self, fake_registry):
        """Test A -> B -> A."""
        registry = fake_registry({
            "A": {"1.0.0": [("agnostic", [("B", "1.0")])]},
            "B": {"1.0.0": [("agnostic", [("A", "1.0")])]},
        })
        download_set = ClosureResolver(registry).resolve([PackageIdentity("A", "1.0.0")])
        assert len(download_set) == 2
        assert sorted(registry.dependency_calls) == [
            ("a", NuGetVersion.parse("1.0.0")),
            ("b", NuGetVersion.parse("1.0.0")),
        ]

    def test_diamond_expanded_once(self, fake_registry):
        """Test that a shared dependency is expanded a single time."""
        registry = fake_registry({
            "Top": {"1.0.0": [("agnostic", [("Left", "1.0"), ("Right", "1.0")])]},
            "Left": {"1.0.0": [("agnostic", [("Shared", "[1.0]")])]},
            "Right": {"1.0.0": [("agnostic", [("shared", "1.0.0")])]},
            "Shared": {"1.0.0": []},
        })
        download_set = ClosureResolver(registry, workers=4).resolve([PackageIdentity("Top", "1.0.0")])
        assert len(download_set) == 4
        shared_calls = [call for call in registry.dependency_calls if call[0] == "shared"]
        assert len(shared_calls) == 1

    def test_framework_filter(self, fake_registry):
        """Test that only allowed dependency groups are followed."""
        registry = fake_registry({
            "Lib": {"1.0.0": [
                (".NETFramework4.6.1", [("Legacy.Only", "1.0")]),
                ("netstandard2.0", [("Portable", "1.0")]),
                ("net6.0", [("Modern.Only", "1.0")]),
            ]},
        })
        download_set = ClosureResolver(registry).resolve([PackageIdentity("Lib", "1.0.0")])
        assert {p.id for p in download_set} == {"Lib", "Portable"}

    def test_ungrouped_dependencies_not_followed(self, fake_registry):
        """Test that a group without targetFramework contributes nothing."""
        registry = fake_registry({
            "Lib": {"1.0.0": [(None, [("Ungrouped", "1.0")]), ("netstandard2.0", [("Portable", "1.0")])]},
        })
        download_set = ClosureResolver(registry).resolve([PackageIdentity("Lib", "1.0.0")])
        assert {p.id for p in download_set} == {"Lib", "Portable"}

    def test_custom_framework_list(self, fake_registry):
        """Test an overridden allow-list."""
        registry = fake_registry({
            "Lib": {"1.0.0": [("netstandard2.0", [("Portable", "1.0")]), ("net6.0", [("Modern", "1.0")])]},
        })
        resolver = ClosureResolver(registry, frameworks=allowed_frameworks(["net6.0"]))
        assert {p.id for p in resolver.resolve([PackageIdentity("Lib", "1.0.0")])} == {"Lib", "Modern"}

    def test_unbounded_dependency_skipped(self, fake_registry):
        """Test a dependency without any version."""
        registry = fake_registry({"A": {"1.0.0": [("agnostic", [("Loose", ""), ("Pinned", "[2.0]")])]}})
        download_set = ClosureResolver(registry).resolve([PackageIdentity("A", "1.0.0")])
        assert {p.id for p in download_set} == {"A", "Pinned"}

    def test_missing_metadata_is_leaf(self, fake_registry):
        """Test a package whose dependency metadata is unavailable."""
        registry = fake_registry({"A": {"1.0.0": None}})
        download_set = ClosureResolver(registry).resolve([PackageIdentity("A", "1.0.0")])
        assert list(download_set) == [PackageIdentity("A", "1.0.0")]

    def test_failure_isolated_to_subtree(self, fake_registry):
        """Test that one failing package does not stop its siblings."""
        registry = fake_registry(
            {
                "Root": {"1.0.0": [("agnostic", [("Bad", "1.0"), ("Good", "1.0")])]},
                "Good": {"1.0.0": [("agnostic", [("Leaf", "1.0")])]},
            },
            failing=[("dependencies", "Bad")],
        )
        context = ResolutionContext()
        ClosureResolver(registry, workers=2).resolve([PackageIdentity("Root", "1.0.0")], context)

        assert {p.id for p in context.download_set} == {"Root", "Bad", "Good", "Leaf"}
        assert [(f.package.id, f.stage) for f in context.faults] == [("Bad", "dependencies")]

    def test_fail_fast_aborts(self, fake_registry):
        """Test that fail_fast re-raises registry errors."""
        registry = fake_registry({"Root": {"1.0.0": [("agnostic", [("Bad", "1.0")])]}}, failing=[("dependencies", "Bad")])
        with pytest.raises(RegistryRequestError):
            ClosureResolver(registry, fail_fast=True).resolve([PackageIdentity("Root", "1.0.0")])

    def test_shared_context_across_roots(self, fake_registry):
        """Test that a second resolve skips nodes already claimed."""
        registry = fake_registry({
            "A": {"1.0.0": [("agnostic", [("C", "1.0")])]},
            "B": {"1.0.0": [("agnostic", [("C", "1.0")])]},
            "C": {"1.0.0": []},
        })
        resolver = ClosureResolver(registry)
        context = ResolutionContext()
        resolver.resolve([PackageIdentity("A", "1.0.0")], context)
        resolver.resolve([PackageIdentity("B", "1.0.0")], context)

        assert len(context.download_set) == 3
        assert len(registry.dependency_calls) == 3
