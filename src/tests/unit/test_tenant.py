"""Tests for tenant path parsing and workload naming."""

import pytest

from homeproxy.core.domain.tenant import (
    extract_identity,
    identity_from_workload,
    workload_name,
)


class TestExtractIdentity:
    """extract_identity() tests."""

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/~alice", "alice"),
            ("/~alice/", "alice"),
            ("/~alice/index.html", "alice"),
            ("/~alice/a/b/c.css", "alice"),
            ("/~bob.smith/", "bob.smith"),
        ],
    )
    def test_tenant_paths(self, path: str, expected: str):
        """Identity is the text between ~ and the next slash."""
        assert extract_identity(path) == expected

    @pytest.mark.parametrize(
        "path",
        ["/", "", "/alice", "/~", "/~/", "/~/x", "/foo/~alice", "~alice", "/ping"],
    )
    def test_non_tenant_paths(self, path: str):
        """Paths outside /~<identity>[/...] yield an empty identity."""
        assert extract_identity(path) == ""

    @pytest.mark.parametrize("identity", ["alice", "a", "user_1", "x.y-z"])
    def test_round_trip(self, identity: str):
        """A built tenant path gives back its identity."""
        assert extract_identity(f"/~{identity}") == identity
        assert extract_identity(f"/~{identity}/some/page.html") == identity


class TestWorkloadName:
    """workload_name() / identity_from_workload() tests."""

    def test_prefixed_name(self):
        assert workload_name("hrp-", "alice") == "hrp-alice"

    def test_identity_from_workload(self):
        assert identity_from_workload("hrp-", "hrp-alice") == "alice"

    def test_leading_slash_is_ignored(self):
        """Docker list output prefixes names with a slash."""
        assert identity_from_workload("hrp-", "/hrp-alice") == "alice"

    @pytest.mark.parametrize("name", ["hrp-", "other", "xhrp-alice", ""])
    def test_foreign_names(self, name: str):
        assert identity_from_workload("hrp-", name) is None
