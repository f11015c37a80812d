"""Tests for the [USR-...] naming convention."""

from clixen.services.isolation import (
    filter_owned,
    is_legacy,
    isolate_name,
    owns,
    strip_prefix,
    user_prefix,
)


class TestIsolateName:

    def test_adds_prefix(self):
        assert isolate_name("Daily report", "u1") == "[USR-u1] Daily report"

    def test_idempotent(self):
        once = isolate_name("Daily report", "u1")
        assert isolate_name(once, "u1") == once

    def test_existing_prefix_of_another_user_is_kept(self):
        assert isolate_name("[USR-u2] Theirs", "u1") == "[USR-u2] Theirs"

    def test_strips_whitespace(self):
        assert isolate_name("  spaced  ", "u1") == "[USR-u1] spaced"


class TestOwnership:

    def test_owns(self):
        assert owns("[USR-u1] Flow", "u1")
        assert not owns("[USR-u2] Flow", "u1")
        assert not owns("Flow", "u1")

    def test_prefix_is_exact(self):
        # u1 must not own u10's workflows
        assert not owns("[USR-u10] Flow", "u1")

    def test_filter_owned(self):
        workflows = [
            {"id": "1", "name": "[USR-u1] A"},
            {"id": "2", "name": "[USR-u2] B"},
            {"id": "3", "name": "Legacy"},
            {"id": "4"},
        ]
        assert [w["id"] for w in filter_owned(workflows, "u1")] == ["1"]


class TestDisplayHelpers:

    def test_strip_prefix(self):
        assert strip_prefix("[USR-u1] Daily report") == "Daily report"
        assert strip_prefix("Daily report") == "Daily report"
        assert strip_prefix("") == ""

    def test_user_prefix(self):
        assert user_prefix("u1") == "[USR-u1]"

    def test_is_legacy(self):
        assert is_legacy("Old workflow")
        assert not is_legacy("[USR-u1] New workflow")
        assert is_legacy("")
