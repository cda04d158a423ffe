"""Tests for the identifier table."""

import pytest

from packages.codegen.ir import Workspace
from packages.codegen.names import NameDB, NameType


@pytest.fixture
def db():
    return NameDB(["for", "int"])


class TestGetName:
    def test_same_logical_name_same_identifier(self, db):
        assert db.get_name("total", NameType.VARIABLE) == "total"
        assert db.get_name("total", NameType.VARIABLE) == "total"

    def test_names_are_case_insensitive(self, db):
        assert db.get_name("Foo", NameType.VARIABLE) == db.get_name("foo", NameType.VARIABLE)

    def test_reserved_word_gets_suffix(self, db):
        assert db.get_name("for", NameType.VARIABLE) == "for2"

    def test_kinds_never_share_identifiers(self, db):
        variable = db.get_name("go", NameType.VARIABLE)
        procedure = db.get_name("go", NameType.PROCEDURE)
        assert variable == "go"
        assert procedure == "go2"

    def test_variable_ids_resolve_through_workspace(self, db):
        ws = Workspace()
        ws.create_variable("my item", "v1")
        db.set_workspace(ws)
        assert db.get_name("v1", NameType.VARIABLE) == "my_item"

    def test_reset_forgets_names(self, db):
        db.get_name("a", NameType.VARIABLE)
        db.reset()
        assert db.get_distinct_name("a", NameType.VARIABLE) == "a"


class TestSafeName:
    def test_spaces_become_underscores(self):
        assert NameDB.safe_name("my var") == "my_var"

    def test_leading_digit_is_prefixed(self):
        assert NameDB.safe_name("2abc") == "my_2abc"

    def test_empty_name(self):
        assert NameDB.safe_name("") == "unnamed"

    def test_non_ascii_becomes_identifier(self):
        assert NameDB.safe_name("café").isidentifier()


class TestDistinctName:
    def test_each_call_is_fresh(self, db):
        first = db.get_distinct_name("count", NameType.VARIABLE)
        second = db.get_distinct_name("count", NameType.VARIABLE)
        assert (first, second) == ("count", "count2")

    def test_avoids_user_names(self, db):
        db.get_name("count", NameType.VARIABLE)
        assert db.get_distinct_name("count", NameType.VARIABLE) == "count2"

    def test_variable_prefix(self):
        prefixed = NameDB(variable_prefix="$")
        assert prefixed.get_name("x", NameType.VARIABLE) == "$x"
        assert prefixed.get_name("f", NameType.PROCEDURE) == "f"
