"""Tests for Drive query construction."""

from common.types import TypeTag
from drive import query as q

SHEET = "mimeType = 'application/vnd.google-apps.spreadsheet'"
FOLDER = "mimeType = 'application/vnd.google-apps.folder'"


def test_quote_escapes_quotes_and_backslashes():
    assert q.quote("it's") == "'it\\'s'"
    assert q.quote("a\\b") == "'a\\\\b'"


def test_empty_tag_set_has_no_type_predicate():
    assert q.type_predicate([]) is None
    assert q.build_query() is None


def test_single_tag():
    assert q.type_predicate([TypeTag.CHUNK]) == SHEET


def test_multiple_tags_are_ored():
    assert q.type_predicate([TypeTag.CHUNK, TypeTag.CONTAINER]) == f"({SHEET} or {FOLDER})"


def test_type_and_extra_predicate_are_anded():
    query = q.build_query([TypeTag.CHUNK, TypeTag.CONTAINER], "trashed = false")

    assert query == f"({SHEET} or {FOLDER}) and trashed = false"


def test_parent_restriction():
    query = q.build_query([TypeTag.CHUNK], q.name_contains("report"), parent_id="folder1")

    assert query == f"{SHEET} and 'folder1' in parents and name contains 'report'"


def test_blank_extra_predicate_is_ignored():
    assert q.build_query([TypeTag.CHUNK], "   ") == SHEET


def test_property_predicate():
    assert q.has_property("index", "0") == "properties has { key='index' and value='0' }"


def test_all_of_skips_empty_parts():
    assert q.all_of(None, "a = 1", "", "b = 2") == "a = 1 and b = 2"
    assert q.all_of(None) is None
