import pytest

import app.models as models
from app import db
from app.errors import NotFoundError, ValidationError
from helpers.case_helpers import find_case, total_average_duration
from helpers.priority import priority_name, priority_value
from helpers.tagging import is_blank_tag_list, parse_tag_list, tag_with, tags_to_string


@pytest.mark.parametrize(
    "value, name", [(1, "high"), (0, "normal"), (-1, "low"), (7, "7")]
)
def test_priority_name(value, name):
    assert priority_name(value) == name


def test_priority_value_accepts_names_and_numbers():
    assert priority_value("High") == 1
    assert priority_value(" low ") == -1
    assert priority_value("0") == 0
    assert priority_value(3) == 3


@pytest.mark.parametrize("raw", ["urgent", True, None])
def test_priority_value_rejects_garbage(raw):
    with pytest.raises(ValidationError):
        priority_value(raw)


def test_parse_tag_list():
    assert parse_tag_list("a, b,,a , c") == ["a", "b", "c"]
    assert parse_tag_list(["x", " y ", ""]) == ["x", "y"]
    assert parse_tag_list(None) == []


def test_parse_tag_list_rejects_long_names():
    with pytest.raises(ValidationError):
        parse_tag_list("x" * 101)


@pytest.mark.parametrize("tag_list", [None, "", "   ", [], ["", " "]])
def test_blank_tag_lists(tag_list):
    assert is_blank_tag_list(tag_list)


def test_tag_with_replaces_and_clears(make_test_set):
    test_set = make_test_set()

    tag_with(test_set, "b,a")
    db.session.commit()
    assert tags_to_string(test_set) == "a,b"

    tag_with(test_set, "")
    db.session.commit()
    assert tags_to_string(test_set) == ""
    # сами теги не удаляются
    assert models.Tag.query.count() == 2


def test_find_case(cases):
    assert find_case(cases[0].id) is cases[0]
    assert find_case(str(cases[1].id)) is cases[1]
    assert find_case(cases[2]) is cases[2]


@pytest.mark.parametrize("case_ref", [404, "abc", None])
def test_find_case_not_found(cases, case_ref):
    with pytest.raises(NotFoundError):
        find_case(case_ref)


def test_total_average_duration(cases):
    assert total_average_duration([]) == 0
    assert total_average_duration([cases[2].id]) == 0
    assert total_average_duration([case.id for case in cases]) == 180
