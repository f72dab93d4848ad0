from datetime import date

import pytest

import helpers.testset_helpers as testset_help
from app.errors import ValidationError
from helpers.case_helpers import case_csv_header, case_to_csv


@pytest.fixture
def smoke_set(project, cases, test_areas):
    return testset_help.create_test_set_with_cases(
        {
            "name": "Smoke",
            "project_id": project.id,
            "date": date(2026, 10, 1),
            "priority": 1,
            "test_area_ids": [area.id for area in test_areas],
        },
        [cases[1].id, cases[0].id],
        "smoke,regression",
    )


def test_csv_header():
    assert testset_help.csv_header(";", "\r\n") == (
        "Test Set Id;Name;Date;Priority;Average duration;Tags;Test areas\r\n"
    )
    assert testset_help.csv_header(",", "\n").startswith("Test Set Id,Name,")


def test_to_csv_single_row(smoke_set):
    expected = f"{smoke_set.id};Smoke;2026-10-01;1;180;regression,smoke;Billing, Login\r\n"

    assert testset_help.to_csv(smoke_set, ";", "\r\n") == expected
    assert testset_help.to_csv(smoke_set, ";", "\r\n", {"recurse": 0}) == expected


def test_to_csv_quotes_fields_with_delimiter(smoke_set):
    row = testset_help.to_csv(smoke_set, ",", "\n")
    assert row == f'{smoke_set.id},Smoke,2026-10-01,1,180,"regression,smoke","Billing, Login"\n'


def test_to_csv_recurses_into_cases(smoke_set, cases):
    login, logout, _ = cases

    output = testset_help.to_csv(smoke_set, ";", "\r\n", {"recurse": 1})

    assert output.split("\r\n") == [
        f"{smoke_set.id};Smoke;2026-10-01;1;180;regression,smoke;Billing, Login",
        ";Case Id;Title;Date;Priority;Average duration;Objective;Tags",
        f";{logout.id};Logout works;2026-09-01;1;120;;",
        f";{login.id};Login works;;0;60;;",
        "",
    ]


def test_recurse_options_are_not_mutated(smoke_set):
    opts = {"recurse": 2, "indent": 1}
    output = testset_help.to_csv(smoke_set, ";", "\r\n", opts)

    assert opts == {"recurse": 2, "indent": 1}
    # indent 1 -> 2 пустые колонки перед заголовком кейсов
    assert output.split("\r\n")[1].startswith(";;Case Id")


def test_case_csv_with_indent_and_tags(cases):
    case = cases[2]

    assert case_csv_header(";", "\n") == (
        "Case Id;Title;Date;Priority;Average duration;Objective;Tags\n"
    )
    assert case_to_csv(case, ";", "\n", {"indent": 2}) == (
        f";;{case.id};Password reset;;0;;Reset;\n"
    )


def test_export_test_sets_csv(smoke_set, make_test_set):
    empty = make_test_set(name="Empty", priority=-1)

    output = testset_help.export_test_sets_csv([smoke_set, empty], ";", "\n")

    assert output.split("\n") == [
        "Test Set Id;Name;Date;Priority;Average duration;Tags;Test areas",
        f"{smoke_set.id};Smoke;2026-10-01;1;180;regression,smoke;Billing, Login",
        f"{empty.id};Empty;2026-10-01;-1;0;;",
        "",
    ]


def test_multichar_delimiter_is_rejected(smoke_set):
    with pytest.raises(ValidationError):
        testset_help.to_csv(smoke_set, ";;", "\n")
