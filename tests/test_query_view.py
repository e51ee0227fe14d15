import pytest

from services.inventory.query_view import query_rows, row_matches


@pytest.fixture
def rows():
    return [
        {"id": 1, "hostname": "PC-01", "user": "Ana", "serial": "SN-100"},
        {"id": 2, "hostname": "pc-02", "user": "Luis", "serial": ""},
        {"id": 3, "hostname": "printer", "user": None, "serial": "SN-300"},
        {"id": 4, "hostname": "pc-04", "user": "ana maria", "serial": 4711},
    ]


def test_empty_term_matches_everything(rows):
    view = query_rows(rows, "", page=1, page_size=10)
    assert view.total_matched == 4
    assert view.rows == rows


def test_none_term_matches_everything(rows):
    assert query_rows(rows, None, page=1, page_size=10).total_matched == 4


def test_filter_is_case_insensitive_substring(rows):
    view = query_rows(rows, "pc-0", page=1, page_size=10)
    assert [r["id"] for r in view.rows] == [1, 2, 4]

    view = query_rows(rows, "ANA", page=1, page_size=10)
    assert [r["id"] for r in view.rows] == [1, 4]


def test_filter_matches_stringified_numbers(rows):
    view = query_rows(rows, "471", page=1, page_size=10)
    assert [r["id"] for r in view.rows] == [4]


def test_none_values_are_treated_as_empty():
    assert not row_matches({"user": None}, "none")
    assert row_matches({"user": None}, "")


def test_pagination_is_one_indexed(rows):
    first = query_rows(rows, "", page=1, page_size=3)
    second = query_rows(rows, "", page=2, page_size=3)
    assert [r["id"] for r in first.rows] == [1, 2, 3]
    assert [r["id"] for r in second.rows] == [4]
    assert first.total_pages == second.total_pages == 2


def test_page_past_the_end_is_empty_but_keeps_total(rows):
    view = query_rows(rows, "pc", page=9, page_size=2)
    assert view.rows == []
    assert view.total_matched == 3
    assert view.page == 9


def test_no_match_still_reports_one_page(rows):
    view = query_rows(rows, "zzz", page=1, page_size=20)
    assert view.rows == []
    assert view.total_matched == 0
    assert view.total_pages == 1


def test_repeated_queries_are_identical(rows):
    assert query_rows(rows, "", page=1, page_size=2) == query_rows(rows, "", page=1, page_size=2)


def test_query_does_not_mutate_rows(rows):
    before = [dict(r) for r in rows]
    query_rows(rows, "ana", page=1, page_size=1)
    assert rows == before


@pytest.mark.parametrize("page", [0, -1])
def test_page_below_one_is_an_empty_page(rows, page):
    view = query_rows(rows, "", page=page, page_size=10)
    assert view.rows == []
    assert view.total_matched == len(rows)


@pytest.mark.parametrize("page_size", [0, -5])
def test_non_positive_page_size_raises(rows, page_size):
    with pytest.raises(ValueError):
        query_rows(rows, "", page=1, page_size=page_size)
