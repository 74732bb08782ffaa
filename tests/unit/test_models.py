"""Tests for result, state and cache models."""

from datetime import UTC, datetime

from confluence_search.models.cache import CacheKey
from confluence_search.models.result import Result, ResultSet
from confluence_search.models.state import FilterState, SortColumn, SortOrder, SortState
from tests.unit.fakes import BASE_URL, make_item


def test_result_from_api_reads_all_fields() -> None:
    item = make_item("10", "Deploy guide", ancestors=[("1", "Engineering")])
    r = Result.from_api(item, BASE_URL)
    assert r.id == "10"
    assert r.title == "Deploy guide"
    assert r.url == f"{BASE_URL}/pages/viewpage.action?pageId=10"
    assert r.space is not None and r.space.key == "DEV"
    assert r.space.url == f"{BASE_URL}/display/DEV"
    assert r.creator is not None and r.creator.key == "alice"
    assert r.creator.display_name == "Alice"
    assert r.modified_at == datetime(2024, 5, 1, 10, tzinfo=UTC)
    assert [a.id for a in r.ancestors] == ["1"]


def test_result_from_api_tolerates_missing_optional_fields() -> None:
    r = Result.from_api({"id": 5, "title": "Bare"}, BASE_URL)
    assert r.id == "5"
    assert r.type == "page"
    assert r.url == "#"
    assert r.space is None
    assert r.creator is None
    assert r.modified_at is None
    assert r.ancestors == ()


def test_result_creator_falls_back_to_account_id() -> None:
    item = {"id": "1", "history": {"createdBy": {"accountId": "abc123"}}}
    r = Result.from_api(item, BASE_URL)
    assert r.creator is not None
    assert r.creator.key == "abc123"
    assert r.creator.display_name == "abc123"


def test_type_label_and_icon() -> None:
    r = Result(id="1", title="t", type="blogpost")
    assert r.type_label == "Blog Post"
    assert r.icon == "📝"
    assert Result(id="2", title="t", type="whiteboard").icon == "📄"


def test_result_set_keeps_first_copy_of_duplicate() -> None:
    rs = ResultSet()
    assert rs.add(Result(id="1", title="first", type="page"))
    assert not rs.add(Result(id="1", title="second", type="page"))
    assert len(rs) == 1
    assert rs.get("1") is not None and rs.get("1").title == "first"


def test_result_set_lists_distinct_spaces_and_contributors(sample_results: list[Result]) -> None:
    rs = ResultSet()
    for r in sample_results:
        rs.add(r)
    assert [s.key for s in rs.spaces()] == ["DEV", "NEWS"]
    assert [c.key for c in rs.contributors()] == ["alice", "bob", "carol"]


def test_filter_remote_key_ignores_text() -> None:
    a = FilterState(text="x", space_key="DEV")
    assert a.remote_key() == a.with_changes(text="y").remote_key()
    assert a.remote_key() != a.with_changes(space_key="OPS").remote_key()


def test_sort_toggle_cycles_asc_desc_none() -> None:
    state = SortState()
    state = state.toggled(SortColumn.NAME)
    assert state.order is SortOrder.ASC
    state = state.toggled(SortColumn.NAME)
    assert state.order is SortOrder.DESC
    state = state.toggled(SortColumn.NAME)
    assert state.order is SortOrder.NONE
    assert not state.active


def test_sort_toggle_new_column_starts_ascending() -> None:
    state = SortState(column=SortColumn.NAME, order=SortOrder.DESC)
    assert state.toggled(SortColumn.SPACE) == SortState(SortColumn.SPACE, SortOrder.ASC)


def test_cache_key_includes_origin() -> None:
    assert CacheKey("1", "https://a.example.com") != CacheKey("1", "https://b.example.com")


def test_result_from_api_null_titles_become_empty() -> None:
    item = make_item("10", ancestors=[("1", "Engineering")])
    item["title"] = None
    item["ancestors"][0]["title"] = None
    r = Result.from_api(item, BASE_URL)
    assert r.title == ""
    assert r.ancestors[0].title == ""
