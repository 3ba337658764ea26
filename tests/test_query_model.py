import pytest

from appcore.core.auth.capabilities import LIST_PLATFORM_STAFF, MANAGE_OPTIONS, READ, ROLE_CAPABILITIES
from appcore.core.auth.context import AuthContext
from appcore.core.auth.models import Principal
from appcore.core.cache.manager import CacheManager
from appcore.core.cache.store import InMemoryCacheStore
from appcore.core.errors import ExecutionError
from appcore.core.extensions.registry import ExtensionRegistry
from appcore.core.query.fragments import WhereFragment
from appcore.core.query.model import DataTableModel
from appcore.core.query.request import DataTableRequest
from appcore.entities.platform_staff import schema
from appcore.entities.platform_staff.datatable import PlatformStaffDataTableModel


class StaffTable(DataTableModel):
    entity = "staff_plain"
    table = schema.TABLE
    columns = ("id", "employee_id", "full_name", "department", "status")
    searchable_columns = ("employee_id", "full_name", "department")

    def format_row(self, record, auth):
        return dict(record)


class MissingTable(StaffTable):
    entity = "missing"
    table = "no_such_table"


class CountingStore:
    def __init__(self, inner):
        self.inner = inner
        self.selects = 0

    def fetch_all(self, sql, params=()):
        self.selects += 1
        return self.inner.fetch_all(sql, params)

    def fetch_one(self, sql, params=()):
        return self.inner.fetch_one(sql, params)

    def fetch_value(self, sql, params=()):
        return self.inner.fetch_value(sql, params)

    def execute(self, sql, params=()):
        return self.inner.execute(sql, params)


def _request(**fields):
    payload = {"draw": "1", "start": "0", "length": "25"}
    payload.update(fields)
    return DataTableRequest.from_payload(payload)


def test_counts_without_contributions(db, admin_auth):
    out = StaffTable(db, ExtensionRegistry()).get_datatable_data(_request(), admin_auth)
    assert out["recordsTotal"] == 25
    assert out["recordsFiltered"] == 25
    assert len(out["data"]) == 25


def test_draw_is_echoed(db, admin_auth):
    out = StaffTable(db, ExtensionRegistry()).get_data(_request(draw="7"), admin_auth)
    assert out["draw"] == 7


def test_search_narrows_and_every_row_matches(db, admin_auth):
    out = StaffTable(db, ExtensionRegistry()).get_datatable_data(_request(**{"search[value]": "DEWI"}), admin_auth)
    assert out["recordsTotal"] == 25
    assert out["recordsFiltered"] == 2
    assert {r["full_name"] for r in out["data"]} == {"Dewi Kartika", "Kurnia Dewi"}
    for row in out["data"]:
        assert any("dewi" in str(row[c]).lower() for c in ("employee_id", "full_name", "department"))


def test_search_wildcards_match_literally(db, admin_auth):
    model = StaffTable(db, ExtensionRegistry())
    out = model.get_datatable_data(_request(**{"search[value]": "_"}), admin_auth)
    assert [r["full_name"] for r in out["data"]] == ["Rina_Putri"]

    out = model.get_datatable_data(_request(**{"search[value]": "%"}), admin_auth)
    assert out["recordsFiltered"] == 0
    assert out["data"] == []


def test_search_value_is_bound_not_interpolated(db, admin_auth):
    out = StaffTable(db, ExtensionRegistry()).get_datatable_data(
        _request(**{"search[value]": "x' OR '1'='1"}), admin_auth
    )
    assert out["recordsFiltered"] == 0


def test_pagination_bounds(db, admin_auth):
    model = StaffTable(db, ExtensionRegistry())

    out = model.get_datatable_data(_request(start="20", length="10"), admin_auth)
    assert [r["id"] for r in out["data"]] == [21, 22, 23, 24, 25]

    out = model.get_datatable_data(_request(start="10", length="10"), admin_auth)
    assert len(out["data"]) == 10

    out = model.get_datatable_data(_request(start="30", length="10"), admin_auth)
    assert out["data"] == []
    assert out["recordsTotal"] == 25
    assert out["recordsFiltered"] == 25


def test_zero_length_returns_no_rows(db, admin_auth):
    out = StaffTable(db, ExtensionRegistry()).get_datatable_data(_request(length="0"), admin_auth)
    assert out["data"] == []
    assert out["recordsFiltered"] == 25


def test_negative_length_is_passed_through(db, admin_auth):
    # sqlite reads LIMIT -1 as "no limit"
    out = StaffTable(db, ExtensionRegistry()).get_datatable_data(_request(length="-1"), admin_auth)
    assert len(out["data"]) == 25


def test_sort_desc_is_non_increasing(db, admin_auth):
    out = StaffTable(db, ExtensionRegistry()).get_datatable_data(
        _request(**{"order[0][column]": "2", "order[0][dir]": "desc"}), admin_auth
    )
    names = [r["full_name"] for r in out["data"]]
    assert len(names) == 25
    assert all(a >= b for a, b in zip(names, names[1:]))


def test_out_of_range_sort_index_falls_back_to_first_column(db, admin_auth):
    model = StaffTable(db, ExtensionRegistry())
    for column in ("99", "-1", "abc"):
        out = model.get_datatable_data(
            _request(length="5", **{"order[0][column]": column, "order[0][dir]": "desc"}), admin_auth
        )
        assert [r["id"] for r in out["data"]] == [1, 2, 3, 4, 5], column


def _only_it(where, request, model, auth):
    where.append(WhereFragment.eq("department", "IT"))
    return where


def _only_active(where, request, model, auth):
    where.append(WhereFragment.eq("status", "active"))
    return where


def test_independent_where_contributions_combine_with_and(db, admin_auth):
    reg = ExtensionRegistry()
    reg.add("datatable.staff_plain.where", _only_it, priority=5)
    reg.add("datatable.staff_plain.where", _only_active, priority=20)
    model = StaffTable(db, reg)

    out = model.get_datatable_data(_request(), admin_auth)
    assert out["recordsTotal"] == 25
    assert out["recordsFiltered"] == 5
    assert all(r["department"] == "IT" and r["status"] == "active" for r in out["data"])

    reg.remove("datatable.staff_plain.where", _only_active)
    out = model.get_datatable_data(_request(), admin_auth)
    assert out["recordsFiltered"] == 7
    assert all(r["department"] == "IT" for r in out["data"])

    reg.add("datatable.staff_plain.where", _only_active)
    reg.remove("datatable.staff_plain.where", _only_it)
    out = model.get_datatable_data(_request(), admin_auth)
    assert out["recordsFiltered"] == 20
    assert all(r["status"] == "active" for r in out["data"])


def test_failing_contribution_is_skipped(db, admin_auth):
    def broken(where, request, model, auth):
        where.append(WhereFragment("1 = 0"))
        raise RuntimeError("module bug")

    def forgetful(where, request, model, auth):
        return None

    reg = ExtensionRegistry()
    reg.add("datatable.staff_plain.where", broken, priority=1)
    reg.add("datatable.staff_plain.where", forgetful, priority=2)
    reg.add("datatable.staff_plain.where", _only_it, priority=3)

    out = StaffTable(db, reg).get_datatable_data(_request(), admin_auth)
    assert out["recordsFiltered"] == 7


def test_malformed_fragment_is_dropped(db, admin_auth):
    def bad_params(where, request, model, auth):
        return where + [("department = ?", ())]

    reg = ExtensionRegistry()
    reg.add("datatable.staff_plain.where", bad_params)
    out = StaffTable(db, reg).get_datatable_data(_request(), admin_auth)
    assert out["recordsFiltered"] == 25


def test_row_and_response_extension_points(db, admin_auth):
    reg = ExtensionRegistry()
    reg.add("datatable.staff_plain.row_data", lambda row, record, model, auth: {**row, "flag": record["id"] % 2})
    reg.add("datatable.staff_plain.response", lambda page, request, model, auth: {**page, "note": "hi"})

    out = StaffTable(db, reg).get_datatable_data(_request(length="2"), admin_auth)
    assert [r["flag"] for r in out["data"]] == [1, 0]
    assert out["note"] == "hi"


def test_join_contribution(db, admin_auth):
    def with_users(joins, request, model, auth):
        return joins + [f"INNER JOIN {schema.USERS_TABLE} u ON u.id = {schema.TABLE}.user_id AND u.id <= 3"]

    reg = ExtensionRegistry()
    reg.add("datatable.staff_plain.joins", with_users)

    class Joined(StaffTable):
        index_column = f"{schema.TABLE}.id"
        columns = (f"{schema.TABLE}.id AS id", "full_name", "u.user_email AS user_email")

    out = Joined(db, reg).get_datatable_data(_request(), admin_auth)
    assert out["recordsTotal"] == 3
    assert [r["user_email"] for r in out["data"]] == [f"user{i}@example.test" for i in (1, 2, 3)]


def test_store_errors_become_execution_errors(db, admin_auth):
    with pytest.raises(ExecutionError):
        MissingTable(db, ExtensionRegistry()).get_datatable_data(_request(), admin_auth)


def test_model_requires_static_config(db):
    class Incomplete(DataTableModel):
        def format_row(self, record, auth):
            return record

    with pytest.raises(TypeError):
        Incomplete(db, ExtensionRegistry())


def test_listing_pages_are_memoised(db, admin_auth, staff_auth):
    store = CountingStore(db)
    model = StaffTable(store, ExtensionRegistry(), CacheManager(InMemoryCacheStore()))

    first = model.get_datatable_data(_request(length="5"), admin_auth)
    second = model.get_datatable_data(_request(length="5"), admin_auth)
    assert first == second
    assert store.selects == 1

    # different access scope never shares a page
    model.get_datatable_data(_request(length="5"), staff_auth)
    assert store.selects == 2

    model.get_datatable_data(_request(length="5", filter_department="IT"), admin_auth)
    assert store.selects == 3


def test_memoised_page_echoes_current_draw(db, admin_auth):
    model = StaffTable(db, ExtensionRegistry(), CacheManager(InMemoryCacheStore()))
    model.get_datatable_data(_request(draw="1"), admin_auth)
    assert model.get_datatable_data(_request(draw="2"), admin_auth)["draw"] == 2


def test_count_ignores_search_and_paging(db, admin_auth):
    reg = ExtensionRegistry()
    reg.add("datatable.staff_plain.where", _only_it)
    model = StaffTable(db, reg)
    assert model.count(_request(length="1", **{"search[value]": "zzz"}), admin_auth) == 7


def test_admins_with_different_capabilities_do_not_share_pages(db, admin_auth):
    role_map = dict(ROLE_CAPABILITIES)
    role_map["site_manager"] = frozenset({READ, MANAGE_OPTIONS, LIST_PLATFORM_STAFF})
    manager = AuthContext.for_principal(Principal(subject="manager", roles=["site_manager"], user_id=9), role_map=role_map)
    assert manager.access_scope != admin_auth.access_scope

    store = CountingStore(db)
    model = PlatformStaffDataTableModel(store, ExtensionRegistry(), CacheManager(InMemoryCacheStore()))
    model.get_datatable_data(_request(length="3"), admin_auth)
    out = model.get_datatable_data(_request(length="3"), manager)

    assert store.selects == 2
    for row in out["data"]:
        assert [a["name"] for a in row["actions"]] == ["view"]


def test_extra_capabilities_change_the_scope(admin_auth):
    before = admin_auth.access_scope
    admin_auth.extra_capabilities = frozenset({"export_staff"})
    assert admin_auth.access_scope != before


def test_cached_page_is_isolated_from_caller_edits(db, admin_auth):
    reg = ExtensionRegistry()
    model = StaffTable(db, reg, CacheManager(InMemoryCacheStore()))

    first = model.get_datatable_data(_request(length="2"), admin_auth)
    first["data"][0]["full_name"] = "edited"
    first["data"].append({"id": 99})

    second = model.get_datatable_data(_request(length="2"), admin_auth)
    assert second["data"][0]["full_name"] != "edited"
    assert len(second["data"]) == 2


def test_response_hook_edits_do_not_leak_into_cache(db, admin_auth):
    calls = []

    def annotate(page, request, model, auth):
        calls.append(1)
        for row in page["data"]:
            row["seen"] = row.get("seen", 0) + 1
        return page

    reg = ExtensionRegistry()
    reg.add("datatable.staff_plain.response", annotate)
    model = StaffTable(db, reg, CacheManager(InMemoryCacheStore()))

    model.get_datatable_data(_request(length="2"), admin_auth)
    again = model.get_datatable_data(_request(length="2"), admin_auth)
    assert len(calls) == 2
    assert all(row["seen"] == 1 for row in again["data"])
