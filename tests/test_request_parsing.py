from appcore.core.query.request import DEFAULT_LENGTH, DataTableRequest


def test_flat_form_encoding():
    req = DataTableRequest.from_payload(
        {
            "action": "platform_staff_datatable",
            "draw": "3",
            "start": "20",
            "length": "25",
            "search[value]": " budi ",
            "search[regex]": "false",
            "order[0][column]": "2",
            "order[0][dir]": "desc",
            "columns[0][data]": "id",
            "nonce": "abc",
            "filter_department": "IT",
        }
    )
    assert req.action == "platform_staff_datatable"
    assert (req.draw, req.start, req.length) == (3, 20, 25)
    assert req.search_value == "budi"
    assert req.order[0].column == 2
    assert req.order[0].dir == "desc"
    assert req.extra == {"filter_department": "IT"}


def test_nested_json_encoding():
    req = DataTableRequest.from_payload(
        {
            "draw": 1,
            "start": 0,
            "length": 5,
            "search": {"value": "x"},
            "order": [{"column": 1, "dir": "asc"}],
            "status_filter": "all",
        }
    )
    assert req.search_value == "x"
    assert req.order[0].column == 1
    assert req.filter_value("status_filter") == "all"


def test_defaults_for_missing_and_malformed_values():
    req = DataTableRequest.from_payload({"draw": "x", "start": None, "length": "ten", "order[0][column]": "abc"})
    assert (req.draw, req.start, req.length) == (0, 0, DEFAULT_LENGTH)
    assert req.search_value == ""
    assert req.order[0].column is None


def test_empty_payload():
    req = DataTableRequest.from_payload(None)
    assert req.order == []
    assert req.extra == {}


def test_unknown_direction_is_ascending():
    req = DataTableRequest.from_payload({"order[0][column]": "1", "order[0][dir]": "sideways"})
    assert req.order[0].dir == "asc"


def test_negative_values_are_kept():
    req = DataTableRequest.from_payload({"start": "-5", "length": "-1"})
    assert (req.start, req.length) == (-5, -1)


def test_filter_value_treats_empty_as_missing():
    req = DataTableRequest.from_payload({"filter_department": ""})
    assert req.filter_value("filter_department", "any") == "any"


def test_with_extra_returns_new_request():
    req = DataTableRequest.from_payload({"a": 1})
    other = req.with_extra(b=2)
    assert other.extra == {"a": 1, "b": 2}
    assert req.extra == {"a": 1}
