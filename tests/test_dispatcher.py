import pytest

from appcore.core.auth.context import AuthContext
from appcore.core.auth.models import Principal
from appcore.core.auth.nonce import NonceManager
from appcore.core.config import Settings
from appcore.core.dispatch.dispatcher import CAN_ACCESS_POINT, OUTPUT_POINT, DispatchContext, RequestDispatcher
from appcore.core.errors import ValidationError
from appcore.core.extensions.registry import ExtensionRegistry
from appcore.core.observability.metrics import snapshot_named
from appcore.entities.platform_staff.datatable import PlatformStaffDataTableModel

ACTION = "staff_list"
PAYLOAD = {"draw": "4", "start": "0", "length": "10"}


class Exploding:
    def get_datatable_data(self, request, auth):
        raise RuntimeError("boom: secret table name")


class NotAHandler:
    pass


@pytest.fixture()
def nonces():
    return NonceManager("dispatch-test-secret")


@pytest.fixture()
def registry():
    return ExtensionRegistry()


@pytest.fixture()
def dispatcher(db, registry, nonces):
    d = RequestDispatcher(registry, nonces, Settings())
    d.register(ACTION, lambda: PlatformStaffDataTableModel(db, registry))
    return d


def _ctx(nonces, auth: AuthContext, **over) -> DispatchContext:
    fields = dict(auth=auth, is_async=True, token=nonces.create("datatable", auth.session_id))
    fields.update(over)
    return DispatchContext(**fields)


def test_success_envelope(dispatcher, nonces, admin_auth):
    out = dispatcher.dispatch(ACTION, PAYLOAD, _ctx(nonces, admin_auth))
    assert out["success"] is True
    assert out["data"]["draw"] == 4
    assert out["data"]["recordsTotal"] == 25
    assert out["data"]["recordsFiltered"] == 20
    assert len(out["data"]["data"]) == 10
    assert snapshot_named().get("dispatch_success") == 1


def test_same_action_three_principals(dispatcher, nonces, admin_auth):
    anonymous = dispatcher.dispatch(ACTION, PAYLOAD, _ctx(nonces, AuthContext.anonymous()))
    assert anonymous == {
        "success": False,
        "data": {"message": "You must be logged in", "code": "authentication"},
    }

    restricted = AuthContext.for_principal(Principal(subject="locked", roles=["restricted"], user_id=9))
    denied = dispatcher.dispatch(ACTION, PAYLOAD, _ctx(nonces, restricted))
    assert denied["success"] is False
    assert denied["data"]["code"] == "authorization"
    assert denied["data"]["message"] == "Permission denied"

    assert dispatcher.dispatch(ACTION, PAYLOAD, _ctx(nonces, admin_auth))["success"] is True


def test_direct_page_load_is_rejected(dispatcher, nonces, admin_auth):
    out = dispatcher.dispatch(ACTION, PAYLOAD, _ctx(nonces, admin_auth, is_async=False))
    assert out["data"] == {"message": "Invalid request", "code": "validation"}


@pytest.mark.parametrize("token", [None, "", "forged"])
def test_bad_security_token(dispatcher, nonces, admin_auth, token):
    out = dispatcher.dispatch(ACTION, PAYLOAD, _ctx(nonces, admin_auth, token=token))
    assert out["data"]["message"] == "Security check failed"


def test_token_is_bound_to_session(dispatcher, nonces, admin_auth):
    other = nonces.create("datatable", "someone-else")
    out = dispatcher.dispatch(ACTION, PAYLOAD, _ctx(nonces, admin_auth, token=other))
    assert out["data"]["message"] == "Security check failed"


def test_token_check_runs_before_authentication(dispatcher, nonces):
    out = dispatcher.dispatch(ACTION, PAYLOAD, _ctx(nonces, AuthContext.anonymous(), token="forged"))
    assert out["data"]["code"] == "validation"


def test_unknown_action(dispatcher, nonces, admin_auth):
    out = dispatcher.dispatch("nope", PAYLOAD, _ctx(nonces, admin_auth))
    assert out["data"] == {"message": "Invalid action", "code": "validation"}


def test_handler_without_contract(dispatcher, nonces, admin_auth):
    dispatcher.register("broken", NotAHandler)
    out = dispatcher.dispatch("broken", PAYLOAD, _ctx(nonces, admin_auth))
    assert out["data"] == {"message": "Invalid handler", "code": "validation"}


def test_handler_exception_is_generic_without_debug(dispatcher, nonces, admin_auth):
    dispatcher.register("explode", Exploding)
    out = dispatcher.dispatch("explode", PAYLOAD, _ctx(nonces, admin_auth))
    assert out == {
        "success": False,
        "data": {"message": "An error occurred while loading data", "code": "execution"},
    }


def test_handler_exception_detail_with_debug(db, registry, nonces, admin_auth):
    d = RequestDispatcher(registry, nonces, Settings(debug=True))
    d.register("explode", Exploding)
    out = d.dispatch("explode", PAYLOAD, _ctx(nonces, admin_auth))
    assert out["success"] is False
    assert "boom" in out["data"]["debug"]


def test_access_extension_can_tighten(dispatcher, registry, nonces, staff_auth):
    assert dispatcher.dispatch(ACTION, PAYLOAD, _ctx(nonces, staff_auth))["success"] is True

    registry.add(CAN_ACCESS_POINT, lambda allowed, action, auth: allowed and auth.can("manage_options"))
    out = dispatcher.dispatch(ACTION, PAYLOAD, _ctx(nonces, staff_auth))
    assert out["data"]["code"] == "authorization"


def test_route_capability(db, registry, nonces, viewer_auth, staff_auth):
    d = RequestDispatcher(registry, nonces, Settings())
    d.register(ACTION, lambda: PlatformStaffDataTableModel(db, registry), capability="view_platform_staff")
    assert d.dispatch(ACTION, PAYLOAD, _ctx(nonces, viewer_auth))["data"]["code"] == "authorization"
    assert d.dispatch(ACTION, PAYLOAD, _ctx(nonces, staff_auth))["success"] is True


def test_route_token_action(db, registry, nonces, admin_auth):
    d = RequestDispatcher(registry, nonces, Settings())
    d.register(ACTION, lambda: PlatformStaffDataTableModel(db, registry), token_action="staff")
    assert d.dispatch(ACTION, PAYLOAD, _ctx(nonces, admin_auth))["data"]["code"] == "validation"
    token = nonces.create("staff", admin_auth.session_id)
    assert d.dispatch(ACTION, PAYLOAD, _ctx(nonces, admin_auth, token=token))["success"] is True


def test_output_extension_appends_fields(dispatcher, registry, nonces, admin_auth):
    registry.add(OUTPUT_POINT, lambda data, action, auth: {**data, "generated_by": action})
    out = dispatcher.dispatch(ACTION, PAYLOAD, _ctx(nonces, admin_auth))
    assert out["data"]["generated_by"] == ACTION
    assert out["data"]["recordsTotal"] == 25


def test_failing_output_extension_becomes_failure_envelope(dispatcher, registry, nonces, admin_auth):
    def bad(data, action, auth):
        raise KeyError("x")

    registry.add(OUTPUT_POINT, bad)
    out = dispatcher.dispatch(ACTION, PAYLOAD, _ctx(nonces, admin_auth))
    assert out["success"] is False
    assert out["data"]["code"] == "execution"


def test_relations_live_one_dispatch(dispatcher, nonces, admin_auth):
    admin_auth.relations.get_or_load("k", lambda: 1)
    dispatcher.dispatch(ACTION, PAYLOAD, _ctx(nonces, admin_auth))
    assert len(admin_auth.relations) == 0


def test_register_rejects_duplicates(dispatcher):
    with pytest.raises(ValueError):
        dispatcher.register(ACTION, NotAHandler)
    with pytest.raises(ValueError):
        dispatcher.register("", NotAHandler)
    assert dispatcher.actions() == [ACTION]


class Greeter:
    def hello(self, request, auth):
        return {"hello": auth.principal.subject, "name": request.get("name")}

    def reject(self, request, auth):
        raise ValidationError("Fix the form", context={"errors": {"name": "Name is required"}})


def test_route_method_and_token_action(dispatcher, nonces, admin_auth):
    dispatcher.register("greet", Greeter, token_action="greeting", method="hello")
    dispatcher.register("greet_bad", Greeter, token_action="greeting", method="reject")
    dispatcher.register("greet_missing", Greeter, token_action="greeting", method="nope")
    token = nonces.create("greeting", admin_auth.session_id)

    out = dispatcher.dispatch("greet", {"name": "x"}, _ctx(nonces, admin_auth, token=token))
    assert out == {"success": True, "data": {"hello": "dev_admin", "name": "x"}}

    out = dispatcher.dispatch("greet_bad", {}, _ctx(nonces, admin_auth, token=token))
    assert out["data"] == {"message": "Fix the form", "code": "validation", "errors": {"name": "Name is required"}}

    out = dispatcher.dispatch("greet_missing", {}, _ctx(nonces, admin_auth, token=token))
    assert out["data"]["message"] == "Invalid handler"

    # a listing token does not open the greeting actions
    out = dispatcher.dispatch("greet", {}, _ctx(nonces, admin_auth))
    assert out["data"]["message"] == "Security check failed"
