import datetime

import pytest

from ..resource import Field, Resource, parse_timestamp
from .testing import Admin, Role, User, make_response


@pytest.fixture
def api():
    from ..api import RestClient

    return RestClient("https://api.example.com", verbose=False)


def test_case_insensitive_binding(api):
    user = User(api)
    user.populate({"Name": "x", "ID": 3})

    assert user.name == "x"
    assert user.id == 3
    assert user.original_value("name") == "x"
    assert user.original_value("NAME") == "x"


def test_body_argument(api):
    user = User(api, {"name": "Ada"})
    assert user.name == "Ada"


def test_unknown_keys_are_kept(api):
    user = User(api)
    user.populate({"Nickname": "ace", "meta": {"a": [1, 2]}, "nothing": None})

    assert dict(user.original_values) == {
        "nickname": "ace",
        "meta": {"a": [1, 2]},
        "nothing": None,
    }
    assert not hasattr(user, "nickname")
    assert not hasattr(user, "Nickname")


def test_missing_fields_are_untouched(api):
    user = User(api)
    user.email = "ada@example.com"
    user.populate({"name": "Ada"})

    assert user.email == "ada@example.com"
    assert user.id == 0
    assert "email" not in user.original_values


def test_last_write_wins(api):
    user = User(api)
    user.populate({"name": "Ada"})
    user.populate({"NAME": "Grace"})
    assert user.name == "Grace"
    assert user.original_value("name") == "Grace"


@pytest.mark.parametrize(
    "source",
    [
        {},
        {"_links": "nope"},
        {"_links": {"self": None, "other": []}},
        {"id": None, "created": None, "roles": "not a list"},
        {"created": 12345},
        {"created": "yesterday"},
        {"a": [[1], {"b": None}], "": "", "1": 1.5, "t": True},
    ],
)
def test_totality(api, source):
    user = User(api)
    user.populate(source)
    for key, value in source.items():
        assert user.original_value(key) == value
    assert isinstance(user.roles, list)


def test_non_object_source(api):
    user = User(api)
    user.populate(["not", "an", "object"])
    assert dict(user.original_values) == {}


def test_timestamp(api):
    user = User(api)
    user.populate({"created": "2024-03-01T12:30:00Z"})
    assert user.created == datetime.datetime(
        2024, 3, 1, 12, 30, tzinfo=datetime.timezone.utc
    )
    assert user.original_value("created") == "2024-03-01T12:30:00Z"

    user.populate({"created": "2024-03-01T12:30:00.250+02:00"})
    assert user.created == datetime.datetime(
        2024, 3, 1, 10, 30, 0, 250000, tzinfo=datetime.timezone.utc
    )


def test_unparseable_timestamp_is_assigned_as_is(api):
    user = User(api)
    user.populate({"created": "yesterday"})
    assert user.created == "yesterday"
    user.populate({"created": None})
    assert user.created is None


def test_parse_timestamp():
    assert parse_timestamp("2024-03-01") == datetime.datetime(2024, 3, 1)
    assert parse_timestamp(None) is None
    assert parse_timestamp(7) == 7


def test_field_registry():
    assert User.field_registry() == {
        "id": Field("id", "value"),
        "name": Field("name", "value"),
        "email": Field("email", "value"),
        "created": Field("created", "timestamp"),
    }
    assert list(Admin.field_registry()) == ["id", "name", "email", "created", "level"]
    assert User.field_registry() is User.field_registry()
    assert Role.field_registry() == {"name": Field("name", "value")}


def test_field_registry_default_value_kind():
    class Event(Resource):
        at = None
        when: object = datetime.datetime(2000, 1, 1)

    assert Event.field_registry() == {"when": Field("when", "timestamp")}


def test_base_properties_are_not_fields(api):
    class Page(Resource):
        links: list
        is_ok: bool
        title: str = ""

    assert list(Page.field_registry()) == ["title"]

    page = Page(api, {"links": [1, 2], "is_ok": True, "title": "Home"})
    assert page.title == "Home"
    assert dict(page.links) == {}
    assert not page.is_ok
    assert page.original_value("links") == [1, 2]


def test_first_declared_field_wins(api):
    class Clash(Resource):
        value: int = 0
        Value: int = 0

    clash = Clash(api, {"VALUE": 5})
    assert clash.value == 5
    assert clash.Value == 0


def test_links(api):
    user = User(api)
    user.populate(
        {
            "_links": {
                "self": {"href": "/users/1"},
                "update": {
                    "href": "/users/1",
                    "verb": "PATCH",
                    "fields": {"name": {"type": "string"}},
                },
            }
        }
    )

    assert list(user.links) == ["self", "update"]
    assert user.has_link("update")
    assert not user.has_link("Update")
    assert not user.has_link("delete")
    assert user.get_link("update").verb == "PATCH"
    assert user.get_link("update").resource is user
    assert "_links" in user.original_values


def test_links_key_is_case_insensitive(api):
    user = User(api)
    user.populate({"_LINKS": {"self": {"href": "/users/1"}}})
    assert user.has_link("self")
    assert "_links" in user.original_values


def test_links_are_replaced_by_name(api):
    user = User(api)
    user.populate({"_links": {"self": {"href": "/a"}, "other": {"href": "/b"}}})
    user.populate({"_links": {"self": {"href": "/c"}}})
    assert user.get_link("self").href == "/c"
    assert user.get_link("other").href == "/b"


def test_resource_list(api):
    user = User(api)
    user.populate({"Roles": [{"name": "admin"}, "skip me", {"NAME": "editor"}]})

    roles = user.resource_list(Role, "roles")
    assert [role.name for role in roles] == ["admin", "editor"]
    assert all(isinstance(role, Role) for role in roles)
    assert all(role.api is api for role in roles)
    assert all(role.response is None for role in roles)
    assert user.roles is roles
    assert user.resource_list(Role, "ROLES") is roles


def test_resource_list_missing(api):
    user = User(api)
    roles = user.roles
    assert roles == []
    assert user.roles is roles

    user.populate({"roles": [{"name": "admin"}]})
    assert user.roles is roles


def test_resource_list_keeps_child_links(api):
    user = User(api)
    user.populate(
        {"roles": [{"name": "admin", "_links": {"self": {"href": "/roles/1"}}}]}
    )
    (role,) = user.roles
    assert role.get_link("self").resource is role


def test_status_predicates(api):
    user = User(api)
    assert user.status_code == 0
    assert not user.is_ok
    assert not user.is_not_found

    user.response = make_response(404)
    assert user.status_code == 404
    assert user.is_not_found
    assert not user.is_ok
    assert not user.is_bad_request
    assert not user.is_unauthorized
    assert not user.is_forbidden

    for status_code, predicate in [
        (400, "is_bad_request"),
        (401, "is_unauthorized"),
        (403, "is_forbidden"),
    ]:
        user.response = make_response(status_code)
        assert getattr(user, predicate)

    user.response = make_response(201, {})
    assert user.is_ok
    assert user.status_code == 201


def test_execute_link_unknown_name(api, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr(api, "execute", fail)
    user = User(api, {"name": "Ada"})
    result = user.execute_link(Role, "missing")
    assert isinstance(result, Role)
    assert result.api is api
    assert result.status_code == 0
    assert not result.is_ok


def test_repr(api):
    user = User(api)
    assert repr(user) == "<User>"
    user.populate({"_links": {"self": {"href": "/"}, "edit": {"href": "/"}}})
    user.response = make_response(200, {})
    assert repr(user) == '<User status=200 links="self,edit">'
