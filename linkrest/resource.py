from __future__ import annotations
import datetime
import inspect
import re
import types
import typing
from collections.abc import Mapping
from typing import Any, Callable, Literal, NamedTuple, Optional, TypeVar, TYPE_CHECKING
from .link import Link
from .types import JSONObject, JSONValue

if TYPE_CHECKING:
    import requests
    from .api import RestClient

T = TypeVar('T', bound='Resource')
ResourceType = Callable[['RestClient'], T]
FieldKind = Literal['value', 'timestamp']

LINKS_KEY = '_links'

class Field(NamedTuple):
    name: str
    kind: FieldKind

def parse_timestamp(value: JSONValue) -> Any:
    """ Parses an ISO-8601 string, a trailing `Z` is read as UTC.

    Anything that is not a parseable string is returned unchanged.

    Examples:
        >>> parse_timestamp('2024-03-01T12:30:00Z')
        datetime.datetime(2024, 3, 1, 12, 30, tzinfo=datetime.timezone.utc)
    """
    if not isinstance(value, str):
        return value
    text = value
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    try:
        return datetime.datetime.fromisoformat(text)
    except ValueError:
        return value

def _is_timestamp(hint, default) -> bool:
    if isinstance(default, datetime.datetime):
        return True
    if isinstance(hint, str):
        return any(part.strip() in ('datetime', 'datetime.datetime') for part in re.split(r'[\[\]|,]', hint))
    if hint is datetime.datetime:
        return True
    if typing.get_origin(hint) in (typing.Union, types.UnionType):
        return datetime.datetime in typing.get_args(hint)
    return False

def _is_class_var(hint) -> bool:
    if isinstance(hint, str):
        return hint.startswith(('ClassVar', 'typing.ClassVar'))
    return hint is typing.ClassVar or typing.get_origin(hint) is typing.ClassVar


class Resource:
    """ Base class for all resources returned by the api.

    Fields are declared as class annotations and are matched case-insensitively
    against the keys of the JSON body. Annotating a field as `datetime.datetime`
    makes the body value be parsed as an ISO-8601 timestamp.

    Attributes:
        api: The client used to follow the resource's links.
        response: The response the resource was built from, if any.
        links: The links advertised in the `_links` member, by name.
        original_values: Every key of the JSON body, lower-cased, with its raw value.

    Methods:
        populate: Hydrates the resource from a JSON object.
        resource_list: Materializes an array member into child resources.
        execute_link: Follows one of the resource's links.

    Examples:
        >>> class User(Resource):
        ...     id: int = 0
        ...     name: str = ''
        ...     created: Optional[datetime.datetime] = None
        ...
        ...     @property
        ...     def roles(self) -> list[Role]:
        ...         return self.resource_list(Role, 'roles')
        ...
        ...     def update(self, **values) -> User:
        ...         return self.execute_link(User, 'update', values)

        >>> user = api.get(User, '/users/1')
        >>> user.name
        'Ada'
        >>> user.original_value('NAME')
        'Ada'
        >>> user.update(name='Grace').is_ok
        True
    """

    api: RestClient
    response: Optional[requests.Response]
    _links: dict[str, Link]
    _lists: dict[str, list]
    _original_values: dict[str, JSONValue]

    def __init__(self, api: RestClient, body: Optional[JSONObject] = None):
        self.api = api
        self.response = None
        self._links = {}
        self._lists = {}
        self._original_values = {}
        if body is not None:
            self.populate(body)

    @classmethod
    def field_registry(cls) -> dict[str, Field]:
        """ The fields of the class keyed by lower-cased name, built once per class. """
        registry = cls.__dict__.get('_field_registry')
        if registry is not None:
            return registry
        registry = {}
        for klass in reversed(cls.__mro__):
            if klass is Resource or not issubclass(klass, Resource):
                continue
            try:
                annotations = inspect.get_annotations(klass, eval_str=True)
            except (NameError, TypeError, SyntaxError):
                annotations = inspect.get_annotations(klass)
            for name, hint in annotations.items():
                if name.startswith('_'):
                    continue
                if _is_class_var(hint):
                    continue
                if isinstance(getattr(Resource, name, None), property):
                    continue
                kind = 'timestamp' if _is_timestamp(hint, getattr(cls, name, None)) else 'value'
                # first declaration wins on a case-insensitive clash
                registry.setdefault(name.lower(), Field(name, kind))
        cls._field_registry = registry
        return registry

    def populate(self, source: JSONObject) -> None:
        """ Hydrates the resource from a JSON object.

        Every key is recorded in `original_values`. The `_links` member is turned
        into `Link` objects. Any other key is assigned to the field of the same
        name, compared case-insensitively. Keys without a field are kept in
        `original_values` only and fields missing from `source` are left alone.
        """
        if not isinstance(source, Mapping):
            return
        fields = self.field_registry()
        for key, value in source.items():
            key = str(key).lower()
            self._original_values[key] = value

            if key == LINKS_KEY:
                if isinstance(value, Mapping):
                    for link_name, descriptor in value.items():
                        self._links[link_name] = Link.from_descriptor(link_name, descriptor, self)
                continue

            field = fields.get(key)
            if field is None:
                continue
            if field.kind == 'timestamp':
                value = parse_timestamp(value)
            setattr(self, field.name, value)

    def resource_list(self, resource_type: ResourceType[T], property_name: str) -> list[T]:
        """ Materializes an array member of the body into resources.

        The list is built once per property, later calls return the same list
        object. A missing member gives an empty list, elements that are not
        objects are skipped.
        """
        key = property_name.lower()
        if key in self._lists:
            return self._lists[key]

        resources = []
        values: JSONValue = self._original_values.get(key)
        if isinstance(values, list):
            for source in values:
                if not isinstance(source, Mapping):
                    continue
                resource = resource_type(self.api)
                resource.populate(source)
                resources.append(resource)

        self._lists[key] = resources
        return resources

    def find_value(self, name: str) -> tuple[bool, Any]:
        """ Looks up `name` case-insensitively, first in the fields then in the raw body.

        Returns a `(found, value)` pair, a found value may be None.
        """
        key = name.lower()
        field = self.field_registry().get(key)
        if field is not None and hasattr(self, field.name):
            return True, getattr(self, field.name)
        if key in self._original_values:
            return True, self._original_values[key]
        return False, None

    @property
    def links(self) -> Mapping[str, Link]:
        return types.MappingProxyType(self._links)

    @property
    def original_values(self) -> Mapping[str, JSONValue]:
        return types.MappingProxyType(self._original_values)

    def original_value(self, name: str, default: Any = None) -> JSONValue:
        return self._original_values.get(name.lower(), default)

    def get_link(self, link_name: str) -> Optional[Link]:
        return self._links.get(link_name)

    def has_link(self, link_name: str) -> bool:
        return self.get_link(link_name) is not None

    def execute_link(self, resource_type: ResourceType[T], link_name: str, values: Optional[Mapping[str, Any]] = None) -> T:
        """ Follows one of the resource's links.

        Args:
            resource_type: The resource class (or factory) to build the result with.
            link_name: The name of the link in `_links`.
            values: Parameter values, these win over the resource's own fields.

        Returns:
            The hydrated result. If the resource has no such link no request is
            made and an empty resource without a response is returned.
        """
        link = self.get_link(link_name)
        if link is None:
            return resource_type(self.api)
        return self.api.execute_link(resource_type, link, values)

    @property
    def status_code(self) -> int:
        if self.response is None:
            return 0
        return self.response.status_code

    @property
    def is_ok(self) -> bool:
        if self.response is None:
            return False
        return self.response.ok

    def _has_status(self, status_code: int) -> bool:
        return self.status_code == status_code

    @property
    def is_bad_request(self) -> bool:
        return self._has_status(400)

    @property
    def is_unauthorized(self) -> bool:
        return self._has_status(401)

    @property
    def is_forbidden(self) -> bool:
        return self._has_status(403)

    @property
    def is_not_found(self) -> bool:
        return self._has_status(404)

    def __repr__(self):
        return '<{class_name}{status}{links}>'.format(
            class_name=self.__class__.__name__,
            status=f' status={self.status_code}' if self.response is not None else '',
            links=f' links="{",".join(self._links)}"' if self._links else '',
        )
