from __future__ import annotations
import datetime
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, TypeVar
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit
import requests
from .link import Link
from .resource import Resource, ResourceType
from .types import JSONObject

T = TypeVar('T', bound=Resource)

JSON_MEDIA_TYPE = 'application/json'
VENDOR_MEDIA_TYPE = 'application/slysoft+json'
MERGE_PATCH_MEDIA_TYPE = 'application/merge-patch+json'

QUERY_VERBS = ('GET', 'DELETE')
BODY_VERBS = ('POST', 'PUT', 'PATCH')


class RequestFailed(requests.HTTPError):
    """ The server answered with a non-success status.

    Only raised when the client has `throw_exceptions` set.
    """

    def __init__(self, response: requests.Response):
        super().__init__(f'{response.status_code} {response.reason}', response=response)

    @property
    def status_code(self) -> int:
        return self.response.status_code


class TransportFailed(requests.RequestException):
    """ The exchange could not be completed (DNS, connection, timeout ...). """


def load_config(config_file: str, verbose: bool=True) -> RestClient:
    """ Initialize a client from a config file

    Examples:
        >>> import linkrest
        >>> api = linkrest.load_config("client.json")

    The config file is a json object:

        {
            "BASE_URL": "https://api.example.com",
            "HANDLE_COOKIES": true,
            "THROW_EXCEPTIONS": false
        }

    Args:
        config_file: The filepath of the json config file
        verbose: Whether to print the status code of every request. Defaults to True

    Returns:
        The initialized client
    """
    config = json.load(Path(config_file).open('r'))
    return RestClient(
        config['BASE_URL'],
        handle_cookies=bool(config.get('HANDLE_COOKIES', False)),
        throw_exceptions=bool(config.get('THROW_EXCEPTIONS', True)),
        verbose=verbose,
    )


def to_parameter_value(value: Any) -> Any:
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    return value

def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    raise TypeError(f'Object of type {type(value).__name__} is not JSON serializable')

def to_query_value(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(to_parameter_value(value))

def _find_value(name: str, source: Mapping[str, Any]) -> tuple[bool, Any]:
    key = name.lower()
    for k, v in source.items():
        if str(k).lower() == key:
            return True, v
    return False, None


class RestClient:
    """ Client for a hypermedia api.

    Fetches json resources, hydrates them into `Resource` subclasses and follows
    the links they advertise.

    Attributes:
        base_url: The url every request path is resolved against.
        handle_cookies: Whether to capture `Set-Cookie` and send it back on later
            requests. Only one cookie value is kept, the last one received wins.
        throw_exceptions: Whether a non-success status raises `RequestFailed`.
            When off, an empty resource carrying the response is returned instead.
        verbose: Whether to print the status code of every request. Defaults to True

    Methods:
        get: Fetches a path.
        execute: Issues one request and hydrates the result.
        execute_link: Follows a link.
        resolve_parameters: Computes the parameters sent when following a link.

    Examples:
        >>> api = RestClient('https://api.example.com', throw_exceptions=False)
        >>> home = api.get(Home)
        >>> home.links
        {'users': <Link users GET /users>, 'self': <Link self GET />}
        >>> users = api.execute_link(UserList, home.get_link('users'), {'page': 2})
        >>> missing = api.get(User, '/users/404')
        >>> missing.is_not_found
        True
    """

    base_url: str
    handle_cookies: bool
    throw_exceptions: bool
    verbose: bool
    _cookie: Optional[str]

    def __init__(self, base_url: str, handle_cookies: bool=False, throw_exceptions: bool=True, verbose: bool=True):
        self.base_url = base_url
        self.handle_cookies = handle_cookies
        self.throw_exceptions = throw_exceptions
        self.verbose = verbose
        self._cookie = None

    @property
    def headers(self) -> dict[str, str]:
        headers = {
            'Accept': f'{VENDOR_MEDIA_TYPE}, {JSON_MEDIA_TYPE}',
        }
        if self.handle_cookies and self._cookie:
            headers['Cookie'] = self._cookie
        return headers

    @property
    def cookie(self) -> Optional[str]:
        return self._cookie

    def get(self, resource_type: ResourceType[T], path: str = '') -> T:
        return self.execute(resource_type, 'GET', path)

    def execute_link(self, resource_type: ResourceType[T], link: Link, values: Optional[Mapping[str, Any]] = None) -> T:
        """
        Follows a link: resolves its parameters and requests its href with its verb.

        Args:
            resource_type: The resource class (or factory) to build the result with.
            link: The link to follow.
            values: Parameter values supplied by the caller.

        Returns:
            The hydrated result.
        """
        params = self.resolve_parameters(link, values)
        return self.execute(resource_type, link.verb or 'GET', link.href or '', params)

    def resolve_parameters(self, link: Link, values: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        """
        Computes the parameters to send when following `link`.

        Each declared parameter is looked up case-insensitively in `values`, then
        in the resource that advertised the link. A key that is found with a None
        value stops the lookup and the parameter is left out. When neither has the
        key, the parameter's default value is used as a key into `values`. A
        parameter declared twice is resolved from its first declaration.

        Examples:
            >>> link.parameters
            [LinkParameter(name='id', type=None, default_value='userId', list_of_values=[])]
            >>> api.resolve_parameters(link, {'id': 7, 'userId': 9})
            {'id': 7}
            >>> api.resolve_parameters(link, {'userId': 9})  # resource has no id
            {'id': 9}
        """
        values = values if values is not None else {}
        params = {}
        seen = set()
        for parameter in link.parameters:
            name = parameter.name
            if name.lower() in seen:
                continue
            seen.add(name.lower())

            found, value = _find_value(name, values)
            if not found and link.resource is not None:
                found, value = link.resource.find_value(name)
            if found:
                if value is not None:
                    params[name] = to_parameter_value(value)
                continue

            if parameter.default_value:
                value = values.get(parameter.default_value)
                if value is not None:
                    params[name] = to_parameter_value(value)
        return params

    def url(self, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """ Resolves `path` against the base url and merges `params` into its query. """
        url = urljoin(self.base_url, path) if path else self.base_url
        if not params:
            return url
        scheme, netloc, url_path, query, fragment = urlsplit(url)
        # keys being set replace their existing values, the rest of the query is kept as is
        query_params = [(k, v) for k, v in parse_qsl(query, keep_blank_values=True) if k not in params]
        for k, v in params.items():
            query_params.append((k, to_query_value(v)))
        return urlunsplit((scheme, netloc, url_path, urlencode(query_params), fragment))

    def execute(self, resource_type: ResourceType[T], verb: str, path: str, params: Optional[Mapping[str, Any]] = None) -> T:
        """
        Issues one request and hydrates the response into `resource_type`.

        Args:
            resource_type: The resource class (or factory) to build the result with.
            verb: The HTTP method.
            path: The path, resolved against `base_url`. May carry a query string.
            params: For GET and DELETE sent as query parameters, for POST, PUT and
                PATCH sent as a json body.

        Returns:
            The hydrated resource with the response attached.

        Raises:
            RequestFailed: If the status is not a success and `throw_exceptions` is set.
            TransportFailed: If the request could not be completed.
        """
        verb = verb.upper()
        params = params or {}

        url = self.url(path, params if verb in QUERY_VERBS else None)
        headers = {
            'Content-Type': MERGE_PATCH_MEDIA_TYPE if verb == 'PATCH' else JSON_MEDIA_TYPE,
            **self.headers,
        }
        data = None
        if params and verb in BODY_VERBS:
            data = json.dumps(params, default=_json_default)

        try:
            r = requests.request(
                method=verb,
                url=url,
                headers=headers,
                data=data,
            )
        except requests.RequestException as e:
            raise TransportFailed(str(e), request=e.request, response=e.response) from e

        if self.verbose:
            print(r.status_code, verb, _path_url(url))

        if not r.ok:
            if self.verbose:
                self._print_error(r)
            if self.throw_exceptions:
                raise RequestFailed(r)
            resource = resource_type(self)
            resource.response = r
            return resource

        if self.handle_cookies:
            cookie = r.headers.get('set-cookie')
            if cookie:
                self._cookie = cookie

        resource = resource_type(self)
        resource.populate(self._read_json(r))
        resource.response = r
        return resource

    def _read_json(self, r: requests.Response) -> JSONObject:
        content_type = r.headers.get('content-type', '')
        if JSON_MEDIA_TYPE not in content_type and VENDOR_MEDIA_TYPE not in content_type:
            return {}
        try:
            body = r.json()
        except ValueError:
            # the body claims to be json but is not, hydrate from an empty object
            return {}
        if not isinstance(body, Mapping):
            return {}
        return body

    def _print_error(self, r: requests.Response):
        try:
            error = r.json()
        except ValueError:
            print(r.text)
            return
        if isinstance(error, Mapping):
            if 'title' in error:
                print(error['title'])
            if 'detail' in error:
                print(error['detail'])

    def __repr__(self):
        return '<{class_name} {base_url}>'.format(
            class_name=self.__class__.__name__,
            base_url=self.base_url,
        )


def _path_url(url: str) -> str:
    split = urlsplit(url)
    path = split.path or '/'
    if split.query:
        path += '?' + split.query
    return path
