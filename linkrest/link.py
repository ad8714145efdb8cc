from __future__ import annotations
from collections.abc import Mapping
from typing import Any, Optional, TYPE_CHECKING
from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from .resource import Resource

class LinkParameter(BaseModel):
    """ One parameter a link expects.

    `type` and `list_of_values` are informational only, nothing is validated
    against them. `default_value` names a key of the caller supplied values,
    it is not a literal.

    Examples:
        >>> LinkParameter.model_validate({'type': 'int', 'defaultValue': 'userId'})
        LinkParameter(name='', type='int', default_value='userId', list_of_values=[])
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    name: str = ''
    type: Optional[str] = None
    default_value: Optional[str] = Field(default=None, alias='defaultValue')
    list_of_values: list[Any] = Field(default_factory=list, alias='listOfValues')

    @field_validator('type', 'default_value', mode='before')
    @classmethod
    def coerce_scalar(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator('list_of_values', mode='before')
    @classmethod
    def coerce_list(cls, value):
        if value is None:
            return []
        if not isinstance(value, list):
            return [value]
        return value


class LinkDescriptor(BaseModel):
    """ The wire shape of a single entry in `_links`. """
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    href: Optional[str] = None
    verb: Optional[str] = None
    field_block: dict[str, Any] = Field(default_factory=dict, alias='fields')
    parameter_block: dict[str, Any] = Field(default_factory=dict, alias='parameters')

    @field_validator('href', 'verb', mode='before')
    @classmethod
    def coerce_scalar(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator('field_block', 'parameter_block', mode='before')
    @classmethod
    def coerce_block(cls, value):
        if not isinstance(value, Mapping):
            return {}
        return value


class Link:
    """ A followable action advertised by a resource.

    Attributes:
        name: The key of the link in the `_links` member.
        resource: The resource that advertised the link (not owned by the link).
        href: The target path, may carry a query string.
        verb: The HTTP verb. Defaults to 'GET'.
        parameters: The parameters from `fields` followed by those from `parameters`.

    Examples:
        >>> link = Link.from_descriptor('self', {
        ...     'href': '/users/1',
        ...     'verb': 'PATCH',
        ...     'fields': {'id': {'defaultValue': 'userId'}},
        ... }, resource)
        >>> link
        <Link self PATCH /users/1>
        >>> link.parameters[0].default_value
        'userId'
    """

    name: str
    resource: Optional[Resource]
    href: Optional[str]
    verb: str
    parameters: list[LinkParameter]

    def __init__(self,
                 name: str,
                 href: Optional[str],
                 verb: Optional[str] = None,
                 parameters: Optional[list[LinkParameter]] = None,
                 resource: Optional[Resource] = None,
                ):
        self.name = name
        self.href = href
        self.verb = verb or 'GET'
        self.parameters = parameters if parameters is not None else []
        self.resource = resource

    @classmethod
    def from_descriptor(cls, name: str, descriptor: Any, resource: Optional[Resource] = None) -> Link:
        if not isinstance(descriptor, Mapping):
            descriptor = {}
        d = LinkDescriptor.model_validate(descriptor)
        parameters = []
        # both shapes are accepted and concatenated, duplicates are kept
        for block in (d.field_block, d.parameter_block):
            for parameter_name, parameter in block.items():
                if not isinstance(parameter, Mapping):
                    parameter = {}
                parameters.append(LinkParameter.model_validate({**parameter, 'name': parameter_name}))
        return cls(name, href=d.href, verb=d.verb, parameters=parameters, resource=resource)

    def __repr__(self):
        return '<{class_name} {name} {verb} {href}>'.format(
            class_name=self.__class__.__name__,
            name=self.name,
            verb=self.verb,
            href=self.href,
        )
