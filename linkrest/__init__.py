from .api import RestClient, RequestFailed, TransportFailed, load_config
from .link import Link, LinkParameter
from .resource import Resource, parse_timestamp
