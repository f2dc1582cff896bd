"""Backends for the job queue, object storage and template lookup."""

from .factory import Gateways, create_gateways, create_queue
from .rest import RestClient
from .rest_queue import RestJobQueue
from .storage import LocalObjectStore, ObjectStore, RestObjectStore, split_key
from .templates import LocalTemplateSource, RestTemplateSource, TemplateSource

__all__ = [
    "Gateways",
    "create_gateways",
    "create_queue",
    "RestClient",
    "RestJobQueue",
    "ObjectStore",
    "LocalObjectStore",
    "RestObjectStore",
    "split_key",
    "TemplateSource",
    "LocalTemplateSource",
    "RestTemplateSource",
]
