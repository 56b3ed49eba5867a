"""sfcrud: CRUD facade over the Salesforce Partner SOAP API."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sfcrud")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "unknown"

from .api import SalesforceAPI, SFConfig
from .batch import WriteResult
from .exceptions import (
    MalformedResponseError,
    MissingCredentialsError,
    QueryCancelledError,
    QueryStringRequiredError,
    SoapFaultError,
)
from .normalize import normalize
from .query import QueryMode, RecordAccumulator, RecordCounter

__all__ = [
    "SalesforceAPI",
    "SFConfig",
    "WriteResult",
    "QueryMode",
    "RecordAccumulator",
    "RecordCounter",
    "normalize",
    "MalformedResponseError",
    "MissingCredentialsError",
    "QueryCancelledError",
    "QueryStringRequiredError",
    "SoapFaultError",
]
