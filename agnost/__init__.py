from .client import AgnostClient, create_client
from .auth import AuthManager
from .buckets import BucketManager, FileUploadOptions, StorageManager
from .endpoint import APIBase, EndpointManager
from .errors import (
    AgnostError,
    BufferFullError,
    ClientError,
    ConnectionTimeoutError,
    InvalidAPIKeyError,
    InvalidBaseURLError,
    InvalidOptionsError,
    InvalidValueError,
    ListenerError,
    NotConnectedError,
    ServerError,
    SessionExpiredError,
    SessionRequiredError,
    TransportError,
    UnsupportedFileError,
)
from .fetcher import Fetcher
from .storage import ClientStorage, MemoryStorage
from .types import (
    APIError,
    APIResult,
    ClientOptions,
    ErrorEntry,
    KeyValuePair,
    RealtimeOptions,
    Session,
    User,
)
from .realtime import (
    ConnectionState,
    Envelope,
    EventData,
    ListenerFunction,
    MemberData,
    RealtimeManager,
)

__version__ = "0.1.0"

__all__ = [
    "AgnostClient",
    "create_client",
    "AuthManager",
    "BucketManager",
    "FileUploadOptions",
    "StorageManager",
    "APIBase",
    "EndpointManager",
    "AgnostError",
    "BufferFullError",
    "ClientError",
    "ConnectionTimeoutError",
    "InvalidAPIKeyError",
    "InvalidBaseURLError",
    "InvalidOptionsError",
    "InvalidValueError",
    "ListenerError",
    "NotConnectedError",
    "ServerError",
    "SessionExpiredError",
    "SessionRequiredError",
    "TransportError",
    "UnsupportedFileError",
    "Fetcher",
    "ClientStorage",
    "MemoryStorage",
    "APIError",
    "APIResult",
    "ClientOptions",
    "ErrorEntry",
    "KeyValuePair",
    "RealtimeOptions",
    "Session",
    "User",
    "ConnectionState",
    "Envelope",
    "EventData",
    "ListenerFunction",
    "MemberData",
    "RealtimeManager",
]
