from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .storage import ClientStorage, MemoryStorage

KeyValuePair = dict[str, Any]

T = TypeVar("T")


class Session(BaseModel):
    """Session information of a signed-in user."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    token: str = Field(..., min_length=1)
    creation_dtm: Optional[str] = Field(default=None, alias="creationDtm")
    user_agent: Optional[KeyValuePair] = Field(default=None, alias="userAgent")


class User(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="_id")
    provider: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None
    email_verified: bool = Field(default=False, alias="emailVerified")
    phone_verified: bool = Field(default=False, alias="phoneVerified")


class ErrorEntry(BaseModel):
    origin: str
    code: str
    message: str
    details: Optional[Any] = None


class APIError(BaseModel):
    """Error information returned by every public operation."""

    model_config = ConfigDict(populate_by_name=True)

    status: int
    status_text: str = Field(alias="statusText")
    items: list[ErrorEntry] = Field(default_factory=list)


class APIResult(BaseModel, Generic[T]):
    data: Optional[T] = None
    errors: Optional[APIError] = None

    @property
    def ok(self) -> bool:
        return self.errors is None


BufferOverflowPolicy = Literal["drop_oldest", "reject"]


class RealtimeOptions(BaseModel):
    """Realtime connection settings. Delays and timeouts are in milliseconds."""

    model_config = ConfigDict(extra="forbid")

    auto_join_channels: bool = True
    """Re-join every channel in the membership after each (re)connection."""
    echo_messages: bool = True
    """Deliver messages sent by this connection back to its own listeners."""
    reconnection_delay: float = Field(default=1000, ge=0)
    reconnection_delay_max: float = Field(default=5000, ge=0)
    timeout: float = Field(default=20000, gt=0)
    buffer_messages: bool = True
    """Buffer sends while disconnected instead of rejecting them."""
    require_session: bool = False
    buffer_limit: Optional[int] = Field(default=None, ge=1)
    buffer_overflow: BufferOverflowPolicy = "drop_oldest"


class ClientOptions(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    storage: ClientStorage = Field(default_factory=MemoryStorage)
    realtime: RealtimeOptions = Field(default_factory=RealtimeOptions)
    timeout: float = Field(default=300, gt=0)
    """Total timeout for HTTP requests in seconds."""
