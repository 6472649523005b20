from datetime import datetime
from typing import Annotated, Generic, List, Optional, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .models import LinkType, PublicationStatus, ReservationStatus, ThemePreference, UserRole
from .timeutils import to_naive_utc

# Incoming datetimes may carry an offset; the store keeps naive UTC.
UTCDateTime = Annotated[datetime, AfterValidator(to_naive_utc)]

T = TypeVar("T")


# at least one non-whitespace character
NOT_BLANK = r"\S"


class APIModel(BaseModel):
    """camelCase on the wire, snake_case in Python, readable from ORM rows."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ----- Pagination -----
class PaginationMeta(APIModel):
    current_page: int
    page_size: int
    total_items: int
    total_pages: int


class Page(APIModel, Generic[T]):
    data: List[T]
    pagination: PaginationMeta


class MessageResponse(APIModel):
    message: str


# ----- Users -----
class UserOut(APIModel):
    id: int
    username: str
    display_name: str
    email: str
    role: UserRole
    theme_preference: ThemePreference
    sidebar_collapsed: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime
    last_login_at: Optional[datetime] = None


class UserCreate(APIModel):
    username: str = Field(min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_]+$")
    password: str = Field(min_length=8, max_length=100)
    display_name: str = Field(min_length=1, max_length=100, pattern=NOT_BLANK)
    email: EmailStr
    role: UserRole = UserRole.USER


class UserUpdate(APIModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100, pattern=NOT_BLANK)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class PasswordReset(APIModel):
    new_password: str = Field(min_length=8, max_length=100)
    current_password: Optional[str] = None


class PreferencesUpdate(APIModel):
    theme_preference: Optional[ThemePreference] = None
    sidebar_collapsed: Optional[bool] = None


# ----- Auth -----
class LoginRequest(APIModel):
    username: str
    password: str


class TokenResponse(APIModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class LoginResponse(TokenResponse):
    user: UserOut


# ----- Rooms -----
class RoomCreate(APIModel):
    name: str = Field(min_length=1, max_length=100, pattern=NOT_BLANK)
    capacity: int = Field(ge=1)
    location: Optional[str] = Field(default=None, max_length=200)
    amenities: List[str] = Field(default_factory=list)


class RoomUpdate(APIModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100, pattern=NOT_BLANK)
    capacity: Optional[int] = Field(default=None, ge=1)
    location: Optional[str] = Field(default=None, max_length=200)
    amenities: Optional[List[str]] = None
    is_active: Optional[bool] = None


class RoomOut(APIModel):
    id: int
    name: str
    capacity: int
    location: Optional[str] = None
    amenities: List[str] = Field(default_factory=list)
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ----- Reservations -----
class _TimeRange(APIModel):
    """Rejects payloads whose end does not come strictly after the start."""

    @model_validator(mode="after")
    def check_time_range(self):
        start, end = getattr(self, "start_time", None), getattr(self, "end_time", None)
        if start is not None and end is not None and end <= start:
            raise ValueError("endTime must be after startTime")
        return self


class ReservationCreate(_TimeRange):
    meeting_room_id: int
    start_time: UTCDateTime
    end_time: UTCDateTime
    purpose: Optional[str] = Field(default=None, max_length=500)
    attendee_count: Optional[int] = Field(default=None, ge=1)


class ReservationUpdate(_TimeRange):
    meeting_room_id: Optional[int] = None
    start_time: Optional[UTCDateTime] = None
    end_time: Optional[UTCDateTime] = None
    purpose: Optional[str] = Field(default=None, max_length=500)
    attendee_count: Optional[int] = Field(default=None, ge=1)


class ReservationOut(APIModel):
    id: int
    meeting_room_id: int
    meeting_room_name: Optional[str] = None
    user_id: int
    user_display_name: Optional[str] = None
    start_time: datetime
    end_time: datetime
    purpose: Optional[str] = None
    attendee_count: Optional[int] = None
    status: ReservationStatus
    created_at: datetime
    updated_at: datetime
    created_by: Optional[int] = None
    modified_by: Optional[int] = None


class AvailabilityRequest(_TimeRange):
    room_id: int
    start_time: UTCDateTime
    end_time: UTCDateTime
    exclude_reservation_id: Optional[int] = None


class AvailabilityResponse(APIModel):
    available: bool
    conflicts: List[ReservationOut]


class RoomSchedule(APIModel):
    room_id: int
    room_name: str
    reservations: List[ReservationOut]


# ----- Articles -----
class ArticleCreate(APIModel):
    title: str = Field(min_length=1, max_length=255, pattern=NOT_BLANK)
    content: str = Field(min_length=1, pattern=NOT_BLANK)


class ArticleUpdate(APIModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255, pattern=NOT_BLANK)
    content: Optional[str] = Field(default=None, min_length=1, pattern=NOT_BLANK)


class ArticleApprove(APIModel):
    available_from: UTCDateTime
    available_until: Optional[UTCDateTime] = None


class ArticleReject(APIModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class ArticleOut(APIModel):
    id: int
    title: str
    content: str
    author_id: int
    author_name: Optional[str] = None
    publication_status: PublicationStatus
    available_from: Optional[datetime] = None
    available_until: Optional[datetime] = None
    view_count: int
    created_at: datetime
    updated_at: datetime
    published_at: Optional[datetime] = None
    published_by: Optional[int] = None
    published_by_name: Optional[str] = None


class PublishedArticleOut(APIModel):
    id: int
    title: str
    content: str
    author_name: Optional[str] = None
    view_count: int
    published_at: Optional[datetime] = None


# ----- Menus -----
class MenuItemCreate(APIModel):
    name: str = Field(min_length=1, max_length=100, pattern=NOT_BLANK)
    parent_id: Optional[int] = None
    display_order: int = 0
    link_type: LinkType
    article_id: Optional[int] = None
    external_url: Optional[str] = Field(default=None, max_length=500)
    is_visible: bool = True


class MenuItemUpdate(APIModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100, pattern=NOT_BLANK)
    parent_id: Optional[int] = None
    display_order: Optional[int] = None
    link_type: Optional[LinkType] = None
    article_id: Optional[int] = None
    external_url: Optional[str] = Field(default=None, max_length=500)
    is_visible: Optional[bool] = None


class MenuItemOut(APIModel):
    id: int
    name: str
    parent_id: Optional[int] = None
    display_order: int
    link_type: LinkType
    article_id: Optional[int] = None
    article_title: Optional[str] = None
    external_url: Optional[str] = None
    is_visible: bool
    created_at: datetime
    updated_at: datetime


class MenuTreeNode(MenuItemOut):
    children: List["MenuTreeNode"] = Field(default_factory=list)


class MenuTree(APIModel):
    data: List[MenuTreeNode]


class MenuOrderItem(APIModel):
    id: int
    display_order: int


class MenuReorder(APIModel):
    items: List[MenuOrderItem] = Field(min_length=1)


# ----- Files -----
class FileOut(APIModel):
    id: int
    file_name: str
    file_type: str
    file_extension: str
    file_size_bytes: int
    file_size_mb: float
    uploaded_by: int
    uploader_name: Optional[str] = None
    uploaded_at: datetime
    description: Optional[str] = None
    category: Optional[str] = None
    download_count: int


class FileMetadataUpdate(APIModel):
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=50)


class FileCategories(APIModel):
    categories: List[str]
