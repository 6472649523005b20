import enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base
from .timeutils import utcnow


class UserRole(str, enum.Enum):
    ADMIN = "Admin"
    USER = "User"


class ThemePreference(str, enum.Enum):
    LIGHT = "Light"
    DARK = "Dark"


class ReservationStatus(str, enum.Enum):
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"


class PublicationStatus(str, enum.Enum):
    DRAFT = "Draft"
    PENDING_APPROVAL = "PendingApproval"
    PUBLISHED = "Published"
    REJECTED = "Rejected"


class LinkType(str, enum.Enum):
    ARTICLE = "Article"
    EXTERNAL_URL = "ExternalUrl"


def _enum_column(enum_cls, **kwargs):
    # stored as the plain string value so legacy rows stay readable
    return Column(
        Enum(
            enum_cls,
            native_enum=False,
            length=20,
            values_callable=lambda e: [member.value for member in e],
            validate_strings=True,
        ),
        **kwargs,
    )


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    display_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = _enum_column(UserRole, nullable=False, default=UserRole.USER, index=True)
    theme_preference = _enum_column(ThemePreference, nullable=False, default=ThemePreference.LIGHT)
    sidebar_collapsed = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    last_login_at = Column(DateTime, nullable=True)

    reservations = relationship("Reservation", back_populates="user", foreign_keys="Reservation.user_id")
    authored_articles = relationship(
        "ContentArticle", back_populates="author", foreign_keys="ContentArticle.author_id"
    )
    uploaded_files = relationship("UploadedFile", back_populates="uploader")
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # only the SHA-256 digest of the opaque token is stored
    token_hash = Column(String(64), unique=True, index=True, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    revoked_at = Column(DateTime, nullable=True)
    replaced_by_id = Column(Integer, ForeignKey("refresh_tokens.id"), nullable=True)

    user = relationship("User", back_populates="refresh_tokens")
    replaced_by = relationship("RefreshToken", remote_side=[id], uselist=False)

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None


class MeetingRoom(Base):
    __tablename__ = "meeting_rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, index=True, nullable=False)
    capacity = Column(Integer, nullable=False)
    location = Column(String(200), nullable=True)
    amenities = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    reservations = relationship("Reservation", back_populates="room")


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        Index("ix_reservations_room_time", "meeting_room_id", "start_time", "end_time"),
    )

    id = Column(Integer, primary_key=True, index=True)
    meeting_room_id = Column(Integer, ForeignKey("meeting_rooms.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    purpose = Column(String(500), nullable=True)
    attendee_count = Column(Integer, nullable=True)
    status = _enum_column(
        ReservationStatus, nullable=False, default=ReservationStatus.CONFIRMED, index=True
    )
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    modified_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    room = relationship("MeetingRoom", back_populates="reservations")
    user = relationship("User", back_populates="reservations", foreign_keys=[user_id])

    @property
    def meeting_room_name(self):
        return self.room.name if self.room else None

    @property
    def user_display_name(self):
        return self.user.display_name if self.user else None


class ContentArticle(Base):
    __tablename__ = "content_articles"
    __table_args__ = (
        Index(
            "ix_content_articles_availability",
            "publication_status",
            "available_from",
            "available_until",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    publication_status = _enum_column(
        PublicationStatus, nullable=False, default=PublicationStatus.DRAFT, index=True
    )
    available_from = Column(DateTime, nullable=True)
    available_until = Column(DateTime, nullable=True)  # null = indefinitely
    view_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    published_at = Column(DateTime, nullable=True, index=True)
    published_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    author = relationship("User", back_populates="authored_articles", foreign_keys=[author_id])
    publisher = relationship("User", foreign_keys=[published_by])
    menu_items = relationship("MenuItem", back_populates="article")

    @property
    def author_name(self):
        return self.author.display_name if self.author else None

    @property
    def published_by_name(self):
        return self.publisher.display_name if self.publisher else None


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    parent_id = Column(Integer, ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=True, index=True)
    display_order = Column(Integer, nullable=False, default=0, index=True)
    link_type = _enum_column(LinkType, nullable=False)
    article_id = Column(Integer, ForeignKey("content_articles.id"), nullable=True, index=True)
    external_url = Column(String(500), nullable=True)
    is_visible = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    parent = relationship("MenuItem", remote_side=[id], back_populates="children")
    children = relationship(
        "MenuItem",
        back_populates="parent",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    article = relationship("ContentArticle", back_populates="menu_items")

    @property
    def article_title(self):
        return self.article.title if self.article else None


class UploadedFile(Base):
    __tablename__ = "uploaded_files"

    id = Column(Integer, primary_key=True, index=True)
    file_name = Column(String(255), nullable=False)
    stored_file_name = Column(String(100), unique=True, index=True, nullable=False)
    file_type = Column(String(100), nullable=False, index=True)  # MIME type
    file_extension = Column(String(10), nullable=False)
    file_size_bytes = Column(BigInteger, nullable=False)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    uploaded_at = Column(DateTime, nullable=False, default=utcnow)
    description = Column(String(500), nullable=True)
    category = Column(String(50), nullable=True, index=True)
    download_count = Column(Integer, nullable=False, default=0)

    uploader = relationship("User", back_populates="uploaded_files")

    @property
    def uploader_name(self):
        return self.uploader.display_name if self.uploader else None

    @property
    def file_size_mb(self) -> float:
        return round(self.file_size_bytes / 1024 / 1024, 2)
