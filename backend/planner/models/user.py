"""User ORM model."""
import enum
import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Enum as SAEnum

from planner.database import Base
from planner.models.event import utcnow


class UserRole(str, enum.Enum):
    organiser = "organiser"
    admin = "admin"
    attendee = "attendee"


class UserCollection(str, enum.Enum):
    availability = "availability"
    last_opened = "last_opened"


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), nullable=False)
    username = Column(String(100), nullable=False)
    fingerprint = Column(String(255), nullable=False, default="")
    role = Column(SAEnum(UserRole), nullable=False, default=UserRole.attendee)
    profile_pic = Column(Integer, nullable=True)
    is_coming = Column(Boolean, nullable=True)  # None = no answer yet
    availability = Column(JSON, nullable=False, default=dict)  # date -> status
    last_opened = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def first_name(self) -> str:
        return self.username.split(" ")[0] or self.username
