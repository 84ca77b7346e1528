"""
Database models for the marketplace.

Every entity table keeps an integer surrogate key ``pk`` that records insertion
order, plus the public string ``id`` the API exposes and foreign keys refer to.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timestamp stored in UTC and always loaded timezone-aware.

    SQLite keeps no offset, so naive values read back are UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class UserRecord(Base):
    """Marketplace account: vendor, government reviewer or admin."""

    __tablename__ = "users"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    email_normalized = Column(String, unique=True, index=True, nullable=True)
    password_hash = Column(String, nullable=True)  # null for delegated logins
    first_name = Column(String)
    last_name = Column(String)
    profile_image_url = Column(String)
    role = Column(String, nullable=False, default="vendor")

    # Organization metadata
    organization = Column(String)
    uei = Column(String)  # Unique Entity Identifier
    cage = Column(String)  # CAGE code
    nato_eligible = Column(Boolean, default=False)
    security_clearance = Column(String)
    business_size = Column(String)  # small, large, nontraditional

    # Identity provider link
    auth_provider = Column(String, nullable=False, default="local")
    external_id = Column(String, unique=True, index=True, nullable=True)

    created_at = Column(UTCDateTime(), default=_utcnow)
    updated_at = Column(UTCDateTime(), default=_utcnow, onupdate=_utcnow)


class ChallengeRecord(Base):
    """Competition or call for solutions."""

    __tablename__ = "challenges"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, index=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    type = Column(String, nullable=False)  # xtech, open_call, aos_call
    status = Column(String, nullable=False, default="open", index=True)
    phases = Column(JSON, default=lambda: [])
    prize_pool = Column(Float, nullable=True)
    application_deadline = Column(UTCDateTime(), nullable=True)
    finals_date = Column(UTCDateTime(), nullable=True)
    eligibility_requirements = Column(JSON, nullable=True)
    focus_areas = Column(JSON, default=lambda: [])

    created_at = Column(UTCDateTime(), default=_utcnow)
    updated_at = Column(UTCDateTime(), default=_utcnow, onupdate=_utcnow)


class SolutionRecord(Base):
    """A vendor's technology submission."""

    __tablename__ = "solutions"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, index=True, nullable=False)
    vendor_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    trl = Column(Integer, nullable=True)  # Technology Readiness Level 1-9
    nato_compatible = Column(Boolean, default=False)
    security_cleared = Column(Boolean, default=False)
    capability_areas = Column(JSON, default=lambda: [])
    pitch_video_url = Column(String, nullable=True)
    document_urls = Column(JSON, default=lambda: [])
    procurements = Column(JSON, default=lambda: [])
    status = Column(String, nullable=False, default="submitted", index=True)

    created_at = Column(UTCDateTime(), default=_utcnow)
    updated_at = Column(UTCDateTime(), default=_utcnow, onupdate=_utcnow)


class ReviewRecord(Base):
    """Government evaluation of a solution."""

    __tablename__ = "reviews"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, index=True, nullable=False)
    solution_id = Column(String, ForeignKey("solutions.id"), nullable=False, index=True)
    reviewer_id = Column(String, ForeignKey("users.id"), nullable=False)
    rating = Column(Integer, nullable=False)  # 1-5 stars
    title = Column(String)
    description = Column(Text)
    readiness_score = Column(Integer)  # 1-10
    interoperability_score = Column(Integer)  # 1-10
    support_score = Column(Integer)  # 1-10
    field_tested = Column(Boolean, default=False)
    test_date = Column(UTCDateTime(), nullable=True)
    helpful_votes = Column(Integer, default=0)
    total_votes = Column(Integer, default=0)

    created_at = Column(UTCDateTime(), default=_utcnow)
    updated_at = Column(UTCDateTime(), default=_utcnow, onupdate=_utcnow)


class ApplicationRecord(Base):
    """A vendor's entry into a challenge."""

    __tablename__ = "applications"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, index=True, nullable=False)
    challenge_id = Column(String, ForeignKey("challenges.id"), nullable=False, index=True)
    vendor_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    solution_id = Column(String, ForeignKey("solutions.id"), nullable=True)
    phase = Column(Integer, nullable=False, default=1)
    status = Column(String, nullable=False, default="submitted")
    white_paper_url = Column(String)
    video_url = Column(String)
    submission_data = Column(JSON, nullable=True)
    feedback = Column(Text)

    created_at = Column(UTCDateTime(), default=_utcnow)
    updated_at = Column(UTCDateTime(), default=_utcnow, onupdate=_utcnow)


class ChatMessageRecord(Base):
    """One user question and the assistant's answer."""

    __tablename__ = "chat_messages"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    response = Column(Text)
    context = Column(JSON, nullable=True)

    created_at = Column(UTCDateTime(), default=_utcnow)


class SessionRecord(Base):
    """Server-side login session referenced by the signed cookie."""

    __tablename__ = "sessions"

    sid = Column(String, primary_key=True)
    sess = Column(JSON, nullable=False)
    expire = Column(UTCDateTime(), nullable=False)

    __table_args__ = (Index("IDX_session_expire", "expire"),)
