"""
Relational storage backend on SQLAlchemy.

Each call opens its own session and commits before returning; no operation
spans more than one record, so there are no wider transactions.
"""
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Iterator

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from marketplace.core.errors import RecordNotFoundError
from marketplace.models.database import (
    ApplicationRecord,
    ChallengeRecord,
    ChatMessageRecord,
    ReviewRecord,
    SolutionRecord,
    UserRecord,
)
from marketplace.schemas.marketplace import (
    Application,
    ApplicationCreate,
    ApplicationFilters,
    ApplicationUpdate,
    Challenge,
    ChallengeCreate,
    ChallengeFilters,
    ChallengeUpdate,
    ChatMessage,
    ChatMessageCreate,
    ProfileUpdate,
    Review,
    ReviewCreate,
    Solution,
    SolutionCreate,
    SolutionFilters,
    SolutionUpdate,
    User,
    UserCreate,
    new_id,
    utcnow,
)

from .base import MarketplaceStorage, matches_search

logger = logging.getLogger(__name__)

# Columns stored as JSON; their values are dumped in JSON mode
JSON_FIELDS = {
    "phases",
    "eligibility_requirements",
    "focus_areas",
    "capability_areas",
    "document_urls",
    "procurements",
    "submission_data",
    "context",
}


def _column_values(model, partial: bool = False) -> dict:
    """Column values for an insert, or only the non-null set fields for an update."""
    values = model.model_dump(exclude_unset=partial, exclude_none=partial)
    json_fields = JSON_FIELDS & values.keys()
    if json_fields:
        values.update(model.model_dump(mode="json", include=json_fields))
    return {key: value.value if isinstance(value, Enum) else value for key, value in values.items()}


class DatabaseStorage(MarketplaceStorage):
    """Storage over the tables in marketplace.models.database."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _insert(self, record_cls, schema_cls, values: dict):
        now = utcnow()
        values.setdefault("created_at", now)
        if hasattr(record_cls, "updated_at"):
            values.setdefault("updated_at", now)
        with self._session() as db:
            row = record_cls(**values)
            db.add(row)
            db.flush()
            db.refresh(row)
            return schema_cls.model_validate(row)

    def _get(self, record_cls, schema_cls, record_id: str):
        with self._session() as db:
            row = db.execute(select(record_cls).where(record_cls.id == record_id)).scalar_one_or_none()
            return schema_cls.model_validate(row) if row is not None else None

    def _list(self, record_cls, schema_cls, *conditions):
        with self._session() as db:
            stmt = select(record_cls).where(*conditions).order_by(record_cls.pk)
            return [schema_cls.model_validate(row) for row in db.execute(stmt).scalars()]

    def _update(self, record_cls, schema_cls, entity: str, record_id: str, updates) -> object:
        changes = _column_values(updates, partial=True)
        with self._session() as db:
            row = db.execute(select(record_cls).where(record_cls.id == record_id)).scalar_one_or_none()
            if row is None:
                raise RecordNotFoundError(entity, record_id)
            for key, value in changes.items():
                setattr(row, key, value)
            row.updated_at = utcnow()
            db.flush()
            db.refresh(row)
            return schema_cls.model_validate(row)

    # Users

    def get_user(self, user_id: str) -> User | None:
        return self._get(UserRecord, User, user_id)

    def get_user_by_email(self, email: str) -> User | None:
        with self._session() as db:
            row = db.execute(
                select(UserRecord).where(UserRecord.email_normalized == email.strip().lower())
            ).scalar_one_or_none()
            return User.model_validate(row) if row is not None else None

    def get_user_by_external_id(self, external_id: str) -> User | None:
        with self._session() as db:
            row = db.execute(
                select(UserRecord).where(UserRecord.external_id == external_id)
            ).scalar_one_or_none()
            return User.model_validate(row) if row is not None else None

    def create_user(self, data: UserCreate, user_id: str | None = None) -> User:
        values = _column_values(data)
        values["id"] = user_id or new_id()
        values["email_normalized"] = data.email.lower() if data.email else None
        return self._insert(UserRecord, User, values)

    def upsert_user(self, data: UserCreate) -> User:
        if not data.external_id:
            return self.create_user(data)
        with self._session() as db:
            row = db.execute(
                select(UserRecord).where(UserRecord.external_id == data.external_id)
            ).scalar_one_or_none()
            if row is not None:
                row.email = data.email
                row.email_normalized = data.email.lower() if data.email else None
                row.first_name = data.first_name
                row.last_name = data.last_name
                row.profile_image_url = data.profile_image_url
                row.updated_at = utcnow()
                db.flush()
                db.refresh(row)
                return User.model_validate(row)
        return self.create_user(data)

    def update_user(self, user_id: str, updates: ProfileUpdate) -> User:
        return self._update(UserRecord, User, "User", user_id, updates)

    # Challenges

    def create_challenge(self, data: ChallengeCreate, challenge_id: str | None = None) -> Challenge:
        values = _column_values(data)
        values["id"] = challenge_id or new_id()
        return self._insert(ChallengeRecord, Challenge, values)

    def get_challenge(self, challenge_id: str) -> Challenge | None:
        return self._get(ChallengeRecord, Challenge, challenge_id)

    def list_challenges(self, filters: ChallengeFilters | None = None) -> list[Challenge]:
        filters = filters or ChallengeFilters()
        conditions = []
        if filters.status is not None:
            conditions.append(ChallengeRecord.status == filters.status.value)
        if filters.type is not None:
            conditions.append(ChallengeRecord.type == filters.type.value)
        return self._list(ChallengeRecord, Challenge, *conditions)

    def update_challenge(self, challenge_id: str, updates: ChallengeUpdate) -> Challenge:
        return self._update(ChallengeRecord, Challenge, "Challenge", challenge_id, updates)

    # Solutions

    def create_solution(self, data: SolutionCreate, solution_id: str | None = None) -> Solution:
        values = _column_values(data)
        values["id"] = solution_id or new_id()
        return self._insert(SolutionRecord, Solution, values)

    def get_solution(self, solution_id: str) -> Solution | None:
        return self._get(SolutionRecord, Solution, solution_id)

    def list_solutions(self, filters: SolutionFilters | None = None) -> list[Solution]:
        filters = filters or SolutionFilters()
        conditions = []
        if filters.vendor_id is not None:
            conditions.append(SolutionRecord.vendor_id == filters.vendor_id)
        if filters.status is not None:
            conditions.append(SolutionRecord.status == filters.status.value)
        if filters.trl is not None:
            conditions.append(SolutionRecord.trl == filters.trl)
        if filters.nato_compatible is not None:
            conditions.append(SolutionRecord.nato_compatible == filters.nato_compatible)
        if filters.security_cleared is not None:
            conditions.append(SolutionRecord.security_cleared == filters.security_cleared)
        solutions = self._list(SolutionRecord, Solution, *conditions)
        if filters.capability_area is not None:
            # JSON array membership is not portable across SQLite and Postgres
            solutions = [s for s in solutions if filters.capability_area in s.capability_areas]
        return solutions

    def update_solution(self, solution_id: str, updates: SolutionUpdate) -> Solution:
        return self._update(SolutionRecord, Solution, "Solution", solution_id, updates)

    def search_solutions(self, query: str) -> list[Solution]:
        # Capability areas are a JSON array, so matching happens after loading
        return [s for s in self.list_solutions() if matches_search(s, query)]

    # Reviews

    def create_review(self, data: ReviewCreate, review_id: str | None = None) -> Review:
        values = _column_values(data)
        values["id"] = review_id or new_id()
        return self._insert(ReviewRecord, Review, values)

    def get_review(self, review_id: str) -> Review | None:
        return self._get(ReviewRecord, Review, review_id)

    def list_reviews_by_solution(self, solution_id: str) -> list[Review]:
        return self._list(ReviewRecord, Review, ReviewRecord.solution_id == solution_id)

    # Applications

    def create_application(
        self, data: ApplicationCreate, application_id: str | None = None
    ) -> Application:
        values = _column_values(data)
        values["id"] = application_id or new_id()
        return self._insert(ApplicationRecord, Application, values)

    def get_application(self, application_id: str) -> Application | None:
        return self._get(ApplicationRecord, Application, application_id)

    def list_applications(self, filters: ApplicationFilters | None = None) -> list[Application]:
        filters = filters or ApplicationFilters()
        conditions = []
        if filters.challenge_id is not None:
            conditions.append(ApplicationRecord.challenge_id == filters.challenge_id)
        if filters.vendor_id is not None:
            conditions.append(ApplicationRecord.vendor_id == filters.vendor_id)
        if filters.status is not None:
            conditions.append(ApplicationRecord.status == filters.status.value)
        return self._list(ApplicationRecord, Application, *conditions)

    def update_application(self, application_id: str, updates: ApplicationUpdate) -> Application:
        return self._update(ApplicationRecord, Application, "Application", application_id, updates)

    # Chat

    def create_chat_message(self, data: ChatMessageCreate) -> ChatMessage:
        values = _column_values(data)
        values["id"] = new_id()
        return self._insert(ChatMessageRecord, ChatMessage, values)

    def get_chat_history(self, user_id: str, limit: int = 50) -> list[ChatMessage]:
        with self._session() as db:
            stmt = (
                select(ChatMessageRecord)
                .where(ChatMessageRecord.user_id == user_id)
                .order_by(ChatMessageRecord.created_at.desc(), ChatMessageRecord.pk.desc())
                .limit(limit)
            )
            return [ChatMessage.model_validate(row) for row in db.execute(stmt).scalars()]
