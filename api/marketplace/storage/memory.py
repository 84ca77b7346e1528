"""
In-memory storage backend.

Each entity lives in a dict keyed by id. Dicts keep insertion order, which is
the order list operations return. Records handed out are copies, so callers
cannot mutate stored state behind the storage's back.
"""
import logging

from marketplace.core.errors import RecordNotFoundError
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

from .base import (
    MarketplaceStorage,
    matches_application_filters,
    matches_challenge_filters,
    matches_search,
    matches_solution_filters,
)

logger = logging.getLogger(__name__)


class MemoryStorage(MarketplaceStorage):
    """Process-local storage. Contents are lost on restart."""

    def __init__(self):
        self._users: dict[str, User] = {}
        self._users_by_email: dict[str, str] = {}
        self._challenges: dict[str, Challenge] = {}
        self._solutions: dict[str, Solution] = {}
        self._reviews: dict[str, Review] = {}
        self._applications: dict[str, Application] = {}
        self._chat_messages: dict[str, ChatMessage] = {}

    @staticmethod
    def _copy(record):
        return record.model_copy(deep=True) if record is not None else None

    @staticmethod
    def _merge(record, updates, model):
        changes = updates.model_dump(exclude_unset=True, exclude_none=True)
        merged = {**record.model_dump(), **changes, "updated_at": utcnow()}
        return model.model_validate(merged)

    # Users

    def get_user(self, user_id: str) -> User | None:
        return self._copy(self._users.get(user_id))

    def get_user_by_email(self, email: str) -> User | None:
        user_id = self._users_by_email.get(email.strip().lower())
        return self.get_user(user_id) if user_id else None

    def get_user_by_external_id(self, external_id: str) -> User | None:
        for user in self._users.values():
            if user.external_id == external_id:
                return self._copy(user)
        return None

    def create_user(self, data: UserCreate, user_id: str | None = None) -> User:
        now = utcnow()
        user = User(id=user_id or new_id(), created_at=now, updated_at=now, **data.model_dump())
        self._store_user(user)
        return self._copy(user)

    def _store_user(self, user: User) -> None:
        previous = self._users.get(user.id)
        if previous and previous.email:
            self._users_by_email.pop(previous.email.lower(), None)
        self._users[user.id] = user
        if user.email:
            self._users_by_email[user.email.lower()] = user.id

    def upsert_user(self, data: UserCreate) -> User:
        existing = self.get_user_by_external_id(data.external_id) if data.external_id else None
        if existing is None:
            return self.create_user(data)
        refreshed = existing.model_copy(
            update={
                "email": data.email,
                "first_name": data.first_name,
                "last_name": data.last_name,
                "profile_image_url": data.profile_image_url,
                "updated_at": utcnow(),
            }
        )
        self._store_user(refreshed)
        return self._copy(refreshed)

    def update_user(self, user_id: str, updates: ProfileUpdate) -> User:
        existing = self._users.get(user_id)
        if existing is None:
            raise RecordNotFoundError("User", user_id)
        updated = self._merge(existing, updates, User)
        self._store_user(updated)
        return self._copy(updated)

    # Challenges

    def create_challenge(self, data: ChallengeCreate, challenge_id: str | None = None) -> Challenge:
        now = utcnow()
        challenge = Challenge(
            id=challenge_id or new_id(), created_at=now, updated_at=now, **data.model_dump()
        )
        self._challenges[challenge.id] = challenge
        return self._copy(challenge)

    def get_challenge(self, challenge_id: str) -> Challenge | None:
        return self._copy(self._challenges.get(challenge_id))

    def list_challenges(self, filters: ChallengeFilters | None = None) -> list[Challenge]:
        filters = filters or ChallengeFilters()
        return [
            self._copy(c) for c in self._challenges.values() if matches_challenge_filters(c, filters)
        ]

    def update_challenge(self, challenge_id: str, updates: ChallengeUpdate) -> Challenge:
        existing = self._challenges.get(challenge_id)
        if existing is None:
            raise RecordNotFoundError("Challenge", challenge_id)
        updated = self._merge(existing, updates, Challenge)
        self._challenges[challenge_id] = updated
        return self._copy(updated)

    # Solutions

    def create_solution(self, data: SolutionCreate, solution_id: str | None = None) -> Solution:
        now = utcnow()
        solution = Solution(
            id=solution_id or new_id(), created_at=now, updated_at=now, **data.model_dump()
        )
        self._solutions[solution.id] = solution
        return self._copy(solution)

    def get_solution(self, solution_id: str) -> Solution | None:
        return self._copy(self._solutions.get(solution_id))

    def list_solutions(self, filters: SolutionFilters | None = None) -> list[Solution]:
        filters = filters or SolutionFilters()
        return [
            self._copy(s) for s in self._solutions.values() if matches_solution_filters(s, filters)
        ]

    def update_solution(self, solution_id: str, updates: SolutionUpdate) -> Solution:
        existing = self._solutions.get(solution_id)
        if existing is None:
            raise RecordNotFoundError("Solution", solution_id)
        updated = self._merge(existing, updates, Solution)
        self._solutions[solution_id] = updated
        return self._copy(updated)

    def search_solutions(self, query: str) -> list[Solution]:
        return [self._copy(s) for s in self._solutions.values() if matches_search(s, query)]

    # Reviews

    def create_review(self, data: ReviewCreate, review_id: str | None = None) -> Review:
        now = utcnow()
        review = Review(id=review_id or new_id(), created_at=now, updated_at=now, **data.model_dump())
        self._reviews[review.id] = review
        return self._copy(review)

    def get_review(self, review_id: str) -> Review | None:
        return self._copy(self._reviews.get(review_id))

    def list_reviews_by_solution(self, solution_id: str) -> list[Review]:
        return [self._copy(r) for r in self._reviews.values() if r.solution_id == solution_id]

    # Applications

    def create_application(
        self, data: ApplicationCreate, application_id: str | None = None
    ) -> Application:
        now = utcnow()
        application = Application(
            id=application_id or new_id(), created_at=now, updated_at=now, **data.model_dump()
        )
        self._applications[application.id] = application
        return self._copy(application)

    def get_application(self, application_id: str) -> Application | None:
        return self._copy(self._applications.get(application_id))

    def list_applications(self, filters: ApplicationFilters | None = None) -> list[Application]:
        filters = filters or ApplicationFilters()
        return [
            self._copy(a)
            for a in self._applications.values()
            if matches_application_filters(a, filters)
        ]

    def update_application(self, application_id: str, updates: ApplicationUpdate) -> Application:
        existing = self._applications.get(application_id)
        if existing is None:
            raise RecordNotFoundError("Application", application_id)
        updated = self._merge(existing, updates, Application)
        self._applications[application_id] = updated
        return self._copy(updated)

    # Chat

    def create_chat_message(self, data: ChatMessageCreate) -> ChatMessage:
        message = ChatMessage(id=new_id(), created_at=utcnow(), **data.model_dump())
        self._chat_messages[message.id] = message
        return self._copy(message)

    def get_chat_history(self, user_id: str, limit: int = 50) -> list[ChatMessage]:
        mine = [m for m in self._chat_messages.values() if m.user_id == user_id]
        # Insertion order breaks timestamp ties
        mine.reverse()
        mine.sort(key=lambda m: m.created_at, reverse=True)
        return [self._copy(m) for m in mine[:limit]]
