"""
Storage contract shared by the in-memory and relational backends.

Route handlers only ever see this interface, so the backend can be swapped
by configuration. List operations return records in insertion order unless
the method says otherwise. Updating an id that does not exist raises
RecordNotFoundError.
"""
from abc import ABC, abstractmethod

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
)


class MarketplaceStorage(ABC):
    """Create, get, filtered-list and update operations per entity."""

    # Users
    @abstractmethod
    def get_user(self, user_id: str) -> User | None: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> User | None:
        """Case-insensitive lookup."""

    @abstractmethod
    def get_user_by_external_id(self, external_id: str) -> User | None: ...

    @abstractmethod
    def create_user(self, data: UserCreate, user_id: str | None = None) -> User: ...

    @abstractmethod
    def upsert_user(self, data: UserCreate) -> User:
        """Create or refresh a delegated-login user keyed by ``external_id``.

        Role and organization metadata of an existing user are kept; only the
        identity claims (email, names, picture) are refreshed.
        """

    @abstractmethod
    def update_user(self, user_id: str, updates: ProfileUpdate) -> User: ...

    # Challenges
    @abstractmethod
    def create_challenge(self, data: ChallengeCreate, challenge_id: str | None = None) -> Challenge: ...

    @abstractmethod
    def get_challenge(self, challenge_id: str) -> Challenge | None: ...

    @abstractmethod
    def list_challenges(self, filters: ChallengeFilters | None = None) -> list[Challenge]: ...

    @abstractmethod
    def update_challenge(self, challenge_id: str, updates: ChallengeUpdate) -> Challenge: ...

    # Solutions
    @abstractmethod
    def create_solution(self, data: SolutionCreate, solution_id: str | None = None) -> Solution: ...

    @abstractmethod
    def get_solution(self, solution_id: str) -> Solution | None: ...

    @abstractmethod
    def list_solutions(self, filters: SolutionFilters | None = None) -> list[Solution]: ...

    @abstractmethod
    def update_solution(self, solution_id: str, updates: SolutionUpdate) -> Solution: ...

    @abstractmethod
    def search_solutions(self, query: str) -> list[Solution]:
        """Substring match over title, description and capability areas."""

    # Reviews
    @abstractmethod
    def create_review(self, data: ReviewCreate, review_id: str | None = None) -> Review: ...

    @abstractmethod
    def get_review(self, review_id: str) -> Review | None: ...

    @abstractmethod
    def list_reviews_by_solution(self, solution_id: str) -> list[Review]: ...

    # Applications
    @abstractmethod
    def create_application(self, data: ApplicationCreate, application_id: str | None = None) -> Application: ...

    @abstractmethod
    def get_application(self, application_id: str) -> Application | None: ...

    @abstractmethod
    def list_applications(self, filters: ApplicationFilters | None = None) -> list[Application]: ...

    @abstractmethod
    def update_application(self, application_id: str, updates: ApplicationUpdate) -> Application: ...

    # Chat
    @abstractmethod
    def create_chat_message(self, data: ChatMessageCreate) -> ChatMessage: ...

    @abstractmethod
    def get_chat_history(self, user_id: str, limit: int = 50) -> list[ChatMessage]:
        """Most recent first."""


def matches_search(solution: Solution, query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    return (
        needle in solution.title.lower()
        or needle in solution.description.lower()
        or any(needle in area.lower() for area in solution.capability_areas)
    )


def matches_solution_filters(solution: Solution, filters: SolutionFilters) -> bool:
    if filters.vendor_id is not None and solution.vendor_id != filters.vendor_id:
        return False
    if filters.status is not None and solution.status != filters.status:
        return False
    if filters.trl is not None and solution.trl != filters.trl:
        return False
    if filters.nato_compatible is not None and solution.nato_compatible != filters.nato_compatible:
        return False
    if filters.security_cleared is not None and solution.security_cleared != filters.security_cleared:
        return False
    if filters.capability_area is not None and filters.capability_area not in solution.capability_areas:
        return False
    return True


def matches_challenge_filters(challenge: Challenge, filters: ChallengeFilters) -> bool:
    if filters.status is not None and challenge.status != filters.status:
        return False
    if filters.type is not None and challenge.type != filters.type:
        return False
    return True


def matches_application_filters(application: Application, filters: ApplicationFilters) -> bool:
    if filters.challenge_id is not None and application.challenge_id != filters.challenge_id:
        return False
    if filters.vendor_id is not None and application.vendor_id != filters.vendor_id:
        return False
    if filters.status is not None and application.status != filters.status:
        return False
    return True
