"""
Local credentials: password hashing, registration rules and login.
"""
import logging
import re

from passlib.context import CryptContext

from marketplace.core.config import AuthProvider, Settings
from marketplace.core.errors import NotAuthenticated, ValidationFailed
from marketplace.schemas.auth import ProviderLogin, RegisterRequest
from marketplace.schemas.marketplace import GOVERNMENT_ROLES, User, UserCreate, UserRole
from marketplace.storage.base import MarketplaceStorage

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["scrypt"], deprecated="auto")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8

# Admin accounts are provisioned, never self-registered
REGISTRABLE_ROLES = {UserRole.VENDOR.value, UserRole.GOVERNMENT.value, UserRole.CONTRACTING_OFFICER.value}

INVALID_CREDENTIALS = "Invalid email or password"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # Unrecognized hash format
        return False


def validate_registration(payload: RegisterRequest, settings: Settings) -> UserRole:
    """Apply the registration rules in order. Returns the requested role."""
    if not all([payload.email, payload.password, payload.first_name, payload.last_name, payload.role]):
        raise ValidationFailed("All fields are required")

    email = payload.email.strip()
    if not EMAIL_PATTERN.match(email):
        raise ValidationFailed("Invalid email format")

    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    if payload.role not in REGISTRABLE_ROLES:
        raise ValidationFailed("Invalid role specified")
    role = UserRole(payload.role)

    suffix = settings.GOVERNMENT_EMAIL_SUFFIX
    if role in GOVERNMENT_ROLES and not email.lower().endswith(suffix.lower()):
        raise ValidationFailed(f"Government users must use a {suffix} email address")

    return role


def register_user(storage: MarketplaceStorage, payload: RegisterRequest, settings: Settings) -> User:
    """Create a local account. Nothing is stored when a rule fails."""
    role = validate_registration(payload, settings)
    email = payload.email.strip()

    if storage.get_user_by_email(email) is not None:
        raise ValidationFailed("User already exists with this email")

    user = storage.create_user(
        UserCreate(
            email=email,
            password_hash=hash_password(payload.password),
            first_name=payload.first_name,
            last_name=payload.last_name,
            role=role,
            organization=payload.organization,
            auth_provider=AuthProvider.LOCAL,
        )
    )
    logger.info(f"Registered {role.value} user {user.id}")
    return user


def authenticate(storage: MarketplaceStorage, email: str, password: str) -> User:
    """Return the user for valid credentials.

    Unknown email and wrong password fail with the same message.
    """
    user = storage.get_user_by_email(email)
    if user is None:
        # Same hashing work as a wrong password
        pwd_context.dummy_verify()
        raise NotAuthenticated(INVALID_CREDENTIALS)
    if not verify_password(password, user.password_hash):
        raise NotAuthenticated(INVALID_CREDENTIALS)
    return user


def upsert_provider_user(
    storage: MarketplaceStorage, provider: AuthProvider, login: ProviderLogin
) -> User:
    """Map provider claims onto a user keyed by provider and subject."""
    claims = login.claims
    external_id = f"{provider.value}:{claims.subject}"
    if claims.email:
        existing = storage.get_user_by_email(claims.email)
        if existing is not None and existing.external_id != external_id:
            raise ValidationFailed("User already exists with this email")
    return storage.upsert_user(
        UserCreate(
            email=claims.email,
            first_name=claims.first_name,
            last_name=claims.last_name,
            profile_image_url=claims.picture,
            role=UserRole.VENDOR,
            auth_provider=provider,
            external_id=external_id,
        )
    )
