"""Identity service: sign-up, sign-in and session validation."""

import logging

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from passlib.context import CryptContext
from pydantic import ValidationError

from src.core import db_client
from src.core.config import settings
from src.core.errors import NotAuthenticatedError, PersistenceError, ValidationFailedError
from src.core.logging import span
from src.domain.create_models import UserCreate
from src.domain.user import Session, User


logger = logging.getLogger(__name__)

COLLECTION = "users"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _serializer() -> URLSafeTimedSerializer:
    secret = settings.require_credential("secret_key", "Session signing")
    return URLSafeTimedSerializer(secret, salt="questlog-session")


def hash_password(password: str) -> str:
    """Hash a password in passlib's modular crypt format."""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash; unrecognized hashes never match."""
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        logger.warning("Stored password hash is not in a recognized format")
        return False


def _to_user(record: dict) -> User:
    return User(id=record["id"], email=record["email"], created=record["created"])


async def _find_by_email(email: str) -> dict | None:
    try:
        return await db_client.get_first_record(
            collection=COLLECTION,
            filter_query=f'email = "{db_client.sanitize_param(email)}"',
        )
    except db_client.DatabaseError as e:
        raise PersistenceError("Could not look up user") from e


async def sign_up(*, email: str, password: str) -> User:
    """Register a new user.

    Raises:
        ValidationFailedError: If the email is malformed, taken, or the password too short
        PersistenceError: If the store rejects the write
    """
    with span("identity_service.sign_up"):
        try:
            user_in = UserCreate(email=email, password=password)
        except ValidationError as e:
            raise ValidationFailedError(e.errors()[0]["msg"]) from e

        # Guard: Check if user already exists
        if await _find_by_email(user_in.email):
            logger.warning("Sign-up attempted for existing email %s", user_in.email)
            raise ValidationFailedError("An account with this email already exists")

        try:
            record = await db_client.create_record(
                collection=COLLECTION,
                data={"email": user_in.email, "password_hash": hash_password(user_in.password)},
            )
        except db_client.UniqueConstraintError as e:
            # Lost a race with a concurrent sign-up for the same email
            logger.warning("Sign-up attempted for existing email %s", user_in.email)
            raise ValidationFailedError("An account with this email already exists") from e
        except db_client.DatabaseError as e:
            raise PersistenceError("Could not create user") from e

        logger.info("Created user %s (%s)", record["id"], user_in.email)
        return _to_user(record)


async def sign_in(*, email: str, password: str) -> Session:
    """Verify credentials and issue a signed session.

    Raises:
        NotAuthenticatedError: If the email is unknown or the password is wrong
    """
    with span("identity_service.sign_in"):
        record = await _find_by_email(email.strip().lower())
        if record is None or not verify_password(password, record["password_hash"]):
            logger.warning("Failed sign-in for %s", email)
            raise NotAuthenticatedError("Invalid email or password")

        token = _serializer().dumps({"uid": record["id"]})
        logger.info("Issued session for user %s", record["id"])
        return Session(token=token, user_id=record["id"], expires_in=settings.session_max_age_seconds)


async def validate_session(token: str | None) -> str:
    """Return the user ID a session token is bound to.

    Raises:
        NotAuthenticatedError: If the token is missing, tampered with, expired, or its user is gone
    """
    if not token:
        raise NotAuthenticatedError("No session")

    try:
        payload = _serializer().loads(token, max_age=settings.session_max_age_seconds)
    except SignatureExpired as e:
        raise NotAuthenticatedError("Session expired") from e
    except BadSignature as e:
        raise NotAuthenticatedError("Invalid session") from e

    user_id = str(payload.get("uid", "")) if isinstance(payload, dict) else ""
    if not user_id:
        raise NotAuthenticatedError("Invalid session")

    await get_user(user_id=user_id)
    return user_id


async def get_user(*, user_id: str) -> User:
    """Get a user by ID.

    Raises:
        NotAuthenticatedError: If the user no longer exists
        PersistenceError: If the store cannot be read
    """
    try:
        record = await db_client.get_record(collection=COLLECTION, record_id=user_id)
    except db_client.RecordNotFoundError as e:
        raise NotAuthenticatedError(f"User {user_id} no longer exists") from e
    except db_client.DatabaseError as e:
        raise PersistenceError("Could not load user") from e
    return _to_user(record)
