"""
Authentication Service

- Passwords are hashed with argon2 (passlib).
- Access tokens are JWTs (python-jose) carrying ``id`` and ``email``
  claims and an expiry.
- A valid token for a user that no longer exists is rejected with 401;
  a malformed, tampered or expired token with 403.

Registration seeds the new user's ledger with a "Wallet" cash account
and a handful of categories, in the same unit of work as the user row.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog
from jose import JWTError, jwt
from passlib.context import CryptContext

from finnan.config import AuthSettings
from finnan.errors import AuthenticationError, InvalidOperationError, NotFoundError, storage_errors
from finnan.models.entities import (
    Account,
    AccountType,
    Category,
    CategoryType,
    User,
    UserProfile,
)
from finnan.models.payloads import LoginRequest, RegisterRequest
from finnan.services.storage.interface import EntityStoreInterface, IntegrityViolationError


DEFAULT_ACCOUNT = ("Wallet", AccountType.CASH)

DEFAULT_CATEGORIES = (
    ("Salary", CategoryType.INCOME),
    ("Food", CategoryType.EXPENSE),
    ("Transport", CategoryType.EXPENSE),
    ("Utilities", CategoryType.EXPENSE),
    ("Entertainment", CategoryType.EXPENSE),
)

INVALID_CREDENTIALS = "Invalid credentials"

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


@dataclass(frozen=True)
class AuthenticatedUser:
    """The caller, as established from a verified token."""
    id: int
    email: str


class AuthService:
    """
    Register, log in and verify callers.

    Usage:
        auth = AuthService(store, AuthSettings())
        await auth.register(RegisterRequest(...))
        result = await auth.login(LoginRequest(...))
        caller = await auth.verify_token(result["token"])
    """

    def __init__(
        self,
        store: EntityStoreInterface,
        settings: Optional[AuthSettings] = None,
    ):
        self._store = store
        self._settings = settings or AuthSettings()
        self._logger = structlog.get_logger()

    # -------------------------------------------------------------------------
    # Tokens
    # -------------------------------------------------------------------------

    def create_access_token(self, user: UserProfile) -> str:
        expires = datetime.now(timezone.utc) + timedelta(minutes=self._settings.expire_minutes)
        claims = {"id": user.id, "email": user.email, "exp": expires}
        return jwt.encode(claims, self._settings.secret, algorithm=self._settings.algorithm)

    def decode_token(self, token: str) -> AuthenticatedUser:
        """
        Check signature and expiry.

        Raises:
            AuthenticationError: (403) if the token is not acceptable
        """
        try:
            claims = jwt.decode(
                token, self._settings.secret, algorithms=[self._settings.algorithm]
            )
        except JWTError as e:
            raise AuthenticationError("Invalid token", status_code=403) from e

        user_id = claims.get("id")
        if not isinstance(user_id, int):
            raise AuthenticationError("Invalid token", status_code=403)
        return AuthenticatedUser(id=user_id, email=str(claims.get("email", "")))

    async def verify_token(self, token: str) -> AuthenticatedUser:
        """
        Resolve a bearer token to an existing user.

        Raises:
            AuthenticationError: 403 for a bad token, 401 for an unknown user
        """
        claimed = self.decode_token(token)

        with storage_errors("verify_token"):
            async with self._store.transaction() as session:
                user = await session.get_user(claimed.id)

        if user is None:
            raise AuthenticationError("User no longer exists", status_code=401)
        return AuthenticatedUser(id=user.id, email=user.email)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def register(self, payload: RegisterRequest) -> UserProfile:
        """
        Create a user with a default account and categories.

        Raises:
            InvalidOperationError: The email is already registered
        """
        with storage_errors("register"):
            try:
                async with self._store.transaction() as session:
                    if await session.get_user_by_email(payload.email) is not None:
                        raise InvalidOperationError("Email already exists")

                    user = await session.insert_user(User(
                        email=payload.email,
                        name=payload.name,
                        currency=payload.currency,
                        password_hash=hash_password(payload.password),
                    ))

                    name, account_type = DEFAULT_ACCOUNT
                    await session.insert(Account(user_id=user.id, name=name, type=account_type))
                    for name, category_type in DEFAULT_CATEGORIES:
                        await session.insert(
                            Category(user_id=user.id, name=name, type=category_type)
                        )
            except IntegrityViolationError as e:
                raise InvalidOperationError("Email already exists") from e

        self._logger.info("user_registered", user_id=user.id)
        return user.to_profile()

    async def login(self, payload: LoginRequest) -> dict[str, Any]:
        """
        Returns:
            {"token": <jwt>, "user": UserProfile}

        Raises:
            AuthenticationError: Unknown email or wrong password (same message)
        """
        with storage_errors("login"):
            async with self._store.transaction() as session:
                user = await session.get_user_by_email(payload.email)

        if user is None or not verify_password(payload.password, user.password_hash):
            self._logger.info("login_failed")
            raise AuthenticationError(INVALID_CREDENTIALS)

        profile = user.to_profile()
        self._logger.info("user_logged_in", user_id=user.id)
        return {"token": self.create_access_token(profile), "user": profile}

    async def me(self, user_id: int) -> UserProfile:
        with storage_errors("me"):
            async with self._store.transaction() as session:
                user = await session.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user.to_profile()
