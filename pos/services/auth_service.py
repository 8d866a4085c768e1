"""
Auth service — registration, login, token rotation, password reset and
the current-user profile.

Cache layout
------------
``auth:login:<email>``             password hash and token pair of a recent login
                                   (LOGIN_CACHE_TTL)
``identity:refresh_token:<token>`` user id owning a live refresh token
``identity:user_info:<id>``        profile returned by ``get_me``
``auth:reset_token:<token>``       user id owning a live reset token (RESET_TOKEN_CACHE_TTL)

Refresh tokens are persisted as well; issuing a new one replaces the
user's previous row and drops its cache entry, so at most one refresh
token per user is valid.
Reset tokens follow the same rule and are deleted once used.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy.exc import SQLAlchemyError

from pos.cache import CacheStore
from pos.cache_keys import login_key, refresh_token_key, reset_token_key, user_info_key
from pos.config import settings
from pos.error_handler import ErrorClassifier
from pos.errors import (
    EMAIL_ALREADY_EXISTS,
    EXPIRED_TOKEN,
    FAILED_CREATE_ACCESS_TOKEN,
    FAILED_CREATE_REFRESH_TOKEN,
    FAILED_FORGOT_PASSWORD,
    FAILED_HASH_PASSWORD,
    FAILED_LOGIN,
    FAILED_REGISTER,
    FAILED_RESET_PASSWORD,
    FAILED_SEND_EMAIL,
    FAILED_STORE_REFRESH_TOKEN,
    INVALID_CREDENTIALS,
    INVALID_RESET_TOKEN,
    INVALID_TOKEN,
    PASSWORD_NOT_MATCH,
    ROLE_ERRORS,
    USER_ERRORS,
    ConflictError,
    NotFoundError,
)
from pos.messaging import PUBLISH_ERRORS, EmailPublisher
from pos.observability import MethodCall, MetricsRegistry
from pos.repositories import (
    RefreshTokenRepository,
    ResetTokenRepository,
    RoleRepository,
    UserRepository,
)
from pos.schemas import (
    AuthRequest,
    CachedLogin,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserResponse,
)
from pos.security import PasswordHasher, PasswordMismatchError, TokenManager
from pos.services.base import REPOSITORY_ERRORS, EntityService

logger = logging.getLogger(__name__)


class AuthService(EntityService):
    namespace = "auth"
    kind = "service"
    service_name = "auth_service"
    errors = USER_ERRORS
    response_model = UserResponse

    def __init__(
        self,
        users: UserRepository,
        roles: RoleRepository,
        refresh_tokens: RefreshTokenRepository,
        reset_tokens: ResetTokenRepository,
        cache: CacheStore,
        metrics: MetricsRegistry,
        publisher: EmailPublisher,
        hasher: PasswordHasher | None = None,
        tokens: TokenManager | None = None,
        tracer=None,
    ) -> None:
        super().__init__(users, cache, metrics, tracer=tracer)
        self.roles = roles
        self.refresh_tokens = refresh_tokens
        self.reset_tokens = reset_tokens
        self.publisher = publisher
        self.hasher = hasher or PasswordHasher()
        self.tokens = tokens or TokenManager()
        self._role_classifier = ErrorClassifier(ROLE_ERRORS)

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    async def register(self, request: RegisterRequest) -> UserResponse:
        async with self.observe("register", email=request.email) as call:
            await self._ensure_email_available(call, request.email)

            try:
                hashed = self.hasher.hash(request.password)
            except ValueError as exc:
                raise self.classifier.credential(
                    exc, call, "HASH_PASSWORD_ERR", FAILED_HASH_PASSWORD, "hash"
                ) from exc

            values = request.model_dump()
            values["password"] = hashed
            try:
                user = await self.repository.create(**values)
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, "REGISTER_ERR", FAILED_REGISTER, email=request.email
                ) from exc

            try:
                role = await self.roles.find_by_name(settings.DEFAULT_ROLE_NAME)
            except REPOSITORY_ERRORS as exc:
                raise self._role_classifier.repository(
                    exc, call, "FIND_ROLE_ERR", FAILED_REGISTER, role=settings.DEFAULT_ROLE_NAME
                ) from exc

            try:
                await self.repository.assign_role(user.id, role.id)
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, "ASSIGN_ROLE_ERR", FAILED_REGISTER, **{"user.id": user.id}
                ) from exc

            topic = settings.EMAIL_TOPIC_REGISTER
            message = {
                "email": user.email,
                "subject": "Welcome",
                "body": f"Hello {user.firstname}, your account has been created.",
                "type": "register",
            }
            try:
                await self.publisher.publish(topic, str(user.id), message)
            except PUBLISH_ERRORS as exc:
                raise self.classifier.external_send(
                    exc, call, "SEND_EMAIL_ERR", FAILED_SEND_EMAIL, topic, email=user.email
                ) from exc

            call.log_success("User registered", email=user.email, **{"user.id": user.id})
            return UserResponse.model_validate(user)

    async def _ensure_email_available(self, call: MethodCall, email: str) -> None:
        try:
            await self.repository.find_by_email(email)
        except NotFoundError:
            return
        except SQLAlchemyError as exc:
            raise self.classifier.repository(
                exc, call, "FIND_EMAIL_ERR", FAILED_REGISTER, email=email
            ) from exc
        raise self.classifier.repository(
            ConflictError(f"email {email!r} already exists"),
            call, "EMAIL_EXISTS_ERR", EMAIL_ALREADY_EXISTS, email=email,
        )

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(self, request: AuthRequest) -> TokenResponse:
        """
        Verify credentials and return a token pair.

        A cached login is reused for ``LOGIN_CACHE_TTL`` seconds, but only
        after the password is checked against the cached hash and only
        while its refresh token is still live; otherwise the pair is
        issued again.
        """
        async with self.observe("login", email=request.email) as call:
            key = login_key(request.email)
            cached, found = await self.cache.get(key, CachedLogin)
            if found:
                self._check_password(call, cached.password, request.password)
                _, live = await self.cache.get(refresh_token_key(cached.tokens.refresh_token), int)
                if live:
                    call.log_success("Successfully logged in", email=request.email)
                    return cached.tokens

            try:
                user = await self.repository.find_by_email(request.email)
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, "LOGIN_ERR", FAILED_LOGIN, email=request.email
                ) from exc

            self._check_password(call, user.password, request.password)

            pair = await self._issue_tokens(call, user.id)
            await self.cache.set(
                key, CachedLogin(password=user.password, tokens=pair), settings.LOGIN_CACHE_TTL
            )

            call.log_success("Successfully logged in", email=request.email)
            return pair

    def _check_password(self, call: MethodCall, hashed: str, password: str) -> None:
        try:
            self.hasher.verify(hashed, password)
        except PasswordMismatchError as exc:
            raise self.classifier.credential(
                exc, call, "COMPARE_PASSWORD_ERR", INVALID_CREDENTIALS, "not match"
            ) from exc
        except ValueError as exc:
            raise self.classifier.credential(
                exc, call, "COMPARE_PASSWORD_ERR", FAILED_LOGIN, "compare"
            ) from exc

    async def _issue_tokens(self, call: MethodCall, user_id: int) -> TokenResponse:
        """Create an access / refresh pair and make the refresh token the user's only one."""
        try:
            access_token = self.tokens.create_access_token(user_id)
        except jwt.PyJWTError as exc:
            raise self.classifier.token(
                exc, call, "CREATE_ACCESS_TOKEN_ERR", FAILED_CREATE_ACCESS_TOKEN, "create access",
                **{"user.id": user_id},
            ) from exc

        try:
            refresh_token = self.tokens.create_refresh_token(user_id)
        except jwt.PyJWTError as exc:
            raise self.classifier.token(
                exc, call, "CREATE_REFRESH_TOKEN_ERR", FAILED_CREATE_REFRESH_TOKEN, "create refresh",
                **{"user.id": user_id},
            ) from exc

        try:
            previous = await self.refresh_tokens.delete_by_user_id(user_id)
            await self.refresh_tokens.create(user_id, refresh_token, self.tokens.refresh_expiration())
        except REPOSITORY_ERRORS as exc:
            raise self.classifier.repository(
                exc, call, "STORE_REFRESH_TOKEN_ERR", FAILED_STORE_REFRESH_TOKEN,
                **{"user.id": user_id},
            ) from exc

        await self.cache.delete(*(refresh_token_key(old) for old in previous))
        await self.cache.set(refresh_token_key(refresh_token), user_id, self.tokens.refresh_ttl)
        return TokenResponse(access_token=access_token, refresh_token=refresh_token)

    # ------------------------------------------------------------------
    # Token rotation
    # ------------------------------------------------------------------

    async def refresh_token(self, token: str) -> TokenResponse:
        async with self.observe("refresh_token") as call:
            key = refresh_token_key(token)
            user_id, found = await self.cache.get(key, int)
            if found:
                await self.cache.delete(key)
                logger.debug("Invalidated old refresh token from cache")
                pair = await self._issue_tokens(call, user_id)
                call.log_success("Refresh token rotated (cached)", **{"user.id": user_id})
                return pair

            try:
                user_id = self.tokens.validate(token, "refresh")
            except jwt.ExpiredSignatureError as exc:
                await self.cache.delete(key)
                try:
                    await self.refresh_tokens.delete_by_token(token)
                except SQLAlchemyError as db_exc:
                    raise self.classifier.repository(
                        db_exc, call, "DELETE_REFRESH_TOKEN_ERR", FAILED_STORE_REFRESH_TOKEN
                    ) from db_exc
                raise self.classifier.token(
                    exc, call, "TOKEN_EXPIRED", EXPIRED_TOKEN, "validate"
                ) from exc
            except jwt.InvalidTokenError as exc:
                raise self.classifier.token(
                    exc, call, "INVALID_TOKEN", INVALID_TOKEN, "validate"
                ) from exc

            try:
                await self.refresh_tokens.find_by_token(token)
            except NotFoundError as exc:
                # Signed correctly but already rotated or revoked.
                raise self.classifier.token(
                    exc, call, "INVALID_TOKEN", INVALID_TOKEN, "validate", **{"user.id": user_id}
                ) from exc
            except SQLAlchemyError as exc:
                raise self.classifier.repository(
                    exc, call, "FIND_REFRESH_TOKEN_ERR", FAILED_STORE_REFRESH_TOKEN,
                    **{"user.id": user_id},
                ) from exc

            pair = await self._issue_tokens(call, user_id)
            call.log_success("Refresh token rotated", **{"user.id": user_id})
            return pair

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    async def forgot_password(self, email: str) -> bool:
        """
        Issue a reset token for *email* and mail the reset link.

        The token is stored for ``RESET_TOKEN_TTL`` seconds and cached for
        ``RESET_TOKEN_CACHE_TTL``; any earlier token of the user is dropped.
        """
        async with self.observe("forgot_password", email=email) as call:
            try:
                user = await self.repository.find_by_email(email)
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, "FORGOT_PASSWORD_ERR", FAILED_FORGOT_PASSWORD, email=email
                ) from exc
            call.span.set_attribute("user.id", user.id)

            token = secrets.token_urlsafe(32)
            expired_at = datetime.now(timezone.utc) + timedelta(seconds=settings.RESET_TOKEN_TTL)
            try:
                previous = await self.reset_tokens.delete_by_user_id(user.id)
                await self.reset_tokens.create(user.id, token, expired_at)
                await self.repository.commit()
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, "FORGOT_PASSWORD_ERR", FAILED_FORGOT_PASSWORD, **{"user.id": user.id}
                ) from exc

            topic = settings.EMAIL_TOPIC_FORGOT_PASSWORD
            message = {
                "email": user.email,
                "subject": "Password Reset Request",
                "body": f"Reset your password: {settings.RESET_PASSWORD_URL}?token={token}",
                "type": "forgot_password",
            }
            try:
                await self.publisher.publish(topic, str(user.id), message)
            except PUBLISH_ERRORS as exc:
                raise self.classifier.external_send(
                    exc, call, "SEND_EMAIL_ERR", FAILED_SEND_EMAIL, topic, email=user.email
                ) from exc

            await self.cache.delete(*(reset_token_key(old) for old in previous))
            await self.cache.set(reset_token_key(token), user.id, settings.RESET_TOKEN_CACHE_TTL)
            call.log_success("Password reset email sent", email=email)
            return True

    async def reset_password(self, request: ResetPasswordRequest) -> bool:
        """
        Set a new password for the owner of a live reset token.

        The token is single use.  The owner's cached login is dropped so the
        old password stops working at once.
        """
        async with self.observe("reset_password") as call:
            user_id, found = await self.cache.get(reset_token_key(request.reset_token), int)
            if not found:
                try:
                    row = await self.reset_tokens.find_by_token(request.reset_token)
                except NotFoundError as exc:
                    raise self.classifier.token(
                        exc, call, "RESET_PASSWORD_ERR", INVALID_RESET_TOKEN, "reset"
                    ) from exc
                except SQLAlchemyError as exc:
                    raise self.classifier.repository(
                        exc, call, "RESET_PASSWORD_ERR", FAILED_RESET_PASSWORD
                    ) from exc
                user_id = row.user_id
            call.span.set_attribute("user.id", user_id)

            if request.password != request.confirm_password:
                raise self.classifier.credential(
                    ValueError("password and confirm password do not match"),
                    call, "RESET_PASSWORD_ERR", PASSWORD_NOT_MATCH, "not match",
                    **{"user.id": user_id},
                )

            try:
                hashed = self.hasher.hash(request.password)
            except ValueError as exc:
                raise self.classifier.credential(
                    exc, call, "HASH_PASSWORD_ERR", FAILED_HASH_PASSWORD, "hash"
                ) from exc

            try:
                user = await self.repository.update(user_id, password=hashed)
                used = await self.reset_tokens.delete_by_user_id(user_id)
                await self.repository.commit()
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, "RESET_PASSWORD_ERR", FAILED_RESET_PASSWORD, **{"user.id": user_id}
                ) from exc

            await self.cache.delete(
                reset_token_key(request.reset_token),
                *(reset_token_key(token) for token in used),
                login_key(user.email),
            )
            call.log_success("Password reset", **{"user.id": user_id})
            return True

    # ------------------------------------------------------------------
    # Current user
    # ------------------------------------------------------------------

    async def get_me(self, access_token: str) -> UserResponse:
        async with self.observe("get_me") as call:
            try:
                user_id = self.tokens.validate(access_token, "access")
            except jwt.ExpiredSignatureError as exc:
                raise self.classifier.token(
                    exc, call, "TOKEN_EXPIRED", EXPIRED_TOKEN, "validate"
                ) from exc
            except jwt.InvalidTokenError as exc:
                raise self.classifier.token(
                    exc, call, "INVALID_TOKEN", INVALID_TOKEN, "validate"
                ) from exc

            call.span.set_attribute("user.id", user_id)
            key = user_info_key(user_id)
            cached, found = await self.cache.get(key, UserResponse)
            if found:
                call.log_success("User info retrieved from cache", **{"user.id": user_id})
                return cached

            try:
                user = await self.repository.find_by_id(user_id)
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, "FAILED_FETCH_USER", USER_ERRORS.failed_find_by_id,
                    **{"user.id": user_id},
                ) from exc

            response = UserResponse.model_validate(user)
            await self.cache.set(key, response, self.ttl)
            call.log_success("User details fetched successfully", **{"user.id": user_id})
            return response
