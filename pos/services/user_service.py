"""
User service — cached reads and soft-delete lifecycle for the User entity.

Passwords are hashed before they reach the repository and are never part
of a response model.  Updating a user also drops the identity profile
cached by the auth service for that user.
"""
from sqlalchemy.exc import SQLAlchemyError

from pos.cache_keys import user_info_key
from pos.errors import (
    EMAIL_ALREADY_EXISTS,
    FAILED_HASH_PASSWORD,
    USER_ERRORS,
    ConflictError,
    NotFoundError,
)
from pos.observability import MethodCall
from pos.schemas import UserResponse, UserResponseDeleteAt
from pos.security import PasswordHasher
from pos.services.base import CommandService, QueryService


class UserQueryService(QueryService):
    namespace = "user"
    errors = USER_ERRORS
    response_model = UserResponse
    response_deleted_model = UserResponseDeleteAt


class UserCommandService(CommandService):
    namespace = "user"
    errors = USER_ERRORS
    response_model = UserResponse
    response_deleted_model = UserResponseDeleteAt

    def __init__(self, *args, hasher: PasswordHasher | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.hasher = hasher or PasswordHasher()

    async def validate(self, call: MethodCall, request, entity_id: int | None = None) -> None:
        email = getattr(request, "email", None)
        if email is None:
            return
        try:
            existing = await self.repository.find_by_email(email)
        except NotFoundError:
            return
        except SQLAlchemyError as exc:
            raise self.classifier.repository(
                exc, call, self._prefix("FIND_BY_EMAIL"), self.errors.failed_find_by_id, email=email
            ) from exc
        if existing.id != entity_id:
            raise self.classifier.repository(
                ConflictError(f"email {email!r} already exists"),
                call,
                self._prefix("EMAIL_EXISTS"),
                EMAIL_ALREADY_EXISTS,
                email=email,
            )

    def _hash(self, call: MethodCall, password: str) -> str:
        try:
            return self.hasher.hash(password)
        except ValueError as exc:
            raise self.classifier.credential(
                exc, call, self._prefix("HASH_PASSWORD"), FAILED_HASH_PASSWORD, "hash"
            ) from exc

    async def create_values(self, call: MethodCall, request) -> dict:
        values = request.model_dump()
        values["password"] = self._hash(call, values["password"])
        return values

    async def update_values(self, call: MethodCall, request) -> dict:
        values = request.model_dump(exclude_unset=True, exclude_none=True)
        if "password" in values:
            values["password"] = self._hash(call, values["password"])
        return values

    async def invalidate(self, entity_id: int) -> None:
        await self.cache.delete(self.keys.by_id(entity_id), user_info_key(entity_id))
