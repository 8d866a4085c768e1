"""
Error taxonomy for the point-of-sale services.

``ErrorSpec`` values are the documented, stable error contract: a
machine-readable code, a human message and the HTTP status the edge
should answer with.  They are plain data and can be declared anywhere.

``DomainError`` is what callers actually receive.  Only
``pos.error_handler.ErrorClassifier`` builds one, after it has logged the
failure and marked the active span, so every externally visible error
carries a ``trace_id`` that can be found in both places.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class ErrorSpec:
    code: str
    message: str
    status_code: int = 500


class DomainError(Exception):
    """A classified, caller-facing failure."""

    def __init__(self, spec: ErrorSpec, trace_id: str) -> None:
        super().__init__(spec.message)
        self.spec = spec
        self.trace_id = trace_id

    @property
    def code(self) -> str:
        return self.spec.code

    @property
    def message(self) -> str:
        return self.spec.message

    @property
    def status_code(self) -> int:
        return self.spec.status_code

    def to_dict(self) -> dict:
        return {
            "status": "error",
            "code": self.code,
            "message": self.message,
            "trace_id": self.trace_id,
        }


class NotFoundError(LookupError):
    """Raised by repositories when the requested row does not exist."""

    def __init__(self, entity: str, key) -> None:
        super().__init__(f"{entity} {key!r} not found")
        self.entity = entity
        self.key = key


class ConflictError(ValueError):
    """Raised when a write would violate a uniqueness rule (e.g. email taken)."""


# ---------------------------------------------------------------------------
# Per-entity catalogs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EntityErrors:
    not_found: ErrorSpec
    failed_find_all: ErrorSpec
    failed_find_active: ErrorSpec
    failed_find_trashed: ErrorSpec
    failed_find_by_id: ErrorSpec
    failed_find_by_relation: ErrorSpec
    failed_create: ErrorSpec
    failed_update: ErrorSpec
    failed_trash: ErrorSpec
    failed_restore: ErrorSpec
    failed_delete_permanent: ErrorSpec
    failed_restore_all: ErrorSpec
    failed_delete_all_permanent: ErrorSpec


def entity_errors(entity: str, plural: str | None = None) -> EntityErrors:
    """
    Build the standard error catalog for *entity* (e.g. ``"order_item"``).

    Codes are upper-snake (``PRODUCT_NOT_FOUND``); messages use the
    entity name with spaces (``"Failed to create order item"``).
    """
    name = entity.replace("_", " ")
    names = plural or f"{name}s"
    prefix = entity.upper()

    def spec(suffix: str, message: str, status: int = 500) -> ErrorSpec:
        return ErrorSpec(f"{prefix}_{suffix}", message, status)

    return EntityErrors(
        not_found=spec("NOT_FOUND", f"{name.capitalize()} not found", 404),
        failed_find_all=spec("FIND_ALL_FAILED", f"Failed to find all {names}"),
        failed_find_active=spec("FIND_ACTIVE_FAILED", f"Failed to find active {names}"),
        failed_find_trashed=spec("FIND_TRASHED_FAILED", f"Failed to find trashed {names}"),
        failed_find_by_id=spec("FIND_BY_ID_FAILED", f"Failed to find {name} by id"),
        failed_find_by_relation=spec("FIND_BY_RELATION_FAILED", f"Failed to find {names}"),
        failed_create=spec("CREATE_FAILED", f"Failed to create {name}"),
        failed_update=spec("UPDATE_FAILED", f"Failed to update {name}"),
        failed_trash=spec("TRASH_FAILED", f"Failed to move {name} to trash"),
        failed_restore=spec("RESTORE_FAILED", f"Failed to restore {name}"),
        failed_delete_permanent=spec(
            "DELETE_PERMANENT_FAILED", f"Failed to delete {name} permanently"
        ),
        failed_restore_all=spec("RESTORE_ALL_FAILED", f"Failed to restore all {names}"),
        failed_delete_all_permanent=spec(
            "DELETE_ALL_PERMANENT_FAILED", f"Failed to delete all {names} permanently"
        ),
    )


USER_ERRORS = entity_errors("user")
ROLE_ERRORS = entity_errors("role")
CATEGORY_ERRORS = entity_errors("category", "categories")
MERCHANT_ERRORS = entity_errors("merchant")
PRODUCT_ERRORS = entity_errors("product")
CASHIER_ERRORS = entity_errors("cashier")
ORDER_ERRORS = entity_errors("order")
ORDER_ITEM_ERRORS = entity_errors("order_item")
TRANSACTION_ERRORS = entity_errors("transaction")

# Auth / identity
EMAIL_ALREADY_EXISTS = ErrorSpec("USER_EMAIL_ALREADY_EXISTS", "Email already exists", 409)
FAILED_REGISTER = ErrorSpec("AUTH_REGISTER_FAILED", "Failed to register user")
FAILED_HASH_PASSWORD = ErrorSpec("AUTH_HASH_PASSWORD_FAILED", "Failed to hash password")
INVALID_CREDENTIALS = ErrorSpec("AUTH_INVALID_CREDENTIALS", "Invalid email or password", 401)
FAILED_LOGIN = ErrorSpec("AUTH_LOGIN_FAILED", "Failed to login")
FAILED_CREATE_ACCESS_TOKEN = ErrorSpec(
    "AUTH_CREATE_ACCESS_TOKEN_FAILED", "Failed to create access token"
)
FAILED_CREATE_REFRESH_TOKEN = ErrorSpec(
    "AUTH_CREATE_REFRESH_TOKEN_FAILED", "Failed to create refresh token"
)
FAILED_STORE_REFRESH_TOKEN = ErrorSpec(
    "AUTH_STORE_REFRESH_TOKEN_FAILED", "Failed to store refresh token"
)
INVALID_TOKEN = ErrorSpec("AUTH_INVALID_TOKEN", "Invalid token", 401)
EXPIRED_TOKEN = ErrorSpec("AUTH_TOKEN_EXPIRED", "Token expired", 401)
FAILED_SEND_EMAIL = ErrorSpec("AUTH_SEND_EMAIL_FAILED", "Failed to send email")
INVALID_RESET_TOKEN = ErrorSpec("AUTH_INVALID_RESET_TOKEN", "Invalid or expired reset token", 400)
PASSWORD_NOT_MATCH = ErrorSpec(
    "AUTH_PASSWORD_NOT_MATCH", "Password and confirm password do not match", 400
)
FAILED_FORGOT_PASSWORD = ErrorSpec("AUTH_FORGOT_PASSWORD_FAILED", "Failed to process forgot password")
FAILED_RESET_PASSWORD = ErrorSpec("AUTH_RESET_PASSWORD_FAILED", "Failed to reset password")

# Files
FAILED_DELETE_IMAGE = ErrorSpec("FILE_DELETE_IMAGE_FAILED", "Failed to delete image")


# ---------------------------------------------------------------------------
# Sales statistics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StatsErrors:
    failed_monthly_total: ErrorSpec
    failed_yearly_total: ErrorSpec
    failed_monthly: ErrorSpec
    failed_yearly: ErrorSpec


def stats_errors(prefix: str, subject: str) -> StatsErrors:
    """Catalog for one statistics family, e.g. ``stats_errors("CASHIER", "cashier sales")``."""
    return StatsErrors(
        failed_monthly_total=ErrorSpec(
            f"{prefix}_STATS_MONTHLY_TOTAL_FAILED", f"Failed to find monthly total {subject}"
        ),
        failed_yearly_total=ErrorSpec(
            f"{prefix}_STATS_YEARLY_TOTAL_FAILED", f"Failed to find yearly total {subject}"
        ),
        failed_monthly=ErrorSpec(f"{prefix}_STATS_MONTHLY_FAILED", f"Failed to find monthly {subject}"),
        failed_yearly=ErrorSpec(f"{prefix}_STATS_YEARLY_FAILED", f"Failed to find yearly {subject}"),
    )


CASHIER_STATS_ERRORS = stats_errors("CASHIER", "cashier sales")
CATEGORY_STATS_ERRORS = stats_errors("CATEGORY", "category sales")
ORDER_STATS_ERRORS = stats_errors("ORDER", "order revenue")
TRANSACTION_SUCCESS_STATS_ERRORS = stats_errors("TRANSACTION_SUCCESS", "successful transaction amounts")
TRANSACTION_FAILED_STATS_ERRORS = stats_errors("TRANSACTION_FAILED", "failed transaction amounts")
