"""
Repositories — SQLAlchemy data access for every entity.

``SoftDeleteRepository`` implements the whole listing / lookup / soft-delete
lifecycle once; the per-entity subclasses only declare their model, the
columns free-text search applies to, and any extra lookups.

Conventions
-----------
- "all" and "active" listings exclude trashed rows; "trashed" lists only
  rows whose ``deleted_at`` is set.  Results are ordered by id.
- ``find_by_id`` sees active rows only, ``find_by_id_trashed`` trashed
  rows only.  A miss raises ``NotFoundError``.
- Writes flush and refresh but do not commit.  Command services call
  ``commit`` once a mutation succeeds; anything else is committed or
  rolled back by the ``get_db`` dependency.
"""
from datetime import datetime, timezone
from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import delete, extract, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pos.errors import NotFoundError
from pos.models import (
    Cashier,
    Category,
    Merchant,
    Order,
    OrderItem,
    Product,
    RefreshToken,
    ResetToken,
    Role,
    Transaction,
    User,
    UserRole,
)

ModelT = TypeVar("ModelT")


class SoftDeleteRepository(Generic[ModelT]):
    model: type
    entity: str = "entity"
    search_columns: tuple[str, ...] = ()

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def _search_clause(self, search: str):
        if not search or not self.search_columns:
            return None
        pattern = f"%{search.lower()}%"
        return or_(
            *(func.lower(getattr(self.model, column)).like(pattern) for column in self.search_columns)
        )

    async def _paginate(
        self,
        conditions: list,
        page: int,
        page_size: int,
        search: str,
        join: tuple | None = None,
    ) -> tuple[list[ModelT], int]:
        """Issue COUNT + LIMIT/OFFSET SELECT for *conditions* and return ``(rows, total)``."""
        conditions = list(conditions)
        clause = self._search_clause(search)
        if clause is not None:
            conditions.append(clause)

        count_q = select(func.count()).select_from(self.model)
        rows_q = select(self.model)
        if join is not None:
            count_q = count_q.join(*join)
            rows_q = rows_q.join(*join)

        total: int = (await self.db.execute(count_q.where(*conditions))).scalar_one()

        rows_q = (
            rows_q.where(*conditions)
            .order_by(self.model.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.db.execute(rows_q)
        return list(result.scalars().all()), total

    async def _one(self, *conditions, key: Any) -> ModelT:
        result = await self.db.execute(select(self.model).where(*conditions))
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(self.entity, key)
        return row

    async def commit(self) -> None:
        await self.db.commit()

    async def _save(self, row: ModelT) -> ModelT:
        await self.db.flush()
        # Server-side defaults (created_at / updated_at) must be loaded
        # eagerly; lazy attribute refresh is not available under asyncio.
        await self.db.refresh(row)
        return row

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    async def find_all(self, page: int, page_size: int, search: str) -> tuple[list[ModelT], int]:
        return await self._paginate([self.model.deleted_at.is_(None)], page, page_size, search)

    async def find_by_active(self, page: int, page_size: int, search: str) -> tuple[list[ModelT], int]:
        return await self._paginate([self.model.deleted_at.is_(None)], page, page_size, search)

    async def find_by_trashed(self, page: int, page_size: int, search: str) -> tuple[list[ModelT], int]:
        return await self._paginate([self.model.deleted_at.is_not(None)], page, page_size, search)

    async def find_by_relation(
        self, column: str, value: Any, page: int, page_size: int, search: str
    ) -> tuple[list[ModelT], int]:
        conditions = [getattr(self.model, column) == value, self.model.deleted_at.is_(None)]
        return await self._paginate(conditions, page, page_size, search)

    async def find_where(self, **filters) -> Sequence[ModelT]:
        """Unpaginated active rows matching every ``column=value`` filter."""
        conditions = [getattr(self.model, column) == value for column, value in filters.items()]
        q = (
            select(self.model)
            .where(*conditions, self.model.deleted_at.is_(None))
            .order_by(self.model.id)
        )
        result = await self.db.execute(q)
        return result.scalars().all()

    # ------------------------------------------------------------------
    # Single-row lookups
    # ------------------------------------------------------------------

    async def find_by_id(self, entity_id: int) -> ModelT:
        return await self._one(
            self.model.id == entity_id, self.model.deleted_at.is_(None), key=entity_id
        )

    async def find_by_id_trashed(self, entity_id: int) -> ModelT:
        return await self._one(
            self.model.id == entity_id, self.model.deleted_at.is_not(None), key=entity_id
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, **values) -> ModelT:
        row = self.model(**values)
        self.db.add(row)
        return await self._save(row)

    async def update(self, entity_id: int, **values) -> ModelT:
        row = await self.find_by_id(entity_id)
        for column, value in values.items():
            setattr(row, column, value)
        return await self._save(row)

    async def trash(self, entity_id: int) -> ModelT:
        row = await self.find_by_id(entity_id)
        row.deleted_at = datetime.now(timezone.utc)
        return await self._save(row)

    async def restore(self, entity_id: int) -> ModelT:
        row = await self.find_by_id_trashed(entity_id)
        row.deleted_at = None
        return await self._save(row)

    async def delete_permanent(self, entity_id: int) -> bool:
        row = await self.find_by_id_trashed(entity_id)
        await self.db.delete(row)
        await self.db.flush()
        return True

    async def restore_all(self) -> bool:
        await self.db.execute(
            update(self.model).where(self.model.deleted_at.is_not(None)).values(deleted_at=None)
        )
        return True

    async def delete_all_permanent(self) -> bool:
        await self.db.execute(delete(self.model).where(self.model.deleted_at.is_not(None)))
        return True


# ---------------------------------------------------------------------------
# Per-entity repositories
# ---------------------------------------------------------------------------

class UserRepository(SoftDeleteRepository[User]):
    model = User
    entity = "user"
    search_columns = ("firstname", "lastname", "email")

    async def find_by_email(self, email: str) -> User:
        return await self._one(User.email == email, User.deleted_at.is_(None), key=email)

    async def assign_role(self, user_id: int, role_id: int) -> UserRole:
        link = UserRole(user_id=user_id, role_id=role_id)
        self.db.add(link)
        await self.db.flush()
        return link


class RoleRepository(SoftDeleteRepository[Role]):
    model = Role
    entity = "role"
    search_columns = ("name",)

    async def find_by_name(self, name: str) -> Role:
        return await self._one(Role.name == name, Role.deleted_at.is_(None), key=name)


class CategoryRepository(SoftDeleteRepository[Category]):
    model = Category
    entity = "category"
    search_columns = ("name", "slug_category")


class MerchantRepository(SoftDeleteRepository[Merchant]):
    model = Merchant
    entity = "merchant"
    search_columns = ("name", "contact_email")


class ProductRepository(SoftDeleteRepository[Product]):
    model = Product
    entity = "product"
    search_columns = ("name", "brand", "barcode")

    async def find_by_category(
        self, category_name: str, page: int, page_size: int, search: str
    ) -> tuple[list[Product], int]:
        conditions = [
            Category.name == category_name,
            Category.deleted_at.is_(None),
            Product.deleted_at.is_(None),
        ]
        return await self._paginate(
            conditions, page, page_size, search, join=(Category, Product.category_id == Category.id)
        )


class CashierRepository(SoftDeleteRepository[Cashier]):
    model = Cashier
    entity = "cashier"
    search_columns = ("name",)


class OrderRepository(SoftDeleteRepository[Order]):
    model = Order
    entity = "order"


class OrderItemRepository(SoftDeleteRepository[OrderItem]):
    model = OrderItem
    entity = "order_item"


class TransactionRepository(SoftDeleteRepository[Transaction]):
    model = Transaction
    entity = "transaction"
    search_columns = ("payment_method", "payment_status")

    async def find_by_order(self, order_id: int) -> Transaction:
        return await self._one(
            Transaction.order_id == order_id, Transaction.deleted_at.is_(None), key=order_id
        )


class RefreshTokenRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, user_id: int, token: str, expiration: datetime) -> RefreshToken:
        row = RefreshToken(user_id=user_id, token=token, expiration=expiration)
        self.db.add(row)
        await self.db.flush()
        return row

    async def find_by_token(self, token: str) -> RefreshToken:
        result = await self.db.execute(select(RefreshToken).where(RefreshToken.token == token))
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError("refresh_token", token)
        return row

    async def delete_by_token(self, token: str) -> None:
        await self.db.execute(delete(RefreshToken).where(RefreshToken.token == token))

    async def delete_by_user_id(self, user_id: int) -> list[str]:
        """Delete every refresh token of *user_id* and return the deleted tokens."""
        result = await self.db.execute(
            select(RefreshToken.token).where(RefreshToken.user_id == user_id)
        )
        tokens = list(result.scalars().all())
        if tokens:
            await self.db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
        return tokens


class ResetTokenRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, user_id: int, token: str, expired_at: datetime) -> ResetToken:
        row = ResetToken(user_id=user_id, token=token, expired_at=expired_at)
        self.db.add(row)
        await self.db.flush()
        return row

    async def find_by_token(self, token: str) -> ResetToken:
        """Return the unexpired row for *token*; an expired or unknown token is not found."""
        result = await self.db.execute(
            select(ResetToken).where(
                ResetToken.token == token, ResetToken.expired_at > datetime.now(timezone.utc)
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError("reset_token", token)
        return row

    async def delete_by_user_id(self, user_id: int) -> list[str]:
        """Delete every reset token of *user_id* and return the deleted tokens."""
        result = await self.db.execute(select(ResetToken.token).where(ResetToken.user_id == user_id))
        tokens = list(result.scalars().all())
        if tokens:
            await self.db.execute(delete(ResetToken).where(ResetToken.user_id == user_id))
        return tokens


# ---------------------------------------------------------------------------
# Sales statistics
# ---------------------------------------------------------------------------

class StatsRepository:
    """
    Row counts and amount sums grouped by calendar year, optionally by month.

    Subclasses declare the table, the amount expression, any join, and the
    columns a query can be scoped by (``"merchant"``, ``"id"``).  Trashed
    rows are never counted; periods without rows are simply absent from
    the result.
    """

    model: type
    scopes: dict[str, Any] = {}

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    def amount(self):
        raise NotImplementedError

    def source(self, q):
        return q.select_from(self.model)

    def conditions(self) -> list:
        return [self.model.deleted_at.is_(None)]

    async def totals(
        self,
        first_year: int,
        last_year: int,
        by_month: bool,
        scope: str | None = None,
        scope_id: int | None = None,
    ) -> dict[tuple[int, int], tuple[int, int]]:
        """Map ``(year, month)`` to ``(count, total)``; *month* is 0 unless *by_month*."""
        year = extract("year", self.model.created_at)
        periods = [year]
        if by_month:
            periods.append(extract("month", self.model.created_at))

        conditions = [*self.conditions(), year.between(first_year, last_year)]
        if scope is not None:
            conditions.append(self.scopes[scope] == scope_id)

        q = self.source(
            select(*periods, func.count(), func.coalesce(func.sum(self.amount()), 0))
        )
        result = await self.db.execute(q.where(*conditions).group_by(*periods))

        totals: dict[tuple[int, int], tuple[int, int]] = {}
        for row in result.all():
            if by_month:
                row_year, row_month, count, total = row
            else:
                row_year, count, total = row
                row_month = 0
            totals[(int(row_year), int(row_month))] = (int(count), int(total))
        return totals


class CashierStatsRepository(StatsRepository):
    """Sales rung up by cashiers: order totals, scoped by merchant or by cashier."""

    model = Order
    scopes = {"merchant": Order.merchant_id, "id": Order.cashier_id}

    def amount(self):
        return Order.total_price


class OrderStatsRepository(StatsRepository):
    model = Order
    scopes = {"merchant": Order.merchant_id}

    def amount(self):
        return Order.total_price


class CategoryStatsRepository(StatsRepository):
    """Order lines joined to their product, so sales can be scoped by category."""

    model = OrderItem
    scopes = {"merchant": Product.merchant_id, "id": Product.category_id}

    def amount(self):
        return OrderItem.price * OrderItem.quantity

    def source(self, q):
        return q.select_from(OrderItem).join(Product, OrderItem.product_id == Product.id)


class TransactionStatsRepository(StatsRepository):
    model = Transaction
    scopes = {"merchant": Transaction.merchant_id}
    payment_status: str

    def amount(self):
        return Transaction.amount

    def conditions(self) -> list:
        return [*super().conditions(), Transaction.payment_status == self.payment_status]


class SuccessfulTransactionStatsRepository(TransactionStatsRepository):
    payment_status = "success"


class FailedTransactionStatsRepository(TransactionStatsRepository):
    payment_status = "failed"
