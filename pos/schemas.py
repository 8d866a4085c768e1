from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")


# --- Pagination / cache envelope ---

class PageEnvelope(BaseModel, Generic[T]):
    """
    A page of response models plus the total row count.

    This is both what list queries return and what they store in the
    cache: ``data`` is never null (an empty page is ``[]``) and
    ``total_records`` defaults to 0 when the total is unknown.
    """

    data: list[T] = Field(default_factory=list)
    total_records: int = 0

    @field_validator("data", mode="before")
    @classmethod
    def _data_never_null(cls, value):
        return [] if value is None else value

    @field_validator("total_records", mode="before")
    @classmethod
    def _total_never_null(cls, value):
        return 0 if value is None else value


class PaginatedResponse(BaseModel):
    data: list
    total_records: int
    page: int
    page_size: int
    total_pages: int


class StatusResponse(BaseModel):
    status: str = "success"
    message: str
    success: bool


# --- Shared response fields ---

class _Timestamps(BaseModel):
    created_at: datetime | None = None
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class _DeletedAt(BaseModel):
    deleted_at: datetime | None = None


# --- Role ---

class RoleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class RoleUpdate(RoleCreate):
    pass


class RoleResponse(_Timestamps):
    id: int
    name: str


class RoleResponseDeleteAt(RoleResponse, _DeletedAt):
    pass


# --- User ---

class UserCreate(BaseModel):
    firstname: str = Field(min_length=1, max_length=100)
    lastname: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=255)
    password: str = Field(min_length=6)


class UserUpdate(BaseModel):
    firstname: str | None = Field(None, max_length=100)
    lastname: str | None = Field(None, max_length=100)
    email: str | None = Field(None, max_length=255)
    password: str | None = Field(None, min_length=6)


class UserResponse(_Timestamps):
    id: int
    firstname: str
    lastname: str
    email: str


class UserResponseDeleteAt(UserResponse, _DeletedAt):
    pass


# --- Merchant ---

class MerchantCreate(BaseModel):
    user_id: int
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    address: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    status: str = "active"


class MerchantUpdate(BaseModel):
    name: str | None = Field(None, max_length=255)
    description: str | None = None
    address: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    status: str | None = None


class MerchantResponse(_Timestamps):
    id: int
    user_id: int
    name: str
    description: str | None = None
    address: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    status: str


class MerchantResponseDeleteAt(MerchantResponse, _DeletedAt):
    pass


# --- Cashier ---

class CashierCreate(BaseModel):
    merchant_id: int
    user_id: int
    name: str = Field(min_length=1, max_length=255)


class CashierUpdate(BaseModel):
    name: str | None = Field(None, max_length=255)


class CashierResponse(_Timestamps):
    id: int
    merchant_id: int
    user_id: int
    name: str


class CashierResponseDeleteAt(CashierResponse, _DeletedAt):
    pass


# --- Category ---

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    image_category: str | None = None


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, max_length=255)
    description: str | None = None
    image_category: str | None = None


class CategoryResponse(_Timestamps):
    id: int
    name: str
    description: str | None = None
    slug_category: str
    image_category: str | None = None


class CategoryResponseDeleteAt(CategoryResponse, _DeletedAt):
    pass


# --- Product ---

class ProductCreate(BaseModel):
    merchant_id: int
    category_id: int
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    price: int = Field(ge=0)
    count_in_stock: int = Field(0, ge=0)
    brand: str | None = None
    weight: int | None = None
    image_product: str | None = None
    barcode: str | None = None


class ProductUpdate(BaseModel):
    merchant_id: int | None = None
    category_id: int | None = None
    name: str | None = Field(None, max_length=255)
    description: str | None = None
    price: int | None = Field(None, ge=0)
    count_in_stock: int | None = Field(None, ge=0)
    brand: str | None = None
    weight: int | None = None
    image_product: str | None = None
    barcode: str | None = None


class ProductResponse(_Timestamps):
    id: int
    merchant_id: int
    category_id: int
    name: str
    description: str | None = None
    price: int
    count_in_stock: int
    brand: str | None = None
    weight: int | None = None
    slug_product: str
    image_product: str | None = None
    barcode: str | None = None


class ProductResponseDeleteAt(ProductResponse, _DeletedAt):
    pass


# --- Order ---

class OrderCreate(BaseModel):
    merchant_id: int
    cashier_id: int
    total_price: int = Field(0, ge=0)


class OrderUpdate(BaseModel):
    cashier_id: int | None = None
    total_price: int | None = Field(None, ge=0)


class OrderResponse(_Timestamps):
    id: int
    merchant_id: int
    cashier_id: int
    total_price: int


class OrderResponseDeleteAt(OrderResponse, _DeletedAt):
    pass


# --- Order item ---

class OrderItemResponse(_Timestamps):
    id: int
    order_id: int
    product_id: int
    quantity: int
    price: int


class OrderItemResponseDeleteAt(OrderItemResponse, _DeletedAt):
    pass


# --- Transaction ---

class TransactionCreate(BaseModel):
    order_id: int
    merchant_id: int
    payment_method: str = Field(min_length=1, max_length=50)
    amount: int = Field(ge=0)
    change_amount: int = Field(0, ge=0)
    payment_status: str = "pending"


class TransactionUpdate(BaseModel):
    payment_method: str | None = Field(None, max_length=50)
    amount: int | None = Field(None, ge=0)
    change_amount: int | None = Field(None, ge=0)
    payment_status: str | None = None


class TransactionResponse(_Timestamps):
    id: int
    order_id: int
    merchant_id: int
    payment_method: str
    amount: int
    change_amount: int
    payment_status: str


class TransactionResponseDeleteAt(TransactionResponse, _DeletedAt):
    pass


# --- Auth ---

class RegisterRequest(UserCreate):
    pass


class AuthRequest(BaseModel):
    email: str
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str


class CachedLogin(BaseModel):
    """Cached login result; the stored hash lets a cache hit still check the password."""

    password: str
    tokens: TokenResponse


class ForgotPasswordRequest(BaseModel):
    email: str = Field(max_length=255)


class ResetPasswordRequest(BaseModel):
    reset_token: str = Field(min_length=1)
    password: str = Field(min_length=6)
    confirm_password: str = Field(min_length=6)


# --- Sales statistics ---

class StatsMonth(BaseModel):
    year: int
    month: int
    count: int = 0
    total_amount: int = 0


class StatsYear(BaseModel):
    year: int
    count: int = 0
    total_amount: int = 0
