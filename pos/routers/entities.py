from fastapi import Depends

from pos.dependencies import PaginationParams, get_product_command_service, service_provider
from pos.repositories import (
    CashierRepository,
    CashierStatsRepository,
    CategoryRepository,
    CategoryStatsRepository,
    FailedTransactionStatsRepository,
    MerchantRepository,
    OrderItemRepository,
    OrderRepository,
    OrderStatsRepository,
    ProductRepository,
    RoleRepository,
    SuccessfulTransactionStatsRepository,
    TransactionRepository,
    UserRepository,
)
from pos.routers.crud import crud_router, paginated
from pos.routers.stats import add_stats_routes
from pos.schemas import (
    CashierCreate,
    CashierUpdate,
    CategoryCreate,
    CategoryUpdate,
    MerchantCreate,
    MerchantUpdate,
    MerchantResponse,
    OrderCreate,
    OrderItemResponse,
    OrderUpdate,
    ProductCreate,
    ProductUpdate,
    RoleCreate,
    RoleUpdate,
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
    UserCreate,
    UserUpdate,
)
from pos.services.cashier_service import CashierCommandService, CashierQueryService
from pos.services.category_service import CategoryCommandService, CategoryQueryService
from pos.services.merchant_service import MerchantCommandService, MerchantQueryService
from pos.services.order_item_service import OrderItemQueryService
from pos.services.order_service import OrderCommandService, OrderQueryService
from pos.services.product_service import ProductQueryService
from pos.services.role_service import RoleCommandService, RoleQueryService
from pos.services.stats_service import (
    CashierStatsService,
    CategoryStatsService,
    OrderStatsService,
    TransactionFailedStatsService,
    TransactionSuccessStatsService,
)
from pos.services.transaction_service import TransactionCommandService, TransactionQueryService
from pos.services.user_service import UserCommandService, UserQueryService

# --- Users / roles ---

users = crud_router(
    "/api/v1/users", "users",
    service_provider(UserQueryService, UserRepository),
    service_provider(UserCommandService, UserRepository),
    UserCreate, UserUpdate,
)

roles = crud_router(
    "/api/v1/roles", "roles",
    service_provider(RoleQueryService, RoleRepository),
    service_provider(RoleCommandService, RoleRepository),
    RoleCreate, RoleUpdate,
)

# --- Catalog ---

categories = crud_router(
    "/api/v1/categories", "categories",
    service_provider(CategoryQueryService, CategoryRepository),
    service_provider(CategoryCommandService, CategoryRepository),
    CategoryCreate, CategoryUpdate,
)
add_stats_routes(
    categories, service_provider(CategoryStatsService, CategoryStatsRepository), by_id=True
)

product_queries = service_provider(ProductQueryService, ProductRepository)
products = crud_router(
    "/api/v1/products", "products",
    product_queries,
    get_product_command_service,
    ProductCreate, ProductUpdate,
)


@products.get("/merchant/{merchant_id}")
async def find_products_by_merchant(
    merchant_id: int, pagination: PaginationParams = Depends(), service=Depends(product_queries)
):
    envelope = await service.find_by_merchant(
        merchant_id, pagination.page, pagination.page_size, pagination.search
    )
    return paginated(envelope, pagination.page, pagination.page_size)


@products.get("/category/{category_name}")
async def find_products_by_category(
    category_name: str, pagination: PaginationParams = Depends(), service=Depends(product_queries)
):
    envelope = await service.find_by_category(
        category_name, pagination.page, pagination.page_size, pagination.search
    )
    return paginated(envelope, pagination.page, pagination.page_size)


# --- Merchants / cashiers ---

merchant_queries = service_provider(MerchantQueryService, MerchantRepository)
merchants = crud_router(
    "/api/v1/merchants", "merchants",
    merchant_queries,
    service_provider(MerchantCommandService, MerchantRepository),
    MerchantCreate, MerchantUpdate,
)


@merchants.get("/user/{user_id}", response_model=list[MerchantResponse])
async def find_merchants_by_user(user_id: int, service=Depends(merchant_queries)):
    return await service.find_by_user_id(user_id)


cashier_queries = service_provider(CashierQueryService, CashierRepository)
cashiers = crud_router(
    "/api/v1/cashiers", "cashiers",
    cashier_queries,
    service_provider(CashierCommandService, CashierRepository),
    CashierCreate, CashierUpdate,
)
add_stats_routes(
    cashiers, service_provider(CashierStatsService, CashierStatsRepository), by_id=True
)


@cashiers.get("/merchant/{merchant_id}")
async def find_cashiers_by_merchant(
    merchant_id: int, pagination: PaginationParams = Depends(), service=Depends(cashier_queries)
):
    envelope = await service.find_by_merchant(
        merchant_id, pagination.page, pagination.page_size, pagination.search
    )
    return paginated(envelope, pagination.page, pagination.page_size)


# --- Orders / transactions ---

orders = crud_router(
    "/api/v1/orders", "orders",
    service_provider(OrderQueryService, OrderRepository),
    service_provider(OrderCommandService, OrderRepository),
    OrderCreate, OrderUpdate,
)
add_stats_routes(orders, service_provider(OrderStatsService, OrderStatsRepository))

order_item_queries = service_provider(OrderItemQueryService, OrderItemRepository)
order_items = crud_router("/api/v1/order-items", "order items", order_item_queries)


@order_items.get("/order/{order_id}", response_model=list[OrderItemResponse])
async def find_order_items_by_order(order_id: int, service=Depends(order_item_queries)):
    return await service.find_by_order(order_id)


transaction_queries = service_provider(TransactionQueryService, TransactionRepository)
transactions = crud_router(
    "/api/v1/transactions", "transactions",
    transaction_queries,
    service_provider(TransactionCommandService, TransactionRepository),
    TransactionCreate, TransactionUpdate,
)
add_stats_routes(
    transactions,
    service_provider(TransactionSuccessStatsService, SuccessfulTransactionStatsRepository),
    path="/stats/success",
)
add_stats_routes(
    transactions,
    service_provider(TransactionFailedStatsService, FailedTransactionStatsRepository),
    path="/stats/failed",
)


@transactions.get("/merchant/{merchant_id}")
async def find_transactions_by_merchant(
    merchant_id: int, pagination: PaginationParams = Depends(), service=Depends(transaction_queries)
):
    envelope = await service.find_by_merchant(
        merchant_id, pagination.page, pagination.page_size, pagination.search
    )
    return paginated(envelope, pagination.page, pagination.page_size)


@transactions.get("/order/{order_id}", response_model=TransactionResponse)
async def find_transaction_by_order(order_id: int, service=Depends(transaction_queries)):
    return await service.find_by_order(order_id)


ROUTERS = (
    users, roles, categories, products, merchants, cashiers, orders, order_items, transactions,
)
