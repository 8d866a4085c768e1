"""
Product service.

Besides the standard listings, products can be browsed per merchant and
per category name.  Writes check that the referenced category and
merchant exist before touching the product table, and a permanent delete
removes the product image from disk.
"""
from pos.error_handler import ErrorClassifier
from pos.errors import CATEGORY_ERRORS, MERCHANT_ERRORS, PRODUCT_ERRORS
from pos.observability import MethodCall
from pos.repositories import CategoryRepository, MerchantRepository
from pos.schemas import ProductResponse, ProductResponseDeleteAt
from pos.services.base import REPOSITORY_ERRORS, CommandService, QueryService
from pos.utils import slugify


class ProductQueryService(QueryService):
    namespace = "product"
    errors = PRODUCT_ERRORS
    response_model = ProductResponse
    response_deleted_model = ProductResponseDeleteAt

    async def find_by_merchant(self, merchant_id: int, page: int = 1, page_size: int = 10, search: str = ""):
        return await self._find_by_relation(
            "find_by_merchant", "merchant", "merchant_id", merchant_id, page, page_size, search
        )

    async def find_by_category(self, category_name: str, page: int = 1, page_size: int = 10, search: str = ""):
        return await self._find_by_relation(
            "find_by_category", "category", "category_id", category_name, page, page_size, search,
            fetch=lambda page, page_size: self.repository.find_by_category(
                category_name, page, page_size, search
            ),
        )


class ProductCommandService(CommandService):
    namespace = "product"
    errors = PRODUCT_ERRORS
    response_model = ProductResponse
    response_deleted_model = ProductResponseDeleteAt

    def __init__(
        self,
        *args,
        category_repository: CategoryRepository,
        merchant_repository: MerchantRepository,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.category_repository = category_repository
        self.merchant_repository = merchant_repository
        # Missing collaborators are reported with their own not-found codes.
        self._category_classifier = ErrorClassifier(CATEGORY_ERRORS)
        self._merchant_classifier = ErrorClassifier(MERCHANT_ERRORS)

    async def validate(self, call: MethodCall, request, entity_id: int | None = None) -> None:
        category_id = getattr(request, "category_id", None)
        if category_id is not None:
            try:
                await self.category_repository.find_by_id(category_id)
            except REPOSITORY_ERRORS as exc:
                raise self._category_classifier.repository(
                    exc, call, "FAILED_FIND_CATEGORY_BY_ID",
                    CATEGORY_ERRORS.failed_find_by_id, **{"category.id": category_id},
                ) from exc

        merchant_id = getattr(request, "merchant_id", None)
        if merchant_id is not None:
            try:
                await self.merchant_repository.find_by_id(merchant_id)
            except REPOSITORY_ERRORS as exc:
                raise self._merchant_classifier.repository(
                    exc, call, "FAILED_FIND_MERCHANT_BY_ID",
                    MERCHANT_ERRORS.failed_find_by_id, **{"merchant.id": merchant_id},
                ) from exc

    async def create_values(self, call: MethodCall, request) -> dict:
        values = request.model_dump()
        values["slug_product"] = slugify(values["name"])
        return values

    async def update_values(self, call: MethodCall, request) -> dict:
        values = request.model_dump(exclude_unset=True)
        if values.get("name"):
            values["slug_product"] = slugify(values["name"])
        return values

    async def before_delete(self, call: MethodCall, row) -> None:
        await self._remove_image(call, row.image_product)
