from pos.errors import CATEGORY_ERRORS
from pos.observability import MethodCall
from pos.schemas import CategoryResponse, CategoryResponseDeleteAt
from pos.services.base import CommandService, QueryService
from pos.utils import slugify


class CategoryQueryService(QueryService):
    namespace = "category"
    errors = CATEGORY_ERRORS
    response_model = CategoryResponse
    response_deleted_model = CategoryResponseDeleteAt


class CategoryCommandService(CommandService):
    namespace = "category"
    errors = CATEGORY_ERRORS
    response_model = CategoryResponse
    response_deleted_model = CategoryResponseDeleteAt

    async def create_values(self, call: MethodCall, request) -> dict:
        values = request.model_dump()
        values["slug_category"] = slugify(values["name"])
        return values

    async def update_values(self, call: MethodCall, request) -> dict:
        values = request.model_dump(exclude_unset=True)
        if values.get("name"):
            values["slug_category"] = slugify(values["name"])
        return values

    async def before_delete(self, call: MethodCall, row) -> None:
        await self._remove_image(call, row.image_category)
