from pos.errors import MERCHANT_ERRORS
from pos.schemas import MerchantResponse, MerchantResponseDeleteAt
from pos.services.base import CommandService, QueryService


class MerchantQueryService(QueryService):
    namespace = "merchant"
    errors = MERCHANT_ERRORS
    response_model = MerchantResponse
    response_deleted_model = MerchantResponseDeleteAt

    async def find_by_user_id(self, user_id: int) -> list[MerchantResponse]:
        """Every active merchant owned by *user_id*, cached at ``merchant:user_id:<id>``."""
        return await self._cached_item(
            "find_by_user_id",
            self.keys.by_relation_id("user_id", user_id),
            list[MerchantResponse],
            lambda: self.repository.find_where(user_id=user_id),
            lambda rows: [MerchantResponse.model_validate(row) for row in rows],
            self._prefix("FIND_BY_USER_ID"),
            self.errors.failed_find_by_relation,
            **{"user.id": user_id},
        )


class MerchantCommandService(CommandService):
    namespace = "merchant"
    errors = MERCHANT_ERRORS
    response_model = MerchantResponse
    response_deleted_model = MerchantResponseDeleteAt
