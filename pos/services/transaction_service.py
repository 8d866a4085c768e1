from pos.errors import TRANSACTION_ERRORS
from pos.schemas import TransactionResponse, TransactionResponseDeleteAt
from pos.services.base import CommandService, QueryService


class TransactionQueryService(QueryService):
    namespace = "transaction"
    errors = TRANSACTION_ERRORS
    response_model = TransactionResponse
    response_deleted_model = TransactionResponseDeleteAt

    async def find_by_merchant(self, merchant_id: int, page: int = 1, page_size: int = 10, search: str = ""):
        return await self._find_by_relation(
            "find_by_merchant", "merchant", "merchant_id", merchant_id, page, page_size, search
        )

    async def find_by_order(self, order_id: int) -> TransactionResponse:
        return await self._cached_item(
            "find_by_order",
            self.keys.by_relation_id("order", order_id),
            TransactionResponse,
            lambda: self.repository.find_by_order(order_id),
            TransactionResponse.model_validate,
            self._prefix("FIND_BY_ORDER"),
            self.errors.failed_find_by_relation,
            **{"order.id": order_id},
        )


class TransactionCommandService(CommandService):
    namespace = "transaction"
    errors = TRANSACTION_ERRORS
    response_model = TransactionResponse
    response_deleted_model = TransactionResponseDeleteAt
