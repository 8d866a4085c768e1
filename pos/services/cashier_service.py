from pos.errors import CASHIER_ERRORS
from pos.schemas import CashierResponse, CashierResponseDeleteAt
from pos.services.base import CommandService, QueryService


class CashierQueryService(QueryService):
    namespace = "cashier"
    errors = CASHIER_ERRORS
    response_model = CashierResponse
    response_deleted_model = CashierResponseDeleteAt

    async def find_by_merchant(self, merchant_id: int, page: int = 1, page_size: int = 10, search: str = ""):
        return await self._find_by_relation(
            "find_by_merchant", "merchant", "merchant_id", merchant_id, page, page_size, search
        )


class CashierCommandService(CommandService):
    namespace = "cashier"
    errors = CASHIER_ERRORS
    response_model = CashierResponse
    response_deleted_model = CashierResponseDeleteAt
