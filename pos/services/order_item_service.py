"""
Order item queries.

Order items are written together with their order, so this entity only
has a read side.
"""
from pos.errors import ORDER_ITEM_ERRORS
from pos.schemas import OrderItemResponse, OrderItemResponseDeleteAt
from pos.services.base import QueryService


class OrderItemQueryService(QueryService):
    namespace = "order_item"
    errors = ORDER_ITEM_ERRORS
    response_model = OrderItemResponse
    response_deleted_model = OrderItemResponseDeleteAt

    async def find_by_order(self, order_id: int) -> list[OrderItemResponse]:
        return await self._cached_item(
            "find_by_order",
            self.keys.by_relation_id("order", order_id),
            list[OrderItemResponse],
            lambda: self.repository.find_where(order_id=order_id),
            lambda rows: [OrderItemResponse.model_validate(row) for row in rows],
            self._prefix("FIND_BY_ORDER"),
            self.errors.failed_find_by_relation,
            **{"order.id": order_id},
        )
