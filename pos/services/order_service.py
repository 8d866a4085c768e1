"""
Order service.

Only the order record itself is managed here; order items and the stock
adjustment that accompanies placing an order are handled elsewhere.
"""
from pos.errors import ORDER_ERRORS
from pos.schemas import OrderResponse, OrderResponseDeleteAt
from pos.services.base import CommandService, QueryService


class OrderQueryService(QueryService):
    namespace = "order"
    errors = ORDER_ERRORS
    response_model = OrderResponse
    response_deleted_model = OrderResponseDeleteAt


class OrderCommandService(CommandService):
    namespace = "order"
    errors = ORDER_ERRORS
    response_model = OrderResponse
    response_deleted_model = OrderResponseDeleteAt
