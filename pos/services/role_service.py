from pos.errors import ROLE_ERRORS
from pos.schemas import RoleResponse, RoleResponseDeleteAt
from pos.services.base import CommandService, QueryService


class RoleQueryService(QueryService):
    namespace = "role"
    errors = ROLE_ERRORS
    response_model = RoleResponse
    response_deleted_model = RoleResponseDeleteAt


class RoleCommandService(CommandService):
    namespace = "role"
    errors = ROLE_ERRORS
    response_model = RoleResponse
    response_deleted_model = RoleResponseDeleteAt
