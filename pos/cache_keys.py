"""
Cache key templates.

Every template includes each parameter that changes the result set and
nothing else.  Free-text components (search terms, names) are
percent-encoded so that a ``:`` inside a search string can never make two
different parameter tuples collapse onto the same key; plain search terms
such as ``shoe`` are unaffected.
"""
from urllib.parse import quote


def _text(value: str | None) -> str:
    return quote(value or "", safe="")


class CacheKeys:
    """Key builder for one entity namespace, e.g. ``CacheKeys("product")``."""

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace

    @staticmethod
    def _page(page: int, page_size: int, search: str) -> str:
        return f"page:{page}:pageSize:{page_size}:search:{_text(search)}"

    def all(self, page: int, page_size: int, search: str) -> str:
        return f"{self.namespace}:all:" + self._page(page, page_size, search)

    def active(self, page: int, page_size: int, search: str) -> str:
        return f"{self.namespace}:active:" + self._page(page, page_size, search)

    def trashed(self, page: int, page_size: int, search: str) -> str:
        return f"{self.namespace}:trashed:" + self._page(page, page_size, search)

    def by_id(self, entity_id: int) -> str:
        return f"{self.namespace}:id:{entity_id}"

    def by_relation(
        self, relation: str, value: int | str, page: int, page_size: int, search: str
    ) -> str:
        """Paginated listing filtered by a foreign key, e.g. ``product:merchant:3:page:...``."""
        return f"{self.namespace}:{relation}:{_text(str(value))}:" + self._page(
            page, page_size, search
        )

    def by_relation_id(self, relation: str, value: int | str) -> str:
        """Unpaginated lookup by a foreign key, e.g. ``transaction:order:12``."""
        return f"{self.namespace}:{relation}:{_text(str(value))}"



class StatsKeys:
    """
    Key builder for the sales statistics of one namespace.

    ``StatsKeys("cashier").monthly_total(2024, 3, "merchant", 1)`` is
    ``cashier:stats:month:3:year:2024:merchant:1``.  An *outcome* (e.g.
    ``"success"``) follows ``stats`` so each outcome has its own entries.
    """

    def __init__(self, namespace: str, outcome: str | None = None) -> None:
        self.prefix = f"{namespace}:stats" + (f":{outcome}" if outcome else "")

    @staticmethod
    def _scoped(key: str, scope: str | None, scope_id: int | None) -> str:
        return key if scope is None else f"{key}:{scope}:{scope_id}"

    def monthly_total(
        self, year: int, month: int, scope: str | None = None, scope_id: int | None = None
    ) -> str:
        return self._scoped(f"{self.prefix}:month:{month}:year:{year}", scope, scope_id)

    def yearly_total(self, year: int, scope: str | None = None, scope_id: int | None = None) -> str:
        return self._scoped(f"{self.prefix}:year:{year}", scope, scope_id)

    def monthly(self, year: int, scope: str | None = None, scope_id: int | None = None) -> str:
        return self._scoped(f"{self.prefix}:monthly:year:{year}", scope, scope_id)

    def yearly(self, year: int, scope: str | None = None, scope_id: int | None = None) -> str:
        return self._scoped(f"{self.prefix}:yearly:year:{year}", scope, scope_id)


# Auth / identity keys live in their own namespaces.

def login_key(email: str) -> str:
    return f"auth:login:{_text(email)}"


def refresh_token_key(token: str) -> str:
    return f"identity:refresh_token:{token}"


def user_info_key(user_id: int) -> str:
    return f"identity:user_info:{user_id}"


def reset_token_key(token: str) -> str:
    return f"auth:reset_token:{_text(token)}"
