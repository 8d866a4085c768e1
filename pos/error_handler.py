"""
Error classification pipeline.

Every failure that leaves a service goes through exactly one method of
``ErrorClassifier``.  Each method:

1. mints a trace id from the caller-supplied prefix,
2. writes one ERROR log line carrying the trace id, method and fields,
3. records the exception on the span, stamps the same attributes on it
   and sets its status to ERROR,
4. writes ``<method>_error_<category>`` into ``call.status`` (used as the
   metrics label),
5. returns a ``DomainError``: the supplied default or, for the repository
   and pagination categories only, the entity's not-found spec when the
   underlying error is a ``NotFoundError``.

Callers raise the result ``from`` the original exception.
"""
import logging
import re

from opentelemetry.trace import Status, StatusCode

from pos.errors import DomainError, EntityErrors, ErrorSpec, NotFoundError
from pos.observability import MethodCall, generate_trace_id

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY_RE = re.compile(r"([a-z0-9])([A-Z])")
_NON_WORD_RE = re.compile(r"[^a-z0-9]+")


def to_snake_case(value: str) -> str:
    value = _CAMEL_BOUNDARY_RE.sub(r"\1_\2", value).lower()
    return _NON_WORD_RE.sub("_", value).strip("_")


class ErrorClassifier:
    def __init__(self, errors: EntityErrors | None = None) -> None:
        self.errors = errors

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def repository(
        self,
        err: BaseException,
        call: MethodCall,
        trace_prefix: str,
        default: ErrorSpec,
        **fields,
    ) -> DomainError:
        return self._classify(
            err, call, trace_prefix, "Repository error", default, fields, not_found=True
        )

    def pagination(
        self,
        err: BaseException,
        call: MethodCall,
        trace_prefix: str,
        default: ErrorSpec,
        page: int,
        page_size: int,
        search: str,
        **fields,
    ) -> DomainError:
        fields.update(page=page, page_size=page_size, search=search)
        return self._classify(
            err, call, trace_prefix, "Repository error", default, fields, not_found=True
        )

    def external_send(
        self,
        err: BaseException,
        call: MethodCall,
        trace_prefix: str,
        default: ErrorSpec,
        topic: str,
        **fields,
    ) -> DomainError:
        fields["topic"] = topic
        return self._classify(err, call, trace_prefix, "Kafka send error", default, fields)

    def file(
        self,
        err: BaseException,
        call: MethodCall,
        trace_prefix: str,
        default: ErrorSpec,
        path: str,
        **fields,
    ) -> DomainError:
        fields["file.path"] = path
        return self._classify(err, call, trace_prefix, "File error", default, fields)

    def credential(
        self,
        err: BaseException,
        call: MethodCall,
        trace_prefix: str,
        default: ErrorSpec,
        operation: str,
        **fields,
    ) -> DomainError:
        """*operation* is one of ``"hash"``, ``"compare"`` or ``"not match"``."""
        fields["password.operation"] = operation
        return self._classify(
            err, call, trace_prefix, f"Password {operation} error", default, fields
        )

    def token(
        self,
        err: BaseException,
        call: MethodCall,
        trace_prefix: str,
        default: ErrorSpec,
        operation: str,
        **fields,
    ) -> DomainError:
        fields["token.operation"] = operation
        return self._classify(
            err, call, trace_prefix, f"Token {operation} error", default, fields
        )

    # ------------------------------------------------------------------
    # Shared template
    # ------------------------------------------------------------------

    def _resolve(self, err: BaseException, default: ErrorSpec) -> ErrorSpec:
        if isinstance(err, NotFoundError) and self.errors is not None:
            return self.errors.not_found
        return default

    def _classify(
        self,
        err: BaseException,
        call: MethodCall,
        trace_prefix: str,
        category: str,
        default: ErrorSpec,
        fields: dict,
        not_found: bool = False,
    ) -> DomainError:
        trace_id = generate_trace_id(trace_prefix)
        log_message = f"{category} in {call.method}"

        log_fields = {
            **fields,
            "method": call.method,
            "error": str(err),
            "trace.id": trace_id,
        }
        logger.error(log_message, extra={"fields": log_fields})

        span = call.span
        span.set_attribute("trace.id", trace_id)
        for key, value in fields.items():
            if isinstance(value, (str, bool, int, float)):
                span.set_attribute(key, value)
        span.record_exception(err)
        span.add_event(log_message)
        span.set_status(Status(StatusCode.ERROR, log_message))

        call.status = f"{to_snake_case(call.method)}_error_{to_snake_case(category)}"

        spec = self._resolve(err, default) if not_found else default
        return DomainError(spec, trace_id)
