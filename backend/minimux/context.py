"""
minimux: Per-Request Context
============================

What:  The single argument every Handler receives.
How:   Built by the App's dispatch adapter immediately before the handler
       chain runs, discarded once the session has been closed.

Fields:
    session     AsyncSession owned by this request alone
    request     Raw Starlette request
    response    Response slot filled by respond() / error()
    params      Path parameters, name → string value
    request_id  Correlation ID (UUID4) for logs and the X-Request-ID header
"""

import logging
import uuid
from typing import Any, Dict, Optional, Type, TypeVar

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from minimux.exceptions import AppError, ErrorKind, InternalError, InvalidIDError, ValidationFailedError
from minimux.schemas import ErrorResponse

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# ErrorKind → HTTP status used by Context.error()
STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_ID: 400,
    ErrorKind.VALIDATION: 400,
    ErrorKind.INTERNAL: 500,
}


class Context:
    """Per-request bundle of session, request/response, route params and correlation ID."""

    def __init__(
        self,
        session: AsyncSession,
        request: Request,
        params: Optional[Dict[str, str]] = None,
        request_id: str = "",
    ):
        self.session = session
        self.request = request
        self.response: Optional[Response] = None
        self.params: Dict[str, str] = dict(params or {})
        self.request_id = request_id

    def __repr__(self) -> str:
        return (
            f"Context(method={self.request.method!r}, path={self.request.url.path!r}, "
            f"request_id={self.request_id!r})"
        )

    # ── Responses ─────────────────────────────────────────────────────────

    def respond(self, data: Any = None, status_code: int = 200) -> Response:
        """
        Write a JSON response.

        Pydantic models, dataclasses, UUIDs and datetimes are converted with
        jsonable_encoder. `None` with 204 (or any other status) produces an
        empty body.
        """
        if data is None:
            self.response = Response(status_code=status_code)
        else:
            self.response = JSONResponse(status_code=status_code, content=jsonable_encoder(data))
        return self.response

    def error(self, err: Exception) -> Response:
        """
        Translate an error into the standard JSON error response.

        AppError variants map through STATUS_BY_KIND. Anything else is treated
        as an internal error. Internal details are logged, never returned.
        """
        if not isinstance(err, AppError):
            logger.error("[%s] Unexpected error: %s", self.request_id, err, exc_info=err)
            err = InternalError()

        status_code = STATUS_BY_KIND[err.kind]
        details = err.context or None
        if err.kind is ErrorKind.INTERNAL:
            logger.error("[%s] Internal error: %s | Context: %s", self.request_id, err.message, err.context)
            details = None
        else:
            logger.warning("[%s] %s: %s", self.request_id, err.kind.value, err.message)

        body = ErrorResponse(
            error=err.kind.value,
            message=err.message,
            details=details,
            request_id=self.request_id,
        )
        return self.respond(body.model_dump(exclude_none=True), status_code=status_code)

    # ── Inputs ────────────────────────────────────────────────────────────

    def param(self, name: str) -> str:
        """Path parameter `name`; ValidationFailedError if the route has none."""
        try:
            return self.params[name]
        except KeyError:
            raise ValidationFailedError(
                message=f"Missing path parameter '{name}'", field=name
            ) from None

    def uuid_param(self, name: str) -> uuid.UUID:
        """Path parameter `name` parsed as a UUID; InvalidIDError if malformed."""
        raw = self.param(name)
        try:
            return uuid.UUID(raw)
        except ValueError:
            raise InvalidIDError(value=raw, context={"param": name}) from None

    async def decode(self, model: Type[ModelT]) -> ModelT:
        """Parse and validate the JSON request body into `model`."""
        body = await self.request.body()
        try:
            return model.model_validate_json(body or b"{}")
        except PydanticValidationError as exc:
            errors = [
                {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
                for e in exc.errors()
            ]
            raise ValidationFailedError(errors=errors) from None
