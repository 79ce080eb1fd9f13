"""Responses returned by REST functions, and the error they may raise."""

from __future__ import annotations

import json
from dataclasses import dataclass

CATEGORY_ERROR = "error"
CATEGORY_VALIDATION = "validation"


@dataclass(frozen=True, slots=True)
class RestResponse:
    """A JSON body with its status and content type."""

    body: str
    status: int = 200
    charset: str = "utf-8"
    content_type: str = "application/json"

    def headers(self) -> list[tuple[str, str]]:
        return [("content-type", f"{self.content_type}; charset={self.charset}")]


class RestServiceError(Exception):
    """Raised by a REST function to return a JSON error payload.

    Only the category, code, message and redirect are serialized. The internal
    message and the chained cause are meant for logs and never leave the
    server.

    If no status is given, `validation` errors map to 400 Bad Request and every
    other category to 500 Internal Server Error.
    """

    def __init__(
        self,
        message: str,
        *,
        category: str = CATEGORY_ERROR,
        code: str = "",
        redirect: str = "",
        internal_message: str = "",
        status: int | None = None,
    ) -> None:
        self.category = category.strip() or CATEGORY_ERROR
        self.code = code.strip()
        self.message = message.strip()
        self.redirect = redirect.strip()
        self.internal_message = internal_message.strip()
        if status is None or status <= 0:
            status = 400 if self.category == CATEGORY_VALIDATION else 500
        self.status = status
        super().__init__(f"{status}: {self.internal_message or self.message}")

    @property
    def is_validation(self) -> bool:
        return self.category == CATEGORY_VALIDATION

    def to_json(self) -> str:
        return json.dumps(
            {
                "errorCategory": self.category,
                "errorCode": self.code,
                "errorMessage": self.message,
                "redirect": self.redirect,
            }
        )

    def to_response(self) -> RestResponse:
        return RestResponse(self.to_json(), status=self.status)
