from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from starlette.requests import Request
from starlette.responses import Response

from misskey_auth.models.flow import FlowState


@dataclass
class FlowContext:
    """Per-request context for one authorization flow instance.

    Passed to the success and error callbacks. Cookie writes are queued here
    and applied to whatever response the flow ends up returning.
    """

    request: Request
    state: FlowState = FlowState.START
    _response_hooks: list[Callable[[Response], None]] = field(
        default_factory=list, repr=False
    )

    # ================================
    # Request Information
    # ================================

    @property
    def callback_url(self) -> str:
        """Request URL with the query string stripped."""
        url = self.request.url
        return f"{url.scheme}://{url.netloc}{url.path}"

    @property
    def callback_path(self) -> str:
        return self.request.url.path

    # ================================
    # Cookie Helpers
    # ================================

    def get_cookie(self, key: str) -> str | None:
        return self.request.cookies.get(key)

    def set_cookie(self, key: str, value: str, **kwargs: Any) -> None:
        self._response_hooks.append(
            lambda response: response.set_cookie(key, value, **kwargs)
        )

    def delete_cookie(self, key: str, **kwargs: Any) -> None:
        self._response_hooks.append(
            lambda response: response.delete_cookie(key, **kwargs)
        )

    def apply(self, response: Response) -> Response:
        """Apply queued cookie operations to the outgoing response."""
        for hook in self._response_hooks:
            hook(response)
        self._response_hooks.clear()
        return response

    @property
    def has_pending_cookies(self) -> bool:
        return bool(self._response_hooks)

    def transition(self, state: FlowState) -> None:
        self.state = state

    def __str__(self) -> str:
        return (
            f"FlowContext({self.request.method} {self.callback_path}, "
            f"{self.state.value})"
        )
