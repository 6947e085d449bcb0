"""Misskey OAuth authorization code flow with PKCE.

One route handles both halves of the flow:

1. A request without ``code`` stores a fresh PKCE verifier and redirects the
   browser to the Misskey authorization page.
2. The redirect back carries ``code``; the verifier is read back, the code is
   exchanged for an access token, the profile is fetched and the success
   callback decides the response.

Usage::

    handler = oauth_misskey_event_handler(
        {"client_id": "https://app.example.com/"},
        on_success=login_user,
        on_error=redirect_to_login,
    )
    app = Starlette(routes=[handler.route("/auth/misskey")])
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Union
from urllib.parse import urlsplit, urlunsplit

from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.routing import Route

from misskey_auth.config import MisskeyOAuthSettings, get_settings
from misskey_auth.context import FlowContext
from misskey_auth.models.config import FlowConfig, MisskeyOAuthOptions
from misskey_auth.models.errors import OAuth2Error, PKCEStateError
from misskey_auth.models.flow import AuthorizationRequest, AuthResult, FlowState
from misskey_auth.models.tokens import TokenRequest
from misskey_auth.primitives.pkce import PKCEManager
from misskey_auth.services.config import request_override, resolve_config
from misskey_auth.services.profile import MisskeyProfileFetcher
from misskey_auth.services.tokens import MisskeyTokenManager
from misskey_auth.services.verifier_store import (
    VERIFIER_TTL_SECONDS,
    CookieVerifierStore,
    VerifierStore,
)

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[FlowContext, AuthResult], Union[Any, Awaitable[Any]]]
ErrorCallback = Callable[[FlowContext, OAuth2Error], Union[Any, Awaitable[Any]]]


class MisskeyOAuthHandler:
    """Drives the redirect-out / callback-in flow for one Misskey client.

    Holds only read-only configuration; every request gets its own
    ``FlowContext``.
    """

    def __init__(
        self,
        options: MisskeyOAuthOptions | dict[str, Any] | None = None,
        *,
        on_success: SuccessCallback,
        on_error: ErrorCallback | None = None,
        settings: MisskeyOAuthSettings | None = None,
        verifier_store: VerifierStore | None = None,
        timeout: float = 30.0,
    ):
        """Initialize the handler.

        Args:
            options: Static configuration, overriding environment settings
            on_success: Called with the context and ``AuthResult``; its return
                value is the response
            on_error: Called with the context and the error; without it,
                errors are raised
            settings: Environment settings, read from the environment if omitted
            verifier_store: Where the PKCE verifier lives between requests
            timeout: HTTP request timeout for the outbound calls
        """
        if isinstance(options, dict):
            options = MisskeyOAuthOptions(**options)
        self.options = options
        self.on_success = on_success
        self.on_error = on_error
        self.environment_options = (settings or get_settings()).to_options()
        self.verifier_store = (
            verifier_store if verifier_store is not None else CookieVerifierStore()
        )

        self.pkce_manager = PKCEManager()
        self.token_manager = MisskeyTokenManager(timeout=timeout)
        self.profile_fetcher = MisskeyProfileFetcher(timeout=timeout)

    def route(self, path: str, name: str | None = None) -> Route:
        """Build a Starlette route serving both halves of the flow."""
        return Route(path, self.handle, methods=["GET"], name=name)

    def resolve(self, issuer: str | None) -> FlowConfig:
        return resolve_config(
            request_override(issuer), self.options, self.environment_options
        )

    async def handle(self, request: Request) -> Any:
        """Handle one inbound request on the callback route."""
        context = FlowContext(request)
        code = request.query_params.get("code")
        config = self.resolve(request.query_params.get("issuer"))

        try:
            if not code:
                return self._start_authorization(context, config)
            result = await self._complete_authorization(context, config, code)
        except OAuth2Error as error:
            return await self._fail(context, error)

        context.transition(FlowState.SUCCEEDED)
        logger.info(f"Misskey login succeeded for account {result.user.get('id')}")
        response = await _maybe_await(self.on_success(context, result))
        return self._finish(context, response)

    def _start_authorization(
        self, context: FlowContext, config: FlowConfig
    ) -> Response:
        """START -> REDIRECTING: store a verifier and redirect to Misskey."""
        client_id = config.require_client_id()
        config.require_issuer()
        authorization_url = config.require_authorization_url()

        pkce_params = self.pkce_manager.generate_parameters()
        self.verifier_store.put(
            context, pkce_params.code_verifier, VERIFIER_TTL_SECONDS
        )

        auth_request = AuthorizationRequest(
            authorization_endpoint=authorization_url,
            client_id=client_id,
            redirect_uri=self._redirect_uri(context, config),
            scope=config.scope_param,
            code_challenge=pkce_params.code_challenge,
            code_challenge_method=pkce_params.code_challenge_method,
            extra_params=config.authorization_params,
        )

        context.transition(FlowState.REDIRECTING)
        logger.info(f"Redirecting to Misskey authorization for client {client_id}")
        return context.apply(
            RedirectResponse(auth_request.build_authorization_url(), status_code=302)
        )

    async def _complete_authorization(
        self, context: FlowContext, config: FlowConfig, code: str
    ) -> AuthResult:
        """START -> EXCHANGING -> FETCHING_PROFILE."""
        context.transition(FlowState.EXCHANGING)
        client_id = config.require_client_id()

        code_verifier = self.verifier_store.get(context)
        if code_verifier is None:
            raise PKCEStateError("PKCE code verifier not found.")

        # The verifier is single-use whatever the outcome
        try:
            token_request = TokenRequest(
                token_endpoint=config.require_token_url(),
                code=code,
                redirect_uri=self._redirect_uri(context, config),
                client_id=client_id,
                code_verifier=code_verifier,
                scope=config.scope_param,
            )
            tokens = await self.token_manager.exchange_code_for_token(token_request)

            context.transition(FlowState.FETCHING_PROFILE)
            profile = await self.profile_fetcher.fetch_profile(
                config.profile_url, tokens.access_token, config.user_agent
            )
        finally:
            self.verifier_store.delete(context)

        host = None if config.uses_default_issuer else config.issuer_host
        return AuthResult(tokens=tokens.to_passthrough(), user=profile.decorated(host))

    async def _fail(self, context: FlowContext, error: OAuth2Error) -> Any:
        """Any state -> FAILED: hand the error to on_error, or raise it."""
        failed_in = context.state
        context.transition(FlowState.FAILED)
        logger.warning(
            f"Misskey login failed during {failed_in.value}: "
            f"{type(error).__name__} ({error.status_code}) {error.message}"
        )

        if self.on_error is None:
            self._attach_pending_cookies(context, error)
            raise error

        response = await _maybe_await(self.on_error(context, error))
        return self._finish(context, response)

    def _finish(self, context: FlowContext, response: Any) -> Any:
        if isinstance(response, Response):
            return context.apply(response)
        if context.has_pending_cookies:
            logger.warning(
                "Callback did not return a Response; "
                "verifier cookie changes were not sent"
            )
        return response

    def _attach_pending_cookies(self, context: FlowContext, error: OAuth2Error) -> None:
        """Carry queued cookie changes on an error that is about to be raised."""
        if not context.has_pending_cookies:
            return
        carrier = context.apply(Response())
        cookies = [
            value.decode("latin-1")
            for key, value in carrier.raw_headers
            if key == b"set-cookie"
        ]
        if cookies:
            error.headers = {**(error.headers or {}), "set-cookie": cookies[-1]}

    @staticmethod
    def _redirect_uri(context: FlowContext, config: FlowConfig) -> str:
        """Callback URL with any query string stripped."""
        if not config.redirect_url:
            return context.callback_url
        parts = urlsplit(config.redirect_url)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))

    async def close(self) -> None:
        """Close the HTTP clients."""
        await self.token_manager.close()
        await self.profile_fetcher.close()


def oauth_misskey_event_handler(
    options: MisskeyOAuthOptions | dict[str, Any] | None = None,
    *,
    on_success: SuccessCallback,
    on_error: ErrorCallback | None = None,
    **kwargs: Any,
) -> MisskeyOAuthHandler:
    """Create a Misskey OAuth handler; see ``MisskeyOAuthHandler``."""
    return MisskeyOAuthHandler(
        options, on_success=on_success, on_error=on_error, **kwargs
    )


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value
