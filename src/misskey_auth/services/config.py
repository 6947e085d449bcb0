"""Layered configuration resolution for the Misskey OAuth flow.

Precedence, highest first: per-request override (the ``issuer`` query
parameter), static options given to the handler, environment settings, and
built-in defaults.
"""

from __future__ import annotations

import logging
from dataclasses import fields

from misskey_auth.models.config import DEFAULT_OPTIONS, FlowConfig, MisskeyOAuthOptions

logger = logging.getLogger(__name__)


def merge_options(*layers: MisskeyOAuthOptions | None) -> MisskeyOAuthOptions:
    """Merge option layers field by field, first layer wins.

    A field is taken from the first layer where it is not ``None``.
    ``authorization_params`` is merged key by key, with earlier layers
    winning per key.
    """
    present = [layer for layer in layers if layer is not None]
    merged = {}

    for f in fields(MisskeyOAuthOptions):
        if f.name == "authorization_params":
            continue
        merged[f.name] = next(
            (
                getattr(layer, f.name)
                for layer in present
                if getattr(layer, f.name) is not None
            ),
            None,
        )

    params: dict[str, str] | None = None
    for layer in reversed(present):
        if layer.authorization_params is not None:
            params = {**(params or {}), **layer.authorization_params}
    merged["authorization_params"] = params

    return MisskeyOAuthOptions(**merged)


def request_override(issuer: str | None) -> MisskeyOAuthOptions | None:
    """Build the per-request layer from the inbound ``issuer`` parameter."""
    if issuer is None or issuer == "":
        return None
    return MisskeyOAuthOptions(issuer=issuer)


def resolve_config(
    request_options: MisskeyOAuthOptions | None,
    static_options: MisskeyOAuthOptions | None,
    environment_options: MisskeyOAuthOptions | None,
    defaults: MisskeyOAuthOptions = DEFAULT_OPTIONS,
) -> FlowConfig:
    """Resolve the effective configuration for one flow instance.

    Does not validate; callers use ``FlowConfig.require_*`` for the fields
    their phase needs.
    """
    options = merge_options(
        request_options, static_options, environment_options, defaults
    )

    issuer = options.issuer.rstrip("/") if options.issuer else None
    authorization_url = options.authorization_url
    token_url = options.token_url
    if issuer:
        authorization_url = authorization_url or f"{issuer}/oauth/authorize"
        token_url = token_url or f"{issuer}/oauth/token"

    config = FlowConfig(
        client_id=options.client_id,
        issuer=issuer,
        scope=tuple(options.scope or ()),
        email_required=bool(options.email_required),
        profile_required=bool(options.profile_required),
        authorization_url=authorization_url,
        token_url=token_url,
        authorization_params=dict(options.authorization_params or {}),
        redirect_url=options.redirect_url,
        user_agent=options.user_agent or defaults.user_agent or "misskey-auth",
    )

    logger.debug(
        f"Resolved Misskey OAuth config: issuer={config.issuer}, "
        f"client_id={config.client_id}, scope={config.scope_param!r}"
    )
    return config
