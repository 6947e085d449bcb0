"""Tests for layered configuration resolution.

Covers:
- Precedence between request override, static options, environment and defaults
- Key-by-key merging of extra authorization parameters
- Derived endpoint URLs and scope policy
- Required-field validation
"""

import pytest

from misskey_auth.config import MisskeyOAuthSettings
from misskey_auth.models.config import (
    DEFAULT_ISSUER,
    FlowConfig,
    MisskeyOAuthOptions,
)
from misskey_auth.models.errors import ConfigurationError
from misskey_auth.services.config import (
    merge_options,
    request_override,
    resolve_config,
)


class TestResolvePrecedence:
    def test_defaults_apply_when_no_layer_sets_a_field(self):
        # Act
        config = resolve_config(None, None, None)

        # Assert
        assert config.issuer == DEFAULT_ISSUER
        assert config.client_id is None
        assert config.profile_required is True
        assert config.email_required is False
        assert config.scope == ()
        assert config.authorization_params == {}
        assert config.user_agent == "misskey-auth"

    def test_request_issuer_beats_static_and_environment(self):
        # Arrange
        static = MisskeyOAuthOptions(issuer="https://static.example")
        environment = MisskeyOAuthOptions(
            issuer="https://env.example", client_id="env-client"
        )

        # Act
        config = resolve_config(
            request_override("https://request.example"), static, environment
        )

        # Assert
        assert config.issuer == "https://request.example"
        assert config.client_id == "env-client"

    def test_static_beats_environment(self):
        # Arrange
        static = MisskeyOAuthOptions(client_id="static-client", scope=["write:notes"])
        environment = MisskeyOAuthOptions(client_id="env-client", scope=["read:drive"])

        # Act
        config = resolve_config(None, static, environment)

        # Assert
        assert config.client_id == "static-client"
        assert config.scope == ("write:notes",)

    def test_false_overrides_lower_layers(self):
        # Arrange
        static = MisskeyOAuthOptions(profile_required=False)

        # Act
        config = resolve_config(None, static, None)

        # Assert
        assert config.profile_required is False

    def test_empty_request_issuer_is_ignored(self):
        assert request_override("") is None
        assert request_override(None) is None

    def test_authorization_params_merge_key_by_key(self):
        # Arrange
        static = MisskeyOAuthOptions(authorization_params={"a": "static", "b": "static"})
        environment = MisskeyOAuthOptions(authorization_params={"b": "env", "c": "env"})

        # Act
        merged = merge_options(None, static, environment)

        # Assert
        assert merged.authorization_params == {"a": "static", "b": "static", "c": "env"}


class TestDerivedFields:
    def test_endpoint_urls_derive_from_issuer(self):
        # Act
        config = resolve_config(
            request_override("https://example.social/"), None, None
        )

        # Assert
        assert config.issuer == "https://example.social"
        assert config.authorization_url == "https://example.social/oauth/authorize"
        assert config.token_url == "https://example.social/oauth/token"
        assert config.profile_url == "https://example.social/api/i"

    def test_explicit_endpoint_urls_are_kept(self):
        # Arrange
        static = MisskeyOAuthOptions(
            authorization_url="https://auth.example/authorize",
            token_url="https://auth.example/token",
        )

        # Act
        config = resolve_config(None, static, None)

        # Assert
        assert config.authorization_url == "https://auth.example/authorize"
        assert config.token_url == "https://auth.example/token"

    def test_issuer_host(self):
        config = resolve_config(request_override("https://example.social"), None, None)

        assert config.issuer_host == "example.social"
        assert not config.uses_default_issuer

    def test_issuer_host_drops_userinfo_and_keeps_port(self):
        config = resolve_config(
            request_override("https://u:p@example.social:8443"), None, None
        )

        assert config.issuer_host == "example.social:8443"

    def test_issuer_host_drops_default_port(self):
        config = resolve_config(
            request_override("https://example.social:443"), None, None
        )

        assert config.issuer_host == "example.social"


class TestScopePolicy:
    def test_profile_required_adds_baseline_scope(self):
        config = FlowConfig(client_id="abc", issuer=DEFAULT_ISSUER, scope=("write:notes",))

        assert config.effective_scope == ("write:notes", "read:account")
        assert config.scope_param == "write:notes read:account"

    def test_email_required_adds_baseline_scope(self):
        config = FlowConfig(
            client_id="abc",
            issuer=DEFAULT_ISSUER,
            email_required=True,
            profile_required=False,
        )

        assert config.effective_scope == ("read:account",)

    def test_baseline_scope_not_added_when_nothing_required(self):
        config = FlowConfig(
            client_id="abc",
            issuer=DEFAULT_ISSUER,
            scope=("write:notes",),
            profile_required=False,
        )

        assert config.effective_scope == ("write:notes",)

    def test_scope_is_deduplicated_in_order(self):
        config = FlowConfig(
            client_id="abc",
            issuer=DEFAULT_ISSUER,
            scope=("read:account", "write:notes", "read:account"),
        )

        assert config.effective_scope == ("read:account", "write:notes")

    def test_resolving_does_not_mutate_caller_scope(self):
        # Arrange
        static = MisskeyOAuthOptions(scope=["write:notes"])

        # Act
        resolve_config(None, static, None).effective_scope

        # Assert
        assert static.scope == ["write:notes"]


class TestRequiredFields:
    def test_missing_client_id_is_configuration_error(self):
        config = resolve_config(None, None, None)

        with pytest.raises(ConfigurationError) as exc_info:
            config.require_client_id()

        assert exc_info.value.status_code == 500

    def test_empty_client_id_is_configuration_error(self):
        config = resolve_config(None, MisskeyOAuthOptions(client_id=""), None)

        with pytest.raises(ConfigurationError):
            config.require_client_id()

    def test_missing_issuer_is_configuration_error(self):
        defaults = MisskeyOAuthOptions()
        config = resolve_config(None, MisskeyOAuthOptions(client_id="abc"), None, defaults)

        assert config.token_url is None
        with pytest.raises(ConfigurationError):
            config.require_issuer()
        with pytest.raises(ConfigurationError):
            config.require_token_url()


class TestEnvironmentSettings:
    def test_settings_read_prefixed_environment(self, monkeypatch):
        # Arrange
        monkeypatch.setenv("OAUTH_MISSKEY_CLIENT_ID", "https://app.example.com/")
        monkeypatch.setenv("OAUTH_MISSKEY_ISSUER", "https://env.example")
        monkeypatch.setenv("OAUTH_MISSKEY_SCOPE", '["read:account", "write:notes"]')

        # Act
        options = MisskeyOAuthSettings(_env_file=None).to_options()

        # Assert
        assert options.client_id == "https://app.example.com/"
        assert options.issuer == "https://env.example"
        assert options.scope == ["read:account", "write:notes"]
        assert options.profile_required is None

    def test_blank_issuer_in_environment_is_unset(self, monkeypatch):
        monkeypatch.setenv("OAUTH_MISSKEY_ISSUER", "  ")

        options = MisskeyOAuthSettings(_env_file=None).to_options()

        assert options.issuer is None
