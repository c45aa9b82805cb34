"""Testes unitários para infra/secrets.

Valida providers de secrets e factory function.
"""

from __future__ import annotations

import os
from unittest.mock import MagicMock, patch

import pytest

from jurify_agents.infra.secrets import (
    EnvSecretProvider,
    SecretManagerProvider,
    create_secret_provider,
)


class TestEnvSecretProvider:
    """Testes para EnvSecretProvider."""

    def test_get_secret_returns_env_value(self) -> None:
        with patch.dict(os.environ, {"TEST_SECRET": "test_value"}):
            assert EnvSecretProvider().get_secret("TEST_SECRET") == "test_value"

    def test_get_secret_raises_when_not_found(self) -> None:
        provider = EnvSecretProvider()
        with (
            patch.dict(os.environ, {}, clear=True),
            pytest.raises(RuntimeError, match="não encontrado"),
        ):
            provider.get_secret("NONEXISTENT_SECRET")

    def test_secret_exists(self) -> None:
        provider = EnvSecretProvider()
        with patch.dict(os.environ, {"PRESENT_SECRET": "value"}, clear=True):
            assert provider.secret_exists("PRESENT_SECRET") is True
            assert provider.secret_exists("ABSENT_SECRET") is False

    def test_version_parameter_is_ignored(self) -> None:
        """Env vars não têm versão."""
        with patch.dict(os.environ, {"VERSIONED_SECRET": "value"}):
            provider = EnvSecretProvider()
            assert provider.get_secret("VERSIONED_SECRET", "v1") == "value"
            assert provider.get_secret("VERSIONED_SECRET", "latest") == "value"


class TestSecretManagerProvider:
    """Testes para SecretManagerProvider (cliente mockado)."""

    def test_init_uses_env_project_id_if_not_provided(self) -> None:
        with patch.dict(os.environ, {"GOOGLE_CLOUD_PROJECT": "my-project"}):
            assert SecretManagerProvider()._project_id == "my-project"

    def test_get_secret_reads_version_path(self) -> None:
        client = MagicMock()
        client.access_secret_version.return_value.payload.data = b"sk-123"
        provider = SecretManagerProvider(project_id="proj", client=client)

        assert provider.get_secret("OPENAI_API_KEY") == "sk-123"
        client.access_secret_version.assert_called_once_with(
            name="projects/proj/secrets/OPENAI_API_KEY/versions/latest"
        )

    def test_get_secret_wraps_client_error(self) -> None:
        client = MagicMock()
        client.access_secret_version.side_effect = PermissionError("denied")
        provider = SecretManagerProvider(project_id="proj", client=client)

        with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
            provider.get_secret("OPENAI_API_KEY")

    def test_missing_project_id_raises(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            provider = SecretManagerProvider(client=MagicMock())
            with pytest.raises(RuntimeError, match="project_id"):
                provider.get_secret("ANY")

    def test_secret_exists_false_on_client_error(self) -> None:
        client = MagicMock()
        client.get_secret.side_effect = LookupError("not found")
        provider = SecretManagerProvider(project_id="proj", client=client)

        assert provider.secret_exists("MISSING") is False


class TestCreateSecretProvider:
    def test_env_backend(self) -> None:
        assert isinstance(create_secret_provider("env"), EnvSecretProvider)

    def test_secret_manager_backend(self) -> None:
        provider = create_secret_provider("secret_manager", project_id="proj")
        assert isinstance(provider, SecretManagerProvider)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="não reconhecido"):
            create_secret_provider("vault")
