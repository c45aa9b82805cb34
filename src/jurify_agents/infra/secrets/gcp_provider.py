from __future__ import annotations

import logging
import os
from typing import Any

from jurify_agents.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class SecretManagerProvider:
    """Provider para Google Cloud Secret Manager.

    Usa Application Default Credentials; o cliente é criado sob demanda.
    """

    def __init__(self, project_id: str | None = None, client: Any | None = None) -> None:
        self._project_id = project_id or os.getenv("GOOGLE_CLOUD_PROJECT")
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            from google.cloud import secretmanager

            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def _secret_path(self, name: str) -> str:
        if not self._project_id:
            raise RuntimeError(
                "project_id não configurado. Defina GOOGLE_CLOUD_PROJECT "
                "ou passe project_id ao construtor."
            )
        return f"projects/{self._project_id}/secrets/{name}"

    def get_secret(self, name: str, version: str = "latest") -> str:
        client = self._get_client()
        version_path = f"{self._secret_path(name)}/versions/{version}"

        try:
            response = client.access_secret_version(name=version_path)
            payload = response.payload.data.decode("utf-8")
        except Exception as e:
            logger.error(
                "Falha ao acessar Secret Manager",
                extra={"secret_name": name, "version": version, "error_type": type(e).__name__},
            )
            raise RuntimeError(f"Não foi possível acessar secret {name}") from e

        logger.info(
            "Secret lido do Secret Manager",
            extra={"secret_name": name, "version": version, "provider": "secret_manager"},
        )
        return payload

    def secret_exists(self, name: str) -> bool:
        client = self._get_client()
        try:
            client.get_secret(name=self._secret_path(name))
            return True
        except Exception:  # noqa: BLE001 - NotFound/PermissionDenied equivalem a ausente
            return False
