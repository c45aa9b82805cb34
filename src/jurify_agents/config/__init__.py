"""Configurações centralizadas do jurify_agents.

Uso típico:
    from jurify_agents.config import get_settings
"""

from jurify_agents.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
