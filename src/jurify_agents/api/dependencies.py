"""Dependências injetadas nas rotas."""

from __future__ import annotations

from fastapi import Request

from jurify_agents.application.dispatcher import LeadDispatcher
from jurify_agents.application.stats import StatsAggregator
from jurify_agents.config.settings import Settings


def get_settings(request: Request) -> Settings:
    """Retorna settings da aplicação."""

    return request.app.state.settings


def get_dispatcher(request: Request) -> LeadDispatcher:
    return request.app.state.dispatcher


def get_stats(request: Request) -> StatsAggregator:
    return request.app.state.stats
