"""Testes para o helper de latência `timed`."""

from __future__ import annotations

import time
from unittest.mock import patch

import pytest

from jurify_agents.observability.timing import timed


class TestTimedContextManager:
    def test_logs_component_and_elapsed(self):
        with patch("jurify_agents.observability.timing.logger") as mock_logger:
            with timed("reply_generation"):
                time.sleep(0.01)

            mock_logger.info.assert_called_once()
            args, kwargs = mock_logger.info.call_args
            assert args[0] == "component_latency"
            assert kwargs["extra"]["component"] == "reply_generation"
            assert kwargs["extra"]["elapsed_ms"] >= 10.0

    def test_logs_on_exception(self):
        """Latência é registrada mesmo se o bloco falhar."""
        with patch("jurify_agents.observability.timing.logger") as mock_logger:
            with pytest.raises(ValueError), timed("session_commit"):
                raise ValueError("test error")

            mock_logger.info.assert_called_once()
