"""
Unit tests for the service entry points.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from gateway.src import main as gateway_main
from resolver.src import main as resolver_main


class TestMain:
    """Test that main() serves the importable application"""

    @pytest.mark.parametrize("module", [gateway_main, resolver_main])
    def test_serves_module_level_app(self, module, monkeypatch):
        run_service = AsyncMock()
        monkeypatch.setattr(module, "run_service", run_service)
        monkeypatch.setattr(module, "configure_logging", MagicMock())

        module.main()

        run_service.assert_awaited_once()
        served_app = run_service.await_args.args[0]
        assert served_app is module.app
