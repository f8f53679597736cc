"""Starlette app factory with lifespan for rules service startup."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from starlette.applications import Starlette

from rulegraph.rules.config import RulesConfig, load_rules_config
from rulegraph.rules.service import RulesService
from rulegraph.server.routes_rules import routes as rules_routes
from rulegraph.server.routes_system import routes as system_routes


def create_app(
    config: RulesConfig | None = None,
    service: RulesService | None = None,
) -> Starlette:
    """Create a Starlette app serving one RulesService.

    The service is initialized during startup, so an invalid manifest
    aborts the server instead of surfacing at query time.
    """

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        rules_config = config or load_rules_config()
        rules_service = service or RulesService.from_config(rules_config)
        rules_service.initialize()
        app.state.rules_service = rules_service
        app.state.rules_root = rules_config.root_dir

        yield

    return Starlette(routes=system_routes + rules_routes, lifespan=lifespan)
