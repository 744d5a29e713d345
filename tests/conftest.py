"""Shared fixtures for tablewire tests."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from tablewire.codecs import build_default_registry
from tablewire.config import PlanningConfig
from tablewire.planning import Planner, ScanPlanService, TaskResolver
from tablewire.registry import CodecRegistry

from tests.utils import ServiceFactory


@pytest.fixture
def registry() -> CodecRegistry:
    """A fresh registry holding every built-in codec."""
    return build_default_registry()


@pytest.fixture
def msgpack_registry() -> CodecRegistry:
    return build_default_registry(body_format="msgpack")


@pytest.fixture
async def make_service() -> AsyncIterator[ServiceFactory]:
    """Create scan plan services and close them after the test."""
    services: list[ScanPlanService] = []

    def factory(
        planner: Planner,
        *,
        task_resolver: TaskResolver | None = None,
        **planning: float | str,
    ) -> ScanPlanService:
        service = ScanPlanService(
            planner, config=PlanningConfig(**planning), task_resolver=task_resolver
        )
        services.append(service)
        return service

    yield factory
    for service in services:
        await service.close()
