"""
Integration Test Configuration

These tests drive a real systemd over the system bus. They need root and
a host booted with systemd, and are skipped otherwise.
"""

import asyncio
import os
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from unit_manager.application.services.unit_manager import UnitManager
from unit_manager.domain.errors import UnitManagerError
from unit_manager.infrastructure.config.settings import Settings
from unit_manager.infrastructure.dbus.systemd_client import SystemdBusClient


# ============== Configuration ==============

FIXTURES_DIR = Path(__file__).parent / "fixtures"
RUNTIME_UNIT_DIR = Path("/run/systemd/system")

UNIT_DUMMY = "manager_dummy.service"


def pytest_collection_modifyitems(config, items):
    if os.geteuid() == 0 and RUNTIME_UNIT_DIR.is_dir():
        return
    skip = pytest.mark.skip(reason="needs root on a host running systemd")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


# ============== Unit fixtures ==============

async def install_unit(unit: str) -> None:
    """Link a fixture unit file into /run/systemd/system."""
    source = FIXTURES_DIR / unit
    runtime_link = RUNTIME_UNIT_DIR / unit

    # Start from a clean slate in case a previous run was interrupted.
    await uninstall_unit(unit)
    runtime_link.unlink(missing_ok=True)

    client = await SystemdBusClient.connect()
    try:
        changes = await client.link_unit_files([str(source.resolve())], runtime=True, force=True)
    finally:
        await client.close()

    assert changes, f"expected one change when linking {source}"
    assert changes[0].filename == str(runtime_link)


async def uninstall_unit(unit: str) -> None:
    """Stop a fixture unit and remove its runtime link."""
    client = await SystemdBusClient.connect()
    manager = UnitManager(client)
    try:
        try:
            await manager.stop(unit, timeout=5)
        except (UnitManagerError, asyncio.TimeoutError):
            pass
        try:
            await client.disable_unit_files([unit], runtime=True)
        except UnitManagerError:
            pass
    finally:
        await manager.close()
    (RUNTIME_UNIT_DIR / unit).unlink(missing_ok=True)


@pytest_asyncio.fixture
async def dummy_unit() -> AsyncGenerator[str, None]:
    """The dummy unit, installed for the duration of a test."""
    await install_unit(UNIT_DUMMY)
    yield UNIT_DUMMY
    await uninstall_unit(UNIT_DUMMY)


@pytest_asyncio.fixture
async def manager() -> AsyncGenerator[UnitManager, None]:
    """A manager connected to the system bus."""
    stop_event = asyncio.Event()
    settings = Settings(bus_type="system", subscription_interval=0.2)
    manager = await UnitManager.create(stop_event=stop_event, settings=settings)
    yield manager
    await manager.close()
