"""Pytest configuration and shared fixtures for masterq tests."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from masterq.address import SENTINEL, ServerAddress
from masterq.protocol.packets import BatchReply


def pytest_configure(config):
    """Register all project markers to avoid warnings when ini isn't loaded."""
    markers = [
        ("asyncio", "marks tests as async (deselect with '-m \"not asyncio\"')"),
        ("unit", "marks tests as unit tests"),
        ("integration", "marks tests as integration tests"),
        ("protocols", "marks tests as protocol tests"),
        ("master", "marks tests as master server tests"),
        ("cli", "marks tests as CLI tests"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep config files and MASTERQ_* variables of the host out of tests."""
    import masterq.config.config as config_module

    for name in config_module.ENV_MAPPINGS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "_config_manager", None)
    yield
    config_module._config_manager = None


@pytest.fixture(autouse=True)
def cleanup_logging():
    """Clean up logging handlers after each test to prevent closed file errors."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)


class ScriptedTransport:
    """Master transport answering from a script instead of the network.

    Each ``receive`` consumes the next script entry: a :class:`BatchReply`
    is returned, ``None`` stands for a timeout and an exception instance is
    raised. Once the script runs out every receive times out.
    """

    def __init__(self, script: list[Any] | None = None, rotations: Any = False):
        self.script = list(script or [])
        self.rotations = rotations
        self.sent: list[bytes] = []
        self.timeouts: list[float] = []
        self.rotate_calls = 0

    async def send(self, data: bytes) -> None:
        self.sent.append(data)

    async def receive(self, timeout: float) -> BatchReply | None:
        self.timeouts.append(timeout)
        if not self.script:
            return None
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def rotate_address(self) -> bool:
        self.rotate_calls += 1
        if isinstance(self.rotations, list):
            return self.rotations.pop(0) if self.rotations else False
        return bool(self.rotations)


def page(*addresses: str, final: bool = False) -> BatchReply:
    """Build a reply page from ``"a.b.c.d:port"`` strings."""
    entries = tuple(ServerAddress.parse(a) for a in addresses)
    if final:
        entries += (SENTINEL,)
    return BatchReply(entries)


@pytest.fixture
def scripted_transport():
    """Factory for :class:`ScriptedTransport` instances."""
    return ScriptedTransport


@pytest.fixture
def make_page():
    """The :func:`page` helper as a fixture."""
    return page
