"""Pytest configuration and shared fixtures for client registry testing."""

import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Generator

from ovpn_admin.client_service import ClientRegistry

from .utils.test_helpers import SETTINGS_VARIABLES, FakeEasyRSA


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test artifacts."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def pki(temp_dir: Path) -> FakeEasyRSA:
    """Provide an easy-rsa installation whose server uses tls-crypt."""
    return FakeEasyRSA(temp_dir).install(tls_mode="tls-crypt")


@pytest.fixture
def settings(pki: FakeEasyRSA):
    """Provide registry settings pointing at the fake installation."""
    return pki.settings()


@pytest.fixture
def registry(settings) -> ClientRegistry:
    """Provide a client registry over the fake installation."""
    return ClientRegistry(settings)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Make sure no test inherits settings or a forced easy-rsa failure."""
    monkeypatch.delenv("FAKE_EASYRSA_FAIL", raising=False)
    for variable in SETTINGS_VARIABLES:
        monkeypatch.delenv(variable, raising=False)
