"""
Pytest configuration and shared fixtures for Solace Vault tests.

Async tests run under pytest-asyncio (auto mode, see pyproject.toml).
All fixtures use in-memory backends; nothing touches a real keychain.
"""
import os
import sys

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from solace_vault.config import VaultConfig
from solace_vault.persistence import MemoryKeyValueStore, SessionSecurePersistence
from solace_vault.services import PrivacyServices
from solace_vault.step_up import StaticAuthenticator


@pytest.fixture
def config(tmp_path):
    """Config pointing at a temporary directory with in-memory backends."""
    return VaultConfig(data_dir=str(tmp_path / ".solace_vault"), platform="memory")


@pytest.fixture
def approving_auth():
    return StaticAuthenticator(approve=True)


@pytest.fixture
def declining_auth():
    return StaticAuthenticator(approve=False)


@pytest.fixture
def secure_persistence(approving_auth):
    return SessionSecurePersistence(approving_auth)


@pytest.fixture
def kv_store():
    return MemoryKeyValueStore()


@pytest.fixture
def services(config, secure_persistence, kv_store):
    """Fully wired services over in-memory backends."""
    return PrivacyServices(config, secure_persistence=secure_persistence, kv_store=kv_store)


@pytest.fixture
def full_consent():
    return {
        "data_processing": True,
        "crisis_intervention": True,
        "analytics": False,
        "research": True,
        "marketing": False,
    }


@pytest.fixture
def sample_mood():
    return {"mood": "anxious", "score": 3}
