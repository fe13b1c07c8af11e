"""
Shared Test Fixtures
"""

import pytest

from src.crm.auth import Actor
from src.crm.deals.models import Role
from src.crm.deals.workflow import DealWorkflowEngine, set_workflow_engine
from src.crm.storage import LocalFilesystemArtifactStore
from src.crm.store import InMemoryDealStore


@pytest.fixture
def rep():
    return Actor(id="rep-1", role=Role.REP, name="Riley Rep")


@pytest.fixture
def other_rep():
    return Actor(id="rep-2", role=Role.REP, name="Other Rep")


@pytest.fixture
def admin():
    return Actor(id="admin-1", role=Role.ADMIN, name="Alex Admin")


@pytest.fixture
def crew():
    return Actor(id="crew-1", role=Role.CREW, name="Casey Crew")


@pytest.fixture
def store():
    return InMemoryDealStore()


@pytest.fixture
def upload_store(tmp_path):
    return LocalFilesystemArtifactStore(base_path=tmp_path / "uploads")


@pytest.fixture
def engine(store, upload_store):
    engine = DealWorkflowEngine(store, upload_store)
    yield engine
    set_workflow_engine(None)
