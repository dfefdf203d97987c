import pytest

from azmigrate.migration.migrator import ResourceMigrator
from azmigrate.utils.metadata import MigrationLedger

from tests.fake_cloud import FakeCloudApi


@pytest.fixture
def cloud():
    return FakeCloudApi()


@pytest.fixture
def backup_dir(tmp_path):
    return tmp_path / "backups"


@pytest.fixture
def ledger(backup_dir):
    return MigrationLedger(backup_dir)


@pytest.fixture
def migrator(cloud, backup_dir, ledger):
    return ResourceMigrator(cloud, backup_dir=backup_dir, ledger=ledger)
