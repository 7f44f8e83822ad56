"""Pytest fixtures for loader tests.

Provides an in-memory warehouse shaped like the functional-test tables
(alltypes: 24 monthly partitions, one file each), a fresh HostIndex, and
loader settings isolated from the environment.
"""

import pytest
from loguru import logger
from pydantic_settings import SettingsConfigDict

from filemeta.config.settings import FileLoaderSettings
from filemeta.features.descriptors.host_index import HostIndex
from filemeta.storage.memory import InMemoryStorageClient

WAREHOUSE = "hdfs://localhost:20500/test-warehouse"
ALLTYPES = f"{WAREHOUSE}/alltypes"
DATANODES = ["localhost:31000", "localhost:31001", "localhost:31002"]
BLOCK_SIZE = 1024
FILE_SIZE = 2 * BLOCK_SIZE + 100


class _IsolatedLoaderSettings(FileLoaderSettings):
    """Test-only subclass that disables environment loading."""

    model_config = SettingsConfigDict(
        env_file=None,
        env_prefix="",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Only use init_settings source (constructor args), ignore all env sources."""
        return (init_settings,)


def create_loader_settings(**kwargs) -> FileLoaderSettings:
    """Create FileLoaderSettings for testing without env loading.

    Note: Pass the ALIAS names (e.g., FILEMETA_MAX_CONCURRENCY), not the
    field names, because fields are declared with validation_alias.
    """
    return _IsolatedLoaderSettings(**kwargs)


def alltypes_partitions() -> list[str]:
    return [f"year={year}/month={month}" for year in (2009, 2010) for month in range(1, 13)]


def alltypes_file(partition: str) -> str:
    year = partition.split("/")[0].removeprefix("year=")
    month = int(partition.split("/")[1].removeprefix("month="))
    return f"{partition}/{year[2:]}{month:02d}01.txt"


@pytest.fixture
def storage() -> InMemoryStorageClient:
    """In-memory HDFS with the alltypes table staged under the test warehouse."""
    client = InMemoryStorageClient(block_size=BLOCK_SIZE)
    for partition in alltypes_partitions():
        client.add_file(f"{ALLTYPES}/{alltypes_file(partition)}", size=FILE_SIZE, hosts=DATANODES)
    return client


@pytest.fixture
def host_index() -> HostIndex:
    return HostIndex()


@pytest.fixture
def loader_settings() -> FileLoaderSettings:
    return create_loader_settings()


@pytest.fixture
def log_messages():
    """Capture WARNING-and-above loguru messages emitted during the test."""
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="WARNING")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def make_loader_settings():
    """Factory for isolated FileLoaderSettings (pass FILEMETA_* alias names)."""
    return create_loader_settings


@pytest.fixture
def alltypes_location() -> str:
    return ALLTYPES
