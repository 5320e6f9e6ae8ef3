"""Pytest configuration for netbridge."""
import pytest

from netbridge.base.config import BridgeConfig, StorageConfig, UploadConfig, set_config
from netbridge.server.state import ApplicationState


@pytest.fixture
def scratch_dir(tmp_path):
    return tmp_path / "matrix-gen"


@pytest.fixture
def bridge_config(scratch_dir):
    # No real waits between upload attempts, no startup wipe, isolated scratch dir.
    config = BridgeConfig(
        storage=StorageConfig(scratch_dir=scratch_dir),
        upload=UploadConfig(max_attempts=3, retry_delay=0.0),
        reclaim_on_startup=False,
    )
    set_config(config)
    ApplicationState.reset()
    yield config
    set_config(None)
    ApplicationState.reset()
