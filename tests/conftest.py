import pytest

from mcp_scout.config import ScoutConfig

from .fakes import Router


@pytest.fixture
def config(tmp_path) -> ScoutConfig:
    """Config with the durable cache inside the test's temp directory."""
    return ScoutConfig(cache_dir=tmp_path / "cache")


@pytest.fixture
def router() -> Router:
    return Router()
