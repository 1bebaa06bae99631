import pytest
from helpers import make_config

from journey_mcp.data.config import JourneyConfig


@pytest.fixture
def config() -> JourneyConfig:
    return make_config()
