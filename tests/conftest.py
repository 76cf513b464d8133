import fakeredis
import pytest

from hunttrain.database import RedisStore


@pytest.fixture
def store():
    return RedisStore(fakeredis.FakeRedis(decode_responses=True), prefix="test")
