import pytest

from config import Config
from database import Database
from fakes import FakeClock, texas_geocoder
from utils.api_manager import RequestPacer
from utils.cache import GeocodeCache


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def memory_db():
    database = Database()
    assert database.initialize('sqlite://')
    yield database
    database.close_all_sessions()


@pytest.fixture
def cache(memory_db):
    return GeocodeCache(memory_db)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pacer(clock):
    return RequestPacer(1.0, clock=clock, sleep=clock.sleep)


@pytest.fixture
def geocoder():
    return texas_geocoder()
