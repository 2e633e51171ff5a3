import pytest

from tests.utils import FakeChrome


@pytest.fixture
async def chrome():
    fake = FakeChrome()
    await fake.start()
    yield fake
    await fake.stop()


@pytest.fixture
async def firefox():
    fake = FakeChrome(browser='Firefox/128.0')
    await fake.start()
    yield fake
    await fake.stop()
