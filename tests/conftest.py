import asyncio

import pytest

from plexbuy.advisor import ShoppingAdvisor
from plexbuy.catalog import AffiliateLinker
from plexbuy.errors import GenerationError, StoreError
from plexbuy.readiness import ReadinessGate


class FakeCapability:
    def __init__(self, ready=True, error=None, delay=0.0, hold=None):
        self.ready = ready
        self.error = error
        self.delay = delay
        self.hold = hold
        self.calls = 0

    async def init(self):
        self.calls += 1
        if self.hold is not None:
            await self.hold.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.ready


class FakeTextService(FakeCapability):
    def __init__(self, text="Go for the Lenovo IdeaPad Slim 3, it balances price and performance.",
                 generate_error=None, **kwargs):
        super().__init__(**kwargs)
        self.text = text
        self.generate_error = generate_error
        self.prompts = []

    async def generate(self, prompt, **kwargs):
        self.prompts.append(prompt)
        if self.generate_error is not None:
            raise self.generate_error
        return self.text


class FakeStoreService(FakeCapability):
    def __init__(self, records=None, find_error=None, **kwargs):
        super().__init__(**kwargs)
        self.records = records if records is not None else []
        self.find_error = find_error
        self.filters = []

    async def find(self, query_filter, limit):
        self.filters.append(query_filter)
        if self.find_error is not None:
            raise self.find_error
        return [dict(r) for r in self.records[:limit]]


def laptop_records(count=3):
    return [
        {
            "id": f"laptop-{i}",
            "name": f"Test Laptop {i}",
            "price": 40000 + i * 1000,
            "category": "Laptops",
            "brand": "TestBrand",
            "rating": 4.0,
            "url": f"https://www.amazon.in/dp/TEST{i}",
        }
        for i in range(count)
    ]


def make_advisor(text_service, store_service, max_products=5):
    gate = ReadinessGate(text_service, store_service)
    linker = AffiliateLinker("plexbuy-21", "plexbuy")
    return ShoppingAdvisor(gate, text_service, store_service, linker, max_products)


@pytest.fixture
def linker():
    return AffiliateLinker("plexbuy-21", "plexbuy")


@pytest.fixture
def ready_services():
    return FakeTextService(), FakeStoreService(records=laptop_records(7))


@pytest.fixture
def failed_services():
    return (
        FakeTextService(ready=False, generate_error=GenerationError("unused")),
        FakeStoreService(ready=False, find_error=StoreError("unused")),
    )
