import pytest
from pymongo.errors import InvalidURI, OperationFailure, ServerSelectionTimeoutError

from plexbuy import product_store
from plexbuy.errors import ConnectionFailure, CredentialMalformed, CredentialMissing, HealthCheckFailure, StoreError
from plexbuy.product_store import ProductStore


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs
        self.limit_value = None

    def limit(self, value):
        self.limit_value = value
        return self

    async def to_list(self, length=None):
        return list(self.docs[:self.limit_value])


class FakeCollection:
    def __init__(self, docs=(), error=None):
        self.docs = list(docs)
        self.error = error
        self.filters = []

    def find(self, query_filter):
        self.filters.append(query_filter)
        if self.error is not None:
            raise self.error
        return FakeCursor(self.docs)

    async def estimated_document_count(self):
        if self.error is not None:
            raise self.error
        return len(self.docs)


def connected_store(collection):
    store = ProductStore("mongodb://localhost:27017")
    store.collection = collection
    return store


@pytest.mark.asyncio
async def test_connect_requires_connection_string():
    with pytest.raises(CredentialMissing):
        await ProductStore(None).connect()
    with pytest.raises(CredentialMissing):
        await ProductStore("   ").connect()


@pytest.mark.asyncio
async def test_connect_rejects_non_mongodb_scheme():
    with pytest.raises(CredentialMalformed):
        await ProductStore("postgres://localhost/products").connect()


@pytest.mark.asyncio
async def test_queries_fail_when_not_connected():
    store = ProductStore("mongodb://localhost:27017")
    with pytest.raises(StoreError):
        await store.find({}, 5)
    with pytest.raises(StoreError):
        await store.count()


@pytest.mark.asyncio
async def test_find_converts_ids_and_applies_limit():
    docs = [{"_id": i, "name": f"Laptop {i}", "price": 30000 + i} for i in range(8)]
    collection = FakeCollection(docs)
    store = connected_store(collection)

    records = await store.find({"price": {"$lte": 50000}}, 5)

    assert len(records) == 5
    assert records[0] == {"id": "0", "name": "Laptop 0", "price": 30000}
    assert collection.filters == [{"price": {"$lte": 50000}}]


@pytest.mark.asyncio
async def test_driver_errors_become_store_errors():
    store = connected_store(FakeCollection(error=OperationFailure("unauthorized")))

    with pytest.raises(StoreError):
        await store.find({}, 5)
    with pytest.raises(StoreError):
        await store.count()


@pytest.mark.asyncio
async def test_count_uses_collection_estimate():
    store = connected_store(FakeCollection([{"_id": 1}, {"_id": 2}]))
    assert await store.count() == 2


class FakeAdmin:
    def __init__(self, error=None):
        self.error = error
        self.commands = []

    async def command(self, name):
        self.commands.append(name)
        if self.error is not None:
            raise self.error
        return {"ok": 1}


class FakeMongoClient:
    def __init__(self, collection, ping_error=None):
        self.collection = collection
        self.admin = FakeAdmin(ping_error)
        self.closed = False
        self.uri = None
        self.options = {}

    def __getitem__(self, database):
        return {"products": self.collection}

    async def close(self):
        self.closed = True


def patch_client(monkeypatch, fake):
    def factory(uri, **options):
        fake.uri = uri
        fake.options = options
        return fake

    monkeypatch.setattr(product_store, "AsyncMongoClient", factory)


@pytest.mark.asyncio
async def test_connect_success(monkeypatch):
    collection = FakeCollection([{"_id": 1}, {"_id": 2}, {"_id": 3}])
    fake = FakeMongoClient(collection)
    patch_client(monkeypatch, fake)
    store = ProductStore("mongodb://db.internal:27017", timeout_ms=1500)

    assert await store.connect() is True
    assert store.collection is collection
    assert store.client is fake
    assert fake.admin.commands == ["ping"]
    assert fake.options == {"serverSelectionTimeoutMS": 1500}

    await store.close()
    assert fake.closed is True
    assert store.collection is None


@pytest.mark.asyncio
async def test_connect_uri_rejected_by_driver(monkeypatch):
    def factory(uri, **options):
        raise InvalidURI("Port must be an integer")

    monkeypatch.setattr(product_store, "AsyncMongoClient", factory)

    with pytest.raises(CredentialMalformed):
        await ProductStore("mongodb://db.internal:port").connect()


@pytest.mark.asyncio
async def test_connect_ping_failure(monkeypatch):
    fake = FakeMongoClient(FakeCollection(), ping_error=ServerSelectionTimeoutError("no servers"))
    patch_client(monkeypatch, fake)
    store = ProductStore("mongodb://db.internal:27017")

    with pytest.raises(ConnectionFailure):
        await store.connect()
    assert fake.closed is True
    assert store.collection is None


@pytest.mark.asyncio
async def test_connect_count_failure_leaves_store_disconnected(monkeypatch):
    fake = FakeMongoClient(FakeCollection(error=OperationFailure("not authorized")))
    patch_client(monkeypatch, fake)
    store = ProductStore("mongodb://db.internal:27017")

    with pytest.raises(HealthCheckFailure):
        await store.connect()
    assert fake.closed is True
    assert store.client is None
    assert store.collection is None
    with pytest.raises(StoreError):
        await store.find({}, 5)
