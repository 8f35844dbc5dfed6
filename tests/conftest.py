from datetime import timedelta

import httpx
import mongomock
import pytest

from webarchive.archive import Archiver
from webarchive.blobstore import FileBlobStore
from webarchive.fetcher import HTTPFetcher
from webarchive.frontier import FrontierScheduler
from webarchive.inflight import InFlightTracker
from webarchive.storage import MongoStorage
from webarchive.worker import Crawler


@pytest.fixture
def storage():
    store = MongoStorage({"uri": "mongodb://localhost:27017", "database": "webarchive_test"})
    assert store.connect(client=mongomock.MongoClient())
    yield store
    store.close()


@pytest.fixture
def blob_store(tmp_path):
    return FileBlobStore(str(tmp_path / "blobs"))


@pytest.fixture
def tracker():
    return InFlightTracker()


def make_fetcher(handler, **config) -> HTTPFetcher:
    """HTTPFetcher whose requests are answered by ``handler``."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return HTTPFetcher(config, client=client)


@pytest.fixture
def make_crawler(storage, blob_store, tracker):
    def factory(handler, stale=timedelta(hours=1), workers=2, **fetcher_config):
        scheduler = FrontierScheduler(storage.urls, tracker, stale)
        return Crawler(
            storage=storage,
            fetcher=make_fetcher(handler, **fetcher_config),
            archiver=Archiver(blob_store),
            scheduler=scheduler,
            tracker=tracker,
            workers=workers,
            idle_delay=0,
        )

    return factory
