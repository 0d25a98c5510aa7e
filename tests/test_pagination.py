"""
Tests for PaginatedFetcher: page requests stop at the first empty page,
and any non-429 failure aborts the whole fetch.
"""
import pytest

from storesync.connectors.base_connector import InvalidRemoteResponse, RemoteAPIError, RemoteResponse
from storesync.services.sync_job import PaginatedFetcher
from storesync.utils.cancellation import CancellationToken, JobCancelled
from storesync.utils.retry import RateLimitedExecutor


def _items(n):
    return [{"id": i + 1} for i in range(n)]


def test_fetches_until_empty_page(run, fake_client):
    client = fake_client(records=_items(250))
    fetcher = PaginatedFetcher(client, "products", page_size=100)

    records = run(fetcher.fetch_all())

    assert len(records) == 250
    assert fetcher.pages_requested == 4
    assert [c[2]["page"] for c in client.calls] == [1, 2, 3, 4]
    assert all(c[2]["per_page"] == 100 for c in client.calls)
    assert all(c[0] == "GET" and c[1] == "products" for c in client.calls)


def test_exact_multiple_of_page_size(run, fake_client):
    client = fake_client(records=_items(200))
    fetcher = PaginatedFetcher(client, "customers", page_size=100)

    assert len(run(fetcher.fetch_all())) == 200
    assert fetcher.pages_requested == 3


def test_empty_store_is_one_request(run, fake_client):
    client = fake_client(records=[])
    fetcher = PaginatedFetcher(client, "orders", page_size=100)

    assert run(fetcher.fetch_all()) == []
    assert fetcher.pages_requested == 1


def test_failure_mid_fetch_aborts(run, fake_client):
    client = fake_client(script=[
        RemoteResponse(status=200, data=_items(100)),
        RemoteAPIError("Internal Server Error", status=500),
    ])
    fetcher = PaginatedFetcher(client, "products", page_size=100)

    with pytest.raises(RemoteAPIError):
        run(fetcher.fetch_all())
    assert fetcher.pages_requested == 2


def test_rate_limited_page_is_retried(run, fake_client):
    async def no_sleep(_):
        return None

    client = fake_client(records=_items(50), script=[
        RemoteAPIError("Too Many Requests", status=429, headers={"Retry-After": "1"}),
    ])
    fetcher = PaginatedFetcher(
        client, "products", page_size=100, executor=RateLimitedExecutor(sleep=no_sleep)
    )

    assert len(run(fetcher.fetch_all())) == 50
    # page 1 twice (429 then ok), then the empty page 2
    assert [c[2]["page"] for c in client.calls] == [1, 1, 2]


def test_non_list_page_is_invalid(run, fake_client):
    client = fake_client(script=[RemoteResponse(status=200, data={"code": "oops"})])
    fetcher = PaginatedFetcher(client, "products", page_size=100)

    with pytest.raises(InvalidRemoteResponse):
        run(fetcher.fetch_all())


def test_cancelled_before_first_page(run, fake_client):
    token = CancellationToken()
    token.cancel("shutdown")
    client = fake_client(records=_items(10))
    fetcher = PaginatedFetcher(client, "products", page_size=100, token=token)

    with pytest.raises(JobCancelled):
        run(fetcher.fetch_all())
    assert client.calls == []


def test_iter_pages_yields_page_numbers(run, fake_client):
    client = fake_client(records=_items(150))
    fetcher = PaginatedFetcher(client, "products", page_size=100)

    async def collect():
        return [(page, len(items)) async for page, items in fetcher.iter_pages()]

    assert run(collect()) == [(1, 100), (2, 50)]
