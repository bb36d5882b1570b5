import httpx
import pytest
from unittest.mock import patch

from pod_matcher.errors import (
    SearchAuthError,
    SearchError,
    SearchRateLimitError,
    SearchUnavailableError,
)
from pod_matcher.listen_notes import ListenNotesClient
from pod_matcher.models import PodcastRecord, SearchFilters

SEARCH_RESPONSE = {
    "count": 1,
    "total": 42,
    "next_offset": 10,
    "results": [
        {
            "id": "abc123",
            "title_original": "Tech Talks",
            "description_original": "Conversations with builders",
            "publisher_original": "Pod Co",
            "genre_ids": [127, 93],
            "total_episodes": 150,
            "audio_length_sec": 2700,
            "listen_score": 55,
            "update_frequency_hours": 168,
            "earliest_pub_date_ms": 1500000000000,
            "latest_pub_date_ms": 1700000000000,
            "image": "https://example.com/image.jpg",
            "website": "https://example.com",
        }
    ],
}


def make_client(handler) -> ListenNotesClient:
    return ListenNotesClient(api_key="test_key", transport=httpx.MockTransport(handler))


def test_missing_api_key_raises():
    with patch.dict("os.environ", {"LISTEN_NOTES_API_KEY": ""}):
        with pytest.raises(ValueError, match="LISTEN_NOTES_API_KEY"):
            ListenNotesClient()


def test_api_key_from_environment():
    with patch.dict("os.environ", {"LISTEN_NOTES_API_KEY": "env_key"}):
        client = ListenNotesClient()
    assert client._get_headers()["X-ListenAPI-Key"] == "env_key"


@pytest.mark.asyncio
async def test_search_podcasts():
    """Test searching podcasts by term."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=SEARCH_RESPONSE)

    client = make_client(handler)
    results = await client.search("technology business", SearchFilters(len_min=20, len_max=60, limit=5))

    assert results.total == 42
    assert results.next_offset == 10
    [podcast] = results.results
    assert isinstance(podcast, PodcastRecord)
    assert podcast.id == "abc123"
    assert podcast.title == "Tech Talks"
    assert podcast.publisher == "Pod Co"
    assert podcast.categories == ["127", "93"]
    assert podcast.average_duration_seconds == 2700
    assert podcast.listen_score == 55.0

    [request] = requests
    assert request.url.path == "/api/v2/search"
    assert request.headers["X-ListenAPI-Key"] == "test_key"
    params = request.url.params
    assert params["q"] == "technology business"
    assert params["type"] == "podcast"
    assert params["only_in"] == "title,description"
    assert params["len_min"] == "20"
    assert params["len_max"] == "60"
    assert params["page_size"] == "5"
    assert params["language"] == "English"


@pytest.mark.asyncio
async def test_search_omits_unset_filters():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["params"] = request.url.params
        return httpx.Response(200, json={"results": []})

    results = await make_client(handler).search("science")

    assert results.results == []
    assert results.total == 0
    assert "len_min" not in captured["params"]
    assert "genre_ids" not in captured["params"]


@pytest.mark.asyncio
async def test_search_tolerates_null_fields():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "results": [{"id": "r1", "title_original": "X", "language": None, "publisher": None}],
            "total": None,
        })

    results = await make_client(handler).search("science")

    [podcast] = results.results
    assert podcast.language == ""
    assert podcast.publisher == ""
    assert results.total == 1


@pytest.mark.asyncio
async def test_unusable_results_raise_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": [{"id": "r1", "total_episodes": "many"}]})

    with pytest.raises(SearchUnavailableError, match="unusable"):
        await make_client(handler).search("science")


@pytest.mark.asyncio
async def test_get_podcast():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v2/podcasts/abc123"
        return httpx.Response(200, json={"id": "abc123", "title": "Tech Talks", "total_episodes": 3})

    podcast = await make_client(handler).get_podcast("abc123")

    assert podcast.id == "abc123"
    assert podcast.title == "Tech Talks"
    assert podcast.total_episodes == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,error_type",
    [
        (429, SearchRateLimitError),
        (401, SearchAuthError),
        (403, SearchAuthError),
        (500, SearchUnavailableError),
        (503, SearchUnavailableError),
        (404, SearchError),
    ],
)
async def test_http_errors_mapped(status, error_type):
    client = make_client(lambda request: httpx.Response(status, json={}))

    with pytest.raises(error_type) as exc_info:
        await client.search("technology")

    assert exc_info.value.status_code == status


@pytest.mark.asyncio
async def test_timeout_is_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(SearchUnavailableError, match="timed out"):
        await make_client(handler).search("technology")


@pytest.mark.asyncio
async def test_network_error_is_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SearchUnavailableError):
        await make_client(handler).search("technology")


@pytest.mark.asyncio
async def test_malformed_body_is_unavailable():
    client = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))

    with pytest.raises(SearchUnavailableError, match="malformed"):
        await client.search("technology")


@pytest.mark.asyncio
async def test_requests_go_through_rate_limiter():
    client = make_client(lambda request: httpx.Response(200, json={"results": []}))

    await client.search("a")
    await client.search("b")

    assert client.rate_limiter.in_window == 2
