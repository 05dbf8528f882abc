"""Stats and listing endpoint behavior tests."""

import pytest
from httpx import AsyncClient

from app.clicks import ClickRecorder


@pytest.mark.asyncio
async def test_stats_valid_code(client: AsyncClient) -> None:
    create_resp = await client.post("/shorten", json={"url": "https://www.google.com"})
    short_code = create_resp.json()["short_code"]

    response = await client.get(f"/stats/{short_code}")
    assert response.status_code == 200
    data = response.json()
    assert data == create_resp.json()
    assert data["clicks"] == 0


@pytest.mark.asyncio
async def test_stats_invalid_code(client: AsyncClient) -> None:
    response = await client.get("/stats/nonexistent")
    assert response.status_code == 404
    assert response.json()["detail"] == "Short URL not found"


@pytest.mark.asyncio
async def test_stats_after_clicks(client: AsyncClient, click_recorder: ClickRecorder) -> None:
    create_resp = await client.post("/shorten", json={"url": "https://www.example.com"})
    short_code = create_resp.json()["short_code"]

    for _ in range(5):
        await client.get(f"/{short_code}", follow_redirects=False)
    await click_recorder.drain(timeout=5)

    response = await client.get(f"/stats/{short_code}")
    assert response.status_code == 200
    assert response.json()["clicks"] == 5


@pytest.mark.asyncio
async def test_list_empty(client: AsyncClient) -> None:
    response = await client.get("/urls")
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_list_newest_first(client: AsyncClient) -> None:
    codes = []
    for i in range(3):
        resp = await client.post("/shorten", json={"url": f"https://example.com/{i}"})
        codes.append(resp.json()["short_code"])

    response = await client.get("/urls")
    assert response.status_code == 200
    assert [row["short_code"] for row in response.json()] == list(reversed(codes))


@pytest.mark.asyncio
async def test_list_pagination(client: AsyncClient) -> None:
    for i in range(5):
        await client.post("/shorten", json={"url": f"https://example.com/{i}"})

    page = await client.get("/urls", params={"skip": 1, "limit": 2})
    assert page.status_code == 200
    assert [row["original_url"] for row in page.json()] == [
        "https://example.com/3",
        "https://example.com/2",
    ]


@pytest.mark.asyncio
async def test_list_rejects_bad_pagination(client: AsyncClient) -> None:
    response = await client.get("/urls", params={"limit": 0})
    assert response.status_code == 400
