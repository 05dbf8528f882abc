"""Update and delete endpoint behavior tests."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_update_destination(client: AsyncClient) -> None:
    created = (await client.post("/shorten", json={"url": "https://old.example.com"})).json()

    response = await client.put(f"/{created['short_code']}", json={"url": "https://new.example.com"})
    assert response.status_code == 200
    updated = response.json()
    assert updated["original_url"] == "https://new.example.com"
    for unchanged in ("id", "short_code", "created_at", "clicks"):
        assert updated[unchanged] == created[unchanged]

    redirect = await client.get(f"/{created['short_code']}", follow_redirects=False)
    assert redirect.headers["location"] == "https://new.example.com"


@pytest.mark.asyncio
async def test_update_invalid_url_does_not_mutate(client: AsyncClient) -> None:
    created = (await client.post("/shorten", json={"url": "https://keep.example.com"})).json()

    response = await client.put(f"/{created['short_code']}", json={"url": "javascript:alert(1)"})
    assert response.status_code == 400

    stats = (await client.get(f"/stats/{created['short_code']}")).json()
    assert stats["original_url"] == "https://keep.example.com"


@pytest.mark.asyncio
async def test_update_unknown_code(client: AsyncClient) -> None:
    response = await client.put("/missing1", json={"url": "https://example.com"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_missing_url(client: AsyncClient) -> None:
    created = (await client.post("/shorten", json={"url": "https://keep.example.com"})).json()
    response = await client.put(f"/{created['short_code']}", json={})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_returns_snapshot(client: AsyncClient) -> None:
    created = (await client.post("/shorten", json={"url": "https://gone.example.com"})).json()

    response = await client.delete(f"/{created['short_code']}")
    assert response.status_code == 200
    assert response.json() == created

    assert (await client.get(f"/stats/{created['short_code']}")).status_code == 404
    assert (await client.get(f"/{created['short_code']}", follow_redirects=False)).status_code == 404


@pytest.mark.asyncio
async def test_delete_unknown_code_leaves_store_unchanged(client: AsyncClient) -> None:
    await client.post("/shorten", json={"url": "https://stay.example.com"})
    before = (await client.get("/urls")).json()

    response = await client.delete("/missing1")
    assert response.status_code == 404
    assert (await client.get("/urls")).json() == before


@pytest.mark.asyncio
async def test_deleted_custom_code_can_be_reused(client: AsyncClient) -> None:
    await client.post("/shorten", json={"url": "https://first.example.com", "custom_code": "reuse"})
    await client.delete("/reuse")

    response = await client.post("/shorten", json={"url": "https://second.example.com", "custom_code": "reuse"})
    assert response.status_code == 200
    assert response.json()["original_url"] == "https://second.example.com"
