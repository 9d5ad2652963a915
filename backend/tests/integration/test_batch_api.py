"""Integration tests for the batch REST API."""

import asyncio

import pytest
from httpx import ASGITransport, AsyncClient

from batch_engine.application.interfaces import ContentGenerator, KeyValueStore
from batch_engine.application.services import (
    BatchJobController,
    EventNotifier,
    ItemExecutor,
    JobStore,
)
from batch_engine.domain.entities import GenerationRequest, GenerationResult, GenerationUsage
from batch_engine.infrastructure.dependencies import get_batch_controller, get_event_notifier
from batch_engine.main import app


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self):
        self.data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class EchoGenerator(ContentGenerator):
    async def generate(self, request: GenerationRequest) -> GenerationResult:
        await asyncio.sleep(0)
        return GenerationResult(
            title=f"On {request.topic}",
            body=f"All about {request.topic}.",
            char_count=10,
            usage=GenerationUsage(input_tokens=20, output_tokens=80),
        )


@pytest.fixture
def controller() -> BatchJobController:
    notifier = EventNotifier()
    controller = BatchJobController(
        JobStore(InMemoryKeyValueStore()),
        ItemExecutor(EchoGenerator()),
        notifier,
        max_items=5,
        item_delay_seconds=0,
    )
    app.dependency_overrides[get_batch_controller] = lambda: controller
    app.dependency_overrides[get_event_notifier] = lambda: notifier
    yield controller
    app.dependency_overrides.clear()


async def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_create_run_and_export(controller: BatchJobController):
    async with await _client() as client:
        response = await client.post(
            "/api/v1/batch",
            json={
                "items": [
                    {"topic": "Lisbon", "keywords": ["travel"]},
                    {"topic": "Porto", "settings": {"provider": "openai", "model": "gpt-4o"}},
                ],
                "settings": {"style": "story", "length": "short"},
            },
        )
        assert response.status_code == 201
        job = response.json()
        assert job["status"] == "idle"
        assert [i["order"] for i in job["items"]] == [1, 2]
        assert job["global_settings"]["style"] == "story"
        assert job["items"][1]["settings"]["model"] == "gpt-4o"
        assert job["cost"]["estimated"] > 0

        response = await client.post("/api/v1/batch/start")
        assert response.status_code == 200
        await controller.join()

        progress = (await client.get("/api/v1/batch/progress")).json()
        assert progress["status"] == "completed"
        assert progress["percent"] == 100
        assert progress["is_running"] is False

        export = (await client.get("/api/v1/batch/export/json")).json()
        assert [i["title"] for i in export["items"]] == ["On Lisbon", "On Porto"]

        response = await client.get("/api/v1/batch/export/markdown")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/markdown")
        assert "## 1. On Lisbon" in response.text


@pytest.mark.asyncio
async def test_domain_errors_map_to_http_status(controller: BatchJobController):
    async with await _client() as client:
        assert (await client.get("/api/v1/batch")).status_code == 404
        assert (await client.post("/api/v1/batch/start")).status_code == 409

        response = await client.post("/api/v1/batch", json={"items": [{"topic": "   "}]})
        assert response.status_code == 422

        too_many = {"items": [{"topic": f"T{i}"} for i in range(6)]}
        assert (await client.post("/api/v1/batch", json=too_many)).status_code == 422

        await client.post("/api/v1/batch", json={"items": [{"topic": "A"}]})
        assert (await client.post("/api/v1/batch/resume")).status_code == 409
        assert (await client.delete("/api/v1/batch/items/item_nope")).status_code == 404


@pytest.mark.asyncio
async def test_csv_import_and_template(controller: BatchJobController):
    async with await _client() as client:
        template = await client.get("/api/v1/batch/template")
        assert template.status_code == 200
        assert template.text.startswith("topic,keywords,additionalInfo")

        response = await client.post(
            "/api/v1/batch/import",
            files={"file": ("batch.csv", template.content, "text/csv")},
        )
        assert response.status_code == 201
        assert len(response.json()["items"]) == 3

        response = await client.post(
            "/api/v1/batch/import",
            files={"file": ("bad.csv", b"keywords\nfoo\n", "text/csv")},
        )
        assert response.status_code == 422
        assert len(controller.get_job().items) == 3

        exported = await client.get("/api/v1/batch/export/csv")
        assert exported.status_code == 200
        assert exported.text.splitlines()[0] == "topic,keywords,additionalInfo"
        assert len(exported.text.splitlines()) == 4


@pytest.mark.asyncio
async def test_item_and_settings_management(controller: BatchJobController):
    async with await _client() as client:
        await client.post("/api/v1/batch", json={"items": [{"topic": "A"}, {"topic": "B"}]})

        response = await client.post("/api/v1/batch/items", json={"topic": "C"})
        assert response.status_code == 201
        assert response.json()["order"] == 3

        first_id = controller.get_job().items[0].id
        assert (await client.delete(f"/api/v1/batch/items/{first_id}")).status_code == 204

        response = await client.patch("/api/v1/batch/settings", json={"temperature": 1.1})
        assert response.status_code == 200
        job = response.json()
        assert job["global_settings"]["temperature"] == 1.1
        assert [(i["order"], i["topic"]) for i in job["items"]] == [(1, "B"), (2, "C")]

        assert (await client.patch("/api/v1/batch/settings", json={"temperature": 9})).status_code == 422


@pytest.mark.asyncio
async def test_estimate_and_reset(controller: BatchJobController):
    async with await _client() as client:
        response = await client.post(
            "/api/v1/batch/estimate",
            json={"item_count": 10, "settings": {"provider": "openai", "model": "gpt-4o", "length": "short"}},
        )
        assert response.status_code == 200
        estimate = response.json()
        assert estimate["estimated_cost"] == pytest.approx(0.13)
        assert estimate["estimated_minutes"] == 6

        await client.post("/api/v1/batch", json={"items": [{"topic": "A"}]})
        assert (await client.delete("/api/v1/batch")).status_code == 204
        assert (await client.get("/api/v1/batch")).status_code == 404
