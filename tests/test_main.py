"""Tests for the application factory and its lifespan."""

from fastapi.testclient import TestClient

from collection_sync.config import Settings
from collection_sync.main import create_app


def _settings(tmp_path) -> Settings:
    return Settings(
        source_database_url=f"sqlite+aiosqlite:///{tmp_path / 'source.db'}",
        state_database_url=f"sqlite+aiosqlite:///{tmp_path / 'state.db'}",
        destination_api_url="https://api.example.com/v1",
        destination_api_key="secret",
        destination_collection_id="col123",
    )


def test_health(tmp_path):
    with TestClient(create_app(_settings(tmp_path))) as client:
        assert client.get("/health").json() == {"status": "ok"}


def test_lifespan_wires_the_routes(tmp_path):
    with TestClient(create_app(_settings(tmp_path))) as client:
        assert client.get("/tables").json() == {"tables": []}
        assert client.get("/tables/posts/last-sync").status_code == 404

    assert (tmp_path / "state.db").exists()
