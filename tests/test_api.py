"""
Tests for the settlement HTTP API.
"""

import pytest
from fastapi.testclient import TestClient

from py_settlements.api.main import app, store


class TestAPIEndpoints:
    """Test the settlement API endpoints."""

    def setup_method(self):
        """Set up test client."""
        self.client = TestClient(app)

    def create(self, q, r, entity_type, offset=(0.0, 0.0), size=None):
        x, y = store.hex_center(q, r)
        payload = {"type": entity_type, "x": x + offset[0], "y": y + offset[1]}
        if size is not None:
            payload["size"] = size
        return self.client.post(f"/cells/{q}/{r}/entities", json=payload)

    def test_root_endpoint(self):
        response = self.client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Settlement Generator API"
        assert data["status"] == "running"

    def test_health_check(self):
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_create_city(self):
        response = self.create(0, 0, "city")
        assert response.status_code == 200
        entity = response.json()["entity"]
        assert entity["type"] == "city"
        assert entity["parent_id"] is None
        assert entity["children"] >= 1
        assert len(entity["points"]) == 8

    def test_settlement_collections(self):
        self.create(1, 0, "city")
        response = self.client.get("/cells/1/0/settlement")

        assert response.status_code == 200
        data = response.json()
        assert len(data["cities"]) == 1
        assert data["districts"]
        assert all(d["parent_id"] == data["cities"][0]["id"] for d in data["districts"])

    def test_unknown_cell_is_404(self):
        response = self.client.get("/cells/99/99/settlement")
        assert response.status_code == 404

    def test_invalid_entity_type(self):
        x, y = store.hex_center(2, 0)
        response = self.client.post(
            "/cells/2/0/entities", json={"type": "castle", "x": x, "y": y}
        )
        assert response.status_code == 422

    def test_building_without_block(self):
        response = self.create(3, 0, "building")
        assert response.status_code == 400

    def test_delete_entity_cascades(self):
        city_id = self.create(4, 0, "city").json()["entity"]["id"]

        response = self.client.delete(f"/cells/4/0/entities/{city_id}")

        assert response.status_code == 200
        assert city_id in response.json()["removed"]
        data = self.client.get("/cells/4/0/settlement").json()
        assert data["cities"] == []
        assert data["districts"] == []

    def test_delete_unknown_entity(self):
        self.create(5, 0, "forest")
        response = self.client.delete("/cells/5/0/entities/forest_404")
        assert response.status_code == 404

    def test_move_vertex(self):
        block = self.create(6, 0, "block", size=60).json()["entity"]
        x, y = store.hex_center(6, 0)

        response = self.client.put(
            f"/cells/6/0/entities/{block['id']}/vertices/0",
            json={"x": x - 40, "y": y - 40},
        )

        assert response.status_code == 200
        moved = response.json()["entity"]
        assert moved["points"][0] == pytest.approx([-40, -40])
        assert moved["children"] >= 1

    def test_move_vertex_bad_index(self):
        block = self.create(7, 0, "block").json()["entity"]
        x, y = store.hex_center(7, 0)
        response = self.client.put(
            f"/cells/7/0/entities/{block['id']}/vertices/12", json={"x": x, "y": y}
        )
        assert response.status_code == 400

    def test_render(self):
        forest_id = self.create(8, 0, "forest").json()["entity"]["id"]

        far = self.client.get("/cells/8/0/render", params={"zoom": 1.0}).json()
        near = self.client.get("/cells/8/0/render", params={"zoom": 12.0}).json()

        assert far["lod_level"] == 0
        assert far["bulk"] == [forest_id]
        assert near["lod_level"] == 4
        assert near["trees"][forest_id]
        assert near["entities"][0]["id"] == forest_id

    def test_regenerate(self):
        self.create(9, 0, "city")
        response = self.client.post(
            "/cells/9/0/regenerate", json={"config": {"seed": "regenerated"}}
        )
        assert response.status_code == 200
        assert len(response.json()["cities"]) == 1

    def test_invalid_config_rejected(self):
        self.create(10, 0, "forest")
        response = self.client.post(
            "/cells/10/0/regenerate", json={"config": {"city_size": -5}}
        )
        assert response.status_code == 422

    def test_clear_settlement(self):
        self.create(11, 0, "forest")
        response = self.client.delete("/cells/11/0/settlement")
        assert response.status_code == 200
        assert self.client.get("/cells/11/0/settlement").status_code == 404
