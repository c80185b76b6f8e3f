"""
API Tests for the Species Resolver Service

Tests the main API endpoints with a fake upstream behind the service.
"""

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.services.species_service import get_species_service

GBIF = "https://api.gbif.org/v1"
SEARCH_URL = f"{GBIF}/species/search"


@pytest.fixture
def client(service):
    """Create test client with the service wired to the fake upstream."""
    app.dependency_overrides[get_species_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_health_check(self, client):
        """Test basic health check."""
        response = client.get("/api/v1/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert "version" in data
        assert data["service"] == "Species Resolver API"

    def test_liveness_check(self, client):
        """Test liveness probe."""
        response = client.get("/api/v1/health/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_readiness_check(self, client, upstream):
        """Test readiness probe with the search service reachable."""
        upstream.gbif_search([], q="Aves")

        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "ready"
        assert data["components"]["species_search"]["status"] == "ready"
        assert data["components"]["vocabulary"]["vocabulary_fallback"] is False

    def test_readiness_check_unavailable(self, client, upstream):
        """Test readiness probe when the search service is down."""
        upstream.add(SEARCH_URL, 503)

        response = client.get("/api/v1/health/ready")
        assert response.status_code == 503


class TestIdentifyEndpoint:
    """Test species identification from detections."""

    def test_identify_with_detections(self, client):
        """Test the Bird/Wing/Grey fallback through the API."""
        response = client.post("/api/v1/species/identify", json={
            "detections": [
                {"description": "Bird", "score": 0.98},
                {"description": "Wing", "score": 0.95},
                {"description": "Grey", "score": 0.90},
            ]
        })
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert len(data["detections"]) == 3
        assert data["detections"][0]["source"] == "label_detection"
        assert data["species_options"] == [
            {"name": "Bird", "score": 0.98, "source": "general_detection", "image": None}
        ]
        assert data["best_query"] == "Bird"

    def test_identify_with_annotations(self, client):
        """Test a raw label/object annotation payload."""
        response = client.post("/api/v1/species/identify", json={
            "annotations": {"responses": [{
                "labelAnnotations": [
                    {"description": "Magpie", "score": 0.91, "mid": "/m/0ccs93"},
                    {"description": "Beak", "score": 0.88},
                ],
                "localizedObjectAnnotations": [{"name": "Bird", "score": 0.95}],
            }]}
        })
        assert response.status_code == 200

        data = response.json()
        assert [d["description"] for d in data["detections"]] == ["Bird", "Magpie", "Beak"]
        assert data["detections"][0]["source"] == "object_detection"
        assert [o["name"] for o in data["species_options"]] == ["Magpie"]
        assert data["species_options"][0]["source"] == "species_detection"

    def test_identify_annotation_error(self, client):
        """Test that an error inside the annotation payload is reported as 502."""
        response = client.post("/api/v1/species/identify", json={
            "annotations": {"error": {"code": 403, "message": "API key not valid"}}
        })
        assert response.status_code == 502

        data = response.json()
        assert data["error"] == "Vision API error"
        assert data["details"] == "API key not valid"
        assert data["status"] == 403

    @pytest.mark.parametrize("annotations", [
        {"responses": [{"labelAnnotations": [{"description": "Magpie", "score": "high"}]}]},
        {"responses": [{"labelAnnotations": ["Magpie"]}]},
        {"responses": {"labelAnnotations": [{"description": "Magpie", "score": 0.9}]}},
        {"responses": [{"localizedObjectAnnotations": [{"name": 12, "score": 0.9}]}]},
    ])
    def test_identify_malformed_annotations(self, client, annotations):
        """Malformed annotation entries are skipped instead of failing the request."""
        response = client.post("/api/v1/species/identify", json={"annotations": annotations})
        assert response.status_code == 200

        data = response.json()
        assert data["detections"] == []
        assert data["species_options"] == []

    def test_identify_requires_input(self, client):
        """Test that an empty request is rejected."""
        response = client.post("/api/v1/species/identify", json={})
        assert response.status_code == 400

    def test_identify_invalid_score(self, client):
        """Test detection validation."""
        response = client.post("/api/v1/species/identify", json={
            "detections": [{"description": "Bird", "score": 1.5}]
        })
        assert response.status_code == 422


class TestDetailsEndpoint:
    """Test species detail resolution."""

    def test_details(self, client, upstream, robin_record):
        """Test resolving a common name to a full record."""
        upstream.gbif_search([robin_record], q="Turdus migratorius")

        response = client.post("/api/v1/species/details", json={"species_name": "American Robin"})
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["species_name"] == "American Robin"
        assert len(data["species_results"]) == 1

        robin = data["species_results"][0]
        assert robin["scientific_name"] == "Turdus migratorius Linnaeus, 1766"
        assert robin["taxonomic_status"] == "ACCEPTED"
        assert robin["class"] == "aves"
        assert robin["kingdom"] == "animalia"
        assert robin["domain"] == "eukaryota"
        assert robin["gbif_key"] == 2490719
        assert robin["preferred_common_name"] == "American Robin"
        assert robin["reference_image"] is None

    def test_details_not_found(self, client, upstream):
        """Test the not-found response."""
        upstream.gbif_search([])

        response = client.post("/api/v1/species/details", json={"species_name": "Nonexistus imaginarius"})
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "No species information found"}

    @pytest.mark.parametrize("payload", [{}, {"species_name": ""}, {"species_name": "   "}])
    def test_details_validation(self, client, payload):
        """Test that missing or blank names are rejected."""
        response = client.post("/api/v1/species/details", json=payload)
        assert response.status_code == 422

    def test_details_unexpected_error(self, service, monkeypatch):
        """Test the generic 500 handler."""
        async def broken(species_name):
            raise RuntimeError("boom")

        monkeypatch.setattr(service, "get_species_details", broken)
        app.dependency_overrides[get_species_service] = lambda: service
        try:
            client = TestClient(app, raise_server_exceptions=False)
            response = client.post("/api/v1/species/details", json={"species_name": "Pica pica"})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["error"] == "internal_server_error"


class TestSearchEndpoint:
    """Test plain species search."""

    def test_search(self, client, upstream, robin_record):
        """Test search results carry a 'class' key."""
        upstream.gbif_search([robin_record], q="robin", limit=10)

        response = client.get("/api/v1/species/search", params={"query": "robin"})
        assert response.status_code == 200

        results = response.json()["results"]
        assert len(results) == 1
        assert results[0]["class"] == "Aves"
        assert results[0]["taxonomic_status"] == "ACCEPTED"
        assert results[0]["gbif_key"] == 2490719

    def test_search_upstream_error(self, client, upstream):
        """Test that a failing search service surfaces as 502."""
        upstream.add(SEARCH_URL, 503)

        response = client.get("/api/v1/species/search", params={"query": "robin"})
        assert response.status_code == 502
        assert response.json()["error"] == "GBIF API error"
        assert response.json()["status"] == 503

    def test_search_requires_query(self, client):
        response = client.get("/api/v1/species/search")
        assert response.status_code == 422


class TestRootEndpoint:
    """Test root endpoint."""

    def test_root(self, client):
        """Test API info endpoint."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert "name" in data
        assert "version" in data
        assert data["species_endpoint"] == "/api/v1/species"
