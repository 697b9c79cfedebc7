from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.infrastructure.exceptions import DatabaseError
from app.web.main import create_application

ACME = {"project": "Acme", "date": "2024-01-01"}
TRAINING = "/api/practices/training-and-upskilling"


class TestReadEndpoints:
    """Static data and dashboard reads."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_rating_levels(self, client):
        levels = client.get("/api/rating-levels").json()
        assert [level["value"] for level in levels] == [
            "Largely in Place",
            "Somewhat in Place",
            "Not in Place",
        ]
        assert [level["score"] for level in levels] == [2, 1, 0]

    def test_taxonomy(self, client):
        pillars = client.get("/api/taxonomy").json()["pillars"]
        assert len(pillars) == 6
        people = pillars[0]
        training = next(p for p in people["practices"] if p["name"] == "Training and Upskilling")
        assert training["slug"] == "training-and-upskilling"
        assert training["aspect_prefix"] == "Training"
        assert len(training["aspects"]) == 7

    def test_dashboard_requires_project(self, client):
        response = client.get("/api/dashboard", params={"date": "2024-01-01"})
        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "error"
        assert "project name" in body["message"].lower()

    def test_dashboard_fresh(self, client):
        response = client.get("/api/dashboard", params=ACME)
        assert response.status_code == 200
        body = response.json()
        assert body["project_name"] == "Acme"
        assert len(body["pillars"]) == 6
        assert all(p["overall"] is None for p in body["pillars"])

    def test_unknown_slug_is_404(self, client):
        response = client.get("/api/practices/astrology/aspects", params=ACME)
        assert response.status_code == 404

    def test_aspects_show_stored_names(self, client):
        body = client.get(f"{TRAINING}/aspects", params=ACME).json()
        assert body["aspect_prefix"] == "Training"
        assert body["aspects"][0]["stored_name"] == "Training:Employee AI Literacy"
        assert body["overall"] is None


class TestWriteEndpoints:
    """Cycling, findings and saves over HTTP."""

    def test_cycle_aspect_persists(self, client):
        response = client.post(f"{TRAINING}/aspects/Training Programs/cycle", params=ACME)
        assert response.status_code == 200
        body = response.json()
        assert body["rating"] == "Largely in Place"
        assert body["rows_written"] == 2

        aspects = client.get(f"{TRAINING}/aspects", params=ACME).json()["aspects"]
        stored = next(a for a in aspects if a["name"] == "Training Programs")
        assert stored["rating"] == "Largely in Place"

    def test_cycle_unknown_aspect(self, client):
        response = client.post(f"{TRAINING}/aspects/Juggling/cycle", params=ACME)
        assert response.status_code == 400

    def test_cycle_without_context(self, client):
        response = client.post(f"{TRAINING}/aspects/Training Programs/cycle")
        assert response.status_code == 400

    def test_aspect_findings(self, client):
        response = client.put(
            f"{TRAINING}/aspects/Training Programs/findings",
            params=ACME,
            json={"findings": "Quarterly sessions"},
        )
        assert response.status_code == 200
        aspects = client.get(f"{TRAINING}/aspects", params=ACME).json()["aspects"]
        stored = next(a for a in aspects if a["name"] == "Training Programs")
        assert stored["findings"] == "Quarterly sessions"

    def test_save_family(self, client):
        response = client.post(f"{TRAINING}/save", params=ACME)
        assert response.status_code == 200
        assert response.json()["rows_written"] == 8

    def test_cycle_leaf_practice(self, client):
        response = client.post("/api/pillars/Strategy/practices/Scalability/cycle", params=ACME)
        assert response.status_code == 200
        assert response.json()["rating"] == "Largely in Place"

        dashboard = client.get("/api/dashboard", params=ACME).json()
        strategy = next(p for p in dashboard["pillars"] if p["title"] == "Strategy")
        scalability = next(p for p in strategy["practices"] if p["name"] == "Scalability")
        assert scalability["rating"] == "Largely in Place"
        assert strategy["rated"] == 1

    def test_practice_findings(self, client):
        response = client.put(
            "/api/pillars/Security/practices/Incident Response/findings",
            params=ACME,
            json={"findings": "Runbooks exist"},
        )
        assert response.status_code == 200

    def test_cycle_unknown_pillar(self, client):
        response = client.post("/api/pillars/Finance/practices/Budget/cycle", params=ACME)
        assert response.status_code == 400

    def test_batch_save(self, client):
        payload = {
            "project_name": "Acme",
            "assessment_date": "2024-01-01",
            "ratings": [
                {"pillar_title": "Strategy", "practice_name": "Scalability", "rating": "Not in Place"},
            ],
        }
        response = client.post("/api/dashboard/ratings", json=payload)
        assert response.status_code == 200
        assert response.json()["rows_written"] == 1

    def test_batch_save_rejects_bad_rating(self, client):
        payload = {
            "project_name": "Acme",
            "assessment_date": "2024-01-01",
            "ratings": [
                {"pillar_title": "Strategy", "practice_name": "Scalability", "rating": "Fully in Place"},
            ],
        }
        response = client.post("/api/dashboard/ratings", json=payload)
        assert response.status_code == 400
        assert response.json()["status"] == "error"


class TestFailureMapping:
    """Store failures and concurrent saves map to HTTP status codes."""

    @pytest.fixture
    def failing_client(self):
        gateway = MagicMock()
        gateway.fetch_ratings.return_value = []
        gateway.upsert_ratings.side_effect = DatabaseError("disk full", "upsert ratings")
        return TestClient(create_application(gateway))

    def test_store_failure_is_503(self, failing_client):
        response = failing_client.post(f"{TRAINING}/aspects/Training Programs/cycle", params=ACME)
        assert response.status_code == 503
        assert response.json()["message"] == "Unable to save your changes. Please try again."

    def test_concurrent_save_is_409(self, gateway):
        app = create_application(gateway)
        client = TestClient(app)
        scope = ("Acme", "2024-01-01", "People", "Training and Upskilling")
        with app.state.save_guard.hold(scope):
            response = client.post(f"{TRAINING}/save", params=ACME)
        assert response.status_code == 409

    def test_held_scope_blocks_cycle_before_reading(self):
        gateway = MagicMock()
        gateway.fetch_ratings.return_value = []
        app = create_application(gateway)
        client = TestClient(app)
        scope = ("Acme", "2024-01-01", "People", "Training and Upskilling")
        with app.state.save_guard.hold(scope):
            response = client.post(f"{TRAINING}/aspects/Training Programs/cycle", params=ACME)
        assert response.status_code == 409
        gateway.fetch_ratings.assert_not_called()
        gateway.upsert_ratings.assert_not_called()

    def test_held_practice_scope_is_409(self, gateway):
        app = create_application(gateway)
        client = TestClient(app)
        with app.state.save_guard.hold(("Acme", "2024-01-01", "Strategy", "Scalability")):
            response = client.post("/api/pillars/Strategy/practices/Scalability/cycle", params=ACME)
        assert response.status_code == 409
        assert client.post("/api/pillars/Strategy/practices/Scalability/cycle", params=ACME).status_code == 200


class TestPages:
    """Server-rendered pages and form actions."""

    def test_dashboard_page_without_context(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "Enter a project name" in response.text

    def test_dashboard_page_with_context(self, client):
        response = client.get("/", params=ACME)
        assert response.status_code == 200
        assert "People" in response.text
        assert "Training and Upskilling" in response.text

    def test_dashboard_page_bad_date(self, client):
        response = client.get("/", params={"project": "Acme", "date": "yesterday"})
        assert response.status_code == 400

    def test_practice_page(self, client):
        response = client.get("/practices/training-and-upskilling", params=ACME)
        assert response.status_code == 200
        assert "Employee AI Literacy" in response.text

    def test_practice_page_unknown_slug(self, client):
        response = client.get("/practices/astrology", params=ACME)
        assert response.status_code == 404

    def test_cycle_action_redirects_with_context(self, client):
        response = client.post(
            "/practices/training-and-upskilling/aspects/Training Programs/cycle",
            params=ACME,
            follow_redirects=False,
        )
        assert response.status_code == 303
        location = response.headers["location"]
        assert "/practices/training-and-upskilling" in location
        assert "project=Acme" in location
        assert "date=2024-01-01" in location

        page = client.get("/practices/training-and-upskilling", params=ACME)
        assert "Largely in Place" in page.text

    def test_findings_form(self, client):
        response = client.post(
            "/practices/training-and-upskilling/aspects/Training Programs/findings",
            params=ACME,
            data={"findings": "Monthly brown-bags"},
            follow_redirects=False,
        )
        assert response.status_code == 303
        page = client.get("/practices/training-and-upskilling", params=ACME)
        assert "Monthly brown-bags" in page.text

    def test_practice_cycle_action(self, client):
        response = client.post(
            "/pillars/Strategy/practices/Scalability/cycle", params=ACME, follow_redirects=False
        )
        assert response.status_code == 303
        assert response.headers["location"].split("?")[0].endswith("/")

    def test_post_forms_disable_their_buttons(self, client):
        page = client.get("/practices/training-and-upskilling", params=ACME)
        assert page.text.count("onsubmit=") == 15
        dashboard = client.get("/", params=ACME)
        assert "b.disabled = true" in dashboard.text

    def test_findings_form_keeps_text(self, client):
        text = "p99 > 20ms & rising"
        client.post(
            "/practices/training-and-upskilling/aspects/Training Programs/findings",
            params=ACME,
            data={"findings": text},
        )
        aspects = client.get(f"{TRAINING}/aspects", params=ACME).json()["aspects"]
        stored = next(a for a in aspects if a["name"] == "Training Programs")
        assert stored["findings"] == text
