"""
Tests for chat, matching, capability search and submission tips endpoints.
"""
import json

import pytest

from marketplace.schemas.marketplace import ReviewCreate
from marketplace.services.ai_service import CHAT_FALLBACK, TIPS_FALLBACK
from marketplace.services.llm_client import LLMUnavailableError


class TestChat:
    """Tests for POST /api/chat and GET /api/chat/history."""

    def test_requires_login(self, client):
        assert client.post("/api/chat", json={"message": "Hello"}).status_code == 401

    def test_reply_is_stored(self, vendor_client, mock_llm):
        mock_llm.complete.return_value = "Check the phase 1 requirements."

        response = vendor_client.post("/api/chat", json={"message": "Where do I start?"})

        assert response.status_code == 200
        assert response.json()["message"] == "Check the phase 1 requirements."
        assert response.json()["context"]["user_role"] == "vendor"
        history = vendor_client.get("/api/chat/history").json()
        assert len(history) == 1
        assert history[0]["message"] == "Where do I start?"
        assert history[0]["response"] == "Check the phase 1 requirements."

    def test_upstream_failure_still_succeeds(self, vendor_client, mock_llm):
        mock_llm.complete.side_effect = LLMUnavailableError("timed out")

        response = vendor_client.post("/api/chat", json={"message": "Hello?"})

        assert response.status_code == 200
        assert response.json()["message"] == CHAT_FALLBACK

    def test_empty_message_is_rejected(self, vendor_client):
        assert vendor_client.post("/api/chat", json={"message": ""}).status_code == 422

    def test_history_is_per_user_and_newest_first(self, vendor_client, gov_client, mock_llm):
        for question in ("first", "second", "third"):
            vendor_client.post("/api/chat", json={"message": question})
        gov_client.post("/api/chat", json={"message": "government question"})

        history = vendor_client.get("/api/chat/history", params={"limit": 2}).json()

        assert [h["message"] for h in history] == ["third", "second"]

    @pytest.mark.parametrize("limit", [0, 500])
    def test_history_limit_bounds(self, vendor_client, limit):
        assert vendor_client.get("/api/chat/history", params={"limit": limit}).status_code == 422


class TestSemanticMatch:
    """Tests for POST /api/match."""

    def test_requires_login(self, client):
        assert client.post("/api/match", json={"query": "drones"}).status_code == 401

    def test_matches(self, vendor_client, mock_llm, solution_factory, app_storage):
        solution = solution_factory.create(app_storage, vendor_client.user["id"])
        mock_llm.complete.return_value = json.dumps({"matches": [
            {"id": solution.id, "title": solution.title, "score": 0.8, "explanation": "Recon"},
        ]})

        response = vendor_client.post("/api/match", json={"query": "reconnaissance"})

        assert response.status_code == 200
        assert response.json()["total_matches"] == 1
        assert response.json()["matches"][0]["id"] == solution.id

    def test_match_field_of_wrong_type(self, vendor_client, mock_llm, solution_factory, app_storage):
        solution_factory.create(app_storage, vendor_client.user["id"])
        mock_llm.complete.return_value = '{"matches": 5}'

        response = vendor_client.post("/api/match", json={"query": "reconnaissance"})

        assert response.status_code == 200
        assert response.json()["matches"] == []
        assert response.json()["total_matches"] == 0


class TestCapabilitySearch:
    """Tests for POST /api/capability-search."""

    @pytest.fixture
    def reviewed_solution(self, app_storage, vendor_client, gov_client, solution_factory, mock_llm):
        solution = solution_factory.create(app_storage, vendor_client.user["id"], trl=4)
        app_storage.create_review(
            ReviewCreate(solution_id=solution.id, reviewer_id=gov_client.user["id"], rating=5)
        )
        mock_llm.complete.return_value = json.dumps({"matches": [
            {"id": solution.id, "match_percentage": 80, "relevance": "Fits", "trl": 9},
        ]})
        return solution

    def test_public_search_without_reviews(self, client, reviewed_solution):
        response = client.post("/api/capability-search", json={"requirement": "route recon"})

        assert response.status_code == 200
        match = response.json()["matches"][0]
        assert match["id"] == reviewed_solution.id
        assert match["trl"] == 4
        assert match["reviews"] is None

    def test_vendor_does_not_see_reviews(self, vendor_client, reviewed_solution):
        response = vendor_client.post("/api/capability-search", json={"requirement": "route recon"})

        assert response.json()["matches"][0]["reviews"] is None

    def test_government_sees_reviews(self, gov_client, reviewed_solution):
        response = gov_client.post("/api/capability-search", json={"requirement": "route recon"})

        reviews = response.json()["matches"][0]["reviews"]
        assert [r["rating"] for r in reviews] == [5]

    @pytest.mark.parametrize("requirement", ["", "   "])
    def test_requirement_is_required(self, client, requirement):
        response = client.post("/api/capability-search", json={"requirement": requirement})

        assert response.status_code == 400
        assert response.json() == {"detail": "Requirement description is required"}

    def test_empty_catalog(self, client, mock_llm):
        response = client.post("/api/capability-search", json={"requirement": "anything"})

        assert response.status_code == 200
        assert response.json()["matches"] == []
        assert response.json()["message"] == "No solutions available in the database"
        mock_llm.complete.assert_not_called()


class TestSubmissionTips:
    """Tests for GET /api/challenges/{id}/tips."""

    def test_tips(self, vendor_client, admin_client, challenge_payload, mock_llm):
        challenge = admin_client.post("/api/challenges", json=challenge_payload).json()
        mock_llm.complete.return_value = "Show a working prototype."

        response = vendor_client.get(f"/api/challenges/{challenge['id']}/tips")

        assert response.status_code == 200
        assert response.json() == {"challenge_id": challenge["id"], "tips": "Show a working prototype."}

    def test_tips_fallback(self, vendor_client, admin_client, challenge_payload, mock_llm):
        challenge = admin_client.post("/api/challenges", json=challenge_payload).json()
        mock_llm.complete.side_effect = LLMUnavailableError("down")

        response = vendor_client.get(f"/api/challenges/{challenge['id']}/tips")

        assert response.json()["tips"] == TIPS_FALLBACK

    def test_unknown_challenge(self, vendor_client):
        assert vendor_client.get("/api/challenges/missing/tips").status_code == 404

    def test_requires_login(self, client):
        assert client.get("/api/challenges/missing/tips").status_code == 401
