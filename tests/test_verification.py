"""
Game Platform Backend: Studio Verification Tests
==================================================

What we test:
    ✅ evaluate_submission scoring and the approve/review/reject thresholds
    ✅ Submission outcomes: auto-approve (role upgrade), manual review, auto-reject
    ✅ Resubmission only after rejection
    ✅ Admin decision only for profiles in manual review
    ✅ Other users' profiles are reported as missing
"""

import uuid

import pytest

from conftest import VERIFIED_STUDIO
from gameplatform.schemas.studio import StudioSubmitRequest
from gameplatform.services.verification_service import evaluate_submission, outcome_for

NAME_ONLY = {"kind": "developer", "company_name": "Garage Games", "contact_email": "dev@gmail.com"}
NEEDS_REVIEW = {**NAME_ONLY, "website": "https://garagegames.io"}


class TestEvaluateSubmission:

    def test_full_evidence_scores_one(self):
        confidence, scores = evaluate_submission(StudioSubmitRequest(kind="developer", **VERIFIED_STUDIO))
        assert confidence == 1.0
        assert scores["email_domain"] == 0.2
        assert outcome_for(confidence) == "approved"

    def test_name_only_is_rejected(self):
        confidence, _ = evaluate_submission(StudioSubmitRequest(**NAME_ONLY))
        assert confidence == 0.15
        assert outcome_for(confidence) == "rejected"

    def test_https_website_lands_in_review(self):
        confidence, scores = evaluate_submission(StudioSubmitRequest(**NEEDS_REVIEW))
        assert confidence == 0.35
        assert scores["email_domain"] == 0.0
        assert outcome_for(confidence) == "manual_review"

    def test_plain_http_scores_less(self):
        _, scores = evaluate_submission(StudioSubmitRequest(**{**NAME_ONLY, "website": "http://garagegames.io"}))
        assert scores["website"] == 0.1

    def test_email_subdomain_matches_website(self):
        _, scores = evaluate_submission(StudioSubmitRequest(**{
            **NAME_ONLY,
            "website": "https://www.garagegames.io",
            "contact_email": "legal@mail.garagegames.io",
        }))
        assert scores["email_domain"] == 0.2

    def test_malformed_tax_id_ignored(self):
        _, scores = evaluate_submission(StudioSubmitRequest(**{**NAME_ONLY, "tax_id": "no!"}))
        assert scores["tax_id"] == 0.0

    def test_single_document_scores_half(self):
        _, scores = evaluate_submission(StudioSubmitRequest(**{**NAME_ONLY, "documents": ["https://x/y.pdf"]}))
        assert scores["documents"] == 0.1

    def test_approve_threshold_is_inclusive(self):
        evidence = {k: v for k, v in VERIFIED_STUDIO.items() if k != "documents"}
        confidence, _ = evaluate_submission(StudioSubmitRequest(kind="publisher", **evidence))
        assert confidence == 0.8
        assert outcome_for(confidence) == "approved"


class TestSubmission:

    @pytest.mark.asyncio
    async def test_auto_approval_upgrades_role(self, test_client, register):
        nova = await register("nova")

        response = await test_client.post(
            "/api/studios/verification", json={"kind": "developer", **VERIFIED_STUDIO}, headers=nova["headers"]
        )

        assert response.status_code == 201
        body = response.json()
        assert body["verification_status"] == "approved"
        assert body["confidence"] == 1.0
        assert body["contact_email"] == "legal@pixelforge.dev"
        assert body["country"] == "US"

        me = await test_client.get("/api/users/me", headers=nova["headers"])
        assert me.json()["role"] == "developer"

        notes = (await test_client.get("/api/notifications?type=verification", headers=nova["headers"])).json()
        assert notes["items"][0]["title"] == "Verification approved"

    @pytest.mark.asyncio
    async def test_auto_rejection_keeps_role(self, test_client, register):
        nova = await register("nova")
        response = await test_client.post("/api/studios/verification", json=NAME_ONLY, headers=nova["headers"])

        assert response.json()["verification_status"] == "rejected"
        me = await test_client.get("/api/users/me", headers=nova["headers"])
        assert me.json()["role"] == "user"

    @pytest.mark.asyncio
    async def test_rejected_profile_can_be_resubmitted(self, test_client, register):
        nova = await register("nova")
        first = await test_client.post("/api/studios/verification", json=NAME_ONLY, headers=nova["headers"])

        second = await test_client.post(
            "/api/studios/verification", json={"kind": "developer", **VERIFIED_STUDIO}, headers=nova["headers"]
        )

        assert second.status_code == 201
        assert second.json()["id"] == first.json()["id"]
        assert second.json()["verification_status"] == "approved"

    @pytest.mark.asyncio
    async def test_resubmission_blocked_while_in_review(self, test_client, register):
        nova = await register("nova")
        await test_client.post("/api/studios/verification", json=NEEDS_REVIEW, headers=nova["headers"])

        again = await test_client.post("/api/studios/verification", json=NEEDS_REVIEW, headers=nova["headers"])

        assert again.status_code == 409
        assert again.json()["details"]["status"] == "manual_review"

    @pytest.mark.asyncio
    async def test_developer_and_publisher_are_separate(self, test_client, register):
        nova = await register("nova")
        await test_client.post(
            "/api/studios/verification", json={"kind": "developer", **VERIFIED_STUDIO}, headers=nova["headers"]
        )
        publisher = await test_client.post(
            "/api/studios/verification", json={"kind": "publisher", **VERIFIED_STUDIO}, headers=nova["headers"]
        )
        assert publisher.status_code == 201

        mine = await test_client.get("/api/studios/me", headers=nova["headers"])
        assert [p["kind"] for p in mine.json()] == ["developer", "publisher"]
        # First approval decided the role
        me = await test_client.get("/api/users/me", headers=nova["headers"])
        assert me.json()["role"] == "developer"

    @pytest.mark.asyncio
    async def test_other_users_profile_is_missing(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")
        created = await test_client.post("/api/studios/verification", json=NAME_ONLY, headers=nova["headers"])

        own = await test_client.get(f"/api/studios/{created.json()['id']}", headers=nova["headers"])
        other = await test_client.get(f"/api/studios/{created.json()['id']}", headers=rex["headers"])
        assert own.status_code == 200
        assert other.status_code == 404


class TestManualReview:

    @pytest.mark.asyncio
    async def test_admin_approves_pending_profile(self, test_client, register, make_admin):
        nova = await register("nova")
        boss = await register("boss")
        await make_admin(boss["user"]["id"])
        created = await test_client.post("/api/studios/verification", json=NEEDS_REVIEW, headers=nova["headers"])
        assert created.json()["verification_status"] == "manual_review"

        pending = await test_client.get("/api/studios/pending", headers=boss["headers"])
        assert [p["id"] for p in pending.json()] == [created.json()["id"]]

        decided = await test_client.post(
            f"/api/studios/{created.json()['id']}/decision",
            json={"approve": True, "notes": "Checked the registry"},
            headers=boss["headers"],
        )
        assert decided.status_code == 200
        assert decided.json()["verification_status"] == "approved"
        assert decided.json()["review_notes"] == "Checked the registry"
        assert decided.json()["decided_at"] is not None

        me = await test_client.get("/api/users/me", headers=nova["headers"])
        assert me.json()["role"] == "developer"
        assert (await test_client.get("/api/studios/pending", headers=boss["headers"])).json() == []

    @pytest.mark.asyncio
    async def test_admin_rejection_notes_reach_owner(self, test_client, register, make_admin):
        nova = await register("nova")
        boss = await register("boss")
        await make_admin(boss["user"]["id"])
        created = await test_client.post("/api/studios/verification", json=NEEDS_REVIEW, headers=nova["headers"])

        await test_client.post(
            f"/api/studios/{created.json()['id']}/decision",
            json={"approve": False, "notes": "Website is parked"},
            headers=boss["headers"],
        )

        notes = (await test_client.get("/api/notifications?type=verification", headers=nova["headers"])).json()
        assert "Website is parked" in notes["items"][0]["message"]

    @pytest.mark.asyncio
    async def test_decision_requires_manual_review(self, test_client, register, make_admin):
        nova = await register("nova")
        boss = await register("boss")
        await make_admin(boss["user"]["id"])
        created = await test_client.post("/api/studios/verification", json=NAME_ONLY, headers=nova["headers"])

        response = await test_client.post(
            f"/api/studios/{created.json()['id']}/decision", json={"approve": True}, headers=boss["headers"]
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_decision_requires_admin(self, test_client, register):
        nova = await register("nova")
        created = await test_client.post("/api/studios/verification", json=NEEDS_REVIEW, headers=nova["headers"])

        response = await test_client.post(
            f"/api/studios/{created.json()['id']}/decision", json={"approve": True}, headers=nova["headers"]
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_decision_on_unknown_profile(self, test_client, register, make_admin):
        boss = await register("boss")
        await make_admin(boss["user"]["id"])
        response = await test_client.post(
            f"/api/studios/{uuid.uuid4()}/decision", json={"approve": True}, headers=boss["headers"]
        )
        assert response.status_code == 404
