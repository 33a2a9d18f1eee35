"""End-to-end tests for the HTTP surface with an in-memory balance store."""

import pytest
from balance_store import InMemoryBalanceStore
from carbon.ai_response import DEFAULT_RECOMMENDATIONS
from carbon.exceptions import BalanceStoreUnavailable, ExternalServiceDegraded


class _UnavailableStore(InMemoryBalanceStore):
    def record_submission(self, record, delta, now, cooldown_hours=0):
        raise BalanceStoreUnavailable("firestore timeout")

    def apply_points_delta(self, user_id, delta, operation_id=None, reason=None):
        raise BalanceStoreUnavailable("firestore timeout")


class _QueuedTask:
    def __init__(self):
        self.calls = []

    def delay(self, *args):
        self.calls.append(args)


# ─── Estimate ───────────────────────────────────────────────────────────────


class TestEstimate:
    """POST /api/carbon/estimate"""

    def test_worst_dubai_day(self, client, worst_dubai_survey):
        resp = client.post("/api/carbon/estimate", json=worst_dubai_survey)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["kg"] == 80.8
        assert body["basePoints"] == 0
        assert body["penaltyPoints"] == -8
        assert body["debug"]["region"] == "uae"
        assert body["debug"]["chosen"] == {
            "transport": "car_gasoline",
            "diet": "red_meat",
            "drink": "drink_alcohol",
            "energy": "high",
        }

    def test_light_turkey_day(self, client, best_turkey_survey):
        resp = client.post("/api/carbon/estimate", json=best_turkey_survey)
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["kg"] == 4.0
        assert body["basePoints"] == 30
        assert body["penaltyPoints"] == 0

    def test_ai_hint_cannot_leave_region_band(self, client, best_turkey_survey):
        resp = client.post("/api/carbon/estimate", json={**best_turkey_survey, "aiKg": 100000})
        body = resp.get_json()
        assert 10 <= body["kg"] <= 40

    def test_free_text_energy(self, client, best_turkey_survey):
        resp = client.post("/api/carbon/estimate", json={**best_turkey_survey, "energy": "hepsi açık"})
        assert resp.get_json()["debug"]["chosen"]["energy"] == "high"

    def test_missing_region_uses_fallback(self, client, best_turkey_survey):
        survey = {k: v for k, v in best_turkey_survey.items() if k != "region"}
        resp = client.post("/api/carbon/estimate", json=survey)
        assert resp.get_json()["debug"]["region"] == "default"

    def test_empty_selection_is_rejected(self, client, best_turkey_survey):
        resp = client.post("/api/carbon/estimate", json={**best_turkey_survey, "transport": []})
        assert resp.status_code == 400
        assert resp.get_json()["error_code"] == "VALIDATION_ERROR"

    def test_unknown_options_are_rejected(self, client, best_turkey_survey):
        resp = client.post("/api/carbon/estimate", json={**best_turkey_survey, "diet": ["moon_cheese"]})
        assert resp.status_code == 400
        assert resp.get_json()["error_code"] == "VALIDATION_ERROR"

    def test_missing_body_is_rejected(self, client):
        resp = client.post("/api/carbon/estimate", data="not json", content_type="text/plain")
        assert resp.status_code == 400


# ─── Analysis ───────────────────────────────────────────────────────────────


class TestAnalysis:
    """POST /api/carbon/analysis"""

    def test_sanitizes_ai_reply(self, client, analyzer_stub, best_turkey_survey):
        analyzer_stub.reply = {"estimatedFootprintKg": "12.5", "recommendations": None}
        resp = client.post("/api/carbon/analysis", json=best_turkey_survey)
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["aiAvailable"] is True
        assert body["estimatedFootprintKg"] == 4.0
        assert body["recommendations"] == list(DEFAULT_RECOMMENDATIONS)
        assert len(body["recoveryActions"]) == 3
        assert body["basePoints"] == 30

    def test_ai_outage_falls_back_to_general_tips(self, client, analyzer_stub, best_turkey_survey):
        analyzer_stub.error = ExternalServiceDegraded("timeout")
        resp = client.post("/api/carbon/analysis", json=best_turkey_survey)
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["aiAvailable"] is False
        assert body["recommendations"] == list(DEFAULT_RECOMMENDATIONS)

    def test_analyzer_receives_normalized_payload(self, client, analyzer_stub, best_turkey_survey):
        client.post("/api/carbon/analysis", json={**best_turkey_survey, "energy": "kapalı"})
        payload = analyzer_stub.calls[-1]
        assert payload["region"] == "turkey"
        assert payload["energy"] == "none"


# ─── Surveys and verification ───────────────────────────────────────────────


class TestSurveySettlement:
    """POST /api/carbon/surveys and /verification"""

    def _submit(self, client, headers, survey):
        return client.post("/api/carbon/surveys", json=survey, headers=headers)

    def test_requires_token(self, client, best_turkey_survey):
        resp = client.post("/api/carbon/surveys", json=best_turkey_survey)
        assert resp.status_code == 401
        assert resp.get_json()["error_code"] == "TOKEN_MISSING"

    def test_rejects_bad_token(self, client, best_turkey_survey):
        resp = client.post("/api/carbon/surveys", json=best_turkey_survey,
                           headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401
        assert resp.get_json()["error_code"] == "TOKEN_INVALID"

    def test_provisional_bonus_and_duplicate_verification(self, client, store, analyzer_stub, auth_headers,
                                                          best_turkey_survey):
        analyzer_stub.error = ExternalServiceDegraded("timeout")
        headers = auth_headers("user-1")

        resp = self._submit(client, headers, best_turkey_survey)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["status"] == "SETTLED"
        assert body["basePoints"] == 30
        assert body["provisionalPoints"] == 10
        assert body["pointsDelta"] == 10
        assert body["totalPoints"] == 10
        assert body["analysis"]["aiAvailable"] is False
        submission_id = body["submissionId"]

        url = f"/api/carbon/surveys/{submission_id}/verification"
        first = client.post(url, json={"verified": True}, headers=headers).get_json()
        assert first["status"] == "FINALIZED"
        assert first["pointsDelta"] == 80
        assert first["bonusPoints"] == 90
        assert first["totalPoints"] == 90

        second = client.post(url, json={"verified": True}, headers=headers).get_json()
        assert second["status"] == "ALREADY_FINALIZED"
        assert second["applied"] is False
        assert second["pointsDelta"] == 0
        assert store.get_balance("user-1") == 90

    def test_client_ai_hint_is_ignored_on_submission(self, client, analyzer_stub, auth_headers,
                                                     best_turkey_survey):
        analyzer_stub.error = ExternalServiceDegraded("timeout")
        resp = self._submit(client, auth_headers(), {**best_turkey_survey, "aiKg": 40})
        assert resp.get_json()["kg"] == 4.0

    def test_penalty_day_floors_balance_at_zero(self, client, store, analyzer_stub, auth_headers,
                                                worst_dubai_survey):
        analyzer_stub.error = ExternalServiceDegraded("timeout")
        resp = self._submit(client, auth_headers("user-2"), worst_dubai_survey)
        body = resp.get_json()
        assert body["penaltyPoints"] == -8
        assert body["pointsDelta"] == -8
        assert body["provisionalPoints"] == 0
        assert body["totalPoints"] == 0
        assert store.get_balance("user-2") == 0

    def test_rejected_verification(self, client, store, analyzer_stub, auth_headers, best_turkey_survey):
        analyzer_stub.error = ExternalServiceDegraded("timeout")
        headers = auth_headers()
        submission_id = self._submit(client, headers, best_turkey_survey).get_json()["submissionId"]
        resp = client.post(f"/api/carbon/surveys/{submission_id}/verification",
                           json={"verified": False, "reason": "photo unclear"}, headers=headers)
        assert resp.get_json()["status"] == "REJECTED"
        assert store.get_balance("user-1") == 10

    def test_unknown_submission_is_404(self, client, auth_headers):
        resp = client.post("/api/carbon/surveys/nope/verification", json={"verified": True}, headers=auth_headers())
        assert resp.status_code == 404
        assert resp.get_json()["error_code"] == "SUBMISSION_NOT_FOUND"

    def test_cooldown_blocks_second_survey(self, client, analyzer_stub, auth_headers, best_turkey_survey):
        analyzer_stub.error = ExternalServiceDegraded("timeout")
        headers = auth_headers()
        assert self._submit(client, headers, best_turkey_survey).status_code == 201

        resp = self._submit(client, headers, best_turkey_survey)
        assert resp.status_code == 429
        body = resp.get_json()
        assert body["error_code"] == "SURVEY_COOLDOWN"
        assert body["details"]["retryAfterSeconds"] > 0

    def test_store_outage_queues_settlement(self, monkeypatch, make_app, analyzer_stub, auth_headers,
                                            best_turkey_survey):
        import tasks

        queued = _QueuedTask()
        monkeypatch.setattr(tasks, "settle_submission_task", queued)
        app = make_app(_UnavailableStore())
        analyzer_stub.error = ExternalServiceDegraded("timeout")

        resp = app.test_client().post("/api/carbon/surveys", json=best_turkey_survey, headers=auth_headers())
        assert resp.status_code == 202
        assert resp.get_json()["status"] == "SETTLEMENT_QUEUED"
        record_data, delta, _ = queued.calls[0]
        assert record_data["base_points"] == 30
        assert delta == 10


# ─── Recycling ──────────────────────────────────────────────────────────────


class TestRecyclingRewards:
    """POST /api/rewards/recycling"""

    def test_award_and_replay(self, client, store, auth_headers):
        headers = auth_headers()
        first = client.post("/api/rewards/recycling", json={"material": "Plastic bottle", "actionId": "a-1"},
                            headers=headers).get_json()
        assert first == {"status": "AWARDED", "points": 18, "applied": True, "totalPoints": 18}

        replay = client.post("/api/rewards/recycling", json={"material": "Plastic bottle", "actionId": "a-1"},
                             headers=headers).get_json()
        assert replay["status"] == "DUPLICATE"
        assert replay["applied"] is False
        assert store.get_balance("user-1") == 18

    def test_missing_action_id_is_rejected(self, client, auth_headers):
        resp = client.post("/api/rewards/recycling", json={"material": "glass"}, headers=auth_headers())
        assert resp.status_code == 400


# ─── App ────────────────────────────────────────────────────────────────────


class TestApp:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "OK"

    @pytest.mark.parametrize("path", ["/nope", "/api/carbon/unknown"])
    def test_unknown_route_uses_error_envelope(self, client, path):
        resp = client.get(path)
        assert resp.status_code == 404
        assert resp.get_json()["error_code"] == "NOT_FOUND"


class TestRecyclingOutage:
    def test_store_outage_queues_award(self, monkeypatch, make_app, auth_headers):
        import tasks

        queued = _QueuedTask()
        monkeypatch.setattr(tasks, "award_points_task", queued)
        app = make_app(_UnavailableStore())

        resp = app.test_client().post("/api/rewards/recycling", json={"material": "battery", "actionId": "a-9"},
                                      headers=auth_headers())
        assert resp.status_code == 202
        assert queued.calls == [("user-1", 30, "recycling:a-9", "recycling:battery")]


class _FinalizedReadFailsStore(InMemoryBalanceStore):
    """Reads of a finalized submission fail, as a flaky store would after the write."""

    def get_submission(self, user_id, submission_id):
        record = super().get_submission(user_id, submission_id)
        if record is not None and record.finalized:
            raise BalanceStoreUnavailable("read timeout")
        return record


class TestVerificationLookup:
    def test_rejection_of_unknown_submission_is_404(self, client, auth_headers):
        resp = client.post("/api/carbon/surveys/does-not-exist/verification",
                           json={"verified": False}, headers=auth_headers())
        assert resp.status_code == 404
        assert resp.get_json()["error_code"] == "SUBMISSION_NOT_FOUND"

    def test_other_users_submission_is_404(self, client, analyzer_stub, auth_headers, best_turkey_survey):
        analyzer_stub.error = ExternalServiceDegraded("timeout")
        submission_id = client.post("/api/carbon/surveys", json=best_turkey_survey,
                                    headers=auth_headers("user-1")).get_json()["submissionId"]
        resp = client.post(f"/api/carbon/surveys/{submission_id}/verification",
                           json={"verified": True}, headers=auth_headers("user-2"))
        assert resp.status_code == 404

    def test_applied_finalization_needs_no_second_read(self, make_app, analyzer_stub, auth_headers,
                                                       best_turkey_survey):
        store = _FinalizedReadFailsStore()
        client = make_app(store).test_client()
        analyzer_stub.error = ExternalServiceDegraded("timeout")
        headers = auth_headers()
        submission_id = client.post("/api/carbon/surveys", json=best_turkey_survey,
                                    headers=headers).get_json()["submissionId"]

        resp = client.post(f"/api/carbon/surveys/{submission_id}/verification", json={"verified": True},
                           headers=headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "FINALIZED"
        assert body["bonusPoints"] == 90
        assert store.get_balance("user-1") == 90
