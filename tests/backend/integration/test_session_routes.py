from unittest.mock import AsyncMock, patch

import pytest

from speech_audit.models import Response, TranscriptionStatus
from speech_audit.services.asr_base import TranscriptionResult

ANSWER_100_WORDS = " ".join(["word"] * 100)


pytestmark = pytest.mark.asyncio


async def _start(client, template_id: int, headers=None) -> dict:
    resp = await client.post("/api/v1/sessions", json={"templateId": template_id}, headers=headers or {})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


async def test_anonymous_session_runs_to_completion(client, create_template):
    template = await create_template(count=2, intro_message="Hello there.", outro_message="Thanks!")
    state = await _start(client, template.id)
    token = state["sessionToken"]
    assert state["anonymous"] is True
    assert state["introMessage"] == "Hello there."
    assert state["currentQuestion"]["sequence"] == 1

    current = await client.get(f"/api/v1/sessions/{token}/current-question")
    assert current.json()["data"]["questionNumber"] == 1
    assert current.json()["data"]["totalQuestions"] == 2

    for expected_index in (1, 2):
        answer = await client.post(
            f"/api/v1/sessions/{token}/responses",
            json={"text": ANSWER_100_WORDS, "confidence": 0.9, "audioDurationSeconds": 40},
        )
        assert answer.status_code == 200, answer.text
        body = answer.json()["data"]
        assert body["advanced"] is True
        assert body["response"]["qualityScore"] == 86
        assert body["session"]["currentQuestionIndex"] == expected_index

    final = (await client.get(f"/api/v1/sessions/{token}")).json()["data"]
    assert final["status"] == "completed"
    assert final["progressPercentage"] == 100.0
    assert final["currentQuestion"] is None

    done = await client.get(f"/api/v1/sessions/{token}/current-question")
    assert done.json()["data"] == {"question": None, "outroMessage": "Thanks!"}

    insight = await client.get(f"/api/v1/sessions/{token}/insight")
    assert insight.status_code == 200
    assert insight.json()["data"]["overallScore"] == pytest.approx(92.4)
    assert insight.json()["data"]["riskColor"] == "green"

    report = await client.get(f"/api/v1/sessions/{token}/insight/report")
    assert report.json()["data"]["strengths"][1] == "All questions answered completely"

    listing = await client.get(f"/api/v1/sessions/{token}/responses")
    assert [r["questionSequence"] for r in listing.json()["data"]["items"]] == [1, 2]

    # No more answers once completed
    late = await client.post(f"/api/v1/sessions/{token}/responses", json={"text": "extra"})
    assert late.status_code == 409
    assert late.json()["error"]["code"] == "SESSION_NOT_ACTIVE"


async def test_low_confidence_answer_needs_clarification(client, create_template):
    template = await create_template(count=2)
    token = (await _start(client, template.id))["sessionToken"]

    answer = await client.post(
        f"/api/v1/sessions/{token}/responses",
        json={"text": "uh maybe", "confidence": 0.2},
    )
    body = answer.json()["data"]
    assert body["advanced"] is False
    assert body["response"]["requiresClarification"] is True
    assert body["response"]["clarificationNotes"] == "Low transcription confidence: 20%"
    response_id = body["response"]["id"]

    detail = await client.get(f"/api/v1/sessions/{token}/responses/{response_id}")
    assert detail.json()["data"]["needsReview"] is True

    cleared = await client.delete(f"/api/v1/sessions/{token}/responses/{response_id}/clarification")
    assert cleared.json()["data"]["requiresClarification"] is False

    flagged = await client.post(
        f"/api/v1/sessions/{token}/responses/{response_id}/clarification",
        json={"notes": "Ask about the supplier"},
    )
    assert flagged.json()["data"]["clarificationNotes"] == "Ask about the supplier"

    skipped = await client.post(f"/api/v1/sessions/{token}/advance")
    assert skipped.json()["data"]["currentQuestionIndex"] == 1

    rejected = await client.post(
        f"/api/v1/sessions/{token}/responses",
        json={"text": "out of range", "confidence": 1.5},
    )
    assert rejected.status_code == 422


async def test_confident_retry_replaces_flagged_answer(client, create_template):
    template = await create_template(count=2)
    token = (await _start(client, template.id))["sessionToken"]

    first = await client.post(f"/api/v1/sessions/{token}/responses", json={"text": "mumble", "confidence": 0.2})
    assert first.json()["data"]["advanced"] is False

    retry = await client.post(
        f"/api/v1/sessions/{token}/responses",
        json={"text": ANSWER_100_WORDS, "confidence": 0.95},
    )
    body = retry.json()["data"]
    assert body["advanced"] is True
    assert body["response"]["id"] == first.json()["data"]["response"]["id"]
    assert body["response"]["requiresClarification"] is False
    assert body["response"]["clarificationNotes"] is None
    assert body["session"]["currentQuestionIndex"] == 1


async def test_audio_upload_is_transcribed_in_background(client, create_template):
    template = await create_template(count=2)
    token = (await _start(client, template.id))["sessionToken"]
    result = TranscriptionResult(full_text=ANSWER_100_WORDS, confidence=0.9, duration_sec=38.2)

    with patch(
        "speech_audit.services.transcription.transcribe_audio",
        new=AsyncMock(return_value=result),
    ):
        resp = await client.post(
            f"/api/v1/sessions/{token}/responses/audio",
            files={"file": ("answer.webm", b"fake-webm-bytes", "audio/webm")},
        )

    assert resp.status_code == 202, resp.text
    response_id = resp.json()["data"]["id"]
    stored = await Response.get(id=response_id)
    assert stored.transcription_status == TranscriptionStatus.COMPLETED
    assert stored.original_audio_duration_seconds == 38
    assert stored.audio_path.endswith(".webm")

    state = (await client.get(f"/api/v1/sessions/{token}")).json()["data"]
    assert state["currentQuestionIndex"] == 1


async def test_failed_audio_can_be_retranscribed(client, create_template):
    template = await create_template(count=1)
    token = (await _start(client, template.id))["sessionToken"]

    with patch(
        "speech_audit.services.transcription.transcribe_audio",
        new=AsyncMock(side_effect=RuntimeError("engine down")),
    ):
        resp = await client.post(
            f"/api/v1/sessions/{token}/responses/audio",
            files={"file": ("answer.wav", b"RIFF", "audio/wav")},
        )
    response_id = resp.json()["data"]["id"]
    assert (await Response.get(id=response_id)).transcription_status == TranscriptionStatus.FAILED

    with patch(
        "speech_audit.services.transcription.transcribe_audio",
        new=AsyncMock(return_value=TranscriptionResult(full_text=ANSWER_100_WORDS, confidence=0.95)),
    ):
        again = await client.post(f"/api/v1/sessions/{token}/responses/{response_id}/retranscribe")

    assert again.status_code == 202
    assert (await Response.get(id=response_id)).transcription_status == TranscriptionStatus.COMPLETED
    assert (await client.get(f"/api/v1/sessions/{token}")).json()["data"]["status"] == "completed"


async def test_empty_upload_rejected(client, create_template):
    template = await create_template(count=1)
    token = (await _start(client, template.id))["sessionToken"]
    resp = await client.post(
        f"/api/v1/sessions/{token}/responses/audio",
        files={"file": ("answer.webm", b"", "audio/webm")},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "EMPTY_AUDIO"


async def test_owned_sessions_require_owner(client, create_user, create_template, auth_header_factory):
    template = await create_template(count=2)
    owner, owner_password = await create_user()
    other, other_password = await create_user()
    owner_headers = await auth_header_factory(owner.email, owner_password)
    other_headers = await auth_header_factory(other.email, other_password)
    client.cookies.clear()

    state = await _start(client, template.id, owner_headers)
    token = state["sessionToken"]
    assert state["anonymous"] is False

    assert (await client.get(f"/api/v1/sessions/{token}")).status_code == 401
    assert (await client.get(f"/api/v1/sessions/{token}", headers=other_headers)).status_code == 403
    assert (await client.get(f"/api/v1/sessions/{token}", headers=owner_headers)).status_code == 200

    mine = await client.get("/api/v1/sessions", headers=owner_headers)
    assert [s["sessionToken"] for s in mine.json()["data"]["items"]] == [token]
    assert (await client.get("/api/v1/sessions", headers=other_headers)).json()["data"]["total"] == 0


async def test_abandon_restart_and_errors(client, create_template):
    template = await create_template(count=2)
    token = (await _start(client, template.id))["sessionToken"]

    abandoned = await client.post(f"/api/v1/sessions/{token}/abandon")
    assert abandoned.json()["data"]["status"] == "abandoned"

    again = await client.post(f"/api/v1/sessions/{token}/abandon")
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "SESSION_NOT_ACTIVE"

    stuck = await client.post(f"/api/v1/sessions/{token}/advance")
    assert stuck.status_code == 409
    assert stuck.json()["error"]["code"] == "CANNOT_ADVANCE"

    restarted = await client.post(f"/api/v1/sessions/{token}/restart")
    assert restarted.json()["data"]["status"] == "started"
    assert restarted.json()["data"]["currentQuestionIndex"] == 0

    assert (await client.get("/api/v1/sessions/not-a-token")).status_code == 404
    assert (await client.get(f"/api/v1/sessions/{token}/insight")).status_code == 404


async def test_start_session_errors(client, create_template):
    missing = await client.post("/api/v1/sessions", json={"templateId": 9999})
    assert missing.status_code == 404

    inactive = await create_template(count=1, active=False)
    resp = await client.post("/api/v1/sessions", json={"templateId": inactive.id})
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "TEMPLATE_INACTIVE"


async def test_insight_regenerate_and_admin_update(client, create_admin, create_template, auth_header_factory):
    template = await create_template(count=1)
    token = (await _start(client, template.id))["sessionToken"]

    early = await client.post(f"/api/v1/sessions/{token}/insight/regenerate")
    assert early.status_code == 409
    assert early.json()["error"]["code"] == "SESSION_NOT_COMPLETED"

    await client.post(f"/api/v1/sessions/{token}/responses", json={"text": ANSWER_100_WORDS, "confidence": 0.9})
    regenerated = await client.post(f"/api/v1/sessions/{token}/insight/regenerate")
    assert regenerated.status_code == 200
    assert regenerated.json()["data"]["confidenceLevel"] == "high"

    update = {"summary": "Reviewed", "overallScore": 65, "riskIndicators": [{"severity": "high", "description": "x"}]}
    anonymous_put = await client.put(f"/api/v1/sessions/{token}/insight", json=update)
    assert anonymous_put.status_code == 401

    admin, password = await create_admin()
    headers = await auth_header_factory(admin.email, password)
    updated = await client.put(f"/api/v1/sessions/{token}/insight", headers=headers, json=update)
    assert updated.status_code == 200
    data = updated.json()["data"]
    assert data["summary"] == "Reviewed"
    assert data["riskLevel"] == "medium"
    assert data["confidenceLevel"] == "medium"
