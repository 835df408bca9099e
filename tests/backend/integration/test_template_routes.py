from unittest.mock import AsyncMock, patch

import pytest

from speech_audit.config import settings
from speech_audit.services import session_flow


pytestmark = pytest.mark.asyncio


async def _admin_headers(create_admin, auth_header_factory):
    admin, password = await create_admin()
    return await auth_header_factory(admin.email, password)


async def test_admin_creates_template_with_questions(client, create_admin, auth_header_factory):
    headers = await _admin_headers(create_admin, auth_header_factory)

    resp = await client.post(
        "/api/v1/templates",
        headers=headers,
        json={
            "name": "Warehouse Safety",
            "estimatedDurationMinutes": 10,
            "introMessage": "Welcome.",
            "questions": [
                {"text": "Are exits clear?", "questionType": "yes_no"},
                {"text": "How many incidents this month?", "questionType": "numeric", "maxResponseSeconds": 60},
            ],
        },
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["totalQuestions"] == 2
    assert [q["sequence"] for q in data["questions"]] == [1, 2]
    assert data["questions"][0]["expectedResponseFormat"] == "Please answer yes or no"
    assert data["questions"][0]["speechText"] == "Are exits clear? ..."

    added = await client.post(
        f"/api/v1/templates/{data['id']}/questions",
        headers=headers,
        json={"text": "Anything else to report?"},
    )
    assert added.status_code == 200
    assert added.json()["data"]["sequence"] == 3

    dup = await client.post("/api/v1/templates", headers=headers, json={"name": "Warehouse Safety"})
    assert dup.status_code == 409
    assert dup.json()["detail"]["code"] == "TEMPLATE_EXISTS"


async def test_invalid_question_rolls_back_template(client, create_admin, auth_header_factory):
    headers = await _admin_headers(create_admin, auth_header_factory)

    resp = await client.post(
        "/api/v1/templates",
        headers=headers,
        json={"name": "Broken", "questions": [{"text": "Fine?"}, {"text": "Too long?", "maxResponseSeconds": 900}]},
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_FAILED"

    listing = await client.get("/api/v1/templates", headers=headers)
    assert listing.json()["data"]["total"] == 0


async def test_question_audio_is_scheduled_when_enabled(client, create_admin, create_template, auth_header_factory, monkeypatch):
    headers = await _admin_headers(create_admin, auth_header_factory)
    template = await create_template(count=0)
    monkeypatch.setattr(settings, "generate_question_audio", True)

    with patch(
        "speech_audit.api.v1.routers.templates.synthesize_question_audio",
        new=AsyncMock(return_value=None),
    ) as mock_synth:
        resp = await client.post(
            f"/api/v1/templates/{template.id}/questions",
            headers=headers,
            json={"text": "Spoken?"},
        )

    assert resp.status_code == 200
    mock_synth.assert_awaited_once_with(resp.json()["data"]["id"], template.default_voice)


async def test_users_see_only_active_templates(client, create_user, create_template, auth_header_factory):
    user, password = await create_user()
    headers = await auth_header_factory(user.email, password)
    active = await create_template(count=2, name="Active one")
    hidden = await create_template(count=1, name="Hidden one", active=False)

    listing = await client.get("/api/v1/templates", headers=headers, params={"includeInactive": True})
    assert [t["name"] for t in listing.json()["data"]["items"]] == ["Active one"]

    detail = await client.get(f"/api/v1/templates/{active.id}", headers=headers)
    assert len(detail.json()["data"]["questions"]) == 2

    assert (await client.get(f"/api/v1/templates/{hidden.id}", headers=headers)).status_code == 404
    assert (await client.post("/api/v1/templates", headers=headers, json={"name": "x"})).status_code == 403


async def test_template_in_use_cannot_be_deleted(client, create_admin, create_template, auth_header_factory):
    headers = await _admin_headers(create_admin, auth_header_factory)
    used = await create_template(count=1)
    unused = await create_template(count=1)
    await session_flow.start_session(used)

    blocked = await client.delete(f"/api/v1/templates/{used.id}", headers=headers)
    assert blocked.status_code == 409
    assert blocked.json()["detail"]["code"] == "TEMPLATE_IN_USE"

    deactivated = await client.patch(f"/api/v1/templates/{used.id}", headers=headers, json={"active": False})
    assert deactivated.json()["data"]["active"] is False

    assert (await client.delete(f"/api/v1/templates/{unused.id}", headers=headers)).status_code == 200
    assert (await client.get(f"/api/v1/templates/{unused.id}", headers=headers)).status_code == 404


async def test_used_template_questions_are_frozen(client, create_admin, create_template, auth_header_factory):
    headers = await _admin_headers(create_admin, auth_header_factory)
    used = await create_template(count=1)
    session = await session_flow.start_session(used)
    await session_flow.advance_to_next_question(session)

    added = await client.post(f"/api/v1/templates/{used.id}/questions", headers=headers, json={"text": "One more?"})
    assert added.status_code == 409
    assert added.json()["detail"]["code"] == "TEMPLATE_IN_USE"
    assert await used.total_questions() == 1
    assert await session.progress_percentage() == 100.0


async def test_template_stats(client, create_admin, create_template, auth_header_factory):
    headers = await _admin_headers(create_admin, auth_header_factory)
    template = await create_template(count=1)
    done = await session_flow.start_session(template)
    await session_flow.advance_to_next_question(done)
    await session_flow.start_session(template)

    resp = await client.get(f"/api/v1/templates/{template.id}/stats", headers=headers)
    data = resp.json()["data"]
    assert data["totalSessions"] == 2
    assert data["completedSessions"] == 1
    assert data["completionRate"] == 50.0
