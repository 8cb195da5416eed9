import json

from conftest import USER_ID, days_ago, make_ritual
from fastapi.testclient import TestClient

from nightnotes.errors import UpstreamAuthError, UpstreamOtherError, UpstreamRateLimitError
from nightnotes.main import app
from nightnotes.services.llm_client import TextGenerator
from nightnotes.services.stats import format_date, format_time


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_user_routes_require_a_token(client):
    assert client.get("/dashboard").status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert client.get("/dashboard", headers=bad).status_code == 401


# ---------- ritual flow ----------

def test_submit_ritual_creates_session_and_streak(client, auth_headers):
    res = client.post("/rituals", headers=auth_headers, json={
        "load_before": 5,
        "open_loops": "renew passport",
        "tomorrow_anchor": "Book the photo appointment",
        "load_after": 2,
    })
    assert res.status_code == 201
    body = res.json()
    assert (body["delta"], body["before"], body["after"]) == (3, 5, 2)
    assert body["session"]["load_delta"] == 3
    assert body["session"]["emotional_residue"] is None
    assert body["streak"]["current_streak"] == 1

    latest = client.get("/rituals/latest", headers=auth_headers).json()
    assert latest["id"] == body["session"]["id"]
    assert latest["completed_time"] == format_time(body["session"]["completed_at"])
    assert latest["completed_date"] == format_date(body["session"]["completed_at"])


def test_blank_anchor_is_blocked(client, auth_headers):
    res = client.post("/rituals", headers=auth_headers, json={
        "load_before": 4, "tomorrow_anchor": "   ", "load_after": 2,
    })
    assert res.status_code == 400
    assert "first tomorrow" in res.json()["error"]


def test_missing_rating_is_blocked(client, auth_headers):
    res = client.post("/rituals", headers=auth_headers, json={"tomorrow_anchor": "Run", "load_after": 2})
    assert res.status_code == 400


def test_latest_ritual_404_when_none(client, auth_headers):
    res = client.get("/rituals/latest", headers=auth_headers)
    assert res.status_code == 404
    assert "error" in res.json()


def test_checkin_links_last_night(client, auth_headers):
    client.post("/rituals", headers=auth_headers, json={
        "load_before": 3, "tomorrow_anchor": "Stretch", "load_after": 1,
    })
    session_id = client.get("/rituals/latest", headers=auth_headers).json()["id"]

    res = client.post("/checkins", headers=auth_headers, json={"sharpness": 4})
    assert res.status_code == 201
    assert res.json()["session_id"] == session_id

    assert client.post("/checkins", headers=auth_headers, json={"sharpness": 9}).status_code == 422


# ---------- views ----------

def test_dashboard_first_visit(client, auth_headers):
    body = client.get("/dashboard", headers=auth_headers).json()
    assert body["avg_drop"] == 0
    assert body["streak"] == 0
    assert body["is_first_session"] is True
    assert len(body["week"]) == 7
    assert {"day", "date", "delta", "completed", "isToday", "isBest"} <= set(body["week"][0])


def test_dashboard_after_rituals(client, api_db, auth_headers):
    client.get("/dashboard", headers=auth_headers)  # creates the profile

    async def seed(store):
        await store.complete_session(USER_ID, make_ritual(days_ago(1), before=5, after=1))
        await store.complete_session(USER_ID, make_ritual(days_ago(0), before=4, after=3))

    api_db.seed(seed)
    body = client.get("/dashboard", headers=auth_headers).json()
    assert body["avg_drop"] == 2.5
    assert body["streak"] == 2
    assert body["is_first_session"] is False
    assert sum(d["isToday"] for d in body["week"]) == 1


def test_insights_include_stored_analysis(client, auth_headers, cron_headers, fake_generator):
    client.post("/rituals", headers=auth_headers, json={
        "load_before": 5, "tomorrow_anchor": "Inbox zero", "load_after": 2,
    })
    client.post("/checkins", headers=auth_headers, json={"sharpness": 4})
    fake_generator.responses.append(json.dumps({
        "patterns": [{"type": "trend", "title": "Steady", "description": "Drops of 3 all week."}],
        "insights": "Consistent nights.",
        "common_themes": {},
    }))
    assert client.post("/analysis", headers=cron_headers, json={"user_id": USER_ID}).status_code == 200

    body = client.get("/insights", headers=auth_headers).json()
    assert body["avg_drop"] == 3
    assert body["avg_sharpness"] == 4
    assert body["best_session"]["delta"] == 3
    assert body["streak"] == 1
    assert body["analysis"]["insights"] == "Consistent nights."
    assert body["analysis"]["week_start"] == body["week_start"]


# ---------- weekly analysis ----------

def test_analysis_requires_service_token(client, auth_headers):
    res = client.post("/analysis", headers=auth_headers, json={"user_id": USER_ID})
    assert res.status_code == 401


def test_analysis_requires_user_id(client, cron_headers):
    res = client.post("/analysis", headers=cron_headers, json={})
    assert res.status_code == 400
    assert res.json() == {"error": "User ID required"}


def test_analysis_without_sessions(client, cron_headers, fake_generator):
    res = client.post("/analysis", headers=cron_headers, json={"user_id": USER_ID})
    assert res.status_code == 404
    assert res.json() == {"error": "No sessions found"}
    assert fake_generator.calls == []


def test_analysis_unparseable(client, auth_headers, cron_headers, fake_generator):
    client.post("/rituals", headers=auth_headers, json={
        "load_before": 4, "tomorrow_anchor": "Walk", "load_after": 3,
    })
    fake_generator.responses.append("not json at all")
    res = client.post("/analysis", headers=cron_headers, json={"user_id": USER_ID})
    assert res.status_code == 500
    assert res.json() == {"error": "Failed to parse analysis"}
    assert client.get("/insights", headers=auth_headers).json()["analysis"] is None


# ---------- dream reflection ----------

def test_reflect_blank_dream(client, auth_headers, fake_generator):
    res = client.post("/reflect", headers=auth_headers, json={"dream": "   "})
    assert res.status_code == 400
    assert res.json() == {"error": "Please describe your dream first."}
    assert fake_generator.calls == []


def test_reflect_counts_usage(client, auth_headers, fake_generator):
    fake_generator.responses.append("A gentle reading.\n\nWhat were you leaving behind?")
    res = client.post("/reflect", headers=auth_headers, json={"dream": "Trains", "mood": "restless"})
    assert res.status_code == 200
    assert res.json()["reflection"].startswith("A gentle reading.")

    usage = client.get("/reflect/usage", headers=auth_headers).json()
    assert usage["used"] == 1
    assert usage["remaining"] == usage["limit"] - 1


def test_reflect_quota(client, auth_headers, fake_generator):
    limit = client.get("/reflect/usage", headers=auth_headers).json()["limit"]
    fake_generator.responses.extend(["ok"] * limit)
    for _ in range(limit):
        assert client.post("/reflect", headers=auth_headers, json={"dream": "Sea"}).status_code == 200

    res = client.post("/reflect", headers=auth_headers, json={"dream": "Sea"})
    assert res.status_code == 429
    assert len(fake_generator.calls) == limit


def test_reflect_upstream_errors(client, auth_headers, fake_generator):
    fake_generator.error = UpstreamAuthError()
    res = client.post("/reflect", headers=auth_headers, json={"dream": "Stairs"})
    assert res.status_code == 500
    assert res.json() == {"error": "API authentication failed. Please check configuration."}

    fake_generator.error = UpstreamRateLimitError()
    res = client.post("/reflect", headers=auth_headers, json={"dream": "Stairs"})
    assert res.status_code == 429

    # failures don't use up the allowance
    assert client.get("/reflect/usage", headers=auth_headers).json()["used"] == 0


# ---------- profile ----------

def test_settings_round_trip(client, auth_headers):
    assert client.get("/profile/settings", headers=auth_headers).json()["morning_email_enabled"] is True
    res = client.put("/profile/settings", headers=auth_headers, json={"evening_reminder_enabled": True})
    assert res.status_code == 200
    assert res.json()["evening_reminder_enabled"] is True
    assert client.put("/profile/settings", headers=auth_headers, json={}).status_code == 400


def test_export(client, auth_headers):
    client.post("/rituals", headers=auth_headers, json={
        "load_before": 2, "tomorrow_anchor": "Tea", "load_after": 1,
    })
    body = client.get("/profile/export", headers=auth_headers).json()
    assert len(body["sessions"]) == 1
    assert body["morning_checkins"] == []
    assert body["streak"]["current_streak"] == 1
    assert "exported_at" in body


# ---------- error paths at the boundary ----------

def test_analysis_upstream_failure(client, auth_headers, cron_headers, fake_generator):
    client.post("/rituals", headers=auth_headers, json={
        "load_before": 4, "tomorrow_anchor": "Walk", "load_after": 2,
    })
    fake_generator.error = UpstreamOtherError()
    res = client.post("/analysis", headers=cron_headers, json={"user_id": USER_ID})
    assert res.status_code == 500
    assert res.json() == {"error": "Analysis failed"}
    assert client.get("/insights", headers=auth_headers).json()["analysis"] is None


def test_blank_dream_with_allowance_used_up(client, auth_headers, fake_generator):
    limit = client.get("/reflect/usage", headers=auth_headers).json()["limit"]
    fake_generator.responses.extend(["ok"] * limit)
    for _ in range(limit):
        client.post("/reflect", headers=auth_headers, json={"dream": "Sea"})

    res = client.post("/reflect", headers=auth_headers, json={"dream": "   "})
    assert res.status_code == 400
    assert res.json() == {"error": "Please describe your dream first."}

    res = client.post("/reflect", headers=auth_headers, json={"dream": "Sea", "mood": "ecstatic"})
    assert res.status_code == 400


def test_lifespan_builds_one_text_generator():
    with TestClient(app):
        assert isinstance(app.state.text_generator, TextGenerator)
