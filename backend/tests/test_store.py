from datetime import datetime, timedelta

from conftest import USER_ID, days_ago, make_ritual


async def test_complete_session_derives_delta_and_streak(store):
    rec = await store.complete_session(USER_ID, make_ritual(days_ago(1), before=5, after=2))
    assert rec.load_delta == 3
    assert rec.user_id == USER_ID

    await store.complete_session(USER_ID, make_ritual(days_ago(0), before=3, after=3))
    streak = await store.get_streak(USER_ID)
    assert streak.current_streak == 2
    assert streak.longest_streak == 2
    assert streak.last_session_date == days_ago(0).date()


async def test_streak_resets_after_a_gap(store):
    await store.complete_session(USER_ID, make_ritual(days_ago(5)))
    await store.complete_session(USER_ID, make_ritual(days_ago(4)))
    await store.complete_session(USER_ID, make_ritual(days_ago(1)))
    streak = await store.get_streak(USER_ID)
    assert (streak.current_streak, streak.longest_streak) == (1, 2)


async def test_list_completed_sessions_filters_and_orders(store):
    for n in (9, 3, 1):
        await store.complete_session(USER_ID, make_ritual(days_ago(n)))
    await store.complete_session("someone-else", make_ritual(days_ago(1)))

    recent = await store.list_completed_sessions(USER_ID, since=datetime.now() - timedelta(days=7))
    assert len(recent) == 2
    assert recent[0].completed_at > recent[1].completed_at

    oldest_first = await store.list_completed_sessions(USER_ID, newest_first=False, limit=1)
    assert len(oldest_first) == 1
    assert oldest_first[0].completed_at.date() == days_ago(9).date()


async def test_checkin_links_latest_completed_session(store):
    none_yet = await store.add_checkin(USER_ID, 3)
    assert none_yet.session_id is None

    await store.complete_session(USER_ID, make_ritual(days_ago(2)))
    latest = await store.complete_session(USER_ID, make_ritual(days_ago(1)))
    checkin = await store.add_checkin(USER_ID, 5)
    assert checkin.session_id == latest.id

    checkins = await store.list_checkins(USER_ID)
    assert [c.sharpness for c in checkins] == [3, 5]


async def test_upsert_weekly_analysis_overwrites(store):
    base = {
        "week_start": datetime(2026, 10, 12).date(),
        "week_end": datetime(2026, 10, 18).date(),
        "total_sessions": 2,
        "avg_load_drop": 1.5,
        "avg_sharpness": None,
        "patterns": [{"type": "timing", "title": "Late nights", "description": "2 of 2 after 23:00"}],
        "insights": "first pass",
        "common_themes": {"work": 2},
    }
    first = await store.upsert_weekly_analysis(USER_ID, base)
    second = await store.upsert_weekly_analysis(
        USER_ID, dict(base, total_sessions=4, insights="second pass", avg_sharpness=3.5)
    )

    assert await store.count_weekly_analyses(USER_ID) == 1
    assert second.id == first.id
    assert second.total_sessions == 4
    assert second.insights == "second pass"
    assert second.avg_sharpness == 3.5


async def test_profile_settings_and_export(store):
    updated = await store.update_profile(USER_ID, morning_email_enabled=False)
    assert updated.morning_email_enabled is False
    assert updated.evening_reminder_enabled is False

    await store.complete_session(USER_ID, make_ritual(days_ago(1)))
    await store.add_checkin(USER_ID, 4)
    exported = await store.export_user_data(USER_ID)
    assert len(exported["sessions"]) == 1
    assert len(exported["morning_checkins"]) == 1
    assert exported["streak"].current_streak == 1
