# tests/test_signal_aggregator.py
"""
Tests for the concurrent signal reads.
"""
import time
import pytest
from datetime import datetime, timedelta, timezone
from postgrest.exceptions import APIError

from conftest import MockSupabaseClient, PATIENT_ID
from services.errors import SignalFetchError
from services.signal_aggregator import SIGNAL_SOURCES, fetch_patient_signals

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def api_error(message="boom", code="PGRST000"):
    return APIError({"message": message, "code": code, "hint": None, "details": None})


@pytest.mark.asyncio
async def test_fetches_all_four_tables_within_window():
    supabase = MockSupabaseClient(tables={
        "mood_records": [{"mood_score": 4, "created_at": (NOW - timedelta(days=2)).isoformat()}],
        "tasks": [{"status": "completed", "created_at": (NOW - timedelta(days=3)).isoformat()}],
    })

    bundle = await fetch_patient_signals(supabase, PATIENT_ID, now=NOW)

    assert {q.table_name for q in supabase.queries} == {
        "mood_records", "diary_entries", "chat_messages", "tasks"
    }
    since = (NOW - timedelta(days=30)).isoformat()
    for query in supabase.queries:
        assert query.filters("gte") == [("created_at", since)]
    assert bundle.since == NOW - timedelta(days=30)
    assert bundle.counts() == {"mood": 1, "journal": 0, "messages": 0, "tasks": 1}
    assert bundle.results["journal"].status == "empty"
    assert bundle.results["mood"].status == "ok"


@pytest.mark.asyncio
async def test_messages_are_filtered_by_sender():
    supabase = MockSupabaseClient()

    await fetch_patient_signals(supabase, PATIENT_ID, now=NOW)

    messages_query = supabase.queries_for("chat_messages")[0]
    assert messages_query.filters("eq") == [("sender_id", PATIENT_ID)]
    mood_query = supabase.queries_for("mood_records")[0]
    assert mood_query.filters("eq") == [("patient_id", PATIENT_ID)]
    assert mood_query.filters("select") == [(", ".join(SIGNAL_SOURCES["mood"].columns),)]


@pytest.mark.asyncio
async def test_custom_window():
    supabase = MockSupabaseClient()

    bundle = await fetch_patient_signals(supabase, PATIENT_ID, window_days=14, now=NOW)

    assert bundle.since == NOW - timedelta(days=14)


@pytest.mark.asyncio
async def test_any_failed_read_aborts_and_names_every_failed_kind():
    supabase = MockSupabaseClient()
    supabase.errors["tasks"] = api_error()
    supabase.errors["diary_entries"] = ConnectionError("store unavailable")

    with pytest.raises(SignalFetchError) as exc_info:
        await fetch_patient_signals(supabase, PATIENT_ID, now=NOW)

    assert sorted(exc_info.value.failed_kinds) == ["journal", "tasks"]
    assert exc_info.value.timed_out is False
    # the other reads were still issued
    assert len(supabase.queries) == 4


@pytest.mark.asyncio
async def test_malformed_payload_is_a_fetch_error():
    supabase = MockSupabaseClient(tables={"mood_records": [{"mood_score": 3, "created_at": "ontem"}]})

    with pytest.raises(SignalFetchError) as exc_info:
        await fetch_patient_signals(supabase, PATIENT_ID, now=NOW)

    assert exc_info.value.failed_kinds == ["mood"]


@pytest.mark.asyncio
@pytest.mark.parametrize("mood_score", ["abc", 0, 6, 9.5])
async def test_invalid_mood_scores_are_a_fetch_error(mood_score):
    supabase = MockSupabaseClient(tables={"mood_records": [
        {"mood_score": 4, "created_at": (NOW - timedelta(days=2)).isoformat()},
        {"mood_score": mood_score, "created_at": (NOW - timedelta(days=1)).isoformat()},
    ]})

    with pytest.raises(SignalFetchError) as exc_info:
        await fetch_patient_signals(supabase, PATIENT_ID, now=NOW)

    assert exc_info.value.failed_kinds == ["mood"]


@pytest.mark.asyncio
async def test_numeric_string_mood_scores_are_coerced():
    supabase = MockSupabaseClient(tables={"mood_records": [
        {"mood_score": "2", "created_at": (NOW - timedelta(days=1)).isoformat()},
    ]})

    bundle = await fetch_patient_signals(supabase, PATIENT_ID, now=NOW)

    assert bundle.mood_records["mood_score"].tolist() == [2.0]


@pytest.mark.asyncio
async def test_slow_reads_time_out():
    class SlowClient(MockSupabaseClient):
        def table(self, name):
            builder = super().table(name)
            original_execute = builder.execute

            def slow_execute():
                time.sleep(0.3)
                return original_execute()

            builder.execute = slow_execute
            return builder

    with pytest.raises(SignalFetchError) as exc_info:
        await fetch_patient_signals(SlowClient(), PATIENT_ID, now=NOW, timeout_seconds=0.05)

    assert exc_info.value.timed_out is True
