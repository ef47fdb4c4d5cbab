"""
Tests for prediction persistence and the read-side listings.
"""
import pytest
from datetime import datetime, timedelta, timezone
from postgrest.exceptions import APIError

from conftest import MockSupabaseClient, PATIENT_ID, EVALUATOR_ID
from services.errors import PredictionWriteError
from services.prediction_recorder import (
    PREDICTIONS_TABLE,
    build_prediction_record,
    list_active_predictions,
    list_evaluator_alerts,
    record_prediction,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def make_record(**overrides):
    record = build_prediction_record(
        patient_id=PATIENT_ID,
        evaluator_id=EVALUATOR_ID,
        risk_score=52.5,
        risk_level="medio",
        indicators=[{"type": "low_mood", "severity": "alto", "value": 2.0}],
        intervention_plan="MONITORAMENTO ATIVO:",
        now=NOW,
    )
    record.update(overrides)
    return record


def test_record_expires_seven_days_after_creation():
    record = make_record()

    assert record["created_at"] == NOW.isoformat()
    assert record["expires_at"] == (NOW + timedelta(days=7)).isoformat()
    assert record["psychologist_id"] == EVALUATOR_ID
    assert record["patient_id"] == PATIENT_ID


def test_record_prediction_inserts_once_and_returns_stored_row():
    supabase = MockSupabaseClient()

    stored = record_prediction(supabase, make_record())

    assert len(supabase.inserted) == 1
    assert stored["id"] == "prediction-1"
    assert stored["risk_level"] == "medio"
    assert [q.table_name for q in supabase.queries] == [PREDICTIONS_TABLE]
    # insert only, no reads of prior predictions
    assert [name for name, _, _ in supabase.queries[0].calls] == ["insert"]


def test_record_prediction_wraps_store_errors():
    supabase = MockSupabaseClient()
    supabase.errors[PREDICTIONS_TABLE] = APIError({"message": "insert denied", "code": "42501", "hint": None, "details": None})

    with pytest.raises(PredictionWriteError):
        record_prediction(supabase, make_record())


def test_record_prediction_requires_returned_row():
    supabase = MockSupabaseClient()
    supabase.insert_returns_empty = True

    with pytest.raises(PredictionWriteError):
        record_prediction(supabase, make_record())


def test_list_active_predictions_filters_expired_and_inactive():
    supabase = MockSupabaseClient(tables={PREDICTIONS_TABLE: [make_record(id="a")]})

    rows = list_active_predictions(supabase, PATIENT_ID, limit=3, now=NOW)

    assert rows[0]["id"] == "a"
    query = supabase.queries[0]
    assert ("patient_id", PATIENT_ID) in query.filters("eq")
    assert ("is_active", True) in query.filters("eq")
    assert query.filters("gt") == [("expires_at", NOW.isoformat())]
    assert query.filters("limit") == [(3,)]


def test_list_evaluator_alerts_only_high_levels():
    supabase = MockSupabaseClient()

    assert list_evaluator_alerts(supabase, EVALUATOR_ID, now=NOW) == []
    query = supabase.queries[0]
    assert ("psychologist_id", EVALUATOR_ID) in query.filters("eq")
    assert query.filters("in_") == [("risk_level", ["alto", "critico"])]
