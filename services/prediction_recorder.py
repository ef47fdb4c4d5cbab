"""
Persistence of crisis predictions in the ``crisis_predictions`` table.

Every evaluation inserts a new, independent row; older predictions for the
same patient are never updated or superseded here.
"""
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from supabase import Client

from api.utils import hash_user_id_for_logging
from services.errors import PredictionWriteError

logger = logging.getLogger("crisis-api.recorder")

PREDICTIONS_TABLE = "crisis_predictions"
PREDICTION_VALIDITY_DAYS = int(os.getenv("CRISIS_PREDICTION_VALIDITY_DAYS", "7"))
ALERT_RISK_LEVELS = ["alto", "critico"]


def build_prediction_record(
    patient_id: str,
    evaluator_id: str,
    risk_score: float,
    risk_level: str,
    indicators: List[Dict[str, Any]],
    intervention_plan: Optional[str],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Assemble the row to insert.

    ``expires_at`` is ``created_at`` plus the validity horizon.
    """
    created_at = now or datetime.now(timezone.utc)
    return {
        "patient_id": patient_id,
        "psychologist_id": evaluator_id,
        "risk_score": risk_score,
        "risk_level": risk_level,
        "indicators": indicators,
        "intervention_plan": intervention_plan,
        "created_at": created_at.isoformat(),
        "expires_at": (created_at + timedelta(days=PREDICTION_VALIDITY_DAYS)).isoformat(),
    }


def record_prediction(supabase: Client, record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Insert a prediction row and return it as stored.

    Raises:
        PredictionWriteError: if the insert fails or returns no row
    """
    user_hash = hash_user_id_for_logging(record["patient_id"])
    try:
        response = supabase.table(PREDICTIONS_TABLE).insert(record).execute()
    except Exception as e:
        logger.error("Failed to insert crisis prediction user_hash=%s: %s", user_hash, e)
        raise PredictionWriteError(f"Falha ao salvar predição: {e}") from e

    if not response.data:
        logger.error("Insert returned no row for crisis prediction user_hash=%s", user_hash)
        raise PredictionWriteError("Falha ao salvar predição: nenhum registro retornado")

    stored = response.data[0]
    logger.info(
        "Crisis prediction stored: id=%s user_hash=%s level=%s score=%s",
        stored.get("id"), user_hash, record["risk_level"], record["risk_score"]
    )
    return stored


def list_active_predictions(
    supabase: Client,
    patient_id: str,
    limit: int = 5,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Most recent active, unexpired predictions of a patient, newest first."""
    now = now or datetime.now(timezone.utc)
    response = supabase.table(PREDICTIONS_TABLE)\
        .select("*")\
        .eq("patient_id", patient_id)\
        .eq("is_active", True)\
        .gt("expires_at", now.isoformat())\
        .order("created_at", desc=True)\
        .limit(limit)\
        .execute()
    return response.data or []


def list_evaluator_alerts(
    supabase: Client,
    evaluator_id: str,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Active, unexpired high-risk predictions issued by an evaluator, highest score first."""
    now = now or datetime.now(timezone.utc)
    response = supabase.table(PREDICTIONS_TABLE)\
        .select("*")\
        .eq("psychologist_id", evaluator_id)\
        .eq("is_active", True)\
        .in_("risk_level", ALERT_RISK_LEVELS)\
        .gt("expires_at", now.isoformat())\
        .order("risk_score", desc=True)\
        .execute()
    return response.data or []
