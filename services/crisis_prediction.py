"""
Crisis prediction pipeline.

signals -> indicators -> score -> level -> intervention plan -> stored prediction
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from supabase import Client

from analysis.crisis_risk import (
    calculate_risk_score,
    extract_risk_indicators,
    get_risk_level,
    requires_intervention_plan,
    should_alert,
)
from analysis.interventions import generate_intervention_plan, generate_recommendations
from api.utils import hash_user_id_for_logging
from services.prediction_recorder import build_prediction_record, record_prediction
from services.signal_aggregator import fetch_patient_signals

logger = logging.getLogger("crisis-api.pipeline")


def assess_signals(bundle, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Pure part of the pipeline: score the fetched signals.

    Returns:
        Dict with indicators, risk_score, risk_level, intervention_plan,
        alert and recommendations
    """
    indicators = extract_risk_indicators(
        mood_records=bundle.mood_records,
        diary_entries=bundle.diary_entries,
        chat_messages=bundle.chat_messages,
        tasks=bundle.tasks,
        now=now,
    )
    risk_score = calculate_risk_score(indicators)
    risk_level = get_risk_level(risk_score)

    intervention_plan = None
    if requires_intervention_plan(risk_score):
        intervention_plan = generate_intervention_plan(risk_level, indicators)

    return {
        "indicators": indicators,
        "risk_score": risk_score,
        "risk_level": risk_level,
        "intervention_plan": intervention_plan,
        "alert": should_alert(risk_score),
        "recommendations": generate_recommendations(risk_level),
    }


async def evaluate_crisis_risk(
    supabase: Client,
    patient_id: str,
    evaluator_id: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Run one crisis risk evaluation and persist its prediction.

    Raises:
        SignalFetchError: a signal read failed (nothing is written)
        PredictionWriteError: the insert failed
    """
    start_time = time.time()
    now = now or datetime.now(timezone.utc)
    user_hash = hash_user_id_for_logging(patient_id)

    bundle = await fetch_patient_signals(supabase, patient_id, now=now)
    assessment = assess_signals(bundle, now=now)

    record = build_prediction_record(
        patient_id=patient_id,
        evaluator_id=evaluator_id,
        risk_score=assessment["risk_score"],
        risk_level=assessment["risk_level"],
        indicators=assessment["indicators"],
        intervention_plan=assessment["intervention_plan"],
        now=now,
    )

    loop = asyncio.get_running_loop()
    prediction = await loop.run_in_executor(None, record_prediction, supabase, record)

    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        "Crisis risk evaluated user_hash=%s score=%.2f level=%s indicators=%d alert=%s in %.2fms",
        user_hash, assessment["risk_score"], assessment["risk_level"],
        len(assessment["indicators"]), assessment["alert"], duration_ms
    )

    return {
        "prediction": prediction,
        "alert": assessment["alert"],
        "recommendations": assessment["recommendations"],
    }
