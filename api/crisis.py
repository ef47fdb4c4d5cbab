# api/crisis.py
import logging
from typing import Optional
from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import JSONResponse
from postgrest.exceptions import APIError
from supabase import Client

from api.dependencies import get_supabase_client
from api.middleware import add_request_metrics
from api.rate_limiter import limiter, CRISIS_RATE_LIMIT, DATA_ACCESS_RATE_LIMIT
from api.schemas.crisis import (
    CrisisPredictionList,
    CrisisPredictionRequest,
    CrisisPredictionResponse,
    ErrorResponse,
)
from api.utils import hash_user_id_for_logging, is_valid_uuid, validate_uuid_or_400, handle_postgrest_error
from services.crisis_prediction import evaluate_crisis_risk
from services.errors import PredictionWriteError, SignalFetchError
from services.prediction_recorder import list_active_predictions, list_evaluator_alerts

# Logger específico para este módulo
logger = logging.getLogger("crisis-api.crisis")

router = APIRouter(prefix="/crisis", tags=["Crisis Prediction"])


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validate_identifier(value: Optional[str], param_name: str) -> Optional[str]:
    """Returns an error message for a missing or malformed id, None when valid."""
    if value is None or not str(value).strip():
        return f"Campo obrigatório ausente: {param_name}"
    if not is_valid_uuid(value):
        return f"Invalid UUID format for {param_name}: {value}"
    return None


@router.post(
    "/predictions",
    response_model=CrisisPredictionResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse},
               502: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
)
@limiter.limit(CRISIS_RATE_LIMIT)
async def create_crisis_prediction(
    request: Request,
    body: Optional[CrisisPredictionRequest] = Body(None),
    supabase: Client = Depends(get_supabase_client)
):
    """
    Executa uma nova análise preditiva de crise para o paciente.

    Lê os sinais dos últimos 30 dias (humor, diário, mensagens, tarefas),
    calcula indicadores, score e nível de risco, grava a predição e retorna
    `{prediction, alert, recommendations}`. Em caso de falha retorna `{error}`.
    """
    body = body or CrisisPredictionRequest()

    for param_name, value in (("patient_id", body.patient_id), ("evaluator_id", body.evaluator_id)):
        error = _validate_identifier(value, param_name)
        if error:
            logger.warning(f"Invalid crisis prediction request: {error}")
            return _error_response(400, error)

    user_hash = hash_user_id_for_logging(body.patient_id)
    logger.info(f"POST /crisis/predictions user_hash={user_hash}")

    try:
        result = await evaluate_crisis_risk(supabase, body.patient_id, body.evaluator_id)
    except SignalFetchError as e:
        status_code = 504 if e.timed_out else 502
        logger.error(f"Signal fetch failed user_hash={user_hash} kinds={e.failed_kinds}: {e}")
        return _error_response(status_code, str(e))
    except PredictionWriteError as e:
        logger.error(f"Prediction write failed user_hash={user_hash}: {e}")
        return _error_response(500, str(e))

    add_request_metrics(
        request,
        risk_level=result["prediction"].get("risk_level"),
        indicator_count=len(result["prediction"].get("indicators") or []),
        alert=result["alert"],
    )
    return result


@router.get("/predictions/{patient_id}/active", response_model=CrisisPredictionList)
@limiter.limit(DATA_ACCESS_RATE_LIMIT)
async def get_active_predictions(
    request: Request,
    patient_id: str,
    limit: int = Query(5, ge=1, le=50, description="Maximum number of predictions"),
    supabase: Client = Depends(get_supabase_client)
):
    """
    Predições ativas e não expiradas do paciente, mais recentes primeiro.
    """
    validate_uuid_or_400(patient_id, "patient_id")

    try:
        predictions = list_active_predictions(supabase, patient_id, limit=limit)
    except APIError as e:
        handle_postgrest_error(e, patient_id)

    return {"count": len(predictions), "predictions": predictions}


@router.get("/alerts/{evaluator_id}", response_model=CrisisPredictionList)
@limiter.limit(DATA_ACCESS_RATE_LIMIT)
async def get_evaluator_alerts(
    request: Request,
    evaluator_id: str,
    supabase: Client = Depends(get_supabase_client)
):
    """
    Alertas de crise ativos (risco alto ou crítico) das predições do avaliador,
    ordenados pelo score de risco.
    """
    validate_uuid_or_400(evaluator_id, "evaluator_id")

    try:
        predictions = list_evaluator_alerts(supabase, evaluator_id)
    except APIError as e:
        handle_postgrest_error(e, evaluator_id)

    return {"count": len(predictions), "predictions": predictions}
