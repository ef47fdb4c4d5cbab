"""
Pydantic schemas for the crisis prediction API.
"""
from typing import Any, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


RiskLevel = Literal["baixo", "medio", "alto", "critico"]


class CrisisPredictionRequest(BaseModel):
    """
    Request body for POST /crisis/predictions.

    Fields are optional at the schema level so that a missing id is reported
    with the API's own error shape instead of a validation dump.
    Accepts the legacy camelCase names (patientId, psychologistId).
    """
    model_config = ConfigDict(populate_by_name=True)

    patient_id: Optional[str] = Field(None, alias="patientId", description="Patient UUID")
    evaluator_id: Optional[str] = Field(None, alias="psychologistId", description="Evaluating clinician UUID")


class RiskIndicator(BaseModel):
    """
    A derived risk factor.

    Attributes:
        type: Indicator kind (low_mood, declining_mood, no_diary_activity,
            communication_drop, low_task_completion)
        severity: baixo, medio, alto or critico
        value: Measured value behind the indicator (average, slope, rate...)
    """
    type: str
    severity: str
    value: float


class CrisisPrediction(BaseModel):
    """A stored crisis prediction row."""
    model_config = ConfigDict(extra="allow")

    id: Optional[Any] = None
    patient_id: str
    psychologist_id: str = Field(..., description="Evaluator who requested the prediction")
    risk_score: float = Field(..., ge=0.0, le=100.0)
    risk_level: RiskLevel
    indicators: List[RiskIndicator] = Field(default_factory=list)
    intervention_plan: Optional[str] = None
    is_active: Optional[bool] = None
    created_at: Optional[str] = None
    expires_at: Optional[str] = None


class CrisisPredictionResponse(BaseModel):
    prediction: CrisisPrediction
    alert: bool = Field(..., description="True when risk_score >= 70")
    recommendations: List[str]


class CrisisPredictionList(BaseModel):
    count: int
    predictions: List[CrisisPrediction]


class ErrorResponse(BaseModel):
    error: str
