"""Pydantic schemas for API models."""
from .crisis import (
    CrisisPrediction,
    CrisisPredictionList,
    CrisisPredictionRequest,
    CrisisPredictionResponse,
    ErrorResponse,
    RiskIndicator,
)


__all__ = [
    "CrisisPrediction",
    "CrisisPredictionList",
    "CrisisPredictionRequest",
    "CrisisPredictionResponse",
    "ErrorResponse",
    "RiskIndicator",
]
