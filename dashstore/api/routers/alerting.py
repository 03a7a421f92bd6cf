"""Alert condition evaluation endpoint.

Routes
------
POST /alerting/evaluate   Check a reduced value against an evaluator model
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from dashstore.alerting import new_alert_evaluator
from dashstore.errors import ValidationError

router = APIRouter()


class EvaluateRequest(BaseModel):
    evaluator: dict[str, Any]
    reduced_value: float


@router.post("/evaluate")
def evaluate(body: EvaluateRequest) -> dict[str, Any]:
    """Return whether ``reduced_value`` breaches the evaluator condition."""
    try:
        evaluator = new_alert_evaluator(body.evaluator)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.reason) from exc
    return {"firing": evaluator.eval(None, body.reduced_value)}
