"""Scheduler-facing trigger endpoint."""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_email_transport, get_now, verify_cron_secret
from app.schemas.evaluation import CheckSwitchesResponse
from app.services.email_transport import EmailTransport
from app.services.evaluator import run_evaluation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)])


@router.api_route("/check-switches", methods=["GET", "POST"], response_model=CheckSwitchesResponse)
def check_switches(
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport),
    now: datetime = Depends(get_now),
):
    """Run one evaluator pass over all active switches."""
    try:
        summary = run_evaluation(db, transport, now=now)
        response = CheckSwitchesResponse.model_validate(summary)
    except Exception as e:
        logger.exception("Evaluator pass failed")
        response = CheckSwitchesResponse(ok=False, error=str(e) or "Unknown error")

    return JSONResponse(
        content=response.model_dump(by_alias=True, exclude_none=True),
        status_code=status.HTTP_200_OK if response.ok else status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
