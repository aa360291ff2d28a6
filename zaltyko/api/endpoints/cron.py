"""
Scheduled Job Endpoints

Called by the platform scheduler with Authorization: Bearer CRON_SECRET.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from zaltyko.database import get_db
from zaltyko.api.deps import verify_cron_secret
from zaltyko.schemas.notification import DailyAlertsResponse
from zaltyko.schemas.schedule import GenerationResponse
from zaltyko.services.alerts import run_daily_alerts
from zaltyko.services.sessions import generate_sessions_for_all_tenants

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)])


@router.post("/generate-sessions", response_model=GenerationResponse)
async def generate_sessions(
    weeks: Optional[int] = Query(None, ge=1, le=52),
    db: Session = Depends(get_db)
):
    return generate_sessions_for_all_tenants(db, weeks_ahead=weeks).to_dict()


@router.post("/daily-alerts", response_model=DailyAlertsResponse)
async def daily_alerts(db: Session = Depends(get_db)):
    return run_daily_alerts(db).to_dict()
