"""Health check endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from health_checks import HealthCheckService
from models import get_db

router = APIRouter()


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Report database and Redis health."""
    return HealthCheckService(db=db).check_all()
