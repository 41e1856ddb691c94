from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.application.services.health_service import get_service_status
from app.infrastructure.db.session import get_db

router = APIRouter(tags=["health"])


@router.get("/ping", summary="Service health", description="Report service version and database connectivity.")
def ping(db: Session = Depends(get_db)):
    return get_service_status(db=db)
