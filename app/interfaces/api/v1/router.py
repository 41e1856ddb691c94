from fastapi import APIRouter

from app.interfaces.api.v1.routes.academic_years import router as academic_years_router
from app.interfaces.api.v1.routes.auth import router as auth_router
from app.interfaces.api.v1.routes.fee_assignments import router as fee_assignments_router
from app.interfaces.api.v1.routes.fee_categories import router as fee_categories_router
from app.interfaces.api.v1.routes.fee_structures import router as fee_structures_router
from app.interfaces.api.v1.routes.payment_schedules import router as payment_schedules_router
from app.interfaces.api.v1.routes.ping import router as ping_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(ping_router)
api_router.include_router(auth_router)
api_router.include_router(academic_years_router)
api_router.include_router(fee_categories_router)
api_router.include_router(fee_structures_router)
api_router.include_router(payment_schedules_router)
api_router.include_router(fee_assignments_router)
