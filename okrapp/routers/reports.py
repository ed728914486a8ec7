from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from okrapp.core.context import ActingUser
from okrapp.core.schemas import ApiResponse
from okrapp.database import get_db
from okrapp.routers.auth_deps import require_hr_or_admin
from okrapp.schemas.review import ReviewReport
from okrapp.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/summary", response_model=ApiResponse[ReviewReport])
def system_summary(db: Session = Depends(get_db), actor: ActingUser = Depends(require_hr_or_admin())):
    return ApiResponse.ok(ReportService(db).system_summary())
