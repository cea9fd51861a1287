"""Staff API routes.

Patient lists and clinical records for ADMIN and SUPER_ADMIN users, plus the
staff-driven journey actions: scan logging, plan publication, treatment
completion, reviews and the outcome decision.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status

from app.auth import CallerContext, require_staff
from app.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.dependencies import get_journey_service
from app.models.patient import PatientStatus
from app.routes.patients import journey_response
from app.schemas.common import ActionResponse
from app.schemas.patient import JourneyResponse, PatientListResponse, PatientResponse
from app.schemas.treatment import (
    FinalizeRequest,
    RestartRequest,
    ReviewCompleteRequest,
    ScanLogCreate,
    ScanLogResponse,
    ScheduleReviewsRequest,
    TreatmentPlanCreate,
    TreatmentPlanResponse,
    TreatmentReviewResponse,
)
from app.services.journey import JourneyService

router = APIRouter(prefix="/staff", tags=["staff"])


# =============================================================================
# Reads
# =============================================================================


@router.get("/patients", response_model=PatientListResponse)
async def list_patients(
    caller: CallerContext = Depends(require_staff),
    service: JourneyService = Depends(get_journey_service),
    skip: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    status: PatientStatus | None = None,
) -> PatientListResponse:
    """List patients, newest first, with optional status filter and pagination.

    Args:
        skip: Number of records to skip (pagination offset).
        limit: Maximum number of records to return.
        status: Filter by journey status.

    Returns:
        Paginated list of patients.
    """
    patients, total = await service.patients.list(status=status, skip=skip, limit=limit)
    return PatientListResponse(
        items=[PatientResponse.model_validate(patient) for patient in patients],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/patients/{patient_id}", response_model=PatientResponse)
async def get_patient(
    patient_id: uuid.UUID,
    caller: CallerContext = Depends(require_staff),
    service: JourneyService = Depends(get_journey_service),
) -> PatientResponse:
    """Get a patient's full record, including the intake answers."""
    patient = await service.get_patient_for(caller, patient_id)
    return PatientResponse.model_validate(patient)


@router.get("/patients/{patient_id}/journey", response_model=JourneyResponse)
async def get_patient_journey(
    patient_id: uuid.UUID,
    caller: CallerContext = Depends(require_staff),
    service: JourneyService = Depends(get_journey_service),
) -> JourneyResponse:
    """Get a patient's roadmap and the actions staff can take next."""
    patient = await service.get_patient_for(caller, patient_id)
    return journey_response(await service.journey_view(caller, patient))


@router.get("/patients/{patient_id}/scans", response_model=list[ScanLogResponse])
async def list_scan_logs(
    patient_id: uuid.UUID,
    caller: CallerContext = Depends(require_staff),
    service: JourneyService = Depends(get_journey_service),
) -> list[ScanLogResponse]:
    """List a patient's scan logs, most recent first."""
    patient = await service.get_patient_for(caller, patient_id)
    scans = await service.treatments.list_scan_logs(patient.id)
    return [ScanLogResponse.model_validate(scan) for scan in scans]


@router.get("/patients/{patient_id}/plans", response_model=list[TreatmentPlanResponse])
async def list_plans(
    patient_id: uuid.UUID,
    caller: CallerContext = Depends(require_staff),
    service: JourneyService = Depends(get_journey_service),
) -> list[TreatmentPlanResponse]:
    """List all of a patient's treatment plans, newest first, retired ones included."""
    patient = await service.get_patient_for(caller, patient_id)
    plans = await service.treatments.list_plans(patient.id)
    return [TreatmentPlanResponse.model_validate(plan) for plan in plans]


@router.get("/patients/{patient_id}/reviews", response_model=list[TreatmentReviewResponse])
async def list_reviews(
    patient_id: uuid.UUID,
    caller: CallerContext = Depends(require_staff),
    service: JourneyService = Depends(get_journey_service),
    plan_id: uuid.UUID | None = None,
) -> list[TreatmentReviewResponse]:
    """List a patient's reviews by review number, optionally for one plan."""
    patient = await service.get_patient_for(caller, patient_id)
    reviews = await service.treatments.list_reviews(patient.id, plan_id=plan_id)
    return [TreatmentReviewResponse.model_validate(review) for review in reviews]


# =============================================================================
# Journey actions
# =============================================================================


@router.post(
    "/patients/{patient_id}/scans",
    response_model=ActionResponse[ScanLogResponse],
    status_code=status.HTTP_201_CREATED,
)
async def log_scan(
    patient_id: uuid.UUID,
    scan: ScanLogCreate,
    caller: CallerContext = Depends(require_staff),
    service: JourneyService = Depends(get_journey_service),
) -> ActionResponse[ScanLogResponse]:
    """Log a CT simulation scan (REGISTERED/CONSULTATION_COMPLETED -> SCANNED)."""
    result = await service.log_scan(caller, patient_id, scan)
    return ActionResponse(
        data=ScanLogResponse.model_validate(result.data),
        message=result.message,
        warning=result.warning,
    )


@router.post(
    "/patients/{patient_id}/plans",
    response_model=ActionResponse[TreatmentPlanResponse],
    status_code=status.HTTP_201_CREATED,
)
async def publish_plan(
    patient_id: uuid.UUID,
    plan: TreatmentPlanCreate,
    caller: CallerContext = Depends(require_staff),
    service: JourneyService = Depends(get_journey_service),
) -> ActionResponse[TreatmentPlanResponse]:
    """Publish a treatment plan (SCANNED/PLANNING -> PLAN_READY) and email the patient."""
    result = await service.publish_plan(caller, patient_id, plan)
    return ActionResponse(
        data=TreatmentPlanResponse.model_validate(result.data),
        message=result.message,
        warning=result.warning,
    )


@router.post(
    "/patients/{patient_id}/complete-treatment",
    response_model=ActionResponse[PatientResponse],
)
async def complete_treatment(
    patient_id: uuid.UUID,
    caller: CallerContext = Depends(require_staff),
    service: JourneyService = Depends(get_journey_service),
) -> ActionResponse[PatientResponse]:
    """Mark treatment complete (PLAN_READY/TREATING -> TREATMENT_COMPLETED)."""
    result = await service.complete_treatment(caller, patient_id)
    return ActionResponse(
        data=PatientResponse.model_validate(result.data),
        message=result.message,
        warning=result.warning,
    )


@router.post(
    "/patients/{patient_id}/reviews",
    response_model=ActionResponse[list[TreatmentReviewResponse]],
    status_code=status.HTTP_201_CREATED,
)
async def schedule_reviews(
    patient_id: uuid.UUID,
    request: ScheduleReviewsRequest,
    caller: CallerContext = Depends(require_staff),
    service: JourneyService = Depends(get_journey_service),
) -> ActionResponse[list[TreatmentReviewResponse]]:
    """Schedule all three follow-up reviews (TREATMENT_COMPLETED -> REVIEW_1_PENDING)."""
    result = await service.schedule_reviews(caller, patient_id, request)
    return ActionResponse(
        data=[TreatmentReviewResponse.model_validate(review) for review in result.data],
        message=result.message,
        warning=result.warning,
    )


@router.post("/reviews/{review_id}/complete", response_model=ActionResponse[TreatmentReviewResponse])
async def complete_review(
    review_id: uuid.UUID,
    request: ReviewCompleteRequest,
    caller: CallerContext = Depends(require_staff),
    service: JourneyService = Depends(get_journey_service),
) -> ActionResponse[TreatmentReviewResponse]:
    """Complete the pending review and advance the patient to the next one."""
    result = await service.complete_review(caller, review_id, request.notes)
    return ActionResponse(
        data=TreatmentReviewResponse.model_validate(result.data),
        message=result.message,
        warning=result.warning,
    )


@router.post("/patients/{patient_id}/finalize", response_model=ActionResponse[TreatmentPlanResponse])
async def finalize_success(
    patient_id: uuid.UUID,
    request: FinalizeRequest,
    caller: CallerContext = Depends(require_staff),
    service: JourneyService = Depends(get_journey_service),
) -> ActionResponse[TreatmentPlanResponse]:
    """Record a successful outcome (REVIEWS_COMPLETED -> JOURNEY_COMPLETE)."""
    result = await service.finalize_success(caller, patient_id, request.outcome_notes)
    return ActionResponse(
        data=TreatmentPlanResponse.model_validate(result.data),
        message=result.message,
        warning=result.warning,
    )


@router.post("/patients/{patient_id}/restart", response_model=ActionResponse[TreatmentPlanResponse])
async def restart_treatment(
    patient_id: uuid.UUID,
    request: RestartRequest,
    caller: CallerContext = Depends(require_staff),
    service: JourneyService = Depends(get_journey_service),
) -> ActionResponse[TreatmentPlanResponse]:
    """Retire the current plan and restart treatment (REVIEWS_COMPLETED -> SCANNED)."""
    result = await service.restart_treatment(caller, patient_id, request.reason)
    return ActionResponse(
        data=TreatmentPlanResponse.model_validate(result.data),
        message=result.message,
        warning=result.warning,
    )
