"""Patient-facing API routes.

Registration, the intake form, the consultation self-report and read-only
views of the caller's own journey, plan and reviews.
"""

from fastapi import APIRouter, Depends, status

from app.auth import CallerContext, require_patient, verify_bearer_token
from app.dependencies import get_journey_service
from app.schemas.common import ActionResponse
from app.schemas.patient import (
    IntakeSubmission,
    JourneyResponse,
    PatientRegister,
    PatientResponse,
    RoadmapStepResponse,
)
from app.schemas.treatment import TreatmentPlanResponse, TreatmentReviewResponse
from app.services.journey import JourneyService, JourneyView

router = APIRouter(prefix="/patients", tags=["patients"])


def journey_response(view: JourneyView) -> JourneyResponse:
    """Convert a service journey view into its API schema."""
    return JourneyResponse(
        patient_id=view.patient.id,
        current_status=view.patient.current_status,
        status_label=view.status_label,
        available_actions=[action.value for action in view.available_actions],
        roadmap=[RoadmapStepResponse.model_validate(step) for step in view.roadmap],
    )


@router.post(
    "/register",
    response_model=ActionResponse[PatientResponse],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    payload: PatientRegister,
    caller: CallerContext = Depends(verify_bearer_token),
    service: JourneyService = Depends(get_journey_service),
) -> ActionResponse[PatientResponse]:
    """Create the caller's patient record and assign an MRN.

    Raises:
        AuthorizationError: 403 if the caller is staff.
        StatusGuardViolation: 409 if the caller is already registered.
        MrnGenerationError: 503 if no unique MRN could be generated.
    """
    result = await service.register_patient(caller, payload)
    return ActionResponse(
        data=PatientResponse.model_validate(result.data),
        message=result.message,
    )


@router.get("/me", response_model=PatientResponse)
async def get_me(
    caller: CallerContext = Depends(require_patient),
    service: JourneyService = Depends(get_journey_service),
) -> PatientResponse:
    """Get the caller's patient record."""
    patient = await service.get_patient_for(caller)
    return PatientResponse.model_validate(patient)


@router.get("/me/journey", response_model=JourneyResponse)
async def get_my_journey(
    caller: CallerContext = Depends(require_patient),
    service: JourneyService = Depends(get_journey_service),
) -> JourneyResponse:
    """Get the caller's roadmap, status label and available actions."""
    patient = await service.get_patient_for(caller)
    return journey_response(await service.journey_view(caller, patient))


@router.post("/me/intake", response_model=ActionResponse[PatientResponse])
async def submit_intake(
    intake: IntakeSubmission,
    caller: CallerContext = Depends(require_patient),
    service: JourneyService = Depends(get_journey_service),
) -> ActionResponse[PatientResponse]:
    """Submit the medical intake form (REGISTERED -> INTAKE_COMPLETED)."""
    result = await service.submit_intake(caller, intake)
    return ActionResponse(
        data=PatientResponse.model_validate(result.data),
        message=result.message,
    )


@router.post("/me/consultation", response_model=ActionResponse[PatientResponse])
async def complete_consultation(
    caller: CallerContext = Depends(require_patient),
    service: JourneyService = Depends(get_journey_service),
) -> ActionResponse[PatientResponse]:
    """Self-report the consultation (INTAKE_COMPLETED -> CONSULTATION_COMPLETED)."""
    result = await service.complete_consultation(caller)
    return ActionResponse(
        data=PatientResponse.model_validate(result.data),
        message=result.message,
    )


@router.get("/me/plan", response_model=TreatmentPlanResponse)
async def get_my_plan(
    caller: CallerContext = Depends(require_patient),
    service: JourneyService = Depends(get_journey_service),
) -> TreatmentPlanResponse:
    """Get the caller's published treatment plan.

    Raises:
        NotFoundError: 404 if no plan has been published yet.
    """
    patient = await service.get_patient_for(caller)
    plan = await service.published_plan(patient)
    return TreatmentPlanResponse.model_validate(plan)


@router.get("/me/reviews", response_model=list[TreatmentReviewResponse])
async def get_my_reviews(
    caller: CallerContext = Depends(require_patient),
    service: JourneyService = Depends(get_journey_service),
) -> list[TreatmentReviewResponse]:
    """Get the follow-up reviews of the caller's current plan."""
    patient = await service.get_patient_for(caller)
    reviews = await service.current_reviews(patient)
    return [TreatmentReviewResponse.model_validate(review) for review in reviews]
