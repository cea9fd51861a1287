"""Journey service: executes every patient status transition.

Each operation follows the same sequence:

1. Check the caller's role may perform the action at all.
2. Load the patient and validate the request payload.
3. Look the action up in the transition table for the patient's current
   status and check the action's extra guards.
4. Compare-and-set the status and write the action's records in one
   transaction, then commit.
5. Dispatch queued notifications and publish a change event.

Steps 1-4 either all take effect or none do. Step 5 is best effort and its
failures are reported as a warning on the returned result.
"""

import calendar
import logging
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import CallerContext
from app.config import settings
from app.constants import REVIEWS_PER_COURSE
from app.errors import AuthorizationError, NotFoundError, StatusGuardViolation, ValidationError
from app.journey import (
    PENDING_REVIEW_NUMBER,
    JourneyAction,
    RoadmapStep,
    Transition,
    available_actions,
    build_roadmap,
    require_actor,
    resolve_transition,
    status_label,
)
from app.models.auth import UserRole
from app.models.patient import Patient, PatientStatus
from app.models.treatment import ScanLog, TreatmentPlan, TreatmentReview
from app.repositories.patient import PatientRepository
from app.repositories.treatment import TreatmentRepository
from app.schemas.patient import IntakeSubmission, PatientRegister
from app.schemas.treatment import (
    ReviewSlot,
    ScanLogCreate,
    ScheduleReviewsRequest,
    TreatmentPlanCreate,
)
from app.services.change_feed import ChangeEvent, ChangeFeed
from app.services.mrn import MrnGenerator, generate_mrn, insert_patient_with_mrn
from app.services.notifications import (
    Notification,
    NotificationSender,
    NotificationTemplate,
    dispatch_notifications,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONCURRENT_CHANGE_MESSAGE = (
    "This patient's status was changed by someone else. Please refresh and try again."
)


@dataclass
class TransitionResult(Generic[T]):
    """Outcome of a committed journey action."""

    data: T
    patient: Patient
    previous_status: PatientStatus | None
    message: str
    warning: str | None = None


@dataclass
class JourneyView:
    """A patient's position in the journey as shown to ``caller``."""

    patient: Patient
    status_label: str
    available_actions: list[JourneyAction]
    roadmap: list[RoadmapStep]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_months(day: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


class JourneyService:
    """Runs journey actions against one request-scoped session.

    Args:
        db: Session owning the action's transaction.
        sender: Delivery backend for patient notifications.
        feed: Change feed notified after each commit.
        mrn_generator: MRN candidate source for registrations.
        clock: Source of the current time.
    """

    def __init__(
        self,
        db: AsyncSession,
        sender: NotificationSender,
        feed: ChangeFeed,
        mrn_generator: MrnGenerator = generate_mrn,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.db = db
        self.sender = sender
        self.feed = feed
        self.mrn_generator = mrn_generator
        self.clock = clock
        self.patients = PatientRepository(db)
        self.treatments = TreatmentRepository(db)

    # =========================================================================
    # Plumbing
    # =========================================================================

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[None]:
        """Commit on success, roll back everything on any error."""
        try:
            yield
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    async def _require_patient(self, patient_id: uuid.UUID) -> Patient:
        patient = await self.patients.get(patient_id)
        if patient is None:
            raise NotFoundError("Patient not found")
        return patient

    async def _own_patient(self, caller: CallerContext) -> Patient:
        patient = await self.patients.get_by_user_id(caller.user_id)
        if patient is None:
            raise NotFoundError("Patient record not found. Please complete registration.")
        return patient

    async def _published_plan_or_guard(self, action: JourneyAction, patient: Patient) -> TreatmentPlan:
        plan = await self.treatments.get_published_plan(patient.id)
        if plan is None:
            raise StatusGuardViolation(
                action.value,
                patient.current_status,
                "No published treatment plan found for this patient",
            )
        return plan

    async def _move(self, patient: Patient, transition: Transition, **values) -> PatientStatus:
        """Compare-and-set the patient's status along ``transition``.

        Returns:
            The status the patient was observed in.

        Raises:
            StatusGuardViolation: If another transition committed first.
        """
        observed = patient.current_status
        moved = await self.patients.compare_and_set_status(
            patient.id, observed, transition.target, **values
        )
        if not moved:
            logger.warning(
                "Concurrent status change for patient %s during %s (observed %s)",
                patient.id,
                transition.action.value,
                observed.value,
            )
            raise StatusGuardViolation(transition.action.value, observed, CONCURRENT_CHANGE_MESSAGE)
        await self.db.refresh(patient)
        return observed

    async def _reload(self, *records) -> None:
        """Flush and reload ``records`` so they carry database-generated values."""
        await self.db.flush()
        for record in records:
            await self.db.refresh(record)

    async def _finish(
        self,
        action: str,
        patient: Patient,
        previous: PatientStatus | None,
        data: T,
        message: str,
        notifications: list[Notification] | None = None,
    ) -> TransitionResult[T]:
        """Post-commit steps shared by every action."""
        logger.info(
            "Patient %s: %s (%s -> %s)",
            patient.id,
            action,
            previous.value if previous else None,
            patient.current_status.value,
        )

        warning = None
        if notifications:
            warning = await dispatch_notifications(self.sender, notifications)

        self.feed.publish(
            ChangeEvent(
                patient_id=patient.id,
                action=action,
                previous_status=previous,
                current_status=patient.current_status,
            )
        )
        return TransitionResult(
            data=data,
            patient=patient,
            previous_status=previous,
            message=message,
            warning=warning,
        )

    # =========================================================================
    # Registration and patient actions
    # =========================================================================

    async def register_patient(
        self, caller: CallerContext, payload: PatientRegister
    ) -> TransitionResult[Patient]:
        """Create the caller's patient record with a freshly generated MRN.

        Raises:
            AuthorizationError: If the caller is not a PATIENT.
            StatusGuardViolation: If the caller already has a patient record.
            MrnGenerationError: If no unique MRN could be generated.
        """
        if caller.role is not UserRole.PATIENT:
            raise AuthorizationError("Forbidden: only patients can register")

        async with self._unit_of_work():
            existing = await self.patients.get_by_user_id(caller.user_id)
            if existing is not None:
                raise StatusGuardViolation(
                    "register_patient",
                    existing.current_status,
                    "A patient record already exists for this account",
                )

            def build(mrn: str) -> Patient:
                return Patient(
                    user_id=caller.user_id,
                    mrn=mrn,
                    legacy_mrn=payload.legacy_mrn,
                    full_name=payload.full_name,
                    dob=payload.dob,
                    email=payload.email.lower(),
                    admission_date=payload.admission_date or self.clock().date(),
                    current_status=PatientStatus.REGISTERED,
                    onboarding_completed=False,
                    risk_flags=[],
                )

            patient = await insert_patient_with_mrn(self.db, build, generate=self.mrn_generator)
            await self._reload(patient)

        return await self._finish(
            "register_patient",
            patient,
            None,
            patient,
            f"Registration complete. Your MRN is {patient.mrn}",
        )

    async def submit_intake(
        self, caller: CallerContext, intake: IntakeSubmission
    ) -> TransitionResult[Patient]:
        """Store the intake questionnaire and complete onboarding."""
        require_actor(JourneyAction.SUBMIT_INTAKE, caller.role)

        async with self._unit_of_work():
            patient = await self._own_patient(caller)
            transition = resolve_transition(JourneyAction.SUBMIT_INTAKE, patient.current_status)
            previous = await self._move(
                patient,
                transition,
                medical_history=intake.to_medical_history(self.clock()),
                risk_flags=intake.risk_flags(),
                onboarding_completed=True,
                admission_date=intake.admission_date,
            )

        return await self._finish(
            transition.action.value, patient, previous, patient, "Intake form submitted successfully"
        )

    async def complete_consultation(self, caller: CallerContext) -> TransitionResult[Patient]:
        """Record the patient's self-reported consultation."""
        require_actor(JourneyAction.COMPLETE_CONSULTATION, caller.role)

        async with self._unit_of_work():
            patient = await self._own_patient(caller)
            transition = resolve_transition(JourneyAction.COMPLETE_CONSULTATION, patient.current_status)
            previous = await self._move(patient, transition)

        return await self._finish(
            transition.action.value, patient, previous, patient, "Consultation marked as completed"
        )

    # =========================================================================
    # Staff actions
    # =========================================================================

    async def log_scan(
        self, caller: CallerContext, patient_id: uuid.UUID, scan: ScanLogCreate
    ) -> TransitionResult[ScanLog]:
        """Record a CT simulation scan and move the patient to SCANNED."""
        require_actor(JourneyAction.LOG_SCAN, caller.role)

        async with self._unit_of_work():
            patient = await self._require_patient(patient_id)
            transition = resolve_transition(JourneyAction.LOG_SCAN, patient.current_status)
            previous = await self._move(patient, transition)

            scan_log = ScanLog(
                patient_id=patient.id,
                machine_room=scan.machine_room,
                scan_notes=scan.notes,
                position=scan.position,
                immobilization=scan.immobilization,
                bladder_protocol=scan.bladder_protocol,
                metal_implants=scan.metal_implants,
                headshell=scan.headshell,
                performed_by=caller.user_id,
                scan_date=self.clock(),
            )
            self.db.add(scan_log)
            await self._reload(scan_log)

        return await self._finish(
            transition.action.value,
            patient,
            previous,
            scan_log,
            "Scan logged successfully",
        )

    def _validate_start_date(self, start_date: datetime) -> datetime:
        start = _as_utc(start_date)
        today = self.clock().date()
        latest = add_months(today, settings.plan_max_months_ahead)
        if start.date() < today:
            raise ValidationError("Treatment start date cannot be in the past")
        if start.date() > latest:
            raise ValidationError(
                f"Treatment start date cannot be more than {settings.plan_max_months_ahead} "
                "months in the future"
            )
        return start

    async def publish_plan(
        self, caller: CallerContext, patient_id: uuid.UUID, plan: TreatmentPlanCreate
    ) -> TransitionResult[TreatmentPlan]:
        """Publish the patient's treatment plan and notify them."""
        require_actor(JourneyAction.PUBLISH_PLAN, caller.role)
        start_date = self._validate_start_date(plan.start_date)

        async with self._unit_of_work():
            patient = await self._require_patient(patient_id)
            transition = resolve_transition(JourneyAction.PUBLISH_PLAN, patient.current_status)
            if await self.treatments.get_published_plan(patient.id) is not None:
                raise StatusGuardViolation(
                    transition.action.value,
                    patient.current_status,
                    "A published treatment plan already exists for this patient",
                )
            previous = await self._move(patient, transition)

            treatment_plan = TreatmentPlan(
                patient_id=patient.id,
                treatment_type=plan.treatment_type,
                num_sessions=plan.num_sessions,
                start_date=start_date,
                prep_instructions=plan.prep_instructions,
                prescription=plan.prescription.model_dump(exclude_none=True) if plan.prescription else None,
                side_effects=plan.side_effects,
                nutritional_interventions=plan.nutritional_interventions,
                skin_care_dos=plan.skin_care_dos,
                skin_care_donts=plan.skin_care_donts,
                immobilization_device=plan.immobilization_device,
                setup_considerations=plan.setup_considerations,
                is_published=True,
                created_by=caller.user_id,
            )
            self.db.add(treatment_plan)

            notification = Notification(
                recipient=patient.email,
                template=NotificationTemplate.PLAN_READY,
                data={
                    "patient_name": patient.full_name,
                    "treatment_type": plan.treatment_type.value,
                    "num_sessions": plan.num_sessions,
                    "start_date": start_date.date().isoformat(),
                    "prep_instructions": plan.prep_instructions,
                },
                failure_warning=(
                    "Plan published, but the patient could not be notified. "
                    "Please inform the patient manually."
                ),
            )
            await self._reload(treatment_plan)

        return await self._finish(
            transition.action.value,
            patient,
            previous,
            treatment_plan,
            "Treatment plan published",
            notifications=[notification],
        )

    async def complete_treatment(
        self, caller: CallerContext, patient_id: uuid.UUID
    ) -> TransitionResult[Patient]:
        """Mark the treatment course as finished."""
        require_actor(JourneyAction.COMPLETE_TREATMENT, caller.role)

        async with self._unit_of_work():
            patient = await self._require_patient(patient_id)
            transition = resolve_transition(JourneyAction.COMPLETE_TREATMENT, patient.current_status)
            plan = await self.treatments.get_published_plan(patient.id)
            if plan is not None and await self.treatments.count_reviews(plan.id) > 0:
                raise StatusGuardViolation(
                    transition.action.value,
                    patient.current_status,
                    "Reviews have already been scheduled for this patient",
                )
            previous = await self._move(patient, transition)

            notification = Notification(
                recipient=patient.email,
                template=NotificationTemplate.TREATMENT_COMPLETED,
                data={"patient_name": patient.full_name},
                failure_warning="Treatment marked complete, but the patient could not be notified.",
            )

        return await self._finish(
            transition.action.value,
            patient,
            previous,
            patient,
            "Treatment marked as complete",
            notifications=[notification],
        )

    def _validate_review_schedule(self, request: ScheduleReviewsRequest) -> list[ReviewSlot]:
        slots = request.reviews
        if len(slots) != REVIEWS_PER_COURSE:
            raise ValidationError(f"Exactly {REVIEWS_PER_COURSE} reviews must be scheduled")
        if sorted(slot.review_number for slot in slots) != list(range(1, REVIEWS_PER_COURSE + 1)):
            raise ValidationError("Reviews must be numbered 1, 2 and 3")

        slots = sorted(slots, key=lambda slot: slot.review_number)
        today = self.clock().date()
        for slot in slots:
            if not slot.office_location:
                raise ValidationError(f"Office location is required for review {slot.review_number}")
            if _as_utc(slot.review_date).date() < today:
                raise ValidationError(f"Review {slot.review_number} date cannot be in the past")
        for earlier, later in zip(slots, slots[1:]):
            if _as_utc(later.review_date) <= _as_utc(earlier.review_date):
                raise ValidationError(
                    "Review dates must be in chronological order (Review 1 < Review 2 < Review 3)"
                )
        return slots

    async def schedule_reviews(
        self, caller: CallerContext, patient_id: uuid.UUID, request: ScheduleReviewsRequest
    ) -> TransitionResult[list[TreatmentReview]]:
        """Create all three follow-up reviews for the published plan at once."""
        require_actor(JourneyAction.SCHEDULE_REVIEWS, caller.role)
        slots = self._validate_review_schedule(request)

        async with self._unit_of_work():
            patient = await self._require_patient(patient_id)
            transition = resolve_transition(JourneyAction.SCHEDULE_REVIEWS, patient.current_status)
            plan = await self._published_plan_or_guard(transition.action, patient)
            if await self.treatments.count_reviews(plan.id) > 0:
                raise StatusGuardViolation(
                    transition.action.value,
                    patient.current_status,
                    "Reviews have already been scheduled for this patient",
                )
            previous = await self._move(patient, transition)

            reviews = [
                TreatmentReview(
                    patient_id=patient.id,
                    treatment_plan_id=plan.id,
                    review_number=slot.review_number,
                    review_date=_as_utc(slot.review_date),
                    office_location=slot.office_location,
                    is_completed=False,
                )
                for slot in slots
            ]
            self.db.add_all(reviews)
            await self.db.flush()

            notification = Notification(
                recipient=patient.email,
                template=NotificationTemplate.REVIEW_SCHEDULE,
                data={
                    "patient_name": patient.full_name,
                    "reviews": [
                        {
                            "review_number": review.review_number,
                            "review_date": review.review_date.isoformat(),
                            "office_location": review.office_location,
                        }
                        for review in reviews
                    ],
                },
                failure_warning="Reviews scheduled, but the patient could not be notified.",
            )
            await self._reload(*reviews)

        return await self._finish(
            transition.action.value,
            patient,
            previous,
            reviews,
            "Reviews scheduled successfully",
            notifications=[notification],
        )

    async def complete_review(
        self, caller: CallerContext, review_id: uuid.UUID, notes: str | None = None
    ) -> TransitionResult[TreatmentReview]:
        """Complete the currently pending review and advance the patient."""
        require_actor(JourneyAction.COMPLETE_REVIEW, caller.role)

        async with self._unit_of_work():
            review = await self.treatments.get_review(review_id)
            if review is None:
                raise NotFoundError("Review not found")
            patient = await self._require_patient(review.patient_id)

            if review.is_completed:
                raise StatusGuardViolation(
                    JourneyAction.COMPLETE_REVIEW.value,
                    patient.current_status,
                    f"Review {review.review_number} has already been completed",
                )
            transition = resolve_transition(JourneyAction.COMPLETE_REVIEW, patient.current_status)

            plan = await self._published_plan_or_guard(transition.action, patient)
            if review.treatment_plan_id != plan.id:
                raise StatusGuardViolation(
                    transition.action.value,
                    patient.current_status,
                    "This review belongs to a previous treatment plan",
                )
            expected = PENDING_REVIEW_NUMBER[patient.current_status]
            if review.review_number != expected:
                raise StatusGuardViolation(
                    transition.action.value,
                    patient.current_status,
                    f"Review {expected} must be completed before review {review.review_number}",
                )

            previous = await self._move(patient, transition)
            review.is_completed = True
            review.completed_at = self.clock()
            review.completed_by = caller.user_id
            review.review_notes = notes

            next_review = next(
                (
                    r
                    for r in await self.treatments.list_reviews(patient.id, plan_id=plan.id)
                    if r.review_number == review.review_number + 1
                ),
                None,
            )
            notification = Notification(
                recipient=patient.email,
                template=NotificationTemplate.REVIEW_COMPLETED,
                data={
                    "patient_name": patient.full_name,
                    "review_number": review.review_number,
                    "notes": notes,
                    "next_review_date": next_review.review_date.isoformat() if next_review else None,
                    "next_review_location": next_review.office_location if next_review else None,
                },
                failure_warning=(
                    f"Review {review.review_number} completed, but the patient could not be notified."
                ),
            )
            await self._reload(review)

        return await self._finish(
            transition.action.value,
            patient,
            previous,
            review,
            f"Review {review.review_number} completed",
            notifications=[notification],
        )

    async def _outcome_guards(self, transition: Transition, patient: Patient) -> TreatmentPlan:
        plan = await self._published_plan_or_guard(transition.action, patient)
        if await self.treatments.count_completed_reviews(plan.id) != REVIEWS_PER_COURSE:
            raise StatusGuardViolation(
                transition.action.value,
                patient.current_status,
                "All 3 reviews must be completed before deciding the outcome",
            )
        return plan

    async def finalize_success(
        self, caller: CallerContext, patient_id: uuid.UUID, outcome_notes: str | None = None
    ) -> TransitionResult[TreatmentPlan]:
        """Record a successful outcome and close the journey."""
        require_actor(JourneyAction.FINALIZE_SUCCESS, caller.role)

        async with self._unit_of_work():
            patient = await self._require_patient(patient_id)
            transition = resolve_transition(JourneyAction.FINALIZE_SUCCESS, patient.current_status)
            plan = await self._outcome_guards(transition, patient)
            previous = await self._move(patient, transition)

            plan.is_successful = True
            plan.outcome_notes = outcome_notes
            plan.outcome_decided_at = self.clock()
            plan.outcome_decided_by = caller.user_id

            notification = Notification(
                recipient=patient.email,
                template=NotificationTemplate.TREATMENT_SUCCESS,
                data={"patient_name": patient.full_name, "outcome_notes": outcome_notes},
                failure_warning="Outcome recorded, but the patient could not be notified.",
            )
            await self._reload(plan)

        return await self._finish(
            transition.action.value,
            patient,
            previous,
            plan,
            "Treatment marked as successful",
            notifications=[notification],
        )

    async def restart_treatment(
        self, caller: CallerContext, patient_id: uuid.UUID, reason: str
    ) -> TransitionResult[TreatmentPlan]:
        """Retire the current plan and send the patient back to planning."""
        require_actor(JourneyAction.RESTART_TREATMENT, caller.role)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required to restart treatment")

        async with self._unit_of_work():
            patient = await self._require_patient(patient_id)
            transition = resolve_transition(JourneyAction.RESTART_TREATMENT, patient.current_status)
            plan = await self._outcome_guards(transition, patient)
            previous = await self._move(patient, transition)

            plan.is_published = False
            plan.is_successful = False
            plan.outcome_notes = reason
            plan.outcome_decided_at = self.clock()
            plan.outcome_decided_by = caller.user_id

            notification = Notification(
                recipient=patient.email,
                template=NotificationTemplate.TREATMENT_RESTART,
                data={"patient_name": patient.full_name, "reason": reason},
                failure_warning="Treatment restarted, but the patient could not be notified.",
            )
            await self._reload(plan)

        return await self._finish(
            transition.action.value,
            patient,
            previous,
            plan,
            "Treatment restarted. A new plan can now be published.",
            notifications=[notification],
        )

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_patient_for(self, caller: CallerContext, patient_id: uuid.UUID | None = None) -> Patient:
        """Resolve the patient ``caller`` may see.

        Patients always get their own record; staff must name a patient.

        Raises:
            NotFoundError: If the record does not exist.
            AuthorizationError: If a patient asks for someone else's record.
        """
        if caller.is_staff:
            if patient_id is None:
                raise ValidationError("patient_id is required")
            return await self._require_patient(patient_id)

        patient = await self._own_patient(caller)
        if patient_id is not None and patient_id != patient.id:
            raise AuthorizationError("Forbidden: you can only view your own record")
        return patient

    async def journey_view(self, caller: CallerContext, patient: Patient) -> JourneyView:
        """Roadmap and legal next actions for ``patient``."""
        status = patient.current_status
        scan_room = await self.treatments.latest_scan_room(patient.id) or settings.scan_room
        return JourneyView(
            patient=patient,
            status_label=status_label(status),
            available_actions=available_actions(status, caller.role),
            roadmap=build_roadmap(
                status,
                consultant_room=settings.consultation_room,
                scan_room=scan_room,
            ),
        )

    async def published_plan(self, patient: Patient) -> TreatmentPlan:
        plan = await self.treatments.get_published_plan(patient.id)
        if plan is None:
            raise NotFoundError("No published treatment plan yet")
        return plan

    async def current_reviews(self, patient: Patient) -> list[TreatmentReview]:
        """Reviews of the patient's published plan, by review number."""
        plan = await self.treatments.get_published_plan(patient.id)
        if plan is None:
            return []
        return await self.treatments.list_reviews(patient.id, plan_id=plan.id)
