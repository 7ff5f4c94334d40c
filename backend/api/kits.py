"""Saved kits, the review workflow and the organization a kit belongs to.

Repository calls block, so these routes are plain functions that FastAPI
runs in its threadpool.
"""

from fastapi import APIRouter, Depends, Response

from api.dependencies import get_current_user, get_repository
from api.router import pdf_response
from models.kit import JobStatus, JobSummary, Organization, PersistedKit
from models.requests import OrganizationCreate, OrganizationJoin, ReviewDecision
from models.responses import KitListResponse
from services import kit_exporter
from services.errors import InvalidInputError, KitNotFoundError, PermissionDeniedError
from services.kit_repository import ADMIN_ROLE, KitRepository

router = APIRouter()


def _load_kit(job_id: str, user_id: str, repository: KitRepository) -> PersistedKit:
    """Fetch a kit the user's organization owns; anything else is not found."""
    kit = repository.get_kit(job_id)
    profile = repository.get_profile(user_id)
    if kit is None or profile is None or profile.organization_id != kit.org_id:
        raise KitNotFoundError(f"Kit {job_id} not found")
    return kit


def _require_owner_or_admin(kit: PersistedKit, user_id: str, repository: KitRepository) -> None:
    profile = repository.get_profile(user_id)
    if kit.profile_id != user_id and (profile is None or profile.role != ADMIN_ROLE):
        raise PermissionDeniedError("Only the kit's author or an admin can do this")


@router.post("/organizations", response_model=Organization, status_code=201)
def create_organization(
    body: OrganizationCreate,
    user_id: str = Depends(get_current_user),
    repository: KitRepository = Depends(get_repository),
):
    return repository.create_organization(body.name, user_id)


@router.post("/organizations/join", response_model=Organization)
def join_organization(
    body: OrganizationJoin,
    user_id: str = Depends(get_current_user),
    repository: KitRepository = Depends(get_repository),
):
    return repository.join_organization(body.invite_code, user_id)


@router.get("/kits", response_model=KitListResponse)
def list_kits(
    status: JobStatus | None = None,
    mine: bool = False,
    user_id: str = Depends(get_current_user),
    repository: KitRepository = Depends(get_repository),
):
    org_id = repository.get_organization_id(user_id)
    jobs = repository.list_jobs(org_id, profile_id=user_id if mine else None, status=status)
    return KitListResponse(jobs=jobs)


@router.get("/kits/{job_id}", response_model=PersistedKit)
def get_kit(
    job_id: str,
    user_id: str = Depends(get_current_user),
    repository: KitRepository = Depends(get_repository),
):
    return _load_kit(job_id, user_id, repository)


@router.delete("/kits/{job_id}", status_code=204)
def delete_kit(
    job_id: str,
    user_id: str = Depends(get_current_user),
    repository: KitRepository = Depends(get_repository),
):
    kit = _load_kit(job_id, user_id, repository)
    _require_owner_or_admin(kit, user_id, repository)
    repository.delete_job(job_id)
    return Response(status_code=204)


@router.post("/kits/{job_id}/submit", response_model=JobSummary)
def submit_kit(
    job_id: str,
    user_id: str = Depends(get_current_user),
    repository: KitRepository = Depends(get_repository),
):
    kit = _load_kit(job_id, user_id, repository)
    if kit.profile_id != user_id:
        raise PermissionDeniedError("Only the kit's author can submit it for review")
    return repository.submit_for_review(job_id)


@router.post("/kits/{job_id}/review", response_model=JobSummary)
def review_kit(
    job_id: str,
    body: ReviewDecision,
    user_id: str = Depends(get_current_user),
    repository: KitRepository = Depends(get_repository),
):
    _load_kit(job_id, user_id, repository)
    if not body.approve and not (body.reason or "").strip():
        raise InvalidInputError("A reason is required when rejecting a kit")
    return repository.review_job(job_id, user_id, body.approve, body.reason)


@router.get("/kits/{job_id}/export")
def export_kit(
    job_id: str,
    user_id: str = Depends(get_current_user),
    repository: KitRepository = Depends(get_repository),
):
    kit = _load_kit(job_id, user_id, repository)
    pdf = kit_exporter.render_kit_pdf(kit.title, kit.competencies, kit.questions)
    return pdf_response(pdf, kit.title)
