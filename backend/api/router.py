from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, Response, UploadFile
from slowapi import Limiter
from slowapi.util import get_remote_address

from api.dependencies import get_current_user, get_wizard, get_wizard_context
from config import settings
from models.requests import CompetencyCreate, CompetencyUpdate, QuestionCreate, QuestionUpdate
from models.responses import WizardSnapshot
from services import session_store
from services.kit_exporter import export_filename
from services.pdf_parser import is_pdf_filename
from services.wizard import KitWizard, WizardContext

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)

GENERATION_RATE = "10/minute"


def pdf_response(pdf: bytes, job_title: str) -> Response:
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(job_title)}"'},
    )


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "gemini_configured": bool(settings.gemini_api_key),
    }


# --- session lifecycle ---


@router.post("/wizard", response_model=WizardSnapshot, status_code=201)
async def open_wizard(context: WizardContext = Depends(get_wizard_context)):
    return session_store.create(context).snapshot()


@router.get("/wizard/{session_id}", response_model=WizardSnapshot)
async def wizard_state(wizard: KitWizard = Depends(get_wizard)):
    return wizard.snapshot()


@router.delete("/wizard/{session_id}", status_code=204)
async def close_wizard(session_id: str, user_id: str = Depends(get_current_user)):
    session_store.discard(session_id, user_id)
    return Response(status_code=204)


# --- stage 1: job input ---


@router.post("/wizard/{session_id}/job", response_model=WizardSnapshot)
@limiter.limit(GENERATION_RATE)
async def submit_job(
    request: Request,
    title: str = Form(""),
    description: str = Form(""),
    job_file: UploadFile | None = File(None),
    wizard: KitWizard = Depends(get_wizard),
):
    pdf_bytes = None
    if job_file is not None and job_file.filename:
        if not is_pdf_filename(job_file.filename):
            raise HTTPException(status_code=400, detail="Only PDF files are accepted")

        # Read and validate size
        pdf_bytes = await job_file.read()
        max_bytes = settings.max_upload_size_mb * 1024 * 1024
        if len(pdf_bytes) > max_bytes:
            raise HTTPException(
                status_code=400,
                detail=f"File too large. Max size: {settings.max_upload_size_mb}MB",
            )

    await wizard.submit_job(title, description, pdf_bytes)
    return wizard.snapshot()


# --- stage 2: competency review ---


@router.post("/wizard/{session_id}/competencies", response_model=WizardSnapshot)
async def add_competency(body: CompetencyCreate, wizard: KitWizard = Depends(get_wizard)):
    wizard.add_competency(body.name, body.description)
    return wizard.snapshot()


@router.patch("/wizard/{session_id}/competencies/{index}", response_model=WizardSnapshot)
async def update_competency(index: int, body: CompetencyUpdate, wizard: KitWizard = Depends(get_wizard)):
    wizard.update_competency(index, name=body.name, description=body.description)
    return wizard.snapshot()


@router.delete("/wizard/{session_id}/competencies/{index}", response_model=WizardSnapshot)
async def remove_competency(index: int, wizard: KitWizard = Depends(get_wizard)):
    wizard.remove_competency(index)
    return wizard.snapshot()


@router.post("/wizard/{session_id}/competencies/suggest", response_model=WizardSnapshot)
@limiter.limit(GENERATION_RATE)
async def suggest_competencies(request: Request, wizard: KitWizard = Depends(get_wizard)):
    await wizard.suggest_competencies()
    return wizard.snapshot()


@router.post("/wizard/{session_id}/competencies/confirm", response_model=WizardSnapshot)
@limiter.limit(GENERATION_RATE)
async def confirm_competencies(request: Request, wizard: KitWizard = Depends(get_wizard)):
    await wizard.confirm_competencies()
    return wizard.snapshot()


# --- stage 3: question review ---


@router.post("/wizard/{session_id}/questions", response_model=WizardSnapshot)
async def add_question(body: QuestionCreate, wizard: KitWizard = Depends(get_wizard)):
    wizard.add_question(**body.model_dump())
    return wizard.snapshot()


@router.patch("/wizard/{session_id}/questions/{index}", response_model=WizardSnapshot)
async def update_question(index: int, body: QuestionUpdate, wizard: KitWizard = Depends(get_wizard)):
    wizard.update_question(index, **body.model_dump(exclude_none=True))
    return wizard.snapshot()


@router.delete("/wizard/{session_id}/questions/{index}", response_model=WizardSnapshot)
async def remove_question(index: int, wizard: KitWizard = Depends(get_wizard)):
    wizard.remove_question(index)
    return wizard.snapshot()


@router.post("/wizard/{session_id}/questions/more", response_model=WizardSnapshot)
@limiter.limit(GENERATION_RATE)
async def generate_more_questions(request: Request, wizard: KitWizard = Depends(get_wizard)):
    await wizard.generate_more_questions()
    return wizard.snapshot()


@router.post("/wizard/{session_id}/finalize", response_model=WizardSnapshot)
@limiter.limit(GENERATION_RATE)
async def finalize(request: Request, wizard: KitWizard = Depends(get_wizard)):
    await wizard.finalize()
    return wizard.snapshot()


# --- navigation / export ---


@router.post("/wizard/{session_id}/back", response_model=WizardSnapshot)
async def back(wizard: KitWizard = Depends(get_wizard)):
    wizard.back()
    return wizard.snapshot()


@router.post("/wizard/{session_id}/reset", response_model=WizardSnapshot)
async def reset(wizard: KitWizard = Depends(get_wizard)):
    wizard.reset()
    return wizard.snapshot()


@router.get("/wizard/{session_id}/export")
async def export_wizard_kit(wizard: KitWizard = Depends(get_wizard)):
    return pdf_response(wizard.export_pdf(), wizard.job.title)
