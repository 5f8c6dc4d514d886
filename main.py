from contextlib import asynccontextmanager
from typing import List, Optional

import structlog
from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

import crud
import lifecycle
import referrals
import schemas
from auth import get_current_user_id
from database import Database, get_db, transaction
from errors import (
    HTTP_STATUS_CODES,
    AppError,
    ErrorDetail,
    ErrorResponse,
    InternalError,
    NotFoundError,
    ValidationError,
)
from observability import init_observability
from request_id_middleware import RequestIdMiddleware
from settings import Settings, get_settings


# Initialise observability before creating app
init_observability()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.database.create_all()
    yield
    app.state.database.dispose()


app = FastAPI(
    title="Jobtrail",
    description="Job search tracker: job lifecycle, referral requests and referral analytics",
    version="0.1.0",
    lifespan=lifespan,
)

# One store client per process, handed to requests through get_db
app.state.database = Database(get_settings().database_url)

# --- CORS Middleware ---
origins = [
    "http://localhost",
    "http://localhost:3000",
    "http://127.0.0.1",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestIdMiddleware)


# --- Error envelope --- #
def _error_response(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("Request failed", code=exc.code, message=exc.message)
    else:
        logger.info("Request rejected", code=exc.code, message=exc.message, status_code=exc.status_code)
    return _error_response(exc.status_code, exc.to_response())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        ErrorDetail(
            field=".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path")),
            message=error["msg"],
        )
        for error in exc.errors()
    ]
    logger.info("Request validation failed", errors=len(details))
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        ErrorResponse(code=ValidationError.code, message="Invalid input data", details=details),
    )


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Unhandled store error", exc_info=exc)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorResponse(code="INTERNAL_ERROR", message="Internal server error"),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = HTTP_STATUS_CODES.get(exc.status_code, InternalError.code)
    return _error_response(exc.status_code, ErrorResponse(code=code, message=str(exc.detail)))


# --- Job Endpoints --- #
@app.post("/jobs", response_model=schemas.Job, status_code=status.HTTP_201_CREATED, tags=["Jobs"])
def create_job_endpoint(
    job: schemas.JobCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return schemas.Job.model_validate(lifecycle.create_job(db, job, user_id))


@app.get("/jobs", response_model=List[schemas.JobListItem], tags=["Jobs"])
def list_jobs_endpoint(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Active (non-archived) jobs, newest first, each with its latest history entry."""
    items = []
    for job in crud.get_active_jobs_for_user(db, user_id):
        item = schemas.JobListItem.model_validate(job)
        latest = crud.get_history_for_job(db, job.id, limit=1)
        if latest:
            item.latest_history = schemas.HistoryEntry.model_validate(latest[0])
        items.append(item)
    return items


@app.get("/jobs/archived", response_model=List[schemas.Job], tags=["Jobs"])
def list_archived_jobs_endpoint(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return [schemas.Job.model_validate(job) for job in crud.get_archived_jobs_for_user(db, user_id)]


@app.post("/jobs/bulk-archive", response_model=schemas.BulkArchiveResponse, tags=["Job Lifecycle"])
def bulk_archive_endpoint(
    payload: schemas.BulkArchiveRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    count = lifecycle.bulk_archive(db, payload.job_ids, user_id, reason=payload.reason)
    return schemas.BulkArchiveResponse(archived_count=count)


@app.get("/jobs/{job_id}", response_model=schemas.JobWithHistory, tags=["Jobs"])
def get_job_endpoint(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    job = lifecycle.get_owned_job(db, job_id, user_id)
    history = crud.get_history_for_job(db, job.id)
    return schemas.JobWithHistory(
        **schemas.Job.model_validate(job).model_dump(),
        history=[schemas.HistoryEntry.model_validate(entry) for entry in history],
    )


@app.get("/jobs/{job_id}/history", response_model=List[schemas.HistoryEntry], tags=["Jobs"])
def get_job_history_endpoint(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return [schemas.HistoryEntry.model_validate(entry) for entry in lifecycle.list_history(db, job_id, user_id)]


@app.post("/jobs/{job_id}/archive", response_model=schemas.Job, tags=["Job Lifecycle"])
def archive_job_endpoint(
    job_id: str,
    payload: Optional[schemas.ArchiveRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    reason = payload.reason if payload else None
    return schemas.Job.model_validate(lifecycle.archive(db, job_id, user_id, reason=reason))


@app.post("/jobs/{job_id}/restore", response_model=schemas.Job, tags=["Job Lifecycle"])
def restore_job_endpoint(
    job_id: str,
    payload: Optional[schemas.RestoreRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    job = lifecycle.restore(
        db,
        job_id,
        user_id,
        restore_to_status=payload.restore_to_status if payload else None,
        default_status=settings.default_restore_status,
    )
    return schemas.Job.model_validate(job)


@app.delete("/jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Job Lifecycle"])
def delete_job_endpoint(
    job_id: str,
    payload: Optional[schemas.PermanentDeleteRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    lifecycle.permanently_delete(db, job_id, user_id, payload.confirm_delete if payload else None)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Professional Contact Endpoints --- #
@app.post("/contacts", response_model=schemas.Contact, status_code=status.HTTP_201_CREATED, tags=["Contacts"])
def create_contact_endpoint(
    contact: schemas.ContactCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    linked = list(dict.fromkeys(contact.linked_job_ids))
    if linked and len(crud.get_jobs_by_ids_for_user(db, linked, user_id)) != len(linked):
        raise ValidationError(
            "Invalid input data",
            details=[{"field": "linkedJobIds", "message": "All linked jobs must exist and belong to the user"}],
        )
    contact = contact.model_copy(update={"linked_job_ids": linked})
    with transaction(db, "Failed to create contact"):
        db_contact = crud.create_contact(db, contact, user_id)
    return schemas.Contact.model_validate(db_contact)


@app.get("/contacts/{contact_id}", response_model=schemas.Contact, tags=["Contacts"])
def get_contact_endpoint(
    contact_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    contact = crud.get_contact_for_user(db, contact_id, user_id)
    if contact is None:
        raise NotFoundError("Contact not found")
    return schemas.Contact.model_validate(contact)


# --- Referral Request Endpoints --- #
@app.post(
    "/referral-requests",
    response_model=schemas.ReferralRequestOut,
    status_code=status.HTTP_201_CREATED,
    tags=["Referral Requests"],
)
def create_referral_request_endpoint(
    payload: schemas.ReferralRequestCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    request = referrals.create(db, user_id, payload, apply_impact=settings.apply_impact_on_create)
    return schemas.ReferralRequestOut.model_validate(request)


@app.get("/referral-requests", response_model=List[schemas.ReferralRequestOut], tags=["Referral Requests"])
def list_referral_requests_endpoint(
    job_id: Optional[str] = Query(default=None, alias="jobId"),
    contact_id: Optional[str] = Query(default=None, alias="contactId"),
    status_filter: Optional[schemas.ReferralStatus] = Query(default=None, alias="status"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    requests = referrals.list_requests(
        db,
        user_id,
        job_id=job_id,
        contact_id=contact_id,
        status=status_filter.value if status_filter else None,
    )
    return [schemas.ReferralRequestOut.model_validate(r) for r in requests]


@app.get("/referral-requests/analytics", response_model=schemas.ReferralAnalytics, tags=["Referral Requests"])
def referral_analytics_endpoint(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return referrals.summarize_for_user(db, user_id)


@app.get(
    "/referral-requests/job/{job_id}/potential-sources",
    response_model=schemas.PotentialSourcesResponse,
    tags=["Referral Requests"],
)
def potential_sources_endpoint(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    job, ranked = referrals.potential_sources(db, user_id, job_id, limit=settings.potential_sources_limit)
    sources = [
        schemas.PotentialSource(
            **schemas.Contact.model_validate(source.contact).model_dump(),
            optimal_timing_score=source.timing.score,
            timing_reason=source.timing.reason,
            days_since_last_contact=source.timing.days_since_last_contact,
            existing_referral_requests=source.existing_referral_requests,
        )
        for source in ranked
    ]
    return schemas.PotentialSourcesResponse(job=schemas.Job.model_validate(job), potential_sources=sources)


@app.get("/referral-requests/{request_id}", response_model=schemas.ReferralRequestOut, tags=["Referral Requests"])
def get_referral_request_endpoint(
    request_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return schemas.ReferralRequestOut.model_validate(referrals.get_request(db, user_id, request_id))


@app.patch("/referral-requests/{request_id}", response_model=schemas.ReferralRequestOut, tags=["Referral Requests"])
def update_referral_request_endpoint(
    request_id: str,
    payload: schemas.ReferralRequestUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    request = referrals.update(db, user_id, request_id, payload, atomic=settings.referral_ledger_atomic)
    return schemas.ReferralRequestOut.model_validate(request)


@app.delete(
    "/referral-requests/{request_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Referral Requests"],
)
def delete_referral_request_endpoint(
    request_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    referrals.delete(db, user_id, request_id, atomic=settings.referral_ledger_atomic)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Main execution --- (for running with uvicorn)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
