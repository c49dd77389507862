"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the study group backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses. Service errors are translated to
HTTP responses by the exception handlers registered in `create_app`.

Endpoints implemented:
- POST /auth/signup, POST /auth/signin
- GET /users/me, GET /profile, PUT /profile
- POST /groups, GET /groups/my-groups, GET /groups/list
- POST /groups/{group_id}/join, POST /groups/{group_id}/request
- GET /groups/admin/requests, POST /groups/{group_id}/approve/{user_id}
- GET /groups/{group_id}
- POST /documents/{group_id}/upload, GET /documents/{group_id}/documents
- POST /goals, GET /goals, PUT /goals/{goal_id}
- POST /study-sessions, GET /study-sessions, GET /study-sessions/group/{group_id}
- PATCH /study-sessions/{session_id}/attendance, PATCH /study-sessions/{session_id}/status
- GET /health
"""

from typing import Optional
import json
import logging
import time
import uuid

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlmodel import Session

from . import services
from .auth import get_current_user_id
from .config import Settings
from .database import create_db_and_tables, create_engine_for, get_session
from .errors import ServiceError
from .schemas import (
    AttendanceIn,
    GoalIn,
    GoalUpdateIn,
    GroupCreateIn,
    ProfileUpdateIn,
    SessionStatusIn,
    SignInIn,
    SignUpIn,
    StudySessionIn,
)

logger = logging.getLogger("studygroups.api")

router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# -- auth ---------------------------------------------------------------------

@router.post('/auth/signup', status_code=201)
def signup(payload: SignUpIn, db: Session = Depends(get_session), settings: Settings = Depends(get_settings)):
    """Register a new user and return a token for immediate use."""
    auth = services.AuthService(db, settings)
    user = auth.register(payload.name, payload.email, payload.password, payload.department)
    return {
        'token': auth.issue_token(user),
        'user': {'id': user.id, 'name': user.name, 'email': user.email, 'department': user.department},
        'message': 'User created successfully',
    }


@router.post('/auth/signin')
def signin(payload: SignInIn, db: Session = Depends(get_session), settings: Settings = Depends(get_settings)):
    """Authenticate a user and return a short-lived JWT token.

    The returned token contains `user_id` and is signed using the
    configured JWT secret.
    """
    auth = services.AuthService(db, settings)
    user = auth.authenticate(payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=401, detail='Invalid credentials')
    return {'token': auth.issue_token(user), 'user_id': user.id, 'message': 'Login successful'}


# -- profile --------------------------------------------------------------------

@router.get('/users/me')
def users_me(db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    """Return the logged-in user's profile."""
    return services.ProfileService(db).get_profile(user_id)


@router.get('/profile')
def get_profile(db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    return services.ProfileService(db).get_profile(user_id)


@router.put('/profile')
def update_profile(payload: ProfileUpdateIn, db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    """Merge the supplied fields into the caller's profile.

    Unknown fields are ignored; `study_preferences` is merged key by key.
    """
    return services.ProfileService(db).update_profile(user_id, payload.model_dump(exclude_unset=True))


# -- groups -----------------------------------------------------------------

@router.post('/groups', status_code=201)
def create_group(payload: GroupCreateIn, db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    """Create a group; the caller becomes its first member and admin."""
    svc = services.GroupService(db)
    return svc.create_group(user_id, payload.name, payload.subject, payload.description, payload.is_public)


@router.get('/groups/my-groups')
def my_groups(db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    """List the groups the caller is a member of."""
    return services.GroupService(db).list_for_member(user_id)


@router.get('/groups/list')
def list_groups(db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    """List every public group."""
    return services.GroupService(db).list_public()


@router.get('/groups/admin/requests')
def admin_requests(db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    """Return the caller's admin inbox of groups with pending join requests."""
    return services.GroupService(db).pending_requests(user_id)


@router.post('/groups/{group_id}/join')
def join_group(group_id: int, db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    """Join a public group directly.

    Private groups answer 403 and existing members 400; the response is
    the group with populated members and admins.
    """
    return services.GroupService(db).join(group_id, user_id)


@router.post('/groups/{group_id}/request')
def request_join(group_id: int, db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    """Ask the admins of a private group for membership."""
    return services.GroupService(db).request_to_join(group_id, user_id)


@router.post('/groups/{group_id}/approve/{target_user_id}')
def approve_request(group_id: int, target_user_id: int, db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    """Admin-only: move a user from the join requests into the members."""
    return services.GroupService(db).approve(group_id, target_user_id, user_id)


@router.get('/groups/{group_id}')
def get_group(group_id: int, db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    return services.GroupService(db).get_group(group_id, user_id)


# -- documents --------------------------------------------------------------

@router.post('/documents/{group_id}/upload')
def upload_document(
    group_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    user_id: int = Depends(get_current_user_id),
):
    """Upload a single file to a group the caller belongs to.

    The payload is read up to `MAX_UPLOAD_BYTES + 1` so oversized files
    are rejected without buffering them entirely.
    """
    content = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    svc = services.DocumentService(db, settings)
    return svc.upload(group_id, user_id, file.filename or '', file.content_type, content)


@router.get('/documents/{group_id}/documents')
def list_documents(
    group_id: int,
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    user_id: int = Depends(get_current_user_id),
):
    """List a group's documents with uploader names."""
    return services.DocumentService(db, settings).list_for_group(group_id, user_id)


# -- goals --------------------------------------------------------------------

@router.post('/goals', status_code=201)
def create_goal(payload: GoalIn, db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    return services.GoalService(db).create_goal(user_id, payload.title, payload.description, payload.deadline)


@router.get('/goals')
def list_goals(db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    return services.GoalService(db).list_goals(user_id)


@router.put('/goals/{goal_id}')
def update_goal(goal_id: int, payload: GoalUpdateIn, db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    """Update progress, completion or details of one of the caller's goals."""
    return services.GoalService(db).update_goal(goal_id, user_id, payload.model_dump(exclude_unset=True))


# -- study sessions -------------------------------------------------------------

@router.post('/study-sessions', status_code=201)
def create_study_session(payload: StudySessionIn, db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    """Schedule a study session in one of the caller's groups."""
    svc = services.StudySessionService(db)
    return svc.create_session(
        user_id,
        payload.group_id,
        payload.title,
        payload.date,
        payload.duration,
        description=payload.description,
    )


@router.get('/study-sessions')
def list_study_sessions(db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    """List sessions from every group the caller belongs to."""
    return services.StudySessionService(db).list_for_user(user_id)


@router.get('/study-sessions/group/{group_id}')
def list_group_sessions(group_id: int, db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    return services.StudySessionService(db).list_for_group(group_id, user_id)


@router.patch('/study-sessions/{session_id}/attendance')
def update_attendance(session_id: int, payload: AttendanceIn, db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    return services.StudySessionService(db).set_attendance(session_id, user_id, payload.attending)


@router.patch('/study-sessions/{session_id}/status')
def update_session_status(session_id: int, payload: SessionStatusIn, db: Session = Depends(get_session), user_id: int = Depends(get_current_user_id)):
    """Set the status to scheduled, completed or cancelled (creator or admin)."""
    return services.StudySessionService(db).update_status(session_id, user_id, payload.status)


@router.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


# -- application ----------------------------------------------------------------

async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "client": request.client.host if request.client else "unknown",
            },
            ensure_ascii=True,
        ),
    )
    return response


async def service_error_handler(request: Request, exc: ServiceError):
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    # malformed bodies are client errors like any other precondition failure
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Server error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application for `settings`.

    The engine and settings are kept on `app.state`; nothing is read from
    module-level globals at request time, so tests can create isolated
    apps against temporary databases.
    """
    settings = settings or Settings()
    if not logging.getLogger().handlers:
        logging.basicConfig(level=settings.LOG_LEVEL)

    app = FastAPI(title="Study Group API")
    app.state.settings = settings
    app.state.engine = create_engine_for(settings)
    create_db_and_tables(app.state.engine)

    # Wide-open CORS keeps local frontends working without extra config in dev.
    if settings.ALLOW_DEV_CORS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.middleware("http")(request_context_middleware)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router)
    return app


app = create_app()
