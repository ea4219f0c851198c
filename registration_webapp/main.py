"""HTTP API for the family reunion registration site.

Run with ``python -m registration_webapp`` or
``uvicorn registration_webapp.main:create_app --factory``.
"""
import json
import secrets
import time
from typing import Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from loguru import logger
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from services.api_ops import register_ops_routes
from services.export import EXPORT_FILENAME, filter_by_generation, members_to_csv
from services.family_tree import build_tree, compute_stats, group_by_generation
from services.media import IncomingFile, MediaStorage
from services.sheets_sync import SheetsSync
from shared.config import Settings, get_settings
from shared.errors import (
    ApiError,
    NotFound,
    StoreError,
    TooManyFiles,
    Unauthorized,
    ValidationFailed,
)
from shared.logging_setup import configure_logging
from shared.models import (
    AdminVerifyRequest,
    FamilyMember,
    GalleryPhoto,
    GalleryUploadMeta,
    MemberUpdateForm,
    RegistrationForm,
    describe_validation_error,
    next_member_id,
    utcnow,
)
from shared.sheets_client import SheetsClient
from shared.store import GalleryStore, MemberStore

MB = 1024 * 1024
MEMBER_FORM_FIELDS = [
    "name",
    "email",
    "phone",
    "city",
    "relationshipType",
    "connectedThrough",
    "generation",
    "familyBranch",
    "attendees",
]
OPTIONAL_FORM_FIELDS = ("city",)


# --- Dependencies ---

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_members(request: Request) -> MemberStore:
    return request.app.state.members


def get_gallery(request: Request) -> GalleryStore:
    return request.app.state.gallery


def get_sheets(request: Request) -> SheetsSync:
    return request.app.state.sheets


def password_matches(candidate: Optional[str], expected: str) -> bool:
    if not candidate:
        return False
    return secrets.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


def require_admin(
    settings: Settings = Depends(get_app_settings),
    x_admin_password: Optional[str] = Header(None),
):
    """Check the X-Admin-Password header. Open when no password is configured."""
    if not settings.admin_protected:
        return
    if not password_matches(x_admin_password, settings.admin_password):
        raise Unauthorized("Unauthorized")


# --- Form helpers ---

def _form_values(form, keep_blank=()) -> Dict[str, str]:
    """Member text fields that were actually submitted.

    Blank values are dropped except for the fields named in keep_blank.
    """
    values = {}
    for key in MEMBER_FORM_FIELDS:
        value = form.get(key)
        if not isinstance(value, str):
            continue
        if value.strip() != "" or key in keep_blank:
            values[key] = value
    return values


async def _incoming_file(upload, media: MediaStorage) -> Optional[IncomingFile]:
    """Check an upload's type and declared size, then read it."""
    if not isinstance(upload, UploadFile) or not upload.filename:
        return None
    media.check_type(upload.filename, upload.content_type)
    if upload.size is not None:
        media.check_size(upload.filename, upload.size)
    data = await upload.read()
    incoming = IncomingFile(filename=upload.filename, content_type=upload.content_type or "", data=data)
    media.validate(incoming)
    return incoming


def _parse_captions(raw) -> List[str]:
    if not raw or not isinstance(raw, str):
        return []
    try:
        captions = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring captions field that is not valid JSON")
        return []
    if not isinstance(captions, list):
        logger.warning("Ignoring captions field that is not a JSON array")
        return []
    return captions


# --- Blocking work, run in the threadpool ---

def _save_registration(request: Request, data: RegistrationForm, incoming: Optional[IncomingFile]) -> FamilyMember:
    media: MediaStorage = request.app.state.profile_media
    store = get_members(request)
    photo_url = None
    try:
        if incoming:
            photo_url = media.save(incoming)
        member = FamilyMember(id=next_member_id(store.ids()), photo=photo_url, **data.model_dump())
        store.append(member)
    except (StoreError, OSError) as e:
        logger.error(f"Registration error: {e}")
        if photo_url:
            media.delete(photo_url)
        raise ApiError("Registration failed", 500, error=str(e))
    return member


def _save_update(request: Request, member: FamilyMember, changes: dict,
                 incoming: Optional[IncomingFile]) -> FamilyMember:
    media: MediaStorage = request.app.state.profile_media
    store = get_members(request)
    new_photo = None
    try:
        if incoming:
            new_photo = media.save(incoming)
            changes["photo"] = new_photo
        changes["updated_at"] = utcnow()
        updated = member.model_copy(update=changes)
        if not store.replace(updated):
            if new_photo:
                media.delete(new_photo)
            raise NotFound("Family member not found")
    except (StoreError, OSError) as e:
        logger.error(f"Update error for {member.id}: {e}")
        if new_photo:
            media.delete(new_photo)
        raise ApiError("Update failed", 500, error=str(e))

    if new_photo and member.photo:
        media.delete(member.photo)
    return updated


def _save_gallery_photos(request: Request, incoming: List[IncomingFile], captions: List,
                         uploaded_by: Optional[str]) -> List[GalleryPhoto]:
    media: MediaStorage = request.app.state.gallery_media
    saved_urls = []
    photos = []
    try:
        for index, item in enumerate(incoming):
            url = media.save(item)
            saved_urls.append(url)
            meta = GalleryUploadMeta(
                caption=captions[index] if index < len(captions) else "",
                uploaded_by=uploaded_by,
            )
            photos.append(GalleryPhoto(url=url, caption=meta.caption, uploaded_by=meta.uploaded_by))
        get_gallery(request).extend(photos)
    except (StoreError, OSError) as e:
        logger.error(f"Gallery upload error: {e}")
        for url in saved_urls:
            media.delete(url)
        raise ApiError("Upload failed", 500, error=str(e))
    return photos


# --- Public API ---

router = APIRouter(prefix="/api")


@router.post("/register")
async def api_register(request: Request, background_tasks: BackgroundTasks):
    """Handle a registration submission with an optional profile photo."""
    form = await request.form()
    try:
        data = RegistrationForm.model_validate(_form_values(form))
    except ValidationError as e:
        raise ValidationFailed(describe_validation_error(e))

    incoming = await _incoming_file(form.get("photo"), request.app.state.profile_media)
    member = await run_in_threadpool(_save_registration, request, data, incoming)

    logger.info(f"Registered {member.name} ({member.id})")
    background_tasks.add_task(get_sheets(request).append_member, member)

    return {
        "success": True,
        "message": "Registration successful!",
        "member": member.to_json(),
    }


@router.get("/family")
def api_family(store: MemberStore = Depends(get_members)):
    return [member.to_json() for member in store.read()]


@router.get("/family/{member_id}")
def api_family_member(member_id: str, store: MemberStore = Depends(get_members)):
    member = store.get(member_id)
    if member is None:
        raise NotFound("Family member not found")
    return member.to_json()


@router.put("/family/{member_id}")
async def api_update_member(request: Request, member_id: str):
    """Partial update; a new photo replaces (and deletes) the old one."""
    form = await request.form()
    try:
        submitted = _form_values(form, keep_blank=OPTIONAL_FORM_FIELDS)
        changes = MemberUpdateForm.model_validate(submitted).model_dump(exclude_unset=True)
    except ValidationError as e:
        raise ValidationFailed(describe_validation_error(e))

    member = await run_in_threadpool(get_members(request).get, member_id)
    if member is None:
        raise NotFound("Family member not found")

    incoming = await _incoming_file(form.get("photo"), request.app.state.profile_media)
    updated = await run_in_threadpool(_save_update, request, member, changes, incoming)

    logger.info(f"Updated member {member_id}")
    return {"success": True, "message": "Member updated", "member": updated.to_json()}


def _delete_member(request: Request, member_id: str) -> FamilyMember:
    try:
        removed = get_members(request).remove(member_id)
    except StoreError as e:
        logger.error(f"Delete error for {member_id}: {e}")
        raise ApiError("Failed to delete member", 500, error=str(e))
    if removed is None:
        raise NotFound("Family member not found")
    if removed.photo:
        request.app.state.profile_media.delete(removed.photo)
    logger.info(f"Deleted member {removed.name} ({member_id})")
    return removed


@router.delete("/family/{member_id}")
def api_delete_member(request: Request, member_id: str):
    _delete_member(request, member_id)
    return {"success": True, "message": "Member deleted"}


@router.get("/stats")
def api_stats(store: MemberStore = Depends(get_members)):
    return compute_stats(store.read()).to_json()


@router.get("/tree")
def api_tree(store: MemberStore = Depends(get_members)):
    members = store.read()
    tree = build_tree(members).to_json()
    tree["generations"] = {
        str(generation): [m.id for m in group]
        for generation, group in group_by_generation(members).items()
    }
    return tree


# --- Gallery ---

@router.get("/gallery")
def api_gallery(store: GalleryStore = Depends(get_gallery)):
    photos = sorted(store.read(), key=lambda p: p.created_at, reverse=True)
    return [photo.to_json() for photo in photos]


@router.post("/gallery/upload")
async def api_gallery_upload(request: Request):
    """Store up to GALLERY_MAX_FILES photos with optional per-file captions."""
    settings = get_app_settings(request)
    form = await request.form()
    uploads = [item for item in form.getlist("photos") if isinstance(item, UploadFile) and item.filename]
    if not uploads:
        raise ValidationFailed("No photos uploaded")
    if len(uploads) > settings.gallery_max_files:
        raise TooManyFiles(f"You can upload at most {settings.gallery_max_files} photos at a time")

    media: MediaStorage = request.app.state.gallery_media
    incoming = [await _incoming_file(upload, media) for upload in uploads]

    captions = _parse_captions(form.get("captions"))
    uploaded_by = form.get("uploadedBy")
    if not isinstance(uploaded_by, str):
        uploaded_by = None

    photos = await run_in_threadpool(_save_gallery_photos, request, incoming, captions, uploaded_by)

    logger.info(f"Uploaded {len(photos)} gallery photo(s)")
    return {
        "success": True,
        "message": f"{len(photos)} photo(s) uploaded!",
        "uploaded": len(photos),
        "photos": [photo.to_json() for photo in photos],
    }


@router.delete("/gallery/{photo_id}")
def api_gallery_delete(request: Request, photo_id: str):
    try:
        removed = get_gallery(request).remove(photo_id)
    except StoreError as e:
        logger.error(f"Gallery delete error for {photo_id}: {e}")
        raise ApiError("Failed to delete photo", 500, error=str(e))
    if removed is None:
        raise NotFound("Photo not found")
    request.app.state.gallery_media.delete(removed.url)
    logger.info(f"Deleted gallery photo {photo_id}")
    return {"success": True, "message": "Photo deleted"}


# --- Admin ---

@router.post("/admin/verify")
def api_admin_verify(payload: Optional[AdminVerifyRequest] = None, settings: Settings = Depends(get_app_settings)):
    if not settings.admin_protected:
        return {"success": True, "message": "No admin password configured"}
    if password_matches(payload.password if payload else None, settings.admin_password):
        return {"success": True}
    raise Unauthorized("Invalid password")


admin_router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])


@admin_router.get("/registrations")
def api_admin_registrations(store: MemberStore = Depends(get_members)):
    members = store.read()
    return {
        "success": True,
        "total": len(members),
        "registrations": [member.to_json() for member in members],
    }


@admin_router.get("/stats")
def api_admin_stats(store: MemberStore = Depends(get_members)):
    return compute_stats(store.read()).to_json()


@admin_router.delete("/registrations/{member_id}")
def api_admin_delete(request: Request, member_id: str, background_tasks: BackgroundTasks):
    removed = _delete_member(request, member_id)
    background_tasks.add_task(get_sheets(request).delete_member, removed)
    return {"success": True, "message": "Registration deleted"}


@admin_router.get("/export")
def api_admin_export(generation: Optional[int] = None, store: MemberStore = Depends(get_members)):
    members = filter_by_generation(store.read(), generation)
    return Response(
        content=members_to_csv(members),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


# --- Error handling ---

def _error_response(settings: Settings, status_code: int, message: str, error: Optional[str] = None):
    content = {"success": False, "message": message}
    if error and not settings.is_production:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


def register_error_handlers(app: FastAPI):
    settings: Settings = app.state.settings

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return _error_response(settings, exc.status_code, exc.message, exc.error)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error(f"Storage failure on {request.url.path}: {exc}")
        return _error_response(settings, 500, "Failed to access stored data", str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        parts = []
        for err in exc.errors():
            field = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "header"))
            parts.append(f"{field or 'request'}: {err.get('msg', 'invalid')}")
        return _error_response(settings, 400, "; ".join(parts) or "Invalid request")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(settings, exc.status_code, str(exc.detail))


# --- App factory ---

def create_app(settings: Optional[Settings] = None, sheets_client: Optional[SheetsClient] = None) -> FastAPI:
    """Build the API with its stores, media directories and sync adapter."""
    settings = settings or get_settings()
    configure_logging(settings)
    settings.ensure_local_dirs()

    app = FastAPI(title="Family Reunion Registry")
    app.state.settings = settings
    app.state.members = MemberStore(settings.members_file)
    app.state.gallery = GalleryStore(settings.gallery_file)
    app.state.members.init()
    app.state.gallery.init()
    app.state.profile_media = MediaStorage(
        settings.uploads_dir, "/uploads",
        settings.profile_photo_max_mb * MB, settings.profile_photo_max_dimension,
    )
    app.state.gallery_media = MediaStorage(
        settings.gallery_dir, "/gallery",
        settings.gallery_photo_max_mb * MB, settings.gallery_photo_max_dimension,
    )
    app.state.sheets = SheetsSync(settings, client=sheets_client)
    app.state.rate_limit = {}

    # Startup validation
    if not settings.admin_protected:
        logger.warning("ADMIN_PASSWORD is not set; admin routes are unprotected")
    if not app.state.sheets.enabled:
        logger.info("Google Sheets sync disabled")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_origin] if settings.client_origin else ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        if settings.rate_limit_per_min <= 0:
            return await call_next(request)
        ip = request.client.host if request.client else "unknown"
        now = time.time()
        window = [t for t in app.state.rate_limit.get(ip, []) if now - t < 60]
        if len(window) >= settings.rate_limit_per_min:
            return JSONResponse(status_code=429, content={"success": False, "message": "Too many requests"})
        window.append(now)
        app.state.rate_limit[ip] = window
        return await call_next(request)

    register_error_handlers(app)
    app.include_router(router)
    app.include_router(admin_router)
    register_ops_routes(app)

    app.mount("/uploads", StaticFiles(directory=settings.uploads_dir), name="uploads")
    app.mount("/gallery", StaticFiles(directory=settings.gallery_dir), name="gallery")

    logger.info(f"Family Reunion Registry ready (data dir: {settings.data_dir})")
    return app
