import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from pymongo.errors import PyMongoError

import content
import storage
from auth import AdminUser, Session
from database import Backend, ensure_indexes
from errors import BackendFailure, InvalidCredentials, NotConfigured, NotFound, PortfolioError
from logger import get_logger
from schemas import (
    AboutContent,
    AboutContentUpdate,
    ContactFormData,
    ContactSubmission,
    GalleryCategory,
    GalleryFilters,
    GalleryItem,
    GalleryItemInput,
    GalleryItemUpdate,
    Page,
    Project,
    ProjectCategory,
    ProjectFilters,
    ProjectInput,
    ProjectStatus,
    ProjectUpdate,
    SiteConfig,
    SiteConfigUpdate,
    SortDirection,
    SortSpec,
    SubmissionFilters,
    SubscriptionSource,
)

logger = get_logger("api")

MAX_UPLOAD_MB = 10
CONTACT_FAILURE_MESSAGE = "Something went wrong. Please try again or email me directly."

backend = Backend.from_env()


def get_backend() -> Backend:
    return backend


@asynccontextmanager
async def lifespan(app: FastAPI):
    if backend.is_configured():
        try:
            ensure_indexes(backend)
        except PyMongoError as exc:
            logger.error("Could not ensure indexes: %s", exc)
        backend.get_identity()
    else:
        logger.warning("DATABASE_URL / DATABASE_NAME not set; content routes will return 503")
    yield


app = FastAPI(title="Portfolio API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotConfigured)
def not_configured_handler(request: Request, exc: NotConfigured):
    return JSONResponse(status_code=503, content={"detail": "Database not available"})


@app.exception_handler(NotFound)
def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": "Not found"})


@app.exception_handler(BackendFailure)
def backend_failure_handler(request: Request, exc: BackendFailure):
    logger.error("%s", exc)
    return JSONResponse(status_code=502, content={"detail": "Storage backend error"})


# ============
# Request DTOs
# ============
class LoginRequest(BaseModel):
    email: str
    password: str


class NewsletterRequest(BaseModel):
    email: str
    source: SubscriptionSource = SubscriptionSource.FOOTER


class UnsubscribeRequest(BaseModel):
    email: str


# ====
# Auth
# ====
def get_current_admin(
    authorization: Optional[str] = Header(None),
    backend: Backend = Depends(get_backend),
) -> AdminUser:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    identity = backend.get_identity()
    if identity is None:
        raise NotConfigured()
    token = authorization.split(" ", 1)[1]
    try:
        return identity.verify_token(token)
    except InvalidCredentials as exc:
        raise HTTPException(status_code=401, detail=str(exc))


def _sort(sort: Optional[str], direction: SortDirection) -> Optional[SortSpec]:
    return SortSpec(field=sort, direction=direction) if sort else None


def _bad_cursor(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))


# ======
# Routes
# ======
@app.get("/")
def root():
    return {"status": "ok", "service": "portfolio-api"}


@app.get("/test")
def test_database(backend: Backend = Depends(get_backend)):
    ok = backend.is_configured()
    collections = []
    if ok:
        try:
            collections = backend.require_database().list_collection_names()
        except PyMongoError:
            ok = False
    return {"backend": "running", "database": "connected" if ok else "not-available", "collections": collections[:10]}


@app.post("/api/auth/login", response_model=Session)
def login(data: LoginRequest, backend: Backend = Depends(get_backend)):
    identity = backend.get_identity()
    if identity is None:
        raise NotConfigured()
    try:
        return identity.sign_in(data.email, data.password)
    except InvalidCredentials:
        raise HTTPException(status_code=401, detail="Invalid credentials")


# Projects
@app.get("/api/projects", response_model=Page[Project])
def list_projects(
    category: Optional[ProjectCategory] = None,
    featured: Optional[bool] = None,
    sort: Optional[str] = None,
    direction: SortDirection = SortDirection.ASC,
    page_size: int = 10,
    cursor: Optional[str] = None,
    backend: Backend = Depends(get_backend),
):
    filters = ProjectFilters(category=category, featured=featured)
    try:
        return content.get_projects(backend, filters, _sort(sort, direction), page_size, cursor)
    except ValueError as exc:
        raise _bad_cursor(exc)


@app.get("/api/projects/featured", response_model=List[Project])
def featured_projects(count: int = 4, backend: Backend = Depends(get_backend)):
    return content.get_featured_projects(backend, count)


@app.get("/api/projects/{slug}", response_model=Project)
def get_project(slug: str, backend: Backend = Depends(get_backend)):
    project = content.get_project_by_slug(backend, slug)
    if project is None:
        raise HTTPException(status_code=404, detail="Not found")
    return project


@app.get("/api/admin/projects", response_model=Page[Project])
def admin_list_projects(
    status: Optional[ProjectStatus] = None,
    page_size: int = 10,
    cursor: Optional[str] = None,
    backend: Backend = Depends(get_backend),
    _: AdminUser = Depends(get_current_admin),
):
    try:
        return content.get_projects(
            backend,
            ProjectFilters(status=status),
            page_size=page_size,
            cursor=cursor,
            published_only=False,
        )
    except ValueError as exc:
        raise _bad_cursor(exc)


@app.get("/api/admin/projects/{project_id}", response_model=Project)
def admin_get_project(project_id: str, backend: Backend = Depends(get_backend), _: AdminUser = Depends(get_current_admin)):
    project = content.get_project_by_id(backend, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Not found")
    return project


@app.post("/api/projects")
def create_project(project: ProjectInput, backend: Backend = Depends(get_backend), _: AdminUser = Depends(get_current_admin)):
    return {"id": content.create_project(backend, project)}


@app.patch("/api/projects/{project_id}")
def update_project(
    project_id: str,
    changes: ProjectUpdate,
    backend: Backend = Depends(get_backend),
    _: AdminUser = Depends(get_current_admin),
):
    content.update_project(backend, project_id, changes)
    return {"ok": True}


@app.delete("/api/projects/{project_id}")
def delete_project(project_id: str, backend: Backend = Depends(get_backend), _: AdminUser = Depends(get_current_admin)):
    content.delete_project(backend, project_id)
    return {"deleted": True}


# Gallery
@app.get("/api/gallery", response_model=Page[GalleryItem])
def list_gallery(
    category: Optional[GalleryCategory] = None,
    project_id: Optional[str] = None,
    page_size: int = 20,
    cursor: Optional[str] = None,
    backend: Backend = Depends(get_backend),
):
    filters = GalleryFilters(category=category, project_id=project_id)
    try:
        return content.get_gallery_items(backend, filters, page_size, cursor)
    except ValueError as exc:
        raise _bad_cursor(exc)


@app.get("/api/gallery/{item_id}", response_model=GalleryItem)
def get_gallery_item(item_id: str, backend: Backend = Depends(get_backend)):
    item = content.get_gallery_item_by_id(backend, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Not found")
    return item


@app.post("/api/gallery")
def create_gallery_item(item: GalleryItemInput, backend: Backend = Depends(get_backend), _: AdminUser = Depends(get_current_admin)):
    return {"id": content.create_gallery_item(backend, item)}


@app.patch("/api/gallery/{item_id}")
def update_gallery_item(
    item_id: str,
    changes: GalleryItemUpdate,
    backend: Backend = Depends(get_backend),
    _: AdminUser = Depends(get_current_admin),
):
    content.update_gallery_item(backend, item_id, changes)
    return {"ok": True}


@app.delete("/api/gallery/{item_id}")
def delete_gallery_item(item_id: str, backend: Backend = Depends(get_backend), _: AdminUser = Depends(get_current_admin)):
    content.delete_gallery_item(backend, item_id)
    return {"deleted": True}


# Site config & about
@app.get("/api/site-config", response_model=SiteConfig)
def site_config(backend: Backend = Depends(get_backend)):
    config = content.get_site_config(backend)
    if config is None:
        raise HTTPException(status_code=404, detail="Not found")
    return config


@app.patch("/api/site-config")
def update_site_config(changes: SiteConfigUpdate, backend: Backend = Depends(get_backend), _: AdminUser = Depends(get_current_admin)):
    content.update_site_config(backend, changes)
    return {"ok": True}


@app.get("/api/about", response_model=AboutContent)
def about(backend: Backend = Depends(get_backend)):
    about_content = content.get_about_content(backend)
    if about_content is None:
        raise HTTPException(status_code=404, detail="Not found")
    return about_content


@app.patch("/api/about")
def update_about(changes: AboutContentUpdate, backend: Backend = Depends(get_backend), _: AdminUser = Depends(get_current_admin)):
    content.update_about_content(backend, changes)
    return {"ok": True}


# Contact
@app.post("/api/contact")
def contact(payload: ContactFormData, request: Request, backend: Backend = Depends(get_backend)):
    if payload.user_agent is None:
        payload.user_agent = request.headers.get("user-agent")
    try:
        _id = content.submit_contact_form(backend, payload)
    except PortfolioError:
        logger.exception("Error submitting contact form")
        raise HTTPException(status_code=500, detail=CONTACT_FAILURE_MESSAGE)
    return {"status": "received", "id": _id}


@app.get("/api/contact", response_model=Page[ContactSubmission])
def list_submissions(
    include_archived: bool = False,
    page_size: int = 20,
    cursor: Optional[str] = None,
    backend: Backend = Depends(get_backend),
    _: AdminUser = Depends(get_current_admin),
):
    filters = SubmissionFilters(archived=None if include_archived else False)
    try:
        return content.get_contact_submissions(backend, filters, page_size, cursor)
    except ValueError as exc:
        raise _bad_cursor(exc)


@app.post("/api/contact/{submission_id}/read")
def mark_read(submission_id: str, backend: Backend = Depends(get_backend), _: AdminUser = Depends(get_current_admin)):
    content.mark_submission_as_read(backend, submission_id)
    return {"ok": True}


@app.post("/api/contact/{submission_id}/archive")
def archive(submission_id: str, backend: Backend = Depends(get_backend), _: AdminUser = Depends(get_current_admin)):
    content.archive_submission(backend, submission_id)
    return {"ok": True}


@app.delete("/api/contact/{submission_id}")
def delete_submission(submission_id: str, backend: Backend = Depends(get_backend), _: AdminUser = Depends(get_current_admin)):
    content.delete_contact_submission(backend, submission_id)
    return {"deleted": True}


# Newsletter
@app.post("/api/newsletter/subscribe")
def subscribe(payload: NewsletterRequest, backend: Backend = Depends(get_backend)):
    return {"id": content.subscribe_to_newsletter(backend, payload.email, payload.source)}


@app.post("/api/newsletter/unsubscribe")
def unsubscribe(payload: UnsubscribeRequest, backend: Backend = Depends(get_backend)):
    content.unsubscribe_from_newsletter(backend, payload.email)
    return {"ok": True}


# Uploads
@app.post("/api/uploads")
async def upload_image(
    file: UploadFile = File(...),
    folder: storage.StorageFolder = Form(storage.StorageFolder.GENERAL),
    subfolder: Optional[str] = Form(None),
    compress: bool = Form(False),
    backend: Backend = Depends(get_backend),
    _: AdminUser = Depends(get_current_admin),
):
    if not storage.is_valid_image_type(file.content_type):
        raise HTTPException(status_code=400, detail="Only image files are allowed")
    data = await file.read()
    if not storage.is_valid_file_size(len(data), MAX_UPLOAD_MB):
        raise HTTPException(status_code=400, detail=f"File larger than {MAX_UPLOAD_MB} MB")
    name = file.filename or "upload"
    content_type = file.content_type
    if compress:
        try:
            data = storage.compress_image(data)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        name = name.rsplit(".", 1)[0] + ".jpg"
        content_type = "image/jpeg"
    payload = storage.FilePayload(data=data, name=name, content_type=content_type)
    url = storage.upload_file(backend, payload, folder, subfolder)
    return {"url": url}


@app.get("/files/{path:path}")
def get_file(path: str, backend: Backend = Depends(get_backend)):
    data, content_type = storage.read_file(backend, path)
    return Response(content=data, media_type=content_type)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
