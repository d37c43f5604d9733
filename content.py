"""
Content repository: typed queries and mutations over the portfolio collections.

Every function takes the ``Backend`` as its first argument. Reads always go to
the store; nothing is cached in process. Lookups by key return ``None`` when
the document is absent, updates by id raise ``NotFound``, deletes are
idempotent.
"""

import base64
import json
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import COLLECTIONS, SINGLETON_ID, Backend
from errors import BackendFailure, NotFound
from logger import get_logger
from schemas import (
    AboutContent,
    AboutContentUpdate,
    ContactFormData,
    ContactSubmission,
    GalleryFilters,
    GalleryItem,
    GalleryItemInput,
    GalleryItemUpdate,
    NewsletterSubscriber,
    Page,
    Project,
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

logger = get_logger("content")

M = TypeVar("M", bound=BaseModel)


# =========
# Utilities
# =========

@contextmanager
def _backend_errors(action: str):
    try:
        yield
    except PyMongoError as exc:
        raise BackendFailure(f"{action} failed: {exc}") from exc


def _object_id(doc_id: Any) -> Optional[ObjectId]:
    if isinstance(doc_id, ObjectId):
        return doc_id
    if isinstance(doc_id, str) and ObjectId.is_valid(doc_id):
        return ObjectId(doc_id)
    return None


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    return doc


def _to_model(model: Type[M], doc: Optional[Dict[str, Any]]) -> Optional[M]:
    if doc is None:
        return None
    return model.model_validate(serialize_doc(doc))


def _coerce(model: Type[M], data: Union[M, Dict[str, Any]]) -> M:
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, exclude_unset=True)
    return model.model_validate(data)


def _dump(data: BaseModel, partial: bool = False) -> Dict[str, Any]:
    return data.model_dump(by_alias=True, exclude_none=True, exclude_unset=partial)


def _wire_field(model: Type[BaseModel], field: str) -> str:
    """Map a Python attribute name (``display_order``) onto its stored name (``displayOrder``)."""
    if field == "id":
        return "_id"
    info = model.model_fields.get(field)
    if info is None:
        return field
    generator = model.model_config.get("alias_generator")
    return info.alias or (generator(field) if callable(generator) else field)


def _lookup(doc: Dict[str, Any], dotted: str) -> Any:
    value: Any = doc
    for part in dotted.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def encode_cursor(value: Any, doc_id: Any) -> str:
    """Build an opaque page token from the last item's sort value and id."""
    token: Dict[str, Any] = {"id": str(doc_id), "oid": isinstance(doc_id, ObjectId)}
    if isinstance(value, datetime):
        token["dt"] = value.isoformat()
    elif isinstance(value, ObjectId):
        token["o"] = str(value)
    else:
        token["v"] = value
    raw = json.dumps(token, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str) -> Tuple[Any, Any]:
    try:
        token = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
        if "dt" in token:
            value = datetime.fromisoformat(token["dt"])
        elif "o" in token:
            value = ObjectId(token["o"])
        else:
            value = token.get("v")
        doc_id = ObjectId(token["id"]) if token["oid"] else token["id"]
    except (ValueError, KeyError, TypeError, InvalidId) as exc:
        raise ValueError("Invalid pagination cursor") from exc
    return value, doc_id


def _filter_query(filters: Optional[BaseModel]) -> Dict[str, Any]:
    if filters is None:
        return {}
    return filters.model_dump(by_alias=True, exclude_none=True)


def _paginate(
    collection,
    query: Dict[str, Any],
    model: Type[M],
    sort: SortSpec,
    page_size: int,
    cursor: Optional[str],
    action: str,
) -> Page[M]:
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    field = _wire_field(model, sort.field)
    descending = sort.direction == SortDirection.DESC
    order = DESCENDING if descending else ASCENDING

    if cursor:
        value, last_id = decode_cursor(cursor)
        op = "$lt" if descending else "$gt"
        if value is None:
            # Missing values sort before everything else and only compare equal to null
            same_value = {field: None, "_id": {op: last_id}}
            after = same_value if descending else {"$or": [{field: {"$ne": None}}, same_value]}
        else:
            after = {"$or": [{field: {op: value}}, {field: value, "_id": {op: last_id}}]}
        query = {"$and": [query, after]} if query else after

    with _backend_errors(action):
        docs = list(collection.find(query).sort([(field, order), ("_id", order)]).limit(page_size + 1))

    has_more = len(docs) > page_size
    docs = docs[:page_size]
    next_cursor = None
    if has_more:
        last = docs[-1]
        next_cursor = encode_cursor(_lookup(last, field), last["_id"])
    return Page[model](items=[_to_model(model, d) for d in docs], cursor=next_cursor)


def _get_by_id(backend: Backend, name: str, doc_id: str, model: Type[M]) -> Optional[M]:
    collection = backend.collection(name)
    oid = _object_id(doc_id)
    if oid is None:
        return None
    with _backend_errors(f"get {name}/{doc_id}"):
        doc = collection.find_one({"_id": oid})
    return _to_model(model, doc)


def _update_by_id(backend: Backend, name: str, doc_id: str, changes: Dict[str, Any], stamp: bool = True) -> None:
    collection = backend.collection(name)
    oid = _object_id(doc_id)
    if oid is None:
        raise NotFound(f"{name}/{doc_id} does not exist")
    changes.pop("createdAt", None)
    if stamp:
        changes["updatedAt"] = backend.now()
    with _backend_errors(f"update {name}/{doc_id}"):
        if changes:
            matched = collection.update_one({"_id": oid}, {"$set": changes}).matched_count
        else:
            matched = collection.count_documents({"_id": oid}, limit=1)
    if matched == 0:
        raise NotFound(f"{name}/{doc_id} does not exist")


def _delete_by_id(backend: Backend, name: str, doc_id: str) -> None:
    collection = backend.collection(name)
    oid = _object_id(doc_id)
    if oid is None:
        return
    with _backend_errors(f"delete {name}/{doc_id}"):
        collection.delete_one({"_id": oid})


# ========
# Projects
# ========

def get_projects(
    backend: Backend,
    filters: Optional[ProjectFilters] = None,
    sort: Optional[SortSpec] = None,
    page_size: int = 10,
    cursor: Optional[str] = None,
    published_only: bool = True,
) -> Page[Project]:
    """List projects, published only unless ``filters.status`` says otherwise.

    With ``published_only=False`` and no status filter every status is listed.
    """
    collection = backend.collection(COLLECTIONS["PROJECTS"])
    query = _filter_query(filters)
    if published_only:
        query.setdefault("status", ProjectStatus.PUBLISHED.value)
    return _paginate(
        collection,
        query,
        Project,
        sort or SortSpec(field="display_order"),
        page_size,
        cursor,
        "list projects",
    )


def get_project_by_slug(backend: Backend, slug: str) -> Optional[Project]:
    collection = backend.collection(COLLECTIONS["PROJECTS"])
    with _backend_errors(f"get project {slug!r}"):
        doc = collection.find_one({"slug": slug, "status": ProjectStatus.PUBLISHED.value})
    return _to_model(Project, doc)


def get_project_by_id(backend: Backend, project_id: str) -> Optional[Project]:
    return _get_by_id(backend, COLLECTIONS["PROJECTS"], project_id, Project)


def get_featured_projects(backend: Backend, count: int = 4) -> List[Project]:
    collection = backend.collection(COLLECTIONS["PROJECTS"])
    if count < 1:
        return []
    query = {"featured": True, "status": ProjectStatus.PUBLISHED.value}
    with _backend_errors("list featured projects"):
        docs = list(collection.find(query).sort([("displayOrder", ASCENDING), ("_id", ASCENDING)]).limit(count))
    return [_to_model(Project, d) for d in docs]


def create_project(backend: Backend, data: Union[ProjectInput, Dict[str, Any]]) -> str:
    collection = backend.collection(COLLECTIONS["PROJECTS"])
    doc = _dump(_coerce(ProjectInput, data))
    now = backend.now()
    doc["createdAt"] = now
    doc["updatedAt"] = now
    with _backend_errors("create project"):
        result = collection.insert_one(doc)
    return str(result.inserted_id)


def update_project(backend: Backend, project_id: str, data: Union[ProjectUpdate, Dict[str, Any]]) -> None:
    changes = _dump(_coerce(ProjectUpdate, data), partial=True)
    _update_by_id(backend, COLLECTIONS["PROJECTS"], project_id, changes)


def delete_project(backend: Backend, project_id: str) -> None:
    # Gallery items pointing at this project are left untouched
    _delete_by_id(backend, COLLECTIONS["PROJECTS"], project_id)


# =======
# Gallery
# =======

def get_gallery_items(
    backend: Backend,
    filters: Optional[GalleryFilters] = None,
    page_size: int = 20,
    cursor: Optional[str] = None,
    sort: Optional[SortSpec] = None,
) -> Page[GalleryItem]:
    collection = backend.collection(COLLECTIONS["GALLERY"])
    return _paginate(
        collection,
        _filter_query(filters),
        GalleryItem,
        sort or SortSpec(field="order"),
        page_size,
        cursor,
        "list gallery items",
    )


def get_gallery_item_by_id(backend: Backend, item_id: str) -> Optional[GalleryItem]:
    return _get_by_id(backend, COLLECTIONS["GALLERY"], item_id, GalleryItem)


def create_gallery_item(backend: Backend, data: Union[GalleryItemInput, Dict[str, Any]]) -> str:
    collection = backend.collection(COLLECTIONS["GALLERY"])
    doc = _dump(_coerce(GalleryItemInput, data))
    doc["createdAt"] = backend.now()
    with _backend_errors("create gallery item"):
        result = collection.insert_one(doc)
    return str(result.inserted_id)


def update_gallery_item(backend: Backend, item_id: str, data: Union[GalleryItemUpdate, Dict[str, Any]]) -> None:
    changes = _dump(_coerce(GalleryItemUpdate, data), partial=True)
    _update_by_id(backend, COLLECTIONS["GALLERY"], item_id, changes, stamp=False)


def delete_gallery_item(backend: Backend, item_id: str) -> None:
    _delete_by_id(backend, COLLECTIONS["GALLERY"], item_id)


# ==========
# Singletons
# ==========

def _get_singleton(backend: Backend, name: str, model: Type[M]) -> Optional[M]:
    collection = backend.collection(name)
    with _backend_errors(f"get {name}/{SINGLETON_ID}"):
        doc = collection.find_one({"_id": SINGLETON_ID})
    return _to_model(model, doc)


def _update_singleton(backend: Backend, name: str, changes: Dict[str, Any]) -> None:
    collection = backend.collection(name)
    changes.pop("id", None)
    changes["updatedAt"] = backend.now()
    with _backend_errors(f"update {name}/{SINGLETON_ID}"):
        collection.update_one({"_id": SINGLETON_ID}, {"$set": changes}, upsert=True)


def get_site_config(backend: Backend) -> Optional[SiteConfig]:
    return _get_singleton(backend, COLLECTIONS["SITE_CONFIG"], SiteConfig)


def update_site_config(backend: Backend, data: Union[SiteConfigUpdate, Dict[str, Any]]) -> None:
    changes = _dump(_coerce(SiteConfigUpdate, data), partial=True)
    _update_singleton(backend, COLLECTIONS["SITE_CONFIG"], changes)


def get_about_content(backend: Backend) -> Optional[AboutContent]:
    return _get_singleton(backend, COLLECTIONS["ABOUT"], AboutContent)


def update_about_content(backend: Backend, data: Union[AboutContentUpdate, Dict[str, Any]]) -> None:
    changes = _dump(_coerce(AboutContentUpdate, data), partial=True)
    _update_singleton(backend, COLLECTIONS["ABOUT"], changes)


# ===================
# Contact submissions
# ===================

def submit_contact_form(backend: Backend, data: Union[ContactFormData, Dict[str, Any]]) -> str:
    """Store a contact form submission. ``read`` and ``archived`` always start False."""
    collection = backend.collection(COLLECTIONS["CONTACT_SUBMISSIONS"])
    doc = _dump(_coerce(ContactFormData, data))
    doc["read"] = False
    doc["archived"] = False
    doc["createdAt"] = backend.now()
    with _backend_errors("submit contact form"):
        result = collection.insert_one(doc)
    return str(result.inserted_id)


def get_contact_submissions(
    backend: Backend,
    filters: Optional[SubmissionFilters] = None,
    page_size: int = 20,
    cursor: Optional[str] = None,
    sort: Optional[SortSpec] = None,
) -> Page[ContactSubmission]:
    """Newest first; archived submissions are hidden unless ``filters.archived`` is changed."""
    collection = backend.collection(COLLECTIONS["CONTACT_SUBMISSIONS"])
    return _paginate(
        collection,
        _filter_query(filters or SubmissionFilters()),
        ContactSubmission,
        sort or SortSpec(field="created_at", direction=SortDirection.DESC),
        page_size,
        cursor,
        "list contact submissions",
    )


def get_contact_submission_by_id(backend: Backend, submission_id: str) -> Optional[ContactSubmission]:
    return _get_by_id(backend, COLLECTIONS["CONTACT_SUBMISSIONS"], submission_id, ContactSubmission)


def mark_submission_as_read(backend: Backend, submission_id: str) -> None:
    _update_by_id(backend, COLLECTIONS["CONTACT_SUBMISSIONS"], submission_id, {"read": True}, stamp=False)


def archive_submission(backend: Backend, submission_id: str) -> None:
    _update_by_id(backend, COLLECTIONS["CONTACT_SUBMISSIONS"], submission_id, {"archived": True}, stamp=False)


def delete_contact_submission(backend: Backend, submission_id: str) -> None:
    _delete_by_id(backend, COLLECTIONS["CONTACT_SUBMISSIONS"], submission_id)


# ==========
# Newsletter
# ==========

def _normalize_email(email: str) -> str:
    return email.strip().lower()


def get_newsletter_subscriber(backend: Backend, email: str) -> Optional[NewsletterSubscriber]:
    collection = backend.collection(COLLECTIONS["NEWSLETTER"])
    with _backend_errors("get newsletter subscriber"):
        doc = collection.find_one({"email": _normalize_email(email)})
    return _to_model(NewsletterSubscriber, doc)


def subscribe_to_newsletter(backend: Backend, email: str, source: Union[SubscriptionSource, str]) -> str:
    """Subscribe *email*, reactivating an earlier record instead of adding a second one.

    The lookup and the insert are not transactional. With the unique index from
    ``ensure_indexes`` in place a concurrent duplicate insert is rejected and the
    surviving record's id is returned.
    """
    collection = backend.collection(COLLECTIONS["NEWSLETTER"])
    email = _normalize_email(email)
    source = SubscriptionSource(source).value

    with _backend_errors("subscribe to newsletter"):
        existing = collection.find_one({"email": email})
        if existing is not None:
            if not existing.get("active"):
                collection.update_one(
                    {"_id": existing["_id"]},
                    {"$set": {"active": True, "subscribedAt": backend.now()}, "$unset": {"unsubscribedAt": ""}},
                )
                logger.info("Reactivated newsletter subscriber %s", existing["_id"])
            return str(existing["_id"])

        doc = {"email": email, "source": source, "active": True, "subscribedAt": backend.now()}
        try:
            result = collection.insert_one(doc)
        except DuplicateKeyError:
            existing = collection.find_one({"email": email})
            if existing is None:
                raise
            return str(existing["_id"])
    return str(result.inserted_id)


def unsubscribe_from_newsletter(backend: Backend, email: str) -> None:
    collection = backend.collection(COLLECTIONS["NEWSLETTER"])
    with _backend_errors("unsubscribe from newsletter"):
        existing = collection.find_one({"email": _normalize_email(email)})
        if existing is None:
            return
        collection.update_one(
            {"_id": existing["_id"]},
            {"$set": {"active": False, "unsubscribedAt": backend.now()}},
        )
