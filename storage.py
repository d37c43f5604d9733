"""
Blob storage gateway backed by GridFS.

Objects are addressed by ``<folder>/[<subfolder>/]<filename>`` and exposed
through ``STORAGE_PUBLIC_URL`` (served by the ``/files`` route in ``main.py``).
Writing to an existing path replaces the previous object once the new one is
fully stored.
"""

import io
import re
import secrets
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import quote, unquote, urlparse

from gridfs.errors import NoFile
from PIL import Image, UnidentifiedImageError
from pymongo.errors import PyMongoError

from database import Backend
from errors import BackendFailure, NotFound, UploadCanceled
from logger import get_logger

logger = get_logger("storage")

VALID_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")

CHUNK_SIZE = 256 * 1024

_UPLOAD_EXECUTOR = ThreadPoolExecutor(max_workers=4, thread_name_prefix="upload")


class StorageFolder(str, Enum):
    PROJECTS = "projects"
    GALLERY = "gallery"
    ABOUT = "about"
    GENERAL = "uploads"


class TaskState(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    SUCCESS = "success"
    CANCELED = "canceled"
    ERROR = "error"


@dataclass
class FilePayload:
    data: bytes
    name: str
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class StoredFile:
    name: str
    path: str
    url: str


# =====
# Paths
# =====

def build_path(folder, file_name: str, subfolder: Optional[str] = None) -> str:
    parts = [StorageFolder(folder).value]
    if subfolder and subfolder.strip("/"):
        parts.append(subfolder.strip("/"))
    parts.append(file_name)
    return "/".join(parts)


def generate_file_name(original_name: str) -> str:
    """Unique name of the form ``<millis>-<random>.<ext>``."""
    extension = original_name.rsplit(".", 1)[-1]
    alphabet = "0123456789abcdefghijklmnopqrstuvwxyz"
    random_str = "".join(secrets.choice(alphabet) for _ in range(6))
    return f"{int(time.time() * 1000)}-{random_str}.{extension}"


def _default_file_name(original_name: str) -> str:
    return f"{int(time.time() * 1000)}-{original_name.replace('/', '_')}"


def url_for_path(backend: Backend, path: str) -> str:
    base = backend.config.storage_public_url.rstrip("/")
    return f"{base}/{quote(path)}"


def path_from_url(backend: Backend, url: str) -> str:
    base = backend.config.storage_public_url.rstrip("/") + "/"
    if url.startswith(base):
        return unquote(url[len(base):])
    base_path = urlparse(base).path
    url_path = urlparse(url).path
    if base_path not in ("", "/") and url_path.startswith(base_path):
        return unquote(url_path[len(base_path):])
    raise ValueError(f"{url} is not a stored file URL")


# =======
# Uploads
# =======

def _store(
    bucket,
    path: str,
    payload: FilePayload,
    on_chunk: Optional[Callable[[int], None]] = None,
    gate: Optional[Callable[[], None]] = None,
    before_commit: Optional[Callable[[], None]] = None,
):
    """Write *payload* to *path* and drop older revisions. Nothing is left behind on failure."""
    metadata = {"contentType": payload.content_type or "application/octet-stream"}
    data = bytes(payload.data)
    grid_in = bucket.open_upload_stream(path, chunk_size_bytes=CHUNK_SIZE, metadata=metadata)
    try:
        for offset in range(0, len(data), CHUNK_SIZE):
            if gate is not None:
                gate()
            chunk = data[offset:offset + CHUNK_SIZE]
            grid_in.write(chunk)
            if on_chunk is not None:
                on_chunk(len(chunk))
        if gate is not None:
            gate()
        if before_commit is not None:
            before_commit()
        grid_in.close()
    except BaseException:
        grid_in.abort()
        raise

    file_id = grid_in._id
    for old in list(bucket.find({"filename": path})):
        if old._id != file_id:
            bucket.delete(old._id)
    return file_id


def upload_file(
    backend: Backend,
    payload: FilePayload,
    folder,
    subfolder: Optional[str] = None,
    file_name: Optional[str] = None,
) -> str:
    """Upload *payload* and return its public URL."""
    bucket = backend.require_bucket()
    path = build_path(folder, file_name or _default_file_name(payload.name), subfolder)
    try:
        _store(bucket, path, payload)
    except PyMongoError as exc:
        raise BackendFailure(f"upload {path} failed: {exc}") from exc
    return url_for_path(backend, path)


class UploadTask:
    """A running upload. ``progress`` is a fraction in [0, 1]; ``future`` resolves to the URL.

    ``pause``, ``resume`` and ``cancel`` return False once the upload has
    started committing; from then on it always ends in ``SUCCESS`` or ``ERROR``.
    """

    def __init__(
        self,
        backend: Backend,
        bucket,
        path: str,
        payload: FilePayload,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.path = path
        self.url = url_for_path(backend, path)
        self.total_bytes = payload.size
        self.bytes_transferred = 0
        self.state = TaskState.RUNNING
        self._bucket = bucket
        self._payload = payload
        self._on_progress = on_progress
        self._canceled = threading.Event()
        self._resumed = threading.Event()
        self._resumed.set()
        self._committing = False
        self._lock = threading.Lock()
        self.future: Future = _UPLOAD_EXECUTOR.submit(self._run)

    @property
    def progress(self) -> float:
        if self.total_bytes == 0:
            return 1.0 if self.state == TaskState.SUCCESS else 0.0
        return self.bytes_transferred / self.total_bytes

    def pause(self) -> bool:
        with self._lock:
            if self.state != TaskState.RUNNING or self._committing:
                return False
            self._resumed.clear()
            self.state = TaskState.PAUSED
            return True

    def resume(self) -> bool:
        with self._lock:
            if self.state != TaskState.PAUSED:
                return False
            self.state = TaskState.RUNNING
            self._resumed.set()
            return True

    def cancel(self) -> bool:
        with self._lock:
            if self.state not in (TaskState.RUNNING, TaskState.PAUSED) or self._committing:
                return False
            self._canceled.set()
            self._resumed.set()
            return True

    def result(self, timeout: Optional[float] = None) -> str:
        return self.future.result(timeout)

    def _gate(self) -> None:
        self._resumed.wait()
        if self._canceled.is_set():
            raise UploadCanceled(f"upload of {self.path} was canceled")

    def _begin_commit(self) -> None:
        with self._lock:
            if self._canceled.is_set():
                raise UploadCanceled(f"upload of {self.path} was canceled")
            self._committing = True

    def _finish(self, state: TaskState) -> None:
        with self._lock:
            self.state = state

    def _advance(self, count: int) -> None:
        self.bytes_transferred += count
        if self._on_progress is not None:
            self._on_progress(self.progress)

    def _run(self) -> str:
        try:
            _store(
                self._bucket,
                self.path,
                self._payload,
                on_chunk=self._advance,
                gate=self._gate,
                before_commit=self._begin_commit,
            )
        except UploadCanceled:
            self._finish(TaskState.CANCELED)
            logger.info("Upload of %s canceled", self.path)
            raise
        except PyMongoError as exc:
            self._finish(TaskState.ERROR)
            logger.error("Upload of %s failed: %s", self.path, exc)
            raise BackendFailure(f"upload {self.path} failed: {exc}") from exc
        except Exception:
            self._finish(TaskState.ERROR)
            raise
        self._finish(TaskState.SUCCESS)
        if self.total_bytes == 0 and self._on_progress is not None:
            self._on_progress(1.0)
        return self.url


def upload_file_with_progress(
    backend: Backend,
    payload: FilePayload,
    folder,
    subfolder: Optional[str] = None,
    file_name: Optional[str] = None,
    on_progress: Optional[Callable[[float], None]] = None,
) -> UploadTask:
    bucket = backend.require_bucket()
    path = build_path(folder, file_name or _default_file_name(payload.name), subfolder)
    return UploadTask(backend, bucket, path, payload, on_progress)


def upload_multiple_files(
    backend: Backend,
    payloads: Sequence[FilePayload],
    folder,
    subfolder: Optional[str] = None,
) -> List[str]:
    """Upload concurrently. Uploads that already succeeded stay in place if another one fails."""
    if not payloads:
        return []
    backend.require_bucket()
    with ThreadPoolExecutor(max_workers=min(8, len(payloads))) as pool:
        futures = [pool.submit(upload_file, backend, p, folder, subfolder) for p in payloads]
        return [f.result() for f in futures]


# =======
# Deletes
# =======

def delete_file_by_path(backend: Backend, path: str) -> None:
    bucket = backend.require_bucket()
    try:
        files = list(bucket.find({"filename": path}))
        if not files:
            raise NotFound(f"{path} does not exist")
        for grid_out in files:
            bucket.delete(grid_out._id)
    except NoFile as exc:
        raise NotFound(f"{path} does not exist") from exc
    except PyMongoError as exc:
        raise BackendFailure(f"delete {path} failed: {exc}") from exc


def delete_file_by_url(backend: Backend, url: str) -> None:
    """Delete the object behind *url*; a missing object is logged, not raised."""
    backend.require_bucket()
    try:
        delete_file_by_path(backend, path_from_url(backend, url))
    except (NotFound, ValueError) as exc:
        logger.warning("Error deleting file %s: %s", url, exc)


def delete_multiple_files(backend: Backend, urls: Sequence[str]) -> None:
    if not urls:
        return
    backend.require_bucket()
    with ThreadPoolExecutor(max_workers=min(8, len(urls))) as pool:
        for future in [pool.submit(delete_file_by_url, backend, url) for url in urls]:
            future.result()


# ========
# Listings
# ========

def list_files(backend: Backend, folder, subfolder: Optional[str] = None) -> List[StoredFile]:
    """Objects directly under the folder (and subfolder), sorted by name."""
    bucket = backend.require_bucket()
    prefix = build_path(folder, "", subfolder)
    pattern = "^" + re.escape(prefix) + "[^/]+$"
    try:
        paths = {grid_out.filename for grid_out in bucket.find({"filename": {"$regex": pattern}})}
    except PyMongoError as exc:
        raise BackendFailure(f"list {prefix} failed: {exc}") from exc
    return [
        StoredFile(name=path.rsplit("/", 1)[-1], path=path, url=url_for_path(backend, path))
        for path in sorted(paths)
    ]


def get_file_url(backend: Backend, path: str) -> str:
    bucket = backend.require_bucket()
    try:
        found = next(iter(bucket.find({"filename": path})), None)
    except PyMongoError as exc:
        raise BackendFailure(f"lookup {path} failed: {exc}") from exc
    if found is None:
        raise NotFound(f"{path} does not exist")
    return url_for_path(backend, path)


def read_file(backend: Backend, path: str) -> Tuple[bytes, str]:
    """Return the newest revision stored at *path* and its content type."""
    bucket = backend.require_bucket()
    try:
        grid_out = bucket.open_download_stream_by_name(path)
        data = grid_out.read()
    except NoFile as exc:
        raise NotFound(f"{path} does not exist") from exc
    except PyMongoError as exc:
        raise BackendFailure(f"read {path} failed: {exc}") from exc
    content_type = (grid_out.metadata or {}).get("contentType", "application/octet-stream")
    return data, content_type


# ==========
# Validation
# ==========

def is_valid_image_type(content_type: Optional[str]) -> bool:
    return content_type in VALID_IMAGE_TYPES


def is_valid_file_size(size: int, max_size_mb: float) -> bool:
    return size <= max_size_mb * 1024 * 1024


def compress_image(data: bytes, max_width: int = 1920, quality: float = 0.8) -> bytes:
    """Downscale to *max_width* keeping the aspect ratio and re-encode as JPEG."""
    if max_width < 1:
        raise ValueError("max_width must be positive")
    if not 0 < quality <= 1:
        raise ValueError("quality must be in (0, 1]")
    try:
        with Image.open(io.BytesIO(data)) as source:
            image = source
            width, height = image.size
            if width > max_width:
                height = max(1, round(height * max_width / width))
                width = max_width
                image = image.resize((width, height), Image.Resampling.LANCZOS)
            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            out = io.BytesIO()
            image.save(out, format="JPEG", quality=int(round(quality * 100)))
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError("Failed to load image") from exc
    return out.getvalue()
