import itertools
import re
import sys
from datetime import datetime, timedelta
from pathlib import Path

import mongomock
import pytest
from bson import ObjectId
from gridfs.errors import NoFile

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from database import Backend, BackendConfig  # noqa: E402


class StepClock:
    """Server clock stand-in that advances one second per reading."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, 0)) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


class FakeGridOut:
    def __init__(self, file_id, filename, data, metadata, sequence):
        self._id = file_id
        self.filename = filename
        self.metadata = metadata
        self.length = len(data)
        self.sequence = sequence
        self._data = bytes(data)

    def read(self):
        return self._data


class FakeGridIn:
    def __init__(self, bucket, filename, metadata):
        self._id = ObjectId()
        self._bucket = bucket
        self.filename = filename
        self.metadata = metadata
        self.buffer = bytearray()
        self.aborted = False

    def write(self, data):
        if self._bucket.fail_writes:
            raise self._bucket.fail_writes
        self.buffer.extend(data)

    def close(self):
        self._bucket._commit(self)

    def abort(self):
        self.aborted = True
        self._bucket.aborted.append(self)


class FakeBucket:
    """In-memory subset of ``gridfs.GridFSBucket`` used by ``storage``."""

    def __init__(self):
        self.files = {}
        self.aborted = []
        self.fail_writes = None
        self._sequence = itertools.count()

    def open_upload_stream(self, filename, chunk_size_bytes=None, metadata=None):
        return FakeGridIn(self, filename, metadata)

    def _commit(self, grid_in):
        self.files[grid_in._id] = FakeGridOut(
            grid_in._id, grid_in.filename, grid_in.buffer, grid_in.metadata, next(self._sequence)
        )

    def find(self, filter):
        wanted = filter.get("filename")
        if isinstance(wanted, dict):
            pattern = re.compile(wanted["$regex"])
            matches = [f for f in self.files.values() if pattern.search(f.filename)]
        else:
            matches = [f for f in self.files.values() if f.filename == wanted]
        return sorted(matches, key=lambda f: f.sequence)

    def delete(self, file_id):
        if file_id not in self.files:
            raise NoFile(f"no file with id {file_id}")
        del self.files[file_id]

    def open_download_stream_by_name(self, filename):
        matches = self.find({"filename": filename})
        if not matches:
            raise NoFile(f"no file named {filename}")
        return matches[-1]

    def paths(self):
        return sorted(f.filename for f in self.files.values())


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def bucket():
    return FakeBucket()


@pytest.fixture
def config():
    return BackendConfig(
        database_url="mongodb://localhost:27017",
        database_name="portfolio_test",
        storage_public_url="/files",
        jwt_secret="test-secret",
        admin_email="admin@portfolio.dev",
        admin_password="s3cret",
    )


@pytest.fixture
def backend(config, bucket, clock):
    return Backend(config, client=mongomock.MongoClient(), bucket=bucket, clock=clock)


@pytest.fixture
def unconfigured_backend():
    return Backend(BackendConfig())


@pytest.fixture
def make_project():
    def factory(**overrides):
        data = {
            "title": "Frieda en Rus",
            "slug": "frieda-en-rus",
            "tagline": "Saddle up for style.",
            "shortDescription": "A post-post apocalyptic wilderness.",
            "fullDescription": "Set in the barren wastelands of the Free State.",
            "category": "animation",
            "images": [{"url": "/images/hero.jpg", "alt": "Hero", "type": "hero"}],
            "featured": False,
            "displayOrder": 1,
            "status": "published",
        }
        data.update(overrides)
        return data

    return factory


@pytest.fixture
def make_gallery_item():
    def factory(**overrides):
        data = {
            "title": "For Hano",
            "category": "character-art",
            "image": {"url": "/images/For-Hano.jpg", "alt": "For Hano"},
            "order": 1,
        }
        data.update(overrides)
        return data

    return factory
