from __future__ import annotations

import content
import seed
from database import COLLECTIONS


def test_seed_populates_every_collection(backend, monkeypatch, capsys) -> None:
    monkeypatch.setattr(seed, "ensure_indexes", lambda backend: None)

    assert seed.main(backend) == 0

    db = backend.get_database()
    assert db[COLLECTIONS["PROJECTS"]].count_documents({}) == len(seed.PROJECTS)
    assert db[COLLECTIONS["GALLERY"]].count_documents({}) == len(seed.GALLERY)

    out = capsys.readouterr().out
    assert f"✓ Seeded {len(seed.PROJECTS)} projects" in out
    assert f"✓ Seeded {len(seed.GALLERY)} gallery items" in out
    assert "✓ Seeded 1 site config" in out
    assert "✓ Seeded 1 about content" in out


def test_seeded_content_is_readable(backend, monkeypatch) -> None:
    monkeypatch.setattr(seed, "ensure_indexes", lambda backend: None)
    seed.main(backend)

    project = content.get_project_by_slug(backend, "frieda-en-rus")
    assert project is not None
    assert project.created_at == project.updated_at

    gallery = content.get_gallery_items(backend, page_size=50)
    assert [item.order for item in gallery.items] == list(range(1, len(seed.GALLERY) + 1))

    assert content.get_site_config(backend).id == "main"
    assert content.get_about_content(backend).id == "main"


def test_seeding_twice_replaces_singletons(backend, monkeypatch) -> None:
    monkeypatch.setattr(seed, "ensure_indexes", lambda backend: None)
    seed.main(backend)
    seed.main(backend)

    db = backend.get_database()
    assert db[COLLECTIONS["SITE_CONFIG"]].count_documents({}) == 1
    assert db[COLLECTIONS["ABOUT"]].count_documents({}) == 1


def test_seed_without_database_fails(unconfigured_backend, capsys) -> None:
    assert seed.main(unconfigured_backend) == 1
    assert "Seeding failed" in capsys.readouterr().out
