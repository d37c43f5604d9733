from __future__ import annotations

from datetime import datetime

import mongomock
import pytest

import content
import database
from database import Backend, BackendConfig, COLLECTIONS, SINGLETON_ID
from errors import NotConfigured


def test_unconfigured_backend_reports_false_and_hands_out_nothing(unconfigured_backend) -> None:
    assert unconfigured_backend.is_configured() is False
    assert unconfigured_backend.get_database() is None
    assert unconfigured_backend.get_bucket() is None
    assert unconfigured_backend.get_identity() is None


def test_partial_configuration_is_not_enough() -> None:
    assert Backend(BackendConfig(database_url="mongodb://localhost")).is_configured() is False
    assert Backend(BackendConfig(database_name="portfolio")).is_configured() is False


def test_injected_client_counts_as_connection(config) -> None:
    config.database_url = None
    backend = Backend(config, client=mongomock.MongoClient())
    assert backend.is_configured() is True
    assert backend.get_database().name == "portfolio_test"


def test_handles_are_memoised(backend) -> None:
    assert backend.get_database() is backend.get_database()
    assert backend.get_bucket() is backend.get_bucket()
    assert backend.get_identity() is backend.get_identity()


def test_clients_are_shared_per_url(monkeypatch) -> None:
    monkeypatch.setattr(database, "_CLIENTS", {})
    cfg = BackendConfig(database_url="mongodb://localhost:27017", database_name="portfolio")
    first = Backend(cfg).get_database()
    second = Backend(cfg).get_database()
    assert first.client is second.client
    assert len(database._CLIENTS) == 1


def test_construction_failure_is_not_retried(monkeypatch) -> None:
    calls = []

    def broken_client(url, **kwargs):
        calls.append(url)
        raise ValueError("bad credentials format")

    monkeypatch.setattr(database, "_CLIENTS", {})
    monkeypatch.setattr(database, "MongoClient", broken_client)
    backend = Backend(BackendConfig(database_url="mongodb://nowhere", database_name="portfolio"))

    with pytest.raises(ValueError):
        backend.get_database()
    with pytest.raises(ValueError):
        backend.get_database()
    assert calls == ["mongodb://nowhere"]


def test_now_uses_injected_clock(backend, clock) -> None:
    stamp = backend.now()
    assert isinstance(stamp, datetime)
    assert stamp == clock.current


def test_repository_fails_fast_when_unconfigured(unconfigured_backend) -> None:
    with pytest.raises(NotConfigured):
        content.get_projects(unconfigured_backend)
    with pytest.raises(NotConfigured):
        content.submit_contact_form(
            unconfigured_backend, {"name": "A", "email": "a@b.com", "message": "hi"}
        )


def test_wire_names_are_stable() -> None:
    assert COLLECTIONS == {
        "PROJECTS": "projects",
        "GALLERY": "gallery",
        "SITE_CONFIG": "site_config",
        "ABOUT": "about",
        "CONTACT_SUBMISSIONS": "contact_submissions",
        "NEWSLETTER": "newsletter_subscribers",
    }
    assert SINGLETON_ID == "main"
