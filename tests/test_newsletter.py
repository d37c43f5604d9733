from __future__ import annotations

import pytest

import content
from database import COLLECTIONS


def _records(backend):
    return list(backend.get_database()[COLLECTIONS["NEWSLETTER"]].find({}))


def test_new_subscriber_is_active(backend) -> None:
    subscriber_id = content.subscribe_to_newsletter(backend, "a@b.com", "footer")

    subscriber = content.get_newsletter_subscriber(backend, "a@b.com")
    assert subscriber.id == subscriber_id
    assert subscriber.active is True
    assert subscriber.source == "footer"
    assert subscriber.subscribed_at is not None
    assert subscriber.unsubscribed_at is None


def test_subscribing_twice_keeps_one_record(backend) -> None:
    first = content.subscribe_to_newsletter(backend, "a@b.com", "footer")
    before = content.get_newsletter_subscriber(backend, "a@b.com")

    second = content.subscribe_to_newsletter(backend, "a@b.com", "homepage")
    after = content.get_newsletter_subscriber(backend, "a@b.com")

    assert first == second
    assert len(_records(backend)) == 1
    assert after.active is True
    assert after.subscribed_at == before.subscribed_at
    assert after.source == "footer"


def test_resubscribe_after_unsubscribe_reactivates(backend) -> None:
    first = content.subscribe_to_newsletter(backend, "a@b.com", "footer")
    original = content.get_newsletter_subscriber(backend, "a@b.com")

    content.unsubscribe_from_newsletter(backend, "a@b.com")
    unsubscribed = content.get_newsletter_subscriber(backend, "a@b.com")
    assert unsubscribed.active is False
    assert unsubscribed.unsubscribed_at is not None

    second = content.subscribe_to_newsletter(backend, "a@b.com", "homepage")
    final = content.get_newsletter_subscriber(backend, "a@b.com")

    assert second == first
    assert len(_records(backend)) == 1
    assert final.active is True
    assert final.subscribed_at > original.subscribed_at
    assert final.unsubscribed_at is None


def test_unsubscribing_unknown_email_is_a_no_op(backend) -> None:
    content.unsubscribe_from_newsletter(backend, "nobody@example.com")
    assert _records(backend) == []


def test_email_is_matched_case_insensitively(backend) -> None:
    first = content.subscribe_to_newsletter(backend, "  A@B.com", "gallery")
    second = content.subscribe_to_newsletter(backend, "a@b.COM", "contact")

    assert first == second
    assert _records(backend)[0]["email"] == "a@b.com"


def test_unknown_source_is_rejected(backend) -> None:
    with pytest.raises(ValueError):
        content.subscribe_to_newsletter(backend, "a@b.com", "billboard")
