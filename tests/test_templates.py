from __future__ import annotations

from mailtrack.data import crud
from mailtrack.messaging import TemplateRef
from mailtrack.messaging.templates import DatabaseTemplateSource, StaticTemplateSource, TemplateCache


WELCOME = TemplateRef(id="00X000000000001AAA", name="welcome", subject="Welcome")
RESET = TemplateRef(id="00X000000000002AAA", name="password_reset", subject="Reset")


def test_cache_populates_lazily_on_first_lookup():
    source = CountingSource([WELCOME, RESET])
    cache = TemplateCache(source)

    assert not cache.populated
    assert source.loads == 0

    assert cache.find_by_name("welcome") == WELCOME
    assert cache.find_by_name("password_reset") == RESET
    assert cache.find_by_name("missing") is None
    assert source.loads == 1


def test_blank_name_does_not_populate():
    source = CountingSource([WELCOME])
    cache = TemplateCache(source)

    assert cache.find_by_name("") is None
    assert cache.find_by_name("   ") is None
    assert source.loads == 0


def test_seeded_names_are_matched_without_surrounding_whitespace():
    padded = TemplateRef(id="00X000000000003AAA", name="  monthly_digest ", subject="Digest")
    cache = TemplateCache(CountingSource([padded]))

    assert cache.find_by_name("monthly_digest") == padded
    assert cache.find_by_name(" monthly_digest") == padded


def test_entries_are_not_invalidated_until_cleared():
    source = CountingSource([WELCOME])
    cache = TemplateCache(source)
    cache.find_by_name("welcome")

    source.templates.append(RESET)
    assert cache.find_by_name("password_reset") is None

    cache.clear()
    assert not cache.populated
    assert cache.find_by_name("password_reset") == RESET
    assert source.loads == 2


def test_refresh_reloads_eagerly():
    source = CountingSource([WELCOME, RESET])
    cache = TemplateCache(source)

    assert cache.refresh() == 2
    assert cache.populated
    assert {template.name for template in cache.list_all()} == {"welcome", "password_reset"}


def test_static_source_returns_copies():
    source = StaticTemplateSource([WELCOME])

    listed = source.list_all()
    listed.append(RESET)

    assert source.list_all() == [WELCOME]


def test_database_source_reads_templates(session_factory):
    session = session_factory()
    try:
        crud.upsert_template(
            session,
            {"template_id": "00X000000000001AAA", "name": "welcome", "subject": "Welcome", "body": "Hi"},
        )
        crud.upsert_template(
            session,
            {"template_id": "00X000000000001AAA", "name": "welcome", "subject": "Welcome back", "body": "Hi"},
        )
        session.commit()
    finally:
        session.close()

    cache = TemplateCache(DatabaseTemplateSource(session_factory))
    template = cache.find_by_name("welcome")

    assert template is not None
    assert template.id == "00X000000000001AAA"
    assert template.subject == "Welcome back"
    assert len(cache.list_all()) == 1


class CountingSource:
    def __init__(self, templates) -> None:
        self.templates = list(templates)
        self.loads = 0

    def list_all(self):
        self.loads += 1
        return list(self.templates)
