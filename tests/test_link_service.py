"""Tests for the link lifecycle service."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from unittest.mock import Mock

import pytest

from app.adapters.storage.base import AbstractLinkStore
from app.adapters.storage.sqlite import SQLiteLinkStore
from app.core.errors import ConflictAppError, NotFoundAppError, StorageAppError, ValidationAppError
from app.domain.short_code import ALPHABET, generate_short_code
from app.domain.ttl import Ttl
from app.services.link_service import LinkService


@pytest.fixture
def store(tmp_path):
    link_store = SQLiteLinkStore.from_url(f"sqlite:///{tmp_path / 'links.db'}")
    yield link_store
    link_store.close()


@pytest.fixture
def service(store, clock) -> LinkService:
    return LinkService(store, base_url="https://s.example/", clock=clock)


def scripted_codes(*codes: str):
    """Code generator returning ``codes`` in order, then random codes."""
    remaining = list(codes)

    def _next() -> str:
        return remaining.pop(0) if remaining else generate_short_code()

    return _next


class TestCreate:
    def test_creates_link_with_week_default(self, service: LinkService, clock) -> None:
        link = service.create("https://example.com/a")

        assert len(link.short_code) == 7
        assert all(ch in ALPHABET for ch in link.short_code)
        assert link.target_url == "https://example.com/a"
        assert link.created_at == clock.now
        assert link.expires_at == clock.now + timedelta(days=7)

    @pytest.mark.parametrize(
        ("ttl", "days"),
        [("1_week", 7), ("1_month", 30), ("1_year", 365), (Ttl.ONE_MONTH, 30)],
    )
    def test_ttl_presets(self, service: LinkService, clock, ttl, days: int) -> None:
        link = service.create("https://example.com", ttl)
        assert link.expires_at - link.created_at == timedelta(days=days)

    def test_never_ttl_has_null_expiry(self, service: LinkService) -> None:
        assert service.create("https://example.com", "never").expires_at is None

    def test_configured_default_ttl(self, store, clock) -> None:
        svc = LinkService(store, base_url="https://s.example", default_ttl="never", clock=clock)
        assert svc.create("https://example.com").expires_at is None

    def test_short_url_joins_base_url(self, service: LinkService) -> None:
        link = service.create("https://example.com")
        assert service.short_url(link) == f"https://s.example/{link.short_code}"

    def test_invalid_url_is_rejected_without_insert(self, clock) -> None:
        fake_store = Mock(spec=AbstractLinkStore)
        svc = LinkService(fake_store, base_url="https://s.example", clock=clock)

        with pytest.raises(ValidationAppError):
            svc.create("not a url")
        fake_store.insert.assert_not_called()

    def test_invalid_ttl_is_rejected(self, service: LinkService) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            service.create("https://example.com", "2_weeks")
        assert exc_info.value.code == "invalid_ttl"

    def test_retries_with_fresh_code_on_collision(self, store, clock) -> None:
        LinkService(store, base_url="https://s.example", clock=clock,
                    code_generator=scripted_codes("Taken22")).create("https://first.example")
        svc = LinkService(
            store,
            base_url="https://s.example",
            clock=clock,
            code_generator=scripted_codes("Taken22", "Taken22", "Fresh33"),
        )

        link = svc.create("https://second.example")

        assert link.short_code == "Fresh33"
        assert store.get_by_short_code("Taken22").target_url == "https://first.example"

    def test_exhausted_retries_raise_conflict_and_leave_no_row(self, store, clock) -> None:
        always_taken = Mock(return_value="Taken22")
        LinkService(store, base_url="https://s.example", clock=clock,
                    code_generator=scripted_codes("Taken22")).create("https://first.example")
        svc = LinkService(
            store,
            base_url="https://s.example",
            clock=clock,
            max_collision_retries=5,
            code_generator=always_taken,
        )

        with pytest.raises(ConflictAppError) as exc_info:
            svc.create("https://second.example")

        assert exc_info.value.code == "short_code_exhausted"
        assert always_taken.call_count == 5
        assert len(store.list_active(clock.now)) == 1

    def test_never_checks_existence_before_insert(self, clock) -> None:
        fake_store = Mock(spec=AbstractLinkStore)
        fake_store.insert.side_effect = lambda link: link
        svc = LinkService(fake_store, base_url="https://s.example", clock=clock)

        svc.create("https://example.com")

        fake_store.get_by_short_code.assert_not_called()
        fake_store.insert.assert_called_once()

    def test_storage_errors_propagate(self, clock) -> None:
        fake_store = Mock(spec=AbstractLinkStore)
        fake_store.insert.side_effect = StorageAppError(code="storage_error", message="boom")
        svc = LinkService(fake_store, base_url="https://s.example", clock=clock)

        with pytest.raises(StorageAppError):
            svc.create("https://example.com")
        assert fake_store.insert.call_count == 1

    def test_rejects_non_positive_retry_bound(self, store) -> None:
        with pytest.raises(ValueError):
            LinkService(store, base_url="https://s.example", max_collision_retries=0)


class TestConcurrentCreate:
    def test_concurrent_creates_yield_distinct_codes(self, service: LinkService, store, clock) -> None:
        n = 40
        with ThreadPoolExecutor(max_workers=8) as pool:
            links = list(pool.map(lambda i: service.create(f"https://example.com/{i}"), range(n)))

        codes = {link.short_code for link in links}
        assert len(codes) == n
        assert {l.short_code for l in store.list_active(clock.now)} == codes

    def test_racing_on_the_same_candidate_resolves_by_retry(self, store, clock) -> None:
        local = threading.local()

        def first_code_collides() -> str:
            if not getattr(local, "used", False):
                local.used = True
                return "RaceCde"
            return generate_short_code()

        svc = LinkService(store, base_url="https://s.example", clock=clock, code_generator=first_code_collides)
        barrier = threading.Barrier(6)

        def create(i: int):
            barrier.wait()
            return svc.create(f"https://example.com/{i}")

        with ThreadPoolExecutor(max_workers=6) as pool:
            links = list(pool.map(create, range(6)))

        codes = [link.short_code for link in links]
        assert len(set(codes)) == 6
        assert codes.count("RaceCde") == 1


class TestResolve:
    def test_resolves_live_link(self, service: LinkService) -> None:
        created = service.create("https://example.com/a")
        assert service.resolve(created.short_code) == created

    def test_unknown_code_is_not_found(self, service: LinkService) -> None:
        with pytest.raises(NotFoundAppError):
            service.resolve("Zzzzzzz")

    @pytest.mark.parametrize("code", ["", "short", "favicon.ico", "Ab3kP0x"])
    def test_malformed_code_is_not_found_without_query(self, clock, code: str) -> None:
        fake_store = Mock(spec=AbstractLinkStore)
        svc = LinkService(fake_store, base_url="https://s.example", clock=clock)

        with pytest.raises(NotFoundAppError):
            svc.resolve(code)
        fake_store.get_by_short_code.assert_not_called()

    def test_expired_link_is_not_found_before_sweep(self, service: LinkService, store, clock) -> None:
        link = service.create("https://example.com", "1_week")
        clock.advance(days=7)

        with pytest.raises(NotFoundAppError):
            service.resolve(link.short_code)
        # Row is still physically present until a sweep runs.
        assert store.get_by_short_code(link.short_code) is not None

    def test_link_is_live_just_before_expiry(self, service: LinkService, clock) -> None:
        link = service.create("https://example.com", "1_week")
        clock.advance(days=7, microseconds=-1)
        assert service.resolve(link.short_code).id == link.id


class TestListAndDelete:
    def test_list_excludes_logically_expired(self, service: LinkService, clock) -> None:
        week = service.create("https://example.com/week", "1_week")
        never = service.create("https://example.com/never", "never")
        clock.advance(days=8)

        listed = service.list()

        assert [l.id for l in listed] == [never.id]
        assert week.id not in {l.id for l in listed}

    def test_delete_removes_link(self, service: LinkService) -> None:
        link = service.create("https://example.com")
        service.delete(link.id)

        with pytest.raises(NotFoundAppError):
            service.resolve(link.short_code)
        assert service.list() == []

    def test_delete_unknown_id_is_not_found_without_side_effects(self, service: LinkService) -> None:
        kept = service.create("https://example.com")

        with pytest.raises(NotFoundAppError):
            service.delete("00000000-0000-0000-0000-000000000000")

        assert [l.id for l in service.list()] == [kept.id]


class TestSweep:
    def test_sweep_removes_exactly_expired_rows(self, service: LinkService, store, clock) -> None:
        week = service.create("https://example.com/week", "1_week")
        month = service.create("https://example.com/month", "1_month")
        never = service.create("https://example.com/never", "never")
        month_before = store.get_by_short_code(month.short_code)

        clock.advance(days=7)
        assert service.sweep() == 1

        assert store.get_by_short_code(week.short_code) is None
        assert store.get_by_short_code(month.short_code) == month_before
        assert store.get_by_short_code(never.short_code) == never

    def test_sweep_is_idempotent(self, service: LinkService, clock) -> None:
        service.create("https://example.com", "1_week")
        cutoff = clock.now + timedelta(days=8)

        assert service.sweep(cutoff) == 1
        assert service.sweep(cutoff) == 0

    def test_never_links_survive_any_sweep(self, service: LinkService, clock) -> None:
        never = service.create("https://example.com", "never")

        assert service.sweep(clock.now + timedelta(days=365 * 100)) == 0
        assert service.resolve(never.short_code) == never

    def test_sweep_interleaves_with_creates(self, service: LinkService, clock) -> None:
        for i in range(10):
            service.create(f"https://example.com/old/{i}", "1_week")
        clock.advance(days=8)

        with ThreadPoolExecutor(max_workers=4) as pool:
            sweep_future = pool.submit(service.sweep)
            created = list(pool.map(lambda i: service.create(f"https://example.com/new/{i}"), range(10)))

        assert sweep_future.result() == 10
        assert {l.id for l in service.list()} == {l.id for l in created}
