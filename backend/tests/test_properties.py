"""
Property-based Testing with Hypothesis.
"""

import re
from datetime import timedelta

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st
from sqlalchemy import func, select

from rest_api.models import Table, TableOccupancyRecord
from rest_api.services.domain.entitlement_service import EntitlementService
from rest_api.services.domain.subscription_service import map_provider_status
from rest_api.services.domain.table_service import TableService, format_duration
from shared.config.constants import UNLIMITED, LimitedResource, SubscriptionStatus, TableStatus
from shared.security.signing import QRCodeSigner
from tests.conftest import FixedClock

# Function-scoped fixtures are shared by every example of a test; the
# properties below hold for any accumulated state.
db_settings = settings(
    max_examples=25,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)

DURATION_PATTERN = re.compile(r"(?:(?P<hours>\d+)h)? ?(?:(?P<mins>\d+)min)?")


@pytest.fixture
def enterprise_subscription(seed_tenant, seed_plan_catalog, subscribe):
    return subscribe(seed_tenant, seed_plan_catalog["enterprise"])


@pytest.fixture
def five_table_subscription(seed_tenant, make_plan, subscribe):
    return subscribe(seed_tenant, make_plan(limits={LimitedResource.MAX_TABLES: 5}))


class TestTableProperties:

    @given(statuses=st.lists(st.sampled_from(TableStatus.ALL), min_size=1, max_size=12))
    @db_settings
    def test_occupied_since_tracks_status(self, statuses, db_session, seed_tenant, seed_table):
        """Property: occupied_since is set exactly while the table is occupied."""
        clock = FixedClock()
        service = TableService(db_session, now=clock)

        for status in statuses:
            clock.advance(minutes=7)
            result = service.change_status(seed_tenant.id, seed_table.id, status)
            table = result.table
            assert (table.status == TableStatus.OCCUPIED) == (table.occupied_since is not None)

    @given(statuses=st.lists(st.sampled_from(TableStatus.ALL), min_size=1, max_size=12))
    @db_settings
    def test_at_most_one_open_occupancy(self, statuses, db_session, seed_tenant, seed_table):
        """Property: a table never has more than one open occupancy record."""
        service = TableService(db_session, now=FixedClock())

        for status in statuses:
            service.change_status(seed_tenant.id, seed_table.id, status)
            open_count = db_session.scalar(
                select(func.count()).select_from(TableOccupancyRecord).where(
                    TableOccupancyRecord.table_id == seed_table.id,
                    TableOccupancyRecord.end_time.is_(None),
                )
            )
            table = db_session.get(Table, seed_table.id)
            assert open_count == (1 if table.status == TableStatus.OCCUPIED else 0)


class TestEntitlementProperties:

    @given(current=st.integers(min_value=0, max_value=10**9))
    @db_settings
    def test_unlimited_never_reached(self, current, db_session, seed_tenant, enterprise_subscription):
        """Property: an unlimited resource is never exhausted."""
        service = EntitlementService(db_session, seed_tenant.id)

        assert service.get_limit(LimitedResource.MAX_TABLES) == UNLIMITED
        assert service.has_reached_limit(LimitedResource.MAX_TABLES, current_value=current) is False

    @given(current=st.integers(min_value=0, max_value=100))
    @db_settings
    def test_finite_limit_threshold(self, current, db_session, seed_tenant, five_table_subscription):
        """Property: a finite limit is reached exactly when current >= limit."""
        service = EntitlementService(db_session, seed_tenant.id)

        assert service.has_reached_limit(LimitedResource.MAX_TABLES, current) == (current >= 5)

    @given(status=st.one_of(st.none(), st.text(max_size=20)))
    def test_provider_status_always_maps_to_known_status(self, status):
        assert map_provider_status(status) in SubscriptionStatus.ALL


class TestFormattingProperties:

    @given(minutes=st.integers(min_value=0, max_value=10_000))
    def test_format_duration_round_trips_minutes(self, minutes):
        """Property: the formatted duration spells out the same number of minutes."""
        match = DURATION_PATTERN.fullmatch(format_duration(minutes))

        assert match is not None
        hours = int(match.group("hours") or 0)
        mins = int(match.group("mins") or 0)
        assert hours * 60 + mins == minutes
        assert mins < 60

    @given(minutes=st.floats(min_value=0, max_value=10_000, allow_nan=False))
    def test_format_duration_floors(self, minutes):
        assert format_duration(minutes) == format_duration(int(minutes))


class TestSignerProperties:

    @given(
        tenant_id=st.integers(min_value=1, max_value=10**9),
        resource_id=st.one_of(st.none(), st.integers(min_value=1, max_value=10**9)),
        code=st.text(alphabet="0123456789abcdef", min_size=16, max_size=16),
    )
    def test_sign_is_deterministic_and_hex(self, tenant_id, resource_id, code):
        signer = QRCodeSigner("secret-a")
        digest = signer.sign(tenant_id, resource_id, code)

        assert digest == signer.sign(tenant_id, resource_id, code)
        assert len(digest) == 64
        int(digest, 16)

    @given(
        tenant_id=st.integers(min_value=1, max_value=10**6),
        code=st.text(alphabet="0123456789abcdef", min_size=16, max_size=16),
    )
    def test_digest_depends_on_secret_and_tenant(self, tenant_id, code):
        a = QRCodeSigner("secret-a").sign(tenant_id, 1, code)

        assert a != QRCodeSigner("secret-b").sign(tenant_id, 1, code)
        assert a != QRCodeSigner("secret-a").sign(tenant_id + 1, 1, code)


class TestClockProperties:

    @given(minutes=st.integers(min_value=0, max_value=60 * 24 * 60))
    def test_fixed_clock_advances_exactly(self, minutes):
        clock = FixedClock()
        start = clock()
        assert clock.advance(minutes=minutes) - start == timedelta(minutes=minutes)
