"""
Tests for QR access tokens: issuing, validation and deactivation.
"""

import pytest
from sqlalchemy import select

from rest_api.models import Order, QRCode, Table
from rest_api.services.domain.qr_service import (
    INVALID_QR_MESSAGE,
    QRCodeService,
    QRFailureReason,
    parse_expiry,
)
from shared.config.constants import QRCodeType
from shared.infrastructure.db import as_utc
from shared.security.signing import QRCodeSigner
from shared.utils.exceptions import NotFoundError, ValidationError
from tests.conftest import T0

SECRET = "qr-test-secret"
BASE_URL = "https://mesa.test"


@pytest.fixture
def service(db_session, clock):
    return QRCodeService(db_session, secret=SECRET, now=clock, base_url=BASE_URL + "/")


@pytest.fixture
def printed_code(db_session, seed_tenant, seed_table):
    """A table token "abc123" with a correct digest."""
    record = QRCode(
        tenant_id=seed_tenant.id,
        code="abc123",
        hash=QRCodeSigner(SECRET).sign(seed_tenant.id, seed_table.id, "abc123"),
        type=QRCodeType.TABLE,
        resource_id=seed_table.id,
        payload={"table_number": "12"},
    )
    db_session.add(record)
    db_session.commit()
    db_session.refresh(record)
    return record


@pytest.fixture
def seed_order(db_session, seed_tenant, seed_table):
    order = Order(tenant_id=seed_tenant.id, table_id=seed_table.id, started_at=T0, total_cents=4200)
    db_session.add(order)
    db_session.commit()
    db_session.refresh(order)
    return order


class TestValidation:

    def test_valid_code_counts_scan(self, service, clock, printed_code):
        result = service.validate("abc123", printed_code.hash)

        assert result.valid is True
        assert result.error is None
        assert result.record.id == printed_code.id
        assert result.record.scan_count == 1
        assert as_utc(result.record.last_scanned_at) == T0

        clock.advance(minutes=1)
        assert service.validate("abc123", printed_code.hash).record.scan_count == 2

    def test_wrong_digest(self, service, printed_code):
        result = service.validate("abc123", "0" * 64)

        assert result.valid is False
        assert result.error == INVALID_QR_MESSAGE
        assert result.reason == QRFailureReason.INVALID

    def test_missing_digest(self, service, printed_code):
        assert service.validate("abc123", None).valid is False
        assert service.validate("abc123", "").valid is False

    def test_unknown_code_same_message(self, service, printed_code):
        result = service.validate("zzz999", printed_code.hash)
        assert result.error == INVALID_QR_MESSAGE
        assert result.reason == QRFailureReason.INVALID

    def test_digest_bound_to_resource(self, service, db_session, seed_tenant, printed_code):
        # Digest computed for another table does not validate
        forged = QRCodeSigner(SECRET).sign(seed_tenant.id, printed_code.resource_id + 1, "abc123")
        assert service.validate("abc123", forged).valid is False

    def test_expected_type_mismatch(self, service, printed_code):
        assert service.validate("abc123", printed_code.hash, QRCodeType.TABLE).valid is True
        result = service.validate("abc123", printed_code.hash, QRCodeType.PAYMENT)
        assert result.valid is False
        assert result.reason == QRFailureReason.INVALID

    def test_deactivated_code_is_invalid(self, service, seed_tenant, printed_code):
        service.deactivate(seed_tenant.id, printed_code.id)
        result = service.validate("abc123", printed_code.hash)
        assert result.valid is False
        assert result.error == INVALID_QR_MESSAGE

    def test_rejection_does_not_count_scan(self, service, db_session, printed_code):
        service.validate("abc123", "bad")
        db_session.refresh(printed_code)
        assert printed_code.scan_count == 0


class TestPaymentCodes:

    def test_payment_code_expires(self, service, clock, seed_tenant, seed_order):
        issued = service.issue_payment_code(seed_tenant.id, seed_order.id, amount_cents=4200)

        assert issued.type == QRCodeType.PAYMENT
        assert issued.url == f"{BASE_URL}/payment/{issued.code}?h={issued.hash}"
        assert issued.expires_at == T0.replace(hour=13)

        clock.advance(minutes=59)
        assert service.validate(issued.code, issued.hash).valid is True

        clock.advance(minutes=2)
        result = service.validate(issued.code, issued.hash)
        assert result.valid is False
        assert result.reason == QRFailureReason.EXPIRED
        assert result.error == INVALID_QR_MESSAGE

    def test_payment_payload(self, service, db_session, seed_tenant, seed_order):
        issued = service.issue_payment_code(
            seed_tenant.id, seed_order.id, amount_cents=4200, expires_in_minutes=10
        )
        record = db_session.get(QRCode, issued.id)

        assert record.payload["order_id"] == seed_order.id
        assert record.payload["amount_cents"] == 4200
        assert parse_expiry(record.payload) == T0.replace(minute=10)

    def test_supplied_expiry_is_overwritten(self, service, db_session, seed_tenant, seed_order):
        issued = service.issue(
            seed_tenant.id, QRCodeType.PAYMENT, seed_order.id, {"expires_at": "next friday"}
        )
        record = db_session.get(QRCode, issued.id)

        assert parse_expiry(record.payload) == T0.replace(hour=13)
        assert service.validate(issued.code, issued.hash).valid is True

    @pytest.mark.parametrize("raw", ["next friday", 5, None])
    def test_unreadable_expiry_counts_as_expired(
        self, service, db_session, seed_tenant, seed_order, raw
    ):
        issued = service.issue_payment_code(seed_tenant.id, seed_order.id)
        record = db_session.get(QRCode, issued.id)
        record.payload = {"order_id": seed_order.id, "expires_at": raw}
        db_session.commit()

        result = service.validate(issued.code, issued.hash)

        assert result.valid is False
        assert result.reason == QRFailureReason.EXPIRED
        assert result.error == INVALID_QR_MESSAGE

    def test_payment_needs_existing_order(self, service, seed_tenant, other_tenant, seed_order):
        with pytest.raises(NotFoundError):
            service.issue_payment_code(other_tenant.id, seed_order.id)
        with pytest.raises(ValidationError):
            service.issue(seed_tenant.id, QRCodeType.PAYMENT)


class TestTableCodes:

    def test_issue_table_code(self, service, db_session, seed_tenant, seed_table):
        issued = service.issue_table_code(seed_tenant.id, seed_table.id)

        assert issued.url == f"{BASE_URL}/menu/table/{issued.code}?h={issued.hash}"
        assert issued.hash == QRCodeSigner(SECRET).sign(seed_tenant.id, seed_table.id, issued.code)
        assert issued.expires_at is None
        assert len(issued.code) == 16

        db_session.expire_all()
        assert db_session.get(Table, seed_table.id).qr_code_id == issued.id
        record = db_session.get(QRCode, issued.id)
        assert record.payload["table_number"] == "12"

    def test_reissue_replaces_previous_code(self, service, db_session, seed_tenant, seed_table):
        first = service.issue_table_code(seed_tenant.id, seed_table.id)
        second = service.issue_table_code(seed_tenant.id, seed_table.id)

        assert first.code != second.code
        assert service.validate(first.code, first.hash).valid is False
        assert service.validate(second.code, second.hash).valid is True

        db_session.expire_all()
        active = db_session.scalars(
            select(QRCode).where(
                QRCode.resource_id == seed_table.id,
                QRCode.type == QRCodeType.TABLE,
                QRCode.is_active.is_(True),
            )
        ).all()
        assert [r.id for r in active] == [second.id]
        assert db_session.get(Table, seed_table.id).qr_code_id == second.id

    def test_table_code_needs_table(self, service, seed_tenant, other_tenant, seed_table):
        with pytest.raises(ValidationError):
            service.issue(seed_tenant.id, QRCodeType.TABLE)
        with pytest.raises(NotFoundError):
            service.issue_table_code(other_tenant.id, seed_table.id)

    def test_unknown_type(self, service, seed_tenant):
        with pytest.raises(ValidationError):
            service.issue(seed_tenant.id, "coupon")


class TestMenuCodes:

    def test_menu_code_without_resource(self, service, seed_tenant):
        issued = service.issue_menu_code(seed_tenant.id, payload={"language": "es"})

        assert issued.resource_id is None
        assert issued.hash == QRCodeSigner(SECRET).sign(seed_tenant.id, None, issued.code)
        assert issued.url.startswith(f"{BASE_URL}/menu/")

        result = service.validate(issued.code, issued.hash, QRCodeType.MENU)
        assert result.valid is True
        assert result.record.payload == {"language": "es"}

    @pytest.mark.parametrize("raw", ["next friday", 5, "2025-03-14T11:00:00"])
    def test_menu_code_ignores_supplied_expiry(self, service, clock, seed_tenant, raw):
        issued = service.issue_menu_code(seed_tenant.id, payload={"expires_at": raw, "language": "es"})
        clock.advance(minutes=24 * 60)

        result = service.validate(issued.code, issued.hash)

        assert issued.expires_at is None
        assert result.valid is True
        assert result.record.payload == {"language": "es"}

    def test_menu_code_never_expires(self, service, clock, seed_tenant):
        issued = service.issue(seed_tenant.id, QRCodeType.MENU, expires_in_minutes=5)
        clock.advance(minutes=60)

        assert issued.expires_at is None
        assert service.validate(issued.code, issued.hash).valid is True

    def test_stored_garbage_expiry_on_menu_code_is_ignored(self, service, db_session, seed_tenant):
        issued = service.issue_menu_code(seed_tenant.id)
        record = db_session.get(QRCode, issued.id)
        record.payload = {"expires_at": "next friday"}
        db_session.commit()

        assert service.validate(issued.code, issued.hash).valid is True


class TestManagement:

    def test_deactivate_is_idempotent(self, service, db_session, seed_tenant, seed_table):
        issued = service.issue_table_code(seed_tenant.id, seed_table.id)

        first = service.deactivate(seed_tenant.id, issued.id, user_id=1, user_email="admin@test.com")
        second = service.deactivate(seed_tenant.id, issued.id)

        assert first.is_active is False
        assert second.is_active is False
        db_session.expire_all()
        assert db_session.get(Table, seed_table.id).qr_code_id is None

    def test_other_tenant_cannot_see_code(self, service, other_tenant, printed_code):
        with pytest.raises(NotFoundError):
            service.get(other_tenant.id, printed_code.id)
        with pytest.raises(NotFoundError):
            service.deactivate(other_tenant.id, printed_code.id)

    def test_list_by_type(self, service, seed_tenant, seed_table, make_table):
        second_table = make_table(seed_tenant)
        service.issue_table_code(seed_tenant.id, seed_table.id)
        service.issue_table_code(seed_tenant.id, second_table.id)
        service.issue_menu_code(seed_tenant.id)

        assert len(service.list_by_type(seed_tenant.id, QRCodeType.TABLE)) == 2
        assert len(service.list_by_type(seed_tenant.id, QRCodeType.MENU)) == 1

        service.issue_table_code(seed_tenant.id, seed_table.id)
        assert len(service.list_by_type(seed_tenant.id, QRCodeType.TABLE)) == 2
        assert len(service.list_by_type(seed_tenant.id, QRCodeType.TABLE, include_inactive=True)) == 3

    def test_list_unknown_type(self, service, seed_tenant):
        with pytest.raises(ValidationError):
            service.list_by_type(seed_tenant.id, "coupon")


class TestParseExpiry:

    def test_missing(self):
        assert parse_expiry(None) is None
        assert parse_expiry({}) is None

    def test_naive_is_utc(self):
        assert parse_expiry({"expires_at": "2025-03-14T13:00:00"}) == T0.replace(hour=13)

    @pytest.mark.parametrize("raw", ["next friday", 5, ["2025-03-14"], {"at": 1}])
    def test_unreadable(self, raw):
        assert parse_expiry({"expires_at": raw}) is None
