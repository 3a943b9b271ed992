"""
Tests for floor plan areas.
"""

import pytest

from rest_api.models import RestaurantArea, Table
from rest_api.services.domain import AreaService
from shared.utils.admin_schemas import AreaCreate, AreaUpdate
from shared.utils.exceptions import DuplicateEntityError, NotFoundError, ValidationError


@pytest.fixture
def service(db_session):
    return AreaService(db_session)


class TestAreaCrud:

    def test_create_and_list(self, service, seed_tenant):
        service.create_area(seed_tenant.id, AreaCreate(name="Main hall"))
        service.create_area(seed_tenant.id, AreaCreate(name="Bar", description="High tables"))

        names = [a.name for a in service.list_areas(seed_tenant.id)]
        assert names == ["Bar", "Main hall"]

    def test_duplicate_name(self, service, seed_tenant, seed_area):
        with pytest.raises(DuplicateEntityError):
            service.create_area(seed_tenant.id, AreaCreate(name="Terrace"))

    def test_rename(self, service, seed_tenant, seed_area):
        area = service.update_area(seed_tenant.id, seed_area.id, AreaUpdate(name="Rooftop"))
        assert area.name == "Rooftop"

    def test_name_cannot_be_cleared(self, service, seed_tenant, seed_area):
        with pytest.raises(ValidationError):
            service.update_area(seed_tenant.id, seed_area.id, AreaUpdate(name=None))

    def test_areas_are_tenant_scoped(self, service, other_tenant, seed_area):
        assert service.list_areas(other_tenant.id) == []
        with pytest.raises(NotFoundError):
            service.get_area(other_tenant.id, seed_area.id)


class TestDeleteArea:

    def test_area_in_use_is_deactivated(self, service, db_session, seed_tenant, seed_area, seed_table):
        result = service.delete_area(seed_tenant.id, seed_area.id, user_id=1, user_email="admin@test.com")

        assert result.deleted is False
        assert result.deactivated is True

        db_session.expire_all()
        area = db_session.get(RestaurantArea, seed_area.id)
        assert area is not None
        assert area.is_active is False
        assert area.deleted_by_email == "admin@test.com"
        assert db_session.get(Table, seed_table.id).area_id == seed_area.id

        assert service.list_areas(seed_tenant.id) == []
        assert len(service.list_areas(seed_tenant.id, include_inactive=True)) == 1

    def test_terrace_with_three_tables_keeps_all_references(
        self, service, db_session, seed_tenant, seed_area, make_table
    ):
        tables = [make_table(seed_tenant, area=seed_area) for _ in range(3)]
        assert seed_area.name == "Terrace"

        result = service.delete_area(seed_tenant.id, seed_area.id)

        assert result.deactivated is True
        db_session.expire_all()
        assert db_session.get(RestaurantArea, seed_area.id).is_active is False
        for table in tables:
            reloaded = db_session.get(Table, table.id)
            assert reloaded.area_id == seed_area.id
            assert reloaded.is_active is True

    def test_unused_area_is_deleted(self, service, db_session, seed_tenant, seed_area):
        area_id = seed_area.id
        result = service.delete_area(seed_tenant.id, area_id)

        assert result.deleted is True
        assert result.deactivated is False
        db_session.expire_all()
        assert db_session.get(RestaurantArea, area_id) is None

    def test_deactivated_area_can_be_reactivated(self, service, seed_tenant, seed_area, seed_table):
        service.delete_area(seed_tenant.id, seed_area.id)
        area = service.update_area(seed_tenant.id, seed_area.id, AreaUpdate(is_active=True))
        assert area.is_active is True

    def test_delete_other_tenant_area(self, service, other_tenant, seed_area):
        with pytest.raises(NotFoundError):
            service.delete_area(other_tenant.id, seed_area.id)
