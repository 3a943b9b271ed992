"""
Tests for the table and area management endpoints.
"""

from shared.config.constants import Features, LimitedResource, TableStatus


class TestTableEndpoints:

    def test_create_and_get(self, client, seed_area, auth_headers):
        response = client.post(
            "/api/tables",
            json={"number": "5", "capacity": 2, "area_id": seed_area.id},
            headers=auth_headers,
        )
        assert response.status_code == 201
        table = response.json()
        assert table["status"] == TableStatus.AVAILABLE

        response = client.get(f"/api/tables/{table['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["number"] == "5"

    def test_create_over_limit_is_402(
        self, client, seed_tenant, make_plan, subscribe, make_table, auth_headers
    ):
        subscribe(
            seed_tenant,
            make_plan(features=[Features.TABLE_MANAGEMENT], limits={LimitedResource.MAX_TABLES: 5}),
        )
        for _ in range(5):
            make_table(seed_tenant)

        response = client.post("/api/tables", json={"number": "6"}, headers=auth_headers)

        assert response.status_code == 402
        detail = response.json()["detail"]
        assert detail["upgrade_required"] is True
        assert detail["resource"] == LimitedResource.MAX_TABLES

    def test_duplicate_number_is_409(self, client, seed_table, auth_headers):
        response = client.post("/api/tables", json={"number": "12"}, headers=auth_headers)
        assert response.status_code == 409

    def test_capacity_validated(self, client, seed_tenant, auth_headers):
        response = client.post("/api/tables", json={"number": "1", "capacity": 0}, headers=auth_headers)
        assert response.status_code == 422

    def test_list_with_status_filter(self, client, seed_tenant, make_table, auth_headers):
        make_table(seed_tenant, number="1")
        make_table(seed_tenant, number="2", status=TableStatus.RESERVED)

        response = client.get("/api/tables", params={"status": "reserved"}, headers=auth_headers)

        assert response.status_code == 200
        assert [t["number"] for t in response.json()] == ["2"]

    def test_other_tenant_table_is_404(self, client, other_tenant, make_table, auth_headers):
        foreign = make_table(other_tenant)
        assert client.get(f"/api/tables/{foreign.id}", headers=auth_headers).status_code == 404

    def test_partial_update(self, client, seed_table, auth_headers):
        response = client.patch(
            f"/api/tables/{seed_table.id}", json={"capacity": 8}, headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["capacity"] == 8
        assert data["area_id"] == seed_table.area_id

    def test_waiter_changes_status(self, client, seed_table, waiter_auth_headers):
        response = client.patch(
            f"/api/tables/{seed_table.id}/status",
            json={"status": "occupied", "number_of_customers": 3},
            headers=waiter_auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["previous_status"] == TableStatus.AVAILABLE
        assert data["table"]["occupied_since"] is not None
        assert data["occupancy_record_id"] is not None

    def test_unknown_status_is_400(self, client, seed_table, auth_headers):
        response = client.patch(
            f"/api/tables/{seed_table.id}/status", json={"status": "broken"}, headers=auth_headers
        )
        assert response.status_code == 400

    def test_delete(self, client, seed_table, auth_headers):
        response = client.delete(f"/api/tables/{seed_table.id}", headers=auth_headers)
        assert response.status_code == 204
        assert client.get(f"/api/tables/{seed_table.id}", headers=auth_headers).status_code == 404

    def test_delete_occupied_is_400(self, client, seed_table, auth_headers):
        client.patch(
            f"/api/tables/{seed_table.id}/status", json={"status": "occupied"}, headers=auth_headers
        )
        response = client.delete(f"/api/tables/{seed_table.id}", headers=auth_headers)
        assert response.status_code == 400

    def test_waiter_cannot_delete(self, client, seed_table, waiter_auth_headers):
        response = client.delete(f"/api/tables/{seed_table.id}", headers=waiter_auth_headers)
        assert response.status_code == 403

    def test_save_positions(self, client, seed_table, auth_headers):
        response = client.put(
            "/api/tables/positions",
            json={"positions": [{"id": seed_table.id, "position_x": 50, "position_y": 75}]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json() == {"submitted": 1, "updated": 1}

    def test_statistics_and_history(self, client, seed_table, auth_headers):
        for status in ("occupied", "available"):
            client.patch(
                f"/api/tables/{seed_table.id}/status", json={"status": status}, headers=auth_headers
            )

        stats = client.get(
            f"/api/tables/{seed_table.id}/statistics", params={"window_days": 7}, headers=auth_headers
        )
        assert stats.status_code == 200
        assert stats.json()["total_occupancies"] == 1

        history = client.get(f"/api/tables/{seed_table.id}/history", headers=auth_headers)
        assert history.status_code == 200
        assert len(history.json()) == 1

    def test_statistics_window_validated(self, client, seed_table, auth_headers):
        response = client.get(
            f"/api/tables/{seed_table.id}/statistics", params={"window_days": 0}, headers=auth_headers
        )
        assert response.status_code == 422


class TestAreaEndpoints:

    def test_delete_area_in_use(self, client, seed_area, seed_table, auth_headers):
        response = client.delete(f"/api/areas/{seed_area.id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"area_id": seed_area.id, "deleted": False, "deactivated": True}

        listed = client.get("/api/areas", headers=auth_headers).json()
        assert listed == []
        listed = client.get("/api/areas", params={"include_deleted": True}, headers=auth_headers).json()
        assert [a["id"] for a in listed] == [seed_area.id]

    def test_delete_unused_area(self, client, seed_area, auth_headers):
        response = client.delete(f"/api/areas/{seed_area.id}", headers=auth_headers)
        assert response.json()["deleted"] is True
        assert client.get(f"/api/areas/{seed_area.id}", headers=auth_headers).status_code == 404

    def test_rename_area(self, client, seed_area, auth_headers):
        response = client.patch(f"/api/areas/{seed_area.id}", json={"name": "Garden"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["name"] == "Garden"


class TestTenantEndpoints:

    def test_tenant_identity(self, client, seed_tenant, auth_headers):
        response = client.get("/api/tenant", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["slug"] == "test"

    def test_entitlements_summary(self, client, seed_subscription, auth_headers):
        response = client.get("/api/entitlements", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["plan_code"] == "professional"
        assert data["subscription_status"] == "active"

    def test_subscription_missing_is_404(self, client, seed_tenant, auth_headers):
        assert client.get("/api/subscription", headers=auth_headers).status_code == 404

    def test_start_trial(self, client, seed_plan_catalog, seed_tenant, auth_headers):
        response = client.post("/api/subscription/trial", headers=auth_headers)
        assert response.status_code == 201
        assert response.json()["status"] == "trial"

        assert client.post("/api/subscription/trial", headers=auth_headers).status_code == 409
        assert client.get("/api/subscription", headers=auth_headers).json()["status"] == "trial"
