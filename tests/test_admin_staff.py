from datetime import datetime, timedelta

from plutify.models import AssignClient, Notification, User
from plutify.models_integrations import ShopifyStore
from plutify.models_onboarding import Onboarding
from plutify.roles import Role


def test_admin_creates_staff(api_client, db_session, admin_headers, admin_user):
    response = api_client.post(
        "/api/admin/staff",
        headers=admin_headers,
        json={"first_name": "Stella", "last_name": "Books", "email": "Stella@Plutify.io"},
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["role"] == "STAFF"
    assert data["email"] == "stella@plutify.io"

    staff = db_session.query(User).filter(User.email == "stella@plutify.io").one()
    assert staff.created_by == admin_user.id
    assert staff.role is Role.STAFF


def test_duplicate_staff_email(api_client, admin_headers, staff_user):
    response = api_client.post(
        "/api/admin/staff", headers=admin_headers, json={"first_name": "Sam", "email": staff_user.email}
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Staff member with this email already exists"


def test_admin_routes_reject_other_roles(api_client, staff_headers, client_headers):
    assert api_client.get("/api/admin/staff", headers=staff_headers).status_code == 403
    assert api_client.get("/api/admin/dashboard", headers=client_headers).status_code == 403


def test_deactivate_and_reactivate_staff(api_client, db_session, admin_headers, staff_user, staff_headers):
    response = api_client.patch(f"/api/admin/staff/{staff_user.id}/deactivate", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"id": staff_user.id, "active": False}

    # Deactivated staff are locked out but not deleted
    assert api_client.get("/api/staff/dashboard", headers=staff_headers).status_code == 403
    db_session.expire_all()
    assert db_session.get(User, staff_user.id) is not None

    api_client.patch(f"/api/admin/staff/{staff_user.id}/reactivate", headers=admin_headers)
    assert api_client.get("/api/staff/dashboard", headers=staff_headers).status_code == 200


def test_deactivate_unknown_staff(api_client, admin_headers, client_user):
    response = api_client.patch(f"/api/admin/staff/{client_user.id}/deactivate", headers=admin_headers)
    assert response.status_code == 404


def test_assign_client_notifies_both_sides(api_client, db_session, admin_headers, staff_user, client_user):
    response = api_client.post(
        "/api/admin/assign-client",
        headers=admin_headers,
        json={"staffId": staff_user.id, "clientId": client_user.id},
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["staffId"] == staff_user.id
    assert data["clientId"] == client_user.id

    kinds = {n.recipient_id: n.type for n in db_session.query(Notification).all()}
    assert kinds == {staff_user.id: "client_assigned", client_user.id: "staff_assigned"}


def test_assign_client_twice(api_client, admin_headers, staff_user, client_user, assignment):
    response = api_client.post(
        "/api/admin/assign-client",
        headers=admin_headers,
        json={"staffId": staff_user.id, "clientId": client_user.id},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Client is already assigned to this staff member"


def test_assign_requires_real_roles(api_client, admin_headers, staff_user, client_user):
    swapped = api_client.post(
        "/api/admin/assign-client",
        headers=admin_headers,
        json={"staffId": client_user.id, "clientId": staff_user.id},
    )
    assert swapped.status_code == 400
    assert swapped.json()["message"] == "Invalid staff member"


def test_unassign_client(api_client, db_session, admin_headers, staff_user, client_user, assignment):
    response = api_client.delete(f"/api/admin/assign-client/{staff_user.id}/{client_user.id}", headers=admin_headers)
    assert response.status_code == 200
    assert db_session.query(AssignClient).count() == 0

    again = api_client.delete(f"/api/admin/assign-client/{staff_user.id}/{client_user.id}", headers=admin_headers)
    assert again.status_code == 404


def test_staff_list_counts_clients(api_client, admin_headers, staff_user, assignment):
    data = api_client.get("/api/admin/staff", headers=admin_headers).json()["data"]
    assert [(s["id"], s["clientCount"]) for s in data] == [(staff_user.id, 1)]


def test_admin_dashboard_stats(api_client, admin_headers, staff_user, client_user, other_client):
    stats = api_client.get("/api/admin/dashboard", headers=admin_headers).json()["data"]["stats"]
    assert stats == {"totalStaff": 1, "activeStaff": 1, "totalClients": 2, "activeClients": 2}


def test_client_list_includes_progress(api_client, db_session, admin_headers, client_user, staff_user, assignment):
    db_session.add(Onboarding(user_id=client_user.id, current_step=2, completed=False))
    db_session.add(ShopifyStore(user_id=client_user.id, shop_domain="carla.myshopify.com", is_active=True))
    db_session.commit()

    (row,) = api_client.get("/api/admin/clients", headers=admin_headers).json()["data"]
    assert row["assignedStaff"]["staffId"] == staff_user.id
    assert row["progress"]["onboarding"] == {"completed": False, "step": 2}
    assert row["progress"]["integrations"] == {"amazon": False, "shopify": True, "quickbooks": False}
    assert row["progress"]["subscription"]["status"] == "none"


def test_client_profile(api_client, db_session, admin_headers, client_user, assignment):
    db_session.add(ShopifyStore(user_id=client_user.id, shop_domain="carla.myshopify.com", shop_name="Carla Co", is_active=True))
    db_session.commit()

    data = api_client.get(f"/api/admin/clients/{client_user.id}", headers=admin_headers).json()["data"]
    assert data["client"]["id"] == client_user.id
    assert len(data["assignedStaff"]) == 1
    assert data["tasks"] == {"total": 0, "byStatus": {}}
    assert data["integrations"]["shopify"]["shopName"] == "Carla Co"
    assert data["integrations"]["amazon"] == {"connected": False}
    assert data["questionnaire"] is None

    assert api_client.get("/api/admin/clients/9999", headers=admin_headers).status_code == 404


# ============================================================================
# STAFF
# ============================================================================


def test_staff_sees_assigned_clients(api_client, staff_headers, client_user, other_client, assignment):
    data = api_client.get("/api/staff/my-clients", headers=staff_headers).json()["data"]
    assert [c["id"] for c in data] == [client_user.id]
    assert data[0]["progress"]["onboarding"]["completed"] is False


def test_staff_dashboard_counts(api_client, staff_headers, client_user, assignment):
    for days, title in ((-2, "Late"), (3, "Soon")):
        response = api_client.post(
            "/api/tasks",
            headers=staff_headers,
            json={
                "title": title,
                "description": "desc",
                "taskType": "REVIEW",
                "dueDate": (datetime.utcnow() + timedelta(days=days)).isoformat(),
                "assignedTo": client_user.id,
            },
        )
        assert response.status_code == 201

    data = api_client.get("/api/staff/dashboard", headers=staff_headers).json()["data"]
    assert data["stats"]["assignedClients"] == 1
    assert data["stats"]["totalTasks"] == 2
    assert data["stats"]["overdueTasks"] == 1
    assert data["stats"]["dueThisWeek"] == 1
    assert [c["id"] for c in data["recentClients"]] == [client_user.id]


def test_clients_cannot_use_staff_routes(api_client, client_headers):
    assert api_client.get("/api/staff/my-clients", headers=client_headers).status_code == 403
