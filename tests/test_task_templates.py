from plutify.models_tasks import TaskTemplate
from plutify.roles import Role


def _create(api_client, headers, **overrides):
    payload = {
        "name": "Quarterly receipts",
        "category": "DOCUMENT_UPLOAD",
        "taskType": "DOCUMENT_UPLOAD",
        "documentType": "RECEIPTS",
        "defaultPriority": "HIGH",
        "defaultDueInDays": 14,
    }
    payload.update(overrides)
    return api_client.post("/api/task-templates", headers=headers, json=payload)


def test_staff_creates_template(api_client, staff_headers, staff_user):
    response = _create(api_client, staff_headers)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["visibility"] == "ORGANIZATION"
    assert data["availableFor"] == ["ADMIN", "STAFF"]
    assert data["createdBy"]["id"] == staff_user.id
    assert data["usageCount"] == 0


def test_template_requires_core_fields(api_client, staff_headers):
    response = api_client.post("/api/task-templates", headers=staff_headers, json={"name": "x"})
    assert response.status_code == 400


def test_template_type_specific_field(api_client, staff_headers):
    response = _create(api_client, staff_headers, documentType=None)
    assert response.status_code == 400


def test_invalid_visibility(api_client, staff_headers):
    assert _create(api_client, staff_headers, visibility="PUBLIC").status_code == 400


def test_clients_cannot_use_templates(api_client, client_headers):
    assert api_client.get("/api/task-templates", headers=client_headers).status_code == 403


def test_list_groups_by_category(api_client, staff_headers):
    _create(api_client, staff_headers)
    _create(api_client, staff_headers, name="Close", category="REVIEW", taskType="REVIEW", documentType=None)

    data = api_client.get("/api/task-templates", headers=staff_headers).json()["data"]
    assert data["total"] == 2
    assert [t["name"] for t in data["grouped"]["REVIEW"]] == ["Close"]
    assert data["grouped"]["INTEGRATION"] == []


def test_private_template_hidden_from_others(api_client, staff_headers, user_factory, headers_for):
    created = _create(api_client, staff_headers, visibility="PRIVATE").json()["data"]
    colleague = user_factory("colleague@plutify.io", Role.STAFF)

    response = api_client.get(f"/api/task-templates/{created['id']}", headers=headers_for(colleague))
    assert response.status_code == 403

    listed = api_client.get("/api/task-templates", headers=headers_for(colleague)).json()["data"]
    assert listed["total"] == 0


def test_only_creator_or_admin_can_edit(api_client, staff_headers, admin_headers, user_factory, headers_for):
    created = _create(api_client, staff_headers).json()["data"]
    colleague = user_factory("colleague@plutify.io", Role.STAFF)

    denied = api_client.patch(
        f"/api/task-templates/{created['id']}", headers=headers_for(colleague), json={"name": "Mine now"}
    )
    assert denied.status_code == 403

    allowed = api_client.patch(f"/api/task-templates/{created['id']}", headers=admin_headers, json={"name": "Renamed"})
    assert allowed.status_code == 200
    assert allowed.json()["data"]["name"] == "Renamed"


def test_system_templates_are_read_only(api_client, db_session, admin_headers):
    template = TaskTemplate(
        name="Connect QuickBooks",
        category="INTEGRATION",
        task_type="INTEGRATION",
        integration_type="QUICKBOOKS",
        visibility="SYSTEM",
        is_system_template=True,
        available_for=["ADMIN", "STAFF"],
    )
    db_session.add(template)
    db_session.commit()

    assert api_client.delete(f"/api/task-templates/{template.id}", headers=admin_headers).status_code == 403


def test_delete_unused_template(api_client, staff_headers):
    created = _create(api_client, staff_headers).json()["data"]

    response = api_client.delete(f"/api/task-templates/{created['id']}", headers=staff_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Template deleted successfully"
    assert api_client.get(f"/api/task-templates/{created['id']}", headers=staff_headers).status_code == 404


def test_template_in_use_is_deactivated(api_client, staff_headers, client_user, assignment):
    created = _create(api_client, staff_headers).json()["data"]
    task = api_client.post(
        "/api/tasks",
        headers=staff_headers,
        json={
            "title": "Receipts Q1",
            "description": "Upload receipts",
            "taskType": "DOCUMENT_UPLOAD",
            "documentType": "RECEIPTS",
            "dueDate": "2030-01-01T00:00:00",
            "assignedTo": client_user.id,
            "templateId": created["id"],
        },
    )
    assert task.status_code == 201

    response = api_client.delete(f"/api/task-templates/{created['id']}", headers=staff_headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"templateId": created["id"], "active": False, "tasksUsingTemplate": 1}

    stats = api_client.get(f"/api/task-templates/{created['id']}/stats", headers=staff_headers).json()["data"]
    assert stats["stats"]["totalUsage"] == 1
    assert stats["stats"]["tasksByStatus"]["NOT_STARTED"] == 1
