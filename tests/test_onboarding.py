from plutify.models import User

STEP_DATA = {
    "businessNeeds": "monthly-bookkeeping",
    "previousBookkeeper": "no",
    "businessDetails": {
        "businessName": "Carla Co",
        "businessType": "llc",
        "yearStarted": "2019",
        "employeeCount": "1-5",
        "monthlyRevenue": "10k-50k",
    },
    "industry": "ecommerce",
}


def test_status_before_start(api_client, client_headers):
    data = api_client.get("/api/onboarding/status", headers=client_headers).json()["data"]
    assert data == {"exists": False, "completed": False, "currentStep": 1, "completedAt": None, "completionPercentage": 0}


def test_get_data_creates_record(api_client, client_headers):
    data = api_client.get("/api/onboarding/data", headers=client_headers).json()["data"]
    assert data["currentStep"] == 1
    assert data["data"]["businessDetails"]["businessName"] == ""

    status = api_client.get("/api/onboarding/status", headers=client_headers).json()["data"]
    assert status["exists"] is True


def test_save_progress_merges_business_details(api_client, client_headers):
    first = api_client.post(
        "/api/onboarding/save-progress",
        headers=client_headers,
        json={"currentStep": 3, "data": {"businessDetails": {"businessName": "Carla Co"}}},
    )
    assert first.status_code == 200

    api_client.post(
        "/api/onboarding/save-progress",
        headers=client_headers,
        json={"currentStep": 3, "data": {"businessDetails": {"businessType": "llc"}}},
    )

    data = api_client.get("/api/onboarding/data", headers=client_headers).json()["data"]
    assert data["data"]["businessDetails"]["businessName"] == "Carla Co"
    assert data["data"]["businessDetails"]["businessType"] == "llc"
    assert data["lastSavedAt"] is not None


def test_save_progress_requires_step_and_data(api_client, client_headers):
    response = api_client.post("/api/onboarding/save-progress", headers=client_headers, json={"currentStep": 2})
    assert response.status_code == 400


def test_complete_before_start(api_client, client_headers):
    response = api_client.post("/api/onboarding/complete", headers=client_headers, json={})
    assert response.status_code == 404


def test_complete_lists_missing_fields(api_client, client_headers):
    api_client.post(
        "/api/onboarding/save-progress",
        headers=client_headers,
        json={"currentStep": 1, "data": {"businessNeeds": "tax-prep"}},
    )

    response = api_client.post("/api/onboarding/complete", headers=client_headers, json={})
    assert response.status_code == 400
    assert response.json()["errors"] == [
        "Previous bookkeeper information is required",
        "Business name is required",
        "Business type is required",
        "Industry selection is required",
    ]


def test_complete_marks_user(api_client, db_session, client_user, client_headers):
    api_client.post("/api/onboarding/save-progress", headers=client_headers, json={"currentStep": 1, "data": {}})

    response = api_client.post("/api/onboarding/complete", headers=client_headers, json={"data": STEP_DATA})
    assert response.status_code == 200
    assert response.json()["data"]["completed"] is True

    status = api_client.get("/api/onboarding/status", headers=client_headers).json()["data"]
    assert status["currentStep"] == 4
    assert status["completionPercentage"] == 100

    db_session.expire_all()
    assert db_session.get(User, client_user.id).onboarding_completed is True


def test_validate_step(api_client, client_headers):
    bad = api_client.post("/api/onboarding/validate-step/3", headers=client_headers, json={"data": {"businessDetails": {}}})
    assert bad.status_code == 400
    assert bad.json()["valid"] is False
    assert bad.json()["message"] == "Business details are required"

    good = api_client.post("/api/onboarding/validate-step/4", headers=client_headers, json={"data": {"industry": "retail"}})
    assert good.status_code == 200
    assert good.json()["data"] == {"valid": True}

    unknown = api_client.post("/api/onboarding/validate-step/9", headers=client_headers, json={})
    assert unknown.json()["message"] == "Invalid step number"


def test_reset(api_client, client_headers):
    api_client.post("/api/onboarding/save-progress", headers=client_headers, json={"currentStep": 2, "data": {}})
    assert api_client.delete("/api/onboarding/reset", headers=client_headers).status_code == 200
    assert api_client.get("/api/onboarding/status", headers=client_headers).json()["data"]["exists"] is False


# ============================================================================
# ENGAGEMENT LETTERS
# ============================================================================


def test_one_active_letter_per_email(api_client, admin_headers):
    first = api_client.post("/api/engagement-letters", headers=admin_headers, json={"email": "Lead@Acme.com"})
    assert first.status_code == 201
    assert first.json()["data"]["status"] == "PROCESSING"
    assert first.json()["data"]["email"] == "lead@acme.com"

    second = api_client.post("/api/engagement-letters", headers=admin_headers, json={"email": "lead@acme.com"})
    assert second.status_code == 409


def test_failed_letter_frees_the_email(api_client, admin_headers):
    letter = api_client.post("/api/engagement-letters", headers=admin_headers, json={"email": "lead@acme.com"}).json()["data"]

    failed = api_client.patch(
        f"/api/engagement-letters/{letter['id']}/status",
        headers=admin_headers,
        json={"status": "failed", "error": "template missing"},
    )
    assert failed.status_code == 200
    assert failed.json()["data"]["failedAt"] is not None
    assert failed.json()["data"]["error"] == "template missing"

    again = api_client.post("/api/engagement-letters", headers=admin_headers, json={"email": "lead@acme.com"})
    assert again.status_code == 201


def test_sent_letter_is_stamped(api_client, admin_headers):
    letter = api_client.post("/api/engagement-letters", headers=admin_headers, json={"email": "lead@acme.com"}).json()["data"]
    sent = api_client.patch(
        f"/api/engagement-letters/{letter['id']}/status", headers=admin_headers, json={"status": "SENT"}
    ).json()["data"]
    assert sent["sentAt"] is not None

    listed = api_client.get("/api/engagement-letters?status=sent", headers=admin_headers).json()["data"]
    assert [item["id"] for item in listed] == [letter["id"]]


def test_invalid_letter_status(api_client, admin_headers):
    letter = api_client.post("/api/engagement-letters", headers=admin_headers, json={"email": "lead@acme.com"}).json()["data"]
    response = api_client.patch(
        f"/api/engagement-letters/{letter['id']}/status", headers=admin_headers, json={"status": "LOST"}
    )
    assert response.status_code == 422


def test_letters_are_admin_only(api_client, staff_headers):
    assert api_client.get("/api/engagement-letters", headers=staff_headers).status_code == 403
