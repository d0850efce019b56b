from datetime import datetime

from plutify.domain.zapier.payload import build_test_payload, format_data_for_zapier


def test_format_data_for_zapier_flattens_answers():
    payload = format_data_for_zapier(
        "jane@acme.com",
        "Jane Doe",
        {"q1Revenue": "R2", "q2Support": "S1", "q4Structure": "s-corp"},
        "essential",
        submitted_at=datetime(2026, 1, 2, 3, 4, 5),
    )

    assert payload["Client Name"] == "Jane Doe"
    assert payload["Contact Email"] == "jane@acme.com"
    assert payload["Plan Type"] == "essential"
    assert payload["Recommended Plan"] == "Essential"
    assert payload["Questionnaire Answers"]["Revenue"] == "R2"
    assert payload["Questionnaire Answers"]["Business Structure"] == "s-corp"
    assert payload["Questionnaire Answers"]["Tax Assistance"] is None
    assert payload["Source"] == "Website Questionnaire"
    assert payload["Submitted At"] == "2026-01-02T03:04:05Z"


def test_client_name_falls_back_to_email_local_part():
    payload = format_data_for_zapier("bob@shop.io", None, None, "startup")
    assert payload["Client Name"] == "bob"
    assert payload["Questionnaire Answers"]["Revenue"] is None


def test_test_payload_is_fresh_each_call():
    first = build_test_payload()
    first["Client Name"] = "changed"
    assert build_test_payload()["Client Name"] == "Test Client"
    assert build_test_payload()["Submitted At"].endswith("Z")
