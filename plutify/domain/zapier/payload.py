"""Outbound payload for the Zapier "Create Client" (Ignition) zap"""

from datetime import datetime
from typing import Optional

ANSWER_LABELS = {
    "Revenue": "q1Revenue",
    "Support Level": "q2Support",
    "Customization": "q3Customization",
    "Business Structure": "q4Structure",
    "Cleanup Required": "q5Cleanup",
    "Tax Assistance": "q6Tax",
}

TEST_PAYLOAD = {
    "Client Name": "Test Client",
    "Contact Name": "Test User",
    "Contact Email": "test@example.com",
    "Plan Type": "startup",
    "Recommended Plan": "Startup",
    "Source": "Test Webhook",
}


def format_data_for_zapier(
    email: str,
    name: Optional[str],
    answers: Optional[dict],
    recommended_plan: str,
    submitted_at: Optional[datetime] = None,
) -> dict:
    """
    Flatten a questionnaire into the key/value shape the Ignition "Create Client"
    action expects. Client Name falls back to the email's local part.
    """
    answers = answers or {}
    submitted_at = submitted_at or datetime.utcnow()
    return {
        "Client Name": name or email.split("@")[0],
        "Contact Name": name,
        "Contact Email": email,
        "Plan Type": recommended_plan,
        "Recommended Plan": recommended_plan[:1].upper() + recommended_plan[1:],
        "Questionnaire Answers": {label: answers.get(key) for label, key in ANSWER_LABELS.items()},
        "Source": "Website Questionnaire",
        "Submitted At": submitted_at.isoformat() + "Z",
    }


def build_test_payload() -> dict:
    return {**TEST_PAYLOAD, "Submitted At": datetime.utcnow().isoformat() + "Z"}
