"""Plan recommendation and answer validation for the pricing questionnaire"""

from typing import Optional

PLAN_STARTUP = "startup"
PLAN_ESSENTIAL = "essential"
PLAN_ENTERPRISE = "enterprise"

ANSWER_DOMAINS: dict[str, tuple[str, ...]] = {
    "q1Revenue": ("R1", "R2", "R3"),
    "q2Support": ("S1", "S2", "S3"),
    "q3Customization": ("C1", "C2"),
    "q4Structure": ("single-llc", "partnership", "s-corp", "c-corp"),
    "q5Cleanup": ("T1", "T2", "T3"),
    "q6Tax": ("X1", "X2", "X3"),
}


def recommend_plan(answers: dict) -> str:
    """
    Pick a plan from the answers. Rules are checked in priority order and the
    first match wins:

    1. enterprise: high revenue (R3), heavy customization (C2) or strategic support (S3)
    2. essential: medium revenue (R2) or medium support (S2)
    3. startup otherwise
    """
    revenue = answers.get("q1Revenue")
    support = answers.get("q2Support")
    customization = answers.get("q3Customization")

    if revenue == "R3" or customization == "C2" or support == "S3":
        return PLAN_ENTERPRISE
    if revenue == "R2" or support == "S2":
        return PLAN_ESSENTIAL
    return PLAN_STARTUP


def validate_answers(answers: Optional[dict]) -> list[str]:
    """Return a list of errors; absent answers are allowed"""
    if not isinstance(answers, dict):
        return ["Answers object is required"]

    errors = []
    for key, allowed in ANSWER_DOMAINS.items():
        value = answers.get(key)
        if value and value not in allowed:
            errors.append(f"Invalid value for {key}")
    return errors
