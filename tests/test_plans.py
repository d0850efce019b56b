import pytest

from plutify.domain.questionnaire.plans import (
    PLAN_ENTERPRISE,
    PLAN_ESSENTIAL,
    PLAN_STARTUP,
    recommend_plan,
    validate_answers,
)


@pytest.mark.parametrize(
    "answers, expected",
    [
        ({"q1Revenue": "R3"}, PLAN_ENTERPRISE),
        ({"q1Revenue": "R3", "q2Support": "S1"}, PLAN_ENTERPRISE),
        ({"q1Revenue": "R1", "q3Customization": "C2"}, PLAN_ENTERPRISE),
        ({"q1Revenue": "R1", "q2Support": "S3"}, PLAN_ENTERPRISE),
        ({"q1Revenue": "R1", "q2Support": "S2"}, PLAN_ESSENTIAL),
        ({"q1Revenue": "R2", "q2Support": "S1"}, PLAN_ESSENTIAL),
        ({"q1Revenue": "R1", "q2Support": "S1", "q3Customization": "C1"}, PLAN_STARTUP),
        ({}, PLAN_STARTUP),
    ],
)
def test_recommend_plan(answers, expected):
    assert recommend_plan(answers) == expected


def test_enterprise_wins_over_essential_signals():
    assert recommend_plan({"q1Revenue": "R2", "q2Support": "S2", "q3Customization": "C2"}) == PLAN_ENTERPRISE


def test_recommend_plan_does_not_mutate_answers():
    answers = {"q1Revenue": "R2"}
    recommend_plan(answers)
    assert answers == {"q1Revenue": "R2"}


def test_validate_answers_accepts_partial_answers():
    assert validate_answers({"q1Revenue": "R1"}) == []


def test_validate_answers_flags_unknown_values():
    errors = validate_answers({"q1Revenue": "R9", "q4Structure": "trust"})
    assert errors == ["Invalid value for q1Revenue", "Invalid value for q4Structure"]


def test_validate_answers_requires_object():
    assert validate_answers(None) == ["Answers object is required"]
    assert validate_answers(["R1"]) == ["Answers object is required"]
