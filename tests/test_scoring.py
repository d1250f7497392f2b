import itertools

import pytest
from pydantic import ValidationError

from schoolcore.schemas.results import ComponentScores, ResultRecord
from schoolcore.services.scoring import (
    clamp_ca,
    clamp_exam,
    clamp_scores,
    compute_total,
    grade_for,
    score_preview,
)


@pytest.mark.parametrize(
    "total, grade",
    [
        (100, "A"), (70, "A"),
        (69, "B"), (60, "B"),
        (59, "C"), (50, "C"),
        (49, "D"), (45, "D"),
        (44, "E"), (40, "E"),
        (39, "F"), (0, "F"),
    ],
)
def test_grade_breakpoints(total, grade):
    assert grade_for(total) == grade


def test_grade_bands_cover_every_total_in_order():
    grades = [grade_for(total) for total in range(0, 101)]
    assert set(grades) == {"A", "B", "C", "D", "E", "F"}
    # Bands never go back down as the total rises
    order = "FEDCBA"
    assert [order.index(g) for g in grades] == sorted(order.index(g) for g in grades)


def test_compute_total_sums_components():
    assert compute_total(3, 4, 5, 60) == 72
    assert compute_total(0, 0, 0, 0) == 0
    assert compute_total(10, 10, 10, 70) == 100


def test_compute_total_order_does_not_matter():
    for first, second, third in itertools.permutations([3, 4, 5]):
        assert compute_total(first, second, third, 60) == 72


def test_clamping_caps_each_component():
    assert clamp_ca(15) == 10
    assert clamp_ca(-3) == 0
    assert clamp_ca(7) == 7
    assert clamp_exam(85) == 70
    assert clamp_exam(55) == 55
    assert clamp_scores(12, 7, -1, 90) == (10, 7, 0, 70)


def test_score_preview_clamps_before_grading():
    assert score_preview(12, 7, 9, 80) == {"total": 96, "grade": "A"}
    assert score_preview(2, 3, 1, 30) == {"total": 36, "grade": "F"}


def test_component_scores_enforce_ranges():
    with pytest.raises(ValidationError):
        ComponentScores(first_ca=11)
    with pytest.raises(ValidationError):
        ComponentScores(exam=71)
    with pytest.raises(ValidationError):
        ComponentScores(second_ca=-1)

    scores = ComponentScores(first_ca=8, second_ca=7, third_ca=9, exam=55)
    assert scores.total == 79
    assert not scores.is_blank
    assert ComponentScores().is_blank

    with pytest.raises(ValidationError):
        scores.third_ca = 12


def test_result_record_derives_total_and_grade():
    record = ResultRecord(
        studentId=7,
        studentUin="STU007",
        subjectCode="MTH",
        first_CA_Score=8,
        second_CA_Score=7,
        third_CA_Score=9,
        exam_Score=55,
        total_Score=12,
        term=2,
        session="2024/2025",
    )
    assert record.student_id == "7"
    assert record.total == 79
    assert record.grade == "A"
    assert record.term.value == "Second"
    assert record.scores.exam == 55
