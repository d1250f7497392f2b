from typing import Dict, Tuple, Union

Number = Union[int, float]

CA_MAX = 10
EXAM_MAX = 70

# Lower bound (inclusive) of each grade band, highest first
GRADE_BANDS = (
    (70, "A"),
    (60, "B"),
    (50, "C"),
    (45, "D"),
    (40, "E"),
)
FAIL_GRADE = "F"


def compute_total(first_ca: Number, second_ca: Number, third_ca: Number, exam: Number) -> Number:
    """
    Sum the three continuous assessments and the exam.

    Components are not re-validated here; clamp them first with
    `clamp_scores` when they come straight from user input.
    """
    return first_ca + second_ca + third_ca + exam


def grade_for(total: Number) -> str:
    for lower_bound, grade in GRADE_BANDS:
        if total >= lower_bound:
            return grade
    return FAIL_GRADE


def _clamp(value: Number, upper: int) -> Number:
    return max(0, min(upper, value))


def clamp_ca(value: Number) -> Number:
    return _clamp(value, CA_MAX)


def clamp_exam(value: Number) -> Number:
    return _clamp(value, EXAM_MAX)


def clamp_scores(first_ca: Number, second_ca: Number, third_ca: Number, exam: Number) -> Tuple[Number, Number, Number, Number]:
    return clamp_ca(first_ca), clamp_ca(second_ca), clamp_ca(third_ca), clamp_exam(exam)


def score_preview(first_ca: Number, second_ca: Number, third_ca: Number, exam: Number) -> Dict[str, Union[Number, str]]:
    """Clamp raw input and return the running total and grade."""
    total = compute_total(*clamp_scores(first_ca, second_ca, third_ca, exam))
    return {"total": total, "grade": grade_for(total)}
