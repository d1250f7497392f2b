from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, validator

from schoolcore.services.scoring import CA_MAX, EXAM_MAX, compute_total, grade_for
from schoolcore.services.terms import Term, parse_term


# Score schemas
class ComponentScores(BaseModel):
    first_ca: int = Field(0, ge=0, le=CA_MAX)
    second_ca: int = Field(0, ge=0, le=CA_MAX)
    third_ca: int = Field(0, ge=0, le=CA_MAX)
    exam: int = Field(0, ge=0, le=EXAM_MAX)

    class Config:
        validate_assignment = True

    @property
    def total(self) -> int:
        return compute_total(self.first_ca, self.second_ca, self.third_ca, self.exam)

    @property
    def is_blank(self) -> bool:
        return self.first_ca == 0 and self.second_ca == 0 and self.third_ca == 0 and self.exam == 0


class ScoreInput(BaseModel):
    """Raw, unclamped scores as typed into the entry form."""
    first_ca: int = 0
    second_ca: int = 0
    third_ca: int = 0
    exam: int = 0


class ScorePreview(BaseModel):
    total: int
    grade: str


# Result schemas
class ResultSubmission(BaseModel):
    student_id: str
    student_uin: str
    subject_code: str
    scores: ComponentScores
    term: Term
    session: str


class ResultRecord(BaseModel):
    """
    One student's score for one subject in one term of one session.

    `total` and `grade` are always derived from the component scores,
    whatever the API reports.
    """
    id: Optional[str] = None
    student_id: str = Field(..., alias="studentId")
    student_uin: str = Field(..., alias="studentUin")
    subject_code: str = Field(..., alias="subjectCode")
    first_ca: int = Field(0, alias="first_CA_Score")
    second_ca: int = Field(0, alias="second_CA_Score")
    third_ca: int = Field(0, alias="third_CA_Score")
    exam: int = Field(0, alias="exam_Score")
    total: int = Field(0, alias="total_Score")
    grade: str = "F"
    term: Term
    session: str

    class Config:
        populate_by_name = True

    def __init__(self, **data):
        super().__init__(**data)
        self.total = compute_total(self.first_ca, self.second_ca, self.third_ca, self.exam)
        self.grade = grade_for(self.total)

    @validator("id", "student_id", pre=True)
    def id_as_string(cls, v):
        return str(v) if v is not None else v

    @validator("term", pre=True)
    def decode_term(cls, v):
        return parse_term(v)

    @property
    def scores(self) -> ComponentScores:
        return ComponentScores(
            first_ca=self.first_ca,
            second_ca=self.second_ca,
            third_ca=self.third_ca,
            exam=self.exam,
        )


# Roster schemas
class RosterStudent(BaseModel):
    id: str
    uin: str
    full_name: str
    class_name: Optional[str] = None

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "RosterStudent":
        full_name = item.get("fullName") or f"{item.get('firstName', '')} {item.get('lastName', '')}".strip()
        return cls(
            id=str(item["id"]),
            uin=item.get("uin") or "",
            full_name=full_name,
            class_name=item.get("className"),
        )


class SubjectOption(BaseModel):
    id: str
    name: str
    code: str

    @validator("id", pre=True)
    def id_as_string(cls, v):
        return str(v)


# Batch upload schemas
class BatchProgress(BaseModel):
    current: int = 0
    total: int = 0


class BatchOutcome(BaseModel):
    """Immutable tally of a batch upload. `record` returns a new outcome."""
    successes: int = 0
    failures: int = 0
    attempted: int = 0

    class Config:
        frozen = True

    def record(self, succeeded: bool) -> "BatchOutcome":
        return BatchOutcome(
            successes=self.successes + (1 if succeeded else 0),
            failures=self.failures + (0 if succeeded else 1),
            attempted=self.attempted + 1,
        )

    @property
    def wholly_failed(self) -> bool:
        return self.successes == 0

    @property
    def message(self) -> str:
        if self.wholly_failed:
            return "Failed to upload all results"
        message = f"Successfully uploaded {self.successes} results"
        if self.failures > 0:
            message += f", {self.failures} failed"
        return message


class BatchUploadRequest(BaseModel):
    subject_id: str
    term: Term
    session: Optional[str] = None
    class_name: Optional[str] = None
    scores: Dict[str, ComponentScores] = {}


class BatchSummary(BaseModel):
    successes: int
    failures: int
    attempted: int
    skipped: int
    success: bool
    message: str
