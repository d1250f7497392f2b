import logging
from typing import Any, List

from schoolcore.client import RemoteApiClient
from schoolcore.exceptions import ValidationFailure
from schoolcore.schemas.results import ComponentScores, ResultRecord, RosterStudent, SubjectOption
from schoolcore.services.terms import Term, term_to_number

logger = logging.getLogger(__name__)

RESULTS_PATH = "Results"
STUDENTS_BY_CLASS_PATH = "Student/get-students-with-class"
STUDENTS_BY_SUBJECT_PATH = "Student/get-students-with-subject"
SUBJECTS_PATH = "Subject/get-all-subjects"


def _as_list(data: Any) -> List[Any]:
    return data if isinstance(data, list) else []


class ResultService:
    """Single-result submission and the lookups that feed it."""

    def __init__(self, client: RemoteApiClient):
        self.client = client

    async def submit_result(
        self,
        student_id: str,
        student_uin: str,
        subject_code: str,
        scores: ComponentScores,
        term: Term,
        session: str,
    ) -> ResultRecord:
        """
        Create or update the result for (student, subject, term, session).

        Args:
            student_id: Internal student identifier
            student_uin: Student display code
            subject_code: Code of the subject being scored
            scores: The four component scores
            term: Term the result belongs to
            session: Session label, e.g. 2024/2025

        Returns:
            The submitted result with its derived total and grade

        Raises:
            ValidationFailure: If the subject, session or student is missing
            RemoteRejection: If the API refuses the result
        """
        if not subject_code:
            raise ValidationFailure("Please select a subject")
        if not session:
            raise ValidationFailure("No academic session selected")
        if not student_id:
            raise ValidationFailure("Please select a student")
        if term is None:
            raise ValidationFailure("Please select a term")

        payload = {
            "studentId": student_id,
            "studentUin": student_uin,
            "subjectCode": subject_code,
            "first_CA_Score": scores.first_ca,
            "second_CA_Score": scores.second_ca,
            "third_CA_Score": scores.third_ca,
            "exam_Score": scores.exam,
            "term": term_to_number(term),
            "session": session,
        }

        data = await self.client.post(RESULTS_PATH, json=payload)

        record = ResultRecord(**payload)
        if isinstance(data, dict) and data.get("id") is not None:
            record.id = str(data["id"])

        logger.info(
            f"Submitted {subject_code} result for student {student_uin} "
            f"[term: {term.value}] [session: {session}] [total: {record.total}]"
        )
        return record

    async def update_result(self, result_id: str, scores: ComponentScores) -> None:
        payload = {
            "id": result_id,
            "first_CA_Score": scores.first_ca,
            "second_CA_Score": scores.second_ca,
            "third_CA_Score": scores.third_ca,
            "exam_Score": scores.exam,
        }
        await self.client.put(RESULTS_PATH, json=payload)

    async def list_results(self) -> List[ResultRecord]:
        data = await self.client.get(RESULTS_PATH)
        return [ResultRecord(**item) for item in _as_list(data)]

    async def results_for_student(self, student_id: str) -> List[ResultRecord]:
        data = await self.client.get(f"{RESULTS_PATH}/student/{student_id}")
        return [ResultRecord(**item) for item in _as_list(data)]

    async def delete_result(self, result_id: str) -> None:
        await self.client.delete(f"{RESULTS_PATH}/{result_id}")
        logger.info(f"Deleted result {result_id}")

    async def roster_by_class(self, class_name: str) -> List[RosterStudent]:
        if not class_name:
            raise ValidationFailure("Please select a class")
        data = await self.client.get(STUDENTS_BY_CLASS_PATH, params={"className": class_name})
        return [RosterStudent.from_api(item) for item in _as_list(data)]

    async def roster_by_subject(self, subject_id: str) -> List[RosterStudent]:
        if not subject_id:
            raise ValidationFailure("Please select a subject")
        data = await self.client.get(STUDENTS_BY_SUBJECT_PATH, params={"subjectId": subject_id})
        return [RosterStudent.from_api(item) for item in _as_list(data)]

    async def list_subjects(self) -> List[SubjectOption]:
        data = await self.client.get(SUBJECTS_PATH)
        return [SubjectOption(**item) for item in _as_list(data)]
