import asyncio
import logging
from typing import Callable, Dict, List, Optional

from schoolcore.config import settings
from schoolcore.exceptions import RemoteRejection, TransportFailure, ValidationFailure
from schoolcore.schemas.results import (
    BatchOutcome,
    BatchProgress,
    ComponentScores,
    RosterStudent,
    SubjectOption,
)
from schoolcore.services.results import ResultService
from schoolcore.services.scoring import clamp_ca, clamp_exam
from schoolcore.services.terms import Term

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class ScoreEntry:
    """One editable row of a batch upload."""

    def __init__(self, student: RosterStudent, scores: Optional[ComponentScores] = None):
        self.student = student
        self.scores = scores or ComponentScores()


class BatchUploadJob:
    """
    Scores for a whole roster in one subject, term and session.

    Lives only in memory. Every student starts with all four scores at zero
    and rows are edited in place before submission.
    """

    def __init__(
        self,
        subject: Optional[SubjectOption],
        term: Term,
        session: Optional[str],
        roster: List[RosterStudent],
    ):
        self.subject = subject
        self.term = term
        self.session = session
        self.entries: List[ScoreEntry] = []
        self._by_student: Dict[str, ScoreEntry] = {}
        for student in roster:
            if student.id in self._by_student:
                continue
            entry = ScoreEntry(student)
            self.entries.append(entry)
            self._by_student[student.id] = entry
        self.progress = BatchProgress()

    @classmethod
    async def for_class(
        cls,
        results: ResultService,
        class_name: str,
        subject: Optional[SubjectOption],
        term: Term,
        session: Optional[str],
    ) -> "BatchUploadJob":
        roster = await results.roster_by_class(class_name)
        logger.info(f"Loaded {len(roster)} students in class {class_name} for batch upload")
        return cls(subject, term, session, roster)

    @classmethod
    async def for_subject(
        cls,
        results: ResultService,
        subject: SubjectOption,
        term: Term,
        session: Optional[str],
    ) -> "BatchUploadJob":
        roster = await results.roster_by_subject(subject.id)
        logger.info(f"Loaded {len(roster)} students taking {subject.code} for batch upload")
        return cls(subject, term, session, roster)

    def entry(self, student_id: str) -> ScoreEntry:
        try:
            return self._by_student[student_id]
        except KeyError:
            raise ValidationFailure(f"Student {student_id} is not on this roster")

    def set_scores(
        self,
        student_id: str,
        first_ca: Optional[int] = None,
        second_ca: Optional[int] = None,
        third_ca: Optional[int] = None,
        exam: Optional[int] = None,
    ) -> ScoreEntry:
        """Update some or all of a row's scores, capping each at its maximum."""
        entry = self.entry(student_id)
        if first_ca is not None:
            entry.scores.first_ca = clamp_ca(first_ca)
        if second_ca is not None:
            entry.scores.second_ca = clamp_ca(second_ca)
        if third_ca is not None:
            entry.scores.third_ca = clamp_ca(third_ca)
        if exam is not None:
            entry.scores.exam = clamp_exam(exam)
        return entry

    def clear_scores(self) -> None:
        for entry in self.entries:
            entry.scores = ComponentScores()

    def pending_entries(self) -> List[ScoreEntry]:
        # A row left at all zeros is treated as never filled in
        return [entry for entry in self.entries if not entry.scores.is_blank]


class BatchIngestionCoordinator:
    """
    Submits every filled-in row of a `BatchUploadJob`.

    A failed row is counted and the batch carries on. Progress moves forward
    by one after every attempt, whatever its outcome. Rows go out one at a
    time unless `concurrency` allows more in flight.
    """

    def __init__(
        self,
        results: ResultService,
        concurrency: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.results = results
        self.concurrency = max(1, concurrency or settings.BATCH_CONCURRENCY)
        self.on_progress = on_progress
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Skip any rows not yet started. Requests already sent still complete."""
        self._cancelled = True

    async def submit(self, job: BatchUploadJob) -> BatchOutcome:
        """
        Submit the job's rows and return the tally.

        Raises:
            ValidationFailure: If the subject or session is missing, or no
                row has any score
        """
        if job.subject is None or not job.subject.code:
            raise ValidationFailure("Please select a subject")
        if not job.session:
            raise ValidationFailure("No academic session selected")

        pending = job.pending_entries()
        if not pending:
            raise ValidationFailure("No scores to upload. Please enter scores for at least one student.")

        job.progress = BatchProgress(current=0, total=len(pending))
        self._notify(job)

        outcome = BatchOutcome()
        if self.concurrency == 1:
            for entry in pending:
                if self._cancelled:
                    break
                succeeded = await self._attempt(job, entry)
                outcome = self._tally(job, outcome, succeeded)
        else:
            semaphore = asyncio.Semaphore(self.concurrency)

            async def run(entry: ScoreEntry) -> None:
                nonlocal outcome
                async with semaphore:
                    if self._cancelled:
                        return
                    succeeded = await self._attempt(job, entry)
                outcome = self._tally(job, outcome, succeeded)

            await asyncio.gather(*(run(entry) for entry in pending))

        if self._cancelled and outcome.attempted < len(pending):
            logger.warning(
                f"Batch upload for {job.subject.code} cancelled after "
                f"{outcome.attempted} of {len(pending)} results"
            )

        if outcome.wholly_failed:
            logger.error(f"Batch upload for {job.subject.code} failed: {outcome.message}")
        else:
            logger.info(f"Batch upload for {job.subject.code}: {outcome.message}")
            job.clear_scores()

        return outcome

    def _tally(self, job: BatchUploadJob, outcome: BatchOutcome, succeeded: bool) -> BatchOutcome:
        outcome = outcome.record(succeeded)
        job.progress = BatchProgress(current=outcome.attempted, total=job.progress.total)
        self._notify(job)
        return outcome

    def _notify(self, job: BatchUploadJob) -> None:
        if self.on_progress:
            self.on_progress(job.progress.current, job.progress.total)

    async def _attempt(self, job: BatchUploadJob, entry: ScoreEntry) -> bool:
        student = entry.student
        try:
            await self.results.submit_result(
                student_id=student.id,
                student_uin=student.uin,
                subject_code=job.subject.code,
                scores=entry.scores,
                term=job.term,
                session=job.session,
            )
            return True
        except (RemoteRejection, TransportFailure, ValidationFailure) as e:
            logger.warning(f"Result for student {student.uin} in {job.subject.code} failed: {e.message}")
            return False
