from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query, status

from schoolcore.api.academics import get_progression_manager
from schoolcore.client import RemoteApiClient, get_api_client
from schoolcore.exceptions import ValidationFailure
from schoolcore.schemas.results import (
    BatchSummary,
    BatchUploadRequest,
    ComponentScores,
    ResultRecord,
    ResultSubmission,
    RosterStudent,
    ScoreInput,
    ScorePreview,
    SubjectOption,
)
from schoolcore.services.batch import BatchIngestionCoordinator, BatchUploadJob
from schoolcore.services.progression import ProgressionManager
from schoolcore.services.results import ResultService
from schoolcore.services.scoring import score_preview

router = APIRouter()


async def get_result_service(client: RemoteApiClient = Depends(get_api_client)) -> ResultService:
    return ResultService(client)


@router.post("/results/preview", response_model=ScorePreview)
async def preview_scores(scores: ScoreInput):
    """
    Clamp raw scores and return the running total and grade.
    """
    return score_preview(scores.first_ca, scores.second_ca, scores.third_ca, scores.exam)


@router.post("/results", response_model=ResultRecord, status_code=status.HTTP_201_CREATED)
async def create_result(
    submission: ResultSubmission,
    results: ResultService = Depends(get_result_service),
):
    """
    Record one student's result for a subject. An existing result for the
    same student, subject, term and session is updated instead.
    """
    return await results.submit_result(
        student_id=submission.student_id,
        student_uin=submission.student_uin,
        subject_code=submission.subject_code,
        scores=submission.scores,
        term=submission.term,
        session=submission.session,
    )


@router.get("/results", response_model=List[ResultRecord])
async def get_results(results: ResultService = Depends(get_result_service)):
    return await results.list_results()


@router.get("/results/student/{student_id}", response_model=List[ResultRecord])
async def get_student_results(
    student_id: str = Path(...),
    results: ResultService = Depends(get_result_service),
):
    return await results.results_for_student(student_id)


@router.put("/results/{result_id}")
async def update_result(
    scores: ComponentScores,
    result_id: str = Path(...),
    results: ResultService = Depends(get_result_service),
):
    await results.update_result(result_id, scores)
    return {"message": "Result updated successfully"}


@router.delete("/results/{result_id}")
async def delete_result(
    result_id: str = Path(...),
    results: ResultService = Depends(get_result_service),
):
    await results.delete_result(result_id)
    return {"message": "Result deleted successfully"}


@router.get("/results/roster", response_model=List[RosterStudent])
async def get_roster(
    class_name: Optional[str] = Query(None),
    subject_id: Optional[str] = Query(None),
    results: ResultService = Depends(get_result_service),
):
    """
    Get the students to score, either by class or by subject.
    """
    if class_name:
        return await results.roster_by_class(class_name)
    if subject_id:
        return await results.roster_by_subject(subject_id)
    raise ValidationFailure("Select a class or a subject to load students")


@router.get("/subjects", response_model=List[SubjectOption])
async def get_subjects(results: ResultService = Depends(get_result_service)):
    return await results.list_subjects()


@router.post("/results/batch", response_model=BatchSummary)
async def upload_batch(
    upload: BatchUploadRequest,
    results: ResultService = Depends(get_result_service),
    manager: ProgressionManager = Depends(get_progression_manager),
):
    """
    Upload results for a whole class or subject roster.

    Rows whose four scores are all zero are skipped. A failed row does not
    stop the others; only the counts are reported back.
    """
    subjects = await results.list_subjects()
    subject = next((s for s in subjects if s.id == upload.subject_id), None)
    if subject is None:
        raise ValidationFailure("Invalid subject selection")

    session = upload.session
    if not session:
        session = (await manager.get_current_session()).current_session

    if upload.class_name:
        job = await BatchUploadJob.for_class(results, upload.class_name, subject, upload.term, session)
    else:
        job = await BatchUploadJob.for_subject(results, subject, upload.term, session)

    for student_id, scores in upload.scores.items():
        job.set_scores(
            student_id,
            first_ca=scores.first_ca,
            second_ca=scores.second_ca,
            third_ca=scores.third_ca,
            exam=scores.exam,
        )

    skipped = len(job.entries) - len(job.pending_entries())
    outcome = await BatchIngestionCoordinator(results).submit(job)

    return BatchSummary(
        successes=outcome.successes,
        failures=outcome.failures,
        attempted=outcome.attempted,
        skipped=skipped,
        success=not outcome.wholly_failed,
        message=outcome.message,
    )
