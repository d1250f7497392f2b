import pytest

from schoolcore.exceptions import RemoteRejection, ValidationFailure
from schoolcore.schemas.results import ComponentScores
from schoolcore.services.results import ResultService
from schoolcore.services.terms import Term


@pytest.fixture
def results(api_client):
    return ResultService(api_client)


@pytest.mark.asyncio
async def test_submit_result_sends_wire_payload(results, fake_api):
    record = await results.submit_result(
        student_id="s1",
        student_uin="STU001",
        subject_code="MTH",
        scores=ComponentScores(first_ca=8, second_ca=7, third_ca=9, exam=55),
        term=Term.SECOND,
        session="2024/2025",
    )

    assert fake_api.posted_results() == [{
        "studentId": "s1",
        "studentUin": "STU001",
        "subjectCode": "MTH",
        "first_CA_Score": 8,
        "second_CA_Score": 7,
        "third_CA_Score": 9,
        "exam_Score": 55,
        "term": 2,
        "session": "2024/2025",
    }]
    assert record.id == "1"
    assert record.total == 79
    assert record.grade == "A"
    assert record.term == Term.SECOND


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "subject_code, session, student_id",
    [("", "2024/2025", "s1"), ("MTH", "", "s1"), ("MTH", "2024/2025", "")],
)
async def test_submit_result_validates_before_sending(results, fake_api, subject_code, session, student_id):
    with pytest.raises(ValidationFailure):
        await results.submit_result(
            student_id=student_id,
            student_uin="STU001",
            subject_code=subject_code,
            scores=ComponentScores(exam=40),
            term=Term.FIRST,
            session=session,
        )

    assert fake_api.calls == []


@pytest.mark.asyncio
async def test_submit_result_surfaces_server_message(results, fake_api):
    fake_api.reject_uins.add("STU002")

    with pytest.raises(RemoteRejection) as exc_info:
        await results.submit_result("s2", "STU002", "MTH", ComponentScores(exam=40), Term.FIRST, "2024/2025")

    assert exc_info.value.message == "Student STU002 does not offer MTH"
    assert exc_info.value.status_code == 400
    assert len(fake_api.posted_results()) == 1


@pytest.mark.asyncio
async def test_load_class_roster_and_submit_one_result(results, fake_api):
    roster = await results.roster_by_class("Grade 10A")
    student = next(s for s in roster if s.uin == "STU001")

    record = await results.submit_result(
        student.id,
        student.uin,
        "MTH",
        ComponentScores(first_ca=8, second_ca=7, third_ca=9, exam=55),
        Term.FIRST,
        "2024/2025",
    )

    assert [s.uin for s in roster] == ["STU001", "STU002", "STU003"]
    assert student.class_name == "Grade 10A"
    assert record.total == 79
    assert record.grade == "A"


@pytest.mark.asyncio
async def test_roster_builds_name_from_parts(results, fake_api):
    fake_api.students_by_subject["sub-2"] = [
        {"id": 12, "uin": "STU012", "firstName": "Ngozi", "lastName": "Eze"},
    ]

    roster = await results.roster_by_subject("sub-2")

    assert roster[0].id == "12"
    assert roster[0].full_name == "Ngozi Eze"
    assert roster[0].class_name is None


@pytest.mark.asyncio
async def test_roster_requires_a_selection(results, fake_api):
    with pytest.raises(ValidationFailure):
        await results.roster_by_class("")
    with pytest.raises(ValidationFailure):
        await results.roster_by_subject("")
    assert fake_api.calls == []


@pytest.mark.asyncio
async def test_list_update_and_delete_results(results, fake_api):
    await results.submit_result("s1", "STU001", "MTH", ComponentScores(first_ca=5, exam=30), Term.FIRST, "2024/2025")
    await results.submit_result("s2", "STU002", "MTH", ComponentScores(exam=65), Term.FIRST, "2024/2025")

    listed = await results.list_results()
    assert [(r.student_uin, r.total, r.grade) for r in listed] == [("STU001", 35, "F"), ("STU002", 65, "B")]

    await results.update_result("1", ComponentScores(first_ca=10, second_ca=10, third_ca=10, exam=50))
    mine = await results.results_for_student("s1")
    assert len(mine) == 1
    assert mine[0].total == 80
    assert mine[0].grade == "A"

    await results.delete_result("2")
    assert [r.student_uin for r in await results.list_results()] == ["STU001"]

    with pytest.raises(RemoteRejection) as exc_info:
        await results.delete_result("2")
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_list_subjects(results):
    subjects = await results.list_subjects()

    assert [(s.id, s.code) for s in subjects] == [("sub-1", "MTH"), ("sub-2", "ENG")]
