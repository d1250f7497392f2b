import json
from urllib.parse import unquote

import httpx
import pytest

from schoolcore.client import RemoteApiClient
from schoolcore.middleware.authentication import ApiCredentials

BASE_URL = "http://school.test/api/"
SCHOOL_ID = "school-1"
TOKEN = "test-token"


def make_students(count, class_name="Grade 10A"):
    return [
        {"id": f"s{i}", "uin": f"STU00{i}", "fullName": f"Student {i}", "className": class_name}
        for i in range(1, count + 1)
    ]


class FakeSchoolApi:
    """In-memory stand-in for the remote school API, served through httpx.MockTransport."""

    def __init__(self):
        self.sessions = [
            {
                "id": 1,
                "current_Session": "2024/2025",
                "current_Term": 1,
                "schoolName": "Hillside Academy",
                "currentTermEndsOn": "2024-12-13T00:00:00",
                "nextTermBeginsOn": None,
                "isActive": True,
            }
        ]
        self.results = []
        self.students_by_class = {"Grade 10A": make_students(3)}
        self.students_by_subject = {"sub-1": make_students(3)}
        self.subjects = [
            {"id": "sub-1", "name": "Mathematics", "code": "MTH"},
            {"id": "sub-2", "name": "English Language", "code": "ENG"},
        ]
        self.reject_uins = set()
        self.broken_uins = set()
        self.unreachable = set()
        self.fail_paths = {}
        self.calls = []
        self.requests = []
        self.last_headers = None

    @property
    def current(self):
        return next((s for s in self.sessions if s["isActive"]), None)

    def posted_results(self):
        return [body for method, path, body in self.requests if method == "POST" and path == "Results"]

    def paths(self, method=None):
        return [path for m, path in self.calls if method is None or m == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = unquote(request.url.path)[len("/api/"):]
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, path))
        self.requests.append((request.method, path, body))
        self.last_headers = request.headers

        if path in self.fail_paths:
            status_code, message = self.fail_paths[path]
            return httpx.Response(status_code, json={"message": message})

        if path in self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)

        if path == "Results" and request.method == "POST" and body["studentUin"] in self.broken_uins:
            raise httpx.ConnectError("connection reset", request=request)

        route = getattr(self, "_" + request.method.lower() + "_" + path.split("/")[0].lower(), None)
        if route is None:
            return httpx.Response(404, json={"message": f"No route for {path}"})
        return route(request, path, body)

    # AcademicSession endpoints
    def _get_academicsession(self, request, path, body):
        if path.endswith("get-all-sessions"):
            return httpx.Response(200, json={"data": self.sessions})
        if self.current is None:
            return httpx.Response(404, json={"message": "No current session found"})
        return httpx.Response(200, json={"data": self.current})

    def _post_academicsession(self, request, path, body):
        action = path.split("/")[1]
        current = self.current
        if action == "create-session":
            session = {
                "id": len(self.sessions) + 1,
                "current_Session": body["current_Session"],
                "current_Term": body["current_Term"],
                "isActive": False,
            }
            self.sessions.append(session)
            return httpx.Response(201, json={"data": session})
        if action == "next-term":
            if current["current_Term"] >= 3:
                return httpx.Response(400, json={"message": "Already in the last term"})
            current["current_Term"] += 1
            return httpx.Response(200, json={"message": "Term advanced"})
        if action == "next-session":
            start, end = current["current_Session"].split("/")
            current["isActive"] = False
            self.sessions.append({
                "id": len(self.sessions) + 1,
                "current_Session": f"{int(start) + 1}/{int(end) + 1}",
                "current_Term": 1,
                "schoolName": current.get("schoolName"),
                "isActive": True,
            })
            return httpx.Response(200, json={"message": "Moved to next session"})
        return httpx.Response(404, json={"message": "Unknown action"})

    def _put_academicsession(self, request, path, body):
        session = next((s for s in self.sessions if str(s["id"]) == str(body["id"])), None)
        if session is None:
            return httpx.Response(404, json={"message": "Session not found"})
        for key in ("current_Session", "current_Term", "currentTermEndsOn", "nextTermBeginsOn"):
            if key in body:
                session[key] = body[key]
        return httpx.Response(200, json={"message": "Session dates updated successfully"})

    # Result endpoints
    def _post_results(self, request, path, body):
        if body["studentUin"] in self.reject_uins:
            return httpx.Response(400, json={"message": f"Student {body['studentUin']} does not offer {body['subjectCode']}"})
        record = dict(body, id=len(self.results) + 1)
        self.results.append(record)
        return httpx.Response(201, json={"data": record})

    def _get_results(self, request, path, body):
        if path.startswith("Results/student/"):
            student_id = path.split("/")[2]
            return httpx.Response(200, json={"data": [r for r in self.results if r["studentId"] == student_id]})
        return httpx.Response(200, json={"data": self.results})

    def _put_results(self, request, path, body):
        record = next((r for r in self.results if str(r["id"]) == str(body["id"])), None)
        if record is None:
            return httpx.Response(404, json={"message": "Result not found"})
        record.update(body)
        return httpx.Response(200, json={"message": "Result updated"})

    def _delete_results(self, request, path, body):
        result_id = path.split("/")[1]
        record = next((r for r in self.results if str(r["id"]) == result_id), None)
        if record is None:
            return httpx.Response(404, json={"message": "Result not found"})
        self.results.remove(record)
        return httpx.Response(204)

    # Roster and subject endpoints
    def _get_student(self, request, path, body):
        if path.endswith("get-students-with-class"):
            students = self.students_by_class.get(request.url.params.get("className"), [])
        else:
            students = self.students_by_subject.get(request.url.params.get("subjectId"), [])
        return httpx.Response(200, json={"data": students})

    def _get_subject(self, request, path, body):
        return httpx.Response(200, json=self.subjects)


@pytest.fixture
def fake_api():
    return FakeSchoolApi()


@pytest.fixture
def transport(fake_api):
    return httpx.MockTransport(fake_api.handler)


@pytest.fixture
def api_client(transport):
    return RemoteApiClient(
        ApiCredentials(token=TOKEN, school_id=SCHOOL_ID),
        base_url=BASE_URL,
        transport=transport,
    )
