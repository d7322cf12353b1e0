"""
Tests for the teacher review endpoints
"""
import pytest

from examwatch import db
from examwatch.models.quiz_session import QuizSession, SessionStatus, ReviewStatus
from examwatch.services import proctoring_monitor, session_lifecycle


@pytest.fixture
def finished(quiz, student):
    """Submitted attempt with q1 and q2 right (25/50)"""
    session = session_lifecycle.start_session(quiz.id, student)
    session.answers = [
        {"question_id": "q1", "selected_options": ["right 1"]},
        {"question_id": "q2", "selected_options": ["right 2"]},
    ]
    session_lifecycle.submit_session(session)
    return session


@pytest.fixture
def terminated(make_quiz, student):
    quiz = make_quiz(title="Second quiz")
    session = session_lifecycle.start_session(quiz.id, student)
    for _ in range(2):
        proctoring_monitor.add_violation(session, {
            "type": "suspicious_behavior", "severity": "critical", "description": "Phone on desk"
        })
    return session


class TestReviewQueue:

    def test_riskiest_first(self, client, classroom, finished, terminated, teacher_headers):
        response = client.get(f"/api/classrooms/{classroom.id}/sessions/review", headers=teacher_headers)

        body = response.get_json()
        assert response.status_code == 200
        assert body["total"] == 2
        assert [s["id"] for s in body["sessions"]] == [terminated.id, finished.id]
        item = body["sessions"][0]
        assert item["violation_summary"] == {"suspicious_behavior": 2}
        assert item["student"]["name"] == "Student Tester"
        assert item["quiz"]["title"] == "Second quiz"
        assert "violations" not in item

    def test_filters(self, client, classroom, finished, terminated, teacher_headers):
        url = f"/api/classrooms/{classroom.id}/sessions/review?status=flagged&risk_level=high"

        body = client.get(url, headers=teacher_headers).get_json()

        assert [s["id"] for s in body["sessions"]] == [terminated.id]

    def test_bad_filter(self, client, classroom, teacher_headers):
        url = f"/api/classrooms/{classroom.id}/sessions/review?risk_level=spicy"

        response = client.get(url, headers=teacher_headers)

        assert response.status_code == 400

    def test_student_denied(self, client, classroom, student_headers):
        response = client.get(f"/api/classrooms/{classroom.id}/sessions/review", headers=student_headers)

        assert response.status_code == 403

    def test_other_teacher_denied(self, client, classroom, other_teacher, headers_for):
        response = client.get(
            f"/api/classrooms/{classroom.id}/sessions/review",
            headers=headers_for(other_teacher)
        )

        assert response.status_code == 403


class TestReviewDecision:

    def test_accept_with_adjustment(self, client, finished, teacher_headers, notifier):
        response = client.post(
            f"/api/sessions/{finished.id}/review",
            json={"decision": "partial_credit", "notes": "Partial marks for q3", "score_adjustment": 65},
            headers=teacher_headers
        )

        body = response.get_json()["session"]
        assert response.status_code == 200
        assert body["final_score"] == 65
        assert body["passed"] is True
        assert body["status"] == SessionStatus.COMPLETED.value
        assert body["student"] == "Student Tester"
        assert "session.reviewed" in notifier.session_event_types()

    def test_reject_terminated_attempt(self, client, terminated, teacher_headers):
        response = client.post(
            f"/api/sessions/{terminated.id}/review",
            json={"decision": "reject", "notes": "Phone use confirmed"},
            headers=teacher_headers
        )

        body = response.get_json()["session"]
        assert body["final_score"] == 0
        assert body["passed"] is False
        session = db.session.get(QuizSession, terminated.id)
        assert session.review_status == ReviewStatus.APPROVED.value
        assert session.review_notes == "Phone use confirmed"

    def test_retake(self, client, quiz, finished, teacher_headers, student_headers):
        client.post(f"/api/sessions/{finished.id}/review", json={"decision": "retake_required"},
                    headers=teacher_headers)

        response = client.post(f"/api/quizzes/{quiz.id}/sessions", json={}, headers=student_headers)

        assert response.status_code == 201
        assert response.get_json()["session"]["attempt_number"] == 2

    def test_second_review_rejected(self, client, finished, teacher_headers):
        url = f"/api/sessions/{finished.id}/review"
        client.post(url, json={"decision": "retake_required"}, headers=teacher_headers)

        response = client.post(url, json={"decision": "accept"}, headers=teacher_headers)

        body = response.get_json()
        assert response.status_code == 400
        assert body["kind"] == "invalid_transition"
        assert body["status"] == SessionStatus.CANCELLED.value
        assert db.session.get(QuizSession, finished.id).status == SessionStatus.CANCELLED.value

    def test_invalid_decision(self, client, finished, teacher_headers):
        response = client.post(f"/api/sessions/{finished.id}/review", json={"decision": "meh"},
                               headers=teacher_headers)

        assert response.status_code == 400

    def test_non_owner(self, client, finished, other_teacher, headers_for):
        response = client.post(f"/api/sessions/{finished.id}/review", json={"decision": "accept"},
                               headers=headers_for(other_teacher))

        assert response.status_code == 403

    def test_unknown_session(self, client, app, teacher_headers):
        response = client.post("/api/sessions/missing/review", json={"decision": "accept"},
                               headers=teacher_headers)

        assert response.status_code == 404


class TestSessionDetails:

    def test_owner_sees_everything(self, client, terminated, teacher_headers):
        response = client.get(f"/api/sessions/{terminated.id}/details", headers=teacher_headers)

        data = response.get_json()["session"]
        assert response.status_code == 200
        assert len(data["violations"]) == 2
        assert data["questions"][0]["options"][0]["is_correct"] is True
        assert data["quiz"]["title"] == "Second quiz"
        assert data["student"]["name"] == "Student Tester"

    def test_non_owner(self, client, terminated, other_teacher, headers_for):
        response = client.get(f"/api/sessions/{terminated.id}/details", headers=headers_for(other_teacher))

        assert response.status_code == 403
