"""
Pytest Configuration for examwatch Tests
"""
import random
from datetime import datetime, timedelta

import pytest

from examwatch import create_app, db
from examwatch.models.user import User
from examwatch.models.classroom import Classroom, StudentClassroom
from examwatch.models.quiz import Quiz, QuizStatus
from examwatch.services.session_events import SessionEventNotifier
from examwatch.utils.jwt_handler import create_access_token


class RecordingNotifier(SessionEventNotifier):
    """Captures published events instead of sending them"""

    def __init__(self):
        self.session_events = []
        self.monitor_events = []

    def notify_session_event(self, session_id, event_type, data=None):
        self.session_events.append((session_id, event_type, data or {}))
        return True

    def notify_quiz_monitors(self, quiz_id, event_type, data=None):
        self.monitor_events.append((quiz_id, event_type, data or {}))
        return True

    def session_event_types(self):
        return [event_type for _, event_type, _ in self.session_events]

    def monitor_event_types(self):
        return [event_type for _, event_type, _ in self.monitor_events]


def sample_questions():
    """Four questions worth 10/15/10/15; the first option is always correct"""
    return [
        {
            "id": f"q{index + 1}",
            "question": f"Question {index + 1}?",
            "options": [
                {"text": f"right {index + 1}", "is_correct": True},
                {"text": f"wrong {index + 1}", "is_correct": False},
                {"text": f"other {index + 1}", "is_correct": False},
            ],
            "points": points,
        }
        for index, points in enumerate([10, 15, 10, 15])
    ]


@pytest.fixture(scope='function')
def app():
    """Create application for testing"""
    test_config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SECRET_KEY': 'test-secret-key',
        'SESSION_EVENTS_ENABLED': False,
    }

    app = create_app(test_config)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client"""
    return app.test_client()


@pytest.fixture(scope='function')
def notifier(app):
    """Replace the app's notifier with one that records events"""
    recorder = RecordingNotifier()
    app.extensions["session_events"] = recorder
    return recorder


def _make_user(username, role):
    user = User(
        email=f"{username}@example.com",
        username=username,
        first_name=username.capitalize(),
        last_name="Tester",
        role=role
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def teacher(app):
    return _make_user("teacher", "teacher")


@pytest.fixture(scope='function')
def other_teacher(app):
    return _make_user("otherteacher", "teacher")


@pytest.fixture(scope='function')
def student(app):
    return _make_user("student", "student")


@pytest.fixture(scope='function')
def outsider(app):
    """Student who is not enrolled anywhere"""
    return _make_user("outsider", "student")


@pytest.fixture(scope='function')
def classroom(app, teacher, student):
    """Classroom owned by ``teacher`` with ``student`` enrolled"""
    room = Classroom(name="Physics 101", subject="Physics", teacher_id=teacher.id)
    db.session.add(room)
    db.session.commit()

    db.session.add(StudentClassroom(student_id=student.id, classroom_id=room.id))
    db.session.commit()
    return room


@pytest.fixture(scope='function')
def make_quiz(app, teacher, classroom):
    """Factory for scheduled quizzes open right now"""
    def factory(**overrides):
        now = datetime.utcnow()
        fields = {
            "classroom_id": classroom.id,
            "teacher_id": teacher.id,
            "title": "Kinematics",
            "scheduled_start_time": now - timedelta(hours=1),
            "scheduled_end_time": now + timedelta(hours=2),
            "duration": 30,
            "passing_score": 60,
            "attempts": 1,
            "shuffle_questions": False,
            "shuffle_options": False,
            "status": QuizStatus.SCHEDULED.value,
        }
        questions = overrides.pop("questions", None)
        fields.update(overrides)

        quiz = Quiz(**fields)
        quiz.set_questions(sample_questions() if questions is None else questions)
        db.session.add(quiz)
        db.session.commit()
        return quiz
    return factory


@pytest.fixture(scope='function')
def quiz(make_quiz):
    return make_quiz()


@pytest.fixture
def rng():
    return random.Random(42)


def auth_headers_for(user):
    token = create_access_token(user.id, user.role)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def headers_for():
    """Auth headers for any user"""
    return auth_headers_for


@pytest.fixture(scope='function')
def teacher_headers(teacher):
    return auth_headers_for(teacher)


@pytest.fixture(scope='function')
def student_headers(student):
    return auth_headers_for(student)
