# Models Package
from examwatch.models.user import User
from examwatch.models.classroom import Classroom, StudentClassroom
from examwatch.models.quiz import Quiz, QuizStatus
from examwatch.models.quiz_session import (
    QuizSession, SessionStatus, ReviewStatus, FinalDecision,
    ViolationType, Severity
)
