"""
Unit Tests for Authorization Service
"""
from unittest.mock import Mock

import pytest

from examwatch import db
from examwatch.models.classroom import StudentClassroom
from examwatch.services.authorization_service import (
    AuthorizationService, Permissions, ROLE_PERMISSIONS
)


# ============================================================================
# Permissions
# ============================================================================

class TestPermissions:

    def setup_method(self):
        self.service = AuthorizationService()

    @pytest.mark.parametrize("permission", [
        Permissions.QUIZ_VIEW,
        Permissions.SESSION_ATTEMPT,
        Permissions.SESSION_VIEW_OWN,
    ])
    def test_student_permissions(self, permission):
        assert self.service.has_permission(Mock(role="student"), permission) is True

    @pytest.mark.parametrize("permission", [
        Permissions.QUIZ_CREATE,
        Permissions.QUIZ_MANAGE,
        Permissions.SESSION_REVIEW,
    ])
    def test_student_cannot_manage(self, permission):
        assert self.service.has_permission(Mock(role="student"), permission) is False

    def test_teacher_cannot_attempt(self):
        teacher = Mock(role="teacher")

        assert self.service.has_permission(teacher, Permissions.SESSION_REVIEW) is True
        assert self.service.has_permission(teacher, Permissions.SESSION_ATTEMPT) is False

    def test_unknown_role_has_nothing(self):
        assert self.service.has_permission(Mock(role="janitor"), Permissions.QUIZ_VIEW) is False

    def test_missing_user(self):
        assert self.service.has_permission(None, Permissions.QUIZ_VIEW) is False

    def test_roles_defined(self):
        assert set(ROLE_PERMISSIONS) == {"student", "teacher"}


# ============================================================================
# Ownership checks
# ============================================================================

class TestOwnership:

    def setup_method(self):
        self.service = AuthorizationService()

    def test_quiz_owner(self):
        quiz = Mock(teacher_id="t-1")

        assert self.service.is_quiz_owner(Mock(id="t-1", role="teacher"), quiz) is True
        assert self.service.is_quiz_owner(Mock(id="t-2", role="teacher"), quiz) is False

    def test_student_with_matching_id_is_not_owner(self):
        quiz = Mock(teacher_id="u-1")
        assert self.service.is_quiz_owner(Mock(id="u-1", role="student"), quiz) is False

    def test_session_student(self):
        session = Mock(student_id="s-1")

        assert self.service.is_session_student(Mock(id="s-1"), session) is True
        assert self.service.is_session_student(Mock(id="s-2"), session) is False
        assert self.service.is_session_student(None, session) is False


# ============================================================================
# Classroom access
# ============================================================================

class TestClassroomAccess:

    def setup_method(self):
        self.service = AuthorizationService()

    def test_owner_teacher(self, classroom, teacher, other_teacher):
        assert self.service.check_classroom_access(teacher.id, classroom.id) is True
        assert self.service.check_classroom_access(other_teacher.id, classroom.id) is False

    def test_enrolled_student(self, classroom, student, outsider):
        assert self.service.check_classroom_access(student.id, classroom.id) is True
        assert self.service.check_classroom_access(outsider.id, classroom.id) is False

    def test_inactive_enrollment(self, classroom, student):
        enrollment = StudentClassroom.query.filter_by(student_id=student.id).first()
        enrollment.is_active = False
        db.session.commit()

        assert self.service.check_classroom_access(student.id, classroom.id) is False

    def test_unknown_ids(self, classroom, student):
        assert self.service.check_classroom_access("ghost", classroom.id) is False
        assert self.service.check_classroom_access(student.id, "ghost") is False

    def test_classroom_teacher(self, classroom, teacher, student):
        assert self.service.is_classroom_teacher(teacher, classroom.id) is True
        assert self.service.is_classroom_teacher(student, classroom.id) is False
        assert self.service.is_classroom_teacher(teacher, "ghost") is False
