import pytest

from CourseworkApp.core.choices import Role
from CourseworkApp.tests.factories import make_assignment, make_course, make_profile


@pytest.fixture
def admin():
    return make_profile(role=Role.ADMIN)


@pytest.fixture
def leader():
    return make_profile(role=Role.COURSE_LEADER)


@pytest.fixture
def other_leader():
    return make_profile(role=Role.COURSE_LEADER)


@pytest.fixture
def student():
    return make_profile(role=Role.STUDENT)


@pytest.fixture
def other_student():
    return make_profile(role=Role.STUDENT)


@pytest.fixture
def course(leader):
    return make_course(leader)


@pytest.fixture
def assignment(course, leader):
    return make_assignment(course, leader)
