import pytest
from django.core.cache import cache
from model_bakery import baker

from LearningCenterApp.tests.utils import make_user


@pytest.fixture(autouse=True)
def _clear_throttle_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def admin():
    return make_user("ADMIN", email="admin@example.com", name="Ada Admin")


@pytest.fixture
def teacher():
    return make_user("TEACHER", email="t1@example.com", name="Tom Teacher")


@pytest.fixture
def other_teacher():
    return make_user("TEACHER", email="t2@example.com", name="Tia Teacher")


@pytest.fixture
def student():
    return make_user("STUDENT", email="s1@example.com", name="Sam Student")


@pytest.fixture
def other_student():
    return make_user("STUDENT", email="s2@example.com", name="Sue Student")


@pytest.fixture
def klass(teacher):
    return baker.make(
        "classes.Class",
        name="Evening English",
        teacher=teacher,
        schedule="Mondays and Wednesdays, 6:00 PM - 8:00 PM",
        tags=["english", "evening"],
    )


@pytest.fixture
def enrolled(klass, student):
    return baker.make("classes.Enrollment", klass=klass, student=student)


@pytest.fixture
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path
    return tmp_path
