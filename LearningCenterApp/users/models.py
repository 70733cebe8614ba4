from django.contrib.auth.models import AbstractUser
from django.db import models

from LearningCenterApp.core.choices import UserRole

class User(AbstractUser):
    email = models.EmailField(unique=True)
    name = models.CharField(max_length=150)
    role = models.CharField(max_length=16, choices=UserRole.choices, default=UserRole.STUDENT)
    avatar_url = models.URLField(blank=True, null=True)
    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT

    def __str__(self) -> str:
        return f"{self.name or self.email} ({self.role})"
