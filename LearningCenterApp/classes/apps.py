from django.apps import AppConfig

class ClassesConfig(AppConfig):
    """AppConfig for classes, enrollments, enrollment requests and attendance."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "LearningCenterApp.classes"
    label = "classes"
