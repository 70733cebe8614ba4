from model_bakery import baker
from rest_framework.test import APIClient

PASSWORD = "pass1234"


def make_user(role="STUDENT", **kwargs):
    u = baker.make("users.User", role=role, **kwargs)
    u.set_password(PASSWORD); u.save()
    return u


def login(user):
    client = APIClient()
    token = client.post("/api/auth/token/", {"email": user.email, "password": PASSWORD}, format="json").data["access"]
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client
