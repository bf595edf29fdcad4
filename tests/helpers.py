"""Small helpers shared by the test modules."""

import base64

DEFAULT_PASSWORD = "Passw0rd!"


def basic_auth(username: str, password: str) -> dict:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {token}"}


def encode(payload: str) -> str:
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")
