"""
Test Utilities for the Gym Attendance API
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict

import jwt
from fastapi.testclient import TestClient

from app.config import AUTH_JWT_SECRET, AUTH_JWT_ALGORITHM, AUTH_JWT_AUDIENCE


def make_token(auth_user_id: str, expires_in: int = 3600, secret: str = AUTH_JWT_SECRET,
               audience: str = AUTH_JWT_AUDIENCE) -> str:
    """Sign a token the way the hosted auth service does"""
    payload = {
        "sub": auth_user_id,
        "aud": audience,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, secret, algorithm=AUTH_JWT_ALGORITHM)


def error_code(response) -> str:
    return response.json()["detail"]["error_code"]


class APIClient:
    """HTTP Client for API testing"""

    def __init__(self, app):
        # Not used as a context manager, so the scheduler lifespan never starts
        self.client = TestClient(app)
        self.token: Optional[str] = None

    def set_token(self, token: str):
        """Set authorization token"""
        self.token = token

    def login_as(self, auth_user_id: str):
        self.token = make_token(auth_user_id)

    def clear_token(self):
        """Clear authorization token"""
        self.token = None

    def _headers(self, extra_headers: Dict = None) -> Dict:
        """Build request headers"""
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def get(self, endpoint: str, params: Dict = None):
        """GET request"""
        return self.client.get(endpoint, params=params, headers=self._headers())

    def post(self, endpoint: str, data: Dict = None, params: Dict = None):
        """POST request"""
        return self.client.post(endpoint, json=data, params=params, headers=self._headers())

    def check_in(self, action: str, data: Dict = None, **params):
        """POST /check-in?action=..."""
        return self.post("/check-in", data, params={"action": action, **params})

    def check_in_get(self, action: str, **params):
        """GET /check-in?action=..."""
        return self.get("/check-in", params={"action": action, **params})

    def post_raw(self, endpoint: str, content: str, params: Dict = None):
        """POST an arbitrary (possibly malformed) body"""
        headers = self._headers({"Content-Type": "application/json"})
        return self.client.post(endpoint, content=content, params=params, headers=headers)
