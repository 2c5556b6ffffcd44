from __future__ import annotations

import requests

from ledgerdesk.domain.errors import AuthError, BackendError


def login(base_url: str, email: str, password: str, timeout: float = 20) -> str:
    """Exchange credentials for a backend bearer token."""

    response = requests.post(
        f"{base_url.rstrip('/')}/api/auth/login",
        json={"email": email, "password": password},
        timeout=timeout,
    )
    if response.status_code in (400, 401, 403):
        raise AuthError("Login rejected. Check email and password.", response.status_code)
    if response.status_code >= 400:
        raise BackendError(f"Login failed: {response.status_code}", response.status_code)
    token = response.json().get("token") or response.json().get("accessToken")
    if not token:
        raise AuthError("Login response did not include a token.")
    return token
