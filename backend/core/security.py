from fastapi.security import HTTPAuthorizationCredentials
from fastapi.security import HTTPBearer


bearer_scheme = HTTPBearer(auto_error=False)


def resolve_github_token(
    body_token: str | None,
    credentials: HTTPAuthorizationCredentials | None,
) -> str:
    """Pick the GitHub token from the request body or a Bearer header.

    The body value wins when both are present. An empty string is returned
    when neither carries a usable token, so the caller can reject the
    request before any network activity.
    """

    if body_token and body_token.strip():
        return body_token.strip()

    if credentials is None:
        return ""

    if credentials.scheme.lower() != "bearer":
        return ""

    return credentials.credentials.strip()
