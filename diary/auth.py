"""
로그인 세션 관리

- /auth/login 성공 시 토큰을 발급하고, 토큰마다 편집 세션(EntryEditorSession) 하나를 둡니다.
- 요청 헤더의 `X-Session-Token` 값으로 세션을 찾습니다.
- FastAPI 의 Depends 로 엔드포인트에 쉽게 적용할 수 있습니다.
"""

import secrets
from typing import Dict, Optional

from fastapi import Header, HTTPException, Request, status

from .session import EntryEditorSession


class SessionRegistry:
    """토큰 → 편집 세션. 앱 상태(app.state.sessions)에 하나 만들어 둡니다."""

    def __init__(self):
        self._sessions: Dict[str, EntryEditorSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def open(self, session: EntryEditorSession) -> str:
        token = secrets.token_urlsafe(32)
        self._sessions[token] = session
        return token

    def get(self, token: Optional[str]) -> Optional[EntryEditorSession]:
        if not token:
            return None
        return self._sessions.get(token)

    def close(self, token: str) -> Optional[EntryEditorSession]:
        return self._sessions.pop(token, None)


def current_token(x_session_token: str = Header(None)) -> str:
    """
    요청 헤더에서 X-Session-Token 을 받습니다.
    - 값이 없으면 401 Unauthorized 를 반환합니다.
    """
    if not x_session_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing session token",
        )
    return x_session_token


def current_session(request: Request, x_session_token: str = Header(None)) -> EntryEditorSession:
    """
    토큰에 해당하는 편집 세션을 돌려줍니다.

    Raises
    ------
    HTTPException(401)
        토큰이 없거나, 로그아웃/만료되어 세션이 없는 경우
    """
    session = request.app.state.sessions.get(x_session_token)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token",
        )
    return session
