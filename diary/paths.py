"""
저장소 경로 규칙
- 사용자/날짜/순번으로 이미지 저장 경로를 만들고,
- 백엔드가 발급한 접근 URL 에서 저장 경로를 다시 꺼냅니다.

접근 URL 형식: {base}/v0/b/{bucket}/o/{퍼센트 인코딩된 경로}?alt=media
"""

import re
from typing import Optional
from urllib.parse import quote, unquote

# '/o/' 와 쿼리 문자열 사이가 저장 경로
_PATH_IN_URL = re.compile(r"/o/([^?#]+)\?")


def build_path(user_id: str, date: str, index: int, extension: str = "jpg") -> str:
    """
    이미지 저장 경로를 만듭니다. (user_id, date, index) 가 다르면 경로도 다릅니다.

    >>> build_path("u1", "2024-04-05", 3)
    'users/u1/images/2024-04-05_3.jpg'
    """
    return f"users/{user_id}/images/{date}_{index}.{extension}"


def build_access_url(base_url: str, bucket: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/v0/b/{bucket}/o/{quote(path, safe='')}?alt=media"


def extract_path(access_url: str) -> str:
    """
    접근 URL 에서 저장 경로를 복원합니다.
    - 형식이 맞지 않으면 예외 대신 빈 문자열을 반환합니다. (호출자는 '삭제할 것 없음' 으로 취급)
    """
    if not access_url:
        return ""
    m = _PATH_IN_URL.search(access_url)
    if not m:
        return ""
    return unquote(m.group(1))


# 경로 끝의 '_{순번}.{확장자}'
_INDEX_IN_PATH = re.compile(r"_(\d+)\.[^./]+$")


def path_index(path: str) -> Optional[int]:
    """
    저장 경로에서 이미지 순번을 꺼냅니다. 형식이 다르면 None

    >>> path_index("users/u1/images/2024-04-05_3.jpg")
    3
    """
    m = _INDEX_IN_PATH.search(path or "")
    return int(m.group(1)) if m else None
