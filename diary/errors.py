"""
일기 서비스 예외 분류(taxonomy)

- 백엔드(인증/문서/오브젝트 저장소)에서 올라온 원시 예외는 작업 경계(save/delete/reconcile)에서
  `classify()` 로 분류되어 아래 타입으로 호출자에게 전달됩니다.
- 입력 검증 예외(EmptyEntryError 등)는 네트워크 호출 전에 로컬에서 발생합니다.
"""

from typing import Optional

from .backend import BackendError


class DiaryError(Exception):
    """모든 일기 서비스 예외의 기반 클래스"""


class AuthError(DiaryError):
    """로그인되지 않았거나 자격 증명이 잘못된 경우"""


class BackendUnavailable(DiaryError):
    """일시적인 네트워크/서비스 장애 (자동 재시도 없음)"""


class PermissionDenied(DiaryError):
    """백엔드가 권한 부족으로 거부한 경우"""


class ImageError(DiaryError):
    """이미지 1장 처리 실패 (배치의 다른 이미지에는 영향 없음)"""


class DecodeError(ImageError):
    pass


class EncodeError(ImageError):
    pass


class AttachmentUploadError(DiaryError):
    """
    첨부 이미지 업로드 실패

    Parameters
    ----------
    position : int
        실패한 이미지의 1부터 시작하는 순번 (신규 추가 이미지 기준)
    cause : Exception
        원인 예외 (분류된 DiaryError)
    """

    def __init__(self, position: int, cause: Exception):
        super().__init__(f"image {position} failed to upload: {cause}")
        self.position = position
        self.cause = cause


class IndexOutOfRange(DiaryError, IndexError):
    pass


class EmptyEntryError(DiaryError):
    """텍스트/기분/이미지가 모두 비어 있어 저장할 내용이 없는 경우"""


class InvalidFieldError(DiaryError):
    """기분/색상 등 편집 값이 허용 범위를 벗어난 경우 (네트워크 호출 전)"""


class SessionBusyError(DiaryError):
    """저장 또는 삭제가 이미 진행 중인 경우"""


class NoDateSelectedError(DiaryError):
    pass


class NoEntryError(DiaryError):
    """선택한 날짜에 저장된 일기가 없는 경우 (삭제 불가)"""


# BackendError.code → 예외 클래스
_AUTH_CODES = {
    "unauthenticated",
    "auth/invalid-credential",
    "auth/wrong-password",
    "auth/user-not-found",
    "auth/invalid-email",
    "storage/unauthenticated",
}
_PERMISSION_CODES = {"permission-denied", "storage/unauthorized"}


def classify(exc: Exception, message: Optional[str] = None) -> DiaryError:
    """
    원시 예외를 분류된 DiaryError 로 변환합니다.

    - 이미 DiaryError 라면 그대로 반환합니다.
    - BackendError 는 code 로 분류하고, 알 수 없는 코드는 BackendUnavailable 로 봅니다.
    - OSError(ConnectionError 포함) 는 BackendUnavailable 입니다.
    """
    if isinstance(exc, DiaryError):
        return exc

    text = message or str(exc)
    if isinstance(exc, BackendError):
        if exc.code in _AUTH_CODES:
            return AuthError(text)
        if exc.code in _PERMISSION_CODES:
            return PermissionDenied(text)
        return BackendUnavailable(text)

    return BackendUnavailable(text)
