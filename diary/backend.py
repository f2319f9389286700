"""
백엔드(BaaS) 계약

인증 / 문서 저장소 / 오브젝트 저장소를 하나의 인터페이스로 묶습니다.
세션과 첨부 로직은 이 Protocol 에만 의존하며, 실제 구현은 storage.LocalBackend 입니다.
"""

from typing import Dict, Optional, Protocol

from .models import EntryDocument, LoginInfo


class BackendError(Exception):
    """
    백엔드가 발생시키는 원시 예외

    code 는 Firebase 스타일 문자열입니다.
    (예: 'unauthenticated', 'permission-denied', 'storage/unauthorized', 'unavailable')
    """

    def __init__(self, code: str, message: str = ""):
        super().__init__(f"{code}: {message}" if message else code)
        self.code = code


class Uploader(Protocol):
    async def upload_object(self, path: str, content: bytes) -> str:
        ...


class Deleter(Protocol):
    async def delete_object(self, path: str) -> None:
        ...


class Backend(Uploader, Deleter, Protocol):
    async def authenticate(self, identifier: str, secret: str) -> LoginInfo:
        ...

    async def deauthenticate(self, user_id: str) -> None:
        ...

    async def get_document(self, user_id: str, date: str) -> Optional[EntryDocument]:
        ...

    async def put_document(self, user_id: str, date: str, entry: EntryDocument) -> None:
        """전체 덮어쓰기 (부분 업데이트 없음)"""
        ...

    async def delete_document(self, user_id: str, date: str) -> None:
        ...

    async def query_documents_by_date_range(
        self, user_id: str, start: str, end: str
    ) -> Dict[str, EntryDocument]:
        """start <= date <= end (문자열 비교) 인 문서들을 date → 문서 로 반환"""
        ...
