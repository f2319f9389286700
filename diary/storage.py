"""
로컬 파일 기반 백엔드
- Backend 계약(인증/문서/오브젝트)을 data/ 디렉토리 위에 구현합니다.
- 외부 BaaS 없이 서비스를 단독 실행하거나 테스트할 때 사용합니다.

디렉토리 구조 (data_dir 기준)
- users/{uid}/entries/{YYYY-MM-DD}.json : 일기 문서
- objects/{저장 경로}                      : 업로드된 이미지 (저장 경로 = users/{uid}/images/...)
"""

import json
import logging
import uuid
from pathlib import Path, PurePosixPath
from typing import Dict, Optional, Set

from pydantic import ValidationError

from .backend import BackendError
from .models import EntryDocument, LoginInfo
from .paths import build_access_url

log = logging.getLogger("diary.storage")


def user_id_for(identifier: str) -> str:
    """로그인 ID 로부터 항상 같은 사용자 ID 를 만듭니다."""
    return uuid.uuid5(uuid.NAMESPACE_URL, f"diary:{identifier.strip().lower()}").hex


class LocalBackend:
    def __init__(
        self,
        data_dir: Path,
        accounts: Dict[str, str],
        base_url: str = "http://localhost:8000",
        bucket: str = "diary-local",
    ):
        self.data_dir = Path(data_dir)
        self.accounts = dict(accounts)
        self.base_url = base_url
        self.bucket = bucket
        self._signed_in: Set[str] = set()
        # 존재하지 않으면 생성 (parents=True: 상위 경로까지 생성)
        (self.data_dir / "users").mkdir(parents=True, exist_ok=True)
        (self.data_dir / "objects").mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_settings(cls, settings) -> "LocalBackend":
        return cls(
            data_dir=settings.data_dir,
            accounts=settings.accounts,
            base_url=settings.base_url,
            bucket=settings.bucket,
        )

    # ------------------------
    # 내부 헬퍼
    # ------------------------

    def _require_user(self, user_id: str) -> None:
        if user_id not in self._signed_in:
            raise BackendError("unauthenticated", "sign in required")

    def _entry_path(self, user_id: str, date: str) -> Path:
        return self.data_dir / "users" / user_id / "entries" / f"{date}.json"

    def _object_path(self, path: str) -> Path:
        """
        저장 경로를 실제 파일 경로로 변환합니다.
        - 절대 경로나 '..' 이 들어간 경로는 거부합니다.
        """
        p = PurePosixPath(path)
        if not path or p.is_absolute() or ".." in p.parts:
            raise BackendError("storage/invalid-argument", f"bad object path {path!r}")
        return self.data_dir / "objects" / Path(*p.parts)

    def _owner_of(self, path: str) -> Optional[str]:
        parts = PurePosixPath(path).parts
        if len(parts) >= 3 and parts[0] == "users":
            return parts[1]
        return None

    # ------------------------
    # 인증
    # ------------------------

    async def authenticate(self, identifier: str, secret: str) -> LoginInfo:
        expected = self.accounts.get(identifier)
        if expected is None or expected != secret:
            raise BackendError("auth/invalid-credential", "wrong identifier or secret")

        uid = user_id_for(identifier)
        self._signed_in.add(uid)
        log.info(f"signed in user_id={uid}")
        return LoginInfo(user_id=uid, identifier=identifier)

    async def deauthenticate(self, user_id: str) -> None:
        self._signed_in.discard(user_id)

    # ------------------------
    # 문서
    # ------------------------

    async def get_document(self, user_id: str, date: str) -> Optional[EntryDocument]:
        self._require_user(user_id)
        p = self._entry_path(user_id, date)
        if not p.exists():
            return None
        try:
            return EntryDocument.model_validate(json.loads(p.read_text(encoding="utf-8")))
        except (ValueError, ValidationError) as e:
            raise BackendError("data-loss", f"corrupted entry {date}: {e}") from e

    async def put_document(self, user_id: str, date: str, entry: EntryDocument) -> None:
        self._require_user(user_id)
        p = self._entry_path(user_id, date)
        p.parent.mkdir(parents=True, exist_ok=True)
        # 임시 파일에 쓰고 교체하여 중간 상태의 문서가 남지 않게 합니다.
        tmp = p.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(entry.to_document(), ensure_ascii=False), encoding="utf-8")
        tmp.replace(p)

    async def delete_document(self, user_id: str, date: str) -> None:
        self._require_user(user_id)
        # 없는 문서를 지워도 오류가 아닙니다.
        self._entry_path(user_id, date).unlink(missing_ok=True)

    async def query_documents_by_date_range(
        self, user_id: str, start: str, end: str
    ) -> Dict[str, EntryDocument]:
        self._require_user(user_id)
        folder = self.data_dir / "users" / user_id / "entries"
        if not folder.exists():
            return {}

        result: Dict[str, EntryDocument] = {}
        for p in sorted(folder.glob("*.json")):
            key = p.stem
            if start <= key <= end:
                result[key] = EntryDocument.model_validate(
                    json.loads(p.read_text(encoding="utf-8"))
                )
        return result

    # ------------------------
    # 오브젝트 (이미지)
    # ------------------------

    def _require_owner(self, path: str) -> None:
        """
        경로 주인(users/{uid}/...)이 로그인 상태인지 확인합니다.
        - 오브젝트 API 는 호출자 ID 를 받지 않으므로 '호출자 == 주인' 까지는 확인하지 못합니다.
          경로는 항상 세션 자신의 user_id 로 build_path 가 만들며, HTTP 로 임의 경로를 쓰는 엔드포인트는 없습니다.
        """
        owner = self._owner_of(path)
        if owner is None or owner not in self._signed_in:
            raise BackendError("storage/unauthorized", f"not allowed to write {path}")

    async def upload_object(self, path: str, content: bytes) -> str:
        target = self._object_path(path)
        self._require_owner(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        return build_access_url(self.base_url, self.bucket, path)

    async def delete_object(self, path: str) -> None:
        target = self._object_path(path)
        self._require_owner(path)
        if not target.exists():
            raise BackendError("storage/object-not-found", path)
        target.unlink()

    def object_file(self, path: str) -> Optional[Path]:
        """
        저장 경로를 실제 파일 경로로 변환합니다. (접근 URL 을 서빙하는 HTTP 계층용)
        - 파일이 없으면 None
        """
        target = self._object_path(path)
        if not target.is_file():
            return None
        return target
