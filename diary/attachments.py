"""
일기 첨부 이미지 관리 (핵심 로직)

일기 한 편의 이미지 목록을 순서대로 관리합니다. 각 항목은 둘 중 하나입니다.
- Persisted : 이미 백엔드에 저장된 이미지 (접근 URL 로 식별)
- Pending   : 이번 편집에서 새로 고른 로컬 파일 (아직 URL 없음)

저장 시 reconcile() 이 Pending 만 업로드하여 최종 URL 목록을 만들고,
삭제 시 purge() 가 Persisted 이미지의 저장소 오브젝트를 지웁니다.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Union

from .backend import Deleter, Uploader
from .errors import AttachmentUploadError, IndexOutOfRange, classify
from .images import ImageResizer
from .models import MAX_ATTACHMENTS
from .paths import build_path, extract_path, path_index
from .utils import format_file_size

log = logging.getLogger("diary.attachments")


@dataclass(frozen=True)
class Persisted:
    url: str


@dataclass(frozen=True)
class Pending:
    filename: str
    content: bytes


AttachmentItem = Union[Persisted, Pending]


@dataclass(frozen=True)
class AddResult:
    """ add_pending 결과: 추가된 개수 / 최대 장수 초과로 거절된 개수 """
    admitted: int
    rejected: int


class AttachmentSet:
    """
    최대 `limit` 장까지의 첨부 이미지 목록

    Persisted 항목은 항상 이번 편집에서 추가한 Pending 항목보다 앞에 옵니다.
    (일기를 열 때 Persisted 를 먼저 채우고, 이후 추가는 뒤에 붙기 때문)
    """

    def __init__(self, resizer: Optional[ImageResizer] = None, limit: int = MAX_ATTACHMENTS):
        self.resizer = resizer or ImageResizer()
        self.limit = limit
        self._items: List[AttachmentItem] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    @property
    def count(self) -> int:
        return len(self._items)

    @property
    def items(self) -> List[AttachmentItem]:
        return list(self._items)

    def load_persisted(self, urls: Iterable[str]) -> None:
        """
        저장된 일기를 열 때: URL 하나당 Persisted 항목 하나로 내용을 교체
        - 최대 장수는 add_pending 에서만 적용합니다. 이미 저장된 이미지는 하나도 버리지 않습니다.
        """
        self._items = [Persisted(url) for url in urls]

    def reset(self) -> None:
        self._items = []

    def add_pending(self, files: Iterable[Pending]) -> AddResult:
        """
        남은 자리만큼 입력 순서대로 추가합니다.
        넘치는 파일은 예외 없이 거절 개수로만 보고합니다. (사용자에게 알리는 것은 호출자 몫)
        """
        files = list(files)
        room = max(0, self.limit - len(self._items))
        admitted = files[:room]
        self._items.extend(admitted)
        return AddResult(admitted=len(admitted), rejected=len(files) - len(admitted))

    def remove_at(self, index: int) -> AttachmentItem:
        if not 0 <= index < len(self._items):
            raise IndexOutOfRange(f"attachment index {index} out of range (count={len(self._items)})")
        return self._items.pop(index)

    def _partition(self):
        persisted: List[str] = []
        pending: List[Pending] = []
        for item in self._items:
            match item:
                case Persisted(url=url):
                    persisted.append(url)
                case Pending():
                    pending.append(item)
                case _:
                    raise TypeError(f"unknown attachment item: {item!r}")
        return persisted, pending

    @staticmethod
    def _free_indexes(persisted: List[str], count: int) -> List[int]:
        """
        새 이미지에 쓸 경로 번호 `count` 개
        Persisted 개수부터 올라가며, 남아 있는 Persisted 경로가 쓰는 번호는 건너뜁니다.
        """
        used = {path_index(extract_path(url)) for url in persisted}
        indexes: List[int] = []
        candidate = len(persisted)
        while len(indexes) < count:
            if candidate not in used:
                indexes.append(candidate)
            candidate += 1
        return indexes

    async def reconcile(
        self,
        uploader: Uploader,
        user_id: str,
        date: str,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> List[str]:
        """
        Pending 이미지를 순서대로 업로드하고, 저장할 최종 URL 목록을 반환합니다.

        규칙
        - 업로드는 목록 순서대로 하나씩 (병렬 X). 경로 번호가 순서에 의존하기 때문입니다.
        - i 번째 Pending (0부터) 의 경로 번호 = Persisted 개수 + i
          단, 남아 있는 Persisted 가 이미 쓰는 번호는 건너뜁니다. (앞쪽 이미지를 지운 뒤 추가한 경우)
        - 하나라도 실패하면 나머지를 중단하고 AttachmentUploadError(1부터 시작하는 순번) 발생.
          이미 올라간 오브젝트는 되돌리지 않으며, 항목들은 Pending 상태 그대로 남습니다.

        Parameters
        ----------
        uploader : Uploader
            upload_object(path, content) -> url 을 제공하는 백엔드
        user_id : str
            로그인 사용자 ID
        date : str
            일기 날짜 (YYYY-MM-DD)
        on_progress : callable, optional
            업로드 1장 완료마다 (완료 수, 전체 수) 로 호출

        Returns
        -------
        List[str]
            기존 URL + 새로 업로드한 URL (이 순서)
        """
        persisted, pending = self._partition()
        indexes = self._free_indexes(persisted, len(pending))
        uploaded: List[str] = []

        for i, item in enumerate(pending):
            path = build_path(user_id, date, indexes[i])
            try:
                content = self.resizer.resize(item.content)
                url = await uploader.upload_object(path, content)
            except Exception as e:
                cause = classify(e)
                log.error(
                    f"upload failed error={cause}",
                    extra={"user_id": user_id, "date": date, "path": path, "position": i + 1},
                )
                raise AttachmentUploadError(i + 1, cause) from e

            uploaded.append(url)
            log.info(
                f"uploaded {format_file_size(len(content))}",
                extra={"user_id": user_id, "date": date, "path": path},
            )
            if on_progress:
                on_progress(i + 1, len(pending))

        return persisted + uploaded

    async def purge(self, deleter: Deleter) -> int:
        """
        Persisted 이미지의 저장소 오브젝트를 모두 삭제합니다. (일기 삭제 전용)

        - URL 에서 경로를 꺼내지 못하면 건너뜁니다.
        - 개별 삭제 실패는 로그만 남기고 무시합니다. 이미지 일부가 남아도 일기 삭제는 막지 않습니다.

        Returns
        -------
        int
            실제로 삭제된 오브젝트 수
        """
        deleted = 0
        for item in self._items:
            match item:
                case Persisted(url=url):
                    path = extract_path(url)
                    if not path:
                        log.warning(f"skip purge, no storage path in url={url}")
                        continue
                    try:
                        await deleter.delete_object(path)
                        deleted += 1
                    except Exception:
                        log.warning(f"failed to delete image path={path}", exc_info=True)
                case Pending():
                    # 아직 업로드되지 않았으므로 지울 것이 없음
                    continue
                case _:
                    raise TypeError(f"unknown attachment item: {item!r}")
        return deleted
