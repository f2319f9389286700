"""
일기 편집 세션 (상태 머신)

선택한 날짜 하나에 대한 편집 상태를 들고 있습니다.
- 불러온 일기 스냅샷, 편집 중인 텍스트/기분/색상, 첨부 이미지(AttachmentSet)
- 저장/삭제를 백엔드에 요청하고, 캘린더 갱신에 필요한 결과를 돌려줍니다.

상태
- EMPTY    : 선택된 날짜 없음
- LOADED   : 날짜 선택됨 (일기가 있으면 그 내용, 없으면 기본값)
- SAVING   : 저장 진행 중
- DELETING : 삭제 진행 중

저장은 항상 명시적입니다. 다른 날짜를 선택하면 저장하지 않은 편집 내용은 버려집니다.
"""

import enum
import logging
from datetime import date as Date, datetime, timezone
from typing import Callable, Iterable, Optional, Union

from pydantic import ValidationError

from .attachments import AddResult, AttachmentSet, Pending, Persisted
from .backend import Backend
from .errors import (
    DiaryError,
    EmptyEntryError,
    InvalidFieldError,
    NoDateSelectedError,
    NoEntryError,
    SessionBusyError,
    classify,
)
from .images import ImageResizer
from .models import (
    COLOR_NAMES,
    DEFAULT_COLOR,
    MAX_ATTACHMENTS,
    AttachmentOut,
    EditorState,
    EntryDocument,
)

log = logging.getLogger("diary.session")


class SessionState(str, enum.Enum):
    EMPTY = "empty"
    LOADED = "loaded"
    SAVING = "saving"
    DELETING = "deleting"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_mood(mood: int) -> None:
    if mood < 0:
        raise InvalidFieldError(f"mood must be >= 0, got {mood}")


def date_key(value: Union[Date, str]) -> str:
    """date 또는 'YYYY-MM-DD' 문자열을 검증된 날짜 키로 변환"""
    if isinstance(value, Date):
        return value.isoformat()
    return Date.fromisoformat(value).isoformat()


class EntryEditorSession:
    def __init__(
        self,
        backend: Backend,
        user_id: str,
        resizer: Optional[ImageResizer] = None,
        max_attachments: int = MAX_ATTACHMENTS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.backend = backend
        self.user_id = user_id
        self.clock = clock
        self.attachments = AttachmentSet(resizer=resizer, limit=max_attachments)
        self.state = SessionState.EMPTY
        self.date: Optional[str] = None
        self.entry: Optional[EntryDocument] = None  # 마지막으로 읽거나 저장한 스냅샷
        self.text = ""
        self.mood: Optional[int] = None
        self.color = DEFAULT_COLOR

    # ------------------------
    # 상태 확인
    # ------------------------

    @property
    def busy(self) -> bool:
        return self.state in (SessionState.SAVING, SessionState.DELETING)

    def _ensure_idle(self) -> None:
        if self.busy:
            raise SessionBusyError(f"session is {self.state.value}")

    def _ensure_loaded(self) -> None:
        self._ensure_idle()
        if self.state is not SessionState.LOADED:
            raise NoDateSelectedError("no date selected")

    def _clear(self) -> None:
        self.date = None
        self.entry = None
        self.text = ""
        self.mood = None
        self.color = DEFAULT_COLOR
        self.attachments.reset()

    def _apply(self, entry: Optional[EntryDocument]) -> None:
        self.entry = entry
        if entry is None:
            self.text = ""
            self.mood = None
            self.color = DEFAULT_COLOR
            self.attachments.reset()
        else:
            self.text = entry.text
            self.mood = entry.mood
            self.color = entry.color
            self.attachments.load_persisted(entry.images)

    # ------------------------
    # 날짜 선택
    # ------------------------

    async def select_date(self, value: Union[Date, str]) -> EditorState:
        """
        날짜를 선택하고 그 날의 일기를 불러옵니다.
        - 읽기 실패 시 EMPTY 로 두고 분류된 예외를 올립니다.
          (읽지 못한 일기를 빈 내용으로 덮어쓰는 일이 없도록)
        """
        self._ensure_idle()
        key = date_key(value)
        self._clear()
        self.state = SessionState.EMPTY

        try:
            entry = await self.backend.get_document(self.user_id, key)
        except Exception as e:
            log.error(f"load failed date={key} error={e}")
            raise classify(e) from e

        self.date = key
        self._apply(entry)
        self.state = SessionState.LOADED
        log.info(f"selected date={key} has_entry={entry is not None}")
        return self.snapshot()

    async def today(self) -> EditorState:
        return await self.select_date(self.clock().date())

    # ------------------------
    # 편집 (로컬 변경만)
    # ------------------------

    def set_text(self, text: str) -> None:
        self._ensure_loaded()
        self.text = text

    def set_mood(self, mood: Optional[int]) -> None:
        self._ensure_loaded()
        if mood is not None:
            _check_mood(mood)
        self.mood = mood

    def toggle_mood(self, index: int) -> None:
        """같은 기분을 다시 누르면 선택 해제"""
        self._ensure_loaded()
        _check_mood(index)
        self.mood = None if self.mood == index else index

    def set_color(self, color: int) -> None:
        self._ensure_loaded()
        if not 0 <= color < len(COLOR_NAMES):
            raise InvalidFieldError(f"color must be 0..{len(COLOR_NAMES) - 1}, got {color}")
        self.color = color

    def add_files(self, files: Iterable[Pending]) -> AddResult:
        self._ensure_loaded()
        result = self.attachments.add_pending(files)
        if result.rejected:
            log.info(f"attachments over limit date={self.date} rejected={result.rejected}")
        return result

    def remove_attachment(self, index: int) -> None:
        self._ensure_loaded()
        self.attachments.remove_at(index)

    # ------------------------
    # 저장 / 삭제
    # ------------------------

    def _is_empty(self) -> bool:
        return self.text == "" and self.mood is None and len(self.attachments) == 0

    async def save(self, on_progress: Optional[Callable[[int, int], None]] = None) -> EntryDocument:
        """
        현재 편집 내용을 저장합니다.

        순서: 빈 일기 검사 → 첨부 이미지 reconcile(업로드) → 문서 1건 덮어쓰기
        실패하면 LOADED 로 돌아가고 편집 내용은 그대로 남습니다.

        Raises
        ------
        EmptyEntryError
            텍스트/기분/이미지가 모두 비어 있음 (네트워크 호출 전)
        InvalidFieldError
            저장할 문서가 모델 검증을 통과하지 못함
        AttachmentUploadError
            n 번째 새 이미지 업로드 실패
        AuthError, PermissionDenied, BackendUnavailable
            문서 저장 실패
        """
        self._ensure_loaded()
        if self._is_empty():
            raise EmptyEntryError("nothing to save: text, mood and images are all empty")

        self.state = SessionState.SAVING
        try:
            urls = await self.attachments.reconcile(
                self.backend, self.user_id, self.date, on_progress=on_progress
            )
            entry = EntryDocument(
                text=self.text,
                mood=self.mood,
                color=self.color,
                images=urls,
                updated_at=self.clock().isoformat(),
            )
            await self.backend.put_document(self.user_id, self.date, entry)
        except DiaryError:
            self.state = SessionState.LOADED
            raise
        except ValidationError as e:
            self.state = SessionState.LOADED
            raise InvalidFieldError(f"entry is not valid: {e}") from e
        except Exception as e:
            self.state = SessionState.LOADED
            log.error(f"save failed date={self.date} error={e}")
            raise classify(e) from e

        self._apply(entry)
        self.state = SessionState.LOADED
        log.info(f"saved date={self.date} images={len(entry.images)}")
        return entry

    async def delete(self) -> str:
        """
        선택한 날짜의 일기를 삭제합니다.

        - 첨부 이미지 삭제(purge) 실패는 무시되고, 문서 삭제가 성공해야만 삭제된 것으로 봅니다.
        - 성공하면 EMPTY 로 전환하고 삭제한 날짜를 반환합니다.
        """
        self._ensure_loaded()
        if self.entry is None:
            raise NoEntryError(f"no entry for {self.date}")

        # 편집 중 목록이 아니라 저장된 일기의 이미지를 지웁니다. (편집에서 뺀 이미지도 포함)
        stored = AttachmentSet(resizer=self.attachments.resizer, limit=self.attachments.limit)
        stored.load_persisted(self.entry.images)

        key = self.date
        self.state = SessionState.DELETING
        try:
            purged = await stored.purge(self.backend)
            await self.backend.delete_document(self.user_id, key)
        except Exception as e:
            self.state = SessionState.LOADED
            log.error(f"delete failed date={key} error={e}")
            raise classify(e) from e

        self._clear()
        self.state = SessionState.EMPTY
        log.info(f"deleted date={key} images_purged={purged}")
        return key

    # ------------------------
    # 조회
    # ------------------------

    def snapshot(self) -> EditorState:
        attachments = []
        for item in self.attachments:
            match item:
                case Persisted(url=url):
                    attachments.append(AttachmentOut(kind="persisted", url=url))
                case Pending(filename=filename, content=content):
                    attachments.append(
                        AttachmentOut(kind="pending", filename=filename, size_bytes=len(content))
                    )
        return EditorState(
            state=self.state.value,
            date=self.date,
            has_entry=self.entry is not None,
            text=self.text,
            mood=self.mood,
            color=self.color,
            attachments=attachments,
            updated_at=self.entry.updated_at if self.entry else None,
        )
