"""
데이터 모델 정의 (Pydantic)
- 백엔드에 저장되는 일기 문서와, API 요청/응답 모델을 함께 둡니다.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict


# 색상 인덱스 → 이름 (0 = 빨강이 기본값)
COLOR_NAMES = ["red", "purple", "blue", "green", "yellow"]
DEFAULT_COLOR = 0
MAX_ATTACHMENTS = 5


class EntryDocument(BaseModel):
    """
    사용자/날짜별 일기 문서 (백엔드 저장 형태)

    - text: 본문 (빈 문자열 가능)
    - mood: 기분 스탬프 인덱스, 선택 안 함 = None
    - color: 색상 인덱스 (없으면 0 = red)
    - images: 이미지 접근 URL 목록 (0~5개, 순서 유지, 중복 없음)
    - updatedAt: 마지막 저장 시각 ISO-8601 문자열
    """
    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    mood: Optional[int] = Field(None, ge=0)
    color: int = Field(DEFAULT_COLOR, ge=0, lt=len(COLOR_NAMES))
    images: List[str] = Field(default_factory=list, max_length=MAX_ATTACHMENTS)
    updated_at: Optional[str] = Field(None, alias="updatedAt")

    @field_validator("images")
    @classmethod
    def no_duplicate_images(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("images must not contain duplicate URLs")
        return v

    def to_document(self) -> dict:
        """백엔드에 저장할 dict (키: text, mood, color, images, updatedAt)"""
        return self.model_dump(by_alias=True)


class LoginInfo(BaseModel):
    """ 인증 성공 시 백엔드가 돌려주는 사용자 정보 """
    user_id: str
    identifier: str


class LoginIn(BaseModel):
    """ /auth/login 입력 모델 """
    identifier: str
    secret: str


class LoginOut(BaseModel):
    user_id: str
    token: str  # 이후 요청의 X-Session-Token 헤더 값


class EditIn(BaseModel):
    """
    PATCH /editor 입력 모델
    - 보낸 필드만 반영합니다. mood 를 명시적으로 null 로 보내면 기분 선택이 해제됩니다.
    """
    text: Optional[str] = None
    mood: Optional[int] = Field(None, ge=0)
    color: Optional[int] = Field(None, ge=0, lt=len(COLOR_NAMES))


class AttachmentOut(BaseModel):
    kind: str                       # 'persisted' | 'pending'
    url: Optional[str] = None       # persisted 만
    filename: Optional[str] = None  # pending 만
    size_bytes: Optional[int] = None


class EditorState(BaseModel):
    """ 편집 세션의 현재 상태 (프레젠테이션 계층용) """
    state: str
    date: Optional[str] = None
    has_entry: bool = False
    text: str = ""
    mood: Optional[int] = None
    color: int = DEFAULT_COLOR
    attachments: List[AttachmentOut] = Field(default_factory=list)
    updated_at: Optional[str] = None


class AddAttachmentsOut(BaseModel):
    """
    POST /editor/attachments 응답
    - rejected > 0 이면 최대 장수를 넘겨 일부가 추가되지 않은 것입니다.
    """
    admitted: int
    rejected: int
    count: int
    message: Optional[str] = None


class CalendarDay(BaseModel):
    date: str                     # YYYY-MM-DD
    day: int
    other_month: bool = False     # 앞/뒤 달을 채우는 칸
    today: bool = False
    color: Optional[int] = None   # 일기가 없으면 None


class CalendarMonth(BaseModel):
    """
    월 캘린더 (일요일 시작, 6주 = 42칸)
    - colors: 일기가 있는 날짜 → 색상 인덱스
    """
    year: int
    month: int
    colors: Dict[str, int]
    days: List[CalendarDay]


class EntryChangeOut(BaseModel):
    """
    저장/삭제 응답
    - 캘린더를 다시 그릴 수 있도록 해당 월 캘린더를 함께 돌려줍니다.
    """
    date: str
    editor: EditorState
    calendar: CalendarMonth
