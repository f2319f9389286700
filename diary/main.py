"""
FastAPI 애플리케이션 엔트리포인트 (일기 API)

인증
- POST   /auth/login                  : 로그인 후 세션 토큰 발급
- POST   /auth/logout                 : 로그아웃 (세션 폐기)

편집 (X-Session-Token 필요)
- GET    /editor                      : 현재 편집 상태
- POST   /editor/today                : 오늘 일기 열기
- POST   /editor/date/{date}          : 특정 날짜 일기 열기
- PATCH  /editor                      : 텍스트/기분/색상 변경
- POST   /editor/mood/{index}         : 기분 스탬프 토글
- POST   /editor/attachments          : 이미지 추가 (최대 5장)
- DELETE /editor/attachments/{index}  : 이미지 제거
- POST   /editor/save                 : 저장
- DELETE /editor/entry                : 일기 삭제

캘린더 (X-Session-Token 필요)
- GET    /calendar/{y}/{m}            : 월별 일기 색상 + 6주 달력
- GET    /calendar/{y}/{m}/{prev|next}: 이전/다음 달

기타
- GET    /v0/b/{bucket}/o/{path}      : 저장된 이미지 (접근 URL)
- GET    /healthz                     : 헬스 체크
- GET    /metrics                     : Prometheus 메트릭
"""

from fastapi import (
    FastAPI,
    UploadFile,
    File,
    Depends,
    HTTPException,
    Request,
)
from fastapi.responses import (
    FileResponse,
    JSONResponse,
    PlainTextResponse,
)

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from functools import wraps
from datetime import date as Date
from typing import List, Literal
import logging

from .auth import SessionRegistry, current_session, current_token
from .attachments import Pending
from .backend import BackendError
from .config import Settings
from .errors import (
    AttachmentUploadError,
    AuthError,
    BackendUnavailable,
    DiaryError,
    EmptyEntryError,
    ImageError,
    IndexOutOfRange,
    InvalidFieldError,
    NoDateSelectedError,
    NoEntryError,
    PermissionDenied,
    SessionBusyError,
    classify,
)
from .images import ImageResizer
from .models import (
    AddAttachmentsOut,
    CalendarMonth,
    EditIn,
    EditorState,
    EntryChangeOut,
    LoginIn,
    LoginOut,
)
from .session import EntryEditorSession
from .storage import LocalBackend
from . import calendar
from .utils import setup_logging

settings = Settings.from_env()

# 로깅 JSON 포맷 세팅
setup_logging(settings.log_level)
log = logging.getLogger("diary")

# Prometheus 메트릭
REQUESTS = Counter("http_requests_total", "Total HTTP requests", ["endpoint"])
LATENCY = Histogram("http_request_latency_seconds", "Request latency", ["endpoint"])
ENTRY_WRITES = Counter("diary_entry_writes_total", "Entry save/delete results", ["op", "outcome"])

# FastAPI 인스턴스
app = FastAPI(title="Diary Service")

# 백엔드와 로그인 세션 목록은 앱 상태에 둡니다. (테스트에서 교체 가능)
app.state.settings = settings
app.state.backend = LocalBackend.from_settings(settings)
app.state.sessions = SessionRegistry()

# 예외 클래스 → HTTP 상태 코드
ERROR_STATUS = [
    (AuthError, 401),
    (PermissionDenied, 403),
    (EmptyEntryError, 422),
    (ImageError, 422),
    (InvalidFieldError, 422),
    (IndexOutOfRange, 404),
    (NoEntryError, 404),
    (NoDateSelectedError, 409),
    (SessionBusyError, 409),
    (AttachmentUploadError, 502),
    (BackendUnavailable, 503),
]


def metric(endpoint: str):
    """
    엔드포인트별 요청 수 / 지연시간 수집용 데코레이터
    """

    def wrapper(func):
        @wraps(func)
        async def inner(*args, **kwargs):
            REQUESTS.labels(endpoint=endpoint).inc()
            with LATENCY.labels(endpoint=endpoint).time():
                return await func(*args, **kwargs)

        return inner

    return wrapper


@app.exception_handler(DiaryError)
async def diary_error_handler(request: Request, exc: DiaryError):
    """
    분류된 예외를 JSON 응답으로 변환합니다.
    - 업로드 실패는 몇 번째 이미지인지(position) 를 함께 돌려줍니다.
    """
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 500)
    body = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, AttachmentUploadError):
        body["position"] = exc.position
        body["cause"] = type(exc.cause).__name__
        if isinstance(exc.cause, PermissionDenied):
            body["detail"] = f"Not allowed to upload image {exc.position}"
    return JSONResponse(status_code=status_code, content=body)


async def _month_for(session: EntryEditorSession, day: Date) -> CalendarMonth:
    colors = await calendar.build_for_month(session.backend, session.user_id, day.year, day.month)
    return calendar.month_summary(day.year, day.month, colors, today=session.clock().date())


# ------------------------
# 인증
# ------------------------


@app.post("/auth/login", response_model=LoginOut)
@metric("login")
async def login(request: Request, body: LoginIn):
    """로그인 후 토큰 발급. 이후 요청은 X-Session-Token 헤더에 담아 보냅니다."""
    backend = request.app.state.backend
    conf = request.app.state.settings
    try:
        user = await backend.authenticate(body.identifier, body.secret)
    except Exception as e:
        raise classify(e) from e

    session = EntryEditorSession(
        backend,
        user.user_id,
        resizer=ImageResizer(max_width=conf.max_image_width),
        max_attachments=conf.max_attachments,
    )
    token = request.app.state.sessions.open(session)
    log.info("login ok", extra={"user_id": user.user_id})
    return LoginOut(user_id=user.user_id, token=token)


@app.post("/auth/logout")
@metric("logout")
async def logout(request: Request, token: str = Depends(current_token)):
    session = request.app.state.sessions.close(token)
    if session is not None:
        await session.backend.deauthenticate(session.user_id)
        log.info("logout", extra={"user_id": session.user_id})
    return {"ok": True}


# ------------------------
# 편집
# ------------------------


@app.get("/editor", response_model=EditorState)
@metric("editor")
async def editor(session: EntryEditorSession = Depends(current_session)):
    return session.snapshot()


@app.post("/editor/today", response_model=EditorState)
@metric("editor_today")
async def editor_today(session: EntryEditorSession = Depends(current_session)):
    """오늘 날짜의 일기를 엽니다. (저장하지 않은 편집 내용은 버려집니다)"""
    return await session.today()


@app.post("/editor/date/{day}", response_model=EditorState)
@metric("editor_date")
async def editor_date(day: Date, session: EntryEditorSession = Depends(current_session)):
    return await session.select_date(day)


@app.patch("/editor", response_model=EditorState)
@metric("editor_edit")
async def editor_edit(body: EditIn, session: EntryEditorSession = Depends(current_session)):
    """보낸 필드만 반영합니다."""
    fields = body.model_fields_set
    if "text" in fields and body.text is not None:
        session.set_text(body.text)
    if "mood" in fields:
        session.set_mood(body.mood)
    if "color" in fields and body.color is not None:
        session.set_color(body.color)
    return session.snapshot()


@app.post("/editor/mood/{index}", response_model=EditorState)
@metric("editor_mood")
async def editor_mood(index: int, session: EntryEditorSession = Depends(current_session)):
    session.toggle_mood(index)
    return session.snapshot()


@app.post("/editor/attachments", response_model=AddAttachmentsOut)
@metric("editor_attach")
async def editor_attach(
    files: List[UploadFile] = File(...),
    session: EntryEditorSession = Depends(current_session),
):
    """
    이미지 파일 추가
    - 최대 장수를 넘는 파일은 오류 대신 rejected 로 보고합니다.
    """
    pending = [Pending(filename=f.filename or "image", content=await f.read()) for f in files]
    result = session.add_files(pending)

    message = None
    if result.rejected:
        message = (
            f"Up to {session.attachments.limit} images can be attached; "
            f"{result.rejected} file(s) were not added"
        )
    return AddAttachmentsOut(
        admitted=result.admitted,
        rejected=result.rejected,
        count=len(session.attachments),
        message=message,
    )


@app.delete("/editor/attachments/{index}", response_model=EditorState)
@metric("editor_detach")
async def editor_detach(index: int, session: EntryEditorSession = Depends(current_session)):
    session.remove_attachment(index)
    return session.snapshot()


@app.post("/editor/save", response_model=EntryChangeOut)
@metric("editor_save")
async def editor_save(session: EntryEditorSession = Depends(current_session)):
    """
    저장 후 해당 월 캘린더를 함께 돌려줍니다.
    - 업로드 실패 시 502 + position(몇 번째 이미지인지)
    """

    def progress(done: int, total: int):
        log.info(f"upload progress {done}/{total}", extra={"user_id": session.user_id, "date": session.date})

    try:
        await session.save(on_progress=progress)
    except DiaryError:
        ENTRY_WRITES.labels(op="save", outcome="error").inc()
        raise
    ENTRY_WRITES.labels(op="save", outcome="ok").inc()

    day = Date.fromisoformat(session.date)
    return EntryChangeOut(
        date=session.date,
        editor=session.snapshot(),
        calendar=await _month_for(session, day),
    )


@app.delete("/editor/entry", response_model=EntryChangeOut)
@metric("editor_delete")
async def editor_delete(session: EntryEditorSession = Depends(current_session)):
    try:
        key = await session.delete()
    except DiaryError:
        ENTRY_WRITES.labels(op="delete", outcome="error").inc()
        raise
    ENTRY_WRITES.labels(op="delete", outcome="ok").inc()

    return EntryChangeOut(
        date=key,
        editor=session.snapshot(),
        calendar=await _month_for(session, Date.fromisoformat(key)),
    )


# ------------------------
# 캘린더
# ------------------------


@app.get("/calendar/{year}/{month}", response_model=CalendarMonth)
@metric("calendar")
async def calendar_month(year: int, month: int, session: EntryEditorSession = Depends(current_session)):
    """월별 일기 색상 + 달력 JSON"""
    if not 1 <= month <= 12:
        raise HTTPException(status_code=422, detail="month must be 1..12")
    return await _month_for(session, Date(year, month, 1))


@app.get("/calendar/{year}/{month}/{direction}", response_model=CalendarMonth)
@metric("calendar_nav")
async def calendar_nav(
    year: int,
    month: int,
    direction: Literal["prev", "next"],
    session: EntryEditorSession = Depends(current_session),
):
    if not 1 <= month <= 12:
        raise HTTPException(status_code=422, detail="month must be 1..12")
    y, m = calendar.shift_month(year, month, -1 if direction == "prev" else 1)
    return await _month_for(session, Date(y, m, 1))


# ------------------------
# 기타
# ------------------------


@app.get("/v0/b/{bucket}/o/{path:path}", name="object_raw")
@metric("object_raw")
async def object_raw(request: Request, bucket: str, path: str):
    """
    접근 URL 로 이미지를 돌려줍니다.
    - FileResponse 가 Content-Type 을 적절히 추론 (jpg, png 등)
    """
    backend = request.app.state.backend
    if bucket != backend.bucket:
        raise HTTPException(status_code=404, detail="bucket not found")
    try:
        target = backend.object_file(path)
    except BackendError:
        target = None
    if target is None:
        raise HTTPException(status_code=404, detail="object not found")
    return FileResponse(target)


@app.get("/healthz", response_class=PlainTextResponse)
@metric("healthz")
async def healthz():
    """헬스 체크 (무인증)"""
    return "ok"


@app.get("/metrics")
async def metrics():
    """Prometheus 메트릭 엔드포인트"""
    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)
