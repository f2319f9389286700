"""
캘린더(월별 요약) 관련 로직
- 특정 연/월에 일기가 있는 날짜와 그 색상을 백엔드 조회 1회로 계산합니다.
- 결과는 스냅샷이며, 캘린더를 그릴 때마다(월 이동, 저장/삭제 후 포함) 다시 호출합니다.
"""

from datetime import date as Date, timedelta
from typing import Dict, Optional, Tuple

from .backend import Backend
from .errors import classify
from .models import DEFAULT_COLOR, CalendarDay, CalendarMonth

GRID_CELLS = 42  # 6주


def month_range(year: int, month: int) -> Tuple[str, str]:
    """
    월 조회 범위 (날짜 키 문자열 비교)

    주의: 끝값은 달의 실제 길이와 상관없이 항상 '-31' 입니다.
    유효하지 않은 날짜 키(예: 2024-04-31)는 절대 저장되지 않으므로 문제가 없습니다.
    """
    prefix = f"{year:04d}-{month:02d}"
    return f"{prefix}-01", f"{prefix}-31"


async def build_for_month(backend: Backend, user_id: str, year: int, month: int) -> Dict[str, int]:
    """
    월별 일기 색상 맵을 만듭니다.

    Parameters
    ----------
    backend : Backend
        query_documents_by_date_range 를 제공하는 백엔드
    user_id : str
        로그인 사용자 ID
    year : int
        대상 연도
    month : int
        대상 월(1~12)

    Returns
    -------
    Dict[str, int]
        'YYYY-MM-DD' → 색상 인덱스. 일기가 없는 날짜는 키가 없습니다.
    """
    start, end = month_range(year, month)
    try:
        docs = await backend.query_documents_by_date_range(user_id, start, end)
    except Exception as e:
        raise classify(e) from e

    return {
        key: doc.color if doc.color is not None else DEFAULT_COLOR
        for key, doc in sorted(docs.items())
    }


def shift_month(year: int, month: int, direction: int) -> Tuple[int, int]:
    """월 이동 (direction: -1 = 이전 달, 1 = 다음 달). 연도 경계를 넘깁니다."""
    index = year * 12 + (month - 1) + direction
    return index // 12, index % 12 + 1


def month_summary(
    year: int, month: int, colors: Dict[str, int], today: Optional[Date] = None
) -> CalendarMonth:
    """
    일요일 시작 6주(42칸) 달력을 만듭니다.
    - 앞/뒤 칸은 이전/다음 달 날짜로 채우고 other_month=True 로 표시합니다.
    """
    first = Date(year, month, 1)
    # date.weekday(): 월=0 ... 일=6 → 일요일 시작 오프셋
    start = first - timedelta(days=(first.weekday() + 1) % 7)

    days = []
    for i in range(GRID_CELLS):
        d = start + timedelta(days=i)
        key = d.isoformat()
        days.append(
            CalendarDay(
                date=key,
                day=d.day,
                other_month=(d.month != month),
                today=(d == today),
                color=colors.get(key),
            )
        )

    return CalendarMonth(year=year, month=month, colors=colors, days=days)
