"""
공용 유틸리티
- JSON 형식의 구조화 로그 포맷터
- 루트 로거 설정 함수
- 파일 크기 표시용 포맷 함수
"""

import logging
import sys
import json
import time

# logger.info(..., extra={...}) 로 넘기면 JSON 필드로 함께 기록되는 키
EXTRA_FIELDS = ("user_id", "date", "path", "position")


class JsonFormatter(logging.Formatter):
    """
    로그 레코드를 JSON 한 줄로 변환합니다.
    - 타임스탬프, 레벨, 로거명, 메시지, 예외정보, 그리고 EXTRA_FIELDS 에 해당하는 값
    """

    def format(self, record: logging.LogRecord) -> str:
        base = {
            # 레코드 생성 시각 기준 (timezone 오프셋 포함)
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z", time.localtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                base[key] = getattr(record, key)

        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)

        # ensure_ascii=False 로 한글이 \uXXXX 로 깨지지 않게 합니다.
        return json.dumps(base, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """
    루트 로거를 JSON 포맷 + stdout 단일 핸들러로 세팅합니다.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers = [handler]


def format_file_size(size: int) -> str:
    """
    바이트 수를 사람이 읽기 쉬운 문자열로 변환합니다.

    >>> format_file_size(0)
    '0 Bytes'
    >>> format_file_size(1536)
    '1.5 KB'
    """
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"
