"""
설정 로딩
- .env(또는 환경변수) 에서 값을 읽어 Settings 를 만듭니다.
- 개발 편의를 위해 기본값을 둡니다. (운영에서는 DIARY_ACCOUNTS 를 반드시 지정하세요)
"""

import os
from pathlib import Path
from typing import Dict

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .images import DEFAULT_MAX_WIDTH
from .models import MAX_ATTACHMENTS


def parse_accounts(raw: str) -> Dict[str, str]:
    """
    'id:secret,id2:secret2' 형식을 dict 로 변환합니다.
    - secret 에 ':' 가 있어도 첫 번째 ':' 기준으로만 나눕니다.
    """
    accounts: Dict[str, str] = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        identifier, sep, secret = pair.partition(":")
        if not sep or not identifier:
            raise ValueError(f"invalid account entry: {pair!r}")
        accounts[identifier.strip()] = secret
    return accounts


class Settings(BaseModel):
    data_dir: Path = Path("data")
    base_url: str = "http://localhost:8000"
    bucket: str = "diary-local"
    accounts: Dict[str, str] = Field(default_factory=dict)
    max_image_width: int = Field(DEFAULT_MAX_WIDTH, gt=0)
    max_attachments: int = Field(MAX_ATTACHMENTS, gt=0, le=MAX_ATTACHMENTS)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            data_dir=Path(os.getenv("DIARY_DATA_DIR", "data")),
            base_url=os.getenv("DIARY_BASE_URL", "http://localhost:8000"),
            bucket=os.getenv("DIARY_BUCKET", "diary-local"),
            accounts=parse_accounts(os.getenv("DIARY_ACCOUNTS", "")),
            max_image_width=int(os.getenv("DIARY_MAX_IMAGE_WIDTH", DEFAULT_MAX_WIDTH)),
            max_attachments=int(os.getenv("DIARY_MAX_ATTACHMENTS", MAX_ATTACHMENTS)),
            log_level=os.getenv("DIARY_LOG_LEVEL", "INFO"),
        )
