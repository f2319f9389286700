"""
이미지 리사이즈
- 최대 폭보다 넓은 이미지만 비율을 유지해 줄이고 JPEG(품질 90) 으로 다시 인코딩합니다.
- 폭이 충분히 작으면 원본 바이트를 그대로 돌려줍니다. (재인코딩/화질 손실 없음)
"""

from io import BytesIO

# 이미지 디코딩/인코딩은 Pillow 사용
from PIL import Image, UnidentifiedImageError

from .errors import DecodeError, EncodeError

DEFAULT_MAX_WIDTH = 1024
JPEG_QUALITY = 90


class ImageResizer:
    def __init__(self, max_width: int = DEFAULT_MAX_WIDTH, quality: int = JPEG_QUALITY):
        self.max_width = max_width
        self.quality = quality

    def resize(self, content: bytes, max_width: int = None) -> bytes:
        """
        Parameters
        ----------
        content : bytes
            원본 이미지 바이트
        max_width : int
            최대 폭(px). 생략하면 생성 시 지정한 값

        Returns
        -------
        bytes
            원본 그대로이거나, 리사이즈 후 JPEG 로 인코딩된 바이트

        Raises
        ------
        DecodeError
            이미지로 읽을 수 없거나 픽셀 수가 Pillow 한도를 넘는 경우
        EncodeError
            다시 인코딩한 결과가 비어 있거나 인코딩에 실패한 경우
        """
        max_width = max_width or self.max_width

        try:
            img = Image.open(BytesIO(content))
            img.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise DecodeError(f"cannot decode image: {e}") from e

        with img:
            width, height = img.size
            if width <= max_width:
                return content

            new_height = max(1, round(height * max_width / width))
            out = BytesIO()
            try:
                # JPEG 는 알파 채널을 저장할 수 없으므로 RGB 로 변환
                img.convert("RGB").resize((max_width, new_height), Image.Resampling.LANCZOS).save(
                    out, format="JPEG", quality=self.quality
                )
            except (OSError, ValueError) as e:
                raise EncodeError(f"cannot encode image: {e}") from e

        data = out.getvalue()
        if not data:
            raise EncodeError("encoded image is empty")
        return data

