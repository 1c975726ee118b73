"""文章内容摘要，仅用于判断是否需要写入."""

import hashlib


def content_hash(content: str | None) -> str:
    """返回内容的 MD5 十六进制摘要（32 位），None 视为空串."""
    return hashlib.md5((content or "").encode("utf-8")).hexdigest()
