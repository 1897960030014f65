"""上传文件存储（当前为本地文件系统实现）。

核心业务只持有对象键，字节的接收与落盘由传输层完成。
"""

import logging
from pathlib import Path
from uuid import uuid4

from utp_api.core.config import get_settings

logger = logging.getLogger(__name__)

OBJECT_PREFIX = "uploads"


def file_extension(filename: str) -> str:
    """返回不带点的小写后缀。"""
    return Path(filename).suffix.lower().lstrip(".")


def _resolve(storage_location: str) -> Path:
    """将对象键解析为存储根目录下的路径，拒绝越出根目录的键。"""
    root = Path(get_settings().storage_root).resolve()
    target = root.joinpath(storage_location.lstrip("/")).resolve()
    if not target.is_relative_to(root):
        raise ValueError(f"storage location escapes storage root: {storage_location}")
    return target


def persist_upload(filename: str, content: bytes) -> str:
    """保存上传文件并返回对象键。"""
    # 仅保留文件名部分，避免目录穿越风险。
    safe_name = Path(filename).name or "upload.bin"
    storage_location = f"{OBJECT_PREFIX}/{uuid4().hex}-{safe_name}"

    target = _resolve(storage_location)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)
    return storage_location


def release_stored_file(storage_location: str) -> bool:
    """删除对象键对应的文件，文件不存在时返回 False。"""
    target = _resolve(storage_location)
    if not target.exists():
        return False
    target.unlink()
    return True


def purge_rejected_file(storage_location: str | None) -> None:
    """清理未通过业务校验的已落盘文件，清理失败只记录日志。"""
    if not storage_location:
        return
    try:
        release_stored_file(storage_location)
    except (OSError, ValueError):
        logger.exception("failed to purge rejected upload location=%s", storage_location)
