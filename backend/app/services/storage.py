"""Local media storage for uploaded drawing files."""
from pathlib import Path

import structlog

from app.core.config import get_settings

logger = structlog.get_logger()


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def drawing_object_key(project_id: int, item_id: int, revision: str, timestamp: int, file_name: str) -> str:
    return f"drawings/{project_id}/{item_id}/{revision}_{timestamp}_{file_name}"


def save_file(object_key: str, data: bytes) -> str:
    """Write ``data`` under the media root and return its public URL."""
    settings = get_settings()
    target = Path(settings.media_root) / object_key
    ensure_dir(target.parent)
    target.write_bytes(data)
    logger.info("storage.saved", key=object_key, size=len(data))
    return f"{settings.media_base_url.rstrip('/')}/{object_key}"


def delete_file(object_key: str) -> None:
    settings = get_settings()
    target = Path(settings.media_root) / object_key
    try:
        target.unlink()
    except FileNotFoundError:
        return
    logger.info("storage.deleted", key=object_key)
