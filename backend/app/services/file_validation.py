"""Upload validation presets for drawings and CAD files."""
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from app.services.sanitize import MAX_FILE_NAME_LENGTH, sanitize_file_name

MB = 1024 * 1024


@dataclass(frozen=True)
class FileValidationConfig:
    max_size: int = 50 * MB
    allowed_mime_types: FrozenSet[str] = field(default_factory=frozenset)
    allowed_extensions: FrozenSet[str] = field(default_factory=frozenset)
    max_file_name_length: int = MAX_FILE_NAME_LENGTH


@dataclass(frozen=True)
class FileValidationResult:
    valid: bool
    error: Optional[str] = None
    sanitized_name: Optional[str] = None


DRAWING_CONFIG = FileValidationConfig(
    max_size=50 * MB,
    allowed_mime_types=frozenset(
        {"application/pdf", "image/jpeg", "image/png", "image/gif", "image/webp"}
    ),
    allowed_extensions=frozenset({"pdf", "jpg", "jpeg", "png", "gif", "webp"}),
)

CAD_CONFIG = FileValidationConfig(
    max_size=100 * MB,
    allowed_mime_types=frozenset(
        {
            "application/acad",
            "image/vnd.dwg",
            "image/x-dwg",
            "application/dxf",
            "application/x-dxf",
            # Browsers report most CAD formats generically
            "application/octet-stream",
        }
    ),
    allowed_extensions=frozenset({"dwg", "dxf", "skp", "3ds", "obj", "fbx", "step", "stp"}),
)


def validate_file(
    file_name: str,
    size: int,
    content_type: Optional[str],
    config: FileValidationConfig = DRAWING_CONFIG,
) -> FileValidationResult:
    if size > config.max_size:
        max_mb = round(config.max_size / MB)
        return FileValidationResult(
            valid=False,
            error=f"File is too large ({size / MB:.1f} MB). Maximum size is {max_mb} MB.",
        )
    if size == 0:
        return FileValidationResult(valid=False, error="File is empty.")

    extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    if config.allowed_extensions and extension not in config.allowed_extensions:
        allowed = ", ".join(sorted(config.allowed_extensions))
        return FileValidationResult(
            valid=False,
            error=f"File type .{extension or '?'} is not allowed. Allowed types: {allowed}.",
        )

    # Some clients send no content type at all; the extension check covers them.
    if content_type and config.allowed_mime_types and content_type not in config.allowed_mime_types:
        return FileValidationResult(valid=False, error=f"File type {content_type} is not allowed.")

    if len(file_name) > config.max_file_name_length:
        return FileValidationResult(
            valid=False,
            error=f"File name is too long. Maximum length is {config.max_file_name_length} characters.",
        )

    return FileValidationResult(valid=True, sanitized_name=sanitize_file_name(file_name))
