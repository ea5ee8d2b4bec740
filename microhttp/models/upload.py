"""Models for multipart file uploads."""

import mimetypes
from pathlib import Path
from typing import Any

from pydantic import BaseModel, PrivateAttr, field_validator

DEFAULT_CONTENT_TYPE = "application/octet-stream"
DEFAULT_FIELD_NAME = "file"


class FileContent(BaseModel):
    """One file part of an upload.

    The ``content`` stream belongs to whoever created it: microhttp reads it
    during the upload but does not close it. Streams opened by
    ``FileContent.from_file`` are the exception, those are owned by the
    instance and closed once the upload has been sent.

    Fields:
        file_name: File name reported in the part's Content-Disposition.
        content: Readable binary stream with the file data.
        content_type: MIME type of the part.
        field_name: Form field the part is sent under.
    """

    file_name: str
    content: Any
    content_type: str = DEFAULT_CONTENT_TYPE
    field_name: str = DEFAULT_FIELD_NAME

    _owns_content: bool = PrivateAttr(default=False)

    @field_validator("file_name")
    @classmethod
    def file_name_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("file_name must not be empty")
        return v

    @field_validator("content")
    @classmethod
    def content_readable(cls, v: Any) -> Any:
        if v is None or not callable(getattr(v, "read", None)):
            raise ValueError("content must be a readable binary stream")
        return v

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        *,
        field_name: str = DEFAULT_FIELD_NAME,
        content_type: str | None = None,
    ) -> "FileContent":
        """Open ``path`` for upload.

        Args:
            path: File to read.
            field_name: Form field name for the part.
            content_type: MIME type; guessed from the extension when omitted.

        Returns:
            A FileContent that owns (and will close) the opened stream.
        """
        path = Path(path)
        stream = path.open("rb")
        try:
            item = cls(
                file_name=path.name,
                content=stream,
                content_type=content_type or guess_content_type(path.name),
                field_name=field_name,
            )
        except Exception:
            stream.close()
            raise
        item._owns_content = True
        return item

    @property
    def owns_content(self) -> bool:
        return self._owns_content

    def close(self) -> None:
        """Close the stream if this instance opened it."""
        if self._owns_content:
            self.content.close()

    def __enter__(self) -> "FileContent":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def guess_content_type(file_name: str) -> str:
    content_type, _ = mimetypes.guess_type(file_name)
    return content_type or DEFAULT_CONTENT_TYPE


class FileUploadRequest(BaseModel):
    """A multipart upload: one primary file, optional extras and form fields."""

    file: FileContent
    additional_files: list[FileContent] | None = None
    form_fields: dict[str, str] | None = None

    def all_files(self) -> list[FileContent]:
        return [self.file, *(self.additional_files or [])]

    def close_owned(self) -> None:
        """Close every stream this request's files opened themselves."""
        for item in self.all_files():
            item.close()


__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "FileContent",
    "FileUploadRequest",
    "guess_content_type",
]
