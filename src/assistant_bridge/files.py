"""File references attached to assistant threads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "bmp", "tiff"})
RETRIEVAL_EXTENSIONS = frozenset(
    {
        "c", "cs", "cpp", "doc", "docx", "html", "java", "json", "md", "pdf",
        "php", "pptx", "py", "rb", "tex", "txt", "css", "js", "sh", "ts",
    }
)


def file_extension(filename: str) -> str:
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


@dataclass(frozen=True, slots=True)
class FileRef:
    """A file already uploaded to the assistant provider."""

    remote_file_id: str
    filename: str
    extension: str
    is_image_capable: bool
    is_document_retrievable: bool

    @classmethod
    def from_filename(
        cls,
        remote_file_id: str,
        filename: str,
        *,
        extension: str | None = None,
        vision: bool | None = None,
        retrieval: bool | None = None,
    ) -> "FileRef":
        """Derive capability flags from the extension unless given explicitly."""

        if extension is None:
            extension = file_extension(filename)
        ext = extension.lower().lstrip(".")
        return cls(
            remote_file_id=remote_file_id,
            filename=filename,
            extension=ext,
            is_image_capable=ext in IMAGE_EXTENSIONS if vision is None else vision,
            is_document_retrievable=ext in RETRIEVAL_EXTENSIONS if retrieval is None else retrieval,
        )

    @property
    def attachment_tool(self) -> str:
        return "file_search" if self.is_document_retrievable else "code_interpreter"

    def to_payload(self) -> dict[str, Any]:
        return {
            "fileId": self.remote_file_id,
            "filename": self.filename,
            "extension": self.extension,
            "vision": self.is_image_capable,
            "retrieval": self.is_document_retrievable,
        }


def normalize_file_input(value: str | Mapping[str, Any] | FileRef) -> FileRef:
    """Turn a raw file id or a descriptor into a ``FileRef``.

    A bare id carries no filename, so both capability flags come out false and
    the file is attached for the code interpreter.
    """

    if isinstance(value, FileRef):
        return value
    if isinstance(value, str):
        return FileRef.from_filename(value, value, extension="")
    file_id = value.get("fileId") or value.get("file_id")
    if not file_id:
        raise ValueError("File descriptor is missing 'fileId'.")
    return FileRef.from_filename(
        str(file_id),
        str(value.get("filename") or file_id),
        extension=value.get("extension"),
        vision=value.get("vision"),
        retrieval=value.get("retrieval"),
    )


def normalize_file_inputs(values: Iterable[str | Mapping[str, Any] | FileRef] | None) -> list[FileRef]:
    return [normalize_file_input(value) for value in values or ()]
