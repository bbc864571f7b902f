from dataclasses import dataclass

PDF_TYPES = frozenset({"application/pdf"})
IMAGE_TYPES = frozenset({"image/jpeg", "image/png"})
PDF_OR_IMAGE_TYPES = PDF_TYPES | IMAGE_TYPES


@dataclass(frozen=True)
class IncomingFile:
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)
