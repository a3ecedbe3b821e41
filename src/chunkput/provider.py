"""Contract with the service that issues presigned URLs.

chunkput does not sign URLs itself.  A *URL provider* (usually an
application endpoint that holds storage credentials) receives a
:class:`PresignRequest` and answers with a
:class:`~chunkput.models.PresignedUrls`.  Any async callable with that
shape satisfies :class:`UrlProvider` and can be passed straight to
:meth:`PresignedUploader.multipart_upload`.

The request asks for one part more than the uncompressed estimate, since
compressing already-compressed data can grow the stream.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from chunkput.config import (
    DEFAULT_PROVIDER_CHUNK_SIZE,
    DEFAULT_URL_EXPIRY_SECONDS,
    MAX_PARTS,
)
from chunkput.errors import PresignRequestError
from chunkput.models import PresignedUrls
from chunkput.utils.chunk import slack_part_count


@dataclass(frozen=True)
class PresignRequest:
    """What to ask a URL provider for.

    Attributes
    ----------
    part_count:
        Number of part URLs wanted (``1`` for a single-request upload).
    bucket:
        Target bucket.
    key:
        Object name inside *folder*.
    folder:
        Optional key prefix.
    content_type:
        Content type the URLs are signed for.
    content_encoding:
        Content encoding the URLs are signed for; ``None`` for none.
    expires_in:
        URL lifetime in seconds.
    """

    part_count: int
    bucket: str
    key: str
    folder: str | None = None
    content_type: str = "application/octet-stream"
    content_encoding: str | None = "gzip"
    expires_in: int = DEFAULT_URL_EXPIRY_SECONDS

    def __post_init__(self) -> None:
        if self.part_count < 1:
            raise PresignRequestError(
                message=f"part_count must be >= 1, got {self.part_count}",
                context={"part_count": self.part_count, "max_parts": MAX_PARTS},
            )
        if self.part_count > MAX_PARTS:
            raise PresignRequestError(
                message=f"Cannot allow parts > {MAX_PARTS}",
                context={"part_count": self.part_count, "max_parts": MAX_PARTS},
            )

    @property
    def object_key(self) -> str:
        if self.folder:
            return f"{self.folder}/{self.key}"
        return self.key

    @property
    def is_multipart(self) -> bool:
        return self.part_count > 1

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "bucket": self.bucket,
            "key": self.object_key,
            "part_count": self.part_count,
            "content_type": self.content_type,
            "expires_in": self.expires_in,
        }
        if self.content_encoding is not None:
            payload["content_encoding"] = self.content_encoding
        return payload

    @classmethod
    def for_file(
        cls,
        file_size: int,
        bucket: str,
        key: str,
        *,
        chunk_size: int = DEFAULT_PROVIDER_CHUNK_SIZE,
        multipart: bool = True,
        folder: str | None = None,
        content_type: str = "application/octet-stream",
        content_encoding: str | None = "gzip",
        expires_in: int = DEFAULT_URL_EXPIRY_SECONDS,
    ) -> PresignRequest:
        """Build the request for uploading *file_size* bytes.

        Multipart requests ask for ``ceil(file_size / chunk_size) + 1``
        parts.

        Raises
        ------
        PresignRequestError
            If more than :data:`~chunkput.config.MAX_PARTS` parts would be
            needed.
        """
        part_count = slack_part_count(file_size, chunk_size) if multipart else 1
        return cls(
            part_count=part_count,
            bucket=bucket,
            key=key,
            folder=folder,
            content_type=content_type,
            content_encoding=content_encoding,
            expires_in=expires_in,
        )


@runtime_checkable
class UrlProvider(Protocol):
    """Anything that turns a :class:`PresignRequest` into presigned URLs."""

    async def __call__(self, request: PresignRequest) -> PresignedUrls:
        ...
