from datetime import datetime, timezone

from pydantic import BaseModel, Field, computed_field


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Image(BaseModel):  # type: ignore[misc]
    """
    A published image as pushed to viewers.

    `data` is sent verbatim as a WebSocket text frame, normally a
    ``data:image/...;base64,...`` URL that the viewer page assigns to an
    ``<img>`` element. The model is immutable, a publish always replaces the
    whole value.
    """

    model_config = {"frozen": True}

    data: str
    content_type: str | None = None
    published_at: datetime = Field(default_factory=_utc_now)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def size(self) -> int:
        """Payload size in bytes once encoded for the wire."""
        return len(self.data.encode("utf-8"))

    @property
    def is_empty(self) -> bool:
        return not self.data.strip()


class PublishAck(BaseModel):  # type: ignore[misc]
    """Acknowledgment returned for every accepted publish."""

    sequence: int = Field(ge=1)
    delivered: int = Field(ge=0)
    pruned: int = Field(ge=0)
    published_at: datetime


class ImageInfo(BaseModel):  # type: ignore[misc]
    """Latest image together with its publish sequence number."""

    sequence: int = Field(ge=1)
    image: Image
