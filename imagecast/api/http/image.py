"""
Image publish endpoints.

The publisher POSTs one image per request; the body is either raw image
bytes (``Content-Type: image/*``) or text, normally a ``data:`` URL, that is
forwarded to viewers as is.

Example:
    curl -X POST --data-binary @frame.png -H "Content-Type: image/png" \\
        http://localhost:8000/api/image
"""

import base64

from fastapi import APIRouter, Request, status

from imagecast.constants import RAW_IMAGE_CONTENT_TYPE_PREFIX
from imagecast.dependencies import HubDep
from imagecast.exceptions import InvalidPayloadError, NotFoundError
from imagecast.schemas.errors import HTTPErrorResponse
from imagecast.schemas.image import Image, ImageInfo, PublishAck
from imagecast.utils.error_handler import handle_http_errors

router = APIRouter(prefix="/api/image", tags=["image"])


def _media_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


def _data_url_media_type(text: str) -> str | None:
    """Media type declared by a ``data:<type>[;base64],`` URL, if any."""
    if not text.startswith("data:"):
        return None
    header, sep, _ = text[5:].partition(",")
    if not sep:
        return None
    return _media_type(header) or None


async def read_image(request: Request) -> Image:
    """
    Builds an `Image` from a publish request body.

    Raw image bodies are wrapped into a base64 data URL so viewers can
    display them directly. Other bodies are decoded as UTF-8 text.

    Raises:
        InvalidPayloadError: If a text body is not valid UTF-8.
    """
    body = await request.body()
    media_type = _media_type(request.headers.get("content-type", ""))

    if media_type.startswith(RAW_IMAGE_CONTENT_TYPE_PREFIX):
        if not body:
            return Image(data="", content_type=media_type)
        encoded = base64.b64encode(body).decode("ascii")
        return Image(
            data=f"data:{media_type};base64,{encoded}",
            content_type=media_type,
        )

    try:
        text = body.decode("utf-8").strip()
    except UnicodeDecodeError as e:
        raise InvalidPayloadError(
            "Image payload is not valid UTF-8 text",
            details={"position": e.start},
        )

    return Image(data=text, content_type=_data_url_media_type(text))


@router.post(
    "",
    response_model=PublishAck,
    status_code=status.HTTP_200_OK,
    summary="Publish a new image",
    responses={status.HTTP_400_BAD_REQUEST: {"model": HTTPErrorResponse}},
)
@handle_http_errors
async def publish_image(request: Request, hub: HubDep) -> PublishAck:
    """
    Replace the latest image and broadcast it to all connected viewers.

    Viewers that cannot be reached are dropped; that never fails the
    publish.

    Returns:
        PublishAck with sequence number and delivery counts.

    Raises:
        HTTPException: 400 if the payload is empty or not valid text.
    """
    image = await read_image(request)
    return await hub.publish(image)


@router.get(
    "",
    response_model=ImageInfo,
    summary="Get the latest image",
    responses={status.HTTP_404_NOT_FOUND: {"model": HTTPErrorResponse}},
)
@handle_http_errors
async def get_latest_image(hub: HubDep) -> ImageInfo:
    """
    Return the most recently published image.

    Raises:
        HTTPException: 404 if no image has been published yet.
    """
    image = hub.current_image()
    if image is None:
        raise NotFoundError("No image has been published yet")
    return ImageInfo(sequence=hub.sequence, image=image)
