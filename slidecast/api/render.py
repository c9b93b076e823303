"""Slideshow render endpoint.

POST /api/render accepts the media files in playback order, an optional
background audio file and a JSON manifest, and answers with the MP4.
"""

import logging
import mimetypes

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import Response
from pydantic import ValidationError

from slidecast.config import get_settings
from slidecast.exceptions import InvalidMediaError, NoMediaProvided
from slidecast.render.models import BackgroundAudio, MediaItem, MediaKind, is_video_container
from slidecast.render.pipeline import SlideshowPipeline
from slidecast.schemas.render import MediaEntry, RenderManifest
from slidecast.utils.media_info import probe_duration_from_bytes

logger = logging.getLogger(__name__)
router = APIRouter()


def get_pipeline() -> SlideshowPipeline:
    return SlideshowPipeline()


def _get_mime_type(upload: UploadFile) -> str:
    filename = upload.filename or ""
    if upload.content_type and upload.content_type != "application/octet-stream":
        return upload.content_type
    return mimetypes.guess_type(filename)[0] or "application/octet-stream"


def _classify(upload: UploadFile, entry: MediaEntry, index: int) -> MediaKind:
    if entry.kind:
        return MediaKind(entry.kind)
    mime_type = _get_mime_type(upload)
    if mime_type.startswith("image/"):
        return MediaKind.PHOTO
    if mime_type.startswith("video/"):
        return MediaKind.VIDEO
    raise InvalidMediaError(name=upload.filename, mime_type=mime_type, index=index)


async def _read_upload(upload: UploadFile) -> bytes:
    max_bytes = get_settings().max_upload_size_mb * 1024 * 1024
    content = await upload.read()
    if len(content) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large: {upload.filename}",
        )
    return content


def _parse_manifest(raw: str) -> RenderManifest:
    try:
        return RenderManifest.model_validate_json(raw or "{}")
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid manifest: {e}")


@router.post("/render")
async def render_slideshow(
    media: list[UploadFile] = File(...),
    manifest: str = Form("{}"),
    background_audio: UploadFile | None = File(None),
    pipeline: SlideshowPipeline = Depends(get_pipeline),
) -> Response:
    """Render uploaded photos and videos into one MP4.

    Video durations missing from the manifest are probed with ffprobe before
    the compositor runs; a video that cannot be probed fails the request.
    """
    if not media:
        raise NoMediaProvided()

    parsed = _parse_manifest(manifest)
    entries = parsed.media or [MediaEntry() for _ in media]
    if len(entries) != len(media):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Manifest lists {len(entries)} media entries but {len(media)} files were uploaded",
        )

    items: list[MediaItem] = []
    for i, (upload, entry) in enumerate(zip(media, entries)):
        kind = _classify(upload, entry, i)
        content = await _read_upload(upload)
        duration = entry.duration
        if kind is MediaKind.VIDEO and duration is None:
            duration = await probe_duration_from_bytes(content, upload.filename or "")
            logger.info(f"[API] Probed video {i} ({upload.filename}): {duration}s")
        items.append(
            MediaItem(
                kind=kind,
                source_bytes=content,
                name=upload.filename or "",
                native_duration=duration if kind is MediaKind.VIDEO else None,
                display_index=i,
            )
        )

    audio = None
    if background_audio is not None:
        content = await _read_upload(background_audio)
        declared = parsed.background_audio.duration if parsed.background_audio else None
        if not declared:
            declared = await probe_duration_from_bytes(content, background_audio.filename or "")
        audio = BackgroundAudio(
            source_bytes=content,
            name=background_audio.filename or "",
            declared_duration=declared,
            is_video_container=is_video_container(background_audio.filename or "", background_audio.content_type),
        )

    def report(progress: int) -> None:
        logger.debug(f"[API] render progress {progress}%")

    video = await pipeline.create_video(items, audio, parsed.settings.to_settings(), on_progress=report)
    return Response(
        content=video.data,
        media_type=video.mime_type,
        headers={"Content-Disposition": 'attachment; filename="slideshow.mp4"'},
    )
