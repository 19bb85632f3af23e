"""PyAV-based implementation of the Decoder protocol.

Each probe opens its own container and builds its own filter graph, so
nothing native outlives the call. Containers are closed by their context
managers on every path, including errors.
"""

from __future__ import annotations

import io
import logging
import threading
from collections.abc import Sequence
from fractions import Fraction

import av
import av.error
import numpy as np
from av.video.frame import PictureType

from avindex.media.interface import (
    DecodeError,
    EndOfStreamError,
    MissingFileError,
    NotMediaError,
    SeekUnsupportedError,
)
from avindex.media.types import ProbeResult, Thumbnail

logger = logging.getLogger(__name__)

THUMBNAIL_HEIGHT = 540
PATTERN_WIDTH = 960
PATTERN_HEIGHT = 540

# 75% EBU colour bars, left to right
_PATTERN_BARS = (
    (191, 191, 191),
    (191, 191, 0),
    (0, 191, 191),
    (0, 191, 0),
    (191, 0, 191),
    (191, 0, 0),
    (0, 0, 191),
    (0, 0, 0),
)


def format_duration(seconds: int) -> str:
    """Format whole seconds as DD:HH:MM:SS.

    >>> format_duration(30)
    '00:00:00:30'
    """
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    return "%02d:%02d:%02d:%02d" % (days, hours, minutes, secs)


def classify_media(video_codecs: Sequence[str], audio_streams: int, duration_us: int | None) -> str:
    """Return the mediatype tag for a container.

    Args:
        video_codecs: Codec names of the video streams.
        audio_streams: Number of audio streams.
        duration_us: Container duration in microseconds, if known.

    Returns:
        One of "video", "image", "audio" or "none".
    """
    if any(name != "ansi" for name in video_codecs):
        if not duration_us or duration_us <= 0:
            return "image"
        return "video"
    if audio_streams:
        return "audio"
    return "none"


def encode_webp(frame: av.VideoFrame) -> Thumbnail:
    """Encode a single yuv420p frame as a WEBP image."""
    buffer = io.BytesIO()
    with av.open(buffer, "w", format="webp") as output:
        stream = output.add_stream("libwebp")
        stream.width = frame.width
        stream.height = frame.height
        stream.pix_fmt = "yuv420p"
        frame.pts = None
        for packet in stream.encode(frame):
            output.mux(packet)
        # flush the encoder; closing the container writes the trailer
        for packet in stream.encode(None):
            output.mux(packet)
    return Thumbnail(image=buffer.getvalue())


def _scale_frame(stream: av.video.stream.VideoStream, frame: av.VideoFrame) -> av.VideoFrame:
    """Scale a decoded frame to 540 px high with an even width, yuv420p."""
    graph = av.filter.Graph()
    source = graph.add_buffer(template=stream)
    scale = graph.add("scale", f"-2:{THUMBNAIL_HEIGHT}")
    pixel_format = graph.add("format", "yuv420p")
    sink = graph.add("buffersink")
    source.link_to(scale)
    scale.link_to(pixel_format)
    pixel_format.link_to(sink)
    graph.configure()

    graph.push(frame)
    return graph.pull()


class PyAVDecoder:
    """Decoder built on PyAV (FFmpeg libraries).

    Thread-safe: instances hold no per-file state, only the cached test
    pattern.
    """

    def __init__(self) -> None:
        self._pattern: Thumbnail | None = None
        self._pattern_lock = threading.Lock()

    def test_pattern(self) -> Thumbnail:
        """Return the 960x540 colour bar thumbnail, encoded once."""
        with self._pattern_lock:
            if self._pattern is None:
                bars = np.zeros((PATTERN_HEIGHT, PATTERN_WIDTH, 3), dtype=np.uint8)
                width = PATTERN_WIDTH // len(_PATTERN_BARS)
                for index, colour in enumerate(_PATTERN_BARS):
                    bars[:, index * width : (index + 1) * width] = colour
                frame = av.VideoFrame.from_ndarray(bars, format="rgb24")
                self._pattern = encode_webp(frame.reformat(format="yuv420p"))
            return self._pattern

    def probe(
        self, path: str, positions: Sequence[float], want_seek: bool = True
    ) -> ProbeResult:
        """Extract tags and one thumbnail per position.

        Args:
            path: Path to the file.
            positions: Fractions of the duration to sample.
            want_seek: Seek to each position before decoding.

        Returns:
            ProbeResult for the file.

        Raises:
            NotMediaError: If FFmpeg reports invalid data on open.
            MissingFileError: If the file does not exist.
            DecodeError: If opening or decoding fails otherwise.
        """
        with self._open(path) as container:
            tags = {str(key): str(value) for key, value in container.metadata.items()}
            video_codecs = [s.codec_context.name for s in container.streams.video]
            audio_streams = len(container.streams.audio)
            duration_us = container.duration

        mediatype = classify_media(video_codecs, audio_streams, duration_us)
        tags["mediatype"] = mediatype
        duration_seconds = 0
        if duration_us and duration_us > 0:
            duration_seconds = int(duration_us // 1_000_000)
            tags["duration"] = format_duration(duration_seconds)

        if mediatype not in ("video", "image"):
            return ProbeResult(tags=tags, thumbnails=[self.test_pattern()], can_seek=False)

        can_seek = want_seek and mediatype == "video"
        thumbnails = []
        for position in positions:
            target = int(duration_seconds * position) if can_seek else None
            thumbnail, seek_ok = self._thumbnail_at(path, target)
            if not seek_ok:
                can_seek = False
            thumbnails.append(thumbnail)

        return ProbeResult(tags=tags, thumbnails=thumbnails, can_seek=can_seek)

    def _open(self, path: str) -> av.container.InputContainer:
        try:
            return av.open(path)
        except av.error.InvalidDataError as e:
            raise NotMediaError(path, str(e)) from e
        except FileNotFoundError as e:
            raise MissingFileError(path, str(e)) from e
        except av.error.FFmpegError as e:
            raise DecodeError(path, f"Cannot open: {e}") from e

    def _thumbnail_at(self, path: str, target: int | None) -> tuple[Thumbnail, bool]:
        """Produce one thumbnail, falling back to no seek then the pattern.

        Returns:
            The thumbnail and False when a seek was refused.
        """
        if target is not None:
            try:
                return self._extract(path, target), True
            except SeekUnsupportedError:
                logger.debug("Seek unsupported, decoding from start: %s", path)
                seek_ok = False
            except EndOfStreamError:
                logger.debug("No keyframe after seek, decoding from start: %s", path)
                seek_ok = True
        else:
            seek_ok = True

        try:
            return self._extract(path, None), seek_ok
        except EndOfStreamError:
            logger.info("No keyframe found, using test pattern: %s", path)
            return self.test_pattern(), seek_ok

    def _extract(self, path: str, target: int | None) -> Thumbnail:
        """Decode the first I-frame at or after target seconds."""
        with self._open(path) as container:
            stream = container.streams.best("video")
            if stream is None:
                raise EndOfStreamError(path, "No video stream")

            if target is not None:
                offset = int(Fraction(target) / stream.time_base)
                try:
                    container.seek(offset, stream=stream, backward=True, any_frame=False)
                except av.error.FFmpegError as e:
                    raise SeekUnsupportedError(path, str(e)) from e

            try:
                for packet in container.demux(stream):
                    for frame in packet.decode():
                        if frame.pict_type != PictureType.I:
                            continue
                        return encode_webp(_scale_frame(stream, frame))
            except av.error.EOFError as e:
                raise EndOfStreamError(path, str(e)) from e
            except av.error.FFmpegError as e:
                raise DecodeError(path, str(e)) from e

        raise EndOfStreamError(path, "End of stream before keyframe")
