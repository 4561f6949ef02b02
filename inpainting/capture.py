"""
Frame acquisition for the inpainting graph driver.

Opens either a video file or the default camera and yields RGB frames
in the orientation the graph expects:
- camera frames are mirrored horizontally (selfie view)
- empty camera reads are skipped, an empty file read ends the stream
"""

import cv2
import numpy as np
import logging
from typing import Iterator

from .config import Config
from .exceptions import CaptureError

logger = logging.getLogger(__name__)


def prepare_frame(raw_frame: np.ndarray, mirror: bool) -> np.ndarray:
    """Convert a BGR capture to RGB, flipping horizontally when ``mirror`` is set."""
    frame = cv2.cvtColor(raw_frame, cv2.COLOR_BGR2RGB)
    if mirror:
        frame = cv2.flip(frame, 1)
    return frame


class FrameSource:
    """Owns the capture device for the duration of a run."""

    def __init__(self, config: Config):
        self.config = config
        self.capture = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    @property
    def load_video(self) -> bool:
        return self.config.load_video

    def open(self):
        """Open the video file or camera, raising CaptureError on failure."""
        if self.load_video:
            source = str(self.config.input_video_path)
            logger.info(f"Loading video: {source}")
        else:
            source = self.config.camera_index
            logger.info(f"Opening camera {source}")

        self.capture = cv2.VideoCapture(source)
        if not self.capture.isOpened():
            self.release()
            raise CaptureError(source=source)

    def release(self):
        """Release the capture device."""
        if self.capture is not None:
            self.capture.release()
            self.capture = None

    def configure_for_display(self, width: int, height: int, fps: int):
        """Request a fixed resolution and frame rate from the device."""
        self.capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self.capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        self.capture.set(cv2.CAP_PROP_FPS, fps)

    @property
    def fps(self) -> float:
        """Frame rate reported by the capture device."""
        return self.capture.get(cv2.CAP_PROP_FPS)

    def frames(self) -> Iterator[np.ndarray]:
        """
        Yield RGB frames until the input is exhausted.

        The generator is lazy and cannot be restarted. For camera input it
        only ends when the consumer stops iterating.
        """
        if self.capture is None:
            raise CaptureError("Capture source is not open")

        mirror = not self.load_video
        while True:
            ok, raw_frame = self.capture.read()
            if not ok or raw_frame is None or raw_frame.size == 0:
                if not self.load_video:
                    logger.info("Ignore empty frames from camera.")
                    continue
                logger.info("Empty frame, end of video reached.")
                return

            yield prepare_frame(raw_frame, mirror)
