"""
Output sinks: an interactive window or a capped video recording.
"""

import cv2
import numpy as np
import logging
from typing import Optional

from .capture import FrameSource
from .config import Config
from .exceptions import WriterError

logger = logging.getLogger(__name__)


def should_stop_on_key(pressed_key: int, no_key_sentinel: int = 255) -> bool:
    """Any key stops the loop, except -1 and the platform's "no key" value."""
    return pressed_key >= 0 and pressed_key != no_key_sentinel


class DisplaySink:
    """Shows each frame in a named window and polls the keyboard."""

    stop_reason = "key_pressed"

    def __init__(self, config: Config):
        self.config = config
        self.window_open = False

    def open(self):
        cv2.namedWindow(self.config.window_name, cv2.WINDOW_AUTOSIZE)
        self.window_open = True

    def show(self, frame: np.ndarray) -> bool:
        """Display ``frame``. Returns True when a key press asks to stop."""
        cv2.imshow(self.config.window_name, frame)
        pressed_key = cv2.waitKey(self.config.key_poll_ms)
        return should_stop_on_key(pressed_key, self.config.no_key_sentinel)

    def close(self):
        if self.window_open:
            cv2.destroyWindow(self.config.window_name)
            self.window_open = False


class RecordingSink:
    """Writes frames to a video file, stopping after a fixed number of frames."""

    stop_reason = "frame_cap"

    def __init__(self, config: Config, fps: float):
        self.config = config
        self.fps = fps
        self.writer = None
        self.frame_count = 0

    def open(self):
        # The writer needs the first frame's size, so it is opened lazily.
        pass

    def _open_writer(self, frame: np.ndarray):
        logger.info("Prepare video writer.")
        fps = self.fps
        if fps is None or fps <= 0:
            logger.warning(f"Capture reported fps {fps}, using {self.config.display_fps}")
            fps = self.config.display_fps

        height, width = frame.shape[:2]
        fourcc = cv2.VideoWriter_fourcc(*self.config.writer_fourcc)
        self.writer = cv2.VideoWriter(str(self.config.output_video_path), fourcc, fps, (width, height))
        if not self.writer.isOpened():
            self.writer = None
            raise WriterError(path=self.config.output_video_path)

    def show(self, frame: np.ndarray) -> bool:
        """Write ``frame``. Returns True once the frame cap is reached."""
        if self.writer is None:
            self._open_writer(frame)

        self.writer.write(frame)
        logger.info(f"Writing frame {self.frame_count}...")
        self.frame_count += 1
        return self.frame_count >= self.config.max_recorded_frames

    def close(self):
        if self.writer is not None:
            self.writer.release()
            self.writer = None


def open_sink(config: Config, source: Optional[FrameSource] = None):
    """Pick the sink for this run and open it."""
    if config.save_video:
        sink = RecordingSink(config, source.fps if source is not None else None)
    else:
        sink = DisplaySink(config)
    sink.open()

    if not config.save_video and source is not None:
        source.configure_for_display(config.display_width, config.display_height, config.display_fps)
    return sink
