"""
Shared pytest fixtures for the inpainting driver tests.
"""
import cv2
import numpy as np
import pytest

from inpainting.config import Config
from inpainting.graph_runner import GraphRunner


class FakeGraph:
    """
    Stands in for mediapipe.CalculatorGraph.

    Packets are (frame, timestamp) tuples. Every submitted frame immediately
    produces one output per observed stream, like a synchronous graph.
    """

    def __init__(self, fail_after=None, mismatched=False):
        self.observers = {}
        self.started = False
        self.closed_streams = []
        self.done = False
        self.timestamps = []
        self.error = False
        self.fail_after = fail_after
        self.mismatched = mismatched

    def observe_output_stream(self, stream_name, callback):
        self.observers[stream_name] = callback

    def start_run(self):
        self.started = True

    def add_packet_to_input_stream(self, stream, packet):
        frame, timestamp_us = packet
        if self.timestamps and timestamp_us <= self.timestamps[-1]:
            raise ValueError("Timestamp is not strictly increasing")
        self.timestamps.append(timestamp_us)

        if self.fail_after is not None and len(self.timestamps) > self.fail_after:
            self.error = True
            return

        config = Config()
        for name, value in zip(config.output_streams(), make_outputs(frame, self.mismatched)):
            self.observers[name](name, value)

    def has_error(self):
        return self.error

    def close_input_stream(self, stream_name):
        self.closed_streams.append(stream_name)

    def wait_until_done(self):
        self.done = True


def make_outputs(frame, mismatched=False):
    """Composited video, corpus, face and selfie buffers for ``frame``."""
    height, width = frame.shape[:2]
    corpus = np.full((height, width, 3), 255, dtype=np.uint8)

    # Face outline; the flood fill keeps its interior as the face region.
    face = np.zeros((height, width, 3), dtype=np.uint8)
    cv2.rectangle(face, (width // 4, height // 4), (3 * width // 4, 3 * height // 4), (255, 255, 255), 2)

    selfie_height = height + 2 if mismatched else height
    selfie = np.ones((selfie_height, width), dtype=np.float32)
    return frame.copy(), corpus, face, selfie


def fake_graph_factory(fake_graph):
    """Graph factory for InpaintingPipeline that wraps ``fake_graph``."""
    def factory(config):
        return GraphRunner(
            fake_graph,
            config,
            pack=lambda frame, timestamp_us: (frame, timestamp_us),
            unpack=lambda packet: packet,
        )
    return factory


def write_video(path, frame_count, width=64, height=48, fps=10.0):
    """Write a synthetic MJPG video of ``frame_count`` frames."""
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), fps, (width, height))
    assert writer.isOpened()
    for i in range(frame_count):
        frame = np.full((height, width, 3), (i * 7) % 256, dtype=np.uint8)
        writer.write(frame)
    writer.release()
    return path


def count_frames(path):
    """Count decodable frames in a video file."""
    capture = cv2.VideoCapture(str(path))
    count = 0
    while True:
        ok, _ = capture.read()
        if not ok:
            break
        count += 1
    capture.release()
    return count


@pytest.fixture
def fake_graph():
    return FakeGraph()


@pytest.fixture
def short_video(tmp_path):
    return write_video(tmp_path / "input_10.avi", 10)
