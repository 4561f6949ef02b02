"""
Submission and retrieval against the external processing graph.

The graph is driven in strict request/response fashion: one frame goes
in on the input stream, then exactly one packet is taken from each of the
four output streams before the next frame is submitted.
"""

import cv2
import numpy as np
import logging
import queue
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

import mediapipe as mp
from google.protobuf import text_format
from mediapipe.framework import calculator_pb2

from . import packets
from .config import Config
from .exceptions import GraphConfigError, GraphError

logger = logging.getLogger(__name__)

_CLOSED = object()


def _tick_clock_us() -> int:
    return int(cv2.getTickCount() / cv2.getTickFrequency() * 1e6)


class TimestampClock:
    """Microsecond timestamps that never repeat or go backwards."""

    def __init__(self, now_us: Optional[Callable[[], int]] = None):
        self.now_us = now_us or _tick_clock_us
        self.last_us = None

    def next(self) -> int:
        timestamp_us = int(self.now_us())
        if self.last_us is not None and timestamp_us <= self.last_us:
            timestamp_us = self.last_us + 1
        self.last_us = timestamp_us
        return timestamp_us


class OutputStreamPoller:
    """Blocking reader for one output stream, fed by the graph's observer callback."""

    def __init__(self, stream_name: str, stopped: Callable[[], bool], poll_interval: float = 0.1):
        self.stream_name = stream_name
        self.stopped = stopped
        self.poll_interval = poll_interval
        self._queue = queue.Queue()

    def push(self, item):
        self._queue.put(item)

    def close(self):
        self._queue.put(_CLOSED)

    def next(self) -> Optional[np.ndarray]:
        """
        Wait for the next output.

        There is no overall timeout: a graph that never produces output and
        never fails blocks here forever.

        Returns:
            The next array, or None once the stream is closed or the graph failed
        """
        while True:
            try:
                item = self._queue.get(timeout=self.poll_interval)
            except queue.Empty:
                if self.stopped():
                    return None
                continue
            if item is _CLOSED:
                return None
            return item


@dataclass
class GraphOutputs:
    """The four buffers the graph produces for one submitted frame."""
    video: np.ndarray        # RGB uint8, composited frame
    corpus_mask: np.ndarray  # RGB uint8
    face_mask: np.ndarray    # RGB uint8
    selfie_mask: np.ndarray  # float32 probabilities in [0, 1]
    timestamp_us: int

    def check_dimensions(self):
        """Raise GraphError unless every buffer has the same width and height."""
        sizes = {
            "video": self.video.shape[:2],
            "corpus_mask": self.corpus_mask.shape[:2],
            "face_mask": self.face_mask.shape[:2],
            "selfie_mask": self.selfie_mask.shape[:2],
        }
        if len(set(sizes.values())) != 1:
            raise GraphError("Graph outputs differ in size", details=str(sizes))


class GraphRunner:
    """Owns a started graph and its output pollers."""

    def __init__(self, graph, config: Config, pack=None, unpack=None, clock: Optional[TimestampClock] = None):
        self.graph = graph
        self.config = config
        self.pack = pack or packets.to_image_packet
        self.unpack = unpack or packets.to_ndarray
        self.clock = clock or TimestampClock()
        self.running = False
        self.closed = False

        self.pollers: Dict[str, OutputStreamPoller] = {}
        for stream_name in config.output_streams():
            poller = OutputStreamPoller(stream_name, stopped=self._stopped)
            try:
                self.graph.observe_output_stream(stream_name, self._make_observer(poller))
            except (RuntimeError, ValueError) as e:
                raise GraphConfigError(f"Graph has no usable output stream {stream_name}",
                                       path=config.calculator_graph_config_file, details=str(e))
            self.pollers[stream_name] = poller

    @classmethod
    def from_config_file(cls, config: Config) -> "GraphRunner":
        """Read the text-format graph config named in ``config`` and build the graph."""
        graph_config_path = config.calculator_graph_config_file
        if graph_config_path is None:
            raise GraphConfigError("No graph config file given")

        try:
            contents = Path(graph_config_path).read_text()
        except OSError as e:
            raise GraphConfigError("Could not read graph config", path=graph_config_path, details=str(e))
        logger.info(f"Get calculator graph config contents: {contents}")

        try:
            graph_config = text_format.Parse(contents, calculator_pb2.CalculatorGraphConfig())
        except text_format.ParseError as e:
            raise GraphConfigError("Could not parse graph config", path=graph_config_path, details=str(e))

        logger.info("Initialize the calculator graph.")
        try:
            graph = mp.CalculatorGraph(graph_config=graph_config)
        except (RuntimeError, ValueError) as e:
            raise GraphConfigError("Graph initialization failed", path=graph_config_path, details=str(e))

        return cls(graph, config)

    def _make_observer(self, poller: OutputStreamPoller):
        def observer(stream_name, packet):
            poller.push(self.unpack(packet))
        return observer

    def _stopped(self) -> bool:
        if self.closed:
            return True
        has_error = getattr(self.graph, "has_error", None)
        return bool(has_error()) if has_error is not None else False

    def start(self):
        """Start the graph run."""
        logger.info("Start running the calculator graph.")
        try:
            self.graph.start_run()
        except (RuntimeError, ValueError) as e:
            raise GraphError("Could not start the graph", details=str(e))
        self.running = True

    def submit(self, rgb_frame: np.ndarray) -> int:
        """Stamp ``rgb_frame`` and send it on the input stream. Returns the timestamp."""
        timestamp_us = self.clock.next()
        packet = self.pack(rgb_frame, timestamp_us)
        try:
            self.graph.add_packet_to_input_stream(stream=self.config.input_stream, packet=packet)
        except (RuntimeError, ValueError) as e:
            raise GraphError(f"Could not add packet at {timestamp_us}us", details=str(e))
        return timestamp_us

    def retrieve(self, timestamp_us: int = 0) -> Optional[GraphOutputs]:
        """
        Take one output from every stream, in order.

        Returns:
            GraphOutputs, or None if any stream closed or the graph failed
        """
        results = []
        for stream_name, poller in self.pollers.items():
            result = poller.next()
            if result is None:
                logger.info(f"Output stream {stream_name} closed, stopping")
                return None
            results.append(result)

        outputs = GraphOutputs(*results, timestamp_us=timestamp_us)
        outputs.check_dimensions()
        return outputs

    def shutdown(self):
        """Close the input stream and wait for the graph to drain."""
        if not self.running:
            return
        self.running = False
        try:
            self.graph.close_input_stream(self.config.input_stream)
            self.graph.wait_until_done()
        except (RuntimeError, ValueError) as e:
            raise GraphError("Graph did not shut down cleanly", details=str(e))
        finally:
            self.closed = True
            for poller in self.pollers.values():
                poller.close()
