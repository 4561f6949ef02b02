"""
The frame loop of the inpainting graph driver.

Each iteration captures a frame, submits it to the graph, waits for the
four outputs, composes the inpainting overlay and hands the result to the
display window or the video writer.
"""

import json
import logging
import time
from contextlib import ExitStack
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Optional

from .capture import FrameSource
from .config import Config
from .graph_runner import GraphRunner
from .mask_compositor import MaskCompositor
from .sinks import open_sink

logger = logging.getLogger(__name__)

END_OF_STREAM = "end_of_stream"
STREAM_CLOSED = "stream_closed"


@dataclass
class RunSummary:
    """What happened during one run."""
    frames_submitted: int = 0
    frames_rendered: int = 0
    stop_reason: Optional[str] = None
    elapsed_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class InpaintingPipeline:
    """Runs the capture / graph / compose / output cycle until a stop condition."""

    def __init__(self, config: Config, graph_factory: Optional[Callable[[Config], GraphRunner]] = None):
        self.config = config
        self.graph_factory = graph_factory or GraphRunner.from_config_file
        self.compositor = MaskCompositor(config)

    def run(self) -> RunSummary:
        """
        Execute one complete run.

        Capture, output sink and graph are released on every exit path.
        Shutdown order: writer or window first, then the graph input stream
        is closed and the graph drained, then the capture is released.

        Returns:
            RunSummary of the run
        """
        started = time.perf_counter()
        summary = RunSummary()

        graph = self.graph_factory(self.config)

        with ExitStack() as stack:
            logger.info("Initialize the camera or load the video.")
            source = stack.enter_context(FrameSource(self.config))

            graph.start()
            stack.callback(graph.shutdown)

            sink = open_sink(self.config, source)
            stack.callback(sink.close)

            logger.info("Start grabbing and processing frames.")
            summary.stop_reason = self._loop(source, graph, sink, summary)
            logger.info(f"Shutting down ({summary.stop_reason}).")

        summary.elapsed_seconds = time.perf_counter() - started
        logger.info(f"Rendered {summary.frames_rendered} frames in {summary.elapsed_seconds:.2f}s")

        if self.config.report_path is not None:
            self.write_report(summary)

        return summary

    def _loop(self, source: FrameSource, graph: GraphRunner, sink, summary: RunSummary) -> str:
        for rgb_frame in source.frames():
            timestamp_us = graph.submit(rgb_frame)
            summary.frames_submitted += 1

            # Get the graph result packets, or stop if that fails.
            outputs = graph.retrieve(timestamp_us)
            if outputs is None:
                return STREAM_CLOSED

            frame, _ = self.compositor.compose(outputs)
            summary.frames_rendered += 1

            if sink.show(frame):
                return sink.stop_reason

        return END_OF_STREAM

    def write_report(self, summary: RunSummary):
        """Write a JSON report of the run and the settings it used."""
        report = {
            "config": self.config.to_dict(),
            "summary": summary.to_dict(),
        }

        report_path = self.config.report_path
        report_path.parent.mkdir(parents=True, exist_ok=True)
        with open(report_path, 'w') as f:
            json.dump(report, f, indent=2)

        logger.info(f"Run report saved: {report_path}")
