"""
Conversions between numpy arrays and MediaPipe packets.
"""

import numpy as np
import mediapipe as mp


def to_image_packet(rgb_frame: np.ndarray, timestamp_us: int):
    """Wrap an RGB uint8 frame into an SRGB ImageFrame packet at ``timestamp_us``."""
    data = np.ascontiguousarray(rgb_frame, dtype=np.uint8)
    packet = mp.packet_creator.create_image_frame(image_format=mp.ImageFormat.SRGB, data=data)
    return packet.at(timestamp_us)


def to_ndarray(packet) -> np.ndarray:
    """Copy the ImageFrame held by ``packet`` into an owned numpy array."""
    image_frame = mp.packet_getter.get_image_frame(packet)
    return np.array(image_frame.numpy_view(), copy=True)
