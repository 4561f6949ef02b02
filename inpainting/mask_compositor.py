"""
Mask composition for the inpainting graph driver.

This module turns the four graph outputs into the displayed frame:
- face mask: flood fill from the top-left corner, then invert
- selfie mask: scale probabilities to 8 bits, expand to 3 channels, binarize
- inpainting region: (selfie AND corpus) minus face, saturating
- final frame: composited video plus inpainting region, saturating

The face mask fill assumes the top-left pixel lies outside every face.
When it does not, the resulting mask is wrong; this is logged, not corrected.
"""

import cv2
import numpy as np
import logging
from dataclasses import dataclass
from typing import Tuple

from .config import Config
from .graph_runner import GraphOutputs

logger = logging.getLogger(__name__)

WHITE = (255, 255, 255)


@dataclass
class MaskSet:
    """Masks computed for one frame, all uint8 HxWx3."""
    face: np.ndarray
    selfie: np.ndarray
    corpus: np.ndarray
    inpainting: np.ndarray

    # Metadata
    frame_index: int


def _as_three_channel(mask: np.ndarray) -> np.ndarray:
    if mask.ndim == 2:
        return cv2.cvtColor(mask, cv2.COLOR_GRAY2RGB)
    if mask.shape[2] == 1:
        return cv2.cvtColor(mask[:, :, 0], cv2.COLOR_GRAY2RGB)
    return mask


def _to_intensity(mask: np.ndarray) -> np.ndarray:
    """Scale float probabilities in [0, 1] to 8 bits; uint8 input passes through."""
    mask = np.asarray(mask)
    if np.issubdtype(mask.dtype, np.floating):
        return np.clip(np.rint(mask * 255.0), 0, 255).astype(np.uint8)
    return mask.astype(np.uint8, copy=False)


def _face_region_from_probabilities(probabilities: np.ndarray) -> np.ndarray:
    """Complement of the background connected to (0, 0) in a float face mask."""
    if probabilities.ndim == 3:
        probabilities = probabilities[:, :, 0]
    intensity = np.ascontiguousarray(_to_intensity(probabilities))
    if intensity[0, 0] != 0:
        logger.debug("Face mask seed pixel is not background; mask may be inverted")

    height, width = intensity.shape
    background = np.zeros((height + 2, width + 2), dtype=np.uint8)
    cv2.floodFill(intensity, background, (0, 0), 255, flags=4 | cv2.FLOODFILL_MASK_ONLY | (255 << 8))
    region = cv2.bitwise_not(background[1:-1, 1:-1])
    return cv2.cvtColor(region, cv2.COLOR_GRAY2RGB)


def prepare_face_mask(face_mask: np.ndarray) -> np.ndarray:
    """
    Flood fill the background from (0, 0) with white, then invert.

    Float probability masks are scaled to 8 bits first; for those the
    result is everything not reached by the fill, so a filled face region
    comes out white.
    """
    face_mask = np.asarray(face_mask)
    if np.issubdtype(face_mask.dtype, np.floating):
        return _face_region_from_probabilities(face_mask)

    mask = np.ascontiguousarray(_as_three_channel(_to_intensity(face_mask))).copy()
    if np.any(mask[0, 0] != 0):
        logger.debug("Face mask seed pixel is not background; mask may be inverted")
    cv2.floodFill(mask, None, (0, 0), WHITE)
    return cv2.bitwise_not(mask)


def prepare_selfie_mask(selfie_mask: np.ndarray, threshold: int = 192) -> np.ndarray:
    """
    Binarize a float selfie probability mask.

    Args:
        selfie_mask: HxW (or HxWx1) probabilities in [0, 1]
        threshold: Intensities strictly above this become 255, the rest 0

    Returns:
        uint8 HxWx3 binary mask
    """
    probabilities = np.asarray(selfie_mask, dtype=np.float32)
    if probabilities.ndim == 3:
        probabilities = probabilities[:, :, 0]
    intensity = _to_intensity(probabilities)
    intensity = cv2.cvtColor(intensity, cv2.COLOR_GRAY2RGB)
    _, binary = cv2.threshold(intensity, threshold, 255, cv2.THRESH_BINARY)
    return binary


def inpainting_region(selfie_mask: np.ndarray, corpus_mask: np.ndarray, face_mask: np.ndarray) -> np.ndarray:
    """(selfie AND corpus) minus face, clamped at zero."""
    region = cv2.bitwise_and(selfie_mask, _as_three_channel(corpus_mask))
    return cv2.subtract(region, face_mask)


def overlay(frame: np.ndarray, region: np.ndarray) -> np.ndarray:
    """Saturating per-pixel addition of ``region`` onto ``frame``."""
    return cv2.add(frame, region)


class MaskCompositor:
    """Applies the fixed mask arithmetic to each set of graph outputs."""

    def __init__(self, config: Config):
        self.config = config
        self.frame_index = 0

    def compose(self, outputs: GraphOutputs) -> Tuple[np.ndarray, MaskSet]:
        """
        Build the display frame for one set of graph outputs.

        Returns:
            (BGR frame ready for display or writing, MaskSet)
        """
        video_bgr = cv2.cvtColor(outputs.video, cv2.COLOR_RGB2BGR)

        face = prepare_face_mask(outputs.face_mask)
        selfie = prepare_selfie_mask(outputs.selfie_mask, self.config.selfie_threshold)
        corpus = _as_three_channel(outputs.corpus_mask)
        region = inpainting_region(selfie, corpus, face)

        mask_set = MaskSet(
            face=face,
            selfie=selfie,
            corpus=corpus,
            inpainting=region,
            frame_index=self.frame_index,
        )

        if self._should_dump(self.frame_index):
            self._save_debug_masks(mask_set, video_bgr)

        self.frame_index += 1
        return overlay(video_bgr, region), mask_set

    def _should_dump(self, frame_index: int) -> bool:
        every = self.config.debug_every_n_frames
        return self.config.debug_dir is not None and every > 0 and frame_index % every == 0

    def _save_debug_masks(self, mask_set: MaskSet, frame: np.ndarray):
        """Save debug snapshots of masks."""
        masks_dir = self.config.debug_dir / "masks"
        masks_dir.mkdir(parents=True, exist_ok=True)

        frame_idx = mask_set.frame_index

        cv2.imwrite(str(masks_dir / f"frame_{frame_idx:04d}_face.png"), mask_set.face)
        cv2.imwrite(str(masks_dir / f"frame_{frame_idx:04d}_selfie.png"), mask_set.selfie)
        cv2.imwrite(str(masks_dir / f"frame_{frame_idx:04d}_corpus.png"), mask_set.corpus)
        cv2.imwrite(str(masks_dir / f"frame_{frame_idx:04d}_inpainting.png"), mask_set.inpainting)

        # Red outline around the inpainting region
        outline = frame.copy()
        region_gray = cv2.cvtColor(mask_set.inpainting, cv2.COLOR_RGB2GRAY)
        contours, _ = cv2.findContours(region_gray, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        cv2.drawContours(outline, contours, -1, (0, 0, 255), 2)
        cv2.imwrite(str(masks_dir / f"frame_{frame_idx:04d}_overlay.jpg"), outline)

        logger.debug(f"Debug masks saved for frame {frame_idx}")
