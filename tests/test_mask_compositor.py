"""
Unit tests for the fixed mask arithmetic.
"""
import numpy as np
import pytest

from inpainting.config import Config
from inpainting.graph_runner import GraphOutputs
from inpainting.mask_compositor import (
    MaskCompositor,
    inpainting_region,
    overlay,
    prepare_face_mask,
    prepare_selfie_mask,
)

from conftest import make_outputs


class TestPrepareFaceMask:

    def test_all_white_input_becomes_all_black(self):
        face = np.full((8, 8, 3), 255, dtype=np.uint8)
        result = prepare_face_mask(face)
        assert result.shape == (8, 8, 3)
        assert not result.any()

    def test_outline_interior_is_isolated(self):
        face = np.zeros((10, 10, 3), dtype=np.uint8)
        face[2, 2:8] = 255
        face[7, 2:8] = 255
        face[2:8, 2] = 255
        face[2:8, 7] = 255

        result = prepare_face_mask(face)

        assert (result[3:7, 3:7] == 255).all()
        assert not result[0, 0].any()
        assert not result[2, 2].any()

    def test_input_is_not_modified(self):
        face = np.zeros((4, 4, 3), dtype=np.uint8)
        prepare_face_mask(face)
        assert not face.any()

    def test_float_probability_face_is_kept(self):
        face = np.zeros((10, 10), dtype=np.float32)
        face[3:7, 3:7] = 0.9

        result = prepare_face_mask(face)

        assert result.dtype == np.uint8
        assert result.shape == (10, 10, 3)
        assert (result[3:7, 3:7] == 255).all()
        assert not result[0, 0].any()
        assert not result[8, 8].any()

    def test_float_face_is_subtracted_from_region(self):
        face = np.zeros((10, 10), dtype=np.float32)
        face[3:7, 3:7] = 0.9
        full = np.full((10, 10, 3), 255, dtype=np.uint8)

        region = inpainting_region(full, full, prepare_face_mask(face))

        assert not region[5, 5].any()
        assert (region[0, 0] == 255).all()

    def test_single_channel_input_is_expanded(self):
        face = np.zeros((4, 4), dtype=np.uint8)
        assert prepare_face_mask(face).shape == (4, 4, 3)


class TestPrepareSelfieMask:

    @pytest.mark.parametrize("probability, expected", [
        (0.0, 0),
        (1.0, 255),
        (0.75, 0),
        (192 / 255, 0),
        (193 / 255, 255),
    ])
    def test_threshold(self, probability, expected):
        selfie = np.full((3, 3), probability, dtype=np.float32)
        result = prepare_selfie_mask(selfie)
        assert result.dtype == np.uint8
        assert result.shape == (3, 3, 3)
        assert (result == expected).all()

    def test_trailing_channel_axis(self):
        selfie = np.ones((2, 2, 1), dtype=np.float32)
        assert (prepare_selfie_mask(selfie) == 255).all()

    def test_custom_threshold(self):
        selfie = np.full((2, 2), 0.5, dtype=np.float32)
        assert (prepare_selfie_mask(selfie, threshold=100) == 255).all()


class TestInpaintingRegion:

    def test_subtraction_saturates_at_zero(self):
        selfie = np.zeros((2, 2, 3), dtype=np.uint8)
        corpus = np.full((2, 2, 3), 255, dtype=np.uint8)
        face = np.full((2, 2, 3), 255, dtype=np.uint8)

        region = inpainting_region(selfie, corpus, face)

        assert region.dtype == np.uint8
        assert not region.any()

    def test_and_then_minus_face(self):
        selfie = np.full((1, 3, 3), 255, dtype=np.uint8)
        corpus = np.array([[[255] * 3, [255] * 3, [0] * 3]], dtype=np.uint8)
        face = np.array([[[0] * 3, [255] * 3, [0] * 3]], dtype=np.uint8)

        region = inpainting_region(selfie, corpus, face)

        assert (region[0, 0] == 255).all()
        assert not region[0, 1].any()
        assert not region[0, 2].any()


class TestOverlay:

    def test_addition_saturates(self):
        frame = np.full((2, 2, 3), 200, dtype=np.uint8)
        region = np.full((2, 2, 3), 255, dtype=np.uint8)
        assert (overlay(frame, region) == 255).all()

    def test_empty_region_keeps_frame(self):
        frame = np.full((2, 2, 3), 42, dtype=np.uint8)
        region = np.zeros((2, 2, 3), dtype=np.uint8)
        assert (overlay(frame, region) == 42).all()


class TestMaskCompositor:

    def _outputs(self, frame):
        video, corpus, face, selfie = make_outputs(frame)
        return GraphOutputs(video, corpus, face, selfie, timestamp_us=1)

    def test_compose_brightens_body_outside_face(self):
        frame = np.full((48, 64, 3), 10, dtype=np.uint8)
        compositor = MaskCompositor(Config())

        result, masks = compositor.compose(self._outputs(frame))

        assert result.shape == (48, 64, 3)
        # Outside the face outline the region is fully on.
        assert (result[0, 0] == 255).all()
        # Inside the face outline nothing is added.
        assert (result[24, 32] == 10).all()
        assert masks.frame_index == 0

    def test_compose_converts_video_to_bgr(self):
        frame = np.zeros((48, 64, 3), dtype=np.uint8)
        frame[..., 0] = 100  # red in RGB
        compositor = MaskCompositor(Config())

        result, _ = compositor.compose(self._outputs(frame))

        assert tuple(result[24, 32]) == (0, 0, 100)

    def test_frame_index_advances(self):
        frame = np.zeros((48, 64, 3), dtype=np.uint8)
        compositor = MaskCompositor(Config())
        compositor.compose(self._outputs(frame))
        _, masks = compositor.compose(self._outputs(frame))
        assert masks.frame_index == 1

    def test_debug_masks_are_written(self, tmp_path):
        frame = np.zeros((48, 64, 3), dtype=np.uint8)
        config = Config(debug_dir=tmp_path, debug_every_n_frames=2)
        compositor = MaskCompositor(config)

        for _ in range(3):
            compositor.compose(self._outputs(frame))

        masks_dir = tmp_path / "masks"
        assert (masks_dir / "frame_0000_inpainting.png").exists()
        assert (masks_dir / "frame_0002_face.png").exists()
        assert (masks_dir / "frame_0000_overlay.jpg").exists()
        assert not (masks_dir / "frame_0001_face.png").exists()

    def test_no_debug_masks_by_default(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        frame = np.zeros((48, 64, 3), dtype=np.uint8)
        MaskCompositor(Config()).compose(self._outputs(frame))
        assert list(tmp_path.iterdir()) == []
