import numpy as np
import pytest

from snaperase.errors import InternalInvariantViolation
from snaperase.postprocessing import clamp_confidence, decode_mask


def test_out_of_range_values_are_clamped():
    raw = np.full((1, 1, 4, 4), -0.3, dtype=np.float32)
    raw[..., :2] = 1.7
    mask = decode_mask(raw, 4, 4)
    assert mask[:, :2].min() == 1.0
    assert mask[:, 2:].max() == 0.0


def test_clamped_mask_stays_in_range_after_resampling():
    rng = np.random.default_rng(7)
    raw = rng.normal(0.5, 1.0, size=(1, 1, 32, 32)).astype(np.float32)
    mask = decode_mask(raw, 97, 61)
    assert mask.min() >= 0.0
    assert mask.max() <= 1.0


def test_all_ones_identity_resolution():
    raw = np.ones((1, 1, 320, 320), dtype=np.float32)
    mask = decode_mask(raw, 320, 320, expected_side=320)
    assert mask.shape == (320, 320)
    assert (mask == 1.0).all()


def test_resamples_to_width_and_height():
    raw = np.ones((1, 1, 320, 320), dtype=np.float32)
    mask = decode_mask(raw, 640, 480)
    assert mask.shape == (480, 640)
    assert mask.dtype == np.float32
    np.testing.assert_allclose(mask, 1.0, atol=1e-6)


def test_bilinear_upscale_produces_soft_edge():
    raw = np.zeros((1, 1, 4, 4), dtype=np.float32)
    raw[..., 2:] = 1.0
    mask = decode_mask(raw, 16, 4)
    row = mask[0]
    assert row[0] < 1e-6
    assert row[-1] > 1.0 - 1e-6
    assert ((row > 0.0) & (row < 1.0)).any()
    assert (np.diff(row) >= -1e-6).all()


def test_nan_becomes_background():
    raw = np.full((1, 1, 2, 2), np.nan, dtype=np.float32)
    assert (clamp_confidence(raw) == 0.0).all()


@pytest.mark.parametrize(
    "shape",
    [(1, 320, 320), (1, 2, 8, 8), (2, 1, 8, 8), (1, 1, 8, 6)],
)
def test_bad_raw_shape_is_internal_error(shape):
    with pytest.raises(InternalInvariantViolation):
        decode_mask(np.zeros(shape, dtype=np.float32), 10, 10)


def test_side_mismatch_is_internal_error():
    with pytest.raises(InternalInvariantViolation):
        decode_mask(np.zeros((1, 1, 8, 8), dtype=np.float32), 10, 10, expected_side=320)


def test_empty_target_is_internal_error():
    with pytest.raises(InternalInvariantViolation):
        decode_mask(np.zeros((1, 1, 8, 8), dtype=np.float32), 0, 10)
