from io import BytesIO

import numpy as np
from PIL import Image
import pytest

from snaperase import config, pipeline
from snaperase.config import IMAGENET_MEAN, IMAGENET_STD, ModelProfile


@pytest.fixture(autouse=True)
def _reset_caches():
    config.get_settings.cache_clear()
    pipeline.get_background_remover.cache_clear()
    yield
    config.get_settings.cache_clear()
    pipeline.get_background_remover.cache_clear()


@pytest.fixture
def u2net_profile():
    return config.resolve_model_profile(config.Settings(model_family="u2net"))


@pytest.fixture
def small_profile():
    return ModelProfile(name="test", input_side=16, mean=IMAGENET_MEAN, std=IMAGENET_STD)


@pytest.fixture
def red_image():
    return Image.new("RGB", (640, 480), (255, 0, 0))


@pytest.fixture
def noisy_image():
    rng = np.random.default_rng(1234)
    return Image.fromarray(rng.integers(0, 256, size=(37, 53, 3), dtype=np.uint8))


@pytest.fixture
def png_bytes(noisy_image):
    buf = BytesIO()
    noisy_image.save(buf, format="PNG")
    return buf.getvalue()
