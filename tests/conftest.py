"""
Shared fixtures.
"""
import pytest

from tests.helpers import make_pdf, noise_image


@pytest.fixture
def noise_pages():
    return [noise_image(seed=1), noise_image(seed=2)]


@pytest.fixture
def sample_pdf():
    return make_pdf([
        (200, 300, (220, 30, 30)),
        (300, 200, (30, 200, 30)),
        (250, 250, (30, 30, 220)),
    ])
