import pytest
import pathlib

from coff_test_utils import build_sample_object


@pytest.fixture
def sample_object() -> bytes:
    """Little-endian sample object file contents."""
    return build_sample_object().build()


@pytest.fixture
def sample_object_be() -> bytes:
    """Big-endian encoding of the same sample object."""
    return build_sample_object(">").build()


@pytest.fixture
def sample_object_path(sample_object: bytes, tmp_path: pathlib.Path) -> pathlib.Path:
    """Sample object written to a temporary file."""
    path = tmp_path / "sample.obj"
    path.write_bytes(sample_object)
    return path
