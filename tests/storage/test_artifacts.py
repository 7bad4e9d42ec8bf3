import os

import pytest

from nlip.core.errors import PayloadError
from nlip.storage.artifacts import decode_base64_content, save_binary_artifact


def test_decode_accepts_data_uri_prefix():
    assert decode_base64_content("data:image/png;base64,aGk=") == b"hi"


def test_decode_rejects_invalid_base64():
    with pytest.raises(PayloadError):
        decode_base64_content("%%%")


def test_save_creates_directory_and_uses_extension(tmp_path):
    base_dir = tmp_path / "nested" / "uploads"

    path = save_binary_artifact(b"data", ".JPEG", str(base_dir))

    assert os.path.dirname(path) == str(base_dir)
    assert path.endswith(".jpeg")
    with open(path, "rb") as f:
        assert f.read() == b"data"


def test_each_save_gets_a_new_filename(tmp_path):
    first = save_binary_artifact(b"a", "png", str(tmp_path))
    second = save_binary_artifact(b"a", "png", str(tmp_path))

    assert first != second
