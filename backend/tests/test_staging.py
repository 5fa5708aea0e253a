import io

import pytest

from teelinks.storage.staging import delete_upload, save_upload


class _FailingReader(io.BytesIO):
    def read(self, size=-1):
        if self.tell() > 0:
            raise OSError(28, "No space left on device")
        return super().read(4)


def test_save_upload_writes_into_given_dir(tmp_path):
    path = save_upload(io.BytesIO(b"image-bytes"), "shot.png", tmp_path)

    assert path.parent == tmp_path.resolve()
    assert path.suffix == ".png"
    assert path.read_bytes() == b"image-bytes"

    delete_upload(path)
    assert not path.exists()


def test_save_upload_removes_partial_file_on_error(tmp_path):
    with pytest.raises(OSError):
        save_upload(_FailingReader(b"0123456789"), "shot.png", tmp_path)

    assert list(tmp_path.iterdir()) == []


def test_delete_upload_ignores_missing(tmp_path):
    delete_upload(tmp_path / "gone.png")
    delete_upload(None)
