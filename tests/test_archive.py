import os
from datetime import datetime

import pytest

from webcamlaps import FilesystemError, archive_image, archive_path, compute_digest, has_changed

NOW = datetime(2024, 3, 7, 9, 5, 1)


def test_digest_is_base64_sha256():
    # sha256(b"") in base64
    assert compute_digest(b"") == "47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU="


def test_digest_deterministic_and_distinct():
    a, b = b"\xff\xd8frame-1", b"\xff\xd8frame-2"

    assert compute_digest(a) == compute_digest(a)
    assert compute_digest(a) != compute_digest(b)


def test_has_changed():
    d = compute_digest(b"x")

    assert has_changed(d, None)
    assert not has_changed(d, d)
    assert has_changed(d, compute_digest(b"y"))


def test_archive_path_layout():
    p = archive_path(NOW, "images")
    assert p == os.path.join("images", "2024.03.07", "2024.03.07_09-05-01.jpg")


def test_archive_writes_bytes_verbatim(tmp_path, capsys):
    path = archive_image(b"\xff\xd8data", base_dir=str(tmp_path / "images"), now=NOW)

    assert path == str(tmp_path / "images" / "2024.03.07" / "2024.03.07_09-05-01.jpg")
    with open(path, "rb") as f:
        assert f.read() == b"\xff\xd8data"
    assert not os.path.exists(path + ".tmp")
    assert f"Saved image to {path}" in capsys.readouterr().out


def test_archive_same_second_gets_suffix(tmp_path):
    base = str(tmp_path / "images")
    first = archive_image(b"one", base_dir=base, now=NOW)
    second = archive_image(b"two", base_dir=base, now=NOW)
    third = archive_image(b"three", base_dir=base, now=NOW)

    assert second.endswith("2024.03.07_09-05-01_1.jpg")
    assert third.endswith("2024.03.07_09-05-01_2.jpg")
    with open(first, "rb") as f:
        assert f.read() == b"one"


def test_archive_defaults_to_now(workdir):
    path = archive_image(b"img")
    assert path.startswith(os.path.join("images", datetime.now().strftime("%Y.%m.%d")))


def test_archive_failure(tmp_path):
    blocker = tmp_path / "images"
    blocker.write_text("a file where the directory should be")

    with pytest.raises(FilesystemError):
        archive_image(b"img", base_dir=str(blocker), now=NOW)
