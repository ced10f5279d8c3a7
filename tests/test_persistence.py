from __future__ import annotations

from pathlib import Path

import pytest

from vrm_bridge.converter.persistence import AvatarPersister, PersistFailure, sanitize_avatar_name


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("My Avatar!", "My_Avatar_"),
        ("robo-01_final", "robo-01_final"),
        ("../../etc/passwd", "______etc_passwd"),
        ("", "converted"),
        (None, "converted"),
    ],
)
def test_sanitize_avatar_name(name, expected):
    assert sanitize_avatar_name(name) == expected


def test_sanitize_caps_length():
    assert sanitize_avatar_name("x" * 100) == "x" * 64


def test_save_writes_file(tmp_path: Path):
    persister = AvatarPersister(tmp_path / "avatars")

    path = persister.save(b"vrm-bytes", "Robo One")

    assert path.is_absolute()
    assert path.parent == (tmp_path / "avatars").resolve()
    assert path.name.startswith("Robo_One-")
    assert path.suffix == ".vrm"
    assert path.read_bytes() == b"vrm-bytes"


def test_save_failure_raises(tmp_path: Path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied")

    with pytest.raises(PersistFailure):
        AvatarPersister(blocker).save(b"vrm-bytes", "robo")
