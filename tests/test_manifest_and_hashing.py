"""环节二：测试内容摘要与优化记录的创建、读取、写回。"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path

import pytest

from asset_optimizer.core.exceptions import AssetReadError, ManifestError
from asset_optimizer.core.hashing import calculate_hash
from asset_optimizer.core.manifest import load_manifest, manifest_path, read_manifest, save_manifest


def test_hash_is_deterministic_and_content_based(tmp_path: Path) -> None:
    first = tmp_path / "first.png"
    second = tmp_path / "second.png"
    first.write_bytes(b"same bytes")
    second.write_bytes(b"same bytes")

    digest = calculate_hash(first)

    assert digest == calculate_hash(first)
    assert digest == calculate_hash(second)
    assert len(digest) == 64
    assert digest == hashlib.sha256(b"same bytes").hexdigest()

    second.write_bytes(b"other bytes")
    assert calculate_hash(second) != digest


def test_hash_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(AssetReadError):
        calculate_hash(tmp_path / "missing.png")

    with pytest.raises(OSError):
        calculate_hash(tmp_path)


def test_load_creates_manifest_once(tmp_path: Path) -> None:
    created: list[Path] = []

    handle, record = load_manifest(tmp_path, on_created=created.append)

    assert record == {}
    assert handle.path == tmp_path / ".expo-shared" / "assets.json"
    assert json.loads(handle.path.read_text()) == {}
    assert created == [handle.path]

    load_manifest(tmp_path, on_created=created.append)
    assert len(created) == 1


def test_save_then_load_round_trip(tmp_path: Path) -> None:
    handle, record = load_manifest(tmp_path)
    record.update({"a" * 64: True, "b" * 64: True, "c" * 64: False})

    save_manifest(handle, record)
    _, loaded = load_manifest(tmp_path)

    assert loaded == record
    assert not list(handle.path.parent.glob("*.tmp"))
    assert handle.path.read_text().endswith("\n")


def test_corrupt_manifest_is_fatal_and_untouched(tmp_path: Path) -> None:
    path = manifest_path(tmp_path)
    path.parent.mkdir()
    path.write_text('{"abc": true,')

    with pytest.raises(ManifestError):
        load_manifest(tmp_path)
    with pytest.raises(ManifestError):
        read_manifest(tmp_path)

    assert path.read_text() == '{"abc": true,'


@pytest.mark.parametrize("payload", ["[]", '{"abc": "yes"}', "null"])
def test_manifest_with_wrong_shape_is_rejected(tmp_path: Path, payload: str) -> None:
    path = manifest_path(tmp_path)
    path.parent.mkdir()
    path.write_text(payload)

    with pytest.raises(ManifestError):
        load_manifest(tmp_path)


def test_read_manifest_does_not_create_anything(tmp_path: Path) -> None:
    assert read_manifest(tmp_path) is None
    assert not (tmp_path / ".expo-shared").exists()


def test_manifest_directory_creation_failure(tmp_path: Path) -> None:
    (tmp_path / ".expo-shared").write_text("a file, not a directory")

    with pytest.raises(ManifestError):
        load_manifest(tmp_path)
