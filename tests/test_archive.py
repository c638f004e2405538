import os
import struct

import pytest

from conftest import make_tar_gz, make_zip
from mcinstall.archive import (
    crop_pack200_signature,
    extract_tar_gz_flatten,
    extract_zip,
    read_zip_member,
    safe_join,
)
from mcinstall.errors import ExtractionError


def test_crop_pack200_signature():
    payload = b"pack200 payload bytes"
    signature = b"S" * 13
    data = payload + signature + struct.pack('<I', len(signature)) + b"SIGN"

    cropped = crop_pack200_signature(data)

    assert cropped == payload
    assert len(cropped) == len(data) - len(signature) - 8


def test_crop_rejects_oversized_signature():
    with pytest.raises(ExtractionError):
        crop_pack200_signature(b"abc" + struct.pack('<I', 1000) + b"SIGN")
    with pytest.raises(ExtractionError):
        crop_pack200_signature(b"short")


def test_zip_slip_is_rejected_before_writing(tmp_path):
    target = tmp_path / 'natives'
    archive = make_zip({"ok.txt": b"fine", "../../evil.txt": b"evil"})

    with pytest.raises(ExtractionError):
        extract_zip(archive, target)

    assert not (tmp_path / 'evil.txt').exists()
    assert not (target / 'ok.txt').exists()


def test_extract_zip_strips_toplevel_and_meta_inf(tmp_path):
    archive = make_zip({
        "lwjgl/liblwjgl.so": b"so",
        "lwjgl/META-INF/MANIFEST.MF": b"manifest",
    })

    written = extract_zip(archive, tmp_path, strip_toplevel=True, skip_meta_inf=True)

    assert written == [tmp_path.resolve() / 'liblwjgl.so']
    assert not (tmp_path / 'META-INF').exists()


def test_extract_corrupt_zip(tmp_path):
    with pytest.raises(ExtractionError):
        extract_zip(b"not a zip", tmp_path)


def test_read_zip_member():
    archive = make_zip({"version.json": b"{}"})
    assert read_zip_member(archive, "version.json") == b"{}"
    assert read_zip_member(archive, "install_profile.json") is None


def test_safe_join(tmp_path):
    assert safe_join(tmp_path, 'a/b.txt') == tmp_path.resolve() / 'a' / 'b.txt'
    with pytest.raises(ExtractionError):
        safe_join(tmp_path, '../outside')
    with pytest.raises(ExtractionError):
        safe_join(tmp_path, '/etc/passwd')


def test_tar_gz_top_directory_is_flattened(tmp_path):
    data = make_tar_gz([
        ("amazon-corretto-17/bin/java", b"#!java"),
        ("amazon-corretto-17/lib/libjvm.so", b"jvm"),
    ])

    count = extract_tar_gz_flatten(data, tmp_path)

    assert count == 2
    assert (tmp_path / 'bin' / 'java').read_bytes() == b"#!java"
    if os.name != 'nt':
        assert os.access(tmp_path / 'bin' / 'java', os.X_OK)


@pytest.mark.skipif(os.name == 'nt', reason="symlinks need privileges on Windows")
def test_tar_gz_symlinks(tmp_path):
    data = make_tar_gz([
        ("jdk/bin/java", b"java"),
        ("jdk/lib/java-link", "->../bin/java"),
    ])

    extract_tar_gz_flatten(data, tmp_path)

    assert (tmp_path / 'lib' / 'java-link').is_symlink()
    assert (tmp_path / 'lib' / 'java-link').read_bytes() == b"java"


@pytest.mark.skipif(os.name == 'nt', reason="symlinks need privileges on Windows")
def test_tar_gz_escaping_symlink_is_rejected(tmp_path):
    target = tmp_path / 'jdk'
    data = make_tar_gz([
        ("jdk/bin/java", b"java"),
        ("jdk/bin/evil", "->../../../etc/passwd"),
    ])

    with pytest.raises(ExtractionError):
        extract_tar_gz_flatten(data, target)
    assert not (target / 'bin' / 'evil').is_symlink()
