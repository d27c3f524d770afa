from vlab.scripts.setup_db import _parse_args
from vlab.scripts.sync_images import resolve_source, sync_images


def test_sync_copies_tree(tmp_path):
    source = tmp_path / "images"
    (source / "motors").mkdir(parents=True)
    (source / "Capacitor.png").write_bytes(b"png")
    (source / "motors" / "dc.jpg").write_bytes(b"jpg")
    destination = tmp_path / "public" / "images"

    assert sync_images(source, destination) == 2
    assert (destination / "Capacitor.png").read_bytes() == b"png"
    assert (destination / "motors" / "dc.jpg").read_bytes() == b"jpg"


def test_sync_overwrites_existing_files(tmp_path):
    source, destination = tmp_path / "src", tmp_path / "dst"
    source.mkdir()
    destination.mkdir()
    (source / "a.png").write_bytes(b"new")
    (destination / "a.png").write_bytes(b"old")
    sync_images(source, destination)
    assert (destination / "a.png").read_bytes() == b"new"


def test_sync_missing_source_is_not_an_error(tmp_path):
    destination = tmp_path / "dst"
    assert sync_images(tmp_path / "absent", destination) == 0
    assert destination.is_dir()


def test_resolve_source_falls_back(tmp_path):
    fallback = tmp_path / "fallback"
    assert resolve_source(tmp_path / "absent", fallback) == fallback
    assert resolve_source(tmp_path, fallback) == tmp_path


def test_setup_db_flags():
    args = _parse_args(["--purge"])
    assert args.purge and not args.drop and not args.drop_only
    assert _parse_args(["--drop-only"]).drop_only
