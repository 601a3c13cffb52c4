import pytest

from caption_burner.exceptions import PathError
from caption_burner.services.path_resolver import PathResolver


def test_resolve_returns_path_inside_root(resolver, storage_dir):
    path = resolver.resolve("output_abc.mp4")

    assert path == storage_dir.resolve() / "output_abc.mp4"
    assert path.parent == resolver.root


@pytest.mark.parametrize(
    "name",
    [
        "../secret.mp4",
        "../../etc/passwd",
        "..",
        ".",
        "nested/clip.mp4",
        "..\\clip.mp4",
        "/etc/passwd",
        "",
        "   ",
        "clip\x00.mp4",
    ],
)
def test_resolve_rejects_unsafe_names(resolver, name):
    with pytest.raises(PathError):
        resolver.resolve(name)


def test_resolve_rejects_symlink_escaping_root(resolver, storage_dir, tmp_path):
    outside = tmp_path / "outside.mp4"
    outside.write_bytes(b"x")
    (storage_dir / "link.mp4").symlink_to(outside)

    with pytest.raises(PathError):
        resolver.resolve("link.mp4")


def test_upload_paths_share_identifier(resolver):
    paths = resolver.upload_paths("abc123")

    assert paths.video.name == "abc123.mp4"
    assert paths.caption.name == "abc123.srt"
    assert paths.output.name == "output_abc123.mp4"
    assert paths.partial.name == ".abc123.part"
    assert {p.parent for p in (paths.video, paths.caption, paths.output, paths.partial)} == {resolver.root}


def test_concat_paths_are_unique_per_job(resolver):
    first = resolver.concat_paths(resolver.new_job_id())
    second = resolver.concat_paths(resolver.new_job_id())

    assert first.manifest != second.manifest
    assert first.output != second.output
    assert first.manifest.name.startswith("concat_")
    assert first.output.name.startswith("combined_")


def test_new_job_id_is_hex_and_unique():
    ids = {PathResolver.new_job_id() for _ in range(100)}

    assert len(ids) == 100
    assert all(len(i) == 32 and int(i, 16) >= 0 for i in ids)


def test_escape_filter_path_escapes_colons_and_quotes(tmp_path):
    caption = tmp_path / "it's:here.srt"

    escaped = PathResolver.escape_filter_path(caption)

    assert escaped.endswith("/it'\\''s\\:here.srt")
    assert escaped.startswith(tmp_path.resolve().as_posix())


def test_scrub_removes_storage_root(resolver):
    text = f"{resolver.root.as_posix()}/clip.mp4: Invalid data"

    scrubbed = resolver.scrub(text)

    assert resolver.root.as_posix() not in scrubbed
    assert scrubbed == "clip.mp4: Invalid data"


def test_ensure_root_creates_directory(tmp_path):
    resolver = PathResolver(tmp_path / "new" / "storage")

    root = resolver.ensure_root()

    assert root.is_dir()
