import io
import os
import stat
import sys
from dataclasses import dataclass
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from caption_burner.config import Settings
from caption_burner.main import create_app
from caption_burner.services import (
    CaptionPipeline,
    CaptionWriter,
    CombinePipeline,
    PathResolver,
    Transcoder,
)

# Records its argv, then writes an output file: the manifest contents for
# concat runs, a marker line for caption runs.
FAKE_FFMPEG = """#!/bin/sh
echo "$*" >> "{log}"
echo start >> "{log}.events"
sleep {delay}
prev=""
input=""
for arg in "$@"; do
  if [ "$prev" = "-i" ]; then input="$arg"; fi
  prev="$arg"
done
output="$arg"
case "$*" in
  *"-f concat"*) cat "$input" > "$output" ;;
  *) printf 'captioned:%s\\n' "$input" > "$output" ;;
esac
echo end >> "{log}.events"
"""

FAILING_FFMPEG = """#!/bin/sh
echo "$*" >> "{log}"
echo "Input #0, mov,mp4,m4a: from '$3'" >&2
echo "{root}/clip.mp4: Invalid data found when processing input" >&2
exit 1
"""

HANGING_FFMPEG = """#!/bin/sh
echo "$*" >> "{log}"
echo $$ > "{log}.pid"
exec sleep 30
"""

requires_posix_shell = pytest.mark.skipif(
    sys.platform.startswith("win"), reason="fake ffmpeg is a POSIX shell script"
)


@dataclass
class FakeFfmpeg:
    path: Path
    log: Path

    def calls(self) -> list[str]:
        if not self.log.exists():
            return []
        return [line for line in self.log.read_text().splitlines() if line]

    def events(self) -> list[str]:
        """Start/end markers of every run, in the order they happened."""
        events = Path(f"{self.log}.events")
        if not events.exists():
            return []
        return events.read_text().split()

    def pid(self) -> int | None:
        """PID of the last hanging run, once it has started."""
        pid_file = Path(f"{self.log}.pid")
        if not pid_file.exists() or not pid_file.read_text().strip():
            return None
        return int(pid_file.read_text())


class BytesUpload:
    """Minimal async-readable upload used by pipeline tests."""

    def __init__(self, data: bytes):
        self._buffer = io.BytesIO(data)

    async def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)


def _write_script(path: Path, content: str) -> Path:
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def storage_dir(tmp_path) -> Path:
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture
def make_ffmpeg(tmp_path, storage_dir):
    """Factory for fake ffmpeg executables."""

    def factory(delay: float = 0, failing: bool = False, hanging: bool = False) -> FakeFfmpeg:
        if hanging:
            name, template = "ffmpeg-hang", HANGING_FFMPEG
        elif failing:
            name, template = "ffmpeg-fail", FAILING_FFMPEG
        else:
            name, template = f"ffmpeg-{str(delay).replace('.', '_')}", FAKE_FFMPEG
        log = tmp_path / f"{name}.log"
        script = template.format(log=log, delay=delay, root=storage_dir.resolve().as_posix())
        return FakeFfmpeg(path=_write_script(tmp_path / name, script), log=log)

    return factory


@pytest.fixture
def fake_ffmpeg(make_ffmpeg) -> FakeFfmpeg:
    return make_ffmpeg()


@pytest.fixture
def make_settings(tmp_path, storage_dir, fake_ffmpeg):
    def factory(**overrides) -> Settings:
        values = {
            "storage_dir": storage_dir,
            "config_dir": tmp_path / "config",
            "ffmpeg_binary": str(fake_ffmpeg.path),
            "ffprobe_binary": str(tmp_path / "missing-ffprobe"),
            "max_concurrent_jobs": 4,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return factory


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def resolver(storage_dir) -> PathResolver:
    return PathResolver(storage_dir)


@pytest.fixture
def transcoder(settings, resolver) -> Transcoder:
    return Transcoder(settings, resolver)


@pytest.fixture
def caption_pipeline(settings, resolver, transcoder) -> CaptionPipeline:
    return CaptionPipeline(settings, resolver, CaptionWriter(), transcoder)


@pytest.fixture
def combine_pipeline(resolver, transcoder) -> CombinePipeline:
    return CombinePipeline(resolver, transcoder)


@pytest.fixture
def store_video(storage_dir):
    """Create a stored video file and return its name."""

    def factory(name: str, content: bytes = b"video-bytes") -> str:
        (storage_dir / name).write_bytes(content)
        return name

    return factory


@pytest.fixture
def make_client(make_settings):
    clients = []

    def factory(**overrides) -> TestClient:
        app = create_app(make_settings(**overrides), configure_logging=False)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # Keep a developer's environment from leaking into Settings
    for key in list(os.environ):
        if key in {"PORT", "HOST", "STORAGE_DIR", "CONFIG_DIR", "PUBLIC_BASE_URL"}:
            monkeypatch.delenv(key, raising=False)
