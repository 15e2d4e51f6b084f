import tarfile

import zstandard as zstd

from coastal_obs.exporters.archiver import TarZstdArchiver, remove_files


def read_members(path):
    with open(path, "rb") as fh:
        with zstd.ZstdDecompressor().stream_reader(fh) as reader:
            with tarfile.open(fileobj=reader, mode="r|") as tar:
                return {member.name: tar.extractfile(member).read() for member in tar}


def make_files(directory, count=3):
    directory.mkdir(parents=True, exist_ok=True)
    files = []
    for hour in range(count):
        path = directory / f"stations_20240305T{hour:02d}Z.jsonl"
        path.write_text(f'{{"station_id":"A","hour":{hour}}}\n')
        files.append(path)
    return files


def test_bundle_contains_basenames(tmp_path):
    files = make_files(tmp_path / "data" / "2024")
    result = TarZstdArchiver(tmp_path / "archive", level=3).bundle("2024-03-05", files)

    assert result.success
    assert result.file_count == 3
    assert result.bundle_path == tmp_path / "archive" / "2024-03-05.tar.zst"
    members = read_members(result.bundle_path)
    assert sorted(members) == [f.name for f in files]
    assert members["stations_20240305T01Z.jsonl"] == b'{"station_id":"A","hour":1}\n'
    # Originals are left alone by the archiver itself.
    assert all(f.exists() for f in files)
    assert not list((tmp_path / "archive").glob(".*.tmp"))


def test_bundle_without_files(tmp_path):
    result = TarZstdArchiver(tmp_path).bundle("2024-03", [])
    assert not result.success
    assert result.bundle_path is None
    assert not (tmp_path / "2024-03.tar.zst").exists()


def test_bundle_failure_reports_error(tmp_path):
    missing = tmp_path / "gone.jsonl"
    result = TarZstdArchiver(tmp_path / "archive").bundle("2024-03", [missing])
    assert not result.success
    assert result.error
    assert not (tmp_path / "archive" / "2024-03.tar.zst").exists()


def test_remove_files(tmp_path):
    files = make_files(tmp_path)
    assert remove_files(files + [tmp_path / "never-existed"]) == 3
    assert not any(f.exists() for f in files)
