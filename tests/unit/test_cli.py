# SPDX-License-Identifier: MIT
"""Unit tests for the filestore command line."""

import json

import pytest

from filestore import cli


@pytest.fixture(autouse=True)
def fs_env(monkeypatch, volume_root):
    """Point the default ``fs`` volume at a temp directory."""
    monkeypatch.setenv("FILESTORE_FS_ROOT", str(volume_root))
    monkeypatch.delenv("FILESTORE_DEFAULT_VOLUME", raising=False)
    monkeypatch.delenv("FILESTORE_ENV", raising=False)
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)


@pytest.mark.unit
def test_put_and_cat(volume_root, capsys):
    assert cli.main(["put", "notes/hello.txt", "--text", "hello"]) == 0
    assert (volume_root / "notes" / "hello.txt").read_text() == "hello"

    assert cli.main(["cat", "notes/hello.txt"]) == 0
    assert capsys.readouterr().out == "hello"


@pytest.mark.unit
def test_put_from_file(volume_root, tmp_path):
    source = tmp_path / "local.bin"
    source.write_bytes(b"\x00" * 200_000)

    assert cli.main(["put", "big.bin", "--file", str(source)]) == 0
    assert (volume_root / "big.bin").read_bytes() == source.read_bytes()


@pytest.mark.unit
def test_put_requires_a_source():
    with pytest.raises(SystemExit):
        cli.main(["put", "a.txt"])


@pytest.mark.unit
def test_ls(volume_root, capsys):
    (volume_root / "a").mkdir()
    (volume_root / "a" / "x.txt").write_text("x")
    (volume_root / "b.txt").write_text("b")

    assert cli.main(["ls"]) == 0
    assert capsys.readouterr().out.splitlines() == ["a/x.txt", "b.txt"]

    assert cli.main(["ls", "a/"]) == 0
    assert capsys.readouterr().out.splitlines() == ["a/x.txt"]


@pytest.mark.unit
def test_exists_exit_codes(volume_root, capsys):
    (volume_root / "a.txt").write_text("a")

    assert cli.main(["exists", "a.txt"]) == 0
    assert cli.main(["exists", "b.txt"]) == 1
    assert capsys.readouterr().out.splitlines() == ["yes", "no"]


@pytest.mark.unit
def test_cp_mv_rm(volume_root, capsys):
    (volume_root / "a.txt").write_text("a")

    assert cli.main(["cp", "a.txt", "b.txt"]) == 0
    assert cli.main(["mv", "b.txt", "c.txt"]) == 0
    assert (volume_root / "c.txt").read_text() == "a"
    assert not (volume_root / "b.txt").exists()

    assert cli.main(["rm", "c.txt"]) == 0
    assert cli.main(["rm", "c.txt"]) == 0
    assert capsys.readouterr().out.splitlines() == ["deleted", "not found"]


@pytest.mark.unit
def test_cp_overwrite_flag(volume_root, capsys):
    (volume_root / "a.txt").write_text("new")
    (volume_root / "b.txt").write_text("old")

    assert cli.main(["cp", "a.txt", "b.txt"]) == 1
    error = json.loads(capsys.readouterr().err)
    assert error["code"] == "ERR_OPERATION_NOT_PERMITTED"

    assert cli.main(["cp", "a.txt", "b.txt", "--overwrite"]) == 0
    assert (volume_root / "b.txt").read_text() == "new"


@pytest.mark.unit
def test_volume_error_printed_as_json(capsys):
    assert cli.main(["cat", "missing.txt"]) == 1

    error = json.loads(capsys.readouterr().err)
    assert error["code"] == "ERR_FILE_NOT_FOUND"
    assert error["status"] == 404
    assert error["data"]["path"] == "missing.txt"
    assert "trace" in error


@pytest.mark.unit
def test_production_hides_trace(monkeypatch, capsys):
    monkeypatch.setenv("FILESTORE_ENV", "production")

    assert cli.main(["cat", "missing.txt"]) == 1

    assert "trace" not in json.loads(capsys.readouterr().err)


@pytest.mark.unit
def test_unknown_volume(capsys):
    assert cli.main(["--volume", "nope", "ls"]) == 1
    assert json.loads(capsys.readouterr().err)["code"] == "ERR_UNKNOWN_VOLUME"


@pytest.mark.unit
def test_demo_leaves_volume_clean(volume_root, capsys):
    assert cli.main(["demo"]) == 0

    out = capsys.readouterr().out
    assert "This is a text and nothing more" in out
    assert "retesting.txt" in out
    assert list(volume_root.iterdir()) == []


@pytest.mark.unit
async def test_run_closes_manager(mocker, fs_volume):
    manager = mocker.Mock()
    manager.get_volume.return_value = fs_volume
    manager.aclose = mocker.AsyncMock()
    args = cli.build_parser().parse_args(["exists", "a.txt"])

    assert await cli.run(args, manager) == 1

    manager.get_volume.assert_called_once_with(None)
    manager.aclose.assert_awaited_once()
