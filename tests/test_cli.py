from __future__ import annotations

import os
from pathlib import Path

import pytest

from storage_cos import cli
from storage_cos.common.config import get_settings
from storage_cos.common.masking import MASK_SENTINEL
from storage_cos.domain import StorageConfig
from storage_cos.services.bundle import get_service_bundle


@pytest.fixture(autouse=True)
def cli_bundle(bundle, monkeypatch):
    monkeypatch.setattr(cli, "get_service_bundle", lambda: bundle)
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)
    return bundle


@pytest.fixture
def configured(bundle):
    bundle.store().write(
        StorageConfig("AKIDEXAMPLE123", "SK1", "b-1234567890", "ap-guangzhou")
    )


def test_config_set_then_show(bundle, capsys):
    code = cli.main(
        [
            "config",
            "set",
            "--secret-id",
            "AK1",
            "--secret-key",
            "SECRETVALUE",
            "--bucket",
            "b1",
        ]
    )

    assert code == 0
    assert "Configuration saved" in capsys.readouterr().out
    assert bundle.store().read() == StorageConfig("AK1", "SECRETVALUE", "b1", "")

    assert cli.main(["config", "show"]) == 0
    out = capsys.readouterr().out
    assert "AK1****" in out
    assert MASK_SENTINEL in out
    assert "SECRETVALUE" not in out
    assert "Region:    (not configured)" in out


def test_config_set_keeps_omitted_fields(bundle, configured):
    assert cli.main(["config", "set", "--region", "ap-shanghai"]) == 0

    assert bundle.store().read() == StorageConfig(
        "AKIDEXAMPLE123", "SK1", "b-1234567890", "ap-shanghai"
    )


def test_config_show_without_record(capsys):
    assert cli.main(["config", "show"]) == 0

    assert cli.NOT_CONFIGURED_HINT in capsys.readouterr().out


def test_config_path(bundle, capsys):
    assert cli.main(["config", "path"]) == 0

    assert capsys.readouterr().out.strip() == str(bundle.store().path())


def test_config_test(configured, factory, capsys):
    assert cli.main(["config", "test"]) == 0

    assert "Connection OK" in capsys.readouterr().out
    assert factory.network_calls == [("head_bucket", {"bucket": "b-1234567890"})]


def test_config_test_without_record(capsys):
    assert cli.main(["config", "test"]) == 1

    assert "✗ Connection test failed" in capsys.readouterr().err


def test_ls(configured, factory, capsys):
    factory.client.objects.update({"a.txt": b"a" * 2048, "b.txt": b""})

    assert cli.main(["ls", "--limit", "10"]) == 0

    out = capsys.readouterr().out
    assert "2 file(s):" in out
    assert "a.txt (2.0 KB)" in out
    assert "b.txt (0 B)" in out


def test_ls_empty(configured, capsys):
    assert cli.main(["ls"]) == 0

    assert "No files found" in capsys.readouterr().out


def test_ls_without_configuration(factory, capsys):
    assert cli.main(["ls"]) == 1

    assert "✗ Listing files failed" in capsys.readouterr().err
    assert factory.built == []


def test_upload_reports_progress(configured, factory, tmp_path, capsys):
    local = tmp_path / "report.txt"
    local.write_bytes(b"0123456789")

    assert cli.main(["upload", str(local), "--key", "docs/report.txt"]) == 0

    out = capsys.readouterr().out
    assert "Progress: 100.00%" in out
    assert "Upload complete" in out
    assert "b-1234567890.cos.mock/docs/report.txt" in out
    assert factory.client.objects["docs/report.txt"] == b"0123456789"


def test_upload_missing_file(configured, factory, tmp_path, capsys):
    assert cli.main(["upload", str(tmp_path / "missing.txt")]) == 1

    assert "File not found" in capsys.readouterr().err
    assert factory.network_calls == []


def test_download_defaults_to_key_basename(
    configured, factory, tmp_path, monkeypatch, capsys
):
    factory.client.objects["docs/a.txt"] = b"hello"
    monkeypatch.chdir(tmp_path)

    assert cli.main(["download", "docs/a.txt"]) == 0

    assert (tmp_path / "a.txt").read_bytes() == b"hello"
    assert "Download complete (5 B)" in capsys.readouterr().out


def test_download_missing_key(configured, tmp_path, capsys):
    target = tmp_path / "out.txt"

    assert cli.main(["download", "missing.txt", "--output", str(target)]) == 1

    assert "NoSuchKey" in capsys.readouterr().err
    assert not target.exists()


def test_rm(configured, factory, capsys):
    factory.client.objects["a.txt"] = b"x"

    assert cli.main(["rm", "a.txt"]) == 0

    assert "Deleted" in capsys.readouterr().out
    assert "a.txt" not in factory.client.objects


def test_url(configured, capsys):
    assert cli.main(["url", "a.txt", "--expires", "600"]) == 0

    assert capsys.readouterr().out.strip() == (
        "https://b-1234567890.cos.mock/a.txt?X-Amz-Expires=600"
    )


def test_url_rejects_non_positive_expiry(configured, factory, capsys):
    assert cli.main(["url", "a.txt", "--expires", "0"]) == 1

    assert "expires" in capsys.readouterr().err
    assert factory.network_calls == []


def test_serve_stop_without_server(settings, capsys):
    assert cli.main(["serve", "--stop"]) == 0

    assert "Server is not running" in capsys.readouterr().out


def test_stop_server_with_stale_pid_file(tmp_path, capsys):
    pid_file = tmp_path / "server.pid"
    pid_file.write_text("not-a-pid", encoding="utf-8")

    assert cli.stop_server(pid_file) == 0

    assert "Server is not running" in capsys.readouterr().out
    assert not pid_file.exists()


@pytest.mark.parametrize(
    ("size", "expected"),
    [
        (0, "0 B"),
        (1023, "1023 B"),
        (1536, "1.5 KB"),
        (5 * 1024**2, "5.0 MB"),
        (3 * 1024**3, "3.0 GB"),
    ],
)
def test_format_size(size, expected):
    assert cli.format_size(size) == expected


def test_requires_a_command():
    with pytest.raises(SystemExit):
        cli.main([])


def test_commands_ignore_dotenv_in_working_directory(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(os, "environ", dict(os.environ))
    monkeypatch.delenv("COS_CONFIG_DIR")
    (tmp_path / ".env").write_text(
        f"COS_CONFIG_DIR={tmp_path / 'elsewhere'}\n", encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "get_service_bundle", get_service_bundle)
    get_settings.cache_clear()  # type: ignore[attr-defined]

    assert cli.main(["config", "path"]) == 0

    expected = Path.home() / ".najie" / "storage-cos.json"
    assert capsys.readouterr().out.strip() == str(expected)


def test_serve_stop_reads_pid_file_from_dotenv(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(os, "environ", dict(os.environ))
    monkeypatch.delenv("PID_FILE")
    pid_file = tmp_path / "from-dotenv.pid"
    pid_file.write_text("not-a-pid", encoding="utf-8")
    (tmp_path / ".env").write_text(f"PID_FILE={pid_file}\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    assert cli.main(["serve", "--stop"]) == 0

    assert not pid_file.exists()
