#!/usr/bin/env python3
"""storage-cos command line interface.

Usage:
  storage-cos config set --secret-id AKID... --secret-key ... --bucket b-123 --region ap-guangzhou
  storage-cos ls --prefix images/
  storage-cos upload ./report.pdf --key docs/report.pdf
  storage-cos url docs/report.pdf --expires 600
  storage-cos serve --port 5175

Every command exits with status 1 when the operation fails.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys
from pathlib import Path

from storage_cos import __version__
from storage_cos.common.config import load_server_settings
from storage_cos.common.logging import setup_logging
from storage_cos.common.masking import display_config
from storage_cos.common.result import Result
from storage_cos.domain import UploadProgress
from storage_cos.services.bundle import ServiceBundle, get_service_bundle

NOT_CONFIGURED_HINT = "Storage is not configured yet, run: storage-cos config set"


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024**2:
        return f"{size / 1024:.1f} KB"
    if size < 1024**3:
        return f"{size / 1024**2:.1f} MB"
    return f"{size / 1024**3:.1f} GB"


def _fail(action: str, result: Result) -> int:
    print(f"✗ {action} failed: {result.error}", file=sys.stderr)
    return 1


def cmd_config_set(args: argparse.Namespace, services: ServiceBundle) -> int:
    result = services.config().update(
        {
            "secretId": args.secret_id,
            "secretKey": args.secret_key,
            "bucket": args.bucket,
            "region": args.region,
        }
    )
    if not result.ok:
        return _fail("Saving configuration", result)
    print("✓ Configuration saved")
    print(f"  Config file: {result['path']}")
    return 0


def cmd_config_show(args: argparse.Namespace, services: ServiceBundle) -> int:
    store = services.store()
    loaded = store.load()
    if not loaded.ok:
        return _fail("Reading configuration", loaded)
    config = loaded["config"]
    if config is None:
        print(NOT_CONFIGURED_HINT)
        return 0
    shown = display_config(config)
    print("Current configuration:")
    print(f"  SecretId:  {shown['secretId']}")
    print(f"  SecretKey: {shown['secretKey']}")
    print(f"  Bucket:    {shown['bucket']}")
    print(f"  Region:    {shown['region']}")
    print(f"  Config file: {store.path()}")
    return 0


def cmd_config_test(args: argparse.Namespace, services: ServiceBundle) -> int:
    print("Testing connection...")
    result = asyncio.run(services.config().test())
    if not result.ok:
        return _fail("Connection test", result)
    print("✓ Connection OK")
    return 0


def cmd_config_path(args: argparse.Namespace, services: ServiceBundle) -> int:
    print(services.store().path())
    return 0


def cmd_ls(args: argparse.Namespace, services: ServiceBundle) -> int:
    result = asyncio.run(services.storage().list_files(args.prefix, args.limit))
    if not result.ok:
        return _fail("Listing files", result)
    files = result["files"]
    if not files:
        print("No files found")
        return 0
    print(f"{len(files)} file(s):")
    for record in files:
        print(f"  {record.key} ({format_size(record.size)})")
    return 0


def _print_progress(progress: UploadProgress) -> None:
    sys.stdout.write(f"\rProgress: {progress.percent:.2f}%")
    sys.stdout.flush()


def cmd_upload(args: argparse.Namespace, services: ServiceBundle) -> int:
    file_path = Path(args.file).expanduser().resolve()
    key = args.key or file_path.name
    print(f"Uploading {file_path} -> {key}")
    result = asyncio.run(
        services.storage().upload(file_path, key, on_progress=_print_progress)
    )
    print()
    if not result.ok:
        return _fail("Upload", result)
    print("✓ Upload complete")
    print(f"  Location: {result['location']}")
    return 0


def cmd_download(args: argparse.Namespace, services: ServiceBundle) -> int:
    output = args.output or os.path.join(os.getcwd(), os.path.basename(args.key))
    print(f"Downloading {args.key} -> {output}")
    result = asyncio.run(services.storage().download(args.key, output))
    if not result.ok:
        return _fail("Download", result)
    print(f"✓ Download complete ({format_size(result['size'])})")
    return 0


def cmd_rm(args: argparse.Namespace, services: ServiceBundle) -> int:
    print(f"Deleting {args.key}")
    result = asyncio.run(services.storage().delete(args.key))
    if not result.ok:
        return _fail("Delete", result)
    print("✓ Deleted")
    return 0


def cmd_url(args: argparse.Namespace, services: ServiceBundle) -> int:
    result = asyncio.run(services.storage().signed_url(args.key, args.expires))
    if not result.ok:
        return _fail("Signing URL", result)
    print(result["url"])
    return 0


def stop_server(pid_file: Path) -> int:
    if not pid_file.exists():
        print("Server is not running")
        return 0
    try:
        pid = int(pid_file.read_text(encoding="utf-8").strip())
        os.kill(pid, signal.SIGTERM)
    except (ValueError, ProcessLookupError):
        print("Server is not running")
    else:
        print("✓ Server stopped")
    finally:
        pid_file.unlink(missing_ok=True)
    return 0


def cmd_serve(args: argparse.Namespace, services: ServiceBundle) -> int:
    # The server honors a .env in the working directory; other commands do not
    settings = load_server_settings()
    pid_file = settings.PID_FILE
    if args.stop:
        return stop_server(pid_file)

    from storage_cos.main import run

    # Requests must see the settings rebuilt above
    get_service_bundle.cache_clear()  # type: ignore[attr-defined]

    pid_file.write_text(str(os.getpid()), encoding="utf-8")
    host = args.host or settings.SERVER_HOST
    port = args.port or settings.SERVER_PORT
    print(f"storage-cos API listening on http://{host}:{port}")
    try:
        run(host=host, port=port)
    finally:
        pid_file.unlink(missing_ok=True)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storage-cos",
        description="Tencent Cloud COS object storage client",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log operations to stderr"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    config = commands.add_parser("config", help="Manage the storage configuration")
    config_commands = config.add_subparsers(dest="config_command", required=True)

    config_set = config_commands.add_parser(
        "set", help="Set configuration fields; omitted fields keep their value"
    )
    config_set.add_argument("--secret-id", help="Tencent Cloud SecretId")
    config_set.add_argument("--secret-key", help="Tencent Cloud SecretKey")
    config_set.add_argument("--bucket", help="Bucket name, e.g. example-1250000000")
    config_set.add_argument("--region", help="Region, e.g. ap-guangzhou")
    config_set.set_defaults(handler=cmd_config_set)

    config_commands.add_parser(
        "show", help="Show the configuration with secrets masked"
    ).set_defaults(handler=cmd_config_show)
    config_commands.add_parser(
        "test", help="Check that the configured bucket is reachable"
    ).set_defaults(handler=cmd_config_test)
    config_commands.add_parser(
        "path", help="Print the configuration file location"
    ).set_defaults(handler=cmd_config_path)

    ls = commands.add_parser("ls", help="List files in the bucket")
    ls.add_argument("--prefix", default="", help="Only keys starting with this prefix")
    ls.add_argument("--limit", type=int, default=100, help="Maximum number of files")
    ls.set_defaults(handler=cmd_ls)

    upload = commands.add_parser("upload", help="Upload a file")
    upload.add_argument("file", help="Local file to upload")
    upload.add_argument("--key", help="Object key (default: the file name)")
    upload.set_defaults(handler=cmd_upload)

    download = commands.add_parser("download", help="Download a file")
    download.add_argument("key", help="Object key")
    download.add_argument(
        "--output", help="Output path (default: key base name in the current directory)"
    )
    download.set_defaults(handler=cmd_download)

    rm = commands.add_parser("rm", help="Delete a file")
    rm.add_argument("key", help="Object key")
    rm.set_defaults(handler=cmd_rm)

    url = commands.add_parser("url", help="Print a signed download URL")
    url.add_argument("key", help="Object key")
    url.add_argument(
        "--expires", type=int, default=3600, help="Validity in seconds (default: 3600)"
    )
    url.set_defaults(handler=cmd_url)

    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Bind address")
    serve.add_argument("--port", type=int, default=None, help="Port (default: 5175)")
    serve.add_argument("--stop", action="store_true", help="Stop a running server")
    serve.set_defaults(handler=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("INFO" if args.verbose else "WARNING", json_output=False)
    return args.handler(args, get_service_bundle())


if __name__ == "__main__":
    sys.exit(main())
