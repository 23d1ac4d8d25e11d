# SPDX-License-Identifier: MIT
"""filestore command line.

Runs single volume operations against a configured volume::

    filestore ls reports/
    filestore --volume s3 put hello.txt --text "hi"
    filestore cp hello.txt copy.txt --overwrite
    filestore demo
"""

from __future__ import annotations

import argparse
import json
import sys

import anyio
from dotenv import load_dotenv

from .config import logger
from .errors import VolumeError
from .storage import VolumeDriver, VolumeManager


async def _ls(volume: VolumeDriver, args: argparse.Namespace) -> None:
    async for entry in volume.list(args.prefix):
        print(entry.path)


async def _cat(volume: VolumeDriver, args: argparse.Namespace) -> None:
    result = await volume.read(args.path, as_bytes=args.bytes)
    if args.bytes:
        sys.stdout.buffer.write(result.content)  # type: ignore[arg-type]
    else:
        print(result.content, end="")


async def _put(volume: VolumeDriver, args: argparse.Namespace) -> None:
    if args.text is not None:
        await volume.write(args.path, args.text)
        return

    async def chunks():
        async with await anyio.open_file(args.file, "rb") as f:
            while chunk := await f.read(64 * 1024):
                yield chunk

    await volume.write(args.path, chunks())


async def _cp(volume: VolumeDriver, args: argparse.Namespace) -> None:
    await volume.copy(args.source, args.target, overwrite=args.overwrite)


async def _mv(volume: VolumeDriver, args: argparse.Namespace) -> None:
    await volume.move(args.source, args.target)


async def _rm(volume: VolumeDriver, args: argparse.Namespace) -> None:
    result = await volume.remove(args.path)
    print({True: "deleted", False: "not found", None: "delete acknowledged"}[result.deleted])


async def _exists(volume: VolumeDriver, args: argparse.Namespace) -> int:
    result = await volume.exists(args.path)
    print("yes" if result.exists else "no")
    return 0 if result.exists else 1


async def _demo(volume: VolumeDriver, args: argparse.Namespace) -> None:
    """Write, read, copy, move, list and clean up a couple of files."""
    print(await volume.write("testing.txt", "This is a text and nothing more"))
    print(await volume.exists("testing.txt"))
    print(await volume.read("testing.txt"))
    print(await volume.copy("testing.txt", "testing-copy.txt"))
    print(await volume.read("testing-copy.txt"))
    print(await volume.move("testing-copy.txt", "retesting.txt"))
    async for entry in volume.list():
        print(entry.path)
    for path in ("testing.txt", "retesting.txt"):
        print(await volume.remove(path))


COMMANDS = {
    "ls": _ls,
    "cat": _cat,
    "put": _put,
    "cp": _cp,
    "mv": _mv,
    "rm": _rm,
    "exists": _exists,
    "demo": _demo,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="filestore", description="Run file operations against a volume")
    parser.add_argument("--volume", help="Volume name (default: FILESTORE_DEFAULT_VOLUME or 'fs')")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    ls_parser = subparsers.add_parser("ls", help="List files under a prefix")
    ls_parser.add_argument("prefix", nargs="?", default="")

    cat_parser = subparsers.add_parser("cat", help="Print a file")
    cat_parser.add_argument("path")
    cat_parser.add_argument("--bytes", action="store_true", help="Write raw bytes to stdout")

    put_parser = subparsers.add_parser("put", help="Write a file")
    put_parser.add_argument("path")
    source = put_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Local file to upload")
    source.add_argument("--text", help="Literal text content")

    cp_parser = subparsers.add_parser("cp", help="Copy a file")
    cp_parser.add_argument("source")
    cp_parser.add_argument("target")
    cp_parser.add_argument("--overwrite", action="store_true", help="Replace an existing target")

    mv_parser = subparsers.add_parser("mv", help="Move a file")
    mv_parser.add_argument("source")
    mv_parser.add_argument("target")

    rm_parser = subparsers.add_parser("rm", help="Remove a file or directory")
    rm_parser.add_argument("path")

    exists_parser = subparsers.add_parser("exists", help="Check whether a path exists")
    exists_parser.add_argument("path")

    subparsers.add_parser("demo", help="Run a write/read/copy/move/list round on the volume")
    return parser


async def run(args: argparse.Namespace, manager: VolumeManager | None = None) -> int:
    manager = manager or VolumeManager()
    try:
        volume = manager.get_volume(args.volume)
        return await COMMANDS[args.command](volume, args) or 0
    finally:
        await manager.aclose()


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    if args.verbose:
        logger.setLevel("DEBUG")

    try:
        return anyio.run(run, args)
    except VolumeError as e:
        print(json.dumps(e.to_dict(), indent=2, default=str), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
