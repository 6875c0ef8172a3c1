"""CLI entry point for esuclient: upload, download and manage objects."""

import argparse
import logging
import sys
import time
from pathlib import Path

from esuclient.client import EsuClient
from esuclient.config import EsuClientConfig, load_config
from esuclient.errors import EsuError
from esuclient.logging_config import configure_logging
from esuclient.models import Identifier, Metadata, MetadataList, ObjectId, ObjectPath
from esuclient.transfer import DownloadHelper, ProgressEvent, TransferEvent, UploadHelper

logger = logging.getLogger("esuclient")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="esuclient",
        description="ESU object storage client",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("esuclient.yaml"),
        help="Path to YAML configuration file (default: esuclient.yaml)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config, default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["text", "json"],
        help="Log format: 'text' (human-readable) or 'json' (structured)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload_parser = subparsers.add_parser("upload", help="Upload a local file")
    upload_parser.add_argument("file", type=Path, help="File to upload")
    target = upload_parser.add_mutually_exclusive_group()
    target.add_argument(
        "--path", type=str, default=None,
        help="Create the object at this namespace path",
    )
    target.add_argument(
        "--object", type=str, default=None, dest="object_id",
        help="Replace the content of an existing object id or path",
    )
    upload_parser.add_argument(
        "--mime-type", type=str, default=None,
        help="Content type (default: application/octet-stream)",
    )
    upload_parser.add_argument(
        "--meta", action="append", default=[], metavar="NAME=VALUE",
        help="User metadata entry; may be repeated",
    )
    upload_parser.add_argument(
        "--listable-meta", action="append", default=[], metavar="NAME=VALUE",
        help="Listable user metadata entry; may be repeated",
    )

    download_parser = subparsers.add_parser("download", help="Download an object to a file")
    download_parser.add_argument("object", type=str, help="Object id or namespace path")
    download_parser.add_argument("file", type=Path, help="Destination file")

    share_parser = subparsers.add_parser("share", help="Print a pre-signed download URL")
    share_parser.add_argument("object", type=str, help="Object id or namespace path")
    share_parser.add_argument(
        "--expires", type=int, default=3600,
        help="Seconds until the URL expires (default: 3600)",
    )
    share_parser.add_argument(
        "--disposition", type=str, default=None,
        help="Content-Disposition to send with the download",
    )

    info_parser = subparsers.add_parser("info", help="Show object replica and retention info")
    info_parser.add_argument("object", type=str, help="Object id or namespace path")

    delete_parser = subparsers.add_parser("delete", help="Delete an object")
    delete_parser.add_argument("object", type=str, help="Object id or namespace path")

    return parser.parse_args(argv)


def parse_identifier(value: str) -> Identifier:
    """Interpret a command-line object reference.

    Values starting with ``/`` are namespace paths; anything else is an
    object id.
    """
    if value.startswith("/"):
        return ObjectPath(value)
    return ObjectId(value)


def _parse_metadata(meta: list[str], listable: list[str]) -> MetadataList | None:
    entries = MetadataList()
    for values, is_listable in ((meta, False), (listable, True)):
        for item in values:
            name, _, value = item.partition("=")
            entries.add(Metadata(name, value, is_listable))
    return entries if len(entries) else None


def _log_progress(event: TransferEvent) -> None:
    if isinstance(event, ProgressEvent):
        if event.total_bytes > 0:
            logger.info("%d of %d bytes transferred", event.current_bytes, event.total_bytes)
        else:
            logger.info("%d bytes transferred", event.current_bytes)


def _build_client(config: EsuClientConfig) -> EsuClient:
    return EsuClient.from_config(config)


def _run_command(args: argparse.Namespace, config: EsuClientConfig, client: EsuClient) -> None:
    buffer_size = config.transfer.buffer_size

    if args.command == "upload":
        helper = UploadHelper(client, buffer_size=buffer_size, listener=_log_progress)
        metadata = _parse_metadata(args.meta, args.listable_meta)
        if args.object_id is not None:
            identifier = parse_identifier(args.object_id)
            helper.update_object_from_file(
                identifier, args.file, metadata=metadata, mime_type=args.mime_type
            )
            print(identifier)
        else:
            path = ObjectPath(args.path) if args.path is not None else None
            object_id = helper.create_object_from_file(
                args.file, metadata=metadata, mime_type=args.mime_type, path=path
            )
            print(object_id)

    elif args.command == "download":
        helper = DownloadHelper(client, buffer_size=buffer_size, listener=_log_progress)
        helper.read_object_to_file(parse_identifier(args.object), args.file)

    elif args.command == "share":
        expires = int(time.time()) + args.expires
        print(client.get_shareable_url(parse_identifier(args.object), expires, args.disposition))

    elif args.command == "info":
        info = client.get_object_info(parse_identifier(args.object))
        print(f"objectId: {info.object_id}")
        print(f"selection: {info.selection}")
        for replica in info.replicas:
            current = "current" if replica.current else "stale"
            print(
                f"replica {replica.id}: {replica.replica_type} {replica.location} "
                f"{replica.storage_type} ({current})"
            )
        if info.retention is not None:
            print(f"retention: enabled={info.retention.enabled} endAt={info.retention.end_at}")
        if info.expiration is not None:
            print(f"expiration: enabled={info.expiration.enabled} endAt={info.expiration.end_at}")

    elif args.command == "delete":
        client.delete_object(parse_identifier(args.object))


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the esuclient CLI.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Process exit code.
    """
    args = parse_args(argv)

    # Use a basic stderr logger for config-loading errors
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        logger.error("Config file not found: %s", args.config)
        return 1
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        return 1

    if args.log_level is not None:
        config.logging.level = args.log_level
    if args.log_format is not None:
        config.logging.format = args.log_format

    configure_logging(level=config.logging.level, fmt=config.logging.format)

    try:
        with _build_client(config) as client:
            _run_command(args, config, client)
    except (EsuError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


def entry_point() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    entry_point()
