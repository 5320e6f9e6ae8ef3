"""
netbridge CLI - run the backend or its primitives from a terminal.

Usage examples:
    python -m netbridge.cli serve --port 8765
    python -m netbridge.cli reclaim
    python -m netbridge.cli upload ./clip.mp4 https://catbox.moe/user/api.php --field fileToUpload
"""

import argparse
import asyncio
import json
import sys

from netbridge.base.config import get_config, setup_logging
from netbridge.base.exceptions import BridgeError
from netbridge.files.reclaimer import reclaim
from netbridge.net.transport import HttpTransport, resolve_proxy
from netbridge.net.uploader import ResilientUploader, ResponseFormat, UploadRequest


def run_serve(args) -> int:
    from netbridge.server.api import serve
    serve(port=args.port, host=args.host)
    return 0


def run_reclaim(args) -> int:
    root = args.root or get_config().storage.scratch_dir
    stats = reclaim(root)
    print(json.dumps(stats.to_dict()))
    return 0


def run_upload(args) -> int:
    config = get_config()
    uploader = ResilientUploader(
        HttpTransport(config.transport.upload_timeout, config.transport.upload_connect_timeout),
        max_attempts=config.upload.max_attempts,
        retry_delay=config.upload.retry_delay,
    )
    req = UploadRequest(
        file_path=args.file,
        upload_url=args.url,
        field_name=args.field,
        response_format=ResponseFormat.parse(args.format),
        proxy_url=resolve_proxy(args.proxy),
    )
    outcome = asyncio.run(uploader.upload(req))
    print(json.dumps(outcome.to_dict()))
    return 0 if outcome.success else 1


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="netbridge desktop networking backend")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the command API")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.set_defaults(func=run_serve)

    reclaim_parser = subparsers.add_parser("reclaim", help="Wipe the scratch directory")
    reclaim_parser.add_argument("--root", default=None, help="Directory to wipe (default: configured scratch dir)")
    reclaim_parser.set_defaults(func=run_reclaim)

    upload_parser = subparsers.add_parser("upload", help="Upload a file with retries")
    upload_parser.add_argument("file")
    upload_parser.add_argument("url")
    upload_parser.add_argument("--field", required=True, help="Multipart field name for the file")
    upload_parser.add_argument("--format", choices=[f.value for f in ResponseFormat], default=None)
    upload_parser.add_argument("--proxy", default=None, help="Proxy URL (default: HTTP_PROXY / HTTPS_PROXY)")
    upload_parser.set_defaults(func=run_upload)

    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    setup_logging()
    try:
        return args.func(args)
    except BridgeError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
