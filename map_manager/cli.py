"""Command line interface for the map manager."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .enginelib import share_link
from .service import MapManagerService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Map marker manager")
    parser.add_argument("-c", "--config", required=True, help="Path to map_manager_config.yaml")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    refresh = sub.add_parser("refresh", help="Pull map data from the published source")
    refresh.add_argument("--force", action="store_true", help="Ignore the cache duration")

    export = sub.add_parser("export", help="Write config and markers as JSON")
    export.add_argument("-o", "--output", type=Path, help="Target file (default: stdout)")

    importer = sub.add_parser("import", help="Replace markers from a JSON document")
    importer.add_argument("path", type=Path)

    listing = sub.add_parser("list", help="Print the filtered marker list")
    listing.add_argument("--search", default="", help="Fuzzy search query")
    listing.add_argument("--zoom", type=float, help="Only types visible at this zoom")
    listing.add_argument("--hide", action="append", default=[], metavar="TYPE", help="Hide a marker type")

    share = sub.add_parser("share", help="Build a shareable link for a view")
    share.add_argument("x", type=float)
    share.add_argument("y", type=float)
    share.add_argument("zoom", type=float)
    share.add_argument("--marker")
    share.add_argument("--base", default="http://localhost:5173/")

    serve = sub.add_parser("serve", help="Run the JSON API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=5173)
    return parser


def _load_service(args: argparse.Namespace) -> MapManagerService:
    return MapManagerService(Path(args.config))


def cmd_refresh(args: argparse.Namespace) -> int:
    service = _load_service(args)
    result = service.refresh(force=args.force)
    print(json.dumps(result.summary(), indent=2))
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    service = _load_service(args)
    document = service.export_snapshot()
    if args.output:
        args.output.write_text(document, encoding="utf-8")
    else:
        print(document)
    return 0


def cmd_import(args: argparse.Namespace) -> int:
    service = _load_service(args)
    text = args.path.read_text(encoding="utf-8")
    result = service.import_snapshot(text)
    print(json.dumps(result.summary(), indent=2))
    return 0 if result.ok else 1


def cmd_list(args: argparse.Namespace) -> int:
    service = _load_service(args)
    pipeline = service.repository.pipeline
    for marker_type in args.hide:
        pipeline.set_type(marker_type, False)
    pipeline.set_search(args.search)
    pipeline.flush()
    if args.zoom is None:
        markers = service.repository.filtered_markers
    else:
        markers = service.repository.visible_markers(args.zoom)
    print(json.dumps([marker.to_dict() for marker in markers], indent=2, ensure_ascii=False))
    return 0


def cmd_share(args: argparse.Namespace) -> int:
    params = share_link.ShareParams(x=args.x, y=args.y, zoom=args.zoom, marker=args.marker)
    print(share_link.encode(params, args.base))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from .gui import create_app

    service = _load_service(args)
    service.startup()
    service.start_refresher()
    app = create_app(service)
    try:
        app.run(host=args.host, port=args.port, debug=False)
    finally:
        service.stop_refresher()
    return 0


COMMAND_HANDLERS = {
    "refresh": cmd_refresh,
    "export": cmd_export,
    "import": cmd_import,
    "list": cmd_list,
    "share": cmd_share,
    "serve": cmd_serve,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    handler = COMMAND_HANDLERS[args.command]
    return handler(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
