from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

from .api import build_services, create_app
from .config import configure_logging, load_config
from .errors import AnomalyOverlayError
from .schemas import ImageBuffer

GUESSED_TYPES = {".jpg": "image/jpeg", ".jpeg": "image/jpeg", ".png": "image/png"}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="anomaly-overlay")
    parser.add_argument("--env", default=None, help="Configuration environment (default: $ENVIRONMENT or dev)")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    detect = sub.add_parser("detect", help="Run one image through the pipeline and print the result")
    detect.add_argument("image", help="Path to a JPEG or PNG image")
    detect.add_argument("--project", required=True, help="Lookout for Vision project name")
    detect.add_argument("--version", required=True, help="Model version")
    detect.add_argument("--content-type", default=None)

    start = sub.add_parser("start-model", help="Start hosting a model version")
    start.add_argument("--project", required=True)
    start.add_argument("--version", required=True)
    start.add_argument("--min-units", type=int, default=1)
    start.add_argument("--max-units", type=int, default=None)
    start.add_argument("--client-token", default=None)

    stop = sub.add_parser("stop-model", help="Stop hosting a model version")
    stop.add_argument("--project", required=True)
    stop.add_argument("--version", required=True)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    load_dotenv()
    config = load_config(args.env)

    if args.command == "serve":
        app = create_app(config)
        app.run(
            host=args.host or config.server.host,
            port=args.port or config.server.port,
            threaded=True,
        )
        return 0

    if args.command == "detect" and not Path(args.image).exists():
        print(f"File not found: {args.image}", file=sys.stderr)
        return 2

    configure_logging(config.logging)
    services = build_services(config)

    try:
        if args.command == "detect":
            path = Path(args.image)
            image = ImageBuffer(
                data=path.read_bytes(),
                mime_type=GUESSED_TYPES.get(path.suffix.lower(), "application/octet-stream"),
            )
            out = services.pipeline.run(image, args.project, args.version, content_type=args.content_type).to_json()
        elif args.command == "start-model":
            out = services.lookout.start_model(
                args.project,
                args.version,
                args.min_units,
                max_inference_units=args.max_units,
                client_token=args.client_token,
            ).model_dump(exclude_none=True)
        else:
            out = services.lookout.stop_model(args.project, args.version).model_dump(exclude_none=True)
    except AnomalyOverlayError as e:
        print(json.dumps(e.to_dict()), file=sys.stderr)
        return 1

    print(json.dumps(out, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
