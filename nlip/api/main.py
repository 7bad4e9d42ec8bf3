"""
Process entrypoint for the NLIP router HTTP service.

Responsibilities:
- Configure root logging from `LOG_LEVEL`.
- Serve `nlip.api.http_api:app` with uvicorn.
"""

import argparse
import logging

import uvicorn

from nlip.llm.provider_config import LOG_LEVEL


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the NLIP router HTTP service.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--log-level", default=LOG_LEVEL)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run("nlip.api.http_api:app", host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
