from __future__ import annotations

import logging

import anyio

from .config import check_settings, config_report, get_settings


def main() -> None:
    """
    Entrypoint for running the gateway over HTTP.

    Logs a configuration report before starting; missing variables are
    reported but do not stop the server, since the endpoints that need
    them answer with a structured error instead.
    """
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
    )
    logger = logging.getLogger("worker_mcp")

    report = config_report(settings)
    if check_settings(settings).valid:
        logger.info("\n%s", report)
    else:
        logger.warning("\n%s", report)

    from .http_server import run_http_server

    anyio.run(run_http_server, settings)


if __name__ == "__main__":
    main()
