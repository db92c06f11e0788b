"""Run the content exchange server: ``python -m share_vanish``."""
import logging

from aiohttp import web

from .app import create_app
from .conf import ExchangeConfig


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = ExchangeConfig.from_env()
    # access logs would record access codes, which double as keys
    web.run_app(
        create_app(config), host=config.host, port=config.port, access_log=None,
    )


if __name__ == "__main__":
    main()
