import logging

import uvicorn

from plexbuy.config import Settings


def main():
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)
    uvicorn.run("plexbuy.server:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
