import uvicorn

from shopfinity.backend.app import configure_logging, create_app
from shopfinity.config import AppSettings


def main() -> None:
    settings = AppSettings.from_env()
    configure_logging(settings.log_level)
    # uvicorn turns SIGTERM/SIGINT into a lifespan shutdown, which disconnects the broker.
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
