import uvicorn

from interfaces.http.app import create_app
from settings import HTTP_HOST, HTTP_PORT, LOG_LEVEL, build_repositories, configure_logging


def main() -> None:
    configure_logging()

    account_repo, identity_repo = build_repositories()
    app = create_app(account_repo, identity_repo)
    uvicorn.run(app, host=HTTP_HOST, port=HTTP_PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
