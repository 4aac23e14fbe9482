import uvicorn

from printbot.api import create_app
from printbot.env import load_settings


def run():
    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
