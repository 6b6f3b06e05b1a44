"""uvicorn 启动入口。"""

import uvicorn

from agent_api.api.service import create_app
from agent_api.config.settings import settings


def main() -> None:
    uvicorn.run(create_app(), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
