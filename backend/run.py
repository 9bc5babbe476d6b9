"""
启动科研成果申报门户后端

python run.py 即可；监听地址、端口与热重载均读取 app.config.Settings（可用 .env 覆盖）。
"""
import logging

import uvicorn

from app.config import settings

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger("run")

if __name__ == "__main__":
    logger.info("%s %s", settings.APP_NAME, settings.APP_VERSION)
    logger.info("服务地址: http://%s:%s", settings.HOST, settings.PORT)
    logger.info("API文档: http://%s:%s/api/docs", settings.HOST, settings.PORT)

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
