from fastapi import FastAPI
import uvicorn
from dotenv import load_dotenv
from contextlib import asynccontextmanager

from src.api.fastapi import FastAPIApp
from src.utils.exception import add_exception_handlers
from src.services.github.pr_api_client import PRApiClient
from src.services.jamai.client import JamAIClient
from src.utils.logging.otel_logger import logger

load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up Jambo review bot")

    app.state.github_client = PRApiClient()
    app.state.jamai_client = JamAIClient()

    yield

    logger.info("Shutting down Jambo review bot")

    try:
        await app.state.github_client.aclose()
        await app.state.jamai_client.aclose()
        logger.info("Successfully closed HTTP clients")
    except Exception as e:
        logger.error(f"Failed to close HTTP clients: {e}")

app_instance = FastAPIApp(lifespan=lifespan)
app = app_instance.get_app()

add_exception_handlers(app, logger)

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
