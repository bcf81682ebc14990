import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load .env file into environment variables so os.getenv() works
load_dotenv()


class Settings(BaseSettings):
    app_name: str = "jambo-review-bot"

    env: str = "development"

    # GitHub (code-hosting platform)
    GITHUB_TOKEN: str = os.getenv("GITHUB_TOKEN", "")
    GITHUB_API_URL: str = os.getenv("GITHUB_API_URL", "https://api.github.com")
    BOT_NAME: str = os.getenv("BOT_NAME", "github-actions")
    BOT_VERSION: str = os.getenv("BOT_VERSION", "v1")

    # JamAI Base (generation service)
    JAMAI_BASE_URL: str = os.getenv("JAMAI_BASE_URL", "https://api.jamaibase.com/api/v1/gen_tables")
    JAMAI_API_KEY: str = os.getenv("JAMAI_API_KEY", "")
    JAMAI_PROJECT_ID: str = os.getenv("JAMAI_PROJECT_ID", "")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

settings = Settings()
