"""SongMaster API server entry point."""

from __future__ import annotations

import logging
import os
import sys

import uvicorn

from songmaster.api.routes import create_app
from songmaster.config import Settings
from songmaster.services.container import build_services

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    stream=sys.stderr,
)

log = logging.getLogger(__name__)


def main() -> None:
    """Run the API server with services configured from the environment."""
    settings = Settings.from_env()
    if not settings.openrouter_api_key:
        log.warning("OPENROUTER_API_KEY is not set; generation requests will fail")
    log.info(
        "Default model %s, LLM timeout %.0fs, prompt cache TTL %.0fs",
        settings.default_model,
        settings.llm_timeout,
        settings.prompt_cache_ttl,
    )

    app = create_app(build_services(settings))
    uvicorn.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        log_level="info",
    )


if __name__ == "__main__":
    main()
