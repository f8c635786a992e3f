"""
LLM Gateway server entry point.

Usage:
    python -m llm_gateway

    # Or use uvicorn directly:
    uvicorn llm_gateway.main:create_app --factory --host 0.0.0.0 --port 8000

Environment Variables:
    - APP_API_HOST / APP_API_PORT: Bind address
    - LOG_LEVEL: Log level, also used for uvicorn
    - LOG_REQUESTS=false: Disable per-request logging
"""

import uvicorn

from llm_gateway.core.config import get_settings


def main() -> None:
    """Run the gateway with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "llm_gateway.main:create_app",
        factory=True,
        host=settings.app.api_host,
        port=settings.app.api_port,
        log_level=settings.log.level.lower(),
        access_log=settings.log.requests,
    )


if __name__ == "__main__":
    main()
