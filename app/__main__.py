"""
app/__main__.py — `python -m app` / `email-review-relay`
Runs the relay under uvicorn on the configured host and port.
"""
from loguru import logger

from app.config import get_settings


def main() -> None:
    import uvicorn

    settings = get_settings()
    base = settings.base_url
    logger.info(f"Email review relay listening on {settings.host}:{settings.port}")
    logger.info(
        "Create an edit link:\n"
        f"  curl -X POST {base}/create -H 'Content-Type: application/json' "
        "-d '{\"email\":\"a@b.com\",\"subject\":\"Hello\",\"body\":\"Email content\"}'\n"
        "Form-encoded works too:\n"
        f"  curl -X POST {base}/create -d 'subject=Hello&body=Email content'"
    )
    uvicorn.run("app.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
