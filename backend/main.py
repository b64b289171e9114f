import os

from dotenv import load_dotenv

# Load .env before the settings module is first imported
load_dotenv()

from fastapi.openapi.utils import get_openapi  # noqa: E402
from weddingbazaar.main import app  # noqa: E402


def custom_openapi() -> dict:
    """Return OpenAPI schema with project metadata."""
    if app.openapi_schema:
        return app.openapi_schema
    app.openapi_schema = get_openapi(
        title="Wedding Bazaar Booking API",
        version="1.0.0",
        description="Booking lifecycle, itemized quotes, payments and receipts for wedding vendors.",
        routes=app.routes,
    )
    return app.openapi_schema


app.openapi = custom_openapi

if __name__ == "__main__":
    import uvicorn

    workers = int(os.getenv("UVICORN_WORKERS", "1"))
    keepalive = int(os.getenv("UVICORN_KEEPALIVE", "65"))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        workers=workers,
        timeout_keep_alive=keepalive,
    )
