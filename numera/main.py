"""Main FastAPI application."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from numera import __version__
from numera.api.endpoints import router
from numera.utils.logging import setup_logging

setup_logging()

app = FastAPI(
    title="Numera CFO Assistant",
    description=(
        "A conversational assistant for small-business finances. Answers questions about revenue, "
        "expenses and invoices by calling financial tools, streaming its progress live."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "Conversation",
            "description": "Chat with the assistant, streamed as NDJSON events or as a single response.",
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("numera.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
