"""FastAPI application setup."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from examextract.api.controller import extraction_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="ExamExtract API",
        description="Extract multiple-choice questions from PDF and Word exams",
        version="1.0.0",
    )

    # CORS for browser-based API clients (upload forms, progress pages)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production: restrict to the calling origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(extraction_router)

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
