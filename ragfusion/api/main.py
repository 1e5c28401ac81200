from fastapi import FastAPI
from ragfusion.api.routes_aggregate import router as aggregate_router
from ragfusion.core.config import settings
from ragfusion.core.logging import configure_logging

configure_logging(settings.log_level)

app = FastAPI(title="RAG Fusion")

app.include_router(aggregate_router)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
