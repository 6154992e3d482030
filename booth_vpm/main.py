import logging

from fastapi import FastAPI

from booth_vpm import __version__
from booth_vpm.api.repository import router as repository_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Booth VPM Repository",
    version=__version__,
    description="Serves a VPM repository built from purchased Booth items.",
)


@app.get("/health")
async def health() -> dict:
    """
    Lightweight health check endpoint.
    """
    return {"status": "ok"}


app.include_router(repository_router, tags=["vpm"])


if __name__ == "__main__":
    """
    Allow running `python -m booth_vpm.main` to start the Uvicorn development server.
    """
    import uvicorn

    uvicorn.run("booth_vpm.main:app", host="127.0.0.1", port=8000, reload=True)
