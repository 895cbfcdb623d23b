from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from notewise import __version__
from notewise.api import auth, notes
from notewise.errors import StorageUnavailable
from notewise.logger import configure_logging

logger = configure_logging()

app = FastAPI(title="NoteWise local API", version=__version__)
app.include_router(auth.router)
app.include_router(notes.router)


@app.exception_handler(StorageUnavailable)
def storage_unavailable(request: Request, exc: StorageUnavailable) -> JSONResponse:
    logger.error("Storage unavailable during %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


@app.get("/health")
def health():
    return {"ok": True}
