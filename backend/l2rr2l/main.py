import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .db import Base, engine, ensure_schema
from .errors import InternalError, LearnerNotFound
from .settings import settings
from .routers import auth
from .routers import children
from .routers import lessons
from .routers import progress

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="L2RR2L Lessons API")
app.include_router(auth.router)
app.include_router(children.router)
app.include_router(lessons.router)
app.include_router(progress.router)


@app.exception_handler(LearnerNotFound)
async def learner_not_found_handler(request: Request, exc: LearnerNotFound):
	return JSONResponse(status_code=404, content={"detail": "Child not found"})


@app.exception_handler(InternalError)
async def internal_error_handler(request: Request, exc: InternalError):
	logger.error("Internal error on %s: %s", request.url.path, exc)
	return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/info")
def root():
	return {"status": "ok"}


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	try:
		ensure_schema()
	except Exception:
		logger.exception("Schema migration failed")
