import os
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import dashboard
import views
from database import close, connect
from resources import RESOURCES, build_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close()


app = FastAPI(title="Chuira Mill Records API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ------------------------- Error responses -------------------------

@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})

# ------------------------- Routers -------------------------

for resource in RESOURCES:
    app.include_router(build_router(resource))

app.include_router(dashboard.router)
app.include_router(views.router)

# Root and health
@app.get("/")
def read_root():
    return {"message": "Chuira Mill Records API running"}


@app.get("/api/test")
def test_database():
    try:
        connect().command("ping")
    except PyMongoError as exc:
        logger.exception("MongoDB connection error")
        return JSONResponse(status_code=500, content={
            "status": "error",
            "message": "Failed to connect to MongoDB",
            "error": str(exc)[:200],
        })
    return {
        "status": "success",
        "message": "MongoDB connected successfully!",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
