import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from api import kits
from api.router import limiter, router
from config import settings
from services.errors import KitError

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Interview Kit Generator API",
    description="AI-assisted structured interview kits: competencies, questions, rubrics",
    version="1.0.0",
    debug=settings.debug,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def kit_error_handler(request: Request, exc: KitError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.add_exception_handler(KitError, kit_error_handler)

app.include_router(router)
app.include_router(kits.router)
