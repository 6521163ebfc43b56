from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend import config
from backend.routers import location

app = FastAPI(
    title="placefinder API",
    description="Location search proxy: Google Places with a Nominatim fallback",
    version="0.1.0",
)

# ---------------------------------------------------------------------------
# CORS -- the search UI runs on another origin during development
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(location.router)


@app.get("/")
async def root():
    return {"status": "ok", "service": "placefinder"}
