"""
FindNearPG Risk Backend - FastAPI Application

Main entry point for the PG / hostel marketplace backend.

Owner risk pipeline:
- Property detail view  → PropertyView (conversion denominator)
- Payment failure       → SuspiciousEvent (severity 6)
- Tenant fraud report   → SuspiciousEvent (severity 18)
- Booking without terms → SuspiciousEvent (severity 2)
- Each of the above     → recompute OwnerRisk → ranking penalty on listings
- Admin                 → risk dashboard (top owners, recent events)
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import (
    auth_router,
    admin_router,
    suspicious_router,
    properties_router,
    bookings_router,
    payments_router,
)
from .database import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="FindNearPG Risk Backend",
    description="""
    FindNearPG - PG / Hostel Marketplace Backend

    ## Owner Risk Pipeline
    1. **Event Recorder**: append-only suspicious events per owner
    2. **View Tracker**: property detail impressions
    3. **Risk Aggregator**: 0-100 score over a rolling 30-day window
    4. **Penalty Applicator**: ranking penalty + featured eligibility on every listing
    5. **Risk Dashboard**: top-risk owners and recent events for admins

    ## Key Principles
    - Telemetry never fails the primary request
    - Events and views are never mutated or deleted
    - Recompute is a full overwrite, safe to repeat
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(suspicious_router)
app.include_router(properties_router)
app.include_router(bookings_router)
app.include_router(payments_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "FindNearPG Risk Backend",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m app.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
