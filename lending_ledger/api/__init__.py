"""
Lending Ledger API Application Factory
"""

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .admin import router as admin_router
from .auth import LendingSystem, get_lending_system
from .collateral import router as collateral_router
from .loans import router as loans_router
from .tokens import router as tokens_router
from .. import __version__


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Lending Ledger API",
        description="Fixed-point lending ledger for loans, collateral and rewards",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(collateral_router, prefix="/collateral", tags=["Collateral"])
    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(admin_router, prefix="/admin", tags=["Admin"])
    app.include_router(tokens_router, prefix="/tokens", tags=["Tokens"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "lending_ledger_api",
            "version": __version__
        }

    @app.get("/accounting")
    async def get_accounting(system: LendingSystem = Depends(get_lending_system)):
        """Global aggregates plus a reconciliation against the records"""
        report = system.ledger.reconcile()
        return {
            "accounting_mode": system.ledger.accounting_mode.value,
            "totals": system.ledger.get_accounting().to_dict(),
            "reconciliation": {
                "lent_difference": str(report.lent_difference),
                "collateral_difference": str(report.collateral_difference),
                "balanced": report.is_balanced
            }
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Lending Ledger API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "accounting": "/accounting",
                "collateral": "/collateral",
                "loans": "/loans",
                "admin": "/admin",
                "tokens": "/tokens",
            }
        }

    return app


# Create the app instance for uvicorn
app = create_app()
