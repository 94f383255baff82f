from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_api.api.dependencies import get_payment_gateway
from delivery_api.core.database import get_db
from delivery_api.services.payment_gateway import PaymentGateway

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> dict[str, str | dict[str, str]]:
    health = {"status": "healthy", "checks": {}}

    try:
        await db.execute(text("SELECT 1"))
        health["checks"]["database"] = "healthy"
    except Exception as e:
        health["checks"]["database"] = f"unhealthy: {str(e)}"
        health["status"] = "unhealthy"

    if gateway.configured:
        health["checks"]["payment_gateway"] = "configured"
    else:
        health["checks"]["payment_gateway"] = "not configured"
        health["status"] = "degraded"

    return health
