from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from delivery_api.core.config import settings
from delivery_api.core.database import engine
from delivery_api.core.exceptions import ServiceError
from delivery_api.core.logging import setup_logging
from delivery_api.models import Base
from delivery_api.api.orders import router as orders_router
from delivery_api.api.drivers import router as drivers_router
from delivery_api.api.health import router as health_router
from delivery_api.services.payment_gateway import build_payment_gateway


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app.state.payment_gateway = build_payment_gateway(settings)

    yield

    await engine.dispose()


app = FastAPI(
    title="Order Service",
    description="Food delivery order lifecycle and payment reconciliation",
    version="0.1.0",
    lifespan=lifespan
)

cors_origins = settings.cors_origins.split(",") if settings.cors_origins else ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


app.include_router(health_router)
app.include_router(orders_router)
app.include_router(drivers_router)
