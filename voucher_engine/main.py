import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from voucher_engine.config import configure_logging, get_settings
from voucher_engine.db import engine, Base
from voucher_engine.errors import VoucherEngineError

from voucher_engine.models.voucher import Voucher
from voucher_engine.models.voucher_code import VoucherCode
from voucher_engine.models.customer_voucher import CustomerVoucher
from voucher_engine.models.voucher_scan import VoucherScan

from voucher_engine.routes.vouchers import router as vouchers_router
from voucher_engine.routes.customers import router as customers_router
from voucher_engine.routes.admin import router as admin_router


logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings)

app = FastAPI(title="Voucher Engine")

# ─── CORS ─────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(VoucherEngineError)
def handle_voucher_engine_error(request: Request, exc: VoucherEngineError):
    if exc.status_code >= 500:
        logger.error(
            "voucher engine error",
            extra={"path": request.url.path, "code": exc.code, "detail": exc.message},
        )
    else:
        logger.info(
            "request rejected",
            extra={"path": request.url.path, "code": exc.code, "detail": exc.message},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
def startup():
    Base.metadata.create_all(bind=engine)


app.include_router(vouchers_router)
app.include_router(customers_router)
app.include_router(admin_router)


@app.get("/")
def read_root():
    return {"message": "Voucher Engine is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8001)
