from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from feeledger.api.v1.classes.classes_router import router as classes_router
from feeledger.api.v1.fee_structures.router import categories_router as fee_categories_router
from feeledger.api.v1.fee_structures.router import router as fee_structures_router
from feeledger.api.v1.fees.router import router as fees_router
from feeledger.api.v1.mpesa.router import router as mpesa_router
from feeledger.api.v1.students.router import router as students_router
from feeledger.core.logging_config import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Fee Ledger")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(classes_router)
    app.include_router(students_router)
    app.include_router(fee_categories_router)
    app.include_router(fee_structures_router)
    app.include_router(fees_router)
    app.include_router(mpesa_router)

    return app


app = create_app()
