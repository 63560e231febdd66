from typing import Optional

from fastapi import FastAPI

from config import Settings, load_credentials
from routers import numbers
from services.acquisition import NumberAcquirer
from services.airtable_client import AuditTrail
from services.area_codes import AreaCodeTable
from services.twilio_numbers import TwilioNumbers, create_client
from utils.logger import configure_logging, log_info, set_audit_sink


def create_app(settings: Optional[Settings] = None, acquirer: Optional[NumberAcquirer] = None) -> FastAPI:
    """
    Builds the app. Configuration, credentials and the area code table are
    resolved here, once; Twilio clients are opened on startup.

    Passing `acquirer` skips the Twilio wiring (used by tests).
    """
    settings = settings or Settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    app = FastAPI(title="Near Number Service")
    app.state.settings = settings
    app.state.acquirer = acquirer
    app.state.twilio = []

    # Register Routers
    app.include_router(numbers.router)

    if acquirer is None:
        credentials = load_credentials(settings=settings)
        area_codes = AreaCodeTable.from_csv(settings.AREA_CODES_FILE)
        audit = AuditTrail.from_settings(settings)
        if audit is not None:
            set_audit_sink(audit.log_event)

        @app.on_event("startup")
        async def startup_event():
            log_info("Starting Near Number Service")
            log_info(f"Loaded {len(area_codes)} area codes for {settings.SUPPORTED_COUNTRY}")

            query_numbers = TwilioNumbers(create_client(credentials.query))
            buy_numbers = TwilioNumbers(create_client(credentials.buy))
            app.state.twilio = [query_numbers, buy_numbers]
            app.state.acquirer = NumberAcquirer(
                inventory=query_numbers,
                purchaser=buy_numbers,
                area_codes=area_codes,
                supported_country=settings.SUPPORTED_COUNTRY,
                skip_area_code=settings.SKIP_AREA_CODE,
                timeout=settings.PROVIDER_TIMEOUT_SECONDS,
                audit=audit,
                owned=buy_numbers,
            )

        @app.on_event("shutdown")
        async def shutdown_event():
            for twilio_numbers in app.state.twilio:
                await twilio_numbers.close()
            log_info("Stopped Near Number Service")

    @app.get("/")
    async def root():
        return {"message": "Near Number Service is running"}

    return app


if __name__ == "__main__":
    import os
    import uvicorn
    port = int(os.environ.get("PORT", 8080))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)
