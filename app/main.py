from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.api.routes import employees, locks, public_holidays, schedule, schedule_templates, template_assignments
from app.core.errors import ScheduleError
from app.core.logging import configure_logging

configure_logging()

app = FastAPI(title="ShiftLedger API", version="0.1.0")


@app.exception_handler(ScheduleError)
def schedule_error_handler(request: Request, exc: ScheduleError):
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


app.include_router(employees.router, prefix="/api/v1")
app.include_router(schedule.router, prefix="/api/v1")
app.include_router(schedule_templates.router, prefix="/api/v1")
app.include_router(template_assignments.router, prefix="/api/v1")
app.include_router(locks.router, prefix="/api/v1")
app.include_router(public_holidays.router, prefix="/api/v1")


@app.get("/health")
def health_check():
    return {"status": "ok"}
