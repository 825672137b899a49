import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field, validator

from ..config import Config
from ..exceptions import NoDataError, NotReadyError
from ..observability import ApiMetrics, setup_logging, setup_observability
from ..service import RainfallService


logger = logging.getLogger(__name__)


class PredictionRequest(BaseModel):
    district: str = Field(..., description="District name, e.g. Mysuru.")
    taluk: Optional[str] = Field(default=None, description="Taluk within the district.")
    hobli: Optional[str] = Field(default=None, description="Hobli within the taluk.")
    target_year: Optional[int] = Field(
        default=None,
        ge=1900,
        le=2200,
        description="Year to predict for; defaults to the current year.",
    )

    @validator("district")
    def district_required(cls, v: str):  # type: ignore[override]
        v = str(v).strip()
        if not v:
            raise ValueError("District must be provided.")
        return v

    @validator("taluk", "hobli")
    def blank_to_none(cls, v: Optional[str]):  # type: ignore[override]
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class MonthlyRainfallOut(BaseModel):
    month: str
    rainfall: float


class CropRecommendationOut(BaseModel):
    soil_type: str
    crops: str
    sowing_period: str
    common_diseases: str
    precautions: str


class PredictionResponse(BaseModel):
    location: str
    annual_rainfall_mm: int
    monthly: List[MonthlyRainfallOut]
    recommendations: List[CropRecommendationOut]
    band: str
    data_level: str
    history_rows: int
    target_year: int


async def _run_startup(service: RainfallService) -> None:
    try:
        await service.start()
    except Exception as exc:
        logger.exception("Rainfall service startup failed: %s", exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service: RainfallService = app.state.service
    task = None
    if not service.ready:
        # Serve requests (with 503s) while data loads and the model trains.
        task = asyncio.create_task(_run_startup(service))
    app.state.startup_task = task
    yield
    if task is not None:
        await task


def create_app(
    service: Optional[RainfallService] = None,
    config: Optional[Config] = None,
) -> FastAPI:
    config = config or Config.from_env()
    setup_logging(config.LOG_LEVEL, json_output=config.LOG_JSON)

    app = FastAPI(
        title="Karnataka Rainfall Predictor",
        description=(
            "Annual and monthly rainfall outlook with cropping advisories for "
            "Karnataka districts, taluks, and hoblis."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.service = service or RainfallService.from_config(config)
    setup_observability(app, ApiMetrics())

    @app.exception_handler(NotReadyError)
    async def not_ready_handler(request: Request, exc: NotReadyError):
        return JSONResponse(status_code=503, content=exc.to_dict())

    @app.exception_handler(NoDataError)
    async def no_data_handler(request: Request, exc: NoDataError):
        return JSONResponse(status_code=404, content=exc.to_dict())

    def _service() -> RainfallService:
        return app.state.service

    @app.get("/health", response_model=Dict)
    def health() -> Dict:
        service = _service()
        return {
            "ready": service.ready,
            "has_model": service.has_model,
            "districts": len(service.get_hierarchy()) if service.ready else 0,
        }

    @app.get("/districts", response_model=List[str])
    def list_districts() -> List[str]:
        return _service().get_hierarchy()

    @app.get("/districts/{district}/taluks", response_model=List[str])
    def list_taluks(district: str) -> List[str]:
        return _service().taluks(district)

    @app.get("/districts/{district}/taluks/{taluk}/hoblis", response_model=List[str])
    def list_hoblis(district: str, taluk: str) -> List[str]:
        return _service().hoblis(district, taluk)

    @app.post("/predict", response_model=PredictionResponse)
    def predict(request: PredictionRequest) -> Dict:
        """
        Predict annual rainfall for the selected location, with its monthly
        distribution and cropping recommendations.
        """
        result = _service().predict(
            request.district,
            taluk=request.taluk,
            hobli=request.hobli,
            target_year=request.target_year,
        )
        return result.to_dict()

    @app.post(
        "/advisory",
        response_class=PlainTextResponse,
        response_description="Plain-text advisory report.",
    )
    def advisory(request: PredictionRequest) -> str:
        return _service().advisory(
            request.district,
            taluk=request.taluk,
            hobli=request.hobli,
            target_year=request.target_year,
        )

    @app.get("/model-info", response_model=Dict)
    def model_info() -> Dict:
        """Return metadata for the currently loaded rainfall model."""
        return _service().model_info()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
