"""FastAPI server for the equivalent plan generator."""

import dataclasses
from typing import Any, Dict, List, Optional, Union

import uvicorn
import yaml
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from exchange_planner.app_logging import configure_logging
from exchange_planner.config import EngineSettings
from exchange_planner.data_layer.catalog_db import ExchangeCatalogDB
from exchange_planner.data_layer.exceptions import ConfigurationError
from exchange_planner.data_layer.models import PatientProfile
from exchange_planner.data_layer.patient_profile import profile_from_dict
from exchange_planner.output.formatters import format_plan_json
from exchange_planner.planning.plan_generator import generate_plan


app = FastAPI(title="Exchange Planner API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Local development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ClinicalFlags(BaseModel):
    diabetes: bool = False
    hypertension: bool = False
    dyslipidemia: bool = False


class PlanRequest(BaseModel):
    goal: str = "maintain"
    goal_delta_kg_per_week: float = 0.5
    sex: str = "female"
    age: int = 30
    weight_kg: float = 70.0
    height_cm: float = 165.0
    activity_level: str = "medium"
    meals_per_day: int = 3
    country_code: str = "MX"
    state_code: str = ""
    system_id: str = "mx_smae"
    formula_id: str = "mifflin_st_jeor"
    diet_pattern: str = "omnivore"
    allergies: List[str] = Field(default_factory=list)
    intolerances: List[str] = Field(default_factory=list)
    likes: List[str] = Field(default_factory=list)
    dislikes: List[str] = Field(default_factory=list)
    budget_level: str = "medium"
    prep_time_level: str = "medium"
    training_window: str = "none"
    dairy_in_snacks: bool = False
    planning_focus: str = "clinical"
    clinical: ClinicalFlags = Field(default_factory=ClinicalFlags)
    adjustments: Dict[str, Union[float, str]] = Field(default_factory=dict)
    top_n: Optional[int] = Field(default=None, gt=0)


def _build_profile(request: PlanRequest) -> PatientProfile:
    data = request.model_dump(exclude={"adjustments", "top_n"})
    return profile_from_dict(data)


def _settings(request: Optional[PlanRequest] = None) -> EngineSettings:
    settings = EngineSettings.from_env()
    if request is not None and request.top_n is not None:
        settings = dataclasses.replace(settings, top_foods_per_bucket=request.top_n)
    return settings


@app.post("/api/plan")
def plan_equivalents(request: PlanRequest) -> Dict[str, Any]:
    try:
        profile = _build_profile(request)
        result = generate_plan(profile, _settings(request), request.adjustments)
        return format_plan_json(result)
    except (ConfigurationError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.get("/api/systems")
def list_systems() -> List[Dict[str, str]]:
    try:
        return ExchangeCatalogDB(_settings().catalog_path).describe_systems()
    except (OSError, ValueError, ConfigurationError, yaml.YAMLError) as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def run(host: str = "0.0.0.0", port: int = 8000) -> None:
    configure_logging()
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run()
