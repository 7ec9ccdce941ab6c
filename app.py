# app.py: Padhlo personalization service
# - Weak-area aggregation and exam distribution over plain JSON
# - Insight synthesis with provider race, TTL cache and local fallback

import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, HTTPException

from engines.categories import detect_category_in_question, suggestions_for
from engines.exam_distribution import (
    DEFAULT_PRIORITY_CATEGORIES,
    InvalidRequest,
    allocate,
    build_quick_exam,
)
from engines.insight_pipeline import fingerprint, get_pipeline
from engines.performance_chat import answer_question
from engines.weak_areas import WeakArea, aggregate
from schemas import (
    DistributionEntryModel,
    DistributionRequest,
    DistributionResponse,
    InsightRequest,
    InsightResponse,
    QuestionRequest,
    QuestionResponse,
    QuickExamRequest,
    QuickExamResponse,
    WeakAreaModel,
    WeakAreasRequest,
    WeakAreasResponse,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(_: FastAPI):
    try:
        from env_validation import validate_environment

        settings = validate_environment()
        pipeline = get_pipeline()
        logger.info(
            "Insight providers in use: %s | provider timeout %.1fs | fallback timeout %.1fs",
            [provider.name for provider in pipeline.providers] or "none",
            settings.provider_timeout,
            settings.fallback_timeout,
        )
        yield
    except Exception as e:
        logger.error("Failed to initialize application: %s", str(e), exc_info=True)
        raise


app = FastAPI(title="Padhlo Personalization", version="1.0.0", lifespan=_lifespan)


def _weak_area_model(area: WeakArea) -> WeakAreaModel:
    return WeakAreaModel(
        category=area.category,
        average_score=area.average_score,
        sample_count=area.sample_count,
        suggestions=suggestions_for(area.category),
    )


def _to_weak_areas(models: List[WeakAreaModel]) -> List[WeakArea]:
    areas = [model.to_weak_area() for model in models]
    return sorted(areas, key=lambda area: area.average_score)


@app.get("/")
def root():
    return {"service": app.title, "version": app.version}


@app.post("/weak-areas", response_model=WeakAreasResponse)
def weak_areas(req: WeakAreasRequest):
    records = [item.to_record() for item in req.records]
    areas = aggregate(records, top_k=req.top_k)
    return WeakAreasResponse(weak_areas=[_weak_area_model(area) for area in areas], count=len(areas))


@app.post("/exam/distribution", response_model=DistributionResponse)
def exam_distribution(req: DistributionRequest):
    try:
        plan = allocate(req.categories, req.total_questions, req.priority_categories)
    except InvalidRequest as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return DistributionResponse(
        distribution=[DistributionEntryModel(category=e.category, count=e.count) for e in plan],
        total=plan.total,
        min_per_category=plan.min_per_category,
    )


@app.post("/exam/quick", response_model=QuickExamResponse)
def quick_exam(req: QuickExamRequest):
    priority = req.priority_categories
    if priority is None:
        priority = list(DEFAULT_PRIORITY_CATEGORIES)
    try:
        exam = build_quick_exam(
            req.categories,
            req.total_questions,
            priority,
            negative_marking=req.negative_marking,
        )
    except InvalidRequest as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return QuickExamResponse.model_validate(exam.to_payload())


@app.post("/insights", response_model=InsightResponse)
async def insights(req: InsightRequest):
    stats = req.stats.to_stats()
    areas = _to_weak_areas(req.weak_areas)
    records = [item.to_record() for item in req.records]
    text = await get_pipeline().synthesize(stats, areas, records or None)
    return InsightResponse(insight=text, fingerprint=fingerprint(stats, areas))


@app.post("/insights/ask", response_model=QuestionResponse)
async def ask_about_performance(req: QuestionRequest):
    pipeline = get_pipeline()
    provider = pipeline.providers[0] if pipeline.providers else None
    answer = await answer_question(
        req.question,
        req.stats.to_stats(),
        _to_weak_areas(req.weak_areas),
        [item.to_record() for item in req.records],
        provider,
    )
    return QuestionResponse(answer=answer, category=detect_category_in_question(req.question))


@app.delete("/insights/cache")
def clear_insight_cache():
    get_pipeline().clear_cache()
    return {"cleared": True}
