from __future__ import annotations

from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from vetmatch.enrich import apply_master_matching, count_unconfirmed
from vetmatch.eval.evaluate import evaluate_cases, validate_case
from vetmatch.eval.schema import EvalCase
from vetmatch.extracted import validate_extracted
from vetmatch.matcher import default_matcher
from vetmatch.schema import EntityKind


class MatchInput(BaseModel):
    text: str


class EvaluateInput(BaseModel):
    cases: List[Dict[str, Any]]


app = FastAPI(title="Vet Master Matching Debug API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.post("/match/{kind}")
def match(kind: EntityKind, payload: MatchInput) -> dict:
    return default_matcher().match(payload.text, kind).to_dict()


@app.post("/extracted/enrich")
def enrich_extracted(payload: Dict[str, Any]) -> dict:
    errors = validate_extracted(payload)
    if errors:
        raise HTTPException(status_code=422, detail=errors)
    enriched = apply_master_matching(payload)
    return {"extracted": enriched, "unconfirmed_count": count_unconfirmed(enriched)}


@app.post("/evaluate")
def evaluate(payload: EvaluateInput) -> dict:
    errors = []
    for i, case in enumerate(payload.cases):
        try:
            validate_case(case)
        except ValueError as exc:
            errors.append(f"cases[{i}]: {exc}")
    if errors:
        raise HTTPException(status_code=422, detail=errors)
    cases = [EvalCase.from_dict(case) for case in payload.cases]
    return evaluate_cases(cases).to_dict()
