from typing import Any, Dict

from fastapi import APIRouter, Depends, FastAPI, HTTPException
from sqlalchemy.orm import Session

import models
from db.session import get_db
from logging_setup import logger
from search import (
    ConditionParser,
    FieldResolver,
    ParseError,
    QueryBuildError,
    SearchDispatcher,
    SearchEngineError,
    SearchOperators,
)

app = FastAPI(title="Inventory Search API", description="API for composing advanced inventory searches")
router = APIRouter(prefix="/v1")


@router.post("/inventories/search", response_model=models.SearchResult)
def search_inventories(request: models.SearchParams, db: Session = Depends(get_db)):
    """
    Search inventories.

    Requests that only carry **keyword**, **status** or **lowStock** take the simple path;
    any other filter switches to the advanced composition engine.
    """
    try:
        return SearchDispatcher(db).dispatch(request)
    except (ParseError, QueryBuildError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SearchEngineError as e:
        logger.error(f"Inventory search failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/inventories/search/explain", response_model=models.ExplainResponse)
def explain_inventory_search(request: models.SearchParams, db: Session = Depends(get_db)):
    """
    Show the SQL a search would run, without executing it.
    """
    try:
        return SearchDispatcher(db).explain(request)
    except (ParseError, QueryBuildError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/search/fields", response_model=Dict[str, Any])
def get_search_fields():
    """
    List the fields that can be filtered on, grouped by entity, with their short aliases.
    """
    return FieldResolver().available_fields()


@router.get("/search/operators", response_model=Dict[str, Any])
def get_search_operators():
    return {
        "operators": SearchOperators.describe(),
        "groups": ["and", "or"],
        "max_depth": ConditionParser().max_depth,
    }


app.include_router(router)
