from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db
from app.exceptions import QueryNotFoundError
from app.models.schemas import PriceScenarioRequest, PriceScenarioResponse
from app.services.scenario_service import ScenarioError, run_price_scenario

router = APIRouter()


@router.post("/{query_id}/scenarios/price", response_model=PriceScenarioResponse)
async def price_scenario(
    query_id: str,
    data: PriceScenarioRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """What-if analysis for a proposed price."""
    try:
        scenario = await run_price_scenario(
            db,
            query_id,
            proposed_price=data.proposed_price,
            baseline_price=data.baseline_price,
        )
    except QueryNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Query not found")
    except ScenarioError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return PriceScenarioResponse(
        proposed_price=scenario.proposed_price,
        baseline_price=scenario.baseline_price,
        price_change_pct=scenario.price_change_pct,
        baseline_sentiment=scenario.baseline_sentiment,
        expected_sentiment=scenario.expected_sentiment,
        competitor_response=scenario.competitor_response,
    )
