"""
Teams API -- a lead agent plus the specialists it may consult.

  GET  /api/v1/teams       -- List teams
  POST /api/v1/teams       -- Create a team
  GET  /api/v1/teams/{id}  -- Team with its resolved specialist catalog
"""

import logging

from fastapi import APIRouter, HTTPException, Request

from ...agents import AgentNotFoundError, TeamResolutionError
from ...security import ValidationError, validate_list_size, validate_not_empty
from ..models.requests import CreateTeamRequest
from ..models.responses import TeamInfo

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_TEAM_SIZE = 25


def _team_info(team) -> TeamInfo:
    return TeamInfo(**team.to_dict())


@router.get("/teams", response_model=list[TeamInfo])
async def list_teams(request: Request) -> list[TeamInfo]:
    return [_team_info(t) for t in request.app.state.registry.list_teams()]


@router.post("/teams", response_model=TeamInfo)
async def create_team(body: CreateTeamRequest, request: Request) -> TeamInfo:
    registry = request.app.state.registry
    try:
        name = validate_not_empty(body.name, "name")
        validate_list_size(body.sub_agent_ids, "subAgentIds", max_items=MAX_TEAM_SIZE)
        unknown = [i for i in body.sub_agent_ids if registry.get_agent_definition(i) is None]
        if unknown:
            raise ValidationError(f"Unknown specialist ids: {', '.join(unknown)}")
        team = registry.create_team(
            name=name,
            lead_id=body.team_lead_agent_id,
            sub_agent_ids=body.sub_agent_ids,
            description=body.description,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AgentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _team_info(team)


@router.get("/teams/{team_id}")
async def get_team(team_id: str, request: Request) -> dict:
    registry = request.app.state.registry
    team = registry.get_team(team_id)
    if team is None:
        raise HTTPException(status_code=404, detail=f"Team '{team_id}' not found")
    try:
        catalog = registry.list_specialists_for_team(team_id)
    except TeamResolutionError as e:
        logger.warning(f"[TeamsAPI] {e}")
        catalog = []
    return {
        "team": _team_info(team).model_dump(),
        "specialists": [
            {"id": d.id, "name": d.name, "description": d.description} for d in catalog
        ],
    }
