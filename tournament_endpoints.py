"""
Turnuva API
Admin endpoints for registration, group stage and knockout brackets
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Optional
import logging

from models import (
    ClubCreate, PlayerCreate, RankingUpdate, TournamentCreate, EnrollmentUpdate,
    GroupScoreInput, ScoreInput, RefereeOverride, FixtureStage, TournamentStatus
)
from tournament_store import TournamentStore, MongoTournamentStore
from tournament_engine import TournamentEngine
from registration_service import RegistrationService
from tournament_errors import (
    TournamentError, ValidationError, LifecycleError, NotFoundError,
    ConstraintError, StoreError
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Database reference
_db = None


def set_database(database):
    """Database referansını ayarla"""
    global _db
    _db = database
    logger.info(f"✅ Tournament DB set: {_db is not None}")


def get_store() -> TournamentStore:
    if _db is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database not initialized")
    return MongoTournamentStore(_db)


def get_engine(store: TournamentStore = Depends(get_store)) -> TournamentEngine:
    return TournamentEngine(store)


def get_registration(store: TournamentStore = Depends(get_store)) -> RegistrationService:
    return RegistrationService(store)


def to_http_exception(error: TournamentError) -> HTTPException:
    # LifecycleError and NotFoundError are ValidationErrors, check them first
    if isinstance(error, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, (LifecycleError, ConstraintError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(error, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, StoreError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if code >= 500:
        logger.error(f"❌ {type(error).__name__}: {error.message}")
    else:
        logger.warning(f"⚠️ {type(error).__name__}: {error.message}")
    return HTTPException(status_code=code, detail=error.message)


# ==================== REGISTRATION ====================

@router.post("/clubs", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_club(data: ClubCreate, registration: RegistrationService = Depends(get_registration)):
    try:
        return await registration.create_club(data)
    except TournamentError as e:
        raise to_http_exception(e)


@router.get("/clubs", response_model=List[dict])
async def list_clubs(registration: RegistrationService = Depends(get_registration)):
    try:
        return await registration.list_clubs()
    except TournamentError as e:
        raise to_http_exception(e)


@router.post("/players", response_model=dict, status_code=status.HTTP_201_CREATED)
async def register_player(data: PlayerCreate, registration: RegistrationService = Depends(get_registration)):
    try:
        return await registration.register_player(data)
    except TournamentError as e:
        raise to_http_exception(e)


@router.get("/players", response_model=List[dict])
async def list_players(registration: RegistrationService = Depends(get_registration)):
    try:
        return await registration.list_players()
    except TournamentError as e:
        raise to_http_exception(e)


@router.put("/players/{player_id}/ranking", response_model=dict)
async def update_player_ranking(
    player_id: str,
    data: RankingUpdate,
    registration: RegistrationService = Depends(get_registration)
):
    try:
        return await registration.update_player_ranking(player_id, data.ranking)
    except TournamentError as e:
        raise to_http_exception(e)


@router.post("/tournaments", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_tournament(data: TournamentCreate, registration: RegistrationService = Depends(get_registration)):
    try:
        return await registration.create_tournament(data)
    except TournamentError as e:
        raise to_http_exception(e)


@router.get("/tournaments", response_model=List[dict])
async def list_tournaments(
    status_filter: Optional[TournamentStatus] = Query(None, alias="status"),
    registration: RegistrationService = Depends(get_registration)
):
    try:
        return await registration.list_tournaments(status_filter)
    except TournamentError as e:
        raise to_http_exception(e)


@router.get("/tournaments/{tournament_id}", response_model=dict)
async def get_tournament(tournament_id: str, engine: TournamentEngine = Depends(get_engine)):
    try:
        return await engine.get_tournament(tournament_id)
    except TournamentError as e:
        raise to_http_exception(e)


@router.put("/tournaments/{tournament_id}/enrollments", response_model=dict)
async def set_enrollments(
    tournament_id: str,
    data: EnrollmentUpdate,
    registration: RegistrationService = Depends(get_registration)
):
    """Kayıt listesini tamamen değiştirir"""
    try:
        enrollments = await registration.set_enrollments(tournament_id, data.player_ids)
        return {"message": "Enrollments updated", "count": len(enrollments), "enrollments": enrollments}
    except TournamentError as e:
        raise to_http_exception(e)


# ==================== GROUP STAGE ====================

@router.post("/tournaments/{tournament_id}/tiers", response_model=dict)
async def compute_tiers(tournament_id: str, engine: TournamentEngine = Depends(get_engine)):
    try:
        tiers = await engine.compute_tiers(tournament_id)
        return {"message": "Tiers computed", "tiers": tiers}
    except TournamentError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/draw", response_model=dict)
async def draw_groups(tournament_id: str, engine: TournamentEngine = Depends(get_engine)):
    """Kura çekimi"""
    try:
        drawn = await engine.draw_groups(tournament_id)
        return {"message": f"{len(drawn['groups'])} groups drawn", **drawn}
    except TournamentError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/rounds", response_model=dict)
async def build_group_rounds(tournament_id: str, engine: TournamentEngine = Depends(get_engine)):
    try:
        summary = await engine.build_group_rounds_and_fixtures(tournament_id)
        return {"message": "Group rounds and fixtures created", **summary}
    except TournamentError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/fields", response_model=dict)
async def assign_fields(tournament_id: str, engine: TournamentEngine = Depends(get_engine)):
    try:
        summary = await engine.assign_fields_per_round(tournament_id)
        return {"message": "Fields assigned", **summary}
    except TournamentError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/referees", response_model=dict)
async def assign_referees(tournament_id: str, engine: TournamentEngine = Depends(get_engine)):
    """Hakemleri otomatik ata"""
    try:
        summary = await engine.assign_referees_global(tournament_id)
        return {"message": "Referees assigned", **summary}
    except TournamentError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/group-stage", response_model=dict)
async def build_group_stage(tournament_id: str, engine: TournamentEngine = Depends(get_engine)):
    """Rounds, fields and referees in one call"""
    try:
        summary = await engine.build_group_stage(tournament_id)
        return {"message": "Group stage ready", **summary}
    except TournamentError as e:
        raise to_http_exception(e)


@router.get("/tournaments/{tournament_id}/fixtures", response_model=List[dict])
async def list_fixtures(
    tournament_id: str,
    stage: Optional[FixtureStage] = None,
    engine: TournamentEngine = Depends(get_engine)
):
    try:
        return await engine.list_fixtures(tournament_id, stage)
    except TournamentError as e:
        raise to_http_exception(e)


@router.put("/tournaments/{tournament_id}/fixtures/{fixture_id}/referee", response_model=dict)
async def set_fixture_referee(
    tournament_id: str,
    fixture_id: str,
    data: RefereeOverride,
    engine: TournamentEngine = Depends(get_engine)
):
    try:
        return await engine.set_fixture_referee(
            tournament_id, fixture_id, data.referee_player_id, data.referee_external_name
        )
    except TournamentError as e:
        raise to_http_exception(e)


@router.put("/tournaments/{tournament_id}/fixtures/{fixture_id}/result", response_model=dict)
async def record_group_result(
    tournament_id: str,
    fixture_id: str,
    data: GroupScoreInput,
    engine: TournamentEngine = Depends(get_engine)
):
    """Grup maçı skoru"""
    try:
        return await engine.record_group_result(tournament_id, fixture_id, data.home_goals, data.away_goals)
    except TournamentError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/slot-results", response_model=dict)
async def record_slot_results(
    tournament_id: str,
    scores: List[GroupScoreInput],
    engine: TournamentEngine = Depends(get_engine)
):
    try:
        saved = await engine.record_slot_results(tournament_id, scores)
        return {"message": f"{len(saved)} results saved", "results": saved}
    except TournamentError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/standings/recompute", response_model=dict)
async def recompute_standings(tournament_id: str, engine: TournamentEngine = Depends(get_engine)):
    try:
        summary = await engine.recompute_standings(tournament_id)
        return {"message": "Standings recomputed", **summary}
    except TournamentError as e:
        raise to_http_exception(e)


@router.get("/tournaments/{tournament_id}/standings", response_model=dict)
async def get_standings(tournament_id: str, engine: TournamentEngine = Depends(get_engine)):
    try:
        return await engine.get_group_standings(tournament_id)
    except TournamentError as e:
        raise to_http_exception(e)


# ==================== KNOCKOUT ====================

@router.post("/tournaments/{tournament_id}/knockout", response_model=dict)
async def generate_knockout(tournament_id: str, engine: TournamentEngine = Depends(get_engine)):
    """Altın ve gümüş eleme tabloları"""
    try:
        counts = await engine.generate_knockout(tournament_id)
        return {"message": "Knockout brackets created", **counts}
    except TournamentError as e:
        raise to_http_exception(e)


@router.put("/tournaments/{tournament_id}/fixtures/{fixture_id}/ko-result", response_model=dict)
async def record_ko_result(
    tournament_id: str,
    fixture_id: str,
    data: ScoreInput,
    engine: TournamentEngine = Depends(get_engine)
):
    try:
        return await engine.record_ko_result(tournament_id, fixture_id, data)
    except TournamentError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/knockout/progress", response_model=dict)
async def progress_knockout(tournament_id: str, engine: TournamentEngine = Depends(get_engine)):
    try:
        return await engine.progress_if_round_complete(tournament_id)
    except TournamentError as e:
        raise to_http_exception(e)
