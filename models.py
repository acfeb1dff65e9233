from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum
import uuid


def new_id() -> str:
    return str(uuid.uuid4())


class TournamentStatus(str, Enum):
    SIGNUP = "signup"  # Kayıt açık
    DRAW = "draw"  # Kura çekildi
    GROUPS = "groups"  # Grup maçları
    KNOCKOUT = "knockout"  # Eleme turları
    COMPLETED = "completed"


class FixtureStage(str, Enum):
    GROUP = "group"
    GOLD = "gold"
    SILVER = "silver"


class RoundName(str, Enum):
    BARRAGE = "barrage"
    QUARTER = "quarter"
    SEMI = "semi"
    FINAL = "final"
    THIRD_PLACE = "third_place"


KNOCKOUT_STAGES = [FixtureStage.GOLD, FixtureStage.SILVER]


# ==================== REGISTRATION ====================

class Club(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    logo_url: Optional[str] = None  # Logo upload is handled outside the engine
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ClubCreate(BaseModel):
    name: str = Field(..., min_length=1)
    logo_url: Optional[str] = None


class Player(BaseModel):
    id: str = Field(default_factory=new_id)
    full_name: str
    ranking: int = 0  # Higher = stronger
    club_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class PlayerCreate(BaseModel):
    full_name: str = Field(..., min_length=1)
    ranking: int = 0
    club_id: Optional[str] = None


class RankingUpdate(BaseModel):
    ranking: int


class Tournament(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=new_id)
    name: str
    fields_total: int = Field(1, ge=1)
    status: TournamentStatus = TournamentStatus.SIGNUP
    third_place_match: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class TournamentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    fields_total: int = Field(1, ge=1)
    third_place_match: bool = False


class Enrollment(BaseModel):
    tournament_id: str
    player_id: str
    seq: int  # Kayıt sırası - tier sıralamasında eşitlik bozucu


class EnrollmentUpdate(BaseModel):
    player_ids: List[str] = []


# ==================== GROUP STAGE ====================

class Tier(BaseModel):
    tournament_id: str
    player_id: str
    tier: int = Field(..., ge=1, le=4)


class Group(BaseModel):
    id: str = Field(default_factory=new_id)
    tournament_id: str
    name: str  # "A", "B", "C"...


class GroupMember(BaseModel):
    tournament_id: str
    group_id: str
    player_id: str
    tier: int = Field(..., ge=1, le=4)


class Round(BaseModel):
    id: str = Field(default_factory=new_id)
    tournament_id: str
    group_id: str
    index_small: int = Field(..., ge=1, le=3)


class Fixture(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=new_id)
    tournament_id: str
    stage: FixtureStage
    seq: int = 0  # Creation order

    # Group stage
    group_id: Optional[str] = None
    round_id: Optional[str] = None
    slot_in_round: Optional[int] = None

    # Knockout
    round_order: Optional[int] = None
    round_name: Optional[RoundName] = None
    is_third_place: bool = False

    home_player_id: str
    away_player_id: str
    referee_player_id: Optional[str] = None
    referee_external_name: Optional[str] = None
    field_number: Optional[int] = None


class Result(BaseModel):
    id: str = Field(default_factory=new_id)
    fixture_id: str
    home_goals_ft: int = Field(..., ge=0)
    away_goals_ft: int = Field(..., ge=0)
    et_home_goals: Optional[int] = Field(None, ge=0)
    et_away_goals: Optional[int] = Field(None, ge=0)
    pen_home_goals: Optional[int] = Field(None, ge=0)
    pen_away_goals: Optional[int] = Field(None, ge=0)
    went_extra_time: bool = False
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Standing(BaseModel):
    tournament_id: str
    group_id: str
    player_id: str
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    gf: int = 0
    ga: int = 0
    gd: int = 0
    points: int = 0


# ==================== SCORE INPUT ====================

class GroupScoreInput(BaseModel):
    """Regulation score of a group fixture"""
    fixture_id: Optional[str] = None  # Only used by bulk slot submission
    home_goals: int = Field(..., ge=0)
    away_goals: int = Field(..., ge=0)


class ScoreInput(BaseModel):
    """
    Knockout score as entered by the admin
    Extra time goals are only kept when extra time was played,
    penalty goals only when a shootout happened
    """
    home_goals_ft: int = Field(..., ge=0)
    away_goals_ft: int = Field(..., ge=0)
    went_extra_time: bool = False
    et_home_goals: Optional[int] = Field(None, ge=0)
    et_away_goals: Optional[int] = Field(None, ge=0)
    went_to_penalties: bool = False
    pen_home_goals: Optional[int] = Field(None, ge=0)
    pen_away_goals: Optional[int] = Field(None, ge=0)


class RefereeOverride(BaseModel):
    referee_player_id: Optional[str] = None
    referee_external_name: Optional[str] = None
