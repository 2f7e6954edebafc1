from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from ....models.safety import SOSActionResult
from ....services.community import CommunityService, get_community_service

router = APIRouter(prefix="/community", tags=["community"])


class PostCreate(BaseModel):
    user_id: str = Field(alias="userId", min_length=1)
    content: str = Field(min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class ReportCreate(BaseModel):
    user_id: str = Field(alias="userId", min_length=1)
    reason: str = Field(min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class PostOut(BaseModel):
    id: str
    user_id: str
    content: str
    report_count: int
    hidden: bool
    moderation_status: str
    created_at: Optional[datetime] = None
    decision: Optional[str] = None
    risk_level: Optional[str] = None
    sos: Optional[SOSActionResult] = None


@router.post("/posts", response_model=PostOut, status_code=status.HTTP_201_CREATED)
async def create_post(body: PostCreate, service: CommunityService = Depends(get_community_service)):
    return await service.create_post(body.user_id, body.content)


@router.post("/posts/{post_id}/reports", response_model=PostOut)
async def report_post(post_id: str, body: ReportCreate, service: CommunityService = Depends(get_community_service)):
    """Report a post; it is hidden once enough distinct users report it."""
    return await service.report_post(post_id, body.user_id, body.reason)
