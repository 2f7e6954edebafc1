import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError

from ..config import Settings, get_settings
from ..core.errors import NotFoundError, ValidationError
from ..db.base import SessionLocal
from ..models.safety import ModerationDecision, RiskLevel
from ..models.sql_models import CommunityPost, PostReport
from ..orchestration.llm import build_moderation_engine
from ..orchestration.scrubber import sanitize_content
from ..policies.community import initial_visibility, should_auto_hide
from ..safety.moderation import ModerationEngine
from ..safety.triage import TriageEngine
from .sos import build_triage_engine

logger = logging.getLogger(__name__)


def _post_dict(post: CommunityPost) -> Dict[str, Any]:
    return {
        "id": post.id,
        "user_id": post.user_id,
        "content": post.content,
        "report_count": post.report_count,
        "hidden": post.hidden,
        "moderation_status": post.moderation_status,
        "created_at": post.created_at,
    }


class CommunityService:
    def __init__(
        self,
        moderation: Optional[ModerationEngine] = None,
        triage: Optional[TriageEngine] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.moderation = moderation or build_moderation_engine(self.settings)
        self.triage = triage or build_triage_engine(self.settings)

    async def create_post(self, user_id: str, content: str) -> Dict[str, Any]:
        """Moderate and store a post.

        approve: visible; review: stored hidden pending review; reject: not
        stored, ``ValidationError`` carries the rationale and a rewrite.
        A risk post always triggers SOS and is stored hidden for review, even
        when moderation would reject it.
        """
        if not user_id:
            raise ValidationError("user_id é obrigatório")
        clean = sanitize_content(content)
        if not clean:
            raise ValidationError("Conteúdo vazio")

        risk = self.triage.assess_risk(clean)
        sos = None
        if risk.level == RiskLevel.RISK:
            # Before the moderation verdict: a rejected post still gets SOS
            sos = await self.triage.trigger_sos(user_id, {"message": clean, "risk_assessment": risk})

        analysis = await self.moderation.analyze(clean)
        decision = self.moderation.decide(analysis)
        if sos is not None:
            # Held for a human whatever the decision; the author gets the contacts
            hidden, status = True, "pending_review"
        elif decision == ModerationDecision.REJECT:
            logger.info("post_rejected", extra={"user_id": user_id, "judgement": analysis.judgement_score})
            raise ValidationError(
                "Post não publicado pela moderação",
                {"rationale": analysis.rationale, "suggested_rewrite": analysis.suggested_rewrite},
            )
        else:
            hidden, status = initial_visibility(decision)

        db = SessionLocal()
        try:
            post = CommunityPost(
                user_id=user_id,
                content=clean,
                hidden=hidden,
                moderation_status=status,
                judgement_score=analysis.judgement_score,
                toxicity_score=analysis.toxicity_score,
                created_at=datetime.now(timezone.utc),
            )
            db.add(post)
            db.commit()
            db.refresh(post)
            out = _post_dict(post)
        finally:
            db.close()
            SessionLocal.remove()

        out["decision"] = decision.value
        out["risk_level"] = risk.level.value
        if sos is not None:
            out["sos"] = sos
        logger.info("post_created", extra={"user_id": user_id, "decision": decision.value, "hidden": hidden})
        return out

    async def report_post(self, post_id: str, user_id: str, reason: str) -> Dict[str, Any]:
        """Record one report per user; hide the post at the auto-hide threshold."""
        if not user_id or not reason:
            raise ValidationError("userId e reason são obrigatórios")

        db = SessionLocal()
        try:
            post = db.query(CommunityPost).filter(CommunityPost.id == post_id).first()
            if post is None:
                raise NotFoundError("Post não encontrado", {"post_id": post_id})
            exists = (
                db.query(PostReport)
                .filter(PostReport.post_id == post_id, PostReport.user_id == user_id)
                .first()
            )
            if exists is not None:
                raise ValidationError("Você já denunciou este post")

            db.add(PostReport(post_id=post_id, user_id=user_id, reason=reason, created_at=datetime.now(timezone.utc)))
            try:
                db.flush()
            except IntegrityError as e:
                db.rollback()
                raise ValidationError("Você já denunciou este post") from e

            # Distinct reporters, recounted inside the same transaction
            post.report_count = db.query(PostReport).filter(PostReport.post_id == post_id).count()
            if should_auto_hide(post.report_count, self.settings.REPORT_AUTO_HIDE_THRESHOLD) and not post.hidden:
                post.hidden = True
                logger.warning("post_auto_hidden", extra={"post_id": post_id, "reports": post.report_count})
            db.commit()
            db.refresh(post)
            return _post_dict(post)
        finally:
            db.close()
            SessionLocal.remove()


_community_service: Optional[CommunityService] = None


def get_community_service() -> CommunityService:
    global _community_service
    if _community_service is None:
        _community_service = CommunityService()
    return _community_service
