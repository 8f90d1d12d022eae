"""소비(burn) 레코드 도메인 모델."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, Field


class BurnType(StrEnum):
    CHAT_MESSAGE = "chat_message"
    AI_CHAT = "ai_chat"
    PACK_OPENING = "pack_opening"
    PIXEL_ART = "pixel_art"
    PIXEL_ART_SPEND = "pixel_art_spend"
    CARD_PURCHASE = "card_purchase"
    CARD_SALE = "card_sale"
    POOL_BOOST = "pool_boost"
    SWIPE_BOOST = "swipe_boost"
    POST_TEXT = "post_text"
    POST_IMAGE = "post_image"
    POST_GIF = "post_gif"
    POST_VIDEO = "post_video"
    POST_COMMENT = "post_comment"
    POST_REPOST = "post_repost"
    GAME_ADD = "game_add"
    VIDEO_ADD = "video_add"
    RAFFLE_ENTRY = "raffle_entry"
    BLACKJACK_BET = "blackjack_bet"
    # 지갑 토큰으로 결제되므로 크레딧 잔액에서는 빠지지 않는다.
    ELITE_BADGE = "elite_badge"


# 지급 가능 잔액에서 차감되는 소비 유형
SPENDABLE_BURN_TYPES: frozenset[BurnType] = frozenset(
    t for t in BurnType if t is not BurnType.ELITE_BADGE
)


class BurnRecord(BaseModel):
    """개별 소비 레코드 도메인 모델 (불변)."""

    id: str | None = None
    user_id: str = Field(min_length=1)
    burn_type: BurnType
    amount: Decimal = Field(ge=0)
    created_at: datetime
