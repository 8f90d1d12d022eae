from __future__ import annotations

from .core import Topic


# 활동 소스(게임/음악/영상/스왑)와 하트비트가 발행하는 이벤트
TOPIC_ACTIVITY = Topic("reward-ledger.activity")
# 레저가 발행하는 이벤트 (decay 적용, 지급 확정, 설정 변경)
TOPIC_LEDGER = Topic("reward-ledger.ledger")
