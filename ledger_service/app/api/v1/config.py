"""레저 설정 API. 쓰기는 Gateway 가 관리자 ID 헤더를 붙인 요청만 허용한다."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header

from ..schemas.config import LedgerConfigResponse, LedgerConfigUpdateRequest
from ...models.ledger_config import LedgerConfig
from ...services.config_service import ConfigService, get_config_service


router = APIRouter()


def _to_response(config: LedgerConfig) -> LedgerConfigResponse:
    return LedgerConfigResponse(
        **config.model_dump(),
        effective_decay_rate=config.effective_decay_rate,
    )


@router.get("", response_model=LedgerConfigResponse, summary="현재 레저 설정")
def get_config(
    config_service: Annotated[ConfigService, Depends(get_config_service)],
) -> LedgerConfigResponse:
    return _to_response(config_service.get_current())


@router.put("", response_model=LedgerConfigResponse, summary="레저 설정 변경 (관리자)")
def update_config(
    body: LedgerConfigUpdateRequest,
    config_service: Annotated[ConfigService, Depends(get_config_service)],
    admin_id: Annotated[str, Header(alias="X-Admin-Id", min_length=1)],
) -> LedgerConfigResponse:
    changes = body.model_dump(exclude_unset=True, exclude={"expected_version"})
    updated = config_service.update(
        changes, updated_by=admin_id, expected_version=body.expected_version
    )
    return _to_response(updated)
