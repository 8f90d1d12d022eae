from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from bson import Decimal128, ObjectId
from pydantic import BaseModel, ConfigDict, Field, SerializationInfo
from pydantic.functional_serializers import PlainSerializer
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


def ensure_utc_datetime(value: datetime) -> datetime:
    """datetime 값을 UTC 기준으로 정규화한다.

    - tzinfo 가 없으면 UTC 로 간주해 tzinfo=UTC 를 부여
    - tzinfo 가 있으면 UTC 로 변환
    """

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ensure_optional_utc_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return ensure_utc_datetime(value)


def to_decimal(value: Any) -> Decimal:
    """Decimal128/int/float/str 을 Decimal 로 변환한다.

    float 는 이진 오차를 피하기 위해 문자열을 거쳐 변환한다.
    """

    if isinstance(value, Decimal):
        return value
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, float):
        return Decimal(str(value))
    if value is None:
        raise TypeError("Decimal cannot be None")
    return Decimal(value)


def serialize_decimal(value: Decimal, info: SerializationInfo) -> Any:
    """Mongo 저장용 dump 는 Decimal128, JSON dump 는 문자열로 직렬화한다."""

    if info.mode == "json":
        return str(value)
    return Decimal128(value)


def to_object_id(value: Any) -> ObjectId:
    """여러 타입(str, ObjectId 등)을 MongoDB ObjectId 로 변환한다."""

    if isinstance(value, ObjectId):
        return value
    if value is None:
        raise TypeError("ObjectId cannot be None")
    return ObjectId(str(value))


def from_object_id(value: Optional[ObjectId]) -> Optional[str]:
    if value is None:
        return None
    return str(value)


PyObjectId = Annotated[ObjectId, BeforeValidator(to_object_id)]
MongoDateTime = Annotated[datetime, BeforeValidator(ensure_utc_datetime)]
OptionalMongoDateTime = Annotated[
    Optional[datetime], BeforeValidator(ensure_optional_utc_datetime)
]
# 금액 필드: 읽을 때는 Decimal, 저장할 때는 Decimal128 (Mongo $sum 이 정확하게 동작하도록)
MongoDecimal = Annotated[
    Decimal,
    BeforeValidator(to_decimal),
    PlainSerializer(serialize_decimal, return_type=Any),
]


class BaseDocument(BaseModel):
    """MongoDB 도큐먼트용 공통 베이스 모델.

    - ObjectId, Decimal128 같은 임의 타입을 허용
    - alias 기반 직렬화(by_alias)를 사용할 수 있도록 한다.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    created_at: MongoDateTime

    def to_mongo_record(self) -> dict[str, Any]:
        """MongoDB 저장에 사용할 표준 레코드(dict) 직렬화.

        - by_alias=True 로 id -> _id 등의 Mongo 필드 이름과 일치시킨다.
        - exclude_none=True 로 _id=None 같은 필드를 제거해 Mongo가 ObjectId 를 생성하도록 한다.
        """

        return self.model_dump(by_alias=True, exclude_none=True)
