from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShortUrlCreate(BaseModel):
    # Optional so a missing url is reported as a 400 by the store
    url: str | None = None
    validity: int | None = None
    shortcode: str | None = None


class ShortUrlOut(CamelModel):
    short_link: str
    expiry: datetime


class ClickOut(CamelModel):
    timestamp: datetime
    referrer: str
    user_agent: str | None = None


class StatsOut(CamelModel):
    shortcode: str
    total_clicks: int
    original_url: str
    created_at: datetime
    expiry: datetime
    click_data: list[ClickOut]


class LoginIn(BaseModel):
    email: str | None = None
    name: str | None = None
    roll_no: str | None = Field(default=None, alias="rollNo")
    access_code: str | None = Field(default=None, alias="accessCode")
    client_id: str | None = Field(default=None, alias="clientID")
    client_secret: str | None = Field(default=None, alias="clientSecret")
