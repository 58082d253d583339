from typing import Literal

from app.schemas.common import CamelModel

TestEmailType = Literal["job-alert", "application-accepted", "application-rejected", "admin-alert"]


class TestEmailRequest(CamelModel):
    type: str | None = None
    to: str | None = None
