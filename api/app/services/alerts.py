from __future__ import annotations

from fastapi import Depends

from app.core.config import Settings, get_settings
from app.schemas.alerts import RiskAlertEvent
from app.services.email_templates import render_admin_alert, render_bulk_alert
from app.services.mailer import BulkSendResult, Mailer, SendResult, get_mailer
from app.services.risk import alert_subject


class AlertDispatcher:
    """Routes risk events to the configured admin address."""

    def __init__(self, mailer: Mailer, *, dashboard_url: str) -> None:
        self.mailer = mailer
        self.dashboard_url = dashboard_url

    async def send_single(self, event: RiskAlertEvent) -> SendResult:
        return await self.mailer.send_admin_alert(
            subject=alert_subject(event),
            html=render_admin_alert(event, dashboard_url=self.dashboard_url),
        )

    async def send_bulk(self, events: list[RiskAlertEvent]) -> BulkSendResult:
        """Send one digest covering every report to the admin address."""
        result = await self.mailer.send_admin_alert(
            subject=f"📢 West Bengal Migration Summary: {len(events)} Districts Analyzed",
            html=render_bulk_alert(events, dashboard_url=self.dashboard_url),
        )
        return BulkSendResult(successful=int(result.success), failed=int(not result.success), results=[result])


def get_alert_dispatcher(
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
) -> AlertDispatcher:
    return AlertDispatcher(mailer, dashboard_url=settings.app_url)
