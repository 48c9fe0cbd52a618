"""Tests for wiring the engine from configuration."""

from zoneinfo import ZoneInfo

import pytest

from payremind.exceptions import ConfigurationError
from payremind.notifications.application.senders import (
    ConsoleSender,
    SMTPEmailSender,
    WhatsAppCloudSender,
)
from payremind.notifications.domain.enums import Channel
from payremind.notifications.factory import (
    build_notification_service,
    build_scheduler,
    build_senders,
)
from payremind.utils.config import Settings

pytestmark = pytest.mark.unit


def app_settings(tmp_path, **overrides) -> Settings:
    return Settings(_env_file=None, data_dir=tmp_path, **overrides)


class TestBuildSenders:
    def test_console_transport(self, tmp_path):
        senders = build_senders(app_settings(tmp_path))

        assert set(senders) == {Channel.EMAIL, Channel.WHATSAPP}
        assert all(isinstance(s, ConsoleSender) for s in senders.values())

    def test_live_transport_with_whatsapp(self, tmp_path):
        senders = build_senders(
            app_settings(
                tmp_path,
                transport="live",
                smtp_host="smtp.test",
                whatsapp_phone_number_id="123",
                whatsapp_token="tok",
            )
        )

        assert isinstance(senders[Channel.EMAIL], SMTPEmailSender)
        assert senders[Channel.EMAIL].config.host == "smtp.test"
        assert isinstance(senders[Channel.WHATSAPP], WhatsAppCloudSender)
        assert senders[Channel.WHATSAPP].endpoint.endswith("/123/messages")

    def test_live_transport_without_whatsapp(self, tmp_path):
        senders = build_senders(app_settings(tmp_path, transport="live"))

        assert list(senders) == [Channel.EMAIL]

    def test_live_transport_partial_whatsapp_credentials(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            build_senders(app_settings(tmp_path, transport="live", whatsapp_token="tok"))

        assert exc_info.value.context["setting"] == "whatsapp_phone_number_id"


class TestBuildService:
    def test_service_uses_configured_paths_and_zone(self, tmp_path):
        service = build_notification_service(
            app_settings(tmp_path, timezone="Europe/Rome", stats_upcoming_days_default=5)
        )

        assert service.order_repository.path == tmp_path / "orders.json"
        assert service.settings_repository.path == tmp_path / "notificationSettings.json"
        assert service.tz == ZoneInfo("Europe/Rome")
        assert service.upcoming_days_default == 5
        assert service.dispatcher.message_format.store_name == "Your Store"

    def test_injected_clock(self, tmp_path, clock):
        service = build_notification_service(app_settings(tmp_path), clock=clock)

        assert service.clock is clock
        assert service.dispatcher.clock is clock

    def test_scheduler_uses_configured_time(self, tmp_path):
        settings = app_settings(
            tmp_path, scheduler_hour=7, scheduler_minute=30, poll_interval_seconds=15
        )

        scheduler = build_scheduler(settings)

        assert (scheduler.hour, scheduler.minute) == (7, 30)
        assert scheduler.poll_interval_seconds == 15
        assert scheduler.running is False

    def test_scheduler_reuses_given_service(self, tmp_path):
        settings = app_settings(tmp_path)
        service = build_notification_service(settings)

        assert build_scheduler(settings, service=service).service is service
