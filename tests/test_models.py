"""Tests for the data models."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from tesla_auth.models import Region, TokenPair, UsageHistory


class TestRegion:
    @pytest.mark.parametrize(
        ("region", "url"),
        [
            (Region.UNKNOWN, "https://auth.tesla.com"),
            (Region.USA, "https://auth.tesla.com"),
            (Region.CHINA, "https://auth.tesla.cn"),
        ],
    )
    def test_base_url(self, region, url):
        assert region.base_url == url

    def test_from_value(self):
        assert Region("china") is Region.CHINA


class TestTokenPair:
    def test_from_owner_api_response(self):
        tokens = TokenPair.from_dict(
            {
                "access_token": "qts-1",
                "refresh_token": "r",
                "created_at": 1_700_000_000,
                "expires_in": 3600,
                "token_type": "bearer",
            }
        )
        assert tokens.created_at == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        assert tokens.expires_in == timedelta(hours=1)
        assert tokens.expires_at == tokens.created_at + timedelta(hours=1)

    def test_round_trip_for_storage(self):
        tokens = TokenPair.from_dict(
            {
                "access_token": "a",
                "refresh_token": "r",
                "created_at": 1_700_000_000,
                "expires_in": 60,
            }
        )
        assert TokenPair.from_dict(tokens.as_dict()) == tokens

    def test_partial_pair(self):
        tokens = TokenPair(access_token="a", refresh_token="r")
        assert tokens.expires_at is None
        assert tokens.is_expired()
        assert tokens.as_dict()["created_at"] is None

    def test_is_expired(self):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        tokens = TokenPair("a", "r", created, timedelta(hours=1))
        assert not tokens.is_expired(now=created + timedelta(minutes=30))
        # inside the 60 second margin
        assert tokens.is_expired(now=created + timedelta(minutes=59, seconds=30))
        assert tokens.is_expired(now=created + timedelta(hours=2))


class TestUsageHistory:
    def test_from_dict(self):
        history = UsageHistory.from_dict(
            {
                "serial_number": "STE1234",
                "installation_time_zone": "America/Los_Angeles",
                "time_series": [
                    {
                        "timestamp": "2021-03-01T00:00:00-08:00",
                        "solar_power": 0,
                        "battery_power": 1520.5,
                        "grid_power": -20,
                        "grid_services_power": 0,
                        "generator_power": 0,
                    },
                    {
                        "timestamp": "2021-03-01T00:05:00-08:00",
                        "solar_power": 10,
                    },
                ],
            }
        )
        assert history.serial_number == "STE1234"
        assert history.installation_time_zone == "America/Los_Angeles"
        assert len(history.time_series) == 2
        first, second = history.time_series
        assert first.battery_power == 1520.5
        assert first.grid_power == -20.0
        assert first.timestamp < second.timestamp
        assert second.battery_power == 0.0

    def test_empty_time_series(self):
        history = UsageHistory.from_dict(
            {"serial_number": "STE1", "time_series": []}
        )
        assert history.time_series == []
        assert UsageHistory.from_dict({"serial_number": "STE1"}).time_series == []
