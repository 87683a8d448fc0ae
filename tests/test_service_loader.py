"""Tests for loading services from the dashboard services file."""
import json

import pytest

from homelab_health.schemas.service import ProbeConfig
from homelab_health.services.errors import InvalidServiceError
from homelab_health.services.service_loader import ServiceLoader


@pytest.fixture
def loader():
    return ServiceLoader()


def _write(tmp_path, payload):
    path = tmp_path / "services.json"
    path.write_text(json.dumps(payload))
    return path


def test_load_services_reads_descriptors(loader, tmp_path):
    path = _write(tmp_path, {"services": [
        {
            "id": "nextcloud",
            "name": "Nextcloud",
            "url": "https://cloud.example.net",
            "healthCheckInterval": 120000,
            "category": "Storage",
            "icon": "cloud",
        },
        {
            "name": "Home Assistant",
            "url": " https://ha.example.net ",
            "healthCheck": {
                "url": "https://ha.example.net/api/",
                "expectedStatus": [200, 401],
                "timeout": 3000,
            },
        },
    ]})

    services = loader.load_services(path)

    assert [s.id for s in services] == ["nextcloud", "home-assistant"]
    assert services[0].check_interval_ms == 120000
    assert services[0].category == "Storage"
    assert services[1].url == "https://ha.example.net"
    assert isinstance(services[1].health_check, ProbeConfig)
    assert services[1].health_check.expected_statuses == [200, 401]
    assert services[1].health_check.timeout_ms == 3000


def test_duplicates_keep_first_occurrence(loader, tmp_path):
    path = _write(tmp_path, {"services": [
        {"id": "emby", "name": "Emby", "url": "https://emby.example.net"},
        {"id": "emby", "name": "Emby (old)", "url": "https://old.example.net"},
        {"url": ""},
    ]})

    services = loader.load_services(path)

    assert len(services) == 1
    assert services[0].name == "Emby"


def test_invalid_services_are_skipped(loader, tmp_path):
    path = _write(tmp_path, {"services": [
        {"name": "No URL"},
        {"name": "Bad URL", "url": "emby"},
        {"name": "  ", "url": "https://blank.example.net"},
        {"name": "Bad interval", "url": "https://x.example.net", "healthCheckInterval": -5},
        {"name": "Good", "url": "https://good.example.net"},
        "not an object",
    ]})

    services = loader.load_services(path)

    assert [s.id for s in services] == ["good"]


@pytest.mark.parametrize("content", ["{not json", json.dumps({"services": {}}), json.dumps([])])
def test_unusable_file_yields_no_services(loader, tmp_path, content):
    path = tmp_path / "services.json"
    path.write_text(content)

    assert loader.load_services(path) == []


def test_missing_file_yields_no_services(loader, tmp_path):
    assert loader.load_services(tmp_path / "missing.json") == []


@pytest.mark.parametrize("name, expected", [
    ("Home Assistant", "home-assistant"),
    ("  PhotoPrism!  ", "photoprism"),
    ("Audiobookshelf -- Books", "audiobookshelf-books"),
])
def test_generate_service_id(name, expected):
    assert ServiceLoader.generate_service_id(name) == expected


def test_generate_service_id_rejects_symbol_only_names():
    with pytest.raises(InvalidServiceError):
        ServiceLoader.generate_service_id("!!!")
