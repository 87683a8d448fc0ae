"""Service loader - reads service descriptors from the dashboard services file."""
import json
import logging
import re
from pathlib import Path
from typing import List, Union
from urllib.parse import urlsplit

from pydantic import ValidationError

from ..schemas.service import ServiceDescriptor
from .errors import InvalidServiceError

logger = logging.getLogger(__name__)


class ServiceLoader:
    """Loads, de-duplicates and validates services from a JSON file.

    Expected format: ``{"services": [{"name": ..., "url": ..., ...}, ...]}``.
    Entries may use the dashboard's camelCase keys (``healthCheck``,
    ``healthCheckInterval``).
    """

    def load_services(self, path: Union[str, Path]) -> List[ServiceDescriptor]:
        """Load services from ``path``. Returns [] when the file is unusable."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Services file not found: {path}")
            return []

        try:
            config = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not load services file {path}: {e}")
            return []

        if not isinstance(config, dict) or not isinstance(config.get("services"), list):
            logger.warning(f"Invalid services file format: {path}")
            return []

        services = self.validate_services(self.deduplicate_services(config["services"]))
        logger.info(f"Loaded {len(services)} services from {path}")
        return services

    def deduplicate_services(self, services: List[dict]) -> List[dict]:
        """Drop repeated services, keeping the first occurrence."""
        seen = set()
        unique = []
        for service in services:
            if not isinstance(service, dict):
                logger.warning(f"Skipping non-object service entry: {service!r}")
                continue

            key = service.get("id") or service.get("name") or service.get("url")
            if not key:
                logger.warning(f"Service missing identifier: {service}")
                continue
            if key in seen:
                logger.info(f"Duplicate service found: {key}")
                continue

            seen.add(key)
            unique.append(service)
        return unique

    def validate_services(self, services: List[dict]) -> List[ServiceDescriptor]:
        validated = []
        for service in services:
            try:
                validated.append(self.validate_service(service))
            except (InvalidServiceError, ValidationError) as e:
                logger.warning(f"Service validation failed for {service.get('name') or 'unknown'}: {e}")

        failed = len(services) - len(validated)
        if failed:
            logger.warning(f"{failed} services failed validation")
        return validated

    def validate_service(self, service: dict) -> ServiceDescriptor:
        name = service.get("name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidServiceError("Service missing required field: name")

        url = service.get("url")
        if not isinstance(url, str) or not url.strip():
            raise InvalidServiceError("Service missing required field: url")

        parts = urlsplit(url.strip())
        if not parts.scheme or not parts.netloc:
            raise InvalidServiceError(f"Invalid URL format: {url}")

        data = dict(service)
        data["name"] = name.strip()
        data["url"] = url.strip()
        data["id"] = service.get("id") or self.generate_service_id(name)
        return ServiceDescriptor.model_validate(data)

    @staticmethod
    def generate_service_id(name: str) -> str:
        """Slug a service name into an id, e.g. "Home Assistant" -> "home-assistant"."""
        slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
        if not slug:
            raise InvalidServiceError(f"Cannot derive an id from name: {name!r}")
        return slug


service_loader = ServiceLoader()
