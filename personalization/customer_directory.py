"""
Customer directory lookups by phone number.

Two backends:
- InMemoryCustomerDirectory: records seeded from a YAML file (demo / tests)
- HttpCustomerDirectory: CRM lookup over HTTP
"""
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union

import httpx
import yaml

from config.constants import PERSONA_VALUES
from core.exceptions import DirectoryLookupError
from core.interfaces import CustomerDirectory

logger = logging.getLogger(__name__)

_CHANNEL_PREFIX_RE = re.compile(r"^(whatsapp|sms|tel):", re.IGNORECASE)


def normalize_phone(phone: str) -> str:
    """Strip channel prefixes and formatting: 'whatsapp:+972 53-340' -> '+97253340'."""
    phone = _CHANNEL_PREFIX_RE.sub("", (phone or "").strip())
    return re.sub(r"[\s\-().]", "", phone)


@dataclass
class CustomerRecord:
    """Customer attributes the orchestrator cares about."""

    phone: str
    name: str
    persona: Optional[str] = None  # male, female

    def __post_init__(self):
        self.phone = normalize_phone(self.phone)
        if self.persona is not None:
            persona = str(self.persona).strip().lower()
            self.persona = persona if persona in PERSONA_VALUES else None


class InMemoryCustomerDirectory(CustomerDirectory):
    """In-memory customer directory."""

    def __init__(self, records: Iterable[CustomerRecord] = ()):
        self.customers: dict[str, CustomerRecord] = {}
        for record in records:
            self.add(record)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "InMemoryCustomerDirectory":
        """
        Load customers from YAML.

        Expected format:
            customers:
              - phone: "+972533403449"
                name: Dana
                gender: female
        """
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        records = [
            CustomerRecord(
                phone=str(item["phone"]),
                name=item.get("name", ""),
                persona=item.get("persona") or item.get("gender"),
            )
            for item in data.get("customers", [])
        ]
        logger.info(f"[CRM] Loaded {len(records)} customer records from {path}")
        return cls(records)

    def add(self, record: CustomerRecord) -> None:
        self.customers[record.phone] = record

    async def lookup(self, phone: str) -> Optional[CustomerRecord]:
        return self.customers.get(normalize_phone(phone))


class HttpCustomerDirectory(CustomerDirectory):
    """
    CRM lookup over HTTP.

    Calls ``GET {base_url}/customers/{phone}``; a 404 means the phone is
    unknown. The response body is expected to carry ``name`` and
    ``gender`` (or ``persona``).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the CRM client.

        Args:
            base_url: CRM API base URL
            api_key: Bearer token (optional)
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

    async def lookup(self, phone: str) -> Optional[CustomerRecord]:
        normalized = normalize_phone(phone)
        start = time.time()
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    f"{self.base_url}/customers/{normalized}",
                    headers=self._headers(),
                )
                if response.status_code == 404:
                    logger.info(f"[CRM] No customer for {normalized}")
                    return None
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"[CRM] Lookup failed for {normalized}: {type(e).__name__}: {e}")
            raise DirectoryLookupError(f"CRM lookup failed: {e}") from e

        duration_ms = int((time.time() - start) * 1000)
        logger.info(f"[CRM] Lookup for {normalized}: {duration_ms}ms")

        return CustomerRecord(
            phone=data.get("phone", normalized),
            name=data.get("name", ""),
            persona=data.get("persona") or data.get("gender"),
        )
