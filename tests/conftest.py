import asyncio

import httpx
import pytest

from app.services.crm import CrmClient
from app.services.property_cache import PropertyCache

CRM_URL = "http://crm.test/api/v1/CUnits"


def crm_record(record_id, name, **fields):
    record = {"id": record_id, "name": name}
    record.update(fields)
    return record


class FakeCrm:
    """Serves a fixed record list the way the CRM listing endpoint pages it."""

    def __init__(self, records, fail_offsets=(), total=None, delay=0.0, raise_offsets=()):
        self.records = list(records)
        self.fail_offsets = set(fail_offsets)
        self.raise_offsets = set(raise_offsets)
        self.total = len(self.records) if total is None else total
        self.delay = delay
        self.requests = []

    @property
    def offsets(self):
        return [int(r.url.params["offset"]) for r in self.requests]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        offset = int(request.url.params["offset"])
        size = int(request.url.params["maxSize"])
        if offset in self.raise_offsets:
            raise RuntimeError("stream broke")
        if offset in self.fail_offsets:
            return httpx.Response(503, json={"message": "unavailable"})
        return httpx.Response(200, json={"list": self.records[offset:offset + size], "total": self.total})

    def client(self, api_key=None):
        return CrmClient(base_url=CRM_URL, api_key=api_key, timeout=5.0, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def sample_records():
    return [
        crm_record("p1", "Alder Court", propertyType="Flat", bedrooms=2, bathrooms=1, receptionRooms=1,
                   parking="Allocated space", latitude=51.5, longitude=-0.12, addressCity="London"),
        crm_record("p2", "Beech House", propertyType="House", bedrooms=4, bathrooms=2, receptionRooms=2,
                   parking="Garage", latitude="52.48", longitude="-1.89", addressCity="Birmingham"),
        crm_record("p3", "Cedar Lodge", propertyType="Bungalow", bedrooms=3, parking="Driveway and garage"),
        crm_record("p4", "Damson Row", propertyType="House", bathrooms=1),
        crm_record("p5", "Elm Mews", propertyType="flat", bedrooms=1, parking=""),
    ]


def make_cache(fake: FakeCrm, page_size=2) -> PropertyCache:
    return PropertyCache(fake.client(), page_size=page_size)
