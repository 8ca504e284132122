import pytest

from clusterforge.config.models import StateStoreCredentials, StateStoreDetails
from clusterforge.errors import ExternalCallError, NotFoundError
from clusterforge.providers.digitalocean import DigitaloceanProvider


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body if body is not None else {}
        self.content = b"x" if body is not None else b""
        self.text = str(body)

    def json(self):
        return self._body


class FakeSession:
    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def request(self, method, url, headers=None, timeout=None, params=None, json=None):
        self.calls.append((method, url, params, json, headers))
        key = (method, url.replace(DigitaloceanProvider.api_base, ""), (params or {}).get("page"))
        resp = self.routes.get(key) or self.routes.get(key[:2])
        if resp is None:
            return FakeResponse(404, {"message": "not found"})
        return resp


class FakeObjectStorage:
    def __init__(self):
        self.buckets = []

    def create_bucket(self, credentials, details):
        self.buckets.append((credentials, details))


def provider(routes, storage=None):
    return DigitaloceanProvider(token="do-token", session=FakeSession(routes), object_storage=storage or FakeObjectStorage())


def test_list_dns_records_follows_pagination():
    p = provider({
        ("GET", "/domains/example.com/records", 1): FakeResponse(200, {
            "domain_records": [{"id": 1, "name": "@", "type": "A", "data": "1.2.3.4", "ttl": 1800}],
            "links": {"pages": {"next": "https://api.digitalocean.com/v2/domains/example.com/records?page=2"}},
        }),
        ("GET", "/domains/example.com/records", 2): FakeResponse(200, {
            "domain_records": [{"id": 2, "name": "clusterforge-liveness", "type": "TXT", "data": "ok"}],
            "links": {},
        }),
    })

    records = p.list_dns_records("example.com")

    assert [(r.name, r.type) for r in records] == [("@", "A"), ("clusterforge-liveness", "TXT")]
    assert records[0].id == "1"
    assert p.session.calls[0][4]["Authorization"] == "Bearer do-token"


def test_create_txt_record_posts_payload():
    p = provider({
        ("POST", "/domains/example.com/records"): FakeResponse(201, {
            "domain_record": {"id": 9, "name": "marker", "type": "TXT", "data": "v", "ttl": 600},
        }),
    })

    rec = p.create_txt_record("example.com", "marker", "v", 600)

    assert rec.id == "9"
    assert p.session.calls[0][3] == {"type": "TXT", "name": "marker", "data": "v", "ttl": 600}


def test_get_domain_info_missing_domain():
    with pytest.raises(NotFoundError):
        provider({}).get_domain_info("missing.example")


def test_server_error_is_external_call_error():
    p = provider({("GET", "/domains"): FakeResponse(500, {"message": "down"})})
    with pytest.raises(ExternalCallError):
        p.list_domains()


def test_instance_types_filtered_by_region():
    p = provider({
        ("GET", "/sizes"): FakeResponse(200, {
            "sizes": [
                {"slug": "s-2vcpu-4gb", "available": True, "regions": ["nyc3", "sfo3"]},
                {"slug": "s-8vcpu-16gb", "available": True, "regions": ["sfo3"]},
                {"slug": "old", "available": False, "regions": ["nyc3"]},
            ],
        }),
    })
    assert p.list_instance_types("nyc3") == ["s-2vcpu-4gb"]


def test_create_state_store_creates_key_and_bucket():
    storage = FakeObjectStorage()
    p = provider({
        ("POST", "/spaces/keys"): FakeResponse(201, {
            "key": {"name": "kf-mgmt-state-store", "access_key": "AK", "secret_key": "SK"},
        }),
    }, storage)

    creds, details = p.create_state_store("kf-mgmt")

    assert creds == StateStoreCredentials(access_key_id="AK", secret_access_key="SK", name="kf-mgmt-state-store")
    assert details == StateStoreDetails(name="kf-mgmt-state-store", hostname="nyc3.digitaloceanspaces.com", region="nyc3")
    assert storage.buckets == [(creds, details)]


def test_terraform_env():
    assert provider({}).terraform_env()["DIGITALOCEAN_TOKEN"] == "do-token"
