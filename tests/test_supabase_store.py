import pytest
import requests

from giftsuggest import config, supabase_store
from giftsuggest.errors import AuthError, ConfigurationError, NotFoundError, UpstreamError


class _Resp:
    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(str(self.status_code))

    def json(self):
        return self._payload


def test_missing_bearer_token_is_an_auth_error():
    with pytest.raises(AuthError) as exc:
        supabase_store.get_user(None)
    assert exc.value.status == 401
    with pytest.raises(AuthError):
        supabase_store.get_user("Basic abc")


def test_rejected_token(monkeypatch):
    monkeypatch.setattr(supabase_store.requests, "get", lambda url, **kw: _Resp({"msg": "bad jwt"}, 401))
    with pytest.raises(AuthError):
        supabase_store.get_user("Bearer expired")


def test_valid_token(monkeypatch):
    seen = {}

    def _get(url, headers=None, timeout=None):
        seen["url"] = url
        seen["auth"] = headers["Authorization"]
        return _Resp({"id": "user-1", "email": "a@b.c"})

    monkeypatch.setattr(supabase_store.requests, "get", _get)
    assert supabase_store.get_user("Bearer good")["id"] == "user-1"
    assert seen == {"url": "https://project.supabase.test/auth/v1/user", "auth": "Bearer good"}


def test_incomplete_configuration(monkeypatch):
    monkeypatch.setattr(config, "SUPABASE_URL", "")
    with pytest.raises(ConfigurationError):
        supabase_store.get_user("Bearer good")


def test_usage_rpc_unwraps_single_row(monkeypatch):
    captured = {}

    def _post(url, headers=None, json=None, timeout=None):
        captured["url"] = url
        captured["body"] = json
        return _Resp([{"allowed": True, "limit": 5, "remaining": 3, "role": "free"}])

    monkeypatch.setattr(supabase_store.requests, "post", _post)
    usage = supabase_store.check_and_increment_usage("user-1")
    assert usage["remaining"] == 3
    assert captured["url"].endswith("/rest/v1/rpc/check_and_increment_ai_usage")
    assert captured["body"] == {"p_user_id": "user-1"}


def test_usage_rpc_failure(monkeypatch):
    monkeypatch.setattr(supabase_store.requests, "post", lambda url, **kw: _Resp({}, 500))
    with pytest.raises(UpstreamError):
        supabase_store.check_and_increment_usage("user-1")


def test_fetch_person(monkeypatch):
    row = {"id": 7, "name": " Jo ", "age_years": "29", "interests": "lecture, voyage", "notes": None, "relationship": "sister"}
    monkeypatch.setattr(supabase_store.requests, "get", lambda url, **kw: _Resp([row]))
    person = supabase_store.fetch_person("7")
    assert person.id == "7"
    assert person.name == "Jo"
    assert person.age == 29
    assert person.interests == ["lecture", "voyage"]
    assert person.notes == ""


def test_fetch_person_not_found(monkeypatch):
    monkeypatch.setattr(supabase_store.requests, "get", lambda url, **kw: _Resp([]))
    with pytest.raises(NotFoundError):
        supabase_store.fetch_person("missing")
