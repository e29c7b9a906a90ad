import inspect
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from conftest import CLIENT_IP
from pbvault.api import pastes
from pbvault.core.errors import ConnectionFailure
from pbvault.core.security import master_key_digest
from pbvault.main import create_app
from pbvault.services.paste_service import encode_verify_id

HEADERS = {"X-Real-IP": CLIENT_IP}


def upload(client, content=b"hello", password="", expire=None, headers=HEADERS):
    data = {"p": password}
    if expire is not None:
        data["e"] = str(expire)
    return client.post(
        "/",
        files={"d": ("paste.txt", content, "text/plain")},
        data=data,
        headers=headers,
        follow_redirects=False,
    )


def short_id_of(response):
    assert response.status_code == 200, response.text
    assert response.text.startswith("Published at https://pb.example/")
    return response.text.rsplit("/", 1)[-1]


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_status(client):
    response = client.get("/status")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["recaptcha"] is False
    assert body["maxExpireHrs"] == 24


def test_upload_and_read_raw(client):
    short_id = short_id_of(upload(client, b"hello world"))
    response = client.get(f"/{short_id}", params={"f": "raw"})
    assert response.status_code == 200
    assert response.content == b"hello world"
    assert response.headers["content-type"].startswith("text/plain")


def test_read_rendered(client):
    short_id = short_id_of(upload(client, b"hello world", expire=3))
    response = client.get(f"/{short_id}")
    assert response.status_code == 200
    body = response.json()
    assert body["shortId"] == short_id
    assert body["content"] == "hello world"
    assert body["encoding"] == "utf-8"


def test_upload_without_client_address(client):
    response = upload(client, headers={})
    assert response.status_code == 502


@pytest.mark.parametrize("expire", [-1, 25])
def test_upload_rejects_expiry_out_of_range(client, expire):
    assert upload(client, expire=expire).status_code == 400


def test_upload_rejects_empty_file(client):
    assert upload(client, content=b"").status_code == 400


def test_upload_rejects_oversized_file(settings, clock, captcha):
    app = create_app(replace(settings, max_paste_bytes=16), captcha=captcha, clock=clock)
    with TestClient(app) as client:
        assert upload(client, content=b"a" * 16).status_code == 200
        assert upload(client, content=b"a" * 17).status_code == 400


@pytest.mark.parametrize("expire", ["abc", "1.5"])
def test_upload_rejects_non_integer_expiry(client, expire):
    response = upload(client, expire=expire)
    assert response.status_code == 400
    assert response.json()["detail"] == "Bad request"


def test_upload_blank_expiry_uses_default(client):
    assert short_id_of(upload(client, expire=""))


def test_upload_runs_in_threadpool():
    assert not inspect.iscoroutinefunction(pastes.upload_paste)


def test_burn_after_read(client):
    short_id = short_id_of(upload(client, b"hello", password="x", expire=0))
    first = client.get(f"/{short_id}", params={"p": "x", "f": "raw"})
    assert first.status_code == 200
    assert first.content == b"hello"
    second = client.get(f"/{short_id}", params={"p": "x", "f": "raw"})
    assert second.status_code == 404


def test_wrong_password_is_forbidden(client):
    short_id = short_id_of(upload(client, password="x"))
    response = client.get(f"/{short_id}", params={"p": "y"})
    assert response.status_code == 403
    assert response.json()["detail"] == "Forbidden"


def test_unknown_paste(client):
    assert client.get("/doesnotexist").status_code == 404


def test_admin_delete_wrong_key(client):
    short_id = short_id_of(upload(client))
    response = client.delete("/admin", params={"id": short_id}, headers={"X-Master-Key": "wrong"})
    assert response.status_code == 403
    assert client.get(f"/{short_id}", params={"f": "raw"}).status_code == 200


def test_admin_delete_without_key(client):
    short_id = short_id_of(upload(client))
    assert client.delete("/admin", params={"id": short_id}).status_code == 403


def test_admin_delete(client, clock):
    short_id = short_id_of(upload(client))
    token = master_key_digest("master", clock())
    response = client.delete("/admin", params={"id": short_id}, headers={"X-Master-Key": token})
    assert response.status_code == 202
    assert client.get(f"/{short_id}").status_code == 404


def test_verify_disabled(client):
    response = client.post("/verify", data={"snipid": encode_verify_id("abc"),
                                            "g-recaptcha-response": "good"}, headers=HEADERS)
    assert response.status_code == 403


class TestCaptchaFlow:
    def test_upload_redirects_to_verification(self, captcha_client):
        response = upload(captcha_client, b"hello", password="x")
        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith("/showVerify?id=")

        pending = captcha_client.get(location)
        assert pending.status_code == 200
        short_id = pending.json()["shortId"]
        assert captcha_client.get(f"/{short_id}", params={"p": "x"}).status_code == 404

        verified = captcha_client.post(
            "/verify",
            data={"snipid": encode_verify_id(short_id), "g-recaptcha-response": "good"},
            headers=HEADERS,
        )
        assert verified.status_code == 200
        assert f"https://pb.example/{short_id}" in verified.text

        shown = captcha_client.get(f"/{short_id}", params={"p": "x", "f": "raw"})
        assert shown.status_code == 200
        assert shown.content == b"hello"

    def test_failed_captcha_keeps_hold(self, captcha_client, captcha):
        location = upload(captcha_client).headers["location"]
        snipid = location.split("=", 1)[1]
        response = captcha_client.post(
            "/verify", data={"snipid": snipid, "g-recaptcha-response": "bad"}, headers=HEADERS
        )
        assert response.status_code == 403
        assert captcha.calls == [("bad", CLIENT_IP)]

    def test_verify_needs_client_address(self, captcha_client):
        location = upload(captcha_client).headers["location"]
        snipid = location.split("=", 1)[1]
        response = captcha_client.post(
            "/verify", data={"snipid": snipid, "g-recaptcha-response": "good"}
        )
        assert response.status_code == 502

    def test_verify_unknown_paste_is_gone(self, captcha_client):
        response = captcha_client.post(
            "/verify",
            data={"snipid": encode_verify_id("nope"), "g-recaptcha-response": "good"},
            headers=HEADERS,
        )
        assert response.status_code == 410

    def test_verify_malformed_id(self, captcha_client):
        response = captcha_client.post(
            "/verify", data={"snipid": "", "g-recaptcha-response": "good"}, headers=HEADERS
        )
        assert response.status_code == 400


def test_rate_limit(settings, clock, captcha):
    app = create_app(replace(settings, rate_limit_enable=True, rate_limit="2/minute"),
                     captcha=captcha, clock=clock)
    with TestClient(app) as client:
        assert upload(client).status_code == 200
        assert upload(client).status_code == 200
        limited = upload(client)
        assert limited.status_code == 429
        assert "2/minute" in limited.json()["detail"]


def test_rate_limits_are_per_app(settings, clock, captcha):
    strict = create_app(replace(settings, rate_limit_enable=True, rate_limit="1/minute"),
                        captcha=captcha, clock=clock)
    relaxed = create_app(replace(settings, rate_limit_enable=False), captcha=captcha, clock=clock)
    with TestClient(strict) as strict_client, TestClient(relaxed) as relaxed_client:
        assert upload(strict_client).status_code == 200
        assert upload(strict_client).status_code == 429
        for _ in range(3):
            assert upload(relaxed_client).status_code == 200


def test_startup_fails_without_database(settings, tmp_path):
    broken = replace(settings, database_url=f"sqlite:///{tmp_path / 'missing' / 'pb.db'}")
    app = create_app(broken)
    with pytest.raises(ConnectionFailure):
        with TestClient(app):
            pass
