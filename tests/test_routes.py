from __future__ import annotations

import io

from PIL import Image
from sqlalchemy.exc import OperationalError

from conftest import PASSWORD, csrf_token, login
from kardo.routers import cards as cards_router
from kardo.routers import profiles as profiles_router


def _seed(repo, make_user):
    user = make_user(handle="jane-doe", display_name="Jane Doe", title="CTO", website="https://jane.example.com")
    repo.insert_cards(["AB7K9Q2M", "NEWCARD2", "DSABLED2"])
    repo.claim_card("AB7K9Q2M", user.id)
    # disabled after being claimed: the profile link is still in place
    repo.claim_card("DSABLED2", user.id)
    repo.update_card_status("DSABLED2", "disabled")
    return user


def test_card_redirects(client, repo, make_user):
    _seed(repo, make_user)
    cases = {
        "/c/AB7K9Q2M": "/u/jane-doe",
        "/c/ab7k9q2m": "/u/jane-doe",
        "/c/ab7k9q2m%20": "/u/jane-doe",
        "/c/NEWCARD2": "/claim?code=NEWCARD2",
        "/c/DSABLED2": "/card-disabled",
        "/c/ZZ99ZZ99": "/unknown-card",
        "/c/not-a-code": "/unknown-card",
        # decoded once: %2541 is the literal text %41, not A
        "/c/%2541B7K9Q2M": "/unknown-card",
    }
    for path, location in cases.items():
        resp = client.get(path, follow_redirects=False)
        assert resp.status_code == 303, path
        assert resp.headers["location"] == location, path


def test_vcard_download(client, repo, make_user):
    _seed(repo, make_user)
    for path in ("/u/jane-doe.vcf", "/u/Jane-Doe/vcf", "/c/AB7K9Q2M/vcf"):
        resp = client.get(path)
        assert resp.status_code == 200, path
        assert resp.headers["content-type"] == "text/vcard; charset=utf-8"
        assert resp.headers["content-disposition"] == 'inline; filename="jane-doe.vcf"'
        assert resp.headers["cache-control"] == "no-store"
        assert resp.text.startswith("BEGIN:VCARD\r\nVERSION:3.0\r\nFN:Jane Doe\r\n")
    assert client.get("/u/nobody.vcf").status_code == 404
    assert client.get("/c/NEWCARD2/vcf").status_code == 404
    assert client.get("/c/DSABLED2/vcf").status_code == 404


def test_public_profile_and_qr(client, repo, make_user):
    _seed(repo, make_user)
    resp = client.get("/u/JANE-DOE")
    assert resp.status_code == 200
    assert "Jane Doe" in resp.text
    assert 'content="noindex' in resp.text
    assert client.get("/u/nobody").status_code == 404

    qr = client.get("/q/jane-doe.png")
    assert qr.status_code == 200
    assert qr.headers["content-type"] == "image/png"
    assert qr.content.startswith(b"\x89PNG")


def test_signup_requires_csrf(client):
    resp = client.post("/auth/signup", data={"email": "a@example.com", "password": PASSWORD})
    assert resp.status_code == 403


def test_claim_flow(client, repo, make_user):
    repo.insert_cards(["NEWCARD2"])
    make_user("jane.doe@example.com")

    token = csrf_token(client)
    resp = client.post("/claim", data={"code": "newcard2", "csrf_token": token}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"].startswith("/login?next=")

    assert login(client, next_path="/claim?code=NEWCARD2").status_code == 303
    resp = client.post("/claim", data={"code": "newcard2", "csrf_token": token}, follow_redirects=False)
    assert resp.headers["location"] == "/profile?claimed=NEWCARD2"

    card = repo.get_card("NEWCARD2")
    assert card.status == "active"
    # profile was created lazily from the e-mail local part
    assert repo.get_profile(card.profile_id).handle == "jane-doe"
    assert client.get("/c/NEWCARD2", follow_redirects=False).headers["location"] == "/u/jane-doe"

    # claiming again sends the visitor to the card's current destination
    resp = client.post("/claim", data={"code": "NEWCARD2", "csrf_token": token}, follow_redirects=False)
    assert resp.headers["location"] == "/c/NEWCARD2"

    resp = client.post("/claim", data={"code": "ZZ99ZZ99", "csrf_token": token}, follow_redirects=False)
    assert "error=" in resp.headers["location"]


def test_profile_edit_and_handle_uniqueness(client, repo, make_user):
    make_user("taken@example.com", handle="taken")
    user = make_user("jane.doe@example.com")
    login(client)
    assert client.get("/profile").status_code == 200
    token = csrf_token(client)

    resp = client.post(
        "/profile",
        data={"csrf_token": token, "handle": "Taken", "display_name": "Jane"},
        follow_redirects=False,
    )
    assert "already+taken" in resp.headers["location"] or "already%20taken" in resp.headers["location"]

    resp = client.post(
        "/profile",
        data={
            "csrf_token": token,
            "handle": "jane",
            "display_name": "Jane Doe",
            "website": "javascript:alert(1)",
            "linkedin": "linkedin.com/in/jane",
            "phone": "(555) 123-4567",
            "country_code": "1",
            "searchable": "1",
        },
        follow_redirects=False,
    )
    assert resp.headers["location"] == "/profile?saved=1"
    profile = repo.get_profile(user.id)
    assert profile.handle == "jane"
    assert profile.website is None
    assert profile.linkedin == "https://linkedin.com/in/jane"
    assert profile.phone == "5551234567"
    assert profile.country_code == "+1"
    assert profile.searchable is True
    assert profile.show_qr_code is False

    vcf = client.get("/u/jane.vcf").text
    assert "TEL;TYPE=CELL:+15551234567\r\n" in vcf
    assert "URL:" not in vcf


def test_avatar_upload(client, repo, make_user):
    user = make_user("jane.doe@example.com", handle="jane-doe")
    login(client)
    token = csrf_token(client)
    buf = io.BytesIO()
    Image.new("RGB", (800, 600), (200, 30, 30)).save(buf, format="PNG")
    resp = client.post(
        "/profile/avatar",
        data={"csrf_token": token},
        files={"avatar": ("me.png", buf.getvalue(), "image/png")},
        follow_redirects=False,
    )
    assert resp.headers["location"] == "/profile?saved=1"
    assert repo.get_profile(user.id).avatar_url.startswith(f"/uploads/{user.id}-")

    resp = client.post(
        "/profile/avatar",
        data={"csrf_token": token},
        files={"avatar": ("me.png", b"not an image", "image/png")},
        follow_redirects=False,
    )
    assert "error=" in resp.headers["location"]


def test_account_deletion_releases_cards(client, repo, make_user):
    user = _seed(repo, make_user)
    login(client)
    token = csrf_token(client)

    resp = client.post("/api/account/delete", json={"password": "wrong"}, headers={"X-CSRF-Token": token})
    assert resp.status_code == 403

    resp = client.post("/api/account/delete", json={"password": PASSWORD}, headers={"X-CSRF-Token": token})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "released_cards": 1}

    card = repo.get_card("AB7K9Q2M")
    assert card.status == "unclaimed"
    assert card.profile_id is None
    assert repo.get_user(user.id) is None
    assert repo.get_profile(user.id) is None
    assert client.get("/c/AB7K9Q2M", follow_redirects=False).headers["location"] == "/claim?code=AB7K9Q2M"

    # disabled cards stay disabled, only the link to the deleted profile goes
    disabled = repo.get_card("DSABLED2")
    assert disabled.status == "disabled"
    assert disabled.profile_id is None
    assert client.get("/c/DSABLED2", follow_redirects=False).headers["location"] == "/card-disabled"


def test_account_deletion_requires_session(client):
    resp = client.post("/api/account/delete", json={"password": PASSWORD})
    assert resp.status_code == 401


def test_account_deletion_rejects_malformed_json(client, repo, make_user):
    user = make_user("jane.doe@example.com", handle="jane-doe")
    login(client)
    token = csrf_token(client)
    for body in (b"{not json", b"[1, 2]"):
        resp = client.post(
            "/api/account/delete",
            content=body,
            headers={"Content-Type": "application/json", "X-CSRF-Token": token},
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid JSON body"}
    assert repo.get_user(user.id) is not None


def _failing_lookup(*_args, **_kwargs):
    raise OperationalError("SELECT", {}, Exception("database is locked"))


def test_card_lookup_failure_is_500(client, monkeypatch):
    monkeypatch.setattr(cards_router._repo, "get_card", _failing_lookup)
    resp = client.get("/c/AB7K9Q2M", follow_redirects=False)
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "Card lookup error"
    assert body["message"].startswith("Card lookup error")

    assert client.get("/c/AB7K9Q2M/vcf").status_code == 500
    # malformed codes never reach the store
    assert client.get("/c/bad", follow_redirects=False).headers["location"] == "/unknown-card"


def test_vcard_lookup_failure_is_500(client, monkeypatch):
    monkeypatch.setattr(profiles_router._repo, "get_profile_by_handle", _failing_lookup)
    resp = client.get("/u/jane-doe.vcf")
    assert resp.status_code == 500
    assert resp.headers["content-type"].startswith("text/plain")
    assert resp.text.startswith("Profile lookup error")


def _png(color=(0, 0, 0), size=(300, 300)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def test_stored_qr_code_upload_generate_and_remove(client, repo, make_user, temp_db):
    uploads = temp_db.parent / "uploads"
    user = make_user("jane.doe@example.com", handle="jane-doe")
    login(client)
    token = csrf_token(client)

    resp = client.post(
        "/profile/qr",
        data={"csrf_token": token},
        files={"qr_image": ("qr.png", _png(), "image/png")},
        follow_redirects=False,
    )
    assert resp.headers["location"] == "/profile?saved=1"
    uploaded = repo.get_profile(user.id).qr_code_url
    assert uploaded.startswith(f"/uploads/qr-{user.id}-")
    uploaded_file = uploads / uploaded.split("?", 1)[0].rsplit("/", 1)[1]
    assert uploaded_file.exists()
    page = client.get("/u/jane-doe").text
    assert uploaded.split("?", 1)[0] in page
    assert "/q/jane-doe.png" not in page

    # generating replaces the uploaded image and removes its file
    client.post("/profile/qr/generate", data={"csrf_token": token})
    generated = repo.get_profile(user.id).qr_code_url
    assert generated != uploaded
    assert not uploaded_file.exists()
    generated_file = uploads / generated.split("?", 1)[0].rsplit("/", 1)[1]
    assert generated_file.read_bytes().startswith(b"\x89PNG")

    resp = client.post(
        "/profile/qr",
        data={"csrf_token": token},
        files={"qr_image": ("qr.png", b"not an image", "image/png")},
        follow_redirects=False,
    )
    assert "error=" in resp.headers["location"]
    assert repo.get_profile(user.id).qr_code_url == generated

    client.post("/profile/qr/remove", data={"csrf_token": token})
    assert repo.get_profile(user.id).qr_code_url is None
    assert not generated_file.exists()
    assert "/q/jane-doe.png" in client.get("/u/jane-doe").text


def test_qr_upload_requires_csrf(client, repo, make_user):
    user = make_user("jane.doe@example.com", handle="jane-doe")
    login(client)
    resp = client.post(
        "/profile/qr",
        data={"csrf_token": "bogus"},
        files={"qr_image": ("qr.png", _png(), "image/png")},
    )
    assert resp.status_code == 403
    assert repo.get_profile(user.id).qr_code_url is None
