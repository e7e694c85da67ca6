import io
from datetime import timedelta

import pandas as pd

from conftest import PNG_BYTES

from mahattati.core.scheduler import expire_promotions
from mahattati.models.ad import Ad
from mahattati.models.payment import Payment
from mahattati.models.sponsored_ad import SponsoredAd
from mahattati.utils.dates import utcnow


def test_admin_routes_are_for_system_managers(client, marketing_manager, advertiser):
    for _, headers in (marketing_manager, advertiser):
        assert client.get("/api/admin/users", headers=headers).status_code == 403
        assert client.get("/api/admin/logs", headers=headers).status_code == 403
        assert client.get("/api/admin/reports", params={"type": "users"}, headers=headers).status_code == 403


def test_list_users_with_pagination(client, system_manager, make_user):
    _, headers = system_manager
    for _ in range(3):
        make_user("advertiser")
    make_user("subscriber")

    body = client.get("/api/admin/users", params={"page": 1, "limit": 2}, headers=headers).json()
    assert len(body["users"]) == 2
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 5, "pages": 3}

    advertisers = client.get("/api/admin/users", params={"role": "advertiser"}, headers=headers).json()
    assert advertisers["pagination"]["total"] == 3
    assert all(u["role"] == "advertiser" for u in advertisers["users"])

    assert client.get("/api/admin/users", params={"limit": 101}, headers=headers).status_code == 400


def test_update_user_changes_role(client, system_manager, subscriber, db):
    _, headers = system_manager
    user, user_headers = subscriber

    response = client.put(
        f"/api/admin/users/{user.id}",
        json={"role": "marketing_manager", "email_verified": True},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "marketing_manager"

    # The change applies to the very next request with the old token
    me = client.get("/api/auth/me", headers=user_headers).json()["user"]
    assert me["role"] == "marketing_manager"
    assert me["email_verified"] is True


def test_update_user_errors(client, system_manager, make_user):
    _, headers = system_manager
    first, _ = make_user("subscriber", email="first@x.com")
    make_user("subscriber", email="second@x.com")

    assert client.put("/api/admin/users/999999", json={"name": "X"}, headers=headers).status_code == 404
    assert client.put(f"/api/admin/users/{first.id}", json={}, headers=headers).status_code == 400
    assert client.put(f"/api/admin/users/{first.id}", json={"role": "king"}, headers=headers).status_code == 400
    duplicate = client.put(f"/api/admin/users/{first.id}", json={"email": "Second@x.com"}, headers=headers)
    assert duplicate.status_code == 400


def test_update_user_clears_optional_fields(client, system_manager, subscriber, db):
    _, headers = system_manager
    user, _ = subscriber
    user.phone = "0500000000"
    user.company_name = "Fuel Co"
    db.commit()

    response = client.put(
        f"/api/admin/users/{user.id}", json={"phone": None, "company_name": None}, headers=headers
    )
    assert response.status_code == 200
    db.refresh(user)
    assert user.phone is None
    assert user.company_name is None

    for field in ("name", "email", "role", "email_verified"):
        response = client.put(f"/api/admin/users/{user.id}", json={field: None}, headers=headers)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == field


def test_reports(client, system_manager, make_user, db):
    _, headers = system_manager
    owner, _ = make_user("advertiser")
    make_user("subscriber")
    db.add_all([
        Ad(user_id=owner.id, title="A", location_latitude=24.7, location_longitude=46.6,
           status="published", views_count=3, is_promoted=True),
        Ad(user_id=owner.id, title="B", location_latitude=24.7, location_longitude=46.6,
           status="draft", views_count=0, is_promoted=False),
        Payment(user_id=owner.id, amount=100, currency="SAR", gateway="stripe",
                payment_type="ad_promotion", status="completed"),
        Payment(user_id=owner.id, amount=40, currency="SAR", gateway="stripe",
                payment_type="ad_promotion", status="failed"),
    ])
    db.commit()

    users = client.get("/api/admin/reports", params={"type": "users"}, headers=headers).json()["report"]
    assert users["data"]["total"] == 3
    assert users["data"]["by_role"] == {"advertiser": 1, "subscriber": 1, "system_manager": 1}
    assert users["generated_at"]

    ads = client.get("/api/admin/reports", params={"type": "ads"}, headers=headers).json()["report"]
    assert ads["data"]["by_status"] == {"draft": 1, "published": 1}
    assert ads["data"]["promoted"] == 1

    payments = client.get("/api/admin/reports", params={"type": "payments"}, headers=headers).json()["report"]
    assert payments["data"]["total_revenue"] == 100.0
    assert {(g["status"], g["count"]) for g in payments["data"]["by_gateway_status"]} == {
        ("completed", 1), ("failed", 1)
    }

    subscriptions = client.get("/api/admin/reports", params={"type": "subscriptions"}, headers=headers).json()
    assert subscriptions["report"]["data"] == {"total": 0, "by_status": {}, "active": 0}


def test_report_date_range_and_type(client, system_manager):
    _, headers = system_manager
    assert client.get("/api/admin/reports", params={"type": "sales"}, headers=headers).status_code == 400
    past = client.get(
        "/api/admin/reports",
        params={"type": "users", "start_date": "2000-01-01", "end_date": "2000-12-31"},
        headers=headers,
    ).json()["report"]
    assert past["data"]["total"] == 0
    reversed_range = client.get(
        "/api/admin/reports",
        params={"type": "users", "start_date": "2001-01-01", "end_date": "2000-01-01"},
        headers=headers,
    )
    assert reversed_range.status_code == 400


def test_report_xlsx_export(client, system_manager, make_user):
    _, headers = system_manager
    make_user("advertiser")
    response = client.get("/api/admin/reports", params={"type": "users", "format": "xlsx"}, headers=headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )

    sheets = pd.read_excel(io.BytesIO(response.content), sheet_name=None, engine="openpyxl")
    assert set(sheets) == {"summary", "users"}
    assert len(sheets["users"]) == 2
    assert "hashed_password" not in sheets["users"].columns


def test_logs(client, system_manager, subscriber):
    _, headers = system_manager
    user, _ = subscriber
    client.post("/api/auth/login", json={"email": user.email, "password": "secret123"})
    client.post("/api/auth/login", json={"email": user.email, "password": "wrong-pass"})

    body = client.get("/api/admin/logs", headers=headers).json()
    assert body["pagination"]["total"] == 2
    assert body["logs"][0]["event_type"] == "user.login_failed"
    assert body["logs"][0]["metadata"] == {"email": user.email}

    filtered = client.get("/api/admin/logs", params={"user_id": user.id}, headers=headers).json()
    assert [entry["event_type"] for entry in filtered["logs"]] == ["user.login"]


def test_sponsored_ads_management(client, marketing_manager, system_manager, advertiser):
    _, headers = marketing_manager
    response = client.post(
        "/api/admin/sponsored-ads",
        data={"position": "top_banner", "title": "Summer"},
        files={"media": ("banner.png", PNG_BYTES, "image/png")},
        headers=headers,
    )
    assert response.status_code == 201
    sponsored = response.json()["sponsored_ad"]
    assert sponsored["media_type"] == "image"
    assert sponsored["media_url"].startswith("/uploads/sponsored/")

    external = client.post(
        "/api/admin/sponsored-ads",
        data={"position": "left_sidebar", "media_url": "https://cdn.example.com/v.mp4", "media_type": "video"},
        headers=headers,
    )
    assert external.status_code == 201

    _, admin_headers = system_manager
    assert len(client.get("/api/admin/sponsored-ads", headers=admin_headers).json()["sponsored_ads"]) == 2

    _, a_headers = advertiser
    assert client.get("/api/admin/sponsored-ads", headers=a_headers).status_code == 403


def test_sponsored_ad_validation(client, marketing_manager):
    _, headers = marketing_manager
    bad_position = client.post(
        "/api/admin/sponsored-ads",
        data={"position": "footer", "media_url": "https://cdn.example.com/a.png", "media_type": "image"},
        headers=headers,
    )
    assert bad_position.status_code == 400

    no_media = client.post("/api/admin/sponsored-ads", data={"position": "top_banner"}, headers=headers)
    assert no_media.status_code == 400

    bad_window = client.post(
        "/api/admin/sponsored-ads",
        data={"position": "top_banner", "media_url": "https://cdn.example.com/a.png", "media_type": "image",
              "start_date": "2030-02-01T00:00:00", "end_date": "2030-01-01T00:00:00"},
        headers=headers,
    )
    assert bad_window.status_code == 400


def test_public_sponsored_ads_show_running_placements(client, marketing_manager, db):
    manager, _ = marketing_manager
    now = utcnow()
    db.add_all([
        SponsoredAd(created_by=manager.id, title="running", media_url="/uploads/sponsored/a.png",
                    media_type="image", position="top_banner", is_active=True),
        SponsoredAd(created_by=manager.id, title="sidebar", media_url="/uploads/sponsored/b.png",
                    media_type="image", position="left_sidebar", is_active=True,
                    start_date=now - timedelta(days=1), end_date=now + timedelta(days=1)),
        SponsoredAd(created_by=manager.id, title="ended", media_url="/uploads/sponsored/c.png",
                    media_type="image", position="top_banner", is_active=True,
                    end_date=now - timedelta(days=1)),
        SponsoredAd(created_by=manager.id, title="future", media_url="/uploads/sponsored/d.png",
                    media_type="image", position="top_banner", is_active=True,
                    start_date=now + timedelta(days=1)),
        SponsoredAd(created_by=manager.id, title="off", media_url="/uploads/sponsored/e.png",
                    media_type="image", position="top_banner", is_active=False),
    ])
    db.commit()

    titles = {s["title"] for s in client.get("/api/sponsored-ads").json()["sponsored_ads"]}
    assert titles == {"running", "sidebar"}

    top = client.get("/api/sponsored-ads", params={"position": "top_banner"}).json()["sponsored_ads"]
    assert [s["title"] for s in top] == ["running"]


def test_news_ticker(client, marketing_manager, subscriber):
    _, headers = marketing_manager
    client.post("/api/news-ticker", json={"content": "Low", "priority": 1}, headers=headers)
    client.post("/api/news-ticker", json={"content": "High", "content_ar": "عاجل", "priority": 5}, headers=headers)
    client.post("/api/news-ticker", json={"content": "Hidden", "priority": 9, "is_active": False}, headers=headers)

    news = client.get("/api/news-ticker").json()["news"]
    assert [n["content"] for n in news] == ["High", "Low"]

    _, s_headers = subscriber
    assert client.post("/api/news-ticker", json={"content": "Spam"}, headers=s_headers).status_code == 403


def test_expire_promotions(db, advertiser, marketing_manager):
    owner, _ = advertiser
    manager, _ = marketing_manager
    now = utcnow()
    expired = Ad(user_id=owner.id, title="Old", location_latitude=24.7, location_longitude=46.6,
                 status="published", views_count=0, is_promoted=True, promotion_type="top_banner",
                 promotion_expires_at=now - timedelta(hours=1))
    current = Ad(user_id=owner.id, title="New", location_latitude=24.7, location_longitude=46.6,
                 status="published", views_count=0, is_promoted=True, promotion_type="top_banner",
                 promotion_expires_at=now + timedelta(days=1))
    banner = SponsoredAd(created_by=manager.id, media_url="/uploads/sponsored/a.png", media_type="image",
                         position="top_banner", is_active=True, end_date=now - timedelta(minutes=5))
    db.add_all([expired, current, banner])
    db.commit()

    assert expire_promotions(db) == (1, 1)
    db.expire_all()
    assert expired.is_promoted is False
    assert expired.promotion_type is None
    assert current.is_promoted is True
    assert banner.is_active is False
    assert expire_promotions(db) == (0, 0)
