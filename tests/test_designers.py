from datetime import timedelta

from conftest import accept, auth, create_post, pitch

import app.domain.designers.service as designer_service
from app.models import Badge, Payment
from app.services.calendar_service import utc_now


def sell_design(client, shop, designer, price):
    post = create_post(client, shop, "design")
    comment = pitch(client, designer, post["id"], price=price).json()
    design = accept(client, shop, post["id"], comment["id"]).json()["design"]
    client.put(f"/designs/{design['id']}/stage", data={"stage": "final_design"}, headers=auth(designer))

    response = client.post(f"/designs/{design['id']}/purchase", json={"cardToken": "tok_visa"}, headers=auth(shop))
    assert response.status_code == 200, response.text
    return design


def test_portfolio_upload_and_listing(client, fan, designer, png_bytes):
    response = client.post(
        "/portfolio/upload", files={"image": ("koi.png", png_bytes, "image/png")}, headers=auth(designer)
    )
    assert response.status_code == 201
    image_url = response.json()["imageUrl"]
    assert image_url.startswith(f"/uploads/portfolio/{designer.id}/")

    assert client.get("/portfolio", headers=auth(designer)).json() == {"portfolio": [image_url]}
    assert client.get(f"/portfolio/user/{designer.id}", headers=auth(fan)).json() == {"portfolio": [image_url]}
    assert client.get("/users/me", headers=auth(designer)).json()["portfolio"] == [image_url]


def test_portfolio_rules(client, fan, designer, png_bytes):
    upload = client.post("/portfolio/upload", files={"image": ("koi.png", png_bytes, "image/png")}, headers=auth(fan))
    assert upload.status_code == 403
    assert client.get("/portfolio", headers=auth(fan)).status_code == 403
    assert client.get(f"/portfolio/user/{fan.id}", headers=auth(designer)).status_code == 404

    wrong_type = client.post(
        "/portfolio/upload", files={"image": ("koi.gif", b"GIF89a", "image/gif")}, headers=auth(designer)
    )
    assert wrong_type.status_code == 400
    assert client.get("/portfolio", headers=auth(designer)).json() == {"portfolio": []}


def test_designer_stats(client, shop, designer):
    empty = client.get("/stats/designer", headers=auth(designer)).json()
    assert empty == {"totalEarnings": 0, "designsSold": 0, "trends": {"monthly": "Steady"}}

    sell_design(client, shop, designer, 40)
    sell_design(client, shop, designer, 60)

    stats = client.get("/stats/designer", headers=auth(designer)).json()
    assert stats["totalEarnings"] == 90.0
    assert stats["designsSold"] == 2
    assert stats["trends"]["monthly"] == "Steady"

    assert client.get("/stats/designer", headers=auth(shop)).status_code == 403


def test_hot_streak_counts_recent_sales_only(client, db, shop, designer):
    for _ in range(6):
        sell_design(client, shop, designer, 10)
    assert client.get("/stats/designer", headers=auth(designer)).json()["trends"]["monthly"] == "Hot Streak"

    for payment in db.query(Payment).all():
        payment.created_at = utc_now() - timedelta(days=45)
    db.commit()

    stats = client.get("/stats/designer", headers=auth(designer)).json()
    assert stats["designsSold"] == 6
    assert stats["trends"]["monthly"] == "Steady"


def test_top_designer_badge_awarded_on_sale(client, db, monkeypatch, shop, designer):
    monkeypatch.setattr(designer_service, "TOP_DESIGNER_SALES", 2)

    sell_design(client, shop, designer, 40)
    assert client.get("/badges", headers=auth(designer)).json() == {"badges": []}

    sell_design(client, shop, designer, 0)
    badges = client.get("/badges", headers=auth(designer)).json()["badges"]
    assert [b["name"] for b in badges] == ["Top Designer"]

    messages = [n["message"] for n in client.get("/notifications", headers=auth(designer)).json()["notifications"]]
    assert messages.count("You earned the Top Designer badge") == 1

    client.get("/badges", headers=auth(designer))
    assert db.query(Badge).filter(Badge.user_id == designer.id).count() == 1


def test_badges_catch_up_for_earlier_sales(client, monkeypatch, shop, designer):
    sell_design(client, shop, designer, 40)
    assert client.get("/badges", headers=auth(designer)).json() == {"badges": []}

    monkeypatch.setattr(designer_service, "TOP_DESIGNER_SALES", 1)
    badges = client.get("/badges", headers=auth(designer)).json()["badges"]
    assert [b["name"] for b in badges] == ["Top Designer"]
    assert client.get("/badges", headers=auth(shop)).json() == {"badges": []}
