from pathlib import Path

import pytest
from conftest import accept, auth, create_post, pitch

from app.config import UPLOAD_DIR
from app.domain.designs.repository import DesignRepository
from app.domain.posts.repository import PostRepository
from app.models import Design, Payment, Post


def advance(client, user, design_id, stage, files=None):
    return client.put(f"/designs/{design_id}/stage", data={"stage": stage}, files=files, headers=auth(user))


def purchase(client, user, design_id, card_token="tok_visa"):
    return client.post(f"/designs/{design_id}/purchase", json={"cardToken": card_token}, headers=auth(user))


@pytest.fixture
def commission(client, shop, designer):
    """An accepted design pitch priced at 40"""
    post = create_post(client, shop, "design")
    comment = pitch(client, designer, post["id"], price=40).json()
    response = accept(client, shop, post["id"], comment["id"])
    assert response.status_code == 200, response.text
    return response.json()["design"]


def test_design_commission_scenario(client, db, shop, designer, gateway):
    post = create_post(client, shop, "design")
    assert post["shopId"] == shop.id and post["status"] == "open"

    c2 = pitch(client, designer, post["id"], price=40)
    assert c2.status_code == 201
    c3 = pitch(client, designer, post["id"], content="Another take", price=30)
    assert c3.status_code == 400

    accepted = accept(client, shop, post["id"], c2.json()["id"]).json()
    design = accepted["design"]
    assert accepted["post"]["artistId"] == designer.id
    assert design["stage"] == "initial_sketch"
    assert design["status"] == "pending"
    assert design["price"] == 40

    assert advance(client, designer, design["id"], "final_design").status_code == 200

    response = purchase(client, shop, design["id"])
    assert response.status_code == 200
    assert response.json()["status"] == "purchased"

    payment = db.query(Payment).filter(Payment.design_id == design["id"]).one()
    assert payment.amount == 40
    assert payment.type == "design_purchase"
    assert gateway.charges == [("tok_visa", 4000, f"design-{design['id']}")]
    assert db.get(Post, post["id"]).status == "completed"


def test_accept_design_from_comment(client, shop, designer):
    post = create_post(client, shop, "design")
    comment = pitch(client, designer, post["id"], price=25).json()

    response = client.post(f"/designs/accept/{comment['id']}", headers=auth(shop))
    assert response.status_code == 201
    assert response.json()["commentId"] == comment["id"]
    assert response.json()["price"] == 25

    again = client.post(f"/designs/accept/{comment['id']}", headers=auth(shop))
    assert again.status_code == 400


def test_stage_only_moves_forward(client, shop, designer, commission):
    assert advance(client, designer, commission["id"], "revision_2").json()["stage"] == "revision_2"

    for stage in ("revision_2", "revision_1", "initial_sketch"):
        response = advance(client, designer, commission["id"], stage)
        assert response.status_code == 400
        assert response.json()["message"] == "Stage can only move forward from revision_2"

    invalid = advance(client, designer, commission["id"], "tattooed")
    assert invalid.status_code == 400
    assert invalid.json()["message"].startswith("Invalid stage")

    assert advance(client, shop, commission["id"], "final_draft").status_code == 403


def test_stage_update_messages_the_shop(client, db, shop, designer, commission, notifier):
    advance(client, designer, commission["id"], "revision_1")

    inbox = client.get("/messages/inbox", headers=auth(shop)).json()
    assert inbox[0]["designId"] == commission["id"]
    assert inbox[0]["stage"] == "revision_1"
    assert notifier.of_type(shop.id, "message")

    messages = [n["message"] for n in client.get("/notifications", headers=auth(shop)).json()["notifications"]]
    assert "designer updated the design for 'Koi sleeve' to revision 1" in messages


def test_stage_images_are_watermarked_and_stored(client, designer, commission, png_bytes):
    response = advance(
        client,
        designer,
        commission["id"],
        "revision_1",
        files=[("images", ("sketch.png", png_bytes, "image/png"))],
    )
    assert response.status_code == 200
    [url] = response.json()["images"]
    assert url.startswith(f"/uploads/designs/{commission['id']}/")

    stored = Path(UPLOAD_DIR) / url.removeprefix("/uploads/")
    assert stored.exists()
    assert stored.read_bytes() != png_bytes


def test_purchase_rules(client, shop, designer, commission, make_user):
    early = purchase(client, shop, commission["id"])
    assert early.status_code == 400
    assert early.json()["message"] == "Design must reach final_design before purchase"

    advance(client, designer, commission["id"], "final_design")
    assert purchase(client, make_user("shop"), commission["id"]).status_code == 403
    assert purchase(client, shop, commission["id"]).status_code == 200

    assert purchase(client, shop, commission["id"]).json()["message"] == "Design has already been purchased"
    assert advance(client, designer, commission["id"], "final_design").status_code == 400


def test_declined_purchase_keeps_design_pending(client, db, shop, designer, commission):
    advance(client, designer, commission["id"], "final_design")

    response = purchase(client, shop, commission["id"], card_token="declined")
    assert response.status_code == 422
    assert response.json()["message"] == "Card declined"

    db.expire_all()
    assert db.get(Design, commission["id"]).status == "pending"
    assert db.query(Payment).count() == 0


def test_design_listings(client, fan, shop, designer, commission):
    assert [d["id"] for d in client.get("/designs/pending", headers=auth(shop)).json()] == [commission["id"]]
    assert [d["id"] for d in client.get("/designs/pending", headers=auth(designer)).json()] == [commission["id"]]
    assert client.get("/designs/pending", headers=auth(fan)).status_code == 403

    advance(client, designer, commission["id"], "final_design")
    purchase(client, shop, commission["id"])

    assert client.get("/designs/pending", headers=auth(shop)).json() == []
    assert [d["id"] for d in client.get("/designs/purchased", headers=auth(shop)).json()] == [commission["id"]]
    assert [d["id"] for d in client.get("/designs/sold", headers=auth(designer)).json()] == [commission["id"]]
    assert client.get("/designs/sold", headers=auth(shop)).status_code == 403


def test_design_updates_require_an_accepted_post(client, db, designer, commission):
    advance(client, designer, commission["id"], "final_draft")
    post_id = commission["postId"]
    assert PostRepository.conditional_update(db, post_id, {"status": "accepted"}, status="cancelled") == 1
    db.commit()

    assert DesignRepository.advance_stage(db, commission["id"], "final_draft", "final_design", []) == 0
    assert DesignRepository.mark_purchased(db, commission["id"]) == 0
    assert PostRepository.conditional_update(db, post_id, {"status": "accepted"}, status="completed") == 0
    db.rollback()

    db.expire_all()
    design = db.get(Design, commission["id"])
    assert (design.stage, design.status) == ("final_draft", "pending")
    assert db.get(Post, post_id).status == "cancelled"
