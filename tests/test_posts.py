import pytest
from conftest import accept, auth, create_post, pitch

from app.dependencies import get_calendar_service
from app.domain.posts.repository import PostRepository
from app.errors import UnprocessableEntityError
from app.main import app
from app.models import BookingPost, Design, Message, Payment
from app.services.calendar_service import CalendarEventResult, CalendarService

CONTACT = {"phone": "+1 (512) 555-0100", "email": "Fan@Example.com"}


def accepted_booking(client, fan, shop):
    post = create_post(client, fan, "booking")
    comment = pitch(client, shop, post["id"]).json()
    response = accept(client, fan, post["id"], comment["id"])
    assert response.status_code == 200, response.text
    return post, comment


def schedule(client, fan, post_id, when="2026-11-20T15:00:00", contact=CONTACT):
    return client.post(
        f"/posts/{post_id}/schedule",
        json={"scheduledDate": when, "contactInfo": contact},
        headers=auth(fan),
    )


class RecordingCalendar(CalendarService):
    """Creates events without any provider; fails on the Nth create when asked"""

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.created = 0
        self.deleted = []

    async def create_event(self, db, user, appointment):
        self.created += 1
        if self.created == self.fail_on:
            raise UnprocessableEntityError("Failed to sync appointment to your calendar")
        return CalendarEventResult(ics="BEGIN:VCALENDAR", external_refs={"google": f"evt-{self.created}"})

    async def delete_event(self, db, user, external_refs):
        if external_refs:
            self.deleted.append(external_refs)


@pytest.fixture
def calendar(client):
    recording = RecordingCalendar()
    app.dependency_overrides[get_calendar_service] = lambda: recording
    return recording


def test_post_creation_roles(client, fan, shop, designer, make_user):
    assert create_post(client, shop, "design")["shopId"] == shop.id
    assert create_post(client, fan, "booking")["clientId"] == fan.id

    body = {"title": "T", "description": "D", "location": "L"}
    assert client.post("/posts", json={**body, "feedType": "design"}, headers=auth(fan)).status_code == 403
    assert client.post("/posts", json={**body, "feedType": "booking"}, headers=auth(shop)).status_code == 403
    assert client.post("/posts", json={**body, "feedType": "design"}, headers=auth(designer)).status_code == 403

    unpaid = make_user("shop")
    response = client.post("/posts", json={**body, "feedType": "design"}, headers=auth(unpaid))
    assert response.status_code == 403
    assert response.json()["message"] == "A paid subscription is required to post"


def test_elite_shops_post_designs(client, make_user):
    elite = make_user("elite", is_paid=True)
    assert create_post(client, elite, "design")["feedType"] == "design"


def test_new_posts_notify_the_audience(client, fan, shop, designer):
    create_post(client, shop, "design")
    create_post(client, fan, "booking", title="Rose")

    designer_notes = client.get("/notifications", headers=auth(designer)).json()["notifications"]
    shop_notes = client.get("/notifications", headers=auth(shop)).json()["notifications"]
    assert [n["message"] for n in designer_notes] == ["New design post: 'Koi sleeve'"]
    assert [n["message"] for n in shop_notes] == ["New booking post: 'Rose'"]


def test_accept_booking_pitch_scenario(client, db, fan, shop, notifier):
    post = create_post(client, fan, "booking")
    assert post["status"] == "open"
    comment = pitch(client, shop, post["id"])
    assert comment.status_code == 201
    assert comment.json()["price"] is None

    response = accept(client, fan, post["id"], comment.json()["id"])
    assert response.status_code == 200
    body = response.json()
    assert body["post"]["status"] == "accepted"
    assert body["post"]["shopId"] == shop.id
    assert body["design"] is None

    messages = [n["message"] for n in client.get("/notifications", headers=auth(shop)).json()["notifications"]]
    assert "Your pitch on 'Koi sleeve' was accepted by fan" in messages
    assert notifier.of_type(shop.id, "notification")

    withdraw = client.post(f"/comments/{comment.json()['id']}/withdraw", headers=auth(shop))
    assert withdraw.status_code == 400
    assert withdraw.json()["message"] == "Pitch already accepted"


def test_second_acceptance_conflicts(client, fan, shop, make_user):
    rival = make_user("shop")
    post, _ = accepted_booking(client, fan, shop)
    rival_pitch = pitch(client, rival, post["id"]).json()

    response = accept(client, fan, post["id"], rival_pitch["id"])
    assert response.status_code == 400
    assert response.json()["message"] == "A pitch has already been accepted for this post"
    assert client.get(f"/posts/{post['id']}", headers=auth(fan)).json()["shopId"] == shop.id


def test_bind_pitch_is_a_compare_and_swap(client, db, fan, shop, make_user):
    rival = make_user("shop")
    post = create_post(client, fan, "booking")
    first = pitch(client, shop, post["id"]).json()
    second = pitch(client, rival, post["id"]).json()

    repo = PostRepository()
    assert repo.bind_pitch(db, post["id"], "shop_id", first["id"], shop.id) == 1
    assert repo.bind_pitch(db, post["id"], "shop_id", second["id"], rival.id) == 0
    db.commit()

    db.expire_all()
    stored = db.get(BookingPost, post["id"])
    assert stored.shop_id == shop.id
    assert stored.status == "accepted"


def test_accept_pitch_guards(client, fan, shop, designer, make_user):
    post = create_post(client, fan, "booking")
    top = pitch(client, shop, post["id"]).json()
    reply = pitch(client, shop, post["id"], content="More", parentId=top["id"]).json()

    assert accept(client, shop, post["id"], top["id"]).status_code == 403
    assert accept(client, fan, post["id"], "missing").status_code == 404
    assert accept(client, fan, post["id"], reply["id"]).status_code == 400

    # A shop's pitch on a design post does not bind an artist
    design_post = create_post(client, shop, "design")
    other_shop = make_user("shop")
    shop_pitch = pitch(client, other_shop, design_post["id"], price=5).json()
    response = accept(client, shop, design_post["id"], shop_pitch["id"])
    assert response.status_code == 400
    assert response.json()["message"] == "Only a designer's pitch can be accepted on a design post"


def test_upload_post_images(client, fan, shop, png_bytes):
    post = create_post(client, fan, "booking")

    response = client.post(
        f"/posts/{post['id']}/images",
        files=[("images", ("ref.png", png_bytes, "image/png"))],
        headers=auth(fan),
    )
    assert response.status_code == 200
    [url] = response.json()["images"]
    assert url.startswith(f"/uploads/posts/{post['id']}/")

    bad_type = client.post(
        f"/posts/{post['id']}/images",
        files=[("images", ("notes.txt", b"hello", "text/plain"))],
        headers=auth(fan),
    )
    assert bad_type.status_code == 400

    not_owner = client.post(
        f"/posts/{post['id']}/images",
        files=[("images", ("ref.png", png_bytes, "image/png"))],
        headers=auth(shop),
    )
    assert not_owner.status_code == 403


def test_schedule_booking(client, db, fan, shop, notifier):
    post, _ = accepted_booking(client, fan, shop)

    response = schedule(client, fan, post["id"])
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "scheduled"
    assert body["scheduledDate"].startswith("2026-11-20T15:00")
    assert body["contactInfo"] == {"phone": "+15125550100", "email": "fan@example.com"}
    assert body["depositStatus"] is None

    intro = db.query(Message).filter(Message.sender_id == fan.id, Message.receiver_id == shop.id).one()
    assert "+15125550100" in intro.content
    assert notifier.of_type(shop.id, "message")

    ics = client.get(f"/posts/{post['id']}/ics", headers=auth(shop))
    assert ics.status_code == 200
    assert ics.headers["content-type"].startswith("text/calendar")
    assert "BEGIN:VCALENDAR" in ics.text
    assert "Tattoo appointment: Koi sleeve" in ics.text

    again = schedule(client, fan, post["id"])
    assert again.status_code == 400
    assert again.json()["message"] == "Booking is already scheduled"


def test_schedule_requires_acceptance_and_contact(client, fan, shop, make_user):
    post = create_post(client, fan, "booking")
    response = schedule(client, fan, post["id"])
    assert response.status_code == 400
    assert response.json()["message"] == "A pitch must be accepted before scheduling"

    post, _ = accepted_booking(client, fan, shop)
    assert schedule(client, shop, post["id"]).status_code == 403
    assert schedule(client, fan, post["id"], contact={"phone": "+15125550100"}).status_code == 400
    assert schedule(client, fan, post["id"], contact={"phone": "12", "email": "fan@example.com"}).status_code == 400

    outsider = make_user("fan")
    assert client.get(f"/posts/{post['id']}/ics", headers=auth(outsider)).status_code == 403


def test_schedule_sets_deposit_from_shop_settings(client, fan, shop, notifier):
    assert client.put("/shops/deposit-settings", json={"amount": 50}, headers=auth(shop)).status_code == 200
    post, _ = accepted_booking(client, fan, shop)

    body = schedule(client, fan, post["id"]).json()
    assert body["depositAmount"] == 50
    assert body["depositStatus"] == "pending"

    messages = [n["message"] for n in client.get("/notifications", headers=auth(fan)).json()["notifications"]]
    assert "A deposit of $50.00 is due for 'Koi sleeve'" in messages


def test_calendar_failure_leaves_booking_accepted(client, fan, shop):
    failing = RecordingCalendar(fail_on=2)
    app.dependency_overrides[get_calendar_service] = lambda: failing
    post, _ = accepted_booking(client, fan, shop)

    response = schedule(client, fan, post["id"])
    assert response.status_code == 422
    # The client's event was created before the shop's failed, so it is removed again
    assert failing.deleted == [{"google": "evt-1"}]
    assert client.get(f"/posts/{post['id']}", headers=auth(fan)).json()["status"] == "accepted"


def test_reschedule_replaces_events(client, fan, shop, calendar):
    post, _ = accepted_booking(client, fan, shop)
    assert schedule(client, fan, post["id"]).status_code == 200

    response = client.post(
        f"/posts/{post['id']}/reschedule", json={"scheduledDate": "2026-12-01T10:00:00"}, headers=auth(shop)
    )
    assert response.status_code == 200
    assert response.json()["scheduledDate"].startswith("2026-12-01T10:00")
    assert calendar.deleted == [{"google": "evt-1"}, {"google": "evt-2"}]

    messages = [n["message"] for n in client.get("/notifications", headers=auth(fan)).json()["notifications"]]
    assert "Booking 'Koi sleeve' was rescheduled to 2026-12-01 10:00" in messages


def test_complete_and_cancel(client, fan, shop, calendar):
    post, _ = accepted_booking(client, fan, shop)
    schedule(client, fan, post["id"])

    assert client.post(f"/posts/{post['id']}/complete", headers=auth(fan)).status_code == 403
    response = client.post(f"/posts/{post['id']}/complete", headers=auth(shop))
    assert response.status_code == 200
    assert response.json()["status"] == "completed"

    cancel = client.post(f"/posts/{post['id']}/cancel", headers=auth(fan))
    assert cancel.status_code == 400
    assert cancel.json()["message"] == "Cannot cancel a completed post"


def test_cancel_scheduled_booking_removes_events(client, fan, shop, calendar):
    post, _ = accepted_booking(client, fan, shop)
    schedule(client, fan, post["id"])

    response = client.post(f"/posts/{post['id']}/cancel", headers=auth(shop))
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert calendar.deleted == [{"google": "evt-1"}, {"google": "evt-2"}]

    messages = [n["message"] for n in client.get("/notifications", headers=auth(fan)).json()["notifications"]]
    assert "'Koi sleeve' was cancelled by shop" in messages


def test_cancel_accepted_design_post_closes_the_commission(client, db, shop, designer, gateway):
    post = create_post(client, shop, "design")
    comment = pitch(client, designer, post["id"], price=40).json()
    design = accept(client, shop, post["id"], comment["id"]).json()["design"]
    final = client.put(
        f"/designs/{design['id']}/stage", data={"stage": "final_design"}, headers=auth(designer)
    )
    assert final.status_code == 200

    response = client.post(f"/posts/{post['id']}/cancel", headers=auth(shop))
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    messages = [n["message"] for n in client.get("/notifications", headers=auth(designer)).json()["notifications"]]
    assert "'Koi sleeve' was cancelled by shop" in messages

    stage = client.put(
        f"/designs/{design['id']}/stage", data={"stage": "final_design"}, headers=auth(designer)
    )
    assert stage.status_code == 400
    assert stage.json()["message"] == "Design post is cancelled"

    purchase = client.post(
        f"/designs/{design['id']}/purchase", json={"cardToken": "tok_visa"}, headers=auth(shop)
    )
    assert purchase.status_code == 400
    assert purchase.json()["message"] == "Design post is cancelled"
    assert gateway.charges == []
    assert db.query(Payment).count() == 0
    db.expire_all()
    assert db.get(Design, design["id"]).status == "pending"


def test_complete_requires_schedule(client, fan, shop):
    post, _ = accepted_booking(client, fan, shop)
    response = client.post(f"/posts/{post['id']}/complete", headers=auth(shop))
    assert response.status_code == 400


def test_admin_deletes_post(client, fan, admin):
    post = create_post(client, fan, "booking")

    assert client.delete(f"/posts/{post['id']}", headers=auth(fan)).status_code == 403
    assert client.delete(f"/posts/{post['id']}", headers=auth(admin)).status_code == 200
    assert client.get(f"/posts/{post['id']}", headers=auth(fan)).status_code == 404


def test_user_design_posts(client, shop, designer):
    create_post(client, shop, "design")
    create_post(client, shop, "design", title="Dagger")

    response = client.get(f"/posts/user/{shop.id}/design", headers=auth(designer))
    assert response.status_code == 200
    assert sorted(p["title"] for p in response.json()) == ["Dagger", "Koi sleeve"]
