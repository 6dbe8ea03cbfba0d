"""Test likes on posts, comments and replies."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from cardwall import models
from cardwall.errors import AlreadyLiked, NotFound, NotLiked, ValidationError
from cardwall.services import comments as comment_service
from cardwall.services.likes import LikeTarget, like_set, toggle_like


@pytest.fixture
def alice(make_user) -> models.User:
    return make_user("alice")


@pytest.fixture
def bob(make_user) -> models.User:
    return make_user("bob")


@pytest.fixture
def post(make_post, alice) -> models.Post:
    return make_post(alice)


def _like_notifications(db: Session, recipient: models.User) -> list[models.Notification]:
    return (
        db.query(models.Notification)
        .filter(
            models.Notification.user_id == recipient.id,
            models.Notification.notification_type == "like",
        )
        .all()
    )


def test_like_post_notifies_owner(client, auth, db, alice, bob, post):
    response = client.put(f"/post/{post.id}/like", headers=auth(bob))

    assert response.status_code == 200
    assert response.json() == {"likes": [bob.id], "count": 1}

    notifications = _like_notifications(db, alice)
    assert len(notifications) == 1
    assert notifications[0].sender_id == bob.id
    assert notifications[0].post_id == post.id
    assert notifications[0].context == "post"
    assert notifications[0].item_id is None


def test_like_twice_is_conflict(client, auth, db, alice, bob, post):
    client.put(f"/post/{post.id}/like", headers=auth(bob))
    response = client.put(f"/post/{post.id}/like", headers=auth(bob))

    assert response.status_code == 409
    assert response.json()["code"] == "already_liked"
    assert response.json()["kind"] == "conflict"
    assert like_set(db, "post", post.id) == [bob.id]
    assert len(_like_notifications(db, alice)) == 1


def test_unlike_removes_exact_notification(client, auth, db, alice, bob, make_user, post):
    carol = make_user("carol")
    client.put(f"/post/{post.id}/like", headers=auth(bob))
    client.put(f"/post/{post.id}/like", headers=auth(carol))

    response = client.delete(f"/post/{post.id}/like", headers=auth(bob))

    assert response.status_code == 200
    assert response.json() == {"likes": [carol.id], "count": 1}
    remaining = _like_notifications(db, alice)
    assert [n.sender_id for n in remaining] == [carol.id]


def test_unlike_without_like_is_state_error(client, auth, bob, post):
    response = client.delete(f"/post/{post.id}/like", headers=auth(bob))

    assert response.status_code == 400
    assert response.json()["code"] == "not_liked"
    assert response.json()["kind"] == "state_error"


def test_self_like_creates_no_notification(db, alice, post):
    state = toggle_like(db, LikeTarget(post_id=post.id), alice, want_liked=True)

    assert state.likes == [alice.id]
    assert _like_notifications(db, alice) == []

    state = toggle_like(db, LikeTarget(post_id=post.id), alice, want_liked=False)
    assert state.count == 0


def test_many_likers_are_all_kept(db, make_user, post):
    likers = [make_user() for _ in range(5)]
    for user in likers:
        toggle_like(db, LikeTarget(post_id=post.id), user, want_liked=True)

    assert like_set(db, "post", post.id) == [u.id for u in likers]


def test_like_comment_notifies_comment_author(db, alice, bob, make_user, post):
    carol = make_user("carol")
    comment = comment_service.add_comment(db, post.id, bob, "Nice card")

    toggle_like(db, LikeTarget(post_id=post.id, comment_id=comment.id), carol, want_liked=True)

    notifications = _like_notifications(db, bob)
    assert len(notifications) == 1
    assert notifications[0].context == "comment"
    assert notifications[0].item_id == comment.id
    assert notifications[0].snippet == "Nice card"
    # The post owner is not notified about likes on someone else's comment
    assert _like_notifications(db, alice) == []

    toggle_like(db, LikeTarget(post_id=post.id, comment_id=comment.id), carol, want_liked=False)
    assert _like_notifications(db, bob) == []


def test_like_reply_via_api(client, auth, db, alice, bob, post):
    comment = comment_service.add_comment(db, post.id, alice, "First")
    reply = comment_service.add_reply(db, post.id, comment.id, bob, "Second")

    response = client.put(
        f"/post/{post.id}/comments/{comment.id}/replies/{reply.id}/like",
        headers=auth(alice),
    )

    assert response.status_code == 200
    assert response.json()["likes"] == [alice.id]
    notifications = _like_notifications(db, bob)
    assert len(notifications) == 1
    assert notifications[0].context == "reply"
    assert notifications[0].item_id == reply.id


def test_like_missing_targets(db, alice, bob, post):
    with pytest.raises(NotFound):
        toggle_like(db, LikeTarget(post_id=post.id + 1000), bob, want_liked=True)

    with pytest.raises(NotFound):
        toggle_like(db, LikeTarget(post_id=post.id, comment_id=999), bob, want_liked=True)

    with pytest.raises(ValidationError):
        toggle_like(db, LikeTarget(post_id=post.id, reply_id=1), bob, want_liked=True)


def test_reply_must_belong_to_comment(db, alice, bob, post):
    first = comment_service.add_comment(db, post.id, alice, "one")
    second = comment_service.add_comment(db, post.id, alice, "two")
    reply = comment_service.add_reply(db, post.id, first.id, bob, "reply to one")

    with pytest.raises(NotFound):
        toggle_like(
            db,
            LikeTarget(post_id=post.id, comment_id=second.id, reply_id=reply.id),
            alice,
            want_liked=True,
        )


def test_service_errors_are_typed(db, bob, post):
    toggle_like(db, LikeTarget(post_id=post.id), bob, want_liked=True)
    with pytest.raises(AlreadyLiked):
        toggle_like(db, LikeTarget(post_id=post.id), bob, want_liked=True)

    toggle_like(db, LikeTarget(post_id=post.id), bob, want_liked=False)
    with pytest.raises(NotLiked):
        toggle_like(db, LikeTarget(post_id=post.id), bob, want_liked=False)


def test_get_post_likes_is_public(client, db, bob, post):
    toggle_like(db, LikeTarget(post_id=post.id), bob, want_liked=True)

    response = client.get(f"/post/{post.id}/like")
    assert response.status_code == 200
    assert response.json() == {"likes": [bob.id], "count": 1}


def test_like_requires_auth(client, post):
    response = client.put(f"/post/{post.id}/like")
    assert response.status_code == 401
