"""Test profiles, profile images, badges and account deletion."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from cardwall import models
from cardwall.errors import Forbidden, NotFound, ValidationError
from cardwall.services import comments as comment_service
from cardwall.services import follows as follow_service
from cardwall.services import reports as report_service
from cardwall.services import saved as saved_service
from cardwall.services import users as user_service
from cardwall.services.likes import LikeTarget, like_set, toggle_like


def _count(db: Session, model, name: str) -> int:
    db.expire_all()
    return db.query(model.post_count).filter(model.name == name).scalar()


def test_profile_shape(client, auth, db, make_user, make_post):
    alice = make_user("alice", bio="Card maker")
    first = make_post(alice)
    second = make_post(alice)

    response = client.get("/user/me", headers=auth(alice))

    assert response.status_code == 200
    body = response.json()
    assert body["handle"] == "alice"
    assert body["bio"] == "Card maker"
    assert body["badge"] == "none"
    assert body["role"] == "user"
    assert body["post_ids"] == [first.id, second.id]


def test_missing_profile(client):
    assert client.get("/user/31337").status_code == 404


class TestProfileImages:
    def test_upload_and_replace_profile_image(self, client, auth, vault, make_user, png_bytes):
        alice = make_user("alice")

        response = client.put(
            "/user/me/profile-image",
            files={"image": ("me.png", png_bytes(), "image/png")},
            headers=auth(alice),
        )
        assert response.status_code == 200
        first_url = response.json()["profile_image_url"]
        assert first_url.startswith("/vault/profile/")
        first_path = vault.root / first_url.removeprefix("/vault/")
        assert first_path.exists()

        response = client.put(
            "/user/me/profile-image",
            files={"image": ("me.png", png_bytes(color="blue"), "image/png")},
            headers=auth(alice),
        )
        second_url = response.json()["profile_image_url"]
        assert second_url != first_url
        assert not first_path.exists()
        assert (vault.root / second_url.removeprefix("/vault/")).exists()

    def test_cover_image_is_separate(self, client, auth, make_user, png_bytes):
        alice = make_user("alice")

        response = client.put(
            "/user/me/cover-image",
            files={"image": ("cover.png", png_bytes(10, 2), "image/png")},
            headers=auth(alice),
        )

        assert response.status_code == 200
        assert response.json()["cover_image_url"].startswith("/vault/cover/")
        assert response.json()["profile_image_url"] is None

    def test_invalid_image_keeps_previous(self, db, vault, make_user, png_bytes):
        alice = make_user("alice")
        user_service.update_profile_image(db, alice, "profile", png_bytes(), vault)
        url = alice.profile_image_url

        with pytest.raises(ValidationError):
            user_service.update_profile_image(db, alice, "profile", b"garbage", vault)

        db.refresh(alice)
        assert alice.profile_image_url == url

    def test_unknown_image_kind(self, db, vault, make_user, png_bytes):
        alice = make_user("alice")
        with pytest.raises(ValidationError):
            user_service.update_profile_image(db, alice, "banner", png_bytes(), vault)


class TestProfileEdits:
    def test_update_name_and_bio(self, client, auth, make_user):
        alice = make_user("alice", bio="Old bio")

        response = client.patch(
            "/user/me", json={"name": "  Alice Liddell ", "bio": "New bio"}, headers=auth(alice)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Alice Liddell"
        assert body["bio"] == "New bio"

    def test_omitted_fields_are_kept(self, db, make_user):
        alice = make_user("alice", bio="Keep me")
        name = alice.name

        user_service.update_profile(db, alice, bio="")
        assert alice.bio is None
        assert alice.name == name

        user_service.update_profile(db, alice, name="Al")
        assert alice.name == "Al"
        assert alice.bio is None

    def test_blank_name_rejected(self, client, auth, make_user):
        alice = make_user("alice")

        response = client.patch("/user/me", json={"name": "   "}, headers=auth(alice))

        assert response.status_code == 400

    def test_remove_profile_image_releases_file(self, client, auth, db, vault, make_user, png_bytes):
        alice = make_user("alice")
        user_service.update_profile_image(db, alice, "profile", png_bytes(), vault)
        user_service.update_profile_image(db, alice, "cover", png_bytes(), vault)
        profile_path = vault.root / alice.profile_image_url.removeprefix("/vault/")
        cover_url = alice.cover_image_url

        response = client.delete("/user/me/profile-image", headers=auth(alice))

        assert response.status_code == 200
        assert response.json()["profile_image_url"] is None
        assert response.json()["cover_image_url"] == cover_url
        assert not profile_path.exists()
        assert (vault.root / cover_url.removeprefix("/vault/")).exists()

    def test_remove_cover_image(self, client, auth, db, vault, make_user, png_bytes):
        alice = make_user("alice")
        user_service.update_profile_image(db, alice, "cover", png_bytes(), vault)
        cover_path = vault.root / alice.cover_image_url.removeprefix("/vault/")

        response = client.delete("/user/me/cover-image", headers=auth(alice))

        assert response.json()["cover_image_url"] is None
        assert not cover_path.exists()

    def test_remove_absent_image_is_noop(self, db, vault, make_user):
        alice = make_user("alice")

        user = user_service.remove_profile_image(db, alice, "profile", vault)

        assert user.profile_image_url is None


class TestBadges:
    def test_admin_assigns_badge(self, client, auth, db, make_user):
        admin = make_user("root", role="admin")
        alice = make_user("alice")

        response = client.put(
            f"/admin/user/{alice.id}/badge", json={"badge": "gold"}, headers=auth(admin)
        )

        assert response.status_code == 200
        assert response.json()["badge"] == "gold"
        assignment = db.query(models.BadgeAssignment).one()
        assert assignment.assigned_by == admin.id

    def test_invalid_badge_rejected(self, client, auth, db, make_user):
        admin = make_user("root", role="admin")
        alice = make_user("alice")

        response = client.put(
            f"/admin/user/{alice.id}/badge", json={"badge": "purple"}, headers=auth(admin)
        )
        assert response.status_code == 422

        with pytest.raises(ValidationError):
            user_service.assign_badge(db, admin, alice.id, "purple")

    def test_badge_requires_admin(self, client, auth, make_user):
        alice = make_user("alice")
        bob = make_user("bob")

        response = client.put(
            f"/admin/user/{bob.id}/badge", json={"badge": "blue"}, headers=auth(alice)
        )

        assert response.status_code == 403


class TestDeleteUser:
    def test_admin_cannot_delete_self(self, db, vault, make_user):
        admin = make_user("root", role="admin")
        with pytest.raises(Forbidden):
            user_service.delete_user(db, admin, admin.id, vault)

    def test_non_admin_forbidden(self, client, auth, db, make_user):
        alice = make_user("alice")
        bob = make_user("bob")

        response = client.delete(f"/admin/user/{bob.id}", headers=auth(alice))

        assert response.status_code == 403
        assert db.get(models.User, bob.id) is not None

    def test_delete_missing_user(self, db, vault, make_user):
        admin = make_user("root", role="admin")
        with pytest.raises(NotFound):
            user_service.delete_user(db, admin, 4040, vault)

    def test_delete_removes_everything_the_user_touched(
        self, client, auth, db, vault, make_user, make_post, make_taxonomy, png_bytes
    ):
        admin = make_user("root", role="admin")
        alice = make_user("alice")
        bob = make_user("bob")
        make_taxonomy("category", "tech")
        make_taxonomy("tag", "x")
        alice_id = alice.id

        user_service.update_profile_image(db, bob, "profile", png_bytes(), vault)
        bob_post = make_post(bob, category="tech", tags=["x"])
        bob_post_id = bob_post.id
        bob_image = vault.root / bob_post.background_image.removeprefix("/vault/")
        bob_profile = vault.root / bob.profile_image_url.removeprefix("/vault/")
        alice_post = make_post(alice, category="tech", tags=["x"])
        alice_post_id = alice_post.id
        bob_id = bob.id

        # Bob's footprint on Alice's content
        toggle_like(db, LikeTarget(post_id=alice_post_id), bob, want_liked=True)
        bob_comment = comment_service.add_comment(db, alice_post_id, bob, "nice")
        alice_comment = comment_service.add_comment(db, alice_post_id, alice, "thanks all")
        comment_service.add_reply(db, alice_post_id, alice_comment.id, bob, "you're welcome")
        follow_service.follow(db, bob, alice_id)
        follow_service.follow(db, alice, bob_id)
        saved_service.save(db, alice, bob_post_id)
        saved_service.save(db, bob, alice_post_id)
        report_service.report(db, "post", alice_post_id, bob, "spam")
        user_service.assign_badge(db, admin, bob_id, "blue")
        bob_comment_id = bob_comment.id

        response = client.delete(f"/admin/user/{bob_id}", headers=auth(admin))
        assert response.status_code == 204

        db.expire_all()
        assert db.get(models.User, bob_id) is None
        assert db.get(models.Post, bob_post_id) is None
        assert db.get(models.Post, alice_post_id) is not None
        assert not bob_image.exists()
        assert not bob_profile.exists()

        assert like_set(db, "post", alice_post_id) == []
        assert db.get(models.Comment, bob_comment_id) is None
        assert db.query(models.Reply).count() == 0
        assert db.query(models.Comment).filter(models.Comment.author_id == alice_id).count() == 1

        assert follow_service.follower_ids(db, alice_id) == []
        assert follow_service.following_ids(db, alice_id) == []
        assert saved_service.list_saved(db, alice) == []
        assert db.query(models.SavedPost).filter(models.SavedPost.user_id == bob_id).count() == 0
        assert db.query(models.BadgeAssignment).count() == 0

        assert (
            db.query(models.Notification)
            .filter(
                (models.Notification.sender_id == bob_id) | (models.Notification.user_id == bob_id)
            )
            .count()
            == 0
        )

        # Bob's post no longer counts; Alice's still does
        assert _count(db, models.Category, "tech") == 1
        assert _count(db, models.Tag, "x") == 1

        # Reports filed by the deleted user are kept
        entry = db.query(models.Report).one()
        assert [r.reporter_id for r in entry.reasons] == [bob_id]
