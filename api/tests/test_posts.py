"""Test post CRUD operations and the delete cascade."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from cardwall import models
from cardwall.errors import Forbidden, NotFound, Unavailable, ValidationError
from cardwall.services import comments as comment_service
from cardwall.services import posts as post_service
from cardwall.services import saved as saved_service
from cardwall.services.likes import LikeTarget, toggle_like
from cardwall.vault import LocalVault


def _count(db: Session, model, name: str) -> int:
    db.expire_all()
    return db.query(model.post_count).filter(model.name == name).scalar()


def _form(**overrides) -> dict[str, str]:
    form = {
        "content": "Stay hungry, stay foolish",
        "author": "Steve Jobs",
        "category": "tech",
        "tags": "x, y",
        "content_color": "#ffffff",
        "author_color": "#dddddd",
        "tint_color": "#101010",
    }
    form.update(overrides)
    return form


def _vault_path(vault: LocalVault, url: str):
    return vault.root / url.removeprefix("/vault/")


def test_card_lifecycle_keeps_counters_and_inbox_consistent(
    client, auth, db, make_user, make_taxonomy, png_bytes
):
    alice = make_user("alice")
    bob = make_user("bob")
    make_taxonomy("category", "tech")
    make_taxonomy("tag", "x")
    make_taxonomy("tag", "y")

    response = client.post(
        "/post",
        data=_form(),
        files={"image": ("card.png", png_bytes(), "image/png")},
        headers=auth(alice),
    )
    assert response.status_code == 201
    post_id = response.json()["id"]
    assert response.json()["tags"] == ["x", "y"]
    assert _count(db, models.Category, "tech") == 1
    assert _count(db, models.Tag, "x") == 1
    assert _count(db, models.Tag, "y") == 1

    response = client.put(f"/post/{post_id}/like", headers=auth(bob))
    assert response.json()["likes"] == [bob.id]
    inbox = client.get("/notifications/", headers=auth(alice)).json()["items"]
    assert inbox[0]["notification_type"] == "like"
    assert inbox[0]["post_id"] == post_id
    assert inbox[0]["sender"]["id"] == bob.id

    response = client.delete(f"/post/{post_id}/like", headers=auth(bob))
    assert response.json()["likes"] == []
    inbox = client.get("/notifications/", headers=auth(alice)).json()["items"]
    assert [n for n in inbox if n["sender"]["id"] == bob.id and n["post_id"] == post_id] == []

    response = client.delete(f"/post/{post_id}", headers=auth(alice))
    assert response.status_code == 204
    assert _count(db, models.Category, "tech") == 0
    assert _count(db, models.Tag, "x") == 0
    assert _count(db, models.Tag, "y") == 0
    assert db.get(models.Post, post_id) is None
    assert client.get(f"/post/{post_id}").status_code == 404


def test_create_post_validates_required_fields(client, auth, db, make_user, png_bytes):
    alice = make_user("alice")

    response = client.post(
        "/post",
        data=_form(author="   "),
        files={"image": ("card.png", png_bytes(), "image/png")},
        headers=auth(alice),
    )

    assert response.status_code == 400
    assert "author" in response.json()["detail"]
    assert db.query(models.Post).count() == 0


def test_create_post_requires_image(client, auth, db, make_user, make_taxonomy):
    alice = make_user("alice")
    make_taxonomy("category", "tech")

    response = client.post("/post", data=_form(), headers=auth(alice))

    assert response.status_code == 400
    assert db.query(models.Post).count() == 0
    assert _count(db, models.Category, "tech") == 0


def test_create_post_requires_tags(db, vault, make_user, png_bytes):
    alice = make_user("alice")

    with pytest.raises(ValidationError):
        post_service.create_post(
            db,
            alice,
            content="c",
            author="a",
            category="tech",
            tags=" , ",
            content_color="#fff",
            author_color="#fff",
            tint_color="#fff",
            image=png_bytes(),
            images=vault,
        )


def test_create_post_rejects_unreadable_image(client, auth, db, make_user, make_taxonomy):
    alice = make_user("alice")
    make_taxonomy("tag", "x")

    response = client.post(
        "/post",
        data=_form(),
        files={"image": ("card.png", b"definitely not a png", "image/png")},
        headers=auth(alice),
    )

    assert response.status_code == 400
    assert db.query(models.Post).count() == 0
    assert _count(db, models.Tag, "x") == 0


def test_image_store_failure_rolls_back_post_and_counters(
    client, auth, db, make_user, make_taxonomy, png_bytes
):
    alice = make_user("alice")
    make_taxonomy("category", "tech")
    make_taxonomy("tag", "x")

    with patch.object(LocalVault, "store", side_effect=OSError("disk full")):
        response = client.post(
            "/post",
            data=_form(),
            files={"image": ("card.png", png_bytes(), "image/png")},
            headers=auth(alice),
        )

    assert response.status_code == 503
    assert response.json()["kind"] == "unavailable"
    assert response.headers["Retry-After"] == "1"
    assert db.query(models.Post).count() == 0
    assert db.query(models.PostTag).count() == 0
    assert _count(db, models.Category, "tech") == 0
    assert _count(db, models.Tag, "x") == 0


def test_tags_are_deduplicated_in_order(make_user, make_post):
    alice = make_user("alice")

    post = make_post(alice, tags="b, a, b , c")

    assert post.tags == ["b", "a", "c"]


def test_get_post_detail(client, db, make_user, make_post):
    alice = make_user("alice")
    bob = make_user("bob")
    post = make_post(alice)
    toggle_like(db, LikeTarget(post_id=post.id), bob, want_liked=True)
    comment_service.add_comment(db, post.id, bob, "wow")

    response = client.get(f"/post/{post.id}")

    assert response.status_code == 200
    body = response.json()
    assert body["owner"]["handle"] == "alice"
    assert body["likes"] == [bob.id]
    assert [c["body"] for c in body["comments"]] == ["wow"]
    assert body["width"] == 4
    assert body["height"] == 3


class TestUpdatePost:
    def test_update_moves_counters(self, client, auth, db, make_user, make_post, make_taxonomy):
        alice = make_user("alice")
        for name in ("tech", "art"):
            make_taxonomy("category", name)
        for name in ("x", "y", "z"):
            make_taxonomy("tag", name)
        post = make_post(alice, category="tech", tags=["x", "y"])

        response = client.patch(
            f"/post/{post.id}",
            data={"category": "art", "tags": "y,z", "content": "Updated"},
            headers=auth(alice),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["category"] == "art"
        assert body["tags"] == ["y", "z"]
        assert body["content"] == "Updated"
        assert _count(db, models.Category, "tech") == 0
        assert _count(db, models.Category, "art") == 1
        assert _count(db, models.Tag, "x") == 0
        assert _count(db, models.Tag, "y") == 1
        assert _count(db, models.Tag, "z") == 1

    def test_update_by_non_owner_forbidden(self, db, vault, make_user, make_post):
        alice = make_user("alice")
        bob = make_user("bob")
        post = make_post(alice)

        with pytest.raises(Forbidden):
            post_service.update_post(db, post.id, bob, images=vault, content="hijack")

    def test_update_replaces_image(self, db, vault, make_user, make_post, png_bytes):
        alice = make_user("alice")
        post = make_post(alice)
        old_url = post.background_image

        updated = post_service.update_post(
            db, post.id, alice, images=vault, image=png_bytes(8, 8, "green")
        )

        assert updated.background_image != old_url
        assert (updated.width, updated.height) == (8, 8)
        assert not _vault_path(vault, old_url).exists()
        assert _vault_path(vault, updated.background_image).exists()


class TestDeletePost:
    def test_delete_cascades_everywhere(self, client, auth, db, vault, make_user, make_post):
        alice = make_user("alice")
        bob = make_user("bob")
        carol = make_user("carol")
        post = make_post(alice)
        post_id = post.id
        image_path = _vault_path(vault, post.background_image)
        other = make_post(bob)
        other_id = other.id

        saved_service.save(db, bob, post_id)
        saved_service.save(db, carol, post_id)
        saved_service.save(db, carol, other_id)
        toggle_like(db, LikeTarget(post_id=post_id), bob, want_liked=True)
        comment = comment_service.add_comment(db, post_id, carol, "hi")
        comment_service.add_reply(db, post_id, comment.id, bob, "hey")

        response = client.delete(f"/post/{post_id}", headers=auth(alice))

        assert response.status_code == 204
        assert not image_path.exists()
        assert saved_service.list_saved(db, bob) == []
        assert saved_service.list_saved(db, carol) == [other_id]
        assert db.query(models.Notification).filter(models.Notification.post_id == post_id).count() == 0
        assert db.query(models.Like).filter(models.Like.post_id == post_id).count() == 0
        assert db.query(models.Comment).count() == 0
        assert db.query(models.Reply).count() == 0
        assert db.query(models.PostTag).filter(models.PostTag.post_id == post_id).count() == 0

    def test_admin_can_delete(self, db, vault, make_user, make_post):
        alice = make_user("alice")
        admin = make_user("root", role="admin")
        post_id = make_post(alice).id

        post_service.delete_post(db, post_id, admin, vault)

        assert db.get(models.Post, post_id) is None

    def test_stranger_cannot_delete(self, client, auth, db, make_user, make_post):
        alice = make_user("alice")
        bob = make_user("bob")
        post_id = make_post(alice).id

        response = client.delete(f"/post/{post_id}", headers=auth(bob))

        assert response.status_code == 403
        assert db.get(models.Post, post_id) is not None

    def test_delete_missing_post(self, db, vault, make_user):
        alice = make_user("alice")
        with pytest.raises(NotFound):
            post_service.delete_post(db, 4242, alice, vault)

    def test_purge_is_safe_to_rerun(self, db, make_user, make_post, make_taxonomy):
        alice = make_user("alice")
        make_taxonomy("category", "tech", post_count=0)
        post = make_post(alice, category="tech", tags=["x"])
        post_id = post.id

        assert post_service.purge_post(db, post_id, "tech", ["x"]) is True
        db.commit()
        assert post_service.purge_post(db, post_id, "tech", ["x"]) is False
        db.commit()

        assert _count(db, models.Category, "tech") == 0

    def test_missing_image_handle_does_not_block_delete(self, db, vault, make_user, make_post):
        alice = make_user("alice")
        post = make_post(alice)
        post_id = post.id
        _vault_path(vault, post.background_image).unlink()

        post_service.delete_post(db, post_id, alice, vault)

        assert db.get(models.Post, post_id) is None


def test_delete_surfaces_unavailable_when_store_keeps_failing(db, vault, make_user, make_post):
    from sqlalchemy.exc import OperationalError

    alice = make_user("alice")
    post_id = make_post(alice).id

    with patch.object(
        post_service,
        "purge_post",
        side_effect=OperationalError("DELETE FROM posts", {}, Exception("database is locked")),
    ) as purge:
        with pytest.raises(Unavailable):
            post_service.delete_post(db, post_id, alice, vault)

    assert purge.call_count == 2
    assert db.get(models.Post, post_id) is not None
