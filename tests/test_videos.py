import io
import os
from datetime import datetime, timedelta

import pytest

from conftest import cookie_header, make_user, session_token_for
from models import db
from models.comment import Comment
from models.like import Like
from models.notification import Notification
from models.user import User
from models.video import Video


def add_video(app, owner_email="a@x.com", title="Clip", views=0, age_minutes=0, **fields):
    with app.app_context():
        owner = User.query.filter_by(email=owner_email).one()
        video = Video(
            user_id=owner.id,
            title=title,
            video_path=f"{title.lower()}.mp4",
            cover_path=f"{title.lower()}.jpg",
            views=views,
            created_at=datetime(2026, 1, 1) + timedelta(minutes=age_minutes),
            **fields,
        )
        db.session.add(video)
        db.session.commit()
        return video.id


@pytest.fixture
def bob(app):
    make_user(app, "b@x.com", username="bob")
    return cookie_header(app, session_token_for(app, "b@x.com"))


def upload(client, headers, video=b"\x00" * 1024, cover=b"\x89PNG", title="My clip",
           video_type="video/mp4", cover_type="image/png"):
    data = {"title": title, "description": "first upload"}
    if video is not None:
        data["video"] = (io.BytesIO(video), "clip.mp4", video_type)
    if cover is not None:
        data["cover"] = (io.BytesIO(cover), "cover.png", cover_type)
    return client.post("/api/videos/upload", data=data, headers=headers, content_type="multipart/form-data")


# listing

def test_list_newest_first_with_paging(app, anon_client, user):
    for i in range(3):
        add_video(app, title=f"V{i}", age_minutes=i)

    resp = anon_client.get("/api/videos?limit=2")
    assert resp.status_code == 200
    titles = [v["title"] for v in resp.get_json()]
    assert titles == ["V2", "V1"]

    resp = anon_client.get("/api/videos?limit=2&offset=2")
    assert [v["title"] for v in resp.get_json()] == ["V0"]


def test_list_sorts_and_search(app, anon_client, user):
    add_video(app, title="Cats", views=1, age_minutes=0)
    add_video(app, title="Dogs", views=10, age_minutes=1)

    popular = anon_client.get("/api/videos?sort=popular").get_json()
    assert [v["title"] for v in popular] == ["Dogs", "Cats"]

    oldest = anon_client.get("/api/videos?sort=oldest").get_json()
    assert [v["title"] for v in oldest] == ["Cats", "Dogs"]

    found = anon_client.get("/api/videos?search=cat").get_json()
    assert [v["title"] for v in found] == ["Cats"]

    by_owner = anon_client.get("/api/videos?search=alic").get_json()
    assert len(by_owner) == 2


def test_search_wildcards_match_literally(app, anon_client, user):
    add_video(app, title="100% real", age_minutes=0)
    add_video(app, title="a_b", age_minutes=1)
    add_video(app, title="axb", age_minutes=2)

    percent = anon_client.get("/api/videos", query_string={"search": "%"}).get_json()
    assert [v["title"] for v in percent] == ["100% real"]

    underscore = anon_client.get("/api/videos", query_string={"search": "a_b"}).get_json()
    assert [v["title"] for v in underscore] == ["a_b"]


def test_list_limit_is_capped(app, anon_client, user):
    for i in range(55):
        add_video(app, title=f"V{i}", age_minutes=i)
    assert len(anon_client.get("/api/videos?limit=500").get_json()) == 50
    assert len(anon_client.get("/api/videos?limit=abc").get_json()) == 12


def test_video_payload_shape(app, anon_client, user):
    vid = add_video(app, title="Shape")
    body = anon_client.get(f"/api/videos?videoId={vid}").get_json()

    assert body["id"] == vid
    assert body["video_url"] == "/media/videos/shape.mp4"
    assert body["cover_url"] == "/media/covers/shape.jpg"
    assert body["user"]["username"] == "alice"
    assert body["likes"] == 0
    assert body["hasLiked"] is False
    assert body["comments"] == []


def test_single_video_increments_views(app, anon_client, user):
    vid = add_video(app, views=3)

    assert anon_client.get(f"/api/videos?videoId={vid}").get_json()["views"] == 3
    assert anon_client.get(f"/api/videos?videoId={vid}&incrementViews=true").get_json()["views"] == 4
    with app.app_context():
        assert db.session.get(Video, vid).views == 4


@pytest.mark.parametrize("query", ["videoId=999", "videoId=999&incrementViews=true", "videoId=abc"])
def test_single_video_missing(anon_client, query):
    assert anon_client.get(f"/api/videos?{query}").status_code == 404


def test_stats_only(app, anon_client, user, auth, bob):
    first = add_video(app, title="One", views=5)
    second = add_video(app, title="Two")
    anon_client.post("/api/like", json={"target_id": first, "action": "like"}, headers=bob)
    anon_client.post(f"/api/videos/{first}/comments", json={"text": "nice"}, headers=bob)

    resp = anon_client.get(f"/api/videos?statsOnly=true&ids={first},{second},999,x", headers=bob)
    stats = {s["id"]: s for s in resp.get_json()}

    assert set(stats) == {first, second}
    assert stats[first] == {"id": first, "views": 5, "likes": 1, "hasLiked": True, "commentCount": 1}
    assert stats[second]["likes"] == 0
    assert stats[second]["hasLiked"] is False


def test_stats_only_without_ids(anon_client):
    resp = anon_client.get("/api/videos?statsOnly=true")
    assert resp.status_code == 200
    assert resp.get_json() == []


# upload

def test_upload_requires_login(anon_client):
    assert upload(anon_client, {}).status_code == 401


def test_upload_stores_files(app, anon_client, auth):
    resp = upload(anon_client, auth)
    assert resp.status_code == 201
    video = resp.get_json()["video"]
    assert video["title"] == "My clip"
    assert video["video_url"].startswith("/media/videos/")

    with app.app_context():
        row = Video.query.one()
        assert row.size == 1024
        assert row.mime_type == "video/mp4"
        assert row.original_filename == "clip.mp4"
        root = app.config["UPLOAD_FOLDER"]
        assert os.path.isfile(os.path.join(root, "videos", row.video_path))
        assert os.path.isfile(os.path.join(root, "covers", row.cover_path))

    media = anon_client.get(video["video_url"])
    assert media.status_code == 200
    assert media.data == b"\x00" * 1024


@pytest.mark.parametrize("kwargs, error", [
    ({"video": None}, "No video uploaded."),
    ({"cover": None}, "Cover art is required."),
    ({"title": "  "}, "Video title is required."),
    ({"video_type": "text/plain"}, "Unsupported video type"),
    ({"cover_type": "application/pdf"}, "Cover must be an image"),
])
def test_upload_validation(app, anon_client, auth, kwargs, error):
    resp = upload(anon_client, auth, **kwargs)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == error
    with app.app_context():
        assert Video.query.count() == 0


def test_upload_too_large(app, anon_client, auth):
    app.config["MAX_VIDEO_BYTES"] = 100
    resp = upload(anon_client, auth, video=b"\x00" * 500)
    assert resp.status_code == 413
    assert not os.listdir(os.path.join(app.config["UPLOAD_FOLDER"], "videos"))


def user_id(app, email):
    with app.app_context():
        return User.query.filter_by(email=email).one().id


def test_register_uploaded_video(app, anon_client, auth):
    prefix = f"{user_id(app, 'a@x.com')}_"
    storage = app.extensions["storage"]
    storage.save("videos", f"{prefix}direct.mp4", io.BytesIO(b"data"))
    storage.save("covers", f"{prefix}direct.jpg", io.BytesIO(b"img"))

    resp = anon_client.post("/api/videos", headers=auth, json={
        "title": "Direct", "video_path": f"{prefix}direct.mp4",
        "cover_path": f"{prefix}direct.jpg", "size": 4,
    })
    assert resp.status_code == 201

    again = anon_client.post("/api/videos", headers=auth, json={
        "title": "Twice", "video_path": f"{prefix}direct.mp4", "cover_path": f"{prefix}direct.jpg",
    })
    assert again.status_code == 409

    missing = anon_client.post("/api/videos", headers=auth, json={
        "title": "Ghost", "video_path": f"{prefix}ghost.mp4", "cover_path": f"{prefix}direct.jpg",
    })
    assert missing.status_code == 400

    traversal = anon_client.post("/api/videos", headers=auth, json={
        "title": "Evil", "video_path": f"{prefix}../../etc/passwd", "cover_path": f"{prefix}direct.jpg",
    })
    assert traversal.status_code == 400

    not_text = anon_client.post("/api/videos", headers=auth, json={
        "title": "Odd", "video_path": 5, "cover_path": f"{prefix}direct.jpg",
    })
    assert not_text.status_code == 400

    with app.app_context():
        assert Video.query.count() == 1


def test_cannot_register_another_users_upload(app, anon_client, auth, bob):
    uploaded = upload(anon_client, auth).get_json()["video"]
    video_path = uploaded["video_url"].rsplit("/", 1)[1]
    cover_path = uploaded["cover_url"].rsplit("/", 1)[1]
    assert video_path.startswith(f"{user_id(app, 'a@x.com')}_")

    resp = anon_client.post("/api/videos", headers=bob, json={
        "title": "stolen", "video_path": video_path, "cover_path": cover_path,
    })
    assert resp.status_code == 403

    with app.app_context():
        videos = Video.query.all()
        assert len(videos) == 1
        assert videos[0].user.email == "a@x.com"


def test_cannot_register_unreferenced_files_of_another_user(app, anon_client, auth, bob):
    alice_prefix = f"{user_id(app, 'a@x.com')}_"
    storage = app.extensions["storage"]
    storage.save("videos", f"{alice_prefix}raw.mp4", io.BytesIO(b"data"))
    storage.save("covers", f"{alice_prefix}raw.jpg", io.BytesIO(b"img"))

    resp = anon_client.post("/api/videos", headers=bob, json={
        "title": "stolen", "video_path": f"{alice_prefix}raw.mp4", "cover_path": f"{alice_prefix}raw.jpg",
    })
    assert resp.status_code == 403


def test_media_unknown_bucket(anon_client):
    assert anon_client.get("/media/secrets/file.txt").status_code == 404


# comments

def test_comment_on_video_notifies_owner(app, anon_client, user, bob):
    vid = add_video(app)
    resp = anon_client.post(f"/api/videos/{vid}/comments", json={"text": "  great  "}, headers=bob)

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["text"] == "great"
    assert body["user"]["username"] == "bob"

    with app.app_context():
        note = Notification.query.one()
        assert note.type == "video_comment"
        assert note.user_id == User.query.filter_by(email="a@x.com").one().id

    listed = anon_client.get(f"/api/videos?videoId={vid}").get_json()
    assert [c["text"] for c in listed["comments"]] == ["great"]


def test_own_comment_does_not_notify(app, anon_client, auth):
    vid = add_video(app)
    anon_client.post(f"/api/videos/{vid}/comments", json={"text": "mine"}, headers=auth)
    with app.app_context():
        assert Notification.query.count() == 0


@pytest.mark.parametrize("payload, status", [
    ({}, 400),
    ({"text": "   "}, 400),
    ({"text": "x" * 2001}, 400),
])
def test_comment_validation(app, anon_client, auth, payload, status):
    vid = add_video(app)
    assert anon_client.post(f"/api/videos/{vid}/comments", json=payload, headers=auth).status_code == status


def test_comment_on_missing_video(anon_client, auth):
    assert anon_client.post("/api/videos/42/comments", json={"text": "hi"}, headers=auth).status_code == 404


# likes

def test_like_and_unlike_video(app, anon_client, user, bob):
    vid = add_video(app)

    liked = anon_client.post("/api/like", json={"videoId": vid, "action": "like"}, headers=bob)
    assert liked.status_code == 200
    assert liked.get_json()["likes"] == 1
    assert liked.get_json()["liked"] is True

    again = anon_client.post("/api/like", json={"target_id": vid, "action": "like"}, headers=bob)
    assert again.status_code == 400
    assert again.get_json()["likes"] == 1

    unliked = anon_client.post("/api/like", json={"target_id": vid, "action": "unlike"}, headers=bob)
    assert unliked.status_code == 200
    assert unliked.get_json()["likes"] == 0

    twice = anon_client.post("/api/like", json={"target_id": vid, "action": "unlike"}, headers=bob)
    assert twice.status_code == 400

    with app.app_context():
        assert Notification.query.filter_by(type="video_like").count() == 1


def test_like_comment(app, anon_client, user, auth, bob):
    vid = add_video(app)
    comment = anon_client.post(f"/api/videos/{vid}/comments", json={"text": "hi"}, headers=auth).get_json()

    resp = anon_client.post("/api/like", headers=bob, json={
        "target_type": "comment", "target_id": comment["id"], "action": "like",
    })
    assert resp.status_code == 200
    with app.app_context():
        assert Like.query.filter_by(target_type="comment").count() == 1
        assert Notification.query.filter_by(type="comment_like").count() == 1


@pytest.mark.parametrize("payload, status", [
    ({"action": "like"}, 400),
    ({"target_id": 1}, 400),
    ({"target_id": 1, "action": "love"}, 400),
    ({"target_id": 1, "action": "like", "target_type": "user"}, 400),
    ({"target_id": "abc", "action": "like"}, 400),
    ({"target_id": 999, "action": "like"}, 404),
])
def test_like_validation(anon_client, auth, payload, status):
    assert anon_client.post("/api/like", json=payload, headers=auth).status_code == status


def test_like_requires_login(anon_client):
    assert anon_client.post("/api/like", json={"target_id": 1, "action": "like"}).status_code == 401


# profile

def test_profile_update_json(app, anon_client, auth):
    resp = anon_client.post("/api/profile", json={"username": "alice_2", "bio": " hello "}, headers=auth)
    assert resp.status_code == 200
    assert resp.get_json()["user"]["username"] == "alice_2"
    assert resp.get_json()["user"]["bio"] == "hello"


def test_profile_username_rules(app, anon_client, auth, bob):
    assert anon_client.post("/api/profile", json={"username": "x"}, headers=auth).status_code == 400
    assert anon_client.post("/api/profile", json={"username": "bob"}, headers=auth).status_code == 409
    assert anon_client.post("/api/profile", json={"bio": "b" * 501}, headers=auth).status_code == 400


def test_profile_avatar_replaces_previous(app, anon_client, auth):
    def post_avatar(content):
        return anon_client.post(
            "/api/profile",
            data={"avatar": (io.BytesIO(content), "me.png", "image/png")},
            headers=auth,
            content_type="multipart/form-data",
        )

    first = post_avatar(b"one")
    assert first.status_code == 200
    first_url = first.get_json()["user"]["avatar_url"]
    assert first_url.startswith("/media/avatars/")

    second = post_avatar(b"two")
    second_url = second.get_json()["user"]["avatar_url"]
    assert second_url != first_url

    avatars = os.listdir(os.path.join(app.config["UPLOAD_FOLDER"], "avatars"))
    assert len(avatars) == 1


def test_profile_avatar_must_be_image(anon_client, auth):
    resp = anon_client.post(
        "/api/profile",
        data={"avatar": (io.BytesIO(b"x"), "me.txt", "text/plain")},
        headers=auth,
        content_type="multipart/form-data",
    )
    assert resp.status_code == 400


def test_me_counts_likes_received(app, anon_client, user, auth, bob):
    vid = add_video(app)
    anon_client.post("/api/like", json={"target_id": vid, "action": "like"}, headers=bob)
    with app.app_context():
        db.session.add(Comment(user_id=User.query.filter_by(email="a@x.com").one().id,
                               video_id=vid, comment_text="self"))
        db.session.commit()

    stats = anon_client.get("/api/me", headers=auth).get_json()["stats"]
    assert stats == {"videos": 1, "comments": 1, "likes": 1}
