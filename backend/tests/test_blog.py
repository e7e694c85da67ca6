from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from conftest import PNG_BYTES


def create_post(client, headers, **fields):
    data = {"title": "Fuel prices", "content": "Prices are stable this month."}
    data.update(fields)
    return client.post("/api/blog", data=data, headers=headers)


def test_managers_create_posts(client, marketing_manager, system_manager, advertiser, subscriber):
    for _, headers in (marketing_manager, system_manager):
        assert create_post(client, headers).status_code == 201
    for _, headers in (advertiser, subscriber):
        assert create_post(client, headers).status_code == 403


def test_draft_posts_are_not_public(client, marketing_manager):
    _, headers = marketing_manager
    draft = create_post(client, headers).json()["post"]
    assert draft["status"] == "draft"
    assert draft["publish_date"] is None
    assert draft["media_type"] == "none"

    assert client.get("/api/blog").json()["posts"] == []
    assert client.get(f"/api/blog/{draft['id']}").status_code == 404


def test_published_post_is_public_and_counts_views(client, marketing_manager):
    _, headers = marketing_manager
    post = create_post(client, headers, status="published", title_ar="أسعار الوقود").json()["post"]
    assert post["publish_date"] is not None

    listed = client.get("/api/blog").json()["posts"]
    assert [p["id"] for p in listed] == [post["id"]]
    assert listed[0]["author_name"] == "Marketing Manager"

    client.get(f"/api/blog/{post['id']}")
    assert client.get(f"/api/blog/{post['id']}").json()["post"]["views_count"] == 2


def test_post_with_media(client, marketing_manager):
    _, headers = marketing_manager
    response = client.post(
        "/api/blog",
        data={"title": "Video", "content": "Watch"},
        files={"media": ("clip.mp4", b"\x00\x00\x00\x18ftypmp42", "video/mp4")},
        headers=headers,
    )
    assert response.status_code == 201
    post = response.json()["post"]
    assert post["media_type"] == "video"
    assert post["media_url"].startswith("/uploads/blog/blog-")

    bad = client.post(
        "/api/blog",
        data={"title": "Doc", "content": "Read"},
        files={"media": ("doc.pdf", b"%PDF", "application/pdf")},
        headers=headers,
    )
    assert bad.status_code == 400


def test_post_validation(client, marketing_manager):
    _, headers = marketing_manager
    assert create_post(client, headers, status="archived").status_code == 400
    assert create_post(client, headers, title="  ").status_code == 400
    assert client.post("/api/blog", data={"title": "No content"}, headers=headers).status_code == 400


def test_only_author_updates_post(client, marketing_manager, system_manager):
    _, author = marketing_manager
    _, other = system_manager
    post = create_post(client, author).json()["post"]

    assert client.put(f"/api/blog/{post['id']}", data={"title": "Mine now"}, headers=other).status_code == 403
    assert client.put("/api/blog/999999", data={"title": "x"}, headers=author).status_code == 404

    response = client.put(f"/api/blog/{post['id']}", data={"status": "published"}, headers=author)
    assert response.status_code == 200
    first_publish = response.json()["post"]["publish_date"]
    assert first_publish is not None

    client.put(f"/api/blog/{post['id']}", data={"status": "draft"}, headers=author)
    republished = client.put(f"/api/blog/{post['id']}", data={"status": "published"}, headers=author)
    assert republished.json()["post"]["publish_date"] == first_publish


def test_replacing_media(client, marketing_manager, upload_dir):
    _, headers = marketing_manager
    post = client.post(
        "/api/blog",
        data={"title": "Pic", "content": "Look"},
        files={"media": ("a.png", PNG_BYTES, "image/png")},
        headers=headers,
    ).json()["post"]
    old = post["media_url"]

    updated = client.put(
        f"/api/blog/{post['id']}",
        files={"media": ("b.png", PNG_BYTES, "image/png")},
        headers=headers,
    ).json()["post"]
    assert updated["media_url"] != old
    assert not (upload_dir / old[len("/uploads/"):]).exists()


def test_failed_update_keeps_old_media(client, marketing_manager, upload_dir, monkeypatch):
    _, headers = marketing_manager
    post = client.post(
        "/api/blog",
        data={"title": "Pic", "content": "Look"},
        files={"media": ("a.png", PNG_BYTES, "image/png")},
        headers=headers,
    ).json()["post"]
    old = post["media_url"]

    def failing_commit(self):
        raise SQLAlchemyError("commit failed")

    with monkeypatch.context() as m:
        m.setattr(Session, "commit", failing_commit)
        response = client.put(
            f"/api/blog/{post['id']}",
            files={"media": ("b.png", PNG_BYTES, "image/png")},
            headers=headers,
        )

    assert response.status_code == 500
    assert response.json()["message"] == "Database error occurred"
    # Only the original file is left on disk
    assert [p.name for p in (upload_dir / "blog").iterdir()] == [old.rsplit("/", 1)[1]]
