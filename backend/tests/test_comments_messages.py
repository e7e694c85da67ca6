from mahattati.models.notification import Notification


def test_comment_notifies_ad_owner(client, advertiser, subscriber, create_ad, db):
    owner, a_headers = advertiser
    commenter, s_headers = subscriber
    ad = create_ad(a_headers, publish=True)

    response = client.post("/api/comments", json={"ad_id": ad["id"], "content": " Great prices "}, headers=s_headers)
    assert response.status_code == 201
    comment = response.json()["comment"]
    assert comment["content"] == "Great prices"
    assert comment["user_name"] == "Subscriber"

    notifications = db.query(Notification).filter(Notification.user_id == owner.id).all()
    assert len(notifications) == 1
    assert notifications[0].type == "comment"
    assert notifications[0].title_ar
    assert notifications[0].link_url == f"/ads/{ad['id']}"


def test_owner_comment_does_not_notify(client, advertiser, create_ad, db):
    owner, headers = advertiser
    ad = create_ad(headers)
    # Owners may comment on their own drafts
    assert client.post("/api/comments", json={"ad_id": ad["id"], "content": "Note"}, headers=headers).status_code == 201
    assert db.query(Notification).filter(Notification.user_id == owner.id).count() == 0


def test_cannot_comment_on_hidden_ad(client, advertiser, subscriber, create_ad):
    _, a_headers = advertiser
    _, s_headers = subscriber
    draft = create_ad(a_headers)
    response = client.post("/api/comments", json={"ad_id": draft["id"], "content": "Hi"}, headers=s_headers)
    assert response.status_code == 404
    assert client.get(f"/api/comments/{draft['id']}", headers=s_headers).status_code == 404


def test_comment_validation(client, advertiser, subscriber, create_ad):
    _, a_headers = advertiser
    _, s_headers = subscriber
    ad = create_ad(a_headers, publish=True)
    other = create_ad(a_headers, publish=True)
    parent = client.post("/api/comments", json={"ad_id": other["id"], "content": "First"}, headers=s_headers)

    assert client.post("/api/comments", json={"ad_id": ad["id"], "content": "   "}, headers=s_headers).status_code == 400
    response = client.post(
        "/api/comments",
        json={"ad_id": ad["id"], "content": "Reply", "parent_id": parent.json()["comment"]["id"]},
        headers=s_headers,
    )
    assert response.status_code == 400


def test_list_comments_oldest_first(client, advertiser, subscriber, create_ad):
    _, a_headers = advertiser
    _, s_headers = subscriber
    ad = create_ad(a_headers, publish=True)
    first = client.post("/api/comments", json={"ad_id": ad["id"], "content": "One"}, headers=s_headers).json()
    client.post(
        "/api/comments",
        json={"ad_id": ad["id"], "content": "Two", "parent_id": first["comment"]["id"]},
        headers=a_headers,
    )

    comments = client.get(f"/api/comments/{ad['id']}", headers=s_headers).json()["comments"]
    assert [c["content"] for c in comments] == ["One", "Two"]
    assert comments[1]["parent_id"] == first["comment"]["id"]


def test_only_author_deletes_comment(client, advertiser, subscriber, create_ad):
    _, a_headers = advertiser
    _, s_headers = subscriber
    ad = create_ad(a_headers, publish=True)
    comment = client.post("/api/comments", json={"ad_id": ad["id"], "content": "Mine"}, headers=s_headers).json()
    comment_id = comment["comment"]["id"]

    assert client.delete(f"/api/comments/{comment_id}", headers=a_headers).status_code == 403
    assert client.delete(f"/api/comments/{comment_id}", headers=s_headers).status_code == 200
    assert client.delete(f"/api/comments/{comment_id}", headers=s_headers).status_code == 404
    assert client.get(f"/api/comments/{ad['id']}", headers=s_headers).json()["comments"] == []


def test_send_message_and_conversations(client, advertiser, subscriber, db):
    owner, a_headers = advertiser
    buyer, s_headers = subscriber

    response = client.post("/api/messages", json={"receiver_id": owner.id, "content": "Is diesel available?"}, headers=s_headers)
    assert response.status_code == 201
    assert response.json()["data"]["is_read"] is False
    client.post("/api/messages", json={"receiver_id": owner.id, "content": "Hello?"}, headers=s_headers)

    notification = db.query(Notification).filter(Notification.user_id == owner.id).first()
    assert notification.type == "message"
    assert notification.link_url == f"/messages/{buyer.id}"

    conversations = client.get("/api/messages", headers=a_headers).json()["conversations"]
    assert len(conversations) == 1
    assert conversations[0]["other_user_id"] == buyer.id
    assert conversations[0]["last_message"] == "Hello?"
    assert conversations[0]["unread_count"] == 2

    thread = client.get(f"/api/messages/{buyer.id}", headers=a_headers).json()["messages"]
    assert [m["content"] for m in thread] == ["Is diesel available?", "Hello?"]

    conversations = client.get("/api/messages", headers=a_headers).json()["conversations"]
    assert conversations[0]["unread_count"] == 0


def test_message_to_unknown_user(client, subscriber):
    _, headers = subscriber
    response = client.post("/api/messages", json={"receiver_id": 999999, "content": "Hi"}, headers=headers)
    assert response.status_code == 404


def test_message_about_missing_or_hidden_ad(client, advertiser, subscriber, create_ad, db):
    owner, a_headers = advertiser
    _, s_headers = subscriber
    draft = create_ad(a_headers)

    for ad_id in (999999, draft["id"]):
        response = client.post(
            "/api/messages",
            json={"receiver_id": owner.id, "content": "Hi", "ad_id": ad_id},
            headers=s_headers,
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Ad not found"
    assert db.query(Notification).count() == 0

    published = create_ad(a_headers, publish=True)
    response = client.post(
        "/api/messages",
        json={"receiver_id": owner.id, "content": "Hi", "ad_id": published["id"]},
        headers=s_headers,
    )
    assert response.status_code == 201
    assert response.json()["data"]["ad_id"] == published["id"]


def test_message_to_self_rejected(client, subscriber):
    user, headers = subscriber
    response = client.post("/api/messages", json={"receiver_id": user.id, "content": "Hi"}, headers=headers)
    assert response.status_code == 400


def test_notifications(client, advertiser, subscriber, create_ad):
    _, a_headers = advertiser
    _, s_headers = subscriber
    ad = create_ad(a_headers, publish=True)
    client.post("/api/comments", json={"ad_id": ad["id"], "content": "One"}, headers=s_headers)
    client.post("/api/comments", json={"ad_id": ad["id"], "content": "Two"}, headers=s_headers)

    notifications = client.get("/api/notifications", headers=a_headers).json()["notifications"]
    assert len(notifications) == 2

    response = client.put(f"/api/notifications/{notifications[0]['id']}/read", headers=a_headers)
    assert response.status_code == 200
    unread = client.get("/api/notifications", params={"unread_only": "true"}, headers=a_headers).json()
    assert len(unread["notifications"]) == 1

    # Someone else's notification looks missing
    assert client.put(f"/api/notifications/{notifications[1]['id']}/read", headers=s_headers).status_code == 404

    assert client.put("/api/notifications/read-all", headers=a_headers).status_code == 200
    unread = client.get("/api/notifications", params={"unread_only": "true"}, headers=a_headers).json()
    assert unread["notifications"] == []
