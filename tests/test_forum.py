"""
Community forum: posts, comments, likes and moderation.
"""
from conftest import API


def _post(client, headers, **extra):
    payload = {"title": "Cycling with stiff knees", "body": "What works for you?", "category": "exercise"}
    payload.update(extra)
    response = client.post(f"{API}/forum/posts", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_reply_counters_follow_comments(client, patient, other_patient):
    _, headers = patient
    _, other_headers = other_patient
    post = _post(client, headers)
    comments = f"{API}/forum/posts/{post['id']}/comments"

    top = client.post(comments, json={"body": "Short rides help"}, headers=other_headers).json()
    reply = client.post(
        comments, json={"body": "Agreed", "parent_comment_id": top["id"]}, headers=headers
    ).json()

    assert client.get(f"{API}/forum/posts/{post['id']}", headers=headers).json()["replies"] == 2
    nested = client.get(comments, params={"parent_comment_id": top["id"]}, headers=headers).json()
    assert [c["id"] for c in nested["items"]] == [reply["id"]]

    assert client.delete(f"{API}/forum/comments/{reply['id']}", headers=headers).status_code == 200
    assert client.get(f"{API}/forum/posts/{post['id']}", headers=headers).json()["replies"] == 1

    top_level = client.get(comments, headers=headers).json()["items"]
    assert top_level[0]["reply_count"] == 0
    assert top_level[0]["has_replies"] is False


def test_viewing_counts_views(client, patient):
    _, headers = patient
    post = _post(client, headers)
    client.get(f"{API}/forum/posts/{post['id']}", headers=headers)
    viewed = client.get(f"{API}/forum/posts/{post['id']}", headers=headers).json()
    assert viewed["views"] == 2


def test_locked_post_refuses_comments(client, admin, patient):
    _, admin_headers = admin
    _, headers = patient
    post = _post(client, headers)

    locked = client.put(f"{API}/forum/posts/{post['id']}", json={"is_locked": True}, headers=admin_headers)
    assert locked.json()["is_locked"] is True

    response = client.post(f"{API}/forum/posts/{post['id']}/comments", json={"body": "hi"}, headers=headers)
    assert response.status_code == 403


def test_author_cannot_pin_own_post(client, patient):
    _, headers = patient
    post = _post(client, headers)
    response = client.put(f"{API}/forum/posts/{post['id']}", json={"is_pinned": True, "title": "New"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["is_pinned"] is False
    assert response.json()["title"] == "New"


def test_parent_from_another_post_is_rejected(client, patient):
    _, headers = patient
    first = _post(client, headers)
    second = _post(client, headers, title="Second")
    parent = client.post(
        f"{API}/forum/posts/{first['id']}/comments", json={"body": "on first"}, headers=headers
    ).json()

    response = client.post(
        f"{API}/forum/posts/{second['id']}/comments",
        json={"body": "misplaced", "parent_comment_id": parent["id"]},
        headers=headers,
    )
    assert response.status_code == 400


def test_like_toggles(client, patient, other_patient):
    _, headers = patient
    _, other_headers = other_patient
    post = _post(client, headers)
    url = f"{API}/forum/posts/{post['id']}/like"

    assert client.post(url, headers=other_headers).json() == {"liked": True, "likes": 1}
    assert client.post(url, headers=headers).json() == {"liked": True, "likes": 2}
    assert client.post(url, headers=other_headers).json() == {"liked": False, "likes": 1}


def test_only_author_or_admin_edits(client, admin, patient, other_patient):
    _, headers = patient
    _, other_headers = other_patient
    _, admin_headers = admin
    post = _post(client, headers)

    assert client.put(f"{API}/forum/posts/{post['id']}", json={"title": "x"}, headers=other_headers).status_code == 403
    assert client.delete(f"{API}/forum/posts/{post['id']}", headers=other_headers).status_code == 403
    assert client.delete(f"{API}/forum/posts/{post['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"{API}/forum/posts/{post['id']}", headers=headers).status_code == 404


def test_listing_filters_and_categories(client, patient):
    _, headers = patient
    _post(client, headers)
    _post(client, headers, title="Anti-inflammatory recipes", body="Turmeric?", category="diet")

    by_category = client.get(f"{API}/forum/posts", params={"category": "diet"}, headers=headers).json()
    assert [p["title"] for p in by_category["items"]] == ["Anti-inflammatory recipes"]

    by_search = client.get(f"{API}/forum/posts", params={"search": "CYCLING"}, headers=headers).json()
    assert by_search["total"] == 1

    categories = {c["category"]: c["post_count"] for c in client.get(f"{API}/forum/categories", headers=headers).json()}
    assert categories["diet"] == 1
    assert categories["exercise"] == 1
    assert categories["general"] == 0


def test_comment_edit_marks_edited(client, patient):
    _, headers = patient
    post = _post(client, headers)
    comment = client.post(f"{API}/forum/posts/{post['id']}/comments", json={"body": "typo"}, headers=headers).json()

    edited = client.put(f"{API}/forum/comments/{comment['id']}", json={"body": "fixed"}, headers=headers).json()
    assert edited["body"] == "fixed"
    assert edited["is_edited"] is True
