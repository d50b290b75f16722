"""HTTP tests for the public comment routes."""

from uuid import uuid4

from conftest import (
    APPROVED_CONTENT,
    PENDING_CONTENT,
    SPAM_CONTENT,
    auth_headers,
    make_actor,
)
from fastapi.testclient import TestClient

from blog_comments.auth.permissions import UserRole


READER = make_actor("user-1", name="Lector")
OTHER = make_actor("user-2", name="Otra Lectora")
MODERATOR = make_actor("mod-1", UserRole.MODERATOR, name="Moderadora")

GUEST = {"author_name": "Invitada", "author_email": "invitada@correo.test"}


def post_comment(client: TestClient, content: str, headers=None, **extra) -> dict:
    body = {"content": content, **extra}
    if headers is None:
        body = {**GUEST, **body}
    response = client.post("/blog/hola-mundo/comments", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreateComment:
    """POST /blog/{slug}/comments."""

    def test_guest_comment_is_published(self, client: TestClient) -> None:
        # Act
        response = client.post(
            "/blog/hola-mundo/comments", json={**GUEST, "content": APPROVED_CONTENT}
        )

        # Assert
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Comentario publicado"
        assert body["data"]["status"] == "approved"
        assert body["data"]["author"] == {
            "name": "Invitada",
            "registered": False,
            "user_id": None,
            "avatar": None,
            "website": None,
        }

    def test_author_email_is_never_exposed(self, client: TestClient) -> None:
        data = post_comment(client, APPROVED_CONTENT)

        assert "invitada@correo.test" not in str(data)

    def test_suspicious_comment_waits_for_moderation(self, client: TestClient) -> None:
        response = client.post(
            "/blog/hola-mundo/comments",
            json={"content": PENDING_CONTENT},
            headers=auth_headers(READER),
        )

        assert response.status_code == 201
        assert response.json()["message"] == (
            "Comentario enviado, pendiente de moderacion"
        )
        assert response.json()["data"]["status"] == "pending"

    def test_guest_without_email(self, client: TestClient) -> None:
        response = client.post(
            "/blog/hola-mundo/comments",
            json={"author_name": "Invitada", "content": APPROVED_CONTENT},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_empty_content_is_a_validation_error(self, client: TestClient) -> None:
        response = client.post(
            "/blog/hola-mundo/comments", json={**GUEST, "content": ""}
        )

        body = response.json()
        assert response.status_code == 400
        assert body["success"] is False
        assert body["error"] == "validation_error"
        assert body["details"][0]["field"] == "body.content"

    def test_unknown_post(self, client: TestClient) -> None:
        response = client.post(
            "/blog/no-existe/comments", json={**GUEST, "content": APPROVED_CONTENT}
        )

        assert response.status_code == 404
        assert response.json()["error"] == "post_not_found"

    def test_reply_to_unknown_parent(self, client: TestClient) -> None:
        response = client.post(
            "/blog/hola-mundo/comments",
            json={**GUEST, "content": APPROVED_CONTENT, "parent_id": str(uuid4())},
        )

        assert response.status_code == 404
        assert response.json()["error"] == "comment_not_found"


class TestReadComments:
    def test_thread_lists_only_approved(self, client: TestClient) -> None:
        root = post_comment(client, APPROVED_CONTENT)
        post_comment(client, APPROVED_CONTENT, parent_id=root["id"])
        post_comment(client, SPAM_CONTENT)

        response = client.get("/blog/hola-mundo/comments")

        data = response.json()["data"]
        assert response.status_code == 200
        assert [item["id"] for item in data["items"]] == [root["id"]]
        assert len(data["items"][0]["replies"]) == 1
        assert data["pagination"]["total"] == 1

    def test_limit_above_maximum(self, client: TestClient) -> None:
        response = client.get("/blog/hola-mundo/comments", params={"limit": 10_000})

        assert response.status_code == 400

    def test_pending_comment_hidden_from_others(self, client: TestClient) -> None:
        pending = post_comment(client, PENDING_CONTENT, headers=auth_headers(READER))

        own = client.get(f"/comments/{pending['id']}", headers=auth_headers(READER))
        other = client.get(f"/comments/{pending['id']}", headers=auth_headers(OTHER))

        assert own.status_code == 200
        assert other.status_code == 404

    def test_my_comments_requires_login(self, client: TestClient) -> None:
        response = client.get("/comments/mine")

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert response.headers["www-authenticate"] == "Bearer"

    def test_my_comments(self, client: TestClient) -> None:
        post_comment(client, APPROVED_CONTENT, headers=auth_headers(READER))
        post_comment(client, APPROVED_CONTENT)

        response = client.get("/comments/mine", headers=auth_headers(READER))

        assert response.json()["data"]["pagination"]["total"] == 1

    def test_post_stats(self, client: TestClient) -> None:
        post_comment(client, APPROVED_CONTENT)
        post_comment(client, SPAM_CONTENT)

        stats = client.get("/blog/hola-mundo/comments/stats").json()["data"]

        assert stats["total"] == 2
        assert stats["by_status"]["spam"] == 1


class TestEditAndDelete:
    def test_author_edits(self, client: TestClient) -> None:
        comment = post_comment(client, APPROVED_CONTENT, headers=auth_headers(READER))

        response = client.put(
            f"/comments/{comment['id']}",
            json={"content": "Texto corregido por el autor del comentario"},
            headers=auth_headers(READER),
        )

        assert response.status_code == 200
        assert response.json()["data"]["is_edited"] is True

    def test_other_reader_cannot_edit(self, client: TestClient) -> None:
        comment = post_comment(client, APPROVED_CONTENT, headers=auth_headers(READER))

        response = client.put(
            f"/comments/{comment['id']}",
            json={"content": "Intento ajeno"},
            headers=auth_headers(OTHER),
        )

        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    def test_delete_with_replies_hides(self, client: TestClient) -> None:
        root = post_comment(client, APPROVED_CONTENT, headers=auth_headers(READER))
        post_comment(client, APPROVED_CONTENT, parent_id=root["id"])

        response = client.delete(f"/comments/{root['id']}", headers=auth_headers(READER))

        assert response.json()["data"] == {
            "id": root["id"],
            "deleted": False,
            "hidden": True,
        }

    def test_invalid_token(self, client: TestClient) -> None:
        response = client.delete(
            f"/comments/{uuid4()}", headers={"Authorization": "Bearer basura"}
        )

        assert response.status_code == 401


class TestVotes:
    def test_guests_vote_by_ip(self, client: TestClient) -> None:
        comment = post_comment(client, APPROVED_CONTENT)
        url = f"/comments/{comment['id']}/vote"

        client.post(url, json={"type": "like"}, headers={"X-Forwarded-For": "1.1.1.1"})
        client.post(url, json={"type": "like"}, headers={"X-Forwarded-For": "1.1.1.1"})
        response = client.post(
            url, json={"type": "dislike"}, headers={"X-Forwarded-For": "2.2.2.2"}
        )

        assert response.json()["data"] == {"likes": 1, "dislikes": 1, "score": 0}

    def test_remove_vote(self, client: TestClient) -> None:
        comment = post_comment(client, APPROVED_CONTENT)
        url = f"/comments/{comment['id']}/vote"
        client.post(url, json={"type": "like"}, headers=auth_headers(READER))

        response = client.delete(url, headers=auth_headers(READER))

        assert response.json()["data"]["likes"] == 0

    def test_vote_on_pending_comment(self, client: TestClient) -> None:
        pending = post_comment(client, PENDING_CONTENT, headers=auth_headers(READER))

        response = client.post(
            f"/comments/{pending['id']}/vote",
            json={"type": "like"},
            headers=auth_headers(OTHER),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "comment_not_votable"

    def test_unknown_vote_type(self, client: TestClient) -> None:
        comment = post_comment(client, APPROVED_CONTENT)

        response = client.post(
            f"/comments/{comment['id']}/vote", json={"type": "love"}
        )

        assert response.status_code == 400


class TestReportAndPin:
    def test_duplicate_report_conflicts(self, client: TestClient) -> None:
        comment = post_comment(client, APPROVED_CONTENT)
        url = f"/comments/{comment['id']}/report"
        body = {"reason": "spam", "email": "lector@correo.test"}

        first = client.post(url, json=body)
        second = client.post(url, json={**body, "email": "LECTOR@correo.test"})

        assert first.status_code == 201
        assert first.json()["data"]["status"] == "pending"
        assert second.status_code == 409
        assert second.json()["error"] == "duplicate_report"

    def test_reader_cannot_pin(self, client: TestClient) -> None:
        comment = post_comment(client, APPROVED_CONTENT)

        response = client.post(
            f"/comments/{comment['id']}/pin", headers=auth_headers(READER)
        )

        assert response.status_code == 403

    def test_moderator_pins(self, client: TestClient) -> None:
        comment = post_comment(client, APPROVED_CONTENT)

        response = client.post(
            f"/comments/{comment['id']}/pin", headers=auth_headers(MODERATOR)
        )

        assert response.status_code == 200
        assert response.json()["data"]["pinned"] is True
