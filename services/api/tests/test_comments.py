"""Comments: threading, pagination, sorting, likes and authorization."""

import pytest
from sqlalchemy.exc import InvalidRequestError

from app.models import Comment


@pytest.fixture
async def post(client, alice):
    res = await client.post("/api/posts", data={"content": "post da alice"}, headers=alice.headers)
    return res.json()


async def _comment(client, user, post_id, text, parent=None):
    body = {"content": text}
    if parent:
        body["parent_comment_id"] = parent
    res = await client.post(f"/api/comments/{post_id}", json=body, headers=user.headers)
    assert res.status_code == 201, res.text
    return res.json()


async def _comments(client, post_id, **params):
    res = await client.get(f"/api/comments/{post_id}", params=params)
    assert res.status_code == 200
    return res.json()


async def _comment_count(client, post_id):
    return (await client.get(f"/api/posts/{post_id}")).json()["comment_count"]


async def test_comment_increments_count_and_notifies_author(client, alice, bob, post):
    comment = await _comment(client, bob, post["post_id"], "Muito bom!")

    assert comment["author"]["user_id"] == bob.id
    assert comment["status"] == "active"
    assert await _comment_count(client, post["post_id"]) == 1

    items = (await client.get("/api/notifications", headers=alice.headers)).json()
    assert items[0]["type"] == "post_comment"
    assert "Muito bom!" in items[0]["content"]


async def test_long_comment_notification_is_truncated(client, alice, bob, post):
    await _comment(client, bob, post["post_id"], "a" * 80)

    items = (await client.get("/api/notifications", headers=alice.headers)).json()

    assert ("a" * 50 + "...") in items[0]["content"]
    assert ("a" * 51) not in items[0]["content"]


async def test_comment_on_missing_post_is_404(client, bob):
    res = await client.post("/api/comments/nope", json={"content": "oi"}, headers=bob.headers)

    assert res.status_code == 404


async def test_missing_parent_is_404(client, bob, post):
    res = await client.post(
        f"/api/comments/{post['post_id']}",
        json={"content": "oi", "parent_comment_id": "nope"},
        headers=bob.headers,
    )

    assert res.status_code == 404
    assert res.json() == {"message": "Comentário pai não encontrado."}


async def test_parent_from_another_post_is_rejected(client, alice, bob, post):
    other = (await client.post("/api/posts", data={"content": "outro"}, headers=bob.headers)).json()
    foreign = await _comment(client, alice, other["post_id"], "lá")

    res = await client.post(
        f"/api/comments/{post['post_id']}",
        json={"content": "cá", "parent_comment_id": foreign["comment_id"]},
        headers=bob.headers,
    )

    assert res.status_code == 400


async def test_comment_content_limits(client, bob, post):
    empty = await client.post(f"/api/comments/{post['post_id']}", json={"content": ""}, headers=bob.headers)
    too_long = await client.post(
        f"/api/comments/{post['post_id']}", json={"content": "x" * 1001}, headers=bob.headers,
    )

    assert empty.status_code == 400
    assert too_long.status_code == 400


async def test_replies_are_nested_under_parent(client, alice, bob, post):
    parent = await _comment(client, bob, post["post_id"], "pergunta")
    reply = await _comment(client, alice, post["post_id"], "resposta", parent["comment_id"])

    page = await _comments(client, post["post_id"])

    assert page["total_comments"] == 1
    [thread] = page["comments"]
    assert thread["comment_id"] == parent["comment_id"]
    assert [r["comment_id"] for r in thread["replies"]] == [reply["comment_id"]]
    assert thread["replies"][0]["parent_comment_id"] == parent["comment_id"]


async def test_reply_to_reply_joins_root_thread(client, alice, bob, post):
    root = await _comment(client, bob, post["post_id"], "raiz")
    reply = await _comment(client, alice, post["post_id"], "r1", root["comment_id"])

    nested = await _comment(client, bob, post["post_id"], "r2", reply["comment_id"])

    assert nested["parent_comment_id"] == root["comment_id"]
    [thread] = (await _comments(client, post["post_id"]))["comments"]
    assert len(thread["replies"]) == 2


async def test_deleting_reply_removes_it_from_parent(client, alice, bob, post):
    parent = await _comment(client, bob, post["post_id"], "pergunta")
    reply = await _comment(client, alice, post["post_id"], "resposta", parent["comment_id"])
    assert await _comment_count(client, post["post_id"]) == 2

    res = await client.delete(f"/api/comments/{reply['comment_id']}", headers=alice.headers)

    assert res.status_code == 200
    assert res.json() == {"message": "Comentário deletado com sucesso."}
    [thread] = (await _comments(client, post["post_id"]))["comments"]
    assert thread["replies"] == []
    assert await _comment_count(client, post["post_id"]) == 1


async def test_deleting_parent_removes_replies(client, alice, bob, post):
    parent = await _comment(client, bob, post["post_id"], "pergunta")
    await _comment(client, alice, post["post_id"], "resposta", parent["comment_id"])

    await client.delete(f"/api/comments/{parent['comment_id']}", headers=bob.headers)

    page = await _comments(client, post["post_id"])
    assert page["comments"] == []
    assert page["total_comments"] == 0
    assert await _comment_count(client, post["post_id"]) == 0


async def test_only_author_can_edit_or_delete(client, alice, bob, post):
    comment = await _comment(client, bob, post["post_id"], "original")

    edit = await client.put(
        f"/api/comments/{comment['comment_id']}", json={"content": "hack"}, headers=alice.headers,
    )
    delete = await client.delete(f"/api/comments/{comment['comment_id']}", headers=alice.headers)

    assert edit.status_code == 403
    assert delete.status_code == 403
    [thread] = (await _comments(client, post["post_id"]))["comments"]
    assert thread["content"] == "original"


async def test_author_can_edit(client, bob, post):
    comment = await _comment(client, bob, post["post_id"], "original")

    res = await client.put(
        f"/api/comments/{comment['comment_id']}", json={"content": "editado"}, headers=bob.headers,
    )

    assert res.status_code == 200
    assert res.json()["content"] == "editado"


async def test_pagination(client, bob, post):
    for i in range(3):
        await _comment(client, bob, post["post_id"], f"c{i}")

    first = await _comments(client, post["post_id"], page=1, limit=2)
    second = await _comments(client, post["post_id"], page=2, limit=2)

    assert first["total_pages"] == 2
    assert first["total_comments"] == 3
    assert [c["content"] for c in first["comments"]] == ["c2", "c1"]
    assert [c["content"] for c in second["comments"]] == ["c0"]
    assert second["current_page"] == 2


async def test_sort_orders(client, alice, bob, post):
    old = await _comment(client, bob, post["post_id"], "velho")
    popular = await _comment(client, bob, post["post_id"], "popular")
    await _comment(client, bob, post["post_id"], "novo")
    await client.put(f"/api/comments/{popular['comment_id']}/like", headers=alice.headers)

    oldest = await _comments(client, post["post_id"], sort="oldest")
    most_liked = await _comments(client, post["post_id"], sort="mostLiked")
    unknown = await _comments(client, post["post_id"], sort="whatever")

    assert oldest["comments"][0]["comment_id"] == old["comment_id"]
    assert most_liked["comments"][0]["comment_id"] == popular["comment_id"]
    assert [c["content"] for c in unknown["comments"]] == ["novo", "popular", "velho"]


async def test_comment_like_toggle_and_notification(client, alice, bob, post):
    comment = await _comment(client, bob, post["post_id"], "curta isso")
    url = f"/api/comments/{comment['comment_id']}/like"

    liked = await client.put(url, headers=alice.headers)
    unliked = await client.put(url, headers=alice.headers)

    assert liked.json() == {"likes": [alice.id], "like_count": 1, "liked": True}
    assert unliked.json() == {"likes": [], "like_count": 0, "liked": False}

    items = (await client.get("/api/notifications", headers=bob.headers)).json()
    assert [n["type"] for n in items] == ["comment_like"]
    assert items[0]["related"] == {"kind": "comment", "id": comment["comment_id"]}


async def test_replies_are_never_lazy_loaded(client, database, bob, post):
    root = await _comment(client, bob, post["post_id"], "raiz")
    await _comment(client, bob, post["post_id"], "resposta", parent=root["comment_id"])

    async with database.session_factory() as s:
        comment = await s.get(Comment, root["comment_id"])
        with pytest.raises(InvalidRequestError):
            comment.replies

    [thread] = (await _comments(client, post["post_id"]))["comments"]
    assert [r["content"] for r in thread["replies"]] == ["resposta"]
