#!/usr/bin/env python3
"""
Seed script: fills a running API with a small, believable community.

Creates:
  • 8 users (password "senha123")
  • A follow graph (each user follows 3 others)
  • A few accepted friendships and one pending request
  • 3 posts per user, with comments, replies and likes

Run after the API is up:
  python scripts/seed_data.py --api-url http://localhost:8000
"""
import argparse
import json
import random
import time
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Optional

PASSWORD = "senha123"

BASE_USERS = [
    ("ana_lima", "Ana", "Lima"),
    ("bruno_dev", "Bruno", "Costa"),
    ("carla_ux", "Carla", "Souza"),
    ("diego_ops", "Diego", "Ramos"),
    ("elis_data", "Elis", "Martins"),
    ("fabio_qa", "Fábio", "Pereira"),
    ("gabi_ml", "Gabriela", "Alves"),
    ("hugo_sec", "Hugo", "Ferreira"),
]

SAMPLE_POSTS = [
    "Primeiro dia no novo emprego! Equipe incrível 🚀",
    "Alguém recomenda um bom livro sobre sistemas distribuídos?",
    "Finalmente terminei a migração do banco. Zero downtime.",
    "Café, código e chuva lá fora. Segunda perfeita.",
    "Palestra de hoje sobre observabilidade foi excelente.",
    "Quem vai no meetup de Python semana que vem?",
    "Refatorei um módulo de 2 mil linhas. Sobrevivi.",
    "Dica do dia: escreva o teste antes de corrigir o bug.",
    "Viagem de fim de semana para a serra. Recarregando as energias.",
    "Projeto open source novo no ar, contribuições são bem-vindas!",
]

SAMPLE_COMMENTS = [
    "Parabéns!",
    "Muito bom, concordo totalmente.",
    "Pode compartilhar mais detalhes?",
    "Eu também passei por isso 😅",
    "Excelente ponto.",
]


@dataclass
class ApiClient:
    base_url: str
    token: Optional[str] = None

    def as_user(self, token: str) -> "ApiClient":
        return ApiClient(self.base_url, token)

    def _request(self, method: str, path: str, body: Optional[bytes] = None, content_type: Optional[str] = None) -> dict:
        headers = {}
        if content_type:
            headers["Content-Type"] = content_type
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        req = urllib.request.Request(f"{self.base_url}{path}", data=body, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on {method} {path}: {e.read().decode()}")
            return {}

    def send(self, method: str, path: str, data: Optional[dict] = None) -> dict:
        body = json.dumps(data).encode() if data is not None else None
        return self._request(method, path, body, "application/json" if body else None)

    def send_form(self, path: str, data: dict) -> dict:
        body = urllib.parse.urlencode(data).encode()
        return self._request("POST", path, body, "application/x-www-form-urlencoded")

    def get(self, path: str) -> dict:
        return self._request("GET", path)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            if client.get("/health").get("status") == "ok":
                print("  API is ready!\n")
                return
        except urllib.error.URLError:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def register(client: ApiClient, username: str, nome: str, sobrenome: str) -> Optional[ApiClient]:
    client.send("POST", "/api/auth/register", {
        "nome": nome,
        "sobrenome": sobrenome,
        "username": username,
        "email": f"{username}@example.com",
        "cep": "01001-000",
        "password": PASSWORD,
    })
    # Login also covers re-runs where the user already exists
    result = client.send("POST", "/api/auth/login", {"email": username, "password": PASSWORD})
    token = result.get("token")
    return client.as_user(token) if token else None


def main(api_url: str) -> None:
    client = ApiClient(api_url)
    wait_for_api(client)

    # ── Users ────────────────────────────────────────────────────────────
    print("Creating users...")
    users: dict[str, ApiClient] = {}
    ids: dict[str, str] = {}
    for username, nome, sobrenome in BASE_USERS:
        session = register(client, username, nome, sobrenome)
        if session is None:
            print(f"  ✗ Failed to create {username}")
            continue
        users[username] = session
        ids[username] = session.get("/api/auth/me")["user_id"]
        print(f"  ✓ {username} ({ids[username]})")

    if len(users) < 2:
        print("Not enough users created, aborting")
        return
    names = list(users)

    # ── Follow graph ─────────────────────────────────────────────────────
    print("\nCreating follow relationships...")
    for username in names:
        for other in random.sample([n for n in names if n != username], k=min(3, len(names) - 1)):
            users[username].send("PUT", f"/api/users/{ids[other]}/follow")
    print("  ✓ Follow graph created")

    # ── Friendships ──────────────────────────────────────────────────────
    print("\nCreating friendships...")
    pairs = list(zip(names[::2], names[1::2]))
    for requester, recipient in pairs[:-1]:
        users[requester].send("POST", f"/api/users/{ids[recipient]}/friend-request")
        users[recipient].send("PUT", f"/api/users/{ids[requester]}/friend-request/accept")
    requester, recipient = pairs[-1]
    users[requester].send("POST", f"/api/users/{ids[recipient]}/friend-request")
    print(f"  ✓ {len(pairs) - 1} friendships, 1 pending request")

    # ── Posts ────────────────────────────────────────────────────────────
    print("\nCreating posts...")
    post_ids: list[str] = []
    for i, username in enumerate(names):
        for j in range(3):
            content = SAMPLE_POSTS[(i * 3 + j) % len(SAMPLE_POSTS)]
            pid = users[username].send_form("/api/posts", {"content": content}).get("post_id")
            if pid:
                post_ids.append(pid)
    print(f"  ✓ {len(post_ids)} posts created")

    # ── Comments, replies and likes ──────────────────────────────────────
    print("\nAdding comments and likes...")
    comments = likes = 0
    for post_id in post_ids:
        for username in random.sample(names, k=random.randint(0, 3)):
            result = users[username].send(
                "POST", f"/api/comments/{post_id}", {"content": random.choice(SAMPLE_COMMENTS)}
            )
            comments += 1
            if result.get("comment_id") and random.random() < 0.4:
                replier = random.choice(names)
                users[replier].send("POST", f"/api/comments/{post_id}", {
                    "content": "Obrigado!",
                    "parent_comment_id": result["comment_id"],
                })
                comments += 1
        for username in random.sample(names, k=random.randint(0, 5)):
            users[username].send("PUT", f"/api/posts/{post_id}/like")
            likes += 1
    print(f"  ✓ {comments} comments, {likes} likes added")

    # ── Summary ──────────────────────────────────────────────────────────
    first = names[0]
    print("\n" + "=" * 60)
    print("Seed complete! Some commands to try:\n")
    print(f"# Log in as '{first}':")
    print(f"  curl -s -X POST '{api_url}/api/auth/login' \\")
    print("    -H 'Content-Type: application/json' \\")
    print(f"    -d '{{\"email\": \"{first}\", \"password\": \"{PASSWORD}\"}}' | python3 -m json.tool\n")
    print(f"# Feed for '{first}':")
    print(f"  curl -s '{api_url}/api/posts/feed' -H 'Authorization: Bearer {users[first].token}'\n")
    print(f"# Notifications for '{first}':")
    print(f"  curl -s '{api_url}/api/notifications' -H 'Authorization: Bearer {users[first].token}'")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the social network API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)
