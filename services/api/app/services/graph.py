"""
Social graph service: follow / favorite / friend-request workflow.

Every relationship is an Edge row, so the two "sides" of a follow are one
record and a friendship is a pair of rows written in the same transaction.
Self-targeted operations are rejected before anything is read.
"""
import logging
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import BadRequest, Conflict, NotFound
from app.models import Edge, EdgeKind, NotificationType, User
from app.schemas import RelatedUser, UserPrivate, UserProfile
from app.services.notifications import Notifier, display_name

logger = logging.getLogger(__name__)


async def get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("Usuário não encontrado.")
    return user


async def get_user_by_username(db: AsyncSession, username: str) -> User:
    user = await db.scalar(select(User).where(User.username == username))
    if user is None:
        raise NotFound("Usuário não encontrado.")
    return user


async def _edge(db: AsyncSession, source_id: str, target_id: str, kind: EdgeKind) -> Optional[Edge]:
    return await db.get(Edge, (source_id, target_id, kind))


async def _pair(db: AsyncSession, caller_id: str, target_id: str, self_message: str) -> tuple[User, User]:
    if caller_id == target_id:
        raise BadRequest(self_message)
    target = await get_user(db, target_id)
    caller = await get_user(db, caller_id)
    return caller, target


async def neighbours(db: AsyncSession, user_id: str, kind: EdgeKind, inbound: bool = False) -> list[str]:
    """Ids on the other end of `kind` edges leaving (or, if inbound, entering) user_id."""
    if inbound:
        stmt = select(Edge.source_id).where(Edge.target_id == user_id, Edge.kind == kind)
    else:
        stmt = select(Edge.target_id).where(Edge.source_id == user_id, Edge.kind == kind)
    rows = await db.scalars(stmt.order_by(Edge.created_at))
    return list(rows.all())


async def neighbour_users(db: AsyncSession, user_id: str, kind: EdgeKind, inbound: bool = False) -> list[User]:
    if inbound:
        join_on, where = Edge.source_id == User.user_id, Edge.target_id == user_id
    else:
        join_on, where = Edge.target_id == User.user_id, Edge.source_id == user_id
    rows = await db.scalars(
        select(User).join(Edge, join_on).where(where, Edge.kind == kind).order_by(Edge.created_at)
    )
    return list(rows.all())


async def build_profile(db: AsyncSession, user: User, private: bool = False) -> Union[UserProfile, UserPrivate]:
    followers = await neighbours(db, user.user_id, EdgeKind.FOLLOW, inbound=True)
    following = await neighbours(db, user.user_id, EdgeKind.FOLLOW)
    friends = await neighbours(db, user.user_id, EdgeKind.FRIEND)
    fields = dict(
        user_id=user.user_id,
        nome=user.nome,
        sobrenome=user.sobrenome,
        username=user.username,
        avatar=user.avatar,
        bio=user.bio,
        followers=followers,
        following=following,
        friends=friends,
        followers_count=len(followers),
        following_count=len(following),
        friends_count=len(friends),
        created_at=user.created_at,
    )
    if not private:
        return UserProfile(**fields)
    return UserPrivate(
        **fields,
        email=user.email,
        telefone=user.telefone,
        cep=user.cep,
        favoritos=await neighbours(db, user.user_id, EdgeKind.FAVORITE),
        friend_requests=await neighbours(db, user.user_id, EdgeKind.FRIEND_REQUEST, inbound=True),
        username_changed_at=user.username_changed_at,
    )


# ─────────────────────────── Follow ──────────────────────────────────────

async def follow(db: AsyncSession, notifier: Notifier, caller_id: str, target_id: str) -> None:
    caller, _ = await _pair(db, caller_id, target_id, "Você não pode se seguir.")
    if await _edge(db, caller_id, target_id, EdgeKind.FOLLOW):
        raise Conflict("Você já segue este usuário.")

    db.add(Edge(source_id=caller_id, target_id=target_id, kind=EdgeKind.FOLLOW))
    await notifier.emit(
        recipient_id=target_id,
        sender=caller,
        kind=NotificationType.FOLLOW,
        content=f"{display_name(caller)} começou a seguir você.",
        related=RelatedUser(id=caller_id),
    )
    logger.info("%s followed %s", caller_id, target_id)


async def unfollow(db: AsyncSession, caller_id: str, target_id: str) -> None:
    await _pair(db, caller_id, target_id, "Você não pode deixar de se seguir.")
    edge = await _edge(db, caller_id, target_id, EdgeKind.FOLLOW)
    if edge is None:
        raise Conflict("Você não segue este usuário.")
    await db.delete(edge)
    logger.info("%s unfollowed %s", caller_id, target_id)


# ─────────────────────────── Favorites ───────────────────────────────────

async def favorite(db: AsyncSession, caller_id: str, target_id: str) -> None:
    await _pair(db, caller_id, target_id, "Você não pode favoritar a si mesmo.")
    if await _edge(db, caller_id, target_id, EdgeKind.FAVORITE):
        raise Conflict("Usuário já está nos seus favoritos.")
    db.add(Edge(source_id=caller_id, target_id=target_id, kind=EdgeKind.FAVORITE))


async def unfavorite(db: AsyncSession, caller_id: str, target_id: str) -> None:
    await _pair(db, caller_id, target_id, "Você não pode desfavoritar a si mesmo.")
    edge = await _edge(db, caller_id, target_id, EdgeKind.FAVORITE)
    if edge is None:
        raise Conflict("Usuário não está nos seus favoritos.")
    await db.delete(edge)


# ─────────────────────────── Friends ─────────────────────────────────────

async def send_friend_request(db: AsyncSession, notifier: Notifier, caller_id: str, target_id: str) -> None:
    caller, _ = await _pair(
        db, caller_id, target_id, "Você não pode enviar uma solicitação de amizade para si mesmo."
    )
    if await _edge(db, caller_id, target_id, EdgeKind.FRIEND):
        raise Conflict("Vocês já são amigos.")
    if await _edge(db, caller_id, target_id, EdgeKind.FRIEND_REQUEST):
        raise Conflict("Solicitação de amizade já enviada.")
    if await _edge(db, target_id, caller_id, EdgeKind.FRIEND_REQUEST):
        raise Conflict("Este usuário já enviou uma solicitação de amizade para você.")

    db.add(Edge(source_id=caller_id, target_id=target_id, kind=EdgeKind.FRIEND_REQUEST))
    await notifier.emit(
        recipient_id=target_id,
        sender=caller,
        kind=NotificationType.FRIEND_REQUEST,
        content=f"{display_name(caller)} enviou uma solicitação de amizade.",
        related=RelatedUser(id=caller_id),
    )


async def accept_friend_request(db: AsyncSession, notifier: Notifier, caller_id: str, requester_id: str) -> None:
    caller, _ = await _pair(db, caller_id, requester_id, "Solicitação de amizade inválida.")
    request = await _edge(db, requester_id, caller_id, EdgeKind.FRIEND_REQUEST)
    if request is None:
        raise NotFound("Solicitação de amizade não encontrada.")

    await db.delete(request)
    for source_id, target_id in ((caller_id, requester_id), (requester_id, caller_id)):
        if not await _edge(db, source_id, target_id, EdgeKind.FRIEND):
            db.add(Edge(source_id=source_id, target_id=target_id, kind=EdgeKind.FRIEND))

    await notifier.emit(
        recipient_id=requester_id,
        sender=caller,
        kind=NotificationType.FRIEND_ACCEPTED,
        content=f"{display_name(caller)} aceitou sua solicitação de amizade.",
        related=RelatedUser(id=caller_id),
    )
    logger.info("%s accepted friend request from %s", caller_id, requester_id)


async def reject_friend_request(db: AsyncSession, caller_id: str, requester_id: str) -> None:
    await _pair(db, caller_id, requester_id, "Solicitação de amizade inválida.")
    request = await _edge(db, requester_id, caller_id, EdgeKind.FRIEND_REQUEST)
    if request is None:
        raise NotFound("Solicitação de amizade não encontrada.")
    await db.delete(request)


async def cancel_friend_request(db: AsyncSession, caller_id: str, target_id: str) -> None:
    await _pair(db, caller_id, target_id, "Solicitação de amizade inválida.")
    request = await _edge(db, caller_id, target_id, EdgeKind.FRIEND_REQUEST)
    if request is None:
        raise NotFound("Solicitação de amizade não encontrada.")
    await db.delete(request)


async def remove_friend(db: AsyncSession, caller_id: str, friend_id: str) -> None:
    await _pair(db, caller_id, friend_id, "Você não pode remover a si mesmo.")
    edges = [
        await _edge(db, caller_id, friend_id, EdgeKind.FRIEND),
        await _edge(db, friend_id, caller_id, EdgeKind.FRIEND),
    ]
    if not any(edges):
        raise Conflict("Vocês não são amigos.")
    for edge in edges:
        if edge is not None:
            await db.delete(edge)
