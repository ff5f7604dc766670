from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from oficina.dependencies import CurrentUser, DbSession
from oficina.models.topic import Topic
from oficina.schemas.topic import TopicCreate, TopicRead, TopicUpdate

router = APIRouter(prefix="/topics", tags=["topics"])


def _get_topic(db, topic_id: int) -> Topic:
    topic = db.get(Topic, topic_id)
    if topic is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return topic


def _flush_unique(db) -> None:
    try:
        db.flush()
    except IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Ya existe un tema con ese nombre.",
        )


@router.get("", response_model=list[TopicRead])
def list_topics(user: CurrentUser, db: DbSession):
    return db.execute(select(Topic).order_by(Topic.nombre)).scalars().all()


@router.post("", response_model=TopicRead, status_code=status.HTTP_201_CREATED)
def create_topic(request: TopicCreate, user: CurrentUser, db: DbSession):
    topic = Topic(nombre=request.nombre.strip(), abreviatura=request.abreviatura or None)
    try:
        with db.begin_nested():
            db.add(topic)
    except IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Ya existe un tema con ese nombre.",
        )
    return topic


@router.put("/{topic_id}", response_model=TopicRead)
def update_topic(topic_id: int, updates: TopicUpdate, user: CurrentUser, db: DbSession):
    topic = _get_topic(db, topic_id)
    for field, value in updates.model_dump(exclude_unset=True).items():
        setattr(topic, field, value)
    _flush_unique(db)
    return topic


@router.delete("/{topic_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_topic(topic_id: int, user: CurrentUser, db: DbSession):
    topic = _get_topic(db, topic_id)
    db.delete(topic)
    db.flush()
