# services/notes.py
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from db import db
from errors import NoteNotFound, PersistenceFailure, ValidationFailure
from models.note import Note

__all__ = ["list_notes", "create_note", "get_owned_note", "update_note", "delete_note"]


def _owned(note_id: int, user_id: int):
    # A foreign note and a missing one look the same from here.
    return Note.query.filter_by(id=note_id, owner_id=user_id)


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise PersistenceFailure() from e


def _clean(title: str | None, content: str | None) -> tuple[str, str]:
    title = (title or "").strip()
    if not title:
        raise ValidationFailure("Title is required")
    return title, content or ""


def list_notes(user_id: int) -> list[Note]:
    try:
        return (
            Note.query.filter_by(owner_id=user_id)
            .order_by(Note.created_at.desc(), Note.id.desc())
            .all()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        raise PersistenceFailure() from e


def create_note(user_id: int, title: str | None, content: str | None) -> Note:
    title, content = _clean(title, content)
    note = Note(title=title, content=content, owner_id=user_id)
    db.session.add(note)
    _commit()
    current_app.logger.info("[notes] user=%s created note=%s", user_id, note.id)
    return note


def get_owned_note(note_id: int, user_id: int) -> Note:
    try:
        note = _owned(note_id, user_id).first()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise PersistenceFailure() from e
    if note is None:
        raise NoteNotFound()
    return note


def update_note(note_id: int, user_id: int, title: str | None, content: str | None) -> Note:
    title, content = _clean(title, content)
    note = get_owned_note(note_id, user_id)
    note.title = title
    note.content = content
    _commit()
    current_app.logger.info("[notes] user=%s updated note=%s", user_id, note_id)
    return note


def delete_note(note_id: int, user_id: int) -> None:
    note = get_owned_note(note_id, user_id)
    db.session.delete(note)
    _commit()
    current_app.logger.info("[notes] user=%s deleted note=%s", user_id, note_id)
