# routes/notes.py
from __future__ import annotations

from flask import Blueprint, g, redirect, render_template, request, url_for

from auth_guard import require_login
from errors import NoteNotFound, ValidationFailure
from services import notes as note_service

__all__ = ["notes_bp"]
notes_bp = Blueprint("notes", __name__, url_prefix="/notes")


def _not_found(e: NoteNotFound):
    return render_template("error.html", message=e.message), e.status_code


@notes_bp.route("", methods=["GET"])
@require_login
def index():
    notes = note_service.list_notes(g.identity.user_id)
    return render_template("notes/index.html", notes=notes)


@notes_bp.route("/new", methods=["GET"])
@require_login
def new():
    return render_template("notes/new.html")


@notes_bp.route("", methods=["POST"])
@require_login
def create():
    title = request.form.get("title")
    content = request.form.get("content")
    try:
        note_service.create_note(g.identity.user_id, title, content)
    except ValidationFailure as e:
        return render_template("notes/new.html", error=e.message, title=title, content=content), e.status_code
    return redirect(url_for("notes.index"))


@notes_bp.route("/<int:note_id>", methods=["GET"])
@require_login
def show(note_id: int):
    try:
        note = note_service.get_owned_note(note_id, g.identity.user_id)
    except NoteNotFound as e:
        return _not_found(e)
    return render_template("notes/show.html", note=note)


@notes_bp.route("/<int:note_id>/edit", methods=["GET"])
@require_login
def edit(note_id: int):
    try:
        note = note_service.get_owned_note(note_id, g.identity.user_id)
    except NoteNotFound as e:
        return _not_found(e)
    return render_template("notes/edit.html", note=note)


@notes_bp.route("/<int:note_id>", methods=["PUT", "PATCH"])
@require_login
def update(note_id: int):
    try:
        note_service.update_note(
            note_id,
            g.identity.user_id,
            request.form.get("title"),
            request.form.get("content"),
        )
    except NoteNotFound as e:
        return _not_found(e)
    except ValidationFailure as e:
        return render_template("error.html", message=e.message), e.status_code
    return redirect(url_for("notes.index"))


@notes_bp.route("/<int:note_id>", methods=["DELETE"])
@require_login
def delete(note_id: int):
    try:
        note_service.delete_note(note_id, g.identity.user_id)
    except NoteNotFound as e:
        return _not_found(e)
    return redirect(url_for("notes.index"))
