"""Public JSON API for the character catalog."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from .sync import load_catalog

catalog_api_blueprint = Blueprint(
    "catalog_api",
    __name__,
    url_prefix="/api/characters",
)


@catalog_api_blueprint.get("")
def list_characters():
    order = (request.args.get("order") or "asc").strip().lower()
    if order not in {"asc", "desc"}:
        return jsonify({"error": "invalid_order", "message": "order must be asc or desc"}), 400
    characters = load_catalog(ascending=order == "asc")
    return jsonify([character.to_dict() for character in characters])


@catalog_api_blueprint.get("/<character_id>")
def get_character(character_id: str):
    for character in load_catalog():
        if character.id == character_id:
            return jsonify(character.to_dict())
    return _json_not_found()


def _json_not_found():
    return jsonify({"error": "not_found", "message": "Character not found"}), 404
