"""Tags API endpoints."""

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from .context import get_context
from .repositories.tag_repository import TagRepository, slugify
from .schemas import tag_create_schema, tag_update_schema

logger = logging.getLogger(__name__)

tags_bp = Blueprint('tags', __name__, url_prefix='/api/admin/tags')


@tags_bp.route('', methods=['GET'])
@jwt_required()
def get_tags():
    """All tags with product counts, or a search when ``q`` is given."""
    query = request.args.get('q', '').strip()
    with get_context().db.session_scope() as session:
        tag_repo = TagRepository(session)
        if query:
            tags = [t.to_dict() for t in tag_repo.search(query, limit=request.args.get('limit', 10, type=int))]
        else:
            tags = tag_repo.get_with_stats()
    return jsonify({'tags': tags, 'total': len(tags)}), 200


@tags_bp.route('/popular', methods=['GET'])
@jwt_required()
def get_popular_tags():
    limit = request.args.get('limit', 20, type=int)
    with get_context().db.session_scope() as session:
        tags = [t.to_dict() for t in TagRepository(session).get_popular(limit)]
    return jsonify({'tags': tags}), 200


@tags_bp.route('', methods=['POST'])
@jwt_required()
def create_tag():
    try:
        data = tag_create_schema.load(request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({'error': 'Validation error', 'details': e.messages}), 400

    data['slug'] = slugify(data.get('slug') or data['name'])
    if not data['slug']:
        return jsonify({'error': 'Could not derive a slug from the name'}), 400

    try:
        with get_context().db.session_scope() as session:
            tag_repo = TagRepository(session)
            if tag_repo.get_by_slug(data['slug']) or tag_repo.get_by_name(data['name']):
                return jsonify({'error': 'Tag already exists'}), 409
            result = tag_repo.create(**data).to_dict()
    except IntegrityError:
        return jsonify({'error': 'Tag already exists'}), 409

    return jsonify(result), 201


@tags_bp.route('/<int:tag_id>', methods=['PUT'])
@jwt_required()
def update_tag(tag_id: int):
    try:
        data = tag_update_schema.load(request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({'error': 'Validation error', 'details': e.messages}), 400

    if 'slug' in data:
        data['slug'] = slugify(data['slug'])

    try:
        with get_context().db.session_scope() as session:
            tag = TagRepository(session).update(tag_id, **data)
            if not tag:
                return jsonify({'error': 'Tag not found'}), 404
            result = tag.to_dict()
    except IntegrityError:
        return jsonify({'error': 'Tag name or slug already in use'}), 409

    return jsonify(result), 200


@tags_bp.route('/<int:tag_id>', methods=['DELETE'])
@jwt_required()
def delete_tag(tag_id: int):
    with get_context().db.session_scope() as session:
        if not TagRepository(session).delete(tag_id):
            return jsonify({'error': 'Tag not found'}), 404
    logger.info(f"Deleted tag {tag_id}")
    return jsonify({'message': 'Tag deleted'}), 200
