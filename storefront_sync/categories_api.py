"""Categories API endpoints for admin category management."""

import re
from typing import List, Optional

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from .context import get_context
from .repositories.category_repository import CategoryRepository
from .schemas import category_create_schema, category_update_schema

# Configure logging
logger = logging.getLogger(__name__)

# Create Blueprint
categories_bp = Blueprint('categories', __name__, url_prefix='/api/admin/categories')


def generate_slug(name: str, existing_slugs: Optional[List[str]] = None) -> str:
    """Generate a URL-friendly slug from category name."""
    slug = re.sub(r'[^a-zA-Z0-9\s-]', '', name.lower())
    slug = re.sub(r'\s+', '-', slug).strip('-')
    slug = re.sub(r'-{2,}', '-', slug)

    if existing_slugs and slug in existing_slugs:
        counter = 1
        base_slug = slug
        while f"{base_slug}-{counter}" in existing_slugs:
            counter += 1
        slug = f"{base_slug}-{counter}"

    return slug


@categories_bp.route('', methods=['GET'])
@jwt_required()
def get_categories():
    """Get all categories, flat or as a tree."""
    include_inactive = request.args.get('include_inactive', 'false').lower() == 'true'
    tree_view = request.args.get('tree', 'false').lower() == 'true'
    search = request.args.get('search', '').strip() or None

    with get_context().db.session_scope() as session:
        category_repo = CategoryRepository(session)
        if tree_view:
            categories = category_repo.get_category_tree(include_inactive=include_inactive)
        else:
            categories = category_repo.get_all_with_counts(include_inactive=include_inactive, search=search)

    return jsonify({
        'categories': categories,
        'total': len(categories),
        'tree_view': tree_view
    }), 200


@categories_bp.route('/<int:category_id>', methods=['GET'])
@jwt_required()
def get_category(category_id: int):
    """Get a single category with its children and mapping rules."""
    with get_context().db.session_scope() as session:
        category_repo = CategoryRepository(session)
        category = category_repo.get(category_id)
        if not category:
            return jsonify({'error': 'Category not found'}), 404

        data = category.to_dict()
        data['product_count'] = category_repo.get_product_count(category_id)
        data['children'] = [child.to_dict() for child in category_repo.get_children(category_id)]
        data['mapping_rules'] = [
            {
                'id': rule.id,
                'rule_type': rule.rule_type,
                'rule_value': rule.rule_value,
                'priority': rule.priority,
                'is_active': rule.is_active,
            }
            for rule in category.mapping_rules
        ]

    return jsonify(data), 200


@categories_bp.route('', methods=['POST'])
@jwt_required()
def create_category():
    """Create a new category."""
    try:
        data = category_create_schema.load(request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({'error': 'Validation error', 'details': e.messages}), 400

    try:
        with get_context().db.session_scope() as session:
            category_repo = CategoryRepository(session)

            if data.get('slug'):
                if category_repo.get_by_slug(data['slug'].lower()):
                    return jsonify({'error': f"Slug '{data['slug']}' already exists"}), 409
            else:
                data['slug'] = generate_slug(data['name'], category_repo.get_all_slugs())
                if not data['slug']:
                    return jsonify({'error': 'Could not derive a slug from the name'}), 400

            if data.get('parent_id') and not category_repo.get(data['parent_id']):
                return jsonify({'error': 'Parent category not found'}), 400

            category = category_repo.create(**data)
            result = category.to_dict()
    except IntegrityError:
        return jsonify({'error': 'Category already exists'}), 409

    logger.info(f"Created category {result['slug']}")
    return jsonify(result), 201


@categories_bp.route('/<int:category_id>', methods=['PUT'])
@jwt_required()
def update_category(category_id: int):
    """Update a category."""
    try:
        data = category_update_schema.load(request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({'error': 'Validation error', 'details': e.messages}), 400

    try:
        with get_context().db.session_scope() as session:
            category_repo = CategoryRepository(session)
            category = category_repo.get(category_id)
            if not category:
                return jsonify({'error': 'Category not found'}), 404

            if 'slug' in data:
                other = category_repo.get_by_slug(data['slug'].lower())
                if other and other.id != category_id:
                    return jsonify({'error': f"Slug '{data['slug']}' already exists"}), 409

            if data.get('parent_id') == category_id:
                return jsonify({'error': 'Category cannot be its own parent'}), 400

            result = category_repo.update(category_id, **data).to_dict()
    except IntegrityError:
        return jsonify({'error': 'Category already exists'}), 409

    return jsonify(result), 200


@categories_bp.route('/<int:category_id>', methods=['DELETE'])
@jwt_required()
def delete_category(category_id: int):
    """Delete a category unless it is a system category or still in use."""
    with get_context().db.session_scope() as session:
        category_repo = CategoryRepository(session)
        category = category_repo.get(category_id)
        if not category:
            return jsonify({'error': 'Category not found'}), 404

        blocker = category_repo.deletion_blocker(category)
        if blocker:
            return jsonify({'error': blocker}), 409

        category_repo.delete(category_id)

    logger.info(f"Deleted category {category_id}")
    return jsonify({'message': 'Category deleted'}), 200
