"""Storefront product listing and admin product curation endpoints."""

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError
import logging

from .context import get_context
from .repositories.category_repository import CategoryRepository
from .repositories.product_repository import ProductRepository
from .repositories.tag_repository import TagRepository
from .schemas import product_categories_schema, product_tags_schema

logger = logging.getLogger(__name__)

products_bp = Blueprint('products', __name__, url_prefix='/api')


# Public storefront

@products_bp.route('/products', methods=['GET'])
def list_products():
    """Active products, optionally filtered by category slug or name search."""
    category = request.args.get('category', '').strip() or None
    search = request.args.get('search', '').strip() or None
    with get_context().db.session_scope() as session:
        products = [
            p.to_dict(include_variants=True)
            for p in ProductRepository(session).list_storefront(category_slug=category, search=search)
        ]
    return jsonify({'products': products, 'total': len(products)}), 200


@products_bp.route('/products/<int:product_id>', methods=['GET'])
def get_product(product_id: int):
    with get_context().db.session_scope() as session:
        product = ProductRepository(session).get_with_relations(product_id)
        if not product or not product.is_active or product.is_ignored:
            return jsonify({'error': 'Product not found'}), 404
        data = product.to_dict(include_variants=True)
    return jsonify(data), 200


@products_bp.route('/categories', methods=['GET'])
def list_categories():
    """Active categories with product counts, for storefront navigation."""
    with get_context().db.session_scope() as session:
        categories = CategoryRepository(session).get_all_with_counts()
    return jsonify({'categories': categories}), 200


# Admin curation

@products_bp.route('/admin/products', methods=['GET'])
@jwt_required()
def admin_list_products():
    page = max(request.args.get('page', 1, type=int), 1)
    per_page = min(max(request.args.get('per_page', 50, type=int), 1), 200)
    with get_context().db.session_scope() as session:
        product_repo = ProductRepository(session)
        result = product_repo.paginate(page=page, per_page=per_page, order_by=product_repo.model.name)
        result['items'] = [p.to_dict() for p in result['items']]
    return jsonify(result), 200


@products_bp.route('/admin/products/<int:product_id>/toggle', methods=['POST'])
@jwt_required()
def toggle_product_visibility(product_id: int):
    """Flip whether a product is shown in the storefront."""
    with get_context().db.session_scope() as session:
        product_repo = ProductRepository(session)
        product = product_repo.get(product_id)
        if not product:
            return jsonify({'error': 'Product not found'}), 404
        product_repo.set_active(product_id, not product.is_active)
        result = {'id': product_id, 'is_active': product.is_active}
    logger.info(f"Product {product_id} visibility set to {result['is_active']}")
    return jsonify(result), 200


@products_bp.route('/admin/products/<int:product_id>/categories', methods=['PUT'])
@jwt_required()
def set_product_categories(product_id: int):
    try:
        data = product_categories_schema.load(request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({'error': 'Validation error', 'details': e.messages}), 400

    with get_context().db.session_scope() as session:
        if not ProductRepository(session).get(product_id):
            return jsonify({'error': 'Product not found'}), 404
        category_repo = CategoryRepository(session)
        missing = [cid for cid in data['category_ids'] if not category_repo.get(cid)]
        if missing:
            return jsonify({'error': 'Unknown categories', 'category_ids': missing}), 400
        primary = data.get('primary_category_id')
        if primary is not None and primary not in data['category_ids']:
            return jsonify({'error': 'Primary category must be one of category_ids'}), 400

        links = category_repo.set_product_categories(product_id, data['category_ids'], primary)
        result = [{**link.category.to_dict(), 'is_primary': link.is_primary} for link in links]

    return jsonify({'product_id': product_id, 'categories': result}), 200


@products_bp.route('/admin/products/<int:product_id>/tags', methods=['PUT'])
@jwt_required()
def set_product_tags(product_id: int):
    try:
        data = product_tags_schema.load(request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({'error': 'Validation error', 'details': e.messages}), 400

    with get_context().db.session_scope() as session:
        if not ProductRepository(session).get(product_id):
            return jsonify({'error': 'Product not found'}), 404
        tag_repo = TagRepository(session)
        missing = [tid for tid in data['tag_ids'] if not tag_repo.get(tid)]
        if missing:
            return jsonify({'error': 'Unknown tags', 'tag_ids': missing}), 400
        tags = [t.to_dict() for t in tag_repo.assign_tags_to_product(product_id, data['tag_ids'])]

    return jsonify({'product_id': product_id, 'tags': tags}), 200
