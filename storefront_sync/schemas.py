"""Marshmallow schemas for request validation and serialization."""
from marshmallow import Schema, fields, validate, EXCLUDE, INCLUDE

HEX_COLOR = validate.Regexp(r'^#[0-9A-Fa-f]{6}$', error='Color must be a hex value like #3B82F6')


# Catalog admin

class CategoryCreateSchema(Schema):
    """Schema for creating categories."""
    name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    slug = fields.String(allow_none=True, validate=validate.Length(max=255))
    description = fields.String(allow_none=True)
    color = fields.String(load_default='#3B82F6', validate=HEX_COLOR)
    icon = fields.String(allow_none=True, validate=validate.Length(max=100))
    parent_id = fields.Integer(allow_none=True)
    sort_order = fields.Integer(load_default=0)
    is_active = fields.Boolean(load_default=True)


class CategoryUpdateSchema(Schema):
    """Schema for updating categories."""
    name = fields.String(validate=validate.Length(min=1, max=255))
    slug = fields.String(validate=validate.Length(min=1, max=255))
    description = fields.String(allow_none=True)
    color = fields.String(validate=HEX_COLOR)
    icon = fields.String(allow_none=True, validate=validate.Length(max=100))
    parent_id = fields.Integer(allow_none=True)
    sort_order = fields.Integer()
    is_active = fields.Boolean()


class TagCreateSchema(Schema):
    """Schema for creating tags."""
    name = fields.String(required=True, validate=validate.Length(min=1, max=100))
    slug = fields.String(allow_none=True, validate=validate.Length(max=100))
    description = fields.String(allow_none=True)
    color = fields.String(load_default='#6B7280', validate=HEX_COLOR)
    is_active = fields.Boolean(load_default=True)


class TagUpdateSchema(Schema):
    """Schema for updating tags."""
    name = fields.String(validate=validate.Length(min=1, max=100))
    slug = fields.String(validate=validate.Length(min=1, max=100))
    description = fields.String(allow_none=True)
    color = fields.String(validate=HEX_COLOR)
    is_active = fields.Boolean()


class ProductCategoriesSchema(Schema):
    category_ids = fields.List(fields.Integer(), required=True)
    primary_category_id = fields.Integer(allow_none=True, load_default=None)


class ProductTagsSchema(Schema):
    tag_ids = fields.List(fields.Integer(), required=True)


class SyncOptionsSchema(Schema):
    """Options accepted when triggering a catalog sync."""
    class Meta:
        unknown = EXCLUDE

    dry_run = fields.Boolean(load_default=False)
    force_delete = fields.Boolean(load_default=False)
    skip_verification = fields.Boolean(load_default=False)


# Snipcart webhook payloads

class SnipcartAddressSchema(Schema):
    class Meta:
        unknown = INCLUDE

    name = fields.String(allow_none=True)
    fullName = fields.String(allow_none=True)
    firstName = fields.String(allow_none=True)
    lastName = fields.String(allow_none=True)
    address1 = fields.String(allow_none=True)
    address2 = fields.String(allow_none=True)
    fullAddress = fields.String(allow_none=True)
    city = fields.String(allow_none=True)
    province = fields.String(allow_none=True)
    country = fields.String(allow_none=True)
    postalCode = fields.String(allow_none=True)
    phone = fields.String(allow_none=True)


class SnipcartItemSchema(Schema):
    class Meta:
        unknown = INCLUDE

    id = fields.String(required=True, validate=validate.Length(min=1))
    quantity = fields.Integer(required=True, validate=validate.Range(min=1))
    name = fields.String(allow_none=True)
    price = fields.Float(allow_none=True)


class SnipcartOrderContentSchema(Schema):
    class Meta:
        unknown = INCLUDE

    invoiceNumber = fields.String(required=True, validate=validate.Length(min=1))
    email = fields.Email(required=True)
    shippingAddress = fields.Nested(SnipcartAddressSchema, required=True)
    shippingRateUserDefinedId = fields.String(allow_none=True, load_default=None)
    items = fields.List(fields.Nested(SnipcartItemSchema), required=True, validate=validate.Length(min=1))


class SnipcartEventSchema(Schema):
    """Envelope shared by every Snipcart webhook event."""
    class Meta:
        unknown = INCLUDE

    eventName = fields.String(required=True)
    mode = fields.String(allow_none=True)
    createdOn = fields.String(allow_none=True)
    content = fields.Dict(load_default=dict)


class ShippingRatesContentSchema(Schema):
    class Meta:
        unknown = INCLUDE

    items = fields.List(fields.Nested(SnipcartItemSchema), load_default=list)
    shippingAddress1 = fields.String(allow_none=True)
    shippingAddress2 = fields.String(allow_none=True)
    shippingAddressCity = fields.String(allow_none=True)
    shippingAddressCountry = fields.String(allow_none=True)
    shippingAddressProvince = fields.String(allow_none=True)
    shippingAddressPostalCode = fields.String(allow_none=True)
    shippingAddressPhone = fields.String(allow_none=True)


category_create_schema = CategoryCreateSchema()
category_update_schema = CategoryUpdateSchema()
tag_create_schema = TagCreateSchema()
tag_update_schema = TagUpdateSchema()
product_categories_schema = ProductCategoriesSchema()
product_tags_schema = ProductTagsSchema()
sync_options_schema = SyncOptionsSchema()
snipcart_event_schema = SnipcartEventSchema()
snipcart_order_content_schema = SnipcartOrderContentSchema()
shipping_rates_content_schema = ShippingRatesContentSchema()
