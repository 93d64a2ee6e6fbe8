"""Schemas for API requests and responses."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class HealthStatusSchema(Schema):
    status = fields.String(required=True)
    app = fields.String()


class ProviderHealthSchema(Schema):
    provider = fields.String(required=True)
    is_healthy = fields.Boolean(required=True)
    last_check = fields.String(allow_none=True)
    last_success = fields.String(allow_none=True)
    error_count = fields.Integer(required=True)
    consecutive_failures = fields.Integer(required=True)
    configured = fields.Boolean(required=True)


class CircuitBreakerSchema(Schema):
    provider = fields.String(required=True)
    is_open = fields.Boolean(required=True)
    failures = fields.Integer(required=True)
    last_attempt = fields.String(allow_none=True)


class HealthRatesSchema(Schema):
    status = fields.String(required=True)
    api_status = fields.List(fields.Nested(ProviderHealthSchema))
    circuit_breakers = fields.List(fields.Nested(CircuitBreakerSchema))
    last_update = fields.String(allow_none=True)
    fallback_rates_count = fields.Integer(required=True)
    mock_mode = fields.Boolean()
    last_cycle = fields.Dict(allow_none=True)


class RateSchema(Schema):
    code = fields.String(required=True)
    name = fields.String(allow_none=True)
    category = fields.Function(lambda record: record.category.value)
    rate = fields.Decimal(as_string=True, allow_none=True)
    last_updated = fields.DateTime(allow_none=True)


class ConversionQuerySchema(Schema):
    amount = fields.Decimal(required=True, validate=validate.Range(min=0))
    from_code = fields.String(required=True, data_key="from")
    to_code = fields.String(required=True, data_key="to")


class ConversionResponseSchema(Schema):
    amount = fields.Decimal(as_string=True, required=True)
    from_code = fields.String(required=True, data_key="from")
    to_code = fields.String(required=True, data_key="to")
    result = fields.Decimal(as_string=True, required=True)


class FallbackEntrySchema(Schema):
    code = fields.String(required=True)
    rate = fields.Decimal(as_string=True, required=True)
    source = fields.String(required=True)
    timestamp = fields.DateTime(required=True)


class RefreshResultSchema(Schema):
    message = fields.String(required=True)
    cycle = fields.Dict(required=True)


class RefreshThrottleSchema(Schema):
    message = fields.String(required=True)
    retry_after = fields.Integer(required=True)


class ErrorMessageSchema(Schema):
    message = fields.String(required=True)
