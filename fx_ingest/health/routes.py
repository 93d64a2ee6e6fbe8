"""Route handlers for health checks and circuit breaker operations."""

from __future__ import annotations

from flask import current_app
from flask.views import MethodView

from fx_ingest.schemas import CircuitBreakerSchema, HealthRatesSchema, HealthStatusSchema
from fx_ingest.services.rate_service import get_rate_service

from . import blp


@blp.route("")
class HealthStatus(MethodView):
    @blp.response(200, HealthStatusSchema())
    def get(self):
        return {
            "status": "ok",
            "app": current_app.config.get("APP_NAME", "fx-rate-ingestion"),
        }


@blp.route("/rates")
class HealthRates(MethodView):
    @blp.response(200, HealthRatesSchema())
    def get(self):
        return get_rate_service(current_app).health_check()


@blp.route("/circuit-breakers")
class CircuitBreakers(MethodView):
    @blp.response(200, CircuitBreakerSchema(many=True))
    def get(self):
        return get_rate_service(current_app).get_circuit_breaker_status()


@blp.route("/circuit-breakers/<string:provider>/reset")
class CircuitBreakerReset(MethodView):
    @blp.response(200, CircuitBreakerSchema())
    def post(self, provider: str):
        return get_rate_service(current_app).reset_circuit_breaker(provider)
