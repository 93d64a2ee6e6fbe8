"""Routes for current rates, conversion and manual refresh."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from flask import Response, current_app, jsonify
from flask.views import MethodView

from fx_ingest.errors import ConflictError, NotFoundError
from fx_ingest.schemas import (
    ConversionQuerySchema,
    ConversionResponseSchema,
    FallbackEntrySchema,
    RateSchema,
)
from fx_ingest.services.orchestrator import CycleStatus, get_orchestrator
from fx_ingest.services.rate_service import get_rate_service
from fx_ingest.services.scheduler import SCHEDULER_EXT_KEY
from fx_ingest.utils.datetime import utc_now
from fx_ingest.validation import validate_currency_code

from . import blp

DEFAULT_THROTTLE_SECONDS = 60
REFRESH_STATE_KEY = "fx_refresh_state"


def ensure_refresh_state(app) -> dict[str, Any]:
    """Ensure refresh state dict exists on app extensions."""

    state = app.extensions.setdefault(REFRESH_STATE_KEY, {})
    if not isinstance(state, dict):
        new_state: dict[str, Any] = {}
        app.extensions[REFRESH_STATE_KEY] = new_state
        return new_state
    return state


@blp.route("")
class RateList(MethodView):
    @blp.response(200, RateSchema(many=True))
    def get(self):
        return get_rate_service(current_app).rate_store.list_active()


@blp.route("/<string:code>")
class RateDetail(MethodView):
    @blp.response(200, RateSchema())
    def get(self, code: str):
        normalized = validate_currency_code(code)
        record = get_rate_service(current_app).rate_store.get_rate(normalized)
        if record is None:
            raise NotFoundError(
                f"Currency '{normalized}' is not tracked.", payload={"code": normalized}
            )
        return record


@blp.route("/convert")
class RateConversion(MethodView):
    @blp.arguments(ConversionQuerySchema, location="query")
    @blp.response(200, ConversionResponseSchema())
    def get(self, args):
        from_code = validate_currency_code(args["from_code"], field="from")
        to_code = validate_currency_code(args["to_code"], field="to")
        result = get_rate_service(current_app).convert_currency(args["amount"], from_code, to_code)
        if result is None:
            raise NotFoundError(
                f"No rate available to convert {from_code} to {to_code}.",
                payload={"from": from_code, "to": to_code},
            )
        return {
            "amount": args["amount"],
            "from_code": from_code,
            "to_code": to_code,
            "result": result,
        }


@blp.route("/fallback")
class FallbackRates(MethodView):
    @blp.response(200, FallbackEntrySchema(many=True))
    def get(self):
        return get_rate_service(current_app).get_fallback_rates()


@blp.post("/refresh")
def refresh_rates() -> Response:
    """Trigger a manual refresh cycle with throttle control."""

    app = current_app
    state = ensure_refresh_state(app)
    now = utc_now()

    throttle_seconds = max(
        int(app.config.get("REFRESH_THROTTLE_SECONDS", DEFAULT_THROTTLE_SECONDS)), 0
    )
    last_refresh = state.get("last_refresh")
    if throttle_seconds > 0 and last_refresh is not None:
        next_allowed_at = last_refresh + timedelta(seconds=throttle_seconds)
        if next_allowed_at > now:
            retry_after = max(int((next_allowed_at - now).total_seconds()), 1)
            payload = {
                "message": "Refresh throttled. Try again later.",
                "retry_after": retry_after,
            }
            return jsonify(payload), 429

    scheduler = app.extensions.get(SCHEDULER_EXT_KEY)
    if scheduler is not None:
        result = scheduler.trigger_now()
    else:
        result = get_orchestrator(app).run_cycle()

    if result.status is CycleStatus.SKIPPED:
        raise ConflictError("A refresh cycle is already running.")

    state["last_status"] = result.status.value
    if result.status is CycleStatus.FAILED:
        payload = {
            "message": "No provider or fallback rates were available.",
            "cycle": result.to_dict(),
        }
        return jsonify(payload), 503

    state["last_refresh"] = now
    return jsonify({"message": "Refresh completed.", "cycle": result.to_dict()}), 202
