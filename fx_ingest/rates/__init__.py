"""Rates blueprint exposing current rates, conversion and manual refresh."""

from __future__ import annotations

from flask_smorest import Blueprint

blp = Blueprint("Rates", __name__, description="Current exchange rates")

from . import routes  # noqa: E402,F401
