import logging
import math
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional

from flask import Flask, jsonify, request

from db import Database
from ratings.config import Settings
from ratings.models import Review
from ratings.stats import (
    InvalidReviewError,
    build_ratings,
    build_workshop_rows,
    clean_text_feedback,
    normalize_on_time,
    parse_rating,
    resolve_rating_type,
    voted_today,
)
from ratings.webapp_auth import INIT_DATA_HEADER, authenticate_request

REVIEWS_PER_PAGE = 5
MAX_REVIEWS_PER_PAGE = 50


def _int_arg(name: str, default: int) -> int:
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


def create_api(
    database: Database,
    settings: Settings,
    on_review: Optional[Callable[[Review], None]] = None,
) -> Flask:
    app = Flask(__name__)

    @app.before_request
    def preflight():
        if request.method == "OPTIONS":
            return "", 204
        return None

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and (not settings.webapp_origins or origin in settings.webapp_origins):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
        elif origin:
            logging.info("Origin not allowed: %s", origin)
        response.headers["Access-Control-Allow-Headers"] = f"Content-Type, {INIT_DATA_HEADER}"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        return response

    @app.get("/health")
    @app.get("/api/health")
    def health():
        return jsonify({"ok": True})

    @app.get("/api/workshops")
    def api_workshops():
        rows = build_workshop_rows(database.list_workshops(), database.list_feedback())
        return jsonify({"ok": True, "workshops": [row.to_dict() for row in rows]})

    @app.get("/api/ratings")
    def api_ratings():
        rating_type = resolve_rating_type(request.args.get("type"))
        if rating_type is None:
            return jsonify({"ok": False, "error": "invalid_type"}), 400
        rows = build_ratings(database.list_workshops(), database.list_feedback(), rating_type)
        return jsonify({"ok": True, "type": rating_type, "workshops": [row.to_dict() for row in rows]})

    @app.get("/api/seasons")
    def api_seasons():
        return jsonify({"ok": True, "seasons": [season.to_dict() for season in database.list_seasons()]})

    @app.get("/api/ratings/seasonal")
    def api_seasonal_ratings():
        rating_type = resolve_rating_type(request.args.get("type"), seasonal=True)
        if rating_type is None:
            return jsonify({"ok": False, "error": "invalid_type"}), 400
        raw_id = request.args.get("seasonId", "").strip()
        if not raw_id:
            return jsonify({"ok": False, "error": "missing_season"}), 400
        season = database.get_season(int(raw_id)) if raw_id.isdigit() else None
        if season is None:
            return jsonify({"ok": False, "error": "season_not_found"}), 404
        rows = build_ratings(database.list_workshops(), database.list_feedback(), rating_type, season)
        return jsonify(
            {
                "ok": True,
                "type": rating_type,
                "season": season.to_dict(),
                "workshops": [row.to_dict() for row in rows],
            }
        )

    @app.get("/api/reviews")
    def api_reviews():
        workshop = request.args.get("workshop", "").strip()
        if not workshop:
            return jsonify({"ok": False, "error": "missing_workshop"}), 400
        page = max(0, _int_arg("page", 0))
        limit = min(max(1, _int_arg("limit", REVIEWS_PER_PAGE)), MAX_REVIEWS_PER_PAGE)
        total = database.count_text_reviews(workshop)
        reviews = database.list_text_reviews(workshop, page * limit, limit)
        return jsonify(
            {
                "ok": True,
                "reviews": [review.to_public_dict() for review in reviews],
                "page": page,
                "total_pages": math.ceil(total / limit),
                "total_reviews": total,
            }
        )

    @app.post("/api/reviews")
    def api_submit_review():
        auth = authenticate_request(request, settings.bot_token, settings.auth_max_age_seconds)
        if not auth.valid:
            return jsonify({"ok": False, "error": "unauthorized", "reason": auth.reason}), 401
        user = auth.user
        if not user or type(user.get("id")) is not int:
            return jsonify({"ok": False, "error": "unauthorized", "reason": "missing_user"}), 401

        data = request.get_json(silent=True)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            return jsonify({"ok": False, "error": "invalid_body"}), 400
        try:
            workshop_name = str(data.get("workshop") or "").strip()
            if not workshop_name:
                raise InvalidReviewError("missing_workshop")
            quality = parse_rating(data.get("qualityRating"), "quality_rating")
            communication = parse_rating(data.get("communicationRating"), "communication_rating")
            on_time = normalize_on_time(data.get("onTime"))
            text_feedback = clean_text_feedback(data.get("textFeedback"))
        except InvalidReviewError as exc:
            return jsonify({"ok": False, "error": exc.code}), 400

        workshop = database.get_workshop_by_name(workshop_name)
        if workshop is None:
            return jsonify({"ok": False, "error": "workshop_not_found"}), 404

        user_id = user["id"]
        if settings.daily_vote_limit and not settings.is_admin(user_id):
            if voted_today(database.last_feedback_at(user_id)):
                return jsonify({"ok": False, "error": "daily_limit"}), 429

        review = Review(
            user_id=user_id,
            first_name=str(user.get("first_name") or ""),
            last_name=str(user.get("last_name") or ""),
            username=str(user.get("username") or ""),
            workshop=workshop.name,
            quality_rating=quality,
            communication_rating=communication,
            on_time=on_time,
            text_feedback=text_feedback,
            created_at=datetime.now(timezone.utc),
        )
        feedback_id = database.add_feedback(review)
        if feedback_id is None:
            return jsonify({"ok": False, "error": "storage_unavailable"}), 503

        if on_review is not None:
            try:
                on_review(replace(review, id=feedback_id))
            except Exception as exc:
                logging.warning("review notification failed: %s", exc)
        return jsonify({"ok": True, "id": str(feedback_id)}), 201

    return app
