"""Flask application exposing the polling triggers and the watch API."""
from __future__ import annotations

import hmac
import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, Optional

from flask import Flask, jsonify, request
from flask.typing import ResponseReturnValue

from ..api.client import IkeaCatalogClient
from ..api.routing import RoutingClient
from ..config import AppConfig, DEFAULT_CONFIG
from ..models import Identity
from ..notifications.base import LogNotifier, Notifier
from ..notifications.email import SmtpEmailNotifier
from ..services.dispatcher import NotificationDispatcher
from ..services.fuel import FuelEstimator
from ..services.matching import normalize_code
from ..services.profile_service import ProfileService
from ..services.watch_check import WatchCheckService, WatchListUnavailable
from ..services.watchlist_service import WatchlistService
from ..storage.database import Database
from ..storage.ledger import NotificationLedger
from ..storage.repository import ProfileRepository, WatchRepository
from ..stores import STORE_LIST, get_store
from .auth import IdentityProvider, StaticIdentityProvider, SupabaseIdentityProvider, bearer_token

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Services:
    """Everything the HTTP layer and the scheduler need."""

    watch_check: WatchCheckService
    watchlist: WatchlistService
    profiles: ProfileService
    ledger: NotificationLedger
    catalog: IkeaCatalogClient
    identity: IdentityProvider


def _error(message: str, status: int) -> ResponseReturnValue:
    return jsonify({"error": message}), status


def _json_body() -> Optional[dict[str, Any]]:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else None


def create_app(services: Services, config: AppConfig = DEFAULT_CONFIG) -> Flask:
    app = Flask(__name__)
    app.config["services"] = services
    app.config["app_config"] = config

    def _current_identity() -> Optional[Identity]:
        token = bearer_token(request.headers.get("Authorization"))
        if token is None:
            return None
        return services.identity.resolve(token)

    def _cron_authorized() -> bool:
        secret = config.auth.cron_secret
        if not secret:
            return True
        header = request.headers.get("Authorization", "")
        return hmac.compare_digest(header, f"Bearer {secret}")

    @app.get("/health")
    def health() -> ResponseReturnValue:
        return jsonify({"ok": True})

    @app.get("/api/stores")
    def stores() -> ResponseReturnValue:
        return jsonify({"data": STORE_LIST})

    @app.route("/api/cron/check-watches", methods=["GET", "POST"])
    def check_all_watches() -> ResponseReturnValue:
        if not _cron_authorized():
            return _error("Unauthorized", 401)
        if config.auth.cron_disabled:
            return jsonify({"message": "Cron check temporarily disabled"}), 503
        try:
            summary = services.watch_check.run_all()
        except WatchListUnavailable:
            logger.exception("Cron: failed to load watches")
            return _error("Failed to load watches", 500)
        return jsonify({"message": "Cron check completed", **summary.to_dict()})

    @app.post("/api/stores/<store_id>/check")
    def check_store_watches(store_id: str) -> ResponseReturnValue:
        if not _cron_authorized():
            return _error("Unauthorized", 401)
        if get_store(store_id) is None:
            return _error("Unknown store", 404)
        try:
            summary = services.watch_check.run_store(store_id)
        except WatchListUnavailable:
            logger.exception("Store check: failed to load watches for store %s", store_id)
            return _error("Failed to load watches", 500)
        return jsonify({"message": "Store check completed", "storeId": store_id, **summary.to_dict()})

    @app.get("/api/watches")
    def list_watches() -> ResponseReturnValue:
        identity = _current_identity()
        if identity is None:
            return _error("Unauthorized", 401)
        watches = services.watchlist.watches_for(identity)
        return jsonify({"data": [watch.to_dict() for watch in watches]})

    @app.post("/api/watches")
    def create_watch() -> ResponseReturnValue:
        identity = _current_identity()
        if identity is None:
            return _error("Unauthorized", 401)
        body = _json_body()
        if body is None:
            return _error("Invalid JSON body", 400)
        if not identity.verified:
            return _error("Please verify your email address before creating product watches.", 403)

        result = services.watchlist.create_watch(
            identity,
            article_number=str(body.get("articleNumber") or ""),
            store_id=str(body.get("storeId") or ""),
            desired_quantity=body.get("desiredQuantity", 1),
        )
        if not result.ok or result.watch is None:
            return _error(result.reason or "Failed to create watch", 400)
        return jsonify({"data": result.watch.to_dict()}), 201

    @app.post("/api/watches/import")
    def import_watches() -> ResponseReturnValue:
        identity = _current_identity()
        if identity is None:
            return _error("Unauthorized", 401)
        body = _json_body()
        if body is None:
            return _error("Invalid JSON body", 400)
        if not identity.verified:
            return _error("Please verify your email address before importing product watches.", 403)

        stores = body.get("stores")
        entries = body.get("entries")
        store_ids = [
            str(store.get("id") if isinstance(store, dict) else store)
            for store in (stores if isinstance(stores, list) else [])
        ]
        result = services.watchlist.create_watches(
            identity,
            store_ids,
            [entry for entry in entries if isinstance(entry, dict)] if isinstance(entries, list) else [],
        )
        rejected = [{"row": row.row, "reason": row.reason} for row in result.rejected]
        if not result.ok:
            return jsonify({"error": result.error, "rejected": rejected}), 400
        return (
            jsonify(
                {
                    "message": "Import complete",
                    "imported": len(result.created),
                    "rejected": rejected,
                    "data": [watch.to_dict() for watch in result.created],
                }
            ),
            201,
        )

    @app.delete("/api/watches/<watch_id>")
    def delete_watch(watch_id: str) -> ResponseReturnValue:
        identity = _current_identity()
        if identity is None:
            return _error("Unauthorized", 401)
        if not services.watchlist.remove(identity, watch_id):
            return _error("Watch not found", 404)
        return jsonify({"success": True})

    @app.patch("/api/watches/<watch_id>")
    def update_watch(watch_id: str) -> ResponseReturnValue:
        identity = _current_identity()
        if identity is None:
            return _error("Unauthorized", 401)
        body = _json_body()
        if body is None or body.get("isActive") is not False:
            return _error("Only {\"isActive\": false} is supported", 400)
        if not services.watchlist.deactivate(identity, watch_id):
            return _error("Watch not found", 404)
        return jsonify({"success": True})

    @app.post("/api/watches/<watch_id>/check")
    def check_watch(watch_id: str) -> ResponseReturnValue:
        identity = _current_identity()
        if identity is None:
            return _error("Unauthorized", 401)
        if not identity.verified:
            return _error("Please verify your email address first.", 403)
        try:
            result = services.watch_check.check_watch(watch_id, identity.email)
        except LookupError:
            return _error("Watch not found", 404)
        except sqlite3.Error:
            logger.exception("Manual check of watch %s failed", watch_id)
            return _error("Internal server error", 500)
        return jsonify({"watchId": watch_id, **result.to_dict()})

    @app.get("/api/watches/<watch_id>/notifications")
    def watch_notifications(watch_id: str) -> ResponseReturnValue:
        identity = _current_identity()
        if identity is None:
            return _error("Unauthorized", 401)
        owned = {watch.watch_id for watch in services.watchlist.watches_for(identity)}
        if watch_id not in owned:
            return _error("Watch not found", 404)
        records = services.ledger.records_for(watch_id)
        return jsonify(
            {
                "data": [
                    {
                        "productId": record.item_id,
                        "productName": record.item_name,
                        "productPrice": record.item_price,
                        "productImage": record.item_image,
                        "createdAt": record.created_at.isoformat() if record.created_at else None,
                    }
                    for record in records
                ]
            }
        )

    @app.get("/api/profile")
    def get_profile() -> ResponseReturnValue:
        identity = _current_identity()
        if identity is None:
            return _error("Unauthorized", 401)
        profile = services.profiles.profile_for(identity)
        watch_count = len(services.watchlist.watches_for(identity))
        return jsonify(
            {
                "email": identity.email,
                "gasUsage": profile.fuel_consumption if profile else None,
                "fuelPrice": profile.fuel_price if profile else None,
                "hasLocation": bool(profile and profile.home_latitude is not None),
                "watchCount": watch_count,
            }
        )

    @app.put("/api/profile")
    def update_profile() -> ResponseReturnValue:
        identity = _current_identity()
        if identity is None:
            return _error("Unauthorized", 401)
        body = _json_body()
        if body is None:
            return _error("Invalid body", 400)

        if "address" in body:
            address = str(body.get("address") or "")
            location = services.profiles.locate_home(identity, address)
            if address.strip() and location is None:
                return _error("Unable to locate this address. Please refine it.", 400)
        if "fuelConsumption" in body or "fuelPrice" in body:
            services.profiles.set_vehicle(identity, body.get("fuelConsumption"), body.get("fuelPrice"))
        return jsonify({"success": True})

    @app.get("/api/products/<article_number>/preview")
    def product_preview(article_number: str) -> ResponseReturnValue:
        normalized = normalize_code(article_number)
        if len(normalized) != 8:
            return _error("Article number must contain 8 digits", 400)
        preview = services.catalog.fetch_product_preview(normalized)
        if preview is None:
            return _error("This IKEA article number does not exist", 404)
        return jsonify({"preview": preview.to_dict()})

    return app


def build_services(config: AppConfig, notifier: Optional[Notifier] = None) -> Services:
    """Wire repositories, clients and services for ``config``."""

    config.ensure_data_directories()
    database = Database(config.resolved_database_path)
    database.initialize()

    catalog = IkeaCatalogClient(config.catalog)
    routing = RoutingClient(config.routing)
    ledger = NotificationLedger(database)
    watch_repository = WatchRepository(database)
    profile_repository = ProfileRepository(database)

    if notifier is None:
        if config.email.username and config.email.password:
            notifier = SmtpEmailNotifier(config.email)
        else:
            logger.warning("No SMTP credentials configured; alerts will only be logged")
            notifier = LogNotifier()

    if config.auth.supabase_url and config.auth.supabase_anon_key:
        identity: IdentityProvider = SupabaseIdentityProvider(config.auth.supabase_url, config.auth.supabase_anon_key)
    else:
        logger.warning("No identity provider configured; all bearer tokens will be rejected")
        identity = StaticIdentityProvider({})

    dispatcher = NotificationDispatcher(
        notifier=notifier,
        ledger=ledger,
        manage_url=f"{config.email.site_url.rstrip('/')}/manage",
    )
    watch_check = WatchCheckService(
        catalog=catalog,
        watches=watch_repository,
        profiles=profile_repository,
        ledger=ledger,
        estimator=FuelEstimator(routing, default_fuel_price=config.routing.default_fuel_price),
        dispatcher=dispatcher,
        max_workers=config.polling.max_concurrent_requests,
    )
    return Services(
        watch_check=watch_check,
        watchlist=WatchlistService(watch_repository, verifier=catalog),
        profiles=ProfileService(profile_repository, routing),
        ledger=ledger,
        catalog=catalog,
        identity=identity,
    )


def bootstrap_app(config: AppConfig = DEFAULT_CONFIG) -> tuple[Flask, Services]:
    """Factory used by the entrypoint for running the HTTP API."""

    services = build_services(config)
    app = create_app(services, config)
    return app, services
