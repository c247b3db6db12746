"""Flask web application serving the user interface."""
from __future__ import annotations

import logging
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from flask import Flask, Response, flash, jsonify, redirect, render_template, request, url_for

from ..config import DEFAULT_CONFIG, AppConfig
from ..models import PriceRecord
from ..services.catalog_service import CatalogService
from ..services.comparison_service import ComparisonService
from ..services.shopping_list_service import ShoppingListService
from ..storage.repository import CsvCatalogRepository

logger = logging.getLogger(__name__)


def _parse_quantity(raw: str | None, default: int = 1) -> int:
    try:
        return int(raw) if raw else default
    except ValueError:
        return 0


def _parse_price(raw: str | None) -> Decimal | None:
    try:
        price = Decimal((raw or "").strip().replace(",", "."))
    except InvalidOperation:
        return None
    return price if price.is_finite() else None


def _parse_date(raw: str | None) -> date | None:
    try:
        return date.fromisoformat(raw) if raw else None
    except ValueError:
        return None


def _error_message(exc: KeyError | ValueError) -> str:
    return str(exc.args[0]) if exc.args else "Invalid request"


def create_app(
    comparison_service: ComparisonService,
    shopping_list_service: ShoppingListService,
    catalog_service: CatalogService,
    config: AppConfig = DEFAULT_CONFIG,
) -> Flask:
    app = Flask(__name__)
    app.secret_key = config.secret_key

    app.config["comparison_service"] = comparison_service
    app.config["shopping_list_service"] = shopping_list_service
    app.config["catalog_service"] = catalog_service

    @app.template_filter("money")
    def money(amount: Decimal | None) -> str:
        if amount is None:
            return "-"
        return f"{config.display.currency_symbol}{amount:.2f}"

    @app.context_processor
    def inject_globals() -> dict[str, Any]:
        return {"current_year": datetime.now(UTC).year}

    def _unknown_list() -> Response:
        flash("Unknown shopping list", "error")
        return redirect(url_for("index"))

    @app.route("/")
    def index() -> str:
        summary = comparison_service.dashboard_summary()
        return render_template("index.html", summary=summary, lists=shopping_list_service.all_lists())

    @app.route("/lists", methods=["POST"])
    def create_list() -> Response:
        try:
            shopping_list = shopping_list_service.create_list(request.form.get("name", ""))
        except ValueError as exc:
            flash(str(exc), "error")
            return redirect(url_for("index"))
        flash(f"Created {shopping_list.name}", "success")
        return redirect(url_for("list_detail", list_id=shopping_list.id))

    @app.route("/lists/<list_id>/delete", methods=["POST"])
    def delete_list(list_id: str) -> Response:
        try:
            shopping_list_service.delete_list(list_id)
        except KeyError:
            return _unknown_list()
        flash("Shopping list deleted", "success")
        return redirect(url_for("index"))

    @app.route("/lists/<list_id>")
    def list_detail(list_id: str) -> str | Response:
        try:
            shopping_list = shopping_list_service.get_list(list_id)
        except KeyError:
            return _unknown_list()
        result = comparison_service.compare(shopping_list)
        picker = comparison_service.product_picker(request.args.get("q", ""))
        return render_template("list_detail.html", comparison=result, picker=picker, search=request.args.get("q", ""))

    @app.route("/lists/<list_id>/comparison.json")
    def list_comparison_json(list_id: str) -> Response | tuple[Response, int]:
        try:
            shopping_list = shopping_list_service.get_list(list_id)
        except KeyError:
            return jsonify({"error": "Unknown shopping list"}), 404
        payload = comparison_service.compare(shopping_list).to_dict()
        payload["currency"] = config.display.currency_code
        return jsonify(payload)

    @app.route("/lists/<list_id>/items", methods=["POST"])
    def add_item(list_id: str) -> Response:
        product_id = request.form.get("product_id", "")
        quantity = _parse_quantity(request.form.get("quantity"))
        try:
            shopping_list_service.add_item(list_id, product_id, quantity)
        except KeyError as exc:
            flash(str(exc.args[0]) if exc.args else "Unknown item", "error")
        except ValueError as exc:
            flash(str(exc), "error")
        else:
            flash("Product added to list", "success")
        return redirect(url_for("list_detail", list_id=list_id))

    @app.route("/lists/<list_id>/items/<item_id>/quantity", methods=["POST"])
    def update_quantity(list_id: str, item_id: str) -> Response:
        quantity = _parse_quantity(request.form.get("quantity"), default=0)
        try:
            shopping_list_service.update_quantity(list_id, item_id, quantity)
        except KeyError:
            return _unknown_list()
        return redirect(url_for("list_detail", list_id=list_id))

    @app.route("/lists/<list_id>/items/<item_id>/remove", methods=["POST"])
    def remove_item(list_id: str, item_id: str) -> Response:
        try:
            shopping_list_service.remove_item(list_id, item_id)
        except KeyError:
            return _unknown_list()
        flash("Item removed", "success")
        return redirect(url_for("list_detail", list_id=list_id))

    @app.route("/products")
    def products() -> str:
        search = request.args.get("q", "")
        category = request.args.get("category") or None
        return render_template(
            "products.html",
            catalogue=comparison_service.catalogue(search, category),
            categories=comparison_service.categories(),
            stores_by_town=catalog_service.stores_by_town(),
            search=search,
            selected_category=category,
        )

    @app.route("/products", methods=["POST"])
    def add_product() -> Response:
        form = request.form
        try:
            product, _ = catalog_service.add_product(
                name=form.get("name", ""),
                category=form.get("category", ""),
                unit=form.get("unit", ""),
                store_id=form.get("store_id", ""),
                price=_parse_price(form.get("price")),
                brand=form.get("brand"),
                barcode=form.get("barcode"),
                is_promotion=form.get("is_promotion") == "on",
                promotion_end=_parse_date(form.get("promotion_end")),
            )
        except (KeyError, ValueError) as exc:
            flash(_error_message(exc), "error")
            return redirect(url_for("products"))
        flash(f"Saved price for {product.name}", "success")
        return redirect(url_for("products"))

    @app.route("/products/<product_id>")
    def product_detail(product_id: str) -> str | Response:
        try:
            product = catalog_service.get_product(product_id)
        except KeyError:
            flash("Unknown product", "error")
            return redirect(url_for("products"))
        return render_template(
            "product_detail.html",
            product=product,
            prices=comparison_service.store_prices(product_id),
            stores_by_town=catalog_service.stores_by_town(),
        )

    @app.route("/products/<product_id>/edit", methods=["POST"])
    def edit_product(product_id: str) -> Response:
        form = request.form
        try:
            catalog_service.update_product(
                product_id,
                name=form.get("name", ""),
                category=form.get("category", ""),
                unit=form.get("unit", ""),
                brand=form.get("brand"),
                barcode=form.get("barcode"),
            )
        except KeyError:
            flash("Unknown product", "error")
            return redirect(url_for("products"))
        except ValueError as exc:
            flash(str(exc), "error")
        else:
            flash("Product updated", "success")
        return redirect(url_for("product_detail", product_id=product_id))

    @app.route("/products/<product_id>/prices", methods=["POST"])
    def record_price(product_id: str) -> Response:
        form = request.form
        try:
            catalog_service.record_price(
                product_id,
                form.get("store_id", ""),
                _parse_price(form.get("price")),
                is_promotion=form.get("is_promotion") == "on",
                promotion_end=_parse_date(form.get("promotion_end")),
            )
        except (KeyError, ValueError) as exc:
            flash(_error_message(exc), "error")
        else:
            flash("Price recorded", "success")
        return redirect(url_for("product_detail", product_id=product_id))

    @app.route("/stores", methods=["GET", "POST"])
    def stores() -> str | Response:
        if request.method == "POST":
            try:
                store = catalog_service.add_store(
                    request.form.get("name", ""), request.form.get("town", ""), request.form.get("address")
                )
            except ValueError as exc:
                flash(str(exc), "error")
            else:
                flash(f"Added {store.name} in {store.town}", "success")
            return redirect(url_for("stores"))
        return render_template("stores.html", stores_by_town=catalog_service.stores_by_town())

    return app


def seed_demo_data(repository: CsvCatalogRepository) -> None:
    """Populate a small catalogue for UI development."""

    now = datetime.now(UTC)
    conad = repository.add_store("Conad", "Grottaminarda", store_id="conad")
    lidl = repository.add_store("Lidl", "Ariano Irpino", store_id="lidl")
    eurospin = repository.add_store("Eurospin", "Flumeri", store_id="eurospin")
    pasta = repository.add_product("Spaghetti n.5", "Pasta & Rice", "500g", brand="Barilla", product_id="spaghetti")
    milk = repository.add_product("Latte intero", "Dairy & Eggs", "1L", brand="Granarolo", product_id="latte")
    coffee = repository.add_product("Caffè macinato", "Coffee & Tea", "250g", brand="Lavazza", product_id="caffe")
    rows = [
        (pasta, conad, "1.29"),
        (pasta, lidl, "0.99"),
        (pasta, eurospin, "1.05"),
        (milk, conad, "1.49"),
        (milk, lidl, "1.39"),
        (coffee, conad, "3.99"),
        (coffee, lidl, "3.49"),
        (coffee, eurospin, "3.19"),
    ]
    for product, store, price in rows:
        repository.record_price(
            PriceRecord(product_id=product.id, store_id=store.id, price=Decimal(price), recorded_at=now - timedelta(days=1))
        )
    repository.record_price(
        PriceRecord(
            product_id=milk.id,
            store_id=lidl.id,
            price=Decimal("1.19"),
            recorded_at=now,
            is_promotion=True,
            promotion_end=(now + timedelta(days=7)).date(),
        )
    )
    weekly = repository.create_list("Weekly shop", list_id="weekly")
    repository.add_list_item(weekly.id, pasta.id, 2)
    repository.add_list_item(weekly.id, milk.id, 1)
    logger.info("Seeded demo catalogue in %s", repository.file_path_for("stores").parent)


def bootstrap_app(
    config: AppConfig = DEFAULT_CONFIG,
) -> tuple[Flask, ComparisonService, ShoppingListService, CatalogService]:
    """Factory used by the entrypoint for running the web UI."""

    config.ensure_data_directories()
    repository = CsvCatalogRepository(config.data_directory)
    if repository.is_empty():
        seed_demo_data(repository)
    comparison_service = ComparisonService(repository=repository)
    shopping_list_service = ShoppingListService(repository=repository)
    catalog_service = CatalogService(repository=repository)

    app = create_app(comparison_service, shopping_list_service, catalog_service, config)
    return app, comparison_service, shopping_list_service, catalog_service
