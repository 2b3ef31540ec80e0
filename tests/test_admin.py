"""Tests for the admin blueprint.

Covers:
- Login / logout, anonymous access redirected to login
- Dashboard numbers
- Product create (validation, file storage), update, availability, delete
- Admin product download
- Order and customer lists, customer delete
"""

import io
import json

from app.extensions import db
from app.models.order import Order
from app.models.product import Product
from app.models.user import User


def _product_form(**overrides):
    data = {
        "name": "Budget Planner",
        "description": "A monthly budget planner in PDF.",
        "price_in_cents": "1990",
        "file": (io.BytesIO(b"%PDF-1.4 planner"), "Planejador Orçamento.pdf"),
    }
    data.update(overrides)
    return data


class TestAdminAuth:

    def test_anonymous_redirected_to_login(self, client, seed_data):
        resp = client.get("/admin/")
        assert resp.status_code == 302
        assert "/admin/login" in resp.headers["Location"]

    def test_login_page_renders(self, client):
        resp = client.get("/admin/login")
        assert resp.status_code == 200
        assert b'name="password"' in resp.data

    def test_bad_password_rejected(self, client, seed_data):
        resp = client.post(
            "/admin/login",
            data={"email": seed_data["admin_email"], "password": "wrong"},
        )
        assert resp.status_code == 401
        assert client.get("/admin/").status_code == 302

    def test_login_then_logout(self, admin_client):
        assert admin_client.get("/admin/").status_code == 200
        admin_client.post("/admin/logout")
        assert admin_client.get("/admin/").status_code == 302


class TestDashboard:

    def test_totals(self, admin_client, seed_data):
        data = json.loads(admin_client.get("/admin/").data)
        assert data == {
            "total_sales_in_cents": 7000,
            "order_count": 2,
            "customer_count": 1,
            "available_product_count": 2,
        }


class TestProducts:

    def test_list(self, admin_client, seed_data):
        data = json.loads(admin_client.get("/admin/products").data)
        names = [p["name"] for p in data["products"]]
        assert names == ["Draft Product", "Investing Guide", "Recipe Book"]

    def test_create_stores_file_and_starts_unavailable(self, admin_client, seed_data):
        resp = admin_client.post(
            "/admin/products", data=_product_form(), content_type="multipart/form-data"
        )
        assert resp.status_code == 201

        product = Product.query.filter_by(name="Budget Planner").one()
        assert product.is_available_for_purchase is False
        assert product.price_in_cents == 1990
        assert product.file_path.startswith("file_")
        assert product.file_path.endswith("-planejador_orcamento.pdf")
        stored = seed_data["files_dir"] / product.file_path
        assert stored.read_bytes() == b"%PDF-1.4 planner"

    def test_create_validation_errors_per_field(self, admin_client, seed_data):
        form = _product_form(
            name="ab",
            description="short",
            price_in_cents="50",
            file=(io.BytesIO(b"MZ"), "virus.exe"),
        )
        resp = admin_client.post("/admin/products", data=form, content_type="multipart/form-data")

        assert resp.status_code == 422
        errors = json.loads(resp.data)["errors"]
        assert set(errors) == {"name", "description", "price_in_cents", "file"}
        assert Product.query.count() == 3

    def test_create_requires_file(self, admin_client, seed_data):
        form = _product_form()
        del form["file"]
        resp = admin_client.post("/admin/products", data=form, content_type="multipart/form-data")
        assert json.loads(resp.data)["errors"]["file"] == ["Select a file."]

    def test_duplicate_name_rejected(self, admin_client, seed_data):
        form = _product_form(name="Investing Guide")
        resp = admin_client.post("/admin/products", data=form, content_type="multipart/form-data")
        assert "name" in json.loads(resp.data)["errors"]

    def test_update_keeps_historical_price_paid(self, admin_client, seed_data):
        resp = admin_client.post(
            f"/admin/products/{seed_data['guide_id']}",
            data={
                "name": "Investing Guide 2nd Edition",
                "description": "A practical guide to investing, revised.",
                "price_in_cents": "9900",
            },
        )
        assert resp.status_code == 200

        product = db.session.get(Product, seed_data["guide_id"])
        assert product.price_in_cents == 9900
        paid = {o.price_paid_in_cents for o in Order.query.filter_by(product_id=product.id)}
        assert paid == {4500}

    def test_update_replaces_file(self, admin_client, seed_data):
        resp = admin_client.post(
            f"/admin/products/{seed_data['guide_id']}",
            data=_product_form(
                name="Investing Guide",
                file=(io.BytesIO(b"new text"), "guide.txt"),
            ),
            content_type="multipart/form-data",
        )
        assert resp.status_code == 200

        product = db.session.get(Product, seed_data["guide_id"])
        assert product.file_path.endswith(".txt")
        assert not (seed_data["files_dir"] / "file_guide.pdf").exists()

    def test_toggle_availability(self, admin_client, seed_data):
        url = f"/admin/products/{seed_data['hidden_id']}/availability"

        data = json.loads(admin_client.post(url).data)
        assert data["product"]["is_available_for_purchase"] is True

        data = json.loads(admin_client.post(url, data={"available": "false"}).data)
        assert data["product"]["is_available_for_purchase"] is False

    def test_delete_unordered_product(self, admin_client, seed_data):
        resp = admin_client.post(f"/admin/products/{seed_data['hidden_id']}/delete")
        assert resp.status_code == 200
        assert db.session.get(Product, seed_data["hidden_id"]) is None

    def test_delete_ordered_product_refused(self, admin_client, seed_data):
        resp = admin_client.post(f"/admin/products/{seed_data['guide_id']}/delete")
        assert resp.status_code == 409
        assert db.session.get(Product, seed_data["guide_id"]) is not None

    def test_admin_download(self, admin_client, seed_data):
        resp = admin_client.get(f"/admin/products/{seed_data['recipes_id']}/download")
        assert resp.status_code == 200
        assert resp.data == b"PK docx recipes"
        assert resp.headers["Content-Disposition"] == 'attachment; filename="Recipe Book.docx"'

    def test_unknown_product_404(self, admin_client, seed_data):
        assert admin_client.get("/admin/products/nope/download").status_code == 404


class TestOrdersAndCustomers:

    def test_order_list(self, admin_client, seed_data):
        data = json.loads(admin_client.get("/admin/orders").data)
        assert len(data["orders"]) == 2
        assert {o["email"] for o in data["orders"]} == {seed_data["customer_email"]}

    def test_customer_list(self, admin_client, seed_data):
        data = json.loads(admin_client.get("/admin/customers").data)
        assert data["customers"][0]["order_count"] == 2
        assert data["customers"][0]["total_spent_in_cents"] == 7000

    def test_delete_customer_removes_orders(self, admin_client, seed_data):
        resp = admin_client.post(f"/admin/customers/{seed_data['customer_id']}/delete")
        assert resp.status_code == 200
        assert User.query.count() == 0
        assert Order.query.count() == 0
