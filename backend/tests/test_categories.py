# Overview: Pytest coverage for product categories and their product links.

import pytest

from printshop.extensions import db
from printshop.models import ActivityLog, ProductCategory
from printshop.services import category_service
from printshop.services.category_service import CategoryError
from printshop.validation import ConflictError, ValidationError


@pytest.fixture
def cards_category(company_a):
    return category_service.create_category(company_id=company_a.id, patch={"name": "Cards", "code": "CARDS"})


class TestCategoryService:

    def test_code_generated_from_name(self, db_session, company_a):
        first = category_service.create_category(company_id=company_a.id, patch={"name": "Business Cards"})
        second = category_service.create_category(company_id=company_a.id, patch={"name": "Business Forms"})
        assert first.code == "BUS001"
        assert second.code == "BUS002"
        assert first.status == "active"

    def test_code_unique_per_company(self, db_session, company_a, company_b, cards_category):
        with pytest.raises(ConflictError):
            category_service.create_category(company_id=company_a.id, patch={"name": "More Cards", "code": "cards"})

        other = category_service.create_category(company_id=company_b.id, patch={"name": "Cards", "code": "CARDS"})
        assert other.code == "CARDS"

    @pytest.mark.parametrize("code", ["ab", "has space", "bad!"])
    def test_rejects_malformed_code(self, db_session, company_a, code):
        with pytest.raises(ValidationError):
            category_service.create_category(company_id=company_a.id, patch={"name": "Flyers", "code": code})

    def test_hierarchy(self, db_session, company_a, cards_category):
        premium = category_service.create_category(
            company_id=company_a.id, patch={"name": "Premium", "parent_id": cards_category.id},
        )
        assert premium.hierarchy == "Cards > Premium"
        assert premium.to_dict()["parent_id"] == cards_category.id

    def test_parent_must_be_same_company(self, db_session, company_a, company_b, cards_category):
        with pytest.raises(CategoryError, match="Category not found"):
            category_service.create_category(
                company_id=company_b.id, patch={"name": "Stolen", "parent_id": cards_category.id},
            )

    def test_parent_must_be_active(self, db_session, company_a, cards_category):
        category_service.toggle_category_status(cards_category)
        with pytest.raises(CategoryError, match="not active"):
            category_service.create_category(
                company_id=company_a.id, patch={"name": "Premium", "parent_id": cards_category.id},
            )

    def test_cannot_move_under_own_descendant(self, db_session, company_a, cards_category):
        child = category_service.create_category(
            company_id=company_a.id, patch={"name": "Premium", "parent_id": cards_category.id},
        )
        grandchild = category_service.create_category(
            company_id=company_a.id, patch={"name": "Gold Foil", "parent_id": child.id},
        )

        with pytest.raises(CategoryError, match="under itself"):
            category_service.update_category(cards_category, patch={"parent_id": grandchild.id})
        with pytest.raises(CategoryError, match="under itself"):
            category_service.update_category(cards_category, patch={"parent_id": cards_category.id})

        moved = category_service.update_category(grandchild, patch={"parent_id": None})
        assert moved.parent_id is None

    def test_tree_hides_inactive_branches(self, db_session, company_a, cards_category):
        premium = category_service.create_category(
            company_id=company_a.id, patch={"name": "Premium", "parent_id": cards_category.id},
        )
        category_service.create_category(company_id=company_a.id, patch={"name": "Banners", "sort_order": 5})

        tree = category_service.get_category_tree(company_a.id)
        assert [node["name"] for node in tree] == ["Cards", "Banners"]
        assert [node["id"] for node in tree[0]["children"]] == [premium.id]

        category_service.toggle_category_status(cards_category)
        tree = category_service.get_category_tree(company_a.id)
        assert [node["name"] for node in tree] == ["Banners"]

    def test_reactivation_needs_active_parent(self, db_session, company_a, cards_category):
        child = category_service.create_category(
            company_id=company_a.id, patch={"name": "Premium", "parent_id": cards_category.id},
        )
        category_service.toggle_category_status(child)
        category_service.toggle_category_status(cards_category)

        with pytest.raises(CategoryError):
            category_service.toggle_category_status(child)
        with pytest.raises(CategoryError):
            category_service.update_category(child, patch={"status": "active"})

    def test_delete_blocked_by_products_and_children(self, db_session, company_a, cards_category, business_cards):
        child = category_service.create_category(
            company_id=company_a.id, patch={"name": "Premium", "parent_id": cards_category.id},
        )
        with pytest.raises(CategoryError, match="subcategories"):
            category_service.delete_category(cards_category)

        business_cards.category_id = child.id
        db.session.commit()
        with pytest.raises(CategoryError, match="products"):
            category_service.delete_category(child)

        business_cards.category_id = None
        db.session.commit()
        category_service.delete_category(child)
        category_service.delete_category(cards_category)
        assert db_session.query(ProductCategory).count() == 0

    def test_stats(self, db_session, company_a, cards_category, business_cards):
        category_service.create_category(company_id=company_a.id, patch={"name": "Premium", "parent_id": cards_category.id})
        category_service.create_category(company_id=company_a.id, patch={"name": "Banners", "status": "inactive"})
        business_cards.category_id = cards_category.id
        db.session.commit()

        assert category_service.get_category_stats(company_a.id) == {
            "total": 3, "active": 2, "inactive": 1, "top_level": 2, "with_products": 1,
        }

    def test_activity_is_logged(self, db_session, company_a, cards_category):
        category_service.update_category(cards_category, patch={"description": "All card stock"})
        actions = {row.action for row in db_session.query(ActivityLog).filter_by(entity_type="product_category")}
        assert actions == {"product_category.created", "product_category.updated"}


class TestCategoryRoutes:

    def test_create_list_and_get(self, client, admin_headers, business_cards):
        resp = client.post("/api/product-categories", json={"name": "Cards", "code": "cards"}, headers=admin_headers)
        assert resp.status_code == 201
        category = resp.json["category"]
        assert category["code"] == "CARDS"

        resp = client.put(f"/api/products/{business_cards.id}", json={"category_id": category["id"]},
                          headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["product"]["category_id"] == category["id"]

        resp = client.get("/api/product-categories", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1
        assert resp.json["items"][0]["products_count"] == 1

        resp = client.get(f"/api/product-categories/{category['id']}", headers=admin_headers)
        assert resp.json["category"]["products"][0]["product_code"] == "BC-STD"

    def test_filter_top_level(self, client, admin_headers, cards_category):
        client.post("/api/product-categories", json={"name": "Premium", "parent_id": cards_category.id},
                    headers=admin_headers)

        resp = client.get("/api/product-categories?parent_id=null", headers=admin_headers)
        assert [c["code"] for c in resp.json["items"]] == ["CARDS"]

        resp = client.get(f"/api/product-categories?parent_id={cards_category.id}", headers=admin_headers)
        assert [c["name"] for c in resp.json["items"]] == ["Premium"]

        resp = client.get("/api/product-categories?parent_id=abc", headers=admin_headers)
        assert resp.status_code == 400

    def test_tree_and_stats(self, client, cashier_headers, cards_category):
        resp = client.get("/api/product-categories/tree", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["categories"][0]["code"] == "CARDS"

        resp = client.get("/api/product-categories/stats", headers=cashier_headers)
        assert resp.json["stats"]["total"] == 1

    def test_invalid_payloads(self, client, admin_headers, cards_category):
        resp = client.post("/api/product-categories", json={}, headers=admin_headers)
        assert resp.status_code == 400

        resp = client.post("/api/product-categories", json={"name": "X"}, headers=admin_headers)
        assert resp.status_code == 400

        resp = client.post("/api/product-categories", json={"name": "Cards", "code": "CARDS"}, headers=admin_headers)
        assert resp.status_code == 409

        resp = client.post("/api/product-categories", json={"name": "Odd", "sort_order": -1}, headers=admin_headers)
        assert resp.status_code == 400

        resp = client.put(f"/api/product-categories/{cards_category.id}", json={"parent_id": cards_category.id},
                          headers=admin_headers)
        assert resp.status_code == 400

    def test_toggle_reorder_delete(self, client, admin_headers, company_a, cards_category):
        banners = category_service.create_category(company_id=company_a.id, patch={"name": "Banners"})

        resp = client.post("/api/product-categories/reorder", json={"category_ids": [banners.id, cards_category.id]},
                           headers=admin_headers)
        assert resp.status_code == 200
        assert [c["sort_order"] for c in resp.json["categories"]] == [1, 2]

        resp = client.post("/api/product-categories/reorder", json={"category_ids": [banners.id, 99999]},
                           headers=admin_headers)
        assert resp.status_code == 404

        resp = client.post(f"/api/product-categories/{banners.id}/toggle", headers=admin_headers)
        assert resp.json["category"]["status"] == "inactive"

        resp = client.delete(f"/api/product-categories/{banners.id}", headers=admin_headers)
        assert resp.status_code == 200
        resp = client.get(f"/api/product-categories/{banners.id}", headers=admin_headers)
        assert resp.status_code == 404

    def test_cashier_cannot_manage(self, client, cashier_headers, cards_category):
        resp = client.post("/api/product-categories", json={"name": "Flyers"}, headers=cashier_headers)
        assert resp.status_code == 403

        resp = client.delete(f"/api/product-categories/{cards_category.id}", headers=cashier_headers)
        assert resp.status_code == 403

    def test_foreign_category(self, client, admin_b_headers, cards_category):
        resp = client.get(f"/api/product-categories/{cards_category.id}", headers=admin_b_headers)
        assert resp.status_code == 404

        resp = client.delete(f"/api/product-categories/{cards_category.id}", headers=admin_b_headers)
        assert resp.status_code == 404

        resp = client.get("/api/product-categories", headers=admin_b_headers)
        assert resp.json["count"] == 0


class TestProductCategoryLink:

    def test_filter_products_by_category(self, client, admin_headers, cards_category, business_cards, banner):
        business_cards.category_id = cards_category.id
        db.session.commit()

        resp = client.get(f"/api/products?category_id={cards_category.id}", headers=admin_headers)
        assert [p["product_code"] for p in resp.json["items"]] == ["BC-STD"]

    def test_create_product_in_category(self, client, admin_headers, cards_category):
        resp = client.post("/api/products", json={
            "product_code": "BC-GOLD", "name": "Gold Cards", "base_price": "40", "category_id": cards_category.id,
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["product"]["category_id"] == cards_category.id

    def test_foreign_category_rejected(self, client, admin_b_headers, cards_category):
        resp = client.post("/api/products", json={
            "product_code": "X-1", "name": "Sneaky", "base_price": "1", "category_id": cards_category.id,
        }, headers=admin_b_headers)
        assert resp.status_code == 400
        assert "Category not found" in resp.json["error"]
