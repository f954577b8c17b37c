"""Tests for ingredient cost, product pricing, and settings endpoints."""
import uuid
from datetime import datetime
from decimal import Decimal

import pytest

from menu_pricing.models.ingredient import Ingredient
from menu_pricing.models.price_audit import PriceChangeAudit
from menu_pricing.models.product import BOMLine


@pytest.fixture
def pizza(ingredient_factory, product_factory, bom_line_factory):
    """A pizza costing 10.00 per unit, priced at 25.00."""
    dough = ingredient_factory(name="Dough", unit_cost=4)
    cheese = ingredient_factory(name="Cheese", unit_cost=3)
    product = product_factory(name="Pizza", base_price=25)
    bom_line_factory(product, dough, 1)
    bom_line_factory(product, cheese, 2)
    return product


@pytest.fixture
def channels(channel_factory):
    counter = channel_factory(name="Counter", is_counter=True)
    delivery = channel_factory(name="Delivery", commission_rate=0.20, sort_order=1)
    return counter, delivery


# ============================================================================
# Ingredient costs
# ============================================================================


class TestIngredientCosts:
    def test_resolves_composed(self, client, ingredient_factory, bom_line_factory):
        sugar = ingredient_factory(name="Sugar", unit_cost=5)
        syrup = ingredient_factory(name="Syrup", unit_cost=0, is_composed=True, yield_quantity=3)
        bom_line_factory(syrup, sugar, 2)

        response = client.get("/api/v1/ingredients/costs")
        assert response.status_code == 200
        data = response.json()
        rows = {row["name"]: row for row in data["ingredients"]}
        assert rows["Syrup"]["resolved_unit_cost"] == 3.33
        assert rows["Syrup"]["changed"] is True
        assert rows["Sugar"]["changed"] is False
        assert data["persisted"] is False

    def test_recompute_persists(self, client, db, ingredient_factory, bom_line_factory):
        sugar = ingredient_factory(name="Sugar", unit_cost=5)
        syrup = ingredient_factory(name="Syrup", unit_cost=0, is_composed=True, yield_quantity=2)
        bom_line_factory(syrup, sugar, 1)

        response = client.post("/api/v1/ingredients/costs/recompute")
        assert response.status_code == 200
        assert response.json()["updated_count"] == 1

        stored = db.query(Ingredient).filter(Ingredient.id == syrup.id).one()
        assert stored.unit_cost == Decimal("2.5000")

    def test_cycle_is_conflict(self, client, ingredient_factory, bom_line_factory):
        a = ingredient_factory(name="Caramel", is_composed=True)
        b = ingredient_factory(name="Sauce", is_composed=True)
        bom_line_factory(a, b, 1)
        bom_line_factory(b, a, 1)

        response = client.get("/api/v1/ingredients/costs")
        assert response.status_code == 409
        detail = response.json()["detail"]
        assert "Circular composition" in detail["message"]
        assert set(detail["cycle"]) == {str(a.id), str(b.id)}


class TestBOMLines:
    def test_validate_detects_cycle(self, client, ingredient_factory, bom_line_factory):
        a = ingredient_factory(name="A", is_composed=True)
        b = ingredient_factory(name="B", is_composed=True)
        bom_line_factory(a, b, 1)

        response = client.post("/api/v1/ingredients/bom/validate", json={
            "owner_id": str(b.id),
            "owner_type": "ingredient",
            "ingredient_id": str(a.id),
        })
        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is False
        assert "A" in data["detail"]

    def test_validate_safe_line(self, client, ingredient_factory):
        flour = ingredient_factory(name="Flour")
        dough = ingredient_factory(name="Dough", is_composed=True)

        response = client.post("/api/v1/ingredients/bom/validate", json={
            "owner_id": str(dough.id),
            "ingredient_id": str(flour.id),
        })
        assert response.json() == {"valid": True, "cycle": [], "detail": None}

    def test_create_marks_owner_composed(self, client, db, ingredient_factory):
        flour = ingredient_factory(name="Flour", unit_cost=2)
        dough = ingredient_factory(name="Dough")

        response = client.post("/api/v1/ingredients/bom", json={
            "owner_id": str(dough.id),
            "owner_type": "ingredient",
            "ingredient_id": str(flour.id),
            "quantity_per_batch": 1.5,
        })
        assert response.status_code == 201
        assert db.query(Ingredient).filter(Ingredient.id == dough.id).one().is_composed is True

    def test_create_rejects_cycle(self, client, db, ingredient_factory, bom_line_factory):
        a = ingredient_factory(name="A", is_composed=True)
        b = ingredient_factory(name="B", is_composed=True)
        bom_line_factory(a, b, 1)

        response = client.post("/api/v1/ingredients/bom", json={
            "owner_id": str(b.id),
            "owner_type": "ingredient",
            "ingredient_id": str(a.id),
        })
        assert response.status_code == 409
        assert db.query(BOMLine).count() == 1

    def test_create_for_product(self, client, ingredient_factory, product_factory):
        flour = ingredient_factory(name="Flour")
        bread = product_factory(name="Bread")

        response = client.post("/api/v1/ingredients/bom", json={
            "owner_id": str(bread.id),
            "owner_type": "product",
            "ingredient_id": str(flour.id),
            "quantity_per_batch": 0.5,
        })
        assert response.status_code == 201
        assert response.json()["owner_type"] == "product"

    def test_create_duplicate(self, client, ingredient_factory, product_factory, bom_line_factory):
        flour = ingredient_factory(name="Flour")
        bread = product_factory(name="Bread")
        bom_line_factory(bread, flour, 1)

        response = client.post("/api/v1/ingredients/bom", json={
            "owner_id": str(bread.id),
            "owner_type": "product",
            "ingredient_id": str(flour.id),
        })
        assert response.status_code == 400

    def test_create_unknown_owner(self, client, ingredient_factory):
        flour = ingredient_factory(name="Flour")

        response = client.post("/api/v1/ingredients/bom", json={
            "owner_id": str(uuid.uuid4()),
            "owner_type": "product",
            "ingredient_id": str(flour.id),
        })
        assert response.status_code == 404


# ============================================================================
# Product cost and channel pricing
# ============================================================================


class TestProductCost:
    def test_breakdown(self, client, pizza):
        response = client.get(f"/api/v1/products/{pizza.id}/cost")
        assert response.status_code == 200
        data = response.json()
        assert data["unit_cost"] == 10.0
        assert data["has_bom"] is True
        assert len(data["lines"]) == 2

    def test_not_found(self, client):
        response = client.get(f"/api/v1/products/{uuid.uuid4()}/cost")
        assert response.status_code == 404


class TestChannelSweep:
    def test_default_margin(self, client, pizza, channels):
        response = client.get(f"/api/v1/products/{pizza.id}/channels")
        assert response.status_code == 200
        data = response.json()
        assert data["mode"] == "margin"
        prices = {q["channel_name"]: q["price"] for q in data["quotes"]}
        assert prices["Counter"] == 16.13  # 10 / 0.62
        assert prices["Delivery"] == 23.81  # 10 / 0.42

    def test_price_mode(self, client, pizza, channels):
        response = client.get(f"/api/v1/products/{pizza.id}/channels?price=25")
        data = response.json()
        assert data["mode"] == "price"
        margins = {q["channel_name"]: q["metrics"]["margin"] for q in data["quotes"]}
        assert margins["Counter"] == 0.52
        assert margins["Delivery"] == 0.32

    def test_infeasible_channel_in_sweep(self, client, pizza, channels):
        response = client.get(f"/api/v1/products/{pizza.id}/channels?margin=0.75")
        quotes = {q["channel_name"]: q for q in response.json()["quotes"]}
        assert quotes["Delivery"]["feasible"] is False
        assert quotes["Delivery"]["max_feasible_margin"] == 0.67

    def test_product_without_bom(self, client, product_factory, channels):
        bare = product_factory(name="Bottled water")
        response = client.get(f"/api/v1/products/{bare.id}/channels")
        assert response.status_code == 422


class TestChannelQuote:
    def test_counter_quote(self, client, pizza, channels):
        response = client.get(f"/api/v1/products/{pizza.id}/quote?margin=0.30")
        assert response.status_code == 200
        assert response.json()["channel_name"] == "Counter"
        assert response.json()["price"] == 16.13

    def test_infeasible_margin(self, client, pizza, channels):
        _, delivery = channels
        response = client.get(f"/api/v1/products/{pizza.id}/quote?channel_id={delivery.id}&margin=0.75")
        assert response.status_code == 422
        assert response.json()["detail"]["max_feasible_margin"] == 0.67

    def test_infeasible_cmv(self, client, pizza, channels):
        response = client.get(f"/api/v1/products/{pizza.id}/quote?cmv=1.2")
        assert response.status_code == 422
        assert response.json()["detail"]["nearest_feasible_cmv"] == 0.99

    def test_unknown_channel(self, client, pizza):
        response = client.get(f"/api/v1/products/{pizza.id}/quote?channel_id={uuid.uuid4()}")
        assert response.status_code == 404


class TestChannelSuggestions:
    def test_suggestions(self, client, pizza, channels, channel_price_factory):
        _, delivery = channels
        channel_price_factory(pizza, delivery, 30)

        response = client.get(f"/api/v1/products/{pizza.id}/channel-suggestions")
        assert response.status_code == 200
        rows = {r["channel_name"]: r for r in response.json()["channels"]}
        # 10 / 0.35 = 28.571 -> 28.58; 10 / (0.35 * 0.8) = 35.714 -> 35.72
        assert rows["Counter"]["ideal_price"] == 28.58
        assert rows["Delivery"]["ideal_price"] == 35.72
        assert rows["Delivery"]["current_price"] == 30.0
        assert rows["Delivery"]["needs_adjustment"] is True


class TestApplyPrices:
    def test_apply_base_price(self, client, db, pizza):
        response = client.post(f"/api/v1/products/{pizza.id}/prices", json={
            "new_price": 28.58,
            "source": "target-cmv",
        })
        assert response.status_code == 200
        [change] = response.json()["changes"]
        assert change["previous_price"] == 25.0
        assert change["new_price"] == 28.58
        assert change["source"] == "target-cmv"
        assert change["channel_id"] is None

    def test_apply_channel_price(self, client, pizza, channels):
        _, delivery = channels
        response = client.post(f"/api/v1/products/{pizza.id}/prices", json={
            "new_price": 35.72,
            "channel_id": str(delivery.id),
        })
        assert response.status_code == 200
        assert response.json()["changes"][0]["channel_id"] == str(delivery.id)

        cost = client.get(f"/api/v1/products/{pizza.id}/channel-suggestions").json()
        delivery_row = next(r for r in cost["channels"] if r["channel_name"] == "Delivery")
        assert delivery_row["current_price"] == 35.72
        assert delivery_row["needs_adjustment"] is False

    def test_apply_to_all_channels(self, client, pizza, channels, channel_price_factory):
        _, delivery = channels
        channel_price_factory(pizza, delivery, 30)

        response = client.post(f"/api/v1/products/{pizza.id}/prices", json={
            "new_price": 27.5,
            "apply_to_all_channels": True,
            "source": "cost-impact",
        })
        assert response.status_code == 200
        changes = response.json()["changes"]
        assert len(changes) == 2
        delivery_change = next(c for c in changes if c["channel_id"] == str(delivery.id))
        assert delivery_change["new_price"] == 33.0

    def test_zero_price_rejected(self, client, db, pizza):
        response = client.post(f"/api/v1/products/{pizza.id}/prices", json={"new_price": 0})
        assert response.status_code == 400
        assert db.query(PriceChangeAudit).count() == 0

    def test_unknown_source_rejected(self, client, pizza):
        response = client.post(f"/api/v1/products/{pizza.id}/prices", json={
            "new_price": 20,
            "source": "magic",
        })
        assert response.status_code == 422

    def test_unknown_product(self, client):
        response = client.post(f"/api/v1/products/{uuid.uuid4()}/prices", json={"new_price": 10})
        assert response.status_code == 404


# ============================================================================
# Settings and channels
# ============================================================================


class TestPricingSettings:
    def test_defaults(self, client):
        response = client.get("/api/v1/settings/pricing")
        assert response.status_code == 200
        assert response.json() == {
            "target_margin_rate": 0.30,
            "target_cmv_rate": 0.35,
            "average_tax_rate": 0.08,
            "is_default": True,
        }

    def test_update(self, client):
        response = client.put("/api/v1/settings/pricing", json={
            "target_margin_rate": 0.25,
            "target_cmv_rate": 0.32,
            "average_tax_rate": 0.06,
        })
        assert response.status_code == 200
        assert response.json()["is_default"] is False
        assert client.get("/api/v1/settings/pricing").json()["target_cmv_rate"] == 0.32

    def test_update_validates_ranges(self, client):
        response = client.put("/api/v1/settings/pricing", json={
            "target_margin_rate": 1.5,
            "target_cmv_rate": 0.32,
            "average_tax_rate": 0.06,
        })
        assert response.status_code == 422

    def test_saved_config_used_for_pricing(self, client, pizza):
        client.put("/api/v1/settings/pricing", json={
            "target_margin_rate": 0.40,
            "target_cmv_rate": 0.35,
            "average_tax_rate": 0.0,
        })
        response = client.get(f"/api/v1/products/{pizza.id}/quote")
        assert response.json()["price"] == 16.67


class TestChannels:
    def test_create_and_list(self, client):
        response = client.post("/api/v1/channels", json={"name": "Counter", "is_counter": True})
        assert response.status_code == 201
        client.post("/api/v1/channels", json={"name": "Delivery", "commission_rate": 0.27})

        data = client.get("/api/v1/channels").json()
        assert data["count"] == 2
        assert data["channels"][0]["name"] == "Counter"
        assert data["channels"][1]["commission_rate"] == 0.27

    def test_duplicate_name(self, client, channel_factory):
        channel_factory(name="Delivery")
        response = client.post("/api/v1/channels", json={"name": "Delivery"})
        assert response.status_code == 400

    def test_single_counter(self, client, channel_factory):
        channel_factory(name="Counter", is_counter=True)
        response = client.post("/api/v1/channels", json={"name": "Front desk", "is_counter": True})
        assert response.status_code == 400


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
