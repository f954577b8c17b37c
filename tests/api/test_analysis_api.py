"""Tests for menu engineering and cost impact endpoints."""
from datetime import datetime, timedelta

import pytest


class TestMenuEngineering:
    def test_quadrants(self, client, ingredient_factory, product_factory, bom_line_factory, sale_factory):
        """A: high margin, low volume. B: low margin, high volume."""
        flour = ingredient_factory(name="Flour", unit_cost=1)
        a = product_factory(name="A", base_price=10)
        b = product_factory(name="B", base_price=10)
        bom_line_factory(a, flour, 6.5)
        bom_line_factory(b, flour, 9)
        sale_factory(a, quantity=50)
        sale_factory(b, quantity=80)

        response = client.get("/api/v1/analysis/menu-engineering")
        assert response.status_code == 200
        data = response.json()
        quadrants = {p["name"]: p["quadrant"] for p in data["products"]}
        assert quadrants == {"A": "puzzle", "B": "workhorse"}
        assert data["summary"]["median_volume"] == 65
        assert data["summary"]["total_products"] == 2

    def test_old_sales_outside_window(self, client, ingredient_factory, product_factory, bom_line_factory, sale_factory):
        flour = ingredient_factory(name="Flour", unit_cost=1)
        a = product_factory(name="A", base_price=10)
        bom_line_factory(a, flour, 5)
        sale_factory(a, quantity=10)
        sale_factory(a, quantity=90, sold_on=datetime.utcnow().date() - timedelta(days=20))

        week = client.get("/api/v1/analysis/menu-engineering?days=7").json()
        month = client.get("/api/v1/analysis/menu-engineering").json()

        assert week["products"][0]["quantity_sold"] == 10
        assert month["products"][0]["quantity_sold"] == 100

    def test_empty_menu(self, client):
        response = client.get("/api/v1/analysis/menu-engineering")
        assert response.status_code == 200
        assert response.json()["products"] == []

    def test_cycle_is_conflict(self, client, ingredient_factory, bom_line_factory):
        a = ingredient_factory(name="A", is_composed=True)
        bom_line_factory(a, a, 1)

        response = client.get("/api/v1/analysis/menu-engineering")
        assert response.status_code == 409


class TestCostImpact:
    @pytest.fixture
    def pizza(self, ingredient_factory, product_factory, bom_line_factory, cost_history_factory):
        tomato = ingredient_factory(name="Tomato", unit_cost=2.20)
        cheese = ingredient_factory(name="Cheese", unit_cost=2.40)
        pizza = product_factory(name="Pizza", base_price=15)
        bom_line_factory(pizza, tomato, 3)
        bom_line_factory(pizza, cheese, 1)
        cost_history_factory(tomato, 2.00, 2.20, created_at=datetime.utcnow() - timedelta(days=10))
        return pizza

    def test_suggestion(self, client, pizza):
        response = client.get("/api/v1/analysis/cost-impact")
        assert response.status_code == 200
        data = response.json()
        assert data["window_days"] == 60
        [suggestion] = data["suggestions"]
        assert suggestion["product_name"] == "Pizza"
        assert suggestion["cost_impact"] == 0.6
        assert suggestion["prior_margin"] == 0.44
        assert suggestion["suggested_price"] == 16.08

    def test_short_window_excludes_change(self, client, pizza):
        response = client.get("/api/v1/analysis/cost-impact?days=7")
        data = response.json()
        assert data["window_days"] == 7
        assert data["suggestions"] == []

    def test_apply_suggestion(self, client, pizza):
        suggestion = client.get("/api/v1/analysis/cost-impact").json()["suggestions"][0]

        response = client.post(f"/api/v1/products/{pizza.id}/prices", json={
            "new_price": suggestion["suggested_price"],
            "source": "cost-impact",
            "apply_to_all_channels": True,
        })
        assert response.status_code == 200
        assert response.json()["changes"][0]["new_price"] == 16.08

        after = client.get("/api/v1/analysis/cost-impact").json()
        assert after["suggestions"][0]["current_price"] == 16.08
