import sqlite3
import pytest
from menu_scanner.schemas import MenuData, MenuItem

class TestScanStore:
    """Unit tests for the scan store"""

    def _menu(self, **overrides):
        data = {
            "raw_text": "Bistro\nSoup - $5\nSalad - $7",
            "restaurant_name": "Bistro",
            "menu_type": "Lunch",
            "cuisine_type": "French",
            "menu_items": [
                MenuItem(dish_name="Soup", ingredients=["tomato", "basil"], price=5),
                MenuItem(dish_name="Salad", allergens=["nuts"], price=7, dietary_tags=["Vegan"]),
            ],
        }
        data.update(overrides)
        return MenuData(**data)

    def test_store_menu_data_and_read_back(self, store):
        """Test scan and items are stored together"""
        scan_id = store.store_menu_data(self._menu(), "user-1")

        scan = store.get_scan(scan_id)
        assert scan.raw_text == "Bistro\nSoup - $5\nSalad - $7"
        assert scan.user_id == "user-1"
        assert scan.restaurant_name == "Bistro"
        assert scan.cuisine_type == "French"
        assert scan.item_count == 2
        assert scan.name

        items = store.list_items_by_scan(scan_id)
        # Ordered by dish name
        assert [item.dish_name for item in items] == ["Salad", "Soup"]
        assert items[1].ingredients == ["tomato", "basil"]
        assert items[1].price == 5
        assert items[0].allergens == ["nuts"]
        assert items[0].dietary_tags == ["Vegan"]
        assert all(item.menu_scan_id == scan_id for item in items)

    def test_store_menu_data_requires_items(self, store):
        with pytest.raises(ValueError):
            store.store_menu_data(self._menu(menu_items=[]), "user-1")

    def test_auto_naming_uses_restaurant(self, store):
        scan_id = store.store_menu_data(self._menu(), "user-1", use_auto_naming=True)
        assert store.get_scan(scan_id).name.startswith("Bistro - ")

    def test_failed_item_insert_rolls_back_scan(self, store, monkeypatch):
        """Test the scan is not left behind without its items"""
        def failing_insert(conn, scan_id, items):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(store, "_insert_items", failing_insert)
        with pytest.raises(sqlite3.OperationalError):
            store.store_menu_data(self._menu(), "user-1")

        assert store.get_stats()["total_scans"] == 0

    def test_scan_without_items_is_retrievable(self, store):
        """Test a scan keeps its raw text when structuring produced nothing"""
        scan_id = store.create_scan("Unreadable menu text", "user-1")

        scan = store.get_scan(scan_id)
        assert scan.raw_text == "Unreadable menu text"
        assert scan.item_count == 0
        assert store.list_items_by_scan(scan_id) == []

    def test_create_scan_then_insert_items(self, store):
        scan_id = store.create_scan("Soup - $5", "user-1")
        store.insert_items(scan_id, [MenuItem(dish_name="Soup", price=5)])
        assert [item.dish_name for item in store.list_items_by_scan(scan_id)] == ["Soup"]

    def test_get_unknown_scan(self, store):
        assert store.get_scan("does-not-exist") is None

    def test_delete_scan_cascades(self, store):
        """Test deleting a scan removes its items"""
        scan_id = store.store_menu_data(self._menu(), "user-1")
        other_id = store.store_menu_data(self._menu(raw_text="Other"), "user-1")

        assert store.delete_scan(scan_id) is True
        assert store.get_scan(scan_id) is None
        assert store.list_items_by_scan(scan_id) == []
        assert len(store.list_items_by_scan(other_id)) == 2
        assert store.delete_scan(scan_id) is False

    def test_list_scans_by_user(self, store):
        """Test scan history is per user, newest first"""
        first = store.store_menu_data(self._menu(scan_date="2026-10-01T10:00:00+00:00"), "user-1")
        second = store.store_menu_data(self._menu(scan_date="2026-10-02T10:00:00+00:00"), "user-1")
        store.store_menu_data(self._menu(), "user-2")

        scans = store.list_scans_by_user("user-1")
        assert [scan.id for scan in scans] == [second, first]
        assert all(scan.item_count == 2 for scan in scans)
        assert [scan.id for scan in store.list_scans_by_user("user-1", limit=1)] == [second]

    def test_list_scans_by_restaurant(self, store):
        """Test restaurant lookup matches name or raw text, newest first"""
        older = store.store_menu_data(self._menu(scan_date="2026-10-01T10:00:00+00:00"), "user-1")
        newer = store.store_menu_data(self._menu(
            restaurant_name=None,
            raw_text="BISTRO du Coin\nSoup - $5",
            scan_date="2026-10-03T10:00:00+00:00"
        ), "user-2")
        store.store_menu_data(self._menu(restaurant_name="Thai Garden", raw_text="Thai Garden\nPad Thai"), "user-1")

        scans = store.list_scans_by_restaurant("bistro")
        assert [scan.id for scan in scans] == [newer, older]
        assert scans[0].item_count == 2
        assert store.list_scans_by_restaurant("Pizzeria") == []

    def test_restaurant_lookup_is_literal(self, store):
        """Test LIKE wildcards and quotes in the name are matched literally"""
        store.store_menu_data(self._menu(), "user-1")
        assert store.list_scans_by_restaurant("%") == []
        assert store.list_scans_by_restaurant("B_stro") == []
        assert store.list_scans_by_restaurant("' OR '1'='1") == []

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_restaurant_lookup_requires_name(self, store, name):
        with pytest.raises(ValueError):
            store.list_scans_by_restaurant(name)

    def test_user_id_is_not_interpolated(self, store):
        """Test ids are bound as parameters, not spliced into SQL"""
        store.store_menu_data(self._menu(), "user-1")
        assert store.list_scans_by_user("' OR '1'='1") == []
        assert store.get_scan("' OR '1'='1") is None

    def test_most_recent_scan(self, store):
        store.store_menu_data(self._menu(scan_date="2026-10-01T10:00:00+00:00"), "user-1")
        latest = store.store_menu_data(self._menu(scan_date="2026-10-05T10:00:00+00:00"), "user-2")
        assert store.get_most_recent_scan().id == latest

    def test_query_items_with_predicate(self, store):
        store.store_menu_data(self._menu(), "user-1")
        assert len(store.query_items()) == 2
        cheap = store.query_items(lambda item: item.price is not None and item.price < 6)
        assert [item.dish_name for item in cheap] == ["Soup"]

    def test_clear_all(self, store):
        store.store_menu_data(self._menu(), "user-1")
        store.clear_all()
        assert store.get_stats() == {
            "total_scans": 0,
            "total_items": 0,
            "database_path": store.database_path
        }
