import json
import pytest
from menu_scanner.llm.json_repair import EMPTY_MENU_JSON, loads_menu_json, repair

class TestValidInput:
    """Already-valid JSON passes through untouched"""

    @pytest.mark.parametrize("text", [
        '{"menu_items": []}',
        '{"restaurant_name": "Luigi\'s", "menu_items": [{"dish_name": "Soup", "price": 5}]}',
        '  {"a": [1, 2, {"b": null}]}  ',
        '[{"dish_name": "Soup"}]',
    ])
    def test_valid_json_unchanged(self, text):
        assert repair(text) == text

class TestRepairs:
    """Each repair step on its own"""

    def test_unquoted_keys(self):
        result = json.loads(repair('{menu_items: [{dish_name: "Soup", price: 5}]}'))
        assert result == {"menu_items": [{"dish_name": "Soup", "price": 5}]}

    def test_single_quoted_strings(self):
        result = json.loads(repair("{'menu_items': [{'dish_name': 'Soup', 'allergens': ['dairy']}]}"))
        assert result["menu_items"][0]["dish_name"] == "Soup"
        assert result["menu_items"][0]["allergens"] == ["dairy"]

    def test_trailing_commas(self):
        result = json.loads(repair('{"menu_items": [{"dish_name": "Soup", "ingredients": ["tomato",],},],}'))
        assert result == {"menu_items": [{"dish_name": "Soup", "ingredients": ["tomato"]}]}

    def test_truncated_document_is_closed(self):
        text = '{"restaurant_name": "Bistro", "menu_items": [{"dish_name": "Soup", "price": 5}'
        result = json.loads(repair(text))
        assert result["restaurant_name"] == "Bistro"
        assert result["menu_items"] == [{"dish_name": "Soup", "price": 5}]

    def test_truncated_inside_string(self):
        text = '{"menu_items": [{"dish_name": "Soup", "description": "Creamy tom'
        result = json.loads(repair(text))
        assert result["menu_items"][0]["dish_name"] == "Soup"
        assert result["menu_items"][0]["description"] == "Creamy tom"

    def test_truncated_after_key(self):
        text = '{"menu_items": [{"dish_name": "Soup", "price":'
        result = json.loads(repair(text))
        assert result == {"menu_items": [{"dish_name": "Soup"}]}

    def test_truncated_after_comma(self):
        text = '{"menu_items": [{"dish_name": "Soup"}, '
        result = json.loads(repair(text))
        assert result == {"menu_items": [{"dish_name": "Soup"}]}

    def test_truncated_inside_literal(self):
        text = '{"menu_items": [{"dish_name": "A", "price": 5}, {"dish_name": "B", "description": nul'
        result = json.loads(repair(text))
        assert result == {"menu_items": [{"dish_name": "A", "price": 5}, {"dish_name": "B"}]}

    @pytest.mark.parametrize("text,expected", [
        ('{"menu_items": [{"dish_name": "Soup", "price": 12.', [{"dish_name": "Soup"}]),
        ('{"menu_items": [{"dish_name": "Soup", "vegan": tr', [{"dish_name": "Soup"}]),
        ('{"menu_items": [{"dish_name": "Soup", "price": 12', [{"dish_name": "Soup", "price": 12}]),
        ('{"menu_items": [{"dish_name": "Soup", "tags": [true, fal', [{"dish_name": "Soup", "tags": [True]}]),
    ])
    def test_cut_off_scalars(self, text, expected):
        assert json.loads(repair(text))["menu_items"] == expected

    def test_single_quoted_value_with_double_quotes(self):
        result = json.loads(repair("{'menu_items': [{'dish_name': 'The \"Big\" Burger', 'price': 9}]}"))
        assert result["menu_items"] == [{"dish_name": 'The "Big" Burger', "price": 9}]

    def test_single_quoted_value_with_apostrophe(self):
        result = json.loads(repair("{'menu_items': [{'dish_name': 'Luigi's Special'}]}"))
        assert result["menu_items"][0]["dish_name"] == "Luigi's Special"

    def test_apostrophe_in_double_quoted_string_kept(self):
        text = "{\"menu_items\": [{\"dish_name\": \"Chef's Soup\", 'price': 5,}]}"
        result = json.loads(repair(text))
        assert result["menu_items"] == [{"dish_name": "Chef's Soup", "price": 5}]

    def test_truncated_single_quoted_value(self):
        result = json.loads(repair("{'menu_items': [{'dish_name': 'Sou"))
        assert result == {"menu_items": [{"dish_name": "Sou"}]}

    def test_string_contents_are_not_rewritten(self):
        text = '{"menu_items": [{"dish_name": "Soup", "description": "Served with: rice, beans,}"},]}'
        result = json.loads(repair(text))
        assert result["menu_items"][0]["description"] == "Served with: rice, beans,}"

    def test_menu_items_salvaged_from_broken_wrapper(self):
        text = '{"restaurant_name": "Bistro" "menu_items": [{"dish_name": "Soup", "ingredients": ["tomato"]}]}'
        result = json.loads(repair(text))
        assert result == {"menu_items": [{"dish_name": "Soup", "ingredients": ["tomato"]}]}

class TestFallback:
    """Unrecoverable input still yields valid JSON"""

    @pytest.mark.parametrize("text", [
        "",
        "Sorry, I could not read this menu.",
        "{{{{",
        "]]]",
        '{"menu_items": [{"dish_name": "Soup", "price": 12.',
        '{"a": tru',
        '{"menu_items": "\\',
    ])
    def test_always_parseable(self, text):
        json.loads(repair(text))

    def test_prose_becomes_empty_menu(self):
        assert repair("not json at all") == EMPTY_MENU_JSON

    def test_mismatched_bracket(self):
        result = json.loads(repair('{"menu_items": [{"dish_name": "Soup"]}'))
        assert result["menu_items"] in ([{"dish_name": "Soup"}], [])

    def test_non_string_input(self):
        assert repair(None) == EMPTY_MENU_JSON

    def test_loads_menu_json(self):
        assert loads_menu_json("garbage") == {"menu_items": []}
