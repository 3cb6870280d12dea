from coinfeedbot import config
from coinfeedbot.api import CoinRef
from coinfeedbot.state import ChatState, StateStore, paginate, search_coins


def test_toggle_twice_restores_pending():
    chat = ChatState(1, confirmed=["bitcoin"])
    chat.begin_selection()
    before = list(chat.pending)
    assert chat.toggle("ethereum") is True
    assert chat.toggle("ethereum") is False
    assert chat.pending == before


def test_confirm_without_toggles_keeps_confirmed():
    chat = ChatState(1, confirmed=["bitcoin", "ethereum"])
    chat.begin_selection()
    assert chat.confirm() is True
    assert chat.confirmed == ["bitcoin", "ethereum"]
    assert chat.pending is None


def test_confirm_replaces_with_toggled_set():
    chat = ChatState(1, confirmed=["bitcoin"])
    chat.begin_selection()
    chat.toggle("bitcoin")
    chat.toggle("solana")
    chat.confirm()
    assert chat.confirmed == ["solana"]


def test_confirm_without_dialog_is_noop():
    chat = ChatState(1, confirmed=["bitcoin"])
    assert chat.confirm() is False
    assert chat.confirmed == ["bitcoin"]


def test_toggle_without_dialog_starts_empty():
    chat = ChatState(1, confirmed=["bitcoin"])
    chat.toggle("ethereum")
    assert chat.pending == ["ethereum"]
    assert chat.confirmed == ["bitcoin"]


def test_begin_selection_copies_confirmed():
    chat = ChatState(1, confirmed=["bitcoin"])
    chat.begin_selection()
    chat.toggle("ethereum")
    assert chat.confirmed == ["bitcoin"]


def test_current_view_prefers_pending():
    chat = ChatState(1, confirmed=["bitcoin"])
    assert chat.current_view() == ["bitcoin"]
    chat.begin_selection()
    chat.toggle("bitcoin")
    assert chat.current_view() == []
    assert chat.selecting


def test_paginate_flags():
    items = list(range(25))
    first = paginate(items, 0, 10)
    assert first.items == list(range(10))
    assert not first.has_prev and first.has_next
    last = paginate(items, 2, 10)
    assert last.items == [20, 21, 22, 23, 24]
    assert last.has_prev and not last.has_next
    assert items == list(range(25))


def test_paginate_exact_fit_has_no_next():
    page = paginate(list(range(10)), 0, 10)
    assert not page.has_next


def test_search_matches_symbol():
    coins = [
        CoinRef("ethereum", "eth", "Ethereum"),
        CoinRef("tether", "usdt", "USDT"),
    ]
    assert [c.id for c in search_coins(coins, "eth", 20)] == ["ethereum"]
    assert [c.id for c in search_coins(coins, "USDT", 20)] == ["tether"]


def test_search_matches_name_substring():
    coins = [
        CoinRef("ethereum", "eth", "Ethereum"),
        CoinRef("tether", "usdt", "Tether"),
    ]
    assert [c.id for c in search_coins(coins, "eth", 20)] == ["ethereum", "tether"]


def test_search_is_capped():
    coins = [CoinRef(f"coin{i}", f"c{i}", f"Coin {i}") for i in range(50)]
    assert len(search_coins(coins, "coin", 20)) == 20


def test_store_creates_state_lazily():
    store = StateStore()
    assert 5 not in store
    chat = store.get(5)
    assert store.get(5) is chat
    assert len(store) == 1


def test_remember_results_keeps_recent_searches():
    chat = ChatState(1)
    coins = [CoinRef(f"c{i}", f"c{i}", f"C{i}") for i in range(3)]
    for message_id in range(config.KEPT_SEARCHES + 2):
        chat.remember_results(message_id, coins)
    assert len(chat.found) == config.KEPT_SEARCHES
    assert 0 not in chat.found and 1 not in chat.found
    assert chat.found[config.KEPT_SEARCHES + 1] == coins
