"""Shared test fixtures for YGO card search."""

import json

import pytest
from typing import Any

from src.card_store import CardStore


@pytest.fixture
def sample_cards() -> list[dict[str, Any]]:
    """Sample card data in YGOPRODeck cardinfo format.

    Covers the shapes the projector has to normalize:
    - Des Lacooda, Ally of Justice Catastor: plain effect / synchro monsters
    - Dark Magician, Number 39: Utopia: monsters with a structured typeline
    - Decode Talker: link monster (no DEF, no level)
    - The Wicked Avatar: "?" ATK (missing) and "?" DEF (-1)
    - The Cheerful Coffin, Trap Dustshoot: non-monsters; Dustshoot is banned,
      has Genesys points and no usable price
    """
    return [
        {
            "id": 2326738,
            "name": "Des Lacooda",
            "type": "Effect Monster",
            "frameType": "effect",
            "desc": "Once per turn: You can change this card to face-down Defense Position. When this card is Flip Summoned: Draw 1 card.",
            "atk": 500,
            "def": 600,
            "level": 3,
            "race": "Zombie",
            "attribute": "EARTH",
            "card_sets": [
                {
                    "set_name": "Astral Pack Three",
                    "set_code": "AP03-EN018",
                    "set_rarity": "Common",
                    "set_price": "1.24",
                },
                {
                    "set_name": "Gold Series",
                    "set_code": "GLD1-EN010",
                    "set_rarity": "Common",
                    "set_price": "2.07",
                },
            ],
            "card_prices": [
                {
                    "cardmarket_price": "0.35",
                    "tcgplayer_price": "0.22",
                    "ebay_price": "0.99",
                    "amazon_price": "0.50",
                    "coolstuffinc_price": "0.49",
                }
            ],
        },
        {
            "id": 41142615,
            "name": "The Cheerful Coffin",
            "type": "Spell Card",
            "frameType": "spell",
            "desc": "Discard up to 3 Monster Cards from your hand to the Graveyard.",
            "race": "Normal",
            "card_sets": [
                {
                    "set_name": "Dark Beginning 1",
                    "set_code": "DB1-EN167",
                    "set_rarity": "Common",
                    "set_price": "1.41",
                },
                {
                    "set_name": "Metal Raiders",
                    "set_code": "MRD-059",
                    "set_rarity": "Common",
                    "set_price": "1.55",
                },
            ],
            "card_prices": [
                {
                    "cardmarket_price": "0.10",
                    "tcgplayer_price": "0.15",
                    "ebay_price": "0.99",
                    "amazon_price": "0.25",
                    "coolstuffinc_price": "0.39",
                }
            ],
        },
        {
            "id": 46986414,
            "name": "Dark Magician",
            "type": "Normal Monster",
            "typeline": ["Spellcaster", "Normal"],
            "frameType": "normal",
            "desc": "''The ultimate wizard in terms of attack and defense.''",
            "atk": 2500,
            "def": 2100,
            "level": 7,
            "race": "Spellcaster",
            "attribute": "DARK",
            "card_sets": [
                {
                    "set_name": "Legend of Blue Eyes White Dragon",
                    "set_code": "LOB-005",
                    "set_rarity": "Ultra Rare",
                    "set_price": "80.00",
                },
            ],
            "card_prices": [
                {
                    "cardmarket_price": "2.20",
                    "tcgplayer_price": "2.45",
                    "ebay_price": "4.99",
                    "amazon_price": "3.10",
                    "coolstuffinc_price": "2.99",
                }
            ],
            "misc_info": [{"beta_name": "Dark Sorcerer", "konami_id": 4041}],
        },
        {
            "id": 84013237,
            "name": "Number 39: Utopia",
            "typeline": ["Warrior", "Xyz"],
            "frameType": "xyz",
            "desc": "2 Level 4 monsters\nWhen a monster declares an attack: You can detach 1 material from this card; negate the attack.",
            "atk": 2500,
            "def": 2000,
            "level": 4,
            "race": "Warrior",
            "attribute": "LIGHT",
            "card_sets": [
                {
                    "set_name": "Number Hunters",
                    "set_code": "NUMH-EN020",
                    "set_rarity": "Secret Rare",
                    "set_price": "3.00",
                },
            ],
            "card_prices": [
                {
                    "cardmarket_price": "3.50",
                    "tcgplayer_price": "3.75",
                    "ebay_price": "5.00",
                    "amazon_price": "4.00",
                    "coolstuffinc_price": "3.99",
                }
            ],
        },
        {
            "id": 1861629,
            "name": "Decode Talker",
            "type": "Link Monster",
            "frameType": "link",
            "desc": "2+ Effect Monsters\nGains 500 ATK for each monster it points to.",
            "atk": 2300,
            "race": "Cyberse",
            "attribute": "DARK",
            "linkval": 3,
            "linkmarkers": ["Top", "Bottom-Left", "Bottom-Right"],
            "card_sets": [
                {
                    "set_name": "Starter Deck: Link Strike",
                    "set_code": "YS17-EN041",
                    "set_rarity": "Ultra Rare",
                    "set_price": "1.50",
                },
            ],
            "card_prices": [
                {
                    "cardmarket_price": "1.00",
                    "tcgplayer_price": "1.20",
                    "ebay_price": "1.99",
                    "amazon_price": "1.50",
                    "coolstuffinc_price": "1.49",
                }
            ],
        },
        {
            "id": 21208154,
            "name": "The Wicked Avatar",
            "type": "Effect Monster",
            "frameType": "effect",
            "desc": "Requires 3 Tributes to Normal Summon (cannot be Normal Set). The ATK/DEF of this card become 100 higher than the highest ATK among face-up monsters on the field.",
            "atk": None,
            "def": -1,
            "level": 10,
            "race": "Fiend",
            "attribute": "DIVINE",
            "card_sets": [
                {
                    "set_name": "Unlisted Promotional Pack",
                    "set_code": "UPP-EN001",
                    "set_rarity": "Secret Rare",
                    "set_price": "25.00",
                },
            ],
            "card_prices": [
                {
                    "cardmarket_price": "12.00",
                    "tcgplayer_price": "14.00",
                    "ebay_price": "19.99",
                    "amazon_price": "15.00",
                    "coolstuffinc_price": "16.99",
                }
            ],
        },
        {
            "id": 26593852,
            "name": "Ally of Justice Catastor",
            "type": "Synchro Monster",
            "frameType": "synchro",
            "desc": "1 Tuner + 1+ non-Tuner monsters\nAt the start of the Damage Step, if this card battles a face-up non-DARK monster: Destroy that monster.",
            "atk": 2200,
            "def": 1200,
            "level": 5,
            "race": "Machine",
            "attribute": "DARK",
            "card_sets": [
                {
                    "set_name": "Hidden Arsenal",
                    "set_code": "HA01-EN022",
                    "set_rarity": "Secret Rare",
                    "set_price": "6.00",
                },
            ],
            "card_prices": [
                {
                    "cardmarket_price": "5.00",
                    "tcgplayer_price": "5.50",
                    "ebay_price": "8.99",
                    "amazon_price": "6.00",
                    "coolstuffinc_price": "7.49",
                }
            ],
        },
        {
            "id": 64697231,
            "name": "Trap Dustshoot",
            "type": "Trap Card",
            "frameType": "trap",
            "desc": "Activate only if your opponent has 4 or more cards in their hand. Look at your opponent's hand, select 1 Monster Card in it, and return that card to its owner's Deck.",
            "race": "Normal",
            "card_sets": [
                {
                    "set_name": "Pharaonic Guardian",
                    "set_code": "PGD-EN036",
                    "set_rarity": "Rare",
                    "set_price": "4.00",
                },
            ],
            "banlist_info": {"ban_tcg": "Banned", "ban_ocg": "Banned"},
            "card_prices": [
                {
                    "cardmarket_price": "0.00",
                    "tcgplayer_price": "n/a",
                }
            ],
            "misc_info": [{"genesys_points": 100}],
        },
    ]


@pytest.fixture
def sample_sets() -> list[dict[str, Any]]:
    """Set catalog in YGOPRODeck cardsets format."""
    return [
        {"set_name": "Legend of Blue Eyes White Dragon", "set_code": "LOB", "num_of_cards": 126, "tcg_date": "2002-03-08"},
        {"set_name": "Metal Raiders", "set_code": "MRD", "num_of_cards": 144, "tcg_date": "2002-06-26"},
        {"set_name": "Pharaonic Guardian", "set_code": "PGD", "num_of_cards": 60, "tcg_date": "2003-07-18"},
        {"set_name": "Dark Beginning 1", "set_code": "DB1", "num_of_cards": 250, "tcg_date": "2004-03-01"},
        {"set_name": "Gold Series", "set_code": "GLD1", "num_of_cards": 100, "tcg_date": "2008-01-08"},
        {"set_name": "Hidden Arsenal", "set_code": "HA01", "num_of_cards": 30, "tcg_date": "2009-11-17"},
        {"set_name": "Number Hunters", "set_code": "NUMH", "num_of_cards": 60, "tcg_date": "2011-07-12"},
        {"set_name": "Astral Pack Three", "set_code": "AP03", "num_of_cards": 20, "tcg_date": "2013-11-21"},
        {"set_name": "Starter Deck: Link Strike", "set_code": "YS17", "num_of_cards": 45, "tcg_date": "2017-11-16"},
        {"set_name": "OCG Exclusive Pack", "set_code": "OEP", "num_of_cards": 10},
    ]


@pytest.fixture
def cards_by_name(sample_cards: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Sample cards keyed by name."""
    return {card["name"]: card for card in sample_cards}


@pytest.fixture
def card_store(sample_cards: list[dict[str, Any]], sample_sets: list[dict[str, Any]]) -> CardStore:
    """Store built from the sample cards and sets."""
    return CardStore(sample_cards, sample_sets)


@pytest.fixture
def data_dir(tmp_path, sample_cards, sample_sets):
    """Data directory with cards.json and sets.json written to disk."""
    (tmp_path / "cards.json").write_text(json.dumps({"data": sample_cards}))
    (tmp_path / "sets.json").write_text(json.dumps(sample_sets))
    return tmp_path
