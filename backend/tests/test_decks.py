"""
Tests for deck CRUD endpoints and tier gating.
"""

import pytest
from datetime import datetime, timedelta
from fastapi.testclient import TestClient

from neuroleaf.models.models import AIGeneration, Deck, Flashcard
from neuroleaf.services.subscription import apply_tier


class TestCreateDeck:

    @pytest.mark.api
    def test_create_deck(self, client: TestClient, test_account):
        response = client.post("/api/decks", json={
            "name": "Organic Chemistry",
            "description": "Reaction mechanisms",
            "tags": ["chemistry"],
        })

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Organic Chemistry"
        assert data["account_id"] == test_account.id
        assert data["visibility"] == "private"
        assert data["total_cards"] == 0
        assert data["is_accessible"] is True

    @pytest.mark.api
    def test_fourth_deck_on_free_tier_is_forbidden(self, client: TestClient, test_account, make_deck):
        for i in range(3):
            make_deck(test_account, f"Deck {i}")

        response = client.post("/api/decks", json={"name": "One too many"})

        assert response.status_code == 403
        assert "Deck limit reached" in response.json()["detail"]

    @pytest.mark.api
    def test_pro_account_has_no_deck_limit(self, client: TestClient, login_as, pro_account, make_deck):
        for i in range(5):
            make_deck(pro_account, f"Deck {i}")
        login_as(pro_account)

        response = client.post("/api/decks", json={"name": "Sixth"})
        assert response.status_code == 201

    @pytest.mark.api
    def test_name_is_required(self, client: TestClient):
        response = client.post("/api/decks", json={"name": ""})
        assert response.status_code == 422


class TestReadDecks:

    @pytest.mark.api
    def test_list_decks_with_card_counts(self, client: TestClient, test_deck):
        response = client.get("/api/decks")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["has_more"] is False
        assert data["decks"][0]["total_cards"] == 3

    @pytest.mark.api
    def test_list_decks_search(self, client: TestClient, test_account, make_deck):
        make_deck(test_account, "Anatomy")
        make_deck(test_account, "Pharmacology")

        data = client.get("/api/decks", params={"search": "pharm"}).json()
        assert [d["name"] for d in data["decks"]] == ["Pharmacology"]

    @pytest.mark.api
    def test_get_deck(self, client: TestClient, test_deck):
        response = client.get(f"/api/decks/{test_deck.id}")
        assert response.status_code == 200
        assert response.json()["name"] == "Cell Biology"

    @pytest.mark.api
    def test_other_accounts_deck_is_not_found(self, client: TestClient, make_account, make_deck):
        other_deck = make_deck(make_account(), "Private")
        response = client.get(f"/api/decks/{other_deck.id}")
        assert response.status_code == 404


class TestDowngradedDecks:

    @pytest.fixture
    def downgraded_decks(self, db, test_account, make_deck):
        apply_tier(test_account, "pro")
        db.commit()
        base = datetime(2025, 1, 1)
        decks = [make_deck(test_account, f"Deck {i}", created_at=base + timedelta(days=i)) for i in range(5)]
        apply_tier(test_account, "free")
        db.commit()
        return decks

    @pytest.mark.api
    def test_newer_decks_are_forbidden(self, client: TestClient, downgraded_decks):
        for deck in downgraded_decks[:3]:
            assert client.get(f"/api/decks/{deck.id}").status_code == 200
        for deck in downgraded_decks[3:]:
            response = client.get(f"/api/decks/{deck.id}")
            assert response.status_code == 403
            assert "3 oldest decks" in response.json()["detail"]

    @pytest.mark.api
    def test_list_marks_inaccessible_decks(self, client: TestClient, downgraded_decks):
        data = client.get("/api/decks", params={"sort_by": "created_at", "sort_order": "asc"}).json()
        assert [d["is_accessible"] for d in data["decks"]] == [True, True, True, False, False]

    @pytest.mark.api
    def test_inaccessible_deck_can_still_be_deleted(self, client: TestClient, downgraded_decks):
        response = client.delete(f"/api/decks/{downgraded_decks[4].id}")
        assert response.status_code == 204

        # Four decks left, the fourth oldest is still frozen
        assert client.get(f"/api/decks/{downgraded_decks[3].id}").status_code == 403


class TestUpdateDeleteDeck:

    @pytest.mark.api
    def test_update_deck(self, client: TestClient, test_deck):
        response = client.patch(f"/api/decks/{test_deck.id}", json={"name": "Cell Biology II", "visibility": "public"})

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Cell Biology II"
        assert data["visibility"] == "public"
        assert data["description"] == "Cell Biology deck"

    @pytest.mark.api
    def test_delete_deck_removes_cards_and_keeps_generation_log(self, client: TestClient, db, test_account, test_deck):
        db.add(AIGeneration(account_id=test_account.id, generation_type="flashcards", deck_id=test_deck.id))
        db.commit()

        response = client.delete(f"/api/decks/{test_deck.id}")

        assert response.status_code == 204
        assert db.query(Deck).filter(Deck.id == test_deck.id).first() is None
        assert db.query(Flashcard).filter(Flashcard.deck_id == test_deck.id).count() == 0
        generation = db.query(AIGeneration).filter(AIGeneration.account_id == test_account.id).one()
        assert generation.deck_id is None

    @pytest.mark.api
    def test_delete_missing_deck(self, client: TestClient):
        assert client.delete("/api/decks/no-such-deck").status_code == 404
