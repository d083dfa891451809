import pytest

from skillbot.db import COMPETENCIES, PROFILES, QUESTIONS, SqlStoreClient
from skillbot.errors import AuthError, WriteError


class TestAuth:
    @pytest.mark.asyncio
    async def test_sign_up_signs_in_this_device(self, store):
        identity = await store.sign_up("ana@example.com", "secret1")
        assert identity.email == "ana@example.com"
        assert await store.get_session() == identity

    @pytest.mark.asyncio
    async def test_session_survives_new_client(self, store, session_factory):
        identity = await store.sign_up("ana@example.com", "secret1")
        same_device = SqlStoreClient(session_factory, device_key="1001")
        other_device = SqlStoreClient(session_factory, device_key="2002")
        assert await same_device.get_session() == identity
        assert await other_device.get_session() is None

    @pytest.mark.asyncio
    async def test_duplicate_email(self, store):
        await store.sign_up("ana@example.com", "secret1")
        with pytest.raises(AuthError, match="User already registered"):
            await store.sign_up("ANA@example.com", "another1")

    @pytest.mark.asyncio
    async def test_short_password(self, store):
        with pytest.raises(AuthError, match="at least 6 characters"):
            await store.sign_up("ana@example.com", "123")

    @pytest.mark.asyncio
    async def test_sign_in_checks_password(self, store, session_factory):
        await store.sign_up("ana@example.com", "secret1")
        other = SqlStoreClient(session_factory, device_key="2002")
        with pytest.raises(AuthError, match="Invalid login credentials"):
            await other.sign_in("ana@example.com", "wrong-password")
        with pytest.raises(AuthError, match="Invalid login credentials"):
            await other.sign_in("nobody@example.com", "secret1")
        identity = await other.sign_in("ana@example.com", "secret1")
        assert await other.get_session() == identity

    @pytest.mark.asyncio
    async def test_sign_out(self, store):
        await store.sign_up("ana@example.com", "secret1")
        await store.sign_out()
        assert await store.get_session() is None
        # Signing out twice is harmless
        await store.sign_out()


class TestCrud:
    @pytest.mark.asyncio
    async def test_insert_and_fetch_one(self, store):
        row = await store.insert(COMPETENCIES, {"name": "Liderazgo", "icon": "Users"})
        assert row["id"]
        fetched = await store.fetch_one(COMPETENCIES, {"id": row["id"]})
        assert fetched["name"] == "Liderazgo"
        assert await store.fetch_one(COMPETENCIES, {"id": "missing"}) is None

    @pytest.mark.asyncio
    async def test_fetch_many_orders_and_filters(self, store):
        for name in ["Comunicación", "Análisis", "Liderazgo"]:
            await store.insert(COMPETENCIES, {"name": name})
        rows = await store.fetch_many(COMPETENCIES, order_by="name")
        assert [r["name"] for r in rows] == ["Análisis", "Comunicación", "Liderazgo"]

        desc = await store.fetch_many(COMPETENCIES, order_by="name", ascending=False)
        assert [r["name"] for r in desc] == ["Liderazgo", "Comunicación", "Análisis"]

        only = await store.fetch_many(COMPETENCIES, {"name": "Liderazgo"})
        assert len(only) == 1

    @pytest.mark.asyncio
    async def test_refetch_is_identical(self, store):
        comp = await store.insert(COMPETENCIES, {"name": "Análisis"})
        for level in [2, 1, 2, 3, 1]:
            await store.insert(
                QUESTIONS,
                {
                    "competency_id": comp["id"],
                    "level": level,
                    "type": "logic",
                    "question_text": "?",
                    "options": ["a", "b"],
                    "correct_answer": 0,
                },
            )
        first = await store.fetch_many(
            QUESTIONS, {"competency_id": comp["id"]}, order_by="level"
        )
        second = await store.fetch_many(
            QUESTIONS, {"competency_id": comp["id"]}, order_by="level"
        )
        assert [r["id"] for r in first] == [r["id"] for r in second]
        assert [r["level"] for r in first] == [1, 1, 2, 2, 3]

    @pytest.mark.asyncio
    async def test_update(self, store):
        await store.insert(PROFILES, {"id": "u1", "username": "ana"})
        row = await store.update(PROFILES, "u1", {"total_score": 40})
        assert row["total_score"] == 40
        assert row["username"] == "ana"

    @pytest.mark.asyncio
    async def test_update_missing_row(self, store):
        with pytest.raises(WriteError):
            await store.update(PROFILES, "nobody", {"total_score": 40})

    @pytest.mark.asyncio
    async def test_duplicate_primary_key_is_write_error(self, store):
        await store.insert(PROFILES, {"id": "u1", "username": "ana"})
        with pytest.raises(WriteError):
            await store.insert(PROFILES, {"id": "u1", "username": "ana"})

    @pytest.mark.asyncio
    async def test_unknown_collection(self, store):
        with pytest.raises(ValueError):
            await store.fetch_many("achievements")
