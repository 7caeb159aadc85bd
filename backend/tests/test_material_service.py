"""
StudyHub Backend - Material Service Unit Tests
==============================================

What:  MaterialService business rules, run against a real SQLite store
       (and a mocked store where a race has to be staged).

What we test:
    ✅ Create: defaults, thumbnail canonicalization, duplicate links
       (sequential, concurrent, and lost race after the pre-check)
    ✅ Create with a non-drive thumbnail persists nothing
    ✅ Update: store-managed keys, upvotes and unknown keys are ignored
    ✅ Delete twice: success then NotFound
    ✅ Listing: pagination math, limit cap, lenient parsing, filters
    ✅ Upvote toggle state machine and verified-user requirement
"""

import asyncio
import math
from unittest.mock import AsyncMock, MagicMock

import pytest

from studyhub.exceptions import (
    DuplicateMaterialError,
    InvalidAssetLinkError,
    NotFoundError,
    StoreFailureError,
    ValidationError,
)
from studyhub.services.material_service import MaterialService
from studyhub.services.material_store import MaterialFilter

VOTER = "voter@university.edu"


async def _bulk_insert(session_factory, materials):
    async with session_factory.begin() as session:
        session.add_all(materials)


class TestCreate:

    @pytest.mark.asyncio
    async def test_create_applies_defaults(self, service, material_payload):
        payload = material_payload()
        del payload["desc"]
        del payload["courseCode"]

        result = await service.create(payload)

        assert result.message == "Material created successfully"
        material = result.material
        assert material.desc == ""
        assert material.course_code == ""
        assert material.featured is False
        assert material.contributed_by == "Admin"
        assert material.verified_by == "notVerified"
        assert material.upvotes == []

    @pytest.mark.asyncio
    async def test_thumbnail_is_canonicalized(self, service, material_payload):
        result = await service.create(
            material_payload(thumbnail="https://drive.google.com/file/d/ABC123/view")
        )
        assert result.material.thumbnail == "https://drive.google.com/uc?export=view&id=ABC123"

    @pytest.mark.asyncio
    async def test_featured_accepts_words(self, service, material_payload):
        featured = await service.create(material_payload(featured="true"))
        not_featured = await service.create(material_payload(featured="false"))
        assert featured.material.featured is True
        assert not_featured.material.featured is False

    @pytest.mark.asyncio
    async def test_distinct_links_get_distinct_ids(self, service, material_payload):
        first = await service.create(material_payload())
        second = await service.create(material_payload())
        assert first.material.id != second.material.id

    @pytest.mark.asyncio
    async def test_duplicate_link_sequential(self, service, material_payload):
        payload = material_payload()
        await service.create(payload)

        with pytest.raises(DuplicateMaterialError) as exc_info:
            await service.create(dict(payload))
        assert exc_info.value.message == "Material with this link already exists"

    @pytest.mark.asyncio
    async def test_duplicate_link_concurrent(self, service, store, material_payload):
        payload = material_payload()

        results = await asyncio.gather(
            service.create(dict(payload)),
            service.create(dict(payload)),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], DuplicateMaterialError)
        assert await store.count_matching(MaterialFilter()) == 1

    @pytest.mark.asyncio
    async def test_race_lost_after_precheck(self, material_payload):
        """The database constraint and the pre-check report the same error."""
        store = MagicMock()
        store.find_one_by_link = AsyncMock(return_value=None)
        store.insert = AsyncMock(side_effect=DuplicateMaterialError())
        service = MaterialService(store=store, users=MagicMock())

        with pytest.raises(DuplicateMaterialError) as exc_info:
            await service.create(material_payload())
        assert exc_info.value.message == "Material with this link already exists"

    @pytest.mark.asyncio
    async def test_non_drive_thumbnail_persists_nothing(self, service, store, material_payload):
        with pytest.raises(InvalidAssetLinkError):
            await service.create(material_payload(thumbnail="https://example.com/not-drive"))
        assert await store.count_matching(MaterialFilter(visible_statuses=())) == 0

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, material_payload):
        store = MagicMock()
        store.find_one_by_link = AsyncMock(side_effect=StoreFailureError())
        service = MaterialService(store=store, users=MagicMock())

        with pytest.raises(StoreFailureError):
            await service.create(material_payload())
        store.insert.assert_not_called()


class TestUpdate:

    @pytest.mark.asyncio
    async def test_store_managed_keys_are_ignored(self, service, material_payload):
        created = await service.create(material_payload())
        material_id = created.material.id
        before = await service.get_one(material_id)

        result = await service.update(
            material_id,
            {
                "_id": "0" * 24,
                "createdAt": "1999-01-01T00:00:00Z",
                "updatedAt": "1999-01-01T00:00:00Z",
                "subject": "Advanced Data Structures",
            },
        )

        after = await service.get_one(material_id)
        assert result.message == "Material updated successfully"
        assert after.id == material_id
        assert after.subject == "Advanced Data Structures"
        assert after.created_at == before.created_at
        assert after.updated_at > before.updated_at

    @pytest.mark.asyncio
    async def test_upvotes_and_unknown_keys_are_ignored(self, service, material_payload):
        created = await service.create(material_payload())

        result = await service.update(
            created.material.id,
            {"upvotes": ["intruder@university.edu"], "rating": 5, "semester": "6"},
        )

        assert result.material.upvotes == []
        assert result.material.semester == 6

    @pytest.mark.asyncio
    async def test_thumbnail_is_recanonicalized(self, service, material_payload):
        created = await service.create(material_payload())

        result = await service.update(
            created.material.id,
            {"thumbnail": "https://drive.google.com/file/d/NEW_ID-9/view?usp=sharing"},
        )

        assert result.material.thumbnail == "https://drive.google.com/uc?export=view&id=NEW_ID-9"

    @pytest.mark.asyncio
    async def test_featured_is_parsed(self, service, material_payload):
        created = await service.create(material_payload())
        result = await service.update(created.material.id, {"featured": "yes"})
        assert result.material.featured is True

    @pytest.mark.asyncio
    async def test_invalid_field(self, service, material_payload):
        created = await service.create(material_payload())
        with pytest.raises(ValidationError) as exc_info:
            await service.update(created.material.id, {"semester": 11})
        assert exc_info.value.message == "Semester must be between 1 and 8"

    @pytest.mark.asyncio
    async def test_invalid_id(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.update("nope", {"subject": "Networks"})
        assert exc_info.value.message == "Invalid material ID"

    @pytest.mark.asyncio
    async def test_unknown_id(self, service):
        with pytest.raises(NotFoundError) as exc_info:
            await service.update("a" * 24, {"subject": "Networks"})
        assert exc_info.value.message == "Material not found"

    @pytest.mark.asyncio
    async def test_link_taken_by_other_material(self, service, material_payload):
        first = await service.create(material_payload())
        second = await service.create(material_payload())

        with pytest.raises(DuplicateMaterialError):
            await service.update(
                second.material.id, {"materialLink": first.material.material_link}
            )


class TestDeleteAndGet:

    @pytest.mark.asyncio
    async def test_delete_twice(self, service, material_payload):
        created = await service.create(material_payload())

        result = await service.delete(created.material.id)
        assert result.message == "Material deleted successfully"

        with pytest.raises(NotFoundError):
            await service.delete(created.material.id)

    @pytest.mark.asyncio
    async def test_delete_unknown_id(self, service):
        with pytest.raises(NotFoundError):
            await service.delete("b" * 24)

    @pytest.mark.asyncio
    async def test_get_one_ignores_visibility(self, service, store, make_material):
        stored = await store.insert(make_material(verified_by="rejected"))
        result = await service.get_one(stored.id)
        assert result.verified_by == "rejected"

    @pytest.mark.asyncio
    async def test_get_one_accepts_uppercase_id(self, service, material_payload):
        created = await service.create(material_payload())
        result = await service.get_one(created.material.id.upper())
        assert result.id == created.material.id


class TestList:

    @pytest.mark.asyncio
    async def test_limit_is_capped(self, service, session_factory, make_material):
        await _bulk_insert(session_factory, [make_material(age=i) for i in range(105)])

        result = await service.list({"limit": "500"})

        assert len(result.materials) == 100
        assert result.pagination.total_materials == 105
        assert result.pagination.total_pages == math.ceil(105 / 100)
        assert result.pagination.has_next is True
        assert result.pagination.has_prev is False

    @pytest.mark.asyncio
    async def test_pagination_math(self, service, session_factory, make_material):
        await _bulk_insert(session_factory, [make_material(age=i) for i in range(5)])

        result = await service.list({"page": "2", "limit": "2"})

        assert len(result.materials) == 2
        assert result.pagination.current_page == 2
        assert result.pagination.total_pages == 3
        assert result.pagination.has_next is True
        assert result.pagination.has_prev is True

    @pytest.mark.asyncio
    async def test_garbage_page_and_limit_use_defaults(
        self, service, session_factory, make_material
    ):
        await _bulk_insert(session_factory, [make_material(age=i) for i in range(25)])

        result = await service.list({"page": "abc", "limit": "0"})

        assert result.pagination.current_page == 1
        assert len(result.materials) == 20
        assert result.pagination.total_pages == 2

    @pytest.mark.asyncio
    async def test_oversized_page_falls_back_to_first(self, service, store, make_material):
        await store.insert(make_material())

        result = await service.list({"page": "99999999999999999999"})

        assert result.pagination.current_page == 1
        assert len(result.materials) == 1

    @pytest.mark.asyncio
    async def test_page_with_offset_beyond_bigint_falls_back(self, service, store, make_material):
        await store.insert(make_material())

        # Fits in 64 bits on its own, but (page - 1) * 20 does not.
        result = await service.list({"page": str(2**62)})

        assert result.pagination.current_page == 1

    @pytest.mark.asyncio
    async def test_oversized_semester_drops_filter(self, service, store, make_material):
        await store.insert(make_material(semester=4))

        result = await service.list({"semester": "99999999999999999999"})

        assert result.pagination.total_materials == 1

    @pytest.mark.asyncio
    async def test_empty_catalog(self, service):
        result = await service.list({})
        assert result.materials == []
        assert result.pagination.total_pages == 0
        assert result.pagination.has_next is False

    @pytest.mark.asyncio
    async def test_filters(self, service, store, make_material):
        await store.insert(make_material(semester=1, branch=("CSE",), material_type="pyq"))
        await store.insert(make_material(semester=1, branch=("ECE",)))
        await store.insert(make_material(semester=2, branch=("CSE", "ECE")))

        by_semester = await service.list({"semester": "1"})
        by_branch = await service.list({"branch": "ECE"})
        by_type = await service.list({"materialType": "pyq"})
        bad_semester = await service.list({"semester": "first"})

        assert by_semester.pagination.total_materials == 2
        assert by_branch.pagination.total_materials == 2
        assert by_type.pagination.total_materials == 1
        assert bad_semester.pagination.total_materials == 3

    @pytest.mark.asyncio
    async def test_list_by_type(self, service, store, make_material):
        await store.insert(make_material(material_type="handouts"))
        await store.insert(make_material(material_type="notes"))

        result = await service.list_by_type(" handouts ", {"materialType": "notes"})

        assert result.pagination.total_materials == 1
        assert result.materials[0].material_type == "handouts"

    @pytest.mark.asyncio
    async def test_list_by_type_rejects_short_type(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.list_by_type("x", {})
        assert exc_info.value.message == "Invalid material type"

    @pytest.mark.asyncio
    async def test_newest_first(self, service, store, make_material):
        old = await store.insert(make_material(age=500))
        new = await store.insert(make_material(age=5))

        result = await service.list({})

        assert [m.id for m in result.materials] == [new.id, old.id]


class TestUpvote:

    @pytest.mark.asyncio
    async def test_toggle_returns_to_original_state(self, service, add_user, material_payload):
        await add_user(VOTER)
        created = await service.create(material_payload())
        body = {"materialId": created.material.id, "email": VOTER}

        first = await service.upvote(body)
        second = await service.upvote(body)

        assert first.message == "Material upvoted"
        assert first.upvote_count == 1
        assert first.material.upvotes == [VOTER]
        assert second.message == "Upvote removed"
        assert second.upvote_count == 0
        assert second.material.upvotes == []

    @pytest.mark.asyncio
    async def test_email_case_is_ignored(self, service, add_user, material_payload):
        await add_user("Voter@University.edu")
        created = await service.create(material_payload())

        first = await service.upvote({"materialId": created.material.id, "email": "VOTER@university.edu"})
        second = await service.upvote({"materialId": created.material.id, "email": "voter@university.edu"})

        assert first.message == "Material upvoted"
        assert second.message == "Upvote removed"

    @pytest.mark.asyncio
    async def test_votes_from_different_users_accumulate(self, service, add_user, material_payload):
        await add_user(VOTER)
        await add_user("other@university.edu")
        created = await service.create(material_payload())

        await service.upvote({"materialId": created.material.id, "email": VOTER})
        result = await service.upvote(
            {"materialId": created.material.id, "email": "other@university.edu"}
        )

        assert result.upvote_count == 2
        assert sorted(result.material.upvotes) == ["other@university.edu", VOTER]

    @pytest.mark.asyncio
    async def test_unverified_user_is_rejected(self, service, add_user, material_payload):
        await add_user("pending@university.edu", verified=False)
        created = await service.create(material_payload())

        with pytest.raises(NotFoundError) as exc_info:
            await service.upvote(
                {"materialId": created.material.id, "email": "pending@university.edu"}
            )

        assert exc_info.value.message == "User not found or not verified"
        assert (await service.get_one(created.material.id)).upvotes == []

    @pytest.mark.asyncio
    async def test_unknown_user_is_rejected(self, service, material_payload):
        created = await service.create(material_payload())
        with pytest.raises(NotFoundError) as exc_info:
            await service.upvote({"materialId": created.material.id, "email": "ghost@university.edu"})
        assert exc_info.value.message == "User not found or not verified"

    @pytest.mark.asyncio
    async def test_unknown_material(self, service, add_user):
        await add_user(VOTER)
        with pytest.raises(NotFoundError) as exc_info:
            await service.upvote({"materialId": "c" * 24, "email": VOTER})
        assert exc_info.value.message == "Material not found"

    @pytest.mark.asyncio
    async def test_malformed_body(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.upvote({"materialId": "c" * 24, "email": "nope"})
        assert exc_info.value.message == "Please provide a valid email"

    @pytest.mark.asyncio
    async def test_material_deleted_during_toggle(self, make_material):
        material = make_material()
        material.id = "d" * 24
        store = MagicMock()
        store.find_by_id = AsyncMock(return_value=material)
        store.add_upvote = AsyncMock(return_value=None)
        users = MagicMock()
        users.find_verified = AsyncMock(return_value=object())
        service = MaterialService(store=store, users=users)

        with pytest.raises(NotFoundError):
            await service.upvote({"materialId": material.id, "email": VOTER})
        store.add_upvote.assert_awaited_once_with(material.id, VOTER)
