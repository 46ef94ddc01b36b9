"""
Unit tests for role-scoped audit queries.

Non-admin callers only ever see their own records, whatever filters they pass.
"""

from datetime import datetime, timedelta, timezone

import pytest

from coursecrm.exceptions import AuditAccessDeniedError, AuditRecordNotFoundError
from coursecrm.repositories import AuditRepository
from coursecrm.services.audit import AuditQueryService, AuditRecord

NOW = datetime(2026, 3, 1, 12, 0, 0)


def seed(repository: AuditRepository, actor_id: str, count: int, **kwargs) -> list:
    records = []
    for i in range(count):
        fields = {"action": "READ", "entity": "contacts", "timestamp": NOW - timedelta(minutes=i)}
        fields.update(kwargs)
        record = AuditRecord(actor_id=actor_id, **fields)
        assert repository.create(record) is not None
        records.append(record)
    return records


@pytest.fixture
def service(audit_repository: AuditRepository) -> AuditQueryService:
    return AuditQueryService(audit_repository, clock=lambda: NOW)


@pytest.mark.unit
class TestScopedFilter:
    def test_admin_unscoped(self, service: AuditQueryService) -> None:
        assert service.scoped_filter("admin-1", "ADMIN").actor_id is None

    @pytest.mark.parametrize("role", ["MANAGER", "CURATOR", "CLIENT", "CANDIDATE", "UNKNOWN"])
    def test_non_admin_scoped_to_self(self, service: AuditQueryService, role: str) -> None:
        audit_filter = service.scoped_filter("user-9", role, entity="contacts")
        assert audit_filter.actor_id == "user-9"
        assert audit_filter.entity == "contacts"

    def test_offset_dates_converted_to_naive_utc(self, service: AuditQueryService) -> None:
        plus_three = timezone(timedelta(hours=3))
        audit_filter = service.scoped_filter(
            "user-9",
            "CLIENT",
            date_from=datetime(2026, 2, 10, 2, 0, tzinfo=plus_three),
            date_to=datetime(2026, 2, 10, 12, 0, tzinfo=timezone.utc),
        )
        assert audit_filter.date_from == datetime(2026, 2, 9, 23, 0)
        assert audit_filter.date_to == datetime(2026, 2, 10, 12, 0)

    def test_naive_dates_unchanged(self, service: AuditQueryService) -> None:
        audit_filter = service.scoped_filter("user-9", "CLIENT", date_from=NOW)
        assert audit_filter.date_from == NOW
        assert audit_filter.date_to is None


@pytest.mark.unit
class TestListRecords:
    """Test pagination and visibility of list_records."""

    def test_client_sees_only_own_records(self, service: AuditQueryService, audit_repository: AuditRepository) -> None:
        seed(audit_repository, "U1", 3)
        seed(audit_repository, "U2", 2)

        result = service.list_records("U1", "CLIENT", page=1, limit=10)

        assert result["pagination"]["total"] == 3
        assert {record.actor_id for record in result["data"]} == {"U1"}

    def test_manager_scoped_to_self(self, service: AuditQueryService, audit_repository: AuditRepository) -> None:
        seed(audit_repository, "manager-1", 1)
        seed(audit_repository, "U2", 4)

        result = service.list_records("manager-1", "MANAGER")

        assert result["pagination"]["total"] == 1
        assert result["data"][0].actor_id == "manager-1"

    def test_admin_sees_everything(self, service: AuditQueryService, audit_repository: AuditRepository) -> None:
        seed(audit_repository, "U1", 2)
        seed(audit_repository, "U2", 2)

        assert service.list_records("admin-1", "ADMIN")["pagination"]["total"] == 4

    def test_pagination_math(self, service: AuditQueryService, audit_repository: AuditRepository) -> None:
        """25 matching records, limit 10: page 3 holds the last 5, pages == 3."""
        seed(audit_repository, "U1", 25)

        result = service.list_records("U1", "CLIENT", page=3, limit=10)

        assert len(result["data"]) == 5
        assert result["pagination"] == {"page": 3, "limit": 10, "total": 25, "pages": 3}

    def test_newest_first(self, service: AuditQueryService, audit_repository: AuditRepository) -> None:
        records = seed(audit_repository, "U1", 3)

        result = service.list_records("U1", "CLIENT")

        assert [r.id for r in result["data"]] == [r.id for r in records]

    def test_empty_result(self, service: AuditQueryService) -> None:
        result = service.list_records("U1", "CLIENT")
        assert result["data"] == []
        assert result["pagination"]["pages"] == 0

    def test_filters_narrow_within_scope(self, service: AuditQueryService, audit_repository: AuditRepository) -> None:
        seed(audit_repository, "U1", 2, action="DELETE")
        seed(audit_repository, "U1", 3, entity="organizations")
        seed(audit_repository, "U2", 2, action="DELETE")

        result = service.list_records("U1", "CLIENT", action="DELETE")
        assert result["pagination"]["total"] == 2

        result = service.list_records("U1", "CLIENT", entity="organizations")
        assert result["pagination"]["total"] == 3

    def test_date_range(self, service: AuditQueryService, audit_repository: AuditRepository) -> None:
        seed(audit_repository, "U1", 1, timestamp=NOW - timedelta(days=10))
        seed(audit_repository, "U1", 1, timestamp=NOW - timedelta(days=1))

        result = service.list_records("U1", "CLIENT", date_from=NOW - timedelta(days=2), date_to=NOW)

        assert result["pagination"]["total"] == 1

    @pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (-1, 5)])
    def test_invalid_paging_rejected(self, service: AuditQueryService, page: int, limit: int) -> None:
        with pytest.raises(ValueError):
            service.list_records("U1", "CLIENT", page=page, limit=limit)


@pytest.mark.unit
class TestGetRecord:
    def test_owner_can_read(self, service: AuditQueryService, audit_repository: AuditRepository) -> None:
        (record,) = seed(audit_repository, "U1", 1)
        assert service.get_record(record.id, "U1", "CLIENT").id == record.id

    def test_other_actor_denied(self, service: AuditQueryService, audit_repository: AuditRepository) -> None:
        (record,) = seed(audit_repository, "U1", 1)
        with pytest.raises(AuditAccessDeniedError) as exc_info:
            service.get_record(record.id, "U2", "MANAGER")
        assert exc_info.value.message == "Access denied"

    def test_admin_reads_any(self, service: AuditQueryService, audit_repository: AuditRepository) -> None:
        (record,) = seed(audit_repository, "U1", 1)
        assert service.get_record(record.id, "admin-1", "ADMIN").actor_id == "U1"

    def test_missing_record(self, service: AuditQueryService) -> None:
        with pytest.raises(AuditRecordNotFoundError) as exc_info:
            service.get_record("does-not-exist", "admin-1", "ADMIN")
        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Audit log not found"


@pytest.mark.unit
class TestGetStats:
    """Test aggregate statistics."""

    def test_stats_scoped_to_actor(self, service: AuditQueryService, audit_repository: AuditRepository) -> None:
        seed(audit_repository, "U1", 2, action="CREATE")
        seed(audit_repository, "U1", 1, action="DELETE", entity="organizations")
        seed(audit_repository, "U2", 5)

        stats = service.get_stats("U1", "CLIENT")

        assert stats["total_logs"] == 3
        assert stats["action_stats"] == [{"action": "CREATE", "count": 2}, {"action": "DELETE", "count": 1}]
        assert stats["entity_stats"] == [{"entity": "contacts", "count": 2}, {"entity": "organizations", "count": 1}]

    def test_recent_activity_window_and_limit(
        self, service: AuditQueryService, audit_repository: AuditRepository
    ) -> None:
        seed(audit_repository, "U1", 12)
        seed(audit_repository, "U1", 3, timestamp=NOW - timedelta(days=3))

        stats = service.get_stats("admin-1", "ADMIN")

        assert stats["total_logs"] == 15
        assert len(stats["recent_activity"]) == 10
        assert all(record.timestamp >= NOW - timedelta(hours=24) for record in stats["recent_activity"])
