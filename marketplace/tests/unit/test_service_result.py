import pytest

from marketplace.services import ErrorKind, ServiceResult, service_err, service_ok


@pytest.mark.unit
class TestServiceResult:
    def test_service_ok(self):
        result = service_ok({"id": 1})
        assert result.success
        assert result.ok
        assert not result.failure
        assert result.data == {"id": 1}
        assert result.errors == []
        assert result.status == ErrorKind.OK

    def test_service_err(self):
        result = service_err(ErrorKind.NOT_FOUND, "Offer not found")
        assert not result.success
        assert result.failure
        assert result.data is None
        assert result.errors == ["Offer not found"]
        assert result.status == "not_found"

    def test_service_err_with_several_messages(self):
        result = service_err(ErrorKind.UNPROCESSABLE, "full_name is required", "postal_code is required")
        assert result.errors == ["full_name is required", "postal_code is required"]
        assert result.error_detail == "full_name is required; postal_code is required"

    def test_service_err_without_message_uses_status(self):
        assert service_err(ErrorKind.INTERNAL).errors == ["internal_error"]

    @pytest.mark.parametrize("status", [ErrorKind.OK, "teapot", None])
    def test_service_err_rejects_non_failure_status(self, status):
        with pytest.raises(ValueError):
            service_err(status, "nope")

    def test_to_dict_shape_is_stable(self):
        assert service_ok(5).to_dict() == {"success": True, "data": 5, "errors": [], "status": "ok"}
        assert service_err(ErrorKind.FORBIDDEN, "no").to_dict() == {
            "success": False,
            "data": None,
            "errors": ["no"],
            "status": "forbidden",
        }

    def test_map_transforms_success_only(self):
        assert service_ok(2).map(lambda x: x * 10).data == 20

        failure = service_err(ErrorKind.VALIDATION, "bad")
        assert failure.map(lambda x: x * 10) is failure

    def test_failure_meta_rendered_only_when_set(self):
        conflict = {"existing_offer": {"id": "abc"}}
        result = service_err(ErrorKind.UNPROCESSABLE, "duplicate", meta=conflict)
        assert result.meta == conflict
        assert result.to_dict()["meta"] == conflict
        assert "meta" not in service_err(ErrorKind.UNPROCESSABLE, "duplicate").to_dict()

    def test_failure_never_carries_data_in_dict(self):
        result = ServiceResult(success=False, data="leak", errors=["x"], status=ErrorKind.INTERNAL)
        assert result.to_dict()["data"] is None
