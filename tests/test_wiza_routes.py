"""
Integration Tests for the Wiza prospect-list route.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from careerlyst.api.dependencies import get_prospect_list_service
from careerlyst.domain.prospecting import CREATED_MESSAGE, REUSED_MESSAGE, ProspectListResult
from careerlyst.infrastructure.exceptions import ConflictError, NotFoundError, WizaServiceError
from tests.factories import USER_ID


COMPANY_ID = "33333333-3333-3333-3333-333333333333"


@pytest.fixture
def mock_service(app):
    mock = MagicMock()
    mock.create_prospect_list = AsyncMock()
    app.dependency_overrides[get_prospect_list_service] = lambda: mock
    return mock


class TestCreateListRoute:

    def test_new_list_is_201(self, auth_client, mock_service):
        mock_service.create_prospect_list.return_value = ProspectListResult(
            list_id="list_1", request_id="req_1", status="queued", message=CREATED_MESSAGE
        )

        response = auth_client.post("/api/jobs/wiza/create-list", json={"company_id": COMPANY_ID})

        assert response.status_code == 201
        assert response.json()["list_id"] == "list_1"
        assert response.json()["reused"] is False
        kwargs = mock_service.create_prospect_list.call_args.kwargs
        assert kwargs["user_id"] == USER_ID
        assert str(kwargs["company_id"]) == COMPANY_ID
        assert kwargs["application_id"] is None

    def test_reused_list_is_200(self, auth_client, mock_service):
        mock_service.create_prospect_list.return_value = ProspectListResult(
            list_id="list_1", request_id="req_1", status="queued", reused=True, message=REUSED_MESSAGE
        )

        response = auth_client.post("/api/jobs/wiza/create-list", json={"company_id": COMPANY_ID})

        assert response.status_code == 200
        assert response.json()["reused"] is True

    def test_in_progress_is_409(self, auth_client, mock_service):
        mock_service.create_prospect_list.side_effect = ConflictError(
            "Prospect list creation already in progress, please retry"
        )

        response = auth_client.post("/api/jobs/wiza/create-list", json={"company_id": COMPANY_ID})

        assert response.status_code == 409
        assert response.json()["type"] == "ConflictError"

    def test_unknown_company_is_404(self, auth_client, mock_service):
        mock_service.create_prospect_list.side_effect = NotFoundError("Company not found")

        response = auth_client.post("/api/jobs/wiza/create-list", json={"company_id": COMPANY_ID})

        assert response.status_code == 404
        assert response.json()["error"] == "Company not found"

    def test_wiza_failure_is_500(self, auth_client, mock_service):
        mock_service.create_prospect_list.side_effect = WizaServiceError("Wiza API error: 402")

        response = auth_client.post("/api/jobs/wiza/create-list", json={"company_id": COMPANY_ID})

        assert response.status_code == 500
        assert response.json()["details"]["service"] == "wiza"

    def test_invalid_company_id_is_400(self, auth_client, mock_service):
        response = auth_client.post("/api/jobs/wiza/create-list", json={"company_id": "not-a-uuid"})

        assert response.status_code == 400
        mock_service.create_prospect_list.assert_not_called()
