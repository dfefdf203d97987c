import json
from unittest.mock import Mock

import pytest
import requests

from azmigrate.cloud.azure.arm_client import ArmClient
from azmigrate.cloud.cloud_api import CloudApiError

RESOURCE = (
    "/subscriptions/s/resourceGroups/rg/providers/"
    "Microsoft.Network/loadBalancers/lb-app"
)
OPERATION = "https://management.azure.com/operations/op-1"


def response(status=200, body=None, headers=None):
    resp = Mock()
    resp.status_code = status
    resp.headers = headers or {}
    resp.json.return_value = body if body is not None else {}
    resp.text = json.dumps(body)
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    else:
        resp.raise_for_status.return_value = None
    return resp


def client(*responses, token_provider=None, timeout=60):
    session = Mock()
    session.request.side_effect = list(responses)
    arm = ArmClient(
        token_provider=token_provider or Mock(return_value="token-1"),
        endpoint="https://management.azure.com/",
        session=session,
        poll_interval=0,
        timeout=timeout,
    )
    return arm, session


def test_get_returns_document():
    document = {"id": RESOURCE, "properties": {}}
    arm, session = client(response(body=document))

    assert arm.get(RESOURCE, "2023-11-01") == document

    method, url = session.request.call_args.args
    assert method == "GET"
    assert url == f"https://management.azure.com{RESOURCE}?api-version=2023-11-01"
    headers = session.request.call_args.kwargs["headers"]
    assert headers["Authorization"] == "Bearer token-1"


def test_token_is_cached():
    token_provider = Mock(return_value="token-1")
    arm, _ = client(response(), response(), token_provider=token_provider)
    arm.get(RESOURCE, "v")
    arm.get(RESOURCE, "v")
    token_provider.assert_called_once()


def test_get_missing_returns_none():
    arm, _ = client(response(404, {"error": {"code": "ResourceNotFound"}}))
    assert arm.get(RESOURCE, "v") is None


def test_error_carries_arm_code_and_message():
    arm, _ = client(
        response(
            409,
            {"error": {"code": "InUseByNic", "message": "still referenced"}},
        )
    )
    with pytest.raises(CloudApiError, match="InUseByNic: still referenced"):
        arm.get(RESOURCE, "v")


def test_expired_token_is_refreshed_once():
    token_provider = Mock(side_effect=["old", "new"])
    arm, session = client(
        response(401), response(body={"id": RESOURCE}), token_provider=token_provider
    )
    assert arm.get(RESOURCE, "v") == {"id": RESOURCE}
    headers = session.request.call_args.kwargs["headers"]
    assert headers["Authorization"] == "Bearer new"


def test_put_polls_async_operation_then_resource():
    body = {"location": "eastus"}
    final = {"id": RESOURCE, "properties": {"provisioningState": "Succeeded"}}
    arm, session = client(
        response(201, {"id": RESOURCE}, {"Azure-AsyncOperation": OPERATION}),
        response(body={"status": "InProgress"}),
        response(body={"status": "Succeeded"}),
        response(body=final),
    )

    assert arm.put(RESOURCE, "v", body) == final

    calls = session.request.call_args_list
    assert calls[0].args[0] == "PUT"
    assert calls[0].kwargs["json"] == body
    assert [c.args[1] for c in calls[1:3]] == [OPERATION, OPERATION]
    assert calls[3].args[1].startswith(f"https://management.azure.com{RESOURCE}")


def test_failed_async_operation():
    arm, _ = client(
        response(201, {}, {"Azure-AsyncOperation": OPERATION}),
        response(
            body={
                "status": "Failed",
                "error": {"message": "SkuNotAvailable in zone 3"},
            }
        ),
    )
    with pytest.raises(CloudApiError, match="SkuNotAvailable"):
        arm.put(RESOURCE, "v", {})


def test_put_polls_provisioning_state_without_operation_header():
    arm, session = client(
        response(200, {"id": RESOURCE}),
        response(body={"properties": {"provisioningState": "Updating"}}),
        response(body={"properties": {"provisioningState": "Succeeded"}}),
    )
    result = arm.put(RESOURCE, "v", {})
    assert result["properties"]["provisioningState"] == "Succeeded"
    assert session.request.call_count == 3


def test_failed_provisioning_state():
    arm, _ = client(
        response(200, {}),
        response(body={"properties": {"provisioningState": "Failed"}}),
    )
    with pytest.raises(CloudApiError, match="failed"):
        arm.put(RESOURCE, "v", {})


def test_provisioning_timeout():
    arm, _ = client(
        response(200, {}),
        response(body={"properties": {"provisioningState": "Updating"}}),
        timeout=0,
    )
    with pytest.raises(CloudApiError, match="Timed out"):
        arm.put(RESOURCE, "v", {})


def test_rejected_put():
    arm, session = client(
        response(400, {"error": {"code": "InvalidResourceReference", "message": "x"}})
    )
    with pytest.raises(CloudApiError, match="PUT"):
        arm.put(RESOURCE, "v", {})
    assert session.request.call_count == 1


def test_connection_error_is_wrapped():
    arm, _ = client(requests.ConnectionError("connection reset"))
    with pytest.raises(CloudApiError, match="connection reset"):
        arm.put(RESOURCE, "v", {})


def test_connection_lost_while_polling():
    arm, _ = client(
        response(201, {}, headers={"Azure-AsyncOperation": OPERATION}),
        requests.Timeout("read timed out"),
    )
    with pytest.raises(CloudApiError, match="read timed out"):
        arm.put(RESOURCE, "v", {})


def test_non_json_body():
    resp = response(body={})
    resp.json.side_effect = ValueError("Expecting value")
    arm, _ = client(resp)
    with pytest.raises(CloudApiError, match="non-JSON"):
        arm.get(RESOURCE, "v")
