"""
Shared fixtures: in-process fake Bitwarden and Epicor services.

Both fakes are aiohttp applications served on localhost by
``aiohttp.test_utils.TestServer`` and record every request they receive, so
tests can assert on what was (or was not) sent.
"""

import base64
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from omni.config import ConfigStore, Credentials, Settings


BW_CLIENT_ID = "user.client-id"
BW_CLIENT_SECRET = "client-secret"
BW_MASTER_PASSWORD = "correct horse battery staple"
BW_ACCESS_TOKEN = "access-token-1"
BW_SESSION_KEY = "unlock-key-1"

EPICOR_API_KEY = "api-key-1"
EPICOR_USERNAME = "svc_omni"
EPICOR_PASSWORD = "epicor-password"
EPICOR_TOKEN = "epicor-token-1"


def login_item(item_id: str, name: str, username: str, password: str, **extra) -> Dict[str, Any]:
    item = {
        "object": "item",
        "id": item_id,
        "type": 1,
        "name": name,
        "notes": None,
        "login": {
            "username": username,
            "password": password,
            "totp": None,
            "uris": [{"match": None, "uri": "https://cael10.example.com"}],
        },
        "fields": [],
    }
    item.update(extra)
    return item


def default_vault_items() -> List[Dict[str, Any]]:
    return [
        login_item("id-1", "CAEL10", "admin", "first-password"),
        {
            "object": "item",
            "id": "id-2",
            "type": 2,
            "name": "Runbook",
            "notes": "restart the service twice",
            "secureNote": {"type": 0},
            "fields": [{"name": "owner", "value": "ops", "type": 0}],
        },
        login_item("id-3", "CAEL10", "admin", "second-password"),
        {"object": "item", "id": "id-4", "type": 99, "name": "Future"},
        {
            "object": "item",
            "id": "id-5",
            "type": 1,
            "name": "Printer",
            "notes": None,
            "login": {"username": "lp", "password": "toner", "totp": None, "uris": None},
            "fields": None,
        },
    ]


# =============================================================================
# Fake Bitwarden
# =============================================================================

class FakeBitwarden:
    """Identity service and ``bw serve`` vault API in one application."""

    def __init__(self):
        self.items: List[Dict[str, Any]] = default_vault_items()
        self.requests: List[str] = []
        self.list_status = 200
        self.token_reply: Optional[Dict[str, Any]] = None
        self.unlock_reply: Optional[Dict[str, Any]] = None

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/connect/token", self.token)
        app.router.add_post("/unlock", self.unlock)
        app.router.add_get("/list/object/items", self.list_items)
        return app

    async def token(self, request: web.Request) -> web.Response:
        self.requests.append("token")
        form = await request.post()
        if (
            form.get("grant_type") != "client_credentials"
            or form.get("client_id") != BW_CLIENT_ID
            or form.get("client_secret") != BW_CLIENT_SECRET
        ):
            return web.json_response({"error": "invalid_client"}, status=400)
        if self.token_reply is not None:
            return web.json_response(self.token_reply)
        return web.json_response({
            "access_token": BW_ACCESS_TOKEN,
            "expires_in": 3600,
            "token_type": "Bearer",
            "scope": "api",
        })

    async def unlock(self, request: web.Request) -> web.Response:
        self.requests.append("unlock")
        body = await request.json()
        if request.headers.get("Authorization") != f"Bearer {BW_ACCESS_TOKEN}":
            return web.json_response({"success": False, "message": "Unauthorized"}, status=401)
        if body.get("password") != BW_MASTER_PASSWORD:
            return web.json_response({"success": False, "message": "Invalid master password."}, status=400)
        if self.unlock_reply is not None:
            return web.json_response(self.unlock_reply)
        return web.json_response({
            "success": True,
            "data": {"noColor": False, "object": "message", "title": "Your vault is now unlocked!", "raw": BW_SESSION_KEY},
        })

    async def list_items(self, request: web.Request) -> web.Response:
        self.requests.append("list")
        if request.headers.get("Authorization") != f"Bearer {BW_SESSION_KEY}":
            return web.json_response({"success": False, "message": "Vault is locked."}, status=401)
        if self.list_status != 200:
            return web.Response(status=self.list_status, text="vault unavailable")
        return web.json_response({"success": True, "data": {"object": "list", "data": self.items}})


# =============================================================================
# Fake Epicor
# =============================================================================

def open_case(case_number: int = 12345) -> Dict[str, Any]:
    return {
        "CaseNum": case_number,
        "ProjectID": "PRJ-100",
        "CaseDescription": "Replace pump seal",
        "PartNum": "SEAL-9",
        "Qty": 2.0,
        "UnitPrice": 125.5,
        "CaseOwner": "mgarcia",
        "InternalContact": "tlee",
        "CaseContact": "Acme Plant 3",
        "CurrentTask": "Engineering Review",
        "CurrentTaskAssignedTo": "asmith",
        "RequestedDelivery": "2026-11-01",
        "StartDate": "2026-10-01",
        "ExpectedDeliveryDate": None,
        "Developer": "rkhan",
        "WBSPhaseID": "ENG",
        "WBSPhaseOp": 10,
        "EstimatedHours": 12.0,
        "HoursScheduled": 8.0,
        "HoursApplied": 4.5,
        "BilledPercent": None,
        "Comments": [],
    }


class FakeEpicor:
    """Token resource plus the Omni function library for a handful of cases."""

    def __init__(self):
        self.cases: Dict[int, Dict[str, Any]] = {12345: open_case(12345)}
        self.known_people = {"jdoe", "asmith", "mgarcia"}
        self.calls: List[str] = []
        self.complete_task_status = 200
        self.token_status: Optional[int] = None
        self.token_reply: Optional[Dict[str, Any]] = None

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/TokenResource.svc/", self.token)
        app.router.add_post("/api/v2/efx/{company}/{library}/{function}", self.function)
        return app

    async def token(self, request: web.Request) -> web.Response:
        self.calls.append("token")
        if self.token_status is not None:
            return web.Response(status=self.token_status, text="token service down")
        expected = "Basic " + base64.b64encode(f"{EPICOR_USERNAME}:{EPICOR_PASSWORD}".encode()).decode()
        if request.headers.get("Authorization") != expected or request.headers.get("X-API-Key") != EPICOR_API_KEY:
            return web.json_response({"ErrorMessage": "Invalid credentials"}, status=401)
        if self.token_reply is not None:
            return web.json_response(self.token_reply)
        return web.json_response({"AccessToken": EPICOR_TOKEN, "ExpiresIn": 1800, "TokenType": "Bearer"})

    async def function(self, request: web.Request) -> web.Response:
        function = request.match_info["function"]
        self.calls.append(function)
        if request.match_info["company"] != "100" or request.match_info["library"] != "Omni":
            return web.Response(status=404, text="Not Found")
        if (
            request.headers.get("Authorization") != f"Bearer {EPICOR_TOKEN}"
            or request.headers.get("X-API-Key") != EPICOR_API_KEY
        ):
            return web.json_response({"ErrorMessage": "Unauthorized"}, status=401)

        body = await request.json()
        case = self.cases.get(body.get("CaseNum"))
        if case is None:
            return web.json_response({"Error": True, "Message": f"Case {body.get('CaseNum')} does not exist"})

        if function == "GetCaseStatus":
            reply = {k: v for k, v in case.items() if k not in ("CaseNum", "Comments")}
            reply.update({"Error": False, "Message": ""})
            return web.json_response(reply)

        if function == "CompleteTask":
            if self.complete_task_status != 200:
                return web.Response(status=self.complete_task_status, text="server error")
            if not case["CurrentTask"]:
                return web.json_response({"Error": True, "HasActiveTask": False})
            if body["AssignNextToName"] not in self.known_people:
                return web.json_response({"Error": True, "HasActiveTask": True, "NoSalesRepMatch": True})
            case["CurrentTask"] = ""
            case["CurrentTaskAssignedTo"] = body["AssignNextToName"]
            if body.get("Comment"):
                case["Comments"].append(body["Comment"])
            return web.json_response({
                "Error": False,
                "HasActiveTask": True,
                "AuthorizedToCompleteTask": True,
                "MultipleSalesRepMatches": False,
                "NoSalesRepMatch": False,
            })

        if function == "AddCaseComment":
            case["Comments"].append(body["Comment"])
            return web.json_response({"Error": False, "Message": ""})

        if function == "GetLastComment":
            comments = case["Comments"]
            return web.json_response({"Error": False, "Comment": comments[-1] if comments else None})

        if function == "UpdateCaseQuote":
            case["Qty"] = body["Qty"]
            return web.json_response({"Error": False, "Message": ""})

        return web.Response(status=404, text="Not Found")


# =============================================================================
# Fixtures
# =============================================================================

async def _serve(app: web.Application):
    server = TestServer(app)
    await server.start_server()
    return server


def _base_url(server: TestServer) -> str:
    return str(server.make_url("")).rstrip("/")


@pytest_asyncio.fixture
async def fake_bitwarden():
    fake = FakeBitwarden()
    server = await _serve(fake.app())
    fake.url = _base_url(server)
    yield fake
    await server.close()


@pytest_asyncio.fixture
async def fake_epicor():
    fake = FakeEpicor()
    server = await _serve(fake.app())
    fake.url = _base_url(server)
    yield fake
    await server.close()


@pytest.fixture
def config_path(tmp_path) -> Path:
    return tmp_path / "omni" / ".env"


@pytest.fixture
def settings(config_path, fake_bitwarden) -> Settings:
    return Settings(
        config_path=config_path,
        bw_identity_url=fake_bitwarden.url,
        bw_api_url=fake_bitwarden.url,
        timeout_seconds=5.0,
    )


@pytest.fixture
def credentials(fake_epicor) -> Credentials:
    return Credentials(
        vault_client_id=BW_CLIENT_ID,
        vault_client_secret=BW_CLIENT_SECRET,
        vault_master_password=BW_MASTER_PASSWORD,
        erp_base_url=fake_epicor.url,
        erp_api_key=EPICOR_API_KEY,
        erp_username=EPICOR_USERNAME,
        erp_password=EPICOR_PASSWORD,
    )


@pytest.fixture
def saved_credentials(config_path, credentials) -> Credentials:
    ConfigStore(config_path).save(credentials)
    return credentials
